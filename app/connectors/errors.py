"""
Errors raised while talking to the Shopify Admin API

Every error carries a short ``kind`` so the API layer can hand the dashboard a
structured payload instead of a raw exception.
"""
from typing import Any, Dict, Optional


class ShopifyError(Exception):
    """Base class for all Shopify-facing failures"""

    kind = "shopify_error"

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind,
            "message": self.message,
            "status": self.status_code,
        }


class AuthError(ShopifyError):
    """Missing or malformed credentials, raised before any request is made"""

    kind = "auth_error"


class UpstreamError(ShopifyError):
    """Non-2xx response from Shopify"""

    kind = "upstream_error"

    def __init__(self, status_code: int, body: str, endpoint: str = ""):
        # Bodies can be whole HTML error pages; keep the message readable
        snippet = body[:500] if body else ""
        target = f" {endpoint}" if endpoint else ""
        super().__init__(
            f"Shopify API request{target} failed with status {status_code}: {snippet}",
            status_code=status_code,
        )
        self.body = body
        self.endpoint = endpoint


class ParseError(ShopifyError):
    """Response body doesn't have the shape we expect"""

    kind = "parse_error"

    def __init__(self, message: str, endpoint: str = ""):
        super().__init__(f"{endpoint}: {message}" if endpoint else message)
        self.endpoint = endpoint


class TransportError(ShopifyError):
    """The request never got a response (timeout, refused or dropped connection)"""

    kind = "transport_error"

    def __init__(self, message: str, endpoint: str = ""):
        super().__init__(f"{endpoint}: {message}" if endpoint else message)
        self.endpoint = endpoint
