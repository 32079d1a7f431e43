"""Shopify Admin API connector"""

from app.connectors.errors import AuthError, ParseError, ShopifyError, TransportError, UpstreamError
from app.connectors.shopify import ShopifyClient

__all__ = [
    "ShopifyClient",
    "ShopifyError",
    "AuthError",
    "UpstreamError",
    "ParseError",
    "TransportError"
]
