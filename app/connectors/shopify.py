"""
Shopify Connector

Thin async client for the Shopify Admin REST API.
Attaches the store's access token, follows Link-header cursor pagination,
and turns non-2xx responses into UpstreamError. It never retries; wrap calls
with app.utils.retry.retry_async if a caller wants that.
"""
import asyncio
from typing import Any, Dict, List, Optional, Tuple
from urllib.parse import parse_qs, urlparse

import httpx

from app.connectors.errors import AuthError, ParseError, TransportError, UpstreamError
from app.utils.logger import log

Records = List[Dict[str, Any]]


class ShopifyClient:
    """
    Client for one store.

    Use as an async context manager; the underlying HTTP connection pool is
    opened on enter and always closed on exit (including cancellation):

        async with ShopifyClient(store_url, token) as client:
            orders = await client.fetch_all("orders.json", {"status": "any"})
    """

    def __init__(
        self,
        store_url: Optional[str],
        access_token: Optional[str],
        api_version: str = "2024-01",
        timeout: float = 30.0,
        page_limit: int = 250,
        max_concurrent_requests: int = 4,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Args:
            store_url: Shopify store domain (e.g., "your-store.myshopify.com")
            access_token: Shopify Admin API access token
            api_version: API version to use
            timeout: Per-request timeout in seconds
            page_limit: Page size for list endpoints (Shopify max is 250)
            max_concurrent_requests: Requests allowed in flight at once for this store
            transport: Optional httpx transport (tests pass httpx.MockTransport)
        """
        if not store_url or not store_url.strip():
            raise AuthError("Missing shop domain")
        if not access_token or not access_token.strip():
            raise AuthError("Missing Shopify access token")

        self.store_url = store_url.strip().replace('https://', '').replace('http://', '').rstrip('/')
        if not self.store_url or "/" in self.store_url or " " in self.store_url:
            raise AuthError(f"Malformed shop domain: {store_url!r}")

        self.access_token = access_token.strip()
        self.api_version = api_version
        self.base_url = f"https://{self.store_url}/admin/api/{api_version}"
        self.timeout = timeout
        self.page_limit = page_limit

        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None
        self._semaphore = asyncio.Semaphore(max(1, max_concurrent_requests))
        self.request_count = 0

    async def __aenter__(self) -> "ShopifyClient":
        self._client = httpx.AsyncClient(
            base_url=f"{self.base_url}/",
            headers=self._get_headers(),
            timeout=self.timeout,
            transport=self._transport,
        )
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    def _get_headers(self) -> Dict[str, str]:
        """Get HTTP headers for Shopify API requests"""
        return {
            "X-Shopify-Access-Token": self.access_token,
            "Accept": "application/json",
            "Content-Type": "application/json"
        }

    async def _get(self, endpoint: str, params: Optional[Dict[str, Any]] = None) -> httpx.Response:
        if self._client is None:
            raise RuntimeError("ShopifyClient must be used inside 'async with'")

        async with self._semaphore:
            self.request_count += 1
            try:
                response = await self._client.get(endpoint, params=params)
            except httpx.TransportError as e:
                log.error(f"Shopify {endpoint} unreachable for {self.store_url}: {type(e).__name__}: {e}")
                raise TransportError(f"{type(e).__name__}: {e}", endpoint=endpoint) from e

        if not response.is_success:
            log.error(f"Shopify {endpoint} failed for {self.store_url}: {response.status_code} - {response.text[:200]}")
            raise UpstreamError(response.status_code, response.text, endpoint=endpoint)

        return response

    @staticmethod
    def _decode(response: httpx.Response, endpoint: str) -> Any:
        try:
            return response.json()
        except ValueError as e:
            raise ParseError("response body is not valid JSON", endpoint=endpoint) from e

    @staticmethod
    def _resource_key(endpoint: str) -> str:
        # "customers/42/orders.json" -> "orders"
        path = endpoint.split("?", 1)[0].rstrip("/")
        name = path.rsplit("/", 1)[-1]
        return name[:-len(".json")] if name.endswith(".json") else name

    def _extract_records(self, body: Any, endpoint: str, resource_key: Optional[str]) -> Records:
        if isinstance(body, list):
            records = body
        elif isinstance(body, dict):
            key = resource_key or self._resource_key(endpoint)
            if key not in body:
                raise ParseError(f"missing '{key}' in response", endpoint=endpoint)
            records = body[key]
            if not isinstance(records, list):
                raise ParseError(f"'{key}' is not a list", endpoint=endpoint)
        else:
            raise ParseError("unexpected response body", endpoint=endpoint)

        if not all(isinstance(r, dict) for r in records):
            raise ParseError("records must be JSON objects", endpoint=endpoint)
        return records

    def _get_next_page_info(self, link_header: Optional[str]) -> Optional[str]:
        """
        Parse the next page cursor from the Link header

        Shopify uses cursor-based pagination: <https://...?page_info=abc&limit=250>; rel="next"

        Args:
            link_header: Link header from response

        Returns:
            page_info cursor of the next page, or None on the last page
        """
        if not link_header:
            return None

        links = link_header.split(",")
        for link in links:
            parts = link.split(";")
            if len(parts) >= 2 and any(p.strip() in ('rel="next"', "rel=next") for p in parts[1:]):
                url = parts[0].strip().strip("<>")
                page_info = parse_qs(urlparse(url).query).get("page_info")
                return page_info[0] if page_info else None

        return None

    async def fetch_page(
        self,
        endpoint: str,
        params: Optional[Dict[str, Any]] = None,
        page_info: Optional[str] = None,
        resource_key: Optional[str] = None,
    ) -> Tuple[Records, Optional[str]]:
        """
        Fetch a single page of a list endpoint

        Args:
            endpoint: Path relative to the API root (e.g., "orders.json")
            params: Query filters for the first page
            page_info: Continuation cursor from a previous page
            resource_key: JSON key holding the records (derived from endpoint if omitted)

        Returns:
            (records, next_page_info); next_page_info is None on the last page
        """
        if page_info:
            # Shopify rejects filters alongside a cursor; they're encoded in it
            query: Dict[str, Any] = {"limit": self.page_limit, "page_info": page_info}
        else:
            query = dict(params or {})

        response = await self._get(endpoint, query)
        records = self._extract_records(self._decode(response, endpoint), endpoint, resource_key)
        return records, self._get_next_page_info(response.headers.get("Link"))

    async def fetch_all(
        self,
        endpoint: str,
        params: Optional[Dict[str, Any]] = None,
        resource_key: Optional[str] = None,
    ) -> Records:
        """Fetch every page of a list endpoint"""
        query = dict(params or {})
        query.setdefault("limit", self.page_limit)

        all_records: Records = []
        page = 1
        records, page_info = await self.fetch_page(endpoint, query, resource_key=resource_key)
        all_records.extend(records)

        while page_info:
            page += 1
            records, page_info = await self.fetch_page(endpoint, page_info=page_info, resource_key=resource_key)
            all_records.extend(records)

        log.debug(f"Fetched {len(all_records)} records from {endpoint} ({page} pages)")
        return all_records

    async def fetch_resource(self, endpoint: str, resource_key: str) -> Dict[str, Any]:
        """Fetch a single object endpoint such as shop.json"""
        response = await self._get(endpoint)
        body = self._decode(response, endpoint)
        if not isinstance(body, dict) or not isinstance(body.get(resource_key), dict):
            raise ParseError(f"missing '{resource_key}' object in response", endpoint=endpoint)
        return body[resource_key]

    async def validate_credentials(self) -> bool:
        """Check the token against shop.json"""
        try:
            shop = await self.fetch_resource("shop.json", "shop")
            log.info(f"Authenticated with Shopify store: {shop.get('name')}")
            return True
        except UpstreamError as e:
            log.warning(f"Shopify credential check failed for {self.store_url}: {e.status_code}")
            return False
