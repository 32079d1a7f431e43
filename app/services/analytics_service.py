"""
Analytics Service

Builds the AnalyticsSnapshot for a store: fans out the independent Shopify
fetches, rolls everything up, and caches the finished snapshot per store for
15 minutes. Cache hits are served unconditionally, with no revalidation.

Failure policy (one per deployment, applied to every slice):
- fail_fast: the first upstream, transport or parse failure aborts the build and cancels
  the other in-flight fetches
- best_effort: a failing slice is logged and replaced by an empty default
Missing or malformed credentials always abort before any request is made.
"""
import asyncio
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Dict, Optional

import httpx

from app.config import Settings, get_settings
from app.connectors.errors import ParseError, TransportError, UpstreamError
from app.connectors.shopify import ShopifyClient
from app.models.analytics import PERIODS, AnalyticsSnapshot, Period, ShopRecord
from app.models.shopify import Shop, parse_record
from app.services.catalog_service import CatalogAssembler
from app.services.period_service import PeriodAggregator
from app.services.segment_service import CustomerSegmenter
from app.services.session_source import get_session_source
from app.utils.helpers import gather_or_cancel
from app.utils.logger import log
from app.utils.response_cache import ResponseCache, snapshot_cache

FAIL_FAST = "fail_fast"
BEST_EFFORT = "best_effort"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class AnalyticsService:
    """Composes and caches analytics snapshots"""

    def __init__(
        self,
        settings: Optional[Settings] = None,
        cache: Optional[ResponseCache] = None,
        clock: Callable[[], datetime] = _utcnow,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.settings = settings or get_settings()
        self.cache = cache if cache is not None else snapshot_cache
        self.clock = clock
        self.transport = transport
        self._build_locks: Dict[str, asyncio.Lock] = {}
        self._lock_users: Dict[str, int] = {}

    def _client(self, store_url: Optional[str], access_token: Optional[str]) -> ShopifyClient:
        return ShopifyClient(
            store_url or self.settings.shopify_shop_url,
            access_token or self.settings.shopify_access_token,
            api_version=self.settings.shopify_api_version,
            timeout=self.settings.shopify_request_timeout,
            page_limit=self.settings.shopify_page_limit,
            max_concurrent_requests=self.settings.max_concurrent_requests,
            transport=self.transport,
        )

    @staticmethod
    def cache_key(store_domain: str) -> str:
        return f"analytics:{store_domain}"

    async def get_snapshot(
        self,
        store_url: Optional[str] = None,
        access_token: Optional[str] = None,
        force_refresh: bool = False,
    ) -> AnalyticsSnapshot:
        """
        Snapshot for a store, from cache when fresh

        Concurrent misses for the same store wait on one build instead of
        each hitting Shopify.

        Raises:
            AuthError: credentials missing or malformed
            UpstreamError / TransportError / ParseError: a slice failed under the fail_fast policy
        """
        client = self._client(store_url, access_token)
        key = self.cache_key(client.store_url)

        if not force_refresh:
            cached = self.cache.get(key)
            if cached is not None:
                log.debug(f"Snapshot cache hit for {client.store_url}")
                return cached

        lock = self._build_locks.setdefault(key, asyncio.Lock())
        self._lock_users[key] = self._lock_users.get(key, 0) + 1
        try:
            async with lock:
                if not force_refresh:
                    cached = self.cache.get(key)
                    if cached is not None:
                        return cached

                snapshot = await self._build(client)
                self.cache.set(key, snapshot, ttl=self.settings.snapshot_cache_ttl_seconds)
                return snapshot
        finally:
            # Last one out drops the store's lock
            self._lock_users[key] -= 1
            if not self._lock_users[key]:
                del self._lock_users[key]
                self._build_locks.pop(key, None)

    def invalidate(self, store_url: Optional[str] = None) -> int:
        """Drop cached snapshots for one store (or all stores)"""
        if store_url:
            domain = store_url.strip().replace('https://', '').replace('http://', '').rstrip('/')
            return self.cache.invalidate(self.cache_key(domain))
        return self.cache.invalidate("analytics:")

    async def validate_credentials(self, store_url: Optional[str] = None, access_token: Optional[str] = None) -> bool:
        async with self._client(store_url, access_token) as client:
            return await client.validate_credentials()

    async def _guard(self, name: str, work: Awaitable, default: Any) -> Any:
        """Apply the deployment's failure policy to one slice"""
        if self.settings.failure_policy == FAIL_FAST:
            return await work
        try:
            return await work
        except (UpstreamError, TransportError, ParseError) as e:
            log.warning(f"{name} unavailable, using empty default: {e}")
            return default

    @staticmethod
    async def _fetch_shop(client: ShopifyClient) -> Shop:
        return parse_record(Shop, await client.fetch_resource("shop.json", "shop"), "shop.json")

    async def _build(self, client: ShopifyClient) -> AnalyticsSnapshot:
        now = self.clock()
        started = asyncio.get_running_loop().time()
        log.info(f"Building analytics snapshot for {client.store_url} (policy={self.settings.failure_policy}, sessions={self.settings.session_source})")

        async with client:
            source = get_session_source(self.settings.session_source, client)
            periods = PeriodAggregator(client, now)
            catalog = CatalogAssembler(client, client.store_url)
            segmenter = CustomerSegmenter(client, now, self.settings.segment_order_customer_cap)

            # Independent fetches: one round of fan-out
            shop, orders_by_period, products, categories, segments = await gather_or_cancel(
                self._guard("shop", self._fetch_shop(client), Shop()),
                self._guard("orders", periods.fetch_all_orders(), {p: [] for p in PERIODS}),
                self._guard("products", catalog.build_products(), {}),
                self._guard("categories", catalog.list_categories(), {}),
                self._guard("customer_segments", segmenter.build_segments(), []),
            )

            # Everything below needs the orders
            last_90_start, last_90_end = periods.window(Period.LAST_90_DAYS)
            related_work = (
                catalog.fetch_related_products(products)
                if self.settings.fetch_related_products else asyncio.sleep(0, result={})
            )
            shop_rollups, product_rollups, session_data, related = await gather_or_cancel(
                self._guard("shop_rollups", periods.shop_rollups(orders_by_period, source), {}),
                self._guard("product_rollups", periods.product_rollups(products, orders_by_period, source), {}),
                self._guard(
                    "sessions",
                    source.daily_sessions(last_90_start, last_90_end, orders_by_period.get(Period.LAST_90_DAYS, [])),
                    {},
                ),
                self._guard("related_products", related_work, {}),
            )

        # All inputs are in: only now are the records filled in
        for handle, (rollups, daily) in product_rollups.items():
            products[handle].rollups = rollups
            products[handle].session_data = daily
        for handle, scores in related.items():
            products[handle].related_products = scores

        CatalogAssembler.attach_category_performance(products)
        if self.settings.include_category_analytics:
            catalog.attach_category_analytics(categories, products, orders_by_period)

        snapshot = AnalyticsSnapshot(
            store_domain=client.store_url,
            generated_at=now,
            shop=ShopRecord(
                title=shop.name,
                website_url=f"https://{shop.domain or client.store_url}",
                rollups=shop_rollups,
            ),
            products=products,
            categories=categories,
            session_data=session_data,
            customer_segments=segments,
            session_source=source.name,
        )

        elapsed = asyncio.get_running_loop().time() - started
        log.info(
            f"Snapshot for {client.store_url} built in {elapsed:.2f}s: "
            f"{len(products)} products, {len(categories)} categories, "
            f"{len(segments)} segments, {client.request_count} requests"
        )
        return snapshot
