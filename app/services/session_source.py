"""
Session/traffic data sources

Shopify's REST API has no dependable sessions endpoint for every plan, so
traffic comes from one of two interchangeable sources picked by the
``session_source`` setting:

- ``synthetic``: placeholder derived from order counts, always flagged synthetic
- ``reports``: the store's reports/visitors.json and reports/product_views.json

A snapshot uses exactly one source; they are never mixed.
"""
import asyncio
from abc import ABC, abstractmethod
from collections import Counter
from datetime import date, datetime, time, timedelta
from typing import Dict, List, Sequence, Tuple

from app.connectors.shopify import ShopifyClient
from app.models.analytics import ProductRecord, SessionRecord, Traffic
from app.models.shopify import Order, ProductViewReport, VisitorReport, parse_records
from app.services.rollup_service import SYNTHETIC_SESSIONS_PER_ORDER, synthetic_traffic
from app.utils.helpers import iter_days
from app.utils.logger import log

DailySessions = Dict[date, SessionRecord]


class SessionDataSource(ABC):
    """Traffic numbers for a scope and window"""

    name = "abstract"

    @abstractmethod
    async def shop_traffic(self, start: datetime, end: datetime, orders: Sequence[Order]) -> Traffic:
        pass

    @abstractmethod
    async def product_traffic(self, product: ProductRecord, start: datetime, end: datetime) -> Tuple[Traffic, DailySessions]:
        pass

    @abstractmethod
    async def daily_sessions(self, start: datetime, end: datetime, orders: Sequence[Order]) -> DailySessions:
        pass


class SyntheticSessionSource(SessionDataSource):
    """Order-derived placeholder. Nothing here is measured data."""

    name = "synthetic"

    async def shop_traffic(self, start: datetime, end: datetime, orders: Sequence[Order]) -> Traffic:
        return synthetic_traffic(len(orders))

    async def product_traffic(self, product: ProductRecord, start: datetime, end: datetime) -> Tuple[Traffic, DailySessions]:
        # No per-product placeholder: views and add-to-basket stay unknown (0)
        return Traffic(synthetic=True), {}

    async def daily_sessions(self, start: datetime, end: datetime, orders: Sequence[Order]) -> DailySessions:
        orders_per_day = Counter(order.created_at.date() for order in orders)
        sessions: DailySessions = {}
        for day in iter_days(start.date(), end.date()):
            estimate = max(orders_per_day.get(day, 0) * SYNTHETIC_SESSIONS_PER_ORDER, 1)
            sessions[day] = SessionRecord(
                date=day,
                total_sessions=estimate,
                unique_visitors=estimate,
                synthetic=True,
            )
        return sessions


class ReportsSessionSource(SessionDataSource):
    """Real traffic from the store's analytics reports"""

    name = "reports"
    VISITORS_ENDPOINT = "reports/visitors.json"
    PRODUCT_VIEWS_ENDPOINT = "reports/product_views.json"

    def __init__(self, client: ShopifyClient):
        self.client = client
        self._visitor_fetches: Dict[Tuple[date, date], asyncio.Task] = {}

    @staticmethod
    def report_days(start: datetime, end: datetime) -> Tuple[date, date]:
        """
        First and last whole day of a [start, end) window

        Reports are per calendar day, so a window starting mid-day begins on
        the next day: Yesterday asks for 1 day, Last7Days for 7.
        """
        first = start.date()
        if start.time() != time.min:
            first += timedelta(days=1)
        last = (end - timedelta(microseconds=1)).date()
        return min(first, last), last

    @classmethod
    def _range_params(cls, start: datetime, end: datetime) -> Dict[str, str]:
        first, last = cls.report_days(start, end)
        return {
            "created_at_min": first.isoformat(),
            "created_at_max": last.isoformat(),
        }

    async def _fetch_visitors(self, start: datetime, end: datetime) -> List[VisitorReport]:
        records = await self.client.fetch_all(self.VISITORS_ENDPOINT, self._range_params(start, end))
        return parse_records(VisitorReport, records, self.VISITORS_ENDPOINT)

    async def _visitors(self, start: datetime, end: datetime) -> List[VisitorReport]:
        # Concurrent callers for the same days share one in-flight fetch
        key = self.report_days(start, end)
        task = self._visitor_fetches.get(key)
        if task is None:
            task = asyncio.ensure_future(self._fetch_visitors(start, end))
            self._visitor_fetches[key] = task
        return await task

    async def shop_traffic(self, start: datetime, end: datetime, orders: Sequence[Order]) -> Traffic:
        reports = await self._visitors(start, end)
        return Traffic(
            sessions=sum(r.total_sessions for r in reports),
            views=sum(v.views for r in reports for v in r.page_views),
            added_to_basket=sum(v.views for r in reports for v in r.add_to_cart),
        )

    async def product_traffic(self, product: ProductRecord, start: datetime, end: datetime) -> Tuple[Traffic, DailySessions]:
        params = self._range_params(start, end)
        params["product_id"] = product.id
        records = await self.client.fetch_all(self.PRODUCT_VIEWS_ENDPOINT, params)
        reports = parse_records(ProductViewReport, records, self.PRODUCT_VIEWS_ENDPOINT)

        daily: DailySessions = {}
        for r in reports:
            daily[r.date] = SessionRecord(
                date=r.date,
                total_sessions=r.sessions,
                unique_visitors=r.unique_visitors,
                bounce_rate=r.bounce_rate,
                average_session_duration=r.average_time_on_page,
                page_views={product.url_relative: r.views},
                product_views={product.handle: r.views},
                add_to_cart={product.handle: r.added_to_cart},
            )

        traffic = Traffic(
            sessions=sum(r.sessions for r in reports),
            views=sum(r.views for r in reports),
            added_to_basket=sum(r.added_to_cart for r in reports),
        )
        return traffic, daily

    async def daily_sessions(self, start: datetime, end: datetime, orders: Sequence[Order]) -> DailySessions:
        reports = await self._visitors(start, end)
        return {
            r.date: SessionRecord(
                date=r.date,
                total_sessions=r.total_sessions,
                unique_visitors=r.unique_visitors,
                bounce_rate=r.bounce_rate,
                average_session_duration=r.average_session_duration,
                page_views={v.path: v.views for v in r.page_views},
                product_views={v.path: v.views for v in r.product_views},
                add_to_cart={v.path: v.views for v in r.add_to_cart},
            )
            for r in reports
        }


def get_session_source(name: str, client: ShopifyClient) -> SessionDataSource:
    """Pick the configured traffic source"""
    if name == "reports":
        return ReportsSessionSource(client)
    if name == "synthetic":
        log.debug("Using synthetic session placeholder (sessions = max(orders x 20, 1))")
        return SyntheticSessionSource()
    raise ValueError(f"Unknown session source: {name}")
