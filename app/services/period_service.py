"""
Period aggregation

Drives the rollup calculator across the three fixed windows. Each window is
fetched on its own (never derived from another) and the three fetches run
concurrently. Window boundaries come from the ``now`` handed in by the caller.
"""
from datetime import date, datetime, timedelta
from typing import Dict, List, Tuple

from app.connectors.shopify import ShopifyClient
from app.models.analytics import PERIODS, Period, PeriodRollup, ProductRecord, SessionRecord
from app.models.shopify import Order, parse_records
from app.services.rollup_service import compute_rollup
from app.services.session_source import SessionDataSource
from app.utils.helpers import gather_or_cancel
from app.utils.logger import log

ORDERS_ENDPOINT = "orders.json"

OrdersByPeriod = Dict[Period, List[Order]]
ProductRollups = Dict[str, Tuple[Dict[Period, PeriodRollup], Dict[date, SessionRecord]]]


def period_window(period: Period, now: datetime) -> Tuple[datetime, datetime]:
    """
    Window boundaries for a period

    Last90Days: [now - 90d, now]
    Last7Days:  [now - 7d, now]
    Yesterday:  [now - 1d, now - 1d + 1d)  -- always exactly 24 hours
    """
    if period == Period.LAST_90_DAYS:
        return now - timedelta(days=90), now
    if period == Period.LAST_7_DAYS:
        return now - timedelta(days=7), now
    if period == Period.YESTERDAY:
        start = now - timedelta(days=1)
        return start, start + timedelta(days=1)
    raise ValueError(f"Invalid period: {period}")


class PeriodAggregator:
    """Fetches window-scoped orders and rolls them up for shop and products"""

    def __init__(self, client: ShopifyClient, now: datetime):
        self.client = client
        self.now = now

    def window(self, period: Period) -> Tuple[datetime, datetime]:
        return period_window(period, self.now)

    async def fetch_orders(self, period: Period) -> List[Order]:
        """All orders (any status) created inside the period's window"""
        start, end = self.window(period)
        records = await self.client.fetch_all(ORDERS_ENDPOINT, {
            "status": "any",
            "created_at_min": start.isoformat(),
            "created_at_max": end.isoformat(),
        })
        orders = parse_records(Order, records, ORDERS_ENDPOINT)
        log.info(f"Fetched {len(orders)} orders for {period.value} ({start:%Y-%m-%d %H:%M} to {end:%Y-%m-%d %H:%M})")
        return orders

    async def fetch_all_orders(self) -> OrdersByPeriod:
        results = await gather_or_cancel(*(self.fetch_orders(period) for period in PERIODS))
        return dict(zip(PERIODS, results))

    async def shop_rollups(self, orders_by_period: OrdersByPeriod, source: SessionDataSource) -> Dict[Period, PeriodRollup]:
        """Shop-scope rollups: revenue is the sum of order totals"""
        rollups = {}
        for period in PERIODS:
            start, end = self.window(period)
            orders = orders_by_period.get(period, [])
            traffic = await source.shop_traffic(start, end, orders)
            rollups[period] = compute_rollup(orders, traffic=traffic)
        return rollups

    async def product_rollups(
        self,
        products: Dict[str, ProductRecord],
        orders_by_period: OrdersByPeriod,
        source: SessionDataSource,
    ) -> ProductRollups:
        """
        Product-scope rollups for every product

        Revenue is line price x quantity. Daily product traffic is taken from
        the Last90Days window, which covers the other two.

        Returns:
            handle -> (rollups by period, daily session records)
        """
        async def rollup_product(product: ProductRecord):
            rollups = {}
            daily: Dict[date, SessionRecord] = {}
            for period in PERIODS:
                start, end = self.window(period)
                traffic, sessions = await source.product_traffic(product, start, end)
                rollups[period] = compute_rollup(orders_by_period.get(period, []), product_ids=product.id, traffic=traffic)
                if period == Period.LAST_90_DAYS:
                    daily = sessions
            return product.handle, rollups, daily

        results = await gather_or_cancel(*(rollup_product(p) for p in products.values()))
        return {handle: (rollups, daily) for handle, rollups, daily in results}
