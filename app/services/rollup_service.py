"""
Rollup calculations

Pure functions over already-fetched orders. Two revenue strategies exist:

- shop scope sums each order's ``total_price`` (taxes, shipping, discounts included)
- product/category scope sums ``price * quantity`` of the matching line items

They are not expected to agree.
"""
from typing import Iterable, Optional, Sequence, Set, Union

from app.models.analytics import CategoryAnalytics, PeriodRollup, Traffic
from app.models.shopify import Order
from app.utils.helpers import safe_divide
from app.utils.logger import log

# Placeholder traffic: assumes a 5% conversion rate
SYNTHETIC_SESSIONS_PER_ORDER = 20


def synthetic_traffic(order_count: int) -> Traffic:
    """Sessions derived from orders when no real traffic source is configured"""
    return Traffic(sessions=max(order_count * SYNTHETIC_SESSIONS_PER_ORDER, 1), synthetic=True)


def _conversion_rate(orders: int, sessions: int) -> float:
    rate = safe_divide(orders, sessions)
    if rate > 1.0:
        # Only happens when a report under-counts sessions
        log.warning(f"Conversion rate {rate:.2f} above 100% ({orders} orders / {sessions} sessions), clamping")
        return 1.0
    return rate


def compute_rollup(
    orders: Sequence[Order],
    product_ids: Optional[Union[str, Iterable[str]]] = None,
    traffic: Optional[Traffic] = None,
) -> PeriodRollup:
    """
    Aggregate orders for one window.

    Args:
        orders: Orders created inside the window
        product_ids: None for shop scope; a product id (or several, for a
            category) to sum only matching line items
        traffic: Sessions/views/add-to-basket for the same scope and window.
            Shop scope falls back to the synthetic placeholder when omitted.

    Returns:
        PeriodRollup with derived ratios (0 under zero denominators)
    """
    if product_ids is None:
        revenue = sum(order.total_price for order in orders)
        order_count = len(orders)
        units_sold = sum(item.quantity for order in orders for item in order.line_items)
        if traffic is None:
            traffic = synthetic_traffic(order_count)
    else:
        wanted: Set[str] = {product_ids} if isinstance(product_ids, str) else set(product_ids)
        revenue = 0.0
        order_count = 0
        units_sold = 0
        for order in orders:
            matched = False
            for item in order.line_items:
                if item.product_id is not None and item.product_id in wanted:
                    revenue += item.price * item.quantity
                    units_sold += item.quantity
                    matched = True
            if matched:
                order_count += 1
        if traffic is None:
            traffic = Traffic()

    return PeriodRollup(
        revenue=revenue,
        sessions=traffic.sessions,
        order_count=order_count,
        units_sold=units_sold,
        views=traffic.views,
        added_to_basket=traffic.added_to_basket,
        conversion_rate=_conversion_rate(order_count, traffic.sessions),
        average_order_value=safe_divide(revenue, order_count),
        add_to_basket_rate=safe_divide(traffic.added_to_basket, traffic.views),
        basket_to_order_rate=safe_divide(units_sold, traffic.added_to_basket),
        sessions_synthetic=traffic.synthetic,
    )


def compute_category_analytics(orders: Sequence[Order], product_ids: Iterable[str], views: int = 0) -> CategoryAnalytics:
    """Category view of a product-scope rollup; conversion is orders per product view"""
    rollup = compute_rollup(orders, product_ids=list(product_ids), traffic=Traffic(views=views))
    return CategoryAnalytics(
        total_revenue=rollup.revenue,
        total_views=views,
        order_count=rollup.order_count,
        qty_sold=rollup.units_sold,
        conversion_rate=_conversion_rate(rollup.order_count, views),
        average_order_value=rollup.average_order_value,
    )
