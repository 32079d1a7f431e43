"""
Customer segmentation

All segments are carved out of a single customer snapshot fetched once per
build. Top products need each member's order history, which costs one
request per customer, so:

- every customer's orders are fetched at most once, even if they sit in several segments
- only the first ``order_customer_cap`` members of each segment are looked at
"""
import math
from datetime import datetime, timedelta
from typing import Dict, Iterable, List, Optional, Sequence

from app.connectors.shopify import ShopifyClient
from app.models.analytics import CustomerSegment
from app.models.shopify import Customer, Order, parse_records
from app.utils.helpers import gather_or_cancel, safe_divide
from app.utils.logger import log

CUSTOMERS_ENDPOINT = "customers.json"

TOP_SPENDERS = "VIP Customers"
NEW_CUSTOMERS = "New Customers"
REPEAT_CUSTOMERS = "Repeat Customers"
LAPSED_CUSTOMERS = "At-Risk Customers"

TOP_SPENDER_SHARE = 0.2
NEW_CUSTOMER_DAYS = 30
LAPSED_AFTER_DAYS = 90
TOP_PRODUCTS_LIMIT = 5


def top_spenders(customers: Sequence[Customer]) -> List[Customer]:
    """Top 20% by lifetime spend (at least one when there are customers)"""
    if not customers:
        return []
    count = max(1, math.floor(len(customers) * TOP_SPENDER_SHARE))
    # sorted() is stable: equal spenders keep their listing order
    return sorted(customers, key=lambda c: c.total_spent, reverse=True)[:count]


def new_customers(customers: Sequence[Customer], now: datetime) -> List[Customer]:
    cutoff = now - timedelta(days=NEW_CUSTOMER_DAYS)
    return [c for c in customers if c.created_at is not None and c.created_at >= cutoff]


def repeat_customers(customers: Sequence[Customer]) -> List[Customer]:
    return [c for c in customers if c.orders_count > 1]


def lapsed_customers(customers: Sequence[Customer], now: datetime) -> List[Customer]:
    """Last order at least 90 days ago; customers with no known last order are left out"""
    cutoff = now - timedelta(days=LAPSED_AFTER_DAYS)
    return [c for c in customers if c.last_order_date is not None and c.last_order_date <= cutoff]


def repeat_purchase_rate(customers: Sequence[Customer]) -> float:
    """Percent of the given customers with more than one order"""
    return safe_divide(len(repeat_customers(customers)), len(customers)) * 100


def top_products(order_histories: Iterable[Sequence[Order]], limit: int = TOP_PRODUCTS_LIMIT) -> List[str]:
    """
    Product ids ranked by total quantity across the given order histories

    Ties keep the order in which products were first encountered.
    """
    quantities: Dict[str, int] = {}
    for orders in order_histories:
        for order in orders:
            for item in order.line_items:
                if item.product_id is None:
                    continue
                quantities[item.product_id] = quantities.get(item.product_id, 0) + item.quantity

    ranked = sorted(quantities.items(), key=lambda kv: kv[1], reverse=True)
    return [product_id for product_id, _ in ranked[:limit]]


class CustomerSegmenter:
    """Builds the fixed customer segments for one store"""

    def __init__(self, client: ShopifyClient, now: datetime, order_customer_cap: int = 50):
        self.client = client
        self.now = now
        self.order_customer_cap = order_customer_cap

    async def fetch_customers(self) -> List[Customer]:
        records = await self.client.fetch_all(CUSTOMERS_ENDPOINT)
        customers = parse_records(Customer, records, CUSTOMERS_ENDPOINT)
        log.info(f"Fetched {len(customers)} customers")
        return customers

    async def fetch_customer_orders(self, customer_id: str) -> List[Order]:
        endpoint = f"customers/{customer_id}/orders.json"
        records = await self.client.fetch_all(endpoint, {"status": "any"})
        return parse_records(Order, records, endpoint)

    def partition(self, customers: Sequence[Customer]) -> Dict[str, List[Customer]]:
        return {
            TOP_SPENDERS: top_spenders(customers),
            NEW_CUSTOMERS: new_customers(customers, self.now),
            REPEAT_CUSTOMERS: repeat_customers(customers),
            LAPSED_CUSTOMERS: lapsed_customers(customers, self.now),
        }

    async def build_segments(self, customers: Optional[List[Customer]] = None) -> List[CustomerSegment]:
        if customers is None:
            customers = await self.fetch_customers()
        if not customers:
            log.info("No customers found, skipping segmentation")
            return []

        members = self.partition(customers)

        sampled: Dict[str, List[Customer]] = {
            name: group[:self.order_customer_cap] for name, group in members.items()
        }
        # dict keeps first-seen order
        customer_ids = list(dict.fromkeys(c.id for group in sampled.values() for c in group))

        histories = await gather_or_cancel(*(self.fetch_customer_orders(cid) for cid in customer_ids))
        orders_by_customer = dict(zip(customer_ids, histories))
        log.info(f"Fetched order history for {len(customer_ids)} customers across {len(members)} segments")

        segments = []
        for name, group in members.items():
            total_spent = sum(c.total_spent for c in group)
            segments.append(CustomerSegment(
                name=name,
                customer_count=len(group),
                total_revenue=total_spent,
                average_order_value=safe_divide(total_spent, len(group)),
                repeat_purchase_rate=repeat_purchase_rate(group),
                top_products=top_products(orders_by_customer[c.id] for c in sampled[name]),
            ))
        return segments
