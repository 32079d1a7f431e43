"""
Analytics snapshot model

Records produced by the aggregation services and their wire form. The wire
field names (period-suffixed shop/product metrics, products keyed by handle,
categories keyed by handle) are what the embedded dashboard reads, so
``to_wire`` keeps them exactly.
"""
from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Any, Dict, List, Optional


class Period(str, Enum):
    """Fixed look-back windows"""
    LAST_90_DAYS = "Last90Days"
    LAST_7_DAYS = "Last7Days"
    YESTERDAY = "Yesterday"


PERIODS = (Period.LAST_90_DAYS, Period.LAST_7_DAYS, Period.YESTERDAY)


def _money(value: float) -> float:
    return round(value, 2)


def _ratio(value: float) -> float:
    return round(value, 4)


@dataclass(frozen=True)
class Traffic:
    """Sessions/views/add-to-basket for one scope and window"""
    sessions: int = 0
    views: int = 0
    added_to_basket: int = 0
    synthetic: bool = False


@dataclass(frozen=True)
class PeriodRollup:
    revenue: float = 0.0
    sessions: int = 0
    order_count: int = 0
    units_sold: int = 0
    views: int = 0
    added_to_basket: int = 0
    conversion_rate: float = 0.0
    average_order_value: float = 0.0
    add_to_basket_rate: float = 0.0
    basket_to_order_rate: float = 0.0
    sessions_synthetic: bool = False


@dataclass(frozen=True)
class CategoryAnalytics:
    total_revenue: float = 0.0
    total_views: int = 0
    order_count: int = 0
    qty_sold: int = 0
    conversion_rate: float = 0.0
    average_order_value: float = 0.0

    def to_wire(self) -> Dict[str, Any]:
        return {
            "totalRevenue": _money(self.total_revenue),
            "totalViews": self.total_views,
            "orderCount": self.order_count,
            "qtySold": self.qty_sold,
            "conversionRate": _ratio(self.conversion_rate),
            "averageOrderValue": _money(self.average_order_value),
        }


@dataclass
class SessionRecord:
    date: date
    total_sessions: int = 0
    unique_visitors: int = 0
    bounce_rate: float = 0.0
    average_session_duration: float = 0.0
    page_views: Dict[str, int] = field(default_factory=dict)
    product_views: Dict[str, int] = field(default_factory=dict)
    add_to_cart: Dict[str, int] = field(default_factory=dict)
    synthetic: bool = False

    def to_wire(self) -> Dict[str, Any]:
        return {
            "date": self.date.isoformat(),
            "totalSessions": self.total_sessions,
            "uniqueVisitors": self.unique_visitors,
            "bounceRate": _ratio(self.bounce_rate),
            "averageSessionDuration": round(self.average_session_duration, 2),
            "pageViews": dict(self.page_views),
            "productViews": dict(self.product_views),
            "addToCart": dict(self.add_to_cart),
            "synthetic": self.synthetic,
        }


@dataclass(frozen=True)
class CategoryRef:
    """Lightweight category pointer used for primary/secondary/brand classification"""
    id: str
    title: str
    handle: str

    def to_wire(self) -> Dict[str, str]:
        return {"id": self.id, "title": self.title, "handle": self.handle}


@dataclass
class ProductRecord:
    id: str
    handle: str
    title: str
    is_active: bool
    price: float
    stock_qty: int
    url_relative: str
    url_full: str
    image_url: str
    vendor: Optional[str] = None
    categories: List[str] = field(default_factory=list)
    primary_category: Optional[CategoryRef] = None
    secondary_category: Optional[CategoryRef] = None
    brand_category: Optional[CategoryRef] = None
    rollups: Dict[Period, PeriodRollup] = field(default_factory=dict)
    session_data: Dict[date, SessionRecord] = field(default_factory=dict)
    related_products: Dict[str, int] = field(default_factory=dict)
    category_performance: Dict[str, float] = field(default_factory=dict)

    def to_wire(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "id": self.id,
            "code": self.handle,
            "title": self.title,
            "isActive": self.is_active,
            "price": _money(self.price),
            "stockQty": self.stock_qty,
            "productURL_Relative": self.url_relative,
            "productURL_Full": self.url_full,
            "imageURL_Small_Full": self.image_url,
        }
        for period in PERIODS:
            rollup = self.rollups.get(period, PeriodRollup())
            suffix = period.value
            data[f"totalRevenue_{suffix}"] = _money(rollup.revenue)
            data[f"totalViews_{suffix}"] = rollup.views
            data[f"orderQty_{suffix}"] = rollup.order_count
            data[f"qtySold_{suffix}"] = rollup.units_sold
            data[f"numberAddedToBasket_{suffix}"] = rollup.added_to_basket
            # Dashboard shows these two as percentages
            data[f"percentAddToBasket_{suffix}"] = round(rollup.add_to_basket_rate * 100, 2)
            data[f"percentCompleteOrderAfterAddToBasket_{suffix}"] = round(rollup.basket_to_order_rate * 100, 2)
        data.update({
            "categories": list(self.categories),
            "primaryCategory": self.primary_category.to_wire() if self.primary_category else None,
            "secondaryCategory": self.secondary_category.to_wire() if self.secondary_category else None,
            "brandCategory": self.brand_category.to_wire() if self.brand_category else None,
            "productSessionData": {
                day.isoformat(): record.to_wire() for day, record in sorted(self.session_data.items())
            },
            "relatedProducts": dict(self.related_products),
            "categoryPerformance": {k: _money(v) for k, v in self.category_performance.items()},
        })
        return data


@dataclass
class CategoryRecord:
    id: str
    title: str
    handle: str
    product_count: int = 0
    product_ids: List[str] = field(default_factory=list)
    analytics: Dict[Period, CategoryAnalytics] = field(default_factory=dict)

    def to_wire(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "handle": self.handle,
            "productCount": self.product_count,
            "analytics": {period.value: a.to_wire() for period, a in self.analytics.items()},
        }


@dataclass(frozen=True)
class CustomerSegment:
    name: str
    customer_count: int = 0
    total_revenue: float = 0.0
    average_order_value: float = 0.0
    repeat_purchase_rate: float = 0.0  # percent of the segment's own members
    top_products: List[str] = field(default_factory=list)

    def to_wire(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "customerCount": self.customer_count,
            "totalRevenue": _money(self.total_revenue),
            "averageOrderValue": _money(self.average_order_value),
            "repeatPurchaseRate": round(self.repeat_purchase_rate, 2),
            "topProducts": list(self.top_products),
        }


@dataclass
class ShopRecord:
    title: str
    website_url: str
    rollups: Dict[Period, PeriodRollup] = field(default_factory=dict)

    def metrics_to_wire(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"title": self.title, "websiteURL": self.website_url}
        for period in PERIODS:
            rollup = self.rollups.get(period, PeriodRollup())
            suffix = period.value
            data[f"totalRevenue_{suffix}"] = _money(rollup.revenue)
            data[f"totalSessions_{suffix}"] = rollup.sessions
            data[f"orderQty_{suffix}"] = rollup.order_count
            data[f"qtySold_{suffix}"] = rollup.units_sold
            data[f"conversionRate_{suffix}"] = _ratio(rollup.conversion_rate)
            data[f"averageOrderValue_{suffix}"] = _money(rollup.average_order_value)
        return data


@dataclass(frozen=True)
class AnalyticsSnapshot:
    """Complete analytics document for one store at one point in time"""
    store_domain: str
    generated_at: datetime
    shop: ShopRecord
    products: Dict[str, ProductRecord]
    categories: Dict[str, CategoryRecord]
    session_data: Dict[date, SessionRecord]
    customer_segments: List[CustomerSegment]
    session_source: str = "synthetic"

    @property
    def sessions_synthetic(self) -> bool:
        return any(r.sessions_synthetic for r in self.shop.rollups.values())

    def to_wire(self) -> Dict[str, Any]:
        categories = {handle: c.to_wire() for handle, c in self.categories.items()}
        sessions = {day.isoformat(): s.to_wire() for day, s in sorted(self.session_data.items())}
        segments = [s.to_wire() for s in self.customer_segments]

        shop_data = self.shop.metrics_to_wire()
        shop_data.update({
            "categories": categories,
            "dailySessionData": sessions,
            "customerSegments": segments,
        })

        return {
            "storeDomain": self.store_domain,
            "generatedAt": self.generated_at.isoformat(),
            "sessionSource": self.session_source,
            "sessionsSynthetic": self.sessions_synthetic,
            "shopData": shop_data,
            "productsData": {handle: p.to_wire() for handle, p in self.products.items()},
            "categories": categories,
            "sessionData": sessions,
            "customerSegments": segments,
        }
