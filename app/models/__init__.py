"""Upstream records and analytics snapshot models"""

from app.models.shopify import (
    Shop,
    Order,
    LineItem,
    Product,
    Collection,
    Customer,
    VisitorReport,
    ProductViewReport,
    Recommendation
)

from app.models.analytics import (
    Period,
    PERIODS,
    Traffic,
    PeriodRollup,
    SessionRecord,
    ProductRecord,
    CategoryRecord,
    CategoryAnalytics,
    CustomerSegment,
    ShopRecord,
    AnalyticsSnapshot
)

__all__ = [
    "Shop",
    "Order",
    "LineItem",
    "Product",
    "Collection",
    "Customer",
    "VisitorReport",
    "ProductViewReport",
    "Recommendation",
    "Period",
    "PERIODS",
    "Traffic",
    "PeriodRollup",
    "SessionRecord",
    "ProductRecord",
    "CategoryRecord",
    "CategoryAnalytics",
    "CustomerSegment",
    "ShopRecord",
    "AnalyticsSnapshot"
]
