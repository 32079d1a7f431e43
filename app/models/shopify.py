"""
Shopify Admin API records

Typed views of the JSON payloads we read. Validation happens once, at the
boundary, so the services below never poke at raw dicts.
"""
from datetime import date as date_type, datetime, timezone
from typing import Annotated, Any, Dict, Iterable, List, Optional, Type, TypeVar

from pydantic import BaseModel, BeforeValidator, Field, ValidationError, field_validator

from app.connectors.errors import ParseError


def _to_id(value: Any) -> Any:
    # Shopify ids are numbers in JSON; handles and report keys treat them as strings
    if value is None or isinstance(value, str):
        return value
    return str(value)


def _none_to_zero(value: Any) -> Any:
    return 0 if value is None else value


ExternalId = Annotated[str, BeforeValidator(_to_id)]
OptionalId = Annotated[Optional[str], BeforeValidator(_to_id)]
Amount = Annotated[float, BeforeValidator(_none_to_zero)]
Count = Annotated[int, BeforeValidator(_none_to_zero)]


class ShopifyRecord(BaseModel):
    """Base for upstream records: unknown fields are ignored, timestamps are UTC-aware"""

    @field_validator("*", mode="after")
    @classmethod
    def _assume_utc(cls, value):
        if isinstance(value, datetime) and value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value


class Shop(ShopifyRecord):
    name: str = "Unknown Shop"
    domain: Optional[str] = None
    currency: Optional[str] = None


class LineItem(ShopifyRecord):
    product_id: OptionalId = None
    title: Optional[str] = None
    price: Amount = 0.0
    quantity: Count = 0


class Order(ShopifyRecord):
    id: ExternalId
    created_at: datetime
    total_price: Amount = 0.0
    line_items: List[LineItem] = []


class Variant(ShopifyRecord):
    price: Amount = 0.0
    inventory_quantity: Count = 0


class Image(ShopifyRecord):
    src: str = ""


class Product(ShopifyRecord):
    id: ExternalId
    handle: str = Field(min_length=1)
    title: str = ""
    status: str = "active"
    vendor: Optional[str] = None
    variants: List[Variant] = []
    images: List[Image] = []
    image: Optional[Image] = None

    @property
    def primary_variant(self) -> Variant:
        return self.variants[0] if self.variants else Variant()

    @property
    def primary_image_url(self) -> str:
        if self.images:
            return self.images[0].src
        return self.image.src if self.image else ""


class Collection(ShopifyRecord):
    id: ExternalId
    handle: str = Field(min_length=1)
    title: str = ""


class CollectionMember(ShopifyRecord):
    id: ExternalId


class Customer(ShopifyRecord):
    id: ExternalId
    total_spent: Amount = 0.0
    orders_count: Count = 0
    created_at: Optional[datetime] = None
    last_order_date: Optional[datetime] = None


class PathViews(ShopifyRecord):
    path: str
    views: Count = 0


class VisitorReport(ShopifyRecord):
    """Row of reports/visitors.json"""

    date: date_type
    total_sessions: Count = 0
    unique_visitors: Count = 0
    bounce_rate: Amount = 0.0
    average_session_duration: Amount = 0.0
    page_views: List[PathViews] = []
    product_views: List[PathViews] = []
    add_to_cart: List[PathViews] = []


class ProductViewReport(ShopifyRecord):
    """Row of reports/product_views.json"""

    date: date_type
    views: Count = 0
    added_to_cart: Count = 0
    sessions: Count = 0
    unique_visitors: Count = 0
    bounce_rate: Amount = 0.0
    average_time_on_page: Amount = 0.0


class Recommendation(ShopifyRecord):
    product_id: ExternalId
    score: Count = 0


RecordT = TypeVar("RecordT", bound=ShopifyRecord)


def parse_record(model: Type[RecordT], payload: Any, endpoint: str = "") -> RecordT:
    """Validate one payload, turning pydantic's error into a ParseError"""
    try:
        return model.model_validate(payload)
    except ValidationError as e:
        first = e.errors()[0]
        location = ".".join(str(part) for part in first.get("loc", ()))
        raise ParseError(
            f"invalid {model.__name__} ({location or 'record'}: {first.get('msg')})",
            endpoint=endpoint,
        ) from e


def parse_records(model: Type[RecordT], payloads: Iterable[Dict[str, Any]], endpoint: str = "") -> List[RecordT]:
    return [parse_record(model, payload, endpoint) for payload in payloads]
