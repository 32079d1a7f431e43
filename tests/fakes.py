"""
Fake Shopify Admin API on top of httpx.MockTransport, plus a small canned store.
"""
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Union

import httpx


API_PREFIX = "/admin/api/2024-01/"
STORE = "test-store.myshopify.com"
TOKEN = "shpat_test_token"

# Fixed processing instant for every window computation
NOW = datetime(2024, 6, 15, 12, 0, tzinfo=timezone.utc)

Route = Union[Callable[[httpx.Request], httpx.Response], tuple]


class FakeShopify:
    """Routes requests by API path to canned responses and records every call"""

    def __init__(self):
        self.routes: Dict[str, Route] = {}
        self.requests: List[httpx.Request] = []

    def add(self, path: str, body: Any = None, status: int = 200, headers: Optional[Dict[str, str]] = None):
        self.routes[path] = (status, body, headers or {})
        return self

    def add_handler(self, path: str, handler: Callable[[httpx.Request], httpx.Response]):
        self.routes[path] = handler
        return self

    def _handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path.split(API_PREFIX, 1)[-1]
        route = self.routes.get(path)
        if route is None:
            return httpx.Response(404, json={"errors": "Not Found"})
        if callable(route):
            return route(request)
        status, body, headers = route
        return httpx.Response(status, json=body, headers=headers)

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self._handle)

    def paths(self) -> List[str]:
        return [r.url.path.split(API_PREFIX, 1)[-1] for r in self.requests]

    def count(self, path: str) -> int:
        return self.paths().count(path)


def next_link(path: str, page_info: str) -> Dict[str, str]:
    url = f"https://{STORE}{API_PREFIX}{path}?limit=250&page_info={page_info}"
    return {"Link": f'<{url}>; rel="next"'}


def order(order_id, created_at: str, total: float, items: List[tuple]) -> Dict[str, Any]:
    """items: (product_id, price, quantity)"""
    return {
        "id": order_id,
        "created_at": created_at,
        "total_price": f"{total:.2f}",
        "line_items": [
            {"product_id": pid, "price": f"{price:.2f}", "quantity": qty}
            for pid, price, qty in items
        ],
    }


def orders_in_window(all_orders: List[Dict[str, Any]]) -> Callable[[httpx.Request], httpx.Response]:
    """orders.json handler honouring created_at_min / created_at_max"""
    def handler(request: httpx.Request) -> httpx.Response:
        start = datetime.fromisoformat(request.url.params["created_at_min"])
        end = datetime.fromisoformat(request.url.params["created_at_max"])
        matching = [
            o for o in all_orders
            if start <= datetime.fromisoformat(o["created_at"]) <= end
        ]
        return httpx.Response(200, json={"orders": matching})
    return handler


# Orders: 2024-06-15 12:00 UTC is "now"
STORE_ORDERS = [
    order(1001, "2024-06-15T08:00:00+00:00", 100.0, [(1, 50.0, 2)]),     # yesterday window, last 7, last 90
    order(1002, "2024-06-12T10:00:00+00:00", 50.0, [(2, 45.0, 1)]),      # last 7, last 90
    order(1003, "2024-05-01T10:00:00+00:00", 80.0, [(1, 40.0, 1), (2, 35.0, 1)]),  # last 90 only
]

STORE_PRODUCTS = [
    {
        "id": 1, "handle": "blue-kettle", "title": "Blue Kettle", "status": "active", "vendor": "Acme Co",
        "variants": [{"price": "50.00", "inventory_quantity": 7}],
        "images": [{"src": "https://cdn.example.com/kettle.jpg"}],
    },
    {
        "id": 2, "handle": "red-mug", "title": "Red Mug", "status": "draft", "vendor": None,
        "variants": [{"price": "45.00", "inventory_quantity": 0}],
        "images": [],
    },
]

STORE_COLLECTIONS = [
    {"id": 10, "handle": "kitchen", "title": "Kitchen"},
    {"id": 11, "handle": "gifts", "title": "Gifts"},
]

STORE_CUSTOMERS = [
    {"id": 501, "total_spent": "300.00", "orders_count": 3, "created_at": "2023-01-10T00:00:00+00:00",
     "last_order_date": "2024-06-15T08:00:00+00:00"},
    {"id": 502, "total_spent": "50.00", "orders_count": 1, "created_at": "2024-06-01T00:00:00+00:00",
     "last_order_date": "2024-06-12T10:00:00+00:00"},
    {"id": 503, "total_spent": "80.00", "orders_count": 2, "created_at": "2022-03-01T00:00:00+00:00",
     "last_order_date": "2024-01-01T00:00:00+00:00"},
]


def collections_for_product(request: httpx.Request) -> httpx.Response:
    product_id = request.url.params.get("product_id")
    if product_id == "1":
        return httpx.Response(200, json={"custom_collections": STORE_COLLECTIONS})
    if product_id == "2":
        return httpx.Response(200, json={"custom_collections": [STORE_COLLECTIONS[1]]})
    return httpx.Response(200, json={"custom_collections": STORE_COLLECTIONS})


def build_store() -> FakeShopify:
    """A small but complete store"""
    fake = FakeShopify()
    fake.add("shop.json", {"shop": {"name": "Test Store", "domain": "shop.example.com"}})
    fake.add_handler("orders.json", orders_in_window(STORE_ORDERS))
    fake.add("products.json", {"products": STORE_PRODUCTS})
    fake.add_handler("custom_collections.json", collections_for_product)
    fake.add("collections/10/products.json", {"products": [{"id": 1}]})
    fake.add("collections/11/products.json", {"products": [{"id": 1}, {"id": 2}]})
    fake.add("customers.json", {"customers": STORE_CUSTOMERS})
    fake.add("customers/501/orders.json", {"orders": [STORE_ORDERS[0], STORE_ORDERS[2]]})
    fake.add("customers/502/orders.json", {"orders": [STORE_ORDERS[1]]})
    fake.add("customers/503/orders.json", {"orders": [STORE_ORDERS[2]]})
    return fake
