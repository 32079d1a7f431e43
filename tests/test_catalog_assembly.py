"""
Product catalog and category directory tests.
"""
import asyncio

import httpx
import pytest

from app.connectors.errors import ParseError
from app.connectors.shopify import ShopifyClient
from app.models.analytics import Period, PeriodRollup
from app.models.shopify import Collection
from app.services.catalog_service import CatalogAssembler, classify_categories
from tests.fakes import STORE, TOKEN, FakeShopify, next_link


def _run(coro):
    """Run an async coroutine in a sync test."""
    return asyncio.run(coro)


def _with_catalog(fake: FakeShopify, work):
    async def go():
        async with ShopifyClient(STORE, TOKEN, transport=fake.transport) as client:
            return await work(CatalogAssembler(client, STORE))
    return _run(go())


def _product(pid, handle, **extra):
    return {"id": pid, "handle": handle, "title": handle.title(), **extra}


# ────────────────────────────────────────────
# PRODUCTS
# ────────────────────────────────────────────


class TestAssembleProducts:

    def test_every_page_collected(self):
        pages = {
            None: ([_product(1, "a"), _product(2, "b")], next_link("products.json", "p2")),
            "p2": ([_product(3, "c")], next_link("products.json", "p3")),
            "p3": ([_product(4, "d")], {}),
        }

        def handler(request):
            records, headers = pages[request.url.params.get("page_info")]
            return httpx.Response(200, json={"products": records}, headers=headers)

        fake = FakeShopify().add_handler("products.json", handler)
        products = _with_catalog(fake, lambda c: c.assemble_products())

        assert list(products) == ["a", "b", "c", "d"]
        assert fake.count("products.json") == 3

    def test_duplicate_handle_last_write_wins(self):
        fake = FakeShopify().add("products.json", {"products": [
            _product(1, "same", title="First"),
            _product(2, "same", title="Second"),
        ]})
        products = _with_catalog(fake, lambda c: c.assemble_products())

        assert len(products) == 1
        assert products["same"].id == "2"
        assert products["same"].title == "Second"

    def test_record_fields(self, fake_store):
        products = _with_catalog(fake_store, lambda c: c.assemble_products())
        kettle = products["blue-kettle"]

        assert kettle.id == "1"
        assert kettle.is_active is True
        assert kettle.price == 50.0
        assert kettle.stock_qty == 7
        assert kettle.url_relative == "/products/blue-kettle"
        assert kettle.url_full == f"https://{STORE}/products/blue-kettle"
        assert kettle.image_url == "https://cdn.example.com/kettle.jpg"

        mug = products["red-mug"]
        assert mug.is_active is False
        assert mug.image_url == ""

    def test_product_without_variants_or_images(self):
        fake = FakeShopify().add("products.json", {"products": [_product(9, "bare")]})
        bare = _with_catalog(fake, lambda c: c.assemble_products())["bare"]
        assert bare.price == 0
        assert bare.stock_qty == 0
        assert bare.image_url == ""

    @pytest.mark.parametrize("handle", [None, ""])
    def test_missing_handle_is_parse_error(self, handle):
        fake = FakeShopify().add("products.json", {"products": [{"id": 1, "handle": handle}]})
        with pytest.raises(ParseError):
            _with_catalog(fake, lambda c: c.assemble_products())

    def test_categories_attached(self, fake_store):
        products = _with_catalog(fake_store, lambda c: c.build_products())
        kettle = products["blue-kettle"]

        assert kettle.categories == ["kitchen", "gifts"]
        assert kettle.primary_category.handle == "kitchen"
        assert kettle.secondary_category.handle == "gifts"
        assert kettle.brand_category.id == "brand_Acme Co"
        assert kettle.brand_category.handle == "acme-co"

        mug = products["red-mug"]
        assert mug.categories == ["gifts"]
        assert mug.secondary_category is None
        assert mug.brand_category is None

        membership_queries = [r.url.params.get("product_id") for r in fake_store.requests
                              if r.url.path.endswith("custom_collections.json")]
        assert sorted(membership_queries) == ["1", "2"]


class TestClassifyCategories:

    def test_no_collections(self):
        handles, primary, secondary, brand = classify_categories([], "  ")
        assert handles == []
        assert primary is None and secondary is None and brand is None

    def test_third_collection_only_in_handles(self):
        collections = [Collection(id=str(i), handle=f"c{i}", title=f"C{i}") for i in range(3)]
        handles, primary, secondary, _ = classify_categories(collections, None)
        assert handles == ["c0", "c1", "c2"]
        assert (primary.handle, secondary.handle) == ("c0", "c1")


# ────────────────────────────────────────────
# CATEGORIES
# ────────────────────────────────────────────


class TestCategories:

    def test_directory_with_counts(self, fake_store):
        categories = _with_catalog(fake_store, lambda c: c.list_categories())

        assert list(categories) == ["kitchen", "gifts"]
        assert categories["kitchen"].product_count == 1
        assert categories["gifts"].product_count == 2
        assert categories["gifts"].product_ids == ["1", "2"]
        assert categories["gifts"].to_wire()["productCount"] == 2

    def test_empty_store(self):
        fake = FakeShopify().add("custom_collections.json", {"custom_collections": []})
        assert _with_catalog(fake, lambda c: c.list_categories()) == {}

    def test_category_performance_uses_last_90_days(self, fake_store):
        products = _with_catalog(fake_store, lambda c: c.build_products())
        kettle = products["blue-kettle"]
        kettle.rollups = {Period.LAST_90_DAYS: PeriodRollup(revenue=140.0), Period.LAST_7_DAYS: PeriodRollup(revenue=100.0)}

        CatalogAssembler.attach_category_performance(products)

        assert kettle.category_performance == {"kitchen": 140.0, "gifts": 140.0}
        assert products["red-mug"].category_performance == {"gifts": 0.0}


# ────────────────────────────────────────────
# RELATED PRODUCTS
# ────────────────────────────────────────────


class TestRelatedProducts:

    def test_scores_when_available(self, fake_store):
        fake_store.add("products/1/recommendations.json", {"recommendations": [
            {"product_id": 2, "score": 7},
        ]})

        async def work(catalog):
            products = await catalog.assemble_products()
            return await catalog.fetch_related_products(products)

        related = _with_catalog(fake_store, work)
        assert related == {"blue-kettle": {"2": 7}, "red-mug": {}}
