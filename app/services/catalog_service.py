"""
Product & Category assembly

Builds the product catalog (product + first variant + first image + collection
memberships) keyed by handle, and the category (collection) directory.

Products are keyed by handle, so a duplicate handle across pages replaces
the earlier product (last write wins, logged as a warning).
"""
from typing import Dict, List, Optional, Tuple

from app.connectors.errors import UpstreamError
from app.connectors.shopify import ShopifyClient
from app.models.analytics import PERIODS, CategoryRecord, CategoryRef, Period, ProductRecord
from app.models.shopify import Collection, CollectionMember, Product, Recommendation, parse_record, parse_records
from app.services.period_service import OrdersByPeriod
from app.services.rollup_service import compute_category_analytics
from app.utils.helpers import gather_or_cancel, slugify
from app.utils.logger import log

PRODUCTS_ENDPOINT = "products.json"
COLLECTIONS_ENDPOINT = "custom_collections.json"


def classify_categories(collections: List[Collection], vendor: Optional[str]) -> Tuple[List[str], Optional[CategoryRef], Optional[CategoryRef], Optional[CategoryRef]]:
    """
    Fallback classification, not authoritative:
    first collection -> primary, second -> secondary, vendor -> synthetic brand category

    Returns:
        (category handles, primary, secondary, brand)
    """
    refs = [CategoryRef(id=c.id, title=c.title, handle=c.handle) for c in collections]
    primary = refs[0] if refs else None
    secondary = refs[1] if len(refs) > 1 else None

    brand = None
    if vendor and vendor.strip():
        brand = CategoryRef(id=f"brand_{vendor}", title=vendor, handle=slugify(vendor))

    return [c.handle for c in collections], primary, secondary, brand


class CatalogAssembler:
    """Product catalog and category directory for one store"""

    def __init__(self, client: ShopifyClient, store_domain: str):
        self.client = client
        self.store_domain = store_domain

    def _to_record(self, product: Product) -> ProductRecord:
        variant = product.primary_variant
        return ProductRecord(
            id=product.id,
            handle=product.handle,
            title=product.title,
            is_active=product.status == "active",
            price=variant.price,
            stock_qty=variant.inventory_quantity,
            url_relative=f"/products/{product.handle}",
            url_full=f"https://{self.store_domain}/products/{product.handle}",
            image_url=product.primary_image_url,
            vendor=product.vendor,
        )

    async def assemble_products(self) -> Dict[str, ProductRecord]:
        """All products across every page, keyed by handle"""
        records = await self.client.fetch_all(PRODUCTS_ENDPOINT)

        products: Dict[str, ProductRecord] = {}
        for raw in records:
            product = parse_record(Product, raw, PRODUCTS_ENDPOINT)
            if product.handle in products:
                log.warning(
                    f"Duplicate product handle '{product.handle}' "
                    f"(ids {products[product.handle].id} and {product.id}), keeping the later one"
                )
            products[product.handle] = self._to_record(product)

        log.info(f"Assembled {len(products)} products from {len(records)} records")
        return products

    async def fetch_memberships(self, product_id: str) -> List[Collection]:
        records = await self.client.fetch_all(COLLECTIONS_ENDPOINT, {"product_id": product_id})
        return parse_records(Collection, records, COLLECTIONS_ENDPOINT)

    async def attach_categories(self, products: Dict[str, ProductRecord]) -> None:
        """Collection handles plus primary/secondary/brand classification for each product"""
        memberships = await gather_or_cancel(*(self.fetch_memberships(p.id) for p in products.values()))

        for product, collections in zip(list(products.values()), memberships):
            handles, primary, secondary, brand = classify_categories(collections, product.vendor)
            product.categories = handles
            product.primary_category = primary
            product.secondary_category = secondary
            product.brand_category = brand

    async def build_products(self) -> Dict[str, ProductRecord]:
        products = await self.assemble_products()
        await self.attach_categories(products)
        return products

    async def _collection_members(self, collection: Collection) -> List[str]:
        endpoint = f"collections/{collection.id}/products.json"
        records = await self.client.fetch_all(endpoint, resource_key="products")
        return [m.id for m in parse_records(CollectionMember, records, endpoint)]

    async def list_categories(self) -> Dict[str, CategoryRecord]:
        """
        Category directory without per-period analytics (fast path)

        Product counts come from each collection's product listing.
        """
        records = await self.client.fetch_all(COLLECTIONS_ENDPOINT)
        collections = parse_records(Collection, records, COLLECTIONS_ENDPOINT)
        members = await gather_or_cancel(*(self._collection_members(c) for c in collections))

        categories: Dict[str, CategoryRecord] = {}
        for collection, product_ids in zip(collections, members):
            categories[collection.handle] = CategoryRecord(
                id=collection.id,
                title=collection.title,
                handle=collection.handle,
                product_count=len(product_ids),
                product_ids=product_ids,
            )

        log.info(f"Listed {len(categories)} categories")
        return categories

    def attach_category_analytics(
        self,
        categories: Dict[str, CategoryRecord],
        products: Dict[str, ProductRecord],
        orders_by_period: OrdersByPeriod,
    ) -> None:
        """Per-period category rollups, restricted to each collection's products"""
        views_by_product: Dict[Period, Dict[str, int]] = {
            period: {
                p.id: p.rollups[period].views for p in products.values() if period in p.rollups
            }
            for period in PERIODS
        }

        for category in categories.values():
            category.analytics = {
                period: compute_category_analytics(
                    orders_by_period.get(period, []),
                    category.product_ids,
                    views=sum(views_by_product[period].get(pid, 0) for pid in category.product_ids),
                )
                for period in PERIODS
            }

    @staticmethod
    def attach_category_performance(products: Dict[str, ProductRecord]) -> None:
        """Last90Days product revenue credited to each of its categories"""
        for product in products.values():
            rollup = product.rollups.get(Period.LAST_90_DAYS)
            revenue = rollup.revenue if rollup else 0.0
            product.category_performance = {handle: revenue for handle in product.categories}

    async def related_products(self, product: ProductRecord) -> Dict[str, int]:
        """Recommendation scores; stores without the endpoint just get none"""
        endpoint = f"products/{product.id}/recommendations.json"
        try:
            records = await self.client.fetch_all(endpoint, resource_key="recommendations")
        except UpstreamError as e:
            log.debug(f"No recommendations for {product.handle}: {e.status_code}")
            return {}
        return {r.product_id: r.score for r in parse_records(Recommendation, records, endpoint)}

    async def fetch_related_products(self, products: Dict[str, ProductRecord]) -> Dict[str, Dict[str, int]]:
        results = await gather_or_cancel(*(self.related_products(p) for p in products.values()))
        return {handle: related for handle, related in zip(list(products.keys()), results)}
