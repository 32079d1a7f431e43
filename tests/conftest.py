"""
Shared fixtures.

Tests drive coroutines with asyncio.run so no async test plugin is needed.
"""
import pytest

from app.config import Settings
from tests.fakes import STORE, TOKEN, FakeShopify, build_store


@pytest.fixture
def fake_store() -> FakeShopify:
    return build_store()


@pytest.fixture
def settings() -> Settings:
    return Settings(
        shopify_shop_url=STORE,
        shopify_access_token=TOKEN,
        session_source="synthetic",
        failure_policy="fail_fast",
        include_category_analytics=True,
        fetch_related_products=False,
    )
