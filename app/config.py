"""
Configuration management for the shop analytics service
"""
from pydantic_settings import BaseSettings
from functools import lru_cache
from typing import Literal, Optional


class Settings(BaseSettings):
    """Application settings"""

    # Application
    app_name: str = "Shop Analytics Snapshot Service"
    environment: str = "development"
    debug: bool = True
    log_level: str = "INFO"
    log_to_file: bool = False

    # API
    api_host: str = "0.0.0.0"
    api_port: int = 8000

    # Shopify (fallback credentials when the host app doesn't pass any)
    shopify_shop_url: Optional[str] = None
    shopify_access_token: Optional[str] = None
    shopify_api_version: str = "2024-01"
    shopify_request_timeout: float = 30.0
    shopify_page_limit: int = 250  # Max allowed by Shopify
    # Upper bound on in-flight requests per store (Shopify REST allows ~2 req/sec sustained)
    max_concurrent_requests: int = 4

    # Snapshot
    snapshot_cache_ttl_seconds: int = 900  # 15 minutes
    failure_policy: Literal["fail_fast", "best_effort"] = "fail_fast"
    session_source: Literal["synthetic", "reports"] = "synthetic"
    include_category_analytics: bool = True
    fetch_related_products: bool = False
    # Customers per segment whose order history is pulled for top products
    segment_order_customer_cap: int = 50

    class Config:
        env_file = ".env"
        case_sensitive = False


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance"""
    return Settings()
