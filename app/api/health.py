"""
Health check and status endpoints
"""
from fastapi import APIRouter
from datetime import datetime, timezone
from app.config import get_settings
from app import __version__

router = APIRouter()


@router.get("/health")
async def health_check():
    """Health check endpoint"""
    return {
        "status": "healthy",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "version": __version__
    }


@router.get("/status")
async def get_status():
    """Get system status"""
    settings = get_settings()
    return {
        "app_name": settings.app_name,
        "version": __version__,
        "environment": settings.environment,
        "snapshot": {
            "session_source": settings.session_source,
            "failure_policy": settings.failure_policy,
            "cache_ttl_seconds": settings.snapshot_cache_ttl_seconds,
            "category_analytics": settings.include_category_analytics,
            "related_products": settings.fetch_related_products,
        },
        "shop_configured": bool(settings.shopify_shop_url and settings.shopify_access_token),
        "timestamp": datetime.now(timezone.utc).isoformat()
    }
