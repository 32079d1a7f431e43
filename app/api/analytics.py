"""
Analytics API

Serves the dashboard's analytics document. The host app owns sessions and
passes the store credentials along in headers; configured credentials are
used when it doesn't.
"""
from typing import Optional

from fastapi import APIRouter, Header, Query
from fastapi.responses import JSONResponse

from app.connectors.errors import AuthError, ShopifyError
from app.services.analytics_service import AnalyticsService
from app.utils.logger import log

router = APIRouter(prefix="/analytics", tags=["analytics"])

_service: Optional[AnalyticsService] = None


def get_service() -> AnalyticsService:
    global _service
    if _service is None:
        _service = AnalyticsService()
    return _service


def _error_response(error: ShopifyError) -> JSONResponse:
    status_code = 401 if isinstance(error, AuthError) else 502
    return JSONResponse(status_code=status_code, content={"success": False, "error": error.to_dict()})


@router.get("")
async def get_analytics(
    refresh: bool = Query(False, description="Bypass the 15 minute snapshot cache"),
    x_shopify_shop_domain: Optional[str] = Header(None),
    x_shopify_access_token: Optional[str] = Header(None),
):
    """Full analytics snapshot for the dashboard."""
    try:
        snapshot = await get_service().get_snapshot(
            store_url=x_shopify_shop_domain,
            access_token=x_shopify_access_token,
            force_refresh=refresh,
        )
        return {"success": True, "data": snapshot.to_wire()}
    except ShopifyError as e:
        log.error(f"Analytics request failed ({e.kind}): {e.message}")
        return _error_response(e)


@router.get("/validate")
async def validate_credentials(
    x_shopify_shop_domain: Optional[str] = Header(None),
    x_shopify_access_token: Optional[str] = Header(None),
):
    """Check that the store's token is accepted by Shopify."""
    try:
        valid = await get_service().validate_credentials(x_shopify_shop_domain, x_shopify_access_token)
        return {"success": True, "valid": valid}
    except ShopifyError as e:
        return _error_response(e)


@router.delete("/cache")
async def clear_snapshot_cache(
    x_shopify_shop_domain: Optional[str] = Header(None),
):
    """Drop cached snapshots (one store when the shop header is present)."""
    removed = get_service().invalidate(x_shopify_shop_domain)
    return {"success": True, "removed": removed}
