"""
Shop Analytics Snapshot Service
Main FastAPI application
"""
from contextlib import asynccontextmanager

from fastapi import FastAPI
from starlette.middleware.gzip import GZipMiddleware

from app import __version__
from app.api import analytics, health
from app.config import get_settings
from app.utils.logger import log

settings = get_settings()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown events"""
    log.info(f"Starting {settings.app_name} v{__version__}")
    log.info(f"Environment: {settings.environment}")
    if settings.session_source == "synthetic":
        log.warning("Session metrics are synthetic placeholders (sessions = max(orders x 20, 1))")

    yield

    log.info("Shutting down application")


app = FastAPI(
    title=settings.app_name,
    version=__version__,
    description="""
    Analytics backend for the embedded store dashboard.

    Pulls orders, products, collections and customers from the Shopify Admin
    API and serves one snapshot per store with:
    - Revenue, orders, units, sessions and conversion for Last90Days / Last7Days / Yesterday
    - Per-product and per-category rollups
    - Daily session records
    - Customer segments (VIP, new, repeat, at-risk)
    """,
    lifespan=lifespan
)

# Snapshots are large JSON documents
app.add_middleware(GZipMiddleware, minimum_size=500)

app.include_router(health.router)
app.include_router(analytics.router)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "app.main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.debug
    )
