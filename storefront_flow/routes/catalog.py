"""
Catalog Cache Routes for the Storefront Flow Engine
===================================================

Operator endpoints for the in-memory catalog cache that backs the flow.

Endpoints:
----------
- GET  /catalog/cache: Cache status (entries, TTL, last prefetch)
- POST /catalog/refresh: Drop every cached entry so the next read hits the database

Cached entries expire on their own after CATALOG_CACHE_TTL_SECONDS. The
refresh endpoint is for menu edits that must show up immediately.
Sessions already in progress keep the steps and prices they loaded.
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, Request

from ..catalog_cache import CatalogCache
from ..config import get_rate_limit_flow
from ..flow.interfaces import CatalogGateway
from .flow import get_gateway, limiter


logger = logging.getLogger(__name__)

catalog_router = APIRouter(prefix="/catalog", tags=["Catalog"])


def _require_cache(gateway: CatalogGateway) -> CatalogCache:
    if not isinstance(gateway, CatalogCache):
        raise HTTPException(status_code=409, detail="Catalog caching is not enabled")
    return gateway


@catalog_router.get("/cache")
def catalog_cache_status(gateway: CatalogGateway = Depends(get_gateway)):
    return _require_cache(gateway).get_status()


@catalog_router.post("/refresh")
@limiter.limit(get_rate_limit_flow)
def catalog_refresh(request: Request, gateway: CatalogGateway = Depends(get_gateway)):
    """
    Drop the cached catalog.

    Useful after menu changes that should take effect immediately without
    waiting for cached entries to expire.

    Returns:
        Number of entries dropped and the cache status after the refresh
    """
    cache = _require_cache(gateway)

    logger.info("Manual catalog cache refresh triggered")
    dropped = cache.invalidate()

    return {
        "message": "Cache refreshed successfully",
        "invalidated": dropped,
        "status": cache.get_status(),
    }
