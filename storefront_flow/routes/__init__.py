"""
Routes Package for the Storefront Flow Engine
=============================================

- flow.py: customization session, upsell prompts and session cart
- catalog.py: catalog cache status and manual refresh

Routers are registered by app_factory.create_app() under /api/v1 and at the
root path.

Error Handling:
---------------
- 404: Not found (unknown session, category or size)
- 409: Conflict (operation not accepted in the current state or catalog
  caching disabled)
- 429: Too many requests (rate limited)
"""

from .catalog import catalog_router
from .flow import flow_router, limiter

__all__ = ["catalog_router", "flow_router", "limiter"]
