"""
Application factory for the storefront flow API.

Builds a FastAPI application with CORS, rate limiting and the flow
and catalog routers mounted both under /api/v1 and at the root path.
"""

import logging

from fastapi import APIRouter, FastAPI
from fastapi.middleware.cors import CORSMiddleware
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from .config import CORS_ORIGINS
from .routes import catalog_router, flow_router, limiter

logger = logging.getLogger(__name__)


def create_app() -> FastAPI:
    """
    Create a FastAPI application.

    Returns:
        Configured FastAPI application
    """
    app = FastAPI(
        title="Storefront Flow API",
        description="Product customization and upsell flow for storefronts",
        version="1.0.0",
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=CORS_ORIGINS,
        allow_credentials=CORS_ORIGINS != ["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Configure rate limiting
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

    api_v1 = APIRouter(prefix="/api/v1")
    api_v1.include_router(flow_router)
    api_v1.include_router(catalog_router)
    app.include_router(api_v1)

    # Also mount at root for backward compatibility
    app.include_router(flow_router)
    app.include_router(catalog_router)

    @app.get("/health")
    def health_check():
        return {"status": "healthy"}

    logger.info("Application created with %d CORS origins", len(CORS_ORIGINS))
    return app


def run(host: str = "0.0.0.0", port: int = 8000, reload: bool = False) -> None:
    """Run the application with uvicorn."""
    import uvicorn

    logger.info("Starting server on %s:%d", host, port)
    uvicorn.run("storefront_flow.main:app", host=host, port=port, reload=reload)
