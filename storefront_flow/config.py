"""
Configuration Module for the Storefront Flow Engine
===================================================

This module centralizes the configuration settings, environment variables and
constants used by the customization flow, the upsell sequencer and the HTTP
layer on top of them.

Configuration Categories:
-------------------------
- **Database**: Connection URL for the catalog read models.

- **Selection Limits**: Per-item quantity cap for add-ons and the product
  limits used by drink suggestions and quick-add prompts.

- **Prefetch**: Worker count for the parallel catalog warm-up and how long
  warmed-up catalog entries are served before they are read again.

- **Session Management**: TTL and cache size settings for the in-memory
  registry of customization sessions.

- **Rate Limiting / CORS**: HTTP surface settings.

Environment Variables:
----------------------
- DATABASE_URL: SQLAlchemy URL (default: "sqlite:///./storefront.db")
- ADDITIONAL_MAX_QUANTITY: Max quantity per add-on (default: 10)
- QUICK_ADD_MAX_PRODUCTS: Products shown by a quick-add prompt (default: 6)
- DRINK_SUGGESTION_LIMIT: Drinks offered in the drink step (default: 6)
- PREFETCH_MAX_WORKERS: Parallel workers for catalog warm-up (default: 4)
- CATALOG_CACHE_TTL_SECONDS: Lifetime of a cached catalog entry (default: 300)
- FLOW_SESSION_TTL_SECONDS: Session cache TTL (default: 3600)
- FLOW_SESSION_MAX_CACHE_SIZE: Max cached sessions (default: 1000)
- RATE_LIMIT_FLOW: Flow endpoint rate limit (default: "60 per minute")
- RATE_LIMIT_ENABLED: Enable/disable rate limiting (default: "true")
- CORS_ORIGINS: Comma-separated allowed origins (default: "*")

Usage:
------
    from storefront_flow.config import (
        ADDITIONAL_MAX_QUANTITY,
        DRINK_SUGGESTION_LIMIT,
    )
"""

import os
from typing import List

from dotenv import load_dotenv

load_dotenv()


# =============================================================================
# Database Configuration
# =============================================================================

DATABASE_URL: str = os.getenv("DATABASE_URL", "sqlite:///./storefront.db")


# =============================================================================
# Selection Limits
# =============================================================================

# Add-on quantities are clamped to [0, ADDITIONAL_MAX_QUANTITY]
ADDITIONAL_MAX_QUANTITY: int = int(os.getenv("ADDITIONAL_MAX_QUANTITY", "10"))

# Default for UpsellPromptConfig.max_products when a prompt leaves it unset
QUICK_ADD_MAX_PRODUCTS: int = int(os.getenv("QUICK_ADD_MAX_PRODUCTS", "6"))

# Number of drinks offered by the in-flow drink step
DRINK_SUGGESTION_LIMIT: int = int(os.getenv("DRINK_SUGGESTION_LIMIT", "6"))

# Categories whose name or slug contains one of these are treated as drinks
DRINK_CATEGORY_KEYWORDS: List[str] = ["bebida", "drink", "refrigerante", "suco"]

# Option groups with dedicated pizza tables; the combo screen hides them
EXCLUDED_ADDITIONAL_GROUP_NAMES: List[str] = [
    "borda", "bordas",
    "massa", "massas",
    "sabor", "sabores",
    "tamanho", "tamanhos",
]

# Group name used when an add-on item has no group
DEFAULT_ADDITIONAL_GROUP_NAME: str = "Adicionais"

# Cart category used for drink lines
DRINK_CART_CATEGORY: str = "Bebidas"


# =============================================================================
# Prefetch Configuration
# =============================================================================

PREFETCH_MAX_WORKERS: int = int(os.getenv("PREFETCH_MAX_WORKERS", "4"))

# Catalog edits (prices, sizes, flow steps) reach new sessions after this long
CATALOG_CACHE_TTL_SECONDS: int = int(os.getenv("CATALOG_CACHE_TTL_SECONDS", "300"))


# =============================================================================
# Session Management Configuration
# =============================================================================
# Each customer interaction owns one controller; sessions are kept in memory
# with TTL/LRU eviction and are never shared across customers.

FLOW_SESSION_TTL_SECONDS: int = int(os.getenv("FLOW_SESSION_TTL_SECONDS", "3600"))
FLOW_SESSION_MAX_CACHE_SIZE: int = int(os.getenv("FLOW_SESSION_MAX_CACHE_SIZE", "1000"))


# =============================================================================
# Rate Limiting Configuration
# =============================================================================

RATE_LIMIT_FLOW: str = os.getenv("RATE_LIMIT_FLOW", "60 per minute")
RATE_LIMIT_ENABLED: bool = os.getenv("RATE_LIMIT_ENABLED", "true").lower() == "true"


def get_rate_limit_flow() -> str:
    """
    Return the current flow rate limit.

    This function allows dynamic override in tests without modifying
    the module-level constant.
    """
    return RATE_LIMIT_FLOW


# =============================================================================
# CORS Configuration
# =============================================================================

_cors_origins_env = os.getenv("CORS_ORIGINS", "")
CORS_ORIGINS: List[str] = [
    origin.strip()
    for origin in _cors_origins_env.split(",")
    if origin.strip()
] or ["*"]
