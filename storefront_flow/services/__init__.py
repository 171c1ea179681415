"""
Services Package for the Storefront Flow Engine
===============================================

Collaborators the flow engine is wired to at runtime:

- **catalog**: SqlCatalogGateway, catalog reads over SQLAlchemy
- **cart**: in-memory CartSink and Notifier for one customer
- **session**: registry of per-customer FlowSessions with TTL/LRU eviction

Usage:
------
    from storefront_flow.services.catalog import SqlCatalogGateway
    from storefront_flow.services.session import create_session, get_session
"""

from . import cart
from . import catalog
from . import session

__all__ = ["cart", "catalog", "session"]
