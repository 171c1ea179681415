"""
Customization Session Registry
==============================

This module keeps one FlowSession per customer interaction. A FlowSession
bundles the customer's FlowController, cart, notifier and, after an item is
finalized, the active UpsellSequencer. Sessions are never shared between
customers.

Storage:
--------
Sessions live only in memory. Nothing about an in-progress customization is
persisted: a session that is evicted is simply gone, which matches the
behaviour of abandoning the customization.

Cache Eviction Strategy:
------------------------
1. **TTL-based**: Sessions not accessed within FLOW_SESSION_TTL_SECONDS are
   removed. Checked probabilistically (~1% of lookups) to avoid overhead.

2. **LRU-based**: When the cache reaches FLOW_SESSION_MAX_CACHE_SIZE, the
   oldest 10% of sessions (by last access time) are evicted.

Thread Safety:
--------------
All cache operations are protected by a threading.Lock; FastAPI runs sync
endpoints in a thread pool. Each FlowSession also carries its own lock, held
by the routes for the whole of an operation, so two requests for the same
session (a double-click, a retry) run one after the other instead of
interleaving inside the controller.

Usage:
------
    from storefront_flow.services.session import create_session, get_session

    session = create_session("store-1", gateway)
    session = get_session(session.session_id)
    if session is None:
        raise HTTPException(404, "Session not found")
"""

import logging
import random
import threading
import time
import uuid
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from ..config import FLOW_SESSION_MAX_CACHE_SIZE, FLOW_SESSION_TTL_SECONDS
from ..flow.interfaces import CatalogGateway
from ..flow.state_machine import FlowController
from ..flow.upsell import UpsellSequencer
from .cart import InMemoryCart, LoggingNotifier


logger = logging.getLogger(__name__)


@dataclass
class FlowSession:
    """Everything owned by one customer interaction."""
    session_id: str
    store_id: str
    controller: FlowController
    cart: InMemoryCart
    notifier: LoggingNotifier
    gateway: CatalogGateway
    upsell: Optional[UpsellSequencer] = None
    created_at: float = field(default_factory=time.time)
    # Serializes controller and upsell calls for this session
    lock: threading.RLock = field(default_factory=threading.RLock, repr=False)


# =============================================================================
# Session Cache
# =============================================================================
# {session_id: {"session": FlowSession, "last_access": timestamp}}

SESSION_CACHE: Dict[str, Dict[str, Any]] = {}
_cache_lock = threading.Lock()


def _cleanup_expired_sessions() -> int:
    """
    Remove sessions not accessed within FLOW_SESSION_TTL_SECONDS.

    Returns:
        int: Number of sessions removed
    """
    now = time.time()
    with _cache_lock:
        expired = [
            sid for sid, entry in SESSION_CACHE.items()
            if now - entry["last_access"] > FLOW_SESSION_TTL_SECONDS
        ]
        for sid in expired:
            del SESSION_CACHE[sid]

    if expired:
        logger.debug("Cleaned up %d expired flow sessions", len(expired))
    return len(expired)


def _evict_oldest_sessions(count: int) -> None:
    """Evict the least recently used sessions. Caller must hold _cache_lock."""
    sorted_sessions = sorted(SESSION_CACHE.items(), key=lambda x: x[1]["last_access"])
    to_remove = sorted_sessions[:max(count, 1)]
    for sid, _ in to_remove:
        del SESSION_CACHE[sid]
    logger.debug("Evicted %d oldest flow sessions", len(to_remove))


# =============================================================================
# Public Session Management Functions
# =============================================================================

def create_session(store_id: str, gateway: CatalogGateway) -> FlowSession:
    """
    Create and register a new customization session for a store.

    The controller fetches the store's flow configuration lazily, on the
    first step transition.
    """
    cart = InMemoryCart()
    notifier = LoggingNotifier()
    session = FlowSession(
        session_id=str(uuid.uuid4()),
        store_id=store_id,
        controller=FlowController(store_id, gateway, cart, notifier),
        cart=cart,
        notifier=notifier,
        gateway=gateway,
    )

    with _cache_lock:
        if len(SESSION_CACHE) >= FLOW_SESSION_MAX_CACHE_SIZE:
            _evict_oldest_sessions(FLOW_SESSION_MAX_CACHE_SIZE // 10)
        SESSION_CACHE[session.session_id] = {
            "session": session,
            "last_access": time.time(),
        }

    logger.info("Created flow session %s for store %s", session.session_id, store_id)
    return session


def get_session(session_id: str) -> Optional[FlowSession]:
    """
    Look up a session, refreshing its last access time.

    Returns:
        The FlowSession, or None if it does not exist or has expired
    """
    if random.randint(1, 100) == 1:
        _cleanup_expired_sessions()

    with _cache_lock:
        entry = SESSION_CACHE.get(session_id)
        if entry is None:
            return None
        if time.time() - entry["last_access"] > FLOW_SESSION_TTL_SECONDS:
            del SESSION_CACHE[session_id]
            return None
        entry["last_access"] = time.time()
        return entry["session"]


def drop_session(session_id: str) -> bool:
    with _cache_lock:
        return SESSION_CACHE.pop(session_id, None) is not None


def clear_cache() -> int:
    """
    Remove every session. Useful for testing.

    Returns:
        int: Number of sessions that were cached
    """
    with _cache_lock:
        count = len(SESSION_CACHE)
        SESSION_CACHE.clear()
    logger.info("Cleared %d flow sessions from cache", count)
    return count


def get_cache_stats() -> Dict[str, Any]:
    with _cache_lock:
        access_times = [entry["last_access"] for entry in SESSION_CACHE.values()]
        return {
            "size": len(SESSION_CACHE),
            "max_size": FLOW_SESSION_MAX_CACHE_SIZE,
            "ttl_seconds": FLOW_SESSION_TTL_SECONDS,
            "oldest_access": min(access_times) if access_times else None,
            "newest_access": max(access_times) if access_times else None,
        }
