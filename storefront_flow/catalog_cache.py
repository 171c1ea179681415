"""
Catalog Cache - Prefetch Warm-Up for the Customization Flow.

Opening a category in the storefront triggers a warm-up of everything the
customization flow will ask for: the category's sizes and, for each size, the
flavor, edge and dough lists with their prices. The fetches run in parallel
on a small thread pool; later reads are served from memory until the entry
expires.

Features:
- Read-through caching of the slow-changing catalog reads
- Entries expire after CATALOG_CACHE_TTL_SECONDS, so catalog edits reach
  new sessions without a restart
- Manual invalidation (POST /catalog/refresh) for edits that must show at once
- Parallel prefetch of sizes and per-size options
- Fetch failures during prefetch are logged and left uncached, so a later
  read retries against the backend
- Store open/closed status and upsell products are always read live

Usage:
    from storefront_flow.catalog_cache import CatalogCache

    cache = CatalogCache(SqlCatalogGateway(SessionLocal))
    cache.prefetch("store-1", ["cat-pizza"])
    sizes = cache.fetch_sizes("cat-pizza")  # served from memory
"""

import logging
import threading
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from datetime import datetime
from typing import Any, Callable, Hashable, Optional

from .config import CATALOG_CACHE_TTL_SECONDS, PREFETCH_MAX_WORKERS
from .flow.errors import FetchFailure
from .flow.interfaces import CatalogGateway
from .flow.models import (
    AdditionalItem,
    Category,
    OptionKind,
    PizzaSize,
    PriceableOption,
    Product,
    StoreFlowConfig,
    UpsellPromptConfig,
)

logger = logging.getLogger(__name__)


class CatalogCache(CatalogGateway):
    """
    CatalogGateway decorator that memoizes catalog reads for a limited time.

    Thread-safe: the prefetch pool and request threads share one lock.
    """

    def __init__(
        self,
        delegate: CatalogGateway,
        max_workers: int = PREFETCH_MAX_WORKERS,
        ttl_seconds: float = CATALOG_CACHE_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._delegate = delegate
        self._max_workers = max_workers
        self._ttl_seconds = ttl_seconds
        self._clock = clock
        # key -> (value, loaded_at) where loaded_at comes from self._clock
        self._entries: dict[Hashable, tuple[Any, float]] = {}
        self._lock = threading.Lock()
        self._last_prefetch: datetime | None = None
        self._last_invalidation: datetime | None = None

    @property
    def last_prefetch(self) -> datetime | None:
        return self._last_prefetch

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def _is_fresh(self, loaded_at: float) -> bool:
        return self._clock() - loaded_at < self._ttl_seconds

    def _cached(self, key: Hashable, loader: Callable[[], Any]) -> Any:
        with self._lock:
            entry = self._entries.get(key)
            if entry is not None and self._is_fresh(entry[1]):
                return entry[0]

        # Load outside the lock; a concurrent duplicate load is harmless
        value = loader()
        with self._lock:
            entry = self._entries.get(key)
            if entry is not None and self._is_fresh(entry[1]):
                return entry[0]
            self._entries[key] = (value, self._clock())
            return value

    def invalidate(self) -> int:
        """Drop every cached entry. Returns the number dropped."""
        with self._lock:
            count = len(self._entries)
            self._entries.clear()
            self._last_invalidation = datetime.now()
        logger.info("Catalog cache invalidated (%d entries)", count)
        return count

    def get_status(self) -> dict[str, Any]:
        """Get cache status information."""
        with self._lock:
            expired = sum(1 for _, loaded_at in self._entries.values() if not self._is_fresh(loaded_at))
            total = len(self._entries)
        return {
            "entries": total,
            "expired_entries": expired,
            "ttl_seconds": self._ttl_seconds,
            "last_prefetch": self._last_prefetch.isoformat() if self._last_prefetch else None,
            "last_invalidation": self._last_invalidation.isoformat() if self._last_invalidation else None,
        }

    # =========================================================================
    # Prefetch
    # =========================================================================

    def prefetch(self, store_id: str, category_ids: list[str]) -> int:
        """
        Warm the cache for a store's categories.

        Loads the flow configuration, each category's sizes, and then every
        (size, option kind) list in parallel.
        Entries that are still fresh are not fetched again.

        Returns:
            Number of fetches that succeeded
        """
        loaded = 0
        sizes_by_category: dict[str, list[PizzaSize]] = {}

        with ThreadPoolExecutor(max_workers=self._max_workers) as pool:
            first_wave = {
                pool.submit(self.fetch_flow_config, store_id): ("flow_config", None),
            }
            for category_id in category_ids:
                first_wave[pool.submit(self.fetch_sizes, category_id)] = ("sizes", category_id)
                first_wave[pool.submit(self.fetch_category, category_id)] = ("category", category_id)

            for future in as_completed(first_wave):
                what, category_id = first_wave[future]
                try:
                    result = future.result()
                except FetchFailure as e:
                    logger.warning("Prefetch of %s for %s failed: %s", what, category_id or store_id, e.message)
                    continue
                loaded += 1
                if what == "sizes":
                    sizes_by_category[category_id] = result

            second_wave = {
                pool.submit(self.fetch_options_for_size, category_id, size.id, kind): (category_id, size.id, kind)
                for category_id, sizes in sizes_by_category.items()
                for size in sizes
                for kind in OptionKind
            }
            for future in as_completed(second_wave):
                category_id, size_id, kind = second_wave[future]
                try:
                    future.result()
                except FetchFailure as e:
                    logger.warning(
                        "Prefetch of %s options for size %s failed: %s",
                        kind.value, size_id, e.message,
                    )
                    continue
                loaded += 1

        self._last_prefetch = datetime.now()
        logger.info(
            "Prefetched %d catalog entries for store %s (%d categories)",
            loaded, store_id, len(category_ids),
        )
        return loaded

    # =========================================================================
    # CatalogGateway
    # =========================================================================

    def fetch_category(self, category_id: str) -> Optional[Category]:
        return self._cached(("category", category_id), lambda: self._delegate.fetch_category(category_id))

    def fetch_sizes(self, category_id: str) -> list[PizzaSize]:
        return self._cached(("sizes", category_id), lambda: self._delegate.fetch_sizes(category_id))

    def fetch_options_for_size(
        self, category_id: str, size_id: str, kind: OptionKind
    ) -> list[PriceableOption]:
        return self._cached(
            ("options", category_id, size_id, kind),
            lambda: self._delegate.fetch_options_for_size(category_id, size_id, kind),
        )

    def fetch_flow_config(self, store_id: str) -> StoreFlowConfig:
        return self._cached(("flow_config", store_id), lambda: self._delegate.fetch_flow_config(store_id))

    def fetch_upsell_prompts(
        self, store_id: str, trigger_category_id: str
    ) -> list[UpsellPromptConfig]:
        return self._cached(
            ("upsell_prompts", store_id, trigger_category_id),
            lambda: self._delegate.fetch_upsell_prompts(store_id, trigger_category_id),
        )

    def fetch_additionals(
        self, store_id: str, category_id: str, exclude_dedicated_groups: bool = False
    ) -> list[AdditionalItem]:
        return self._cached(
            ("additionals", store_id, category_id, exclude_dedicated_groups),
            lambda: self._delegate.fetch_additionals(store_id, category_id, exclude_dedicated_groups),
        )

    # Availability-sensitive reads go straight to the backend

    def fetch_quick_add_products(
        self, store_id: str, prompt: UpsellPromptConfig
    ) -> list[Product]:
        return self._delegate.fetch_quick_add_products(store_id, prompt)

    def fetch_drinks(self, store_id: str, limit: int) -> list[Product]:
        return self._delegate.fetch_drinks(store_id, limit)

    def is_store_open(self, store_id: str) -> bool:
        return self._delegate.is_store_open(store_id)
