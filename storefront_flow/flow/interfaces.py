"""
Collaborator interfaces consumed by the flow engine.

The engine never talks to a database, a cart or a toast system directly.
It is handed implementations of these abstract classes:

- CatalogGateway: read-only catalog and configuration fetches
- CartSink: side-effecting cart insertion
- Notifier: user-facing feedback channel
- ProductBrowser: optional "browse products" delegate used by upsell prompts

Gateway implementations raise FetchFailure when the backend fails; the
engine treats that the same as "no data" for the affected step.
"""

from abc import ABC, abstractmethod
from typing import Optional

from .models import (
    AdditionalItem,
    CartLine,
    Category,
    OptionKind,
    PizzaSize,
    PriceableOption,
    Product,
    StoreFlowConfig,
    UpsellPromptConfig,
)


class CatalogGateway(ABC):
    """Read access to catalog data keyed by store and category ids."""

    @abstractmethod
    def fetch_category(self, category_id: str) -> Optional[Category]:
        pass

    @abstractmethod
    def fetch_sizes(self, category_id: str) -> list[PizzaSize]:
        """Active sizes of a category in display order."""
        pass

    @abstractmethod
    def fetch_options_for_size(
        self, category_id: str, size_id: str, kind: OptionKind
    ) -> list[PriceableOption]:
        """
        Options of one kind offered for a size, with prices for that size.

        Options without an available price row for the size are omitted.
        """
        pass

    @abstractmethod
    def fetch_flow_config(self, store_id: str) -> StoreFlowConfig:
        pass

    @abstractmethod
    def fetch_upsell_prompts(
        self, store_id: str, trigger_category_id: str
    ) -> list[UpsellPromptConfig]:
        """Active prompts for a trigger category ordered by display_order."""
        pass

    @abstractmethod
    def fetch_quick_add_products(
        self, store_id: str, prompt: UpsellPromptConfig
    ) -> list[Product]:
        """Products for a quick-add prompt, at most prompt.max_products."""
        pass

    @abstractmethod
    def fetch_drinks(self, store_id: str, limit: int) -> list[Product]:
        pass

    @abstractmethod
    def fetch_additionals(
        self, store_id: str, category_id: str, exclude_dedicated_groups: bool = False
    ) -> list[AdditionalItem]:
        pass

    @abstractmethod
    def is_store_open(self, store_id: str) -> bool:
        pass


class CartSink(ABC):
    """External cart. The engine does not consume a return value."""

    @abstractmethod
    def add_line(self, line: CartLine) -> None:
        pass


class Notifier(ABC):
    """User-facing feedback channel."""

    @abstractmethod
    def error(self, message: str) -> None:
        pass

    @abstractmethod
    def success(self, message: str) -> None:
        pass


class ProductBrowser(ABC):
    """Delegate that opens a product listing for a category."""

    @abstractmethod
    def browse(self, store_id: str, category_id: Optional[str]) -> None:
        pass
