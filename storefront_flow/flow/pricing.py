"""
Catalog Price Resolver.

This module resolves flavor, edge and dough prices against exactly one size
context. An option with no available price row for the size is unavailable:
it is never offered and never priced as zero.

Option lists are fetched once per (category, size, kind) and cached for the
lifetime of the resolver, which is scoped to one customization session.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from .errors import FetchFailure
from .interfaces import CatalogGateway
from .models import OptionKind, PriceableOption

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ResolvedPrice:
    """Price of an option for one size. surcharge is only set for flavors."""
    price: float
    surcharge: float = 0.0

    def premium_surcharge(self, is_premium: bool) -> float:
        return self.surcharge if is_premium else 0.0


class CatalogPriceResolver:
    """
    Resolves option availability and prices per size.

    Requires a CatalogGateway; fetch failures are logged and treated as
    "no options offered", which makes the affected step inapplicable.
    """

    def __init__(self, gateway: CatalogGateway):
        self._gateway = gateway
        self._cache: dict[tuple[str, str, OptionKind], list[PriceableOption]] = {}

    def options_for_size(
        self, category_id: str, size_id: str, kind: OptionKind
    ) -> list[PriceableOption]:
        """
        Get the options of one kind offered for a size.

        Returns:
            Options in catalog order, empty when none are offered or the
            fetch failed.
        """
        key = (category_id, size_id, kind)
        if key in self._cache:
            return self._cache[key]

        try:
            options = self._gateway.fetch_options_for_size(category_id, size_id, kind)
        except FetchFailure as e:
            logger.warning(
                "Failed to fetch %s options for category=%s size=%s: %s",
                kind.value, category_id, size_id, e.message,
            )
            options = []

        self._cache[key] = list(options)
        logger.debug(
            "Resolved %d %s options for category=%s size=%s",
            len(options), kind.value, category_id, size_id,
        )
        return self._cache[key]

    def find_option(
        self, category_id: str, size_id: str, kind: OptionKind, option_id: str
    ) -> Optional[PriceableOption]:
        for option in self.options_for_size(category_id, size_id, kind):
            if option.id == option_id:
                return option
        return None

    def resolve_price(
        self, category_id: str, size_id: str, kind: OptionKind, option_id: str
    ) -> Optional[ResolvedPrice]:
        """
        Resolve the price of one option for a size.

        Returns:
            ResolvedPrice, or None when the option is unavailable for the size
        """
        option = self.find_option(category_id, size_id, kind, option_id)
        if option is None:
            return None
        if kind == OptionKind.FLAVOR:
            return ResolvedPrice(price=option.price, surcharge=option.surcharge)
        return ResolvedPrice(price=option.price)


def group_flavors(flavors: list[PriceableOption]) -> dict[str, dict[str, list[PriceableOption]]]:
    """
    Group flavors for display by flavor_type, then traditional/premium.

    Grouping never affects pricing.

    Example:
        {"salgada": {"traditional": [...], "premium": [...]}, "doce": {...}}
    """
    groups: dict[str, dict[str, list[PriceableOption]]] = {}
    for flavor in flavors:
        flavor_type = flavor.flavor_type or "outros"
        bucket = groups.setdefault(flavor_type, {"traditional": [], "premium": []})
        bucket["premium" if flavor.is_premium else "traditional"].append(flavor)
    return groups
