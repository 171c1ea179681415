"""
Selection Accumulator.

Holds what the customer picked during one customization session: the size,
flavors, edge, dough, add-ons with quantities and free-text notes. Totals are
recomputed on every read and never cached across mutations.
"""

from typing import Optional

from pydantic import BaseModel, Field

from ..config import ADDITIONAL_MAX_QUANTITY
from .errors import LimitExceeded
from .models import (
    AdditionalItem,
    ComboSelections,
    PizzaSize,
    PriceableOption,
    SelectedAdditional,
    SelectedFlavor,
)


class Selection(BaseModel):
    """Mutable per-session aggregate of customer choices."""

    size: Optional[PizzaSize] = None
    flavors: list[SelectedFlavor] = Field(default_factory=list)
    edge: Optional[PriceableOption] = None
    dough: Optional[PriceableOption] = None
    additionals: dict[str, SelectedAdditional] = Field(default_factory=dict)
    notes: str = ""
    per_item_max: int = ADDITIONAL_MAX_QUANTITY

    @property
    def max_flavors(self) -> int:
        return self.size.max_flavors if self.size else 0

    @property
    def base_price(self) -> float:
        return self.size.base_price if self.size else 0.0

    # =========================================================================
    # Flavors
    # =========================================================================

    def has_flavor(self, flavor_id: str) -> bool:
        return any(f.id == flavor_id for f in self.flavors)

    def toggle_flavor(self, option: PriceableOption) -> bool:
        """
        Add or remove a flavor.

        Returns:
            True if the flavor is now selected, False if it was removed

        Raises:
            LimitExceeded: the selection is already at max_flavors; the
                selection is left unchanged
        """
        if self.has_flavor(option.id):
            self.flavors = [f for f in self.flavors if f.id != option.id]
            return False

        if len(self.flavors) >= self.max_flavors:
            raise LimitExceeded(self.max_flavors)

        self.flavors = self.flavors + [
            SelectedFlavor(
                id=option.id,
                name=option.name,
                price=option.price,
                surcharge=option.surcharge if option.is_premium else 0.0,
                flavor_type=option.flavor_type,
            )
        ]
        return True

    # =========================================================================
    # Edge / dough
    # =========================================================================

    def set_edge(self, option: Optional[PriceableOption]) -> None:
        self.edge = option

    def set_dough(self, option: Optional[PriceableOption]) -> None:
        self.dough = option

    # =========================================================================
    # Additionals
    # =========================================================================

    def toggle_additional(self, item: AdditionalItem) -> bool:
        """Select an add-on with quantity 1, or remove it if present."""
        if item.id in self.additionals:
            del self.additionals[item.id]
            return False
        self.additionals[item.id] = SelectedAdditional(
            id=item.id, name=item.name, price=item.price, quantity=1,
        )
        return True

    def change_additional_quantity(self, item_id: str, delta: int) -> int:
        """
        Change an add-on quantity by delta.

        Reaching 0 removes the entry. Going past per_item_max is a no-op.

        Returns:
            The resulting quantity (0 when absent or removed)
        """
        current = self.additionals.get(item_id)
        if current is None:
            return 0

        new_quantity = current.quantity + delta
        if new_quantity <= 0:
            del self.additionals[item_id]
            return 0
        if new_quantity > self.per_item_max:
            return current.quantity

        self.additionals[item_id] = current.model_copy(update={"quantity": new_quantity})
        return new_quantity

    def set_additional_quantity(self, item: AdditionalItem, quantity: int) -> int:
        """Set an add-on to an absolute quantity, clamped to [0, per_item_max]."""
        quantity = max(0, min(quantity, self.per_item_max))
        if quantity == 0:
            self.additionals.pop(item.id, None)
            return 0
        self.additionals[item.id] = SelectedAdditional(
            id=item.id, name=item.name, price=item.price, quantity=quantity,
        )
        return quantity

    def selected_additionals(self) -> list[SelectedAdditional]:
        return list(self.additionals.values())

    # =========================================================================
    # Totals
    # =========================================================================

    def flavors_price(self) -> float:
        """Size base price once plus premium surcharges."""
        return round(self.base_price + sum(f.surcharge for f in self.flavors), 2)

    def item_price(self) -> float:
        """Unit price of the primary item (add-ons excluded)."""
        edge_price = self.edge.price if self.edge else 0.0
        dough_price = self.dough.price if self.dough else 0.0
        return round(self.flavors_price() + edge_price + dough_price, 2)

    def additionals_total(self) -> float:
        return round(sum(a.price * a.quantity for a in self.additionals.values()), 2)

    def extras_total(self) -> float:
        """Edge + dough + add-ons, as reported by a combo screen."""
        edge_price = self.edge.price if self.edge else 0.0
        dough_price = self.dough.price if self.dough else 0.0
        return round(edge_price + dough_price + self.additionals_total(), 2)

    def total(self) -> float:
        """Running total of everything selected in this session."""
        return round(self.item_price() + self.additionals_total(), 2)

    def to_combo(self) -> ComboSelections:
        return ComboSelections(
            edge=self.edge,
            dough=self.dough,
            additionals=self.selected_additionals(),
        )

    def is_empty(self) -> bool:
        return (
            not self.flavors
            and self.edge is None
            and self.dough is None
            and not self.additionals
            and not self.notes
        )
