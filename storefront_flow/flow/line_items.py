"""
Cart line construction for finalized customizations.

The primary item carries the size price, premium surcharges, edge and dough.
Add-ons never fold into it; each becomes its own line so per-item quantities
survive in the cart.
"""

import uuid
from typing import Optional

from ..config import DEFAULT_ADDITIONAL_GROUP_NAME, DRINK_CART_CATEGORY
from .models import (
    CartLine,
    Category,
    FinalizedLineItem,
    PizzaSize,
    PriceableOption,
    Product,
    SelectedAdditional,
)
from .selection import Selection

DESCRIPTION_SEPARATOR = " • "
FLAVOR_SEPARATOR = " + "


def build_description(
    flavor_names: list[str],
    edge: Optional[PriceableOption] = None,
    dough: Optional[PriceableOption] = None,
    notes: str = "",
) -> str:
    """
    Build the line description.

    Example:
        build_description(["A", "B"], edge=X, notes="sem cebola")
        -> "A + B • Borda: X • Obs: sem cebola"
    """
    parts = [FLAVOR_SEPARATOR.join(flavor_names)]
    if edge:
        parts.append(f"Borda: {edge.name}")
    if dough:
        parts.append(f"Massa: {dough.name}")
    if notes and notes.strip():
        parts.append(f"Obs: {notes.strip()}")
    return DESCRIPTION_SEPARATOR.join(parts)


def _line_id(prefix: str) -> str:
    return f"{prefix}-{uuid.uuid4().hex[:8]}"


def build_line_item(
    category: Category,
    size: PizzaSize,
    selection: Selection,
    calculated_price: Optional[float] = None,
) -> FinalizedLineItem:
    """
    Build the finalized primary item.

    Args:
        category: Category the item belongs to
        size: Size chosen for the session
        selection: Accumulated choices
        calculated_price: Flavors price frozen when leaving the flavor step;
            recomputed from the selection when omitted
    """
    flavors_price = selection.flavors_price() if calculated_price is None else calculated_price
    edge_price = selection.edge.price if selection.edge else 0.0
    dough_price = selection.dough.price if selection.dough else 0.0

    return FinalizedLineItem(
        id=_line_id(f"pizza-{size.id}"),
        name=f"{category.name} {size.name}",
        unit_price=round(flavors_price + edge_price + dough_price, 2),
        quantity=1,
        category=category.name,
        description=build_description(
            [f.name for f in selection.flavors],
            edge=selection.edge,
            dough=selection.dough,
            notes=selection.notes,
        ),
        image_url=size.image_url,
    )


def build_product_line(product: Product, category: Optional[str] = None) -> CartLine:
    """Line for a plain product (drink, quick-add)."""
    return CartLine(
        id=_line_id(product.id),
        name=product.name,
        unit_price=product.effective_price,
        quantity=1,
        category=category or product.category_name or "Produto",
        image_url=product.image_url,
    )


def build_drink_line(drink: Product) -> CartLine:
    return build_product_line(drink, category=DRINK_CART_CATEGORY)


def build_additional_lines(additionals: list[SelectedAdditional]) -> list[CartLine]:
    return [
        CartLine(
            id=_line_id(item.id),
            name=item.name,
            unit_price=item.price,
            quantity=item.quantity,
            category=DEFAULT_ADDITIONAL_GROUP_NAME,
        )
        for item in additionals
    ]


def build_attribute_line(label: str, option: PriceableOption) -> CartLine:
    """Standalone line for an edge or dough picked after the item was finalized."""
    return CartLine(
        id=_line_id(option.id),
        name=f"{label}: {option.name}",
        unit_price=option.price,
        quantity=1,
        category=DEFAULT_ADDITIONAL_GROUP_NAME,
        description=option.description,
    )
