"""
Pydantic models for the product customization flow.

The customization of one item moves through these shapes:
- PizzaSize / Category (chosen by the customer, captured as session context)
- PriceableOption (flavors, edges and doughs resolved for that size)
- Selection (see selection.py, the mutable per-session aggregate)
- FinalizedLineItem / CartLine (emitted once into the external cart)

Upsell prompts are described by UpsellPromptConfig and walked by upsell.py.
"""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class StepType(str, Enum):
    """Configurable steps of a category flow."""
    FLAVOR = "flavor"
    EDGE = "edge"
    DOUGH = "dough"
    DRINK = "drink"
    ADDITIONALS = "additionals"
    COMBO = "combo"


# Terminal marker used by next_step_id
CART = "cart"


class FlowState(str, Enum):
    """States of the customization controller."""
    IDLE = "idle"
    SIZE_CHOSEN = "size_chosen"
    FLAVOR_SELECTION = "flavor_selection"
    EDGE_SELECTION = "edge_selection"
    DOUGH_SELECTION = "dough_selection"
    DRINK_SELECTION = "drink_selection"
    ADDITIONALS_SELECTION = "additionals_selection"
    COMBO_SELECTION = "combo_selection"
    CART = "cart"



class OptionKind(str, Enum):
    """Attribute classes priced per size."""
    FLAVOR = "flavor"
    EDGE = "edge"
    DOUGH = "dough"


class ContentType(str, Enum):
    """What an upsell prompt shows."""
    DRINK = "drink"
    PIZZA_EDGES = "pizza_edges"
    PIZZA_DOUGHS = "pizza_doughs"
    ADDITIONALS = "additionals"
    COMBO = "combo"
    GENERIC = "generic"

    @classmethod
    def parse(cls, value: str | None) -> "ContentType":
        """Map a stored content type to a member; unknown values are generic."""
        if not value:
            return cls.GENERIC
        try:
            return cls(value)
        except ValueError:
            return cls.GENERIC


# =============================================================================
# Flow configuration
# =============================================================================

class FlowStepConfig(BaseModel):
    """One node of a category flow: enabled flag and successor."""
    enabled: bool = True
    next_step_id: Optional[str] = None  # a StepType value, "cart" or None


# step type value -> FlowStepConfig, for a single (store, category)
CategoryFlowConfig = dict[str, FlowStepConfig]

# category id -> CategoryFlowConfig, for a single store
StoreFlowConfig = dict[str, CategoryFlowConfig]


# =============================================================================
# Catalog read models
# =============================================================================

class Category(BaseModel):
    id: str
    name: str
    slug: Optional[str] = None


class PizzaSize(BaseModel):
    """A size of a pizza category, captured into the session on selection."""
    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    category_id: str
    max_flavors: int = 1
    base_price: float = 0.0
    image_url: Optional[str] = None


class PriceableOption(BaseModel):
    """A flavor, edge or dough with its price resolved for one size."""
    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    description: Optional[str] = None
    price: float = 0.0
    surcharge: float = 0.0  # flavors only, applied when is_premium
    is_premium: bool = False
    flavor_type: Optional[str] = None  # display grouping only
    image_url: Optional[str] = None


class SelectedFlavor(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    price: float
    surcharge: float = 0.0
    flavor_type: Optional[str] = None


class AdditionalItem(BaseModel):
    """An add-on offered from one of the category's option groups."""
    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    price: float = 0.0
    description: Optional[str] = None
    image_url: Optional[str] = None
    group_name: str = "Adicionais"


class SelectedAdditional(BaseModel):
    id: str
    name: str
    price: float
    quantity: int = 1

    @property
    def line_total(self) -> float:
        return round(self.price * self.quantity, 2)


class Product(BaseModel):
    """A plain catalog product (drinks, quick-add suggestions)."""
    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    price: float
    promotional_price: Optional[float] = None
    image_url: Optional[str] = None
    category_id: Optional[str] = None
    category_name: Optional[str] = None

    @property
    def effective_price(self) -> float:
        """Promotional price when set, list price otherwise."""
        if self.promotional_price:
            return self.promotional_price
        return self.price


# =============================================================================
# Cart lines
# =============================================================================

class CartLine(BaseModel):
    """A line handed to the external cart sink."""
    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    unit_price: float
    quantity: int = 1
    category: Optional[str] = None
    description: Optional[str] = None
    image_url: Optional[str] = None

    @property
    def line_total(self) -> float:
        return round(self.unit_price * self.quantity, 2)


class FinalizedLineItem(CartLine):
    """The customized primary item. Immutable once emitted."""
    quantity: int = 1
    description: str = ""


# =============================================================================
# Upsell prompts
# =============================================================================

class UpsellPromptConfig(BaseModel):
    """A configured post-completion prompt for one trigger category."""
    id: str
    trigger_category_id: str
    target_category_id: Optional[str] = None
    content_type: ContentType = ContentType.GENERIC
    title: str
    description: Optional[str] = None
    button_text: Optional[str] = None
    secondary_button_text: Optional[str] = None
    icon: Optional[str] = None
    max_products: int = 6
    display_order: int = 0
    primary_redirect_category_id: Optional[str] = None
    secondary_redirect_category_id: Optional[str] = None


class ComboSelections(BaseModel):
    """Combined edge + dough + add-ons chosen on a combo screen."""
    edge: Optional[PriceableOption] = None
    dough: Optional[PriceableOption] = None
    additionals: list[SelectedAdditional] = Field(default_factory=list)
