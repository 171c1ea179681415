"""
Flow Schemas for the Storefront Flow Engine
===========================================

Pydantic models for the customization and upsell endpoints under /flow.

Endpoint Coverage:
------------------
- POST /flow/start: Open a customization session (optionally warm a category)
- GET  /flow/{session_id}: Current state of the session
- POST /flow/{session_id}/size: Choose a size, entering flavor selection
- POST /flow/{session_id}/flavors/toggle: Add or remove a flavor
- POST /flow/{session_id}/notes: Set free-text notes for the item
- POST /flow/{session_id}/continue: Leave flavor selection
- POST /flow/{session_id}/step: Submit the active step's choice (or skip)
- POST /flow/{session_id}/cancel: Abandon the customization
- GET/POST /flow/{session_id}/upsell/...: Walk the post-completion prompts
- GET  /flow/{session_id}/cart: Lines added by this session

Engine read models (PizzaSize, PriceableOption, Product, CartLine, ...) are
pydantic models already and are embedded directly.
"""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from ..flow.models import (
    AdditionalItem,
    CartLine,
    ComboSelections,
    PizzaSize,
    PriceableOption,
    Product,
    SelectedAdditional,
    SelectedFlavor,
    UpsellPromptConfig,
)


# =============================================================================
# Requests
# =============================================================================

class FlowStartRequest(BaseModel):
    store_id: str
    category_id: Optional[str] = Field(
        default=None, description="Category to warm up and list sizes for"
    )


class SizeChoiceRequest(BaseModel):
    category_id: str
    size_id: str


class FlavorToggleRequest(BaseModel):
    flavor_id: str


class NotesRequest(BaseModel):
    notes: str = Field(default="", max_length=500)


class StepChoiceRequest(BaseModel):
    """
    Choice for the active step. Leave everything empty to skip an optional
    step. option_id covers edge, dough and drink; edge_id/dough_id/additionals
    cover add-ons and the combo screen.

    On the combo screen an omitted edge_id or dough_id keeps what was chosen
    in an earlier step; clear_edge / clear_dough remove it.
    """
    option_id: Optional[str] = None
    edge_id: Optional[str] = None
    dough_id: Optional[str] = None
    clear_edge: bool = False
    clear_dough: bool = False
    additionals: Dict[str, int] = Field(default_factory=dict)


class QuickAddRequest(BaseModel):
    product_id: str


# =============================================================================
# Responses
# =============================================================================

class NotificationOut(BaseModel):
    level: str
    message: str


class ComboOptionsOut(BaseModel):
    edges: List[PriceableOption] = Field(default_factory=list)
    doughs: List[PriceableOption] = Field(default_factory=list)
    additionals: List[AdditionalItem] = Field(default_factory=list)


class SelectionOut(BaseModel):
    size: Optional[PizzaSize] = None
    flavors: List[SelectedFlavor] = Field(default_factory=list)
    edge: Optional[PriceableOption] = None
    dough: Optional[PriceableOption] = None
    additionals: List[SelectedAdditional] = Field(default_factory=list)
    notes: str = ""
    max_flavors: int = 0
    total: float = 0.0


class UpsellOut(BaseModel):
    is_closed: bool
    current_index: int
    prompt_count: int
    prompt: Optional[UpsellPromptConfig] = None
    is_showing_quick_add_products: bool = False
    products: List[Product] = Field(default_factory=list)
    options: List[PriceableOption] = Field(default_factory=list)
    additionals: Dict[str, List[AdditionalItem]] = Field(default_factory=dict)
    combo: Optional[ComboOptionsOut] = None
    redirect_category_id: Optional[str] = None
    last_total: Optional[float] = None
    last_combo: Optional[ComboSelections] = None


class FlowStateOut(BaseModel):
    session_id: str
    state: str
    step: Optional[str] = None
    options: List[Dict[str, Any]] = Field(default_factory=list)
    # Flavor step only: flavor_type -> {"traditional": [...], "premium": [...]}
    flavor_groups: Optional[Dict[str, Dict[str, List[PriceableOption]]]] = None
    combo: Optional[ComboOptionsOut] = None
    selection: Optional[SelectionOut] = None
    total: float = 0.0
    error: Optional[str] = None
    is_complete: bool = False
    line_item: Optional[CartLine] = None
    ancillary_lines: List[CartLine] = Field(default_factory=list)
    upsell: Optional[UpsellOut] = None
    notifications: List[NotificationOut] = Field(default_factory=list)


class FlowStartResponse(BaseModel):
    session_id: str
    store_id: str
    is_store_open: bool
    sizes: List[PizzaSize] = Field(default_factory=list)


class CartOut(BaseModel):
    session_id: str
    lines: List[CartLine] = Field(default_factory=list)
    total_items: int = 0
    total_price: float = 0.0
