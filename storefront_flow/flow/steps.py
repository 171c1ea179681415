"""
Flow steps as variants of a common capability.

Every configurable StepType has one FlowStep subclass. A step knows how to
load what it offers for the session's size (enter) and how to fold a
customer's choice into the session (apply). The controller never branches
on the step type; it looks the step up in a StepRegistry.

Adding a new kind of step means adding a subclass and registering it.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Callable, Optional

from pydantic import BaseModel, Field

from ..config import DRINK_SUGGESTION_LIMIT
from .errors import FetchFailure, FlowValidationError
from .interfaces import CatalogGateway
from .models import (
    AdditionalItem,
    Category,
    FlowState,
    OptionKind,
    PizzaSize,
    PriceableOption,
    Product,
    StepType,
)
from .pricing import CatalogPriceResolver
from .selection import Selection

logger = logging.getLogger(__name__)


class StepChoice(BaseModel):
    """What the customer submitted for the active step."""
    option_id: Optional[str] = None  # edge, dough or drink product id; None = skip
    edge_id: Optional[str] = None  # combo only; None keeps the current edge
    dough_id: Optional[str] = None  # combo only; None keeps the current dough
    clear_edge: bool = False  # combo only
    clear_dough: bool = False  # combo only
    additionals: dict[str, int] = Field(default_factory=dict)  # item id -> quantity


@dataclass
class ComboOptions:
    edges: list[PriceableOption] = field(default_factory=list)
    doughs: list[PriceableOption] = field(default_factory=list)
    additionals: list[AdditionalItem] = field(default_factory=list)

    def is_empty(self) -> bool:
        return not (self.edges or self.doughs or self.additionals)


@dataclass
class StepOutcome:
    """Result of entering a step: whether it applies and what it offers."""
    step_type: StepType
    applicable: bool
    options: list[Any] = field(default_factory=list)
    combo: Optional[ComboOptions] = None


@dataclass
class FlowContext:
    """Session-scoped context handed to every step."""
    store_id: str
    category: Category
    size: PizzaSize
    selection: Selection
    prices: CatalogPriceResolver
    gateway: CatalogGateway
    calculated_price: float = 0.0
    drink: Optional[Product] = None
    outcomes: dict[StepType, StepOutcome] = field(default_factory=dict)
    visited: set[StepType] = field(default_factory=set)

    @property
    def category_id(self) -> str:
        return self.category.id


def safe_fetch(description: str, fetch: Callable[..., list], *args) -> list:
    """Run a gateway fetch, treating a FetchFailure as no data."""
    try:
        return list(fetch(*args))
    except FetchFailure as e:
        logger.warning("Failed to fetch %s: %s", description, e.message)
        return []


class FlowStep(ABC):
    """A configurable step of the customization flow."""

    step_type: StepType  # Must be set by subclass
    state: FlowState  # Controller state while this step is active
    finalizes: bool = False  # True if completing the step always goes to cart

    def enter(self, ctx: FlowContext) -> StepOutcome:
        """
        Load the step's data for the session, once.

        Later calls return the cached outcome.
        """
        outcome = ctx.outcomes.get(self.step_type)
        if outcome is None:
            outcome = self.load(ctx)
            ctx.outcomes[self.step_type] = outcome
        return outcome

    @abstractmethod
    def load(self, ctx: FlowContext) -> StepOutcome:
        pass

    @abstractmethod
    def apply(self, ctx: FlowContext, choice: StepChoice) -> None:
        """
        Fold a choice into the session.

        Raises:
            FlowValidationError: the choice cannot be accepted; the session
                is left unchanged
        """
        pass

    def _find(self, ctx: FlowContext, option_id: str) -> Any:
        outcome = self.enter(ctx)
        for option in outcome.options:
            if option.id == option_id:
                return option
        raise FlowValidationError("Opção indisponível para este tamanho")


class FlavorStep(FlowStep):
    """Entry step. Flavors are toggled one by one, then confirmed here."""

    step_type = StepType.FLAVOR
    state = FlowState.FLAVOR_SELECTION

    def load(self, ctx: FlowContext) -> StepOutcome:
        options = ctx.prices.options_for_size(ctx.category_id, ctx.size.id, OptionKind.FLAVOR)
        return StepOutcome(self.step_type, applicable=bool(options), options=options)

    def apply(self, ctx: FlowContext, choice: StepChoice) -> None:
        if not ctx.selection.flavors:
            raise FlowValidationError("Selecione pelo menos 1 sabor")
        ctx.calculated_price = ctx.selection.flavors_price()


class _AttributeStep(FlowStep):
    """Single optional attribute priced per size (edge, dough)."""

    kind: OptionKind

    def load(self, ctx: FlowContext) -> StepOutcome:
        options = ctx.prices.options_for_size(ctx.category_id, ctx.size.id, self.kind)
        return StepOutcome(self.step_type, applicable=bool(options), options=options)

    def apply(self, ctx: FlowContext, choice: StepChoice) -> None:
        option = self._find(ctx, choice.option_id) if choice.option_id else None
        self.assign(ctx.selection, option)

    @abstractmethod
    def assign(self, selection: Selection, option: Optional[PriceableOption]) -> None:
        pass


class EdgeStep(_AttributeStep):
    step_type = StepType.EDGE
    state = FlowState.EDGE_SELECTION
    kind = OptionKind.EDGE

    def assign(self, selection: Selection, option: Optional[PriceableOption]) -> None:
        selection.set_edge(option)


class DoughStep(_AttributeStep):
    step_type = StepType.DOUGH
    state = FlowState.DOUGH_SELECTION
    kind = OptionKind.DOUGH

    def assign(self, selection: Selection, option: Optional[PriceableOption]) -> None:
        selection.set_dough(option)


class DrinkStep(FlowStep):
    """Last customization step; a choice or a skip always finalizes."""

    step_type = StepType.DRINK
    state = FlowState.DRINK_SELECTION
    finalizes = True

    def load(self, ctx: FlowContext) -> StepOutcome:
        drinks = safe_fetch(
            f"drinks for store {ctx.store_id}",
            ctx.gateway.fetch_drinks, ctx.store_id, DRINK_SUGGESTION_LIMIT,
        )
        return StepOutcome(self.step_type, applicable=bool(drinks), options=drinks)

    def apply(self, ctx: FlowContext, choice: StepChoice) -> None:
        ctx.drink = self._find(ctx, choice.option_id) if choice.option_id else None


def _apply_additionals(
    selection: Selection, offered: list[AdditionalItem], quantities: dict[str, int]
) -> None:
    by_id = {item.id: item for item in offered}
    unknown = [item_id for item_id in quantities if item_id not in by_id]
    if unknown:
        raise FlowValidationError("Adicional indisponível")
    for item_id, quantity in quantities.items():
        selection.set_additional_quantity(by_id[item_id], quantity)


class AdditionalsStep(FlowStep):
    """Multi-select quantity picker over the category's add-ons."""

    step_type = StepType.ADDITIONALS
    state = FlowState.ADDITIONALS_SELECTION

    def load(self, ctx: FlowContext) -> StepOutcome:
        items = safe_fetch(
            f"additionals for category {ctx.category_id}",
            ctx.gateway.fetch_additionals, ctx.store_id, ctx.category_id,
        )
        return StepOutcome(self.step_type, applicable=bool(items), options=items)

    def apply(self, ctx: FlowContext, choice: StepChoice) -> None:
        _apply_additionals(ctx.selection, self.enter(ctx).options, choice.additionals)


class ComboStep(FlowStep):
    """Edge, dough and add-ons on a single screen."""

    step_type = StepType.COMBO
    state = FlowState.COMBO_SELECTION

    def load(self, ctx: FlowContext) -> StepOutcome:
        combo = load_combo_options(ctx.gateway, ctx.prices, ctx.store_id, ctx.category_id, ctx.size.id)
        return StepOutcome(self.step_type, applicable=not combo.is_empty(), combo=combo)

    def apply(self, ctx: FlowContext, choice: StepChoice) -> None:
        combo = self.enter(ctx).combo or ComboOptions()
        apply_combo_choice(ctx.selection, combo, choice)


def load_combo_options(
    gateway: CatalogGateway,
    prices: CatalogPriceResolver,
    store_id: str,
    category_id: str,
    size_id: Optional[str],
) -> ComboOptions:
    """Edges and doughs need a size; without one only add-ons are offered."""
    edges: list[PriceableOption] = []
    doughs: list[PriceableOption] = []
    if size_id:
        edges = prices.options_for_size(category_id, size_id, OptionKind.EDGE)
        doughs = prices.options_for_size(category_id, size_id, OptionKind.DOUGH)
    additionals = safe_fetch(
        f"combo additionals for category {category_id}",
        gateway.fetch_additionals, store_id, category_id, True,
    )
    return ComboOptions(edges=edges, doughs=doughs, additionals=additionals)


def apply_combo_choice(selection: Selection, combo: ComboOptions, choice: StepChoice) -> None:
    """
    Validate a combo choice in full, then apply it.

    An omitted edge or dough keeps what the selection already holds, so a
    combo screen after an edge or dough step does not undo that step.

    Raises:
        FlowValidationError: an id is not offered; selection is unchanged
    """
    edges = {e.id: e for e in combo.edges}
    doughs = {d.id: d for d in combo.doughs}
    if choice.edge_id and choice.edge_id not in edges:
        raise FlowValidationError("Borda indisponível para este tamanho")
    if choice.dough_id and choice.dough_id not in doughs:
        raise FlowValidationError("Massa indisponível para este tamanho")

    _apply_additionals(selection, combo.additionals, choice.additionals)
    if choice.edge_id:
        selection.set_edge(edges[choice.edge_id])
    elif choice.clear_edge:
        selection.set_edge(None)
    if choice.dough_id:
        selection.set_dough(doughs[choice.dough_id])
    elif choice.clear_dough:
        selection.set_dough(None)


class StepRegistry:
    """
    Registry for step variants.

    The controller uses this to look up steps by type.
    """

    def __init__(self):
        self._steps: dict[StepType, FlowStep] = {}

    def register(self, step: FlowStep) -> None:
        self._steps[step.step_type] = step

    def get(self, step_type: StepType | str | None) -> Optional[FlowStep]:
        if step_type is None:
            return None
        try:
            return self._steps.get(StepType(step_type))
        except ValueError:
            return None

    def __contains__(self, step_type: StepType) -> bool:
        return step_type in self._steps


def default_step_registry() -> StepRegistry:
    registry = StepRegistry()
    for step in (FlavorStep(), EdgeStep(), DoughStep(), DrinkStep(), AdditionalsStep(), ComboStep()):
        registry.register(step)
    return registry
