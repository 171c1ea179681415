"""
State Machine for the product customization flow.

One FlowController drives one customer through a product's configurable
steps: a size is chosen, flavors are selected, then the category's
configured chain decides which of edge, dough, add-ons, combo and drink are
offered before the item is committed to the cart.

    IDLE -> SIZE_CHOSEN -> FLAVOR_SELECTION -> (configured steps) -> CART -> IDLE

Reaching CART builds one FinalizedLineItem, inserts it plus any drink and
add-on lines into the cart, resets the session and hands off to the upsell
sequencer with the same trigger category.

Validation problems (no flavor, flavor cap) never leave the current state;
they are reported through the Notifier and in the FlowResult.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Optional

from .errors import FetchFailure, FlowValidationError, InvalidTransition, StoreClosed
from .interfaces import CartSink, CatalogGateway, Notifier
from .line_items import build_additional_lines, build_drink_line, build_line_item
from .models import (
    CART,
    CartLine,
    Category,
    FinalizedLineItem,
    FlowState,
    PizzaSize,
    StepType,
    StoreFlowConfig,
)
from .pricing import CatalogPriceResolver
from .selection import Selection
from .step_config import FlowStepResolver
from .steps import ComboOptions, FlowContext, FlowStep, StepChoice, StepRegistry, default_step_registry

logger = logging.getLogger(__name__)

NO_FLAVORS_MESSAGE = "Nenhum sabor disponível para este tamanho"
ITEM_ADDED_MESSAGE = "Pizza adicionada ao carrinho!"
ITEM_AND_DRINK_ADDED_MESSAGE = "Pizza e bebida adicionadas!"

# States in which a step is waiting for the customer
STEP_STATES = {
    FlowState.FLAVOR_SELECTION,
    FlowState.EDGE_SELECTION,
    FlowState.DOUGH_SELECTION,
    FlowState.DRINK_SELECTION,
    FlowState.ADDITIONALS_SELECTION,
    FlowState.COMBO_SELECTION,
}


@dataclass
class UpsellHandoff:
    """Everything the upsell sequencer needs after a finalization."""
    store_id: str
    trigger_category_id: str
    size: Optional[PizzaSize] = None


@dataclass
class FlowResult:
    """Result from a controller operation."""
    state: FlowState
    step: Optional[StepType] = None
    options: list[Any] = field(default_factory=list)
    combo: Optional[ComboOptions] = None
    total: float = 0.0
    error: Optional[str] = None
    line_item: Optional[FinalizedLineItem] = None
    ancillary_lines: list[CartLine] = field(default_factory=list)
    upsell: Optional[UpsellHandoff] = None

    @property
    def is_complete(self) -> bool:
        return self.line_item is not None


class FlowController:
    """
    Drives one customization session.

    Each customer interaction owns its own controller; nothing is shared
    between controllers, so no locking is needed.
    """

    def __init__(
        self,
        store_id: str,
        gateway: CatalogGateway,
        cart: CartSink,
        notifier: Notifier,
        flow_config: StoreFlowConfig | None = None,
        is_store_open: Callable[[], bool] | None = None,
        steps: StepRegistry | None = None,
    ):
        self.store_id = store_id
        self._gateway = gateway
        self._cart = cart
        self._notifier = notifier
        self._steps = steps or default_step_registry()
        self._resolver = FlowStepResolver(flow_config) if flow_config is not None else None
        self._is_store_open = is_store_open or self._store_open_from_gateway
        self.state = FlowState.IDLE
        self._ctx: Optional[FlowContext] = None
        self._current_step: Optional[FlowStep] = None

    # =========================================================================
    # Accessors
    # =========================================================================

    @property
    def selection(self) -> Optional[Selection]:
        return self._ctx.selection if self._ctx else None

    @property
    def size(self) -> Optional[PizzaSize]:
        return self._ctx.size if self._ctx else None

    @property
    def category(self) -> Optional[Category]:
        return self._ctx.category if self._ctx else None

    @property
    def calculated_price(self) -> float:
        return self._ctx.calculated_price if self._ctx else 0.0

    @property
    def current_step(self) -> Optional[StepType]:
        return self._current_step.step_type if self._current_step else None

    @property
    def resolver(self) -> FlowStepResolver:
        if self._resolver is None:
            try:
                flow_config = self._gateway.fetch_flow_config(self.store_id)
            except FetchFailure as e:
                logger.warning("Failed to fetch flow config for store %s: %s", self.store_id, e.message)
                flow_config = {}
            self._resolver = FlowStepResolver(flow_config)
        return self._resolver

    def is_store_open(self) -> bool:
        return self._is_store_open()

    def _store_open_from_gateway(self) -> bool:
        try:
            return self._gateway.is_store_open(self.store_id)
        except FetchFailure as e:
            logger.warning("Failed to fetch status for store %s: %s", self.store_id, e.message)
            return False

    # =========================================================================
    # Results
    # =========================================================================

    def view(self, error: Optional[str] = None) -> FlowResult:
        """Describe the current state and what the active step offers."""
        result = FlowResult(state=self.state, error=error)
        if self._ctx is not None:
            result.total = self._ctx.selection.total()
        if self._current_step is not None and self._ctx is not None:
            outcome = self._current_step.enter(self._ctx)
            result.step = outcome.step_type
            result.options = list(outcome.options)
            result.combo = outcome.combo
        return result

    def _reject(self, message: str) -> FlowResult:
        logger.info("Rejected in state %s: %s", self.state.value, message)
        self._notifier.error(message)
        return self.view(error=message)

    def _require_state(self, operation: str, *states: FlowState) -> None:
        if self.state not in states:
            raise InvalidTransition(operation, self.state.value)

    # =========================================================================
    # Transitions
    # =========================================================================

    def select_size(self, category: Category, size: PizzaSize) -> FlowResult:
        """
        Start a customization session for a size (IDLE -> SIZE_CHOSEN -> FLAVOR_SELECTION).

        Choosing a size while a session is in progress starts over with an
        empty selection. Refused without any state change when the store is
        closed.
        """
        if not self.is_store_open():
            return self._reject(StoreClosed().message)
        if size.category_id != category.id:
            return self._reject("Tamanho não pertence a esta categoria")

        self._reset()
        self._ctx = FlowContext(
            store_id=self.store_id,
            category=category,
            size=size,
            selection=Selection(size=size),
            prices=CatalogPriceResolver(self._gateway),
            gateway=self._gateway,
        )
        self.state = FlowState.SIZE_CHOSEN
        logger.info(
            "Size chosen: category=%s size=%s max_flavors=%d base_price=%.2f",
            category.id, size.id, size.max_flavors, size.base_price,
        )

        flavor_step = self._steps.get(StepType.FLAVOR)
        outcome = flavor_step.enter(self._ctx)
        if not outcome.applicable:
            self._reset()
            return self._reject(NO_FLAVORS_MESSAGE)

        return self._enter(flavor_step)

    def toggle_flavor(self, flavor_id: str) -> FlowResult:
        self._require_state("toggle a flavor", FlowState.FLAVOR_SELECTION)

        outcome = self._current_step.enter(self._ctx)
        option = next((o for o in outcome.options if o.id == flavor_id), None)
        if option is None:
            return self._reject("Sabor indisponível para este tamanho")

        try:
            self._ctx.selection.toggle_flavor(option)
        except FlowValidationError as e:
            return self._reject(e.message)
        return self.view()

    def set_notes(self, notes: str) -> FlowResult:
        self._require_state("set notes", *STEP_STATES)
        self._ctx.selection.notes = notes.strip()
        return self.view()

    def continue_flavors(self) -> FlowResult:
        """Leave the flavor step; needs at least one flavor."""
        self._require_state("continue", FlowState.FLAVOR_SELECTION)
        return self.complete_step(StepChoice())

    def choose_edge(self, edge_id: Optional[str]) -> FlowResult:
        self._require_state("choose an edge", FlowState.EDGE_SELECTION)
        return self.complete_step(StepChoice(option_id=edge_id))

    def choose_dough(self, dough_id: Optional[str]) -> FlowResult:
        self._require_state("choose a dough", FlowState.DOUGH_SELECTION)
        return self.complete_step(StepChoice(option_id=dough_id))

    def choose_drink(self, product_id: Optional[str]) -> FlowResult:
        self._require_state("choose a drink", FlowState.DRINK_SELECTION)
        return self.complete_step(StepChoice(option_id=product_id))

    def choose_additionals(self, quantities: dict[str, int]) -> FlowResult:
        self._require_state("choose additionals", FlowState.ADDITIONALS_SELECTION)
        return self.complete_step(StepChoice(additionals=quantities))

    def confirm_combo(
        self,
        edge_id: Optional[str] = None,
        dough_id: Optional[str] = None,
        additionals: dict[str, int] | None = None,
        clear_edge: bool = False,
        clear_dough: bool = False,
    ) -> FlowResult:
        """Confirm the combo screen. An omitted edge or dough keeps the current one."""
        self._require_state("confirm a combo", FlowState.COMBO_SELECTION)
        return self.complete_step(
            StepChoice(
                edge_id=edge_id,
                dough_id=dough_id,
                clear_edge=clear_edge,
                clear_dough=clear_dough,
                additionals=additionals or {},
            )
        )

    def complete_step(self, choice: StepChoice | None = None) -> FlowResult:
        """
        Apply a choice to the active step and move to the next one.

        The next step is resolved from the category's chain; reaching "cart"
        or the end of the chain finalizes the item.
        """
        self._require_state("complete a step", *STEP_STATES)
        step = self._current_step
        try:
            step.apply(self._ctx, choice or StepChoice())
        except FlowValidationError as e:
            return self._reject(e.message)

        if step.finalizes:
            return self._finalize()

        target = self.resolver.navigate_to_next_enabled_step(
            self._ctx.category_id, step.step_type.value, is_applicable=self._is_applicable,
        )
        if target is None or target == CART:
            return self._finalize()
        return self._enter(self._steps.get(target))

    def cancel(self) -> FlowResult:
        """Abandon the session; nothing is added to the cart."""
        if self.state != FlowState.IDLE:
            logger.info("Customization cancelled in state %s", self.state.value)
        self._reset()
        return self.view()

    # =========================================================================
    # Internals
    # =========================================================================

    def _is_applicable(self, step_value: str) -> bool:
        step = self._steps.get(step_value)
        if step is None or step.step_type == StepType.FLAVOR:
            return False
        if step.step_type in self._ctx.visited:
            return False
        return step.enter(self._ctx).applicable

    def _enter(self, step: FlowStep) -> FlowResult:
        self._current_step = step
        self._ctx.visited.add(step.step_type)
        self.state = step.state
        logger.debug("Entered step %s", step.step_type.value)
        return self.view()

    def _finalize(self) -> FlowResult:
        ctx = self._ctx
        self.state = FlowState.CART

        line_item = build_line_item(ctx.category, ctx.size, ctx.selection, ctx.calculated_price)
        ancillary: list[CartLine] = []
        if ctx.drink is not None:
            ancillary.append(build_drink_line(ctx.drink))
        ancillary.extend(build_additional_lines(ctx.selection.selected_additionals()))

        self._cart.add_line(line_item)
        for line in ancillary:
            self._cart.add_line(line)

        self._notifier.success(ITEM_AND_DRINK_ADDED_MESSAGE if ctx.drink else ITEM_ADDED_MESSAGE)
        logger.info(
            "Finalized %s at %.2f (%d ancillary lines)",
            line_item.name, line_item.unit_price, len(ancillary),
        )

        handoff = UpsellHandoff(
            store_id=self.store_id,
            trigger_category_id=ctx.category.id,
            size=ctx.size,
        )
        self._reset()
        return FlowResult(
            state=self.state,
            line_item=line_item,
            ancillary_lines=ancillary,
            upsell=handoff,
        )

    def _reset(self) -> None:
        self._ctx = None
        self._current_step = None
        self.state = FlowState.IDLE
