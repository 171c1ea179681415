"""
Post-Completion Upsell Sequencer.

After a customized item reaches the cart, the store may have configured a
queue of promotional prompts for the item's category. The sequencer fetches
that queue once and walks it by index:

    start() -> prompt 0 -> advance -> prompt 1 -> ... -> closed

Each prompt is handled according to its content_type:

- drink / generic: quick-add from a short product list, or browse
- pizza_edges / pizza_doughs: single-attribute picker for the item's size
- additionals: multi-select quantity picker grouped by option group
- combo: edge + dough + add-ons on one screen, reported with a total

A redirect category on a prompt takes precedence over the default action:
it closes the whole sequencer and tells the caller where to navigate.
current_index never decreases, so no prompt is ever shown twice.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from .errors import FetchFailure, FlowValidationError, InvalidTransition
from .interfaces import CartSink, CatalogGateway, Notifier, ProductBrowser
from .line_items import build_additional_lines, build_attribute_line, build_product_line
from .models import (
    AdditionalItem,
    CartLine,
    ComboSelections,
    ContentType,
    OptionKind,
    PizzaSize,
    PriceableOption,
    Product,
    UpsellPromptConfig,
)
from .pricing import CatalogPriceResolver
from .selection import Selection
from .steps import ComboOptions, StepChoice, apply_combo_choice, load_combo_options, safe_fetch

logger = logging.getLogger(__name__)


class UpsellAction(str, Enum):
    ADVANCE = "advance"
    NAVIGATE = "navigate"
    CLOSE = "close"


@dataclass
class UpsellEvent:
    """One observable outcome of the sequencer."""
    action: UpsellAction
    prompt_id: Optional[str] = None
    index: int = -1
    lines: list[CartLine] = field(default_factory=list)
    total: float = 0.0
    combo: Optional[ComboSelections] = None
    redirect_category_id: Optional[str] = None


@dataclass
class PromptView:
    """Data loaded for the prompt being shown."""
    prompt: UpsellPromptConfig
    products: list[Product] = field(default_factory=list)
    options: list[PriceableOption] = field(default_factory=list)
    additionals: list[AdditionalItem] = field(default_factory=list)
    combo: Optional[ComboOptions] = None

    def grouped_additionals(self) -> dict[str, list[AdditionalItem]]:
        groups: dict[str, list[AdditionalItem]] = {}
        for item in self.additionals:
            groups.setdefault(item.group_name, []).append(item)
        return groups


@dataclass
class UpsellContext:
    store_id: str
    trigger_category_id: str
    size: Optional[PizzaSize]
    gateway: CatalogGateway
    prices: CatalogPriceResolver
    browser: Optional[ProductBrowser] = None


@dataclass
class Confirmation:
    lines: list[CartLine]
    total: float
    combo: Optional[ComboSelections] = None


# =============================================================================
# Prompt handlers
# =============================================================================

class PromptHandler(ABC):
    """Behaviour of one family of prompt content types."""

    content_types: tuple[ContentType, ...] = ()
    is_picker: bool = True  # pickers are confirmed with a StepChoice

    @abstractmethod
    def load(self, ctx: UpsellContext, prompt: UpsellPromptConfig) -> PromptView:
        pass

    def has_nothing_to_offer(self, view: PromptView) -> bool:
        """True if the prompt should be passed over without being shown."""
        return False

    def confirm(
        self, ctx: UpsellContext, view: PromptView, choice: StepChoice
    ) -> Confirmation:
        raise InvalidTransition("confirm", view.prompt.content_type.value)


class ProductPromptHandler(PromptHandler):
    """Title, description, quick-add list and a skip button."""

    content_types = (ContentType.DRINK, ContentType.GENERIC)
    is_picker = False

    def load(self, ctx: UpsellContext, prompt: UpsellPromptConfig) -> PromptView:
        products = safe_fetch(
            f"quick-add products for prompt {prompt.id}",
            ctx.gateway.fetch_quick_add_products, ctx.store_id, prompt,
        )
        return PromptView(prompt=prompt, products=products[: prompt.max_products])


class AttributePromptHandler(PromptHandler):
    """Edge or dough picker for the size of the item just added."""

    def __init__(self, content_type: ContentType, kind: OptionKind, label: str):
        self.content_types = (content_type,)
        self.kind = kind
        self.label = label

    def load(self, ctx: UpsellContext, prompt: UpsellPromptConfig) -> PromptView:
        options: list[PriceableOption] = []
        if ctx.size is not None:
            category_id = prompt.target_category_id or ctx.trigger_category_id
            options = ctx.prices.options_for_size(category_id, ctx.size.id, self.kind)
        return PromptView(prompt=prompt, options=options)

    def has_nothing_to_offer(self, view: PromptView) -> bool:
        return not view.options

    def confirm(
        self, ctx: UpsellContext, view: PromptView, choice: StepChoice
    ) -> Confirmation:
        if not choice.option_id:
            return Confirmation(lines=[], total=0.0)
        option = next((o for o in view.options if o.id == choice.option_id), None)
        if option is None:
            raise FlowValidationError("Opção indisponível para este tamanho")
        return Confirmation(lines=[build_attribute_line(self.label, option)], total=option.price)


class AdditionalsPromptHandler(PromptHandler):
    content_types = (ContentType.ADDITIONALS,)

    def load(self, ctx: UpsellContext, prompt: UpsellPromptConfig) -> PromptView:
        category_id = prompt.target_category_id or ctx.trigger_category_id
        items = safe_fetch(
            f"additionals for category {category_id}",
            ctx.gateway.fetch_additionals, ctx.store_id, category_id,
        )
        return PromptView(prompt=prompt, additionals=items)

    def has_nothing_to_offer(self, view: PromptView) -> bool:
        return not view.additionals

    def confirm(
        self, ctx: UpsellContext, view: PromptView, choice: StepChoice
    ) -> Confirmation:
        selection = Selection(size=ctx.size)
        offered = {item.id: item for item in view.additionals}
        for item_id in choice.additionals:
            if item_id not in offered:
                raise FlowValidationError("Adicional indisponível")
        for item_id, quantity in choice.additionals.items():
            selection.set_additional_quantity(offered[item_id], quantity)
        return Confirmation(
            lines=build_additional_lines(selection.selected_additionals()),
            total=selection.additionals_total(),
        )


class ComboPromptHandler(PromptHandler):
    """Always shown, even when empty; the customer can still skip."""

    content_types = (ContentType.COMBO,)

    def load(self, ctx: UpsellContext, prompt: UpsellPromptConfig) -> PromptView:
        category_id = prompt.target_category_id or ctx.trigger_category_id
        size_id = ctx.size.id if ctx.size else None
        combo = load_combo_options(ctx.gateway, ctx.prices, ctx.store_id, category_id, size_id)
        return PromptView(prompt=prompt, combo=combo)

    def confirm(
        self, ctx: UpsellContext, view: PromptView, choice: StepChoice
    ) -> Confirmation:
        selection = Selection(size=ctx.size)
        apply_combo_choice(selection, view.combo or ComboOptions(), choice)

        lines: list[CartLine] = []
        if selection.edge:
            lines.append(build_attribute_line("Borda", selection.edge))
        if selection.dough:
            lines.append(build_attribute_line("Massa", selection.dough))
        lines.extend(build_additional_lines(selection.selected_additionals()))
        return Confirmation(lines=lines, total=selection.extras_total(), combo=selection.to_combo())


def default_prompt_handlers() -> dict[ContentType, PromptHandler]:
    handlers: list[PromptHandler] = [
        ProductPromptHandler(),
        AttributePromptHandler(ContentType.PIZZA_EDGES, OptionKind.EDGE, "Borda"),
        AttributePromptHandler(ContentType.PIZZA_DOUGHS, OptionKind.DOUGH, "Massa"),
        AdditionalsPromptHandler(),
        ComboPromptHandler(),
    ]
    registry: dict[ContentType, PromptHandler] = {}
    for handler in handlers:
        for content_type in handler.content_types:
            registry[content_type] = handler
    return registry


# =============================================================================
# Sequencer
# =============================================================================

class UpsellSequencer:
    """Walks the ordered prompts of one trigger category, once."""

    def __init__(
        self,
        store_id: str,
        trigger_category_id: str,
        gateway: CatalogGateway,
        cart: CartSink,
        notifier: Notifier,
        size: Optional[PizzaSize] = None,
        browser: Optional[ProductBrowser] = None,
        handlers: dict[ContentType, PromptHandler] | None = None,
    ):
        self._ctx = UpsellContext(
            store_id=store_id,
            trigger_category_id=trigger_category_id,
            size=size,
            gateway=gateway,
            prices=CatalogPriceResolver(gateway),
            browser=browser,
        )
        self._cart = cart
        self._notifier = notifier
        self._handlers = handlers or default_prompt_handlers()

        self.prompts: list[UpsellPromptConfig] = []
        self.current_index: int = 0
        self.is_showing_quick_add_products: bool = False
        self.is_closed: bool = False
        self.redirect_category_id: Optional[str] = None
        self.events: list[UpsellEvent] = []
        self._view: Optional[PromptView] = None

    @classmethod
    def from_handoff(cls, handoff, gateway, cart, notifier, browser=None) -> "UpsellSequencer":
        return cls(
            store_id=handoff.store_id,
            trigger_category_id=handoff.trigger_category_id,
            gateway=gateway,
            cart=cart,
            notifier=notifier,
            size=handoff.size,
            browser=browser,
        )

    # =========================================================================
    # Accessors
    # =========================================================================

    @property
    def current_prompt(self) -> Optional[UpsellPromptConfig]:
        if self.is_closed or self.current_index >= len(self.prompts):
            return None
        return self.prompts[self.current_index]

    @property
    def view(self) -> Optional[PromptView]:
        return None if self.is_closed else self._view

    @property
    def advance_count(self) -> int:
        return sum(1 for e in self.events if e.action == UpsellAction.ADVANCE)

    @property
    def last_confirmation(self) -> Optional[UpsellEvent]:
        """Most recent event that added lines or reported a combo."""
        for event in reversed(self.events):
            if event.lines or event.combo is not None:
                return event
        return None

    def _handler(self, prompt: UpsellPromptConfig) -> PromptHandler:
        return self._handlers.get(prompt.content_type) or self._handlers[ContentType.GENERIC]

    def _require_open(self, operation: str) -> UpsellPromptConfig:
        prompt = self.current_prompt
        if prompt is None:
            raise InvalidTransition(operation, "closed")
        return prompt

    # =========================================================================
    # Lifecycle
    # =========================================================================

    def start(self) -> "UpsellSequencer":
        """Fetch the prompt queue and show the first prompt, or close at once."""
        try:
            prompts = self._ctx.gateway.fetch_upsell_prompts(
                self._ctx.store_id, self._ctx.trigger_category_id
            )
        except FetchFailure as e:
            logger.warning(
                "Failed to fetch upsell prompts for category %s: %s",
                self._ctx.trigger_category_id, e.message,
            )
            prompts = []

        self.prompts = sorted(prompts, key=lambda p: p.display_order)
        self.current_index = 0
        if not self.prompts:
            logger.debug("No upsell prompts for category %s", self._ctx.trigger_category_id)
            self._close()
            return self

        self._show_current()
        return self

    def _show_current(self) -> None:
        while self.current_index < len(self.prompts):
            prompt = self.prompts[self.current_index]
            handler = self._handler(prompt)
            self._view = handler.load(self._ctx, prompt)
            if not handler.has_nothing_to_offer(self._view):
                logger.debug("Showing upsell prompt %s (%s)", prompt.id, prompt.content_type.value)
                return
            logger.debug("Upsell prompt %s has nothing to offer; passing over", prompt.id)
            self._record(UpsellAction.ADVANCE, prompt)
            self.current_index += 1
        self._close()

    def _record(self, action: UpsellAction, prompt: Optional[UpsellPromptConfig], **kwargs) -> UpsellEvent:
        event = UpsellEvent(
            action=action,
            prompt_id=prompt.id if prompt else None,
            index=self.current_index,
            **kwargs,
        )
        self.events.append(event)
        return event

    def _advance(self, prompt: UpsellPromptConfig, **kwargs) -> "UpsellSequencer":
        self._record(UpsellAction.ADVANCE, prompt, **kwargs)
        self.current_index += 1
        self.is_showing_quick_add_products = False
        self._show_current()
        return self

    def _navigate(self, prompt: UpsellPromptConfig, category_id: str, **kwargs) -> "UpsellSequencer":
        logger.info("Upsell prompt %s redirects to category %s", prompt.id, category_id)
        self._record(UpsellAction.NAVIGATE, prompt, redirect_category_id=category_id, **kwargs)
        self.redirect_category_id = category_id
        self._close()
        return self

    def _close(self) -> None:
        if not self.is_closed:
            self.is_closed = True
            self.is_showing_quick_add_products = False
            self._view = None
            self._record(UpsellAction.CLOSE, None)

    def _add_lines(self, lines: list[CartLine]) -> None:
        for line in lines:
            self._cart.add_line(line)

    # =========================================================================
    # Customer actions
    # =========================================================================

    def primary(self) -> "UpsellSequencer":
        """
        Primary button.

        Product prompts first reveal their quick-add list; pressing primary
        again, or pressing it when there is nothing to quick-add, continues.
        Picker prompts confirm an empty choice.
        """
        prompt = self._require_open("press the primary action")
        if prompt.primary_redirect_category_id:
            return self._navigate(prompt, prompt.primary_redirect_category_id)

        handler = self._handler(prompt)
        if handler.is_picker:
            return self.confirm(StepChoice())

        if self._view.products and not self.is_showing_quick_add_products:
            self.is_showing_quick_add_products = True
            return self

        if not self._view.products and self._ctx.browser is not None:
            self._ctx.browser.browse(self._ctx.store_id, prompt.target_category_id)
        return self._advance(prompt)

    def secondary(self) -> "UpsellSequencer":
        """Secondary button: skip, unless it redirects."""
        prompt = self._require_open("press the secondary action")
        if prompt.secondary_redirect_category_id:
            return self._navigate(prompt, prompt.secondary_redirect_category_id)
        return self._advance(prompt)

    skip = secondary

    def back(self) -> "UpsellSequencer":
        prompt = self._require_open("go back")
        return self._advance(prompt)

    def quick_add(self, product_id: str) -> "UpsellSequencer":
        prompt = self._require_open("quick-add a product")
        if self._handler(prompt).is_picker:
            raise InvalidTransition("quick-add a product", prompt.content_type.value)

        product = next((p for p in self._view.products if p.id == product_id), None)
        if product is None:
            self._notifier.error("Produto indisponível")
            return self

        line = build_product_line(product)
        self._cart.add_line(line)
        self._notifier.success(f"{product.name} adicionado!")
        return self._advance(prompt, lines=[line], total=line.line_total)

    def confirm(self, choice: StepChoice | None = None) -> "UpsellSequencer":
        """Confirm a picker prompt. Invalid choices leave the prompt showing."""
        prompt = self._require_open("confirm")
        handler = self._handler(prompt)
        try:
            confirmation = handler.confirm(self._ctx, self._view, choice or StepChoice())
        except FlowValidationError as e:
            self._notifier.error(e.message)
            return self

        self._add_lines(confirmation.lines)
        kwargs = dict(lines=confirmation.lines, total=confirmation.total, combo=confirmation.combo)
        if prompt.primary_redirect_category_id:
            return self._navigate(prompt, prompt.primary_redirect_category_id, **kwargs)
        return self._advance(prompt, **kwargs)
