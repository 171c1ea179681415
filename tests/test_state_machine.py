"""
Tests for the customization FlowController.

Covers the full size -> flavors -> configured steps -> cart path, store and
validation rejections, configured chains (skip, disable, cycle) and
cancellation.
"""

import pytest

from storefront_flow.flow.errors import InvalidTransition
from storefront_flow.flow.models import FlowState, FlowStepConfig, PizzaSize, StepType
from storefront_flow.flow.state_machine import (
    ITEM_ADDED_MESSAGE,
    ITEM_AND_DRINK_ADDED_MESSAGE,
    NO_FLAVORS_MESSAGE,
    FlowController,
)

from conftest import (
    BACON,
    CATUPIRY,
    CHEDDAR,
    COKE,
    LARGE,
    MARGHERITA,
    MEDIUM,
    OLIVES,
    PEPPERONI,
    PIZZA,
    SHRIMP,
    SMALL,
    WHOLE_WHEAT,
)


def _chain(*nodes):
    return {step: FlowStepConfig(enabled=enabled, next_step_id=nxt) for step, enabled, nxt in nodes}


@pytest.fixture
def controller(gateway, cart, notifier):
    return FlowController("store-1", gateway, cart, notifier)


def _messages(notifier):
    return [(n.level, n.message) for n in notifier.drain()]


class TestSelectSize:
    """Entering a customization."""

    def test_select_size_enters_flavor_selection(self, controller):
        result = controller.select_size(PIZZA, LARGE)
        assert result.state == FlowState.FLAVOR_SELECTION
        assert result.step == StepType.FLAVOR
        assert [o.id for o in result.options][:2] == [MARGHERITA.id, PEPPERONI.id]
        assert controller.size == LARGE
        assert controller.selection.flavors == []

    def test_store_closed_rejects_without_state_change(self, controller, gateway, notifier):
        """Test that a closed store blocks the entry transition."""
        gateway.store_open = False
        result = controller.select_size(PIZZA, LARGE)
        assert result.state == FlowState.IDLE
        assert result.error == "Estabelecimento fechado"
        assert _messages(notifier) == [("error", "Estabelecimento fechado")]
        assert controller.selection is None

    def test_store_status_failure_counts_as_closed(self, controller, gateway):
        gateway.failing.add("is_store_open")
        result = controller.select_size(PIZZA, LARGE)
        assert result.state == FlowState.IDLE
        assert result.error == "Estabelecimento fechado"

    def test_size_without_flavors_is_rejected(self, controller, notifier):
        """Test that a size with no priced flavors cannot be customized."""
        result = controller.select_size(PIZZA, SMALL)
        assert result.state == FlowState.IDLE
        assert result.error == NO_FLAVORS_MESSAGE
        assert controller.selection is None

    def test_size_from_other_category_is_rejected(self, controller):
        stray = PizzaSize(id="size-x", name="X", category_id="cat-other", max_flavors=1, base_price=10.0)
        result = controller.select_size(PIZZA, stray)
        assert result.state == FlowState.IDLE
        assert result.error is not None

    def test_reselecting_size_starts_over(self, controller):
        controller.select_size(PIZZA, LARGE)
        controller.toggle_flavor(MARGHERITA.id)
        controller.select_size(PIZZA, MEDIUM)
        assert controller.size == MEDIUM
        assert controller.selection.flavors == []


class TestFlavorSelection:
    """Flavor toggling and leaving the flavor step."""

    def test_toggle_past_cap_reports_error(self, controller, notifier):
        controller.select_size(PIZZA, LARGE)
        controller.toggle_flavor(MARGHERITA.id)
        controller.toggle_flavor(PEPPERONI.id)
        notifier.drain()

        result = controller.toggle_flavor(SHRIMP.id)

        assert result.error == "Máximo de 2 sabores"
        assert result.state == FlowState.FLAVOR_SELECTION
        assert len(controller.selection.flavors) == 2
        assert _messages(notifier) == [("error", "Máximo de 2 sabores")]

    def test_flavor_not_priced_for_size_is_rejected(self, controller):
        """Test that a flavor without a price row for the size cannot be picked."""
        controller.select_size(PIZZA, MEDIUM)
        result = controller.toggle_flavor(SHRIMP.id)
        assert result.error == "Sabor indisponível para este tamanho"
        assert controller.selection.flavors == []

    def test_continue_without_flavor_stays(self, controller):
        controller.select_size(PIZZA, LARGE)
        result = controller.continue_flavors()
        assert result.error == "Selecione pelo menos 1 sabor"
        assert result.state == FlowState.FLAVOR_SELECTION

    def test_total_tracks_selection(self, controller):
        controller.select_size(PIZZA, LARGE)
        result = controller.toggle_flavor(SHRIMP.id)
        assert result.total == 38.0

    def test_operations_outside_their_state_raise(self, controller):
        """Test that step operations in the wrong state raise InvalidTransition."""
        with pytest.raises(InvalidTransition):
            controller.choose_edge(CATUPIRY.id)

        controller.select_size(PIZZA, LARGE)
        with pytest.raises(InvalidTransition) as exc_info:
            controller.choose_dough(WHOLE_WHEAT.id)
        assert exc_info.value.state == "flavor_selection"


class TestDefaultChain:
    """A category without configured steps follows flavor -> edge -> dough -> drink -> cart."""

    def test_two_plain_flavors_no_extras(self, controller, cart, notifier):
        """Test the plain two-flavor pizza with every optional step skipped."""
        controller.select_size(PIZZA, LARGE)
        controller.toggle_flavor(MARGHERITA.id)
        controller.toggle_flavor(PEPPERONI.id)

        assert controller.continue_flavors().state == FlowState.EDGE_SELECTION
        assert controller.choose_edge(None).state == FlowState.DOUGH_SELECTION
        assert controller.choose_dough(None).state == FlowState.DRINK_SELECTION
        result = controller.choose_drink(None)

        assert result.is_complete
        assert result.state == FlowState.IDLE
        assert result.line_item.unit_price == 30.0
        assert result.line_item.description == "Margherita + Pepperoni"
        assert result.line_item.name == "Pizza Grande"
        assert result.line_item.quantity == 1
        assert cart.lines == [result.line_item]
        assert ("success", ITEM_ADDED_MESSAGE) in _messages(notifier)

    def test_premium_flavor_with_edge(self, controller):
        """Test that unit price = base + premium surcharge + edge."""
        controller.select_size(PIZZA, LARGE)
        controller.toggle_flavor(SHRIMP.id)
        controller.continue_flavors()
        controller.choose_edge(CATUPIRY.id)
        controller.choose_dough(None)
        result = controller.choose_drink(None)

        assert result.line_item.unit_price == 44.0
        assert result.line_item.description == "Camarão • Borda: Catupiry"

    def test_description_ordering_with_notes(self, controller):
        controller.select_size(PIZZA, LARGE)
        controller.toggle_flavor(MARGHERITA.id)
        controller.toggle_flavor(PEPPERONI.id)
        controller.continue_flavors()
        controller.set_notes("  sem cebola ")
        controller.choose_edge(CATUPIRY.id)
        controller.choose_dough(None)
        result = controller.choose_drink(None)

        assert result.line_item.description == "Margherita + Pepperoni • Borda: Catupiry • Obs: sem cebola"

    def test_drink_adds_separate_line(self, controller, cart, notifier):
        """Test that a chosen drink becomes its own line at its promotional price."""
        controller.select_size(PIZZA, LARGE)
        controller.toggle_flavor(MARGHERITA.id)
        controller.continue_flavors()
        controller.choose_edge(None)
        controller.choose_dough(WHOLE_WHEAT.id)
        result = controller.choose_drink(COKE.id)

        assert result.line_item.unit_price == 34.0
        assert len(result.ancillary_lines) == 1
        drink_line = result.ancillary_lines[0]
        assert drink_line.name == "Coca-Cola 2L"
        assert drink_line.unit_price == 10.0
        assert drink_line.category == "Bebidas"
        assert len(cart.lines) == 2
        assert ("success", ITEM_AND_DRINK_ADDED_MESSAGE) in _messages(notifier)

    def test_edge_step_skipped_when_size_has_no_edges(self, controller):
        """Test that an enabled edge step with no edges for the size is never entered."""
        controller.select_size(PIZZA, MEDIUM)
        controller.toggle_flavor(MARGHERITA.id)
        result = controller.continue_flavors()
        assert result.state == FlowState.DOUGH_SELECTION

    def test_drink_step_skipped_without_drinks(self, controller, gateway):
        gateway.drinks = []
        controller.select_size(PIZZA, LARGE)
        controller.toggle_flavor(MARGHERITA.id)
        controller.continue_flavors()
        controller.choose_edge(None)
        result = controller.choose_dough(None)
        assert result.is_complete

    def test_fetch_failures_skip_steps(self, controller, gateway):
        """Test that failing edge/dough/drink fetches make those steps inapplicable."""
        controller.select_size(PIZZA, LARGE)
        controller.toggle_flavor(MARGHERITA.id)
        gateway.failing.update({"fetch_options_for_size", "fetch_drinks"})
        result = controller.continue_flavors()
        assert result.is_complete

    def test_flow_config_failure_falls_back_to_default_chain(self, controller, gateway):
        gateway.failing.add("fetch_flow_config")
        controller.select_size(PIZZA, LARGE)
        controller.toggle_flavor(MARGHERITA.id)
        assert controller.continue_flavors().state == FlowState.EDGE_SELECTION

    def test_unknown_drink_is_rejected(self, controller):
        controller.select_size(PIZZA, LARGE)
        controller.toggle_flavor(MARGHERITA.id)
        controller.continue_flavors()
        controller.choose_edge(None)
        controller.choose_dough(None)
        result = controller.choose_drink("prod-nope")
        assert result.state == FlowState.DRINK_SELECTION
        assert result.error == "Opção indisponível para este tamanho"

    def test_handoff_to_upsell(self, controller):
        controller.select_size(PIZZA, LARGE)
        controller.toggle_flavor(MARGHERITA.id)
        controller.continue_flavors()
        controller.choose_edge(None)
        controller.choose_dough(None)
        result = controller.choose_drink(None)

        assert result.upsell.store_id == "store-1"
        assert result.upsell.trigger_category_id == PIZZA.id
        assert result.upsell.size == LARGE


class TestConfiguredChains:
    """Chains configured per category."""

    def test_disabled_step_is_skipped(self, gateway, cart, notifier):
        gateway.flow_config = {
            PIZZA.id: _chain(
                ("flavor", True, "edge"),
                ("edge", False, "dough"),
                ("dough", True, "cart"),
            )
        }
        controller = FlowController("store-1", gateway, cart, notifier)
        controller.select_size(PIZZA, LARGE)
        controller.toggle_flavor(MARGHERITA.id)
        assert controller.continue_flavors().state == FlowState.DOUGH_SELECTION
        assert controller.choose_dough(None).is_complete

    def test_flavor_straight_to_cart(self, gateway, cart, notifier):
        gateway.flow_config = {PIZZA.id: _chain(("flavor", True, "cart"))}
        controller = FlowController("store-1", gateway, cart, notifier)
        controller.select_size(PIZZA, LARGE)
        controller.toggle_flavor(MARGHERITA.id)
        result = controller.continue_flavors()
        assert result.is_complete
        assert len(cart.lines) == 1

    def test_unknown_step_type_ends_chain(self, gateway, cart, notifier):
        gateway.flow_config = {PIZZA.id: _chain(("flavor", True, "pizza_topping"))}
        controller = FlowController("store-1", gateway, cart, notifier)
        controller.select_size(PIZZA, LARGE)
        controller.toggle_flavor(MARGHERITA.id)
        assert controller.continue_flavors().is_complete

    def test_cycle_finalizes(self, gateway, cart, notifier):
        """Test that flavor -> edge -> flavor does not loop and ends in the cart."""
        gateway.flow_config = {PIZZA.id: _chain(("flavor", True, "edge"), ("edge", True, "flavor"))}
        controller = FlowController("store-1", gateway, cart, notifier)
        controller.select_size(PIZZA, LARGE)
        controller.toggle_flavor(MARGHERITA.id)
        assert controller.continue_flavors().state == FlowState.EDGE_SELECTION

        result = controller.choose_edge(CATUPIRY.id)

        assert result.is_complete
        assert result.line_item.unit_price == 36.0

    def test_edge_dough_cycle_visits_each_once(self, gateway, cart, notifier):
        gateway.flow_config = {
            PIZZA.id: _chain(("flavor", True, "edge"), ("edge", True, "dough"), ("dough", True, "edge")),
        }
        controller = FlowController("store-1", gateway, cart, notifier)
        controller.select_size(PIZZA, LARGE)
        controller.toggle_flavor(MARGHERITA.id)
        controller.continue_flavors()
        assert controller.choose_edge(None).state == FlowState.DOUGH_SELECTION
        assert controller.choose_dough(None).is_complete

    def test_additionals_then_combo(self, gateway, cart, notifier):
        """Test add-on and combo steps: add-ons become their own lines."""
        gateway.flow_config = {
            PIZZA.id: _chain(
                ("flavor", True, "additionals"),
                ("additionals", True, "combo"),
                ("combo", True, "cart"),
            )
        }
        controller = FlowController("store-1", gateway, cart, notifier)
        controller.select_size(PIZZA, LARGE)
        controller.toggle_flavor(MARGHERITA.id)

        result = controller.continue_flavors()
        assert result.state == FlowState.ADDITIONALS_SELECTION
        assert len(result.options) == 3

        result = controller.choose_additionals({BACON.id: 2})
        assert result.state == FlowState.COMBO_SELECTION
        assert [e.id for e in result.combo.edges] == [CATUPIRY.id, CHEDDAR.id]
        assert [a.id for a in result.combo.additionals] == [BACON.id, OLIVES.id]

        result = controller.confirm_combo(
            edge_id=CHEDDAR.id, dough_id=WHOLE_WHEAT.id, additionals={OLIVES.id: 1},
        )

        assert result.is_complete
        assert result.line_item.unit_price == 41.0
        assert result.line_item.description == "Margherita • Borda: Cheddar • Massa: Integral"
        extras = {(line.name, line.quantity, line.category) for line in result.ancillary_lines}
        assert extras == {("Bacon", 2, "Adicionais"), ("Azeitona extra", 1, "Adicionais")}
        assert len(cart.lines) == 3

    def test_combo_keeps_edge_chosen_in_earlier_step(self, gateway, cart, notifier):
        """Test that confirming a combo without an edge keeps the edge step's choice."""
        gateway.flow_config = {
            PIZZA.id: _chain(
                ("flavor", True, "edge"),
                ("edge", True, "additionals"),
                ("additionals", True, "combo"),
                ("combo", True, "cart"),
            )
        }
        controller = FlowController("store-1", gateway, cart, notifier)
        controller.select_size(PIZZA, LARGE)
        controller.toggle_flavor(MARGHERITA.id)
        controller.continue_flavors()
        controller.choose_edge(CATUPIRY.id)
        controller.choose_additionals({BACON.id: 2})

        result = controller.confirm_combo()

        assert result.is_complete
        assert result.line_item.description == "Margherita • Borda: Catupiry"
        assert result.line_item.unit_price == 36.0

    def test_combo_can_clear_earlier_edge(self, gateway, cart, notifier):
        gateway.flow_config = {
            PIZZA.id: _chain(("flavor", True, "edge"), ("edge", True, "combo"), ("combo", True, "cart")),
        }
        controller = FlowController("store-1", gateway, cart, notifier)
        controller.select_size(PIZZA, LARGE)
        controller.toggle_flavor(MARGHERITA.id)
        controller.continue_flavors()
        controller.choose_edge(CATUPIRY.id)

        result = controller.confirm_combo(dough_id=WHOLE_WHEAT.id, clear_edge=True)

        assert result.line_item.description == "Margherita • Massa: Integral"
        assert result.line_item.unit_price == 34.0

    def test_invalid_combo_choice_leaves_selection_unchanged(self, gateway, cart, notifier):
        gateway.flow_config = {PIZZA.id: _chain(("flavor", True, "combo"), ("combo", True, "cart"))}
        controller = FlowController("store-1", gateway, cart, notifier)
        controller.select_size(PIZZA, LARGE)
        controller.toggle_flavor(MARGHERITA.id)
        controller.continue_flavors()

        result = controller.confirm_combo(edge_id="edge-nope", additionals={BACON.id: 1})

        assert result.state == FlowState.COMBO_SELECTION
        assert result.error == "Borda indisponível para este tamanho"
        assert controller.selection.additionals == {}
        assert controller.selection.edge is None

    def test_unknown_additional_is_rejected(self, gateway, cart, notifier):
        gateway.flow_config = {PIZZA.id: _chain(("flavor", True, "additionals"))}
        controller = FlowController("store-1", gateway, cart, notifier)
        controller.select_size(PIZZA, LARGE)
        controller.toggle_flavor(MARGHERITA.id)
        controller.continue_flavors()
        result = controller.choose_additionals({"add-nope": 1})
        assert result.error == "Adicional indisponível"
        assert result.state == FlowState.ADDITIONALS_SELECTION

    def test_flow_config_passed_in_is_not_fetched(self, gateway, cart, notifier):
        controller = FlowController(
            "store-1", gateway, cart, notifier,
            flow_config={PIZZA.id: _chain(("flavor", True, "cart"))},
        )
        controller.select_size(PIZZA, LARGE)
        controller.toggle_flavor(MARGHERITA.id)
        controller.continue_flavors()
        assert gateway.calls["fetch_flow_config"] == 0


class TestCancel:
    """Cancellation discards the customization."""

    def test_cancel_mid_dough_then_new_size_is_clean(self, controller, cart):
        controller.select_size(PIZZA, LARGE)
        controller.toggle_flavor(MARGHERITA.id)
        controller.continue_flavors()
        controller.choose_edge(CATUPIRY.id)
        assert controller.state == FlowState.DOUGH_SELECTION

        result = controller.cancel()
        assert result.state == FlowState.IDLE
        assert controller.selection is None

        controller.select_size(PIZZA, MEDIUM)
        selection = controller.selection
        assert selection.flavors == []
        assert selection.edge is None
        assert selection.dough is None
        assert cart.lines == []

    def test_cancel_when_idle_is_harmless(self, controller):
        assert controller.cancel().state == FlowState.IDLE
