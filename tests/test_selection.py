"""
Tests for the Selection aggregate: flavor cap, add-on quantities and totals.
"""

import pytest

from storefront_flow.flow.errors import LimitExceeded
from storefront_flow.flow.selection import Selection

from conftest import (
    BACON,
    CATUPIRY,
    CHOCOLATE,
    LARGE,
    MARGHERITA,
    MEDIUM,
    OLIVES,
    PEPPERONI,
    SHRIMP,
    WHOLE_WHEAT,
)


class TestFlavorCap:
    """A selection never holds more flavors than the size allows."""

    def test_toggle_adds_and_removes(self):
        """Test that toggling twice returns to the empty selection."""
        selection = Selection(size=LARGE)
        assert selection.toggle_flavor(MARGHERITA) is True
        assert selection.has_flavor(MARGHERITA.id)
        assert selection.toggle_flavor(MARGHERITA) is False
        assert selection.flavors == []

    def test_toggle_past_max_is_rejected_and_unchanged(self):
        """Test that the (max+1)th distinct flavor raises and leaves the set alone."""
        selection = Selection(size=LARGE)
        selection.toggle_flavor(MARGHERITA)
        selection.toggle_flavor(PEPPERONI)

        with pytest.raises(LimitExceeded) as exc_info:
            selection.toggle_flavor(SHRIMP)

        assert exc_info.value.message == "Máximo de 2 sabores"
        assert [f.id for f in selection.flavors] == [MARGHERITA.id, PEPPERONI.id]

    def test_cap_holds_for_any_toggle_sequence(self):
        """Test that no sequence of toggles exceeds max_flavors."""
        selection = Selection(size=LARGE)
        sequence = [MARGHERITA, PEPPERONI, SHRIMP, MARGHERITA, SHRIMP, CHOCOLATE, PEPPERONI, CHOCOLATE]
        for flavor in sequence:
            try:
                selection.toggle_flavor(flavor)
            except LimitExceeded:
                pass
            assert len(selection.flavors) <= LARGE.max_flavors

    def test_deselect_at_cap_is_allowed(self):
        selection = Selection(size=MEDIUM)
        selection.toggle_flavor(MARGHERITA)
        assert selection.toggle_flavor(MARGHERITA) is False
        assert selection.toggle_flavor(PEPPERONI) is True


class TestTotals:
    """Totals are recomputed on every read."""

    def test_flavors_price_is_base_plus_premium_surcharges(self):
        """Test that the size base price counts once and surcharges add on."""
        selection = Selection(size=LARGE)
        selection.toggle_flavor(MARGHERITA)
        selection.toggle_flavor(SHRIMP)
        assert selection.flavors_price() == 38.0

    def test_surcharge_ignored_when_not_premium(self):
        """Test that a surcharge on a non-premium flavor is not charged."""
        odd = MARGHERITA.model_copy(update={"surcharge": 5.0, "is_premium": False})
        selection = Selection(size=LARGE)
        selection.toggle_flavor(odd)
        assert selection.flavors_price() == 30.0

    def test_total_is_stable_without_mutation(self):
        selection = Selection(size=LARGE)
        selection.toggle_flavor(SHRIMP)
        selection.set_edge(CATUPIRY)
        assert selection.total() == selection.total()

    def test_each_mutation_moves_total_by_its_delta(self):
        """Test that every single mutation changes the total by exactly its price."""
        selection = Selection(size=LARGE)
        before = selection.total()

        selection.toggle_flavor(SHRIMP)
        assert selection.total() == pytest.approx(before + 8.0)
        before = selection.total()

        selection.set_edge(CATUPIRY)
        assert selection.total() == pytest.approx(before + 6.0)
        before = selection.total()

        selection.set_dough(WHOLE_WHEAT)
        assert selection.total() == pytest.approx(before + 4.0)
        before = selection.total()

        selection.toggle_additional(BACON)
        assert selection.total() == pytest.approx(before + 4.0)
        before = selection.total()

        selection.change_additional_quantity(BACON.id, 1)
        assert selection.total() == pytest.approx(before + 4.0)
        before = selection.total()

        selection.set_edge(None)
        assert selection.total() == pytest.approx(before - 6.0)

    def test_item_price_excludes_additionals(self):
        selection = Selection(size=LARGE)
        selection.set_edge(CATUPIRY)
        selection.set_additional_quantity(OLIVES, 2)
        assert selection.item_price() == 36.0
        assert selection.additionals_total() == 5.0
        assert selection.total() == 41.0

    def test_extras_total_for_combo(self):
        """Test that the combo total is edge + dough + add-ons, without the size."""
        selection = Selection(size=LARGE)
        selection.set_edge(CATUPIRY)
        selection.set_dough(WHOLE_WHEAT)
        selection.set_additional_quantity(BACON, 2)
        assert selection.extras_total() == 18.0


class TestAdditionals:
    """Add-on quantities are clamped to [0, per_item_max]."""

    def test_toggle_additional(self):
        selection = Selection(size=LARGE)
        assert selection.toggle_additional(BACON) is True
        assert selection.additionals[BACON.id].quantity == 1
        assert selection.toggle_additional(BACON) is False
        assert BACON.id not in selection.additionals

    def test_decrement_to_zero_removes_entry(self):
        selection = Selection(size=LARGE)
        selection.toggle_additional(BACON)
        assert selection.change_additional_quantity(BACON.id, -1) == 0
        assert selection.selected_additionals() == []

    def test_increment_past_max_is_noop(self):
        """Test that going past per_item_max leaves the quantity unchanged."""
        selection = Selection(size=LARGE, per_item_max=3)
        selection.set_additional_quantity(BACON, 3)
        assert selection.change_additional_quantity(BACON.id, 1) == 3
        assert selection.additionals[BACON.id].quantity == 3

    def test_change_unknown_item_is_zero(self):
        assert Selection(size=LARGE).change_additional_quantity("nope", 1) == 0

    def test_set_quantity_is_clamped(self):
        selection = Selection(size=LARGE, per_item_max=10)
        assert selection.set_additional_quantity(OLIVES, 50) == 10
        assert selection.set_additional_quantity(OLIVES, -2) == 0
        assert OLIVES.id not in selection.additionals


class TestCombo:
    def test_to_combo_and_is_empty(self):
        selection = Selection(size=LARGE)
        assert selection.is_empty()

        selection.set_edge(CATUPIRY)
        selection.set_additional_quantity(BACON, 2)
        combo = selection.to_combo()

        assert combo.edge == CATUPIRY
        assert combo.dough is None
        assert [(a.id, a.quantity) for a in combo.additionals] == [(BACON.id, 2)]
        assert not selection.is_empty()
