"""Tests for the requirement calculator."""

from decimal import Decimal

from invtrack.models import BOMLine, Component
from invtrack.services.requirement_service import (
    calculate_line_costs,
    compute_bom_cost,
    compute_requirements,
)


def _line(component_id, quantity, cost="0", line_id=None):
    line = BOMLine(id=line_id, component_id=component_id, quantity_per_unit=Decimal(quantity))
    line.component = Component(id=component_id, name=component_id, sku_code=component_id, cost_per_unit=Decimal(cost))
    return line


def test_requirements_multiply_by_units():
    requirements = compute_requirements([_line("a", "2"), _line("b", "0.5")], 10)

    assert requirements == {"a": Decimal("20"), "b": Decimal("5")}


def test_duplicate_component_lines_are_summed():
    requirements = compute_requirements([_line("a", "1"), _line("b", "3"), _line("a", "1.25")], 4)

    assert requirements == {"a": Decimal("9"), "b": Decimal("12")}
    assert list(requirements) == ["a", "b"]


def test_no_lines_no_requirements():
    assert compute_requirements([], 5) == {}


def test_bom_cost_snapshot():
    cost = compute_bom_cost([_line("a", "2", cost="2.50"), _line("b", "1", cost="0.75")], 10)

    assert cost.unit_bom_cost == Decimal("5.75")
    assert cost.total_bom_cost == Decimal("57.50")


def test_line_costs_keyed_by_line_id():
    costs = calculate_line_costs([_line("a", "3", cost="1.10", line_id="l1"), _line("b", "2", cost="4", line_id="l2")])

    assert costs == {"l1": Decimal("3.30"), "l2": Decimal("8")}
