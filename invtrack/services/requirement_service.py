"""Requirement Calculator - expands a BOM version into component quantities.

Pure functions over BOM lines; no database access. A BOM may list the same
component on more than one line, in which case the per-unit quantities are
summed before multiplying by the unit count.

Usage:
    from invtrack.services.requirement_service import compute_requirements

    requirements = compute_requirements(bom_version.lines, units_to_build=10)
    # {"<component id>": Decimal("20"), ...}
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Dict, Iterable

from ..models import BOMLine
from ..utils.constants import ZERO


@dataclass(frozen=True)
class BomCost:
    """Cost snapshot taken at resolution time and stored on the Transaction."""

    unit_bom_cost: Decimal
    total_bom_cost: Decimal


def compute_requirements(bom_lines: Iterable[BOMLine], units_to_build: int) -> Dict[str, Decimal]:
    """
    Compute required quantity per component.

    Args:
        bom_lines: Lines of the resolved BOM version
        units_to_build: Number of SKU units being built

    Returns:
        Dict of component_id -> required quantity, in first-seen BOM line order
    """
    per_unit: Dict[str, Decimal] = {}
    for line in bom_lines:
        quantity = Decimal(str(line.quantity_per_unit))
        per_unit[line.component_id] = per_unit.get(line.component_id, ZERO) + quantity

    units = Decimal(units_to_build)
    return {component_id: quantity * units for component_id, quantity in per_unit.items()}


def compute_bom_cost(bom_lines: Iterable[BOMLine], units_to_build: int) -> BomCost:
    """
    Compute unit and total BOM cost from the components' current cost.

    Each line's component relationship must be loaded; its cost_per_unit is
    read as of now and frozen into the result.
    """
    unit_cost = ZERO
    for line in bom_lines:
        cost_per_unit = Decimal(str(line.component.cost_per_unit or 0))
        unit_cost += Decimal(str(line.quantity_per_unit)) * cost_per_unit

    return BomCost(unit_bom_cost=unit_cost, total_bom_cost=unit_cost * Decimal(units_to_build))


def calculate_line_costs(bom_lines: Iterable[BOMLine]) -> Dict[str, Decimal]:
    """Per-line cost (quantity_per_unit * component cost) keyed by BOM line id."""
    return {
        line.id: Decimal(str(line.quantity_per_unit)) * Decimal(str(line.component.cost_per_unit or 0))
        for line in bom_lines
    }
