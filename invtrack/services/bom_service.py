"""BOM Service - BOM version resolution and maintenance.

This module provides functions for:
- Selecting the BOM version effective on a date (pure, deterministic)
- Resolving the BOM version for a build, tenant-guarded
- Creating, cloning and activating BOM versions
- BOM unit cost and max buildable units

Effective intervals of one SKU may overlap in storage. Resolution keeps the
versions covering the date and picks the latest effective_start_date, then
the newest created_at.
"""

import logging
from contextlib import nullcontext
from datetime import date
from decimal import ROUND_FLOOR, Decimal
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy.orm import Session, selectinload

from ..models import BOMLine, BOMVersion
from ..utils.datetime_utils import as_naive_utc, parse_local_date
from . import inventory_service, requirement_service, tenant_guard
from .database import session_scope
from .exceptions import NoBOMEffectiveOnDate, NotFoundOrAccessDenied, ValidationError
from .logging_utils import get_service_logger, log_operation

logger = get_service_logger(__name__)


# =============================================================================
# Resolution
# =============================================================================


def select_effective_bom_version(
    candidates: Iterable[BOMVersion], as_of: date
) -> Optional[BOMVersion]:
    """
    Pick the BOM version governing a date.

    Args:
        candidates: BOM versions of one SKU (active or not)
        as_of: Build date

    Returns:
        The covering version with the latest effective_start_date, ties
        broken by newest created_at; None if no version covers the date.
    """
    covering = [version for version in candidates if version.covers(as_of)]
    if not covering:
        return None
    covering.sort(
        key=lambda version: (version.effective_start_date, as_naive_utc(version.created_at)),
        reverse=True,
    )
    return covering[0]


def resolve_bom_version(
    session: Session,
    company_id: str,
    sku_id: str,
    as_of: date,
    bom_version_id: Optional[str] = None,
) -> BOMVersion:
    """
    Resolve the BOM version a build of the SKU on as_of consumes against.

    An explicit bom_version_id wins and need not be effective on as_of, but
    it must belong to the company and to the SKU.

    Raises:
        SkuNotFound: If the SKU isn't the company's
        NotFoundOrAccessDenied: If the explicit version doesn't resolve
        NoBOMEffectiveOnDate: If no version covers as_of
    """
    sku = tenant_guard.get_sku(session, company_id, sku_id)

    if bom_version_id is not None:
        bom_version = tenant_guard.get_bom_version(session, company_id, bom_version_id)
        if bom_version.sku_id != sku.id:
            raise NotFoundOrAccessDenied("BOM version", bom_version_id)
        return bom_version

    candidates = (
        session.query(BOMVersion)
        .options(selectinload(BOMVersion.lines).selectinload(BOMLine.component))
        .filter(BOMVersion.sku_id == sku.id, BOMVersion.effective_start_date <= as_of)
        .all()
    )
    bom_version = select_effective_bom_version(candidates, as_of)
    if bom_version is None:
        raise NoBOMEffectiveOnDate(sku.id, as_of)
    return bom_version


# =============================================================================
# Maintenance
# =============================================================================


def _deactivate_other_versions(session: Session, sku_id: str, keep_id: Optional[str], end_date: date):
    others = (
        session.query(BOMVersion)
        .filter(BOMVersion.sku_id == sku_id, BOMVersion.is_active.is_(True))
        .all()
    )
    for other in others:
        if other.id == keep_id:
            continue
        other.is_active = False
        other.effective_end_date = end_date


def create_bom_version(
    company_id: str,
    sku_id: str,
    version_name: str,
    effective_start_date,
    lines: List[Dict[str, Any]],
    *,
    is_active: bool = False,
    notes: Optional[str] = None,
    session=None,
) -> BOMVersion:
    """
    Create a BOM version with its lines.

    Args:
        company_id: Caller's company
        sku_id: SKU the BOM builds
        version_name: Label, e.g. "v2"
        effective_start_date: date or "YYYY-MM-DD"
        lines: Dicts with component_id and quantity_per_unit (> 0)
        is_active: If True, other active versions of the SKU are
            deactivated and end-dated at this version's start date
        notes: Optional notes
        session: Optional database session

    Raises:
        ValidationError: If there are no lines or a quantity isn't positive
        NotFoundOrAccessDenied: If the SKU or a component isn't the company's
    """
    errors = []
    if not version_name or not version_name.strip():
        errors.append("Version name is required")
    if not lines:
        errors.append("A BOM version needs at least one line")
    for index, line in enumerate(lines or []):
        if Decimal(str(line.get("quantity_per_unit", 0))) <= 0:
            errors.append(f"Line {index + 1}: quantity per unit must be positive")
    if errors:
        raise ValidationError(errors)

    start = parse_local_date(effective_start_date)

    cm = nullcontext(session) if session is not None else session_scope()
    with cm as session:
        sku = tenant_guard.get_sku(session, company_id, sku_id)
        for line in lines:
            tenant_guard.get_component(session, company_id, line["component_id"])

        if is_active:
            _deactivate_other_versions(session, sku.id, None, start)

        bom_version = BOMVersion(
            sku_id=sku.id,
            version_name=version_name.strip(),
            effective_start_date=start,
            is_active=is_active,
            notes=notes,
        )
        for position, line in enumerate(lines):
            bom_version.lines.append(
                BOMLine(
                    component_id=line["component_id"],
                    quantity_per_unit=Decimal(str(line["quantity_per_unit"])),
                    position=position,
                )
            )
        session.add(bom_version)
        session.flush()

        log_operation(
            logger,
            operation="create_bom_version",
            outcome="success",
            company_id=company_id,
            sku_id=sku.id,
            bom_version_id=bom_version.id,
            line_count=len(lines),
        )
        return bom_version


def clone_bom_version(
    company_id: str,
    bom_version_id: str,
    new_version_name: str,
    *,
    effective_start_date=None,
    session=None,
) -> BOMVersion:
    """
    Copy a BOM version's lines into a new, inactive version.

    The clone starts today unless effective_start_date is given.
    """
    if not new_version_name or not new_version_name.strip():
        raise ValidationError(["Version name is required"])
    start = parse_local_date(effective_start_date) if effective_start_date else date.today()

    cm = nullcontext(session) if session is not None else session_scope()
    with cm as session:
        source = tenant_guard.get_bom_version(session, company_id, bom_version_id)
        clone = BOMVersion(
            sku_id=source.sku_id,
            version_name=new_version_name.strip(),
            effective_start_date=start,
            is_active=False,
            notes=f"Cloned from {source.version_name}",
        )
        for line in source.lines:
            clone.lines.append(
                BOMLine(
                    component_id=line.component_id,
                    quantity_per_unit=line.quantity_per_unit,
                    position=line.position,
                )
            )
        session.add(clone)
        session.flush()

        log_operation(
            logger,
            operation="clone_bom_version",
            outcome="success",
            company_id=company_id,
            source_bom_version_id=source.id,
            bom_version_id=clone.id,
        )
        return clone


def activate_bom_version(
    company_id: str,
    bom_version_id: str,
    *,
    as_of: Optional[date] = None,
    session=None,
) -> BOMVersion:
    """
    Make a BOM version the SKU's active one.

    Other active versions of the SKU are deactivated and end-dated at as_of
    (default today); the activated version becomes open-ended.
    """
    end_date = as_of or date.today()

    cm = nullcontext(session) if session is not None else session_scope()
    with cm as session:
        bom_version = tenant_guard.get_bom_version(session, company_id, bom_version_id)
        _deactivate_other_versions(session, bom_version.sku_id, bom_version.id, end_date)
        bom_version.is_active = True
        bom_version.effective_end_date = None
        session.flush()

        log_operation(
            logger,
            operation="activate_bom_version",
            outcome="success",
            company_id=company_id,
            sku_id=bom_version.sku_id,
            bom_version_id=bom_version.id,
        )
        return bom_version


# =============================================================================
# Costing and Capacity
# =============================================================================


def calculate_bom_unit_cost(company_id: str, bom_version_id: str, *, session=None) -> Decimal:
    """Sum of quantity_per_unit * current component cost over the version's lines."""
    cm = nullcontext(session) if session is not None else session_scope()
    with cm as session:
        bom_version = tenant_guard.get_bom_version(session, company_id, bom_version_id)
        return requirement_service.compute_bom_cost(bom_version.lines, 1).unit_bom_cost


def calculate_max_buildable_units(
    company_id: str,
    sku_id: str,
    *,
    location_id: Optional[str] = None,
    session=None,
) -> Optional[int]:
    """
    How many units of the SKU current stock supports under its active BOM.

    Args:
        company_id: Caller's company
        sku_id: SKU to evaluate
        location_id: Location to read stock at; None uses the global total

    Returns:
        The minimum over BOM lines of floor(on hand / per-unit requirement),
        never below 0; None if the SKU has no active BOM or it has no lines.
    """
    cm = nullcontext(session) if session is not None else session_scope()
    with cm as session:
        sku = tenant_guard.get_sku(session, company_id, sku_id)
        active = (
            session.query(BOMVersion)
            .filter(BOMVersion.sku_id == sku.id, BOMVersion.is_active.is_(True))
            .order_by(BOMVersion.effective_start_date.desc(), BOMVersion.created_at.desc())
            .first()
        )
        if active is None or not active.lines:
            return None

        per_unit = requirement_service.compute_requirements(active.lines, 1)
        quantities = inventory_service.get_component_quantities(
            session, company_id, per_unit.keys(), location_id
        )

        max_units = min(
            (quantities[component_id] / required).to_integral_value(rounding=ROUND_FLOOR)
            for component_id, required in per_unit.items()
        )
        result = max(int(max_units), 0)

        log_operation(
            logger,
            operation="calculate_max_buildable_units",
            outcome="success",
            level=logging.DEBUG,
            company_id=company_id,
            sku_id=sku.id,
            max_units=result,
        )
        return result
