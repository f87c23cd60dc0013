"""Inventory Service - balance store and availability checks.

This module provides functions for:
- Maintaining the materialized InventoryBalance, LotBalance and
  FinishedGoodsBalance projections (upsert by delta)
- Row-locking balance rows for the duration of a build
- Reading component quantities per location or globally
- Checking availability against the company shortage policy
- Reorder classification and ledger/balance reconciliation

Balance updates never commit on their own: they are always called with the
session that writes the matching ledger lines, so the ledger and its
projection change in one atomic unit.
"""

import logging
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Mapping, Optional

from sqlalchemy import func, update
from sqlalchemy.orm import Session

from ..models import (
    Component,
    FinishedGoodsBalance,
    InventoryBalance,
    InventoryPolicy,
    Lot,
    LotBalance,
    ReorderStatus,
    Transaction,
    TransactionLine,
)
from ..utils.constants import DEFAULT_COMPANY_SETTINGS, ZERO
from . import tenant_guard
from .exceptions import InsufficientInventory
from .logging_utils import get_service_logger, log_operation

logger = get_service_logger(__name__)


def _to_decimal(value: Any) -> Decimal:
    if value is None:
        return ZERO
    return Decimal(str(value))


# =============================================================================
# Balance Store
# =============================================================================


def _apply_delta(session: Session, model, key: Mapping[str, str], quantity_delta: Any):
    """Add a delta to a balance row in SQL, inserting the row if it is missing.

    The increment runs as ``UPDATE ... SET quantity = quantity + :delta`` so a
    concurrent writer can never overwrite a value read earlier in Python.
    """
    delta = _to_decimal(quantity_delta)
    criteria = [getattr(model, column) == value for column, value in key.items()]
    result = session.execute(
        update(model).where(*criteria).values(quantity=model.quantity + delta)
    )
    if result.rowcount == 0:
        session.add(model(quantity=delta, **key))
    session.flush()
    return session.query(model).filter(*criteria).one()


def update_inventory_balance(
    session: Session,
    component_id: str,
    location_id: str,
    quantity_delta: Decimal,
) -> InventoryBalance:
    """
    Add a signed delta to the (component, location) balance.

    Creates the balance row if it doesn't exist.

    Args:
        session: Session that is also writing the ledger lines
        component_id: The component ID
        location_id: The location ID
        quantity_delta: Amount to add (positive) or subtract (negative)

    Returns:
        The updated InventoryBalance row
    """
    return _apply_delta(
        session,
        InventoryBalance,
        {"component_id": component_id, "location_id": location_id},
        quantity_delta,
    )


def update_lot_balance(session: Session, lot_id: str, quantity_delta: Decimal) -> LotBalance:
    """Add a signed delta to a lot's balance, creating the row if missing."""
    return _apply_delta(session, LotBalance, {"lot_id": lot_id}, quantity_delta)


def update_finished_goods_balance(
    session: Session,
    sku_id: str,
    location_id: str,
    quantity_delta: Decimal,
) -> FinishedGoodsBalance:
    """Add a signed delta to the (SKU, location) finished goods balance."""
    return _apply_delta(
        session,
        FinishedGoodsBalance,
        {"sku_id": sku_id, "location_id": location_id},
        quantity_delta,
    )


def get_inventory_balances(
    session: Session,
    component_ids: Iterable[str],
    location_id: str,
    *,
    for_update: bool = False,
) -> Dict[str, InventoryBalance]:
    """
    Balance rows of several components at one location.

    Components with no balance row yet are absent from the result.
    """
    ids = sorted(set(component_ids))
    if not ids:
        return {}
    query = (
        session.query(InventoryBalance)
        .filter(
            InventoryBalance.component_id.in_(ids),
            InventoryBalance.location_id == location_id,
        )
        .order_by(InventoryBalance.component_id)
    )
    if for_update:
        query = query.with_for_update()
    return {row.component_id: row for row in query.all()}


def lock_inventory_balances(
    session: Session,
    component_ids: Iterable[str],
    location_id: str,
) -> Dict[str, InventoryBalance]:
    """
    Lock the (component, location) balance rows for the rest of the unit.

    Rows are selected FOR UPDATE in component id order so two builds over
    overlapping components always acquire locks in the same sequence.

    Returns:
        Dict of component_id -> locked InventoryBalance
    """
    return get_inventory_balances(session, component_ids, location_id, for_update=True)


def lock_lot_balances(session: Session, component_ids: Iterable[str]) -> Dict[str, LotBalance]:
    """
    Lock every LotBalance row of the given components, in lot id order.

    Returns:
        Dict of lot_id -> locked LotBalance
    """
    ids = sorted(set(component_ids))
    if not ids:
        return {}
    rows = (
        session.query(LotBalance)
        .join(Lot, LotBalance.lot_id == Lot.id)
        .filter(Lot.component_id.in_(ids))
        .order_by(LotBalance.lot_id)
        .with_for_update(of=LotBalance)
        .all()
    )
    return {row.lot_id: row for row in rows}


# =============================================================================
# Quantity Reads
# =============================================================================


def get_component_quantity(
    session: Session,
    company_id: str,
    component_id: str,
    location_id: Optional[str] = None,
) -> Decimal:
    """
    Get the on-hand quantity of a component.

    Args:
        session: Database session
        company_id: Caller's company (the component must belong to it)
        component_id: The component ID
        location_id: Location to read; None sums every location

    Raises:
        NotFoundOrAccessDenied: If the component is not the company's
    """
    tenant_guard.get_component(session, company_id, component_id)

    if location_id is None:
        total = (
            session.query(func.sum(InventoryBalance.quantity))
            .filter(InventoryBalance.component_id == component_id)
            .scalar()
        )
        return _to_decimal(total)

    balance = (
        session.query(InventoryBalance)
        .filter(
            InventoryBalance.component_id == component_id,
            InventoryBalance.location_id == location_id,
        )
        .first()
    )
    return _to_decimal(balance.quantity) if balance else ZERO


def get_component_quantities(
    session: Session,
    company_id: str,
    component_ids: Iterable[str],
    location_id: Optional[str] = None,
) -> Dict[str, Decimal]:
    """
    Get quantities for several components at once.

    Every requested id appears in the result; ids the company doesn't own
    read as zero.
    """
    component_ids = list(component_ids)
    quantities = {component_id: ZERO for component_id in component_ids}
    if not component_ids:
        return quantities

    valid_ids = [
        row.id
        for row in session.query(Component.id)
        .filter(Component.id.in_(component_ids), Component.company_id == company_id)
        .all()
    ]
    if not valid_ids:
        return quantities

    if location_id is None:
        rows = (
            session.query(InventoryBalance.component_id, func.sum(InventoryBalance.quantity))
            .filter(InventoryBalance.component_id.in_(valid_ids))
            .group_by(InventoryBalance.component_id)
            .all()
        )
    else:
        rows = (
            session.query(InventoryBalance.component_id, InventoryBalance.quantity)
            .filter(
                InventoryBalance.component_id.in_(valid_ids),
                InventoryBalance.location_id == location_id,
            )
            .all()
        )

    for component_id, quantity in rows:
        quantities[component_id] = _to_decimal(quantity)
    return quantities


# =============================================================================
# Availability
# =============================================================================


def get_company_settings(session: Session, company_id: str) -> Dict[str, Any]:
    """Company settings merged over DEFAULT_COMPANY_SETTINGS."""
    return tenant_guard.get_company(session, company_id).get_settings()


def resolve_allow_insufficient(
    policy: InventoryPolicy,
    company_settings: Mapping[str, Any],
) -> bool:
    """
    Decide whether a build may proceed with shortages.

    FORCE_ALLOW and FORCE_BLOCK decide on their own; INHERIT follows the
    company's allow_negative_inventory setting.
    """
    policy = InventoryPolicy(policy)
    if policy is InventoryPolicy.FORCE_ALLOW:
        return True
    if policy is InventoryPolicy.FORCE_BLOCK:
        return False
    return bool(
        company_settings.get(
            "allow_negative_inventory", DEFAULT_COMPANY_SETTINGS["allow_negative_inventory"]
        )
    )


def check_insufficient_inventory(
    session: Session,
    requirements: Mapping[str, Decimal],
    components: Mapping[str, Component],
    location_id: str,
    *,
    balances: Optional[Mapping[str, InventoryBalance]] = None,
) -> List[Dict[str, Any]]:
    """
    List every component whose balance at the location is below requirement.

    Args:
        session: Database session
        requirements: component_id -> required quantity
        components: component_id -> Component (for names and codes)
        location_id: Build location
        balances: Balance rows already read (and locked) by the caller;
            read without locking if None

    Returns:
        One dict per short component with component_id, component_name,
        sku_code, required, available and shortage. Empty if all suffice.
    """
    if balances is None:
        balances = get_inventory_balances(session, requirements.keys(), location_id)

    insufficient = []
    for component_id, required in requirements.items():
        row = balances.get(component_id)
        available = _to_decimal(row.quantity) if row is not None else ZERO
        if available < required:
            component = components.get(component_id)
            insufficient.append(
                {
                    "component_id": component_id,
                    "component_name": component.name if component else None,
                    "sku_code": component.sku_code if component else None,
                    "required": required,
                    "available": available,
                    "shortage": required - available,
                }
            )
    return insufficient


def check_availability(
    session: Session,
    requirements: Mapping[str, Decimal],
    components: Mapping[str, Component],
    location_id: str,
    allow_insufficient: bool,
    *,
    balances: Optional[Mapping[str, InventoryBalance]] = None,
) -> List[Dict[str, Any]]:
    """
    Enforce the shortage policy.

    Returns:
        The shortage list (empty when everything is available). Non-empty
        only when allow_insufficient is True.

    Raises:
        InsufficientInventory: If any component is short and shortages
            are not allowed
    """
    items = check_insufficient_inventory(
        session, requirements, components, location_id, balances=balances
    )
    if items and not allow_insufficient:
        raise InsufficientInventory(items)
    return items


# =============================================================================
# Reorder Status and Reconciliation
# =============================================================================


def calculate_reorder_status(
    quantity_on_hand: Decimal,
    reorder_point: Decimal,
    reorder_warning_multiplier: Decimal = Decimal("1.5"),
) -> ReorderStatus:
    """
    Classify a balance against a component's reorder point.

    A reorder point of 0 means the component isn't reorder-tracked.

    Example:
        >>> calculate_reorder_status(Decimal("120"), 100)
        <ReorderStatus.WARNING: 'warning'>
    """
    quantity = _to_decimal(quantity_on_hand)
    point = _to_decimal(reorder_point)
    if point == 0:
        return ReorderStatus.OK
    if quantity <= point:
        return ReorderStatus.CRITICAL
    if quantity <= point * _to_decimal(reorder_warning_multiplier):
        return ReorderStatus.WARNING
    return ReorderStatus.OK


def get_components_with_reorder_status(
    session: Session,
    company_id: str,
    location_id: Optional[str] = None,
) -> List[Dict[str, Any]]:
    """Active components of the company with quantity and reorder status."""
    settings = get_company_settings(session, company_id)
    multiplier = _to_decimal(settings["reorder_warning_multiplier"])

    components = (
        session.query(Component)
        .filter(Component.company_id == company_id, Component.is_active.is_(True))
        .order_by(Component.name)
        .all()
    )
    quantities = get_component_quantities(
        session, company_id, [c.id for c in components], location_id
    )
    return [
        {
            "component_id": component.id,
            "name": component.name,
            "sku_code": component.sku_code,
            "quantity_on_hand": quantities[component.id],
            "reorder_point": component.reorder_point,
            "reorder_status": calculate_reorder_status(
                quantities[component.id], component.reorder_point, multiplier
            ),
        }
        for component in components
    ]


def reconcile_inventory_balances(
    session: Session,
    company_id: str,
    *,
    fix: bool = False,
) -> List[Dict[str, Any]]:
    """
    Compare InventoryBalance rows against the signed sum of the ledger.

    The ledger is authoritative. With fix=True drifting balances are
    overwritten (or created) to match it.

    Returns:
        One dict per drifting (component, location) key with
        ledger_quantity, balance_quantity and drift (balance - ledger)
    """
    ledger_rows = (
        session.query(
            TransactionLine.component_id,
            TransactionLine.location_id,
            func.sum(TransactionLine.quantity_change),
        )
        .join(Transaction, TransactionLine.transaction_id == Transaction.id)
        .filter(Transaction.company_id == company_id, TransactionLine.location_id.isnot(None))
        .group_by(TransactionLine.component_id, TransactionLine.location_id)
        .all()
    )
    ledger = {(c, loc): _to_decimal(total) for c, loc, total in ledger_rows}

    balance_rows = (
        session.query(InventoryBalance)
        .join(Component, InventoryBalance.component_id == Component.id)
        .filter(Component.company_id == company_id)
        .all()
    )
    balances = {(row.component_id, row.location_id): row for row in balance_rows}

    drifts = []
    for key in sorted(set(ledger) | set(balances)):
        ledger_quantity = ledger.get(key, ZERO)
        row = balances.get(key)
        balance_quantity = _to_decimal(row.quantity) if row is not None else ZERO
        if ledger_quantity == balance_quantity:
            continue

        component_id, location_id = key
        drifts.append(
            {
                "component_id": component_id,
                "location_id": location_id,
                "ledger_quantity": ledger_quantity,
                "balance_quantity": balance_quantity,
                "drift": balance_quantity - ledger_quantity,
            }
        )
        if fix:
            if row is None:
                session.add(
                    InventoryBalance(
                        component_id=component_id, location_id=location_id, quantity=ledger_quantity
                    )
                )
            else:
                row.quantity = ledger_quantity

    if fix and drifts:
        session.flush()

    log_operation(
        logger,
        operation="reconcile_inventory_balances",
        outcome="drift_found" if drifts else "clean",
        level=logging.WARNING if drifts else logging.INFO,
        company_id=company_id,
        drift_count=len(drifts),
        fixed=fix,
    )
    return drifts
