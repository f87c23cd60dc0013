"""Lot Service - lot allocation and lot queries.

This module provides functions for:
- FEFO (First-Expiry-First-Out) ordering of lots
- Allocating a component requirement across lots, by FEFO or by
  caller-supplied overrides
- Expiry classification and expired-lot warnings
- Lot balance reads and lot trace (which SKUs consumed a lot)

Allocation functions never write. They return the (lot, quantity) split
that the build service turns into TransactionLines and LotBalance
decrements inside its own atomic unit.

A component with no Lot rows is pooled: its requirement is a single
allocation with lot_id None. Pooled history stays valid after the first
lot is received.
"""

from dataclasses import dataclass, field
from datetime import date, timedelta
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence

from sqlalchemy.orm import Session

from ..models import SKU, ExpiryStatus, Lot, LotBalance, Transaction, TransactionLine, TransactionType
from ..utils.constants import DEFAULT_COMPANY_SETTINGS, ZERO
from ..utils.datetime_utils import as_naive_utc
from . import tenant_guard
from .dto import LotAllocation
from .exceptions import InsufficientInventory

_NO_EXPIRY = date.max


@dataclass(frozen=True)
class AllocationLine:
    """One (lot or pool, quantity) slice of a component requirement."""

    lot_id: Optional[str]
    quantity: Decimal
    lot_number: Optional[str] = None
    expiry_date: Optional[date] = None


@dataclass
class LotAllocationResult:
    """Allocation of one component's requirement."""

    component_id: str
    required: Decimal
    lines: List[AllocationLine] = field(default_factory=list)
    mode: str = "pooled"

    @property
    def total(self) -> Decimal:
        return sum((line.quantity for line in self.lines), ZERO)

    @property
    def shortfall(self) -> Decimal:
        """Quantity recorded against the pool because lots ran out."""
        if self.mode != "fefo":
            return ZERO
        return sum((line.quantity for line in self.lines if line.lot_id is None), ZERO)


# =============================================================================
# FEFO Ordering
# =============================================================================


def _lot_quantity(lot: Lot) -> Decimal:
    if lot.balance is None:
        return ZERO
    return Decimal(str(lot.balance.quantity))


def sort_lots_fefo(lots: Iterable[Lot]) -> List[Lot]:
    """
    Order lots earliest expiry first, lots without expiry last.

    Lots with equal expiry are ordered oldest created first.
    """
    return sorted(
        lots,
        key=lambda lot: (
            lot.expiry_date is None,
            lot.expiry_date or _NO_EXPIRY,
            as_naive_utc(lot.created_at),
        ),
    )


def has_lots(session: Session, component_id: str) -> bool:
    """True if the component is lot-tracked (has at least one Lot row)."""
    return session.query(Lot.id).filter(Lot.component_id == component_id).first() is not None


def get_available_lots(
    session: Session,
    component_id: str,
    *,
    exclude_expired: bool = False,
) -> List[Lot]:
    """
    Lots of a component with positive balance, in FEFO order.

    Args:
        session: Database session
        component_id: The component ID
        exclude_expired: Drop lots whose expiry date is before today
    """
    lots = (
        session.query(Lot)
        .join(LotBalance, LotBalance.lot_id == Lot.id)
        .filter(Lot.component_id == component_id, LotBalance.quantity > 0)
        .all()
    )
    ordered = sort_lots_fefo(lots)
    if exclude_expired:
        ordered = [lot for lot in ordered if not lot.is_expired]
    return ordered


# =============================================================================
# Allocation
# =============================================================================


def allocate_fefo(lots: Sequence[Lot], required: Decimal, component_id: str = "") -> LotAllocationResult:
    """
    Walk lots in the given order taking min(remaining, lot balance) from each.

    Lots must already be FEFO-sorted. Whatever the lots cannot cover is a
    trailing allocation with lot_id None, so the result always sums exactly
    to required. Whether that shortfall is allowed is decided by the caller.

    Example:
        Lot A (balance 15, earlier expiry) and lot B (balance 20), required
        20 -> [(A, 15), (B, 5)]
    """
    result = LotAllocationResult(component_id=component_id, required=required, mode="fefo")
    remaining = required

    for lot in lots:
        if remaining <= ZERO:
            break
        available = _lot_quantity(lot)
        if available <= ZERO:
            continue
        take = min(available, remaining)
        result.lines.append(
            AllocationLine(
                lot_id=lot.id,
                quantity=take,
                lot_number=lot.lot_number,
                expiry_date=lot.expiry_date,
            )
        )
        remaining -= take

    if remaining > ZERO:
        result.lines.append(AllocationLine(lot_id=None, quantity=remaining))
    return result


def allocate_overrides(
    session: Session,
    company_id: str,
    component_id: str,
    allocations: Sequence[LotAllocation],
    allow_insufficient: bool,
    *,
    required: Optional[Decimal] = None,
    lot_balances: Optional[Mapping[str, LotBalance]] = None,
) -> LotAllocationResult:
    """
    Reproduce a caller-specified lot split for one component.

    Every lot is tenant-guarded together with its owning component. The
    split is taken as given: no FEFO top-up, and the sum need not equal the
    BOM requirement.

    Args:
        session: Database session
        company_id: Caller's company
        component_id: BOM component the override applies to
        allocations: Requested (lot_id, quantity) pairs, quantities > 0
        allow_insufficient: Permit allocating more than a lot holds
        required: BOM requirement, recorded on the result
        lot_balances: Locked LotBalance rows keyed by lot id

    Raises:
        NotFoundOrAccessDenied: If the component or a lot isn't the
            company's, or a lot belongs to a different component
        InsufficientInventory: If a lot holds less than requested and
            shortages are not allowed
    """
    component = tenant_guard.get_component(session, company_id, component_id)

    result = LotAllocationResult(
        component_id=component.id,
        required=required if required is not None else ZERO,
        mode="override",
    )
    short = []
    for allocation in allocations:
        lot = tenant_guard.get_lot(session, company_id, allocation.lot_id, component_id=component.id)
        quantity = Decimal(str(allocation.quantity))

        balance = lot_balances.get(lot.id) if lot_balances is not None else lot.balance
        available = Decimal(str(balance.quantity)) if balance is not None else ZERO
        if available < quantity:
            short.append(
                {
                    "component_id": component.id,
                    "component_name": component.name,
                    "sku_code": component.sku_code,
                    "lot_id": lot.id,
                    "lot_number": lot.lot_number,
                    "required": quantity,
                    "available": available,
                    "shortage": quantity - available,
                }
            )

        result.lines.append(
            AllocationLine(
                lot_id=lot.id,
                quantity=quantity,
                lot_number=lot.lot_number,
                expiry_date=lot.expiry_date,
            )
        )

    if short and not allow_insufficient:
        raise InsufficientInventory(short)
    return result


def allocate_component(
    session: Session,
    company_id: str,
    component_id: str,
    required: Decimal,
    allow_insufficient: bool,
    *,
    override_allocations: Optional[Sequence[LotAllocation]] = None,
    lot_balances: Optional[Mapping[str, LotBalance]] = None,
    exclude_expired: bool = False,
) -> LotAllocationResult:
    """
    Allocate one component's requirement: override, else FEFO, else pooled.

    FEFO applies when the component has any Lot rows. A shortfall the lots
    cannot cover goes to a pooled (lot_id None) line. With exclude_expired,
    FEFO skips lots past expiry; overrides are taken as given.
    """
    if override_allocations:
        return allocate_overrides(
            session,
            company_id,
            component_id,
            override_allocations,
            allow_insufficient,
            required=required,
            lot_balances=lot_balances,
        )

    if has_lots(session, component_id):
        lots = get_available_lots(session, component_id, exclude_expired=exclude_expired)
        return allocate_fefo(lots, required, component_id)

    return LotAllocationResult(
        component_id=component_id,
        required=required,
        lines=[AllocationLine(lot_id=None, quantity=required)],
        mode="pooled",
    )


# =============================================================================
# Expiry
# =============================================================================


def calculate_expiry_status(
    expiry_date: Optional[date],
    *,
    today: Optional[date] = None,
    warning_days: int = DEFAULT_COMPANY_SETTINGS["expiry_warning_days"],
) -> ExpiryStatus:
    """
    Classify a lot's expiry date.

    Returns:
        EXPIRED if before today, EXPIRING_SOON if within warning_days,
        otherwise OK (including lots with no expiry date)
    """
    if expiry_date is None:
        return ExpiryStatus.OK
    today = today or date.today()
    if expiry_date < today:
        return ExpiryStatus.EXPIRED
    if expiry_date <= today + timedelta(days=warning_days):
        return ExpiryStatus.EXPIRING_SOON
    return ExpiryStatus.OK


def find_expired_lot_allocations(
    allocations: Iterable[LotAllocationResult],
    *,
    today: Optional[date] = None,
) -> List[Dict[str, Any]]:
    """Allocated lots already past their expiry date."""
    today = today or date.today()
    expired = []
    for result in allocations:
        for line in result.lines:
            if line.lot_id is None or line.expiry_date is None:
                continue
            if line.expiry_date < today:
                expired.append(
                    {
                        "component_id": result.component_id,
                        "lot_id": line.lot_id,
                        "lot_number": line.lot_number,
                        "expiry_date": line.expiry_date.isoformat(),
                        "quantity": line.quantity,
                    }
                )
    return expired


# =============================================================================
# Lot Queries
# =============================================================================


def get_lot_balance(session: Session, company_id: str, lot_id: str) -> Decimal:
    """Current balance of a lot; 0 if it has no balance row."""
    lot = tenant_guard.get_lot(session, company_id, lot_id)
    return _lot_quantity(lot)


def get_affected_skus_for_lot(session: Session, company_id: str, lot_id: str) -> List[Dict[str, Any]]:
    """
    Lot trace: every SKU built from this lot.

    Returns:
        One dict per SKU with id, name, internal_code, quantity_used
        (positive) and transaction_count, ordered by SKU name
    """
    lot = tenant_guard.get_lot(session, company_id, lot_id)

    rows = (
        session.query(TransactionLine, SKU)
        .join(Transaction, TransactionLine.transaction_id == Transaction.id)
        .join(SKU, Transaction.sku_id == SKU.id)
        .filter(
            TransactionLine.lot_id == lot.id,
            Transaction.type == TransactionType.BUILD.value,
            Transaction.company_id == company_id,
        )
        .all()
    )

    by_sku: Dict[str, Dict[str, Any]] = {}
    for line, sku in rows:
        entry = by_sku.setdefault(
            sku.id,
            {
                "id": sku.id,
                "name": sku.name,
                "internal_code": sku.internal_code,
                "quantity_used": ZERO,
                "transaction_ids": set(),
            },
        )
        entry["quantity_used"] += abs(Decimal(str(line.quantity_change)))
        entry["transaction_ids"].add(line.transaction_id)

    affected = []
    for entry in sorted(by_sku.values(), key=lambda e: e["name"]):
        transaction_ids = entry.pop("transaction_ids")
        entry["transaction_count"] = len(transaction_ids)
        affected.append(entry)
    return affected
