"""Transaction Service - non-build inventory transactions.

This module provides functions for:
- Opening balances (initial)
- Receipts, optionally into a lot (creating or extending it)
- Signed adjustments with a reason
- Transfers between two locations of the company
- Reading a transaction back as a dictionary

Every write creates the Transaction header, its TransactionLines and the
matching balance updates in one session, so either all of it commits or
none of it does. Builds live in build_service and share the helpers here.
"""

import logging
from contextlib import nullcontext
from decimal import Decimal
from typing import Any, Callable, Dict, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..models import Lot, Transaction, TransactionLine, TransactionType
from ..utils.constants import ZERO
from . import inventory_service, tenant_guard
from .database import session_scope
from .dto import (
    AdjustmentTransactionRequest,
    InitialTransactionRequest,
    ReceiptTransactionRequest,
    TransactionRequest,
    TransferTransactionRequest,
)
from .exceptions import DatabaseError, InsufficientInventory, NotFoundOrAccessDenied, ServiceError
from .logging_utils import get_service_logger, log_operation

logger = get_service_logger(__name__)

_QUANTUM = Decimal("0.0001")


# =============================================================================
# Shared Helpers
# =============================================================================


def execute_write(
    op_logger: logging.Logger,
    operation: str,
    request: TransactionRequest,
    impl: Callable[[Session], Any],
    session: Optional[Session] = None,
) -> Any:
    """
    Validate a request and run impl in one atomic unit.

    Domain errors are logged at WARNING and re-raised unchanged. Storage
    errors are logged at ERROR and re-raised as DatabaseError once the
    unit has been rolled back.

    Args:
        op_logger: Logger of the calling service
        operation: Operation name for log records
        request: Request to validate before any database work
        impl: Function receiving the session and doing the work
        session: Optional caller-owned session (caller commits/rolls back)
    """
    try:
        request.validate()
        cm = nullcontext(session) if session is not None else session_scope()
        with cm as sess:
            return impl(sess)
    except ServiceError as exc:
        log_operation(
            op_logger,
            operation=operation,
            outcome=exc.code,
            level=logging.WARNING,
            company_id=request.company_id,
            error=str(exc),
        )
        raise
    except SQLAlchemyError as exc:
        log_operation(
            op_logger,
            operation=operation,
            outcome="error",
            level=logging.ERROR,
            company_id=request.company_id,
            error=str(exc),
        )
        raise DatabaseError(f"{operation} failed", original_error=exc) from exc


def _decimal_str(value: Any) -> Optional[str]:
    if value is None:
        return None
    return str(Decimal(str(value)).quantize(_QUANTUM))


def transaction_to_dict(transaction: Transaction) -> Dict[str, Any]:
    """Convert a Transaction and its lines to a dictionary representation."""
    result = {
        "id": transaction.id,
        "company_id": transaction.company_id,
        "type": transaction.type,
        "date": transaction.date.isoformat() if transaction.date else None,
        "location_id": transaction.location_id,
        "from_location_id": transaction.from_location_id,
        "to_location_id": transaction.to_location_id,
        "sku_id": transaction.sku_id,
        "bom_version_id": transaction.bom_version_id,
        "units_build": transaction.units_build,
        "unit_bom_cost": _decimal_str(transaction.unit_bom_cost),
        "total_bom_cost": _decimal_str(transaction.total_bom_cost),
        "sales_channel": transaction.sales_channel,
        "defect_count": transaction.defect_count,
        "defect_notes": transaction.defect_notes,
        "affected_units": transaction.affected_units,
        "supplier": transaction.supplier,
        "reason": transaction.reason,
        "notes": transaction.notes,
        "created_by_id": transaction.created_by_id,
        "created_at": transaction.created_at.isoformat() if transaction.created_at else None,
        "location": None,
        "sku": None,
        "bom_version": None,
    }

    if transaction.location:
        result["location"] = {"id": transaction.location.id, "name": transaction.location.name}

    if transaction.sku:
        result["sku"] = {
            "id": transaction.sku.id,
            "name": transaction.sku.name,
            "internal_code": transaction.sku.internal_code,
        }

    if transaction.bom_version:
        result["bom_version"] = {
            "id": transaction.bom_version.id,
            "version_name": transaction.bom_version.version_name,
        }

    result["lines"] = [
        {
            "id": line.id,
            "component": {
                "id": line.component.id,
                "name": line.component.name,
                "sku_code": line.component.sku_code,
            },
            "lot_id": line.lot_id,
            "lot": (
                {
                    "id": line.lot.id,
                    "lot_number": line.lot.lot_number,
                    "expiry_date": line.lot.expiry_date.isoformat() if line.lot.expiry_date else None,
                }
                if line.lot
                else None
            ),
            "location_id": line.location_id,
            "quantity_change": _decimal_str(line.quantity_change),
            "cost_per_unit": _decimal_str(line.cost_per_unit),
        }
        for line in transaction.lines
    ]

    result["finished_goods_lines"] = [
        {
            "id": fg_line.id,
            "sku_id": fg_line.sku_id,
            "location_id": fg_line.location_id,
            "quantity_change": _decimal_str(fg_line.quantity_change),
            "cost_per_unit": _decimal_str(fg_line.cost_per_unit),
        }
        for fg_line in transaction.finished_goods_lines
    ]

    return result


def get_transaction(company_id: str, transaction_id: str, *, session=None) -> Dict[str, Any]:
    """
    Fetch one transaction of the company with its lines.

    Raises:
        NotFoundOrAccessDenied: If missing or owned by another company
    """
    cm = nullcontext(session) if session is not None else session_scope()
    with cm as session:
        transaction = (
            session.query(Transaction)
            .filter(Transaction.id == transaction_id, Transaction.company_id == company_id)
            .first()
        )
        if not transaction:
            raise NotFoundOrAccessDenied("Transaction", transaction_id)
        return transaction_to_dict(transaction)


def _single_line_transaction(
    session: Session,
    request: TransactionRequest,
    location_id: str,
    component_id: str,
    quantity: Decimal,
    cost_per_unit: Decimal,
    lot_id: Optional[str] = None,
    **header: Any,
) -> Transaction:
    transaction = Transaction(
        company_id=request.company_id,
        type=request.kind.value,
        date=request.transaction_date,
        location_id=location_id,
        notes=request.notes,
        created_by_id=request.created_by_id,
        **header,
    )
    transaction.lines.append(
        TransactionLine(
            component_id=component_id,
            lot_id=lot_id,
            location_id=location_id,
            quantity_change=quantity,
            cost_per_unit=cost_per_unit,
            position=0,
        )
    )
    session.add(transaction)
    session.flush()
    inventory_service.update_inventory_balance(session, component_id, location_id, quantity)
    return transaction


# =============================================================================
# Initial / Receipt / Adjustment
# =============================================================================


def create_initial_transaction(request: InitialTransactionRequest, *, session=None) -> Dict[str, Any]:
    """
    Record an opening balance for a component.

    Args:
        request: Initial request (quantity > 0)
        session: Optional database session

    Returns:
        Transaction dictionary

    Raises:
        ValidationError: If the request is malformed
        NotFoundOrAccessDenied: If the component or location isn't the company's
        DatabaseError: If the write fails
    """

    def _impl(sess):
        component = tenant_guard.get_component(sess, request.company_id, request.component_id)
        location = tenant_guard.resolve_location(sess, request.company_id, request.location_id)
        cost = request.cost_per_unit if request.cost_per_unit is not None else component.cost_per_unit

        transaction = _single_line_transaction(
            sess, request, location.id, component.id, request.quantity, cost
        )
        if request.update_component_cost and request.cost_per_unit is not None:
            component.cost_per_unit = request.cost_per_unit

        log_operation(
            logger,
            operation="create_initial_transaction",
            outcome="success",
            company_id=request.company_id,
            transaction_id=transaction.id,
            component_id=component.id,
            quantity=str(request.quantity),
        )
        return transaction_to_dict(transaction)

    return execute_write(logger, "create_initial_transaction", request, _impl, session)


def _receive_into_lot(sess: Session, request: ReceiptTransactionRequest, component_id: str) -> Lot:
    lot = (
        sess.query(Lot)
        .filter(Lot.component_id == component_id, Lot.lot_number == request.lot_number)
        .first()
    )
    if lot is None:
        lot = Lot(
            component_id=component_id,
            lot_number=request.lot_number,
            expiry_date=request.expiry_date,
            received_quantity=request.quantity,
            supplier=request.supplier,
            notes=request.notes,
        )
        sess.add(lot)
        sess.flush()
    else:
        lot.received_quantity = Decimal(str(lot.received_quantity or ZERO)) + request.quantity
    inventory_service.update_lot_balance(sess, lot.id, request.quantity)
    return lot


def create_receipt_transaction(request: ReceiptTransactionRequest, *, session=None) -> Dict[str, Any]:
    """
    Receive stock of a component.

    With a lot_number, the stock goes into that lot: an existing lot of the
    component with that number is extended, otherwise a new lot (with the
    optional expiry date) and its LotBalance are created.
    """

    def _impl(sess):
        component = tenant_guard.get_component(sess, request.company_id, request.component_id)
        location = tenant_guard.resolve_location(sess, request.company_id, request.location_id)
        cost = request.cost_per_unit if request.cost_per_unit is not None else component.cost_per_unit

        lot = _receive_into_lot(sess, request, component.id) if request.lot_number else None
        transaction = _single_line_transaction(
            sess,
            request,
            location.id,
            component.id,
            request.quantity,
            cost,
            lot_id=lot.id if lot else None,
            supplier=request.supplier,
        )
        if request.update_component_cost and request.cost_per_unit is not None:
            component.cost_per_unit = request.cost_per_unit

        log_operation(
            logger,
            operation="create_receipt_transaction",
            outcome="success",
            company_id=request.company_id,
            transaction_id=transaction.id,
            component_id=component.id,
            lot_id=lot.id if lot else None,
            quantity=str(request.quantity),
        )
        return transaction_to_dict(transaction)

    return execute_write(logger, "create_receipt_transaction", request, _impl, session)


def create_adjustment_transaction(
    request: AdjustmentTransactionRequest, *, session=None
) -> Dict[str, Any]:
    """Record a signed correction; the line snapshots the component's current cost."""

    def _impl(sess):
        component = tenant_guard.get_component(sess, request.company_id, request.component_id)
        location = tenant_guard.resolve_location(sess, request.company_id, request.location_id)

        transaction = _single_line_transaction(
            sess,
            request,
            location.id,
            component.id,
            request.quantity,
            component.cost_per_unit,
            reason=request.reason.strip(),
        )

        log_operation(
            logger,
            operation="create_adjustment_transaction",
            outcome="success",
            company_id=request.company_id,
            transaction_id=transaction.id,
            component_id=component.id,
            quantity=str(request.quantity),
        )
        return transaction_to_dict(transaction)

    return execute_write(logger, "create_adjustment_transaction", request, _impl, session)


# =============================================================================
# Transfer
# =============================================================================


def create_transfer_transaction(request: TransferTransactionRequest, *, session=None) -> Dict[str, Any]:
    """
    Move stock of a component between two active locations of the company.

    Writes one transaction with two lines (-quantity at the source,
    +quantity at the destination) and updates both balances.

    Raises:
        ValidationError: If source and destination are the same
        NotFoundOrAccessDenied: If the component or a location doesn't resolve
        InsufficientInventory: If the source holds less than the quantity
    """

    def _impl(sess):
        component = tenant_guard.get_component(sess, request.company_id, request.component_id)
        from_location = tenant_guard.get_location(sess, request.company_id, request.from_location_id)
        to_location = tenant_guard.get_location(sess, request.company_id, request.to_location_id)

        source = inventory_service.lock_inventory_balances(sess, [component.id], from_location.id)
        available = (
            Decimal(str(source[component.id].quantity)) if component.id in source else ZERO
        )
        if available < request.quantity:
            raise InsufficientInventory(
                [
                    {
                        "component_id": component.id,
                        "component_name": component.name,
                        "sku_code": component.sku_code,
                        "required": request.quantity,
                        "available": available,
                        "shortage": request.quantity - available,
                    }
                ]
            )

        transaction = Transaction(
            company_id=request.company_id,
            type=TransactionType.TRANSFER.value,
            date=request.transaction_date,
            from_location_id=from_location.id,
            to_location_id=to_location.id,
            notes=request.notes,
            created_by_id=request.created_by_id,
        )
        for position, (location_id, delta) in enumerate(
            [(from_location.id, -request.quantity), (to_location.id, request.quantity)]
        ):
            transaction.lines.append(
                TransactionLine(
                    component_id=component.id,
                    location_id=location_id,
                    quantity_change=delta,
                    cost_per_unit=component.cost_per_unit,
                    position=position,
                )
            )
        sess.add(transaction)
        sess.flush()

        inventory_service.update_inventory_balance(sess, component.id, from_location.id, -request.quantity)
        inventory_service.update_inventory_balance(sess, component.id, to_location.id, request.quantity)

        log_operation(
            logger,
            operation="create_transfer_transaction",
            outcome="success",
            company_id=request.company_id,
            transaction_id=transaction.id,
            component_id=component.id,
            from_location_id=from_location.id,
            to_location_id=to_location.id,
            quantity=str(request.quantity),
        )
        return transaction_to_dict(transaction)

    return execute_write(logger, "create_transfer_transaction", request, _impl, session)
