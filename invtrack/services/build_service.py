"""
Build Service - manufacturing builds that consume components per BOM.

This module provides functions for:
- Checking whether a build can run (dry run, never writes)
- Recording a build transaction

A build runs these stages in order, each one aborting the rest on failure:

    Validate -> Resolve BOM -> Compute requirements -> Check availability
    -> Allocate lots -> Persist

All stages run in one session. Balance rows are locked before the
availability check, so the check and the balance decrement are atomic with
respect to other builds over the same components or lots. On SQLite,
where row locks do not exist, each unit takes the database write lock at
its first statement instead. Domain errors (NoBOMEffectiveOnDate,
InsufficientInventory, NotFoundOrAccessDenied, ValidationError) are raised
before anything is written.

The service integrates with:
- tenant_guard for company-scoped lookups
- bom_service.resolve_bom_version() for date-based BOM resolution
- inventory_service for locking, availability and balance updates
- lot_service for FEFO / override / pooled allocation
"""

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from ..models import (
    SKU,
    BOMVersion,
    Component,
    FinishedGoodsLine,
    Location,
    Transaction,
    TransactionLine,
    TransactionType,
)
from . import bom_service, inventory_service, lot_service, requirement_service, tenant_guard
from .database import session_scope
from .dto import BuildTransactionRequest
from .exceptions import ValidationError
from .logging_utils import get_service_logger, log_operation
from .transaction_service import execute_write, transaction_to_dict

logger = get_service_logger(__name__)


@dataclass
class BuildResult:
    """
    Outcome of a committed build.

    Attributes:
        transaction: Transaction dictionary with lines and BOM version
        warning: True if the build went ahead with shortages
        insufficient_items: Shortage list when warning is True
        expired_lots: Lots past expiry that the build consumed
    """

    transaction: Dict[str, Any]
    warning: bool = False
    insufficient_items: List[Dict[str, Any]] = field(default_factory=list)
    expired_lots: List[Dict[str, Any]] = field(default_factory=list)

    @property
    def id(self) -> str:
        return self.transaction["id"]

    def to_dict(self) -> Dict[str, Any]:
        result = dict(self.transaction)
        result["warning"] = self.warning
        result["insufficient_items"] = self.insufficient_items
        result["expired_lots"] = self.expired_lots
        return result


@dataclass
class _BuildPlan:
    sku: SKU
    location: Location
    output_location: Optional[Location]
    bom_version: BOMVersion
    requirements: Dict[str, Decimal]
    components: Dict[str, Component]
    allow_insufficient: bool


# =============================================================================
# Shared Stages
# =============================================================================


def _plan_build(session: Session, request: BuildTransactionRequest) -> _BuildPlan:
    """Resolve entities, BOM and requirements; tenant-checks every override.

    Override components and lots are checked here, before availability, so a
    foreign lot is reported as NotFoundOrAccessDenied even when stock is short.
    """
    company_id = request.company_id

    sku = tenant_guard.get_sku(session, company_id, request.sku_id)
    location = tenant_guard.resolve_location(session, company_id, request.location_id)
    output_location = None
    if request.output_location_id is not None:
        output_location = tenant_guard.get_location(session, company_id, request.output_location_id)

    bom_version = bom_service.resolve_bom_version(
        session, company_id, sku.id, request.transaction_date, request.bom_version_id
    )
    if not bom_version.lines:
        raise ValidationError([f"BOM version {bom_version.version_name} has no lines"])

    requirements = requirement_service.compute_requirements(
        bom_version.lines, request.units_to_build
    )
    components = {line.component_id: line.component for line in bom_version.lines}

    for override in request.lot_overrides:
        tenant_guard.get_component(session, company_id, override.component_id)
        for allocation in override.allocations:
            tenant_guard.get_lot(
                session, company_id, allocation.lot_id, component_id=override.component_id
            )
        if override.component_id not in requirements:
            raise ValidationError(
                [f"Component {override.component_id} is not part of BOM version {bom_version.version_name}"]
            )

    settings = inventory_service.get_company_settings(session, company_id)
    allow_insufficient = inventory_service.resolve_allow_insufficient(
        request.inventory_policy, settings
    )

    return _BuildPlan(
        sku=sku,
        location=location,
        output_location=output_location,
        bom_version=bom_version,
        requirements=requirements,
        components=components,
        allow_insufficient=allow_insufficient,
    )


def _allocate(
    session: Session,
    request: BuildTransactionRequest,
    plan: _BuildPlan,
    allow_insufficient: bool,
    lot_balances=None,
) -> List[lot_service.LotAllocationResult]:
    allocations = []
    for component_id, required in plan.requirements.items():
        override = request.override_for(component_id)
        allocations.append(
            lot_service.allocate_component(
                session,
                request.company_id,
                component_id,
                required,
                allow_insufficient,
                override_allocations=override.allocations if override else None,
                lot_balances=lot_balances,
                exclude_expired=request.exclude_expired_lots,
            )
        )
    return allocations


# =============================================================================
# Availability Check Functions
# =============================================================================


def check_can_build(request: BuildTransactionRequest, *, session=None) -> Dict[str, Any]:
    """
    Dry-run a build: resolve, compute and allocate without writing.

    Args:
        request: Build request (same shape as create_build_transaction)
        session: Optional database session (uses session_scope if not provided)

    Returns:
        Dict with keys:
            - "can_build" (bool): True if every component is available or the
              shortage policy allows the build anyway
            - "bom_version" (Dict): id and version_name of the resolved BOM
            - "requirements" (List[Dict]): component_id and required quantity
            - "insufficient_items" (List[Dict]): short components
            - "allocations" (List[Dict]): proposed lot split per component
            - "expired_lots" (List[Dict]): expired lots FEFO would consume
            - "warning" (bool): True if shortages exist but are allowed

    Raises:
        ValidationError, SkuNotFound, NotFoundOrAccessDenied,
        NoBOMEffectiveOnDate: Same as a real build
    """
    request.validate()
    if session is not None:
        return _check_can_build_impl(request, session)
    with session_scope() as session:
        return _check_can_build_impl(request, session)


def _check_can_build_impl(request: BuildTransactionRequest, session: Session) -> Dict[str, Any]:
    """Implementation of check_can_build that uses provided session."""
    plan = _plan_build(session, request)

    insufficient = inventory_service.check_insufficient_inventory(
        session, plan.requirements, plan.components, plan.location.id
    )
    allocations = _allocate(session, request, plan, allow_insufficient=True)

    return {
        "can_build": not insufficient or plan.allow_insufficient,
        "warning": bool(insufficient) and plan.allow_insufficient,
        "bom_version": {"id": plan.bom_version.id, "version_name": plan.bom_version.version_name},
        "location_id": plan.location.id,
        "requirements": [
            {"component_id": component_id, "required": required}
            for component_id, required in plan.requirements.items()
        ],
        "insufficient_items": insufficient,
        "allocations": [
            {
                "component_id": result.component_id,
                "mode": result.mode,
                "lines": [{"lot_id": line.lot_id, "quantity": line.quantity} for line in result.lines],
            }
            for result in allocations
        ],
        "expired_lots": lot_service.find_expired_lot_allocations(allocations),
    }


# =============================================================================
# Build Recording Functions
# =============================================================================


def create_build_transaction(request: BuildTransactionRequest, *, session=None) -> BuildResult:
    """
    Record a build that consumes components per the resolved BOM.

    This function atomically:
    1. Validates the request shape
    2. Tenant-guards the SKU, locations and every override component/lot
    3. Resolves the BOM version for the build date (or the explicit one)
    4. Computes per-component requirements and the BOM cost snapshot
    5. Locks the balance rows and checks availability under the policy
    6. Allocates each component: manual override, else FEFO, else pooled
    7. Writes the Transaction and one TransactionLine per component x lot
    8. Decrements LotBalance per lot line and InventoryBalance once per
       component, by the component's total consumption
    9. Credits finished goods at output_location_id, if given

    Args:
        request: Build request
        session: Optional database session (uses session_scope if not provided)

    Returns:
        BuildResult with the transaction dictionary and warning flags

    Raises:
        ValidationError: If the request is malformed or an override names a
            component outside the BOM
        SkuNotFound: If the SKU isn't the company's
        NotFoundOrAccessDenied: If a BOM version, location, override
            component or override lot isn't the company's
        NoBOMEffectiveOnDate: If no BOM version covers the build date
        InsufficientInventory: If stock is short and the policy blocks it
        DatabaseError: If the write fails (nothing is committed)
    """

    def _impl(sess):
        plan = _plan_build(sess, request)
        location_id = plan.location.id
        component_ids = list(plan.requirements)

        balances = inventory_service.lock_inventory_balances(sess, component_ids, location_id)
        lot_balances = inventory_service.lock_lot_balances(sess, component_ids)

        insufficient = inventory_service.check_availability(
            sess,
            plan.requirements,
            plan.components,
            location_id,
            plan.allow_insufficient,
            balances=balances,
        )
        allocations = _allocate(sess, request, plan, plan.allow_insufficient, lot_balances)
        expired_lots = lot_service.find_expired_lot_allocations(allocations)
        cost = requirement_service.compute_bom_cost(plan.bom_version.lines, request.units_to_build)

        # Persist
        transaction = Transaction(
            company_id=request.company_id,
            type=TransactionType.BUILD.value,
            date=request.transaction_date,
            location_id=location_id,
            sku_id=plan.sku.id,
            bom_version_id=plan.bom_version.id,
            units_build=request.units_to_build,
            unit_bom_cost=cost.unit_bom_cost,
            total_bom_cost=cost.total_bom_cost,
            sales_channel=request.sales_channel,
            notes=request.notes,
            defect_count=request.defect_count,
            defect_notes=request.defect_notes,
            affected_units=request.affected_units,
            created_by_id=request.created_by_id,
        )

        position = 0
        for result in allocations:
            component = plan.components[result.component_id]
            for line in result.lines:
                transaction.lines.append(
                    TransactionLine(
                        component_id=component.id,
                        lot_id=line.lot_id,
                        location_id=location_id,
                        quantity_change=-line.quantity,
                        cost_per_unit=component.cost_per_unit,
                        position=position,
                    )
                )
                position += 1

        if plan.output_location is not None:
            transaction.finished_goods_lines.append(
                FinishedGoodsLine(
                    sku_id=plan.sku.id,
                    location_id=plan.output_location.id,
                    quantity_change=Decimal(request.effective_output_quantity),
                    cost_per_unit=cost.unit_bom_cost,
                )
            )

        sess.add(transaction)
        sess.flush()

        for result in allocations:
            for line in result.lines:
                if line.lot_id is not None:
                    inventory_service.update_lot_balance(sess, line.lot_id, -line.quantity)
            inventory_service.update_inventory_balance(
                sess, result.component_id, location_id, -result.total
            )

        if plan.output_location is not None:
            inventory_service.update_finished_goods_balance(
                sess,
                plan.sku.id,
                plan.output_location.id,
                Decimal(request.effective_output_quantity),
            )

        log_operation(
            logger,
            operation="create_build_transaction",
            outcome="success_with_warning" if insufficient else "success",
            company_id=request.company_id,
            transaction_id=transaction.id,
            sku_id=plan.sku.id,
            bom_version_id=plan.bom_version.id,
            units_build=request.units_to_build,
            line_count=position,
            short_components=[item["component_id"] for item in insufficient],
        )

        return BuildResult(
            transaction=transaction_to_dict(transaction),
            warning=bool(insufficient),
            insufficient_items=insufficient,
            expired_lots=expired_lots,
        )

    return execute_write(logger, "create_build_transaction", request, _impl, session)

