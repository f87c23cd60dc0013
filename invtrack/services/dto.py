"""Data Transfer Objects for the transaction services.

The five inventory transaction kinds form a closed set of request types,
each carrying only its own required fields:

    InitialTransactionRequest     component_id, quantity
    ReceiptTransactionRequest     component_id, quantity, optional lot
    AdjustmentTransactionRequest  component_id, signed quantity, reason
    BuildTransactionRequest       sku_id, units_to_build, optional overrides
    TransferTransactionRequest    component_id, quantity, both locations

Every request has ``validate()``, which checks shape only (required fields,
positive quantities, parseable dates) and raises ValidationError listing
every problem. Entity resolution and tenant checks happen in the services.
"""

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal, InvalidOperation
from typing import Any, ClassVar, Dict, List, Optional, Union

from ..models import InventoryPolicy, TransactionType
from ..utils.datetime_utils import parse_local_date
from .exceptions import ValidationError

DateLike = Union[str, date]
Quantity = Union[int, str, Decimal]


def _parse_quantity(value: Any, label: str, errors: List[str]) -> Optional[Decimal]:
    if value is None or isinstance(value, bool):
        errors.append(f"{label} is required")
        return None
    try:
        quantity = Decimal(str(value))
    except (InvalidOperation, ValueError):
        errors.append(f"{label} must be a number")
        return None
    if not quantity.is_finite():
        errors.append(f"{label} must be a number")
        return None
    return quantity


def _is_positive_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and value > 0


def _is_non_negative_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and value >= 0


@dataclass
class LotAllocation:
    """Caller-directed consumption of one lot."""

    lot_id: str
    quantity: Quantity

    def to_dict(self) -> Dict[str, Any]:
        return {"lot_id": self.lot_id, "quantity": str(self.quantity)}


@dataclass
class LotOverride:
    """Manual allocations replacing FEFO for one component."""

    component_id: str
    allocations: List[LotAllocation] = field(default_factory=list)


@dataclass(kw_only=True)
class TransactionRequest:
    """Fields shared by every transaction kind."""

    kind: ClassVar[TransactionType]

    company_id: str
    created_by_id: str
    date: DateLike
    notes: Optional[str] = None

    @property
    def transaction_date(self) -> date:
        """The request date as a calendar date (call validate() first)."""
        return parse_local_date(self.date)

    def validate(self) -> None:
        """Raise ValidationError if the request is malformed."""
        errors = self._common_errors()
        errors.extend(self._kind_errors())
        if errors:
            raise ValidationError(errors)

    def _common_errors(self) -> List[str]:
        errors = []
        if not self.company_id:
            errors.append("Company is required")
        if not self.created_by_id:
            errors.append("User is required")
        if self.date is None or self.date == "":
            errors.append("Date is required")
        else:
            try:
                self.date = parse_local_date(self.date)
            except (TypeError, ValueError):
                errors.append(f"Date must be YYYY-MM-DD, got {self.date!r}")
        return errors

    def _kind_errors(self) -> List[str]:
        return []


@dataclass(kw_only=True)
class InitialTransactionRequest(TransactionRequest):
    """Opening balance for a component."""

    kind: ClassVar[TransactionType] = TransactionType.INITIAL

    component_id: str
    quantity: Quantity
    location_id: Optional[str] = None
    cost_per_unit: Optional[Quantity] = None
    update_component_cost: bool = False

    def _kind_errors(self) -> List[str]:
        errors = []
        if not self.component_id:
            errors.append("Component is required")
        quantity = _parse_quantity(self.quantity, "Quantity", errors)
        if quantity is not None:
            if quantity <= 0:
                errors.append("Quantity must be positive")
            else:
                self.quantity = quantity
        if self.cost_per_unit is not None:
            cost = _parse_quantity(self.cost_per_unit, "Cost per unit", errors)
            if cost is not None:
                if cost < 0:
                    errors.append("Cost per unit cannot be negative")
                else:
                    self.cost_per_unit = cost
        return errors


@dataclass(kw_only=True)
class ReceiptTransactionRequest(InitialTransactionRequest):
    """Inbound stock, optionally received into a lot."""

    kind: ClassVar[TransactionType] = TransactionType.RECEIPT

    supplier: Optional[str] = None
    lot_number: Optional[str] = None
    expiry_date: Optional[DateLike] = None

    def _kind_errors(self) -> List[str]:
        errors = super()._kind_errors()
        if self.expiry_date and not self.lot_number:
            errors.append("Expiry date requires a lot number")
        if self.expiry_date:
            try:
                self.expiry_date = parse_local_date(self.expiry_date)
            except (TypeError, ValueError):
                errors.append(f"Expiry date must be YYYY-MM-DD, got {self.expiry_date!r}")
        if self.lot_number is not None:
            self.lot_number = self.lot_number.strip() or None
        return errors


@dataclass(kw_only=True)
class AdjustmentTransactionRequest(TransactionRequest):
    """Signed correction of a component balance."""

    kind: ClassVar[TransactionType] = TransactionType.ADJUSTMENT

    component_id: str
    quantity: Quantity
    reason: str
    location_id: Optional[str] = None

    def _kind_errors(self) -> List[str]:
        errors = []
        if not self.component_id:
            errors.append("Component is required")
        if not self.reason or not self.reason.strip():
            errors.append("Reason is required")
        quantity = _parse_quantity(self.quantity, "Quantity", errors)
        if quantity is not None:
            if quantity == 0:
                errors.append("Quantity cannot be zero")
            else:
                self.quantity = quantity
        return errors


@dataclass(kw_only=True)
class TransferTransactionRequest(TransactionRequest):
    """Movement of a component between two locations of the company."""

    kind: ClassVar[TransactionType] = TransactionType.TRANSFER

    component_id: str
    quantity: Quantity
    from_location_id: str
    to_location_id: str

    def _kind_errors(self) -> List[str]:
        errors = []
        if not self.component_id:
            errors.append("Component is required")
        if not self.from_location_id or not self.to_location_id:
            errors.append("Both source and destination locations are required")
        elif self.from_location_id == self.to_location_id:
            errors.append("Cannot transfer to the same location")
        quantity = _parse_quantity(self.quantity, "Quantity", errors)
        if quantity is not None:
            if quantity <= 0:
                errors.append("Quantity must be positive")
            else:
                self.quantity = quantity
        return errors


@dataclass(kw_only=True)
class BuildTransactionRequest(TransactionRequest):
    """
    Manufacture units_to_build units of a SKU.

    Attributes:
        sku_id: SKU to build
        units_to_build: Positive integer
        bom_version_id: Explicit BOM version; skips date resolution
        location_id: Build location; None uses the company default
        output_location_id: If set, finished goods are credited there
        output_quantity: Units credited (default units_to_build)
        sales_channel: Optional channel label
        defect_count: Defective units found, non-negative
        defect_notes: Free-text description of the defects
        affected_units: Units affected by the defects, non-negative
        inventory_policy: Shortage policy for this request
        exclude_expired_lots: FEFO skips lots past their expiry date
        lot_overrides: Manual lot allocations per component
    """

    kind: ClassVar[TransactionType] = TransactionType.BUILD

    sku_id: str
    units_to_build: int
    bom_version_id: Optional[str] = None
    location_id: Optional[str] = None
    output_location_id: Optional[str] = None
    output_quantity: Optional[int] = None
    sales_channel: Optional[str] = None
    defect_count: Optional[int] = None
    defect_notes: Optional[str] = None
    affected_units: Optional[int] = None
    exclude_expired_lots: bool = False
    inventory_policy: InventoryPolicy = InventoryPolicy.INHERIT
    lot_overrides: List[LotOverride] = field(default_factory=list)

    def _kind_errors(self) -> List[str]:
        errors = []
        if not self.sku_id:
            errors.append("SKU is required")
        if not _is_positive_int(self.units_to_build):
            errors.append("Units to build must be a positive integer")
        if self.output_quantity is not None and not _is_positive_int(self.output_quantity):
            errors.append("Output quantity must be a positive integer")
        if self.defect_count is not None and not _is_non_negative_int(self.defect_count):
            errors.append("Defect count must be a non-negative integer")
        if self.affected_units is not None and not _is_non_negative_int(self.affected_units):
            errors.append("Affected units must be a non-negative integer")
        try:
            self.inventory_policy = InventoryPolicy(self.inventory_policy)
        except ValueError:
            errors.append(f"Unknown inventory policy {self.inventory_policy!r}")

        seen_components = set()
        for override in self.lot_overrides:
            if not override.component_id:
                errors.append("Lot override component is required")
                continue
            if override.component_id in seen_components:
                errors.append(f"Duplicate lot override for component {override.component_id}")
            seen_components.add(override.component_id)
            if not override.allocations:
                errors.append(f"Lot override for component {override.component_id} has no allocations")

            seen_lots = set()
            for allocation in override.allocations:
                if not allocation.lot_id:
                    errors.append("Lot override lot is required")
                    continue
                if allocation.lot_id in seen_lots:
                    errors.append(f"Lot {allocation.lot_id} is allocated more than once")
                seen_lots.add(allocation.lot_id)
                quantity = _parse_quantity(
                    allocation.quantity, f"Quantity for lot {allocation.lot_id}", errors
                )
                if quantity is not None:
                    if quantity <= 0:
                        errors.append(f"Quantity for lot {allocation.lot_id} must be positive")
                    else:
                        allocation.quantity = quantity
        return errors

    def override_for(self, component_id: str) -> Optional[LotOverride]:
        """The manual override for a component, if any."""
        for override in self.lot_overrides:
            if override.component_id == component_id:
                return override
        return None

    @property
    def effective_output_quantity(self) -> int:
        return self.output_quantity if self.output_quantity is not None else self.units_to_build
