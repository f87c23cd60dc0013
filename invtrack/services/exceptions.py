"""Service layer exception classes for the inventory tracker.

This module defines all custom exceptions used by the service layer to provide
consistent error handling across services and the HTTP adapter.

Every exception carries a machine-readable ``code`` and structured data so
callers never need to parse messages.

Exception Hierarchy:
    ServiceError (base)
    ├── NotFoundOrAccessDenied
    │   └── SkuNotFound
    ├── NoBOMEffectiveOnDate
    ├── InsufficientInventory
    ├── ValidationError
    └── DatabaseError
"""

from datetime import date
from decimal import Decimal
from typing import Any, Dict, List, Optional


class ServiceError(Exception):
    """Base exception for all service layer errors.

    All service-specific exceptions inherit from this class.
    """

    code = "service_error"


class NotFoundOrAccessDenied(ServiceError):
    """Raised when an entity is missing or belongs to another company.

    Both causes produce the same message so callers cannot discover ids
    owned by other tenants.

    Args:
        entity: Entity kind, e.g. "Lot"
        entity_id: The id that did not resolve

    Example:
        >>> raise NotFoundOrAccessDenied("Lot", "4f1c...")
        NotFoundOrAccessDenied: Lot 4f1c... not found or access denied
    """

    code = "not_found_or_access_denied"

    def __init__(self, entity: str, entity_id: Any):
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(f"{entity} {entity_id} not found or access denied")


class SkuNotFound(NotFoundOrAccessDenied):
    """Raised when the build target SKU does not resolve for the caller."""

    code = "sku_not_found"

    def __init__(self, sku_id: Any):
        super().__init__("SKU", sku_id)


class NoBOMEffectiveOnDate(ServiceError):
    """Raised when no BOM version of a SKU covers the build date.

    Example:
        >>> raise NoBOMEffectiveOnDate("sku-1", date(2025, 1, 15))
        NoBOMEffectiveOnDate: No BOM version effective on 2025-01-15 for this SKU
    """

    code = "no_bom_effective_on_date"

    def __init__(self, sku_id: Any, as_of: date):
        self.sku_id = sku_id
        self.as_of = as_of
        super().__init__(f"No BOM version effective on {as_of.isoformat()} for this SKU")


class InsufficientInventory(ServiceError):
    """Raised when required quantity exceeds the available balance.

    Args:
        items: One dict per short component with component_id, component_name,
            sku_code, required, available and shortage (lot-level shortfalls
            from manual overrides also carry lot_id)
    """

    code = "insufficient_inventory"

    def __init__(self, items: List[Dict[str, Any]]):
        self.items = items
        super().__init__(
            f"Insufficient inventory for {len(items)} component(s). "
            f"Use allowInsufficientInventory option to proceed anyway."
        )

    def to_payload(self) -> List[Dict[str, Any]]:
        """Items with Decimals rendered as strings."""
        return [
            {key: (str(value) if isinstance(value, Decimal) else value) for key, value in item.items()}
            for item in self.items
        ]


class ValidationError(ServiceError):
    """Raised when request data validation fails."""

    code = "validation_error"

    def __init__(self, errors: list):
        self.errors = errors
        error_msg = "; ".join(errors)
        super().__init__(f"Validation failed: {error_msg}")


class DatabaseError(ServiceError):
    """Raised when a database operation fails and the unit was rolled back."""

    code = "database_error"

    def __init__(self, message: str, original_error: Optional[Exception] = None):
        self.original_error = original_error
        super().__init__(f"Database error: {message}")
