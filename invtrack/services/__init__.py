"""Services package - Business logic layer for the inventory tracker.

This package contains all service modules that provide business logic
and database operations for the application.

Architecture:
- Services: Stateless functions organized by domain (BOM, lots, balances, builds)
- Transactions: Managed via session_scope() context manager; every function
  also accepts a caller-owned session
- Tenancy: Every entity lookup goes through tenant_guard
- Exceptions: Consistent error handling via ServiceError hierarchy
- Validation: Request DTOs validate shape before database operations

Service Modules:
- tenant_guard: Company-scoped entity lookups
- bom_service: BOM version resolution, maintenance and capacity
- requirement_service: Component requirements and BOM cost snapshot
- inventory_service: Balance store, locking and availability
- lot_service: FEFO / override / pooled lot allocation and lot trace
- transaction_service: Initial, receipt, adjustment and transfer transactions
- build_service: Build transactions (the atomic build pipeline)
- location_service: Default location maintenance

Infrastructure:
- exceptions: Custom exception classes for service layer errors
- database: Session management and database utilities
- dto: Transaction request types
- logging_utils: Structured operation logging
"""

from . import (
    database,
    tenant_guard,
    bom_service,
    requirement_service,
    inventory_service,
    lot_service,
    transaction_service,
    build_service,
    location_service,
)

from .exceptions import (
    ServiceError,
    NotFoundOrAccessDenied,
    SkuNotFound,
    NoBOMEffectiveOnDate,
    InsufficientInventory,
    ValidationError,
    DatabaseError,
)

__all__ = [
    # Modules
    "database",
    "tenant_guard",
    "bom_service",
    "requirement_service",
    "inventory_service",
    "lot_service",
    "transaction_service",
    "build_service",
    "location_service",
    # Exceptions
    "ServiceError",
    "NotFoundOrAccessDenied",
    "SkuNotFound",
    "NoBOMEffectiveOnDate",
    "InsufficientInventory",
    "ValidationError",
    "DatabaseError",
]
