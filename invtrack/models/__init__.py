"""
Database models package.

This package contains all SQLAlchemy ORM models for the application.
"""

from .base import Base, BaseModel
from .company import Company, Brand, Location
from .catalog import SKU, Component
from .bom import BOMVersion, BOMLine
from .lot import Lot, LotBalance
from .balance import InventoryBalance, FinishedGoodsBalance
from .transaction import Transaction, TransactionLine, FinishedGoodsLine
from .enums import (
    TransactionType,
    InventoryPolicy,
    LocationType,
    ReorderStatus,
    ExpiryStatus,
)

__all__ = [
    "Base",
    "BaseModel",
    # Tenant
    "Company",
    "Brand",
    "Location",
    # Catalog
    "SKU",
    "Component",
    "BOMVersion",
    "BOMLine",
    # Lots and balances
    "Lot",
    "LotBalance",
    "InventoryBalance",
    "FinishedGoodsBalance",
    # Ledger
    "Transaction",
    "TransactionLine",
    "FinishedGoodsLine",
    # Enums
    "TransactionType",
    "InventoryPolicy",
    "LocationType",
    "ReorderStatus",
    "ExpiryStatus",
]
