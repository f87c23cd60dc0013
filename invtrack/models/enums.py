"""
Enumerations for inventory tracking.

This module contains enums used across inventory models and services:
- TransactionType: The closed set of inventory-changing event kinds
- InventoryPolicy: Per-request shortage policy for builds
- LocationType: Kinds of stock locations
- ReorderStatus: Reorder classification for a component balance
- ExpiryStatus: Expiry classification for a lot
"""

from enum import Enum


class TransactionType(str, Enum):
    """
    Inventory transaction kinds.

    Transactions are immutable once written; corrections are new
    ADJUSTMENT transactions.

    Values:
        INITIAL: Opening balance for a component
        RECEIPT: Inbound stock, optionally into a lot
        ADJUSTMENT: Signed correction with a reason
        BUILD: Component consumption for manufacturing a SKU
        TRANSFER: Movement between two locations
    """

    INITIAL = "initial"
    RECEIPT = "receipt"
    ADJUSTMENT = "adjustment"
    BUILD = "build"
    TRANSFER = "transfer"


class InventoryPolicy(str, Enum):
    """
    Shortage policy for a single build request.

    Values:
        INHERIT: Follow the company's allow_negative_inventory setting
        FORCE_BLOCK: Reject shortages even if the company allows them
        FORCE_ALLOW: Proceed with shortages and return a warning
    """

    INHERIT = "inherit"
    FORCE_BLOCK = "force_block"
    FORCE_ALLOW = "force_allow"


class LocationType(str, Enum):
    """Stock location kinds."""

    WAREHOUSE = "warehouse"
    THREEPL = "threepl"
    FBA = "fba"
    FINISHED_GOODS = "finished_goods"


class ReorderStatus(str, Enum):
    """
    Reorder classification.

    Values:
        CRITICAL: quantity <= reorder point
        WARNING: quantity <= reorder point * warning multiplier
        OK: above the warning band, or reorder point is 0 (no tracking)
    """

    CRITICAL = "critical"
    WARNING = "warning"
    OK = "ok"


class ExpiryStatus(str, Enum):
    """Expiry classification for a lot."""

    EXPIRED = "expired"
    EXPIRING_SOON = "expiring_soon"
    OK = "ok"
