"""
Constants for the inventory tracker.

This module defines system-wide constants including:
- Application metadata
- Quantity and cost precision
- Company setting defaults
- Reorder and expiry thresholds
"""

from decimal import Decimal
from typing import Any, Dict

# ============================================================================
# Application Metadata
# ============================================================================

APP_NAME = "Inventory Tracker"
APP_VERSION = "0.1.0"
DATABASE_VERSION = "1.0"
DATABASE_FILENAME = "invtrack.db"

# ============================================================================
# Precision
# ============================================================================

# Numeric(14, 4) columns for quantities and costs
QUANTITY_PRECISION = 14
QUANTITY_SCALE = 4
ZERO = Decimal("0")

# ============================================================================
# Company Settings
# ============================================================================

DEFAULT_COMPANY_SETTINGS: Dict[str, Any] = {
    # Builds may drive balances negative without a per-request override
    "allow_negative_inventory": False,
    # Lots expiring within this many days are flagged "expiring_soon"
    "expiry_warning_days": 30,
    # Warning band above the reorder point (quantity <= point * multiplier)
    "reorder_warning_multiplier": 1.5,
}

# ============================================================================
# Default Location
# ============================================================================

DEFAULT_LOCATION_NAME = "Main Warehouse"
