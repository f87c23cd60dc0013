"""
Materialized balance models.

InventoryBalance and FinishedGoodsBalance are projections of the
append-only ledger (TransactionLine / FinishedGoodsLine). They are
maintained incrementally inside the same database transaction as the
ledger write and must always equal the signed sum of the ledger lines for
their key.
"""

from decimal import Decimal

from sqlalchemy import Column, ForeignKey, Numeric, String, UniqueConstraint
from sqlalchemy.orm import relationship

from .base import BaseModel


class InventoryBalance(BaseModel):
    """Running quantity of one component at one location."""

    __tablename__ = "inventory_balances"

    component_id = Column(
        String(36), ForeignKey("components.id", ondelete="CASCADE"), nullable=False, index=True
    )
    location_id = Column(
        String(36), ForeignKey("locations.id", ondelete="CASCADE"), nullable=False, index=True
    )
    quantity = Column(Numeric(14, 4), nullable=False, default=Decimal("0"))

    component = relationship("Component")
    location = relationship("Location")

    __table_args__ = (
        UniqueConstraint("component_id", "location_id", name="uq_inventory_balance_key"),
    )

    def __repr__(self) -> str:
        """String representation of balance."""
        return (
            f"InventoryBalance(component_id={self.component_id}, "
            f"location_id={self.location_id}, quantity={self.quantity})"
        )


class FinishedGoodsBalance(BaseModel):
    """Running quantity of one SKU at one location."""

    __tablename__ = "finished_goods_balances"

    sku_id = Column(
        String(36), ForeignKey("skus.id", ondelete="CASCADE"), nullable=False, index=True
    )
    location_id = Column(
        String(36), ForeignKey("locations.id", ondelete="CASCADE"), nullable=False, index=True
    )
    quantity = Column(Numeric(14, 4), nullable=False, default=Decimal("0"))

    __table_args__ = (
        UniqueConstraint("sku_id", "location_id", name="uq_finished_goods_balance_key"),
    )
