"""
Lot and LotBalance models.

A Lot is a receipt-tracked batch of one Component with an optional expiry
date. Its remaining quantity lives in a 1:1 LotBalance row, decremented by
builds and incremented by further receipts into the same lot number.
"""

from datetime import date
from decimal import Decimal
from typing import Optional

from sqlalchemy import Column, Date, ForeignKey, Index, Numeric, String, Text, UniqueConstraint
from sqlalchemy.orm import relationship

from .base import BaseModel


class Lot(BaseModel):
    """
    Lot model for expiry-dated batches.

    Attributes:
        component_id: Owning component
        lot_number: Unique per component
        expiry_date: Optional expiry (None sorts last under FEFO)
        received_quantity: Cumulative received quantity
        supplier: Optional supplier name from the first receipt
    """

    __tablename__ = "lots"

    component_id = Column(
        String(36), ForeignKey("components.id", ondelete="CASCADE"), nullable=False, index=True
    )
    lot_number = Column(String(100), nullable=False)
    expiry_date = Column(Date, nullable=True, index=True)
    received_quantity = Column(Numeric(14, 4), nullable=False, default=Decimal("0"))
    supplier = Column(String(100), nullable=True)
    notes = Column(Text, nullable=True)

    component = relationship("Component", back_populates="lots")
    balance = relationship(
        "LotBalance", back_populates="lot", uselist=False, cascade="all, delete-orphan"
    )

    __table_args__ = (
        UniqueConstraint("component_id", "lot_number", name="uq_lot_component_number"),
    )

    def __repr__(self) -> str:
        """String representation of lot."""
        return (
            f"Lot(id={self.id}, component_id={self.component_id}, "
            f"lot_number='{self.lot_number}', expiry_date={self.expiry_date})"
        )

    @property
    def is_expired(self) -> bool:
        """True if expiry_date is before today."""
        if not self.expiry_date:
            return False
        return self.expiry_date < date.today()

    @property
    def days_until_expiration(self) -> Optional[int]:
        """Days until expiry, or None if the lot has no expiry date."""
        if not self.expiry_date:
            return None
        return (self.expiry_date - date.today()).days


class LotBalance(BaseModel):
    """Current remaining quantity of a lot (1:1 with Lot)."""

    __tablename__ = "lot_balances"

    lot_id = Column(
        String(36),
        ForeignKey("lots.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
    )
    quantity = Column(Numeric(14, 4), nullable=False, default=Decimal("0"))

    lot = relationship("Lot", back_populates="balance")

    __table_args__ = (Index("idx_lot_balance_quantity", "quantity"),)
