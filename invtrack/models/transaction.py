"""
Transaction ledger models.

A Transaction is an immutable inventory event that exclusively owns its
TransactionLines (and, for builds with finished-goods output, its
FinishedGoodsLines). Lines are created together with the header and are
never edited or individually deleted.
"""

from sqlalchemy import (
    CheckConstraint,
    Column,
    Date,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
)
from sqlalchemy.orm import relationship

from .base import BaseModel
from .enums import TransactionType


class Transaction(BaseModel):
    """
    Inventory transaction header.

    Kind-specific fields:
        build: sku_id, bom_version_id, units_build, unit_bom_cost, total_bom_cost,
               defect_count, defect_notes, affected_units (quality record)
        transfer: from_location_id, to_location_id (location_id is None)
        receipt: supplier
        adjustment: reason

    Attributes:
        company_id: Owning company
        type: TransactionType value
        date: Local calendar date of the event
        created_by_id: Id of the acting user (auth is an external collaborator)
    """

    __tablename__ = "transactions"

    company_id = Column(
        String(36), ForeignKey("companies.id", ondelete="CASCADE"), nullable=False, index=True
    )
    type = Column(String(20), nullable=False)
    date = Column(Date, nullable=False, index=True)

    location_id = Column(String(36), ForeignKey("locations.id"), nullable=True)
    from_location_id = Column(String(36), ForeignKey("locations.id"), nullable=True)
    to_location_id = Column(String(36), ForeignKey("locations.id"), nullable=True)

    # Build fields
    sku_id = Column(String(36), ForeignKey("skus.id"), nullable=True, index=True)
    bom_version_id = Column(String(36), ForeignKey("bom_versions.id"), nullable=True)
    units_build = Column(Integer, nullable=True)
    unit_bom_cost = Column(Numeric(14, 4), nullable=True)
    total_bom_cost = Column(Numeric(14, 4), nullable=True)
    sales_channel = Column(String(100), nullable=True)
    defect_count = Column(Integer, nullable=True)
    defect_notes = Column(Text, nullable=True)
    affected_units = Column(Integer, nullable=True)

    supplier = Column(String(100), nullable=True)
    reason = Column(String(200), nullable=True)
    notes = Column(Text, nullable=True)
    created_by_id = Column(String(36), nullable=False)

    lines = relationship(
        "TransactionLine",
        back_populates="transaction",
        cascade="all, delete-orphan",
        order_by="TransactionLine.position",
    )
    finished_goods_lines = relationship(
        "FinishedGoodsLine", back_populates="transaction", cascade="all, delete-orphan"
    )
    sku = relationship("SKU")
    bom_version = relationship("BOMVersion")
    location = relationship("Location", foreign_keys=[location_id])
    from_location = relationship("Location", foreign_keys=[from_location_id])
    to_location = relationship("Location", foreign_keys=[to_location_id])

    __table_args__ = (
        Index("idx_transaction_company_date", "company_id", "date"),
        CheckConstraint(
            "type IN ('initial', 'receipt', 'adjustment', 'build', 'transfer')",
            name="ck_transaction_type_valid",
        ),
        CheckConstraint(
            "units_build IS NULL OR units_build > 0", name="ck_transaction_units_positive"
        ),
        CheckConstraint(
            "defect_count IS NULL OR defect_count >= 0", name="ck_transaction_defects_non_negative"
        ),
        CheckConstraint(
            "affected_units IS NULL OR affected_units >= 0",
            name="ck_transaction_affected_non_negative",
        ),
    )

    @property
    def transaction_type(self) -> TransactionType:
        """Type as an enum."""
        return TransactionType(self.type)

    def __repr__(self) -> str:
        """String representation of transaction."""
        return f"Transaction(id={self.id}, type='{self.type}', date={self.date})"


class TransactionLine(BaseModel):
    """
    Signed quantity change of one component, optionally against one lot.

    Build lines are always negative; one line per (component, lot-or-none)
    combination consumed.
    """

    __tablename__ = "transaction_lines"

    transaction_id = Column(
        String(36), ForeignKey("transactions.id", ondelete="CASCADE"), nullable=False, index=True
    )
    component_id = Column(
        String(36), ForeignKey("components.id", ondelete="RESTRICT"), nullable=False, index=True
    )
    lot_id = Column(String(36), ForeignKey("lots.id", ondelete="RESTRICT"), nullable=True, index=True)
    # Location the line applies to; transfers carry one line per side
    location_id = Column(String(36), ForeignKey("locations.id"), nullable=True, index=True)
    quantity_change = Column(Numeric(14, 4), nullable=False)
    cost_per_unit = Column(Numeric(14, 4), nullable=True)
    position = Column(Integer, nullable=False, default=0)

    transaction = relationship("Transaction", back_populates="lines")
    component = relationship("Component")
    lot = relationship("Lot")

    __table_args__ = (
        CheckConstraint("quantity_change != 0", name="ck_transaction_line_non_zero"),
    )


class FinishedGoodsLine(BaseModel):
    """Credit of finished SKU units produced by a build."""

    __tablename__ = "finished_goods_lines"

    transaction_id = Column(
        String(36), ForeignKey("transactions.id", ondelete="CASCADE"), nullable=False, index=True
    )
    sku_id = Column(String(36), ForeignKey("skus.id"), nullable=False, index=True)
    location_id = Column(String(36), ForeignKey("locations.id"), nullable=False)
    quantity_change = Column(Numeric(14, 4), nullable=False)
    cost_per_unit = Column(Numeric(14, 4), nullable=True)

    transaction = relationship("Transaction", back_populates="finished_goods_lines")
