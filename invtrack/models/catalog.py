"""
SKU and Component catalog models.

These entities are maintained by the catalog CRUD services; the build
engine only reads them.
"""

from decimal import Decimal

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
)
from sqlalchemy.orm import relationship

from .base import BaseModel


class SKU(BaseModel):
    """
    Buildable finished-good product.

    Attributes:
        company_id: Owning company
        brand_id: Optional brand within the company
        name: Display name
        internal_code: Company-internal product code
    """

    __tablename__ = "skus"

    company_id = Column(
        String(36), ForeignKey("companies.id", ondelete="CASCADE"), nullable=False, index=True
    )
    brand_id = Column(String(36), ForeignKey("brands.id", ondelete="SET NULL"), nullable=True)
    name = Column(String(200), nullable=False)
    internal_code = Column(String(100), nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)

    bom_versions = relationship(
        "BOMVersion", back_populates="sku", order_by="BOMVersion.effective_start_date"
    )

    __table_args__ = (Index("idx_sku_company_code", "company_id", "internal_code"),)


class Component(BaseModel):
    """
    Raw material or part consumed by builds.

    A component is either pooled (no Lot rows, quantity tracked only through
    the ledger) or lot-tracked (one or more Lot rows). Pooled history stays
    valid after the first lot is received.

    Attributes:
        company_id: Owning company
        brand_id: Optional brand
        name: Display name
        sku_code: Supplier/part code
        unit_of_measure: e.g. "each", "g"
        cost_per_unit: Mutable default cost, snapshotted onto ledger lines
        reorder_point: 0 means no reorder tracking
        lead_time_days: Supplier lead time
    """

    __tablename__ = "components"

    company_id = Column(
        String(36), ForeignKey("companies.id", ondelete="CASCADE"), nullable=False, index=True
    )
    brand_id = Column(String(36), ForeignKey("brands.id", ondelete="SET NULL"), nullable=True)
    name = Column(String(200), nullable=False)
    sku_code = Column(String(100), nullable=False)
    unit_of_measure = Column(String(30), nullable=False, default="each")
    cost_per_unit = Column(Numeric(14, 4), nullable=False, default=Decimal("0"))
    reorder_point = Column(Integer, nullable=False, default=0)
    lead_time_days = Column(Integer, nullable=False, default=0)
    notes = Column(Text, nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)

    lots = relationship("Lot", back_populates="component")

    __table_args__ = (
        Index("idx_component_company_code", "company_id", "sku_code"),
        CheckConstraint("cost_per_unit >= 0", name="ck_component_cost_non_negative"),
        CheckConstraint("reorder_point >= 0", name="ck_component_reorder_point_non_negative"),
    )
