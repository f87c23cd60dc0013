"""
BOM version models.

A BOMVersion is an immutable snapshot of a SKU's bill of materials. After
creation only ``is_active`` and ``effective_end_date`` change (when the
version is superseded). Effective intervals of one SKU may overlap in
storage; resolution at build time picks deterministically.
"""

from sqlalchemy import (
    Boolean,
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


class BOMVersion(BaseModel):
    """
    Versioned bill of materials for a SKU.

    Attributes:
        sku_id: SKU this BOM builds
        version_name: Human label, e.g. "v2"
        effective_start_date: First day the version governs builds
        effective_end_date: Last day (inclusive); None means open-ended
        is_active: The version shown as current in the catalog
    """

    __tablename__ = "bom_versions"

    sku_id = Column(
        String(36), ForeignKey("skus.id", ondelete="CASCADE"), nullable=False, index=True
    )
    version_name = Column(String(100), nullable=False)
    effective_start_date = Column(Date, nullable=False)
    effective_end_date = Column(Date, nullable=True)
    is_active = Column(Boolean, nullable=False, default=False)
    notes = Column(Text, nullable=True)

    sku = relationship("SKU", back_populates="bom_versions")
    lines = relationship(
        "BOMLine",
        back_populates="bom_version",
        cascade="all, delete-orphan",
        order_by="BOMLine.position",
    )

    __table_args__ = (Index("idx_bom_version_sku_start", "sku_id", "effective_start_date"),)

    def covers(self, as_of) -> bool:
        """True if the effective interval includes the given date."""
        if self.effective_start_date > as_of:
            return False
        return self.effective_end_date is None or self.effective_end_date >= as_of


class BOMLine(BaseModel):
    """
    One (component, quantity per unit) entry of a BOM version.

    The same component may appear on more than one line.
    """

    __tablename__ = "bom_lines"

    bom_version_id = Column(
        String(36), ForeignKey("bom_versions.id", ondelete="CASCADE"), nullable=False, index=True
    )
    component_id = Column(
        String(36), ForeignKey("components.id", ondelete="RESTRICT"), nullable=False, index=True
    )
    quantity_per_unit = Column(Numeric(14, 4), nullable=False)
    position = Column(Integer, nullable=False, default=0)

    bom_version = relationship("BOMVersion", back_populates="lines")
    component = relationship("Component")

    __table_args__ = (
        CheckConstraint("quantity_per_unit > 0", name="ck_bom_line_quantity_positive"),
    )
