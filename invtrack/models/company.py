"""
Company, Brand and Location models.

The Company is the tenant boundary: every other entity is reachable,
directly or transitively, to exactly one Company.
"""

from typing import Any, Dict

from sqlalchemy import JSON, Boolean, Column, ForeignKey, Index, String
from sqlalchemy.orm import relationship

from .base import BaseModel
from .enums import LocationType
from invtrack.utils.constants import DEFAULT_COMPANY_SETTINGS


class Company(BaseModel):
    """
    Company (tenant) model.

    Attributes:
        name: Display name
        settings: JSON dict of company-level policy; missing keys fall back
            to DEFAULT_COMPANY_SETTINGS
    """

    __tablename__ = "companies"

    name = Column(String(200), nullable=False)
    settings = Column(JSON, nullable=False, default=dict)

    brands = relationship("Brand", back_populates="company")
    locations = relationship("Location", back_populates="company")

    def get_settings(self) -> Dict[str, Any]:
        """Stored settings merged over the defaults."""
        merged = dict(DEFAULT_COMPANY_SETTINGS)
        merged.update(self.settings or {})
        return merged


class Brand(BaseModel):
    """Brand grouping SKUs and components within a company."""

    __tablename__ = "brands"

    company_id = Column(
        String(36), ForeignKey("companies.id", ondelete="CASCADE"), nullable=False, index=True
    )
    name = Column(String(200), nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)

    company = relationship("Company", back_populates="brands")


class Location(BaseModel):
    """
    Stock location (warehouse, 3PL, FBA, finished goods bucket).

    Every company has exactly one default location.

    Attributes:
        company_id: Owning company
        name: Display name
        type: LocationType value
        is_default: Used when a transaction names no location
        is_active: Inactive locations cannot be transacted against
    """

    __tablename__ = "locations"

    company_id = Column(
        String(36), ForeignKey("companies.id", ondelete="CASCADE"), nullable=False, index=True
    )
    name = Column(String(200), nullable=False)
    type = Column(String(30), nullable=False, default=LocationType.WAREHOUSE.value)
    is_default = Column(Boolean, nullable=False, default=False)
    is_active = Column(Boolean, nullable=False, default=True)

    company = relationship("Company", back_populates="locations")

    __table_args__ = (Index("idx_location_company_default", "company_id", "is_default"),)
