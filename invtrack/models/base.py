"""
Base model class for all database models.

Provides common functionality and fields for all models:
- UUID primary key (stored as a 36-char string for SQLite compatibility)
- Timestamp fields (created_at, updated_at)
- Utility methods (to_dict)
- SQLAlchemy declarative base
"""

import uuid as uuid_lib
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict

from sqlalchemy import Column, DateTime, String
from sqlalchemy.orm import declarative_base, validates

from invtrack.utils.datetime_utils import utc_now

# Create the declarative base for all models
Base = declarative_base()


def new_uuid() -> str:
    """Generate a new string UUID for primary keys."""
    return str(uuid_lib.uuid4())


class BaseModel(Base):
    """Abstract base: string UUID id, created_at/updated_at, to_dict()."""

    __abstract__ = True

    id = Column(String(36), primary_key=True, default=new_uuid)

    created_at = Column(DateTime, nullable=False, default=utc_now)
    updated_at = Column(DateTime, nullable=False, default=utc_now, onupdate=utc_now)

    def to_dict(self) -> Dict[str, Any]:
        """Column values with dates as ISO strings and Decimals as strings."""
        result = {}
        for column in self.__table__.columns:
            value = getattr(self, column.name)
            if isinstance(value, (datetime, date)):
                value = value.isoformat()
            elif isinstance(value, Decimal):
                value = str(value)
            result[column.name] = value
        return result

    @validates("id")
    def _validate_id(self, _key: str, value: Any) -> str:
        """Normalize UUID values to strings for SQLite compatibility."""
        if value is None:
            return value
        return str(value)

    def __repr__(self) -> str:
        label = getattr(self, "name", None)
        if label is None:
            return f"{self.__class__.__name__}(id={self.id})"
        return f"{self.__class__.__name__}(id={self.id}, {label!r})"
