"""Location Service - default location maintenance.

Every company has exactly one default location, used by transactions that
name no location. A company without locations gets a "Main Warehouse".
"""

from contextlib import nullcontext

from ..models import Location, LocationType
from ..utils.constants import DEFAULT_LOCATION_NAME
from . import tenant_guard
from .database import session_scope
from .exceptions import ValidationError
from .logging_utils import get_service_logger, log_operation

logger = get_service_logger(__name__)


def ensure_default_location(company_id: str, *, session=None) -> Location:
    """
    Make sure the company has a default location and return it.

    With no locations, a default "Main Warehouse" is created. With locations
    but no default, the oldest one becomes the default.
    """
    cm = nullcontext(session) if session is not None else session_scope()
    with cm as session:
        company = tenant_guard.get_company(session, company_id)
        locations = (
            session.query(Location)
            .filter(Location.company_id == company.id)
            .order_by(Location.created_at)
            .all()
        )

        for location in locations:
            if location.is_default:
                return location

        if locations:
            default = locations[0]
            default.is_default = True
            outcome = "promoted"
        else:
            default = Location(
                company_id=company.id,
                name=DEFAULT_LOCATION_NAME,
                type=LocationType.WAREHOUSE.value,
                is_default=True,
                is_active=True,
            )
            session.add(default)
            outcome = "created"
        session.flush()

        log_operation(
            logger,
            operation="ensure_default_location",
            outcome=outcome,
            company_id=company.id,
            location_id=default.id,
        )
        return default


def set_default_location(company_id: str, location_id: str, *, session=None) -> Location:
    """Make a location the company's only default."""
    cm = nullcontext(session) if session is not None else session_scope()
    with cm as session:
        target = tenant_guard.get_location(session, company_id, location_id)
        current = (
            session.query(Location)
            .filter(Location.company_id == company_id, Location.is_default.is_(True))
            .all()
        )
        for location in current:
            location.is_default = False
        target.is_default = True
        session.flush()

        log_operation(
            logger,
            operation="set_default_location",
            outcome="success",
            company_id=company_id,
            location_id=target.id,
        )
        return target


def deactivate_location(company_id: str, location_id: str, *, session=None) -> Location:
    """
    Deactivate a location.

    Raises:
        ValidationError: If it is the default location
    """
    cm = nullcontext(session) if session is not None else session_scope()
    with cm as session:
        location = tenant_guard.get_location(session, company_id, location_id)
        if location.is_default:
            raise ValidationError(["Cannot deactivate the default location"])
        location.is_active = False
        session.flush()
        return location
