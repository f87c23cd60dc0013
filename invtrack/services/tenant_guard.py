"""Tenant Guard - company-scoped entity lookups.

Every entity a build touches (SKU, BOM version, component, lot, location)
is fetched through this module. A lookup returns the entity only if it
belongs to the caller's company; otherwise it raises NotFoundOrAccessDenied
with the same message whether the row is missing or owned by another tenant.

All functions take the caller's session so lookups run inside the build's
atomic unit.
"""

from typing import Optional

from sqlalchemy.orm import Session

from ..models import SKU, BOMVersion, Company, Component, Location, Lot
from .exceptions import NotFoundOrAccessDenied, SkuNotFound, ValidationError


def get_company(session: Session, company_id: str) -> Company:
    """Fetch the caller's company."""
    company = session.query(Company).filter(Company.id == company_id).first()
    if not company:
        raise NotFoundOrAccessDenied("Company", company_id)
    return company


def get_sku(session: Session, company_id: str, sku_id: str) -> SKU:
    """Fetch a SKU owned by the company.

    Raises:
        SkuNotFound: If the SKU is missing or owned by another company
    """
    sku = (
        session.query(SKU)
        .filter(SKU.id == sku_id, SKU.company_id == company_id)
        .first()
    )
    if not sku:
        raise SkuNotFound(sku_id)
    return sku


def get_bom_version(session: Session, company_id: str, bom_version_id: str) -> BOMVersion:
    """Fetch a BOM version whose SKU is owned by the company."""
    bom_version = (
        session.query(BOMVersion)
        .join(SKU, BOMVersion.sku_id == SKU.id)
        .filter(BOMVersion.id == bom_version_id, SKU.company_id == company_id)
        .first()
    )
    if not bom_version:
        raise NotFoundOrAccessDenied("BOM version", bom_version_id)
    return bom_version


def get_component(session: Session, company_id: str, component_id: str) -> Component:
    """Fetch a component owned by the company."""
    component = (
        session.query(Component)
        .filter(Component.id == component_id, Component.company_id == company_id)
        .first()
    )
    if not component:
        raise NotFoundOrAccessDenied("Component", component_id)
    return component


def get_lot(
    session: Session,
    company_id: str,
    lot_id: str,
    component_id: Optional[str] = None,
) -> Lot:
    """Fetch a lot whose component is owned by the company.

    A correctly guessed lot id is not enough: the lot's component must also
    belong to the company, and must equal ``component_id`` when given.
    """
    query = (
        session.query(Lot)
        .join(Component, Lot.component_id == Component.id)
        .filter(Lot.id == lot_id, Component.company_id == company_id)
    )
    if component_id is not None:
        query = query.filter(Lot.component_id == component_id)
    lot = query.first()
    if not lot:
        raise NotFoundOrAccessDenied("Lot", lot_id)
    return lot


def get_location(session: Session, company_id: str, location_id: str) -> Location:
    """Fetch an active location owned by the company."""
    location = (
        session.query(Location)
        .filter(
            Location.id == location_id,
            Location.company_id == company_id,
            Location.is_active.is_(True),
        )
        .first()
    )
    if not location:
        raise NotFoundOrAccessDenied("Location", location_id)
    return location


def get_default_location(session: Session, company_id: str) -> Location:
    """Fetch the company's default location.

    Raises:
        ValidationError: If the company has no active default location
    """
    location = (
        session.query(Location)
        .filter(
            Location.company_id == company_id,
            Location.is_default.is_(True),
            Location.is_active.is_(True),
        )
        .first()
    )
    if not location:
        raise ValidationError(["Company has no default location; specify a location"])
    return location


def resolve_location(
    session: Session, company_id: str, location_id: Optional[str]
) -> Location:
    """Return the named location, or the company default when none is named."""
    if location_id is None:
        return get_default_location(session, company_id)
    return get_location(session, company_id, location_id)
