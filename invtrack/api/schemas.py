"""Request schemas and response shaping for the build API.

Request bodies are camelCase on the wire and validated by pydantic, then
mapped onto the service-layer request types. Responses are the service
dictionaries with keys converted to camelCase and Decimals rendered as
strings.
"""

import datetime as dt
from decimal import Decimal
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from ..models import InventoryPolicy
from ..services.dto import BuildTransactionRequest, LotAllocation, LotOverride


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class LotAllocationIn(CamelModel):
    lot_id: str
    quantity: Decimal


class LotOverrideIn(CamelModel):
    component_id: str
    allocations: List[LotAllocationIn] = []


class BuildTransactionIn(CamelModel):
    """
    Build request body.

    allowInsufficientInventory true maps to the FORCE_ALLOW policy; false
    or absent inherits the company setting. inventoryPolicy, when given,
    takes precedence.
    """

    sku_id: str
    bom_version_id: Optional[str] = None
    units_to_build: int
    build_date: dt.date = Field(alias="date")
    location_id: Optional[str] = None
    output_location_id: Optional[str] = None
    output_quantity: Optional[int] = None
    sales_channel: Optional[str] = None
    defect_count: Optional[int] = None
    defect_notes: Optional[str] = None
    affected_units: Optional[int] = None
    exclude_expired_lots: bool = False
    allow_insufficient_inventory: Optional[bool] = None
    inventory_policy: Optional[InventoryPolicy] = None
    lot_overrides: List[LotOverrideIn] = []
    notes: Optional[str] = None

    def resolved_policy(self) -> InventoryPolicy:
        if self.inventory_policy is not None:
            return self.inventory_policy
        if self.allow_insufficient_inventory:
            return InventoryPolicy.FORCE_ALLOW
        return InventoryPolicy.INHERIT

    def to_request(self, company_id: str, user_id: str) -> BuildTransactionRequest:
        return BuildTransactionRequest(
            company_id=company_id,
            created_by_id=user_id,
            date=self.build_date,
            sku_id=self.sku_id,
            units_to_build=self.units_to_build,
            bom_version_id=self.bom_version_id,
            location_id=self.location_id,
            output_location_id=self.output_location_id,
            output_quantity=self.output_quantity,
            sales_channel=self.sales_channel,
            defect_count=self.defect_count,
            defect_notes=self.defect_notes,
            affected_units=self.affected_units,
            exclude_expired_lots=self.exclude_expired_lots,
            inventory_policy=self.resolved_policy(),
            lot_overrides=[
                LotOverride(
                    component_id=override.component_id,
                    allocations=[
                        LotAllocation(lot_id=a.lot_id, quantity=a.quantity)
                        for a in override.allocations
                    ],
                )
                for override in self.lot_overrides
            ],
            notes=self.notes,
        )


def to_camel_payload(value: Any) -> Any:
    """Recursively camelCase dict keys and render Decimals as strings."""
    if isinstance(value, dict):
        return {to_camel(str(key)): to_camel_payload(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_camel_payload(item) for item in value]
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, (dt.date, dt.datetime)):
        return value.isoformat()
    return value
