# src/schema/builtin.py - v1
"""Output schemas shipped with the tool, defined as pydantic models.

construction-order   basic construction order with optional line items
order-list           timber order list: contact block, project header,
                     partial lists with subtotals and a grand total

Key names follow the documents the models are prompted with, so several
order-list keys keep their original spelling (``STK``, ``SBruttoL``).
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


# === Construction order ===


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ConstructionOrderItem(_CamelModel):
    description: str
    quantity: float
    unit: str | None = None
    unit_price: float | None = None
    total_price: float | None = None


class ConstructionOrder(_CamelModel):
    order_number: str = Field(description="Unique order identifier")
    date: str = Field(description="Order date in YYYY-MM-DD format")
    project_name: str | None = Field(default=None, description="Name of the construction project")
    contractor: str | None = Field(default=None, description="Contractor company name")
    items: list[ConstructionOrderItem] | None = None
    total_amount: float | None = Field(default=None, description="Total order amount")
    notes: str | None = Field(default=None, description="Additional notes or comments")


# === Order list ===


class ContactInfo(BaseModel):
    phone: str
    fax: str
    website: str
    email: str


class OrderProject(BaseModel):
    date: str
    Construction_project: str
    Construction_project_no: int | None
    Location: str
    Customer_name: str
    Customer_no: int
    processor: str


class OrderItem(BaseModel):
    STK: int
    name: str
    sku: str
    width: float
    width_unit: str
    height: float
    height_unit: str
    length: float
    length_unit: str
    total_length: float | None
    total_length_unit: str | None
    volume: float
    volume_unit: str


class Totals(BaseModel):
    STK: int
    total_length: float
    total_length_unit: str | None
    total_volume: float
    total_volume_unit: str | None
    total_area: float
    total_area_unit: str | None
    SBruttoL: float
    SBruttoL_unit: str | None


class PartialList(BaseModel):
    list_name: str | None
    items: list[OrderItem]
    partial_list_total: Totals | None


class OrderList(BaseModel):
    contactInfo: ContactInfo
    order: OrderProject
    partial_list: list[PartialList]
    total_OrderList: Totals


# id -> (display name, model)
BUILTIN_MODELS: dict[str, tuple[str, type[BaseModel]]] = {
    "construction-order": ("Construction order", ConstructionOrder),
    "order-list": ("Order list", OrderList),
}
