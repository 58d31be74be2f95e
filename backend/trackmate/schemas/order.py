"""TrackMate — Order schemas."""
from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field, ValidationInfo, field_validator

from trackmate.db.base import as_utc
from trackmate.models.enums import OrderStatus

# --- Items ---

class OrderItemCreate(BaseModel):
    product_id: int
    quantity: int = Field(..., gt=0)
    # None = take the product's current unit price
    unit_price: Decimal | None = Field(default=None, ge=0)


class OrderItemRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    order_id: int
    product_id: int
    quantity: int
    unit_price: Decimal
    total: Decimal


# --- Orders ---

class OrderCreate(BaseModel):
    customer_id: int
    items: list[OrderItemCreate] = Field(default_factory=list)
    tax_rate: Decimal = Field(default=Decimal("0"), ge=0, le=100)
    shipping_cost: Decimal = Field(default=Decimal("0"), ge=0)
    currency: str | None = Field(default=None, min_length=3, max_length=3)
    order_date: datetime | None = None
    due_date: datetime | None = None
    notes: str | None = None

    @field_validator("due_date")
    @classmethod
    def _due_after_order(cls, value: datetime | None, info: ValidationInfo) -> datetime | None:
        order_date = info.data.get("order_date")
        if value and order_date and as_utc(value) < as_utc(order_date):
            raise ValueError("due_date must not be before order_date")
        return value


class OrderRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    company_id: int
    customer_id: int
    order_number: str
    order_date: datetime
    due_date: datetime | None
    sub_total: Decimal
    tax_rate: Decimal
    tax_amount: Decimal
    shipping_cost: Decimal
    total: Decimal
    currency: str
    status: OrderStatus
    notes: str | None
    version: int
    items: list[OrderItemRead] = []


class OrderUpdate(BaseModel):
    """Header fields only; items and status have their own operations. Omitted fields stay as they are."""

    tax_rate: Decimal | None = Field(default=None, ge=0, le=100)
    shipping_cost: Decimal | None = Field(default=None, ge=0)
    currency: str | None = Field(default=None, min_length=3, max_length=3)
    due_date: datetime | None = None
    notes: str | None = None

    @field_validator("tax_rate", "shipping_cost", "currency")
    @classmethod
    def _not_null(cls, value):
        if value is None:
            raise ValueError("may not be null")
        return value
