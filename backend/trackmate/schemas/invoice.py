"""TrackMate — Invoice schemas."""
from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field, ValidationInfo, field_validator

from trackmate.db.base import as_utc
from trackmate.models.enums import InvoiceStatus

# --- Items ---

class InvoiceItemCreate(BaseModel):
    product_id: int
    quantity: Decimal = Field(..., gt=0)
    unit_price: Decimal | None = Field(default=None, ge=0)
    # None = inherit the invoice's default rate
    tax_rate: Decimal | None = Field(default=None, ge=0, le=100)
    description: str | None = None


class InvoiceItemRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    invoice_id: int
    product_id: int
    description: str | None
    quantity: Decimal
    unit_price: Decimal
    tax_rate: Decimal
    subtotal: Decimal
    tax_amount: Decimal
    total: Decimal


# --- Invoices ---

class InvoiceCreate(BaseModel):
    customer_id: int
    order_id: int | None = None
    bank_details_id: int | None = None
    # Accepted for compatibility; the engine always assigns the number itself
    invoice_number: str | None = None
    invoice_date: datetime | None = None
    due_date: datetime | None = None
    tax_rate: Decimal = Field(default=Decimal("0"), ge=0, le=100)
    shipping_cost: Decimal = Field(default=Decimal("0"), ge=0)
    currency: str | None = Field(default=None, min_length=3, max_length=3)
    notes: str | None = None
    items: list[InvoiceItemCreate] = Field(default_factory=list)

    @field_validator("due_date")
    @classmethod
    def _due_after_invoice(cls, value: datetime | None, info: ValidationInfo) -> datetime | None:
        invoice_date = info.data.get("invoice_date")
        if value and invoice_date and as_utc(value) < as_utc(invoice_date):
            raise ValueError("due_date must not be before invoice_date")
        return value


class InvoiceRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    company_id: int
    invoice_number: str
    invoice_date: datetime
    due_date: datetime | None
    customer_id: int
    order_id: int | None
    bank_details_id: int | None
    subtotal: Decimal
    tax_rate: Decimal
    tax_amount: Decimal
    shipping_cost: Decimal
    total: Decimal
    currency: str
    # Effective status: a Sent invoice past its due date reads as Overdue
    status: InvoiceStatus
    paid_date: datetime | None
    notes: str | None
    version: int
    items: list[InvoiceItemRead] = []


class InvoiceUpdate(BaseModel):
    """Header fields only; items and status have their own operations. Omitted fields stay as they are."""

    tax_rate: Decimal | None = Field(default=None, ge=0, le=100)
    shipping_cost: Decimal | None = Field(default=None, ge=0)
    currency: str | None = Field(default=None, min_length=3, max_length=3)
    due_date: datetime | None = None
    notes: str | None = None
    bank_details_id: int | None = None

    @field_validator("tax_rate", "shipping_cost", "currency")
    @classmethod
    def _not_null(cls, value):
        if value is None:
            raise ValueError("may not be null")
        return value
