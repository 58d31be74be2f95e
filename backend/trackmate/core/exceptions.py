"""TrackMate — Typed engine errors.

Every error carries a stable ``code`` plus structured fields so the calling
layer (API, CLI, worker) can map it to whatever it shows the user.
"""
from enum import Enum
from typing import Any


class EntityKind(str, Enum):
    COMPANY = "Company"
    CUSTOMER = "Customer"
    PRODUCT = "Product"
    ORDER = "Order"
    ORDER_ITEM = "OrderItem"
    INVOICE = "Invoice"
    INVOICE_ITEM = "InvoiceItem"
    BANK_DETAIL = "BankDetail"


class EngineError(Exception):
    code = "ENGINE_ERROR"

    def details(self) -> dict[str, Any]:
        return {}


class NotFound(EngineError):
    """Missing entity, or one that belongs to another tenant."""

    code = "NOT_FOUND"

    def __init__(self, kind: EntityKind, entity_id: Any):
        self.kind = kind
        self.entity_id = entity_id
        super().__init__(f"{kind.value} {entity_id} not found")

    def details(self) -> dict[str, Any]:
        return {"entity": self.kind.value, "id": self.entity_id}


class ValidationError(EngineError):
    code = "VALIDATION_ERROR"

    def __init__(self, field: str, reason: str):
        self.field = field
        self.reason = reason
        super().__init__(f"{field}: {reason}")

    def details(self) -> dict[str, Any]:
        return {"field": self.field, "reason": self.reason}


class Conflict(EngineError):
    code = "CONFLICT"

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(reason)

    def details(self) -> dict[str, Any]:
        return {"reason": self.reason}


class InvalidTransition(EngineError):
    code = "INVALID_TRANSITION"

    def __init__(self, from_status: Enum, to_status: Enum):
        self.from_status = from_status
        self.to_status = to_status
        super().__init__(f"cannot move from {from_status.value} to {to_status.value}")

    def details(self) -> dict[str, Any]:
        return {"from": self.from_status.value, "to": self.to_status.value}


class InsufficientStock(EngineError):
    code = "INSUFFICIENT_STOCK"

    def __init__(self, product_id: int, available: int | None = None, requested: int | None = None):
        self.product_id = product_id
        self.available = available
        self.requested = requested
        super().__init__(f"insufficient stock for product {product_id}")

    def details(self) -> dict[str, Any]:
        return {"product_id": self.product_id, "available": self.available, "requested": self.requested}
