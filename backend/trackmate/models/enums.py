"""TrackMate — Lifecycle status enums with boundary parse/serialize.

Internal code only ever compares enum members. Raw strings and the legacy
numeric codes are accepted in ``parse`` and nowhere else.
"""
from enum import Enum

from trackmate.core.exceptions import ValidationError


class _ParsableStatus(str, Enum):
    @classmethod
    def _legacy_codes(cls) -> dict[int, "_ParsableStatus"]:
        return {}

    @classmethod
    def parse(cls, raw):
        """Accept a member, its name/value in any case, or a legacy numeric code."""
        if isinstance(raw, cls):
            return raw
        if isinstance(raw, bool):
            raise ValidationError("status", f"unrecognised {cls.__name__}: {raw!r}")
        if isinstance(raw, int) or (isinstance(raw, str) and raw.strip().isdigit()):
            member = cls._legacy_codes().get(int(raw))
            if member is None:
                raise ValidationError("status", f"unrecognised {cls.__name__} code: {raw!r}")
            return member
        if isinstance(raw, str):
            key = raw.strip().lower()
            for member in cls:
                if member.value.lower() == key or member.name.lower() == key:
                    return member
        raise ValidationError("status", f"unrecognised {cls.__name__}: {raw!r}")

    def serialize(self) -> str:
        return self.value


class OrderStatus(_ParsableStatus):
    DRAFT = "Draft"
    PENDING = "Pending"
    CONFIRMED = "Confirmed"
    SHIPPED = "Shipped"
    DELIVERED = "Delivered"
    CANCELLED = "Cancelled"
    COMPLETED = "Completed"

    @classmethod
    def _legacy_codes(cls):
        return {
            0: cls.DRAFT,
            1: cls.PENDING,
            2: cls.CONFIRMED,
            3: cls.SHIPPED,
            4: cls.DELIVERED,
            5: cls.CANCELLED,
            6: cls.COMPLETED,
        }

    @property
    def is_terminal(self) -> bool:
        return self in (OrderStatus.CANCELLED, OrderStatus.COMPLETED)

    def can_transition_to(self, target: "OrderStatus") -> bool:
        if self.is_terminal or target == OrderStatus.DRAFT:
            return False
        if target == OrderStatus.CANCELLED:
            return True
        return _ORDER_RANK[target] > _ORDER_RANK[self]


# Forward progress through the lifecycle; Cancelled sits outside it.
_ORDER_RANK = {
    OrderStatus.DRAFT: 0,
    OrderStatus.PENDING: 1,
    OrderStatus.CONFIRMED: 2,
    OrderStatus.SHIPPED: 3,
    OrderStatus.DELIVERED: 4,
    OrderStatus.COMPLETED: 5,
}


class InvoiceStatus(_ParsableStatus):
    DRAFT = "Draft"
    SENT = "Sent"
    PAID = "Paid"
    OVERDUE = "Overdue"
    CANCELLED = "Cancelled"

    @classmethod
    def _legacy_codes(cls):
        return {0: cls.DRAFT, 1: cls.SENT, 3: cls.PAID, 4: cls.OVERDUE, 6: cls.CANCELLED}

    @property
    def is_terminal(self) -> bool:
        return self in (InvoiceStatus.PAID, InvoiceStatus.CANCELLED)

    def can_transition_to(self, target: "InvoiceStatus") -> bool:
        return target in _INVOICE_TRANSITIONS[self]


_INVOICE_TRANSITIONS = {
    InvoiceStatus.DRAFT: {InvoiceStatus.SENT, InvoiceStatus.CANCELLED},
    InvoiceStatus.SENT: {InvoiceStatus.PAID, InvoiceStatus.OVERDUE, InvoiceStatus.CANCELLED},
    InvoiceStatus.OVERDUE: {InvoiceStatus.PAID, InvoiceStatus.CANCELLED},
    InvoiceStatus.PAID: set(),
    InvoiceStatus.CANCELLED: set(),
}


class ProductStatus(_ParsableStatus):
    ACTIVE = "Active"
    INACTIVE = "Inactive"
    DISCONTINUED = "Discontinued"
    OUT_OF_STOCK = "OutOfStock"

    @classmethod
    def _legacy_codes(cls):
        return {0: cls.ACTIVE, 1: cls.INACTIVE, 2: cls.DISCONTINUED, 3: cls.OUT_OF_STOCK}


class SequenceSeries(str, Enum):
    ORDER = "order"
    INVOICE = "invoice"


class StockReason(str, Enum):
    ORDER_DEDUCT = "ORDER_DEDUCT"
    ORDER_ITEM_CHANGE = "ORDER_ITEM_CHANGE"
    ORDER_RESTORE = "ORDER_RESTORE"
