"""TrackMate — Line-item calculator (pure, no I/O).

Inputs are anything with ``quantity``/``unit_price`` (and ``tax_rate`` for
invoice lines): ORM rows, pydantic models or plain objects. Money is
quantized to cents, half-up, at the end of each figure.
"""
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Iterable

CENT = Decimal("0.01")
HUNDRED = Decimal("100")


def to_decimal(value: Any) -> Decimal:
    if isinstance(value, Decimal):
        return value
    if value is None:
        return Decimal("0")
    return Decimal(str(value))


def money(value: Any) -> Decimal:
    return to_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class OrderTotals:
    sub_total: Decimal
    tax_amount: Decimal
    total: Decimal


@dataclass(frozen=True)
class InvoiceTotals:
    subtotal: Decimal
    tax_amount: Decimal
    total: Decimal


@dataclass(frozen=True)
class LineTotals:
    subtotal: Decimal
    tax_amount: Decimal
    total: Decimal


def line_total(quantity: Any, unit_price: Any) -> Decimal:
    return money(to_decimal(quantity) * to_decimal(unit_price))


def compute_order_totals(items: Iterable[Any], tax_rate: Any, shipping_cost: Any) -> OrderTotals:
    """subTotal = sum(qty * price); tax = subTotal * rate / 100; total adds shipping."""
    sub_total = money(sum((to_decimal(i.quantity) * to_decimal(i.unit_price) for i in items), Decimal("0")))
    tax_amount = money(sub_total * to_decimal(tax_rate) / HUNDRED)
    total = money(sub_total + tax_amount + to_decimal(shipping_cost))
    return OrderTotals(sub_total=sub_total, tax_amount=tax_amount, total=total)


def compute_invoice_line(quantity: Any, unit_price: Any, tax_rate: Any) -> LineTotals:
    subtotal = line_total(quantity, unit_price)
    tax_amount = money(to_decimal(quantity) * to_decimal(unit_price) * to_decimal(tax_rate) / HUNDRED)
    return LineTotals(subtotal=subtotal, tax_amount=tax_amount, total=subtotal + tax_amount)


def compute_invoice_totals(items: Iterable[Any], shipping_cost: Any, include_shipping: bool = True) -> InvoiceTotals:
    """
    Per-line tax: tax = sum(qty * price * line.tax_rate / 100).

    ``include_shipping`` decides whether shipping is part of ``total``; the
    legacy system left it out.
    """
    raw_subtotal = Decimal("0")
    raw_tax = Decimal("0")
    for item in items:
        gross = to_decimal(item.quantity) * to_decimal(item.unit_price)
        raw_subtotal += gross
        raw_tax += gross * to_decimal(item.tax_rate) / HUNDRED
    subtotal = money(raw_subtotal)
    tax_amount = money(raw_tax)
    total = subtotal + tax_amount
    if include_shipping:
        total += to_decimal(shipping_cost)
    return InvoiceTotals(subtotal=subtotal, tax_amount=tax_amount, total=money(total))
