"""
Tests for trackmate.services.totals — pure line-item arithmetic.
"""

from dataclasses import dataclass
from decimal import Decimal

import pytest

from trackmate.services.totals import (
    compute_invoice_line,
    compute_invoice_totals,
    compute_order_totals,
    line_total,
    money,
)


@dataclass
class Line:
    quantity: object
    unit_price: object
    tax_rate: object = Decimal("0")


class TestMoney:

    @pytest.mark.parametrize("raw, expected", [
        ("2.345", Decimal("2.35")),
        ("2.344", Decimal("2.34")),
        ("0.005", Decimal("0.01")),
        (3, Decimal("3.00")),
        (None, Decimal("0.00")),
    ])
    def test_half_up_to_cents(self, raw, expected):
        assert money(raw) == expected

    def test_line_total(self):
        assert line_total(3, "1.115") == Decimal("3.35")


class TestOrderTotals:

    def test_reference_order(self):
        totals = compute_order_totals(
            [Line(2, Decimal("10.00")), Line(1, Decimal("5.00"))],
            tax_rate=Decimal("10"),
            shipping_cost=Decimal("3.00"),
        )
        assert totals.sub_total == Decimal("25.00")
        assert totals.tax_amount == Decimal("2.50")
        assert totals.total == Decimal("30.50")

    def test_no_items_keeps_shipping(self):
        totals = compute_order_totals([], tax_rate=Decimal("10"), shipping_cost=Decimal("4.99"))
        assert totals.sub_total == Decimal("0.00")
        assert totals.tax_amount == Decimal("0.00")
        assert totals.total == Decimal("4.99")

    def test_tax_rounded_once_on_subtotal(self):
        # 3 x 0.35 = 1.05; 7.5% of 1.05 = 0.07875 -> 0.08
        totals = compute_order_totals([Line(3, "0.35")], tax_rate="7.5", shipping_cost=0)
        assert totals.tax_amount == Decimal("0.08")
        assert totals.total == Decimal("1.13")


class TestInvoiceTotals:

    def test_per_line_tax(self):
        items = [Line(2, "10.00", "10"), Line(1, "5.00", "20")]
        totals = compute_invoice_totals(items, shipping_cost="3.00")
        assert totals.subtotal == Decimal("25.00")
        assert totals.tax_amount == Decimal("3.00")
        assert totals.total == Decimal("31.00")

    def test_shipping_left_out_when_disabled(self):
        items = [Line(2, "10.00", "10"), Line(1, "5.00", "10")]
        totals = compute_invoice_totals(items, shipping_cost="3.00", include_shipping=False)
        assert totals.total == Decimal("27.50")

    def test_fractional_quantity_line(self):
        line = compute_invoice_line(Decimal("1.5"), "9.99", "10")
        assert line.subtotal == Decimal("14.99")
        assert line.tax_amount == Decimal("1.50")
        assert line.total == Decimal("16.49")
