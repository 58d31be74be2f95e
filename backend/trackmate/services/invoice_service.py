"""TrackMate — InvoiceService: create, create-from-order, items, status, soft delete."""
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any

from sqlalchemy import and_, or_

from trackmate.config import get_settings
from trackmate.core.exceptions import Conflict, EntityKind, InvalidTransition, NotFound, ValidationError
from trackmate.db.base import as_utc, utcnow
from trackmate.models.company import Company, CompanyBankDetail, Customer
from trackmate.models.enums import InvoiceStatus, OrderStatus
from trackmate.models.invoice import Invoice, InvoiceItem
from trackmate.models.order import Order
from trackmate.models.product import Product
from trackmate.schemas.common import validate_payload
from trackmate.schemas.invoice import InvoiceCreate, InvoiceItemCreate, InvoiceRead, InvoiceUpdate
from trackmate.services.audit_service import (
    ACTION_INVOICE_CREATED,
    ACTION_INVOICE_DELETED,
    ACTION_INVOICE_STATUS_CHANGED,
    ACTION_INVOICE_UPDATED,
    log_audit,
)
from trackmate.services.sequence_service import SequenceAllocator
from trackmate.services.store import TenantStore
from trackmate.services.totals import compute_invoice_line, compute_invoice_totals, money, to_decimal

logger = logging.getLogger(__name__)


def effective_status(invoice: Invoice, now: datetime | None = None) -> InvoiceStatus:
    """A Sent invoice whose due date has passed reads as Overdue."""
    now = now or utcnow()
    if invoice.status == InvoiceStatus.SENT and invoice.due_date and as_utc(invoice.due_date) < now:
        return InvoiceStatus.OVERDUE
    return invoice.status


def to_read(invoice: Invoice, now: datetime | None = None) -> InvoiceRead:
    snapshot = InvoiceRead.model_validate(invoice)
    return snapshot.model_copy(update={"status": effective_status(invoice, now)})


@dataclass(frozen=True)
class InvoiceStatusChange:
    invoice: Invoice
    previous_status: InvoiceStatus
    status: InvoiceStatus

    @property
    def paid(self) -> bool:
        return self.status == InvoiceStatus.PAID


class InvoiceService:
    """Invoice lifecycle. Every public method is one atomic unit inside the caller's transaction."""

    # ── Reads ────────────────────────────────────────────────────────────────

    @staticmethod
    async def get_invoice(store: TenantStore, invoice_id: int) -> Invoice:
        return await store.get(Invoice, invoice_id)

    @staticmethod
    async def get_snapshot(store: TenantStore, invoice_id: int, now: datetime | None = None) -> InvoiceRead:
        return to_read(await store.get(Invoice, invoice_id), now)

    @staticmethod
    def _status_criteria(status: InvoiceStatus, now: datetime):
        past_due = and_(Invoice.due_date.is_not(None), Invoice.due_date < now)
        if status == InvoiceStatus.OVERDUE:
            return or_(Invoice.status == InvoiceStatus.OVERDUE, and_(Invoice.status == InvoiceStatus.SENT, past_due))
        if status == InvoiceStatus.SENT:
            return and_(Invoice.status == InvoiceStatus.SENT, ~past_due)
        return Invoice.status == status

    @staticmethod
    async def list_invoices(
        store: TenantStore,
        status: InvoiceStatus | str | None = None,
        page: int = 1,
        page_size: int = 50,
        now: datetime | None = None,
    ) -> tuple[list[Invoice], int]:
        """Paginated live invoices, newest first. ``status`` filters on the effective status."""
        criteria = []
        if status is not None:
            criteria.append(InvoiceService._status_criteria(InvoiceStatus.parse(status), now or utcnow()))
        total = await store.count(Invoice, *criteria)
        invoices = await store.list(
            Invoice, *criteria, order_by=Invoice.id.desc(), page=page, page_size=page_size
        )
        return invoices, total

    @staticmethod
    async def list_by_customer(store: TenantStore, customer_id: int) -> list[Invoice]:
        return await store.list(Invoice, Invoice.customer_id == customer_id, order_by=Invoice.id.desc())

    @staticmethod
    async def get_by_order(store: TenantStore, order_id: int) -> Invoice | None:
        invoices = await store.list(Invoice, Invoice.order_id == order_id)
        return invoices[0] if invoices else None

    # ── Create ───────────────────────────────────────────────────────────────

    @staticmethod
    async def _validate_references(store: TenantStore, data: InvoiceCreate) -> None:
        """First missing reference wins: Company, Customer, Order, BankDetails."""
        await store.get(Company, store.company_id)
        await store.get(Customer, data.customer_id)
        if data.order_id is not None:
            await store.get(Order, data.order_id)
        if data.bank_details_id is not None:
            await store.get(CompanyBankDetail, data.bank_details_id)

    @staticmethod
    def _with_invoice_date(data: InvoiceCreate) -> InvoiceCreate:
        """Default invoice_date to now, then hold due_date to it."""
        if data.invoice_date is None:
            data = data.model_copy(update={"invoice_date": utcnow()})
        if data.due_date is not None and as_utc(data.due_date) < as_utc(data.invoice_date):
            raise ValidationError("due_date", "must not be before invoice_date")
        return data

    @staticmethod
    async def _ensure_not_invoiced(store: TenantStore, order_id: int) -> None:
        if await store.exists(Invoice, Invoice.order_id == order_id):
            raise Conflict(f"order {order_id} already has an invoice")

    @staticmethod
    def _build_item(
        product_id: int,
        quantity: Any,
        unit_price: Any,
        tax_rate: Any,
        description: str | None = None,
    ) -> InvoiceItem:
        line = compute_invoice_line(quantity, unit_price, tax_rate)
        return InvoiceItem(
            product_id=product_id,
            description=description,
            quantity=to_decimal(quantity),
            unit_price=money(unit_price),
            tax_rate=to_decimal(tax_rate),
            subtotal=line.subtotal,
            tax_amount=line.tax_amount,
            total=line.total,
        )

    @staticmethod
    def _item_from_payload(data: InvoiceItemCreate, product: Product, default_tax_rate: Any) -> InvoiceItem:
        return InvoiceService._build_item(
            product_id=product.id,
            quantity=data.quantity,
            unit_price=data.unit_price if data.unit_price is not None else product.unit_price,
            tax_rate=data.tax_rate if data.tax_rate is not None else default_tax_rate,
            description=data.description or product.name,
        )

    @staticmethod
    def _recalculate(store: TenantStore, invoice: Invoice) -> None:
        totals = compute_invoice_totals(
            invoice.items,
            invoice.shipping_cost,
            include_shipping=get_settings().INVOICE_TOTAL_INCLUDES_SHIPPING,
        )
        invoice.subtotal = totals.subtotal
        invoice.tax_amount = totals.tax_amount
        invoice.total = totals.total
        store.touch(invoice)

    @staticmethod
    async def _persist_new(store: TenantStore, data: InvoiceCreate, items: list[InvoiceItem]) -> Invoice:
        settings = get_settings()
        invoice_date = data.invoice_date
        invoice = Invoice(
            # Numbering is server-authoritative; data.invoice_number is ignored
            invoice_number=await SequenceAllocator.next_invoice_number(store.db, store.company_id),
            invoice_date=invoice_date,
            due_date=data.due_date or invoice_date + timedelta(days=settings.INVOICE_DEFAULT_DUE_DAYS),
            customer_id=data.customer_id,
            order_id=data.order_id,
            bank_details_id=data.bank_details_id,
            tax_rate=data.tax_rate,
            shipping_cost=money(data.shipping_cost),
            currency=(data.currency or settings.DEFAULT_CURRENCY).upper(),
            status=InvoiceStatus.DRAFT,
            notes=data.notes,
        )
        invoice.items = items
        store.add(invoice)
        InvoiceService._recalculate(store, invoice)
        await store.flush()

        log_audit(
            store,
            ACTION_INVOICE_CREATED,
            "invoice",
            invoice.id,
            {"invoice_number": invoice.invoice_number, "order_id": invoice.order_id},
        )
        logger.info("Invoice %s created for company %s (total %s)", invoice.invoice_number, store.company_id, invoice.total)
        return invoice

    @staticmethod
    async def create_invoice(store: TenantStore, data: InvoiceCreate | dict[str, Any]) -> Invoice:
        data = validate_payload(InvoiceCreate, data)
        data = InvoiceService._with_invoice_date(data)
        await InvoiceService._validate_references(store, data)
        if data.order_id is not None:
            await InvoiceService._ensure_not_invoiced(store, data.order_id)
        products = await store.get_many(Product, [i.product_id for i in data.items])
        items = [
            InvoiceService._item_from_payload(item, products[item.product_id], data.tax_rate)
            for item in data.items
        ]
        return await InvoiceService._persist_new(store, data, items)

    @staticmethod
    async def create_from_order(
        store: TenantStore,
        order_id: int,
        due_date: datetime | None = None,
        bank_details_id: int | None = None,
    ) -> Invoice:
        """
        Draft invoice copied from an order snapshot: customer, currency, shipping
        and lines (each line takes the order's flat tax rate). The order is not touched.
        """
        order = await store.get(Order, order_id)
        if order.status == OrderStatus.CANCELLED:
            raise Conflict(f"order {order.order_number} is cancelled and cannot be invoiced")
        data = validate_payload(
            InvoiceCreate,
            {
                "customer_id": order.customer_id,
                "order_id": order.id,
                "bank_details_id": bank_details_id,
                "due_date": due_date or order.due_date,
                "tax_rate": order.tax_rate,
                "shipping_cost": order.shipping_cost,
                "currency": order.currency,
                "notes": order.notes,
            },
        )
        data = InvoiceService._with_invoice_date(data)
        await InvoiceService._validate_references(store, data)
        await InvoiceService._ensure_not_invoiced(store, order.id)
        items = [
            InvoiceService._build_item(
                product_id=item.product_id,
                quantity=item.quantity,
                unit_price=item.unit_price,
                tax_rate=order.tax_rate,
            )
            for item in order.items
        ]
        return await InvoiceService._persist_new(store, data, items)

    # ── Update ───────────────────────────────────────────────────────────────

    @staticmethod
    def _restamp_default_rate(invoice: Invoice, new_rate: Any) -> None:
        """Lines still on the old invoice default follow the new one; lines with their own rate keep it."""
        old_rate = to_decimal(invoice.tax_rate)
        new_rate = to_decimal(new_rate)
        for item in invoice.items:
            if to_decimal(item.tax_rate) != old_rate:
                continue
            line = compute_invoice_line(item.quantity, item.unit_price, new_rate)
            item.tax_rate = new_rate
            item.subtotal = line.subtotal
            item.tax_amount = line.tax_amount
            item.total = line.total

    @staticmethod
    async def update_invoice(store: TenantStore, invoice_id: int, data: InvoiceUpdate | dict[str, Any]) -> Invoice:
        """Change header fields on a non-terminal invoice, recomputing totals in the same unit."""
        data = validate_payload(InvoiceUpdate, data)
        changes = data.model_dump(exclude_unset=True)
        invoice = await store.get(Invoice, invoice_id, for_update=True)
        InvoiceService._ensure_mutable(invoice)

        due_date = changes.get("due_date")
        if due_date is not None and as_utc(due_date) < as_utc(invoice.invoice_date):
            raise ValidationError("due_date", "must not be before invoice_date")
        bank_details_id = changes.get("bank_details_id")
        if bank_details_id is not None and bank_details_id != invoice.bank_details_id:
            await store.get(CompanyBankDetail, bank_details_id)
        if "currency" in changes:
            changes["currency"] = changes["currency"].upper()
        if "shipping_cost" in changes:
            changes["shipping_cost"] = money(changes["shipping_cost"])
        if "tax_rate" in changes:
            InvoiceService._restamp_default_rate(invoice, changes["tax_rate"])

        for field, value in changes.items():
            setattr(invoice, field, value)
        InvoiceService._recalculate(store, invoice)
        log_audit(store, ACTION_INVOICE_UPDATED, "invoice", invoice.id, {"fields": sorted(changes)})
        await store.flush()
        return invoice

    # ── Items ────────────────────────────────────────────────────────────────

    @staticmethod
    def _ensure_mutable(invoice: Invoice) -> None:
        if invoice.status.is_terminal:
            raise Conflict(f"invoice {invoice.invoice_number} is {invoice.status.value}; it can no longer change")

    @staticmethod
    async def add_item(store: TenantStore, invoice_id: int, data: InvoiceItemCreate | dict[str, Any]) -> Invoice:
        data = validate_payload(InvoiceItemCreate, data)
        invoice = await store.get(Invoice, invoice_id, for_update=True)
        InvoiceService._ensure_mutable(invoice)
        products = await store.get_many(Product, [data.product_id])

        invoice.items.append(InvoiceService._item_from_payload(data, products[data.product_id], invoice.tax_rate))
        InvoiceService._recalculate(store, invoice)
        await store.flush()
        return invoice

    @staticmethod
    async def remove_item(store: TenantStore, invoice_id: int, item_id: int) -> Invoice:
        invoice = await store.get(Invoice, invoice_id, for_update=True)
        InvoiceService._ensure_mutable(invoice)
        item = next((i for i in invoice.items if i.id == item_id), None)
        if item is None:
            raise NotFound(EntityKind.INVOICE_ITEM, item_id)

        invoice.items.remove(item)
        InvoiceService._recalculate(store, invoice)
        await store.flush()
        return invoice

    # ── Status ───────────────────────────────────────────────────────────────

    @staticmethod
    async def update_status(
        store: TenantStore,
        invoice_id: int,
        new_status: InvoiceStatus | str | int,
    ) -> InvoiceStatusChange:
        """Validated transition. Moving to Paid stamps ``paid_date``; nothing else has side effects."""
        target = InvoiceStatus.parse(new_status)
        invoice = await store.get(Invoice, invoice_id, for_update=True)
        previous = invoice.status
        if not previous.can_transition_to(target):
            raise InvalidTransition(previous, target)

        if target == InvoiceStatus.PAID:
            invoice.paid_date = utcnow()
        invoice.status = target
        store.touch(invoice)
        log_audit(
            store,
            ACTION_INVOICE_STATUS_CHANGED,
            "invoice",
            invoice.id,
            {"from": previous.serialize(), "to": target.serialize()},
        )
        await store.flush()

        logger.info("Invoice %s: %s -> %s", invoice.invoice_number, previous.value, target.value)
        return InvoiceStatusChange(invoice=invoice, previous_status=previous, status=target)

    @staticmethod
    async def mark_overdue(store: TenantStore, now: datetime | None = None) -> list[InvoiceStatusChange]:
        """Persist Sent -> Overdue for every live Sent invoice past its due date."""
        now = now or utcnow()
        due = await store.list(
            Invoice,
            Invoice.status == InvoiceStatus.SENT,
            Invoice.due_date.is_not(None),
            Invoice.due_date < now,
        )
        changes = []
        for invoice in due:
            changes.append(await InvoiceService.update_status(store, invoice.id, InvoiceStatus.OVERDUE))
        return changes

    # ── Delete ───────────────────────────────────────────────────────────────

    @staticmethod
    async def delete_invoice(store: TenantStore, invoice_id: int) -> Invoice:
        """Soft delete. Reference checks belong to whatever the invoice points at, not here."""
        invoice = await store.soft_delete(Invoice, invoice_id)
        log_audit(store, ACTION_INVOICE_DELETED, "invoice", invoice.id, {"invoice_number": invoice.invoice_number})
        return invoice
