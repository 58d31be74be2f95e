"""TrackMate — OrderService: create, item mutation, status transitions, soft delete."""
import logging
from dataclasses import dataclass
from typing import Any

from trackmate.config import get_settings
from trackmate.core.exceptions import Conflict, EntityKind, InvalidTransition, NotFound, ValidationError
from trackmate.db.base import as_utc, utcnow
from trackmate.models.company import Company, Customer
from trackmate.models.enums import OrderStatus, StockReason
from trackmate.models.order import Order, OrderItem
from trackmate.models.product import Product
from trackmate.schemas.common import validate_payload
from trackmate.schemas.order import OrderCreate, OrderItemCreate, OrderUpdate
from trackmate.services.audit_service import (
    ACTION_ORDER_CREATED,
    ACTION_ORDER_DELETED,
    ACTION_ORDER_STATUS_CHANGED,
    ACTION_ORDER_UPDATED,
    log_audit,
)
from trackmate.services.inventory_service import InventoryAdjuster, StockAdjustment
from trackmate.services.sequence_service import SequenceAllocator
from trackmate.services.store import TenantStore
from trackmate.services.totals import compute_order_totals, line_total, money

logger = logging.getLogger(__name__)

STOCK_REFERENCE = "order"


@dataclass(frozen=True)
class OrderStatusChange:
    """What a status transition did. Callers react to this (reporting, PDFs, email)."""

    order: Order
    previous_status: OrderStatus
    status: OrderStatus

    @property
    def completed(self) -> bool:
        """True exactly once per order: the point revenue reporting counts it."""
        return self.status == OrderStatus.COMPLETED

    @property
    def cancelled(self) -> bool:
        return self.status == OrderStatus.CANCELLED


class OrderService:
    """Order lifecycle. Every public method is one atomic unit inside the caller's transaction."""

    # ── Reads ────────────────────────────────────────────────────────────────

    @staticmethod
    async def get_order(store: TenantStore, order_id: int) -> Order:
        return await store.get(Order, order_id)

    @staticmethod
    async def list_orders(
        store: TenantStore,
        status: OrderStatus | str | None = None,
        page: int = 1,
        page_size: int = 50,
    ) -> tuple[list[Order], int]:
        """Paginated list of live orders for the tenant, newest first."""
        criteria = []
        if status is not None:
            criteria.append(Order.status == OrderStatus.parse(status))
        total = await store.count(Order, *criteria)
        orders = await store.list(
            Order, *criteria, order_by=Order.id.desc(), page=page, page_size=page_size
        )
        return orders, total

    @staticmethod
    async def list_by_customer(store: TenantStore, customer_id: int) -> list[Order]:
        return await store.list(Order, Order.customer_id == customer_id, order_by=Order.id.desc())

    # ── Create ───────────────────────────────────────────────────────────────

    @staticmethod
    def _build_item(data: OrderItemCreate, product: Product) -> OrderItem:
        unit_price = money(data.unit_price if data.unit_price is not None else product.unit_price)
        return OrderItem(
            product_id=product.id,
            quantity=data.quantity,
            unit_price=unit_price,
            total=line_total(data.quantity, unit_price),
        )

    @staticmethod
    def _recalculate(store: TenantStore, order: Order) -> None:
        totals = compute_order_totals(order.items, order.tax_rate, order.shipping_cost)
        order.sub_total = totals.sub_total
        order.tax_amount = totals.tax_amount
        order.total = totals.total
        # Always issue the UPDATE so the version check guards item-only changes too
        store.touch(order)

    @staticmethod
    async def create_order(store: TenantStore, data: OrderCreate | dict[str, Any]) -> Order:
        """
        Create a Draft order with its items.
        - Company, Customer and every Product must resolve inside the tenant.
        - The order number comes from the tenant's atomic counter.
        """
        data = validate_payload(OrderCreate, data)
        await store.get(Company, store.company_id)
        await store.get(Customer, data.customer_id)
        products = await store.get_many(Product, [i.product_id for i in data.items])

        order_number = await SequenceAllocator.next_order_number(store.db, store.company_id)
        order = Order(
            customer_id=data.customer_id,
            order_number=order_number,
            order_date=data.order_date or utcnow(),
            due_date=data.due_date,
            tax_rate=data.tax_rate,
            shipping_cost=money(data.shipping_cost),
            currency=(data.currency or get_settings().DEFAULT_CURRENCY).upper(),
            status=OrderStatus.DRAFT,
            notes=data.notes,
            stock_deducted=False,
        )
        order.items = [OrderService._build_item(item, products[item.product_id]) for item in data.items]
        store.add(order)
        OrderService._recalculate(store, order)
        await store.flush()

        log_audit(store, ACTION_ORDER_CREATED, "order", order.id, {"order_number": order.order_number})
        logger.info("Order %s created for company %s (total %s)", order.order_number, store.company_id, order.total)
        return order

    # ── Update ───────────────────────────────────────────────────────────────

    @staticmethod
    async def update_order(store: TenantStore, order_id: int, data: OrderUpdate | dict[str, Any]) -> Order:
        """
        Change header fields on a non-terminal order.
        Totals are recomputed in the same unit, so a new rate or shipping cost is never half-applied.
        """
        data = validate_payload(OrderUpdate, data)
        changes = data.model_dump(exclude_unset=True)
        order = await store.get(Order, order_id, for_update=True)
        OrderService._ensure_mutable(order)

        due_date = changes.get("due_date")
        if due_date is not None and as_utc(due_date) < as_utc(order.order_date):
            raise ValidationError("due_date", "must not be before order_date")
        if "currency" in changes:
            changes["currency"] = changes["currency"].upper()
        if "shipping_cost" in changes:
            changes["shipping_cost"] = money(changes["shipping_cost"])

        for field, value in changes.items():
            setattr(order, field, value)
        OrderService._recalculate(store, order)
        log_audit(store, ACTION_ORDER_UPDATED, "order", order.id, {"fields": sorted(changes)})
        await store.flush()
        return order

    # ── Items ────────────────────────────────────────────────────────────────

    @staticmethod
    def _ensure_mutable(order: Order) -> None:
        if order.status.is_terminal:
            raise Conflict(f"order {order.order_number} is {order.status.value}; it can no longer change")

    @staticmethod
    def _find_item(order: Order, item_id: int) -> OrderItem:
        for item in order.items:
            if item.id == item_id:
                return item
        raise NotFound(EntityKind.ORDER_ITEM, item_id)

    @staticmethod
    async def _return_stock(store: TenantStore, order: Order, product_id: int, quantity: int) -> None:
        """Give back up to ``quantity`` units, never more than this order actually took."""
        net = await InventoryAdjuster.net_for_reference(store, STOCK_REFERENCE, order.id)
        held = -net.get(product_id, 0)
        amount = min(quantity, held)
        if amount > 0:
            await InventoryAdjuster.adjust(
                store,
                [StockAdjustment(product_id, amount)],
                reason=StockReason.ORDER_ITEM_CHANGE,
                reference_type=STOCK_REFERENCE,
                reference_id=order.id,
            )

    @staticmethod
    async def _take_stock(store: TenantStore, order: Order, product_id: int, quantity: int) -> None:
        await InventoryAdjuster.adjust(
            store,
            [StockAdjustment(product_id, -quantity)],
            reason=StockReason.ORDER_ITEM_CHANGE,
            reference_type=STOCK_REFERENCE,
            reference_id=order.id,
        )

    @staticmethod
    async def add_item(store: TenantStore, order_id: int, data: OrderItemCreate | dict[str, Any]) -> Order:
        data = validate_payload(OrderItemCreate, data)
        order = await store.get(Order, order_id, for_update=True)
        OrderService._ensure_mutable(order)
        products = await store.get_many(Product, [data.product_id])

        order.items.append(OrderService._build_item(data, products[data.product_id]))
        if order.stock_deducted:
            await OrderService._take_stock(store, order, data.product_id, data.quantity)

        OrderService._recalculate(store, order)
        await store.flush()
        return order

    @staticmethod
    async def remove_item(store: TenantStore, order_id: int, item_id: int) -> Order:
        """Remove a line. An order may end up with no items; shipping stays on the total."""
        order = await store.get(Order, order_id, for_update=True)
        OrderService._ensure_mutable(order)
        item = OrderService._find_item(order, item_id)

        order.items.remove(item)
        if order.stock_deducted:
            await OrderService._return_stock(store, order, item.product_id, item.quantity)

        OrderService._recalculate(store, order)
        await store.flush()
        return order

    @staticmethod
    async def update_item_quantity(store: TenantStore, order_id: int, item_id: int, quantity: int) -> Order:
        try:
            valid = int(quantity) == quantity and int(quantity) > 0
        except (TypeError, ValueError):
            valid = False
        if not valid:
            raise ValidationError("quantity", "must be a positive whole number")
        quantity = int(quantity)

        order = await store.get(Order, order_id, for_update=True)
        OrderService._ensure_mutable(order)
        item = OrderService._find_item(order, item_id)

        delta = quantity - item.quantity
        if order.stock_deducted and delta > 0:
            await OrderService._take_stock(store, order, item.product_id, delta)
        elif order.stock_deducted and delta < 0:
            await OrderService._return_stock(store, order, item.product_id, -delta)

        item.quantity = quantity
        item.total = line_total(quantity, item.unit_price)
        OrderService._recalculate(store, order)
        await store.flush()
        return order

    # ── Status ───────────────────────────────────────────────────────────────

    @staticmethod
    async def _deduct_stock(store: TenantStore, order: Order) -> None:
        await InventoryAdjuster.adjust(
            store,
            [StockAdjustment(item.product_id, -item.quantity) for item in order.items],
            reason=StockReason.ORDER_DEDUCT,
            reference_type=STOCK_REFERENCE,
            reference_id=order.id,
        )
        order.stock_deducted = True

    @staticmethod
    async def _restore_stock(store: TenantStore, order: Order) -> None:
        """Put back exactly what the ledger says this order still holds."""
        net = await InventoryAdjuster.net_for_reference(store, STOCK_REFERENCE, order.id)
        await InventoryAdjuster.adjust(
            store,
            [StockAdjustment(product_id, -delta) for product_id, delta in net.items() if delta < 0],
            reason=StockReason.ORDER_RESTORE,
            reference_type=STOCK_REFERENCE,
            reference_id=order.id,
        )
        order.stock_deducted = False

    @staticmethod
    async def update_status(
        store: TenantStore,
        order_id: int,
        new_status: OrderStatus | str | int,
    ) -> OrderStatusChange:
        """
        Validated transition with its stock side effect, all in one unit:
        - leaving Draft (to anything but Cancelled) deducts item quantities
        - entering Cancelled restores whatever the order still holds (no-op if nothing)
        """
        target = OrderStatus.parse(new_status)
        order = await store.get(Order, order_id, for_update=True)
        previous = order.status
        if not previous.can_transition_to(target):
            raise InvalidTransition(previous, target)

        if target == OrderStatus.CANCELLED:
            if order.stock_deducted:
                await OrderService._restore_stock(store, order)
        elif previous == OrderStatus.DRAFT and not order.stock_deducted:
            await OrderService._deduct_stock(store, order)

        order.status = target
        store.touch(order)
        log_audit(
            store,
            ACTION_ORDER_STATUS_CHANGED,
            "order",
            order.id,
            {"from": previous.serialize(), "to": target.serialize()},
        )
        await store.flush()

        logger.info("Order %s: %s -> %s", order.order_number, previous.value, target.value)
        return OrderStatusChange(order=order, previous_status=previous, status=target)

    # ── Delete ───────────────────────────────────────────────────────────────

    @staticmethod
    async def delete_order(store: TenantStore, order_id: int) -> Order:
        """Soft delete. Stock held by the order is left as it is."""
        order = await store.soft_delete(Order, order_id)
        log_audit(store, ACTION_ORDER_DELETED, "order", order.id, {"order_number": order.order_number})
        return order
