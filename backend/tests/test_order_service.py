"""
Tests for trackmate.services.order_service — order lifecycle, totals and stock.
"""

from datetime import timedelta
from decimal import Decimal

import pytest
from sqlalchemy import select

from trackmate.core.exceptions import Conflict, EntityKind, InsufficientStock, InvalidTransition, NotFound, ValidationError
from trackmate.db.session import session_scope
from trackmate.models import AuditLog, Order, OrderStatus, Product, StockMovement
from trackmate.services.order_service import OrderService

from conftest import (
    COMPANY_ID,
    CUSTOMER_ID,
    FOREIGN_PRODUCT_ID,
    GADGET_ID,
    GADGET_STOCK,
    OTHER_COMPANY_ID,
    WIDGET_ID,
    WIDGET_STOCK,
    scenario_order,
    stock_of,
)


def assert_totals_consistent(order):
    assert order.sub_total == sum((item.total for item in order.items), Decimal("0"))
    assert order.total == order.sub_total + order.tax_amount + order.shipping_cost


async def create_scenario(store_for, **overrides):
    async with store_for() as store:
        order = await OrderService.create_order(store, scenario_order(**overrides))
    return order


class TestCreateOrder:

    async def test_reference_scenario(self, store_for):
        order = await create_scenario(store_for)

        assert order.order_number == "ORD-0007-000001"
        assert order.company_id == COMPANY_ID
        assert order.status == OrderStatus.DRAFT
        assert order.sub_total == Decimal("25.00")
        assert order.tax_amount == Decimal("2.50")
        assert order.total == Decimal("30.50")
        assert order.currency == "USD"
        assert_totals_consistent(order)

    async def test_creation_does_not_touch_stock(self, store_for):
        await create_scenario(store_for)
        assert await stock_of(store_for, WIDGET_ID) == WIDGET_STOCK
        assert await stock_of(store_for, GADGET_ID) == GADGET_STOCK

    async def test_missing_unit_price_uses_product_price(self, store_for):
        order = await create_scenario(
            store_for, items=[{"product_id": WIDGET_ID, "quantity": 3}], tax_rate="0", shipping_cost="0"
        )
        assert order.items[0].unit_price == Decimal("10.00")
        assert order.total == Decimal("30.00")

    async def test_unknown_customer_persists_nothing(self, store_for):
        with pytest.raises(NotFound) as exc_info:
            await create_scenario(store_for, customer_id=999)
        assert exc_info.value.kind == EntityKind.CUSTOMER

        async with store_for() as store:
            assert await store.count(Order) == 0
        # The number was never consumed either
        order = await create_scenario(store_for)
        assert order.order_number == "ORD-0007-000001"

    async def test_other_tenants_customer_is_not_found(self, store_for):
        with pytest.raises(NotFound) as exc_info:
            async with store_for(OTHER_COMPANY_ID) as store:
                await OrderService.create_order(store, scenario_order())
        assert exc_info.value.kind == EntityKind.CUSTOMER

    async def test_other_tenants_product_is_not_found(self, store_for):
        with pytest.raises(NotFound) as exc_info:
            await create_scenario(store_for, items=[{"product_id": FOREIGN_PRODUCT_ID, "quantity": 1}])
        assert exc_info.value.kind == EntityKind.PRODUCT

    async def test_unknown_company_checked_first(self, store_for):
        with pytest.raises(NotFound) as exc_info:
            async with store_for(999) as store:
                await OrderService.create_order(store, scenario_order(customer_id=12345))
        assert exc_info.value.kind == EntityKind.COMPANY

    @pytest.mark.parametrize("overrides, field", [
        ({"tax_rate": "-1"}, "tax_rate"),
        ({"shipping_cost": "-0.01"}, "shipping_cost"),
        ({"items": [{"product_id": WIDGET_ID, "quantity": 0}]}, "items.0.quantity"),
    ])
    async def test_invalid_payload_rejected(self, store_for, overrides, field):
        with pytest.raises(ValidationError) as exc_info:
            await create_scenario(store_for, **overrides)
        assert exc_info.value.field == field

    async def test_creation_is_audited(self, store_for):
        order = await create_scenario(store_for)
        async with session_scope() as db:
            actions = (await db.execute(select(AuditLog.action).where(AuditLog.target_id == order.id))).scalars().all()
        assert "order.created" in actions


class TestUpdateOrder:

    async def test_tax_and_shipping_change_recalculates(self, store_for):
        order = await create_scenario(store_for)
        async with store_for() as store:
            updated = await OrderService.update_order(store, order.id, {"tax_rate": "20", "shipping_cost": "5"})

        assert updated.sub_total == Decimal("25.00")
        assert updated.tax_amount == Decimal("5.00")
        assert updated.shipping_cost == Decimal("5.00")
        assert updated.total == Decimal("35.00")
        assert_totals_consistent(updated)
        async with store_for() as store:
            reloaded = await OrderService.get_order(store, order.id)
            assert reloaded.total == Decimal("35.00")
            assert reloaded.version > order.version

    async def test_omitted_fields_are_kept(self, store_for):
        order = await create_scenario(store_for, notes="call first")
        async with store_for() as store:
            updated = await OrderService.update_order(store, order.id, {"currency": "eur"})
        assert updated.currency == "EUR"
        assert updated.notes == "call first"
        assert updated.tax_rate == Decimal("10")
        assert updated.total == order.total

    async def test_cancelled_order_refused(self, store_for):
        order = await create_scenario(store_for)
        async with store_for() as store:
            await OrderService.update_status(store, order.id, OrderStatus.CANCELLED)
        with pytest.raises(Conflict):
            async with store_for() as store:
                await OrderService.update_order(store, order.id, {"shipping_cost": "0"})

    async def test_due_before_order_date_rejected(self, store_for):
        order = await create_scenario(store_for)
        with pytest.raises(ValidationError) as exc_info:
            async with store_for() as store:
                await OrderService.update_order(store, order.id, {"due_date": order.order_date - timedelta(days=1)})
        assert exc_info.value.field == "due_date"

    @pytest.mark.parametrize("payload, field", [
        ({"tax_rate": None}, "tax_rate"),
        ({"tax_rate": "101"}, "tax_rate"),
        ({"shipping_cost": "-1"}, "shipping_cost"),
    ])
    async def test_invalid_header_rejected(self, store_for, payload, field):
        order = await create_scenario(store_for)
        with pytest.raises(ValidationError) as exc_info:
            async with store_for() as store:
                await OrderService.update_order(store, order.id, payload)
        assert exc_info.value.field == field

    async def test_update_is_audited(self, store_for):
        order = await create_scenario(store_for)
        async with store_for() as store:
            await OrderService.update_order(store, order.id, {"shipping_cost": "4.00"})
        async with session_scope() as db:
            actions = (await db.execute(select(AuditLog.action).where(AuditLog.target_id == order.id))).scalars().all()
        assert "order.updated" in actions


class TestItemMutations:

    async def test_add_item_recalculates(self, store_for):
        order = await create_scenario(store_for)
        async with store_for() as store:
            order = await OrderService.add_item(store, order.id, {"product_id": GADGET_ID, "quantity": 2})

        assert len(order.items) == 3
        assert order.sub_total == Decimal("35.00")
        assert order.tax_amount == Decimal("3.50")
        assert order.total == Decimal("41.50")
        assert_totals_consistent(order)

    async def test_update_quantity_recalculates(self, store_for):
        order = await create_scenario(store_for)
        item_id = order.items[0].id
        async with store_for() as store:
            order = await OrderService.update_item_quantity(store, order.id, item_id, 5)

        assert order.sub_total == Decimal("55.00")
        assert_totals_consistent(order)

    @pytest.mark.parametrize("quantity", [0, -2, 1.5, "abc"])
    async def test_update_quantity_rejects_bad_values(self, store_for, quantity):
        order = await create_scenario(store_for)
        with pytest.raises(ValidationError):
            async with store_for() as store:
                await OrderService.update_item_quantity(store, order.id, order.items[0].id, quantity)

    async def test_removing_last_item_leaves_shipping(self, store_for):
        order = await create_scenario(store_for)
        async with store_for() as store:
            for item_id in [item.id for item in order.items]:
                order = await OrderService.remove_item(store, order.id, item_id)

        assert order.items == []
        assert order.sub_total == Decimal("0.00")
        assert order.tax_amount == Decimal("0.00")
        assert order.total == Decimal("3.00")

    async def test_unknown_item_is_not_found(self, store_for):
        order = await create_scenario(store_for)
        with pytest.raises(NotFound) as exc_info:
            async with store_for() as store:
                await OrderService.remove_item(store, order.id, 9999)
        assert exc_info.value.kind == EntityKind.ORDER_ITEM

    async def test_terminal_order_items_are_frozen(self, store_for):
        order = await create_scenario(store_for)
        async with store_for() as store:
            await OrderService.update_status(store, order.id, OrderStatus.CANCELLED)
        with pytest.raises(Conflict):
            async with store_for() as store:
                await OrderService.add_item(store, order.id, {"product_id": WIDGET_ID, "quantity": 1})

    async def test_item_changes_on_confirmed_order_move_stock(self, store_for):
        order = await create_scenario(store_for)
        async with store_for() as store:
            await OrderService.update_status(store, order.id, OrderStatus.CONFIRMED)
        widget_line = order.items[0].id

        async with store_for() as store:
            await OrderService.update_item_quantity(store, order.id, widget_line, 5)
        assert await stock_of(store_for, WIDGET_ID) == WIDGET_STOCK - 5

        async with store_for() as store:
            await OrderService.remove_item(store, order.id, widget_line)
        assert await stock_of(store_for, WIDGET_ID) == WIDGET_STOCK

        async with store_for() as store:
            await OrderService.add_item(store, order.id, {"product_id": GADGET_ID, "quantity": 2})
        assert await stock_of(store_for, GADGET_ID) == GADGET_STOCK - 3


class TestStatusTransitions:

    async def test_confirm_then_cancel_round_trips_stock(self, store_for):
        order = await create_scenario(store_for)

        async with store_for() as store:
            change = await OrderService.update_status(store, order.id, OrderStatus.CONFIRMED)
        assert change.previous_status == OrderStatus.DRAFT
        assert change.order.stock_deducted
        assert await stock_of(store_for, WIDGET_ID) == WIDGET_STOCK - 2
        assert await stock_of(store_for, GADGET_ID) == GADGET_STOCK - 1

        async with store_for() as store:
            change = await OrderService.update_status(store, order.id, "Cancelled")
        assert change.cancelled
        assert not change.order.stock_deducted
        assert await stock_of(store_for, WIDGET_ID) == WIDGET_STOCK
        assert await stock_of(store_for, GADGET_ID) == GADGET_STOCK

    async def test_stock_deducted_only_once(self, store_for):
        order = await create_scenario(store_for)
        for status in (OrderStatus.PENDING, OrderStatus.CONFIRMED, OrderStatus.SHIPPED):
            async with store_for() as store:
                await OrderService.update_status(store, order.id, status)
        assert await stock_of(store_for, WIDGET_ID) == WIDGET_STOCK - 2

    async def test_cancel_from_draft_leaves_stock(self, store_for):
        order = await create_scenario(store_for)
        async with store_for() as store:
            await OrderService.update_status(store, order.id, OrderStatus.CANCELLED)
        assert await stock_of(store_for, WIDGET_ID) == WIDGET_STOCK

    async def test_completed_is_observable(self, store_for):
        order = await create_scenario(store_for)
        async with store_for() as store:
            await OrderService.update_status(store, order.id, OrderStatus.DELIVERED)
        async with store_for() as store:
            change = await OrderService.update_status(store, order.id, OrderStatus.COMPLETED)
        assert change.completed

    @pytest.mark.parametrize("path, illegal", [
        ([], OrderStatus.DRAFT),
        ([OrderStatus.SHIPPED], OrderStatus.PENDING),
        ([OrderStatus.CANCELLED], OrderStatus.CONFIRMED),
        ([OrderStatus.COMPLETED], OrderStatus.CANCELLED),
    ])
    async def test_illegal_transition_leaves_order_unchanged(self, store_for, path, illegal):
        order = await create_scenario(store_for)
        for status in path:
            async with store_for() as store:
                await OrderService.update_status(store, order.id, status)
        async with store_for() as store:
            before = await OrderService.get_order(store, order.id)
            before_status, before_version = before.status, before.version
        stock_before = await stock_of(store_for, WIDGET_ID)

        with pytest.raises(InvalidTransition):
            async with store_for() as store:
                await OrderService.update_status(store, order.id, illegal)

        async with store_for() as store:
            after = await OrderService.get_order(store, order.id)
            assert after.status == before_status
            assert after.version == before_version
        assert await stock_of(store_for, WIDGET_ID) == stock_before

    async def test_legacy_status_code_accepted(self, store_for):
        order = await create_scenario(store_for)
        async with store_for() as store:
            change = await OrderService.update_status(store, order.id, 2)
        assert change.status == OrderStatus.CONFIRMED


class TestStockPolicy:

    async def test_floor_policy_clamps_and_restores_only_what_was_taken(self, store_for, settings, monkeypatch):
        monkeypatch.setattr(settings, "STOCK_POLICY", "floor")
        order = await create_scenario(store_for, items=[{"product_id": GADGET_ID, "quantity": GADGET_STOCK + 3}])

        async with store_for() as store:
            await OrderService.update_status(store, order.id, OrderStatus.CONFIRMED)
        assert await stock_of(store_for, GADGET_ID) == 0

        async with store_for() as store:
            movements = (await store.db.execute(select(StockMovement))).scalars().all()
            assert movements[0].requested_delta == -(GADGET_STOCK + 3)
            assert movements[0].quantity_delta == -GADGET_STOCK

        async with store_for() as store:
            await OrderService.update_status(store, order.id, OrderStatus.CANCELLED)
        assert await stock_of(store_for, GADGET_ID) == GADGET_STOCK

    async def test_reject_policy_fails_whole_transition(self, store_for, settings, monkeypatch):
        monkeypatch.setattr(settings, "STOCK_POLICY", "reject")
        order = await create_scenario(
            store_for,
            items=[
                {"product_id": WIDGET_ID, "quantity": 1},
                {"product_id": GADGET_ID, "quantity": GADGET_STOCK + 1},
            ],
        )

        with pytest.raises(InsufficientStock) as exc_info:
            async with store_for() as store:
                await OrderService.update_status(store, order.id, OrderStatus.CONFIRMED)
        assert exc_info.value.product_id == GADGET_ID

        assert await stock_of(store_for, WIDGET_ID) == WIDGET_STOCK
        async with store_for() as store:
            assert (await OrderService.get_order(store, order.id)).status == OrderStatus.DRAFT


class TestConcurrencyAndIsolation:

    async def test_stale_write_raises_conflict(self, store_for):
        order = await create_scenario(store_for)

        with pytest.raises(Conflict):
            async with store_for() as stale_store:
                stale = await stale_store.get(Order, order.id)
                async with store_for() as store:
                    await OrderService.add_item(store, order.id, {"product_id": WIDGET_ID, "quantity": 1})
                stale.notes = "edited from an old copy"
                stale_store.touch(stale)
                await stale_store.flush()

        async with store_for() as store:
            fresh = await OrderService.get_order(store, order.id)
            assert fresh.notes is None
            assert len(fresh.items) == 3

    async def test_soft_deleted_order_hidden(self, store_for):
        order = await create_scenario(store_for)
        async with store_for() as store:
            await OrderService.delete_order(store, order.id)

        async with store_for() as store:
            with pytest.raises(NotFound):
                await OrderService.get_order(store, order.id)
            orders, total = await OrderService.list_orders(store)
            assert orders == [] and total == 0
            assert await OrderService.list_by_customer(store, CUSTOMER_ID) == []

    async def test_superuser_can_see_deleted(self, store_for):
        order = await create_scenario(store_for)
        async with store_for() as store:
            await OrderService.delete_order(store, order.id)
        async with store_for(is_superuser=True) as store:
            found = await store.get(Order, order.id, include_deleted=True)
            assert found.is_deleted

    async def test_include_deleted_ignored_for_regular_scope(self, store_for):
        order = await create_scenario(store_for)
        async with store_for() as store:
            await OrderService.delete_order(store, order.id)
        async with store_for() as store:
            assert await store.find(Order, order.id, include_deleted=True) is None

    async def test_other_tenant_cannot_read_or_change(self, store_for):
        order = await create_scenario(store_for)
        async with store_for(OTHER_COMPANY_ID) as store:
            with pytest.raises(NotFound):
                await OrderService.get_order(store, order.id)
            with pytest.raises(NotFound):
                await OrderService.update_status(store, order.id, OrderStatus.CONFIRMED)
        assert await stock_of(store_for, WIDGET_ID) == WIDGET_STOCK

    async def test_list_filters_and_paginates(self, store_for):
        first = await create_scenario(store_for)
        await create_scenario(store_for)
        await create_scenario(store_for)
        async with store_for() as store:
            await OrderService.update_status(store, first.id, OrderStatus.PENDING)

        async with store_for() as store:
            page, total = await OrderService.list_orders(store, page=1, page_size=2)
            assert total == 3 and len(page) == 2
            pending, pending_total = await OrderService.list_orders(store, status="pending")
            assert pending_total == 1 and pending[0].id == first.id
