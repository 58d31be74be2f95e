"""TrackMate — InventoryAdjuster: the only writer of Product.stock_quantity."""
import logging
from collections import defaultdict
from dataclasses import dataclass
from typing import Iterable

from sqlalchemy import func, select

from trackmate.config import get_settings
from trackmate.core.exceptions import EntityKind, InsufficientStock, NotFound
from trackmate.models.enums import StockReason
from trackmate.models.product import Product, StockMovement
from trackmate.services.store import TenantStore

logger = logging.getLogger(__name__)

POLICY_FLOOR = "floor"
POLICY_REJECT = "reject"


@dataclass(frozen=True)
class StockAdjustment:
    """Negative delta deducts, positive delta restores."""

    product_id: int
    delta: int


class InventoryAdjuster:
    """Applies a batch of stock deltas atomically inside the caller's transaction."""

    @staticmethod
    def _merge(adjustments: Iterable[StockAdjustment]) -> dict[int, int]:
        merged: dict[int, int] = defaultdict(int)
        for adj in adjustments:
            merged[adj.product_id] += int(adj.delta)
        return {pid: delta for pid, delta in merged.items() if delta != 0}

    @staticmethod
    async def _lock_products(store: TenantStore, product_ids: list[int]) -> dict[int, Product]:
        # Always lock in product id order
        stmt = (
            store.scoped_bookkeeping(Product, select(Product).where(Product.id.in_(product_ids)))
            .order_by(Product.id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        result = await store.db.execute(stmt)
        return {p.id: p for p in result.scalars().all()}

    @staticmethod
    async def adjust(
        store: TenantStore,
        adjustments: Iterable[StockAdjustment],
        *,
        reason: StockReason,
        reference_type: str | None = None,
        reference_id: int | None = None,
        policy: str | None = None,
    ) -> list[StockMovement]:
        """
        Apply all deltas or none.

        - "reject": any product that would go negative raises InsufficientStock
          before a single product is touched.
        - "floor": a deduction larger than the stock on hand clamps at zero;
          the ledger records the delta actually applied.
        """
        policy = policy or get_settings().STOCK_POLICY
        merged = InventoryAdjuster._merge(adjustments)
        if not merged:
            return []

        products = await InventoryAdjuster._lock_products(store, sorted(merged))
        for product_id, delta in merged.items():
            product = products.get(product_id)
            # Deductions need a live product; restorations may land on a soft-deleted one
            if product is None or (delta < 0 and product.is_deleted):
                raise NotFound(EntityKind.PRODUCT, product_id)
            if policy == POLICY_REJECT and product.stock_quantity + delta < 0:
                raise InsufficientStock(product_id, available=product.stock_quantity, requested=-delta)

        movements: list[StockMovement] = []
        for product_id in sorted(merged):
            product = products[product_id]
            requested = merged[product_id]
            applied = requested
            if product.stock_quantity + requested < 0:
                applied = -product.stock_quantity
                logger.warning(
                    "Stock for product %s clamped at zero: requested %s, applied %s",
                    product_id, requested, applied,
                )
            product.stock_quantity += applied
            store.touch(product)
            movement = StockMovement(
                company_id=product.company_id,
                product_id=product_id,
                requested_delta=requested,
                quantity_delta=applied,
                balance_after=product.stock_quantity,
                reason=reason,
                reference_type=reference_type,
                reference_id=reference_id,
                actor=store.actor,
            )
            store.db.add(movement)
            movements.append(movement)

        await store.flush()
        return movements

    @staticmethod
    async def net_for_reference(store: TenantStore, reference_type: str, reference_id: int) -> dict[int, int]:
        """Net applied delta per product for everything one reference has done to stock."""
        stmt = (
            select(StockMovement.product_id, func.sum(StockMovement.quantity_delta))
            .where(
                StockMovement.reference_type == reference_type,
                StockMovement.reference_id == reference_id,
            )
            .group_by(StockMovement.product_id)
        )
        if not store.scope.is_superuser:
            stmt = stmt.where(StockMovement.company_id == store.company_id)
        result = await store.db.execute(stmt)
        return {product_id: int(total or 0) for product_id, total in result.all()}

    @staticmethod
    async def movements_for_reference(store: TenantStore, reference_type: str, reference_id: int) -> list[StockMovement]:
        stmt = (
            select(StockMovement)
            .where(
                StockMovement.company_id == store.company_id,
                StockMovement.reference_type == reference_type,
                StockMovement.reference_id == reference_id,
            )
            .order_by(StockMovement.id)
        )
        result = await store.db.execute(stmt)
        return list(result.scalars().all())
