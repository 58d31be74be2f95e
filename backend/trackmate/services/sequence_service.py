"""TrackMate — SequenceAllocator: per-tenant, per-series atomic counters.

Numbers are taken with a single ``UPDATE ... SET last_value = last_value + 1
RETURNING last_value`` inside the caller's transaction. The row lock that
UPDATE takes serializes concurrent allocators for the same (company, series),
and a rolled-back operation gives its number back.
"""
import logging

from sqlalchemy import select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import AsyncSession

from trackmate.models.enums import SequenceSeries
from trackmate.models.sequence import SequenceCounter

logger = logging.getLogger(__name__)


def format_order_number(company_id: int, sequence: int) -> str:
    return f"ORD-{company_id:04d}-{sequence:06d}"


def format_invoice_number(company_id: int, sequence: int) -> str:
    # Company id is not zero-padded on invoices
    return f"INV-{company_id}-{sequence:06d}"


def parse_sequence(display_number: str) -> int:
    """Sequence part of an ORD-/INV- display number."""
    return int(display_number.rsplit("-", 1)[-1])


class SequenceAllocator:
    """Hands out strictly increasing numbers per (company_id, series)."""

    @staticmethod
    def _insert(db: AsyncSession):
        dialect = db.get_bind().dialect.name
        if dialect == "postgresql":
            return pg_insert(SequenceCounter)
        if dialect == "sqlite":
            return sqlite_insert(SequenceCounter)
        raise NotImplementedError(f"No atomic upsert for dialect {dialect}")

    @staticmethod
    async def _ensure_counter(db: AsyncSession, company_id: int, series: SequenceSeries) -> None:
        stmt = (
            SequenceAllocator._insert(db)
            .values(company_id=company_id, series=series.value, last_value=0)
            .on_conflict_do_nothing(index_elements=["company_id", "series"])
        )
        await db.execute(stmt)

    @staticmethod
    async def next(db: AsyncSession, company_id: int, series: SequenceSeries) -> int:
        await SequenceAllocator._ensure_counter(db, company_id, series)
        result = await db.execute(
            update(SequenceCounter)
            .where(SequenceCounter.company_id == company_id, SequenceCounter.series == series.value)
            .values(last_value=SequenceCounter.last_value + 1)
            .returning(SequenceCounter.last_value)
        )
        value = result.scalar_one()
        logger.debug("Allocated %s #%s for company %s", series.value, value, company_id)
        return value

    @staticmethod
    async def peek(db: AsyncSession, company_id: int, series: SequenceSeries) -> int:
        """Last number handed out, 0 if the series has never been used."""
        result = await db.execute(
            select(SequenceCounter.last_value).where(
                SequenceCounter.company_id == company_id,
                SequenceCounter.series == series.value,
            )
        )
        return result.scalar_one_or_none() or 0

    @staticmethod
    async def seed(db: AsyncSession, company_id: int, series: SequenceSeries, value: int) -> int:
        """Raise the counter to at least ``value`` (legacy import). Never lowers it."""
        await SequenceAllocator._ensure_counter(db, company_id, series)
        await db.execute(
            update(SequenceCounter)
            .where(
                SequenceCounter.company_id == company_id,
                SequenceCounter.series == series.value,
                SequenceCounter.last_value < value,
            )
            .values(last_value=value)
        )
        return await SequenceAllocator.peek(db, company_id, series)

    @staticmethod
    async def next_order_number(db: AsyncSession, company_id: int) -> str:
        return format_order_number(company_id, await SequenceAllocator.next(db, company_id, SequenceSeries.ORDER))

    @staticmethod
    async def next_invoice_number(db: AsyncSession, company_id: int) -> str:
        return format_invoice_number(company_id, await SequenceAllocator.next(db, company_id, SequenceSeries.INVOICE))
