"""TrackMate — Invoice Celery tasks: persist Sent -> Overdue once the due date passes."""
import asyncio
import logging

from sqlalchemy import select
from sqlalchemy.exc import DBAPIError

from trackmate.core.exceptions import Conflict
from trackmate.core.tenant import TenantScope
from trackmate.db.base import utcnow
from trackmate.db.session import get_engine, session_scope
from trackmate.models.company import Company
from trackmate.services.invoice_service import InvoiceService
from trackmate.services.store import TenantStore
from trackmate.worker import celery_app

logger = logging.getLogger(__name__)

SWEEP_ACTOR = "system:overdue-sweep"


@celery_app.task(bind=True, max_retries=3, default_retry_delay=60)
def mark_overdue_invoices(self) -> dict[str, int]:
    """Beat task. Returns the number of invoices moved to Overdue per company."""
    try:
        return asyncio.run(mark_overdue_async())
    except DBAPIError as exc:
        logger.warning("Overdue sweep failed, retrying in %ss: %s", self.default_retry_delay, exc)
        raise self.retry(exc=exc)


async def mark_overdue_async() -> dict[str, int]:
    """
    Sweep every live company, one transaction per tenant.

    Each Celery run gets its own event loop, so pooled connections are
    released before the loop closes.
    """
    try:
        return await _sweep(utcnow())
    finally:
        await get_engine().dispose()


async def _sweep(now) -> dict[str, int]:
    async with session_scope() as db:
        result = await db.execute(select(Company.id).where(Company.is_deleted.is_(False)).order_by(Company.id))
        company_ids = list(result.scalars().all())

    moved: dict[str, int] = {}
    for company_id in company_ids:
        # A conflict in one company doesn't block the rest
        try:
            async with session_scope() as db:
                store = TenantStore(db, TenantScope(company_id, actor=SWEEP_ACTOR))
                changes = await InvoiceService.mark_overdue(store, now)
        except Conflict as exc:
            logger.warning("Overdue sweep skipped company %s: %s", company_id, exc)
            continue
        if changes:
            moved[str(company_id)] = len(changes)
            logger.info("Marked %d invoice(s) overdue for company %s", len(changes), company_id)
    return moved
