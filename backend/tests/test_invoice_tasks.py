"""
Tests for trackmate.tasks.invoice_tasks — the overdue beat task as the worker runs it.
"""

import asyncio
from datetime import datetime, timedelta, timezone

import pytest
from celery.exceptions import Retry
from sqlalchemy.exc import OperationalError

from trackmate.core.tenant import TenantScope
from trackmate.db.base import Base
from trackmate.db.session import configure_engine, get_engine, session_scope
from trackmate.models import Company, Customer, InvoiceStatus
from trackmate.services.invoice_service import InvoiceService
from trackmate.services.store import TenantStore
from trackmate.tasks import invoice_tasks
from trackmate.tasks.invoice_tasks import mark_overdue_invoices

from conftest import COMPANY_ID, CUSTOMER_ID

PAST = datetime(2020, 1, 1, tzinfo=timezone.utc)


async def _prepare(url: str) -> int:
    engine = configure_engine(url)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    async with session_scope() as db:
        db.add(Company(id=COMPANY_ID, name="Acme Trading"))
        await db.flush()
        db.add(Customer(id=CUSTOMER_ID, company_id=COMPANY_ID, name="Jane Buyer"))
    async with session_scope() as db:
        store = TenantStore(db, TenantScope(COMPANY_ID, actor="tester"))
        invoice = await InvoiceService.create_invoice(
            store, {"customer_id": CUSTOMER_ID, "invoice_date": PAST, "due_date": PAST + timedelta(days=30)}
        )
        await InvoiceService.update_status(store, invoice.id, InvoiceStatus.SENT)
    await engine.dispose()
    return invoice.id


async def _status_of(invoice_id: int) -> InvoiceStatus:
    try:
        async with session_scope() as db:
            store = TenantStore(db, TenantScope(COMPANY_ID))
            return (await InvoiceService.get_invoice(store, invoice_id)).status
    finally:
        await get_engine().dispose()


class TestMarkOverdueTask:

    def test_consecutive_runs_in_one_process(self, tmp_path):
        invoice_id = asyncio.run(_prepare(f"sqlite+aiosqlite:///{tmp_path / 'sweep.db'}"))

        first = mark_overdue_invoices.run()
        second = mark_overdue_invoices.run()

        assert first == {str(COMPANY_ID): 1}
        assert second == {}
        # Nothing is left pooled for the next run's event loop
        assert get_engine().pool.checkedin() == 0
        assert asyncio.run(_status_of(invoice_id)) == InvoiceStatus.OVERDUE

    def test_transient_db_error_is_retried(self, monkeypatch):
        async def failing_sweep():
            raise OperationalError("SELECT companies.id FROM companies", {}, Exception("connection reset"))

        retried = []

        def fake_retry(exc=None, **kwargs):
            retried.append(exc)
            return Retry("retry", exc=exc)

        monkeypatch.setattr(invoice_tasks, "mark_overdue_async", failing_sweep)
        monkeypatch.setattr(mark_overdue_invoices, "retry", fake_retry)

        with pytest.raises(Retry):
            mark_overdue_invoices.run()
        assert len(retried) == 1
        assert isinstance(retried[0], OperationalError)
