"""TrackMate — Seed a dev company, customer, products and bank account (run after migrations)."""
import asyncio
import logging
import os
import sys
from decimal import Decimal

# Add parent to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from sqlalchemy import select

from trackmate.core.logging import configure_logging
from trackmate.core.tenant import TenantScope
from trackmate.db.session import session_scope
from trackmate.models import Company, Customer, Product, ProductStatus
from trackmate.services.bank_detail_service import BankDetailService
from trackmate.services.store import TenantStore

logger = logging.getLogger("seed_dev")

DEV_COMPANY_NAME = "Dev Company"


async def seed():
    async with session_scope() as db:
        existing = await db.execute(select(Company.id).where(Company.name == DEV_COMPANY_NAME).limit(1))
        if existing.scalar_one_or_none() is not None:
            logger.info("Dev company already exists. Skipping seed.")
            return

        company = Company(name=DEV_COMPANY_NAME, email="billing@dev.local")
        db.add(company)
        await db.flush()

        store = TenantStore(db, TenantScope(company.id, actor="seed"))
        store.add(Customer(name="Dev Customer", email="buyer@dev.local"))
        store.add(Product(name="Widget", unit_price=Decimal("10.00"), stock_quantity=100, status=ProductStatus.ACTIVE))
        store.add(Product(name="Gadget", unit_price=Decimal("5.00"), stock_quantity=50, status=ProductStatus.ACTIVE))
        await store.flush()
        await BankDetailService.create_bank_detail(store, {
            "bank_name": "Dev Bank",
            "account_name": DEV_COMPANY_NAME,
            "iban": "GB82WEST12345698765432",
            "currency": "USD",
        })
        logger.info("Seeded company %s with one customer, two products and a bank account", company.id)


if __name__ == "__main__":
    configure_logging()
    asyncio.run(seed())
