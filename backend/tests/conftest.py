"""
Shared fixtures: a throwaway SQLite database per test, seeded with two tenants.

Company 7 (customer 42, products 1 and 2) is the main tenant; company 8 exists
so cross-tenant isolation can be checked.
"""
from contextlib import asynccontextmanager
from decimal import Decimal

import pytest
import pytest_asyncio

from trackmate.config import get_settings
from trackmate.core.tenant import TenantScope
from trackmate.db.base import Base
from trackmate.db.session import configure_engine, session_scope
from trackmate.models import Company, Customer, Product, ProductStatus
from trackmate.services.store import TenantStore

COMPANY_ID = 7
OTHER_COMPANY_ID = 8
CUSTOMER_ID = 42
OTHER_CUSTOMER_ID = 43
WIDGET_ID = 1
GADGET_ID = 2
FOREIGN_PRODUCT_ID = 3

WIDGET_STOCK = 10
GADGET_STOCK = 5


@pytest_asyncio.fixture
async def engine(tmp_path):
    engine = configure_engine(f"sqlite+aiosqlite:///{tmp_path / 'trackmate.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def seeded(engine):
    async with session_scope() as db:
        db.add_all([
            Company(id=COMPANY_ID, name="Acme Trading"),
            Company(id=OTHER_COMPANY_ID, name="Globex"),
        ])
        await db.flush()
        db.add_all([
            Customer(id=CUSTOMER_ID, company_id=COMPANY_ID, name="Jane Buyer"),
            Customer(id=OTHER_CUSTOMER_ID, company_id=OTHER_COMPANY_ID, name="Other Buyer"),
            Product(
                id=WIDGET_ID, company_id=COMPANY_ID, name="Widget",
                unit_price=Decimal("10.00"), stock_quantity=WIDGET_STOCK, status=ProductStatus.ACTIVE,
            ),
            Product(
                id=GADGET_ID, company_id=COMPANY_ID, name="Gadget",
                unit_price=Decimal("5.00"), stock_quantity=GADGET_STOCK, status=ProductStatus.ACTIVE,
            ),
            Product(
                id=FOREIGN_PRODUCT_ID, company_id=OTHER_COMPANY_ID, name="Foreign",
                unit_price=Decimal("1.00"), stock_quantity=100, status=ProductStatus.ACTIVE,
            ),
        ])
    return engine


@pytest.fixture
def store_for(seeded):
    """``async with store_for() as store:`` opens one committed unit of work."""

    @asynccontextmanager
    async def _open(company_id: int = COMPANY_ID, **scope_kwargs):
        async with session_scope() as db:
            yield TenantStore(db, TenantScope(company_id, actor="tester", **scope_kwargs))

    return _open


@pytest.fixture
def settings():
    """Cached settings object; patch attributes with monkeypatch."""
    return get_settings()


def scenario_order(**overrides) -> dict:
    """Company 7 reference order: 2 x product 1 @ 10.00, 1 x product 2 @ 5.00, 10% tax, 3.00 shipping."""
    payload = {
        "customer_id": CUSTOMER_ID,
        "items": [
            {"product_id": WIDGET_ID, "quantity": 2, "unit_price": "10.00"},
            {"product_id": GADGET_ID, "quantity": 1, "unit_price": "5.00"},
        ],
        "tax_rate": "10",
        "shipping_cost": "3.00",
    }
    payload.update(overrides)
    return payload


async def stock_of(store_for, product_id: int) -> int:
    async with store_for() as store:
        product = await store.get(Product, product_id)
        return product.stock_quantity
