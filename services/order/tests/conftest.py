import os
from decimal import Decimal
from uuid import uuid4

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker

# main.py は import 時に DATABASE_URL を読む
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")

from fakes import InMemoryCatalog, InMemoryCustomers, InMemoryOrderStore  # noqa: E402
from order_service.commands import OrderCreationWorkflow  # noqa: E402
from order_service.models import CatalogProduct, Customer  # noqa: E402
from sql_fixtures import create_schema, insert_customer, insert_product  # noqa: E402


@pytest.fixture
def customer():
    return Customer(id=uuid4(), name="Alice", email="alice@example.com")


@pytest.fixture
def p1():
    return CatalogProduct(
        id=uuid4(), name="Keyboard", unit_price=Decimal("10.00"), available_quantity=5
    )


@pytest.fixture
def p2():
    return CatalogProduct(
        id=uuid4(), name="Mouse", unit_price=Decimal("20.00"), available_quantity=0
    )


@pytest.fixture
def p3():
    return CatalogProduct(
        id=uuid4(), name="Monitor", unit_price=Decimal("199.99"), available_quantity=2
    )


@pytest.fixture
def customers(customer):
    return InMemoryCustomers([customer])


@pytest.fixture
def catalog(p1, p2, p3):
    return InMemoryCatalog([p1, p2, p3])


@pytest.fixture
def orders():
    return InMemoryOrderStore()


@pytest.fixture
def workflow(customers, catalog, orders):
    return OrderCreationWorkflow(customers, catalog, orders)


@pytest.fixture
async def engine(tmp_path, customer, p1, p2, p3):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'orders.db'}")
    await create_schema(engine)
    await insert_customer(engine, customer)
    for product in (p1, p2, p3):
        await insert_product(engine, product)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
