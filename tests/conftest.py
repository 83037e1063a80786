"""Shared fixtures.

Settings are read when `woodchain` is first imported, so the test
environment is set up here before any application import.
"""

import os

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")
os.environ.setdefault("SUPABASE_URL", "http://localhost:54321")
os.environ.setdefault("SUPABASE_KEY", "test-anon-key")
os.environ.setdefault("SUPABASE_JWT_SECRET", "test-jwt-secret")
os.environ.setdefault("LEDGER_IDENTITY_SECRET", "test-identity-secret")
os.environ.setdefault("LEDGER_ENABLED", "false")

from types import SimpleNamespace  # noqa: E402

import pytest  # noqa: E402
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402
from sqlmodel.ext.asyncio.session import AsyncSession  # noqa: E402

from woodchain.database import create_db_and_tables  # noqa: E402
from woodchain.models import ledger as _ledger_models  # noqa: E402,F401
from woodchain.models import order as _order_models  # noqa: E402,F401
from woodchain.models import product as _product_models  # noqa: E402,F401
from woodchain.models.user import USER_TYPE_BUYER  # noqa: E402
from woodchain.repositories.ledger_account_repo import LedgerAccountRepository  # noqa: E402
from woodchain.services.identity_mapper import IdentityMapper  # noqa: E402
from woodchain.services.order_pipeline import OrderPipeline  # noqa: E402

from tests.factories import (  # noqa: E402
    IDENTITY_SECRET,
    add_account,
    add_product,
    add_supplier,
    build_pipeline,
)
from tests.fakes import FakeLedgerClient  # noqa: E402


@pytest.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    await create_db_and_tables(bind=engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def session(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def identity() -> IdentityMapper:
    return IdentityMapper(LedgerAccountRepository(), IDENTITY_SECRET)


@pytest.fixture
def ledger() -> FakeLedgerClient:
    return FakeLedgerClient()


@pytest.fixture
def pipeline(identity, ledger) -> OrderPipeline:
    return build_pipeline(identity, ledger)


@pytest.fixture
async def market(session, identity):
    """
    One buyer, two suppliers.

    Northwood sells oak (59.99) and pine (39.99); Southwood sells birch.
    Every account has its ledger binding.
    """
    buyer = await add_account(session, identity, "buyer@acme.test", USER_TYPE_BUYER, "Acme Builders")
    supplier_user, supplier = await add_supplier(session, identity, "sales@northwood.test", "Northwood Timber")
    other_user, other_supplier = await add_supplier(session, identity, "sales@southwood.test", "Southwood Mill")

    oak = await add_product(session, supplier, "Oak plank", "59.99")
    pine = await add_product(session, supplier, "Pine beam", "39.99")
    birch = await add_product(session, other_supplier, "Birch ply", "25.00")

    return SimpleNamespace(
        buyer=buyer,
        supplier_user=supplier_user,
        supplier=supplier,
        other_user=other_user,
        other_supplier=other_supplier,
        oak=oak,
        pine=pine,
        birch=birch,
    )
