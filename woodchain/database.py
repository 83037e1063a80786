# woodchain/database.py
from collections.abc import AsyncIterator

from sqlalchemy.ext.asyncio import AsyncEngine, async_sessionmaker, create_async_engine
from sqlmodel import SQLModel
from sqlmodel.ext.asyncio.session import AsyncSession

from woodchain.core.config import get_settings

settings = get_settings()

# ---------------------------------------------------------
# Async Postgres connection
#
# - pool_pre_ping=True     : validate connections before using them
# - expire_on_commit=False : rows stay readable after commit; the order
#                            pipeline keeps using the committed Order while
#                            it mirrors it to the ledger
# ---------------------------------------------------------

engine: AsyncEngine = create_async_engine(
    settings.DATABASE_URL,
    echo=False,        # set to True if you want to debug SQL queries
    pool_pre_ping=True,
)

SessionLocal = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


async def create_db_and_tables(bind: AsyncEngine = engine) -> None:
    """
    Create all tables defined in SQLModel metadata if they do not exist.

    This is called once on application startup.
    """
    async with bind.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)


async def get_session() -> AsyncIterator[AsyncSession]:
    """
    FastAPI dependency that yields an AsyncSession.

    Usage:

        from fastapi import Depends

        @router.get("/example")
        async def example_endpoint(session: AsyncSession = Depends(get_session)):
            ...
    """
    async with SessionLocal() as session:
        yield session
