# woodchain/repositories/user_repo.py
import uuid

from sqlmodel import col, select
from sqlmodel.ext.asyncio.session import AsyncSession

from woodchain.models.user import Supplier, User


class UserRepository:
    """
    Data access layer for User and Supplier.

    Responsibilities:
      - Pure DB operations (CRUD + queries)
      - No FastAPI, no HTTP, no business logic

    NOTE:
      - No commits here; signup writes user, supplier and ledger binding
        in one transaction owned by the service.
    """

    # ----- Users -----

    async def get_by_id(self, session: AsyncSession, user_id: int) -> User | None:
        """Return a User by primary key, or None if not found."""
        return await session.get(User, user_id)

    async def get_by_auth_id(self, session: AsyncSession, auth_id: uuid.UUID) -> User | None:
        """Return the User linked to a Supabase auth id."""
        stmt = select(User).where(User.auth_id == auth_id)
        return (await session.exec(stmt)).first()

    async def get_by_email(self, session: AsyncSession, email: str) -> User | None:
        """Return a User by unique email, or None if not found."""
        stmt = select(User).where(User.email == email)
        return (await session.exec(stmt)).first()

    async def create(self, session: AsyncSession, user: User) -> User:
        """Insert a new User and populate its id (no commit)."""
        session.add(user)
        await session.flush()
        return user

    async def update(self, session: AsyncSession, user: User) -> User:
        session.add(user)
        await session.flush()
        return user

    # ----- Suppliers -----

    async def get_supplier(self, session: AsyncSession, supplier_id: int) -> Supplier | None:
        return await session.get(Supplier, supplier_id)

    async def get_supplier_for_user(self, session: AsyncSession, user_id: int) -> Supplier | None:
        stmt = select(Supplier).where(Supplier.user_id == user_id)
        return (await session.exec(stmt)).first()

    async def create_supplier(self, session: AsyncSession, supplier: Supplier) -> Supplier:
        session.add(supplier)
        await session.flush()
        return supplier

    async def update_supplier(self, session: AsyncSession, supplier: Supplier) -> Supplier:
        session.add(supplier)
        await session.flush()
        return supplier

    async def list_suppliers(
        self,
        session: AsyncSession,
        search: str | None = None,
    ) -> list[tuple[Supplier, User]]:
        """
        Suppliers joined with their account row, optionally filtered by
        company name (case-insensitive substring).
        """
        stmt = select(Supplier, User).join(User, col(User.id) == Supplier.user_id)
        if search:
            stmt = stmt.where(col(User.company_name).icontains(search, autoescape=True))
        stmt = stmt.order_by(User.company_name)
        return list((await session.exec(stmt)).all())

    async def get_supplier_with_user(
        self,
        session: AsyncSession,
        supplier_id: int,
    ) -> tuple[Supplier, User] | None:
        stmt = (
            select(Supplier, User)
            .join(User, col(User.id) == Supplier.user_id)
            .where(Supplier.id == supplier_id)
        )
        return (await session.exec(stmt)).first()
