# woodchain/repositories/ledger_account_repo.py
from sqlmodel import select
from sqlmodel.ext.asyncio.session import AsyncSession

from woodchain.models.ledger import LedgerAccount


class LedgerAccountRepository:
    """
    Data access layer for user -> ledger address bindings.

    No commits here; bindings are written inside the signup transaction.
    """

    async def get_for_user(self, session: AsyncSession, user_id: int) -> LedgerAccount | None:
        stmt = select(LedgerAccount).where(LedgerAccount.user_id == user_id)
        return (await session.exec(stmt)).first()

    async def create(self, session: AsyncSession, binding: LedgerAccount) -> LedgerAccount:
        session.add(binding)
        await session.flush()
        return binding
