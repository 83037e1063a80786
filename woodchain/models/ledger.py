# woodchain/models/ledger.py
from datetime import datetime, timezone

from sqlmodel import SQLModel, Field


class LedgerAccount(SQLModel, table=True):
    """
    Binding between a local user and its ledger account address.

    Established once at signup. The private key is never stored; it is
    re-derived from LEDGER_IDENTITY_SECRET and the user id when the
    account has to sign a transaction.
    """

    __tablename__ = "ledger_accounts"

    id: int | None = Field(default=None, primary_key=True)

    user_id: int = Field(
        foreign_key="users.id",
        unique=True,
        index=True,
    )

    address: str = Field(
        unique=True,
        max_length=42,
        description="Checksummed 0x-prefixed account address",
    )

    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
    )
