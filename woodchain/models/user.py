# woodchain/models/user.py
import uuid
from datetime import datetime, timezone

from sqlmodel import SQLModel, Field

USER_TYPE_BUYER = "User"
USER_TYPE_SUPPLIER = "Supplier"


class User(SQLModel, table=True):
    """
    Marketplace account (buyer company or supplier company).

    Identity:
      - id: local surrogate key, used everywhere inside the app
      - auth_id: Supabase auth.users.id (UUID from JWT "sub")

    This table is *not* responsible for password hashes. Supabase Auth
    stores the password in its own schema.
    """

    __tablename__ = "users"

    id: int | None = Field(default=None, primary_key=True)

    auth_id: uuid.UUID = Field(
        unique=True,
        index=True,
        description="Matches Supabase auth.users.id",
    )

    email: str = Field(
        unique=True,
        index=True,
        max_length=255,
    )

    # User | Supplier
    user_type: str = Field(
        index=True,
        description="Account type: User (buyer) | Supplier",
    )

    company_name: str = Field(max_length=255, index=True)
    company_address: str = Field(max_length=255)

    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="Creation timestamp (UTC)",
    )


class Supplier(SQLModel, table=True):
    """
    Supplier profile, one per User with user_type='Supplier'.
    """

    __tablename__ = "suppliers"

    id: int | None = Field(default=None, primary_key=True)

    user_id: int = Field(
        foreign_key="users.id",
        unique=True,
        index=True,
    )

    description: str | None = Field(
        default=None,
        description="Public description shown in the supplier directory",
    )
