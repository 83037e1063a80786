# woodchain/schemas/user.py
from datetime import datetime
from typing import Literal

from pydantic import EmailStr, ConfigDict, field_validator
from sqlmodel import SQLModel, Field

UserType = Literal["User", "Supplier"]


def _strip_required(v: str) -> str:
    v = v.strip()
    if not v:
        raise ValueError("field cannot be empty")
    return v


class SignupRequest(SQLModel):
    """
    Payload for account creation.

    Supplier sign-ups also get a Supplier profile, optionally with a
    description.
    """

    model_config = ConfigDict(extra="forbid")

    email: EmailStr
    password: str = Field(min_length=6, max_length=128)
    user_type: UserType
    company_name: str = Field(max_length=255)
    company_address: str = Field(max_length=255)
    supplier_description: str | None = None

    @field_validator("company_name", "company_address")
    @classmethod
    def not_empty(cls, v: str) -> str:
        return _strip_required(v)


class LoginRequest(SQLModel):
    model_config = ConfigDict(extra="forbid")

    email: EmailStr
    password: str


class UserRead(SQLModel):
    """Response schema returned to clients."""

    id: int
    email: str
    user_type: UserType
    company_name: str
    company_address: str
    supplier_id: int | None = None
    ledger_address: str | None = None
    created_at: datetime


class LoginResponse(SQLModel):
    access_token: str
    token_type: str = "bearer"
    user: UserRead


class UserUpdate(SQLModel):
    """
    Partial profile update for authenticated users.
    Email and user type are fixed at signup.
    """

    model_config = ConfigDict(extra="forbid")

    company_name: str | None = Field(default=None, max_length=255)
    company_address: str | None = Field(default=None, max_length=255)

    @field_validator("company_name", "company_address")
    @classmethod
    def normalize(cls, v: str | None) -> str | None:
        if v is None:
            return v
        return _strip_required(v)
