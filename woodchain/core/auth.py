# woodchain/core/auth.py
import uuid
from typing import Any

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jose import jwt, JWTError
from sqlmodel.ext.asyncio.session import AsyncSession

from woodchain.core.config import get_settings
from woodchain.database import get_session
from woodchain.models.user import USER_TYPE_BUYER, USER_TYPE_SUPPLIER, Supplier, User
from woodchain.repositories.user_repo import UserRepository

# HTTP Bearer scheme:
# - auto_error=False => missing Authorization header will NOT raise immediately
#   so we can answer with our own 401 message.
bearer_scheme = HTTPBearer(auto_error=False)

user_repo = UserRepository()


def decode_access_token(token: str) -> dict[str, Any]:
    """
    Decode and verify a Supabase access token (JWT).

    Verification:
      - signature (HS256 using SUPABASE_JWT_SECRET)
      - expiration time (exp)
      - audience is NOT verified (Supabase 'aud' may vary)

    Raises:
        HTTPException(401): if token is invalid/expired.
    """
    settings = get_settings()
    try:
        return jwt.decode(
            token,
            settings.SUPABASE_JWT_SECRET,
            algorithms=[settings.SUPABASE_JWT_ALG],
            options={"verify_aud": False},
        )
    except JWTError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
        )


async def get_current_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    session: AsyncSession = Depends(get_session),
) -> User | None:
    """
    Resolve the current marketplace user from a Supabase JWT.

    Flow:
      1. No Authorization header => anonymous => None.
      2. Decode JWT => extract 'sub' (auth user id).
      3. Find the local profile whose auth_id matches 'sub'.

    Unlike a self-service shop, profiles are never auto-provisioned here:
    the account type and company details only come from signup.

    Raises:
        HTTPException(401): malformed token or no profile for this identity.
    """
    if credentials is None:
        return None

    payload = decode_access_token(credentials.credentials)
    sub = payload.get("sub")
    if not sub:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Token missing sub",
        )

    try:
        auth_id = uuid.UUID(sub)
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid sub in token",
        )

    user = await user_repo.get_by_auth_id(session, auth_id)
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="No marketplace profile for this account, please sign up",
        )
    return user


def require_auth(user: User | None = Depends(get_current_user)) -> User:
    """
    Enforce authentication.

    Raises:
        HTTPException(401): if user is None.
    """
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Please login first",
        )
    return user


def require_buyer(user: User = Depends(require_auth)) -> User:
    """
    Only buyer accounts (user_type='User') may browse suppliers and
    place orders.
    """
    if user.user_type != USER_TYPE_BUYER:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Buyer access required",
        )
    return user


async def require_supplier(
    user: User = Depends(require_auth),
    session: AsyncSession = Depends(get_session),
) -> Supplier:
    """
    Enforce a supplier account and return its Supplier profile.

    Raises:
        HTTPException(403): not a supplier, or supplier profile missing.
    """
    if user.user_type != USER_TYPE_SUPPLIER:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Supplier access required",
        )
    supplier = await user_repo.get_supplier_for_user(session, user.id)
    if supplier is None:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Supplier profile missing",
        )
    return supplier
