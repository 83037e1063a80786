# woodchain/routers/auth.py
from fastapi import APIRouter, Depends, status
from sqlmodel.ext.asyncio.session import AsyncSession
from supabase import Client

from woodchain.core.ledger_client import LedgerClient
from woodchain.core.supabase_client import supabase_public
from woodchain.database import get_session
from woodchain.dependencies import (
    get_identity_mapper,
    get_ledger,
    ledger_account_repo,
    user_repo,
)
from woodchain.schemas.user import LoginRequest, LoginResponse, SignupRequest, UserRead
from woodchain.services.identity_mapper import IdentityMapper
from woodchain.services.user_service import UserService

router = APIRouter(prefix="/auth", tags=["Auth"])


def get_user_service(
    identity: IdentityMapper = Depends(get_identity_mapper),
    ledger: LedgerClient | None = Depends(get_ledger),
) -> UserService:
    return UserService(user_repo, ledger_account_repo, identity, ledger)


@router.post(
    "/signup",
    response_model=UserRead,
    status_code=status.HTTP_201_CREATED,
)
async def signup(
    payload: SignupRequest,
    session: AsyncSession = Depends(get_session),
    auth_client: Client = Depends(supabase_public),
    service: UserService = Depends(get_user_service),
):
    """
    Create a buyer ('User') or supplier ('Supplier') account.

    Suppliers also get a supplier profile. Every account is bound to its
    own ledger address.
    """
    return await service.signup(session, auth_client, payload)


@router.post("/login", response_model=LoginResponse)
async def login(
    payload: LoginRequest,
    session: AsyncSession = Depends(get_session),
    auth_client: Client = Depends(supabase_public),
    service: UserService = Depends(get_user_service),
):
    """
    Exchange email/password for a bearer token.
    """
    return await service.login(session, auth_client, payload)
