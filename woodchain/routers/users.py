# woodchain/routers/users.py
from fastapi import APIRouter, Depends
from sqlmodel.ext.asyncio.session import AsyncSession

from woodchain.core.auth import require_auth
from woodchain.database import get_session
from woodchain.models.user import User
from woodchain.routers.auth import get_user_service
from woodchain.schemas.user import UserRead, UserUpdate
from woodchain.services.user_service import UserService

router = APIRouter(prefix="/users", tags=["Users"])


@router.get("/me", response_model=UserRead)
async def read_me(
    session: AsyncSession = Depends(get_session),
    current_user: User = Depends(require_auth),
    service: UserService = Depends(get_user_service),
):
    """
    Return the authenticated account, with supplier id and ledger address.
    """
    return await service.to_read(session, current_user)


@router.patch("/me", response_model=UserRead)
async def update_me(
    payload: UserUpdate,
    session: AsyncSession = Depends(get_session),
    current_user: User = Depends(require_auth),
    service: UserService = Depends(get_user_service),
):
    """
    Update company name and/or address (partial update).
    """
    return await service.update_me(session, current_user, payload)
