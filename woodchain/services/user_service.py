# woodchain/services/user_service.py
import logging
import uuid

from fastapi.concurrency import run_in_threadpool
from sqlalchemy.exc import IntegrityError
from sqlmodel.ext.asyncio.session import AsyncSession
from supabase import AuthError as SupabaseAuthError, Client

from woodchain.core.errors import AuthError, ConflictError
from woodchain.core.ledger_client import LedgerClient
from woodchain.models.user import USER_TYPE_SUPPLIER, Supplier, User
from woodchain.repositories.ledger_account_repo import LedgerAccountRepository
from woodchain.repositories.user_repo import UserRepository
from woodchain.schemas.user import (
    LoginRequest,
    LoginResponse,
    SignupRequest,
    UserRead,
    UserUpdate,
)
from woodchain.services.identity_mapper import IdentityMapper

logger = logging.getLogger(__name__)

DEFAULT_SUPPLIER_DESCRIPTION = "Supplier of wood products"


class UserService:
    """
    Business logic for accounts.

    Responsibilities:
      - signup: Supabase identity + local profile (+ supplier profile)
        + ledger identity binding, in one local transaction, then an
        optional top-up of the new ledger account
      - login: exchange credentials for a Supabase access token
      - self profile read/update
    """

    def __init__(
        self,
        repo: UserRepository,
        ledger_accounts: LedgerAccountRepository,
        identity: IdentityMapper,
        ledger: LedgerClient | None = None,
    ):
        self.repo = repo
        self.ledger_accounts = ledger_accounts
        self.identity = identity
        self.ledger = ledger

    # ----- Signup / login -----

    async def signup(
        self,
        session: AsyncSession,
        auth_client: Client,
        payload: SignupRequest,
    ) -> UserRead:
        """
        Create a marketplace account.

        Steps:
          1. Reject duplicate emails.
          2. Register the credentials with Supabase Auth.
          3. Insert User (and Supplier for supplier accounts).
          4. Bind the user's ledger account.
          5. Commit.
          6. Fund the ledger account when a funder is configured. A failed
             top-up is logged and does not undo the signup.
        """
        email = payload.email.lower()
        if await self.repo.get_by_email(session, email) is not None:
            raise ConflictError("User already exists with the provided email.")

        try:
            response = await run_in_threadpool(
                auth_client.auth.sign_up,
                {"email": email, "password": payload.password},
            )
        except SupabaseAuthError as exc:
            logger.warning("Supabase sign up rejected for %s: %s", email, exc)
            raise AuthError(f"Sign up rejected: {exc}") from exc

        if response.user is None:
            raise AuthError("Sign up was not accepted by the identity provider")

        try:
            user = await self.repo.create(
                session,
                User(
                    auth_id=uuid.UUID(str(response.user.id)),
                    email=email,
                    user_type=payload.user_type,
                    company_name=payload.company_name,
                    company_address=payload.company_address,
                ),
            )
            if payload.user_type == USER_TYPE_SUPPLIER:
                await self.repo.create_supplier(
                    session,
                    Supplier(
                        user_id=user.id,
                        description=payload.supplier_description
                        or DEFAULT_SUPPLIER_DESCRIPTION,
                    ),
                )
            binding = await self.identity.bind(session, user.id)
            await session.commit()
        except IntegrityError as exc:
            await session.rollback()
            raise ConflictError("User already exists with the provided email.") from exc

        logger.info("%s account created: user %s", payload.user_type, user.id)
        if self.ledger is not None:
            await self._fund(user.id, binding.address)
        return await self.to_read(session, user)

    async def login(
        self,
        session: AsyncSession,
        auth_client: Client,
        payload: LoginRequest,
    ) -> LoginResponse:
        """
        Verify credentials with Supabase and return its access token.

        Raises:
            AuthError: bad credentials, or no local profile for the identity.
        """
        try:
            response = await run_in_threadpool(
                auth_client.auth.sign_in_with_password,
                {"email": payload.email.lower(), "password": payload.password},
            )
        except SupabaseAuthError as exc:
            raise AuthError("Invalid email or password") from exc

        if response.session is None or response.user is None:
            raise AuthError("Invalid email or password")

        user = await self.repo.get_by_auth_id(session, uuid.UUID(str(response.user.id)))
        if user is None:
            raise AuthError("No marketplace profile for this account, please sign up")

        return LoginResponse(
            access_token=response.session.access_token,
            user=await self.to_read(session, user),
        )

    async def _fund(self, user_id: int, address: str) -> None:
        try:
            tx_hash = await self.identity.fund(self.ledger, address)
        except Exception as exc:
            logger.warning("Could not fund ledger account of user %s: %s", user_id, exc)
            return
        if tx_hash is not None:
            logger.info("Ledger account of user %s funded: tx %s", user_id, tx_hash)

    # ----- Self profile -----

    async def update_me(
        self,
        session: AsyncSession,
        current_user: User,
        payload: UserUpdate,
    ) -> UserRead:
        """Partial update of company details."""
        if payload.company_name is not None:
            current_user.company_name = payload.company_name
        if payload.company_address is not None:
            current_user.company_address = payload.company_address

        await self.repo.update(session, current_user)
        await session.commit()
        return await self.to_read(session, current_user)

    async def to_read(self, session: AsyncSession, user: User) -> UserRead:
        """Compose UserRead with supplier id and ledger address."""
        supplier = await self.repo.get_supplier_for_user(session, user.id)
        binding = await self.ledger_accounts.get_for_user(session, user.id)
        return UserRead(
            id=user.id,
            email=user.email,
            user_type=user.user_type,
            company_name=user.company_name,
            company_address=user.company_address,
            supplier_id=supplier.id if supplier else None,
            ledger_address=binding.address if binding else None,
            created_at=user.created_at,
        )
