# woodchain/services/identity_mapper.py
import hashlib
import hmac

from eth_account import Account
from eth_account.signers.local import LocalAccount
from sqlmodel.ext.asyncio.session import AsyncSession

from woodchain.core.errors import IdentityResolutionError
from woodchain.core.ledger_client import LedgerClient
from woodchain.models.ledger import LedgerAccount
from woodchain.repositories.ledger_account_repo import LedgerAccountRepository


class IdentityMapper:
    """
    Maps local users (integer ids) to ledger accounts.

    Every user gets its own deterministic keypair:

        private_key = HMAC-SHA256(LEDGER_IDENTITY_SECRET, "woodchain-actor:<user_id>")

    The resulting address is recorded in `ledger_accounts` at signup, and
    every resolve() checks the re-derived key still matches that record,
    so a rotated secret is caught before anything is signed.

    Derived accounts start with no ether. With a `funder` account the
    mapper tops each new address up by `funding_wei` (see fund()).
    """

    def __init__(
        self,
        repo: LedgerAccountRepository,
        secret: str,
        funder: LocalAccount | None = None,
        funding_wei: int = 0,
    ):
        if not secret:
            raise ValueError("LEDGER_IDENTITY_SECRET must not be empty")
        self.repo = repo
        self._secret = secret.encode("utf-8")
        self.funder = funder
        self.funding_wei = funding_wei

    def derive_account(self, user_id: int) -> LocalAccount:
        """Deterministic ledger account for `user_id`."""
        digest = hmac.new(
            self._secret,
            f"woodchain-actor:{user_id}".encode("utf-8"),
            hashlib.sha256,
        ).digest()
        return Account.from_key(digest)

    async def bind(self, session: AsyncSession, user_id: int) -> LedgerAccount:
        """
        Record the ledger address of a freshly created user.

        Idempotent: returns the existing binding if there is one.
        Does not commit; the caller owns the transaction.
        """
        existing = await self.repo.get_for_user(session, user_id)
        if existing is not None:
            return existing

        account = self.derive_account(user_id)
        return await self.repo.create(
            session,
            LedgerAccount(user_id=user_id, address=account.address),
        )

    async def resolve(self, session: AsyncSession, user_id: int) -> LocalAccount:
        """
        Return the signing account bound to `user_id`.

        Raises:
            IdentityResolutionError: no binding, or the binding does not
            match the derived key.
        """
        binding = await self.repo.get_for_user(session, user_id)
        if binding is None:
            raise IdentityResolutionError(f"No ledger account bound to user {user_id}")

        account = self.derive_account(user_id)
        if account.address != binding.address:
            raise IdentityResolutionError(
                f"Ledger account for user {user_id} does not match its binding"
            )
        return account

    async def fund(self, ledger: LedgerClient, address: str) -> str | None:
        """
        Send `funding_wei` from the funder account to `address`.

        Returns the transaction hash, or None when no funder is configured.
        """
        if self.funder is None or self.funding_wei <= 0:
            return None
        return await ledger.transfer(self.funder, address, self.funding_wei)
