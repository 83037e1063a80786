# woodchain/dependencies.py
from functools import lru_cache

from eth_account import Account
from fastapi import Depends, Request

from woodchain.core.config import get_settings
from woodchain.core.ledger_client import LedgerClient
from woodchain.repositories.ledger_account_repo import LedgerAccountRepository
from woodchain.repositories.order_repo import OrderRepository
from woodchain.repositories.product_repo import ProductRepository
from woodchain.repositories.user_repo import UserRepository
from woodchain.services.identity_mapper import IdentityMapper
from woodchain.services.order_pipeline import OrderPipeline

order_repo = OrderRepository()
product_repo = ProductRepository()
user_repo = UserRepository()
ledger_account_repo = LedgerAccountRepository()


def get_ledger(request: Request) -> LedgerClient | None:
    """
    The ledger client bound at startup (see `main.lifespan`).

    None when LEDGER_ENABLED is false; the pipeline then flags every
    mirror write as failed instead of calling the ledger.
    """
    return getattr(request.app.state, "ledger", None)


@lru_cache
def get_identity_mapper() -> IdentityMapper:
    settings = get_settings()
    funder = Account.from_key(settings.LEDGER_FUNDER_KEY) if settings.LEDGER_FUNDER_KEY else None
    return IdentityMapper(
        ledger_account_repo,
        settings.LEDGER_IDENTITY_SECRET,
        funder=funder,
        funding_wei=settings.LEDGER_FUNDING_WEI,
    )


def get_order_pipeline(
    ledger: LedgerClient | None = Depends(get_ledger),
    identity: IdentityMapper = Depends(get_identity_mapper),
) -> OrderPipeline:
    settings = get_settings()
    return OrderPipeline(
        order_repo,
        product_repo,
        user_repo,
        identity,
        ledger,
        missing_product_policy=settings.ORDER_MISSING_PRODUCT_POLICY,
        total_tolerance=settings.ORDER_TOTAL_TOLERANCE,
        reject_total_mismatch=settings.ORDER_REJECT_TOTAL_MISMATCH,
    )
