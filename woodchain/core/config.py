# woodchain/core/config.py
from decimal import Decimal
from functools import lru_cache
from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Centralized application settings loaded from environment.

    Required env vars (.env):
      - DATABASE_URL (async SQLAlchemy URL, e.g. postgresql+psycopg://...)
      - SUPABASE_URL
      - SUPABASE_KEY (anon key, used for sign up / sign in)
      - SUPABASE_JWT_SECRET (JWT signing secret from Supabase project settings)
      - LEDGER_IDENTITY_SECRET (seed for per-user ledger accounts)

    Per-user ledger accounts are derived from LEDGER_IDENTITY_SECRET and hold
    no ether when created, so on a node that charges gas (Ganache does by
    default) their transactions fail with "insufficient funds". Either set
    LEDGER_FUNDER_KEY to the private key of a funded node account, so every
    signup sends LEDGER_FUNDING_WEI to the new address, or run the node with
    a zero gas price.

    Ledger:
      - LEDGER_RPC_URL        : JSON-RPC endpoint of the ledger node
      - LEDGER_ARTIFACT_PATH  : compiled contract artifact (abi + networks)
      - LEDGER_ENABLED=false  : serve without the ledger (every mirror write
                                is flagged as failed)
    """

    PROJECT_NAME: str = "WoodChain Marketplace API"
    API_V1_STR: str = "/api/v1"

    DATABASE_URL: str

    # Supabase Auth
    SUPABASE_URL: str
    SUPABASE_KEY: str
    SUPABASE_JWT_SECRET: str
    SUPABASE_JWT_ALG: str = "HS256"

    CORS_ORIGINS: list[str] = [
        "http://localhost:3000",
        "http://127.0.0.1:3000",
    ]

    # Ledger network
    LEDGER_ENABLED: bool = True
    LEDGER_RPC_URL: str = "http://localhost:7545"
    LEDGER_ARTIFACT_PATH: str = "build/contracts/OrderChain.json"
    LEDGER_GAS_LIMIT: int = 8_000_000
    LEDGER_RPC_TIMEOUT: int = 30
    LEDGER_RECEIPT_TIMEOUT: int = 15
    LEDGER_IDENTITY_SECRET: str
    LEDGER_FUNDER_KEY: str | None = None
    LEDGER_FUNDING_WEI: int = 10**18

    # Order placement policy
    ORDER_MISSING_PRODUCT_POLICY: Literal["abort", "placeholder"] = "abort"
    ORDER_TOTAL_TOLERANCE: Decimal = Decimal("0.01")
    ORDER_REJECT_TOTAL_MISMATCH: bool = False

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")


@lru_cache
def get_settings() -> Settings:
    """
    Cached settings loader.
    Ensures we don't re-parse .env on every import / request.
    """
    return Settings()
