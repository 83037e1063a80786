# woodchain/main.py
from contextlib import asynccontextmanager
import logging

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from woodchain.core.config import get_settings
from woodchain.core.errors import (
    AuthError,
    ConflictError,
    IdentityResolutionError,
    LedgerMirrorError,
    LedgerReadError,
    LocalCommitError,
    NotFoundError,
    ValidationError,
    WoodChainError,
)
from woodchain.core.ledger_client import LedgerClient
from woodchain.database import create_db_and_tables

# Import models so SQLModel metadata is populated before create_all()
from woodchain.models import user as _user_models  # noqa: F401
from woodchain.models import ledger as _ledger_models  # noqa: F401
from woodchain.models import product as _product_models  # noqa: F401
from woodchain.models import order as _order_models  # noqa: F401

# Routers
from woodchain.routers.auth import router as auth_router
from woodchain.routers.users import router as users_router
from woodchain.routers.suppliers import router as suppliers_router
from woodchain.routers.supplier import router as supplier_router
from woodchain.routers.orders import router as orders_router

settings = get_settings()

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger("uvicorn")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan handler.

    Startup:
      - Verify DB connectivity and create tables.
      - Bind the ledger contract for the connected network. A missing
        deployment is fatal: the process does not start.

    Shutdown:
      - No special cleanup needed; provider sessions close with the loop.
    """
    logger.info("🔄 Startup: Connecting to database...")
    try:
        await create_db_and_tables()
        logger.info("✅ Startup: DB connection OK, tables verified.")
    except Exception as e:
        logger.error(f"❌ Startup: DB connection FAILED: {e}")
        raise

    app.state.ledger = None
    if settings.LEDGER_ENABLED:
        logger.info("🔄 Startup: Binding ledger contract at %s...", settings.LEDGER_RPC_URL)
        try:
            app.state.ledger = await LedgerClient.connect(settings)
            logger.info("✅ Startup: Ledger contract bound.")
        except Exception as e:
            logger.error(f"❌ Startup: Ledger binding FAILED: {e}")
            raise
    else:
        logger.warning("⚠️ Startup: Ledger disabled, orders will be flagged mirror_failed.")

    yield


app = FastAPI(
    title=settings.PROJECT_NAME,
    version="0.1.0",
    lifespan=lifespan,
)


# --- CORS configuration ---
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# --- Domain error -> HTTP mapping ---
ERROR_STATUS: list[tuple[type[WoodChainError], int]] = [
    (ValidationError, status.HTTP_400_BAD_REQUEST),
    (AuthError, status.HTTP_401_UNAUTHORIZED),
    (NotFoundError, status.HTTP_404_NOT_FOUND),
    (ConflictError, status.HTTP_409_CONFLICT),
    (IdentityResolutionError, status.HTTP_409_CONFLICT),
    (LocalCommitError, status.HTTP_500_INTERNAL_SERVER_ERROR),
    (LedgerMirrorError, status.HTTP_502_BAD_GATEWAY),
    (LedgerReadError, status.HTTP_502_BAD_GATEWAY),
]


@app.exception_handler(WoodChainError)
async def domain_error_handler(request: Request, exc: WoodChainError) -> JSONResponse:
    status_code = next(
        (code for cls, code in ERROR_STATUS if isinstance(exc, cls)),
        status.HTTP_500_INTERNAL_SERVER_ERROR,
    )
    content: dict[str, object] = {"detail": exc.message}
    if isinstance(exc, LedgerMirrorError):
        # Local change is kept; tell the caller which record needs reconciling
        content["order_id"] = exc.order_id
        content["local_committed"] = True
    return JSONResponse(status_code=status_code, content=content)


# Versioned API prefix, e.g. /api/v1
app.include_router(auth_router, prefix=settings.API_V1_STR)
app.include_router(users_router, prefix=settings.API_V1_STR)
app.include_router(suppliers_router, prefix=settings.API_V1_STR)
app.include_router(supplier_router, prefix=settings.API_V1_STR)
app.include_router(orders_router, prefix=settings.API_V1_STR)


@app.get("/")
def root():
    """Health check endpoint."""
    return {"status": "ok", "service": "woodchain-backend"}
