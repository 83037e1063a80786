# woodchain/routers/orders.py
from fastapi import APIRouter, Depends, status
from sqlmodel.ext.asyncio.session import AsyncSession

from woodchain.core.auth import require_auth, require_buyer
from woodchain.database import get_session
from woodchain.dependencies import get_order_pipeline, order_repo, user_repo
from woodchain.models.user import User
from woodchain.schemas.order import (
    OrderCreate,
    OrderLineRead,
    OrderPreviewRead,
    OrderPreviewRequest,
    OrderSummaryRead,
    OrderWithLinesRead,
)
from woodchain.services.order_pipeline import OrderPipeline
from woodchain.services.order_service import OrderService, build_order_with_lines

router = APIRouter(prefix="/orders", tags=["Orders"])

service = OrderService(order_repo, user_repo)


# -------- Buyer endpoints --------


@router.post("/preview", response_model=OrderPreviewRead)
async def preview_order(
    payload: OrderPreviewRequest,
    session: AsyncSession = Depends(get_session),
    pipeline: OrderPipeline = Depends(get_order_pipeline),
    _: User = Depends(require_buyer),
):
    """
    Price a basket against the supplier's current catalog. Nothing is saved.
    """
    lines, total = await pipeline.preview(session, payload.supplier_id, payload.items)
    return OrderPreviewRead(
        supplier_id=payload.supplier_id,
        lines=[OrderLineRead.model_validate(line, from_attributes=True) for line in lines],
        total_price=total,
    )


@router.post(
    "",
    response_model=OrderWithLinesRead,
    status_code=status.HTTP_201_CREATED,
)
async def place_order(
    payload: OrderCreate,
    session: AsyncSession = Depends(get_session),
    pipeline: OrderPipeline = Depends(get_order_pipeline),
    current_user: User = Depends(require_buyer),
):
    """
    Place an order with one supplier.

    The order is saved first and then recorded on the ledger. If the
    ledger write fails the order still exists; the response shows
    `ledger_status = "mirror_failed"`.
    """
    result = await pipeline.place_order(
        session,
        current_user,
        payload.supplier_id,
        payload.items,
        payload.delivery_date,
        client_total=payload.client_total,
    )
    return build_order_with_lines(result.order, result.lines)


@router.get("/me", response_model=list[OrderSummaryRead])
async def list_my_orders(
    q: str | None = None,
    session: AsyncSession = Depends(get_session),
    current_user: User = Depends(require_buyer),
):
    """
    The buyer's orders, newest first; `q` filters by supplier name.
    """
    return await service.list_for_buyer(session, current_user, supplier_name=q)


# -------- Shared endpoints --------


@router.get("/{order_id}", response_model=OrderWithLinesRead)
async def get_order(
    order_id: int,
    session: AsyncSession = Depends(get_session),
    current_user: User = Depends(require_auth),
):
    """
    Full order with lines. Visible to the buyer and the supplier of the
    order only.
    """
    return await service.get_order(session, current_user, order_id)
