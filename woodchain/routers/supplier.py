# woodchain/routers/supplier.py
from fastapi import APIRouter, Depends, status
from sqlmodel.ext.asyncio.session import AsyncSession

from woodchain.core.auth import require_auth, require_supplier
from woodchain.core.ledger_client import LedgerClient
from woodchain.database import get_session
from woodchain.dependencies import (
    get_ledger,
    get_order_pipeline,
    order_repo,
    product_repo,
    user_repo,
)
from woodchain.models.user import Supplier, User
from woodchain.schemas.order import (
    LedgerReconciliationRead,
    OrderRead,
    OrderStatusUpdate,
    OrderSummaryRead,
)
from woodchain.schemas.product import ProductCreate, ProductRead, ProductUpdate
from woodchain.schemas.supplier import SupplierDescriptionUpdate, SupplierWithProductsRead
from woodchain.services.order_pipeline import OrderPipeline
from woodchain.services.order_service import OrderService
from woodchain.services.product_service import ProductService
from woodchain.services.supplier_service import SupplierService

router = APIRouter(prefix="/supplier", tags=["Supplier console"])

supplier_service = SupplierService(user_repo, product_repo)
product_service = ProductService(product_repo)
order_service = OrderService(order_repo, user_repo)


# -------- Profile --------


@router.get("/me", response_model=SupplierWithProductsRead)
async def read_profile(
    session: AsyncSession = Depends(get_session),
    supplier: Supplier = Depends(require_supplier),
):
    """Supplier profile with active products."""
    return await supplier_service.get_supplier(session, supplier.id)


@router.patch("/me", response_model=SupplierWithProductsRead)
async def update_description(
    payload: SupplierDescriptionUpdate,
    session: AsyncSession = Depends(get_session),
    supplier: Supplier = Depends(require_supplier),
):
    return await supplier_service.update_description(session, supplier, payload.description)


# -------- Products --------


@router.get("/products", response_model=list[ProductRead])
async def list_products(
    q: str | None = None,
    session: AsyncSession = Depends(get_session),
    supplier: Supplier = Depends(require_supplier),
):
    """Active products; `q` searches by name."""
    return await product_service.list_products(session, supplier, search=q)


@router.post(
    "/products",
    response_model=ProductRead,
    status_code=status.HTTP_201_CREATED,
)
async def add_product(
    payload: ProductCreate,
    session: AsyncSession = Depends(get_session),
    supplier: Supplier = Depends(require_supplier),
):
    return await product_service.create_product(session, supplier, payload)


@router.patch("/products/{product_id}", response_model=ProductRead)
async def update_product(
    product_id: int,
    payload: ProductUpdate,
    session: AsyncSession = Depends(get_session),
    supplier: Supplier = Depends(require_supplier),
):
    return await product_service.update_product(session, supplier, product_id, payload)


@router.delete("/products/{product_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_product(
    product_id: int,
    session: AsyncSession = Depends(get_session),
    supplier: Supplier = Depends(require_supplier),
):
    """
    Retire a product. The row is kept (is_active=False) so past orders
    still resolve it.
    """
    await product_service.retire_product(session, supplier, product_id)


# -------- Orders --------


@router.get("/orders", response_model=list[OrderSummaryRead])
async def list_orders(
    q: str | None = None,
    session: AsyncSession = Depends(get_session),
    supplier: Supplier = Depends(require_supplier),
):
    """Orders addressed to this supplier; `q` searches by customer name."""
    return await order_service.list_for_supplier(session, supplier, customer_name=q)


@router.patch(
    "/orders/{order_id}/status",
    response_model=OrderRead,
    dependencies=[Depends(require_supplier)],
)
async def update_order_status(
    order_id: int,
    payload: OrderStatusUpdate,
    session: AsyncSession = Depends(get_session),
    pipeline: OrderPipeline = Depends(get_order_pipeline),
    current_user: User = Depends(require_auth),
):
    """
    Confirm a pending order.

      Pending -> Confirmed (only transition)

    404 if the order is unknown, not ours, or already confirmed.
    502 if the order was confirmed locally but the ledger write failed.
    """
    return await pipeline.update_status(session, current_user, order_id, payload.status)


@router.get("/orders/{order_id}/ledger", response_model=LedgerReconciliationRead)
async def reconcile_order(
    order_id: int,
    session: AsyncSession = Depends(get_session),
    supplier: Supplier = Depends(require_supplier),
    ledger: LedgerClient | None = Depends(get_ledger),
):
    """
    Compare the order with its ledger copy. Read-only.

    502 when the ledger node cannot be read.
    """
    return await order_service.reconcile(session, supplier, order_id, ledger)
