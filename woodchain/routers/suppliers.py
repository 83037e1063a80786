# woodchain/routers/suppliers.py
from fastapi import APIRouter, Depends
from sqlmodel.ext.asyncio.session import AsyncSession

from woodchain.core.auth import require_buyer
from woodchain.database import get_session
from woodchain.dependencies import product_repo, user_repo
from woodchain.schemas.supplier import SupplierRead, SupplierWithProductsRead
from woodchain.services.supplier_service import SupplierService

router = APIRouter(
    prefix="/suppliers",
    tags=["Supplier directory"],
    dependencies=[Depends(require_buyer)],
)

service = SupplierService(user_repo, product_repo)


@router.get("", response_model=list[SupplierRead])
async def list_suppliers(
    q: str | None = None,
    session: AsyncSession = Depends(get_session),
):
    """
    All suppliers, optionally filtered by company name (`q`).
    """
    return await service.list_suppliers(session, search=q)


@router.get("/{supplier_id}", response_model=SupplierWithProductsRead)
async def get_supplier(
    supplier_id: int,
    session: AsyncSession = Depends(get_session),
):
    """
    One supplier with its active products, for building an order.
    """
    return await service.get_supplier(session, supplier_id)
