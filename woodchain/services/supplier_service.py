# woodchain/services/supplier_service.py
from sqlmodel.ext.asyncio.session import AsyncSession

from woodchain.core.errors import NotFoundError
from woodchain.models.user import Supplier, User
from woodchain.repositories.product_repo import ProductRepository
from woodchain.repositories.user_repo import UserRepository
from woodchain.schemas.product import ProductRead
from woodchain.schemas.supplier import SupplierRead, SupplierWithProductsRead


def _supplier_read(supplier: Supplier, user: User) -> SupplierRead:
    return SupplierRead(
        id=supplier.id,
        user_id=user.id,
        company_name=user.company_name,
        company_address=user.company_address,
        description=supplier.description,
    )


class SupplierService:
    """
    Supplier directory (for buyers) and supplier profile (for suppliers).
    """

    def __init__(self, repo: UserRepository, product_repo: ProductRepository):
        self.repo = repo
        self.product_repo = product_repo

    async def list_suppliers(
        self,
        session: AsyncSession,
        search: str | None = None,
    ) -> list[SupplierRead]:
        rows = await self.repo.list_suppliers(session, search=search)
        return [_supplier_read(supplier, user) for supplier, user in rows]

    async def get_supplier(
        self,
        session: AsyncSession,
        supplier_id: int,
    ) -> SupplierWithProductsRead:
        """
        Supplier with its active products.

        Raises:
            NotFoundError: unknown supplier id.
        """
        row = await self.repo.get_supplier_with_user(session, supplier_id)
        if row is None:
            raise NotFoundError(f"Supplier {supplier_id} not found")
        supplier, user = row

        products = await self.product_repo.list_for_supplier(session, supplier_id)
        return SupplierWithProductsRead(
            **_supplier_read(supplier, user).model_dump(),
            products=[ProductRead.model_validate(p, from_attributes=True) for p in products],
        )

    async def update_description(
        self,
        session: AsyncSession,
        supplier: Supplier,
        description: str,
    ) -> SupplierWithProductsRead:
        supplier.description = description.strip() or None
        await self.repo.update_supplier(session, supplier)
        await session.commit()
        return await self.get_supplier(session, supplier.id)
