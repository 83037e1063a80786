# woodchain/repositories/product_repo.py
from sqlmodel import col, select
from sqlmodel.ext.asyncio.session import AsyncSession

from woodchain.models.product import Product


class ProductRepository:
    """
    Data access layer for Product.

    - Pure DB operations (CRUD + queries).
    - No FastAPI, no business logic.
    - There is no delete: retiring a product is an update of is_active.
    """

    async def get_by_id(self, session: AsyncSession, product_id: int) -> Product | None:
        """Return a product by id, including retired ones."""
        return await session.get(Product, product_id)

    async def list_for_supplier(
        self,
        session: AsyncSession,
        supplier_id: int,
        search: str | None = None,
    ) -> list[Product]:
        """Active products of a supplier, optionally filtered by name."""
        stmt = select(Product).where(
            Product.supplier_id == supplier_id,
            Product.is_active == True,  # noqa: E712
        )
        if search:
            stmt = stmt.where(col(Product.name).icontains(search, autoescape=True))
        stmt = stmt.order_by(Product.id)
        return list((await session.exec(stmt)).all())

    async def create(self, session: AsyncSession, product: Product) -> Product:
        session.add(product)
        await session.commit()
        await session.refresh(product)
        return product

    async def update(self, session: AsyncSession, product: Product) -> Product:
        session.add(product)
        await session.commit()
        await session.refresh(product)
        return product
