# woodchain/services/product_service.py
import logging

from sqlmodel.ext.asyncio.session import AsyncSession

from woodchain.core.errors import NotFoundError
from woodchain.models.product import Product
from woodchain.models.user import Supplier
from woodchain.repositories.product_repo import ProductRepository
from woodchain.schemas.product import ProductCreate, ProductUpdate

logger = logging.getLogger(__name__)


class ProductService:
    """
    Business logic for a supplier's own catalog.

    Responsibilities:
      - ownership checks (a supplier only touches its own products)
      - soft delete: retired products keep their row for order history
    """

    def __init__(self, repo: ProductRepository):
        self.repo = repo

    async def list_products(
        self,
        session: AsyncSession,
        supplier: Supplier,
        search: str | None = None,
    ) -> list[Product]:
        return await self.repo.list_for_supplier(session, supplier.id, search=search)

    async def get_own_product(
        self,
        session: AsyncSession,
        supplier: Supplier,
        product_id: int,
    ) -> Product:
        """
        Raises:
            NotFoundError: unknown, retired, or another supplier's product.
        """
        product = await self.repo.get_by_id(session, product_id)
        if product is None or product.supplier_id != supplier.id or not product.is_active:
            raise NotFoundError(f"Product {product_id} not found")
        return product

    async def create_product(
        self,
        session: AsyncSession,
        supplier: Supplier,
        payload: ProductCreate,
    ) -> Product:
        product = Product(
            supplier_id=supplier.id,
            name=payload.name,
            description=payload.description,
            price=payload.price,
        )
        product = await self.repo.create(session, product)
        logger.info("Product %s added by supplier %s", product.id, supplier.id)
        return product

    async def update_product(
        self,
        session: AsyncSession,
        supplier: Supplier,
        product_id: int,
        payload: ProductUpdate,
    ) -> Product:
        """
        Partial update. Existing order lines keep their own snapshot, so
        price and name edits only affect future orders.
        """
        product = await self.get_own_product(session, supplier, product_id)

        if payload.name is not None:
            product.name = payload.name

        if payload.description is not None:
            product.description = payload.description

        if payload.price is not None:
            product.price = payload.price

        return await self.repo.update(session, product)

    async def retire_product(
        self,
        session: AsyncSession,
        supplier: Supplier,
        product_id: int,
    ) -> None:
        """Soft delete: hide the product from the catalog, keep the row."""
        product = await self.get_own_product(session, supplier, product_id)
        product.is_active = False
        await self.repo.update(session, product)
        logger.info("Product %s retired by supplier %s", product_id, supplier.id)
