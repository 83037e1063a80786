"""Row builders used by fixtures and tests."""

import uuid
from decimal import Decimal

from sqlmodel.ext.asyncio.session import AsyncSession

from woodchain.models.product import Product
from woodchain.models.user import USER_TYPE_SUPPLIER, Supplier, User
from woodchain.repositories.order_repo import OrderRepository
from woodchain.repositories.product_repo import ProductRepository
from woodchain.repositories.user_repo import UserRepository
from woodchain.services.identity_mapper import IdentityMapper
from woodchain.services.order_pipeline import OrderPipeline

IDENTITY_SECRET = "test-identity-secret"


def build_pipeline(identity, ledger, order_repo=None, **policy) -> OrderPipeline:
    return OrderPipeline(
        order_repo or OrderRepository(),
        ProductRepository(),
        UserRepository(),
        identity,
        ledger,
        **policy,
    )


async def add_account(
    session: AsyncSession,
    identity: IdentityMapper,
    email: str,
    user_type: str,
    company_name: str,
    bind: bool = True,
) -> User:
    user = User(
        auth_id=uuid.uuid4(),
        email=email,
        user_type=user_type,
        company_name=company_name,
        company_address="1 Timber Road",
    )
    session.add(user)
    await session.flush()
    if bind:
        await identity.bind(session, user.id)
    await session.commit()
    return user


async def add_supplier(
    session: AsyncSession,
    identity: IdentityMapper,
    email: str,
    company_name: str,
    bind: bool = True,
) -> tuple[User, Supplier]:
    user = await add_account(session, identity, email, USER_TYPE_SUPPLIER, company_name, bind)
    supplier = Supplier(user_id=user.id, description="Sawmill")
    session.add(supplier)
    await session.commit()
    return user, supplier


async def add_product(
    session: AsyncSession,
    supplier: Supplier,
    name: str,
    price: str,
    is_active: bool = True,
) -> Product:
    product = Product(
        supplier_id=supplier.id,
        name=name,
        description=f"{name} boards",
        price=Decimal(price),
        is_active=is_active,
    )
    session.add(product)
    await session.commit()
    return product
