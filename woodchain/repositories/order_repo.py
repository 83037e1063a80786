# woodchain/repositories/order_repo.py
from sqlalchemy import update
from sqlmodel import col, select
from sqlmodel.ext.asyncio.session import AsyncSession

from woodchain.models.order import STATUS_CONFIRMED, STATUS_PENDING, Order, OrderDetail
from woodchain.models.user import Supplier, User


class OrderRepository:
    """
    Data access layer for orders and order_details.

    NOTE:
      - No commits here; order creation is a multi-step transaction.
        The pipeline is responsible for calling session.commit().
    """

    # ---- Orders ----

    async def get_by_id(self, session: AsyncSession, order_id: int) -> Order | None:
        return await session.get(Order, order_id)

    async def create_order(self, session: AsyncSession, order: Order) -> Order:
        """
        Insert an Order without committing, but ensure id is populated.
        """
        session.add(order)
        await session.flush()  # Assign PK
        return order

    async def update_order(self, session: AsyncSession, order: Order) -> Order:
        session.add(order)
        await session.flush()
        return order

    async def confirm_pending(
        self,
        session: AsyncSession,
        order_id: int,
        supplier_id: int,
    ) -> int:
        """
        Pending -> Confirmed for one order of one supplier.

        Single conditional UPDATE; returns the affected row count. Zero
        means the order does not exist, belongs to another supplier, or
        was already confirmed (e.g. by a concurrent request).
        """
        stmt = (
            update(Order)
            .where(
                col(Order.id) == order_id,
                col(Order.supplier_id) == supplier_id,
                col(Order.delivery_status) == STATUS_PENDING,
            )
            .values(delivery_status=STATUS_CONFIRMED)
        )
        result = await session.exec(stmt)  # type: ignore[call-overload]
        return result.rowcount

    async def list_for_user(
        self,
        session: AsyncSession,
        user_id: int,
        supplier_name: str | None = None,
    ) -> list[tuple[Order, str]]:
        """
        Orders placed by a buyer, with the supplier's company name,
        newest first.
        """
        stmt = (
            select(Order, User.company_name)
            .join(Supplier, col(Supplier.id) == Order.supplier_id)
            .join(User, col(User.id) == Supplier.user_id)
            .where(Order.user_id == user_id)
        )
        if supplier_name:
            stmt = stmt.where(col(User.company_name).icontains(supplier_name, autoescape=True))
        stmt = stmt.order_by(col(Order.order_date).desc(), col(Order.id).desc())
        return list((await session.exec(stmt)).all())

    async def list_for_supplier(
        self,
        session: AsyncSession,
        supplier_id: int,
        customer_name: str | None = None,
    ) -> list[tuple[Order, str]]:
        """
        Orders addressed to a supplier, with the buyer's company name,
        newest first.
        """
        stmt = (
            select(Order, User.company_name)
            .join(User, col(User.id) == Order.user_id)
            .where(Order.supplier_id == supplier_id)
        )
        if customer_name:
            stmt = stmt.where(col(User.company_name).icontains(customer_name, autoescape=True))
        stmt = stmt.order_by(col(Order.order_date).desc(), col(Order.id).desc())
        return list((await session.exec(stmt)).all())

    # ---- Order details ----

    async def list_details(self, session: AsyncSession, order_id: int) -> list[OrderDetail]:
        stmt = (
            select(OrderDetail)
            .where(OrderDetail.order_id == order_id)
            .order_by(OrderDetail.id)
        )
        return list((await session.exec(stmt)).all())

    async def create_details(
        self,
        session: AsyncSession,
        details: list[OrderDetail],
    ) -> list[OrderDetail]:
        session.add_all(details)
        await session.flush()
        return details
