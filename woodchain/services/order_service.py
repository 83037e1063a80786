# woodchain/services/order_service.py
import logging

from sqlmodel.ext.asyncio.session import AsyncSession

from woodchain.core.errors import LedgerReadError, NotFoundError, OrderNotFound
from woodchain.core.ledger_client import LedgerClient, encode_status, to_minor_units
from woodchain.models.order import Order, OrderDetail
from woodchain.models.user import USER_TYPE_SUPPLIER, Supplier, User
from woodchain.repositories.order_repo import OrderRepository
from woodchain.repositories.user_repo import UserRepository
from woodchain.schemas.order import (
    LedgerReconciliationRead,
    OrderLineRead,
    OrderSummaryRead,
    OrderWithLinesRead,
)

logger = logging.getLogger(__name__)


class OrderService:
    """
    Read side of orders.

    Responsibilities:
      - order lists for buyers and suppliers (with name search)
      - single order view, only for the two parties of the order
      - ledger reconciliation report (read-only on both stores)

    Writes go through `OrderPipeline`.
    """

    def __init__(self, order_repo: OrderRepository, user_repo: UserRepository):
        self.order_repo = order_repo
        self.user_repo = user_repo

    # -------- Lists --------

    async def list_for_buyer(
        self,
        session: AsyncSession,
        user: User,
        supplier_name: str | None = None,
    ) -> list[OrderSummaryRead]:
        rows = await self.order_repo.list_for_user(session, user.id, supplier_name)
        return [self._summary(order, name) for order, name in rows]

    async def list_for_supplier(
        self,
        session: AsyncSession,
        supplier: Supplier,
        customer_name: str | None = None,
    ) -> list[OrderSummaryRead]:
        rows = await self.order_repo.list_for_supplier(session, supplier.id, customer_name)
        return [self._summary(order, name) for order, name in rows]

    # -------- Single order --------

    async def get_order(
        self,
        session: AsyncSession,
        user: User,
        order_id: int,
    ) -> OrderWithLinesRead:
        """
        Full order with lines, for its buyer or its supplier.

        Raises:
            NotFoundError: unknown order, or caller is not a party to it.
        """
        order = await self._get_visible_order(session, user, order_id)
        details = await self.order_repo.list_details(session, order.id)
        return build_order_with_lines(order, details)

    async def reconcile(
        self,
        session: AsyncSession,
        supplier: Supplier,
        order_id: int,
        ledger: LedgerClient | None,
    ) -> LedgerReconciliationRead:
        """
        Compare the local order with its ledger copy.

        Checks total (minor units), status enum, line count and line
        prices.

        Raises:
            LedgerReadError: the ledger node could not be read.
        """
        order = await self.order_repo.get_by_id(session, order_id)
        if order is None or order.supplier_id != supplier.id:
            raise OrderNotFound(order_id)
        if ledger is None:
            raise NotFoundError("Ledger client is not configured")

        details = await self.order_repo.list_details(session, order_id)
        try:
            remote = await ledger.get_order(order_id)
            remote_lines = await ledger.get_order_details(order_id) or []
        except Exception as exc:
            logger.error("Ledger read failed for order %s: %s", order_id, exc)
            raise LedgerReadError(order_id, exc) from exc

        local_total = to_minor_units(order.total_price)
        local_status = encode_status(order.delivery_status)
        local_prices = [to_minor_units(d.price) for d in details]

        remote_total = _as_int(_field(remote, "totalPrice"))
        remote_status = _as_int(_field(remote, "status"))
        remote_prices = [_as_int(_field(line, "price")) for line in remote_lines]

        mismatches: list[str] = []
        if remote_total is None:
            mismatches.append("order missing on ledger")
        elif remote_total != local_total:
            mismatches.append(f"total: local {local_total}, ledger {remote_total}")
        if remote_status is not None and remote_status != local_status:
            mismatches.append(f"status: local {local_status}, ledger {remote_status}")
        if len(remote_prices) != len(local_prices):
            mismatches.append(
                f"line count: local {len(local_prices)}, ledger {len(remote_prices)}"
            )
        elif remote_prices != local_prices:
            mismatches.append(f"line prices: local {local_prices}, ledger {remote_prices}")

        if mismatches:
            logger.warning("Order %s diverges from ledger: %s", order_id, "; ".join(mismatches))

        return LedgerReconciliationRead(
            order_id=order_id,
            in_sync=not mismatches,
            local_total_minor=local_total,
            ledger_total_minor=remote_total,
            local_status=local_status,
            ledger_status=remote_status,
            local_line_prices=local_prices,
            ledger_line_prices=[p for p in remote_prices if p is not None],
            mismatches=mismatches,
        )

    # -------- Helpers --------

    async def _get_visible_order(self, session: AsyncSession, user: User, order_id: int) -> Order:
        order = await self.order_repo.get_by_id(session, order_id)
        if order is None:
            raise NotFoundError(f"Order {order_id} not found")

        if order.user_id == user.id:
            return order
        if user.user_type == USER_TYPE_SUPPLIER:
            supplier = await self.user_repo.get_supplier_for_user(session, user.id)
            if supplier is not None and supplier.id == order.supplier_id:
                return order
        raise NotFoundError(f"Order {order_id} not found")

    @staticmethod
    def _summary(order: Order, counterpart_name: str) -> OrderSummaryRead:
        return OrderSummaryRead(
            **order.model_dump(exclude={"ledger_error", "ledger_tx_hash"}),
            counterpart_name=counterpart_name,
        )


def build_order_with_lines(order: Order, details: list[OrderDetail]) -> OrderWithLinesRead:
    """Compose OrderWithLinesRead from ORM rows."""
    return OrderWithLinesRead(
        **order.model_dump(),
        lines=[OrderLineRead.model_validate(d, from_attributes=True) for d in details],
    )


def _field(record, name: str):
    if record is None:
        return None
    if isinstance(record, dict):
        return record.get(name)
    return getattr(record, name, None)


def _as_int(value) -> int | None:
    return None if value is None else int(value)
