# woodchain/services/order_pipeline.py
import logging
from dataclasses import dataclass
from datetime import date, datetime, timezone
from decimal import Decimal

from sqlalchemy.exc import SQLAlchemyError
from sqlmodel.ext.asyncio.session import AsyncSession

from woodchain.core.errors import (
    LedgerMirrorError,
    LocalCommitError,
    NotFoundError,
    OrderNotFound,
    ProductNotFound,
    ValidationError,
)
from woodchain.core.ledger_client import (
    LedgerClient,
    LedgerLineItem,
    LedgerOrderRecord,
    encode_status,
    to_minor_units,
    to_unix_timestamp,
)
from woodchain.models.order import (
    LEDGER_MIRROR_FAILED,
    LEDGER_MIRRORED,
    STATUS_CONFIRMED,
    STATUS_PENDING,
    Order,
    OrderDetail,
)
from woodchain.models.user import User
from woodchain.repositories.order_repo import OrderRepository
from woodchain.repositories.product_repo import ProductRepository
from woodchain.repositories.user_repo import UserRepository
from woodchain.schemas.order import OrderLineRequest
from woodchain.services.identity_mapper import IdentityMapper

logger = logging.getLogger(__name__)

TWO_PLACES = Decimal("0.01")

ORDER_STATUSES = {STATUS_PENDING, STATUS_CONFIRMED}

PLACEHOLDER_NAME = "Product not found"


@dataclass
class ResolvedLine:
    """A requested line resolved against the catalog (not yet persisted)."""

    product_id: int | None
    product_name: str
    product_description: str | None
    quantity: int
    unit_price: Decimal
    price: Decimal


@dataclass
class PlacementResult:
    order: Order
    lines: list[OrderDetail]
    mirror_error: str | None = None

    @property
    def mirrored(self) -> bool:
        return self.mirror_error is None


def compute_total(lines: list[ResolvedLine]) -> Decimal:
    """Grand total = sum of line totals."""
    return sum((line.price for line in lines), Decimal("0")).quantize(TWO_PLACES)


def build_ledger_record(order: Order, details: list[OrderDetail]) -> LedgerOrderRecord:
    """
    Project a committed order onto the ledger call contract.

    Amounts become integer cents (line price = line total), the delivery
    date becomes Unix seconds at midnight UTC. Placeholder lines carry
    productID 0.
    """
    return LedgerOrderRecord(
        order_id=order.id,
        supplier_id=order.supplier_id,
        delivery_timestamp=to_unix_timestamp(order.delivery_date),
        total_price=to_minor_units(order.total_price),
        line_items=tuple(
            LedgerLineItem(
                orderID=order.id,
                productID=detail.product_id or 0,
                productName=detail.product_name,
                productDescription=detail.product_description or "",
                quantity=detail.quantity,
                price=to_minor_units(detail.price),
            )
            for detail in details
        ),
    )


class OrderPipeline:
    """
    Dual-write pipeline for order placement and status updates.

    Every operation commits to the relational store first and only then
    mirrors the change to the ledger. The local row is authoritative:

      - local failure  -> LocalCommitError, nothing is mirrored
      - ledger failure -> local change kept, order flagged mirror_failed

    One mirror attempt per call; no retries.
    """

    def __init__(
        self,
        order_repo: OrderRepository,
        product_repo: ProductRepository,
        user_repo: UserRepository,
        identity: IdentityMapper,
        ledger: LedgerClient | None,
        missing_product_policy: str = "abort",
        total_tolerance: Decimal = TWO_PLACES,
        reject_total_mismatch: bool = False,
    ):
        self.order_repo = order_repo
        self.product_repo = product_repo
        self.user_repo = user_repo
        self.identity = identity
        self.ledger = ledger
        self.missing_product_policy = missing_product_policy
        self.total_tolerance = total_tolerance
        self.reject_total_mismatch = reject_total_mismatch

    # -------- Line resolution --------

    async def resolve_lines(
        self,
        session: AsyncSession,
        supplier_id: int,
        items: list[OrderLineRequest],
    ) -> list[ResolvedLine]:
        """
        Snapshot each requested product (name, description, unit price).

        A product that is missing, retired, or sold by another supplier
        raises ProductNotFound, unless the placeholder policy is active,
        in which case it becomes a zero-priced placeholder line.
        """
        lines: list[ResolvedLine] = []
        for item in items:
            product = await self.product_repo.get_by_id(session, item.product_id)
            if product is None or product.supplier_id != supplier_id or not product.is_active:
                if self.missing_product_policy != "placeholder":
                    raise ProductNotFound(item.product_id)
                logger.warning(
                    "Product %s unavailable, substituting placeholder line",
                    item.product_id,
                )
                lines.append(
                    ResolvedLine(
                        product_id=None,
                        product_name=f"{PLACEHOLDER_NAME} (#{item.product_id})",
                        product_description=None,
                        quantity=item.quantity,
                        unit_price=Decimal("0.00"),
                        price=Decimal("0.00"),
                    )
                )
                continue

            unit_price = Decimal(product.price).quantize(TWO_PLACES)
            lines.append(
                ResolvedLine(
                    product_id=product.id,
                    product_name=product.name,
                    product_description=product.description,
                    quantity=item.quantity,
                    unit_price=unit_price,
                    price=(unit_price * item.quantity).quantize(TWO_PLACES),
                )
            )
        return lines

    async def preview(
        self,
        session: AsyncSession,
        supplier_id: int,
        items: list[OrderLineRequest],
    ) -> tuple[list[ResolvedLine], Decimal]:
        """Resolve lines and total without writing anything."""
        await self._get_supplier(session, supplier_id)
        lines = await self.resolve_lines(session, supplier_id, items)
        return lines, compute_total(lines)

    # -------- Place order --------

    async def place_order(
        self,
        session: AsyncSession,
        actor: User,
        supplier_id: int,
        items: list[OrderLineRequest],
        delivery_date: date | None,
        client_total: Decimal | None = None,
    ) -> PlacementResult:
        """
        Place an order for `actor`.

        Steps:
          1. Validate input, resolve supplier and product snapshots.
          2. Compute line totals and grand total server-side.
          3. Commit Order (Pending) + OrderDetail rows in one transaction.
          4. Resolve the actor's ledger account.
          5. Mirror the order to the ledger.
          6. Record the mirror outcome on the order.

        A failure in steps 4-5 does not fail the call: the result carries
        `mirror_error` and the order is flagged mirror_failed.
        """
        if not items:
            raise ValidationError("An order needs at least one line item")
        if delivery_date is None:
            raise ValidationError("Delivery date is required")

        order_date = datetime.now(timezone.utc).date()
        if delivery_date < order_date:
            raise ValidationError("Delivery date cannot be in the past")

        await self._get_supplier(session, supplier_id)
        lines = await self.resolve_lines(session, supplier_id, items)
        total = compute_total(lines)
        self._check_client_total(client_total, total)

        order, details = await self._commit_order(
            session,
            Order(
                user_id=actor.id,
                supplier_id=supplier_id,
                order_date=order_date,
                delivery_date=delivery_date,
                total_price=total,
                delivery_status=STATUS_PENDING,
            ),
            lines,
        )
        logger.info("Order %s recorded locally (total=%s)", order.id, total)

        mirror_error = await self._mirror_placement(session, actor, order, details)
        return PlacementResult(order=order, lines=details, mirror_error=mirror_error)

    # -------- Update status --------

    async def update_status(
        self,
        session: AsyncSession,
        actor: User,
        order_id: int | None,
        status: str | None,
    ) -> Order:
        """
        Move an order of the acting supplier to `status`.

        Only "Confirmed" is accepted; Pending is the initial state and is
        never set here. The actor's ledger account is resolved before the
        local write so an unusable identity leaves both stores untouched.

        Raises:
            ValidationError: missing id/status or status not allowed.
            IdentityResolutionError: no usable ledger account.
            OrderNotFound: zero rows affected (unknown, foreign, or already
                confirmed order).
            LocalCommitError: the store rejected the update.
            LedgerMirrorError: confirmed locally, ledger write failed.
        """
        if order_id is None or not status:
            raise ValidationError("Invalid request parameters")
        if status not in ORDER_STATUSES:
            raise ValidationError(f"Unknown order status: {status!r}")
        if status != STATUS_CONFIRMED:
            raise ValidationError("Orders can only be moved to Confirmed")

        supplier = await self.user_repo.get_supplier_for_user(session, actor.id)
        if supplier is None:
            raise NotFoundError("Supplier profile not found")

        account = await self.identity.resolve(session, actor.id)

        try:
            changed = await self.order_repo.confirm_pending(session, order_id, supplier.id)
            if changed:
                await session.commit()
            else:
                await session.rollback()
        except SQLAlchemyError as exc:
            await session.rollback()
            logger.exception("Failed to update status of order %s", order_id)
            raise LocalCommitError("Failed to update order status") from exc

        if not changed:
            raise OrderNotFound(order_id)

        order = await self.order_repo.get_by_id(session, order_id)
        if order is None:
            raise OrderNotFound(order_id)
        await session.refresh(order)
        logger.info("Order %s confirmed locally", order_id)

        try:
            if self.ledger is None:
                raise RuntimeError("Ledger client is not configured")
            tx_hash = await self.ledger.update_order_status(
                account,
                order_id,
                encode_status(status),
            )
        except Exception as exc:
            logger.error("Ledger mirror failed for order %s status update: %s", order_id, exc)
            await self._record_mirror(session, order, LEDGER_MIRROR_FAILED, error=str(exc))
            raise LedgerMirrorError(order_id, exc) from exc

        # A failed placement mirror is not healed by a successful status write
        if order.ledger_status != LEDGER_MIRROR_FAILED:
            await self._record_mirror(session, order, LEDGER_MIRRORED, tx_hash=tx_hash)
        return order

    async def confirm_order(self, session: AsyncSession, actor: User, order_id: int) -> Order:
        return await self.update_status(session, actor, order_id, STATUS_CONFIRMED)

    # -------- Helpers --------

    async def _get_supplier(self, session: AsyncSession, supplier_id: int):
        supplier = await self.user_repo.get_supplier(session, supplier_id)
        if supplier is None:
            raise NotFoundError(f"Supplier {supplier_id} not found")
        return supplier

    def _check_client_total(self, client_total: Decimal | None, total: Decimal) -> None:
        """
        The server total always wins. A differing client total is logged,
        or rejected when reject_total_mismatch is set.
        """
        if client_total is None:
            return
        if abs(Decimal(client_total) - total) <= self.total_tolerance:
            return
        if self.reject_total_mismatch:
            raise ValidationError(
                f"Order total mismatch: client sent {client_total}, expected {total}"
            )
        logger.warning(
            "Client total %s differs from computed total %s; using computed total",
            client_total,
            total,
        )

    async def _commit_order(
        self,
        session: AsyncSession,
        order: Order,
        lines: list[ResolvedLine],
    ) -> tuple[Order, list[OrderDetail]]:
        user_id = order.user_id
        try:
            order = await self.order_repo.create_order(session, order)
            details = await self.order_repo.create_details(
                session,
                [
                    OrderDetail(
                        order_id=order.id,
                        product_id=line.product_id,
                        product_name=line.product_name,
                        product_description=line.product_description,
                        quantity=line.quantity,
                        unit_price=line.unit_price,
                        price=line.price,
                    )
                    for line in lines
                ],
            )
            await session.commit()
        except SQLAlchemyError as exc:
            await session.rollback()
            logger.exception("Failed to record order for user %s", user_id)
            raise LocalCommitError("Failed to record order") from exc
        return order, details

    async def _mirror_placement(
        self,
        session: AsyncSession,
        actor: User,
        order: Order,
        details: list[OrderDetail],
    ) -> str | None:
        try:
            if self.ledger is None:
                raise RuntimeError("Ledger client is not configured")
            account = await self.identity.resolve(session, actor.id)
            tx_hash = await self.ledger.place_order(account, build_ledger_record(order, details))
        except Exception as exc:
            # The order is committed; the mirror is best-effort from here on.
            logger.error("Ledger mirror failed for order %s: %s", order.id, exc)
            await self._record_mirror(session, order, LEDGER_MIRROR_FAILED, error=str(exc))
            return str(exc)

        await self._record_mirror(session, order, LEDGER_MIRRORED, tx_hash=tx_hash)
        logger.info("Order %s mirrored to ledger (tx %s)", order.id, tx_hash)
        return None

    async def _record_mirror(
        self,
        session: AsyncSession,
        order: Order,
        ledger_status: str,
        error: str | None = None,
        tx_hash: str | None = None,
    ) -> None:
        """Persist the mirror outcome flag on an already committed order."""
        order.ledger_status = ledger_status
        order.ledger_error = error
        if tx_hash is not None:
            order.ledger_tx_hash = tx_hash
        try:
            await self.order_repo.update_order(session, order)
            await session.commit()
        except SQLAlchemyError:
            await session.rollback()
            await session.refresh(order)
            logger.exception("Could not record ledger outcome for order %s", order.id)
