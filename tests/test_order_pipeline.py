"""Tests for the dual-write order pipeline.

Real relational store (in-memory SQLite), fake ledger node.
"""

from datetime import date, timedelta
from decimal import Decimal

import pytest
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import func, select

from woodchain.core.errors import (
    IdentityResolutionError,
    LedgerMirrorError,
    LocalCommitError,
    NotFoundError,
    OrderNotFound,
    ProductNotFound,
    ValidationError,
)
from woodchain.core.ledger_client import to_unix_timestamp
from woodchain.models.order import Order, OrderDetail
from woodchain.models.user import USER_TYPE_BUYER
from woodchain.repositories.ledger_account_repo import LedgerAccountRepository
from woodchain.repositories.order_repo import OrderRepository
from woodchain.schemas.order import OrderLineRequest
from woodchain.services.identity_mapper import IdentityMapper

from tests.factories import add_account, add_product, add_supplier, build_pipeline
from tests.fakes import FakeLedgerClient

NEXT_WEEK = date.today() + timedelta(days=7)


def _items(*pairs: tuple[int, int]) -> list[OrderLineRequest]:
    return [OrderLineRequest(product_id=pid, quantity=qty) for pid, qty in pairs]


async def _count(session, model) -> int:
    return (await session.exec(select(func.count()).select_from(model))).one()


async def _load_order(session_factory, order_id: int) -> Order:
    async with session_factory() as fresh:
        return await fresh.get(Order, order_id)


async def _place(pipeline, session, market, **kwargs):
    return await pipeline.place_order(
        session,
        market.buyer,
        market.supplier.id,
        _items((market.oak.id, 2), (market.pine.id, 1)),
        NEXT_WEEK,
        **kwargs,
    )


class FailingOrderRepository(OrderRepository):
    async def create_details(self, session, details):
        raise SQLAlchemyError("disk full")


class VanishingOrderRepository(OrderRepository):
    """The row is gone by the time the confirmed order is read back."""

    async def get_by_id(self, session, order_id):
        return None


class TestPlaceOrder:

    async def test_writes_one_order_and_one_row_per_line(self, pipeline, session, market):
        result = await _place(pipeline, session, market)

        assert result.mirrored
        assert await _count(session, Order) == 1
        assert await _count(session, OrderDetail) == 2

        order = result.order
        assert order.user_id == market.buyer.id
        assert order.supplier_id == market.supplier.id
        assert order.delivery_status == "Pending"
        assert order.delivery_date == NEXT_WEEK
        assert order.total_price == Decimal("159.97")

    async def test_line_snapshots_copy_the_catalog(self, pipeline, session, market):
        result = await _place(pipeline, session, market)

        oak_line, pine_line = result.lines
        assert oak_line.product_name == "Oak plank"
        assert oak_line.unit_price == Decimal("59.99")
        assert oak_line.price == Decimal("119.98")
        assert pine_line.product_id == market.pine.id
        assert pine_line.price == Decimal("39.99")

    async def test_ledger_record_uses_integer_cents(self, pipeline, session, market, ledger, identity):
        result = await _place(pipeline, session, market)

        assert len(ledger.placed) == 1
        sender, record = ledger.placed[0]
        assert sender == identity.derive_account(market.buyer.id).address
        assert record.order_id == result.order.id
        assert record.supplier_id == market.supplier.id
        assert record.total_price == 15997
        assert [item.price for item in record.line_items] == [11998, 3999]
        assert [item.quantity for item in record.line_items] == [2, 1]
        assert record.delivery_timestamp == to_unix_timestamp(NEXT_WEEK)
        assert all(item.orderID == result.order.id for item in record.line_items)

    async def test_successful_mirror_is_recorded(self, pipeline, session, session_factory, market):
        result = await _place(pipeline, session, market)

        stored = await _load_order(session_factory, result.order.id)
        assert stored.ledger_status == "mirrored"
        assert stored.ledger_tx_hash is not None
        assert stored.ledger_error is None

    async def test_client_total_is_ignored(self, pipeline, session, market):
        result = await _place(pipeline, session, market, client_total=Decimal("1.00"))

        assert result.order.total_price == Decimal("159.97")

    async def test_client_total_mismatch_rejected_when_configured(self, identity, ledger, session, market):
        pipeline = build_pipeline(identity, ledger, reject_total_mismatch=True)

        with pytest.raises(ValidationError, match="mismatch"):
            await _place(pipeline, session, market, client_total=Decimal("150.00"))

        assert await _count(session, Order) == 0
        assert ledger.placed == []

    async def test_client_total_within_tolerance_accepted(self, identity, ledger, session, market):
        pipeline = build_pipeline(identity, ledger, reject_total_mismatch=True)

        result = await _place(pipeline, session, market, client_total=Decimal("159.97"))

        assert result.order.total_price == Decimal("159.97")


class TestPlaceOrderValidation:

    async def test_empty_items_rejected(self, pipeline, session, market, ledger):
        with pytest.raises(ValidationError):
            await pipeline.place_order(session, market.buyer, market.supplier.id, [], NEXT_WEEK)

        assert ledger.placed == []

    async def test_missing_delivery_date_rejected(self, pipeline, session, market):
        with pytest.raises(ValidationError, match="Delivery date"):
            await pipeline.place_order(
                session, market.buyer, market.supplier.id, _items((market.oak.id, 1)), None
            )

    async def test_past_delivery_date_rejected(self, pipeline, session, market):
        with pytest.raises(ValidationError, match="past"):
            await pipeline.place_order(
                session,
                market.buyer,
                market.supplier.id,
                _items((market.oak.id, 1)),
                date.today() - timedelta(days=2),
            )

    async def test_unknown_supplier(self, pipeline, session, market):
        with pytest.raises(NotFoundError, match="Supplier"):
            await pipeline.place_order(
                session, market.buyer, 9999, _items((market.oak.id, 1)), NEXT_WEEK
            )

    async def test_unknown_product_aborts_without_writes(self, pipeline, session, market, ledger):
        with pytest.raises(ProductNotFound):
            await pipeline.place_order(
                session,
                market.buyer,
                market.supplier.id,
                _items((market.oak.id, 1), (9999, 1)),
                NEXT_WEEK,
            )

        assert await _count(session, Order) == 0
        assert await _count(session, OrderDetail) == 0
        assert ledger.placed == []

    async def test_product_of_another_supplier_rejected(self, pipeline, session, market):
        with pytest.raises(ProductNotFound):
            await pipeline.place_order(
                session, market.buyer, market.supplier.id, _items((market.birch.id, 1)), NEXT_WEEK
            )

    async def test_retired_product_rejected(self, pipeline, session, market):
        retired = await add_product(session, market.supplier, "Old cedar", "10.00", is_active=False)

        with pytest.raises(ProductNotFound):
            await pipeline.place_order(
                session, market.buyer, market.supplier.id, _items((retired.id, 1)), NEXT_WEEK
            )

    async def test_placeholder_policy_substitutes_zero_line(self, identity, ledger, session, market):
        pipeline = build_pipeline(identity, ledger, missing_product_policy="placeholder")

        result = await pipeline.place_order(
            session,
            market.buyer,
            market.supplier.id,
            _items((market.oak.id, 1), (9999, 3)),
            NEXT_WEEK,
        )

        placeholder = result.lines[1]
        assert placeholder.product_id is None
        assert placeholder.product_name == "Product not found (#9999)"
        assert placeholder.price == Decimal("0.00")
        assert result.order.total_price == Decimal("59.99")

        _, record = ledger.placed[0]
        assert record.line_items[1].productID == 0
        assert record.line_items[1].price == 0
        assert record.total_price == 5999


class TestPlaceOrderFailures:

    async def test_local_failure_is_not_mirrored(self, identity, ledger, session):
        pipeline = build_pipeline(identity, ledger, order_repo=FailingOrderRepository())
        buyer = await add_account(session, identity, "b@acme.test", USER_TYPE_BUYER, "Acme")
        _, supplier = await add_supplier(session, identity, "s@north.test", "North")
        oak = await add_product(session, supplier, "Oak plank", "59.99")
        supplier_id, oak_id = supplier.id, oak.id

        with pytest.raises(LocalCommitError):
            await pipeline.place_order(session, buyer, supplier_id, _items((oak_id, 1)), NEXT_WEEK)

        assert ledger.placed == []
        assert await _count(session, Order) == 0

    async def test_ledger_failure_keeps_the_order(self, identity, session, session_factory, market):
        ledger = FakeLedgerClient(fail_with=ConnectionError("node unreachable"))
        pipeline = build_pipeline(identity, ledger)

        result = await _place(pipeline, session, market)

        assert not result.mirrored
        assert "node unreachable" in result.mirror_error
        assert await _count(session, Order) == 1
        assert await _count(session, OrderDetail) == 2

        stored = await _load_order(session_factory, result.order.id)
        assert stored.ledger_status == "mirror_failed"
        assert "node unreachable" in stored.ledger_error
        assert stored.delivery_status == "Pending"

    async def test_ledger_disabled_flags_the_order(self, identity, session, market):
        pipeline = build_pipeline(identity, None)

        result = await _place(pipeline, session, market)

        assert result.order.ledger_status == "mirror_failed"
        assert "not configured" in result.mirror_error

    async def test_unbound_buyer_still_gets_the_order(self, identity, ledger, pipeline, session, market):
        buyer = await add_account(
            session, identity, "new@acme.test", USER_TYPE_BUYER, "New Co", bind=False
        )

        result = await pipeline.place_order(
            session, buyer, market.supplier.id, _items((market.oak.id, 1)), NEXT_WEEK
        )

        assert result.order.id is not None
        assert result.order.ledger_status == "mirror_failed"
        assert ledger.placed == []


class TestPreview:

    async def test_preview_prices_without_writing(self, pipeline, session, market, ledger):
        lines, total = await pipeline.preview(
            session, market.supplier.id, _items((market.oak.id, 3))
        )

        assert total == Decimal("179.97")
        assert lines[0].price == Decimal("179.97")
        assert await _count(session, Order) == 0
        assert ledger.placed == []


class TestUpdateStatus:

    async def test_confirm_updates_both_stores(self, pipeline, session, session_factory, market, ledger, identity):
        placed = await _place(pipeline, session, market)
        order_id = placed.order.id

        order = await pipeline.update_status(session, market.supplier_user, order_id, "Confirmed")

        assert order.delivery_status == "Confirmed"
        assert ledger.status_updates == [
            (identity.derive_account(market.supplier_user.id).address, order_id, 1)
        ]
        stored = await _load_order(session_factory, order_id)
        assert stored.delivery_status == "Confirmed"
        assert stored.ledger_status == "mirrored"

    async def test_confirm_order_shortcut(self, pipeline, session, market, ledger):
        placed = await _place(pipeline, session, market)

        order = await pipeline.confirm_order(session, market.supplier_user, placed.order.id)

        assert order.delivery_status == "Confirmed"
        assert ledger.status_updates[0][2] == 1

    async def test_second_confirm_is_not_found(self, pipeline, session, market, ledger):
        placed = await _place(pipeline, session, market)
        order_id = placed.order.id
        supplier_user = market.supplier_user

        await pipeline.update_status(session, supplier_user, order_id, "Confirmed")
        with pytest.raises(OrderNotFound):
            await pipeline.update_status(session, supplier_user, order_id, "Confirmed")

        assert len(ledger.status_updates) == 1

    async def test_unknown_order_is_not_found(self, pipeline, session, market, ledger):
        with pytest.raises(OrderNotFound):
            await pipeline.update_status(session, market.supplier_user, 424242, "Confirmed")

        assert ledger.status_updates == []

    async def test_order_deleted_after_confirm_is_not_found(self, identity, ledger, session, market):
        placed = await _place(build_pipeline(identity, ledger), session, market)
        pipeline = build_pipeline(identity, ledger, order_repo=VanishingOrderRepository())

        with pytest.raises(OrderNotFound):
            await pipeline.update_status(session, market.supplier_user, placed.order.id, "Confirmed")

        assert ledger.status_updates == []

    async def test_other_supplier_cannot_confirm(self, pipeline, session, session_factory, market, ledger):
        placed = await _place(pipeline, session, market)
        order_id = placed.order.id

        with pytest.raises(OrderNotFound):
            await pipeline.update_status(session, market.other_user, order_id, "Confirmed")

        assert ledger.status_updates == []
        stored = await _load_order(session_factory, order_id)
        assert stored.delivery_status == "Pending"

    @pytest.mark.parametrize("status", ["Shipped", "confirmed", "", None, "Pending"])
    async def test_invalid_status_rejected(self, pipeline, session, market, ledger, status):
        placed = await _place(pipeline, session, market)

        with pytest.raises(ValidationError):
            await pipeline.update_status(session, market.supplier_user, placed.order.id, status)

        assert ledger.status_updates == []

    async def test_missing_order_id_rejected(self, pipeline, session, market):
        with pytest.raises(ValidationError, match="Invalid request parameters"):
            await pipeline.update_status(session, market.supplier_user, None, "Confirmed")

    async def test_buyer_has_no_supplier_profile(self, pipeline, session, market):
        placed = await _place(pipeline, session, market)

        with pytest.raises(NotFoundError, match="Supplier profile"):
            await pipeline.update_status(session, market.buyer, placed.order.id, "Confirmed")

    async def test_identity_failure_leaves_order_pending(self, pipeline, session, session_factory, market, ledger):
        unbound_user, unbound_supplier = await add_supplier(
            session, pipeline.identity, "new@mill.test", "New Mill", bind=False
        )
        maple = await add_product(session, unbound_supplier, "Maple", "12.50")
        placed = await pipeline.place_order(
            session, market.buyer, unbound_supplier.id, _items((maple.id, 4)), NEXT_WEEK
        )
        order_id = placed.order.id

        with pytest.raises(IdentityResolutionError):
            await pipeline.update_status(session, unbound_user, order_id, "Confirmed")

        assert ledger.status_updates == []
        stored = await _load_order(session_factory, order_id)
        assert stored.delivery_status == "Pending"

    async def test_rotated_secret_is_caught_before_signing(self, pipeline, ledger, session, session_factory, market):
        placed = await _place(pipeline, session, market)
        order_id = placed.order.id
        rotated = build_pipeline(IdentityMapper(LedgerAccountRepository(), "rotated-secret"), ledger)

        with pytest.raises(IdentityResolutionError, match="does not match"):
            await rotated.update_status(session, market.supplier_user, order_id, "Confirmed")

        assert ledger.status_updates == []
        stored = await _load_order(session_factory, order_id)
        assert stored.delivery_status == "Pending"

    async def test_ledger_failure_keeps_local_confirmation(self, pipeline, session, session_factory, market):
        placed = await _place(pipeline, session, market)
        order_id = placed.order.id
        pipeline.ledger = FakeLedgerClient(fail_with=TimeoutError("receipt timeout"))

        with pytest.raises(LedgerMirrorError) as exc_info:
            await pipeline.update_status(session, market.supplier_user, order_id, "Confirmed")

        assert exc_info.value.order_id == order_id
        stored = await _load_order(session_factory, order_id)
        assert stored.delivery_status == "Confirmed"
        assert stored.ledger_status == "mirror_failed"
        assert "receipt timeout" in stored.ledger_error

    async def test_confirm_does_not_clear_failed_placement_flag(self, identity, session, session_factory, market):
        broken = FakeLedgerClient(fail_with=ConnectionError("node unreachable"))
        placed = await _place(build_pipeline(identity, broken), session, market)
        order_id = placed.order.id
        healthy = FakeLedgerClient()

        await build_pipeline(identity, healthy).update_status(
            session, market.supplier_user, order_id, "Confirmed"
        )

        assert len(healthy.status_updates) == 1
        stored = await _load_order(session_factory, order_id)
        assert stored.delivery_status == "Confirmed"
        assert stored.ledger_status == "mirror_failed"
