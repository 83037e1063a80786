# woodchain/schemas/order.py
from datetime import date, datetime
from decimal import Decimal
from typing import Literal

from pydantic import ConfigDict, field_validator
from sqlmodel import SQLModel, Field

OrderStatus = Literal["Pending", "Confirmed"]
LedgerStatus = Literal["pending", "mirrored", "mirror_failed"]


class OrderLineRequest(SQLModel):
    """One (product, quantity) pair requested by the buyer."""

    model_config = ConfigDict(extra="forbid")

    product_id: int
    quantity: int = Field(gt=0)


class OrderPreviewRequest(SQLModel):
    """A basket to price: supplier plus lines, each product at most once."""

    model_config = ConfigDict(extra="forbid")

    supplier_id: int
    items: list[OrderLineRequest] = Field(min_length=1)

    @field_validator("items")
    @classmethod
    def unique_products(cls, v: list[OrderLineRequest]) -> list[OrderLineRequest]:
        seen: set[int] = set()
        for item in v:
            if item.product_id in seen:
                raise ValueError(f"product {item.product_id} listed more than once")
            seen.add(item.product_id)
        return v


class OrderCreate(OrderPreviewRequest):
    """
    Payload for placing an order.

    User provides:
      - supplier_id
      - delivery_date
      - items (product_id + quantity)
      - client_total (optional, what the buyer saw; only cross-checked)

    Backend derives:
      - user_id from token
      - delivery_status = 'Pending'
      - line snapshots and total_price from the catalog
    """

    delivery_date: date
    client_total: Decimal | None = None


class OrderStatusUpdate(SQLModel):
    """
    Supplier payload to change order status.

    Kept as a plain string so unknown values reach the pipeline and are
    rejected there with a domain error.
    """

    model_config = ConfigDict(extra="forbid")

    status: str | None = None


class OrderLineRead(SQLModel):
    id: int | None = None
    product_id: int | None
    product_name: str
    product_description: str | None
    quantity: int
    unit_price: Decimal
    price: Decimal


class OrderRead(SQLModel):
    """
    Lightweight representation of an order (without lines).
    """

    id: int
    user_id: int
    supplier_id: int
    order_date: date
    delivery_date: date
    total_price: Decimal
    delivery_status: OrderStatus
    ledger_status: LedgerStatus
    created_at: datetime


class OrderSummaryRead(OrderRead):
    """Order list entry with the counterpart's company name."""

    counterpart_name: str


class OrderWithLinesRead(OrderRead):
    lines: list[OrderLineRead]
    ledger_error: str | None = None
    ledger_tx_hash: str | None = None


class OrderPreviewRead(SQLModel):
    supplier_id: int
    lines: list[OrderLineRead]
    total_price: Decimal


class LedgerReconciliationRead(SQLModel):
    """Comparison between the local order and its ledger copy."""

    order_id: int
    in_sync: bool
    local_total_minor: int
    ledger_total_minor: int | None
    local_status: int
    ledger_status: int | None
    local_line_prices: list[int]
    ledger_line_prices: list[int]
    mismatches: list[str]
