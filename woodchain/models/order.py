# woodchain/models/order.py
from datetime import date, datetime, timezone
from decimal import Decimal

from sqlmodel import SQLModel, Field

STATUS_PENDING = "Pending"
STATUS_CONFIRMED = "Confirmed"

# Outcome of the ledger mirror write for an order
LEDGER_PENDING = "pending"
LEDGER_MIRRORED = "mirrored"
LEDGER_MIRROR_FAILED = "mirror_failed"


class Order(SQLModel, table=True):
    """
    Buyer order addressed to one supplier.

    This row is the system of record. The ledger copy is an audit
    projection; ledger_status tells operators whether the last mirror
    write for this order reached the ledger.
    """

    __tablename__ = "orders"

    id: int | None = Field(default=None, primary_key=True)

    user_id: int = Field(
        foreign_key="users.id",
        index=True,
    )

    supplier_id: int = Field(
        foreign_key="suppliers.id",
        index=True,
    )

    order_date: date = Field(description="Day the order was placed (UTC)")
    delivery_date: date = Field(description="Requested delivery date")

    # Sum of line totals, computed server-side
    total_price: Decimal = Field(max_digits=12, decimal_places=2)

    # Pending | Confirmed
    delivery_status: str = Field(
        default=STATUS_PENDING,
        index=True,
    )

    # pending | mirrored | mirror_failed
    ledger_status: str = Field(
        default=LEDGER_PENDING,
        index=True,
    )
    ledger_error: str | None = Field(default=None)
    ledger_tx_hash: str | None = Field(default=None, max_length=66)

    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="Creation timestamp (UTC)",
    )


class OrderDetail(SQLModel, table=True):
    """
    Line item inside an order. Immutable once written.

    Name, description and unit price are copied from the product at
    order time so later catalog edits do not rewrite history.
    """

    __tablename__ = "order_details"

    id: int | None = Field(default=None, primary_key=True)

    order_id: int = Field(
        foreign_key="orders.id",
        index=True,
    )

    # None only for placeholder lines (product could not be resolved)
    product_id: int | None = Field(
        default=None,
        foreign_key="products.id",
        index=True,
    )

    product_name: str = Field(max_length=255)
    product_description: str | None = Field(default=None)

    quantity: int = Field(gt=0)

    unit_price: Decimal = Field(max_digits=10, decimal_places=2)

    # unit_price * quantity
    price: Decimal = Field(max_digits=12, decimal_places=2)
