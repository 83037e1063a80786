# woodchain/models/product.py
from datetime import datetime, timezone
from decimal import Decimal

from sqlmodel import SQLModel, Field


class Product(SQLModel, table=True):
    """
    Catalog entry owned by a supplier.

    Products are never physically deleted: retiring a product flips
    is_active so historical order lines can still resolve it.
    """

    __tablename__ = "products"

    id: int | None = Field(default=None, primary_key=True)

    supplier_id: int = Field(
        foreign_key="suppliers.id",
        index=True,
    )

    name: str = Field(
        max_length=255,
        index=True,
        description="Display name of the wood product",
    )

    description: str | None = Field(default=None)

    price: Decimal = Field(
        max_digits=10,
        decimal_places=2,
        gt=0,
        description="Unit price",
    )

    is_active: bool = Field(
        default=True,
        index=True,
        description="False once the supplier retires the product",
    )

    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="Creation timestamp (UTC)",
    )
