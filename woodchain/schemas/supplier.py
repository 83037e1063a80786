# woodchain/schemas/supplier.py
from pydantic import ConfigDict
from sqlmodel import SQLModel

from woodchain.schemas.product import ProductRead


class SupplierRead(SQLModel):
    """Supplier directory entry (supplier profile + company info)."""

    id: int
    user_id: int
    company_name: str
    company_address: str
    description: str | None


class SupplierWithProductsRead(SupplierRead):
    products: list[ProductRead]


class SupplierDescriptionUpdate(SQLModel):
    model_config = ConfigDict(extra="forbid")

    description: str
