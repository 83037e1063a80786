"""Domain exceptions.

Raised by the service layer. `woodchain.main` registers exception
handlers that translate them into HTTP responses, so services never
build HTTP errors themselves.
"""

from __future__ import annotations


class WoodChainError(Exception):
    """Base class for all domain errors."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ValidationError(WoodChainError):
    """Missing or malformed input, rejected before any write."""


class AuthError(WoodChainError):
    """Credentials were rejected by the identity provider."""


class ConflictError(WoodChainError):
    """The request collides with existing state (e.g. duplicate email)."""


class NotFoundError(WoodChainError):
    """An entity could not be resolved in the local store."""


class ProductNotFound(NotFoundError):
    """A product referenced by an order line does not exist or is retired."""

    def __init__(self, product_id: int) -> None:
        super().__init__(f"Product {product_id} not found")
        self.product_id = product_id


class OrderNotFound(NotFoundError):
    """The order does not exist, is not visible, or is no longer Pending."""

    def __init__(self, order_id: int) -> None:
        super().__init__(f"Order {order_id} not found or already confirmed")
        self.order_id = order_id


class LocalCommitError(WoodChainError):
    """The relational store rejected a write. Nothing was mirrored."""


class IdentityResolutionError(WoodChainError):
    """No usable ledger account is bound to the acting user."""


class LedgerMirrorError(WoodChainError):
    """The local write is committed but the ledger write failed."""

    def __init__(self, order_id: int, cause: BaseException) -> None:
        super().__init__(f"Ledger mirror failed for order {order_id}: {cause}")
        self.order_id = order_id
        self.cause = cause


class LedgerConfigurationError(WoodChainError):
    """The contract has no deployment on the connected network."""


class LedgerTransactionFailed(WoodChainError):
    """A mined transaction came back with a failed receipt status."""


class LedgerReadError(WoodChainError):
    """Reading an order back from the ledger failed."""

    def __init__(self, order_id: int, cause: BaseException) -> None:
        super().__init__(f"Ledger read failed for order {order_id}: {cause}")
        self.order_id = order_id
        self.cause = cause
