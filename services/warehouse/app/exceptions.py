"""
Typed errors raised by the Warehouse service core.

Every error carries a machine-readable ``code`` plus the structured data
that caused it. The core raises them; only ``main.py`` translates them into
HTTP responses.

    WarehouseError
    +-- ValidationError
    +-- InsufficientStockError
    +-- InvalidStateError
    +-- Unauthorized
    +-- NotFoundError
    +-- TransactionConflictError
"""
from typing import Optional


class WarehouseError(Exception):
    """Base class for all Warehouse service errors."""

    code: str = "WAREHOUSE_ERROR"

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class ValidationError(WarehouseError):
    """Malformed or out-of-range input. Fixable by the caller."""

    code: str = "VALIDATION_ERROR"


class InsufficientStockError(WarehouseError):
    """The holder does not have enough units for the requested movement."""

    code: str = "INSUFFICIENT_STOCK"

    def __init__(self, product_id: int, holder: str, available: int, requested: int):
        self.product_id = product_id
        self.holder = holder
        self.available = available
        self.requested = requested
        super().__init__(
            f"Insufficient stock for product {product_id} in {holder}. "
            f"Available: {available}, Required: {requested}"
        )


class InvalidStateError(WarehouseError):
    """Illegal state transition, e.g. approving an already approved return."""

    code: str = "INVALID_STATE"

    def __init__(self, return_id: int, status: str, target: str):
        self.return_id = return_id
        self.status = status
        self.target = target
        super().__init__(f"Return {return_id} cannot move from '{status}' to '{target}'")


class Unauthorized(WarehouseError):
    """The caller's role or identity does not allow the operation."""

    code: str = "UNAUTHORIZED"


class NotFoundError(WarehouseError):
    """Unknown id."""

    code: str = "NOT_FOUND"

    def __init__(self, entity: str, entity_id: Optional[int]):
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(f"{entity} not found: {entity_id}")


class TransactionConflictError(WarehouseError):
    """Concurrent transactions kept conflicting after all retries."""

    code: str = "TRANSACTION_CONFLICT"

    def __init__(self, attempts: int):
        self.attempts = attempts
        super().__init__(f"Transaction aborted after {attempts} conflicting attempts, try again")
