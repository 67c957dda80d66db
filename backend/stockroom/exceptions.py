"""Domain exceptions for Stockroom.

Every error the services raise derives from StockroomException and carries
the HTTP status and machine-readable code the API renders for it. The
handlers live in stockroom.middleware.exceptions.
"""

from fastapi import status


class StockroomException(Exception):
    """Base exception for Stockroom application errors."""

    def __init__(
        self,
        message: str,
        status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
        error_code: str = "INTERNAL_ERROR",
    ):
        self.message = message
        self.status_code = status_code
        self.error_code = error_code
        super().__init__(self.message)


class BusinessLogicError(StockroomException):
    """Exception for business logic violations."""

    def __init__(self, message: str, error_code: str = "BUSINESS_LOGIC_ERROR"):
        super().__init__(
            message=message,
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            error_code=error_code,
        )


class ResourceNotFoundError(StockroomException):
    """Exception for resources not found."""

    def __init__(self, resource: str, identifier: str):
        self.resource = resource
        self.identifier = identifier
        super().__init__(
            message=f"{resource} not found: {identifier}",
            status_code=status.HTTP_404_NOT_FOUND,
            error_code="RESOURCE_NOT_FOUND",
        )


class DuplicateKeyError(StockroomException):
    """A unique business key (SKU, warehouse code) is already taken."""

    def __init__(self, resource: str, field: str, value: str):
        self.field = field
        self.value = value
        super().__init__(
            message=f"{resource} with {field} '{value}' already exists",
            status_code=status.HTTP_409_CONFLICT,
            error_code="DUPLICATE_KEY",
        )


# ── Operation lifecycle ─────────────────────────────────────

class OperationAlreadyProcessedError(StockroomException):
    """The operation is already done; processing it again is rejected."""

    def __init__(self, reference: str):
        self.reference = reference
        super().__init__(
            message=f"Operation {reference} has already been processed",
            status_code=status.HTTP_409_CONFLICT,
            error_code="OPERATION_ALREADY_PROCESSED",
        )


class OperationCanceledError(StockroomException):
    """The operation was canceled and can no longer move stock."""

    def __init__(self, reference: str):
        self.reference = reference
        super().__init__(
            message=f"Operation {reference} is canceled",
            status_code=status.HTTP_409_CONFLICT,
            error_code="OPERATION_CANCELED",
        )


class InvalidStatusTransitionError(StockroomException):
    """The requested status change is not allowed from the current status."""

    def __init__(self, reference: str, current: str, requested: str):
        self.current = current
        self.requested = requested
        super().__init__(
            message=f"Operation {reference} cannot move from {current} to {requested}",
            status_code=status.HTTP_409_CONFLICT,
            error_code="INVALID_STATUS_TRANSITION",
        )


# ── Stock ledger ────────────────────────────────────────────

class InsufficientStockError(BusinessLogicError):
    """A decrement would take on-hand stock below zero (reject policy)."""

    def __init__(self, product_id: str, warehouse_id: str, available: int, requested: int):
        self.product_id = product_id
        self.warehouse_id = warehouse_id
        self.available = available
        self.requested = requested
        super().__init__(
            message=(
                f"Insufficient stock for product {product_id} at warehouse "
                f"{warehouse_id}: {available} on hand, {requested} requested"
            ),
            error_code="INSUFFICIENT_STOCK",
        )


class ImmutableMovementError(StockroomException):
    """A persisted stock movement was about to be modified or deleted."""

    def __init__(self, movement_id: int, action: str):
        self.movement_id = movement_id
        super().__init__(
            message=f"Stock movement {movement_id} is immutable and cannot be {action}",
            error_code="IMMUTABLE_MOVEMENT",
        )


class TransactionConflictError(StockroomException):
    """Conflict retries were exhausted while processing an operation."""

    def __init__(self, operation_id: str, attempts: int):
        self.operation_id = operation_id
        self.attempts = attempts
        super().__init__(
            message=(
                f"Operation {operation_id} could not be processed after "
                f"{attempts} attempts due to concurrent updates. Please retry."
            ),
            status_code=status.HTTP_409_CONFLICT,
            error_code="TRANSACTION_CONFLICT",
        )
