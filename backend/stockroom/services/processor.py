"""Operation processor — the one state transition that moves stock.

process_operation() runs a single explicit transaction:
  1. lock the operation row (SELECT … FOR UPDATE; on SQLite the whole
     transaction opens with BEGIN IMMEDIATE) and guard its status
  2. load the lines and lock every StockLevel the lines will touch
  3. per line: apply the signed delta through the stock ledger and append
     the matching movement(s)
  4. mark the operation done and stamp completed_date

Either all of it commits or none of it does. Retryable database conflicts
(concurrent creation of the same StockLevel row, serialization failures,
deadlocks) restart the whole transaction up to
settings.process_max_attempts times before TransactionConflictError.

Per-type behaviour:
  receipt     +qty at the source warehouse, one `in` movement
  delivery    -qty at the source warehouse, one `out` movement
  transfer    -qty at source, +qty at destination, `out` + `in` movements
  adjustment  stock set to the counted qty, one `adjustment` movement
              carrying the signed difference
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Sequence

from sqlalchemy import select
from sqlalchemy.exc import DBAPIError, IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.orm import raiseload

from stockroom.config import settings
from stockroom.database import WRITE_TRANSACTION
from stockroom.exceptions import (
    OperationAlreadyProcessedError,
    OperationCanceledError,
    ResourceNotFoundError,
    TransactionConflictError,
)
from stockroom.models.operation import (
    Operation,
    OperationLine,
    OperationStatus,
    OperationType,
)
from stockroom.services import ledger
from stockroom.services.ledger import StockKey
from stockroom.utils.cache import invalidate_cache

logger = logging.getLogger(__name__)

# serialization_failure, deadlock_detected
RETRYABLE_SQLSTATES = {"40001", "40P01"}

# PostgreSQL names the constraint, SQLite names the columns
STOCK_LEVEL_UNIQUE_MARKERS = (
    "uq_stock_levels_product_warehouse",
    "unique constraint failed: stock_levels.product_id",
)


def _is_retryable(exc: DBAPIError) -> bool:
    orig = exc.orig
    sqlstate = getattr(orig, "sqlstate", None) or getattr(orig, "pgcode", None)
    if sqlstate in RETRYABLE_SQLSTATES:
        return True
    message = str(orig).lower()
    if isinstance(exc, IntegrityError):
        # Lost the race to create a StockLevel row; the retry will find it
        return any(marker in message for marker in STOCK_LEVEL_UNIQUE_MARKERS)
    return "database is locked" in message


def _touched_keys(operation: Operation, lines: Sequence[OperationLine]) -> set[StockKey]:
    keys: set[StockKey] = set()
    for line in lines:
        keys.add(StockKey(line.product_id, operation.warehouse_id))
        if operation.type == OperationType.TRANSFER.value and operation.destination_warehouse_id:
            keys.add(StockKey(line.product_id, operation.destination_warehouse_id))
    return keys


async def _apply_line(
    db: AsyncSession,
    operation: Operation,
    line: OperationLine,
    user_id: str,
) -> None:
    quantity = line.effective_quantity
    source = operation.warehouse_id

    if operation.type == OperationType.RECEIPT.value:
        applied = await ledger.apply_delta(db, line.product_id, source, quantity)
        await ledger.record_movement(
            db, applied, "in", operation.reference, user_id,
            operation_id=operation.id,
        )

    elif operation.type == OperationType.DELIVERY.value:
        applied = await ledger.apply_delta(db, line.product_id, source, -quantity)
        await ledger.record_movement(
            db, applied, "out", operation.reference, user_id,
            operation_id=operation.id,
        )

    elif operation.type == OperationType.TRANSFER.value:
        destination = operation.destination_warehouse_id
        if not destination:
            logger.warning(
                "Transfer %s has no destination warehouse; line %s moves no stock",
                operation.reference, line.id,
            )
            return
        outbound = await ledger.apply_delta(db, line.product_id, source, -quantity)
        inbound = await ledger.apply_delta(db, line.product_id, destination, quantity)
        await ledger.record_movement(
            db, outbound, "out", operation.reference, user_id,
            operation_id=operation.id,
        )
        await ledger.record_movement(
            db, inbound, "in", operation.reference, user_id,
            operation_id=operation.id,
        )

    elif operation.type == OperationType.ADJUSTMENT.value:
        applied = await ledger.set_quantity(db, line.product_id, source, quantity)
        await ledger.record_movement(
            db, applied, "adjustment", operation.reference, user_id,
            operation_id=operation.id,
            notes=f"Counted {quantity}",
        )


async def _process_in_transaction(
    db: AsyncSession,
    operation_id: str,
    user_id: str,
) -> Operation:
    result = await db.execute(
        select(Operation)
        .where(Operation.id == operation_id)
        .options(raiseload("*"))
        .with_for_update()
    )
    operation = result.scalar_one_or_none()
    if operation is None:
        raise ResourceNotFoundError("Operation", operation_id)

    if operation.status == OperationStatus.DONE.value:
        raise OperationAlreadyProcessedError(operation.reference)
    if operation.status == OperationStatus.CANCELED.value:
        raise OperationCanceledError(operation.reference)

    lines = (
        await db.execute(
            select(OperationLine)
            .where(OperationLine.operation_id == operation.id)
            .order_by(OperationLine.created_at, OperationLine.id)
        )
    ).scalars().all()

    await ledger.lock_stock_levels(db, _touched_keys(operation, lines))

    for line in lines:
        await _apply_line(db, operation, line, user_id)

    operation.status = OperationStatus.DONE.value
    operation.completed_date = datetime.utcnow()
    await db.flush()

    logger.info(
        "Processed %s operation %s (%d lines)",
        operation.type, operation.reference, len(lines),
    )
    return operation


async def process_operation(
    session_factory: async_sessionmaker[AsyncSession],
    operation_id: str,
    user_id: str,
    *,
    max_attempts: int | None = None,
) -> str:
    """Process an operation atomically and return its id.

    Raises:
        ResourceNotFoundError: no such operation
        OperationAlreadyProcessedError: the operation is already done
        OperationCanceledError: the operation was canceled
        InsufficientStockError: over-decrement under the reject policy
        TransactionConflictError: conflict retries exhausted
    """
    attempts = max_attempts or settings.process_max_attempts

    for attempt in range(1, attempts + 1):
        try:
            async with session_factory() as db:
                async with db.begin():
                    await db.connection(execution_options=WRITE_TRANSACTION)
                    await _process_in_transaction(db, operation_id, user_id)
            break
        except DBAPIError as exc:
            if not _is_retryable(exc):
                raise
            logger.warning(
                "Conflict while processing operation %s (attempt %d/%d): %s",
                operation_id, attempt, attempts, exc.orig,
            )
    else:
        raise TransactionConflictError(operation_id, attempts)

    await invalidate_cache("dashboard:*")
    return operation_id
