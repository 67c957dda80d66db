"""Operation store — draft creation, lines and lifecycle status patches.

Stock never moves here. The only transition that touches stock (→ done)
belongs to stockroom.services.processor.
"""

from __future__ import annotations

import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from stockroom.exceptions import (
    BusinessLogicError,
    InvalidStatusTransitionError,
    ResourceNotFoundError,
)
from stockroom.models.operation import (
    Operation,
    OperationLine,
    OperationStatus,
    OperationType,
)
from stockroom.schemas.operation import OperationCreate, OperationLineCreate
from stockroom.services.catalog import get_product, get_warehouse
from stockroom.utils.numbering import next_reference

logger = logging.getLogger(__name__)

# Collaborator-driven transitions; → done is reserved for the processor
ALLOWED_TRANSITIONS: dict[str, set[str]] = {
    OperationStatus.DRAFT.value: {
        OperationStatus.WAITING.value,
        OperationStatus.READY.value,
        OperationStatus.CANCELED.value,
    },
    OperationStatus.WAITING.value: {
        OperationStatus.READY.value,
        OperationStatus.CANCELED.value,
    },
    OperationStatus.READY.value: {
        OperationStatus.CANCELED.value,
    },
    OperationStatus.DONE.value: set(),
    OperationStatus.CANCELED.value: set(),
}


async def get_operation(db: AsyncSession, operation_id: str) -> Operation:
    operation = await db.get(Operation, operation_id)
    if not operation:
        raise ResourceNotFoundError("Operation", operation_id)
    return operation


async def list_operations(
    db: AsyncSession,
    *,
    type: str | None = None,
    status: str | None = None,
    warehouse_id: str | None = None,
) -> list[Operation]:
    """Operations matching the filters, newest first."""
    query = select(Operation)
    if type:
        query = query.where(Operation.type == type)
    if status:
        query = query.where(Operation.status == status)
    if warehouse_id:
        query = query.where(Operation.warehouse_id == warehouse_id)

    result = await db.execute(query.order_by(Operation.created_at.desc()))
    return list(result.scalars().all())


async def create_operation(
    db: AsyncSession,
    body: OperationCreate,
    user_id: str,
) -> Operation:
    """Create a draft operation with a freshly allocated reference."""
    await get_warehouse(db, body.warehouse_id)
    if body.destination_warehouse_id:
        await get_warehouse(db, body.destination_warehouse_id)

    operation_type = OperationType(body.type).value
    reference = await next_reference(db, operation_type)

    operation = Operation(
        type=operation_type,
        reference=reference,
        status=OperationStatus.DRAFT.value,
        warehouse_id=body.warehouse_id,
        destination_warehouse_id=body.destination_warehouse_id,
        supplier_name=body.supplier_name,
        customer_name=body.customer_name,
        notes=body.notes,
        scheduled_date=body.scheduled_date,
        user_id=user_id,
    )
    db.add(operation)
    await db.flush()

    logger.info("Created %s operation %s", operation_type, reference)
    return operation


async def add_operation_line(
    db: AsyncSession,
    operation_id: str,
    body: OperationLineCreate,
) -> OperationLine:
    """Attach a product line to a draft operation."""
    operation = await get_operation(db, operation_id)
    if operation.status != OperationStatus.DRAFT.value:
        raise BusinessLogicError(
            f"Lines can only be added to draft operations "
            f"({operation.reference} is {operation.status})",
            error_code="OPERATION_NOT_DRAFT",
        )

    if body.planned_quantity == 0 and operation.type != OperationType.ADJUSTMENT.value:
        raise BusinessLogicError("Planned quantity must be greater than zero")

    await get_product(db, body.product_id)

    line = OperationLine(
        operation_id=operation.id,
        product_id=body.product_id,
        planned_quantity=body.planned_quantity,
        unit_price=body.unit_price,
    )
    db.add(line)
    await db.flush()
    return line


async def set_line_actual_quantity(
    db: AsyncSession,
    operation_id: str,
    line_id: str,
    actual_quantity: int,
) -> OperationLine:
    """Record the fulfilled quantity of a line (partial receive / ship)."""
    operation = await get_operation(db, operation_id)
    if operation.is_terminal:
        raise BusinessLogicError(
            f"Operation {operation.reference} is {operation.status} and can no longer change",
            error_code="OPERATION_TERMINAL",
        )

    line = await db.get(OperationLine, line_id)
    if not line or line.operation_id != operation.id:
        raise ResourceNotFoundError("Operation line", line_id)

    line.actual_quantity = actual_quantity
    await db.flush()
    return line


async def update_operation_status(
    db: AsyncSession,
    operation_id: str,
    new_status: str,
) -> Operation:
    """Apply a lifecycle transition other than processing."""
    operation = await get_operation(db, operation_id)
    new_status = OperationStatus(new_status).value

    if new_status not in ALLOWED_TRANSITIONS[operation.status]:
        raise InvalidStatusTransitionError(operation.reference, operation.status, new_status)

    operation.status = new_status
    await db.flush()

    logger.info("Operation %s moved to %s", operation.reference, new_status)
    return operation
