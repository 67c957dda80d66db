"""Operations router — receipts, deliveries, transfers, adjustments.

Endpoints:
    GET   /api/operations/                        List with type/status/warehouse filters
    POST  /api/operations/                        Create a draft operation
    GET   /api/operations/{id}                    Operation detail with lines
    POST  /api/operations/{id}/lines              Add a line (draft only)
    PATCH /api/operations/{id}/lines/{line_id}    Record the actual quantity
    PATCH /api/operations/{id}/status             Lifecycle transition
    POST  /api/operations/{id}/process            Apply the operation to stock
"""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from stockroom.auth.deps import CurrentUser, require_permission
from stockroom.database import get_db, get_session_factory
from stockroom.models.operation import Operation, OperationStatus, OperationType
from stockroom.schemas.operation import (
    OperationCreate,
    OperationDetailOut,
    OperationLineActualUpdate,
    OperationLineCreate,
    OperationLineOut,
    OperationOut,
    OperationStatusUpdate,
    ProcessResult,
)
from stockroom.services import operations as operation_service
from stockroom.services.processor import process_operation
from stockroom.utils.cache import invalidate_cache

router = APIRouter()


# ── Helpers ──────────────────────────────────────────────────

def _detail(operation: Operation) -> OperationDetailOut:
    """Build an OperationDetailOut with resolved warehouse names and lines."""
    out = OperationDetailOut.model_validate({
        **OperationOut.model_validate(operation).model_dump(),
        "warehouse": operation.warehouse.name if operation.warehouse else "Unknown",
        "destination_warehouse": (
            operation.destination_warehouse.name
            if operation.destination_warehouse else None
        ),
        "lines": [OperationLineOut.model_validate(line) for line in operation.lines],
        "total_items": sum(line.planned_quantity for line in operation.lines),
    })
    return out


# ── GET /api/operations/ ─────────────────────────────────────

@router.get("/", response_model=list[OperationDetailOut])
async def list_operations(
    type: OperationType | None = Query(None),
    status: OperationStatus | None = Query(None),
    warehouse_id: str | None = Query(None),
    db: AsyncSession = Depends(get_db),
    _user: CurrentUser = Depends(require_permission("operations.read")),
):
    """Operations newest first, with warehouse names and lines."""
    operations = await operation_service.list_operations(
        db,
        type=type.value if type else None,
        status=status.value if status else None,
        warehouse_id=warehouse_id,
    )
    return [_detail(op) for op in operations]


# ── POST /api/operations/ ────────────────────────────────────

@router.post("/", response_model=OperationOut, status_code=201)
async def create_operation(
    body: OperationCreate,
    db: AsyncSession = Depends(get_db),
    user: CurrentUser = Depends(require_permission("operations.write")),
):
    operation = await operation_service.create_operation(db, body, user.id)
    # Pending counts on the dashboard include drafts
    await db.commit()
    await invalidate_cache("dashboard:*")
    return operation


# ── GET /api/operations/{operation_id} ───────────────────────

@router.get("/{operation_id}", response_model=OperationDetailOut)
async def get_operation(
    operation_id: str,
    db: AsyncSession = Depends(get_db),
    _user: CurrentUser = Depends(require_permission("operations.read")),
):
    operation = await operation_service.get_operation(db, operation_id)
    return _detail(operation)


# ── Lines ────────────────────────────────────────────────────

@router.post("/{operation_id}/lines", response_model=OperationLineOut, status_code=201)
async def add_line(
    operation_id: str,
    body: OperationLineCreate,
    db: AsyncSession = Depends(get_db),
    _user: CurrentUser = Depends(require_permission("operations.write")),
):
    return await operation_service.add_operation_line(db, operation_id, body)


@router.patch("/{operation_id}/lines/{line_id}", response_model=OperationLineOut)
async def set_line_actual_quantity(
    operation_id: str,
    line_id: str,
    body: OperationLineActualUpdate,
    db: AsyncSession = Depends(get_db),
    _user: CurrentUser = Depends(require_permission("operations.write")),
):
    """Record a partial (or over-) fulfilment; processing moves this quantity."""
    return await operation_service.set_line_actual_quantity(
        db, operation_id, line_id, body.actual_quantity
    )


# ── PATCH /api/operations/{operation_id}/status ──────────────

@router.patch("/{operation_id}/status", response_model=OperationOut)
async def update_status(
    operation_id: str,
    body: OperationStatusUpdate,
    db: AsyncSession = Depends(get_db),
    _user: CurrentUser = Depends(require_permission("operations.write")),
):
    operation = await operation_service.update_operation_status(
        db, operation_id, body.status.value
    )
    await db.commit()
    await invalidate_cache("dashboard:*")
    return operation


# ── POST /api/operations/{operation_id}/process ──────────────

@router.post("/{operation_id}/process", response_model=ProcessResult)
async def process(
    operation_id: str,
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
    user: CurrentUser = Depends(require_permission("operations.process")),
):
    """Apply the operation to stock in one transaction and mark it done."""
    await process_operation(session_factory, operation_id, user.id)

    async with session_factory() as db:
        operation = await operation_service.get_operation(db, operation_id)
        return ProcessResult(
            operation_id=operation.id,
            reference=operation.reference,
            status=operation.status,
            completed_date=operation.completed_date,
        )
