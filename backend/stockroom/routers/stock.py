"""Stock router — read-only views over the stock ledger.

Endpoints:
    GET  /api/stock/levels           Current stock per (product, warehouse)
    GET  /api/stock/movements        Movement history (paginated)
    GET  /api/stock/reconciliation   Ledger consistency report
"""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from stockroom.auth.deps import CurrentUser, require_permission
from stockroom.database import get_db
from stockroom.models.stock import StockLevel
from stockroom.schemas.common import PaginatedResponse
from stockroom.schemas.stock import (
    ReconciliationReport,
    StockLevelOut,
    StockMovementOut,
)
from stockroom.services import reporting
from stockroom.services.reconciliation import run_ledger_reconciliation

router = APIRouter()


def _enrich_level(level: StockLevel) -> StockLevelOut:
    """Build a StockLevelOut with resolved product / warehouse names."""
    out = StockLevelOut.model_validate(level)
    if level.product:
        out.product_name = level.product.name
        out.sku = level.product.sku
    if level.warehouse:
        out.warehouse_name = level.warehouse.name
    return out


@router.get("/levels", response_model=list[StockLevelOut])
async def list_stock_levels(
    product_id: str | None = Query(None),
    warehouse_id: str | None = Query(None),
    db: AsyncSession = Depends(get_db),
    _user: CurrentUser = Depends(require_permission("stock.read")),
):
    levels = await reporting.list_stock_levels(
        db, product_id=product_id, warehouse_id=warehouse_id
    )
    return [_enrich_level(level) for level in levels]


@router.get("/movements", response_model=PaginatedResponse[StockMovementOut])
async def list_movements(
    product_id: str | None = Query(None),
    warehouse_id: str | None = Query(None),
    operation_id: str | None = Query(None),
    direction: str | None = Query(None, pattern="^(in|out|adjustment)$"),
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    db: AsyncSession = Depends(get_db),
    _user: CurrentUser = Depends(require_permission("stock.read")),
):
    """Movement history, newest first, with optional filters."""
    items, total = await reporting.list_movements(
        db,
        product_id=product_id,
        warehouse_id=warehouse_id,
        operation_id=operation_id,
        direction=direction,
        limit=limit,
        offset=offset,
    )
    return PaginatedResponse(
        items=[StockMovementOut.model_validate(m) for m in items],
        total=total,
        limit=limit,
        offset=offset,
    )


@router.get("/reconciliation", response_model=ReconciliationReport)
async def reconciliation_report(
    db: AsyncSession = Depends(get_db),
    _user: CurrentUser = Depends(require_permission("stock.read")),
):
    """Check movement chains and stock levels against the ledger."""
    return await run_ledger_reconciliation(db)
