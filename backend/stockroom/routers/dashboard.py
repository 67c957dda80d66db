"""Dashboard router.

Endpoints:
    GET  /api/dashboard/kpis   Headline stock & pending-operation counts
"""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from stockroom.auth.deps import CurrentUser, require_permission
from stockroom.database import get_db
from stockroom.schemas.dashboard import DashboardKPIs
from stockroom.services.reporting import get_dashboard_kpis

router = APIRouter()


@router.get("/kpis", response_model=DashboardKPIs)
async def dashboard_kpis(
    db: AsyncSession = Depends(get_db),
    _user: CurrentUser = Depends(require_permission("reports.read")),
):
    return await get_dashboard_kpis(db)
