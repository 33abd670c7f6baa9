"""
Stats and dashboard API endpoints.
"""

from typing import Dict

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from api.schemas.complaint import DashboardSnapshot, StatsResponse
from core.database import get_session
from core.dependencies import (
    get_all_scopes,
    get_category_descriptor,
    get_category_scope,
    get_snapshot_provider,
)
from core.role_scope import RoleScope
from db.categories import CategoryDescriptor
from services.dashboard_service import DashboardService
from services.stats_service import StatsService

router = APIRouter()


@router.get("/stats/{category}", response_model=StatsResponse)
async def get_stats(
    descriptor: CategoryDescriptor = Depends(get_category_descriptor),
    scope: RoleScope = Depends(get_category_scope),
    db: AsyncSession = Depends(get_session),
):
    """
    Aggregate counters for the category, limited to the caller's scope.

    Best-effort: answers zeros if the store is slow or failing.
    """
    stats = await StatsService.compute(db, descriptor, scope)
    return StatsResponse(**stats.model_dump())


@router.get("/dashboard", response_model=DashboardSnapshot)
async def get_dashboard(
    scopes: Dict[str, RoleScope] = Depends(get_all_scopes),
    provider: DashboardService = Depends(get_snapshot_provider),
):
    """Resolution rate and per-category analytics for every visible category."""
    return await provider.dashboard_snapshot(scopes)
