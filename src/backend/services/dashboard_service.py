"""
Dashboard snapshots.

Builds the analytics payloads pushed over the realtime channel and served
by GET /dashboard. Categories are computed concurrently, each on its own
short-lived session; stats are best-effort so a slow category reports
zeros instead of failing the snapshot.
"""
import asyncio
import logging
from typing import Dict, List, Mapping

from sqlalchemy.ext.asyncio import async_sessionmaker

from api.schemas.complaint import (
    AggregateStats,
    CategoryAnalytics,
    DashboardSnapshot,
    ResolutionSnapshot,
)
from core.role_scope import RoleScope
from db.categories import CATEGORIES, get_category
from services.stats_service import StatsService

# Module-level logger using __name__
logger = logging.getLogger(__name__)


class DashboardService:
    """Snapshot provider bound to a session factory."""

    def __init__(self, session_factory: async_sessionmaker):
        self.session_factory = session_factory

    async def category_stats(self, category: str, scope: RoleScope) -> AggregateStats:
        descriptor = get_category(category)
        async with self.session_factory() as db:
            return await StatsService.compute(db, descriptor, scope)

    async def _scope_key_breakdown(
        self, category: str, scope: RoleScope
    ) -> Dict[str, AggregateStats]:
        descriptor = get_category(category)
        async with self.session_factory() as db:
            return await StatsService.compute_by_scope_key(db, descriptor, scope)

    async def analytics_snapshot(
        self, scopes: Mapping[str, RoleScope], breakdown: bool = False
    ) -> List[CategoryAnalytics]:
        """Stats for every category in ``scopes``, in descriptor table order."""
        names = [name for name in CATEGORIES if name in scopes]
        stats = await asyncio.gather(
            *(self.category_stats(name, scopes[name]) for name in names)
        )
        if breakdown:
            by_key = await asyncio.gather(
                *(self._scope_key_breakdown(name, scopes[name]) for name in names)
            )
        else:
            by_key = [{} for _ in names]

        return [
            CategoryAnalytics(
                category=CATEGORIES[name].label, stats=s, by_scope_key=k
            )
            for name, s, k in zip(names, stats, by_key)
        ]

    @staticmethod
    def resolution_snapshot(analytics: List[CategoryAnalytics]) -> ResolutionSnapshot:
        total = sum(a.stats.total_complaints for a in analytics)
        resolved = sum(a.stats.resolved_complaints for a in analytics)
        rate = round(resolved / total * 100, 2) if total else 0.0
        return ResolutionSnapshot(
            total_complaints=total, resolved_complaints=resolved, resolution_rate=rate
        )

    async def dashboard_snapshot(self, scopes: Mapping[str, RoleScope]) -> DashboardSnapshot:
        """Full dashboard including the per-scoping-key breakdown."""
        analytics = await self.analytics_snapshot(scopes, breakdown=True)
        return DashboardSnapshot(
            resolution=self.resolution_snapshot(analytics), analytics=analytics
        )
