"""
Aggregate stats service.

Best-effort by policy: stats feed dashboards, so a timeout or store error
is logged and answered with zeros instead of failing the caller.
"""
import logging
from typing import Dict

from sqlalchemy.ext.asyncio import AsyncSession

from api.schemas.complaint import AggregateStats
from core.async_utils import run_bounded
from core.config import settings
from core.decorators import log_database_operation, safe_database_query
from core.role_scope import RoleScope
from crud.complaint_crud import ComplaintCRUD
from db.categories import CategoryDescriptor

# Module-level logger using __name__
logger = logging.getLogger(__name__)


def _to_stats(counts: Dict[str, int]) -> AggregateStats:
    return AggregateStats(
        total_complaints=counts["total"],
        resolved_complaints=counts["resolved"],
        unresolved_complaints=counts["unresolved"],
        viewed_complaints=counts["viewed"],
        not_viewed_complaints=counts["not_viewed"],
    )


class StatsService:
    """Service computing aggregate complaint counters per scope."""

    @staticmethod
    @safe_database_query("compute_stats", default_return=AggregateStats.zero)
    @log_database_operation("stats aggregation", level="debug")
    async def compute(
        db: AsyncSession,
        descriptor: CategoryDescriptor,
        scope: RoleScope,
    ) -> AggregateStats:
        """
        Counters over every record of the category visible to ``scope``.

        Never raises; returns AggregateStats.zero() on timeout or error.
        """
        counts = await run_bounded(
            ComplaintCRUD.aggregate_stats(db, descriptor, scope),
            settings.query.stats_timeout,
            f"{descriptor.name} stats",
        )
        return _to_stats(counts)

    @staticmethod
    @safe_database_query("compute_stats_by_scope_key", default_return=dict)
    async def compute_by_scope_key(
        db: AsyncSession,
        descriptor: CategoryDescriptor,
        scope: RoleScope,
    ) -> Dict[str, AggregateStats]:
        """Per-scoping-key counters; empty on timeout or error."""
        grouped = await run_bounded(
            ComplaintCRUD.aggregate_stats_by_scope_key(db, descriptor, scope),
            settings.query.stats_timeout,
            f"{descriptor.name} stats by {descriptor.scope_field}",
        )
        return {key: _to_stats(counts) for key, counts in grouped.items()}
