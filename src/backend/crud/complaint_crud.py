"""
Complaint CRUD for database operations.

One generic implementation serves every complaint category; the category
descriptor supplies the table and the scoping column. Visibility is
enforced here by folding the caller's RoleScope into every statement.
"""
import logging
from typing import Any, Dict, List, Optional, Tuple
from uuid import UUID

from sqlalchemy import and_, case, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from api.schemas.complaint import ComplaintFilter
from core.async_utils import run_bounded
from core.config import settings
from core.decorators import handle_database_exceptions, log_database_operation
from core.exceptions import ValidationError
from core.role_scope import RestrictedTo, RoleScope
from db.categories import CategoryDescriptor
from db.models import (
    READ_STATUS_NOT_VIEWED,
    READ_STATUS_VIEWED,
    STATUS_PENDING,
    STATUS_RESOLVED,
    ComplaintBase,
)

logger = logging.getLogger(__name__)


def parse_complaint_id(value: Any, message: str = "Invalid complaint ID") -> UUID:
    """Parse a client-supplied identifier, raising ValidationError on garbage."""
    if isinstance(value, UUID):
        return value
    try:
        return UUID(str(value).strip())
    except (TypeError, ValueError, AttributeError):
        raise ValidationError(message)


class ComplaintCRUD:
    """CRUD for complaint tables with role-scoped keyset pagination."""

    @staticmethod
    def scope_conditions(descriptor: CategoryDescriptor, scope: RoleScope) -> List:
        """Conditions restricting a statement to what ``scope`` may see."""
        if isinstance(scope, RestrictedTo):
            return [descriptor.scope_column == scope.key]
        return []

    @staticmethod
    def build_conditions(
        descriptor: CategoryDescriptor,
        filters: ComplaintFilter,
        scope: RoleScope,
    ) -> List:
        """
        Translate normalized filters plus the caller's scope into WHERE
        conditions. A restricted scope always wins over a client-supplied
        scoping key.
        """
        model = descriptor.model
        conditions = [
            model.created_at >= filters.start_date,
            model.created_at <= filters.end_date,
        ]

        if filters.complaint_type:
            conditions.append(model.complain_type == filters.complaint_type)
        if filters.status:
            conditions.append(model.status == filters.status)
        if filters.read_status:
            conditions.append(model.read_status == filters.read_status)
        if filters.scholar_numbers:
            conditions.append(model.scholar_number.in_(filters.scholar_numbers))

        if isinstance(scope, RestrictedTo):
            if filters.scope_key and filters.scope_key != scope.key:
                logger.debug(
                    f"Ignoring scope override '{filters.scope_key}' for restricted scope '{scope.key}'"
                )
            conditions.extend(ComplaintCRUD.scope_conditions(descriptor, scope))
        elif filters.scope_key:
            conditions.append(descriptor.scope_column == filters.scope_key)

        return conditions

    @staticmethod
    @handle_database_exceptions(operation_name="find complaint")
    async def find_by_id(
        db: AsyncSession,
        descriptor: CategoryDescriptor,
        complaint_id: UUID,
    ) -> Optional[ComplaintBase]:
        """Find one complaint by ID regardless of scope (bounded)."""
        model = descriptor.model
        stmt = select(model).where(model.id == complaint_id)
        result = await run_bounded(
            db.execute(stmt), settings.query.lookup_timeout, "complaint lookup"
        )
        return result.scalar_one_or_none()

    @staticmethod
    @handle_database_exceptions(operation_name="fetch complaint page")
    @log_database_operation("complaint page fetch")
    async def fetch_page(
        db: AsyncSession,
        descriptor: CategoryDescriptor,
        filters: ComplaintFilter,
        scope: RoleScope,
        last_seen_id: Optional[str],
        limit: int,
    ) -> Tuple[List[ComplaintBase], Optional[UUID]]:
        """
        Fetch one page ordered by (created_at, id) ascending.

        The cursor row is looked up by id; only rows strictly after it in
        (created_at, id) order are returned. Rows inserted after the
        cursor's position appear on later pages; earlier rows never do.

        Returns:
            Tuple of (rows, next_cursor). next_cursor is the id of the last
            row when the page is full, otherwise None.

        Raises:
            ValidationError: "Invalid lastSeenId" for a malformed or unknown cursor
            UnavailableError: If a statement exceeds the page time bound
        """
        model = descriptor.model
        conditions = ComplaintCRUD.build_conditions(descriptor, filters, scope)

        if last_seen_id:
            cursor_id = parse_complaint_id(last_seen_id, "Invalid lastSeenId")
            cursor_stmt = select(model.created_at, model.id).where(model.id == cursor_id)
            cursor_result = await run_bounded(
                db.execute(cursor_stmt), settings.query.lookup_timeout, "cursor lookup"
            )
            cursor = cursor_result.first()
            if cursor is None:
                raise ValidationError("Invalid lastSeenId")

            conditions.append(
                or_(
                    model.created_at > cursor.created_at,
                    and_(model.created_at == cursor.created_at, model.id > cursor.id),
                )
            )

        stmt = (
            select(model)
            .where(*conditions)
            .order_by(model.created_at.asc(), model.id.asc())
            .limit(limit)
        )
        result = await run_bounded(
            db.execute(stmt), settings.query.page_timeout, "complaint page"
        )
        rows = list(result.scalars().all())

        next_cursor = rows[-1].id if len(rows) == limit and rows else None
        return rows, next_cursor

    @staticmethod
    def _counter_columns(model) -> List:
        return [
            func.count(model.id).label("total"),
            func.count(case((model.status == STATUS_RESOLVED, 1))).label("resolved"),
            func.count(case((model.status == STATUS_PENDING, 1))).label("unresolved"),
            func.count(case((model.read_status == READ_STATUS_VIEWED, 1))).label("viewed"),
            func.count(case((model.read_status == READ_STATUS_NOT_VIEWED, 1))).label(
                "not_viewed"
            ),
        ]

    @staticmethod
    def _row_counts(row) -> Dict[str, int]:
        return {
            "total": int(row.total or 0),
            "resolved": int(row.resolved or 0),
            "unresolved": int(row.unresolved or 0),
            "viewed": int(row.viewed or 0),
            "not_viewed": int(row.not_viewed or 0),
        }

    @staticmethod
    @handle_database_exceptions(operation_name="aggregate complaint stats")
    async def aggregate_stats(
        db: AsyncSession,
        descriptor: CategoryDescriptor,
        scope: RoleScope,
    ) -> Dict[str, int]:
        """
        Count total/resolved/unresolved/viewed/not-viewed records visible
        to ``scope`` in a single grouping statement.
        """
        model = descriptor.model
        stmt = select(*ComplaintCRUD._counter_columns(model)).where(
            *ComplaintCRUD.scope_conditions(descriptor, scope)
        )
        result = await db.execute(stmt)
        return ComplaintCRUD._row_counts(result.one())

    @staticmethod
    @handle_database_exceptions(operation_name="aggregate complaint stats by scope key")
    async def aggregate_stats_by_scope_key(
        db: AsyncSession,
        descriptor: CategoryDescriptor,
        scope: RoleScope,
    ) -> Dict[str, Dict[str, int]]:
        """Same counters as aggregate_stats, grouped by the scoping column."""
        model = descriptor.model
        key_column = descriptor.scope_column
        stmt = (
            select(key_column.label("scope_key"), *ComplaintCRUD._counter_columns(model))
            .where(*ComplaintCRUD.scope_conditions(descriptor, scope))
            .group_by(key_column)
            .order_by(key_column)
        )
        result = await db.execute(stmt)
        return {
            str(row.scope_key or ""): ComplaintCRUD._row_counts(row)
            for row in result.all()
        }

    @staticmethod
    async def save(db: AsyncSession, complaint: ComplaintBase) -> ComplaintBase:
        """Stage and flush a modified complaint. The caller owns the commit."""
        db.add(complaint)
        await db.flush()
        await db.refresh(complaint)
        return complaint
