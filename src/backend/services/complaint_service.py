"""
Complaint service: role-scoped listing, lookup and administrator updates.

Every operation receives the caller's RoleScope, never the raw role.
Updates look up and authorize their target before anything is mutated or
written to disk.
"""
import logging
import re
from typing import Any, Dict, List, Optional, Sequence

from fastapi import UploadFile
from sqlalchemy.ext.asyncio import AsyncSession

from api.schemas.complaint import ComplaintFilter, ComplaintPage, ComplaintRead
from core.decorators import log_database_operation, transactional_database_operation
from core.exceptions import AuthorizationError, NotFoundError, ValidationError
from core.role_scope import RoleScope
from crud.complaint_crud import ComplaintCRUD, parse_complaint_id
from db.categories import RESOLVED_AT_ON_RESOLVED, RESOLVED_AT_ON_VIEWED, CategoryDescriptor
from db.models import READ_STATUS_VIEWED, STATUS_RESOLVED, ComplaintBase, utc_now
from services.upload_service import PendingUpload, UploadService

# Module-level logger using __name__
logger = logging.getLogger(__name__)

STATUS_ACTIONS = (RESOLVED_AT_ON_RESOLVED, RESOLVED_AT_ON_VIEWED)
DRIVE_PATH_SEPARATORS = re.compile(r"[\\/]")


def attachment_url(path: str, base_url: str) -> Dict[str, str]:
    """
    Build the public link for a stored attachment path.

    Legacy rows may hold absolute filesystem paths; those with a drive
    separator are reduced to their file name.
    """
    path = str(path)
    if ":\\" in path or ":/" in path:
        path = DRIVE_PATH_SEPARATORS.split(path)[-1]
    return {"url": f"{base_url.rstrip('/')}/{path.lstrip('/')}"}


class ComplaintService:
    """Service for complaint listing and administrator actions."""

    @staticmethod
    def serialize(
        descriptor: CategoryDescriptor, complaint: ComplaintBase, base_url: str
    ) -> ComplaintRead:
        data: Dict[str, Any] = {
            name: getattr(complaint, name) for name in descriptor.projection
        }
        data["category"] = descriptor.label
        data["attachments"] = [
            attachment_url(p, base_url) for p in complaint.attachments or []
        ]
        data["admin_attachments"] = [
            attachment_url(p, base_url) for p in complaint.admin_attachments or []
        ]
        return ComplaintRead.model_validate(data)

    @staticmethod
    async def list_page(
        db: AsyncSession,
        descriptor: CategoryDescriptor,
        filters: ComplaintFilter,
        scope: RoleScope,
        last_seen_id: Optional[str],
        limit: int,
        base_url: str,
    ) -> ComplaintPage:
        """One keyset page of complaints visible to ``scope``."""
        rows, next_cursor = await ComplaintCRUD.fetch_page(
            db, descriptor, filters, scope, last_seen_id, limit
        )
        return ComplaintPage(
            complaints=[ComplaintService.serialize(descriptor, r, base_url) for r in rows],
            next_last_seen_id=next_cursor,
        )

    @staticmethod
    async def _authorized_target(
        db: AsyncSession,
        descriptor: CategoryDescriptor,
        scope: RoleScope,
        complaint_id: Any,
    ) -> ComplaintBase:
        """
        Load a complaint and check the caller's scope covers it.

        Raises:
            ValidationError: Malformed id
            NotFoundError: Unknown id
            AuthorizationError: Complaint outside the caller's scope
        """
        if complaint_id is None or not str(complaint_id).strip():
            raise ValidationError("Complaint ID is required")
        parsed_id = parse_complaint_id(complaint_id)

        complaint = await ComplaintCRUD.find_by_id(db, descriptor, parsed_id)
        if complaint is None:
            raise NotFoundError()

        if not scope.allows(getattr(complaint, descriptor.scope_field)):
            logger.warning(
                f"Scope {scope} denied access to {descriptor.name} complaint {parsed_id}"
            )
            raise AuthorizationError()
        return complaint

    @staticmethod
    async def get_one(
        db: AsyncSession,
        descriptor: CategoryDescriptor,
        scope: RoleScope,
        complaint_id: str,
        base_url: str,
    ) -> ComplaintRead:
        complaint = await ComplaintService._authorized_target(
            db, descriptor, scope, complaint_id
        )
        return ComplaintService.serialize(descriptor, complaint, base_url)

    @staticmethod
    @transactional_database_operation("update_complaint_status")
    @log_database_operation("complaint status update", level="info")
    async def update_status(
        db: AsyncSession,
        descriptor: CategoryDescriptor,
        scope: RoleScope,
        complaint_id: str,
        status: str,
        base_url: str,
    ) -> ComplaintRead:
        """
        Apply a "resolved" or "viewed" transition.

        resolved_at is stamped by whichever transition the category's
        descriptor names. Re-applying a transition succeeds and refreshes
        the timestamp.
        """
        action = (status or "").strip().lower()
        if action not in STATUS_ACTIONS:
            raise ValidationError("Invalid status")

        complaint = await ComplaintService._authorized_target(
            db, descriptor, scope, complaint_id
        )

        now = utc_now()
        if action == RESOLVED_AT_ON_RESOLVED:
            complaint.status = STATUS_RESOLVED
        else:
            complaint.read_status = READ_STATUS_VIEWED
        if descriptor.resolved_at_on == action:
            complaint.resolved_at = now
        complaint.updated_at = now

        complaint = await ComplaintCRUD.save(db, complaint)
        logger.info(f"{descriptor.label} complaint {complaint.id} marked {action}")
        return ComplaintService.serialize(descriptor, complaint, base_url)

    @staticmethod
    @log_database_operation("complaint remarks update", level="info")
    async def update_remarks(
        db: AsyncSession,
        descriptor: CategoryDescriptor,
        scope: RoleScope,
        complaint_id: Optional[str],
        remarks: Optional[str],
        files: Sequence[UploadFile],
        base_url: str,
    ) -> ComplaintRead:
        """
        Set administrator remarks and, when files are uploaded, replace the
        administrator attachments.

        Uploads are validated first and written only after the target has
        been found and authorized. Files written for an update that does not
        commit are deleted again.
        """
        if complaint_id is None or not str(complaint_id).strip():
            raise ValidationError("Complaint ID is required")

        pending = await UploadService.validate(files)
        stored: List[str] = []
        try:
            return await ComplaintService._apply_remarks(
                db, descriptor, scope, complaint_id, remarks, pending, stored, base_url
            )
        except Exception:
            if stored:
                await UploadService.discard(stored)
            raise

    @staticmethod
    @transactional_database_operation("update_complaint_remarks")
    async def _apply_remarks(
        db: AsyncSession,
        descriptor: CategoryDescriptor,
        scope: RoleScope,
        complaint_id: str,
        remarks: Optional[str],
        pending: Sequence[PendingUpload],
        stored: List[str],
        base_url: str,
    ) -> ComplaintRead:
        """Authorize, write uploads into ``stored`` and save the complaint."""
        complaint = await ComplaintService._authorized_target(
            db, descriptor, scope, complaint_id
        )

        if pending:
            stored.extend(await UploadService.save(pending))
            complaint.admin_attachments = list(stored)
        complaint.admin_remarks = remarks
        complaint.updated_at = utc_now()

        complaint = await ComplaintCRUD.save(db, complaint)
        logger.info(
            f"Remarks updated for {descriptor.label} complaint {complaint.id} "
            f"({len(pending)} attachment(s))"
        )
        return ComplaintService.serialize(descriptor, complaint, base_url)
