"""
Complaint API endpoints.

All routes take the category as a path parameter; one generic
implementation serves every category through its descriptor.
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, File, Form, Query, UploadFile
from sqlalchemy.ext.asyncio import AsyncSession

from api.schemas.complaint import ComplaintPage, ComplaintResponse, StatusUpdate
from core.database import get_session
from core.dependencies import get_base_url, get_category_descriptor, get_category_scope
from core.role_scope import RoleScope
from db.categories import CategoryDescriptor
from services.complaint_service import ComplaintService
from services.filter_service import normalize_filters, normalize_limit

router = APIRouter()


@router.get("/complaints/{category}", response_model=ComplaintPage)
async def list_complaints(
    filters: Optional[str] = Query(None, description="JSON-encoded filter object"),
    limit: Optional[str] = Query(None),
    last_seen_id: Optional[str] = Query(None, alias="lastSeenId"),
    descriptor: CategoryDescriptor = Depends(get_category_descriptor),
    scope: RoleScope = Depends(get_category_scope),
    base_url: str = Depends(get_base_url),
    db: AsyncSession = Depends(get_session),
):
    """
    One keyset page of complaints visible to the caller.

    - **filters**: JSON object with startDate, endDate, complaintType, status,
      readStatus, hostelNumber/department, scholarNumbers
    - **limit**: page size (default 20, max 100)
    - **lastSeenId**: id of the last complaint of the previous page
    """
    normalized = normalize_filters(filters)
    return await ComplaintService.list_page(
        db=db,
        descriptor=descriptor,
        filters=normalized,
        scope=scope,
        last_seen_id=last_seen_id,
        limit=normalize_limit(limit),
        base_url=base_url,
    )


@router.get("/complaints/{category}/{complaint_id}", response_model=ComplaintResponse)
async def get_complaint(
    complaint_id: str,
    descriptor: CategoryDescriptor = Depends(get_category_descriptor),
    scope: RoleScope = Depends(get_category_scope),
    base_url: str = Depends(get_base_url),
    db: AsyncSession = Depends(get_session),
):
    """Get one complaint by ID."""
    complaint = await ComplaintService.get_one(
        db=db,
        descriptor=descriptor,
        scope=scope,
        complaint_id=complaint_id,
        base_url=base_url,
    )
    return ComplaintResponse(complaint=complaint)


@router.put("/status/{category}", response_model=ComplaintResponse)
async def update_status(
    body: StatusUpdate,
    descriptor: CategoryDescriptor = Depends(get_category_descriptor),
    scope: RoleScope = Depends(get_category_scope),
    base_url: str = Depends(get_base_url),
    db: AsyncSession = Depends(get_session),
):
    """
    Mark a complaint resolved or viewed.

    - **id**: complaint ID
    - **status**: "resolved" or "viewed" (case-insensitive)
    """
    complaint = await ComplaintService.update_status(
        db=db,
        descriptor=descriptor,
        scope=scope,
        complaint_id=body.id,
        status=body.status,
        base_url=base_url,
    )
    return ComplaintResponse(complaint=complaint)


@router.put("/remarks/{category}", response_model=ComplaintResponse)
async def update_remarks(
    complaint_id: Optional[str] = Form(None, alias="id"),
    admin_remarks: Optional[str] = Form(None, alias="AdminRemarks"),
    attachments: List[UploadFile] = File(default=[]),
    descriptor: CategoryDescriptor = Depends(get_category_descriptor),
    scope: RoleScope = Depends(get_category_scope),
    base_url: str = Depends(get_base_url),
    db: AsyncSession = Depends(get_session),
):
    """
    Set administrator remarks and attachments (multipart form).

    - **id**: complaint ID
    - **AdminRemarks**: remark text
    - **attachments**: up to 5 JPEG, PNG or PDF files
    """
    complaint = await ComplaintService.update_remarks(
        db=db,
        descriptor=descriptor,
        scope=scope,
        complaint_id=complaint_id,
        remarks=admin_remarks,
        files=attachments,
        base_url=base_url,
    )
    return ComplaintResponse(complaint=complaint)
