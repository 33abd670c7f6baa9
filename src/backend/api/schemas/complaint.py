"""
Complaint schemas for API validation and serialization.
"""
from datetime import datetime
from typing import Dict, List, Optional
from uuid import UUID

from pydantic import AliasChoices, Field

from core.schema_base import HTTPSchemaModel


class ComplaintFilter(HTTPSchemaModel):
    """
    Normalized list filters.

    Built per request by services.filter_service.normalize_filters; every
    field has already been validated when this model exists.
    """
    start_date: datetime
    end_date: datetime
    complaint_type: Optional[str] = None
    status: Optional[str] = None
    read_status: Optional[str] = None
    scope_key: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices(
            "scopeKey", "scope_key", "hostelNumber", "department"
        ),
    )
    scholar_numbers: List[str] = Field(default_factory=list)


class AttachmentLink(HTTPSchemaModel):
    url: str


class ComplaintRead(HTTPSchemaModel):
    """Schema for reading a complaint of any category."""
    id: UUID
    category: str
    created_at: datetime
    updated_at: Optional[datetime] = None
    scholar_number: str
    student_name: str = ""
    complain_type: str = ""
    complain_description: str = ""
    status: str
    read_status: str
    resolved_at: Optional[datetime] = None
    attachments: List[AttachmentLink] = Field(default_factory=list)
    admin_attachments: List[AttachmentLink] = Field(default_factory=list)
    admin_remarks: Optional[str] = None

    # Scoping and family-specific columns; absent on families without them
    hostel_number: Optional[str] = None
    department: Optional[str] = None
    stream: Optional[str] = None
    year: Optional[str] = None
    room_number: Optional[str] = None


class ComplaintPage(HTTPSchemaModel):
    """One keyset page. next_last_seen_id is set only when the page is full."""
    complaints: List[ComplaintRead]
    next_last_seen_id: Optional[UUID] = None


class ComplaintResponse(HTTPSchemaModel):
    success: bool = True
    complaint: ComplaintRead


class StatusUpdate(HTTPSchemaModel):
    """Body of PUT /status/{category}. Status is matched case-insensitively."""
    id: str = Field(..., min_length=1)
    status: str = Field(..., min_length=1)


class AggregateStats(HTTPSchemaModel):
    """Counters over the records visible to one scope."""
    total_complaints: int = Field(default=0, ge=0)
    resolved_complaints: int = Field(default=0, ge=0)
    unresolved_complaints: int = Field(default=0, ge=0)
    viewed_complaints: int = Field(default=0, ge=0)
    not_viewed_complaints: int = Field(default=0, ge=0)

    model_config = {"frozen": True}

    @classmethod
    def zero(cls) -> "AggregateStats":
        return cls()


class StatsResponse(AggregateStats):
    success: bool = True


class CategoryAnalytics(HTTPSchemaModel):
    """Dashboard entry for one category."""
    category: str
    stats: AggregateStats
    by_scope_key: Dict[str, AggregateStats] = Field(default_factory=dict)


class ResolutionSnapshot(HTTPSchemaModel):
    """Resolution rate across every category the caller can see."""
    total_complaints: int = 0
    resolved_complaints: int = 0
    resolution_rate: float = 0.0


class DashboardSnapshot(HTTPSchemaModel):
    success: bool = True
    resolution: ResolutionSnapshot
    analytics: List[CategoryAnalytics]
