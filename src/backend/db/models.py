"""
Complaint database models.

Every complaint family lives in its own table. All of them share the
columns of ComplaintBase and differ only in the scoping key column
(hostel_number or department) that partitions records among restricted
administrator roles.
"""

from datetime import datetime, timezone
from typing import List, Optional
from uuid import UUID, uuid4

from sqlalchemy import JSON, DateTime, Index, Text
from sqlmodel import Field, SQLModel

STATUS_PENDING = "Pending"
STATUS_RESOLVED = "Resolved"
READ_STATUS_NOT_VIEWED = "Not viewed"
READ_STATUS_VIEWED = "Viewed"

COMPLAINT_STATUSES = (STATUS_PENDING, STATUS_RESOLVED)
READ_STATUSES = (READ_STATUS_NOT_VIEWED, READ_STATUS_VIEWED)


def utc_now() -> datetime:
    """
    Current time in UTC, timezone-naive, for database storage.

    All timestamps are stored as naive UTC; the API layer adds the 'Z'
    suffix on the way out.
    """
    return datetime.now(timezone.utc).replace(tzinfo=None)


class TableModel(SQLModel):
    """Base table model with common functionality."""

    pass


class ComplaintBase(TableModel):
    """Columns shared by every complaint family."""

    id: Optional[UUID] = Field(
        default_factory=uuid4,
        primary_key=True,
        nullable=False,
        description="Store-assigned opaque identifier",
    )
    created_at: datetime = Field(
        default_factory=utc_now,
        sa_type=DateTime,
        nullable=False,
        description="Creation timestamp; with id forms the pagination cursor",
    )
    updated_at: datetime = Field(
        default_factory=utc_now, sa_type=DateTime, nullable=False
    )
    scholar_number: str = Field(max_length=10, index=True)
    student_name: str = Field(default="", max_length=200)
    complain_type: str = Field(default="", max_length=100, index=True)
    complain_description: str = Field(default="", sa_type=Text)
    status: str = Field(default=STATUS_PENDING, max_length=20, index=True)
    read_status: str = Field(default=READ_STATUS_NOT_VIEWED, max_length=20)
    resolved_at: Optional[datetime] = Field(default=None, sa_type=DateTime)
    attachments: List[str] = Field(default_factory=list, sa_type=JSON)
    admin_attachments: List[str] = Field(default_factory=list, sa_type=JSON)
    admin_remarks: Optional[str] = Field(default=None, sa_type=Text)


class HostelComplaint(ComplaintBase, table=True):
    __tablename__ = "hostel_complaints"
    __table_args__ = (
        Index("ix_hostel_complaints_cursor", "created_at", "id"),
    )

    hostel_number: str = Field(max_length=10, index=True)


class AcademicComplaint(ComplaintBase, table=True):
    __tablename__ = "academic_complaints"
    __table_args__ = (
        Index("ix_academic_complaints_cursor", "created_at", "id"),
    )

    department: str = Field(default="", max_length=100, index=True)
    stream: Optional[str] = Field(default=None, max_length=100)
    year: Optional[str] = Field(default=None, max_length=10)


class MedicalComplaint(ComplaintBase, table=True):
    __tablename__ = "medical_complaints"
    __table_args__ = (
        Index("ix_medical_complaints_cursor", "created_at", "id"),
    )

    hostel_number: str = Field(default="", max_length=10, index=True)


class InfrastructureComplaint(ComplaintBase, table=True):
    __tablename__ = "infrastructure_complaints"
    __table_args__ = (
        Index("ix_infrastructure_complaints_cursor", "created_at", "id"),
    )

    department: str = Field(default="", max_length=100, index=True)
    room_number: Optional[str] = Field(default=None, max_length=20)


class AdministrationComplaint(ComplaintBase, table=True):
    __tablename__ = "administration_complaints"
    __table_args__ = (
        Index("ix_administration_complaints_cursor", "created_at", "id"),
    )

    department: str = Field(default="", max_length=100, index=True)


class RaggingComplaint(ComplaintBase, table=True):
    __tablename__ = "ragging_complaints"
    __table_args__ = (
        Index("ix_ragging_complaints_cursor", "created_at", "id"),
    )

    hostel_number: str = Field(default="", max_length=10, index=True)
