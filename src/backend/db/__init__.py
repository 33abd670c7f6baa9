"""
Database models package.
"""

from db.models import (
    COMPLAINT_STATUSES,
    READ_STATUS_NOT_VIEWED,
    READ_STATUS_VIEWED,
    READ_STATUSES,
    STATUS_PENDING,
    STATUS_RESOLVED,
    AcademicComplaint,
    AdministrationComplaint,
    ComplaintBase,
    HostelComplaint,
    InfrastructureComplaint,
    MedicalComplaint,
    RaggingComplaint,
    TableModel,
    utc_now,
)

__all__ = [
    "COMPLAINT_STATUSES",
    "READ_STATUSES",
    "READ_STATUS_NOT_VIEWED",
    "READ_STATUS_VIEWED",
    "STATUS_PENDING",
    "STATUS_RESOLVED",
    "TableModel",
    "ComplaintBase",
    "HostelComplaint",
    "AcademicComplaint",
    "MedicalComplaint",
    "InfrastructureComplaint",
    "AdministrationComplaint",
    "RaggingComplaint",
    "utc_now",
]
