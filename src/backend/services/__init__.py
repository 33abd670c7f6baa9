"""
Business logic services for complaints, stats and the realtime dashboard.
"""
from .complaint_service import ComplaintService
from .dashboard_service import DashboardService
from .stats_service import StatsService
from .upload_service import UploadService

__all__ = [
    "ComplaintService",
    "DashboardService",
    "StatsService",
    "UploadService",
]
