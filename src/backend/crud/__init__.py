"""
CRUD layer for database operations.

This package contains all data access logic isolated from business logic.
One class-based CRUD serves every complaint category through its descriptor.
"""

from .complaint_crud import ComplaintCRUD

__all__ = ["ComplaintCRUD"]
