"""
Domain exception taxonomy.

Every error that can reach a client is one of these. The app factory maps
them to structured JSON responses:

    {"success": false, "status": "error", "message": "..."}
"""

from typing import Optional


class PortalError(Exception):
    """Base class for all complaint portal errors."""

    status_code: int = 500
    default_message: str = "Internal Server Error"
    retriable: bool = False
    retry_after: int = 0

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message
        super().__init__(self.message)

    def to_dict(self) -> dict:
        return self.to_dict_for(self.message)

    @staticmethod
    def to_dict_for(message: str) -> dict:
        return {"success": False, "status": "error", "message": message}


class ValidationError(PortalError):
    """Malformed filter, date, cursor, status or category."""

    status_code = 400
    default_message = "Invalid request"


class AuthenticationError(PortalError):
    """Missing, expired or tampered identity/role tokens."""

    status_code = 401
    default_message = "Authentication required"


class AuthorizationError(PortalError):
    """Role outside its scope, or scope mismatch on a write target."""

    status_code = 403
    default_message = "Unauthorized access"


class NotFoundError(PortalError):
    status_code = 404
    default_message = "Complaint not found"


class UnavailableError(PortalError):
    """Store operation exceeded its time bound. Safe to retry."""

    status_code = 503
    default_message = (
        "Database operation timed out. Please try with more specific filters."
    )
    retriable = True
    retry_after = 5


class InternalError(PortalError):
    """Unclassified failure. Details are logged, never returned."""

    status_code = 500
    default_message = "Internal Server Error"
