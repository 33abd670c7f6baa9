"""
Administrator login schemas.
"""
from typing import Optional

from core.schema_base import HTTPSchemaModel


class LoginRequest(HTTPSchemaModel):
    """Credentials; presence is checked by the endpoint to answer 400."""
    username: Optional[str] = None
    password: Optional[str] = None


class LoginResponse(HTTPSchemaModel):
    success: bool = True
    role: str
    message: str = "User authenticated successfully"


class LogoutResponse(HTTPSchemaModel):
    success: bool = True
    message: str = "Logged out successfully"
