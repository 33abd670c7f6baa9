"""
Security utilities for JWT token generation and validation.

An authenticated administrator carries two independent signed tokens, each
in its own cookie: the identity token (username) and the role token (role).
Both must decode for any protected operation.
"""

from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional
from uuid import uuid4

import jwt
from jwt.exceptions import ExpiredSignatureError, InvalidTokenError

from core.config import settings

TOKEN_TYPE_IDENTITY = "identity"
TOKEN_TYPE_ROLE = "role"


class SecurityError(Exception):
    """Base exception for security-related errors."""

    pass


class TokenExpiredError(SecurityError):
    """Raised when a token has expired."""

    pass


class TokenInvalidError(SecurityError):
    """Raised when a token is invalid."""

    pass


def _encode(claims: Dict[str, Any], token_type: str, expires_delta: Optional[timedelta]) -> str:
    now = datetime.now(timezone.utc)
    expire = now + (
        expires_delta or timedelta(hours=settings.security.access_token_expire_hours)
    )
    payload = {
        **claims,
        "type": token_type,
        "iat": int(now.timestamp()),
        "exp": int(expire.timestamp()),
        "jti": str(uuid4()),
        "iss": settings.security.jwt_issuer,
        "aud": settings.security.jwt_audience,
    }

    try:
        return jwt.encode(
            payload,
            settings.security.secret_key,
            algorithm=settings.security.algorithm,
        )
    except Exception as e:
        raise SecurityError(f"Failed to create {token_type} token: {str(e)}")


def create_identity_token(username: str, expires_delta: Optional[timedelta] = None) -> str:
    """Create the identity token stored in the identity cookie."""
    return _encode({"username": username}, TOKEN_TYPE_IDENTITY, expires_delta)


def create_role_token(role: str, expires_delta: Optional[timedelta] = None) -> str:
    """Create the role token stored in the role cookie."""
    return _encode({"role": role}, TOKEN_TYPE_ROLE, expires_delta)


def decode_token(token: str, expected_type: Optional[str] = None) -> Dict[str, Any]:
    """Decode and validate a JWT token.

    Args:
        token: JWT token string
        expected_type: If given, the token's "type" claim must match

    Returns:
        Decoded token payload

    Raises:
        TokenExpiredError: If token has expired
        TokenInvalidError: If token is invalid or of the wrong type
    """
    if not token:
        raise TokenInvalidError("Token missing")

    try:
        payload = jwt.decode(
            token,
            settings.security.secret_key,
            algorithms=[settings.security.algorithm],
            audience=settings.security.jwt_audience,
            issuer=settings.security.jwt_issuer,
        )
    except ExpiredSignatureError:
        raise TokenExpiredError("Token has expired")
    except InvalidTokenError as e:
        raise TokenInvalidError(f"Invalid token: {str(e)}")

    if expected_type and payload.get("type") != expected_type:
        raise TokenInvalidError(f"Expected {expected_type} token")
    return payload


def get_username_from_token(token: str) -> str:
    """Decode an identity token and return its username."""
    username = decode_token(token, TOKEN_TYPE_IDENTITY).get("username")
    if not username:
        raise TokenInvalidError("Username missing from token")
    return str(username)


def get_role_from_token(token: str) -> str:
    """Decode a role token and return its role."""
    role = decode_token(token, TOKEN_TYPE_ROLE).get("role")
    if not role:
        raise TokenInvalidError("Role missing from token")
    return str(role)
