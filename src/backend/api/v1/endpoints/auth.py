"""
Administrator authentication endpoints.

Login resolves credentials through the identity provider chosen at startup
and issues two signed, HTTP-only cookies: the identity token and the role
token. Logout clears both.
"""

import logging

from fastapi import APIRouter, Request, Response
from slowapi import Limiter
from slowapi.util import get_remote_address

from api.schemas.login import LoginRequest, LoginResponse, LogoutResponse
from core.config import settings
from core.exceptions import AuthenticationError, ValidationError
from core.security import create_identity_token, create_role_token
from services.identity_service import IdentityProvider

logger = logging.getLogger(__name__)

# Rate limiter for login attempts
limiter = Limiter(key_func=get_remote_address)

router = APIRouter()


def _set_auth_cookie(response: Response, name: str, value: str) -> None:
    response.set_cookie(
        key=name,
        value=value,
        httponly=True,
        secure=settings.security.cookie_secure,
        samesite=settings.security.cookie_samesite,
        max_age=settings.security.access_token_expire_hours * 3600,
    )


@router.post("/login", response_model=LoginResponse)
@limiter.limit(settings.rate_limit.login)
async def login(
    request: Request,  # Must be present for the rate limiter
    response: Response,
    credentials: LoginRequest,
) -> LoginResponse:
    """
    Authenticate an administrator.

    - **username**, **password**: directory or configured credentials

    Sets the identity and role cookies on success.
    """
    if not credentials.username or not credentials.password:
        raise ValidationError("Username and password are required")

    provider: IdentityProvider = request.app.state.identity_provider
    identity = await provider.authenticate(credentials.username, credentials.password)
    if identity is None:
        raise AuthenticationError("Invalid Username or Password")

    _set_auth_cookie(
        response,
        settings.security.identity_cookie_name,
        create_identity_token(identity.username),
    )
    _set_auth_cookie(
        response,
        settings.security.role_cookie_name,
        create_role_token(identity.role),
    )

    logger.info(f"Administrator {identity.username} logged in as {identity.role}")
    return LoginResponse(role=identity.role)


@router.post("/logout", response_model=LogoutResponse)
async def logout(response: Response) -> LogoutResponse:
    """Clear both authentication cookies."""
    for name in (
        settings.security.identity_cookie_name,
        settings.security.role_cookie_name,
    ):
        response.delete_cookie(
            key=name,
            httponly=True,
            secure=settings.security.cookie_secure,
            samesite=settings.security.cookie_samesite,
        )
    return LogoutResponse()
