"""
Authentication and authorization dependencies for FastAPI.

Administrators authenticate with two signed cookies: the identity token and
the role token. Both must decode; the role is then resolved against the
category descriptor table into a RoleScope, which is all downstream code
ever sees.
"""

import logging
from dataclasses import dataclass
from functools import lru_cache
from typing import Dict, Mapping

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import async_sessionmaker

from core.config import settings
from core.database import get_session_factory
from core.exceptions import AuthenticationError
from core.role_scope import RoleScope, RoleScopeResolver
from core.security import SecurityError, get_role_from_token, get_username_from_token
from db.categories import CategoryDescriptor, get_category
from services.dashboard_service import DashboardService

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CurrentAdmin:
    """Decoded cookie pair of the calling administrator."""

    username: str
    role: str


def authenticate_cookies(cookies: Mapping[str, str]) -> CurrentAdmin:
    """
    Decode the identity and role cookies.

    Raises:
        AuthenticationError: If either token is missing, expired or invalid
    """
    identity_token = cookies.get(settings.security.identity_cookie_name)
    role_token = cookies.get(settings.security.role_cookie_name)
    if not identity_token or not role_token:
        raise AuthenticationError("Not authorized, no token")

    try:
        username = get_username_from_token(identity_token)
        role = get_role_from_token(role_token)
    except SecurityError as e:
        logger.info(f"Rejected admin tokens: {e}")
        raise AuthenticationError("Invalid or expired token")

    return CurrentAdmin(username=username, role=role)


async def get_current_admin(request: Request) -> CurrentAdmin:
    """Get the calling administrator from the request cookies."""
    return authenticate_cookies(request.cookies)


@lru_cache
def get_scope_resolver() -> RoleScopeResolver:
    return RoleScopeResolver(
        super_role=settings.auth.super_role,
        role_aliases=settings.auth.role_aliases,
    )


def get_category_descriptor(category: str) -> CategoryDescriptor:
    """Path parameter dependency; raises ValidationError for unknown categories."""
    return get_category(category)


async def get_category_scope(
    descriptor: CategoryDescriptor = Depends(get_category_descriptor),
    admin: CurrentAdmin = Depends(get_current_admin),
    resolver: RoleScopeResolver = Depends(get_scope_resolver),
) -> RoleScope:
    """Scope of the caller over the category named in the path."""
    return resolver.resolve(admin.role, descriptor)


async def get_all_scopes(
    admin: CurrentAdmin = Depends(get_current_admin),
    resolver: RoleScopeResolver = Depends(get_scope_resolver),
) -> Dict[str, RoleScope]:
    """Scopes of the caller over every category it may see."""
    return resolver.resolve_all(admin.role)


def get_snapshot_provider(
    session_factory: async_sessionmaker = Depends(get_session_factory),
) -> DashboardService:
    return DashboardService(session_factory)


def get_base_url(request: Request) -> str:
    """Scheme and host used to build attachment links."""
    return f"{request.url.scheme}://{request.headers.get('host', request.url.netloc)}"
