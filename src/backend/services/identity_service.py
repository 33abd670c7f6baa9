"""
Identity resolution strategies for administrator login.

Two providers share one interface, and the app picks one at startup from
settings:

- FixedCredentialIdentityProvider: in-memory credentials (development/tests)
- DirectoryBindIdentityProvider: LDAP simple bind via ldap3; the role comes
  from the configured username -> role map

Uses ldap3 with async support via asyncio.to_thread()
"""

import asyncio
import logging
import secrets
from dataclasses import dataclass
from typing import Dict, Mapping, Optional

from ldap3 import Connection, Server
from ldap3.core.exceptions import LDAPBindError, LDAPException, LDAPSocketOpenError
from ldap3.utils.dn import escape_rdn

from core.config import Settings

# Module-level logger
logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Identity:
    username: str
    role: str


class IdentityProvider:
    """Base strategy: resolve credentials to an Identity, or None on failure."""

    name = "base"

    async def authenticate(self, username: str, password: str) -> Optional[Identity]:
        raise NotImplementedError


class FixedCredentialIdentityProvider(IdentityProvider):
    """Credentials held in configuration: username -> {password, role}."""

    name = "fixed"

    def __init__(self, credentials: Mapping[str, Mapping[str, str]]):
        self.credentials: Dict[str, Dict[str, str]] = {
            user: dict(entry) for user, entry in credentials.items()
        }

    async def authenticate(self, username: str, password: str) -> Optional[Identity]:
        entry = self.credentials.get(username)
        if not entry or not entry.get("role"):
            return None
        if not secrets.compare_digest(entry.get("password", ""), password or ""):
            return None
        return Identity(username=username, role=entry["role"])


class DirectoryBindIdentityProvider(IdentityProvider):
    """Bind as cn=<username>,<base_dn>; success plus a mapped role is an Identity."""

    name = "directory"

    def __init__(
        self,
        url: str,
        base_dn: str,
        user_roles: Mapping[str, str],
        use_ssl: bool = False,
        connect_timeout: int = 5,
        receive_timeout: int = 10,
    ):
        self.base_dn = base_dn
        self.user_roles = dict(user_roles)
        self.receive_timeout = receive_timeout

        logger.debug(f"Initializing LDAP server: {url}")
        self.server = Server(url, use_ssl=use_ssl, connect_timeout=connect_timeout)

    def user_dn(self, username: str) -> str:
        return f"cn={escape_rdn(username)},{self.base_dn}"

    async def authenticate(self, username: str, password: str) -> Optional[Identity]:
        if not username or not password:
            return None

        def _bind() -> bool:
            try:
                conn = Connection(
                    self.server,
                    user=self.user_dn(username),
                    password=password,
                    auto_bind=True,
                    receive_timeout=self.receive_timeout,
                )
                conn.unbind()
                return True
            except (LDAPBindError, LDAPSocketOpenError) as e:
                logger.debug(f"Directory bind failed: {e}")
                return False
            except LDAPException as e:
                logger.error(f"Directory error during bind for {username}: {e}")
                return False

        if not await asyncio.to_thread(_bind):
            logger.warning(f"Authentication failed for user {username}")
            return None

        role = self.user_roles.get(username)
        if not role:
            logger.warning(f"User {username} authenticated but has no administrator role")
            return None

        logger.info(f"Successfully authenticated user: {username}")
        return Identity(username=username, role=role)


def build_identity_provider(settings: Settings) -> IdentityProvider:
    """Choose the identity strategy from settings. Called once at startup."""
    if settings.auth.identity_provider == "fixed":
        return FixedCredentialIdentityProvider(settings.auth.fixed_credentials)

    ad = settings.active_directory
    return DirectoryBindIdentityProvider(
        url=ad.url,
        base_dn=ad.base_dn,
        user_roles=ad.user_roles,
        use_ssl=ad.use_ssl,
        connect_timeout=ad.connect_timeout,
        receive_timeout=ad.receive_timeout,
    )
