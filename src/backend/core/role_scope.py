"""
Role scope resolution.

Maps an administrator role to the visibility it has over a complaint
category. The result is a tagged value: Unrestricted, or RestrictedTo a
single scoping key. Downstream code receives only this value, never the
raw role string.
"""

import logging
from dataclasses import dataclass
from typing import Dict, Iterable, Mapping, Optional, Union

from core.exceptions import AuthorizationError
from db.categories import CATEGORIES, CategoryDescriptor

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Unrestricted:
    """Sees every record of the category."""

    def allows(self, key: Optional[str]) -> bool:
        return True


@dataclass(frozen=True)
class RestrictedTo:
    """Sees only records whose scoping key equals ``key``."""

    key: str

    def allows(self, key: Optional[str]) -> bool:
        return key == self.key


RoleScope = Union[Unrestricted, RestrictedTo]

UNRESTRICTED = Unrestricted()


class RoleScopeResolver:
    """Resolve roles to scopes against the category descriptor table."""

    def __init__(self, super_role: str, role_aliases: Optional[Mapping[str, str]] = None):
        self.super_role = super_role
        self.role_aliases: Dict[str, str] = dict(role_aliases or {})

    def canonical_role(self, role: str) -> str:
        role = (role or "").strip()
        return self.role_aliases.get(role, role)

    def resolve(self, role: str, descriptor: CategoryDescriptor) -> RoleScope:
        """
        Resolve the scope a role has over one category.

        Raises:
            AuthorizationError: If the role has no access to the category
        """
        role = self.canonical_role(role)
        if role == self.super_role or role in descriptor.unrestricted_roles:
            return UNRESTRICTED

        key = descriptor.restricted_key_for(role)
        if key is not None:
            return RestrictedTo(key)

        logger.info(f"Role '{role}' denied access to category '{descriptor.name}'")
        raise AuthorizationError()

    def resolve_all(
        self, role: str, descriptors: Optional[Iterable[CategoryDescriptor]] = None
    ) -> Dict[str, RoleScope]:
        """
        Resolve the scope a role has over every category it can see.

        Categories the role cannot see are absent from the result.

        Raises:
            AuthorizationError: If the role can see no category at all
        """
        scopes: Dict[str, RoleScope] = {}
        for descriptor in descriptors or CATEGORIES.values():
            try:
                scopes[descriptor.name] = self.resolve(role, descriptor)
            except AuthorizationError:
                continue

        if not scopes:
            raise AuthorizationError()
        return scopes
