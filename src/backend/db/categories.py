"""
Category descriptor table.

One generic query/stats engine serves every complaint family. Each family
is described by a CategoryDescriptor: the table model, the scoping key
column, which roles see everything, which roles are pinned to a single
scoping key, and which transition stamps resolved_at.
"""

import re
from dataclasses import dataclass, field
from typing import Dict, FrozenSet, List, Optional, Pattern, Tuple, Type

from core.exceptions import ValidationError
from db.models import (
    AcademicComplaint,
    AdministrationComplaint,
    ComplaintBase,
    HostelComplaint,
    InfrastructureComplaint,
    MedicalComplaint,
    RaggingComplaint,
)

RESOLVED_AT_ON_RESOLVED = "resolved"
RESOLVED_AT_ON_VIEWED = "viewed"

# Columns every family projects
COMMON_FIELDS: Tuple[str, ...] = (
    "id",
    "created_at",
    "updated_at",
    "scholar_number",
    "student_name",
    "complain_type",
    "complain_description",
    "status",
    "read_status",
    "resolved_at",
    "attachments",
    "admin_attachments",
    "admin_remarks",
)


@dataclass(frozen=True)
class CategoryDescriptor:
    """Static configuration for one complaint family.

    Attributes:
        name: Path parameter value (lowercase)
        label: Human-readable name added to every serialized complaint
        model: SQLModel table class
        scope_field: Column holding the scoping key
        unrestricted_roles: Roles that see every record of this family
        restricted_role_pattern: Roles matching this pattern are pinned to
            the scoping key captured by the ``key`` group
        resolved_at_on: Status transition ("resolved" or "viewed") that
            stamps resolved_at
        extra_fields: Family-specific columns projected after the scoping key
    """

    name: str
    label: str
    model: Type[ComplaintBase]
    scope_field: str
    unrestricted_roles: FrozenSet[str] = frozenset()
    restricted_role_pattern: Optional[Pattern[str]] = None
    resolved_at_on: str = RESOLVED_AT_ON_RESOLVED
    extra_fields: List[str] = field(default_factory=list)

    @property
    def scope_column(self):
        return getattr(self.model, self.scope_field)

    @property
    def projection(self) -> Tuple[str, ...]:
        """Columns serialized for complaints of this family."""
        return COMMON_FIELDS + (self.scope_field, *self.extra_fields)

    @property
    def stats_event(self) -> str:
        """Client request event name on the realtime channel."""
        return f"{self.name}Stats"

    @property
    def stats_reply_event(self) -> str:
        """Server reply event name on the realtime channel."""
        return f"set{self.name}Stats"

    def restricted_key_for(self, role: str) -> Optional[str]:
        """Return the scoping key a role is pinned to, or None."""
        if self.restricted_role_pattern is None:
            return None
        match = self.restricted_role_pattern.fullmatch(role)
        if not match:
            return None
        return match.group("key")


CATEGORIES: Dict[str, CategoryDescriptor] = {
    descriptor.name: descriptor
    for descriptor in (
        CategoryDescriptor(
            name="hostel",
            label="Hostel",
            model=HostelComplaint,
            scope_field="hostel_number",
            unrestricted_roles=frozenset({"cow"}),
            restricted_role_pattern=re.compile(r"(?P<key>H[1-9]\d*)"),
        ),
        CategoryDescriptor(
            name="academic",
            label="Academic",
            model=AcademicComplaint,
            scope_field="department",
            unrestricted_roles=frozenset({"academic"}),
            resolved_at_on=RESOLVED_AT_ON_VIEWED,
            extra_fields=["stream", "year"],
        ),
        CategoryDescriptor(
            name="medical",
            label="Medical",
            model=MedicalComplaint,
            scope_field="hostel_number",
            unrestricted_roles=frozenset({"medical"}),
        ),
        CategoryDescriptor(
            name="infrastructure",
            label="Infrastructure",
            model=InfrastructureComplaint,
            scope_field="department",
            unrestricted_roles=frozenset({"infrastructure"}),
            restricted_role_pattern=re.compile(r"(?P<key>electric|internet)"),
            extra_fields=["room_number"],
        ),
        CategoryDescriptor(
            name="administration",
            label="Administration",
            model=AdministrationComplaint,
            scope_field="department",
            unrestricted_roles=frozenset({"administration"}),
        ),
        CategoryDescriptor(
            name="ragging",
            label="Ragging",
            model=RaggingComplaint,
            scope_field="hostel_number",
            unrestricted_roles=frozenset({"ragging"}),
        ),
    )
}


def get_category(name: Optional[str]) -> CategoryDescriptor:
    """
    Look up a category descriptor by path parameter.

    Raises:
        ValidationError: If the category is unknown
    """
    descriptor = CATEGORIES.get((name or "").strip().lower())
    if descriptor is None:
        raise ValidationError("Invalid Category")
    return descriptor
