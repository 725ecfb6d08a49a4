"""
Roles as a tagged variant.

A signed-in user is represented either as an ``Administrator`` or an
``Employee``. Each variant carries the fixed set of capabilities its role may
exercise; services check capabilities instead of comparing role strings.
"""

import enum
import re
import uuid
from dataclasses import dataclass
from typing import ClassVar


class Role(str, enum.Enum):
    ADMIN = "admin"
    EMPLOYEE = "employee"


class Capability(str, enum.Enum):
    MANAGE_ROSTER = "manage_roster"
    DECIDE_LEAVE = "decide_leave"
    VIEW_COMPANY_LEAVES = "view_company_leaves"
    VIEW_COMPANY_STATS = "view_company_stats"
    REQUEST_LEAVE = "request_leave"
    TRACK_DUTY = "track_duty"
    VIEW_OWN_STATS = "view_own_stats"


_WHITESPACE = re.compile(r"\s+")


def normalize_company_key(company_name: str | None) -> str:
    """Case-insensitive identifier for a company name ("  Acme  Corp" -> "acme corp")."""
    if not company_name:
        return ""
    return _WHITESPACE.sub(" ", company_name).strip().lower()


@dataclass(frozen=True)
class Subject:
    id: uuid.UUID
    email: str
    full_name: str | None
    company_name: str | None
    company_key: str
    department: str | None = None

    role: ClassVar[Role]
    capabilities: ClassVar[frozenset[Capability]]

    def can(self, capability: Capability) -> bool:
        return capability in self.capabilities

    @property
    def display_name(self) -> str:
        return self.full_name or self.email


@dataclass(frozen=True)
class Administrator(Subject):
    role: ClassVar[Role] = Role.ADMIN
    capabilities: ClassVar[frozenset[Capability]] = frozenset(
        {
            Capability.MANAGE_ROSTER,
            Capability.DECIDE_LEAVE,
            Capability.VIEW_COMPANY_LEAVES,
            Capability.VIEW_COMPANY_STATS,
            Capability.VIEW_OWN_STATS,
        }
    )


@dataclass(frozen=True)
class Employee(Subject):
    role: ClassVar[Role] = Role.EMPLOYEE
    capabilities: ClassVar[frozenset[Capability]] = frozenset(
        {
            Capability.REQUEST_LEAVE,
            Capability.TRACK_DUTY,
            Capability.VIEW_OWN_STATS,
        }
    )


_VARIANTS: dict[Role, type[Subject]] = {
    Role.ADMIN: Administrator,
    Role.EMPLOYEE: Employee,
}


def subject_from_user(user) -> Subject:
    """Build the role variant for a ``dutytrack.db.models.User`` row."""
    variant = _VARIANTS[Role(user.role)]
    return variant(
        id=user.id,
        email=user.email,
        full_name=user.full_name,
        company_name=user.company_name,
        company_key=user.company_key or normalize_company_key(user.company_name),
        department=user.department,
    )
