"""Domain records for users, organizations, memberships and work items."""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Iterable, Mapping, Optional, Type, TypeVar

from .errors import ValidationError

_IDENTIFIER_PATTERN = re.compile(
    r"^[0-9a-fA-F]{8}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{12}$"
)

_E = TypeVar("_E", bound=Enum)


class MembershipRole(str, Enum):
    ADMIN = "ADMIN"
    ORGANIZER = "ORGANIZER"
    MEMBER = "MEMBER"


class MembershipStatus(str, Enum):
    ACTIVE = "ACTIVE"
    INACTIVE = "INACTIVE"


class MicroTaskStatus(str, Enum):
    """Lifecycle of a micro task."""

    OPEN = "OPEN"
    ASSIGNED = "ASSIGNED"
    DONE = "DONE"


def is_identifier(value: object) -> bool:
    """Return ``True`` when *value* is a UUID-shaped identifier string."""

    return isinstance(value, str) and _IDENTIFIER_PATTERN.fullmatch(value) is not None


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def serialize_datetime(value: datetime) -> str:
    return value.isoformat()


def parse_datetime(value: object, *, field: str) -> datetime:
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str):
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError as exc:
            raise ValidationError(f"{field} is not an ISO-8601 timestamp: {value!r}") from exc
    else:
        raise ValidationError(f"{field} must be an ISO-8601 timestamp")
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def parse_enum(enum_type: Type[_E], value: object, *, field: str) -> _E:
    if isinstance(value, enum_type):
        return value
    try:
        return enum_type(value)
    except ValueError as exc:
        allowed = ", ".join(member.value for member in enum_type)
        raise ValidationError(f"{field} must be one of {allowed}; got {value!r}") from exc


def _require(data: Mapping[str, Any], fields: Iterable[str], kind: str) -> None:
    missing = set(fields) - data.keys()
    if missing:
        raise ValidationError(f"{kind} record is missing fields: {', '.join(sorted(missing))}")


def _optional_datetime(value: object, *, field: str) -> Optional[datetime]:
    if value is None:
        return None
    return parse_datetime(value, field=field)


def _optional_text(value: object) -> Optional[str]:
    return None if value is None else str(value)


@dataclass(frozen=True)
class User:
    """A person who can sign in and belong to organizations."""

    id: str
    email: str
    display_name: Optional[str]
    created_at: datetime
    updated_at: datetime

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "email": self.email,
            "displayName": self.display_name,
            "createdAt": serialize_datetime(self.created_at),
            "updatedAt": serialize_datetime(self.updated_at),
        }

    @staticmethod
    def from_dict(data: Mapping[str, Any]) -> "User":
        _require(data, {"id", "email", "createdAt", "updatedAt"}, "User")
        return User(
            id=str(data["id"]),
            email=str(data["email"]),
            display_name=_optional_text(data.get("displayName")),
            created_at=parse_datetime(data["createdAt"], field="createdAt"),
            updated_at=parse_datetime(data["updatedAt"], field="updatedAt"),
        )


@dataclass(frozen=True)
class Organization:
    """A tenant; every task and micro task is scoped to exactly one."""

    id: str
    name: str
    created_at: datetime
    updated_at: datetime

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "createdAt": serialize_datetime(self.created_at),
            "updatedAt": serialize_datetime(self.updated_at),
        }

    @staticmethod
    def from_dict(data: Mapping[str, Any]) -> "Organization":
        _require(data, {"id", "name", "createdAt", "updatedAt"}, "Organization")
        return Organization(
            id=str(data["id"]),
            name=str(data["name"]),
            created_at=parse_datetime(data["createdAt"], field="createdAt"),
            updated_at=parse_datetime(data["updatedAt"], field="updatedAt"),
        )


@dataclass(frozen=True)
class Membership:
    """Edge between a user and an organization carrying role and status."""

    id: str
    user_id: str
    organization_id: str
    role: MembershipRole
    status: MembershipStatus
    created_at: datetime
    updated_at: datetime

    @property
    def is_active(self) -> bool:
        return self.status is MembershipStatus.ACTIVE

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "userId": self.user_id,
            "organizationId": self.organization_id,
            "role": self.role.value,
            "status": self.status.value,
            "createdAt": serialize_datetime(self.created_at),
            "updatedAt": serialize_datetime(self.updated_at),
        }

    @staticmethod
    def from_dict(data: Mapping[str, Any]) -> "Membership":
        _require(
            data,
            {"id", "userId", "organizationId", "role", "status", "createdAt", "updatedAt"},
            "Membership",
        )
        return Membership(
            id=str(data["id"]),
            user_id=str(data["userId"]),
            organization_id=str(data["organizationId"]),
            role=parse_enum(MembershipRole, data["role"], field="role"),
            status=parse_enum(MembershipStatus, data["status"], field="status"),
            created_at=parse_datetime(data["createdAt"], field="createdAt"),
            updated_at=parse_datetime(data["updatedAt"], field="updatedAt"),
        )


@dataclass(frozen=True)
class Task:
    id: str
    organization_id: str
    title: str
    description: Optional[str]
    created_at: datetime
    updated_at: datetime

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "organizationId": self.organization_id,
            "title": self.title,
            "description": self.description,
            "createdAt": serialize_datetime(self.created_at),
            "updatedAt": serialize_datetime(self.updated_at),
        }

    @staticmethod
    def from_dict(data: Mapping[str, Any]) -> "Task":
        _require(data, {"id", "organizationId", "title", "createdAt", "updatedAt"}, "Task")
        return Task(
            id=str(data["id"]),
            organization_id=str(data["organizationId"]),
            title=str(data["title"]),
            description=_optional_text(data.get("description")),
            created_at=parse_datetime(data["createdAt"], field="createdAt"),
            updated_at=parse_datetime(data["updatedAt"], field="updatedAt"),
        )


@dataclass(frozen=True)
class MicroTask:
    """Leaf work item belonging to a task within the same organization."""

    id: str
    organization_id: str
    task_id: str
    title: str
    description: Optional[str]
    status: MicroTaskStatus
    assigned_user_id: Optional[str]
    due_at: Optional[datetime]
    created_at: datetime
    updated_at: datetime

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "organizationId": self.organization_id,
            "taskId": self.task_id,
            "title": self.title,
            "description": self.description,
            "status": self.status.value,
            "assignedUserId": self.assigned_user_id,
            "dueAt": serialize_datetime(self.due_at) if self.due_at is not None else None,
            "createdAt": serialize_datetime(self.created_at),
            "updatedAt": serialize_datetime(self.updated_at),
        }

    @staticmethod
    def from_dict(data: Mapping[str, Any]) -> "MicroTask":
        _require(
            data,
            {"id", "organizationId", "taskId", "title", "status", "createdAt", "updatedAt"},
            "MicroTask",
        )
        return MicroTask(
            id=str(data["id"]),
            organization_id=str(data["organizationId"]),
            task_id=str(data["taskId"]),
            title=str(data["title"]),
            description=_optional_text(data.get("description")),
            status=parse_enum(MicroTaskStatus, data["status"], field="status"),
            assigned_user_id=_optional_text(data.get("assignedUserId")),
            due_at=_optional_datetime(data.get("dueAt"), field="dueAt"),
            created_at=parse_datetime(data["createdAt"], field="createdAt"),
            updated_at=parse_datetime(data["updatedAt"], field="updatedAt"),
        )


__all__ = [
    "Membership",
    "MembershipRole",
    "MembershipStatus",
    "MicroTask",
    "MicroTaskStatus",
    "Organization",
    "Task",
    "User",
    "is_identifier",
    "parse_datetime",
    "parse_enum",
    "serialize_datetime",
    "utcnow",
]
