"""Exception hierarchy shared by the store, token service and HTTP layer."""

from __future__ import annotations


class PinkyError(Exception):
    """Base class for all errors raised by the task tracker core."""


class ValidationError(PinkyError, ValueError):
    """Raised when input does not have the expected shape."""


class NotFoundError(PinkyError, LookupError):
    """Raised when a referenced entity does not exist."""


class TaskNotFoundError(NotFoundError):
    """Raised when a micro task references an unknown task."""

    def __init__(self, task_id: str) -> None:
        super().__init__(f"Task {task_id!r} not found")
        self.task_id = task_id


class OrganizationNotFoundError(NotFoundError):
    """Raised when a task references an unknown organization."""

    def __init__(self, organization_id: str) -> None:
        super().__init__(f"Organization {organization_id!r} not found")
        self.organization_id = organization_id


class ReferentialIntegrityError(PinkyError):
    """Raised when a write would break a cross-entity invariant."""


class OrganizationMismatchError(ReferentialIntegrityError):
    """Raised when a micro task and its task belong to different organizations."""

    def __init__(self, task_id: str, expected: str, actual: str) -> None:
        super().__init__(
            f"Task {task_id!r} belongs to organization {actual!r}, not {expected!r}"
        )
        self.task_id = task_id
        self.expected_organization_id = expected
        self.actual_organization_id = actual


class TokenInvalid(PinkyError):
    """Raised internally by the token service; never escapes ``verify``."""


__all__ = [
    "PinkyError",
    "ValidationError",
    "NotFoundError",
    "TaskNotFoundError",
    "OrganizationNotFoundError",
    "ReferentialIntegrityError",
    "OrganizationMismatchError",
    "TokenInvalid",
]
