"""In-memory repository for users, organizations, memberships and work items."""

from __future__ import annotations

import logging
import threading
import uuid
from contextlib import contextmanager
from datetime import datetime
from typing import Any, Callable, Dict, Iterator, List, Mapping, Optional

from .errors import (
    OrganizationMismatchError,
    OrganizationNotFoundError,
    TaskNotFoundError,
    ValidationError,
)
from .models import (
    Membership,
    MembershipRole,
    MembershipStatus,
    MicroTask,
    MicroTaskStatus,
    Organization,
    Task,
    User,
    parse_enum,
    utcnow,
)

logger = logging.getLogger("pinky.store")

Snapshot = Dict[str, List[Dict[str, Any]]]

SNAPSHOT_KEYS = ("users", "organizations", "memberships", "tasks", "microTasks")


def _generate_id() -> str:
    return str(uuid.uuid4())


class EntityStore:
    """Sole owner of every entity record held by the process.

    Records live in insertion-ordered dictionaries keyed by id, with a
    secondary email index for users. A single re-entrant lock covers all
    collections; :meth:`locked` exposes it so callers can make a
    check-then-create sequence atomic.

    The store is deliberately permissive about duplicates: ``create_user``
    does not reject an email that is already registered (the email index is
    last-write-wins) and ``add_membership`` does not reject a second
    membership for the same user and organization. Callers check first.
    """

    def __init__(
        self,
        *,
        clock: Callable[[], datetime] = utcnow,
        id_factory: Callable[[], str] = _generate_id,
    ) -> None:
        self._clock = clock
        self._id_factory = id_factory
        self._lock = threading.RLock()
        self._users: Dict[str, User] = {}
        self._users_by_email: Dict[str, User] = {}
        self._organizations: Dict[str, Organization] = {}
        self._memberships: Dict[str, Membership] = {}
        self._tasks: Dict[str, Task] = {}
        self._micro_tasks: Dict[str, MicroTask] = {}

    @contextmanager
    def locked(self) -> Iterator["EntityStore"]:
        with self._lock:
            yield self

    # ------------------------------------------------------------------
    # Users
    # ------------------------------------------------------------------
    def create_user(self, email: str, display_name: Optional[str] = None) -> User:
        timestamp = self._clock()
        user = User(
            id=self._id_factory(),
            email=email,
            display_name=display_name,
            created_at=timestamp,
            updated_at=timestamp,
        )
        with self._lock:
            self._users[user.id] = user
            self._users_by_email[user.email] = user
        logger.debug("Created user %s", user.id)
        return user

    def get_user_by_email(self, email: str) -> Optional[User]:
        with self._lock:
            return self._users_by_email.get(email)

    def get_user_by_id(self, user_id: str) -> Optional[User]:
        with self._lock:
            return self._users.get(user_id)

    def list_users(self) -> List[User]:
        with self._lock:
            return list(self._users.values())

    # ------------------------------------------------------------------
    # Organizations and memberships
    # ------------------------------------------------------------------
    def create_organization(self, name: str) -> Organization:
        timestamp = self._clock()
        organization = Organization(
            id=self._id_factory(),
            name=name,
            created_at=timestamp,
            updated_at=timestamp,
        )
        with self._lock:
            self._organizations[organization.id] = organization
        logger.debug("Created organization %s", organization.id)
        return organization

    def get_organization_by_id(self, organization_id: str) -> Optional[Organization]:
        with self._lock:
            return self._organizations.get(organization_id)

    def list_organizations(self) -> List[Organization]:
        with self._lock:
            return list(self._organizations.values())

    def add_membership(
        self,
        user_id: str,
        organization_id: str,
        role: MembershipRole | str,
    ) -> Membership:
        timestamp = self._clock()
        membership = Membership(
            id=self._id_factory(),
            user_id=user_id,
            organization_id=organization_id,
            role=parse_enum(MembershipRole, role, field="role"),
            status=MembershipStatus.ACTIVE,
            created_at=timestamp,
            updated_at=timestamp,
        )
        with self._lock:
            self._memberships[membership.id] = membership
        logger.debug(
            "Added %s membership for user %s in organization %s",
            membership.role.value,
            user_id,
            organization_id,
        )
        return membership

    def list_memberships_for_user(self, user_id: str) -> List[Membership]:
        with self._lock:
            return [m for m in self._memberships.values() if m.user_id == user_id]

    def find_membership(self, user_id: str, organization_id: str) -> Optional[Membership]:
        """Return the first membership for the pair, whatever its status."""

        for membership in self.list_memberships_for_user(user_id):
            if membership.organization_id == organization_id:
                return membership
        return None

    # ------------------------------------------------------------------
    # Tasks and micro tasks
    # ------------------------------------------------------------------
    def create_task(
        self,
        organization_id: str,
        title: str,
        description: Optional[str] = None,
    ) -> Task:
        timestamp = self._clock()
        with self._lock:
            if organization_id not in self._organizations:
                raise OrganizationNotFoundError(organization_id)
            task = Task(
                id=self._id_factory(),
                organization_id=organization_id,
                title=title,
                description=description,
                created_at=timestamp,
                updated_at=timestamp,
            )
            self._tasks[task.id] = task
        logger.debug("Created task %s in organization %s", task.id, organization_id)
        return task

    def get_task_by_id(self, task_id: str) -> Optional[Task]:
        with self._lock:
            return self._tasks.get(task_id)

    def create_micro_task(
        self,
        *,
        organization_id: str,
        task_id: str,
        title: str,
        description: Optional[str] = None,
        status: MicroTaskStatus | str = MicroTaskStatus.OPEN,
        assigned_user_id: Optional[str] = None,
        due_at: Optional[datetime] = None,
    ) -> MicroTask:
        """Create a micro task under *task_id*.

        Raises :class:`TaskNotFoundError` when the task does not exist and
        :class:`OrganizationMismatchError` when it belongs to a different
        organization than *organization_id*.
        """

        resolved_status = parse_enum(MicroTaskStatus, status, field="status")
        timestamp = self._clock()
        with self._lock:
            task = self._tasks.get(task_id)
            if task is None:
                raise TaskNotFoundError(task_id)
            if task.organization_id != organization_id:
                raise OrganizationMismatchError(task_id, organization_id, task.organization_id)
            micro_task = MicroTask(
                id=self._id_factory(),
                organization_id=organization_id,
                task_id=task_id,
                title=title,
                description=description,
                status=resolved_status,
                assigned_user_id=assigned_user_id,
                due_at=due_at,
                created_at=timestamp,
                updated_at=timestamp,
            )
            self._micro_tasks[micro_task.id] = micro_task
        logger.debug("Created micro task %s under task %s", micro_task.id, task_id)
        return micro_task

    def list_micro_tasks_for_organization(
        self,
        organization_id: str,
        status: MicroTaskStatus | str | None = None,
    ) -> List[MicroTask]:
        wanted = parse_enum(MicroTaskStatus, status, field="status") if status is not None else None
        with self._lock:
            return [
                micro_task
                for micro_task in self._micro_tasks.values()
                if micro_task.organization_id == organization_id
                and (wanted is None or micro_task.status is wanted)
            ]

    def get_micro_task_by_id(self, micro_task_id: str) -> Optional[MicroTask]:
        with self._lock:
            return self._micro_tasks.get(micro_task_id)

    # ------------------------------------------------------------------
    # Whole-store operations
    # ------------------------------------------------------------------
    def reset(self) -> None:
        with self._lock:
            self._clear()
        logger.info("Entity store reset")

    def counts(self) -> Dict[str, int]:
        with self._lock:
            return {
                "users": len(self._users),
                "organizations": len(self._organizations),
                "memberships": len(self._memberships),
                "tasks": len(self._tasks),
                "microTasks": len(self._micro_tasks),
            }

    def export_all(self) -> Snapshot:
        with self._lock:
            return {
                "users": [user.to_dict() for user in self._users.values()],
                "organizations": [org.to_dict() for org in self._organizations.values()],
                "memberships": [m.to_dict() for m in self._memberships.values()],
                "tasks": [task.to_dict() for task in self._tasks.values()],
                "microTasks": [mt.to_dict() for mt in self._micro_tasks.values()],
            }

    def import_all(self, snapshot: Mapping[str, Any]) -> None:
        """Replace the store contents with *snapshot*.

        The snapshot is fully validated before any state changes, so a
        rejected snapshot leaves the current contents untouched.
        """

        if not isinstance(snapshot, Mapping):
            raise ValidationError("Snapshot must be a mapping")
        missing = [key for key in SNAPSHOT_KEYS if key not in snapshot]
        if missing:
            raise ValidationError(f"Snapshot is missing collections: {', '.join(missing)}")
        for key in SNAPSHOT_KEYS:
            if not isinstance(snapshot[key], list):
                raise ValidationError(f"Snapshot collection {key!r} must be a list")
            for entry in snapshot[key]:
                if not isinstance(entry, Mapping):
                    raise ValidationError(f"Snapshot collection {key!r} must contain objects")

        users = [User.from_dict(item) for item in snapshot["users"]]
        organizations = {org.id: org for org in map(Organization.from_dict, snapshot["organizations"])}
        memberships = [Membership.from_dict(item) for item in snapshot["memberships"]]
        tasks = {task.id: task for task in map(Task.from_dict, snapshot["tasks"])}
        micro_tasks = [MicroTask.from_dict(item) for item in snapshot["microTasks"]]

        for task in tasks.values():
            if task.organization_id not in organizations:
                raise OrganizationNotFoundError(task.organization_id)
        for micro_task in micro_tasks:
            parent = tasks.get(micro_task.task_id)
            if parent is None:
                raise TaskNotFoundError(micro_task.task_id)
            if parent.organization_id != micro_task.organization_id:
                raise OrganizationMismatchError(
                    parent.id, micro_task.organization_id, parent.organization_id
                )

        with self._lock:
            self._clear()
            for user in users:
                self._users[user.id] = user
                self._users_by_email[user.email] = user
            self._organizations.update(organizations)
            self._memberships.update((m.id, m) for m in memberships)
            self._tasks.update(tasks)
            self._micro_tasks.update((mt.id, mt) for mt in micro_tasks)
            counts = self.counts()
        logger.info("Imported snapshot %s", counts)

    def _clear(self) -> None:
        self._users.clear()
        self._users_by_email.clear()
        self._organizations.clear()
        self._memberships.clear()
        self._tasks.clear()
        self._micro_tasks.clear()


__all__ = ["EntityStore", "SNAPSHOT_KEYS", "Snapshot"]
