"""Seed data for new accounts and for demo snapshots."""

from __future__ import annotations

import json
import logging
from datetime import timedelta
from pathlib import Path
from typing import List, Mapping, Optional, Sequence, Tuple

from .errors import PinkyError
from .models import Membership, MembershipRole, User, utcnow
from .store import EntityStore, Snapshot

logger = logging.getLogger("pinky.seeding")

DEMO_WORKSPACE_NAME = "Pinky Demo Workspace"
SEED_USER_EMAIL = "seed-user@pinky.dev"
SEED_USER_NAME = "Seed User"

_ONBOARDING_TASK = ("Prepare onboarding", "Checklist for new team members")
_ONBOARDING_MICRO_TASKS: Sequence[Tuple[str, str, Optional[int]]] = (
    ("Pack the welcome kit", "Laptop, accessories and goodies", 24),
    ("Create accounts", "Email and tool access for the new hire", 48),
    ("Plan the first week", "Schedule meetings and pick a mentor", None),
)


def seed_user_memberships(store: EntityStore, user: User) -> List[Membership]:
    """Give a user with no memberships a personal and a demo workspace."""

    with store.locked():
        existing = store.list_memberships_for_user(user.id)
        if existing:
            return existing

        primary = store.create_organization(f"Pinky Workspace ({user.email})")
        secondary = store.create_organization(DEMO_WORKSPACE_NAME)
        memberships = [
            store.add_membership(user.id, primary.id, MembershipRole.ADMIN),
            store.add_membership(user.id, secondary.id, MembershipRole.MEMBER),
        ]
    logger.info("Seeded %d memberships for user %s", len(memberships), user.id)
    return memberships


def _create_onboarding(store: EntityStore, organization_id: str) -> None:
    now = utcnow()
    title, description = _ONBOARDING_TASK
    task = store.create_task(organization_id, title, description)
    for mt_title, mt_description, due_in_hours in _ONBOARDING_MICRO_TASKS:
        store.create_micro_task(
            organization_id=organization_id,
            task_id=task.id,
            title=mt_title,
            description=mt_description,
            due_at=now + timedelta(hours=due_in_hours) if due_in_hours is not None else None,
        )


def ensure_seed_micro_tasks(store: EntityStore, user_id: str) -> int:
    """Create onboarding work in each of the user's empty organizations.

    Returns the number of organizations that were seeded.
    """

    seeded = 0
    with store.locked():
        for membership in store.list_memberships_for_user(user_id):
            organization_id = membership.organization_id
            if store.get_organization_by_id(organization_id) is None:
                continue
            if store.list_micro_tasks_for_organization(organization_id):
                continue
            _create_onboarding(store, organization_id)
            seeded += 1
    if seeded:
        logger.info("Seeded micro tasks in %d organization(s) for user %s", seeded, user_id)
    return seeded


def populate_demo_data(store: EntityStore) -> Snapshot:
    """Reset *store* to a single demo workspace and return its snapshot."""

    with store.locked():
        store.reset()
        user = store.create_user(SEED_USER_EMAIL, SEED_USER_NAME)
        organization = store.create_organization("Pinky Seed Workspace")
        store.add_membership(user.id, organization.id, MembershipRole.ADMIN)
        _create_onboarding(store, organization.id)
        return store.export_all()


def write_seed_file(path: Path, snapshot: Mapping[str, object]) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(snapshot, indent=2) + "\n", encoding="utf-8")
    logger.info("Seed data written to %s", path)


def load_seed_file(store: EntityStore, path: Path) -> None:
    """Replace the store contents with the snapshot stored at *path*.

    A file that is not JSON or does not describe a consistent store is
    logged and re-raised; the store keeps its previous contents.
    """

    try:
        with path.open("r", encoding="utf-8") as handle:
            snapshot = json.load(handle)
        store.import_all(snapshot)
    except (json.JSONDecodeError, PinkyError) as exc:
        logger.warning("Rejected seed file %s: %s", path, exc)
        raise
    logger.info("Loaded seed data from %s", path)


__all__ = [
    "DEMO_WORKSPACE_NAME",
    "SEED_USER_EMAIL",
    "ensure_seed_micro_tasks",
    "load_seed_file",
    "populate_demo_data",
    "seed_user_memberships",
    "write_seed_file",
]
