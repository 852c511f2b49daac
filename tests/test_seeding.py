from __future__ import annotations

import json
import logging
import uuid
from pathlib import Path

import pytest

from pinky.errors import OrganizationMismatchError
from pinky.models import MembershipRole, MicroTaskStatus
from pinky.seeding import (
    DEMO_WORKSPACE_NAME,
    SEED_USER_EMAIL,
    ensure_seed_micro_tasks,
    load_seed_file,
    populate_demo_data,
    seed_user_memberships,
    write_seed_file,
)
from pinky.store import EntityStore


@pytest.fixture()
def store() -> EntityStore:
    return EntityStore()


def test_seed_user_memberships_creates_two_workspaces(store: EntityStore) -> None:
    user = store.create_user("new@example.com")

    memberships = seed_user_memberships(store, user)

    assert [m.role for m in memberships] == [MembershipRole.ADMIN, MembershipRole.MEMBER]
    names = [store.get_organization_by_id(m.organization_id).name for m in memberships]
    assert names == ["Pinky Workspace (new@example.com)", DEMO_WORKSPACE_NAME]


def test_seed_user_memberships_is_idempotent(store: EntityStore) -> None:
    user = store.create_user("again@example.com")

    first = seed_user_memberships(store, user)
    second = seed_user_memberships(store, user)

    assert first == second
    assert len(store.list_organizations()) == 2


def test_ensure_seed_micro_tasks_fills_empty_organizations_once(store: EntityStore) -> None:
    user = store.create_user("work@example.com")
    memberships = seed_user_memberships(store, user)

    assert ensure_seed_micro_tasks(store, user.id) == 2
    assert ensure_seed_micro_tasks(store, user.id) == 0

    for membership in memberships:
        micro_tasks = store.list_micro_tasks_for_organization(membership.organization_id)
        assert len(micro_tasks) == 3
        assert all(mt.status is MicroTaskStatus.OPEN for mt in micro_tasks)
        assert sum(mt.due_at is None for mt in micro_tasks) == 1


def test_populate_demo_data_replaces_store(store: EntityStore) -> None:
    store.create_user("leftover@example.com")

    snapshot = populate_demo_data(store)

    assert [user["email"] for user in snapshot["users"]] == [SEED_USER_EMAIL]
    assert len(snapshot["organizations"]) == 1
    assert len(snapshot["tasks"]) == 1
    assert len(snapshot["microTasks"]) == 3
    assert store.get_user_by_email("leftover@example.com") is None


def test_seed_file_round_trip(store: EntityStore, tmp_path: Path) -> None:
    snapshot = populate_demo_data(store)
    path = tmp_path / "nested" / "seed-data.json"

    write_seed_file(path, snapshot)
    restored = EntityStore()
    load_seed_file(restored, path)

    assert json.loads(path.read_text(encoding="utf-8")) == snapshot
    assert restored.export_all() == snapshot


@pytest.mark.parametrize("content", ['{"users": []}', "not json"])
def test_rejected_seed_file_is_logged_and_leaves_store_alone(
    store: EntityStore, tmp_path: Path, caplog: pytest.LogCaptureFixture, content: str
) -> None:
    snapshot = populate_demo_data(store)
    path = tmp_path / "broken.json"
    path.write_text(content, encoding="utf-8")

    with caplog.at_level(logging.WARNING, logger="pinky.seeding"):
        with pytest.raises(ValueError):
            load_seed_file(store, path)

    assert any(
        record.levelno == logging.WARNING and "Rejected seed file" in record.getMessage()
        for record in caplog.records
    )
    assert store.export_all() == snapshot


def test_seed_file_with_cross_organization_micro_task_is_rejected(
    store: EntityStore, tmp_path: Path
) -> None:
    snapshot = populate_demo_data(EntityStore())
    snapshot["microTasks"][0]["organizationId"] = str(uuid.uuid4())
    path = tmp_path / "dangling.json"
    write_seed_file(path, snapshot)

    with pytest.raises(OrganizationMismatchError):
        load_seed_file(store, path)
