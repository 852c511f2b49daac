"""Tests for the HTTP client against an in-process application."""

from __future__ import annotations

import uuid

import pytest
from fastapi.testclient import TestClient

from pinky.client import APIClientError, PinkyClient
from pinky.service import create_app
from pinky.store import EntityStore
from pinky.tokens import TokenService


@pytest.fixture()
def api() -> PinkyClient:
    app = create_app(store=EntityStore(), tokens=TokenService("client-test-secret"))
    with TestClient(app) as test_client:
        yield PinkyClient(http_client=test_client)


def test_login_stores_token_and_reads_profile(api: PinkyClient) -> None:
    token = api.login("client@example.com", display_name="Client")

    assert api.token == token
    assert api.me()["displayName"] == "Client"


def test_org_scoped_calls(api: PinkyClient) -> None:
    api.login("scoped@example.com")
    memberships = api.memberships()
    org_id = memberships[1]["organization"]["id"]

    ping = api.ping_organization(org_id)
    micro_tasks = api.list_micro_tasks(org_id, status="OPEN")
    detail = api.get_micro_task(org_id, micro_tasks[0]["id"])

    assert ping == {"status": "ok", "organizationId": org_id, "role": "MEMBER"}
    assert detail["id"] == micro_tasks[0]["id"]


def test_errors_carry_status_and_code(api: PinkyClient) -> None:
    with pytest.raises(APIClientError) as unauthenticated:
        api.me()
    assert unauthenticated.value.status_code == 401
    assert unauthenticated.value.code == "UNAUTHORIZED"

    api.login("errors@example.com")
    with pytest.raises(APIClientError) as forbidden:
        api.ping_organization(str(uuid.uuid4()))
    assert forbidden.value.status_code == 403
    assert str(forbidden.value) == "Forbidden"


def test_base_url_must_not_be_empty() -> None:
    with pytest.raises(ValueError):
        PinkyClient("  ")
