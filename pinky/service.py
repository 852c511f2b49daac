"""HTTP API for the multi-tenant task tracker."""

from __future__ import annotations

import logging
import re
from datetime import datetime
from typing import Dict, List, Optional

from fastapi import Depends, FastAPI, Query, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field, StrictStr, field_validator
from pydantic.alias_generators import to_camel
from starlette.exceptions import HTTPException as StarletteHTTPException

from .config import Settings, load_settings
from .errors import NotFoundError, PinkyError, ValidationError
from .gate import AuthorizationGate, Authorized
from .models import MembershipRole, MicroTask, MicroTaskStatus, User, is_identifier, parse_enum
from .seeding import ensure_seed_micro_tasks, seed_user_memberships
from .store import EntityStore
from .tokens import TokenService

logger = logging.getLogger("pinky.service")

_EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s.]+$")

_HTTP_ERROR_CODES = {
    status.HTTP_404_NOT_FOUND: "NOT_FOUND",
    status.HTTP_405_METHOD_NOT_ALLOWED: "METHOD_NOT_ALLOWED",
}


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class LoginRequest(_CamelModel):
    email: StrictStr = Field(..., max_length=320)
    display_name: Optional[StrictStr] = Field(default=None, min_length=1, max_length=100)

    @field_validator("email")
    @classmethod
    def _validate_email(cls, value: str) -> str:
        if not _EMAIL_PATTERN.fullmatch(value):
            raise ValueError("email must be a valid email address")
        return value


class LoginResponse(_CamelModel):
    access_token: str


class MeResponse(_CamelModel):
    id: str
    email: str
    display_name: Optional[str] = None


class OrganizationRef(_CamelModel):
    id: str
    name: str


class MembershipView(_CamelModel):
    organization: OrganizationRef
    role: MembershipRole


class OrgPingResponse(_CamelModel):
    status: str
    organization_id: str
    role: MembershipRole


class TaskRef(_CamelModel):
    id: str
    title: str


class MicroTaskSummary(_CamelModel):
    id: str
    title: str
    status: MicroTaskStatus
    task: Optional[TaskRef]
    due_at: Optional[datetime]


class MicroTaskDetail(MicroTaskSummary):
    description: Optional[str]
    created_at: datetime


def _error_response(status_code: int, message: str, code: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"message": message, "code": code})


def _task_ref(store: EntityStore, micro_task: MicroTask) -> Optional[TaskRef]:
    task = store.get_task_by_id(micro_task.task_id)
    if task is None:
        return None
    return TaskRef(id=task.id, title=task.title)


def _find_or_create_user(store: EntityStore, email: str, display_name: Optional[str]) -> User:
    with store.locked():
        user = store.get_user_by_email(email)
        if user is None:
            user = store.create_user(email, display_name)
            logger.info("Registered new user %s", user.id)
        return user


def create_app(
    *,
    store: EntityStore | None = None,
    tokens: TokenService | None = None,
    settings: Settings | None = None,
) -> FastAPI:
    """Instantiate the FastAPI application around a shared entity store."""

    entity_store = store or EntityStore()
    token_service = tokens or TokenService.from_settings(settings or load_settings())
    gate = AuthorizationGate(entity_store, token_service)

    app = FastAPI(
        title="Pinky API",
        version="0.1.0",
        description="Organization-scoped micro task tracking.",
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
    )
    app.state.store = entity_store
    app.state.tokens = token_service
    app.state.gate = gate

    @app.middleware("http")
    async def authorization_guard(request: Request, call_next):
        outcome = gate.authorize(request.headers, request.url.path, request.method)
        if not isinstance(outcome, Authorized):
            return _error_response(outcome.status_code, outcome.message, outcome.code)
        request.state.auth = outcome
        return await call_next(request)

    def get_store() -> EntityStore:
        return entity_store

    def current_auth(request: Request) -> Authorized:
        return request.state.auth

    def current_user(auth: Authorized = Depends(current_auth)) -> User:
        assert auth.user is not None
        return auth.user

    def current_organization(auth: Authorized = Depends(current_auth)) -> Authorized:
        assert auth.organization_id is not None and auth.role is not None
        return auth

    @app.get("/health")
    def healthcheck() -> Dict[str, str]:
        return {"status": "ok"}

    @app.post("/auth/login", response_model=LoginResponse)
    def login(payload: LoginRequest, db: EntityStore = Depends(get_store)) -> LoginResponse:
        user = _find_or_create_user(db, payload.email, payload.display_name)
        seed_user_memberships(db, user)
        ensure_seed_micro_tasks(db, user.id)
        return LoginResponse(access_token=token_service.issue(user.id))

    @app.get("/me", response_model=MeResponse)
    def read_me(user: User = Depends(current_user), db: EntityStore = Depends(get_store)):
        refreshed = db.get_user_by_id(user.id)
        if refreshed is None:
            return _error_response(status.HTTP_404_NOT_FOUND, "User not found", "USER_NOT_FOUND")
        return MeResponse(id=refreshed.id, email=refreshed.email, display_name=refreshed.display_name)

    @app.get("/me/memberships", response_model=List[MembershipView])
    def read_memberships(
        user: User = Depends(current_user),
        db: EntityStore = Depends(get_store),
    ) -> List[MembershipView]:
        views: List[MembershipView] = []
        for membership in db.list_memberships_for_user(user.id):
            organization = db.get_organization_by_id(membership.organization_id)
            name = organization.name if organization is not None else "Unknown"
            views.append(
                MembershipView(
                    organization=OrganizationRef(id=membership.organization_id, name=name),
                    role=membership.role,
                )
            )
        return views

    @app.get("/org/ping", response_model=OrgPingResponse)
    def org_ping(auth: Authorized = Depends(current_organization)) -> OrgPingResponse:
        return OrgPingResponse(status="ok", organization_id=auth.organization_id, role=auth.role)

    @app.get("/microtasks", response_model=List[MicroTaskSummary])
    def list_micro_tasks(
        status_filter: Optional[str] = Query(default=None, alias="status"),
        auth: Authorized = Depends(current_organization),
        db: EntityStore = Depends(get_store),
    ):
        try:
            wanted = parse_enum(MicroTaskStatus, status_filter or MicroTaskStatus.OPEN, field="status")
        except ValidationError:
            return _error_response(status.HTTP_400_BAD_REQUEST, "Invalid status", "INVALID_STATUS")

        micro_tasks = sorted(
            db.list_micro_tasks_for_organization(auth.organization_id, wanted),
            key=lambda item: item.created_at,
            reverse=True,
        )
        return [
            MicroTaskSummary(
                id=micro_task.id,
                title=micro_task.title,
                status=micro_task.status,
                task=_task_ref(db, micro_task),
                due_at=micro_task.due_at,
            )
            for micro_task in micro_tasks
        ]

    @app.get("/microtasks/{micro_task_id}", response_model=MicroTaskDetail)
    def read_micro_task(
        micro_task_id: str,
        auth: Authorized = Depends(current_organization),
        db: EntityStore = Depends(get_store),
    ):
        if not is_identifier(micro_task_id):
            return _error_response(status.HTTP_400_BAD_REQUEST, "Invalid microtask id", "INVALID_ID")
        micro_task = db.get_micro_task_by_id(micro_task_id)
        # Micro tasks of other organizations are reported as missing.
        if micro_task is None or micro_task.organization_id != auth.organization_id:
            return _error_response(status.HTTP_404_NOT_FOUND, "MicroTask not found", "NOT_FOUND")
        return MicroTaskDetail(
            id=micro_task.id,
            title=micro_task.title,
            description=micro_task.description,
            status=micro_task.status,
            task=_task_ref(db, micro_task),
            due_at=micro_task.due_at,
            created_at=micro_task.created_at,
        )

    @app.exception_handler(RequestValidationError)
    async def handle_validation_error(_: Request, exc: RequestValidationError):
        if any(error.get("type") == "json_invalid" for error in exc.errors()):
            return _error_response(status.HTTP_400_BAD_REQUEST, "Invalid JSON payload", "INVALID_JSON")
        return _error_response(status.HTTP_400_BAD_REQUEST, "Invalid login payload", "INVALID_BODY")

    @app.exception_handler(NotFoundError)
    async def handle_not_found(_: Request, exc: NotFoundError):
        return _error_response(status.HTTP_404_NOT_FOUND, str(exc), "NOT_FOUND")

    @app.exception_handler(ValidationError)
    async def handle_invalid_input(_: Request, exc: ValidationError):
        return _error_response(status.HTTP_400_BAD_REQUEST, str(exc), "INVALID_INPUT")

    @app.exception_handler(PinkyError)
    async def handle_store_error(_: Request, exc: PinkyError):
        logger.warning("Rejected request: %s", exc)
        return _error_response(status.HTTP_400_BAD_REQUEST, str(exc), "INTEGRITY_ERROR")

    @app.exception_handler(StarletteHTTPException)
    async def handle_http_error(_: Request, exc: StarletteHTTPException):
        code = _HTTP_ERROR_CODES.get(exc.status_code, "HTTP_ERROR")
        return _error_response(exc.status_code, str(exc.detail), code)

    return app


__all__ = ["create_app"]
