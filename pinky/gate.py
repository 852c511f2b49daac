"""Request authentication and organization-scoped authorization."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import ClassVar, Mapping, Optional, Union

from .models import MembershipRole, User, is_identifier
from .store import EntityStore
from .tokens import TokenService

logger = logging.getLogger("pinky.gate")

AUTHORIZATION_HEADER = "authorization"
ORGANIZATION_HEADER = "x-org-id"

PUBLIC_PATHS = frozenset({"/health"})
PUBLIC_PREFIXES = ("/auth/",)
SELF_PATHS = frozenset({"/me", "/me/memberships"})


class RouteAccess(str, Enum):
    """How much context a route needs before its handler may run."""

    PUBLIC = "public"
    SELF = "self"
    ORGANIZATION = "organization"


@dataclass(frozen=True)
class Unauthenticated:
    status_code: ClassVar[int] = 401
    code: ClassVar[str] = "UNAUTHORIZED"
    message: ClassVar[str] = "Unauthorized"


@dataclass(frozen=True)
class OrgHeaderMissing:
    status_code: ClassVar[int] = 400
    code: ClassVar[str] = "MISSING_ORG_HEADER"
    message: ClassVar[str] = "Missing X-Org-Id header"


@dataclass(frozen=True)
class OrgHeaderInvalid:
    status_code: ClassVar[int] = 400
    code: ClassVar[str] = "INVALID_ORG_HEADER"
    message: ClassVar[str] = "Invalid X-Org-Id header"


@dataclass(frozen=True)
class OrgForbidden:
    status_code: ClassVar[int] = 403
    code: ClassVar[str] = "FORBIDDEN"
    message: ClassVar[str] = "Forbidden"


@dataclass(frozen=True)
class Authorized:
    """The request may proceed.

    ``user`` is ``None`` only for public routes; ``organization_id`` and
    ``role`` are set only for organization routes.
    """

    user: Optional[User] = None
    organization_id: Optional[str] = None
    role: Optional[MembershipRole] = None


AuthOutcome = Union[Unauthenticated, OrgHeaderMissing, OrgHeaderInvalid, OrgForbidden, Authorized]
OrgOutcome = Union[OrgHeaderMissing, OrgHeaderInvalid, OrgForbidden, Authorized]


def classify_route(path: str) -> RouteAccess:
    if path in PUBLIC_PATHS or path.startswith(PUBLIC_PREFIXES):
        return RouteAccess.PUBLIC
    if path in SELF_PATHS:
        return RouteAccess.SELF
    return RouteAccess.ORGANIZATION


def extract_bearer_token(header: Optional[str]) -> Optional[str]:
    """Return the token from an exact ``"Bearer <token>"`` header value."""

    if not header:
        return None
    scheme, separator, token = header.partition(" ")
    if scheme != "Bearer" or not separator or not token or " " in token:
        return None
    return token


def _header(headers: Mapping[str, str], name: str) -> Optional[str]:
    value = headers.get(name)
    if value is not None:
        return value
    for key, candidate in headers.items():
        if key.lower() == name:
            return candidate
    return None


class AuthorizationGate:
    """Resolve identity and tenant context before any handler executes.

    Authentication is always settled first, so an unauthenticated caller
    never learns anything about organization membership.
    """

    def __init__(self, store: EntityStore, tokens: TokenService) -> None:
        self._store = store
        self._tokens = tokens

    def authenticate(self, authorization: Optional[str]) -> Optional[User]:
        token = extract_bearer_token(authorization)
        if token is None:
            return None
        payload = self._tokens.verify(token)
        if payload is None:
            return None
        # The token may outlive the user it was issued for.
        return self._store.get_user_by_id(payload.user_id)

    def resolve_organization(self, user: User, header: Optional[str]) -> OrgOutcome:
        if header is None:
            return OrgHeaderMissing()
        if not is_identifier(header):
            return OrgHeaderInvalid()
        membership = self._store.find_membership(user.id, header)
        if membership is None or not membership.is_active:
            return OrgForbidden()
        return Authorized(user=user, organization_id=header, role=membership.role)

    def authorize(self, headers: Mapping[str, str], path: str, method: str) -> AuthOutcome:
        access = classify_route(path)
        if access is RouteAccess.PUBLIC:
            return Authorized()

        user = self.authenticate(_header(headers, AUTHORIZATION_HEADER))
        if user is None:
            logger.debug("Unauthenticated %s %s", method, path)
            return Unauthenticated()

        if access is RouteAccess.SELF:
            return Authorized(user=user)

        outcome = self.resolve_organization(user, _header(headers, ORGANIZATION_HEADER))
        if not isinstance(outcome, Authorized):
            logger.debug("Rejected %s %s for user %s: %s", method, path, user.id, outcome.code)
        return outcome


__all__ = [
    "AuthOutcome",
    "AuthorizationGate",
    "Authorized",
    "OrgForbidden",
    "OrgHeaderInvalid",
    "OrgHeaderMissing",
    "RouteAccess",
    "Unauthenticated",
    "classify_route",
    "extract_bearer_token",
]
