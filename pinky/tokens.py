"""Signed, expiring bearer tokens that bind a request to a user id."""

from __future__ import annotations

import base64
import binascii
import hashlib
import hmac
import json
import logging
import math
import time
from typing import Callable, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, StrictFloat, StrictInt, StrictStr, field_validator
from pydantic import ValidationError as PydanticValidationError

from .config import DEFAULT_TOKEN_TTL_SECONDS, Settings
from .errors import TokenInvalid, ValidationError
from .models import is_identifier

logger = logging.getLogger("pinky.tokens")

_HEADER = {"alg": "HS256", "typ": "JWT"}


class TokenPayload(BaseModel):
    """Claims carried by an access token."""

    model_config = ConfigDict(frozen=True)

    user_id: StrictStr = Field(alias="userId")
    exp: Union[StrictInt, StrictFloat]

    @field_validator("user_id")
    @classmethod
    def _require_identifier(cls, value: str) -> str:
        if not is_identifier(value):
            raise ValueError("userId must be a UUID-shaped identifier")
        return value


def _b64url_encode(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).rstrip(b"=").decode("ascii")


def _b64url_decode(segment: str) -> bytes:
    padding = "=" * (-len(segment) % 4)
    return base64.urlsafe_b64decode(segment + padding)


def _compact_json(value: object) -> bytes:
    return json.dumps(value, separators=(",", ":")).encode("utf-8")


def _reject_constant(name: str) -> float:
    raise TokenInvalid(f"payload contains non-finite number {name}")


class TokenService:
    """Issue and verify HMAC-SHA-256 signed access tokens.

    Tokens are ``header.payload.signature`` with each segment unpadded
    base64url. Nothing is stored server side; a token is valid while its
    signature matches and ``exp`` has not passed.
    """

    def __init__(
        self,
        secret: str,
        *,
        ttl_seconds: int = DEFAULT_TOKEN_TTL_SECONDS,
        clock: Callable[[], float] = time.time,
    ) -> None:
        if not secret:
            raise ValueError("Token signing secret must not be empty")
        if ttl_seconds <= 0:
            raise ValueError("Token TTL must be positive")
        self._secret = secret.encode("utf-8")
        self._ttl_seconds = ttl_seconds
        self._clock = clock
        self._encoded_header = _b64url_encode(_compact_json(_HEADER))

    @classmethod
    def from_settings(cls, settings: Settings) -> "TokenService":
        if settings.uses_default_secret:
            logger.warning(
                "AUTH_SECRET is not set; signing tokens with the development fallback secret."
                " Anyone who knows it can forge tokens. Set AUTH_SECRET before deploying."
            )
        return cls(settings.auth_secret, ttl_seconds=settings.token_ttl_seconds)

    @property
    def ttl_seconds(self) -> int:
        return self._ttl_seconds

    def _now(self) -> int:
        return math.floor(self._clock())

    def _sign(self, signing_input: str) -> str:
        digest = hmac.new(self._secret, signing_input.encode("utf-8"), hashlib.sha256).digest()
        return _b64url_encode(digest)

    def issue(self, user_id: str) -> str:
        if not is_identifier(user_id):
            raise ValidationError(f"Cannot issue a token for malformed user id {user_id!r}")
        payload = {"userId": user_id, "exp": self._now() + self._ttl_seconds}
        encoded_payload = _b64url_encode(_compact_json(payload))
        signing_input = f"{self._encoded_header}.{encoded_payload}"
        return f"{signing_input}.{self._sign(signing_input)}"

    def verify(self, token: str) -> Optional[TokenPayload]:
        """Return the token's payload, or ``None`` when it is not acceptable.

        Malformed structure, a bad signature, an invalid payload and expiry
        all produce the same ``None`` result.
        """

        try:
            return self._verify(token)
        except TokenInvalid as exc:
            logger.debug("Rejected access token: %s", exc)
            return None

    def _verify(self, token: str) -> TokenPayload:
        if not isinstance(token, str):
            raise TokenInvalid("token is not a string")

        parts = token.split(".")
        if len(parts) != 3:
            raise TokenInvalid(f"expected 3 segments, got {len(parts)}")
        header, payload, signature = parts

        expected = self._sign(f"{header}.{payload}")
        if not hmac.compare_digest(signature.encode("utf-8"), expected.encode("ascii")):
            raise TokenInvalid("signature mismatch")

        try:
            decoded = json.loads(_b64url_decode(payload).decode("utf-8"), parse_constant=_reject_constant)
        except (binascii.Error, ValueError) as exc:
            raise TokenInvalid(f"payload is not base64url JSON: {exc}") from exc

        try:
            claims = TokenPayload.model_validate(decoded)
        except PydanticValidationError as exc:
            raise TokenInvalid(f"payload failed validation: {exc.error_count()} error(s)") from exc

        if claims.exp < self._now():
            raise TokenInvalid("token expired")
        return claims


__all__ = ["TokenPayload", "TokenService"]
