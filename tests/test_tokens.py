"""Tests for access token issuance and verification."""

from __future__ import annotations

import base64
import json
import unittest
import uuid

from pinky.config import Settings
from pinky.errors import ValidationError
from pinky.tokens import TokenService


def _encode(value: object) -> str:
    raw = json.dumps(value, separators=(",", ":")).encode("utf-8")
    return base64.urlsafe_b64encode(raw).rstrip(b"=").decode("ascii")


class FixedClock:
    def __init__(self, now: float) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


class TokenServiceTests(unittest.TestCase):
    def setUp(self) -> None:
        self.clock = FixedClock(1_700_000_000.75)
        self.tokens = TokenService("unit-test-secret", clock=self.clock)
        self.user_id = str(uuid.uuid4())

    def _forge(self, payload: object, *, secret: str = "unit-test-secret") -> str:
        """Build a correctly signed token around an arbitrary payload."""

        forger = TokenService(secret, clock=self.clock)
        header = _encode({"alg": "HS256", "typ": "JWT"})
        body = _encode(payload)
        return f"{header}.{body}.{forger._sign(f'{header}.{body}')}"

    def test_issue_then_verify_round_trips_user(self) -> None:
        token = self.tokens.issue(self.user_id)

        self.assertEqual(token.count("."), 2)
        payload = self.tokens.verify(token)
        self.assertIsNotNone(payload)
        self.assertEqual(payload.user_id, self.user_id)
        self.assertEqual(payload.exp, 1_700_000_000 + 86400)

    def test_issue_is_deterministic_for_same_clock(self) -> None:
        self.assertEqual(self.tokens.issue(self.user_id), self.tokens.issue(self.user_id))

    def test_header_is_static_hs256(self) -> None:
        header = self.tokens.issue(self.user_id).split(".")[0]
        decoded = json.loads(base64.urlsafe_b64decode(header + "=" * (-len(header) % 4)))
        self.assertEqual(decoded, {"alg": "HS256", "typ": "JWT"})

    def test_issue_rejects_malformed_user_id(self) -> None:
        with self.assertRaises(ValidationError):
            self.tokens.issue("not-a-uuid")

    def test_any_signature_character_flip_invalidates(self) -> None:
        token = self.tokens.issue(self.user_id)
        head, _, signature = token.rpartition(".")
        for index, char in enumerate(signature):
            replacement = "A" if char != "A" else "B"
            tampered = f"{head}.{signature[:index]}{replacement}{signature[index + 1:]}"
            with self.subTest(index=index):
                self.assertIsNone(self.tokens.verify(tampered))

    def test_tampered_payload_is_rejected(self) -> None:
        header, _, signature = self.tokens.issue(self.user_id).split(".")
        other = _encode({"userId": str(uuid.uuid4()), "exp": 1_800_000_000})
        self.assertIsNone(self.tokens.verify(f"{header}.{other}.{signature}"))

    def test_wrong_secret_is_rejected(self) -> None:
        other = TokenService("another-secret", clock=self.clock)
        self.assertIsNone(other.verify(self.tokens.issue(self.user_id)))

    def test_expired_token_is_rejected(self) -> None:
        token = self.tokens.issue(self.user_id)

        self.clock.now += 86400
        self.assertIsNotNone(self.tokens.verify(token))

        self.clock.now += 1
        self.assertIsNone(self.tokens.verify(token))

    def test_past_exp_with_valid_signature_is_rejected(self) -> None:
        token = self._forge({"userId": self.user_id, "exp": 1_600_000_000})
        self.assertIsNone(self.tokens.verify(token))

    def test_segment_count_must_be_three(self) -> None:
        token = self.tokens.issue(self.user_id)
        for candidate in ("", "abc", "a.b", token + ".extra", token.replace(".", "..", 1)):
            with self.subTest(candidate=candidate):
                self.assertIsNone(self.tokens.verify(candidate))

    def test_payload_schema_is_enforced(self) -> None:
        cases = [
            {"userId": "not-a-uuid", "exp": 1_800_000_000},
            {"userId": self.user_id, "exp": "1800000000"},
            {"userId": self.user_id, "exp": True},
            {"userId": self.user_id},
            {"exp": 1_800_000_000},
            {"user_id": self.user_id, "exp": 1_800_000_000},
            [self.user_id, 1_800_000_000],
        ]
        for payload in cases:
            with self.subTest(payload=payload):
                self.assertIsNone(self.tokens.verify(self._forge(payload)))

    def test_float_exp_is_accepted(self) -> None:
        token = self._forge({"userId": self.user_id, "exp": 1_800_000_000.5})
        payload = self.tokens.verify(token)
        self.assertIsNotNone(payload)
        self.assertEqual(payload.user_id, self.user_id)

    def test_non_json_payload_is_rejected(self) -> None:
        header = _encode({"alg": "HS256", "typ": "JWT"})
        body = base64.urlsafe_b64encode(b"not json").rstrip(b"=").decode("ascii")
        token = f"{header}.{body}.{self.tokens._sign(f'{header}.{body}')}"
        self.assertIsNone(self.tokens.verify(token))

    def test_non_string_token_is_rejected(self) -> None:
        self.assertIsNone(self.tokens.verify(None))  # type: ignore[arg-type]

    def test_ttl_override(self) -> None:
        short = TokenService("unit-test-secret", ttl_seconds=60, clock=self.clock)
        token = short.issue(self.user_id)
        self.assertEqual(short.verify(token).exp, 1_700_000_000 + 60)

        self.clock.now += 61
        self.assertIsNone(short.verify(token))

    def test_from_settings_warns_about_default_secret(self) -> None:
        with self.assertLogs("pinky.tokens", level="WARNING") as captured:
            service = TokenService.from_settings(Settings())
        self.assertEqual(service.ttl_seconds, 86400)
        self.assertIn("AUTH_SECRET", captured.output[0])

    def test_empty_secret_is_refused(self) -> None:
        with self.assertRaises(ValueError):
            TokenService("")


if __name__ == "__main__":  # pragma: no cover
    unittest.main()
