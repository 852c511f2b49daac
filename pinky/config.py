"""Configuration loading for the task tracker service."""
from __future__ import annotations

import os
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Dict, Mapping, Optional

import yaml

DEFAULT_AUTH_SECRET = "dev-secret"
DEFAULT_TOKEN_TTL_SECONDS = 60 * 60 * 24
DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 3001


def _positive_int(value: object, *, field: str) -> int:
    try:
        number = int(str(value).strip())
    except ValueError as exc:
        raise ValueError(f"{field} must be an integer, got {value!r}") from exc
    if number <= 0:
        raise ValueError(f"{field} must be positive, got {number}")
    return number


def _resolve_path(raw: str, base_path: Path | None) -> Path:
    candidate = Path(raw).expanduser()
    if not candidate.is_absolute() and base_path is not None:
        candidate = base_path / candidate
    return candidate.resolve(strict=False)


@dataclass(frozen=True)
class Settings:
    """Runtime settings for the API process."""

    auth_secret: str = DEFAULT_AUTH_SECRET
    token_ttl_seconds: int = DEFAULT_TOKEN_TTL_SECONDS
    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT
    seed_path: Optional[Path] = None

    @property
    def uses_default_secret(self) -> bool:
        return self.auth_secret == DEFAULT_AUTH_SECRET

    @staticmethod
    def from_dict(data: Mapping[str, object], base_path: Path | None = None) -> "Settings":
        """Create :class:`Settings` from a parsed configuration mapping."""

        unknown = set(data) - {"auth_secret", "token_ttl_seconds", "host", "port", "seed_path"}
        if unknown:
            raise ValueError(f"Unknown configuration keys: {', '.join(sorted(unknown))}")

        secret = str(data.get("auth_secret") or DEFAULT_AUTH_SECRET)
        seed_raw = data.get("seed_path")
        return Settings(
            auth_secret=secret,
            token_ttl_seconds=_positive_int(
                data.get("token_ttl_seconds", DEFAULT_TOKEN_TTL_SECONDS), field="token_ttl_seconds"
            ),
            host=str(data.get("host") or DEFAULT_HOST),
            port=_positive_int(data.get("port", DEFAULT_PORT), field="port"),
            seed_path=_resolve_path(str(seed_raw), base_path) if seed_raw else None,
        )


def resolve_config_path(env_value: Optional[str]) -> Optional[Path]:
    """Resolve the optional YAML configuration file location."""

    if env_value:
        return Path(env_value).expanduser().resolve(strict=False)
    return None


def _apply_environment(settings: Settings, environ: Mapping[str, str]) -> Settings:
    overrides: Dict[str, object] = {}
    secret = environ.get("AUTH_SECRET")
    if secret:
        overrides["auth_secret"] = secret
    ttl = environ.get("AUTH_TOKEN_TTL_SECONDS")
    if ttl:
        overrides["token_ttl_seconds"] = _positive_int(ttl, field="AUTH_TOKEN_TTL_SECONDS")
    host = environ.get("PINKY_HOST")
    if host and host.strip():
        overrides["host"] = host.strip()
    port = environ.get("PORT")
    if port:
        overrides["port"] = _positive_int(port, field="PORT")
    seed_path = environ.get("PINKY_SEED_PATH")
    if seed_path:
        overrides["seed_path"] = _resolve_path(seed_path, None)
    return replace(settings, **overrides) if overrides else settings


def load_settings(
    config_path: Optional[Path] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> Settings:
    """Load settings from an optional YAML file, then environment overrides."""

    env = os.environ if environ is None else environ
    path = config_path or resolve_config_path(env.get("PINKY_CONFIG"))

    settings = Settings()
    if path is not None:
        with path.open("r", encoding="utf-8") as handle:
            raw = yaml.safe_load(handle) or {}
        if not isinstance(raw, dict):
            raise ValueError(f"Configuration file {path} must contain a mapping")
        settings = Settings.from_dict(raw, base_path=path.parent)

    return _apply_environment(settings, env)


__all__ = [
    "DEFAULT_AUTH_SECRET",
    "DEFAULT_HOST",
    "DEFAULT_PORT",
    "DEFAULT_TOKEN_TTL_SECONDS",
    "Settings",
    "load_settings",
    "resolve_config_path",
]
