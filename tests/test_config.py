from __future__ import annotations

from pathlib import Path

import pytest

from pinky.config import DEFAULT_AUTH_SECRET, Settings, load_settings


def test_defaults_without_file_or_environment() -> None:
    settings = load_settings(environ={})

    assert settings == Settings()
    assert settings.auth_secret == DEFAULT_AUTH_SECRET
    assert settings.uses_default_secret
    assert settings.token_ttl_seconds == 86400
    assert settings.port == 3001
    assert settings.seed_path is None


def test_environment_overrides() -> None:
    settings = load_settings(
        environ={
            "AUTH_SECRET": "s3cret",
            "AUTH_TOKEN_TTL_SECONDS": "600",
            "PORT": "8080",
            "PINKY_HOST": "0.0.0.0",
        }
    )

    assert settings.auth_secret == "s3cret"
    assert not settings.uses_default_secret
    assert settings.token_ttl_seconds == 600
    assert settings.port == 8080
    assert settings.host == "0.0.0.0"


def test_yaml_file_then_environment(tmp_path: Path) -> None:
    config = tmp_path / "pinky.yaml"
    config.write_text(
        "auth_secret: from-file\ntoken_ttl_seconds: 120\nseed_path: seeds/data.json\n",
        encoding="utf-8",
    )

    from_file = load_settings(config, environ={})
    overridden = load_settings(config, environ={"AUTH_SECRET": "from-env"})

    assert from_file.auth_secret == "from-file"
    assert from_file.token_ttl_seconds == 120
    assert from_file.seed_path == (tmp_path / "seeds" / "data.json").resolve()
    assert overridden.auth_secret == "from-env"
    assert overridden.token_ttl_seconds == 120


def test_config_path_from_environment(tmp_path: Path) -> None:
    config = tmp_path / "env.yaml"
    config.write_text("port: 9000\n", encoding="utf-8")

    settings = load_settings(environ={"PINKY_CONFIG": str(config)})

    assert settings.port == 9000


@pytest.mark.parametrize(
    "environ",
    [
        {"AUTH_TOKEN_TTL_SECONDS": "soon"},
        {"AUTH_TOKEN_TTL_SECONDS": "0"},
        {"PORT": "-1"},
    ],
)
def test_invalid_environment_values(environ) -> None:
    with pytest.raises(ValueError):
        load_settings(environ=environ)


def test_unknown_keys_are_rejected(tmp_path: Path) -> None:
    config = tmp_path / "bad.yaml"
    config.write_text("secret: typo\n", encoding="utf-8")

    with pytest.raises(ValueError):
        load_settings(config, environ={})
