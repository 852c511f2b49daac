"""Core of the Pinky multi-tenant task tracker."""

from __future__ import annotations

from typing import Any

from .gate import AuthorizationGate
from .store import EntityStore
from .tokens import TokenService


def create_app(*args: Any, **kwargs: Any):
    """Factory function that returns the HTTP API application."""

    from .service import create_app as _create_app

    return _create_app(*args, **kwargs)


__all__ = [
    "AuthorizationGate",
    "EntityStore",
    "TokenService",
    "create_app",
]
