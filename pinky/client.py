"""HTTP client for the task tracker API."""

from __future__ import annotations

from typing import Any, Dict, List, Optional

import httpx


class APIClientError(RuntimeError):
    """Raised when the API rejects a request or cannot be reached."""

    def __init__(self, message: str, *, status_code: int | None = None, code: str | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.code = code


def _normalize_base_url(base_url: str) -> str:
    cleaned = (base_url or "").strip()
    if not cleaned:
        raise ValueError("API base URL must not be empty")
    return cleaned.rstrip("/")


def _extract_error_message(payload: object, default: str) -> str:
    if isinstance(payload, dict):
        for key in ("message", "detail", "error"):
            value = payload.get(key)
            if isinstance(value, str) and value.strip():
                return value.strip()
    if isinstance(payload, str) and payload.strip():
        return payload.strip()
    return default


class PinkyClient:
    """Thin wrapper over the JSON API used by the web frontend.

    An existing ``httpx.Client`` (for example a FastAPI ``TestClient``) can be
    supplied; otherwise one is created against *base_url*.
    """

    def __init__(
        self,
        base_url: str = "http://localhost:3001",
        *,
        token: str | None = None,
        timeout: float = 30.0,
        http_client: httpx.Client | None = None,
    ) -> None:
        self._base_url = _normalize_base_url(base_url)
        self._token = token
        self._owns_client = http_client is None
        self._http = http_client or httpx.Client(base_url=self._base_url, timeout=timeout)

    @property
    def token(self) -> Optional[str]:
        return self._token

    def close(self) -> None:
        if self._owns_client:
            self._http.close()

    def __enter__(self) -> "PinkyClient":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def _headers(self, org_id: str | None = None) -> Dict[str, str]:
        headers: Dict[str, str] = {}
        if self._token:
            headers["Authorization"] = f"Bearer {self._token}"
        if org_id is not None:
            headers["X-Org-Id"] = org_id
        return headers

    def _request(
        self,
        method: str,
        path: str,
        *,
        org_id: str | None = None,
        json: object | None = None,
        params: Dict[str, str] | None = None,
    ) -> Any:
        try:
            response = self._http.request(
                method,
                path,
                headers=self._headers(org_id),
                json=json,
                params=params,
            )
        except httpx.RequestError as exc:  # pragma: no cover - network failure
            raise APIClientError(f"Failed to contact the API: {exc}") from exc

        try:
            parsed = response.json()
        except ValueError:
            parsed = None

        if response.status_code >= 400:
            message = _extract_error_message(
                parsed, f"API request failed with status {response.status_code}"
            )
            code = parsed.get("code") if isinstance(parsed, dict) else None
            raise APIClientError(message, status_code=response.status_code, code=code)

        if parsed is None:
            raise APIClientError("API returned an invalid response", status_code=response.status_code)
        return parsed

    def login(self, email: str, display_name: str | None = None) -> str:
        body: Dict[str, str] = {"email": email}
        if display_name is not None:
            body["displayName"] = display_name
        payload = self._request("POST", "/auth/login", json=body)
        try:
            token = str(payload["accessToken"])
        except (KeyError, TypeError) as exc:
            raise APIClientError("Login response did not include an access token") from exc
        self._token = token
        return token

    def me(self) -> Dict[str, Any]:
        return self._request("GET", "/me")

    def memberships(self) -> List[Dict[str, Any]]:
        return self._request("GET", "/me/memberships")

    def ping_organization(self, org_id: str) -> Dict[str, Any]:
        return self._request("GET", "/org/ping", org_id=org_id)

    def list_micro_tasks(self, org_id: str, status: str | None = None) -> List[Dict[str, Any]]:
        params = {"status": status} if status else None
        return self._request("GET", "/microtasks", org_id=org_id, params=params)

    def get_micro_task(self, org_id: str, micro_task_id: str) -> Dict[str, Any]:
        return self._request("GET", f"/microtasks/{micro_task_id}", org_id=org_id)


__all__ = ["APIClientError", "PinkyClient"]
