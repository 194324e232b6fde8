"""Remote store access over Supabase's PostgREST API."""
from __future__ import annotations

from typing import Any, Dict, List, Mapping, Optional, Protocol, Sequence, Tuple, Union

import httpx

from dayline.core.log import ensure_logger
from dayline.core.settings import REMOTE, RemoteSettings


FILTER_OPERATORS = {"eq", "neq", "lt", "lte", "gt", "gte", "is"}
OWNER_COLUMN = "user_id"

FilterValue = Union[Any, Tuple[str, Any]]
Filters = Mapping[str, FilterValue]


class RemoteError(Exception):
    """Base class for remote store failures."""


class RemoteUnavailableError(RemoteError):
    """The remote could not be reached (transport failure or no connectivity)."""


class RemoteAuthError(RemoteError):
    """The remote refused our credentials, or there are none."""


class RemoteRequestError(RemoteError):
    """The remote rejected one request."""

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class RemoteStore(Protocol):
    async def select(
        self,
        table: str,
        filters: Filters,
        columns: str = "*",
        order: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> List[Dict[str, Any]]: ...

    async def upsert(self, table: str, record: Dict[str, Any], on_conflict: Sequence[str]) -> Dict[str, Any]: ...

    async def insert(self, table: str, record: Dict[str, Any]) -> Dict[str, Any]: ...

    async def update(self, table: str, values: Dict[str, Any], filters: Filters) -> List[Dict[str, Any]]: ...

    async def delete(self, table: str, filters: Filters) -> None: ...


def _literal(value: Any) -> str:
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def encode_filters(filters: Filters) -> List[Tuple[str, str]]:
    """Turn ``{"date": ("lt", "2024-01-10"), "name": "Read"}`` into PostgREST params."""

    params: List[Tuple[str, str]] = []
    for column, raw in filters.items():
        if isinstance(raw, tuple):
            op, value = raw
        else:
            op, value = "eq", raw
        if op not in FILTER_OPERATORS:
            raise ValueError(f"Unsupported filter operator: {op}")
        params.append((column, f"{op}.{_literal(value)}"))
    return params


def _require_owner_filter(filters: Filters) -> None:
    value = filters.get(OWNER_COLUMN)
    if isinstance(value, tuple):
        value = value[1] if value[0] == "eq" else None
    if not value:
        raise ValueError("Remote calls must be scoped by user_id")


def _require_owner_field(record: Mapping[str, Any]) -> None:
    if not record.get(OWNER_COLUMN):
        raise ValueError("Remote records must carry user_id")


class SupabaseRemoteStore:
    """Async PostgREST client authenticated with the user's access token."""

    def __init__(
        self,
        settings: RemoteSettings = REMOTE,
        *,
        access_token: Optional[str] = None,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self.settings = settings
        self.access_token = access_token
        self._client = client or httpx.AsyncClient(
            base_url=f"{settings.url.rstrip('/')}/rest/v1",
            timeout=settings.timeout_sec,
        )
        self.logger = ensure_logger("dayline.sync.remote")

    def _headers(self, prefer: str = "return=representation") -> Dict[str, str]:
        if not self.access_token:
            raise RemoteAuthError("No access token")
        return {
            "apikey": self.settings.anon_key,
            "Authorization": f"Bearer {self.access_token}",
            "Content-Type": "application/json",
            "Prefer": prefer,
        }

    async def _send(self, method: str, table: str, *, params=None, json=None, prefer: str = "return=representation"):
        headers = self._headers(prefer)
        try:
            resp = await self._client.request(method, f"/{table}", params=params, json=json, headers=headers)
        except httpx.TransportError as exc:
            self.logger.warning("%s %s unreachable: %s", method, table, exc)
            raise RemoteUnavailableError(str(exc)) from exc

        if resp.status_code in (401, 403):
            raise RemoteAuthError(f"{method} {table} refused with {resp.status_code}")
        if resp.status_code >= 400:
            message = _error_message(resp)
            self.logger.warning("%s %s failed with %s: %s", method, table, resp.status_code, message)
            raise RemoteRequestError(message, resp.status_code)
        if not resp.content:
            return []
        return resp.json()

    # ------------------------------------------------------------------
    # Public API
    async def select(
        self,
        table: str,
        filters: Filters,
        columns: str = "*",
        order: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        _require_owner_filter(filters)
        params = [("select", columns)] + encode_filters(filters)
        if order:
            params.append(("order", order))
        if limit is not None:
            params.append(("limit", str(int(limit))))
        result = await self._send("GET", table, params=params)
        return list(result or [])

    async def upsert(self, table: str, record: Dict[str, Any], on_conflict: Sequence[str]) -> Dict[str, Any]:
        _require_owner_field(record)
        params = [("on_conflict", ",".join(on_conflict))]
        result = await self._send(
            "POST",
            table,
            params=params,
            json=record,
            prefer="resolution=merge-duplicates,return=representation",
        )
        return result[0] if isinstance(result, list) and result else {}

    async def insert(self, table: str, record: Dict[str, Any]) -> Dict[str, Any]:
        _require_owner_field(record)
        result = await self._send("POST", table, json=record)
        return result[0] if isinstance(result, list) and result else {}

    async def update(self, table: str, values: Dict[str, Any], filters: Filters) -> List[Dict[str, Any]]:
        _require_owner_filter(filters)
        result = await self._send("PATCH", table, params=encode_filters(filters), json=values)
        return list(result or [])

    async def delete(self, table: str, filters: Filters) -> None:
        _require_owner_filter(filters)
        await self._send("DELETE", table, params=encode_filters(filters), prefer="return=minimal")

    async def aclose(self) -> None:
        await self._client.aclose()


def _error_message(resp: httpx.Response) -> str:
    try:
        payload = resp.json()
    except ValueError:
        return resp.text or f"HTTP {resp.status_code}"
    if isinstance(payload, dict):
        return str(payload.get("message") or payload.get("error") or payload)
    return str(payload)


__all__ = [
    "FILTER_OPERATORS",
    "RemoteAuthError",
    "RemoteError",
    "RemoteRequestError",
    "RemoteStore",
    "RemoteUnavailableError",
    "SupabaseRemoteStore",
    "encode_filters",
]
