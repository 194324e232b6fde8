import asyncio
import json

import httpx
import pytest

from dayline.core.settings import RemoteSettings
from dayline.services.connectivity import HttpConnectivityProbe
from dayline.services.remote_store import (
    RemoteAuthError,
    RemoteRequestError,
    RemoteUnavailableError,
    SupabaseRemoteStore,
    encode_filters,
)


SETTINGS = RemoteSettings(url="https://example.supabase.co", anon_key="anon")


def _store(handler, token="token-1"):
    client = httpx.AsyncClient(
        base_url="https://example.supabase.co/rest/v1",
        transport=httpx.MockTransport(handler),
    )
    return SupabaseRemoteStore(SETTINGS, access_token=token, client=client)


def test_encode_filters_defaults_to_equality():
    params = encode_filters({"user_id": "u1", "date": ("lt", "2024-01-10"), "task_id": ("is", None)})

    assert params == [("user_id", "eq.u1"), ("date", "lt.2024-01-10"), ("task_id", "is.null")]


def test_encode_filters_rejects_unknown_operator():
    with pytest.raises(ValueError):
        encode_filters({"date": ("like", "2024%")})


def test_select_builds_postgrest_query():
    seen = {}

    def handler(request):
        seen["request"] = request
        return httpx.Response(200, json=[{"date": "2024-01-09", "progress": 70}])

    store = _store(handler)
    rows = asyncio.run(
        store.select(
            "tasks",
            {"user_id": "u1", "name": "Read", "date": ("lt", "2024-01-10")},
            columns="date,progress",
            order="date.desc",
            limit=365,
        )
    )

    request = seen["request"]
    assert rows == [{"date": "2024-01-09", "progress": 70}]
    assert request.method == "GET"
    assert request.url.path == "/rest/v1/tasks"
    assert request.url.params["select"] == "date,progress"
    assert request.url.params["user_id"] == "eq.u1"
    assert request.url.params["date"] == "lt.2024-01-10"
    assert request.url.params["order"] == "date.desc"
    assert request.url.params["limit"] == "365"
    assert request.headers["apikey"] == "anon"
    assert request.headers["Authorization"] == "Bearer token-1"


def test_upsert_sends_conflict_columns_and_merge_preference():
    seen = {}

    def handler(request):
        seen["request"] = request
        body = json.loads(request.content)
        return httpx.Response(201, json=[dict(body, id=7)])

    store = _store(handler)
    row = asyncio.run(
        store.upsert("tasks", {"user_id": "u1", "date": "2024-01-10", "name": "Read"}, ("user_id", "date", "name"))
    )

    request = seen["request"]
    assert row["id"] == 7
    assert request.method == "POST"
    assert request.url.params["on_conflict"] == "user_id,date,name"
    assert "resolution=merge-duplicates" in request.headers["Prefer"]


def test_calls_without_owner_are_refused():
    store = _store(lambda request: httpx.Response(200, json=[]))

    with pytest.raises(ValueError):
        asyncio.run(store.select("tasks", {"name": "Read"}))
    with pytest.raises(ValueError):
        asyncio.run(store.upsert("tasks", {"name": "Read"}, ("user_id", "name")))
    with pytest.raises(ValueError):
        asyncio.run(store.delete("tasks", {"user_id": ("neq", "u1")}))


def test_status_codes_map_to_error_types():
    def handler(request):
        if request.url.path.endswith("/locked"):
            return httpx.Response(401, json={"message": "JWT expired"})
        return httpx.Response(409, json={"message": "duplicate key value"})

    store = _store(handler)

    with pytest.raises(RemoteAuthError):
        asyncio.run(store.select("locked", {"user_id": "u1"}))
    with pytest.raises(RemoteRequestError) as excinfo:
        asyncio.run(store.insert("tasks", {"user_id": "u1", "name": "Read"}))
    assert excinfo.value.status_code == 409
    assert str(excinfo.value) == "duplicate key value"


def test_transport_failure_is_unavailable():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    store = _store(handler)

    with pytest.raises(RemoteUnavailableError):
        asyncio.run(store.update("tasks", {"progress": 10}, {"user_id": "u1", "name": "Read"}))


def test_missing_token_is_auth_error():
    store = _store(lambda request: httpx.Response(200, json=[]), token=None)

    with pytest.raises(RemoteAuthError):
        asyncio.run(store.select("tasks", {"user_id": "u1"}))


def test_http_probe_reports_reachability():
    online = HttpConnectivityProbe(
        SETTINGS,
        client=httpx.AsyncClient(transport=httpx.MockTransport(lambda request: httpx.Response(404))),
    )

    def refuse(request):
        raise httpx.ConnectError("no route", request=request)

    offline = HttpConnectivityProbe(SETTINGS, client=httpx.AsyncClient(transport=httpx.MockTransport(refuse)))

    assert asyncio.run(online.is_online()) is True
    assert asyncio.run(offline.is_online()) is False


def test_http_probe_is_offline_without_credentials():
    def unexpected(request):
        raise AssertionError("probe must not reach the network")

    probe = HttpConnectivityProbe(
        RemoteSettings(url="https://example.supabase.co", anon_key=""),
        client=httpx.AsyncClient(transport=httpx.MockTransport(unexpected)),
    )

    assert asyncio.run(probe.is_online()) is False
