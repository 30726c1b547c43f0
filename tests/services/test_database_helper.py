"""DatabaseHelper (Supabase 저장소) 단위 테스트"""
import asyncio
import threading
from datetime import datetime, timezone
from types import SimpleNamespace
from typing import Any, List, Optional

import httpx
import pytest
from postgrest.exceptions import APIError

from infinitepay_webhook.core.responses import ExternalServiceException, UnknownColumnError
from infinitepay_webhook.database_helper import DatabaseHelper


class _FakeQuery:
    """supabase 쿼리 빌더 체인 더블 - 호출을 기록하고 execute 에서 결과 반환"""

    def __init__(self, client: "_FakeClient", target: str) -> None:
        self.client = client
        self.calls: List[tuple] = [("target", target)]
        client.queries.append(self)

    def __getattr__(self, name: str):
        def _record(*args, **kwargs):
            self.calls.append((name, args, kwargs))
            return self

        return _record

    def execute(self):
        self.client.threads.append(threading.get_ident())
        if self.client.error is not None:
            raise self.client.error
        return SimpleNamespace(data=self.client.data)


class _FakeClient:
    def __init__(self, data: Any = None, error: Optional[Exception] = None) -> None:
        self.data = data
        self.error = error
        self.queries: List[_FakeQuery] = []
        self.threads: List[int] = []

    def table(self, name: str) -> _FakeQuery:
        return _FakeQuery(self, f"table:{name}")

    def rpc(self, fn_name: str, params: dict) -> _FakeQuery:
        query = _FakeQuery(self, f"rpc:{fn_name}")
        query.calls.append(("params", params))
        return query


def _helper(settings, **client_kwargs):
    client = _FakeClient(**client_kwargs)
    return DatabaseHelper(client, settings), client


def test_apply_credit_calls_rpc_with_all_params(settings):
    helper, client = _helper(settings, data=None)

    asyncio.run(
        helper.apply_credit(
            user_id="u-1",
            days=30,
            amount_cents=799,
            provider="infinitepay",
            provider_payment_id="abc",
            description="infinitepay_webhook",
            raw_event={"a": 1},
        )
    )

    calls = client.queries[0].calls
    assert calls[0] == ("target", "rpc:service_apply_payment_credits")
    assert calls[1] == (
        "params",
        {
            "p_user_id": "u-1",
            "p_days": 30,
            "p_amount_cents": 799,
            "p_description": "infinitepay_webhook",
            "p_provider": "infinitepay",
            "p_provider_payment_id": "abc",
            "p_raw_event": {"a": 1},
        },
    )


def test_rpc_error_becomes_external_service_exception(settings):
    error = APIError({"message": "function failed", "code": "P0001"})
    helper, _ = _helper(settings, error=error)

    with pytest.raises(ExternalServiceException) as exc_info:
        asyncio.run(helper.resolve_user_by_email("buyer@example.com"))

    assert exc_info.value.code == "P0001"
    assert not isinstance(exc_info.value, UnknownColumnError)


def test_resolve_user_by_email_returns_raw_data(settings):
    helper, client = _helper(settings, data=[{"user_id": "u-1"}])

    result = asyncio.run(helper.resolve_user_by_email("buyer@example.com"))

    assert result == [{"user_id": "u-1"}]
    assert client.queries[0].calls[1] == ("params", {"p_email": "buyer@example.com"})


@pytest.mark.parametrize(
    "error",
    [
        {"message": "Could not find the 'identity_source' column of 'payment_webhook_logs' in the schema cache",
         "code": "PGRST204"},
        {"message": 'column "intent_id" of relation "payment_webhook_logs" does not exist', "code": "42703"},
    ],
)
def test_insert_log_unknown_column(settings, error):
    helper, _ = _helper(settings, error=APIError(error))

    with pytest.raises(UnknownColumnError):
        asyncio.run(helper.insert_log({"outcome": "received"}))


def test_insert_log_other_error(settings):
    helper, _ = _helper(settings, error=APIError({"message": "permission denied", "code": "42501"}))

    with pytest.raises(ExternalServiceException) as exc_info:
        asyncio.run(helper.insert_log({"outcome": "received"}))

    assert not isinstance(exc_info.value, UnknownColumnError)


def test_insert_log_targets_configured_table(settings):
    helper, client = _helper(settings, data=[{}])

    asyncio.run(helper.insert_log({"outcome": "received"}))

    calls = client.queries[0].calls
    assert calls[0] == ("target", "table:payment_webhook_logs")
    assert calls[1] == ("insert", ({"outcome": "received"},), {})


def test_select_pending_intents_filters(settings):
    rows = [{"id": "intent-1"}]
    helper, client = _helper(settings, data=rows)
    since = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)

    result = asyncio.run(helper.select_pending_intents("infinitepay", "pending", 799, since, 5))

    assert result == rows
    calls = client.queries[0].calls
    assert calls[0] == ("target", "table:payment_intents")
    assert ("eq", ("provider", "infinitepay"), {}) in calls
    assert ("eq", ("status", "pending"), {}) in calls
    assert ("eq", ("amount_cents", 799), {}) in calls
    assert ("gte", ("created_at", since.isoformat()), {}) in calls
    assert ("order", ("created_at",), {"desc": True}) in calls
    assert ("limit", (5,), {}) in calls


def test_select_pending_intents_empty(settings):
    helper, _ = _helper(settings, data=None)

    assert asyncio.run(helper.select_pending_intents("infinitepay", "pending", 799, datetime.now(), 5)) == []


def test_patch_intent_is_conditional_and_counts_rows(settings):
    helper, client = _helper(settings, data=[{"id": "intent-1"}])

    updated = asyncio.run(helper.patch_intent("intent-1", "pending", "matched", {"provider_payment_id": "abc"}))

    assert updated == 1
    calls = client.queries[0].calls
    update_data = calls[1][1][0]
    assert calls[1][0] == "update"
    assert update_data["status"] == "matched"
    assert update_data["provider_payment_id"] == "abc"
    assert "updated_at" in update_data
    assert ("eq", ("id", "intent-1"), {}) in calls
    assert ("eq", ("status", "pending"), {}) in calls


def test_patch_intent_lost_race_returns_zero(settings):
    helper, _ = _helper(settings, data=[])

    assert asyncio.run(helper.patch_intent("intent-1", "pending", "matched")) == 0


def test_queries_run_off_the_event_loop_thread(settings):
    helper, client = _helper(settings, data=[])

    asyncio.run(helper.select_pending_intents("infinitepay", "pending", 799, datetime.now(), 5))
    asyncio.run(helper.insert_log({"outcome": "received"}))

    assert len(client.threads) == 2
    assert threading.get_ident() not in client.threads


@pytest.mark.parametrize(
    "call",
    [
        lambda helper: helper.select_pending_intents("infinitepay", "pending", 799, datetime.now(), 5),
        lambda helper: helper.insert_log({"outcome": "received"}),
        lambda helper: helper.patch_intent("intent-1", "pending", "matched"),
        lambda helper: helper.resolve_user_by_email("buyer@example.com"),
    ],
)
def test_transport_errors_become_external_service_exception(settings, call):
    helper, _ = _helper(settings, error=httpx.ConnectError("connection reset"))

    with pytest.raises(ExternalServiceException) as exc_info:
        asyncio.run(call(helper))

    assert not isinstance(exc_info.value, UnknownColumnError)
    assert "connection reset" in exc_info.value.message


class _DummyAsyncClient:
    """httpx.AsyncClient 대체용 더블"""

    def __init__(self, response: Optional[httpx.Response] = None, error: Optional[Exception] = None) -> None:
        self._response = response
        self._error = error
        self.requests: List[tuple] = []

    async def __aenter__(self) -> "_DummyAsyncClient":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> bool:
        return False

    async def get(self, url: str, headers=None) -> httpx.Response:
        self.requests.append((url, headers))
        if self._error is not None:
            raise self._error
        return self._response


def test_ping_reports_status(monkeypatch, settings):
    dummy = _DummyAsyncClient(response=httpx.Response(status_code=200, json={}))
    monkeypatch.setattr("infinitepay_webhook.database_helper.httpx.AsyncClient", lambda *a, **kw: dummy)
    helper, _ = _helper(settings)

    result = asyncio.run(helper.ping())

    assert result == {"ok": True, "checked": True, "status_code": 200}
    url, headers = dummy.requests[0]
    assert url == "https://example.supabase.co/rest/v1/"
    assert headers["apikey"] == "service-role-test-key"


def test_ping_network_error(monkeypatch, settings):
    dummy = _DummyAsyncClient(error=httpx.ConnectError("refused"))
    monkeypatch.setattr("infinitepay_webhook.database_helper.httpx.AsyncClient", lambda *a, **kw: dummy)
    helper, _ = _helper(settings)

    result = asyncio.run(helper.ping())

    assert result == {"ok": False, "checked": True, "error": "ConnectError"}


def test_ping_invalid_url(monkeypatch, settings):
    dummy = _DummyAsyncClient(error=httpx.InvalidURL("bad"))
    monkeypatch.setattr("infinitepay_webhook.database_helper.httpx.AsyncClient", lambda *a, **kw: dummy)
    helper, _ = _helper(settings)

    result = asyncio.run(helper.ping())

    assert result == {"ok": False, "checked": True, "error": "InvalidURL"}
