import asyncio
import json
from typing import Any, Callable

import httpx
import pytest

from walletgate.config import WalletGateConfig
from walletgate.exceptions import (
    ClientError,
    NetworkError,
    RateLimitError,
    RequestTimeoutError,
    ServerError,
)
from walletgate.http_client import AsyncRequestExecutor, RequestExecutor
from walletgate.response import RateLimitInfo
from walletgate.retry import RetryPolicy

_BASE_URL = "https://api.test.local"


class _Recorder:
    def __init__(self, responder: Callable[[httpx.Request, int], httpx.Response]) -> None:
        self._responder = responder
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self._responder(request, len(self.requests))


def _config(**overrides: Any) -> WalletGateConfig:
    data: dict[str, Any] = {
        "api_key": "wg_test_key",
        "base_url": _BASE_URL,
        "retry_policy": RetryPolicy(max_retries=0, jitter=False),
    }
    data.update(overrides)
    return WalletGateConfig(**data)


def _executor(recorder: _Recorder, sleeps: list[float], **overrides: Any) -> RequestExecutor:
    return RequestExecutor(
        _config(**overrides),
        session=httpx.Client(transport=httpx.MockTransport(recorder)),
        sleeper=sleeps.append,
    )


def test_success_returns_json_and_sends_auth_headers():
    recorder = _Recorder(lambda _req, _n: httpx.Response(200, json={"id": "sess_1"}))
    executor = _executor(recorder, [])

    data = executor.execute("post", "/v1/verify/sessions", body={"checks": [{"type": "age_over"}]})

    assert data == {"id": "sess_1"}
    request = recorder.requests[0]
    assert request.method == "POST"
    assert str(request.url) == f"{_BASE_URL}/v1/verify/sessions"
    assert request.headers["Authorization"] == "Bearer wg_test_key"
    assert request.headers["Content-Type"] == "application/json"
    assert json.loads(request.content) == {"checks": [{"type": "age_over"}]}


def test_get_without_body_has_no_content_type():
    recorder = _Recorder(lambda _req, _n: httpx.Response(200, json={}))
    executor = _executor(recorder, [])

    executor.execute("GET", "/v1/verify/sessions/abc")

    assert "Content-Type" not in recorder.requests[0].headers


def test_pre_serialized_body_is_sent_verbatim():
    recorder = _Recorder(lambda _req, _n: httpx.Response(200, json={}))
    executor = _executor(recorder, [])

    executor.execute("POST", "/x", body='{"a":1}')

    assert recorder.requests[0].content == b'{"a":1}'


def test_malformed_success_body_returns_none():
    recorder = _Recorder(lambda _req, _n: httpx.Response(200, content=b"<html>oops</html>"))
    executor = _executor(recorder, [])

    assert executor.execute("GET", "/x") is None


@pytest.mark.parametrize("max_retries", [0, 1, 3])
def test_server_error_is_attempted_max_retries_plus_one(max_retries: int):
    recorder = _Recorder(lambda _req, _n: httpx.Response(503, json={"message": "maintenance"}))
    sleeps: list[float] = []
    executor = _executor(
        recorder,
        sleeps,
        retry_policy=RetryPolicy(max_retries=max_retries, base_delay_seconds=0.1, factor=2.0, jitter=False),
    )

    with pytest.raises(ServerError, match="maintenance") as exc_info:
        executor.execute("GET", "/x")

    assert len(recorder.requests) == max_retries + 1
    assert sleeps == pytest.approx([0.1 * 2**k for k in range(max_retries)])
    assert exc_info.value.status_code == 503
    assert exc_info.value.retryable is True


def test_server_error_without_message_uses_generic_text():
    recorder = _Recorder(lambda _req, _n: httpx.Response(502, content=b""))
    executor = _executor(recorder, [])

    with pytest.raises(ServerError, match=r"Server error \(502\)"):
        executor.execute("GET", "/x")


@pytest.mark.parametrize("status", [400, 401, 404, 422])
def test_client_errors_are_never_retried(status: int):
    recorder = _Recorder(
        lambda _req, _n: httpx.Response(status, json={"code": "BAD", "message": "bad input", "requestId": "req_9"})
    )
    sleeps: list[float] = []
    executor = _executor(recorder, sleeps, retry_policy=RetryPolicy(max_retries=5))

    with pytest.raises(ClientError, match="bad input") as exc_info:
        executor.execute("POST", "/x", body={})

    assert len(recorder.requests) == 1
    assert sleeps == []
    assert exc_info.value.code == "BAD"
    assert exc_info.value.request_id == "req_9"


def test_client_error_without_message_uses_generic_text():
    recorder = _Recorder(lambda _req, _n: httpx.Response(403, content=b"forbidden"))
    executor = _executor(recorder, [])

    with pytest.raises(ClientError, match="Request failed with status 403"):
        executor.execute("GET", "/x")


def test_recovers_after_transient_failures():
    def responder(_req: httpx.Request, n: int) -> httpx.Response:
        if n < 3:
            return httpx.Response(500)
        return httpx.Response(200, json={"ok": True})

    recorder = _Recorder(responder)
    sleeps: list[float] = []
    executor = _executor(recorder, sleeps, retry_policy=RetryPolicy(max_retries=3, jitter=False))

    assert executor.execute("GET", "/x") == {"ok": True}
    assert len(recorder.requests) == 3
    assert len(sleeps) == 2


def test_timeout_is_retryable_and_surfaces_after_exhaustion():
    def responder(request: httpx.Request, _n: int) -> httpx.Response:
        raise httpx.ReadTimeout("timed out", request=request)

    recorder = _Recorder(responder)
    executor = _executor(recorder, [], retry_policy=RetryPolicy(max_retries=2, jitter=False))

    with pytest.raises(RequestTimeoutError):
        executor.execute("GET", "/x")

    assert len(recorder.requests) == 3


def test_network_error_is_retryable():
    def responder(request: httpx.Request, n: int) -> httpx.Response:
        if n == 1:
            raise httpx.ConnectError("connection refused", request=request)
        return httpx.Response(200, json={"ok": True})

    recorder = _Recorder(responder)
    executor = _executor(recorder, [], retry_policy=RetryPolicy(max_retries=1, jitter=False))

    assert executor.execute("GET", "/x") == {"ok": True}


def test_network_error_after_exhaustion_propagates():
    def responder(request: httpx.Request, _n: int) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    executor = _executor(_Recorder(responder), [])

    with pytest.raises(NetworkError, match="connection refused"):
        executor.execute("GET", "/x")


@pytest.mark.parametrize("error_type", [httpx.DecodingError, httpx.TooManyRedirects])
def test_other_request_errors_become_network_errors(error_type: type):
    def responder(request: httpx.Request, _n: int) -> httpx.Response:
        raise error_type("broken response", request=request)

    executor = _executor(_Recorder(responder), [])

    with pytest.raises(NetworkError, match="broken response"):
        executor.execute("GET", "/x")


def test_async_other_request_errors_become_network_errors():
    def responder(request: httpx.Request, _n: int) -> httpx.Response:
        raise httpx.DecodingError("broken response", request=request)

    async def run() -> None:
        executor = AsyncRequestExecutor(
            _config(),
            client=httpx.AsyncClient(transport=httpx.MockTransport(_Recorder(responder))),
        )
        async with executor:
            await executor.execute("GET", "/x")

    with pytest.raises(NetworkError, match="broken response"):
        asyncio.run(run())


def test_jitter_uses_injected_random_source():
    recorder = _Recorder(lambda _req, _n: httpx.Response(500))
    sleeps: list[float] = []
    executor = RequestExecutor(
        _config(retry_policy=RetryPolicy(max_retries=2, base_delay_seconds=1.0, factor=2.0, jitter=True)),
        session=httpx.Client(transport=httpx.MockTransport(recorder)),
        sleeper=sleeps.append,
        rand=lambda: 0.5,
    )

    with pytest.raises(ServerError):
        executor.execute("GET", "/x")

    assert sleeps == pytest.approx([1.25, 2.5])


def test_rate_limit_invokes_callback_once_and_is_not_retried():
    infos: list[RateLimitInfo] = []
    body = {
        "code": "RATE_LIMIT_EXCEEDED",
        "message": "Rate limit exceeded",
        "retryAfterSeconds": 60,
        "monthlyLimit": 10000,
        "dailyLimit": 1000,
        "upgradeUrl": "https://upgrade.example.com",
    }
    recorder = _Recorder(lambda _req, _n: httpx.Response(429, json=body, headers={"Retry-After": "60"}))
    executor = _executor(recorder, [], retry_policy=RetryPolicy(max_retries=3), on_rate_limit=infos.append)

    with pytest.raises(RateLimitError) as exc_info:
        executor.execute("POST", "/v1/verify/sessions", body={})

    assert len(recorder.requests) == 1
    assert infos == [
        RateLimitInfo(
            message="Rate limit exceeded",
            retry_after_seconds=60,
            monthly_limit=10000,
            daily_limit=1000,
            upgrade_url="https://upgrade.example.com",
        )
    ]
    message = str(exc_info.value)
    assert "retry after ~60s" in message
    assert "plan limit: 10000/mo" in message
    assert "daily cap: 1000/24h" in message
    assert "https://upgrade.example.com" in message
    assert exc_info.value.info is infos[0]
    assert exc_info.value.response_headers == {"retry-after": "60"}


def test_rate_limit_without_optional_fields():
    infos: list[RateLimitInfo] = []
    recorder = _Recorder(lambda _req, _n: httpx.Response(429, json={"code": "RATE_LIMIT_EXCEEDED"}))
    executor = _executor(recorder, [], on_rate_limit=infos.append)

    with pytest.raises(RateLimitError, match="Rate limit exceeded"):
        executor.execute("GET", "/x")

    assert infos == [RateLimitInfo(message="Rate limit exceeded")]
    assert infos[0].retry_after_seconds is None
    assert infos[0].upgrade_url is None


def test_rate_limit_callback_failure_does_not_replace_error():
    def callback(_info: RateLimitInfo) -> None:
        raise RuntimeError("callback exploded")

    recorder = _Recorder(
        lambda _req, _n: httpx.Response(429, json={"code": "RATE_LIMIT_EXCEEDED", "retryAfterSeconds": 42})
    )
    executor = _executor(recorder, [], on_rate_limit=callback)

    with pytest.raises(RateLimitError, match="42"):
        executor.execute("GET", "/x")


def test_async_executor_retries_and_sleeps_without_blocking():
    recorder = _Recorder(lambda _req, _n: httpx.Response(500, json={"message": "down"}))
    sleeps: list[float] = []

    async def sleeper(seconds: float) -> None:
        sleeps.append(seconds)

    async def run() -> None:
        executor = AsyncRequestExecutor(
            _config(retry_policy=RetryPolicy(max_retries=2, base_delay_seconds=0.5, factor=3.0, jitter=False)),
            client=httpx.AsyncClient(transport=httpx.MockTransport(recorder)),
            sleeper=sleeper,
        )
        with pytest.raises(ServerError, match="down"):
            await executor.execute("GET", "/x")

    asyncio.run(run())
    assert len(recorder.requests) == 3
    assert sleeps == pytest.approx([0.5, 1.5])


def test_async_executor_awaits_async_rate_limit_callback():
    infos: list[RateLimitInfo] = []

    async def callback(info: RateLimitInfo) -> None:
        infos.append(info)
        raise RuntimeError("ignored")

    recorder = _Recorder(
        lambda _req, _n: httpx.Response(429, json={"code": "RATE_LIMIT_EXCEEDED", "dailyLimit": 5})
    )

    async def run() -> None:
        async with AsyncRequestExecutor(
            _config(on_rate_limit=callback),
            client=httpx.AsyncClient(transport=httpx.MockTransport(recorder)),
        ) as executor:
            with pytest.raises(RateLimitError, match="daily cap: 5/24h"):
                await executor.execute("GET", "/x")

    asyncio.run(run())
    assert [info.daily_limit for info in infos] == [5]
