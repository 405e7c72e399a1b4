import asyncio
import json
from typing import Any, Optional, cast

import httpx
import pytest

from walletgate.client import AsyncWalletGateClient, WalletGateClient
from walletgate.config import WalletGateConfig
from walletgate.exceptions import ConfigurationError, ValidationError
from walletgate.http_client import AsyncRequestExecutor, RequestExecutor
from walletgate.models import SessionStatus

_SESSION = {
    "id": "sess_1",
    "merchantId": "mer_1",
    "status": "pending",
    "checks": [{"type": "age_over", "value": 18}],
    "verificationUrl": "https://wallet.walletgate.app/v/sess_1",
    "expiresAt": "2025-01-01T12:15:00Z",
    "createdAt": "2025-01-01T12:00:00Z",
    "updatedAt": "2025-01-01T12:00:00Z",
}


class _ExecutorStub:
    def __init__(self, config: WalletGateConfig, response: Any) -> None:
        self.config = config
        self._response = response
        self.calls: list[tuple[str, str, Optional[Any]]] = []
        self.closed = False

    def execute(self, method: str, path: str, *, body: Any = None) -> Any:
        self.calls.append((method, path, body))
        return self._response

    def close(self) -> None:
        self.closed = True


class _AsyncExecutorStub(_ExecutorStub):
    async def execute(self, method: str, path: str, *, body: Any = None) -> Any:  # type: ignore[override]
        self.calls.append((method, path, body))
        return self._response

    async def aclose(self) -> None:
        self.closed = True


def test_client_requires_config_or_api_key():
    with pytest.raises(ConfigurationError):
        WalletGateClient()


def test_start_verification_validates_and_posts_wire_payload():
    stub = _ExecutorStub(WalletGateConfig(api_key="k"), _SESSION)
    client = WalletGateClient(executor=cast(RequestExecutor, stub))

    session = client.start_verification(
        {"checks": [{"type": "age_over", "value": 18}], "redirect_url": "https://shop.example.com/back"}
    )

    assert session is not None
    assert session.id == "sess_1"
    assert session.status is SessionStatus.PENDING
    assert stub.calls == [
        (
            "POST",
            "/v1/verify/sessions",
            {"checks": [{"type": "age_over", "value": 18}], "redirectUrl": "https://shop.example.com/back"},
        )
    ]


def test_invalid_input_never_reaches_the_network():
    stub = _ExecutorStub(WalletGateConfig(api_key="k"), _SESSION)
    client = WalletGateClient(executor=cast(RequestExecutor, stub))

    with pytest.raises(ValidationError):
        client.start_verification({"checks": [{"type": "age_over", "value": 151}]})

    assert stub.calls == []


def test_get_result_quotes_session_id():
    stub = _ExecutorStub(
        WalletGateConfig(api_key="k"),
        {"id": "a/b", "status": "in_progress", "expiresAt": "e", "createdAt": "c", "updatedAt": "u"},
    )
    client = WalletGateClient(executor=cast(RequestExecutor, stub))

    result = client.get_result("a/b")

    assert result is not None
    assert result.status is SessionStatus.IN_PROGRESS
    assert stub.calls == [("GET", "/v1/verify/sessions/a%2Fb", None)]


def test_get_result_requires_session_id():
    client = WalletGateClient(executor=cast(RequestExecutor, _ExecutorStub(WalletGateConfig(api_key="k"), None)))

    with pytest.raises(ValidationError):
        client.get_result("  ")


def test_malformed_success_body_yields_none():
    stub = _ExecutorStub(WalletGateConfig(api_key="k"), None)
    client = WalletGateClient(executor=cast(RequestExecutor, stub))

    assert client.get_result("sess_1") is None


def test_context_manager_closes_executor():
    stub = _ExecutorStub(WalletGateConfig(api_key="k"), None)
    with WalletGateClient(executor=cast(RequestExecutor, stub)):
        pass

    assert stub.closed


def test_client_builds_executor_over_injected_http_client():
    captured: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        captured.append(request)
        return httpx.Response(201, json=_SESSION)

    client = WalletGateClient(
        WalletGateConfig(api_key="wg_live_1", base_url="https://api.test.local/"),
        http_client=httpx.Client(transport=httpx.MockTransport(handler)),
    )

    session = client.start_verification({"checks": [{"type": "identity_verified"}]})

    assert session is not None and session.verification_url == _SESSION["verificationUrl"]
    assert str(captured[0].url) == "https://api.test.local/v1/verify/sessions"
    assert json.loads(captured[0].content) == {"checks": [{"type": "identity_verified"}]}


def test_async_client_round_trip():
    stub = _AsyncExecutorStub(WalletGateConfig(api_key="k"), _SESSION)

    async def run() -> None:
        async with AsyncWalletGateClient(executor=cast(AsyncRequestExecutor, stub)) as client:
            session = await client.start_verification({"checks": [{"type": "age_over", "value": 18}]})
            assert session is not None
            assert session.merchant_id == "mer_1"

    asyncio.run(run())
    assert stub.closed
    assert stub.calls[0][0:2] == ("POST", "/v1/verify/sessions")
