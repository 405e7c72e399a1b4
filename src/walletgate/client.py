import logging
from typing import Any, Mapping, Optional, Union
from urllib.parse import quote

import httpx

from .config import WalletGateConfig
from .exceptions import ConfigurationError, ValidationError
from .http_client import AsyncRequestExecutor, RequestExecutor
from .models import VerificationResult, VerificationSession
from .schemas import CreateSessionInput, validate_create_session_input
from .webhook.security import RawBody, WebhookVerifier

logger = logging.getLogger(__name__)

SESSIONS_PATH = "/v1/verify/sessions"

SessionInput = Union[CreateSessionInput, Mapping[str, Any]]


class WalletGateClient:
    """Synchronous client for the WalletGate verification API.

    Example:
        >>> client = WalletGateClient(api_key="wg_test_...")
        >>> session = client.start_verification({"checks": [{"type": "age_over", "value": 18}]})
        >>> result = client.get_result(session.id)
    """

    def __init__(
        self,
        config: Optional[WalletGateConfig] = None,
        *,
        api_key: Optional[str] = None,
        executor: Optional[RequestExecutor] = None,
        verifier: Optional[WebhookVerifier] = None,
        http_client: Optional[httpx.Client] = None,
    ) -> None:
        self._config = _resolve_config(config, api_key, executor)
        self._executor = executor or RequestExecutor(self._config, session=http_client)
        self._verifier = verifier or WebhookVerifier()

    @property
    def config(self) -> WalletGateConfig:
        return self._config

    def start_verification(self, data: SessionInput) -> Optional[VerificationSession]:
        payload = validate_create_session_input(data).to_payload()
        logger.debug("starting verification session with %d checks", len(payload["checks"]))
        response = self._executor.execute("POST", SESSIONS_PATH, body=payload)
        if response is None:
            return None
        return VerificationSession.from_dict(response)

    def get_result(self, session_id: str) -> Optional[VerificationResult]:
        response = self._executor.execute("GET", _session_path(session_id))
        if response is None:
            return None
        return VerificationResult.from_dict(response)

    def verify_webhook(
        self,
        raw_body: RawBody,
        signature: str,
        secret: str,
        timestamp_ms: Union[str, int],
    ) -> bool:
        return self._verifier.verify(raw_body, signature, secret, timestamp_ms)

    def close(self) -> None:
        self._executor.close()

    def __enter__(self) -> "WalletGateClient":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()


class AsyncWalletGateClient:
    def __init__(
        self,
        config: Optional[WalletGateConfig] = None,
        *,
        api_key: Optional[str] = None,
        executor: Optional[AsyncRequestExecutor] = None,
        verifier: Optional[WebhookVerifier] = None,
        http_client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self._config = _resolve_config(config, api_key, executor)
        self._executor = executor or AsyncRequestExecutor(self._config, client=http_client)
        self._verifier = verifier or WebhookVerifier()

    @property
    def config(self) -> WalletGateConfig:
        return self._config

    async def start_verification(self, data: SessionInput) -> Optional[VerificationSession]:
        payload = validate_create_session_input(data).to_payload()
        logger.debug("starting verification session with %d checks", len(payload["checks"]))
        response = await self._executor.execute("POST", SESSIONS_PATH, body=payload)
        if response is None:
            return None
        return VerificationSession.from_dict(response)

    async def get_result(self, session_id: str) -> Optional[VerificationResult]:
        response = await self._executor.execute("GET", _session_path(session_id))
        if response is None:
            return None
        return VerificationResult.from_dict(response)

    def verify_webhook(
        self,
        raw_body: RawBody,
        signature: str,
        secret: str,
        timestamp_ms: Union[str, int],
    ) -> bool:
        return self._verifier.verify(raw_body, signature, secret, timestamp_ms)

    async def aclose(self) -> None:
        await self._executor.aclose()

    async def __aenter__(self) -> "AsyncWalletGateClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()


def _resolve_config(
    config: Optional[WalletGateConfig],
    api_key: Optional[str],
    executor: Any,
) -> WalletGateConfig:
    if config is not None:
        return config
    if executor is not None:
        return executor.config
    if api_key is None:
        raise ConfigurationError("either config or api_key is required")
    return WalletGateConfig(api_key=api_key)


def _session_path(session_id: str) -> str:
    if not isinstance(session_id, str) or not session_id.strip():
        raise ValidationError("session_id is required")
    return f"{SESSIONS_PATH}/{quote(session_id.strip(), safe='')}"
