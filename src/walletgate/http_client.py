import asyncio
import inspect
import json
import logging
import random
import time
from typing import Any, Awaitable, Callable, Dict, Mapping, Optional, Union

import httpx

from .config import WalletGateConfig
from .exceptions import (
    ClientError,
    HTTPRequestError,
    NetworkError,
    RateLimitError,
    RequestTimeoutError,
    ServerError,
    WalletGateError,
)
from .response import (
    KIND_RATE_LIMITED,
    KIND_SERVER_ERROR,
    ErrorPayload,
    RateLimitInfo,
    build_rate_limit_message,
    classify_response,
    client_error_message,
    server_error_message,
)

logger = logging.getLogger(__name__)

RequestBody = Union[str, bytes, Mapping[str, Any], None]

_INFORMATIONAL_HEADERS = (
    "retry-after",
    "x-ratelimit-limit",
    "x-ratelimit-remaining",
    "x-ratelimit-reset",
)


class RequestExecutor:
    """Runs one logical API call with bearer auth, timeout and retry/backoff."""

    def __init__(
        self,
        config: WalletGateConfig,
        *,
        session: Optional[httpx.Client] = None,
        sleeper: Optional[Callable[[float], None]] = None,
        rand: Optional[Callable[[], float]] = None,
    ) -> None:
        self._config = config
        self._owns_session = session is None
        self._session = session or httpx.Client()
        self._sleep = sleeper or time.sleep
        self._rand = rand or random.random

    @property
    def config(self) -> WalletGateConfig:
        return self._config

    def execute(self, method: str, path: str, *, body: RequestBody = None) -> Any:
        method_upper = method.upper()
        url = f"{self._config.base_url}{path}"
        content = _encode_body(body)
        headers = _build_headers(self._config, has_body=content is not None)
        policy = self._config.retry_policy
        attempt = 0
        while True:
            try:
                return self._attempt(method_upper, url, headers, content)
            except WalletGateError as exc:
                if not exc.retryable:
                    raise
                if not policy.should_retry(attempt):
                    _log_exhausted(method_upper, path, attempt, exc)
                    raise
                delay = policy.get_delay_seconds(attempt, rand=self._rand)
                _log_retry(method_upper, path, attempt, delay, exc)
                attempt += 1
                self._sleep(delay)

    def close(self) -> None:
        if self._owns_session:
            self._session.close()

    def __enter__(self) -> "RequestExecutor":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    def _attempt(
        self,
        method: str,
        url: str,
        headers: Mapping[str, str],
        content: Optional[bytes],
    ) -> Any:
        # httpx timeouts apply per phase; the deadline bounds the whole call.
        timeout = self._config.timeout_seconds
        deadline = time.monotonic() + timeout
        try:
            with self._session.stream(
                method,
                url,
                headers=dict(headers),
                content=content,
                timeout=timeout,
            ) as streamed:
                body = bytearray()
                for chunk in streamed.iter_raw():
                    body.extend(chunk)
                    _check_deadline(deadline, timeout)
                _check_deadline(deadline, timeout)
                response = httpx.Response(
                    streamed.status_code,
                    headers=streamed.headers,
                    content=bytes(body),
                    request=streamed.request,
                )
        except httpx.TimeoutException as exc:
            raise RequestTimeoutError(_timeout_message(timeout)) from exc
        except httpx.RequestError as exc:
            raise NetworkError(f"Network error: {exc}") from exc
        data, error = _interpret_response(response)
        if error is None:
            return data
        if isinstance(error, RateLimitError):
            self._notify_rate_limit(error.info)
        raise error

    def _notify_rate_limit(self, info: RateLimitInfo) -> None:
        callback = self._config.on_rate_limit
        if callback is None:
            return
        try:
            callback(info)
        except Exception:
            logger.warning("on_rate_limit callback raised; ignoring", exc_info=True)


class AsyncRequestExecutor:
    def __init__(
        self,
        config: WalletGateConfig,
        *,
        client: Optional[httpx.AsyncClient] = None,
        sleeper: Optional[Callable[[float], Awaitable[None]]] = None,
        rand: Optional[Callable[[], float]] = None,
    ) -> None:
        self._config = config
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient()
        self._sleep = sleeper or asyncio.sleep
        self._rand = rand or random.random

    @property
    def config(self) -> WalletGateConfig:
        return self._config

    async def execute(self, method: str, path: str, *, body: RequestBody = None) -> Any:
        method_upper = method.upper()
        url = f"{self._config.base_url}{path}"
        content = _encode_body(body)
        headers = _build_headers(self._config, has_body=content is not None)
        policy = self._config.retry_policy
        attempt = 0
        while True:
            try:
                return await self._attempt(method_upper, url, headers, content)
            except WalletGateError as exc:
                if not exc.retryable:
                    raise
                if not policy.should_retry(attempt):
                    _log_exhausted(method_upper, path, attempt, exc)
                    raise
                delay = policy.get_delay_seconds(attempt, rand=self._rand)
                _log_retry(method_upper, path, attempt, delay, exc)
                attempt += 1
                await self._sleep(delay)

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> "AsyncRequestExecutor":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def _attempt(
        self,
        method: str,
        url: str,
        headers: Mapping[str, str],
        content: Optional[bytes],
    ) -> Any:
        timeout = self._config.timeout_seconds
        try:
            response = await asyncio.wait_for(
                self._client.request(
                    method,
                    url,
                    headers=dict(headers),
                    content=content,
                    timeout=timeout,
                ),
                timeout,
            )
        except (asyncio.TimeoutError, httpx.TimeoutException) as exc:
            raise RequestTimeoutError(_timeout_message(timeout)) from exc
        except httpx.RequestError as exc:
            raise NetworkError(f"Network error: {exc}") from exc
        data, error = _interpret_response(response)
        if error is None:
            return data
        if isinstance(error, RateLimitError):
            await self._notify_rate_limit(error.info)
        raise error

    async def _notify_rate_limit(self, info: RateLimitInfo) -> None:
        callback = self._config.on_rate_limit
        if callback is None:
            return
        try:
            result = callback(info)
            if inspect.isawaitable(result):
                await result
        except Exception:
            logger.warning("on_rate_limit callback raised; ignoring", exc_info=True)


def _timeout_message(timeout: float) -> str:
    return f"Request timed out after {timeout}s"


def _check_deadline(deadline: float, timeout: float) -> None:
    if time.monotonic() > deadline:
        raise RequestTimeoutError(_timeout_message(timeout))


def _build_headers(config: WalletGateConfig, *, has_body: bool) -> Dict[str, str]:
    headers = {
        "Authorization": f"Bearer {config.api_key}",
        "Accept": "application/json",
        "User-Agent": config.user_agent,
    }
    if has_body:
        headers["Content-Type"] = "application/json"
    return headers


def _encode_body(body: RequestBody) -> Optional[bytes]:
    if body is None:
        return None
    if isinstance(body, bytes):
        return body
    if isinstance(body, str):
        return body.encode("utf-8")
    return json.dumps(dict(body), ensure_ascii=False).encode("utf-8")


def _safe_json(response: httpx.Response) -> Any:
    if not response.content:
        return None
    try:
        return response.json()
    except ValueError:
        return None


def _interpret_response(response: httpx.Response) -> tuple[Any, Optional[HTTPRequestError]]:
    payload = _safe_json(response)
    classification = classify_response(response.status_code, payload)
    if classification.ok:
        if payload is None and response.content:
            # TODO: raise ResponseDecodeError once callers stop relying on None here.
            logger.warning(
                "response body for %s %s is not valid json; returning None",
                response.request.method,
                response.request.url.path,
            )
        return payload, None
    return None, _build_error(response, classification.kind, payload)


def _build_error(response: httpx.Response, kind: str, payload: Any) -> HTTPRequestError:
    status_code = response.status_code
    error = ErrorPayload.from_raw(payload)
    context: Dict[str, Any] = {
        "status_code": status_code,
        "response_text": response.text,
        "response_headers": {
            name: value for name, value in response.headers.items() if name.lower() in _INFORMATIONAL_HEADERS
        },
        "code": error.code if error else None,
        "request_id": error.request_id if error else None,
        "details": error.details if error else None,
    }
    if kind == KIND_RATE_LIMITED:
        info = RateLimitInfo.from_raw(payload)
        return RateLimitError(build_rate_limit_message(info), info=info, **context)
    if kind == KIND_SERVER_ERROR:
        return ServerError(server_error_message(status_code, error), **context)
    return ClientError(client_error_message(status_code, error), **context)


def _log_retry(method: str, path: str, attempt: int, delay: float, exc: Exception) -> None:
    logger.debug(
        "retrying %s %s after %s (attempt %d, sleeping %.3fs)",
        method,
        path,
        type(exc).__name__,
        attempt + 1,
        delay,
    )


def _log_exhausted(method: str, path: str, attempt: int, exc: Exception) -> None:
    if attempt == 0:
        return
    logger.warning("%s %s failed after %d attempts: %s", method, path, attempt + 1, exc)
