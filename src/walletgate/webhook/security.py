import base64
import logging
import re
import time
from typing import Callable, Mapping, Optional, Union

from .crypto import CryptoProvider, StdlibCryptoProvider, ensure_crypto_provider
from .errors import WebhookInputError, WebhookSignatureError, WebhookTimestampError

logger = logging.getLogger(__name__)

HEADER_SIGNATURE = "x-walletgate-signature"
HEADER_TIMESTAMP = "x-walletgate-timestamp"
DEFAULT_TOLERANCE_MS = 5 * 60 * 1000
DEFAULT_FUTURE_SKEW_MS = 30 * 1000

_INTEGER = re.compile(r"-?\d+")

RawBody = Union[str, bytes]


def get_header(headers: Mapping[str, str], key: str) -> Optional[str]:
    key_lower = key.lower()
    for name, value in headers.items():
        if name.lower() == key_lower:
            return value
    return None


def compute_signature(
    raw_body: RawBody,
    secret: str,
    *,
    crypto: Optional[CryptoProvider] = None,
) -> str:
    provider = crypto or StdlibCryptoProvider()
    digest = provider.hmac_sha256(secret.encode("utf-8"), _to_bytes(raw_body))
    return base64.b64encode(digest).decode("ascii")


def _now_ms() -> int:
    return int(time.time() * 1000)


class WebhookVerifier:
    """Checks webhook signatures and replay windows.

    The signature is ``base64(HMAC-SHA256(secret, raw_body))``. A signature
    whose length differs from the expected one is rejected before the
    constant-time comparator runs, since the comparator needs equal lengths.
    Timestamps are epoch milliseconds. They may be at most ``tolerance_ms``
    old and at most ``future_skew_ms`` ahead of the clock.
    """

    def __init__(
        self,
        *,
        crypto: Optional[CryptoProvider] = None,
        tolerance_ms: int = DEFAULT_TOLERANCE_MS,
        future_skew_ms: int = DEFAULT_FUTURE_SKEW_MS,
        clock: Optional[Callable[[], int]] = None,
    ) -> None:
        self._crypto = ensure_crypto_provider(crypto if crypto is not None else StdlibCryptoProvider())
        self._tolerance_ms = tolerance_ms
        self._future_skew_ms = future_skew_ms
        self._clock = clock or _now_ms

    def verify(
        self,
        raw_body: RawBody,
        signature: str,
        secret: str,
        timestamp_ms: Union[str, int],
    ) -> bool:
        _require_inputs(raw_body, signature, secret, timestamp_ms)
        expected = compute_signature(raw_body, secret, crypto=self._crypto).encode("ascii")
        provided = signature.encode("utf-8")
        if len(provided) != len(expected):
            logger.debug("webhook signature rejected: length mismatch")
            return False
        if not self._crypto.constant_time_equal(provided, expected):
            logger.debug("webhook signature rejected: digest mismatch")
            return False
        return self.is_fresh(timestamp_ms)

    def is_fresh(self, timestamp_ms: Union[str, int]) -> bool:
        value = _parse_timestamp(timestamp_ms)
        if value is None:
            logger.debug("webhook timestamp rejected: not an integer")
            return False
        age_ms = self._clock() - value
        if age_ms > self._tolerance_ms:
            logger.debug("webhook timestamp rejected: older than %d ms", self._tolerance_ms)
            return False
        if -age_ms > self._future_skew_ms:
            logger.debug("webhook timestamp rejected: more than %d ms in the future", self._future_skew_ms)
            return False
        return True

    def verify_headers(self, headers: Mapping[str, str], raw_body: RawBody, secret: str) -> None:
        signature = get_header(headers, HEADER_SIGNATURE)
        timestamp = get_header(headers, HEADER_TIMESTAMP)
        if not signature or not timestamp:
            raise WebhookSignatureError("missing signature headers")
        if not self.is_fresh(timestamp):
            raise WebhookTimestampError("timestamp is outside allowed range")
        if not self.verify(raw_body, signature, secret, timestamp):
            raise WebhookSignatureError("signature verification failed")


def verify_webhook(
    raw_body: RawBody,
    signature: str,
    secret: str,
    timestamp_ms: Union[str, int],
    *,
    crypto: Optional[CryptoProvider] = None,
    now_ms: Optional[int] = None,
) -> bool:
    clock = (lambda: now_ms) if now_ms is not None else None
    return WebhookVerifier(crypto=crypto, clock=clock).verify(raw_body, signature, secret, timestamp_ms)


def _require_inputs(
    raw_body: RawBody,
    signature: str,
    secret: str,
    timestamp_ms: Union[str, int],
) -> None:
    missing = [
        name
        for name, value in (
            ("raw_body", raw_body),
            ("signature", signature),
            ("secret", secret),
            ("timestamp", timestamp_ms),
        )
        if value is None or value == "" or value == b""
    ]
    if missing:
        raise WebhookInputError(f"missing webhook verification input: {', '.join(missing)}")


def _parse_timestamp(value: Union[str, int]) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    text = str(value).strip()
    if not _INTEGER.fullmatch(text):
        return None
    return int(text)


def _to_bytes(raw_body: RawBody) -> bytes:
    if isinstance(raw_body, bytes):
        return raw_body
    return raw_body.encode("utf-8")
