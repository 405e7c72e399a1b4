from .crypto import CryptoProvider, StdlibCryptoProvider
from .errors import (
    WebhookError,
    WebhookHandlerError,
    WebhookInputError,
    WebhookSignatureError,
    WebhookTimestampError,
)
from .receiver import WebhookReceiver
from .security import (
    DEFAULT_FUTURE_SKEW_MS,
    DEFAULT_TOLERANCE_MS,
    HEADER_SIGNATURE,
    HEADER_TIMESTAMP,
    WebhookVerifier,
    compute_signature,
    verify_webhook,
)

__all__ = [
    "CryptoProvider",
    "DEFAULT_FUTURE_SKEW_MS",
    "DEFAULT_TOLERANCE_MS",
    "HEADER_SIGNATURE",
    "HEADER_TIMESTAMP",
    "StdlibCryptoProvider",
    "WebhookError",
    "WebhookHandlerError",
    "WebhookInputError",
    "WebhookReceiver",
    "WebhookSignatureError",
    "WebhookTimestampError",
    "WebhookVerifier",
    "compute_signature",
    "verify_webhook",
]
