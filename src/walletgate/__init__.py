from .client import AsyncWalletGateClient, WalletGateClient
from .config import DEFAULT_BASE_URL, WalletGateConfig
from .events import EventHandlerRegistry, WebhookEvent
from .exceptions import (
    ClientError,
    ConfigurationError,
    HTTPRequestError,
    NetworkError,
    QRUnavailableError,
    RateLimitError,
    RequestTimeoutError,
    ResponseDecodeError,
    ServerError,
    ValidationError,
    WalletGateError,
)
from .helpers import QRRenderer, QrcodeRenderer, build_deep_link_url, make_qr_data_url
from .http_client import AsyncRequestExecutor, RequestExecutor
from .models import SessionStatus, VerificationCheck, VerificationResult, VerificationSession
from .response import Classification, ErrorPayload, RateLimitInfo, classify_response
from .retry import RetryPolicy
from .schemas import (
    CheckType,
    CreateSessionInput,
    VerificationCheckInput,
    WebhookPayload,
    validate_create_session_input,
)
from .version import __version__
from .webhook import (
    CryptoProvider,
    StdlibCryptoProvider,
    WebhookError,
    WebhookInputError,
    WebhookReceiver,
    WebhookSignatureError,
    WebhookTimestampError,
    WebhookVerifier,
    compute_signature,
    verify_webhook,
)

__all__ = [
    "AsyncRequestExecutor",
    "AsyncWalletGateClient",
    "CheckType",
    "Classification",
    "ClientError",
    "ConfigurationError",
    "CreateSessionInput",
    "CryptoProvider",
    "DEFAULT_BASE_URL",
    "ErrorPayload",
    "EventHandlerRegistry",
    "HTTPRequestError",
    "NetworkError",
    "QRRenderer",
    "QRUnavailableError",
    "QrcodeRenderer",
    "RateLimitError",
    "RateLimitInfo",
    "RequestExecutor",
    "RequestTimeoutError",
    "ResponseDecodeError",
    "RetryPolicy",
    "ServerError",
    "SessionStatus",
    "StdlibCryptoProvider",
    "ValidationError",
    "VerificationCheck",
    "VerificationCheckInput",
    "VerificationResult",
    "VerificationSession",
    "WalletGateClient",
    "WalletGateConfig",
    "WalletGateError",
    "WebhookError",
    "WebhookEvent",
    "WebhookInputError",
    "WebhookPayload",
    "WebhookReceiver",
    "WebhookSignatureError",
    "WebhookTimestampError",
    "WebhookVerifier",
    "__version__",
    "build_deep_link_url",
    "classify_response",
    "compute_signature",
    "make_qr_data_url",
    "validate_create_session_input",
    "verify_webhook",
]
