from typing import Any, Mapping, Optional, Sequence


class WalletGateError(RuntimeError):
    retryable = False


class ConfigurationError(WalletGateError):
    pass


class QRUnavailableError(ConfigurationError):
    pass


class ValidationError(WalletGateError):
    def __init__(self, message: str, *, errors: Optional[Sequence[Mapping[str, Any]]] = None) -> None:
        super().__init__(message)
        self.errors = [dict(item) for item in errors or ()]


class ResponseDecodeError(WalletGateError):
    pass


class NetworkError(WalletGateError):
    retryable = True


class RequestTimeoutError(NetworkError):
    pass


class HTTPRequestError(WalletGateError):
    def __init__(
        self,
        message: str,
        *,
        status_code: Optional[int] = None,
        response_text: Optional[str] = None,
        response_headers: Optional[Mapping[str, str]] = None,
        code: Optional[str] = None,
        request_id: Optional[str] = None,
        details: Any = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.response_text = response_text
        self.response_headers = dict(response_headers or {})
        self.code = code
        self.request_id = request_id
        self.details = details


class ClientError(HTTPRequestError):
    pass


class RateLimitError(ClientError):
    def __init__(self, message: str, *, info: Any, **kwargs: Any) -> None:
        super().__init__(message, **kwargs)
        self.info = info


class ServerError(HTTPRequestError):
    retryable = True
