import math
from dataclasses import dataclass
from typing import Any, Mapping, Optional

RATE_LIMIT_CODE = "RATE_LIMIT_EXCEEDED"

KIND_SUCCESS = "success"
KIND_RATE_LIMITED = "rate_limited"
KIND_CLIENT_ERROR = "client_error"
KIND_SERVER_ERROR = "server_error"


@dataclass(frozen=True)
class Classification:
    kind: str
    retryable: bool

    @property
    def ok(self) -> bool:
        return self.kind == KIND_SUCCESS


@dataclass(frozen=True)
class ErrorPayload:
    code: Optional[str] = None
    message: Optional[str] = None
    details: Any = None
    timestamp: Optional[str] = None
    request_id: Optional[str] = None

    @classmethod
    def from_raw(cls, payload: Any) -> Optional["ErrorPayload"]:
        if not isinstance(payload, Mapping):
            return None
        return cls(
            code=_as_optional_str(payload.get("code")),
            message=_as_optional_str(payload.get("message")),
            details=payload.get("details"),
            timestamp=_as_optional_str(payload.get("timestamp")),
            request_id=_as_optional_str(payload.get("requestId")),
        )


@dataclass(frozen=True)
class RateLimitInfo:
    message: str
    retry_after_seconds: Optional[float] = None
    monthly_limit: Optional[int] = None
    daily_limit: Optional[int] = None
    upgrade_url: Optional[str] = None

    @classmethod
    def from_raw(cls, payload: Mapping[str, Any]) -> "RateLimitInfo":
        upgrade_url = payload.get("upgradeUrl")
        return cls(
            message=_as_optional_str(payload.get("message")) or "Rate limit exceeded",
            retry_after_seconds=_as_number(payload.get("retryAfterSeconds")),
            monthly_limit=_as_number(payload.get("monthlyLimit")),
            daily_limit=_as_number(payload.get("dailyLimit")),
            upgrade_url=upgrade_url if isinstance(upgrade_url, str) else None,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "message": self.message,
            "retry_after_seconds": self.retry_after_seconds,
            "monthly_limit": self.monthly_limit,
            "daily_limit": self.daily_limit,
            "upgrade_url": self.upgrade_url,
        }


def classify_response(status_code: int, payload: Any = None) -> Classification:
    """Map a status code and decoded body onto the retry taxonomy.

    Pure: no I/O, no side effects. 4xx bodies whose ``code`` is
    ``RATE_LIMIT_EXCEEDED`` are reported as ``rate_limited``; every other
    non-2xx status below 500 is a non-retryable client error.
    """
    if 200 <= status_code < 300:
        return Classification(KIND_SUCCESS, retryable=False)
    if 500 <= status_code < 600:
        return Classification(KIND_SERVER_ERROR, retryable=True)
    if 400 <= status_code < 500 and isinstance(payload, Mapping) and payload.get("code") == RATE_LIMIT_CODE:
        return Classification(KIND_RATE_LIMITED, retryable=False)
    return Classification(KIND_CLIENT_ERROR, retryable=False)


def build_rate_limit_message(info: RateLimitInfo) -> str:
    details: list[str] = []
    if info.retry_after_seconds:
        details.append(f"retry after ~{math.ceil(info.retry_after_seconds)}s")
    if info.monthly_limit:
        details.append(f"plan limit: {info.monthly_limit}/mo")
    if info.daily_limit:
        details.append(f"daily cap: {info.daily_limit}/24h")
    hint = f" - upgrade: {info.upgrade_url}" if info.upgrade_url else ""
    return f"Rate limit exceeded ({', '.join(details)}){hint}"


def client_error_message(status_code: int, error: Optional[ErrorPayload]) -> str:
    if error is not None and error.message:
        return error.message
    return f"Request failed with status {status_code}"


def server_error_message(status_code: int, error: Optional[ErrorPayload]) -> str:
    if error is not None and error.message:
        return error.message
    return f"Server error ({status_code})"


def _as_optional_str(value: Any) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, str):
        return value
    return str(value)


def _as_number(value: Any) -> Any:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return value
    return None
