from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional

from .exceptions import ResponseDecodeError


class SessionStatus(str, Enum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    FAILED = "failed"
    EXPIRED = "expired"

    @property
    def is_terminal(self) -> bool:
        return self in _TERMINAL_STATUSES

    @classmethod
    def parse(cls, value: Any) -> "SessionStatus":
        if isinstance(value, str):
            for status in cls:
                if status.value == value:
                    return status
        raise ResponseDecodeError(f"unknown session status: {value!r}")


_TERMINAL_STATUSES = frozenset({SessionStatus.COMPLETED, SessionStatus.FAILED, SessionStatus.EXPIRED})
_ENVIRONMENTS = frozenset({"test", "live"})


@dataclass(frozen=True)
class VerificationCheck:
    type: str
    value: Any = None
    passed: Optional[bool] = None
    raw: Mapping[str, Any] = field(default_factory=dict, repr=False, compare=False)

    @classmethod
    def from_dict(cls, payload: Any) -> "VerificationCheck":
        data = _require_mapping(payload, "check")
        passed = data.get("passed")
        if passed is not None and not isinstance(passed, bool):
            raise ResponseDecodeError(f"check.passed must be a boolean, got {passed!r}")
        return cls(
            type=_require_str(data, "type"),
            value=data.get("value"),
            passed=passed,
            raw=dict(data),
        )

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {"type": self.type}
        if "value" in self.raw or self.value is not None:
            result["value"] = self.value
        if "passed" in self.raw or self.passed is not None:
            result["passed"] = self.passed
        return result


@dataclass(frozen=True)
class VerificationSession:
    """Server-issued session. The client only reads it; status moves server-side."""

    id: str
    merchant_id: str
    status: SessionStatus
    checks: List[VerificationCheck]
    expires_at: str
    created_at: str
    updated_at: str
    metadata: Optional[Dict[str, Any]] = None
    redirect_url: Optional[str] = None
    verification_url: Optional[str] = None
    nonce: Optional[str] = None
    environment: Optional[str] = None
    test_mode: Optional[bool] = None
    warning: Optional[str] = None
    raw: Mapping[str, Any] = field(default_factory=dict, repr=False, compare=False)

    @classmethod
    def from_dict(cls, payload: Any) -> "VerificationSession":
        data = _require_mapping(payload, "session")
        checks = data.get("checks")
        if not isinstance(checks, list):
            raise ResponseDecodeError("session.checks must be a list")
        metadata = data.get("metadata")
        if metadata is not None and not isinstance(metadata, Mapping):
            raise ResponseDecodeError("session.metadata must be an object")
        return cls(
            id=_require_str(data, "id"),
            merchant_id=_require_str(data, "merchantId"),
            status=SessionStatus.parse(data.get("status")),
            checks=[VerificationCheck.from_dict(item) for item in checks],
            expires_at=_require_str(data, "expiresAt"),
            created_at=_require_str(data, "createdAt"),
            updated_at=_require_str(data, "updatedAt"),
            metadata=dict(metadata) if metadata is not None else None,
            redirect_url=_optional_str(data, "redirectUrl"),
            verification_url=_optional_str(data, "verificationUrl"),
            nonce=_optional_str(data, "nonce"),
            environment=_optional_environment(data),
            test_mode=_optional_bool(data, "testMode"),
            warning=_optional_str(data, "warning"),
            raw=dict(data),
        )

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {
            "id": self.id,
            "merchantId": self.merchant_id,
            "status": self.status.value,
            "checks": [check.to_dict() for check in self.checks],
        }
        _put_optional(result, "metadata", self.metadata, self.raw)
        _put_optional(result, "redirectUrl", self.redirect_url, self.raw)
        _put_optional(result, "verificationUrl", self.verification_url, self.raw)
        _put_optional(result, "nonce", self.nonce, self.raw)
        _put_optional(result, "environment", self.environment, self.raw)
        _put_optional(result, "testMode", self.test_mode, self.raw)
        _put_optional(result, "warning", self.warning, self.raw)
        result["expiresAt"] = self.expires_at
        result["createdAt"] = self.created_at
        result["updatedAt"] = self.updated_at
        return result


@dataclass(frozen=True)
class VerificationResult:
    id: str
    status: SessionStatus
    expires_at: str
    created_at: str
    updated_at: str
    results: Optional[Dict[str, bool]] = None
    risk_score: Optional[float] = None
    ai_insights: Optional[List[str]] = None
    environment: Optional[str] = None
    test_mode: Optional[bool] = None
    warning: Optional[str] = None
    raw: Mapping[str, Any] = field(default_factory=dict, repr=False, compare=False)

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal

    @classmethod
    def from_dict(cls, payload: Any) -> "VerificationResult":
        data = _require_mapping(payload, "result")
        results = data.get("results")
        if results is not None:
            if not isinstance(results, Mapping) or not all(isinstance(v, bool) for v in results.values()):
                raise ResponseDecodeError("result.results must map check names to booleans")
            results = {str(k): v for k, v in results.items()}
        risk_score = data.get("riskScore")
        if risk_score is not None and (isinstance(risk_score, bool) or not isinstance(risk_score, (int, float))):
            raise ResponseDecodeError("result.riskScore must be a number")
        ai_insights = data.get("aiInsights")
        if ai_insights is not None:
            if not isinstance(ai_insights, list) or not all(isinstance(item, str) for item in ai_insights):
                raise ResponseDecodeError("result.aiInsights must be a list of strings")
            ai_insights = list(ai_insights)
        return cls(
            id=_require_str(data, "id"),
            status=SessionStatus.parse(data.get("status")),
            expires_at=_require_str(data, "expiresAt"),
            created_at=_require_str(data, "createdAt"),
            updated_at=_require_str(data, "updatedAt"),
            results=results,
            risk_score=risk_score,
            ai_insights=ai_insights,
            environment=_optional_environment(data),
            test_mode=_optional_bool(data, "testMode"),
            warning=_optional_str(data, "warning"),
            raw=dict(data),
        )

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {"id": self.id, "status": self.status.value}
        _put_optional(result, "results", self.results, self.raw)
        _put_optional(result, "riskScore", self.risk_score, self.raw)
        _put_optional(result, "aiInsights", self.ai_insights, self.raw)
        _put_optional(result, "environment", self.environment, self.raw)
        _put_optional(result, "testMode", self.test_mode, self.raw)
        _put_optional(result, "warning", self.warning, self.raw)
        result["expiresAt"] = self.expires_at
        result["createdAt"] = self.created_at
        result["updatedAt"] = self.updated_at
        return result


def _require_mapping(payload: Any, name: str) -> Mapping[str, Any]:
    if not isinstance(payload, Mapping):
        raise ResponseDecodeError(f"{name} payload must be a json object")
    return payload


def _require_str(data: Mapping[str, Any], key: str) -> str:
    value = data.get(key)
    if not isinstance(value, str):
        raise ResponseDecodeError(f"missing or invalid field: {key}")
    return value


def _optional_str(data: Mapping[str, Any], key: str) -> Optional[str]:
    value = data.get(key)
    if value is None:
        return None
    if not isinstance(value, str):
        raise ResponseDecodeError(f"{key} must be a string")
    return value


def _optional_bool(data: Mapping[str, Any], key: str) -> Optional[bool]:
    value = data.get(key)
    if value is None:
        return None
    if not isinstance(value, bool):
        raise ResponseDecodeError(f"{key} must be a boolean")
    return value


def _optional_environment(data: Mapping[str, Any]) -> Optional[str]:
    value = _optional_str(data, "environment")
    if value is not None and value not in _ENVIRONMENTS:
        raise ResponseDecodeError(f"unknown environment: {value!r}")
    return value


def _put_optional(target: Dict[str, Any], key: str, value: Any, raw: Mapping[str, Any]) -> None:
    if value is not None or key in raw:
        target[key] = value
