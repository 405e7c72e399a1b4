from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Union
from urllib.parse import urlsplit

from pydantic import BaseModel, ConfigDict, Field, StrictBool, StrictFloat, StrictInt, StrictStr, field_validator, model_validator
from pydantic import ValidationError as PydanticValidationError

from .exceptions import ValidationError

MAX_CHECKS = 10
MIN_AGE = 0
MAX_AGE = 150


class CheckType(str, Enum):
    AGE_OVER = "age_over"
    RESIDENCY_EU = "residency_eu"
    IDENTITY_VERIFIED = "identity_verified"


class VerificationCheckInput(BaseModel):
    model_config = ConfigDict(extra="forbid", use_enum_values=True)

    type: CheckType
    value: Optional[Union[StrictInt, StrictFloat, StrictStr]] = None

    @model_validator(mode="after")
    def _check_value_for_type(self) -> "VerificationCheckInput":
        if self.type == CheckType.AGE_OVER.value and self.value is not None:
            if isinstance(self.value, str):
                raise ValueError("age_over value must be a number")
            if not MIN_AGE <= self.value <= MAX_AGE:
                raise ValueError(f"age_over value must be between {MIN_AGE} and {MAX_AGE}")
        return self


class CreateSessionInput(BaseModel):
    """Body of ``POST /v1/verify/sessions``.

    Field names are snake_case in Python and camelCase on the wire; both
    spellings are accepted on input.
    """

    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    checks: List[VerificationCheckInput] = Field(min_length=1, max_length=MAX_CHECKS)
    redirect_url: Optional[str] = Field(default=None, alias="redirectUrl")
    success_url: Optional[str] = Field(default=None, alias="successUrl")
    cancel_url: Optional[str] = Field(default=None, alias="cancelUrl")
    webhook_url: Optional[str] = Field(default=None, alias="webhookUrl")
    metadata: Optional[Dict[str, Any]] = None
    enable_ai: Optional[StrictBool] = Field(default=None, alias="enableAI")

    @field_validator("redirect_url", "success_url", "cancel_url", "webhook_url")
    @classmethod
    def _require_https(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return value
        parts = urlsplit(value)
        if parts.scheme != "https" or not parts.netloc:
            raise ValueError("must be an absolute https URL")
        return value

    def to_payload(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True, mode="json")


class WebhookPayload(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    event: str
    session_id: str = Field(alias="sessionId")
    merchant_id: str = Field(alias="merchantId")
    data: Dict[str, Any]
    timestamp: datetime


def validate_create_session_input(data: Union[CreateSessionInput, Mapping[str, Any]]) -> CreateSessionInput:
    if isinstance(data, CreateSessionInput):
        return data
    if not isinstance(data, Mapping):
        raise ValidationError("verification input must be a mapping")
    try:
        return CreateSessionInput.model_validate(dict(data))
    except PydanticValidationError as exc:
        raise ValidationError(_summarize(exc), errors=exc.errors(include_url=False)) from exc


def parse_webhook_payload(data: Any) -> WebhookPayload:
    try:
        return WebhookPayload.model_validate(data)
    except PydanticValidationError as exc:
        raise ValidationError(_summarize(exc), errors=exc.errors(include_url=False)) from exc


def _summarize(exc: PydanticValidationError) -> str:
    parts = []
    for error in exc.errors(include_url=False):
        location = ".".join(str(item) for item in error.get("loc", ()))
        parts.append(f"{location}: {error.get('msg')}" if location else str(error.get("msg")))
    return "invalid input: " + "; ".join(parts)
