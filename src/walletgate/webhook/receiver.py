import json
from typing import Any, Dict, Mapping, Optional

from ..events import EventHandlerRegistry, WebhookEvent
from ..exceptions import ValidationError
from ..schemas import parse_webhook_payload
from .errors import WebhookHandlerError, WebhookInputError
from .security import RawBody, WebhookVerifier


class WebhookReceiver:
    def __init__(
        self,
        secret: str,
        *,
        registry: Optional[EventHandlerRegistry] = None,
        verifier: Optional[WebhookVerifier] = None,
    ) -> None:
        if not secret:
            raise WebhookInputError("webhook secret is required")
        self._secret = secret
        self._registry = registry
        self._verifier = verifier or WebhookVerifier()

    def parse(self, headers: Mapping[str, str], raw_body: RawBody) -> WebhookEvent:
        self._verifier.verify_headers(headers, raw_body, self._secret)
        return _decode_event(raw_body)

    def handle(self, headers: Mapping[str, str], raw_body: RawBody) -> Dict[str, Any]:
        event = self.parse(headers, raw_body)
        if self._registry is None:
            return _acknowledge(event)
        return _normalize_handler_result(self._registry.dispatch(event), event)

    async def ahandle(self, headers: Mapping[str, str], raw_body: RawBody) -> Dict[str, Any]:
        event = self.parse(headers, raw_body)
        if self._registry is None:
            return _acknowledge(event)
        return _normalize_handler_result(await self._registry.adispatch(event), event)


def _decode_event(raw_body: RawBody) -> WebhookEvent:
    text = raw_body.decode("utf-8") if isinstance(raw_body, bytes) else raw_body
    try:
        data = json.loads(text)
    except json.JSONDecodeError as exc:
        raise WebhookInputError("webhook body is not valid json") from exc
    if not isinstance(data, Mapping):
        raise WebhookInputError("webhook body must be a json object")
    try:
        payload = parse_webhook_payload(data)
    except ValidationError as exc:
        raise WebhookInputError(str(exc)) from exc
    return WebhookEvent.from_payload(payload, raw=data)


def _acknowledge(event: WebhookEvent) -> Dict[str, Any]:
    return {"received": True, "event": event.event}


def _normalize_handler_result(result: Any, event: WebhookEvent) -> Dict[str, Any]:
    if result is None:
        return _acknowledge(event)
    if isinstance(result, Mapping):
        return {str(k): v for k, v in result.items()}
    raise WebhookHandlerError("webhook handler result must be a mapping or None")
