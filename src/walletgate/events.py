import inspect
import threading
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Awaitable, Callable, Dict, Mapping, Optional, TypeVar, Union

from .models import SessionStatus
from .schemas import WebhookPayload

EVENT_VERIFICATION_COMPLETED = "verification.completed"
EVENT_VERIFICATION_FAILED = "verification.failed"
EVENT_VERIFICATION_EXPIRED = "verification.expired"

_OUTCOMES: Dict[str, SessionStatus] = {
    EVENT_VERIFICATION_COMPLETED: SessionStatus.COMPLETED,
    EVENT_VERIFICATION_FAILED: SessionStatus.FAILED,
    EVENT_VERIFICATION_EXPIRED: SessionStatus.EXPIRED,
}


@dataclass(frozen=True)
class WebhookEvent:
    event: str
    session_id: str
    merchant_id: str
    data: Dict[str, Any]
    timestamp: datetime
    raw: Mapping[str, Any] = field(default_factory=dict, repr=False, compare=False)

    @property
    def outcome(self) -> Optional[SessionStatus]:
        """Terminal session status announced by this event, if it is a verification outcome."""
        return _OUTCOMES.get(self.event)

    @classmethod
    def from_payload(cls, payload: WebhookPayload, raw: Optional[Mapping[str, Any]] = None) -> "WebhookEvent":
        return cls(
            event=payload.event,
            session_id=payload.session_id,
            merchant_id=payload.merchant_id,
            data=dict(payload.data),
            timestamp=payload.timestamp,
            raw=dict(raw or {}),
        )


EventHandler = Union[Callable[[WebhookEvent], Any], Callable[[WebhookEvent], Awaitable[Any]]]
_H = TypeVar("_H", bound=EventHandler)


class EventHandlerRegistry:
    """Routes verified webhook events to handlers.

    Lookup order for an event: the handler registered for its exact name, then
    the ``on_outcome`` handler when the event reports a terminal verification
    outcome, then the default handler. All registration methods return the
    handler, so they double as decorators::

        @registry.on_verification_completed
        def approve(event): ...
    """

    def __init__(self) -> None:
        self._by_event: Dict[str, EventHandler] = {}
        self._outcome_handler: Optional[EventHandler] = None
        self._fallback: Optional[EventHandler] = None
        self._lock = threading.Lock()

    def on(self, event_type: str) -> Callable[[_H], _H]:
        def decorator(handler: _H) -> _H:
            return self.register(event_type, handler)

        return decorator

    def register(self, event_type: str, handler: _H) -> _H:
        if not event_type:
            raise ValueError("event_type must not be empty")
        with self._lock:
            self._by_event[event_type] = handler
        return handler

    def unregister(self, event_type: str) -> None:
        with self._lock:
            self._by_event.pop(event_type, None)

    def on_verification_completed(self, handler: _H) -> _H:
        return self.register(EVENT_VERIFICATION_COMPLETED, handler)

    def on_verification_failed(self, handler: _H) -> _H:
        return self.register(EVENT_VERIFICATION_FAILED, handler)

    def on_verification_expired(self, handler: _H) -> _H:
        return self.register(EVENT_VERIFICATION_EXPIRED, handler)

    def on_outcome(self, handler: _H) -> _H:
        with self._lock:
            self._outcome_handler = handler
        return handler

    def register_default(self, handler: _H) -> _H:
        with self._lock:
            self._fallback = handler
        return handler

    def resolve(self, event: WebhookEvent) -> Optional[EventHandler]:
        with self._lock:
            handler = self._by_event.get(event.event)
            if handler is None and event.outcome is not None:
                handler = self._outcome_handler
            return handler if handler is not None else self._fallback

    def dispatch(self, event: WebhookEvent) -> Any:
        """Run the resolved handler; ``None`` when nothing handles the event."""
        handler = self.resolve(event)
        if handler is None:
            return None
        if inspect.iscoroutinefunction(handler):
            raise RuntimeError(f"handler for {event.event} is async; use adispatch()")
        return handler(event)

    async def adispatch(self, event: WebhookEvent) -> Any:
        handler = self.resolve(event)
        if handler is None:
            return None
        result = handler(event)
        if inspect.isawaitable(result):
            result = await result
        return result
