"""WebSocket event envelope definitions."""

import json
from datetime import datetime
from typing import Any

from pydantic import BaseModel
from pydantic import ConfigDict
from pydantic import Field
from pydantic import ValidationError

from signalmatch.core.errors import ProtocolError
from signalmatch.core.events import InboundEvents
from signalmatch.core.events import OutboundEvents


class EventProtocol(BaseModel):
    """WebSocket event envelope: ``{"event": ..., "data": ...}``."""

    event: str = Field(..., min_length=1, description="Event type")
    data: Any = Field(None, description="Event payload")


class RequestChatPayload(BaseModel):
    """Payload of ``request-chat``."""

    name: str | None = None
    # Cleaned up by normalize_interests
    interests: list[Any] | str | None = None


class RelayPayload(BaseModel):
    """Payload of offer/answer/ice-candidate/message.

    The relayed value lives in an extra field named after the event
    (``offer``, ``answer``, ``candidate`` or ``message``).
    """

    model_config = ConfigDict(extra="allow")

    to: str | None = None
    # Older clients address chat messages with "recipient"
    recipient: str | None = None

    @property
    def target(self) -> str | None:
        return self.to or self.recipient

    def field(self, name: str) -> Any:
        return (self.model_extra or {}).get(name)


class LeavePayload(BaseModel):
    """Payload of ``leave``."""

    requeue: bool = True


def parse_event(raw: str | bytes) -> EventProtocol:
    """Decode one inbound frame.

    Raises:
        ProtocolError: if the frame is not a JSON event envelope.
    """
    try:
        message = json.loads(raw)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise ProtocolError(f"Invalid JSON: {e!s}") from e

    if not isinstance(message, dict):
        raise ProtocolError("Event must be a JSON object")
    try:
        return EventProtocol.model_validate(message)
    except ValidationError as e:
        raise ProtocolError(f"Invalid event envelope: {e.errors()[0]['msg']}") from e


def parse_payload(model: type[BaseModel], data: Any) -> BaseModel:
    """Validate an event payload, treating a missing payload as empty."""
    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ProtocolError("Event data must be a JSON object")
    try:
        return model.model_validate(data)
    except ValidationError as e:
        raise ProtocolError(f"Invalid payload: {e.errors()[0]['msg']}") from e


def create_event(event_type: str, data: Any = None, **kwargs) -> dict[str, Any]:
    """Create standard outbound event"""
    event = {
        "event": event_type,
        "data": {} if data is None else data,
        "timestamp": datetime.now().isoformat(),
    }
    event.update(kwargs)
    return event


__all__ = [
    "EventProtocol",
    "InboundEvents",
    "LeavePayload",
    "OutboundEvents",
    "RelayPayload",
    "RequestChatPayload",
    "create_event",
    "parse_event",
    "parse_payload",
]
