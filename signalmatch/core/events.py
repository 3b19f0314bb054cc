"""Event names and payload shapes shared by the core and the transport.

Field names match what existing WebRTC frontends expect.
"""

from typing import Any, Dict, Protocol

from .models import Participant, PayloadKind


class Notifier(Protocol):
    """Delivers an outbound event to one participant without blocking."""

    def __call__(self, participant_id: str, event: str, data: Any) -> None: ...


class InboundEvents:
    """Events accepted from a connection."""

    REQUEST_CHAT = "request-chat"
    OFFER = "offer"
    ANSWER = "answer"
    ICE_CANDIDATE = "ice-candidate"
    MESSAGE = "message"
    LEAVE = "leave"
    REPORT_USER = "report-user"


class OutboundEvents:
    """Events delivered to a connection."""

    CONNECTED = "connected"
    PAIRED = "paired"
    QUEUE_POSITION = "queue-position"
    QUEUE_TIMEOUT = "queue-timeout"
    DISCONNECTED = "disconnected"
    OFFER = "offer"
    ANSWER = "answer"
    ICE_CANDIDATE = "ice-candidate"
    MESSAGE = "message"
    ERROR = "error"


# Inbound relay event -> name of the field carrying the payload
RELAY_PAYLOAD_FIELDS: Dict[str, str] = {
    InboundEvents.OFFER: "offer",
    InboundEvents.ANSWER: "answer",
    InboundEvents.ICE_CANDIDATE: "candidate",
    InboundEvents.MESSAGE: "message",
}


def paired_payload(partner: Participant) -> Dict[str, Any]:
    return {
        "partnerId": partner.id,
        "partnerName": partner.display_name,
        "partnerInterests": list(partner.interests),
    }


def relay_payload(kind: PayloadKind, sender_id: str, payload: Any) -> Any:
    """Shape a relayed payload for the recipient.

    Only offers carry ``from``; the other kinds travel inside an
    established pairing, so the recipient already knows the sender.
    """
    if kind == PayloadKind.OFFER:
        return {"from": sender_id, "offer": payload}
    if kind == PayloadKind.ANSWER:
        return {"answer": payload}
    if kind == PayloadKind.ICE_CANDIDATE:
        return {"candidate": payload}
    return payload
