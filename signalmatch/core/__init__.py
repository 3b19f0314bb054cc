"""Matchmaking and signaling core."""

from .errors import DuplicateConnection, InconsistentPairing, ProtocolError, SignalingError
from .events import InboundEvents, Notifier, OutboundEvents
from .lifecycle import LifecycleController
from .matchmaker import Matchmaker, compatibility, order_by_compatibility
from .models import Participant, ParticipantState, PayloadKind, SignalingStats
from .registry import ParticipantRegistry
from .relay import SessionRelay
from .timeouts import QueueDeadline, TimeoutSupervisor
from .waiting_queue import WaitingQueue

__all__ = [
    "DuplicateConnection",
    "InboundEvents",
    "InconsistentPairing",
    "LifecycleController",
    "Matchmaker",
    "Notifier",
    "OutboundEvents",
    "Participant",
    "ParticipantRegistry",
    "ParticipantState",
    "PayloadKind",
    "ProtocolError",
    "QueueDeadline",
    "SessionRelay",
    "SignalingError",
    "SignalingStats",
    "TimeoutSupervisor",
    "WaitingQueue",
    "compatibility",
    "order_by_compatibility",
]
