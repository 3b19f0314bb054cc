"""
signalmatch - matchmaking and WebRTC signaling for anonymous chat

Pairs strangers who share interest tags and relays their WebRTC offers,
answers, ICE candidates and text messages over WebSocket:
- Interest-aware periodic matchmaker with queue timeouts
- Symmetric pairing state machine with clean teardown
- Single-writer outbound channels per connection
- HTTP status API for health checks and statistics
"""

__version__ = "0.1.0"

from .config import Settings
from .config import settings
from .core import LifecycleController
from .core import Participant
from .core import ParticipantState
from .core import SignalingStats
from .logger import configure_logging
from .logger import logger
from .ws import SignalingServer

__all__ = [
    "LifecycleController",
    "Participant",
    "ParticipantState",
    "Settings",
    "SignalingServer",
    "SignalingStats",
    "configure_logging",
    "logger",
    "settings",
]
