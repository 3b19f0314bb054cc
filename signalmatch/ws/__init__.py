"""WebSocket transport for the signaling core."""

from .events import EventProtocol
from .events import create_event
from .events import parse_event
from .outbound import OutboundChannel
from .server import SignalingServer
from .utils import close_websocket_safely
from .utils import get_websocket_info
from .utils import is_websocket_closed

__all__ = [
    "EventProtocol",
    "OutboundChannel",
    "SignalingServer",
    "close_websocket_safely",
    "create_event",
    "get_websocket_info",
    "is_websocket_closed",
    "parse_event",
]
