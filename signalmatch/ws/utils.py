"""Helpers for inspecting and closing signaling connections."""

from typing import Any, Dict

from websockets.asyncio.server import ServerConnection

from ..logger import logger

# Close code sent to clients when the server stops (RFC 6455 "going away")
CLOSE_GOING_AWAY = 1001


def is_websocket_closed(websocket: ServerConnection) -> bool:
    """Return True once the connection has finished closing.

    ``close_code`` stays None until the closing handshake completes or the
    TCP connection drops.
    """
    return getattr(websocket, "close_code", None) is not None


async def close_websocket_safely(
    websocket: ServerConnection,
    code: int = CLOSE_GOING_AWAY,
    reason: str = "server shutting down",
) -> bool:
    """Close a connection, ignoring failures on an already broken socket.

    Returns:
        True if a close frame was sent by this call.
    """
    if is_websocket_closed(websocket):
        return False
    try:
        await websocket.close(code, reason)
        return True
    except Exception as e:
        logger.debug(f"Error closing websocket: {e}")
        return False


def get_websocket_info(websocket: ServerConnection) -> Dict[str, Any]:
    """Describe a connection for debug logs: peer address, origin and agent."""
    info: Dict[str, Any] = {
        "remote_address": getattr(websocket, "remote_address", None),
        "closed": is_websocket_closed(websocket),
    }

    request = getattr(websocket, "request", None)
    if request is not None:
        info["origin"] = request.headers.get("Origin")
        info["user_agent"] = request.headers.get("User-Agent")

    return info
