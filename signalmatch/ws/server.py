"""WebSocket signaling server."""

import asyncio
import contextlib
import uuid
from datetime import datetime
from typing import Any

from websockets.asyncio.server import Server
from websockets.asyncio.server import ServerConnection
from websockets.asyncio.server import serve
from websockets.exceptions import ConnectionClosed
from websockets.exceptions import WebSocketException

from signalmatch.core.errors import ProtocolError
from signalmatch.core.events import RELAY_PAYLOAD_FIELDS
from signalmatch.core.lifecycle import LifecycleController
from signalmatch.core.models import DEFAULT_DISPLAY_NAME
from signalmatch.logger import logger
from .events import EventProtocol
from .events import InboundEvents
from .events import LeavePayload
from .events import OutboundEvents
from .events import RelayPayload
from .events import RequestChatPayload
from .events import create_event
from .events import parse_event
from .events import parse_payload
from .outbound import OutboundChannel
from .utils import close_websocket_safely
from .utils import get_websocket_info


class SignalingServer:
    """WebSocket front end for the matchmaking and signaling core.

    One connection is one participant. Inbound frames are decoded into
    events and handed to the lifecycle controller; everything the core
    wants to say to a participant goes through that connection's
    single-writer outbound channel.
    """

    def __init__(
        self,
        host: str = "0.0.0.0",
        port: int = 5000,
        *,
        allowed_origins: list[str] | None = None,
        queue_timeout_seconds: float = 300.0,
        match_interval_ms: int = 5000,
        strict_relay: bool = True,
        default_display_name: str = DEFAULT_DISPLAY_NAME,
        outbound_queue_size: int = 256,
        max_message_bytes: int = 1024 * 1024,
    ):
        self.host = host
        self.port = port
        self.allowed_origins = allowed_origins or ["*"]
        self.outbound_queue_size = outbound_queue_size
        self.max_message_bytes = max_message_bytes

        self.controller = LifecycleController(
            self.deliver,
            queue_timeout_seconds=queue_timeout_seconds,
            match_interval_ms=match_interval_ms,
            strict_relay=strict_relay,
            default_display_name=default_display_name,
        )
        self.connections: dict[str, ServerConnection] = {}
        self.outbounds: dict[str, OutboundChannel] = {}
        self.running = False
        self.started = asyncio.Event()
        self.shutdown_event = asyncio.Event()
        self._server: Server | None = None

    @classmethod
    def from_settings(cls, settings) -> "SignalingServer":
        return cls(
            settings.host,
            settings.port,
            allowed_origins=settings.allowed_origins,
            queue_timeout_seconds=settings.queue_timeout_seconds,
            match_interval_ms=settings.match_interval_ms,
            strict_relay=settings.strict_relay,
            default_display_name=settings.default_display_name,
            outbound_queue_size=settings.outbound_queue_size,
            max_message_bytes=settings.max_message_bytes,
        )

    def deliver(self, participant_id: str, event_type: str, data: Any) -> None:
        """Notifier used by the core; never blocks."""
        outbound = self.outbounds.get(participant_id)
        if outbound is None:
            logger.debug(f"No outbound channel for {participant_id}; dropping {event_type}")
            return
        outbound.send_nowait(create_event(event_type, data))

    async def handle_connection(self, websocket: ServerConnection) -> None:
        """Serve one participant for the lifetime of its connection."""
        connection_id = str(uuid.uuid4())
        self.connections[connection_id] = websocket

        outbound = OutboundChannel(
            websocket, maxsize=self.outbound_queue_size, name=f"conn-{connection_id}"
        )
        outbound.start()
        self.outbounds[connection_id] = outbound

        self.controller.connect(connection_id)
        logger.debug(f"Connection {connection_id} info: {get_websocket_info(websocket)}")

        try:
            self.deliver(connection_id, OutboundEvents.CONNECTED, {"id": connection_id})

            # One frame is one event
            async for message in websocket:
                self._handle_frame(connection_id, message)

        except ConnectionClosed:
            logger.info(f"WebSocket connection closed: {connection_id}")
        except WebSocketException as e:
            logger.error(f"WebSocket error for {connection_id}: {e}")
        finally:
            await self._cleanup_connection(connection_id)

    def _handle_frame(self, connection_id: str, raw: str | bytes) -> None:
        try:
            envelope = parse_event(raw)
            self._handle_message(connection_id, envelope)
        except ProtocolError as e:
            logger.warning(f"Protocol error from {connection_id}: {e}")
            self.deliver(connection_id, OutboundEvents.ERROR, {"message": str(e)})
        except Exception as e:
            logger.exception(f"Error handling message from {connection_id}: {e}")
            self.deliver(connection_id, OutboundEvents.ERROR, {"message": "Message handling error"})

    def _handle_message(self, connection_id: str, message: EventProtocol) -> None:
        """Dispatch one decoded event to the core."""
        event_type = message.event
        logger.debug(f"Processing message: event={event_type}, connection={connection_id}")

        if event_type == InboundEvents.REQUEST_CHAT:
            payload = parse_payload(RequestChatPayload, message.data)
            self.controller.request_chat(connection_id, payload.name, payload.interests)

        elif event_type in RELAY_PAYLOAD_FIELDS:
            payload = parse_payload(RelayPayload, message.data)
            self.controller.forward(
                connection_id,
                payload.target,
                event_type,
                payload.field(RELAY_PAYLOAD_FIELDS[event_type]),
            )

        elif event_type == InboundEvents.LEAVE:
            payload = parse_payload(LeavePayload, message.data)
            self.controller.leave(connection_id, requeue=payload.requeue)

        elif event_type == InboundEvents.REPORT_USER:
            self.controller.report(connection_id, message.data)

        else:
            raise ProtocolError(f"Unknown event type: {event_type}")

    async def _cleanup_connection(self, connection_id: str) -> None:
        """Disconnect the participant and release its outbound channel."""
        self.controller.disconnect(connection_id)
        self.connections.pop(connection_id, None)

        outbound = self.outbounds.pop(connection_id, None)
        if outbound is not None:
            with contextlib.suppress(Exception):
                await outbound.close()

        logger.debug(f"Cleaned up connection {connection_id}")

    def _origins(self) -> list[str] | None:
        if "*" in self.allowed_origins:
            return None
        return list(self.allowed_origins)

    async def start_server(self) -> None:
        """Listen for connections and run the matchmaker until shutdown."""
        if self.running:
            logger.warning("Server is already running")
            return

        self.running = True
        self.shutdown_event.clear()

        try:
            async with serve(
                self.handle_connection,
                self.host,
                self.port,
                origins=self._origins(),
                ping_interval=30,
                ping_timeout=10,
                max_size=self.max_message_bytes,
                max_queue=32,
            ) as server:
                self._server = server
                if self.port == 0 and server.sockets:
                    self.port = server.sockets[0].getsockname()[1]
                await self.controller.start()
                logger.info(f"Signaling server running at ws://{self.host}:{self.port}")
                self.started.set()

                # Serve until shutdown() is called
                await self.shutdown_event.wait()

        except Exception as e:
            logger.exception(f"Server error: {e}")
            raise
        finally:
            await self.controller.stop()
            self._server = None
            self.running = False
            self.started.clear()
            logger.info("Server stopped")

    async def shutdown(self) -> None:
        """Close every connection and let start_server() return."""
        logger.info("Shutting down server...")

        for websocket in list(self.connections.values()):
            await close_websocket_safely(websocket)

        for outbound in list(self.outbounds.values()):
            with contextlib.suppress(Exception):
                await outbound.close()

        self.shutdown_event.set()

    def get_status(self) -> dict[str, Any]:
        """Connection-level status; matchmaking counters live in controller.stats()."""
        return {
            "running": self.running,
            "host": self.host,
            "port": self.port,
            "total_connections": len(self.connections),
            "server_time": datetime.now().isoformat(),
            "outbound_queues": {cid: ch.queue.qsize() for cid, ch in self.outbounds.items()},
        }
