"""Test helper utilities for signalmatch tests."""

import asyncio
import json
import socket
import time
from typing import Any, List, Optional, Tuple

from signalmatch.core.registry import ParticipantRegistry
from signalmatch.core.waiting_queue import WaitingQueue


class RecordingNotifier:
    """Notifier that records every delivery instead of sending it."""

    def __init__(self):
        self.events: List[Tuple[str, str, Any]] = []

    def __call__(self, participant_id: str, event: str, data: Any) -> None:
        self.events.append((participant_id, event, data))

    def for_participant(self, participant_id: str) -> List[Tuple[str, Any]]:
        return [(event, data) for pid, event, data in self.events if pid == participant_id]

    def named(self, event: str, participant_id: Optional[str] = None) -> List[Any]:
        return [
            data
            for pid, name, data in self.events
            if name == event and (participant_id is None or pid == participant_id)
        ]

    def clear(self) -> None:
        self.events.clear()


class FakeWebSocket:
    """Minimal stand-in for a server connection."""

    def __init__(self):
        self.sent: List[dict] = []
        self.close_code: Optional[int] = None

    async def send(self, message: str) -> None:
        self.sent.append(json.loads(message))

    async def close(self, code: int = 1000, reason: str = "") -> None:
        self.close_code = code


class FakeOutbound:
    """Outbound channel stand-in that keeps events in a list."""

    def __init__(self):
        self.events: List[dict] = []

    def send_nowait(self, event: dict) -> bool:
        self.events.append(event)
        return True

    def named(self, event: str) -> List[dict]:
        return [e for e in self.events if e["event"] == event]

    async def close(self) -> None:
        pass


def queue_participants(
    registry: ParticipantRegistry,
    queue: WaitingQueue,
    *profiles: Tuple[str, List[str]],
):
    """Register and enqueue participants given as (id, interests) tuples."""
    participants = []
    for participant_id, interests in profiles:
        participant = registry.register(participant_id)
        participant.update_profile(participant_id.upper(), interests)
        queue.enqueue(participant)
        participants.append(participant)
    return participants


async def wait_for_condition(
    condition_func,
    timeout: float = 2.0,
    interval: float = 0.01,
    error_message: str = "Condition not met within timeout",
):
    """Wait for a condition to become true."""
    loop = asyncio.get_running_loop()
    start_time = loop.time()
    while loop.time() - start_time < timeout:
        if condition_func():
            return True
        await asyncio.sleep(interval)
    raise TimeoutError(error_message)


async def next_event(websocket, name: str, timeout: float = 2.0) -> dict:
    """Read frames from a client connection until one named ``name`` arrives."""

    async def _receive():
        while True:
            event = json.loads(await websocket.recv())
            if event["event"] == name:
                return event

    return await asyncio.wait_for(_receive(), timeout)


def find_free_port() -> int:
    """Ask the OS for a port that is free right now."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind(("127.0.0.1", 0))
        return sock.getsockname()[1]


def wait_for_port(port: int, host: str = "127.0.0.1", timeout: float = 10.0) -> None:
    """Block until something accepts TCP connections on the port."""
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        try:
            with socket.create_connection((host, port), timeout=0.5):
                return
        except OSError:
            time.sleep(0.1)
    raise TimeoutError(f"Nothing listening on {host}:{port} after {timeout}s")
