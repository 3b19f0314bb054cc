"""Pytest configuration and shared fixtures."""

import threading
from typing import AsyncGenerator

import pytest

from signalmatch.core.lifecycle import LifecycleController
from signalmatch.core.matchmaker import Matchmaker
from signalmatch.core.registry import ParticipantRegistry
from signalmatch.core.timeouts import TimeoutSupervisor
from signalmatch.core.waiting_queue import WaitingQueue
from tests.fixtures.helpers import RecordingNotifier


@pytest.fixture
def notifier() -> RecordingNotifier:
    """Create a notifier that records deliveries."""
    return RecordingNotifier()


@pytest.fixture
def lock() -> threading.RLock:
    return threading.RLock()


@pytest.fixture
def registry(lock) -> ParticipantRegistry:
    """Create a test participant registry."""
    return ParticipantRegistry(lock)


@pytest.fixture
def waiting_queue(lock) -> WaitingQueue:
    """Create a test waiting queue."""
    return WaitingQueue(lock)


@pytest.fixture
def supervisor() -> TimeoutSupervisor:
    return TimeoutSupervisor(timeout_seconds=300)


@pytest.fixture
def matchmaker(registry, waiting_queue, supervisor, notifier, lock) -> Matchmaker:
    """Create a matchmaker over the test registry and queue."""
    return Matchmaker(registry, waiting_queue, supervisor, notifier, lock=lock, interval_ms=10)


@pytest.fixture
async def controller(notifier) -> AsyncGenerator[LifecycleController, None]:
    """Create a lifecycle controller with a long queue timeout."""
    controller = LifecycleController(notifier, queue_timeout_seconds=300, match_interval_ms=10)
    yield controller
    await controller.stop()


@pytest.fixture
async def fast_timeout_controller(notifier) -> AsyncGenerator[LifecycleController, None]:
    """Create a lifecycle controller whose queue deadline is 50ms."""
    controller = LifecycleController(notifier, queue_timeout_seconds=0.05, match_interval_ms=10)
    yield controller
    await controller.stop()
