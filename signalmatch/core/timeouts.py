"""Queue deadlines that evict participants who wait too long."""

import asyncio
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Callable, Dict, Optional

from signalmatch.logger import logger
from .models import Participant


@dataclass(eq=False)
class QueueDeadline:
    """A pending eviction deadline for one queued participant."""

    participant_id: str
    expires_at: datetime
    handle: Optional[asyncio.TimerHandle] = field(default=None, repr=False)
    cancelled: bool = False
    fired: bool = False

    def cancel(self) -> None:
        self.cancelled = True
        if self.handle is not None:
            self.handle.cancel()


class TimeoutSupervisor:
    """Schedules and cancels per-participant queue deadlines.

    Deadlines run on the asyncio loop via ``call_later``. The expiry callback
    receives the deadline itself so the owner can check that it is still the
    participant's current one before acting.
    """

    def __init__(
        self,
        timeout_seconds: float = 300.0,
        on_expire: Optional[Callable[[QueueDeadline], None]] = None,
        loop: Optional[asyncio.AbstractEventLoop] = None,
    ):
        self.timeout_seconds = timeout_seconds
        self.on_expire = on_expire
        self._loop = loop
        self._pending: Dict[str, QueueDeadline] = {}

    def arm(self, participant: Participant) -> QueueDeadline:
        """Start a fresh deadline, replacing any previous one."""
        self.cancel(participant)

        loop = self._loop or asyncio.get_running_loop()
        deadline = QueueDeadline(
            participant_id=participant.id,
            expires_at=datetime.now() + timedelta(seconds=self.timeout_seconds),
        )
        deadline.handle = loop.call_later(self.timeout_seconds, self._fire, deadline)
        participant.timeout_handle = deadline
        self._pending[participant.id] = deadline
        return deadline

    def cancel(self, participant: Participant) -> bool:
        """Cancel the participant's pending deadline, if any."""
        deadline = participant.timeout_handle
        participant.timeout_handle = None
        if deadline is None:
            return False

        deadline.cancel()
        if self._pending.get(participant.id) is deadline:
            del self._pending[participant.id]
        return True

    def cancel_all(self) -> int:
        count = 0
        for deadline in list(self._pending.values()):
            deadline.cancel()
            count += 1
        self._pending.clear()
        return count

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    def _fire(self, deadline: QueueDeadline) -> None:
        if self._pending.get(deadline.participant_id) is deadline:
            del self._pending[deadline.participant_id]
        if deadline.cancelled:
            return

        deadline.fired = True
        if self.on_expire is None:
            return
        try:
            self.on_expire(deadline)
        except Exception as e:
            logger.exception(f"Queue timeout handler failed for {deadline.participant_id}: {e}")
