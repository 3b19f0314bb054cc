"""Waiting queue of participants looking for a partner."""

import threading
from collections import OrderedDict
from datetime import datetime
from typing import List, Optional

from signalmatch.logger import logger
from .models import Participant, ParticipantState


class WaitingQueue:
    """Insertion-ordered queue with no duplicate participant ids."""

    def __init__(self, lock: Optional[threading.RLock] = None):
        self._lock = lock or threading.RLock()
        self._entries: "OrderedDict[str, Participant]" = OrderedDict()

    def enqueue(self, participant: Participant, now: Optional[datetime] = None) -> bool:
        """Append a participant and mark it QUEUED.

        Returns False without changing anything when the participant is
        already queued or currently paired.
        """
        with self._lock:
            if participant.id in self._entries:
                return False
            if participant.state == ParticipantState.PAIRED:
                logger.error(f"Refusing to enqueue paired participant {participant.id}")
                return False

            participant.state = ParticipantState.QUEUED
            participant.enqueued_at = now or datetime.now()
            self._entries[participant.id] = participant
            return True

    def push_front(self, participant: Participant) -> None:
        """Put a participant back at the head, keeping its original wait time."""
        with self._lock:
            self._entries[participant.id] = participant
            self._entries.move_to_end(participant.id, last=False)

    def dequeue_all(self) -> List[Participant]:
        """Drain the whole queue in order."""
        with self._lock:
            drained = list(self._entries.values())
            self._entries.clear()
            return drained

    def remove(self, participant_id: str) -> Optional[Participant]:
        with self._lock:
            return self._entries.pop(participant_id, None)

    def position(self, participant_id: str) -> Optional[int]:
        """1-based position of a participant, or None if absent."""
        with self._lock:
            for index, queued_id in enumerate(self._entries, start=1):
                if queued_id == participant_id:
                    return index
            return None

    def snapshot(self) -> List[Participant]:
        with self._lock:
            return list(self._entries.values())

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, participant_id: object) -> bool:
        with self._lock:
            return participant_id in self._entries
