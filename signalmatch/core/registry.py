"""Participant registry for live connections."""

import threading
from collections import defaultdict
from typing import Dict, List, Optional

from signalmatch.logger import logger
from .errors import DuplicateConnection
from .models import DEFAULT_DISPLAY_NAME, Participant


class ParticipantRegistry:
    """Tracks every live connection and its current state.

    All methods take the shared lock, so lookups are safe from both the
    connection handlers and the matchmaker tick.
    """

    def __init__(
        self,
        lock: Optional[threading.RLock] = None,
        default_display_name: str = DEFAULT_DISPLAY_NAME,
    ):
        self._lock = lock or threading.RLock()
        self._participants: Dict[str, Participant] = {}
        self.default_display_name = default_display_name

    def register(self, participant_id: str) -> Participant:
        """Register a new connection in the IDLE state."""
        with self._lock:
            if participant_id in self._participants:
                raise DuplicateConnection(participant_id)

            participant = Participant(
                id=participant_id, display_name=self.default_display_name
            )
            self._participants[participant_id] = participant
            logger.debug(f"Registered participant {participant_id}")
            return participant

    def lookup(self, participant_id: Optional[str]) -> Optional[Participant]:
        if participant_id is None:
            return None
        with self._lock:
            return self._participants.get(participant_id)

    def remove(self, participant_id: str) -> Optional[Participant]:
        """Purge a participant. Queue and partner cleanup is the caller's job."""
        with self._lock:
            participant = self._participants.pop(participant_id, None)
            if participant is not None:
                logger.debug(f"Removed participant {participant_id}")
            return participant

    def is_live(self, participant: Participant) -> bool:
        """True if this exact participant object is still registered."""
        with self._lock:
            return self._participants.get(participant.id) is participant

    def participants(self) -> List[Participant]:
        with self._lock:
            return list(self._participants.values())

    def count_by_state(self) -> Dict[str, int]:
        with self._lock:
            counts: Dict[str, int] = defaultdict(int)
            for participant in self._participants.values():
                counts[participant.state.value] += 1
            return dict(counts)

    def __len__(self) -> int:
        with self._lock:
            return len(self._participants)

    def __contains__(self, participant_id: object) -> bool:
        with self._lock:
            return participant_id in self._participants
