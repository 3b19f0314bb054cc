"""Data models for the matchmaking and signaling core."""

from datetime import datetime
from enum import Enum
from typing import Any, Iterable, List, Optional, Set, Union

from pydantic import BaseModel, Field

DEFAULT_DISPLAY_NAME = "Stranger"


class ParticipantState(str, Enum):
    """Participant pairing state."""

    IDLE = "idle"        # Connected, not searching
    QUEUED = "queued"    # Waiting in the queue
    PAIRED = "paired"    # In a conversation


class PayloadKind(str, Enum):
    """Kinds of payload the relay forwards."""

    OFFER = "offer"
    ANSWER = "answer"
    ICE_CANDIDATE = "ice-candidate"
    MESSAGE = "message"


def normalize_interests(raw: Union[str, Iterable[Any], None]) -> List[str]:
    """Clean up interest tags sent by a client.

    Accepts a list of tags or a comma separated string. Blank tags are dropped
    and duplicates (case-insensitive) keep their first spelling.
    """
    if not raw:
        return []
    if isinstance(raw, str):
        items = raw.split(",")
    else:
        items = [str(item) for item in raw if item is not None]

    seen: Set[str] = set()
    tags: List[str] = []
    for item in items:
        tag = item.strip()
        key = tag.lower()
        if not tag or key in seen:
            continue
        seen.add(key)
        tags.append(tag)
    return tags


class Participant(BaseModel):
    """One live connection and its matchmaking/pairing state."""

    id: str
    display_name: str = DEFAULT_DISPLAY_NAME
    interests: List[str] = Field(default_factory=list)
    state: ParticipantState = ParticipantState.IDLE
    partner_id: Optional[str] = None
    enqueued_at: Optional[datetime] = None
    connected_at: datetime = Field(default_factory=datetime.now)

    # Pending queue deadline; only set while QUEUED
    timeout_handle: Optional[Any] = Field(default=None, exclude=True)

    @property
    def interest_tags(self) -> Set[str]:
        """Case-folded tag set used for compatibility scoring."""
        return {tag.lower() for tag in self.interests}

    def update_profile(
        self,
        name: Optional[str],
        interests: Union[str, Iterable[Any], None],
        default_name: str = DEFAULT_DISPLAY_NAME,
    ) -> None:
        name = (name or "").strip() if isinstance(name, str) else ""
        self.display_name = name or default_name
        self.interests = normalize_interests(interests)

    def wait_seconds(self, now: Optional[datetime] = None) -> Optional[float]:
        """Seconds spent in the queue so far, or None when not queued."""
        if self.enqueued_at is None:
            return None
        return ((now or datetime.now()) - self.enqueued_at).total_seconds()


class SignalingStats(BaseModel):
    """Runtime counters for the signaling core."""

    # Connections
    total_connections: int = 0
    active_connections: int = 0
    peak_connections: int = 0

    # Matchmaking
    queued_participants: int = 0
    active_pairs: int = 0
    total_pairings: int = 0
    queue_timeouts: int = 0
    match_ticks: int = 0

    # Relay
    relayed_messages: int = 0
    dropped_messages: int = 0

    reports: int = 0

    started_at: datetime = Field(default_factory=datetime.now)
    uptime_seconds: int = 0
