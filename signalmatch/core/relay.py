"""Relay for signaling and chat payloads between participants."""

import threading
from typing import Any, Optional, Union

from signalmatch.logger import logger
from .events import Notifier, relay_payload
from .models import PayloadKind
from .registry import ParticipantRegistry


class SessionRelay:
    """Forwards offers, answers, ICE candidates and chat messages.

    The relay never reports failures back to the sender: when the target has
    gone away, its disconnect notification is what the sender relies on.
    """

    def __init__(
        self,
        registry: ParticipantRegistry,
        notifier: Notifier,
        lock: Optional[threading.RLock] = None,
        strict: bool = True,
    ):
        self.registry = registry
        self.notifier = notifier
        self._lock = lock or threading.RLock()
        self.strict = strict
        self.relayed = 0
        self.dropped = 0

    def forward(
        self,
        sender_id: str,
        recipient_id: Optional[str],
        kind: Union[PayloadKind, str],
        payload: Any,
    ) -> bool:
        """Deliver a payload to the recipient. Returns True if delivered."""
        kind = PayloadKind(kind)

        with self._lock:
            recipient = self.registry.lookup(recipient_id)
            if recipient is None:
                self.dropped += 1
                logger.debug(f"Dropping {kind.value} from {sender_id}: target {recipient_id} is gone")
                return False

            if self.strict:
                sender = self.registry.lookup(sender_id)
                if sender is None or sender.partner_id != recipient.id:
                    self.dropped += 1
                    logger.warning(
                        f"Dropping {kind.value} from {sender_id} to {recipient_id}: not paired"
                    )
                    return False

            try:
                self.notifier(recipient.id, kind.value, relay_payload(kind, sender_id, payload))
            except Exception as e:
                self.dropped += 1
                logger.exception(f"Failed to relay {kind.value} to {recipient.id}: {e}")
                return False

            self.relayed += 1
            return True
