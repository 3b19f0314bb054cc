"""Lifecycle controller: the participant state machine.

IDLE -> QUEUED -> PAIRED, with ``leave`` and ``disconnect`` leading back to
IDLE or to removal. Every registry, queue and pairing mutation happens under
one re-entrant lock shared with the registry, queue, relay and matchmaker.
"""

import asyncio
import threading
import uuid
from datetime import datetime
from typing import Any, Iterable, List, Optional, Union

from signalmatch.logger import logger
from .errors import InconsistentPairing
from .events import Notifier, OutboundEvents
from .matchmaker import Matchmaker
from .models import DEFAULT_DISPLAY_NAME, Participant, ParticipantState, PayloadKind, SignalingStats
from .registry import ParticipantRegistry
from .relay import SessionRelay
from .timeouts import QueueDeadline, TimeoutSupervisor
from .waiting_queue import WaitingQueue


class LifecycleController:
    """Handles connect, request-chat, leave and disconnect transitions."""

    def __init__(
        self,
        notifier: Notifier,
        *,
        queue_timeout_seconds: float = 300.0,
        match_interval_ms: int = 5000,
        strict_relay: bool = True,
        default_display_name: str = DEFAULT_DISPLAY_NAME,
        loop: Optional[asyncio.AbstractEventLoop] = None,
    ):
        self.notifier = notifier
        self.default_display_name = default_display_name
        self._lock = threading.RLock()

        self.registry = ParticipantRegistry(self._lock, default_display_name)
        self.queue = WaitingQueue(self._lock)
        self.supervisor = TimeoutSupervisor(
            queue_timeout_seconds, on_expire=self._handle_queue_timeout, loop=loop
        )
        self.relay = SessionRelay(self.registry, self._notify, self._lock, strict=strict_relay)
        self.matchmaker = Matchmaker(
            self.registry,
            self.queue,
            self.supervisor,
            self._notify,
            lock=self._lock,
            interval_ms=match_interval_ms,
        )

        self._stats = SignalingStats()

    @classmethod
    def from_settings(cls, notifier: Notifier, settings) -> "LifecycleController":
        return cls(
            notifier,
            queue_timeout_seconds=settings.queue_timeout_seconds,
            match_interval_ms=settings.match_interval_ms,
            strict_relay=settings.strict_relay,
            default_display_name=settings.default_display_name,
        )

    @property
    def lock(self) -> threading.RLock:
        return self._lock

    # ----------------------------
    # Background work
    # ----------------------------
    async def start(self) -> None:
        await self.matchmaker.start()

    async def stop(self) -> None:
        await self.matchmaker.stop()
        with self._lock:
            cancelled = self.supervisor.cancel_all()
            for participant in self.registry.participants():
                participant.timeout_handle = None
        if cancelled:
            logger.info(f"Cancelled {cancelled} pending queue deadline(s)")

    def run_match_tick(self):
        """Run one matchmaker pass immediately."""
        return self.matchmaker.tick()

    # ----------------------------
    # Transitions
    # ----------------------------
    def connect(self, participant_id: Optional[str] = None) -> Participant:
        """Register a new connection as an IDLE participant."""
        participant_id = participant_id or str(uuid.uuid4())
        with self._lock:
            participant = self.registry.register(participant_id)
            self._stats.total_connections += 1
            active = len(self.registry)
            self._stats.peak_connections = max(self._stats.peak_connections, active)

        logger.info(f"User connected: {participant_id} | Active connections: {active}")
        return participant

    def request_chat(
        self,
        participant_id: str,
        name: Optional[str] = None,
        interests: Union[str, Iterable[Any], None] = None,
    ) -> Optional[int]:
        """Put a participant in the queue. Returns its queue position.

        A request while paired is ignored; a repeated request while queued
        only refreshes the profile and reports the current position.
        """
        with self._lock:
            participant = self.registry.lookup(participant_id)
            if participant is None:
                logger.debug(f"request-chat from unknown participant {participant_id}")
                return None
            if participant.state == ParticipantState.PAIRED:
                logger.debug(f"Ignoring request-chat from paired participant {participant_id}")
                return None

            participant.update_profile(name, interests, self.default_display_name)
            position = self._enqueue(participant)

        logger.info(
            f"{participant_id} ({participant.display_name}) waiting at position {position}"
            + (f" | interests: {', '.join(participant.interests)}" if participant.interests else "")
        )
        return position

    def leave(self, participant_id: str, requeue: bool = True) -> Optional[int]:
        """End the current conversation.

        The former partner goes back to IDLE and gets ``disconnected``. The
        leaver is re-queued (skip to the next stranger) unless ``requeue`` is
        False, in which case it stops searching. Returns the queue position
        when re-queued.
        """
        with self._lock:
            participant = self.registry.lookup(participant_id)
            if participant is None:
                return None

            partner = self._detach_partner(participant)
            if partner is not None:
                logger.info(f"{participant_id} left conversation with {partner.id}")

            if not requeue:
                self.supervisor.cancel(participant)
                self.queue.remove(participant_id)
                participant.state = ParticipantState.IDLE
                participant.enqueued_at = None
                logger.info(f"{participant_id} stopped searching")
                return None

            position = self._enqueue(participant)

        logger.info(f"{participant_id} re-queued at position {position}")
        return position

    def disconnect(self, participant_id: str) -> bool:
        """Tear down everything held for a connection. Terminal."""
        with self._lock:
            participant = self.registry.lookup(participant_id)
            if participant is None:
                return False

            self.supervisor.cancel(participant)
            self.queue.remove(participant_id)
            self._detach_partner(participant)
            self.registry.remove(participant_id)
            active = len(self.registry)

        logger.info(f"User disconnected: {participant_id} | Active connections: {active}")
        return True

    def forward(
        self,
        sender_id: str,
        recipient_id: Optional[str],
        kind: Union[PayloadKind, str],
        payload: Any,
    ) -> bool:
        with self._lock:
            return self.relay.forward(sender_id, recipient_id, kind, payload)

    def report(self, participant_id: str, data: Any) -> None:
        """Accept an abuse report. Only logged."""
        with self._lock:
            self._stats.reports += 1
            participant = self.registry.lookup(participant_id)
            partner_id = participant.partner_id if participant else None
        logger.warning(f"User reported by {participant_id} (partner: {partner_id}): {data}")

    # ----------------------------
    # Introspection
    # ----------------------------
    def stats(self) -> SignalingStats:
        with self._lock:
            counts = self.registry.count_by_state()
            stats = self._stats.model_copy()
            stats.active_connections = len(self.registry)
            stats.queued_participants = len(self.queue)
            stats.active_pairs = counts.get(ParticipantState.PAIRED.value, 0) // 2
            stats.total_pairings = self.matchmaker.total_pairings
            stats.match_ticks = self.matchmaker.tick_count
            stats.relayed_messages = self.relay.relayed
            stats.dropped_messages = self.relay.dropped
        stats.uptime_seconds = int((datetime.now() - stats.started_at).total_seconds())
        return stats

    def check_invariants(self) -> List[str]:
        """Describe every pairing or queue inconsistency. Empty when healthy."""
        violations: List[str] = []
        with self._lock:
            for participant in self.registry.participants():
                pid = participant.id
                queued = pid in self.queue

                if participant.partner_id is not None:
                    partner = self.registry.lookup(participant.partner_id)
                    if partner is None:
                        violations.append(f"{pid} points to missing partner {participant.partner_id}")
                    elif partner.partner_id != pid:
                        violations.append(
                            f"{pid} -> {partner.id} but {partner.id} -> {partner.partner_id}"
                        )

                if participant.state == ParticipantState.PAIRED:
                    if participant.partner_id is None:
                        violations.append(f"{pid} is PAIRED without a partner")
                    if queued:
                        violations.append(f"{pid} is PAIRED and queued")
                elif participant.partner_id is not None:
                    violations.append(f"{pid} has a partner while {participant.state.value}")

                if participant.state == ParticipantState.QUEUED and not queued:
                    violations.append(f"{pid} is QUEUED but not in the queue")
                if participant.state == ParticipantState.IDLE and queued:
                    violations.append(f"{pid} is IDLE but still queued")
                if participant.state != ParticipantState.QUEUED and participant.timeout_handle is not None:
                    violations.append(f"{pid} holds a queue deadline while {participant.state.value}")

        return violations

    # ----------------------------
    # Helpers
    # ----------------------------
    def _enqueue(self, participant: Participant) -> Optional[int]:
        if self.queue.enqueue(participant):
            self.supervisor.arm(participant)
        position = self.queue.position(participant.id)
        self._notify(participant.id, OutboundEvents.QUEUE_POSITION, {"position": position})
        return position

    def _detach_partner(self, participant: Participant) -> Optional[Participant]:
        """Break the participant's pairing and notify the other side.

        The participant ends up IDLE with no partner. Returns the former
        partner, or None if there was none or the pairing was inconsistent.
        """
        partner_id = participant.partner_id
        participant.partner_id = None
        if participant.state == ParticipantState.PAIRED:
            participant.state = ParticipantState.IDLE
        if partner_id is None:
            return None

        partner = self.registry.lookup(partner_id)
        try:
            self._verify_pairing(participant.id, partner_id, partner)
        except InconsistentPairing as e:
            logger.critical(f"{e}; leaving the other side untouched")
            return None

        partner.partner_id = None
        partner.state = ParticipantState.IDLE
        self._notify(partner.id, OutboundEvents.DISCONNECTED, {})
        return partner

    @staticmethod
    def _verify_pairing(
        participant_id: str, partner_id: str, partner: Optional[Participant]
    ) -> None:
        if partner is None or partner.partner_id != participant_id:
            raise InconsistentPairing(
                participant_id, partner_id, partner.partner_id if partner else None
            )

    def _handle_queue_timeout(self, deadline: QueueDeadline) -> None:
        with self._lock:
            participant = self.registry.lookup(deadline.participant_id)
            if (
                participant is None
                or participant.state != ParticipantState.QUEUED
                or participant.timeout_handle is not deadline
            ):
                logger.debug(f"Ignoring superseded queue deadline for {deadline.participant_id}")
                return

            participant.timeout_handle = None
            waited = participant.wait_seconds()
            self.queue.remove(participant.id)
            participant.state = ParticipantState.IDLE
            participant.enqueued_at = None
            self._stats.queue_timeouts += 1
            self._notify(participant.id, OutboundEvents.QUEUE_TIMEOUT, {})

        logger.info(f"Queue timeout for {deadline.participant_id} after {waited or 0:.0f}s")

    def _notify(self, participant_id: str, event: str, data: Any) -> None:
        try:
            self.notifier(participant_id, event, data)
        except Exception as e:
            logger.exception(f"Failed to deliver {event} to {participant_id}: {e}")
