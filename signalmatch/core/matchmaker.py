"""Periodic batch matchmaker."""

import asyncio
import threading
from typing import List, Optional, Sequence, Tuple

from signalmatch.logger import logger
from .events import Notifier, OutboundEvents, paired_payload
from .models import Participant, ParticipantState
from .registry import ParticipantRegistry
from .timeouts import TimeoutSupervisor
from .waiting_queue import WaitingQueue


def compatibility(first: Participant, second: Participant) -> int:
    """Number of interest tags two participants share."""
    return len(first.interest_tags & second.interest_tags)


def _best_overlap(participant: Participant, candidates: Sequence[Participant]) -> int:
    return max(
        (compatibility(participant, other) for other in candidates if other is not participant),
        default=0,
    )


def order_by_compatibility(candidates: Sequence[Participant]) -> List[Participant]:
    """Reorder candidates so that adjacent pairs share the most interests.

    Candidates are first stably sorted by the best overlap each could get
    with anyone else, so a waiter with no common tags does not break up a
    pair that has some. Then, greedily, the earliest remaining candidate is
    followed by the remaining candidate it overlaps with most. Ties go to the
    earlier candidate, so the result depends only on the input order.
    """
    remaining = sorted(candidates, key=lambda p: -_best_overlap(p, candidates))
    ordered: List[Participant] = []

    while remaining:
        head = remaining.pop(0)
        ordered.append(head)
        if not remaining:
            break

        best_index = 0
        best_score = compatibility(head, remaining[0])
        for index in range(1, len(remaining)):
            score = compatibility(head, remaining[index])
            if score > best_score:
                best_index, best_score = index, score
        ordered.append(remaining.pop(best_index))

    return ordered


class Matchmaker:
    """Drains the waiting queue on a fixed period and pairs participants."""

    def __init__(
        self,
        registry: ParticipantRegistry,
        queue: WaitingQueue,
        supervisor: TimeoutSupervisor,
        notifier: Notifier,
        lock: Optional[threading.RLock] = None,
        interval_ms: int = 5000,
    ):
        self.registry = registry
        self.queue = queue
        self.supervisor = supervisor
        self.notifier = notifier
        self._lock = lock or threading.RLock()
        self.interval_ms = interval_ms

        self.tick_count = 0
        self.total_pairings = 0
        self._running = False
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._running

    async def start(self, interval_ms: Optional[int] = None):
        """Start the periodic matching loop."""
        if self._running:
            logger.warning("Matchmaker is already running")
            return

        if interval_ms is not None:
            self.interval_ms = interval_ms
        self._running = True
        self._task = asyncio.create_task(self._match_loop(), name="matchmaker")
        logger.info(f"Started matchmaker with {self.interval_ms}ms interval")

    async def stop(self):
        """Stop the periodic matching loop."""
        if not self._running:
            return

        self._running = False
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None

        logger.info("Stopped matchmaker")

    def tick(self) -> List[Tuple[Participant, Participant]]:
        """Run one batch pass over the queue and return the new pairs."""
        with self._lock:
            working = order_by_compatibility(self.queue.dequeue_all())
            pairs: List[Tuple[Participant, Participant]] = []

            while len(working) >= 2:
                first, second = working[0], working[1]
                del working[:2]

                first_ok = self._is_eligible(first)
                second_ok = self._is_eligible(second)
                if not (first_ok and second_ok):
                    # Drop whoever went away and retry the survivor this tick
                    for stale, ok in ((first, first_ok), (second, second_ok)):
                        if not ok:
                            logger.debug(f"Dropping stale queue entry {stale.id}")
                    if first_ok:
                        working.insert(0, first)
                    elif second_ok:
                        working.insert(0, second)
                    continue

                self._pair(first, second)
                pairs.append((first, second))

            for leftover in working:
                if self._is_eligible(leftover):
                    self.queue.push_front(leftover)
                else:
                    logger.debug(f"Dropping stale queue entry {leftover.id}")

            self.tick_count += 1
            if pairs:
                logger.info(
                    f"Matchmaker tick #{self.tick_count}: {len(pairs)} pair(s), "
                    f"{len(self.queue)} still waiting"
                )
            return pairs

    def _is_eligible(self, participant: Participant) -> bool:
        return (
            self.registry.is_live(participant)
            and participant.state == ParticipantState.QUEUED
        )

    def _pair(self, first: Participant, second: Participant) -> None:
        self.supervisor.cancel(first)
        self.supervisor.cancel(second)

        first.partner_id = second.id
        second.partner_id = first.id
        for participant in (first, second):
            participant.state = ParticipantState.PAIRED
            participant.enqueued_at = None

        self.total_pairings += 1
        logger.info(
            f"Paired {first.id} with {second.id} "
            f"(shared interests: {compatibility(first, second)})"
        )

        self._notify(first.id, OutboundEvents.PAIRED, paired_payload(second))
        self._notify(second.id, OutboundEvents.PAIRED, paired_payload(first))

    def _notify(self, participant_id: str, event: str, data) -> None:
        try:
            self.notifier(participant_id, event, data)
        except Exception as e:
            logger.exception(f"Failed to deliver {event} to {participant_id}: {e}")

    async def _match_loop(self):
        """Main matching loop."""
        while self._running:
            try:
                await asyncio.sleep(self.interval_ms / 1000)
                self.tick()
            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.exception(f"Error in matchmaker loop: {e}")
