"""Unit tests for the Matchmaker."""

import pytest

from signalmatch.core.events import OutboundEvents
from signalmatch.core.matchmaker import Matchmaker, compatibility, order_by_compatibility
from signalmatch.core.models import Participant, ParticipantState
from tests.fixtures.helpers import queue_participants, wait_for_condition


@pytest.mark.unit
class TestCompatibility:
    """Test cases for compatibility scoring and ordering."""

    def test_compatibility_counts_shared_tags(self):
        first = Participant(id="a", interests=["Music", "films"])
        second = Participant(id="b", interests=["music", "Films", "chess"])
        third = Participant(id="c")

        assert compatibility(first, second) == 2
        assert compatibility(first, third) == 0

    def test_order_groups_best_overlap(self):
        p1 = Participant(id="p1", interests=["a", "b"])
        p2 = Participant(id="p2", interests=["b", "c"])
        p3 = Participant(id="p3", interests=["a", "b"])

        ordered = order_by_compatibility([p1, p2, p3])

        assert [p.id for p in ordered] == ["p1", "p3", "p2"]

    def test_order_moves_untagged_head_behind_overlapping_pair(self):
        """An early waiter with nothing in common does not split a matching pair."""
        p1 = Participant(id="p1")
        p2 = Participant(id="p2", interests=["x"])
        p3 = Participant(id="p3", interests=["x"])

        ordered = order_by_compatibility([p1, p2, p3])

        assert [p.id for p in ordered] == ["p2", "p3", "p1"]

    def test_order_ties_keep_insertion_order(self):
        participants = [Participant(id=str(i)) for i in range(5)]

        ordered = order_by_compatibility(participants)

        assert [p.id for p in ordered] == ["0", "1", "2", "3", "4"]

    def test_order_is_deterministic(self):
        participants = [
            Participant(id="a", interests=["x"]),
            Participant(id="b", interests=["y"]),
            Participant(id="c", interests=["y"]),
            Participant(id="d", interests=["x"]),
        ]

        first_run = [p.id for p in order_by_compatibility(participants)]
        second_run = [p.id for p in order_by_compatibility(participants)]

        assert first_run == second_run == ["a", "d", "b", "c"]


@pytest.mark.unit
class TestMatchmaker:
    """Test cases for Matchmaker ticks."""

    # ==================== Pairing Tests ====================

    def test_tick_pairs_highest_overlap_first(self, matchmaker: Matchmaker, notifier):
        """P1 and P3 share two tags and are paired; P2 keeps waiting."""
        p1, p2, p3 = queue_participants(
            matchmaker.registry,
            matchmaker.queue,
            ("p1", ["a", "b"]),
            ("p2", ["b", "c"]),
            ("p3", ["a", "b"]),
        )

        pairs = matchmaker.tick()

        assert [(a.id, b.id) for a, b in pairs] == [("p1", "p3")]
        assert p1.partner_id == "p3" and p3.partner_id == "p1"
        assert p1.state == p3.state == ParticipantState.PAIRED
        assert p1.enqueued_at is None
        assert p2.state == ParticipantState.QUEUED
        assert [p.id for p in matchmaker.queue.snapshot()] == ["p2"]

        assert notifier.named(OutboundEvents.PAIRED, "p1") == [
            {"partnerId": "p3", "partnerName": "P3", "partnerInterests": ["a", "b"]}
        ]
        assert notifier.named(OutboundEvents.PAIRED, "p3") == [
            {"partnerId": "p1", "partnerName": "P1", "partnerInterests": ["a", "b"]}
        ]
        assert notifier.named(OutboundEvents.PAIRED, "p2") == []

    def test_tick_pairs_in_insertion_order_without_interests(self, matchmaker: Matchmaker):
        queue_participants(
            matchmaker.registry, matchmaker.queue, ("a", []), ("b", []), ("c", []), ("d", [])
        )

        pairs = matchmaker.tick()

        assert [(a.id, b.id) for a, b in pairs] == [("a", "b"), ("c", "d")]
        assert len(matchmaker.queue) == 0
        assert matchmaker.total_pairings == 2

    def test_tick_prefers_overlap_over_queue_age(self, matchmaker: Matchmaker):
        p1, p2, p3 = queue_participants(
            matchmaker.registry, matchmaker.queue, ("p1", []), ("p2", ["x"]), ("p3", ["x"])
        )

        pairs = matchmaker.tick()

        assert [(a.id, b.id) for a, b in pairs] == [("p2", "p3")]
        assert p1.state == ParticipantState.QUEUED
        assert matchmaker.queue.position("p1") == 1

    def test_odd_leftover_returns_to_front(self, matchmaker: Matchmaker):
        """The unpaired participant waits at the head for the next tick."""
        _, _, c = queue_participants(
            matchmaker.registry, matchmaker.queue, ("a", []), ("b", []), ("c", [])
        )
        enqueued_at = c.enqueued_at

        matchmaker.tick()
        newcomer = matchmaker.registry.register("d")
        matchmaker.queue.enqueue(newcomer)

        assert [p.id for p in matchmaker.queue.snapshot()] == ["c", "d"]
        assert c.state == ParticipantState.QUEUED
        assert c.enqueued_at == enqueued_at

        pairs = matchmaker.tick()
        assert [(a.id, b.id) for a, b in pairs] == [("c", "d")]

    def test_empty_and_single_queue(self, matchmaker: Matchmaker, notifier):
        assert matchmaker.tick() == []

        queue_participants(matchmaker.registry, matchmaker.queue, ("a", []))
        assert matchmaker.tick() == []
        assert matchmaker.queue.position("a") == 1
        assert notifier.events == []
        assert matchmaker.tick_count == 2

    # ==================== Stale Entry Tests ====================

    def test_stale_entry_is_dropped_and_survivor_retried(self, matchmaker: Matchmaker, notifier):
        """A participant gone from the registry is skipped within the same tick."""
        queue_participants(
            matchmaker.registry, matchmaker.queue, ("a", []), ("b", []), ("c", [])
        )
        matchmaker.registry.remove("a")

        pairs = matchmaker.tick()

        assert [(a.id, b.id) for a, b in pairs] == [("b", "c")]
        assert len(matchmaker.queue) == 0
        assert notifier.named(OutboundEvents.PAIRED, "a") == []

    def test_stale_partner_leaves_survivor_queued(self, matchmaker: Matchmaker):
        queue_participants(matchmaker.registry, matchmaker.queue, ("a", []), ("b", []))
        matchmaker.registry.remove("b")

        assert matchmaker.tick() == []
        assert [p.id for p in matchmaker.queue.snapshot()] == ["a"]

    def test_replaced_participant_is_stale(self, matchmaker: Matchmaker):
        """An entry whose id was re-registered as a new object is not paired."""
        old_a, _ = queue_participants(matchmaker.registry, matchmaker.queue, ("a", []), ("b", []))
        matchmaker.registry.remove("a")
        matchmaker.registry.register("a")

        assert matchmaker.tick() == []
        assert old_a.state == ParticipantState.QUEUED
        assert [p.id for p in matchmaker.queue.snapshot()] == ["b"]

    # ==================== Deadline and Loop Tests ====================

    @pytest.mark.asyncio
    async def test_tick_cancels_deadlines(self, matchmaker: Matchmaker):
        a, b = queue_participants(matchmaker.registry, matchmaker.queue, ("a", []), ("b", []))
        deadline_a = matchmaker.supervisor.arm(a)
        deadline_b = matchmaker.supervisor.arm(b)

        matchmaker.tick()

        assert a.timeout_handle is None and b.timeout_handle is None
        assert deadline_a.cancelled and deadline_b.cancelled
        assert matchmaker.supervisor.pending_count == 0

    @pytest.mark.asyncio
    async def test_periodic_loop_pairs_participants(self, matchmaker: Matchmaker):
        a, b = queue_participants(matchmaker.registry, matchmaker.queue, ("a", []), ("b", []))

        await matchmaker.start(interval_ms=10)
        try:
            assert matchmaker.running
            await wait_for_condition(lambda: a.state == ParticipantState.PAIRED)
        finally:
            await matchmaker.stop()

        assert not matchmaker.running
        assert a.partner_id == "b" and b.partner_id == "a"
        assert matchmaker.tick_count >= 1

    @pytest.mark.asyncio
    async def test_loop_survives_notifier_errors(self, registry, waiting_queue, supervisor, lock):
        def broken_notifier(participant_id, event, data):
            raise RuntimeError("socket gone")

        matchmaker = Matchmaker(registry, waiting_queue, supervisor, broken_notifier, lock=lock)
        a, b = queue_participants(registry, waiting_queue, ("a", []), ("b", []))

        pairs = matchmaker.tick()

        assert len(pairs) == 1
        assert a.partner_id == "b" and b.partner_id == "a"
