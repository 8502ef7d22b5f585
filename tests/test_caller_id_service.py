"""Integration tests for caller_id.service against an in-memory database."""
import random
import uuid
from datetime import datetime, timedelta, timezone

import pytest
from pydantic import ValidationError
from sqlalchemy import func, select

import caller_id.service as caller_id_service
from db.models import CallerIdNumber, CallerIdPool, CallerIdReputationEvent, CallerIdUsageLog
from errors import ConflictError, NotFoundError
from schemas.caller_id import NumberCreate, NumberUpdate, PoolCreate, PoolUpdate

NOW = datetime(2026, 10, 12, 15, 0, tzinfo=timezone.utc)


async def _pool(session, name="East Coast", **overrides):
    return await caller_id_service.create_pool(session, PoolCreate(name=name, **overrides))


async def _number(session, pool, phone, **overrides):
    return await caller_id_service.add_number(
        session, pool.id, NumberCreate(phone_number=phone, **overrides)
    )


async def _count(session, model):
    return await session.scalar(select(func.count()).select_from(model))


# ---------------------------------------------------------------------------
# Pools
# ---------------------------------------------------------------------------


class TestPools:
    @pytest.mark.asyncio
    async def test_create_and_duplicate_name(self, session):
        pool = await _pool(session, rotation_strategy="weighted")
        assert pool.rotation_strategy == "weighted"
        assert pool.max_calls_per_number == 50
        assert pool.cooldown_minutes == 60

        with pytest.raises(ConflictError):
            await _pool(session)

    @pytest.mark.asyncio
    async def test_invalid_strategy_rejected_before_write(self, session):
        with pytest.raises(ValidationError):
            PoolCreate(name="Bad", rotation_strategy="sticky")
        await _pool(session, name="Good")
        assert await _count(session, CallerIdPool) == 1

    @pytest.mark.asyncio
    async def test_get_update_and_not_found(self, session):
        pool = await _pool(session)
        await _pool(session, name="West Coast")

        updated = await caller_id_service.update_pool(
            session, pool.id, PoolUpdate(max_calls_per_number=80, is_active=False)
        )
        assert updated.max_calls_per_number == 80
        assert updated.is_active is False
        assert updated.name == "East Coast"

        with pytest.raises(ConflictError):
            await caller_id_service.update_pool(session, pool.id, PoolUpdate(name="West Coast"))
        with pytest.raises(NotFoundError):
            await caller_id_service.get_pool(session, uuid.uuid4())

    @pytest.mark.asyncio
    async def test_get_pool_with_numbers(self, session):
        pool = await _pool(session)
        await _number(session, pool, "+15551230001")
        loaded = await caller_id_service.get_pool(session, pool.id, with_numbers=True)
        assert [n.phone_number for n in loaded.numbers] == ["+15551230001"]

    @pytest.mark.asyncio
    async def test_list_pools_and_overview(self, session):
        east = await _pool(session)
        west = await _pool(session, name="West Coast")
        await _pool(session, name="Empty")
        a = await _number(session, east, "+15551230001")
        await _number(session, east, "+15551230002")
        await _number(session, west, "+13105550003")
        await caller_id_service.flag_number(session, a.id, reason="spam")

        summaries = {s.name: s for s in await caller_id_service.list_pools(session)}
        assert list(summaries) == ["East Coast", "Empty", "West Coast"]
        assert summaries["East Coast"].total_numbers == 2
        assert summaries["East Coast"].active_numbers == 1
        assert summaries["East Coast"].flagged_numbers == 1
        assert summaries["Empty"].total_numbers == 0

        overview = await caller_id_service.get_overview(session)
        assert overview.total_pools == 3
        assert overview.total_numbers == 3
        assert overview.active_numbers == 2
        assert overview.flagged_numbers == 1

    @pytest.mark.asyncio
    async def test_pool_stats(self, session):
        pool = await _pool(session)
        a = await _number(session, pool, "+15551230001")
        await _number(session, pool, "+15551230002")
        await _number(session, pool, "+12125550003", status="inactive")
        await caller_id_service.record_call_start(session, a.id, "lead-1", "c-1", "+15559870000")
        await caller_id_service.flag_number(session, a.id, reason="complaint")

        stats = await caller_id_service.get_pool_stats(session, pool.id)
        assert stats.total_numbers == 3
        assert stats.active_numbers == 1
        assert stats.flagged_numbers == 1
        assert stats.inactive_numbers == 1
        assert stats.total_calls_today == 1
        # (80 + 100 + 100) / 3
        assert stats.average_reputation_score == 93
        assert [(c.area_code, c.count) for c in stats.area_codes] == [("555", 2), ("212", 1)]

    @pytest.mark.asyncio
    async def test_delete_pool_keeps_usage_history(self, session):
        pool = await _pool(session)
        number = await _number(session, pool, "+15551230001")
        log = await caller_id_service.record_call_start(
            session, number.id, "lead-1", "c-1", "+15559870000"
        )
        await caller_id_service.record_call_result(session, log.id, "answered", duration=42)

        await caller_id_service.delete_pool(session, pool.id)

        with pytest.raises(NotFoundError):
            await caller_id_service.get_pool(session, pool.id)
        assert await _count(session, CallerIdNumber) == 0
        assert await _count(session, CallerIdReputationEvent) == 0
        kept = await session.scalar(select(CallerIdUsageLog))
        assert kept.caller_id_number_id is None
        assert kept.caller_id_phone_number == "+15551230001"


# ---------------------------------------------------------------------------
# Numbers
# ---------------------------------------------------------------------------


class TestNumbers:
    @pytest.mark.asyncio
    async def test_add_number_derives_area_code(self, session):
        pool = await _pool(session)
        number = await _number(session, pool, "+15551234567", state="NY", city="Albany")

        assert number.area_code == "555"
        assert number.status == "active"
        assert number.reputation_score == 100
        assert number.reputation_level == "excellent"

    @pytest.mark.asyncio
    async def test_add_number_conflicts(self, session):
        pool = await _pool(session)
        await _number(session, pool, "+15551234567")

        with pytest.raises(ConflictError):
            await _number(session, pool, "+15551234567")
        with pytest.raises(NotFoundError):
            await caller_id_service.add_number(
                session, uuid.uuid4(), NumberCreate(phone_number="+15551234568")
            )

        # Same number in another pool is fine
        other = await _pool(session, name="Other")
        assert (await _number(session, other, "+15551234567")).pool_id == other.id

    @pytest.mark.asyncio
    async def test_import_numbers_partial_failure(self, session):
        pool = await _pool(session)
        result = await caller_id_service.import_numbers(
            session,
            pool.id,
            [
                {"phone_number": "+15551230001"},
                {"phone_number": "+15551230002", "state": "NY"},
                {"phone_number": "+15551230001"},
                {"phone_number": "not-a-number"},
                NumberCreate(phone_number="+13125550004"),
            ],
        )

        assert result.success == 3
        assert result.failed == 2
        assert result.errors[0].startswith("+15551230001:")
        assert result.errors[1].startswith("not-a-number:")
        assert await _count(session, CallerIdNumber) == 3

    @pytest.mark.asyncio
    async def test_list_numbers_filters_and_pages(self, session):
        pool = await _pool(session)
        for phone in ("+15551230003", "+12125550001", "+15551230001", "+15551230002"):
            await _number(session, pool, phone)
        third = (await caller_id_service.list_numbers(session, pool.id, area_code="555"))[0][2]
        await caller_id_service.flag_number(session, third.id)

        rows, total = await caller_id_service.list_numbers(session, pool.id)
        assert total == 4
        assert [n.phone_number for n in rows] == [
            "+12125550001", "+15551230001", "+15551230002", "+15551230003"
        ]

        rows, total = await caller_id_service.list_numbers(
            session, pool.id, area_code="555", limit=1, offset=1
        )
        assert total == 3
        assert [n.phone_number for n in rows] == ["+15551230002"]

        rows, total = await caller_id_service.list_numbers(session, pool.id, status="flagged")
        assert total == 1 and rows[0].phone_number == "+15551230003"

    @pytest.mark.asyncio
    async def test_update_number(self, session):
        pool = await _pool(session)
        number = await _number(session, pool, "+15551230001")

        updated = await caller_id_service.update_number(
            session, number.id, NumberUpdate(city="Buffalo", status="inactive")
        )
        assert updated.city == "Buffalo"
        assert updated.status == "inactive"

        await caller_id_service.update_number(session, number.id, NumberUpdate(status="active"))
        await caller_id_service.flag_number(session, number.id)
        with pytest.raises(ConflictError):
            await caller_id_service.update_number(session, number.id, NumberUpdate(status="active"))

    def test_update_number_rejects_flag_states(self):
        with pytest.raises(ValidationError):
            NumberUpdate(status="blocked")

    @pytest.mark.asyncio
    async def test_concurrent_write_is_a_conflict(self, session):
        pool = await _pool(session)
        number = await _number(session, pool, "+15551230001")

        # Another writer bumps the row behind this session's back
        await session.execute(
            CallerIdNumber.__table__.update()
            .where(CallerIdNumber.__table__.c.id == number.id)
            .values(version_id=CallerIdNumber.__table__.c.version_id + 1)
        )
        with pytest.raises(ConflictError):
            await caller_id_service.update_number(session, number.id, NumberUpdate(city="Troy"))

    @pytest.mark.asyncio
    async def test_delete_number(self, session):
        pool = await _pool(session)
        number = await _number(session, pool, "+15551230001")
        await caller_id_service.flag_number(session, number.id)

        await caller_id_service.delete_number(session, number.id)

        with pytest.raises(NotFoundError):
            await caller_id_service.get_number(session, number.id)
        assert await _count(session, CallerIdReputationEvent) == 0
        with pytest.raises(NotFoundError):
            await caller_id_service.delete_number(session, number.id)

    @pytest.mark.asyncio
    async def test_number_stats(self, session):
        pool = await _pool(session)
        number = await _number(session, pool, "+15551230001")
        for i in range(4):
            log = await caller_id_service.record_call_start(
                session, number.id, f"lead-{i}", "c-1", "+15559870000",
                now=NOW + timedelta(minutes=i),
            )
            result = "answered" if i == 0 else "no_answer"
            await caller_id_service.record_call_result(
                session, log.id, result, now=NOW + timedelta(minutes=i, seconds=30)
            )
        await caller_id_service.flag_number(
            session, number.id, reason="spam", now=NOW + timedelta(hours=1)
        )

        stats = await caller_id_service.get_number_stats(session, number.id)
        assert stats.total_calls == 4
        assert stats.answered_calls == 1
        assert stats.answer_rate == 25.0
        assert stats.calls_today == 4
        assert stats.reputation_score == 80
        assert stats.reputation_level == "good"
        assert [e.event_type for e in stats.recent_events] == ["manual_flag", "call_answered"]


# ---------------------------------------------------------------------------
# Selection
# ---------------------------------------------------------------------------


class TestSelection:
    @pytest.mark.asyncio
    async def test_unknown_pool(self, session):
        with pytest.raises(NotFoundError):
            await caller_id_service.select_caller_id_for_lead(
                session, uuid.uuid4(), "+15551234567", "c-1"
            )

    @pytest.mark.asyncio
    async def test_inactive_pool_returns_none(self, session):
        pool = await _pool(session, is_active=False)
        await _number(session, pool, "+15551230001")
        assert await caller_id_service.select_caller_id_for_lead(
            session, pool.id, "+15551234567", "c-1"
        ) is None

    @pytest.mark.asyncio
    async def test_empty_pool_returns_none(self, session):
        pool = await _pool(session)
        blocked = await _number(session, pool, "+15551230001")
        await caller_id_service.flag_number(session, blocked.id)
        assert await caller_id_service.select_caller_id_for_lead(
            session, pool.id, "+15551234567", "c-1", now=NOW
        ) is None

    @pytest.mark.asyncio
    async def test_local_presence_then_rotation(self, session):
        pool = await _pool(session)
        chicago = await _number(session, pool, "+13125550001")
        first = await _number(session, pool, "+15555550002")
        second = await _number(session, pool, "+15555550003")

        picks = []
        for minute in range(4):
            now = NOW + timedelta(minutes=minute)
            number = await caller_id_service.select_caller_id_for_lead(
                session, pool.id, "+1 (555) 867-5309", "c-1", now=now
            )
            await caller_id_service.record_call_start(
                session, number.id, "lead-1", "c-1", "+15558675309", now=now
            )
            picks.append(number.id)

        assert chicago.id not in picks
        assert picks == [first.id, second.id, first.id, second.id]

    @pytest.mark.asyncio
    async def test_max_calls_fallback_returns_least_used(self, session):
        pool = await _pool(session, max_calls_per_number=3)
        numbers = [
            await _number(session, pool, phone)
            for phone in ("+15551230001", "+15551230002", "+15551230003")
        ]
        for number in numbers:
            for _ in range(3):
                await caller_id_service.record_call_start(
                    session, number.id, "lead-1", "c-1", "+15559870000", now=NOW
                )
        # One extra call on the first so the least-used is unique
        await caller_id_service.record_call_start(
            session, numbers[0].id, "lead-1", "c-1", "+15559870000", now=NOW
        )

        picked = await caller_id_service.select_caller_id_for_lead(
            session, pool.id, "+15559870000", "c-1", now=NOW
        )
        assert picked is not None
        assert picked.calls_today == 3
        assert picked.id != numbers[0].id

    @pytest.mark.asyncio
    async def test_weighted_pool_favours_reputation(self, session):
        pool = await _pool(session, rotation_strategy="weighted", local_presence_enabled=False)
        strong = await _number(session, pool, "+15551230001")
        weak = await _number(session, pool, "+15551230002")
        await caller_id_service.update_reputation(session, weak.id, "spam_report", -90)

        rng = random.Random(2026)
        strong_picks = 0
        for _ in range(1_000):
            picked = await caller_id_service.select_caller_id_for_lead(
                session, pool.id, "+15559870000", "c-1", now=NOW, rng=rng
            )
            strong_picks += picked.id == strong.id
        assert 870 < strong_picks < 950


# ---------------------------------------------------------------------------
# Usage tracking
# ---------------------------------------------------------------------------


class TestUsage:
    @pytest.mark.asyncio
    async def test_call_start_counts_and_logs(self, session):
        pool = await _pool(session)
        number = await _number(session, pool, "+15551230001")

        log = await caller_id_service.record_call_start(
            session, number.id, "lead-1", "c-1", "+1 212 555 0199", call_uuid="uuid-1", now=NOW
        )

        assert number.calls_today == 1
        assert number.total_calls == 1
        assert number.last_used_at == NOW
        assert log.caller_id_phone_number == "+15551230001"
        assert log.destination_area_code == "212"
        assert log.call_uuid == "uuid-1"
        assert log.call_result is None

    @pytest.mark.asyncio
    async def test_answered_result_boosts_reputation(self, session):
        pool = await _pool(session)
        number = await _number(session, pool, "+15551230001")
        await caller_id_service.update_reputation(session, number.id, "spam_report", -30)
        log = await caller_id_service.record_call_start(
            session, number.id, "lead-1", "c-1", "+15559870000"
        )

        closed = await caller_id_service.record_call_result(session, log.id, "answered", 95)

        assert closed.was_answered is True
        assert closed.call_duration == 95
        assert number.answered_calls == 1
        assert number.reputation_score == 71
        assert number.reputation_level == "good"

    @pytest.mark.asyncio
    async def test_unanswered_result_leaves_reputation(self, session):
        pool = await _pool(session)
        number = await _number(session, pool, "+15551230001")
        log = await caller_id_service.record_call_start(
            session, number.id, "lead-1", "c-1", "+15559870000"
        )

        closed = await caller_id_service.record_call_result(session, log.id, "voicemail")

        assert closed.was_answered is False
        assert number.answered_calls == 0
        assert await caller_id_service.get_reputation_history(session, number.id) == []

    @pytest.mark.asyncio
    async def test_result_edge_cases(self, session):
        pool = await _pool(session)
        number = await _number(session, pool, "+15551230001")
        log = await caller_id_service.record_call_start(
            session, number.id, "lead-1", "c-1", "+15559870000"
        )

        assert await caller_id_service.record_call_result(session, uuid.uuid4(), "busy") is None
        with pytest.raises(ValidationError):
            await caller_id_service.record_call_result(session, log.id, "hung_up")

        await caller_id_service.record_call_result(session, log.id, "busy")
        with pytest.raises(ConflictError):
            await caller_id_service.record_call_result(session, log.id, "answered")


# ---------------------------------------------------------------------------
# Reputation
# ---------------------------------------------------------------------------


class TestReputation:
    @pytest.mark.asyncio
    async def test_update_reputation_clamps_and_audits(self, session):
        pool = await _pool(session)
        number = await _number(session, pool, "+15551230001")

        await caller_id_service.update_reputation(
            session, number.id, "verification_passed", 25, source="carrier", now=NOW
        )
        assert number.reputation_score == 100
        await caller_id_service.update_reputation(
            session, number.id, "carrier_block", -150, now=NOW + timedelta(minutes=1)
        )
        assert number.reputation_score == 0
        assert number.reputation_level == "critical"

        history = await caller_id_service.get_reputation_history(session, number.id)
        assert [(e.event_type, e.score_change, e.previous_score, e.new_score) for e in history] == [
            ("carrier_block", -150, 100, 0),
            ("verification_passed", 25, 100, 100),
        ]

    @pytest.mark.asyncio
    async def test_levels_follow_thresholds(self, session):
        pool = await _pool(session)
        number = await _number(session, pool, "+15551230001")

        expected = [(-10, 90, "excellent"), (-1, 89, "good"), (-19, 70, "good"),
                    (-1, 69, "fair"), (-19, 50, "fair"), (-1, 49, "poor"),
                    (-19, 30, "poor"), (-1, 29, "critical")]
        for delta, score, level in expected:
            await caller_id_service.update_reputation(session, number.id, "low_answer_rate", delta)
            assert (number.reputation_score, number.reputation_level) == (score, level)

    @pytest.mark.asyncio
    async def test_unknown_event_type(self, session):
        pool = await _pool(session)
        number = await _number(session, pool, "+15551230001")
        with pytest.raises(ConflictError):
            await caller_id_service.update_reputation(session, number.id, "gossip", -5)
        assert await _count(session, CallerIdReputationEvent) == 0

    @pytest.mark.asyncio
    async def test_flag_and_unblock(self, session):
        pool = await _pool(session)
        number = await _number(session, pool, "+15551230001")

        await caller_id_service.flag_number(
            session, number.id, reason="spam complaints", source="carrier", now=NOW
        )
        assert number.status == "flagged"
        assert number.flagged_count == 1
        assert number.last_flagged_at == NOW
        assert number.reputation_score == 80

        # Flagging again stacks the penalty
        await caller_id_service.flag_number(session, number.id, now=NOW + timedelta(minutes=1))
        assert number.flagged_count == 2
        assert number.reputation_score == 60

        await caller_id_service.unblock_number(session, number.id, now=NOW + timedelta(minutes=2))
        assert number.status == "active"
        assert number.reputation_score == 70

        history = await caller_id_service.get_reputation_history(session, number.id)
        assert [e.event_type for e in history] == ["recovery", "manual_flag", "manual_flag"]
        assert history[0].source == "admin"
        assert history[2].notes == "spam complaints"

    @pytest.mark.asyncio
    async def test_block_and_unblock(self, session):
        """A blocked number leaves rotation until unblocked."""
        pool = await _pool(session)
        local = await _number(session, pool, "+15551230001")
        other = await _number(session, pool, "+12125550002")

        await caller_id_service.block_number(
            session, local.id, reason="carrier report", source="carrier", now=NOW
        )
        assert local.status == "blocked"
        assert (local.reputation_score, local.reputation_level) == (50, "fair")

        picked = await caller_id_service.select_caller_id_for_lead(
            session, pool.id, "+15559870000", "c-1", now=NOW
        )
        assert picked.id == other.id
        stats = await caller_id_service.get_pool_stats(session, pool.id)
        assert stats.blocked_numbers == 1

        with pytest.raises(ConflictError):
            await caller_id_service.block_number(session, local.id)

        await caller_id_service.unblock_number(session, local.id, now=NOW + timedelta(minutes=1))
        assert local.status == "active"
        assert local.reputation_score == 60

        history = await caller_id_service.get_reputation_history(session, local.id)
        assert [(e.event_type, e.score_change) for e in history] == [
            ("recovery", 10),
            ("carrier_block", -50),
        ]
        assert history[1].notes == "carrier report"

    @pytest.mark.asyncio
    async def test_block_cooling_down_number_drops_cooldown(self, session):
        pool = await _pool(session)
        number = await _number(session, pool, "+15551230001")

        await caller_id_service.cool_down_number(session, number.id, now=NOW)
        await caller_id_service.block_number(session, number.id, now=NOW + timedelta(minutes=5))
        assert number.status == "blocked"
        assert number.cooldown_until is None

        assert await caller_id_service.process_cooldowns(session, now=NOW + timedelta(hours=2)) == 0
        assert number.status == "blocked"
        assert await caller_id_service.select_caller_id_for_lead(
            session, pool.id, "+15559870000", "c-1", now=NOW + timedelta(hours=2)
        ) is None

    @pytest.mark.asyncio
    async def test_history_order_with_identical_timestamps(self, session):
        """Events written at the same instant read back newest first."""
        pool = await _pool(session)
        number = await _number(session, pool, "+15551230001")

        for _ in range(3):
            await caller_id_service.flag_number(session, number.id, now=NOW)
            await caller_id_service.unblock_number(session, number.id, now=NOW)

        history = await caller_id_service.get_reputation_history(session, number.id)
        assert [e.event_type for e in history] == ["recovery", "manual_flag"] * 3
        assert [e.seq for e in history] == [6, 5, 4, 3, 2, 1]
        assert [e.new_score for e in history] == [70, 60, 80, 70, 90, 80]

    @pytest.mark.asyncio
    async def test_illegal_transitions(self, session):
        pool = await _pool(session)
        number = await _number(session, pool, "+15551230001")
        inactive = await _number(session, pool, "+15551230002", status="inactive")

        with pytest.raises(ConflictError):
            await caller_id_service.unblock_number(session, number.id)
        with pytest.raises(ConflictError):
            await caller_id_service.flag_number(session, inactive.id)
        with pytest.raises(ConflictError):
            await caller_id_service.cool_down_number(session, inactive.id)
        with pytest.raises(ConflictError):
            await caller_id_service.block_number(session, inactive.id)
        assert await _count(session, CallerIdReputationEvent) == 0


# ---------------------------------------------------------------------------
# Cooldown / maintenance
# ---------------------------------------------------------------------------


class TestMaintenance:
    @pytest.mark.asyncio
    async def test_cooldown_sweep(self, session):
        pool = await _pool(session, cooldown_minutes=30)
        number = await _number(session, pool, "+15551230001")

        await caller_id_service.cool_down_number(session, number.id, now=NOW)
        assert number.status == "cooling_down"
        assert number.reputation_score == 100

        # Excluded while cooling down
        assert await caller_id_service.select_caller_id_for_lead(
            session, pool.id, "+15559870000", "c-1", now=NOW + timedelta(minutes=10)
        ) is None
        assert await caller_id_service.process_cooldowns(session, now=NOW + timedelta(minutes=10)) == 0
        assert number.status == "cooling_down"

        later = NOW + timedelta(minutes=31)
        # Selectable once the deadline has passed, even before the sweep
        picked = await caller_id_service.select_caller_id_for_lead(
            session, pool.id, "+15559870000", "c-1", now=later
        )
        assert picked.id == number.id

        events_before = await _count(session, CallerIdReputationEvent)
        assert await caller_id_service.process_cooldowns(session, now=later) == 1
        assert number.status == "active"
        assert number.cooldown_until is None
        assert await _count(session, CallerIdReputationEvent) == events_before

    @pytest.mark.asyncio
    async def test_reset_daily_counters(self, session):
        east = await _pool(session)
        west = await _pool(session, name="West Coast")
        a = await _number(session, east, "+15551230001")
        b = await _number(session, west, "+13105550001")
        for number in (a, a, b):
            await caller_id_service.record_call_start(
                session, number.id, "lead-1", "c-1", "+15559870000"
            )

        assert await caller_id_service.reset_daily_counters(session, east.id) == 1
        assert (a.calls_today, b.calls_today) == (0, 1)

        assert await caller_id_service.reset_daily_counters(session) == 1
        assert await caller_id_service.reset_daily_counters(session) == 0
        assert b.calls_today == 0
        assert (a.total_calls, b.total_calls) == (2, 1)
