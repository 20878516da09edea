"""
Unit Tests for GamificationLedger
=================================

Test Coverage
-------------
- Streak transitions across study-day labels
- Heart deduction clamping and once-per-day refill
- XP accumulation
- Degrade-to-defaults on store failure
- Concurrent heart deductions from two tabs
"""

import asyncio
from datetime import datetime, timezone

import pytest

from studytrack.core.constants import MAX_HEARTS
from studytrack.core.store.base import RecordKind
from studytrack.modules.gamification.ledger import GamificationLedger, GamificationSnapshot
from studytrack.modules.shared.exceptions import ValidationError


@pytest.fixture
def ledger(store, retry_policy, reset_config_manager, test_logger, clock):
    return GamificationLedger(store, retry_policy, reset_config_manager, test_logger, clock)


@pytest.mark.unit
class TestStreak:
    async def test_login_without_record_starts_streak(self, ledger):
        snapshot = await ledger.login_sequence("p1")

        assert snapshot.streak_days == 1
        assert snapshot.hearts == MAX_HEARTS
        assert snapshot.xp == 0
        assert snapshot.last_activity_day == "2024-03-10"

    async def test_same_day_login_leaves_streak(self, ledger, store, clock):
        await ledger.login_sequence("p1")
        before = await store.get_record(RecordKind.GAMIFICATION, {"participant_id": "p1"})

        clock.advance(hours=5)
        snapshot = await ledger.login_sequence("p1")

        after = await store.get_record(RecordKind.GAMIFICATION, {"participant_id": "p1"})
        assert snapshot.streak_days == 1
        assert after.version == before.version

    async def test_next_day_increments(self, ledger, clock):
        await ledger.login_sequence("p1")

        clock.advance(days=1)
        snapshot = await ledger.login_sequence("p1")

        assert snapshot.streak_days == 2
        assert snapshot.last_activity_day == "2024-03-11"

    async def test_gap_resets_to_one(self, ledger, clock):
        await ledger.login_sequence("p1")
        clock.advance(days=1)
        await ledger.login_sequence("p1")

        clock.advance(days=2)
        snapshot = await ledger.login_sequence("p1")

        assert snapshot.streak_days == 1

    async def test_clock_going_backwards_resets(self, ledger, clock):
        await ledger.login_sequence("p1")
        clock.advance(days=-1)

        snapshot = await ledger.update_streak("p1")

        assert snapshot.streak_days == 1
        assert snapshot.last_activity_day == "2024-03-09"

    async def test_rollover_minute_counts_as_next_day(self, ledger, clock):
        clock.set(datetime(2024, 3, 10, 12, 0, tzinfo=timezone.utc))
        await ledger.login_sequence("p1")

        # 23:59 at UTC-5 on 2024-03-10
        clock.set(datetime(2024, 3, 11, 4, 59, tzinfo=timezone.utc))
        snapshot = await ledger.login_sequence("p1")

        assert snapshot.streak_days == 2
        assert snapshot.last_activity_day == "2024-03-11"


@pytest.mark.unit
class TestHearts:
    async def test_deduct_clamps_at_zero(self, ledger):
        await ledger.ensure_initialized("p1")

        for _ in range(MAX_HEARTS + 1):
            await ledger.deduct_heart("p1")

        snapshot = await ledger.get_snapshot("p1")
        assert snapshot.hearts == 0
        assert await ledger.can_participate("p1") is False

    async def test_reset_once_per_day(self, ledger, store, clock):
        await ledger.ensure_initialized("p1")
        for _ in range(5):
            await ledger.deduct_heart("p1")

        clock.advance(days=1)
        first = await ledger.check_and_reset_hearts("p1")
        await ledger.deduct_heart("p1")
        second = await ledger.check_and_reset_hearts("p1")

        assert first.hearts == MAX_HEARTS
        assert first.hearts_reset_day == "2024-03-11"
        assert second.hearts == MAX_HEARTS - 1

    async def test_reset_same_day_is_noop(self, ledger):
        await ledger.ensure_initialized("p1")
        await ledger.deduct_heart("p1")

        snapshot = await ledger.check_and_reset_hearts("p1")

        assert snapshot.hearts == MAX_HEARTS - 1

    async def test_reset_without_record_returns_none(self, ledger, store):
        assert await ledger.check_and_reset_hearts("p1") is None
        assert store.count(RecordKind.GAMIFICATION) == 0

    async def test_reset_falls_back_to_last_activity_day(self, ledger, store, clock):
        """Records without a reset stamp use the last activity day."""
        await store.upsert_record(
            RecordKind.GAMIFICATION,
            {"participant_id": "p1"},
            {"xp": 10, "hearts": 3, "streak_days": 4, "last_activity_day": "2024-03-10"},
        )

        unchanged = await ledger.check_and_reset_hearts("p1")
        clock.advance(days=1)
        refilled = await ledger.check_and_reset_hearts("p1")

        assert unchanged.hearts == 3
        assert refilled.hearts == MAX_HEARTS
        assert refilled.streak_days == 4

    async def test_hearts_cap_follows_config(self, ledger, reset_config_manager):
        reset_config_manager.set("gamification.max_hearts", 5)

        snapshot = await ledger.ensure_initialized("p1")

        assert snapshot.hearts == 5

    async def test_deduct_without_record_is_noop(self, ledger, store):
        assert await ledger.deduct_heart("p1") is None
        assert store.count(RecordKind.GAMIFICATION) == 0

    async def test_concurrent_deductions_all_land(
        self, racing_store, retry_policy, reset_config_manager, test_logger, clock
    ):
        ledger = GamificationLedger(racing_store, retry_policy, reset_config_manager, test_logger, clock)
        await ledger.ensure_initialized("p1")

        await asyncio.gather(*(ledger.deduct_heart("p1") for _ in range(4)))

        snapshot = await ledger.get_snapshot("p1")
        assert snapshot.hearts == MAX_HEARTS - 4


@pytest.mark.unit
class TestXP:
    async def test_award_accumulates(self, ledger):
        await ledger.ensure_initialized("p1")

        await ledger.award_xp("p1", 50)
        snapshot = await ledger.award_xp("p1", 30)

        assert snapshot.xp == 80

    async def test_award_without_record_is_noop(self, ledger):
        assert await ledger.award_xp("p1", 10) is None

    async def test_negative_award_rejected(self, ledger):
        with pytest.raises(ValidationError):
            await ledger.award_xp("p1", -5)


@pytest.mark.unit
class TestDegradedStore:
    async def test_snapshot_defaults_when_absent(self, ledger):
        snapshot = await ledger.get_snapshot("nobody")

        assert snapshot == GamificationSnapshot(hearts=MAX_HEARTS)
        assert snapshot.exists is False

    async def test_snapshot_defaults_when_unreachable(self, ledger, store):
        await ledger.ensure_initialized("p1")
        await ledger.deduct_heart("p1")
        store.set_unavailable()

        snapshot = await ledger.get_snapshot("p1")

        assert snapshot.hearts == MAX_HEARTS

    async def test_mutations_swallow_failures(self, ledger, store):
        store.set_unavailable()

        assert await ledger.login_sequence("p1") is None
        assert await ledger.award_xp("p1", 10) is None
        assert await ledger.deduct_heart("p1") is None

    async def test_can_participate_when_unreachable(self, ledger, store):
        store.set_unavailable()

        assert await ledger.can_participate("p1") is True
