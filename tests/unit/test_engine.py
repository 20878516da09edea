"""
Unit Tests for EngagementEngine
===============================

Purpose
-------
Drive the engine the way the UI does (login, answers, quiz completion,
visibility and page lifecycle) and check the state every service ends up
in.

Test Coverage
-------------
- Full gamified flow: unlock, stars, best score, XP, hearts
- Control arm: progress only, no gamification state
- Trigger guards and error propagation
- Session lifecycle through the facade
"""

import pytest

from studytrack.core.constants import MAX_HEARTS
from studytrack.core.exceptions import StoreUnavailableError
from studytrack.core.store.base import RecordKind
from studytrack.modules.engine.engine import EngagementEngine
from studytrack.modules.shared.exceptions import InvalidIndexError, ValidationError


async def _login(engine, participant_id="p1", condition="experimental", day_number=1):
    handle = engine.new_handle()
    result = await engine.on_login(handle, participant_id, condition, day_number)
    return handle, result


@pytest.mark.unit
class TestGamifiedFlow:
    async def test_first_unit_completion_scenario(self, engine, dispatcher):
        """Fresh participant completes unit 0 with 9/10 after one wrong answer."""
        handle, login = await _login(engine)
        assert login.gamified is True
        assert login.gamification.streak_days == 1
        assert await engine.is_unlocked("p1", 0) is True
        assert await engine.is_unlocked("p1", 1) is False
        xp_before = (await engine.get_gamification_snapshot("p1")).xp

        for correct in [True] * 9 + [False]:
            await engine.on_answer_judged(handle, correct)
        hearts_before_completion = (await engine.get_gamification_snapshot("p1")).hearts
        outcome = await engine.on_quiz_completed(handle, "unit-0", 9, 10)

        snapshot = await engine.get_gamification_snapshot("p1")
        progress = await engine.services.progress.get_progress("p1")
        assert hearts_before_completion == MAX_HEARTS - 1
        assert snapshot.hearts == hearts_before_completion
        assert outcome.stars == 2
        assert outcome.best_score == 9
        assert progress.best_stars["unit-0"] == 2
        assert await engine.get_best_score("p1", "unit-0") == 9
        assert await engine.is_unlocked("p1", 1) is True
        assert snapshot.xp - xp_before == 55
        assert outcome.xp_awarded == 55
        await engine.shutdown()

    async def test_quiz_result_row_is_saved(self, engine, store):
        handle, _ = await _login(engine)

        outcome = await engine.on_quiz_completed(handle, "unit-0", 10, 10)

        rows = store.all_records(RecordKind.QUIZ_RESULT)
        assert [row.id for row in rows] == [outcome.quiz_result_id]
        assert rows[0].get("score_accuracy") == 100.0
        assert outcome.stars == 3
        assert outcome.xp_awarded == 80

    async def test_retaking_with_lower_score_keeps_best(self, engine):
        handle, _ = await _login(engine)
        await engine.on_quiz_completed(handle, "unit-0", 10, 10)

        outcome = await engine.on_quiz_completed(handle, "unit-0", 3, 10)

        assert outcome.best_score == 10
        assert await engine.services.progress.get_best_stars("p1", "unit-0") == 3

    async def test_out_of_hearts_blocks_participation(self, engine, clock):
        handle, _ = await _login(engine)
        for _ in range(MAX_HEARTS):
            await engine.on_answer_judged(handle, False)

        blocked = await engine.can_participate("p1")
        clock.advance(days=1)
        next_day = await engine.can_participate("p1")

        assert blocked is False
        assert next_day is True

    async def test_next_day_login_extends_streak_and_refills(self, engine, clock):
        handle, _ = await _login(engine)
        await engine.on_answer_judged(handle, False)

        clock.advance(days=1)
        _, login = await _login(engine)

        assert login.gamification.streak_days == 2
        assert login.gamification.hearts == MAX_HEARTS

    async def test_unlocked_units_follow_completions(self, engine):
        handle, _ = await _login(engine)
        await engine.on_quiz_completed(handle, "unit-0", 8, 10)
        await engine.on_quiz_completed(handle, "unit-1", 8, 10)

        assert await engine.unlocked_units("p1") == ["unit-0", "unit-1", "unit-2"]


@pytest.mark.unit
class TestControlArm:
    async def test_control_arm_has_no_gamification(self, engine, store):
        handle, login = await _login(engine, condition="control")

        await engine.on_answer_judged(handle, False)
        outcome = await engine.on_quiz_completed(handle, "unit-0", 9, 10)

        assert login.gamified is False
        assert login.gamification is None
        assert outcome.stars is None
        assert outcome.xp_awarded == 0
        assert outcome.best_score == 9
        assert store.count(RecordKind.GAMIFICATION) == 0
        assert await engine.is_unlocked("p1", 1) is True

    async def test_unknown_condition_rejected(self, engine):
        with pytest.raises(ValueError):
            await _login(engine, condition="placebo")

    async def test_cohort_is_normalized_and_recorded(self, engine, store):
        handle = engine.new_handle()

        login = await engine.on_login(handle, "p1", "control", 1, cohort="b")
        await engine.shutdown()

        event = store.all_records(RecordKind.EVENT)[0]
        assert login.cohort == "B"
        assert event.get("meta") == {"gamified": False, "cohort": "B"}

    async def test_unknown_cohort_rejected(self, engine):
        with pytest.raises(ValueError):
            await engine.on_login(engine.new_handle(), "p1", "control", 1, cohort="Z")


@pytest.mark.unit
class TestGuards:
    async def test_quiz_without_login_rejected(self, engine):
        with pytest.raises(ValidationError):
            await engine.on_quiz_completed(engine.new_handle(), "unit-0", 5, 10)

    async def test_unknown_unit_rejected(self, engine):
        handle, _ = await _login(engine)

        with pytest.raises(ValidationError):
            await engine.on_quiz_completed(handle, "unit-99", 5, 10)

    async def test_invalid_counts_rejected(self, engine):
        handle, _ = await _login(engine)

        with pytest.raises(ValidationError):
            await engine.on_quiz_completed(handle, "unit-0", 11, 10)

    async def test_locked_unit_completion_rejected(self, engine, store):
        handle, _ = await _login(engine)
        xp_before = (await engine.get_gamification_snapshot("p1")).xp

        with pytest.raises(ValidationError):
            await engine.on_quiz_completed(handle, "unit-2", 10, 10)

        assert store.count(RecordKind.QUIZ_RESULT) == 0
        assert (await engine.get_gamification_snapshot("p1")).xp == xp_before
        assert await engine.is_unlocked("p1", 1) is False
        assert await engine.is_unlocked("p1", 3) is False

    async def test_unlock_check_failure_is_not_reported_as_locked(self, engine, store):
        handle, _ = await _login(engine)
        await engine.on_quiz_completed(handle, "unit-0", 9, 10)
        store.set_unavailable()

        with pytest.raises(StoreUnavailableError):
            await engine.on_quiz_completed(handle, "unit-1", 9, 10)

    async def test_retry_after_progress_failure_saves_one_result(self, engine, store):
        handle, _ = await _login(engine)
        store.fail_next("upsert_record")

        with pytest.raises(StoreUnavailableError):
            await engine.on_quiz_completed(handle, "unit-0", 9, 10)
        assert store.count(RecordKind.QUIZ_RESULT) == 0

        outcome = await engine.on_quiz_completed(handle, "unit-0", 9, 10)

        assert store.count(RecordKind.QUIZ_RESULT) == 1
        assert outcome.best_score == 9

    async def test_invalid_unlock_index(self, engine):
        with pytest.raises(InvalidIndexError):
            await engine.is_unlocked("p1", 4)

    async def test_quiz_save_failure_propagates(self, engine, store):
        handle, _ = await _login(engine)
        store.set_unavailable()

        with pytest.raises(StoreUnavailableError):
            await engine.on_quiz_completed(handle, "unit-0", 9, 10)

    async def test_login_survives_unreachable_store(self, engine, store):
        store.set_unavailable()

        handle, login = await _login(engine)

        assert login.session_id is None
        assert login.gamification is None
        assert handle.participant_id == "p1"

    def test_duplicate_unit_ids_rejected(self, container):
        with pytest.raises(ValidationError):
            EngagementEngine(container, ["a", "b", "a"])


@pytest.mark.unit
class TestSessionTriggers:
    async def test_login_opens_session(self, engine, store):
        handle, login = await _login(engine, day_number=3)

        row = store.all_records(RecordKind.SESSION)[0]
        assert handle.session_id == login.session_id == row.id
        assert row.get("day_number") == 3
        assert row.get("condition") == "experimental"

    async def test_hide_show_and_logout(self, engine, store):
        handle, _ = await _login(engine)

        await engine.on_tab_hidden(handle)
        await engine.on_tab_visible(handle)
        await engine.on_logout(handle)

        reasons = sorted(row.get("end_reason") for row in store.all_records(RecordKind.SESSION))
        assert reasons == ["logout", "tab_hidden"]
        assert handle.has_identity is False

    async def test_unload_then_drain(self, engine, store):
        handle, _ = await _login(engine)

        engine.on_before_unload(handle)
        engine.on_page_hide(handle)
        await engine.shutdown()

        rows = store.all_records(RecordKind.SESSION)
        assert [row.get("end_reason") for row in rows] == ["page_unload"]

    async def test_login_and_quiz_events_recorded(self, engine, store):
        handle, _ = await _login(engine)
        await engine.on_quiz_completed(handle, "unit-0", 6, 10)
        await engine.shutdown()

        event_types = sorted(row.get("event_type") for row in store.all_records(RecordKind.EVENT))
        assert event_types == ["login", "quiz_completed"]
