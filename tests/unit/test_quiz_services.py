"""
Unit Tests for Quiz Results and Video State
===========================================

Test Coverage
-------------
- Quiz attempt persistence and ordering
- Failed saves propagate, failed reads degrade
- Video resume state overwrite per participant+unit
"""

import pytest

from studytrack.core.exceptions import StoreUnavailableError
from studytrack.core.store.base import RecordKind
from studytrack.modules.quiz.result_service import QuizResult, QuizResultService
from studytrack.modules.quiz.video_state_service import VideoState, VideoStateService
from studytrack.modules.shared.exceptions import ValidationError


@pytest.fixture
def quiz_results(store, reset_config_manager, test_logger, clock):
    return QuizResultService(store, reset_config_manager, test_logger, clock)


@pytest.fixture
def video_states(store, reset_config_manager, test_logger, clock):
    return VideoStateService(store, reset_config_manager, test_logger, clock)


@pytest.mark.unit
class TestQuizResults:
    def test_from_counts_derives_fields(self):
        result = QuizResult.from_counts("u0", 7, 10)

        assert result.incorrect_count == 3
        assert result.score_accuracy == 70.0

    @pytest.mark.parametrize("correct,total", [(11, 10), (-1, 10), (0, 0)])
    def test_from_counts_rejects_bad_counts(self, correct, total):
        with pytest.raises(ValidationError):
            QuizResult.from_counts("u0", correct, total)

    async def test_save_and_list_in_completion_order(self, quiz_results, clock):
        await quiz_results.save_quiz_result("p1", QuizResult.from_counts("u0", 4, 10))
        clock.advance(minutes=10)
        await quiz_results.save_quiz_result("p1", QuizResult.from_counts("u0", 9, 10))

        results = await quiz_results.list_quiz_results("p1", "u0")

        assert [r.correct_count for r in results] == [4, 9]
        assert results[1].completed_at == clock()

    async def test_attempts_are_appended_not_merged(self, quiz_results, store):
        for _ in range(3):
            await quiz_results.save_quiz_result("p1", QuizResult.from_counts("u0", 5, 10))

        assert store.count(RecordKind.QUIZ_RESULT) == 3

    async def test_save_failure_propagates(self, quiz_results, store):
        store.set_unavailable()

        with pytest.raises(StoreUnavailableError):
            await quiz_results.save_quiz_result("p1", QuizResult.from_counts("u0", 5, 10))

    async def test_list_failure_degrades(self, quiz_results, store):
        store.set_unavailable()

        assert await quiz_results.list_quiz_results("p1") == []


@pytest.mark.unit
class TestVideoState:
    async def test_missing_state_is_none(self, video_states):
        assert await video_states.get_video_state("p1", "u0") is None

    async def test_save_overwrites(self, video_states, store):
        await video_states.save_video_state("p1", "u0", VideoState(40.0, 120.5, True))
        await video_states.save_video_state("p1", "u0", VideoState(85.0, 300.0, False))

        state = await video_states.get_video_state("p1", "u0")

        assert state == VideoState(85.0, 300.0, False)
        assert store.count(RecordKind.VIDEO_STATE) == 1

    async def test_units_are_independent(self, video_states):
        await video_states.save_video_state("p1", "u0", VideoState(100.0, 600.0))

        assert await video_states.get_video_state("p1", "u1") is None

    @pytest.mark.parametrize("state", [VideoState(101.0, 0.0), VideoState(50.0, -1.0)])
    async def test_invalid_state_rejected(self, video_states, state):
        with pytest.raises(ValidationError):
            await video_states.save_video_state("p1", "u0", state)

    async def test_save_failure_propagates(self, video_states, store):
        store.set_unavailable()

        with pytest.raises(StoreUnavailableError):
            await video_states.save_video_state("p1", "u0", VideoState())

    async def test_read_failure_degrades(self, video_states, store):
        await video_states.save_video_state("p1", "u0", VideoState(10.0, 5.0))
        store.set_unavailable()

        assert await video_states.get_video_state("p1", "u0") is None
