"""
Unit Tests for Core Infrastructure
==================================

Test Coverage
-------------
- ConfigManager defaults, overrides and YAML loading
- Static Config environment parsing and validation
- Structured exception metadata
- Conflict retry policy
- In-memory store versioning and failure injection
- Background dispatcher
- Logging context, formatters and the queue pipeline
- Service container wiring
"""

import asyncio
import json
import logging
import queue

import pytest

from studytrack.core.background import BackgroundDispatcher
from studytrack.core.config.config import Config, Environment
from studytrack.core.config.manager import ConfigManager, ConfigManagerError
from studytrack.core.exceptions import (
    ConfigurationError,
    ErrorSeverity,
    StoreUnavailableError,
    VersionConflictError,
    get_error_severity,
    is_transient_error,
    should_alert,
)
from studytrack.core.logging.logger import (
    ColoredFormatter,
    ContextFilter,
    JSONFormatter,
    LogContext,
    StudyQueueHandler,
    get_log_context,
    get_logger,
    get_logging_health,
    set_log_context,
    setup_logging,
    shutdown_logging,
)
from studytrack.core.services.container import ServiceContainer
from studytrack.core.store.base import RecordKind
from studytrack.core.store.retry_policy import ConflictRetryConfig, ConflictRetryPolicy
from studytrack.modules.shared.base_service import BaseService
from studytrack.modules.shared.exceptions import InvalidIndexError, NotFoundError, ValidationError


# ============================================================================
# CONFIG MANAGER
# ============================================================================


@pytest.mark.unit
class TestConfigManager:
    def test_yaml_defaults_loaded(self):
        assert ConfigManager.get("gamification.max_hearts") == 20
        assert ConfigManager.get("gamification.gamified_conditions") == ["experimental"]
        assert ConfigManager.get("telemetry.enabled") is True

    def test_missing_key_returns_default(self):
        assert ConfigManager.get("nope.nothing", 7) == 7
        assert ConfigManager.get("gamification.max_hearts.deeper") is None

    def test_override_wins_and_keeps_siblings(self):
        ConfigManager.set("gamification.max_hearts", 3)

        assert ConfigManager.get("gamification.max_hearts") == 3
        assert ConfigManager.get("gamification.gamified_conditions") == ["experimental"]

    def test_reset_drops_overrides(self):
        ConfigManager.set("store.conflict_retry_attempts", 1)

        ConfigManager.reset()

        assert ConfigManager.get("store.conflict_retry_attempts") == 5

    def test_empty_key_rejected(self):
        with pytest.raises(ConfigManagerError):
            ConfigManager.set("", 1)

    def test_custom_config_dir(self, tmp_path):
        (tmp_path / "base.yaml").write_text("gamification:\n  max_hearts: 9\n")
        (tmp_path / "extra.yml").write_text("sessions:\n  close_previous_on_start: false\n")
        (tmp_path / "broken.yaml").write_text("gamification: [unclosed\n")

        ConfigManager.initialize(tmp_path)

        assert ConfigManager.get("gamification.max_hearts") == 9
        assert ConfigManager.get("sessions.close_previous_on_start") is False
        assert "telemetry" not in ConfigManager.get_all_keys()

    def test_required_key_raises_through_service(self, test_logger):
        service = BaseService(ConfigManager, test_logger)

        with pytest.raises(ConfigurationError):
            service.get_config("missing.key", required=True)


# ============================================================================
# STATIC CONFIG
# ============================================================================


@pytest.fixture
def static_config():
    """Snapshot Config class attributes so env reloads do not leak."""
    snapshot = {key: value for key, value in vars(Config).items() if key.isupper() or key == "_validated"}
    yield Config
    for key, value in snapshot.items():
        setattr(Config, key, value)


@pytest.mark.unit
class TestStaticConfig:
    def test_environment_parsed_case_insensitively(self, static_config, monkeypatch):
        monkeypatch.setenv("STUDYTRACK_ENVIRONMENT", "Production")

        static_config.load()

        assert static_config.ENVIRONMENT == Environment.PRODUCTION.value
        assert static_config.is_production()

    def test_unknown_environment_falls_back_to_development(self, static_config, monkeypatch):
        monkeypatch.setenv("STUDYTRACK_ENVIRONMENT", "moon")

        static_config.load()

        assert static_config.ENVIRONMENT == Environment.DEVELOPMENT.value
        assert not static_config.is_production()

    def test_out_of_range_int_uses_default(self, static_config, monkeypatch):
        monkeypatch.setenv("STUDYTRACK_STORE_RETRY_MAX_ATTEMPTS", "0")

        static_config.load()

        assert static_config.STORE_RETRY_MAX_ATTEMPTS == 5

    def test_production_requires_database_url(self, static_config, monkeypatch):
        monkeypatch.setenv("STUDYTRACK_ENVIRONMENT", "production")
        monkeypatch.delenv("STUDYTRACK_DATABASE_URL", raising=False)
        static_config._validated = False

        with pytest.raises(ValueError):
            static_config.validate()


# ============================================================================
# EXCEPTIONS
# ============================================================================


@pytest.mark.unit
class TestExceptions:
    def test_store_unavailable_is_retryable(self):
        exc = StoreUnavailableError("get_record", "progress", ConnectionError("reset"))

        assert is_transient_error(exc)
        assert exc.error_code == "STORE_UNAVAILABLE"
        assert exc.to_dict()["details"]["error_type"] == "ConnectionError"
        assert should_alert(exc)

    def test_version_conflict_metadata(self):
        exc = VersionConflictError("gamification", {"participant_id": "p1"}, 2, 3)

        assert exc.severity is ErrorSeverity.WARNING
        assert exc.expected_version == 2
        assert "expected 2, found 3" in str(exc)
        assert not should_alert(exc)

    def test_domain_exceptions(self):
        assert InvalidIndexError(5, 3).error_code == "INVALID_INDEX"
        assert NotFoundError("VideoRun", "r1").error_code == "VIDEORUN_NOT_FOUND"
        assert get_error_severity(ValidationError("x", "bad")) is ErrorSeverity.INFO
        assert not is_transient_error(ValidationError("x", "bad"))

    def test_unstructured_exceptions(self):
        assert get_error_severity(RuntimeError("boom")) is ErrorSeverity.ERROR
        assert not is_transient_error(RuntimeError("boom"))

    def test_log_error_level_follows_severity(self, test_logger, caplog):
        service = BaseService(ConfigManager, test_logger)

        with caplog.at_level(logging.DEBUG, logger="studytrack.tests"):
            service.log_error("award_xp", VersionConflictError("gamification", {}, 1, 2))
            service.log_error("save_quiz_result", StoreUnavailableError("insert_record", "quiz_result"))

        logged = [(r.levelno, r.severity, r.retryable) for r in caplog.records]
        assert logged == [
            (logging.WARNING, "warning", True),
            (logging.ERROR, "error", True),
        ]


# ============================================================================
# RETRY POLICY
# ============================================================================


@pytest.mark.unit
class TestConflictRetryPolicy:
    async def test_retries_until_success(self, retry_policy):
        attempts = []

        async def operation():
            attempts.append(1)
            if len(attempts) < 3:
                raise VersionConflictError("progress", {}, 1, 2)
            return "done"

        result = await retry_policy.execute(operation, operation_name="test.retry")

        assert result == "done"
        assert len(attempts) == 3

    async def test_gives_up_after_max_attempts(self):
        policy = ConflictRetryPolicy(ConflictRetryConfig(2, 0, 0, 0))
        attempts = []

        async def operation():
            attempts.append(1)
            raise VersionConflictError("progress", {}, 1, 2)

        with pytest.raises(VersionConflictError):
            await policy.execute(operation, operation_name="test.give_up")
        assert len(attempts) == 2

    async def test_other_errors_are_not_retried(self, retry_policy):
        attempts = []

        async def operation():
            attempts.append(1)
            raise StoreUnavailableError("get_record")

        with pytest.raises(StoreUnavailableError):
            await retry_policy.execute(operation, operation_name="test.no_retry")
        assert len(attempts) == 1

    async def test_sleeps_between_attempts(self, mocker):
        sleep = mocker.patch(
            "studytrack.core.store.retry_policy.asyncio.sleep", new_callable=mocker.AsyncMock
        )
        policy = ConflictRetryPolicy(ConflictRetryConfig(3, 10, 50, 0))
        operation = mocker.AsyncMock(
            side_effect=[VersionConflictError("progress", {}, 1, 2), VersionConflictError("progress", {}, 1, 2), "ok"]
        )

        result = await policy.execute(operation, operation_name="test.sleep")

        assert result == "ok"
        assert [call.args[0] for call in sleep.await_args_list] == [0.01, 0.02]

    def test_backoff_is_capped(self):
        policy = ConflictRetryPolicy(ConflictRetryConfig(5, 10, 50, 0))

        assert [policy._compute_backoff_ms(n) for n in (1, 2, 3, 4)] == [10, 20, 40, 50]

    def test_attempts_from_config(self):
        ConfigManager.set("store.conflict_retry_attempts", 2)

        assert ConflictRetryPolicy.from_config().max_attempts == 2


# ============================================================================
# IN-MEMORY STORE
# ============================================================================


@pytest.mark.unit
class TestInMemoryStore:
    async def test_upsert_bumps_version_and_merges(self, store):
        key = {"participant_id": "p1"}
        first = await store.upsert_record(RecordKind.GAMIFICATION, key, {"xp": 1, "hearts": 20})
        second = await store.upsert_record(RecordKind.GAMIFICATION, key, {"xp": 2})

        assert first.version == 1
        assert second.version == 2
        assert second.fields["hearts"] == 20
        assert second.id == first.id

    async def test_expected_version_zero_means_absent(self, store):
        key = {"participant_id": "p1"}
        await store.upsert_record(RecordKind.PROGRESS, key, {}, expected_version=0)

        with pytest.raises(VersionConflictError) as exc_info:
            await store.upsert_record(RecordKind.PROGRESS, key, {}, expected_version=0)

        assert exc_info.value.actual_version == 1

    async def test_missing_key_field_rejected(self, store):
        with pytest.raises(ValueError):
            await store.upsert_record(RecordKind.VIDEO_STATE, {"participant_id": "p1"}, {})

    async def test_returned_records_are_copies(self, store):
        key = {"participant_id": "p1"}
        await store.upsert_record(RecordKind.PROGRESS, key, {"completed_units": ["u0"]})

        record = await store.get_record(RecordKind.PROGRESS, key)
        record.fields["completed_units"].append("u1")

        fresh = await store.get_record(RecordKind.PROGRESS, key)
        assert fresh.fields["completed_units"] == ["u0"]

    async def test_update_missing_record(self, store):
        assert await store.update_record(RecordKind.SESSION, {"id": "nope"}, {"ended_at": 1}) is False

    async def test_fail_next_targets_operation(self, store):
        store.fail_next("insert_record")

        assert await store.get_record(RecordKind.SESSION, {"id": "x"}) is None
        with pytest.raises(StoreUnavailableError):
            await store.insert_record(RecordKind.SESSION, {"participant_id": "p1"})
        assert await store.insert_record(RecordKind.SESSION, {"participant_id": "p1"})

    async def test_query_filters_on_equality(self, store):
        await store.insert_record(RecordKind.EVENT, {"participant_id": "p1", "event_type": "a"})
        await store.insert_record(RecordKind.EVENT, {"participant_id": "p2", "event_type": "a"})

        rows = await store.query_records(RecordKind.EVENT, {"participant_id": "p1"})

        assert len(rows) == 1
        assert len(await store.query_records(RecordKind.EVENT)) == 2


# ============================================================================
# BACKGROUND DISPATCHER
# ============================================================================


@pytest.mark.unit
class TestBackgroundDispatcher:
    async def test_failures_are_counted_not_raised(self):
        dispatcher = BackgroundDispatcher()

        async def explode():
            raise RuntimeError("boom")

        task = dispatcher.dispatch(explode(), name="explode")
        await dispatcher.drain()

        assert task.result() is None
        assert dispatcher.failures == 1
        assert dispatcher.pending == 0

    async def test_failure_log_carries_severity(self, caplog):
        dispatcher = BackgroundDispatcher()

        async def unavailable():
            raise StoreUnavailableError("insert_record", "event")

        with caplog.at_level(logging.WARNING, logger="studytrack.core.background"):
            dispatcher.dispatch(unavailable(), name="event-login")
            await dispatcher.drain()

        record = next(r for r in caplog.records if r.getMessage() == "Background write failed")
        assert record.severity == "error"
        assert record.retryable is True

    def test_dispatch_without_loop_drops(self):
        dispatcher = BackgroundDispatcher()

        async def noop():
            return None

        assert dispatcher.dispatch(noop(), name="noop") is None

    async def test_drain_timeout_cancels(self):
        dispatcher = BackgroundDispatcher()
        task = dispatcher.dispatch(asyncio.sleep(10), name="slow")

        await dispatcher.drain(timeout=0.01)
        await asyncio.gather(task, return_exceptions=True)

        assert task.cancelled()


# ============================================================================
# LOGGING
# ============================================================================


@pytest.mark.unit
class TestLogging:
    def test_log_context_scopes_fields(self):
        with LogContext(participant_id="p1", operation="outer"):
            with LogContext(session_id="s1"):
                inner = get_log_context()
            outer = get_log_context()

        assert inner["participant_id"] == "p1"
        assert inner["session_id"] == "s1"
        assert inner["correlation_id"] == outer["correlation_id"]
        assert "session_id" not in outer
        assert get_log_context() == {}

    def test_set_log_context_ignores_none(self):
        set_log_context(participant_id="p9", session_id=None)

        assert get_log_context() == {"participant_id": "p9"}

    def test_context_filter_and_json_formatter(self):
        record = logging.LogRecord("studytrack.test", logging.INFO, __file__, 1, "hello %s", ("p1",), None)
        record.xp = 55

        with LogContext(participant_id="p1", operation="award_xp"):
            ContextFilter().filter(record)
        payload = json.loads(JSONFormatter().format(record))

        assert payload["message"] == "hello p1"
        assert payload["participant_id"] == "p1"
        assert payload["operation"] == "award_xp"
        assert payload["extra"] == {"xp": 55}
        assert "session_id" not in payload


    def test_colored_formatter_restores_levelname(self):
        record = logging.LogRecord("studytrack.test", logging.WARNING, __file__, 1, "careful", None, None)

        output = ColoredFormatter(fmt="%(levelname)s %(message)s").format(record)

        assert output == "\033[33mWARNING\033[0m careful"
        assert record.levelname == "WARNING"

    def test_full_queue_drops_and_counts(self):
        handler = StudyQueueHandler(queue.Queue(maxsize=1))
        record = logging.LogRecord("studytrack.test", logging.INFO, __file__, 1, "hi", None, None)
        before = get_logging_health().records_dropped

        handler.enqueue(record)
        handler.enqueue(record)

        assert get_logging_health().records_dropped == before + 1


@pytest.mark.unit
class TestLoggingPipeline:
    def test_setup_emits_json_with_context(self, logging_pipeline, monkeypatch, tmp_path, capsys):
        monkeypatch.setattr(Config, "LOG_JSON", True)
        monkeypatch.setattr(Config, "LOG_TO_FILE", True)
        monkeypatch.setattr(Config, "LOGS_DIR", tmp_path)

        setup_logging()
        with LogContext(participant_id="p1", operation="award_xp"):
            get_logger("studytrack.tests.pipeline").warning("XP awarded", extra={"xp": 55})
        health = get_logging_health()
        shutdown_logging()

        console = [json.loads(line) for line in capsys.readouterr().out.splitlines() if line.strip()]
        logged = next(entry for entry in console if entry["message"] == "XP awarded")
        file_lines = (tmp_path / "studytrack.json.log").read_text(encoding="utf-8").splitlines()
        assert health.initialized is True
        assert health.records_enqueued >= 1
        assert logged["participant_id"] == "p1"
        assert logged["operation"] == "award_xp"
        assert logged["extra"] == {"xp": 55}
        assert any(json.loads(line)["message"] == "XP awarded" for line in file_lines)
        assert get_logging_health().initialized is False

    def test_setup_is_idempotent(self, logging_pipeline):
        setup_logging()
        setup_logging()

        installed = [h for h in logging.getLogger().handlers if isinstance(h, StudyQueueHandler)]
        assert len(installed) == 1


# ============================================================================
# SERVICE CONTAINER
# ============================================================================


@pytest.mark.unit
class TestServiceContainer:
    def test_accessors_require_initialize(self, store):
        services = ServiceContainer(store)

        with pytest.raises(RuntimeError):
            services.progress

    def test_services_share_collaborators(self, container, store, clock):
        assert container.progress.store is store
        assert container.gamification.retry_policy is container.progress.retry_policy
        assert container.sessions.dispatcher is container.events.dispatcher
        assert container.video_states.now() == clock()
        assert set(container.get_init_times()) == {
            "progress",
            "gamification",
            "sessions",
            "events",
            "video_runs",
            "quiz_results",
            "video_states",
        }
