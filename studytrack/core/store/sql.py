"""
SQL-backed ProgressStore over SQLAlchemy's async ORM.

Purpose
-------
Map the record-kind boundary onto one table per kind (see
`studytrack.database.models`) using `DatabaseService` transactions.

Design Notes
------------
- Conditional writes compare-and-swap on the `version` column with a single
  `UPDATE ... WHERE version = :expected` and check the affected row count.
- A unique-key collision while creating a record under `expected_version=0`
  means another writer created it first: reported as a version conflict.
- `OperationalError`, `DBAPIError`, `OSError` and an uninitialized
  `DatabaseService` are reported as `StoreUnavailableError`.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict, List, Mapping, Optional, Type

from sqlalchemy import inspect, select, update
from sqlalchemy.exc import DBAPIError, IntegrityError, OperationalError

from studytrack.core.database.base import Base, new_record_id
from studytrack.core.database.service import DatabaseNotInitializedError, DatabaseService
from studytrack.core.exceptions import StoreUnavailableError, VersionConflictError
from studytrack.core.logging.logger import get_logger
from studytrack.core.store.base import ProgressStore, Record, RecordKind, validate_key
from studytrack.database.models import (
    ParticipantGamification,
    ParticipantProgress,
    QuizResult,
    StudyEvent,
    StudySession,
    VideoRun,
    VideoState,
)

logger = get_logger(__name__)

KIND_MODELS: Dict[RecordKind, Type[Base]] = {
    RecordKind.PROGRESS: ParticipantProgress,
    RecordKind.GAMIFICATION: ParticipantGamification,
    RecordKind.SESSION: StudySession,
    RecordKind.VIDEO_RUN: VideoRun,
    RecordKind.EVENT: StudyEvent,
    RecordKind.QUIZ_RESULT: QuizResult,
    RecordKind.VIDEO_STATE: VideoState,
}

# Maintained by the database, never exposed as record fields.
_HIDDEN_COLUMNS = frozenset({"version", "created_at", "updated_at"})


class SqlProgressStore(ProgressStore):
    """
    ProgressStore backed by `DatabaseService`.

    The service must be initialized (and the schema present) before use.
    """

    def __init__(self, database: Type[DatabaseService] = DatabaseService) -> None:
        self._db = database

    # ------------------------------------------------------------------
    # Mapping helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _model(kind: RecordKind) -> Type[Base]:
        return KIND_MODELS[kind]

    @staticmethod
    def _columns(model: Type[Base]) -> List[str]:
        return [attr.key for attr in inspect(model).column_attrs]

    def _to_record(self, row: Base) -> Record:
        fields = {
            name: getattr(row, name)
            for name in self._columns(type(row))
            if name not in _HIDDEN_COLUMNS
        }
        return Record(fields=fields, version=row.version)

    def _check_fields(self, model: Type[Base], fields: Mapping[str, Any]) -> Dict[str, Any]:
        known = set(self._columns(model)) - _HIDDEN_COLUMNS
        unknown = set(fields) - known
        if unknown:
            raise ValueError(f"{model.__tablename__} has no columns {sorted(unknown)}")
        return dict(fields)

    def _where(self, model: Type[Base], criteria: Mapping[str, Any]) -> List[Any]:
        self._check_fields(model, criteria)
        clauses = []
        for name, value in criteria.items():
            column = getattr(model, name)
            clauses.append(column.is_(None) if value is None else column == value)
        return clauses

    @asynccontextmanager
    async def _guard(self, operation: str, kind: RecordKind) -> AsyncIterator[None]:
        try:
            yield
        except (VersionConflictError, ValueError):
            raise
        except (OperationalError, DBAPIError, OSError, DatabaseNotInitializedError) as exc:
            logger.warning(
                "Store operation failed",
                extra={
                    "operation": operation,
                    "kind": kind.value,
                    "error": str(exc),
                    "error_type": type(exc).__name__,
                },
            )
            raise StoreUnavailableError(operation, kind.value, exc) from exc

    # ------------------------------------------------------------------
    # ProgressStore
    # ------------------------------------------------------------------

    async def get_record(
        self, kind: RecordKind, key: Mapping[str, Any]
    ) -> Optional[Record]:
        model = self._model(kind)
        async with self._guard("get_record", kind):
            async with self._db.get_session() as session:
                result = await session.execute(select(model).where(*self._where(model, key)))
                row = result.scalar_one_or_none()
                return self._to_record(row) if row is not None else None

    async def upsert_record(
        self,
        kind: RecordKind,
        key: Mapping[str, Any],
        fields: Mapping[str, Any],
        expected_version: Optional[int] = None,
    ) -> Record:
        validate_key(kind, key)
        model = self._model(kind)
        values = self._check_fields(model, {**fields, **key})
        values.pop("id", None)

        async with self._guard("upsert_record", kind):
            try:
                async with self._db.get_transaction() as session:
                    result = await session.execute(
                        select(model).where(*self._where(model, key))
                    )
                    row = result.scalar_one_or_none()
                    actual_version = row.version if row is not None else 0

                    if expected_version is not None and expected_version != actual_version:
                        raise VersionConflictError(
                            kind.value, dict(key), expected_version, actual_version
                        )

                    if row is None:
                        row = model(id=new_record_id(), version=1, **values)
                        session.add(row)
                        await session.flush()
                        await session.refresh(row)
                        return self._to_record(row)

                    outcome = await session.execute(
                        update(model)
                        .where(model.id == row.id, model.version == actual_version)
                        .values(**values, version=actual_version + 1)
                        .execution_options(synchronize_session=False)
                    )
                    if outcome.rowcount != 1:
                        raise VersionConflictError(
                            kind.value, dict(key), actual_version, actual_version + 1
                        )

                    await session.refresh(row)
                    return self._to_record(row)

            except IntegrityError as exc:
                if expected_version is None:
                    raise
                raise VersionConflictError(
                    kind.value, dict(key), expected_version, 1
                ) from exc

    async def insert_record(self, kind: RecordKind, fields: Mapping[str, Any]) -> str:
        model = self._model(kind)
        values = self._check_fields(model, fields)
        record_id = values.pop("id", None) or new_record_id()

        async with self._guard("insert_record", kind):
            async with self._db.get_transaction() as session:
                session.add(model(id=record_id, version=1, **values))
        return record_id

    async def query_records(
        self, kind: RecordKind, filter: Optional[Mapping[str, Any]] = None
    ) -> List[Record]:
        model = self._model(kind)
        async with self._guard("query_records", kind):
            async with self._db.get_session() as session:
                result = await session.execute(
                    select(model).where(*self._where(model, filter or {}))
                )
                return [self._to_record(row) for row in result.scalars().all()]

    async def update_record(
        self, kind: RecordKind, key: Mapping[str, Any], fields: Mapping[str, Any]
    ) -> bool:
        model = self._model(kind)
        values = self._check_fields(model, fields)

        async with self._guard("update_record", kind):
            async with self._db.get_transaction() as session:
                outcome = await session.execute(
                    update(model)
                    .where(*self._where(model, key))
                    .values(**values, version=model.version + 1)
                    .execution_options(synchronize_session=False)
                )
                return outcome.rowcount > 0

    async def close(self) -> None:
        await self._db.shutdown()
