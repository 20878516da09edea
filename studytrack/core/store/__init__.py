"""
Record-store boundary for StudyTrack.

- **base.py**: `ProgressStore` contract, `Record`, `RecordKind`
- **memory.py**: in-process store with failure injection
- **sql.py**: SQLAlchemy async store over `DatabaseService`
- **retry_policy.py**: optimistic-version retry loop
"""

from studytrack.core.store.base import CONFLICT_KEYS, ProgressStore, Record, RecordKind
from studytrack.core.store.memory import InMemoryProgressStore
from studytrack.core.store.retry_policy import ConflictRetryConfig, ConflictRetryPolicy

__all__ = [
    "CONFLICT_KEYS",
    "ProgressStore",
    "Record",
    "RecordKind",
    "InMemoryProgressStore",
    "ConflictRetryConfig",
    "ConflictRetryPolicy",
]
