from .service import ProgressRecord, ProgressService
from .unlock_gate import highest_unlocked_index, is_unlocked

__all__ = ["ProgressRecord", "ProgressService", "highest_unlocked_index", "is_unlocked"]
