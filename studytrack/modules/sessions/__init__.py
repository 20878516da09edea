from .handle import SessionHandle
from .tracker import SessionTracker, duration_ms

__all__ = ["SessionHandle", "SessionTracker", "duration_ms"]
