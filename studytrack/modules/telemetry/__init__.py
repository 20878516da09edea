from .event_recorder import EventRecorder
from .video_run_service import VIDEO_RUN_METRICS, VideoRunService

__all__ = ["EventRecorder", "VIDEO_RUN_METRICS", "VideoRunService"]
