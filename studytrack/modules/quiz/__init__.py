from .result_service import QuizResult, QuizResultService
from .video_state_service import VideoState, VideoStateService

__all__ = ["QuizResult", "QuizResultService", "VideoState", "VideoStateService"]
