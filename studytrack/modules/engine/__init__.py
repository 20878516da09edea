from .engine import EngagementEngine, LoginResult, QuizOutcome

__all__ = ["EngagementEngine", "LoginResult", "QuizOutcome"]
