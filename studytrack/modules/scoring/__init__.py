from .formulas import is_perfect, score_accuracy, should_replace_best, stars, xp

__all__ = ["is_perfect", "score_accuracy", "should_replace_best", "stars", "xp"]
