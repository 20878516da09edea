from .ledger import GamificationLedger, GamificationSnapshot

__all__ = ["GamificationLedger", "GamificationSnapshot"]
