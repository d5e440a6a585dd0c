"""Activity and catalog stores."""
from perspective.store.base import ActivityHistoryStore, ChallengeCatalog

__all__ = ["ActivityHistoryStore", "ChallengeCatalog"]
