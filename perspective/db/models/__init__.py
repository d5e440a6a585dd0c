# SQLAlchemy models
from .base import Base, JSONType
from .challenges import (
    Challenge,
    ChallengeSubmission,
    DailyChallengeSelection,
)
from .content import (
    NewsArticle,
    UserReadingActivity,
)
from .echo import EchoScoreHistory
from .users import (
    User,
    UserSession,
)

__all__ = [
    "Base",
    "JSONType",
    "Challenge",
    "ChallengeSubmission",
    "DailyChallengeSelection",
    "NewsArticle",
    "UserReadingActivity",
    "EchoScoreHistory",
    "User",
    "UserSession",
]
