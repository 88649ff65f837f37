# Export all models for easy importing
from hellogt.models.base import DocumentModel
from hellogt.models.swipe import Match, MatchOutcome, SwipeDecision, SwipeType, UserSwipeState, match_id_for
from hellogt.models.notification import MatchNotification
from hellogt.models.attendance import EventAttendance
from hellogt.models.profile import Profile

__all__ = [
    "DocumentModel",
    "Match",
    "MatchOutcome",
    "SwipeDecision",
    "SwipeType",
    "UserSwipeState",
    "match_id_for",
    "MatchNotification",
    "EventAttendance",
    "Profile",
]
