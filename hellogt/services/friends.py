import logging
from typing import List, Set

from hellogt.core.errors import ProfileResolutionFailed
from hellogt.models import Match, Profile
from hellogt.services.match_feed import MatchSubscription
from hellogt.services.notifications import NotificationGate
from hellogt.services.profiles import ProfileDirectory


logger = logging.getLogger(__name__)


class FriendGraph:
    """
    Derived friend set of one user: counterparts of matches whose
    notification that user has acknowledged. Nothing is stored.
    """

    def __init__(self, user_id: str, matches: MatchSubscription, gate: NotificationGate):
        self.user_id = user_id
        self.matches = matches
        self.gate = gate

    def friend_matches(self) -> List[Match]:
        return [
            match
            for match in self.matches.matches
            if match.involves(self.user_id) and self.gate.is_friend_visible(match.id, self.user_id)
        ]

    def friend_ids(self) -> Set[str]:
        return {match.counterpart(self.user_id) for match in self.friend_matches()}

    def is_friend(self, other_user_id: str) -> bool:
        return other_user_id in self.friend_ids()

    async def load_friend_profiles(self, profiles: ProfileDirectory) -> List[Profile]:
        """Profiles of acknowledged friends; unresolvable ones are skipped."""
        loaded = []
        for friend_id in sorted(self.friend_ids()):
            try:
                loaded.append(await profiles.resolve(friend_id))
            except ProfileResolutionFailed as e:
                logger.warning("No profile for friend %s: %s", friend_id, e)
        return loaded


def search_profiles(profiles: List[Profile], query: str) -> List[Profile]:
    """Case-insensitive match on name or username; empty query returns all."""
    if not query:
        return list(profiles)
    needle = query.lower()
    return [p for p in profiles if needle in p.name.lower() or needle in p.username.lower()]
