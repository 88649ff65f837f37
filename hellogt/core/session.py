"""
Session-scoped wiring of the matching and attendance managers.
One SessionContext per signed-in user, built at sign-in and closed at sign-out.
"""

import asyncio
import logging
from typing import Dict, List, Optional, Set

from hellogt.core.errors import AuthenticationRequired, OptimisticWriteFailed, StoreUnavailable
from hellogt.db.redis import LocalStateService
from hellogt.db.store import DocumentStore
from hellogt.models import Match, MatchNotification, MatchOutcome, Profile, SwipeDecision, SwipeType
from hellogt.services.attendance import AttendanceTracker
from hellogt.services.friends import FriendGraph
from hellogt.services.match_feed import MatchSubscription
from hellogt.services.matching import MatchDetector
from hellogt.services.notifications import NotificationGate
from hellogt.services.profiles import ProfileDirectory
from hellogt.services.saved_profiles import SavedProfiles
from hellogt.services.swipes import SwipeDecisionStore


logger = logging.getLogger(__name__)


class SessionContext:
    def __init__(self, user_id: str, store: DocumentStore, local_state: LocalStateService):
        if not user_id:
            raise AuthenticationRequired("A signed-in user is required")
        self.user_id = user_id
        self.store = store
        self.profiles = ProfileDirectory(store)
        self.swipes = SwipeDecisionStore(store)
        self.matcher = MatchDetector(store, self.swipes)
        self.matches = MatchSubscription(store)
        self.notifications = NotificationGate(user_id, self.profiles, local_state)
        self.attendance = AttendanceTracker(store)
        self.friends = FriendGraph(user_id, self.matches, self.notifications)
        self.saved = SavedProfiles(user_id, local_state)
        self.started = False
        self.last_error: Optional[str] = None

    async def start(self) -> None:
        """Load cached state, backfill notifications and start the live feeds."""
        await self.swipes.load_state(self.user_id)
        await self.notifications.load()
        await self.saved.load()

        for match in await self.matches.load_initial_matches(self.user_id):
            await self.notifications.on_match_observed(match, self.user_id)

        self.matches.subscribe(self.user_id, self._on_match)
        self.attendance.start_listening()
        self.started = True
        logger.info("Session started for %s", self.user_id)

    async def close(self) -> None:
        await self.matches.unsubscribe()
        self.attendance.stop_listening()
        self.swipes.forget(self.user_id)
        self.started = False
        logger.info("Session closed for %s", self.user_id)

    async def _on_match(self, match: Match) -> None:
        # Matches created by the other participant arrive here first
        await self.notifications.on_match_observed(match, self.user_id)

    # ==================== Swiping ====================

    async def candidates(self) -> List[Profile]:
        """Profiles not yet decided on, excluding the user's own. Empty when the store is down."""
        try:
            profiles = await self.profiles.list_profiles()
        except StoreUnavailable as e:
            logger.warning("Failed to load candidate profiles: %s", e)
            self.last_error = "Couldn't load profiles. Pull to retry."
            return []
        self.last_error = None
        return [
            profile
            for profile in profiles
            if profile.id != self.user_id and self.swipes.should_show_profile(self.user_id, profile.id)
        ]

    async def swipe_right(self, target_user_id: str) -> MatchOutcome:
        try:
            outcome = await self.matcher.process_right_swipe(self.user_id, target_user_id)
        except OptimisticWriteFailed as e:
            e.update.revert()
            raise
        if outcome.is_match:
            self.matches.record(outcome.match)
            await self.notifications.on_match_observed(outcome.match, self.user_id)
        return outcome

    async def swipe_left(self, target_user_id: str) -> SwipeDecision:
        try:
            return await self.swipes.record_swipe(self.user_id, target_user_id, SwipeType.PASS)
        except OptimisticWriteFailed as e:
            e.update.revert()
            raise

    # ==================== Notifications / Friends ====================

    async def acknowledge(self, notification_id: str) -> MatchNotification:
        try:
            return await self.notifications.acknowledge_by_id(notification_id)
        except OptimisticWriteFailed as e:
            e.update.revert()
            raise

    def friend_ids(self) -> Set[str]:
        return self.friends.friend_ids()

    # ==================== Events ====================

    async def join_event(self, event_id: str, event_title: Optional[str] = None) -> None:
        try:
            await self.attendance.join(event_id, self.user_id, event_title)
        except OptimisticWriteFailed as e:
            e.update.revert()
            raise

    async def leave_event(self, event_id: str) -> None:
        try:
            await self.attendance.leave(event_id, self.user_id)
        except OptimisticWriteFailed as e:
            e.update.revert()
            raise

    def friends_attending(self, event_id: str) -> Set[str]:
        return self.attendance.friends_attending(event_id, self.friend_ids())

    def banner(self) -> Optional[str]:
        """First pending read-path error, shown inline by the client."""
        for message in (self.last_error, self.swipes.last_error, self.matches.last_error, self.attendance.last_error):
            if message:
                return message
        return None


class SessionRegistry:
    """
    Live sessions keyed by user id.
    A session is registered only once start() has finished; concurrent
    sign-ins for the same user share one pending start.
    """

    def __init__(self, store: DocumentStore, local_state: LocalStateService):
        self.store = store
        self.local_state = local_state
        self._sessions: Dict[str, SessionContext] = {}
        self._starting: Dict[str, asyncio.Task] = {}

    async def sign_in(self, user_id: str) -> SessionContext:
        session = self._sessions.get(user_id)
        if session is not None:
            return session

        pending = self._starting.get(user_id)
        if pending is None:
            pending = asyncio.ensure_future(self._start(user_id))
            self._starting[user_id] = pending
        # One caller going away must not cancel the start other callers await
        return await asyncio.shield(pending)

    async def _start(self, user_id: str) -> SessionContext:
        session = SessionContext(user_id, self.store, self.local_state)
        try:
            await session.start()
        except BaseException:
            logger.warning("Session start failed for %s", user_id)
            await session.close()
            raise
        else:
            self._sessions[user_id] = session
            return session
        finally:
            self._starting.pop(user_id, None)

    def get(self, user_id: str) -> SessionContext:
        session = self._sessions.get(user_id)
        if session is None:
            raise AuthenticationRequired("No active session; sign in first")
        return session

    async def sign_out(self, user_id: str) -> None:
        session = self._sessions.pop(user_id, None)
        if session is not None:
            await session.close()

    async def close_all(self) -> None:
        for pending in list(self._starting.values()):
            pending.cancel()
        for user_id in list(self._sessions):
            await self.sign_out(user_id)
