import logging
from typing import Dict, List, Optional, Set

from pydantic import ValidationError

from hellogt.core.errors import OptimisticWriteFailed, ProfileResolutionFailed, StoreUnavailable, UnknownNotification
from hellogt.core.mutations import OptimisticUpdate
from hellogt.db.redis import LocalStateService
from hellogt.models import Match, MatchNotification
from hellogt.services.profiles import ProfileDirectory


logger = logging.getLogger(__name__)


class NotificationGate:
    """
    Match notifications for one signed-in viewer, persisted on the device.

    A match only becomes a visible friend relationship once the viewer has
    acknowledged (opened) its notification. Acknowledgement is one-way.
    """

    def __init__(self, viewer_user_id: str, profiles: ProfileDirectory, local_state: LocalStateService):
        self.viewer_user_id = viewer_user_id
        self.profiles = profiles
        self.local_state = local_state
        self._notifications: Dict[str, MatchNotification] = {}

    @property
    def storage_key(self) -> str:
        return self.local_state.notifications_key(self.viewer_user_id)

    # ==================== Queries ====================

    @property
    def notifications(self) -> List[MatchNotification]:
        return sorted(self._notifications.values(), key=lambda n: n.created_at, reverse=True)

    @property
    def unread_notifications(self) -> List[MatchNotification]:
        return [n for n in self.notifications if not n.is_read]

    @property
    def unread_count(self) -> int:
        return len(self.unread_notifications)

    @property
    def acknowledged_match_ids(self) -> Set[str]:
        """Match ids the viewer has opened; only these appear as friends."""
        return {n.match_id for n in self._notifications.values() if n.is_read}

    def get(self, notification_id: str) -> Optional[MatchNotification]:
        return self._notifications.get(notification_id)

    def notification_for(self, match_id: str, viewer_user_id: Optional[str] = None) -> Optional[MatchNotification]:
        viewer = viewer_user_id or self.viewer_user_id
        return self._notifications.get(MatchNotification.id_for(match_id, viewer))

    def is_friend_visible(self, match_id: str, viewer_user_id: Optional[str] = None) -> bool:
        notification = self.notification_for(match_id, viewer_user_id)
        return notification is not None and notification.is_read

    # ==================== Transitions ====================

    async def on_match_observed(self, match: Match, viewer_user_id: Optional[str] = None) -> Optional[MatchNotification]:
        """
        Ensure the viewer has a notification for the match.
        A missing counterpart profile defers creation to the next time the
        match is observed; nothing is raised.
        """
        viewer = viewer_user_id or self.viewer_user_id
        existing = self.notification_for(match.id, viewer)
        if existing is not None:
            return existing

        counterpart_id = match.counterpart(viewer)
        try:
            profile = await self.profiles.resolve(counterpart_id)
        except ProfileResolutionFailed as e:
            logger.warning("Deferring notification for match %s: %s", match.id, e)
            return None

        # Another observation may have created it while the lookup was pending
        existing = self.notification_for(match.id, viewer)
        if existing is not None:
            return existing

        notification = MatchNotification.for_match(match, viewer, profile.name)
        self._notifications[notification.id] = notification
        logger.info("Added match notification for %s (match %s)", profile.name, match.id)

        try:
            await self._save()
        except StoreUnavailable as e:
            # Kept in memory; persisted with the next successful save
            logger.warning("Failed to persist notification %s: %s", notification.id, e)
        return notification

    async def acknowledge(self, notification: MatchNotification) -> MatchNotification:
        """
        Mark the notification read and persist. Re-acknowledging is a no-op.
        If the save fails, OptimisticWriteFailed carries the update that
        makes the notification unread again.
        """
        current = self._notifications.get(notification.id)
        if current is None:
            raise UnknownNotification(notification.id)
        if current.is_read:
            return current

        acknowledged = current.model_copy(update={"is_read": True})

        def _apply():
            self._notifications[current.id] = acknowledged

        def _revert():
            self._notifications[current.id] = current

        update = OptimisticUpdate(f"acknowledge {current.id}", apply=_apply, revert=_revert).apply()
        try:
            await self._save()
        except StoreUnavailable as e:
            logger.warning("Acknowledgement of %s not saved: %s", current.id, e)
            raise OptimisticWriteFailed(update, e) from e

        logger.info("Marked notification as read: %s", acknowledged.counterpart_display_name)
        return acknowledged

    async def acknowledge_by_id(self, notification_id: str) -> MatchNotification:
        notification = self._notifications.get(notification_id)
        if notification is None:
            raise UnknownNotification(notification_id)
        return await self.acknowledge(notification)

    async def clear_all(self) -> None:
        self._notifications.clear()
        await self.local_state.delete(self.storage_key)
        logger.info("Cleared all notifications for %s", self.viewer_user_id)

    # ==================== Persistence ====================

    async def load(self) -> List[MatchNotification]:
        """Load this viewer's notifications from device storage."""
        try:
            raw = await self.local_state.get_json(self.storage_key)
        except StoreUnavailable as e:
            logger.warning("Failed to load notifications: %s", e)
            return self.notifications

        loaded: Dict[str, MatchNotification] = {}
        for item in raw or []:
            try:
                notification = MatchNotification.model_validate(item)
            except ValidationError as e:
                logger.warning("Dropping unreadable stored notification: %s", e)
                continue
            loaded[notification.id] = notification
        self._notifications = loaded
        logger.info("Loaded %d notifications (%d unread)", len(loaded), self.unread_count)
        return self.notifications

    async def _save(self) -> None:
        await self.local_state.put_json(self.storage_key, [n.to_local() for n in self._notifications.values()])
