import logging
from typing import Dict, Iterable, List, Optional, Set

from hellogt.config import settings
from hellogt.core.errors import DecodeError, OptimisticWriteFailed, StoreUnavailable
from hellogt.core.mutations import OptimisticUpdate
from hellogt.db.store import (
    ArrayRemove,
    ArrayUnion,
    ChangeType,
    DOCUMENT_ID,
    DocumentChange,
    DocumentStore,
    SERVER_TIMESTAMP,
    Subscription,
    is_in,
)
from hellogt.models import EventAttendance


logger = logging.getLogger(__name__)


class AttendanceTracker:
    """
    Which users attend which events.

    Join/leave are set union/difference on the event's document, so they
    are idempotent and concurrent joins commute. The local map is updated
    before the write; a failed write raises OptimisticWriteFailed and the
    caller reverts.
    """

    def __init__(self, store: DocumentStore):
        self.store = store
        self._attendance: Dict[str, Set[str]] = {}
        self._feed: Optional[Subscription] = None
        self.last_error: Optional[str] = None

    # ==================== Reads ====================

    def attendees(self, event_id: str) -> Set[str]:
        return set(self._attendance.get(event_id, set()))

    def is_attending(self, event_id: str, user_id: str) -> bool:
        return user_id in self._attendance.get(event_id, set())

    def attendee_count(self, event_id: str) -> int:
        return len(self._attendance.get(event_id, set()))

    def events_for_user(self, user_id: str) -> Set[str]:
        return {event_id for event_id, members in self._attendance.items() if user_id in members}

    def friends_attending(self, event_id: str, friend_ids: Iterable[str]) -> Set[str]:
        """Attendees of the event who are in the caller's friend set."""
        return self.attendees(event_id) & set(friend_ids)

    # ==================== Join / Leave ====================

    async def join(self, event_id: str, user_id: str, event_title: Optional[str] = None) -> OptimisticUpdate:
        update = self._membership_update(event_id, user_id, joining=True).apply()
        fields = {
            "attendeeIds": ArrayUnion([user_id]),
            "eventId": event_id,
            "updatedAt": SERVER_TIMESTAMP,
        }
        if event_title:
            fields["eventTitle"] = event_title
        await self._write(event_id, fields, update)
        logger.info("Added attendance for user %s to event %s", user_id, event_id)
        return update

    async def leave(self, event_id: str, user_id: str) -> OptimisticUpdate:
        """Leaving an event the user does not attend writes nothing."""
        if not await self._is_member(event_id, user_id):
            logger.info("User %s is not attending event %s; nothing to leave", user_id, event_id)
            return OptimisticUpdate(f"leave {event_id} {user_id} (no-op)", apply=lambda: None, revert=lambda: None)

        update = self._membership_update(event_id, user_id, joining=False).apply()
        await self._write(
            event_id,
            {"attendeeIds": ArrayRemove([user_id]), "updatedAt": SERVER_TIMESTAMP},
            update,
        )
        logger.info("Removed attendance for user %s from event %s", user_id, event_id)
        return update

    async def toggle(self, event_id: str, user_id: str, event_title: Optional[str] = None) -> OptimisticUpdate:
        if self.is_attending(event_id, user_id):
            return await self.leave(event_id, user_id)
        return await self.join(event_id, user_id, event_title)

    async def _is_member(self, event_id: str, user_id: str) -> bool:
        if self.is_attending(event_id, user_id):
            return True
        # The cache can miss a join made from another device before the listener caught up
        document = await self.store.get(settings.EVENT_ATTENDANCE_COLLECTION, event_id)
        return document is not None and user_id in document.data.get("attendeeIds", [])

    def _membership_update(self, event_id: str, user_id: str, joining: bool) -> OptimisticUpdate:
        # Whether the user was a member before, captured at apply time
        before = {"member": False}

        def _apply():
            members = self._attendance.setdefault(event_id, set())
            before["member"] = user_id in members
            if joining:
                members.add(user_id)
            else:
                members.discard(user_id)

        def _revert():
            members = self._attendance.setdefault(event_id, set())
            if before["member"]:
                members.add(user_id)
            else:
                members.discard(user_id)

        action = "join" if joining else "leave"
        return OptimisticUpdate(f"{action} {event_id} {user_id}", apply=_apply, revert=_revert)

    async def _write(self, event_id: str, fields: dict, update: OptimisticUpdate) -> None:
        try:
            await self.store.upsert(settings.EVENT_ATTENDANCE_COLLECTION, event_id, fields, merge=True)
        except StoreUnavailable as e:
            logger.warning("Attendance write for %s failed: %s", event_id, e)
            raise OptimisticWriteFailed(update, e) from e

    # ==================== Loading / Live Feed ====================

    async def load_attendance(self, event_ids: List[str]) -> Dict[str, Set[str]]:
        """Fetch attendance for specific events and merge into the cache."""
        if not event_ids:
            return {}
        try:
            documents = await self.store.query(settings.EVENT_ATTENDANCE_COLLECTION, [is_in(DOCUMENT_ID, event_ids)])
        except StoreUnavailable as e:
            logger.warning("Failed to load attendance: %s", e)
            self.last_error = "Failed to load attendance data"
            return {event_id: self.attendees(event_id) for event_id in event_ids}

        loaded: Dict[str, Set[str]] = {}
        for document in documents:
            try:
                attendance = EventAttendance.from_document(document.id, document.data)
            except DecodeError as e:
                logger.warning("Skipping attendance document: %s", e)
                continue
            loaded[attendance.event_id] = set(attendance.attendee_ids)
        self._attendance.update(loaded)
        self.last_error = None
        logger.info("Loaded attendance for %d events", len(loaded))
        return loaded

    def start_listening(self) -> None:
        """Keep the cache in sync with every attendance document."""
        self.stop_listening()
        self._feed = self.store.subscribe(settings.EVENT_ATTENDANCE_COLLECTION, [], self._apply_changes)
        logger.info("Attendance listener started")

    def stop_listening(self) -> None:
        if self._feed is not None:
            self._feed.cancel()
            self._feed = None
            logger.info("Attendance listener stopped")

    @property
    def is_listening(self) -> bool:
        return self._feed is not None

    def _apply_changes(self, changes: List[DocumentChange]) -> None:
        for change in changes:
            if change.type is ChangeType.REMOVED:
                self._attendance.pop(change.id, None)
                continue
            try:
                attendance = EventAttendance.from_document(change.id, change.data)
            except DecodeError as e:
                logger.warning("Skipping attendance change: %s", e)
                continue
            self._attendance[attendance.event_id] = set(attendance.attendee_ids)
        logger.debug("Attendance cache now covers %d events", len(self._attendance))


def attendance_summary(friends_count: int, total_count: int) -> str:
    """Short line for event cards."""
    if friends_count == 0:
        return f"{total_count} attending"
    if friends_count == 1:
        return "1 friend attending"
    return f"{friends_count} friends attending"


def detailed_attendance_summary(friends_count: int, total_count: int) -> str:
    """Longer line for the event detail screen."""
    friends_text = "friend is" if friends_count == 1 else "friends are"
    total_text = "person" if total_count == 1 else "people"
    if friends_count == 0:
        return f"{total_count} {total_text} attending"
    return f"{friends_count} {friends_text} attending • {total_count} total"
