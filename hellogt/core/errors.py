"""
Error taxonomy for the matching and attendance core.
Read paths catch StoreUnavailable locally; write paths raise to the caller.
"""

from typing import Any, Optional


class HelloGTError(Exception):
    """Base class for all core errors."""


class StoreUnavailable(HelloGTError):
    """Network/backend failure on a document store or local state operation."""


class OptimisticWriteFailed(StoreUnavailable):
    """
    A remote write failed after the local cache was already updated.
    The caller undoes the local change with `exc.update.revert()`.
    """

    def __init__(self, update: Any, cause: Optional[BaseException] = None):
        super().__init__(f"Write failed, local change pending revert: {cause}")
        self.update = update
        self.cause = cause


class AlreadyDecided(HelloGTError):
    def __init__(self, actor_user_id: str, target_user_id: str):
        super().__init__(f"{actor_user_id} already swiped on {target_user_id}")
        self.actor_user_id = actor_user_id
        self.target_user_id = target_user_id


class InvalidSwipe(HelloGTError):
    """Swipe that can never be valid, e.g. on yourself."""


class MatchCheckFailed(HelloGTError):
    """
    The swipe was recorded but checking for or writing the match failed.
    Retrying the whole swipe-right operation is safe.
    """


class ProfileResolutionFailed(HelloGTError):
    def __init__(self, user_id: str, reason: str = "profile not found"):
        super().__init__(f"Could not resolve profile {user_id}: {reason}")
        self.user_id = user_id


class AuthenticationRequired(HelloGTError):
    """Operation attempted with no signed-in user."""


class UnknownNotification(HelloGTError):
    def __init__(self, notification_id: str):
        super().__init__(f"Notification {notification_id} not found")
        self.notification_id = notification_id


class DecodeError(HelloGTError):
    """A store document is missing required fields or has the wrong types."""

    def __init__(self, collection: str, document_id: str, detail: str):
        super().__init__(f"Cannot decode {collection}/{document_id}: {detail}")
        self.collection = collection
        self.document_id = document_id
        self.detail = detail
