from fastapi import APIRouter, Depends, HTTPException, status

from hellogt.api.v1.matching import to_candidate
from hellogt.core.dependencies import get_session
from hellogt.core.errors import StoreUnavailable, UnknownNotification
from hellogt.core.session import SessionContext
from hellogt.models import MatchNotification
from hellogt.schemas.match import FriendListResponse, NotificationListResponse, NotificationResponse


router = APIRouter(tags=["Notifications"])


def to_response(notification: MatchNotification) -> NotificationResponse:
    return NotificationResponse(
        id=notification.id,
        match_id=notification.match_id,
        matched_user_id=notification.counterpart_user_id,
        matched_user_name=notification.counterpart_display_name,
        created_at=notification.created_at,
        is_read=notification.is_read,
    )


@router.get("/notifications", response_model=NotificationListResponse)
async def list_notifications(session: SessionContext = Depends(get_session)):
    """Match notifications for the caller, newest first."""
    gate = session.notifications
    return NotificationListResponse(
        notifications=[to_response(n) for n in gate.notifications],
        unread_count=gate.unread_count,
    )


@router.post("/notifications/{notification_id}/acknowledge", response_model=NotificationResponse)
async def acknowledge_notification(
    notification_id: str,
    session: SessionContext = Depends(get_session),
):
    """Open a match notification; the match then shows up as a friend."""
    try:
        notification = await session.acknowledge(notification_id)
    except UnknownNotification:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Notification not found.",
        )
    except StoreUnavailable:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Couldn't save. Try again.",
        )
    return to_response(notification)


@router.get("/friends", response_model=FriendListResponse)
async def list_friends(session: SessionContext = Depends(get_session)):
    """Acknowledged matches only."""
    profiles = await session.friends.load_friend_profiles(session.profiles)
    return FriendListResponse(
        friends=[to_candidate(p) for p in profiles],
        total=len(profiles),
    )
