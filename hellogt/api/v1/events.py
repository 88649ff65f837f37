from fastapi import APIRouter, Depends, HTTPException, status
from typing import Optional

from hellogt.core.dependencies import get_session
from hellogt.core.errors import StoreUnavailable
from hellogt.core.session import SessionContext
from hellogt.schemas.events import AttendanceRequest, AttendanceResponse
from hellogt.services.attendance import attendance_summary, detailed_attendance_summary


router = APIRouter(prefix="/events", tags=["Events"])


def build_response(session: SessionContext, event_id: str) -> AttendanceResponse:
    tracker = session.attendance
    friends = session.friends_attending(event_id)
    total = tracker.attendee_count(event_id)
    return AttendanceResponse(
        event_id=event_id,
        attending=tracker.is_attending(event_id, session.user_id),
        attendee_count=total,
        friends_attending=sorted(friends),
        summary=attendance_summary(len(friends), total),
        detailed_summary=detailed_attendance_summary(len(friends), total),
        banner=tracker.last_error,
    )


@router.get("/{event_id}/attendance", response_model=AttendanceResponse)
async def get_attendance(event_id: str, session: SessionContext = Depends(get_session)):
    """Attendance for one event, from the live cache."""
    return build_response(session, event_id)


@router.post("/{event_id}/attendance", response_model=AttendanceResponse)
async def join_event(
    event_id: str,
    body: Optional[AttendanceRequest] = None,
    session: SessionContext = Depends(get_session),
):
    """Attend an event. Joining twice is fine."""
    try:
        await session.join_event(event_id, body.event_title if body else None)
    except StoreUnavailable:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Failed to join event. Try again.",
        )
    return build_response(session, event_id)


@router.delete("/{event_id}/attendance", response_model=AttendanceResponse)
async def leave_event(event_id: str, session: SessionContext = Depends(get_session)):
    """Stop attending an event. Leaving when not attending is fine."""
    try:
        await session.leave_event(event_id)
    except StoreUnavailable:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Failed to leave event. Try again.",
        )
    return build_response(session, event_id)
