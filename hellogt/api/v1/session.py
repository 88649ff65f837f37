from fastapi import APIRouter, Depends, status

from hellogt.core.dependencies import get_current_user_id, get_session_registry
from hellogt.core.session import SessionRegistry


router = APIRouter(prefix="/session", tags=["Session"])


@router.post("")
async def sign_in(
    user_id: str = Depends(get_current_user_id),
    registry: SessionRegistry = Depends(get_session_registry),
):
    """Build the caller's session: load swipes, matches and notifications, start feeds."""
    session = await registry.sign_in(user_id)
    return {
        "user_id": session.user_id,
        "matches": len(session.matches.matches),
        "unread_notifications": session.notifications.unread_count,
        "banner": session.banner(),
    }


@router.delete("", status_code=status.HTTP_204_NO_CONTENT)
async def sign_out(
    user_id: str = Depends(get_current_user_id),
    registry: SessionRegistry = Depends(get_session_registry),
):
    """Tear down the caller's session and its live feeds."""
    await registry.sign_out(user_id)
