from fastapi import APIRouter, Depends, HTTPException, status

from hellogt.api.v1.matching import to_candidate
from hellogt.core.dependencies import get_session
from hellogt.core.errors import ProfileResolutionFailed, StoreUnavailable
from hellogt.core.session import SessionContext
from hellogt.schemas.match import FriendListResponse


router = APIRouter(prefix="/saved", tags=["Saved Profiles"])


@router.get("", response_model=FriendListResponse)
async def list_saved(session: SessionContext = Depends(get_session)):
    profiles = session.saved.profiles
    return FriendListResponse(friends=[to_candidate(p) for p in profiles], total=len(profiles))


@router.put("/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
async def save_profile(user_id: str, session: SessionContext = Depends(get_session)):
    """Bookmark someone's profile on this device."""
    try:
        profile = await session.profiles.resolve(user_id)
        await session.saved.save(profile)
    except ProfileResolutionFailed:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Profile not found.")
    except StoreUnavailable:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Couldn't save. Try again.")


@router.delete("/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
async def unsave_profile(user_id: str, session: SessionContext = Depends(get_session)):
    try:
        await session.saved.unsave(user_id)
    except StoreUnavailable:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Couldn't save. Try again.")
