from fastapi import APIRouter, Depends, HTTPException, status

from hellogt.core.dependencies import get_session
from hellogt.core.errors import AlreadyDecided, InvalidSwipe, MatchCheckFailed, StoreUnavailable
from hellogt.core.session import SessionContext
from hellogt.models import Profile, SwipeType
from hellogt.schemas.match import (
    CandidateProfile,
    CandidateResponse,
    MatchListResponse,
    MatchResponse,
    SwipeCreate,
    SwipeResponse,
)


router = APIRouter(prefix="/matching", tags=["Matching"])


def to_candidate(profile: Profile) -> CandidateProfile:
    return CandidateProfile(
        user_id=profile.id,
        name=profile.name,
        username=profile.username,
        profile_photo_url=profile.profile_photo_url,
        year=profile.year,
        major=profile.major,
        bio=profile.bio,
        interests=profile.interests,
    )


@router.get("/candidates", response_model=CandidateResponse)
async def list_candidates(session: SessionContext = Depends(get_session)):
    """
    Get profiles to swipe on.
    Excludes the caller and everyone they already liked or passed.
    An unreachable store gives an empty deck and a banner, not an error.
    """
    profiles = await session.candidates()
    return CandidateResponse(
        profiles=[to_candidate(p) for p in profiles],
        banner=session.banner(),
    )


@router.post("/swipe", response_model=SwipeResponse)
async def swipe(
    swipe_data: SwipeCreate,
    session: SessionContext = Depends(get_session),
):
    """
    Record a swipe (like or pass).
    A like on someone who already liked the caller creates the match.
    """
    try:
        if swipe_data.swipe_type is SwipeType.LIKE:
            outcome = await session.swipe_right(swipe_data.target_user_id)
        else:
            await session.swipe_left(swipe_data.target_user_id)
            outcome = None
    except AlreadyDecided:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Already swiped on this user.",
        )
    except InvalidSwipe as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except MatchCheckFailed:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Swipe saved, but checking for a match failed. Swipe again to retry.",
        )
    except StoreUnavailable:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Couldn't save your swipe. Try again.",
        )

    return SwipeResponse(
        target_user_id=swipe_data.target_user_id,
        decision=swipe_data.decision,
        is_match=bool(outcome and outcome.is_match),
        match_id=outcome.match.id if outcome and outcome.is_match else None,
    )


@router.get("/matches", response_model=MatchListResponse)
async def get_matches(session: SessionContext = Depends(get_session)):
    """All matches involving the caller, acknowledged or not."""
    matches = [
        MatchResponse(
            id=match.id,
            user1_id=match.user1_id,
            user2_id=match.user2_id,
            created_at=match.created_at,
            acknowledged=session.notifications.is_friend_visible(match.id),
        )
        for match in session.matches.matches
    ]
    return MatchListResponse(matches=matches, total=len(matches))
