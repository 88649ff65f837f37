from pydantic import BaseModel, Field
from typing import Optional, List
from datetime import datetime

from hellogt.models import SwipeType


# ==================== Swipe Schemas ====================

class SwipeCreate(BaseModel):
    """Schema for creating a swipe."""
    target_user_id: str = Field(..., min_length=1)
    decision: str = Field(..., pattern="^(like|pass)$")

    @property
    def swipe_type(self) -> SwipeType:
        return SwipeType.LIKE if self.decision == "like" else SwipeType.PASS


class SwipeResponse(BaseModel):
    """Schema for swipe response."""
    target_user_id: str
    decision: str
    is_match: bool = False  # True if this swipe produced a match
    match_id: Optional[str] = None


# ==================== Match Schemas ====================

class MatchResponse(BaseModel):
    """Schema for match response."""
    id: str
    user1_id: str
    user2_id: str
    created_at: datetime
    acknowledged: bool = False


class MatchListResponse(BaseModel):
    """List of matches."""
    matches: List[MatchResponse]
    total: int


# ==================== Discover Schemas ====================

class CandidateProfile(BaseModel):
    """Profile shown in the swipe deck."""
    user_id: str
    name: str
    username: str
    profile_photo_url: Optional[str]
    year: Optional[str]
    major: Optional[str]
    bio: Optional[str]
    interests: List[str]


class CandidateResponse(BaseModel):
    profiles: List[CandidateProfile]
    banner: Optional[str] = None


# ==================== Notification Schemas ====================

class NotificationResponse(BaseModel):
    id: str
    match_id: str
    matched_user_id: str
    matched_user_name: str
    created_at: datetime
    is_read: bool


class NotificationListResponse(BaseModel):
    notifications: List[NotificationResponse]
    unread_count: int


class FriendListResponse(BaseModel):
    friends: List[CandidateProfile]
    total: int
