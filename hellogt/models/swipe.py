from pydantic import Field
from typing import ClassVar, List, Optional
from datetime import datetime, timezone
import enum

from hellogt.models.base import DocumentModel


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SwipeType(str, enum.Enum):
    # Stored values predate the like/pass naming
    LIKE = "right"
    PASS = "left"


def match_id_for(user_a: str, user_b: str) -> str:
    """Canonical match key: both ids sorted and joined, identical from either side."""
    first, second = sorted([user_a, user_b])
    return f"{first}_{second}"


class SwipeDecision(DocumentModel):
    """One-way like/pass by one user about another. Never mutated."""

    collection_name: ClassVar[str] = "swipeDecisions"

    id: str = ""
    actor_user_id: str = Field(..., alias="userId")
    target_user_id: str = Field(..., alias="targetUserId")
    decision: SwipeType
    timestamp: datetime = Field(default_factory=utcnow)

    class Config:
        populate_by_name = True
        frozen = True

    @staticmethod
    def document_id_for(actor_user_id: str, target_user_id: str) -> str:
        return f"{actor_user_id}_{target_user_id}"

    def to_document(self):
        data = super().to_document()
        data["decision"] = self.decision.value
        return data


class Match(DocumentModel):
    """Mutual like between two users. At most one per unordered pair."""

    collection_name: ClassVar[str] = "matches"

    id: str
    user1_id: str = Field(..., alias="user1Id")
    user2_id: str = Field(..., alias="user2Id")
    created_at: datetime = Field(..., alias="createdAt")

    class Config:
        populate_by_name = True
        frozen = True

    @classmethod
    def between(cls, user_a: str, user_b: str, created_at: Optional[datetime] = None) -> "Match":
        first, second = sorted([user_a, user_b])
        return cls(
            id=match_id_for(user_a, user_b),
            user1_id=first,
            user2_id=second,
            created_at=created_at or utcnow(),
        )

    def involves(self, user_id: str) -> bool:
        return user_id in (self.user1_id, self.user2_id)

    def counterpart(self, user_id: str) -> str:
        """The other participant from `user_id`'s point of view."""
        return self.user2_id if self.user1_id == user_id else self.user1_id


class UserSwipeState(DocumentModel):
    """
    Per-user aggregate of decided targets and match ids.
    Owned by its subject user; stored arrays behave as sets.
    """

    collection_name: ClassVar[str] = "userSwipeData"

    id: str
    right_swipes: List[str] = Field(default_factory=list, alias="rightSwipes")
    left_swipes: List[str] = Field(default_factory=list, alias="leftSwipes")
    match_ids: List[str] = Field(default_factory=list, alias="matches")

    def has_decided(self, target_user_id: str) -> bool:
        return target_user_id in self.right_swipes or target_user_id in self.left_swipes

    def swipes_for(self, decision: SwipeType) -> List[str]:
        return self.right_swipes if decision is SwipeType.LIKE else self.left_swipes

    def add_decision(self, target_user_id: str, decision: SwipeType) -> None:
        swipes = self.swipes_for(decision)
        if target_user_id not in swipes:
            swipes.append(target_user_id)

    def discard_decision(self, target_user_id: str, decision: SwipeType) -> None:
        swipes = self.swipes_for(decision)
        if target_user_id in swipes:
            swipes.remove(target_user_id)

    def add_match(self, match_id: str) -> None:
        if match_id not in self.match_ids:
            self.match_ids.append(match_id)

    @staticmethod
    def field_for(decision: SwipeType) -> str:
        return "rightSwipes" if decision is SwipeType.LIKE else "leftSwipes"


class MatchOutcome:
    """Result of processing a right swipe: NoMatch or MatchCreated(match)."""

    NO_MATCH = "no_match"
    MATCH_CREATED = "match_created"

    def __init__(self, kind: str, match: Optional[Match] = None, is_new: bool = False):
        self.kind = kind
        self.match = match
        # False when another client had already written the match document
        self.is_new = is_new

    @classmethod
    def no_match(cls) -> "MatchOutcome":
        return cls(cls.NO_MATCH)

    @classmethod
    def created(cls, match: Match, is_new: bool = True) -> "MatchOutcome":
        return cls(cls.MATCH_CREATED, match, is_new)

    @property
    def is_match(self) -> bool:
        return self.kind == self.MATCH_CREATED

    def __eq__(self, other) -> bool:
        if not isinstance(other, MatchOutcome):
            return NotImplemented
        return self.kind == other.kind and self.match == other.match

    def __repr__(self) -> str:
        if self.match is None:
            return "MatchOutcome.NoMatch"
        return f"MatchOutcome.MatchCreated({self.match.id})"
