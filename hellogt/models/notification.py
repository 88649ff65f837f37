from pydantic import Field
from datetime import datetime

from hellogt.models.base import DocumentModel
from hellogt.models.swipe import Match


class MatchNotification(DocumentModel):
    """
    One viewer's notification for one match.
    `is_read` only ever goes False -> True.
    """

    id: str
    match_id: str = Field(..., alias="matchId")
    viewer_user_id: str = Field(..., alias="currentUserId")
    counterpart_user_id: str = Field(..., alias="matchedUserId")
    counterpart_display_name: str = Field(..., alias="matchedUserName")
    created_at: datetime = Field(..., alias="createdAt")
    is_read: bool = Field(False, alias="isRead")

    @staticmethod
    def id_for(match_id: str, viewer_user_id: str) -> str:
        """Deterministic id so concurrent backfills collapse into one notification."""
        return f"{match_id}:{viewer_user_id}"

    @classmethod
    def for_match(cls, match: Match, viewer_user_id: str, counterpart_display_name: str) -> "MatchNotification":
        return cls(
            id=cls.id_for(match.id, viewer_user_id),
            match_id=match.id,
            viewer_user_id=viewer_user_id,
            counterpart_user_id=match.counterpart(viewer_user_id),
            counterpart_display_name=counterpart_display_name,
            created_at=match.created_at,
        )

    def to_local(self) -> dict:
        return self.model_dump(mode="json", by_alias=True)
