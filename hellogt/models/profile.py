from pydantic import Field
from typing import ClassVar, List, Optional

from hellogt.models.base import DocumentModel


class Profile(DocumentModel):
    """Public profile fields the core needs (notification text, friend lists)."""

    collection_name: ClassVar[str] = "users"

    id: str
    name: str
    username: str = ""
    profile_photo_url: Optional[str] = Field(None, alias="profilePhotoURL")
    year: Optional[str] = None
    major: Optional[str] = None
    bio: Optional[str] = None
    interests: List[str] = Field(default_factory=list)
    clubs: List[str] = Field(default_factory=list)

    def to_local(self) -> dict:
        return self.model_dump(mode="json", by_alias=True)
