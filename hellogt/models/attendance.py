from pydantic import Field
from typing import ClassVar, List, Optional
from datetime import datetime

from hellogt.models.base import DocumentModel


class EventAttendance(DocumentModel):
    """Attendee set of one event; updated with union/difference, never overwritten."""

    collection_name: ClassVar[str] = "eventAttendance"

    id: str
    attendee_ids: List[str] = Field(default_factory=list, alias="attendeeIds")
    event_title: Optional[str] = Field(None, alias="eventTitle")
    updated_at: Optional[datetime] = Field(None, alias="updatedAt")

    @property
    def event_id(self) -> str:
        return self.id
