from pydantic import BaseModel
from typing import Optional, List


class AttendanceRequest(BaseModel):
    """Optional event metadata stored alongside the attendee set."""
    event_title: Optional[str] = None


class AttendanceResponse(BaseModel):
    event_id: str
    attending: bool
    attendee_count: int
    friends_attending: List[str]
    summary: str
    detailed_summary: str
    banner: Optional[str] = None
