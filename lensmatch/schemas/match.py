from pydantic import BaseModel
from uuid import UUID
from datetime import datetime
from typing import Optional

from lensmatch.schemas.discover import PhotographerCard


class MatchPhotographerSummary(BaseModel):
    company_name: str
    avatar: Optional[str] = None
    location: Optional[str] = None


class MatchUserSummary(BaseModel):
    id: UUID
    first_name: str
    last_name: str
    profile_pic: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    photographer: Optional[MatchPhotographerSummary] = None


class MatchUserDetail(MatchUserSummary):
    photographer: Optional[PhotographerCard] = None


class MatchListItem(BaseModel):
    id: UUID
    created_at: datetime
    status: str
    ai_summary: Optional[str] = None
    expires_at: datetime
    message_thread_id: UUID
    other_user: MatchUserSummary


class MatchListResponse(BaseModel):
    matches: list[MatchListItem]


class MatchDetailResponse(BaseModel):
    id: UUID
    created_at: datetime
    status: str
    ai_summary: Optional[str] = None
    expires_at: datetime
    message_thread_id: UUID
    other_user: MatchUserDetail
    icebreakers: list[str] = []


class ExpireResponse(BaseModel):
    expired_count: int
