from pydantic import BaseModel, Field
from uuid import UUID
from typing import Literal, Optional


class PortfolioImageCard(BaseModel):
    image: str
    title: Optional[str] = None
    tags: list[str] = []


class PhotographerCard(BaseModel):
    id: UUID
    name: str
    company_name: str
    location: Optional[str] = None
    bio: Optional[str] = None
    avatar: Optional[str] = None
    website: Optional[str] = None
    instagram: Optional[str] = None
    portfolio_images: list[PortfolioImageCard] = []
    avg_rating: Optional[float] = None
    review_count: int = 0
    event_count: int = 0
    specializations: list[str] = []


class DeckCard(BaseModel):
    id: UUID
    first_name: str
    last_name: str
    profile_pic: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    photographer: PhotographerCard
    score: float


class DeckResponse(BaseModel):
    cards: list[DeckCard]


class SwipeRequest(BaseModel):
    target_id: UUID
    direction: Literal["like", "pass"]


class SwipeResponse(BaseModel):
    matched: bool
    match_id: Optional[UUID] = None
    thread_id: Optional[UUID] = None


class PreferencesResponse(BaseModel):
    is_discoverable: bool
    seeking_types: list[str]
    budget_min: Optional[int] = None
    budget_max: Optional[int] = None
    has_photographer_profile: bool


class PreferencesUpdate(BaseModel):
    is_discoverable: Optional[bool] = None
    seeking_types: Optional[list[str]] = Field(default=None, max_length=50)
    budget_min: Optional[int] = None
    budget_max: Optional[int] = None
