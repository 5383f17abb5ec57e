"""
Record schemas for the Game Collection

Each Pydantic model describes one shape a game takes on its way through the API.
Stored documents live in the "games" collection of your MongoDB database.

- GameIn -> body of create / full update
- GamePatch -> body of partial update
- GameRecord -> a stored game, as returned and exported
- FilterCriteria -> list query parameters
- Stats -> collection summary
"""

from datetime import datetime, timezone
from typing import Optional, List

from pydantic import BaseModel, Field, field_validator


def _unique_tags(values: List[str]) -> List[str]:
    seen = []
    for value in values:
        tag = value.strip()
        if tag and tag not in seen:
            seen.append(tag)
    return seen


class GameIn(BaseModel):
    title: str = Field("", description="Game title")
    genres: List[str] = Field(default_factory=list, description="Genre tags, at least one")
    platforms: List[str] = Field(default_factory=list, description="Platform tags, at least one")
    publisher: Optional[str] = Field(None, description="Publisher")
    developer: Optional[str] = Field(None, description="Developer studio")
    release_year: int = Field(default_factory=lambda: datetime.now(timezone.utc).year, description="Year of release")
    critic_score: int = Field(0, description="Critic score out of 100")
    hours_played: float = Field(0, description="Hours played")
    completed: bool = Field(False, description="Whether the game was finished")
    favorite: Optional[bool] = Field(None, description="Favorite flag, false when omitted on create")

    @field_validator("genres", "platforms")
    @classmethod
    def dedupe_tags(cls, v: List[str]) -> List[str]:
        return _unique_tags(v)


class GamePatch(BaseModel):
    title: Optional[str] = None
    genres: Optional[List[str]] = None
    platforms: Optional[List[str]] = None
    publisher: Optional[str] = None
    developer: Optional[str] = None
    release_year: Optional[int] = None
    critic_score: Optional[int] = None
    hours_played: Optional[float] = None
    completed: Optional[bool] = None
    favorite: Optional[bool] = None

    @field_validator("genres", "platforms")
    @classmethod
    def dedupe_tags(cls, v: Optional[List[str]]) -> Optional[List[str]]:
        return None if v is None else _unique_tags(v)


class GameRecord(BaseModel):
    id: str = Field(..., description="Game ID")
    title: str = Field(..., description="Game title")
    genres: List[str] = Field(..., description="Genre tags")
    platforms: List[str] = Field(..., description="Platform tags")
    publisher: Optional[str] = Field(None, description="Publisher")
    developer: Optional[str] = Field(None, description="Developer studio")
    release_year: int = Field(..., description="Year of release")
    critic_score: int = Field(..., description="Critic score out of 100")
    hours_played: float = Field(..., allow_inf_nan=False, description="Hours played")
    completed: bool = Field(False, description="Whether the game was finished")
    favorite: bool = Field(False, description="Favorite flag")
    created_at: datetime = Field(..., description="When the game was added")
    updated_at: datetime = Field(..., description="Last modification time")


class FilterCriteria(BaseModel):
    search: Optional[str] = Field(None, description="Substring of title, publisher or developer")
    genre: Optional[str] = Field(None, description="Genre tag the game must carry")
    platform: Optional[str] = Field(None, description="Platform tag the game must carry")
    favorites_only: bool = Field(False, description="Only return favorites")


class Stats(BaseModel):
    total: int = 0
    completed_count: int = 0
    total_hours: float = 0
    average_score: float = 0
    favorite_count: int = 0


class GameListResponse(BaseModel):
    success: bool = True
    data: List[GameRecord]
    count: int


class GameResponse(BaseModel):
    success: bool = True
    data: GameRecord


class StatsResponse(BaseModel):
    success: bool = True
    data: Stats


class FavoriteResponse(BaseModel):
    success: bool = True
    favorite: bool
