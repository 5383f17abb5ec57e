"""
Collection rules for games: validation, filtering, statistics and export.

Everything here is a pure function over already-loaded records. The API
layer fetches games from the store and hands them in; nothing in this
module talks to a database.
"""

import math
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Optional

from schemas import FilterCriteria, GameIn, GameRecord, Stats

MIN_RELEASE_YEAR = 1970
MIN_SCORE = 0
MAX_SCORE = 100

# vocabularies offered by the entry form; games may use any other tag too
SUGGESTED_GENRES = [
    "Action", "Adventure", "RPG", "Strategy", "FPS",
    "Sports", "Racing", "Puzzle", "Simulation",
]
SUGGESTED_PLATFORMS = [
    "PC", "PlayStation 5", "Xbox Series X", "Nintendo Switch",
    "PlayStation 4", "Xbox One",
]


@dataclass
class ValidationResult:
    errors: Dict[str, str] = field(default_factory=dict)

    @property
    def valid(self) -> bool:
        return not self.errors


class RecordValidationError(Exception):
    """Raised when a game fails one or more field rules.

    ``errors`` maps each offending field to a readable reason.
    """

    def __init__(self, errors: Dict[str, str]):
        super().__init__(", ".join(f"{k}: {v}" for k, v in errors.items()))
        self.errors = dict(errors)


def validate_game(candidate: GameIn, now: Optional[datetime] = None) -> ValidationResult:
    """Check every field rule and collect all failures at once."""
    current_year = (now or datetime.now(timezone.utc)).year
    errors: Dict[str, str] = {}

    if not (candidate.title or "").strip():
        errors["title"] = "Title is required"
    if not candidate.genres:
        errors["genres"] = "At least one genre is required"
    if not candidate.platforms:
        errors["platforms"] = "At least one platform is required"
    if not MIN_RELEASE_YEAR <= candidate.release_year <= current_year:
        errors["release_year"] = f"Release year must be between {MIN_RELEASE_YEAR} and {current_year}"
    if not MIN_SCORE <= candidate.critic_score <= MAX_SCORE:
        errors["critic_score"] = f"Critic score must be between {MIN_SCORE} and {MAX_SCORE}"
    if not (math.isfinite(candidate.hours_played) and candidate.hours_played >= 0):
        errors["hours_played"] = "Hours played must be zero or more"

    return ValidationResult(errors)


def ensure_valid(candidate: GameIn, now: Optional[datetime] = None) -> None:
    result = validate_game(candidate, now=now)
    if not result.valid:
        raise RecordValidationError(result.errors)


def _matches_search(game: GameRecord, needle: str) -> bool:
    haystacks = (game.title, game.publisher, game.developer)
    return any(needle in (text or "").lower() for text in haystacks)


def filter_games(records: Iterable[GameRecord], criteria: FilterCriteria) -> List[GameRecord]:
    """Return the games matching every criterion that is set, in input order."""
    needle = (criteria.search or "").lower()
    result = []
    for game in records:
        if needle and not _matches_search(game, needle):
            continue
        if criteria.genre and criteria.genre not in game.genres:
            continue
        if criteria.platform and criteria.platform not in game.platforms:
            continue
        if criteria.favorites_only and not game.favorite:
            continue
        result.append(game)
    return result


def summarize_games(records: Iterable[GameRecord]) -> Stats:
    games = list(records)
    total = len(games)
    # average is 0 for an empty collection
    average = round(sum(g.critic_score for g in games) / total, 1) if total else 0
    return Stats(
        total=total,
        completed_count=sum(1 for g in games if g.completed),
        total_hours=sum(g.hours_played for g in games),
        average_score=average,
        favorite_count=sum(1 for g in games if g.favorite),
    )


def build_export(records: Iterable[GameRecord], now: Optional[datetime] = None) -> dict:
    data = [g.model_dump(mode="json") for g in records]
    return {
        "success": True,
        "count": len(data),
        "data": data,
        "export_date": (now or datetime.now(timezone.utc)).isoformat(),
    }
