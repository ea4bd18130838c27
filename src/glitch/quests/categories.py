"""Quest categories shown in the create/explore screens."""

from __future__ import annotations

from enum import Enum

from glitch.errors import ValidationError

# Sentinel accepted by the nearby search meaning "no category filter".
ALL_CATEGORIES = "all"


class QuestCategory(str, Enum):
    GENERAL = "general"
    FOODIE = "foodie"
    ART = "art"
    MUSIC = "music"
    CHILL = "chill"
    ADVENTURE = "adventure"
    SPORT = "sport"


def parse_category(value: str | QuestCategory) -> QuestCategory:
    """Return the matching category or raise ValidationError."""
    try:
        return QuestCategory(value)
    except ValueError as e:
        allowed = ", ".join(c.value for c in QuestCategory)
        raise ValidationError(f"Unknown category '{value}'. Expected one of: {allowed}") from e
