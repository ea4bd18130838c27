"""Nearby quest discovery.

Candidates come from the store (active, not expired, inside a latitude band
that can contain matches); the haversine distance decides membership and
order. Distances are kept at full precision here and only rounded for display.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from glitch.db.models import Quest, QuestParticipant, User
from glitch.errors import ValidationError
from glitch.quests.categories import ALL_CATEGORIES, parse_category
from glitch.quests.geo import haversine_km, latitude_span_deg, validate_coordinates

NEARBY_RESULT_LIMIT = 50

# Slack added to the SQL latitude band so float rounding never drops a match.
_BAND_EPSILON_DEG = 1e-6


@dataclass
class NearbyQuest:
    quest: Quest
    distance_km: float
    participant_count: int
    creator_username: str
    creator_avatar: str | None


async def find_nearby_quests(
    db: AsyncSession,
    latitude: float,
    longitude: float,
    radius_km: float,
    category: str | None = None,
    *,
    now: datetime | None = None,
    limit: int = NEARBY_RESULT_LIMIT,
) -> list[NearbyQuest]:
    """Active quests within ``radius_km`` of the origin, nearest first.

    ``category`` of None or ``"all"`` disables the category filter. Ties in
    distance keep the store's order.
    """
    validate_coordinates(latitude, longitude)
    if not radius_km > 0:
        raise ValidationError("Radius must be greater than 0")

    now = now or datetime.now(timezone.utc)

    counts = (
        select(QuestParticipant.quest_id, func.count().label("participant_count"))
        .group_by(QuestParticipant.quest_id)
        .subquery()
    )
    band = latitude_span_deg(radius_km) + _BAND_EPSILON_DEG

    stmt = (
        select(
            Quest,
            User.username,
            User.avatar_url,
            func.coalesce(counts.c.participant_count, 0),
        )
        .join(User, Quest.creator_id == User.id)
        .outerjoin(counts, counts.c.quest_id == Quest.id)
        .where(
            Quest.is_active.is_(True),
            Quest.expires_at > now,
            Quest.latitude.between(latitude - band, latitude + band),
        )
        .order_by(Quest.created_at.asc())
    )
    if category is not None and category != ALL_CATEGORIES:
        stmt = stmt.where(Quest.category == parse_category(category).value)

    result = await db.execute(stmt)

    matches: list[NearbyQuest] = []
    for quest, username, avatar, participant_count in result.all():
        distance = haversine_km(latitude, longitude, quest.latitude, quest.longitude)
        if distance <= radius_km:
            matches.append(NearbyQuest(
                quest=quest,
                distance_km=distance,
                participant_count=int(participant_count),
                creator_username=username,
                creator_avatar=avatar,
            ))

    matches.sort(key=lambda m: m.distance_km)
    return matches[:limit]
