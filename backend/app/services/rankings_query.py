"""Read-only access to recorded rankings."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy.ext.asyncio import AsyncSession

from ..cache import latest_rankings_cache
from ..models import RankingSnapshot, RankingType, enum_value
from ..time_utils import require_utc
from .stores import SnapshotStore

DEFAULT_LIMIT = 100


async def get_latest_rankings(
    session: AsyncSession,
    sport_type,
    ranking_type=RankingType.GLOBAL,
    limit: int = DEFAULT_LIMIT,
    *,
    category=None,
) -> list[RankingSnapshot]:
    """Return the newest ranking run of a sport, ordered by rank.

    Without ``category`` the newest run across PLAYER and TEAM is used;
    with it, the newest run of that category. Results are truncated to
    ``limit`` and cached until the sport is recalculated or the TTL lapses.
    An empty list means no run has been recorded yet.
    """
    if limit <= 0:
        return []

    sport = enum_value(sport_type)
    key = (
        sport,
        enum_value(ranking_type),
        enum_value(category) if category is not None else None,
        limit,
    )
    cached = latest_rankings_cache.get(key)
    if cached is not None:
        return list(cached)

    # A run that commits while this query is in flight bumps the generation.
    generation = latest_rankings_cache.generation(sport)

    snapshots = await SnapshotStore(session).find_latest_by_partition(
        sport_type, ranking_type, category, limit=limit
    )
    if snapshots:
        # Cached rows outlive this session; detach them so a later rollback
        # cannot expire their attributes.
        for snapshot in snapshots:
            session.expunge(snapshot)
        latest_rankings_cache.set(key, tuple(snapshots), generation=generation)
    return snapshots


async def get_history(
    session: AsyncSession, entity_id: str, *, category=None
) -> list[RankingSnapshot]:
    """All snapshots recorded for ``entity_id``, oldest run first."""
    return await SnapshotStore(session).find_by_entity_id(entity_id, category)


async def get_rankings_between(
    session: AsyncSession,
    sport_type,
    ranking_type,
    start: datetime,
    end: datetime,
    *,
    category=None,
) -> list[RankingSnapshot]:
    """Snapshots whose ranking date falls within ``[start, end]``.

    Raises:
        ValueError: if either bound is naive or ``start`` is after ``end``.
    """
    start = require_utc(start, field_name="start")
    end = require_utc(end, field_name="end")
    if start > end:
        raise ValueError("start must not be after end")
    return list(
        await SnapshotStore(session).find_between(
            sport_type, ranking_type, start, end, category
        )
    )
