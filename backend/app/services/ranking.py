"""Recompute the rank ordering of one (sport, category) partition."""

from __future__ import annotations

import asyncio
import logging
import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import Iterable

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from ..cache import latest_rankings_cache
from ..exceptions import DomainException, PartitionRunFailure
from ..models import RankingSnapshot, RankingType, enum_value
from ..time_utils import require_utc, utcnow
from .locks import PartitionLocks, partition_locks
from .stores import EntityStore, SnapshotStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RunResult:
    sport_type: str
    category: str
    count: int
    ranking_date: datetime | None


def order_entities(entities: Iterable) -> list:
    """Sort by rating descending, breaking ties by ascending id."""
    return sorted(entities, key=lambda e: (-e.rating, e.id))


async def recalculate_rankings(
    session: AsyncSession,
    sport_type,
    category,
    *,
    ranking_type=RankingType.GLOBAL,
    ranking_date: datetime | None = None,
    locks: PartitionLocks | None = None,
) -> RunResult:
    """Assign ranks 1..N to the active entities of a partition.

    Every entity gets ``current_rank`` updated and one ``RankingSnapshot``
    appended, recording the rank it held before this run as
    ``previous_rank``. All snapshots of the run share ``ranking_date``. The
    partition lock is held for the whole read/sort/write pass and everything
    commits in one transaction, so a failure leaves the previous ranking in
    place.

    An empty partition is a no-op returning ``count=0``.

    Raises:
        PartitionRunFailure: if reading or persisting failed; the run was
            rolled back.
    """
    sport = enum_value(sport_type)
    cat = enum_value(category)
    rtype = enum_value(ranking_type)
    if ranking_date is None:
        ranking_date = utcnow()
    else:
        ranking_date = require_utc(ranking_date, field_name="ranking_date")

    entity_store = EntityStore(session)
    snapshot_store = SnapshotStore(session)
    locks = locks or partition_locks

    async with locks.lock(sport, cat):
        try:
            entities = await entity_store.find_by_sport_and_category(sport, cat)
            if not entities:
                logger.info("No active %s entities for %s; nothing to rank", cat, sport)
                return RunResult(sport, cat, 0, None)

            ordered = order_entities(entities)
            for index, entity in enumerate(ordered):
                rank = index + 1
                previous_rank = entity.current_rank
                entity.current_rank = rank
                await entity_store.save(entity)
                await snapshot_store.append(
                    RankingSnapshot(
                        id=uuid.uuid4().hex,
                        sport_type=sport,
                        ranking_type=rtype,
                        ranking_category=cat,
                        entity_id=entity.id,
                        rank=rank,
                        previous_rank=previous_rank,
                        points=float(entity.total_points or 0),
                        rating=entity.rating,
                        ranking_date=ranking_date,
                    )
                )
            await session.commit()
        except asyncio.CancelledError:
            await session.rollback()
            logger.warning("Ranking run for %s/%s cancelled; rolled back", sport, cat)
            raise
        except (SQLAlchemyError, DomainException) as exc:
            await session.rollback()
            raise PartitionRunFailure(sport, cat, str(exc)) from exc

    latest_rankings_cache.invalidate_prefix(sport)
    logger.info(
        "Ranked %d %s entities for %s at %s",
        len(ordered),
        cat,
        sport,
        ranking_date.isoformat(),
    )
    return RunResult(sport, cat, len(ordered), ranking_date)

