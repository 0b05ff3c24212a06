"""SQLAlchemy-backed stores for ratable entities and ranking snapshots.

Both stores wrap a caller-owned :class:`AsyncSession`; committing is left to
the service that drives them so that a whole rating update or ranking run
lands in a single transaction.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Sequence

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from ..db_errors import is_missing_table_error, is_transient_error
from ..exceptions import NotFoundError, TransientStoreError
from ..models import (
    ENTITY_MODELS,
    RankingCategory,
    RankingSnapshot,
    enum_value,
)

logger = logging.getLogger(__name__)


def _raise_store_error(exc: SQLAlchemyError, action: str) -> None:
    if is_transient_error(exc):
        logger.warning("Transient store error while %s: %s", action, exc)
        raise TransientStoreError(f"store unavailable while {action}") from exc
    raise exc


class EntityStore:
    """Players and teams, looked up by partition or by id."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def find_by_sport_and_category(self, sport_type, category) -> list:
        """Active (not soft-deleted) entities of one partition."""
        model = ENTITY_MODELS[RankingCategory(enum_value(category))]
        stmt = (
            select(model)
            .where(
                model.sport_type == enum_value(sport_type),
                model.deleted_at.is_(None),
            )
            .execution_options(populate_existing=True)
        )
        try:
            return list((await self.session.execute(stmt)).scalars().all())
        except SQLAlchemyError as exc:
            _raise_store_error(exc, "loading entities")

    async def find_by_id(self, entity_id: str, category=None):
        """Return the player or team with ``entity_id``.

        Ids are unique across both variants, so without ``category`` players
        are checked first and teams second.

        Raises:
            NotFoundError: if no entity has that id.
        """
        if category is not None:
            candidates = [ENTITY_MODELS[RankingCategory(enum_value(category))]]
        else:
            candidates = list(ENTITY_MODELS.values())
        try:
            for model in candidates:
                entity = await self.session.get(model, entity_id)
                if entity is not None:
                    return entity
        except SQLAlchemyError as exc:
            _raise_store_error(exc, "loading entity")
        raise NotFoundError("entity", entity_id)

    async def save(self, entity) -> None:
        self.session.add(entity)
        try:
            await self.session.flush()
        except SQLAlchemyError as exc:
            _raise_store_error(exc, f"saving entity {entity.id}")


class SnapshotStore:
    """Append-only log of :class:`RankingSnapshot` rows."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def append(self, snapshot: RankingSnapshot) -> None:
        self.session.add(snapshot)
        try:
            await self.session.flush()
        except SQLAlchemyError as exc:
            _raise_store_error(exc, f"appending snapshot for {snapshot.entity_id}")

    async def _read(self, stmt) -> list[RankingSnapshot]:
        try:
            return list((await self.session.execute(stmt)).scalars().all())
        except SQLAlchemyError as exc:
            # A database that never had a ranking run reads as "no data yet".
            if is_missing_table_error(exc, RankingSnapshot.__tablename__):
                await self.session.rollback()
                logger.debug("ranking_snapshot table missing; returning no snapshots")
                return []
            _raise_store_error(exc, "reading snapshots")

    async def find_latest_by_partition(
        self,
        sport_type,
        ranking_type,
        category=None,
        *,
        limit: int | None = None,
    ) -> list[RankingSnapshot]:
        """Snapshots sharing the newest ``ranking_date`` of the partition, by rank."""
        conditions = [
            RankingSnapshot.sport_type == enum_value(sport_type),
            RankingSnapshot.ranking_type == enum_value(ranking_type),
        ]
        if category is not None:
            conditions.append(
                RankingSnapshot.ranking_category == enum_value(category)
            )
        latest = (
            select(func.max(RankingSnapshot.ranking_date))
            .where(*conditions)
            .scalar_subquery()
        )
        stmt = (
            select(RankingSnapshot)
            .where(*conditions, RankingSnapshot.ranking_date == latest)
            .order_by(RankingSnapshot.rank, RankingSnapshot.entity_id)
        )
        if limit is not None:
            stmt = stmt.limit(limit)
        return await self._read(stmt)

    async def find_by_entity_id(
        self, entity_id: str, category=None
    ) -> list[RankingSnapshot]:
        stmt = select(RankingSnapshot).where(RankingSnapshot.entity_id == entity_id)
        if category is not None:
            stmt = stmt.where(
                RankingSnapshot.ranking_category == enum_value(category)
            )
        stmt = stmt.order_by(RankingSnapshot.ranking_date, RankingSnapshot.id)
        return await self._read(stmt)

    async def find_between(
        self,
        sport_type,
        ranking_type,
        start: datetime,
        end: datetime,
        category=None,
    ) -> Sequence[RankingSnapshot]:
        stmt = select(RankingSnapshot).where(
            RankingSnapshot.sport_type == enum_value(sport_type),
            RankingSnapshot.ranking_type == enum_value(ranking_type),
            RankingSnapshot.ranking_date >= start,
            RankingSnapshot.ranking_date <= end,
        )
        if category is not None:
            stmt = stmt.where(
                RankingSnapshot.ranking_category == enum_value(category)
            )
        stmt = stmt.order_by(
            RankingSnapshot.ranking_date,
            RankingSnapshot.ranking_category,
            RankingSnapshot.rank,
        )
        return await self._read(stmt)
