import logging
import uuid
from dataclasses import dataclass

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from ..db_errors import is_transient_error
from ..exceptions import ConcurrencyConflict, InvalidMatchResult, TransientStoreError
from ..models import RatingEvent, Team, enum_value
from .locks import PartitionLocks, partition_locks
from .stores import EntityStore

logger = logging.getLogger(__name__)

K_FACTOR = 32.0
WIN_POINTS = 100
LOSS_POINTS = 10


@dataclass(frozen=True)
class RatingDelta:
    winner_delta: float
    loser_delta: float


def expected_score(rating: float, opponent_rating: float) -> float:
    """Probability that a player rated ``rating`` beats ``opponent_rating``."""
    return 1 / (1 + 10 ** ((opponent_rating - rating) / 400))


def elo_deltas(winner_rating: float, loser_rating: float, k: float = K_FACTOR) -> RatingDelta:
    """Return the Elo adjustment for a decided match.

    The loser's delta is the exact negation of the winner's, so every match
    transfers rating points without creating or destroying any.
    """
    winner_delta = k * (1 - expected_score(winner_rating, loser_rating))
    return RatingDelta(winner_delta=winner_delta, loser_delta=-winner_delta)


async def _applied_event(session: AsyncSession, match_id: str) -> RatingEvent | None:
    return (
        await session.execute(select(RatingEvent).where(RatingEvent.match_id == match_id))
    ).scalar_one_or_none()


async def update_ratings_after_match(
    session: AsyncSession,
    winner_id: str,
    loser_id: str,
    sport_type,
    *,
    match_id: str | None = None,
    locks: PartitionLocks | None = None,
    k: float = K_FACTOR,
) -> RatingDelta:
    """Apply a pairwise Elo update after ``winner_id`` beat ``loser_id``.

    The winner gains ``k * (1 - expected)`` and ``WIN_POINTS``, the loser
    loses the same rating amount and earns ``LOSS_POINTS``; both match
    counters move. Both entities are written in one transaction together with
    a ``RatingEvent`` audit row. ``current_rank`` is left alone: it only
    changes when rankings are recalculated.

    When ``match_id`` is given and was already applied, the recorded deltas
    are returned and nothing is applied twice.

    Raises:
        NotFoundError: if either id is unknown.
        InvalidMatchResult: for self-matches or sport/category mismatches.
        TransientStoreError: if the write failed and should be retried whole.
    """
    sport = enum_value(sport_type)
    if winner_id == loser_id:
        raise InvalidMatchResult("winner and loser must be different entities")

    if match_id:
        applied = await _applied_event(session, match_id)
        if applied is not None:
            if (applied.winner_id, applied.loser_id) != (winner_id, loser_id):
                raise InvalidMatchResult(
                    f"match '{match_id}' was already recorded with different participants"
                )
            logger.info("Match %s already applied; returning recorded deltas", match_id)
            return RatingDelta(applied.winner_delta, applied.loser_delta)

    entities = EntityStore(session)
    winner = await entities.find_by_id(winner_id)
    loser = await entities.find_by_id(loser_id)

    if winner.category != loser.category:
        raise InvalidMatchResult("a player cannot be rated against a team")
    for entity in (winner, loser):
        if entity.sport_type != sport:
            raise InvalidMatchResult(
                f"entity '{entity.id}' plays {entity.sport_type}, not {sport}"
            )

    category = winner.category
    locks = locks or partition_locks
    async with locks.lock(sport, category):
        try:
            # Re-read under the partition lock so a concurrent update is not lost.
            await session.refresh(winner)
            await session.refresh(loser)

            delta = elo_deltas(winner.rating, loser.rating, k)
            logger.debug(
                "Elo %s (%.2f) beat %s (%.2f): %+.4f / %+.4f",
                winner.id,
                winner.rating,
                loser.id,
                loser.rating,
                delta.winner_delta,
                delta.loser_delta,
            )

            winner.rating += delta.winner_delta
            winner.matches_won += 1
            winner.matches_played += 1
            winner.total_points += WIN_POINTS

            loser.rating += delta.loser_delta
            loser.matches_played += 1
            loser.total_points += LOSS_POINTS
            if isinstance(loser, Team):
                loser.matches_lost += 1

            await entities.save(winner)
            await entities.save(loser)
            session.add(
                RatingEvent(
                    id=uuid.uuid4().hex,
                    match_id=match_id,
                    sport_type=sport,
                    ranking_category=enum_value(category),
                    winner_id=winner.id,
                    loser_id=loser.id,
                    winner_delta=delta.winner_delta,
                    loser_delta=delta.loser_delta,
                )
            )
            await session.commit()
        except IntegrityError as exc:
            await session.rollback()
            if match_id:
                raise ConcurrencyConflict(
                    f"match '{match_id}' is being applied concurrently"
                ) from exc
            raise
        except TransientStoreError:
            await session.rollback()
            raise
        except SQLAlchemyError as exc:
            await session.rollback()
            if is_transient_error(exc):
                raise TransientStoreError("rating update could not be persisted") from exc
            raise

    logger.info(
        "Applied %s result %s > %s (%+.2f)",
        sport,
        winner_id,
        loser_id,
        delta.winner_delta,
    )
    return delta
