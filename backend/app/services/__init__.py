"""Rating and ranking services."""

from .rating import RatingDelta, elo_deltas, update_ratings_after_match
from .ranking import RunResult, order_entities, recalculate_rankings
from .rankings_query import get_history, get_latest_rankings, get_rankings_between
from .scheduler import (
    CycleReport,
    PartitionOutcome,
    PartitionStatus,
    RankingScheduler,
    get_ranking_scheduler,
)

__all__ = [
    "RatingDelta",
    "elo_deltas",
    "update_ratings_after_match",
    "RunResult",
    "order_entities",
    "recalculate_rankings",
    "get_history",
    "get_latest_rankings",
    "get_rankings_between",
    "CycleReport",
    "PartitionOutcome",
    "PartitionStatus",
    "RankingScheduler",
    "get_ranking_scheduler",
]
