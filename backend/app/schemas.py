from typing import List, Optional
from datetime import datetime
from pydantic import BaseModel, Field, field_validator, model_validator, ConfigDict

from .models import RankingCategory, RankingType, SportType
from .time_utils import coerce_utc


class RankingSnapshotOut(BaseModel):
    id: str
    sportType: SportType
    rankingType: RankingType
    rankingCategory: RankingCategory
    entityId: str
    rank: int
    previousRank: Optional[int] = None
    rankChange: Optional[int] = None
    points: float
    rating: float
    rankingDate: datetime

    @classmethod
    def from_snapshot(cls, snapshot) -> "RankingSnapshotOut":
        previous = snapshot.previous_rank
        return cls(
            id=snapshot.id,
            sportType=snapshot.sport_type,
            rankingType=snapshot.ranking_type,
            rankingCategory=snapshot.ranking_category,
            entityId=snapshot.entity_id,
            rank=snapshot.rank,
            previousRank=previous,
            rankChange=previous - snapshot.rank if previous is not None else None,
            points=snapshot.points,
            rating=snapshot.rating,
            rankingDate=coerce_utc(snapshot.ranking_date),
        )


class RunResultOut(BaseModel):
    sportType: SportType
    category: RankingCategory
    count: int
    rankingDate: Optional[datetime] = None


class PartitionOutcomeOut(BaseModel):
    sportType: SportType
    category: RankingCategory
    status: str
    count: int = 0
    rankingDate: Optional[datetime] = None
    error: Optional[str] = None

    @classmethod
    def from_outcome(cls, outcome) -> "PartitionOutcomeOut":
        return cls(
            sportType=outcome.sport_type,
            category=outcome.category,
            status=outcome.status.value,
            count=outcome.count,
            rankingDate=outcome.ranking_date,
            error=outcome.error,
        )


class CalculateRankingsOut(BaseModel):
    sportType: SportType
    results: List[PartitionOutcomeOut]


class CycleReportOut(BaseModel):
    startedAt: datetime
    finishedAt: Optional[datetime] = None
    succeeded: int
    failed: int
    skipped: int
    outcomes: List[PartitionOutcomeOut]


class MatchResultIn(BaseModel):
    winnerId: str = Field(..., min_length=1)
    loserId: str = Field(..., min_length=1)
    sportType: SportType
    matchId: Optional[str] = Field(default=None, min_length=1, max_length=200)

    model_config = ConfigDict(extra="forbid")

    @field_validator("winnerId", "loserId", mode="before")
    @classmethod
    def _strip_ids(cls, value):
        if not isinstance(value, str):
            raise ValueError("entity ids must be strings")
        return value.strip()

    @model_validator(mode="after")
    def _distinct_sides(self):
        if self.winnerId == self.loserId:
            raise ValueError("winnerId and loserId must differ")
        return self


class RatingDeltaOut(BaseModel):
    winnerId: str
    loserId: str
    winnerDelta: float
    loserDelta: float
