import enum

from sqlalchemy import (
    Column,
    String,
    DateTime,
    Integer,
    Float,
    Index,
    UniqueConstraint,
)
from sqlalchemy.sql import func
from .db import Base


class SportType(str, enum.Enum):
    FOOTBALL = "FOOTBALL"
    BASKETBALL = "BASKETBALL"
    CRICKET = "CRICKET"
    TENNIS = "TENNIS"
    BADMINTON = "BADMINTON"
    VOLLEYBALL = "VOLLEYBALL"
    TABLE_TENNIS = "TABLE_TENNIS"
    CHESS = "CHESS"
    HOCKEY = "HOCKEY"
    BASEBALL = "BASEBALL"
    RUGBY = "RUGBY"
    GOLF = "GOLF"
    SWIMMING = "SWIMMING"
    ATHLETICS = "ATHLETICS"
    BOXING = "BOXING"
    MARTIAL_ARTS = "MARTIAL_ARTS"
    ESPORTS = "ESPORTS"
    KABADDI = "KABADDI"
    WRESTLING = "WRESTLING"
    CYCLING = "CYCLING"
    OTHER = "OTHER"


class RankingCategory(str, enum.Enum):
    PLAYER = "PLAYER"
    TEAM = "TEAM"


class RankingType(str, enum.Enum):
    GLOBAL = "GLOBAL"
    NATIONAL = "NATIONAL"
    STATE = "STATE"
    CITY = "CITY"


def enum_value(value):
    """Return the stored string for ``value``, accepting enum members or raw strings."""
    return value.value if isinstance(value, enum.Enum) else value


DEFAULT_RATING = 1000.0


class RatableEntity:
    """Columns shared by every entity that carries a rating and a rank."""

    id = Column(String, primary_key=True)
    name = Column(String, nullable=False)
    sport_type = Column(String, nullable=False, index=True)
    rating = Column(Float, nullable=False, default=DEFAULT_RATING)
    total_points = Column(Integer, nullable=False, default=0)
    matches_played = Column(Integer, nullable=False, default=0)
    matches_won = Column(Integer, nullable=False, default=0)
    current_rank = Column(Integer, nullable=True)
    deleted_at = Column(DateTime, nullable=True)


class Player(RatableEntity, Base):
    __tablename__ = "player"
    category = RankingCategory.PLAYER

    user_id = Column(String, nullable=True)


class Team(RatableEntity, Base):
    __tablename__ = "team"
    category = RankingCategory.TEAM

    matches_lost = Column(Integer, nullable=False, default=0)


ENTITY_MODELS = {
    RankingCategory.PLAYER: Player,
    RankingCategory.TEAM: Team,
}


class RankingSnapshot(Base):
    """One immutable ranking record for one entity at one recompute run."""

    __tablename__ = "ranking_snapshot"

    id = Column(String, primary_key=True)
    sport_type = Column(String, nullable=False)
    ranking_type = Column(String, nullable=False)
    ranking_category = Column(String, nullable=False)
    entity_id = Column(String, nullable=False, index=True)
    rank = Column(Integer, nullable=False)
    previous_rank = Column(Integer, nullable=True)
    points = Column(Float, nullable=False, default=0.0)
    rating = Column(Float, nullable=False)
    ranking_date = Column(DateTime(timezone=True), nullable=False)

    __table_args__ = (
        UniqueConstraint(
            "sport_type",
            "ranking_type",
            "ranking_category",
            "entity_id",
            "ranking_date",
            name="uq_ranking_snapshot_partition_entity_date",
        ),
        Index(
            "ix_ranking_snapshot_partition_date",
            "sport_type",
            "ranking_type",
            "ranking_category",
            "ranking_date",
        ),
    )


class RatingEvent(Base):
    """Applied match result; ``match_id`` doubles as the retry idempotency key."""

    __tablename__ = "rating_event"

    id = Column(String, primary_key=True)
    match_id = Column(String, nullable=True, unique=True)
    sport_type = Column(String, nullable=False)
    ranking_category = Column(String, nullable=False)
    winner_id = Column(String, nullable=False)
    loser_id = Column(String, nullable=False)
    winner_delta = Column(Float, nullable=False)
    loser_delta = Column(Float, nullable=False)
    created_at = Column(DateTime, server_default=func.now(), nullable=False)
