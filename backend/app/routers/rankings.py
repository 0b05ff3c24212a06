from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from ..db import get_session
from ..exceptions import ProblemDetail, http_problem
from ..models import RankingCategory, RankingType, SportType
from ..schemas import (
    CalculateRankingsOut,
    CycleReportOut,
    PartitionOutcomeOut,
    RankingSnapshotOut,
    RunResultOut,
)
from ..services.rankings_query import (
    DEFAULT_LIMIT,
    get_history,
    get_latest_rankings,
    get_rankings_between,
)
from ..services.scheduler import RankingScheduler, get_ranking_scheduler
from .admin import require_admin

# Resource-only prefix; no /api or /api/v0 here
router = APIRouter(
    prefix="/rankings",
    tags=["rankings"],
    responses={404: {"model": ProblemDetail}, 503: {"model": ProblemDetail}},
)


def _run_result_out(result) -> RunResultOut:
    return RunResultOut(
        sportType=result.sport_type,
        category=result.category,
        count=result.count,
        rankingDate=result.ranking_date,
    )


# POST /api/v0/rankings/calculate/FOOTBALL
@router.post(
    "/calculate/{sport_type}",
    response_model=CalculateRankingsOut,
    dependencies=[Depends(require_admin)],
)
async def calculate_rankings(
    sport_type: SportType,
    scheduler: RankingScheduler = Depends(get_ranking_scheduler),
):
    """Recalculate PLAYER and TEAM rankings of one sport; each reports separately."""
    outcomes = await scheduler.run_sport(sport_type)
    return CalculateRankingsOut(
        sportType=sport_type,
        results=[PartitionOutcomeOut.from_outcome(o) for o in outcomes],
    )


@router.post(
    "/calculate/players/{sport_type}",
    response_model=RunResultOut,
    dependencies=[Depends(require_admin)],
    responses={409: {"model": ProblemDetail}},
)
async def calculate_player_rankings(
    sport_type: SportType,
    scheduler: RankingScheduler = Depends(get_ranking_scheduler),
):
    result = await scheduler.run_partition(sport_type, RankingCategory.PLAYER)
    return _run_result_out(result)


@router.post(
    "/calculate/teams/{sport_type}",
    response_model=RunResultOut,
    dependencies=[Depends(require_admin)],
    responses={409: {"model": ProblemDetail}},
)
async def calculate_team_rankings(
    sport_type: SportType,
    scheduler: RankingScheduler = Depends(get_ranking_scheduler),
):
    result = await scheduler.run_partition(sport_type, RankingCategory.TEAM)
    return _run_result_out(result)


# GET /api/v0/rankings/scheduler/last-report
@router.get(
    "/scheduler/last-report",
    response_model=Optional[CycleReportOut],
    dependencies=[Depends(require_admin)],
)
async def last_cycle_report(
    scheduler: RankingScheduler = Depends(get_ranking_scheduler),
):
    report = scheduler.last_report
    if report is None:
        return None
    return CycleReportOut(
        startedAt=report.started_at,
        finishedAt=report.finished_at,
        succeeded=len(report.succeeded),
        failed=len(report.failed),
        skipped=len(report.skipped),
        outcomes=[PartitionOutcomeOut.from_outcome(o) for o in report.outcomes],
    )


@router.get("/player/{entity_id}/history", response_model=list[RankingSnapshotOut])
async def player_ranking_history(
    entity_id: str, session: AsyncSession = Depends(get_session)
):
    rows = await get_history(session, entity_id, category=RankingCategory.PLAYER)
    return [RankingSnapshotOut.from_snapshot(r) for r in rows]


@router.get("/team/{entity_id}/history", response_model=list[RankingSnapshotOut])
async def team_ranking_history(
    entity_id: str, session: AsyncSession = Depends(get_session)
):
    rows = await get_history(session, entity_id, category=RankingCategory.TEAM)
    return [RankingSnapshotOut.from_snapshot(r) for r in rows]


# GET /api/v0/rankings/FOOTBALL/GLOBAL?limit=10&category=PLAYER
@router.get("/{sport_type}/{ranking_type}", response_model=list[RankingSnapshotOut])
async def latest_rankings(
    sport_type: SportType,
    ranking_type: RankingType,
    limit: int = Query(DEFAULT_LIMIT, ge=1, le=1000),
    category: Optional[RankingCategory] = None,
    session: AsyncSession = Depends(get_session),
):
    rows = await get_latest_rankings(
        session, sport_type, ranking_type, limit, category=category
    )
    return [RankingSnapshotOut.from_snapshot(r) for r in rows]


@router.get(
    "/{sport_type}/{ranking_type}/between",
    response_model=list[RankingSnapshotOut],
)
async def rankings_between(
    sport_type: SportType,
    ranking_type: RankingType,
    start: datetime,
    end: datetime,
    category: Optional[RankingCategory] = None,
    session: AsyncSession = Depends(get_session),
):
    try:
        rows = await get_rankings_between(
            session, sport_type, ranking_type, start, end, category=category
        )
    except ValueError as exc:
        raise http_problem(
            status_code=400,
            detail=str(exc),
            code="invalid_date_range",
        )
    return [RankingSnapshotOut.from_snapshot(r) for r in rows]
