from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from ..db import get_session
from ..exceptions import ProblemDetail
from ..schemas import MatchResultIn, RatingDeltaOut
from ..services.rating import update_ratings_after_match
from .admin import require_admin

router = APIRouter(
    prefix="/ratings",
    tags=["ratings"],
    responses={
        400: {"model": ProblemDetail},
        404: {"model": ProblemDetail},
        409: {"model": ProblemDetail},
        503: {"model": ProblemDetail},
    },
)


# POST /api/v0/ratings/match-result
# Called by the match service when a result is confirmed.
@router.post(
    "/match-result",
    response_model=RatingDeltaOut,
    dependencies=[Depends(require_admin)],
)
async def record_match_result(
    body: MatchResultIn,
    session: AsyncSession = Depends(get_session),
):
    delta = await update_ratings_after_match(
        session,
        body.winnerId,
        body.loserId,
        body.sportType,
        match_id=body.matchId,
    )
    return RatingDeltaOut(
        winnerId=body.winnerId,
        loserId=body.loserId,
        winnerDelta=delta.winner_delta,
        loserDelta=delta.loser_delta,
    )
