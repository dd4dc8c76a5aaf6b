"""Public loss GIF endpoint."""

import logging

from fastapi import APIRouter, HTTPException, Request

from ..database.operations import DatabaseOperations
from ..middleware.rate_limiter import get_limiter, public_rate_limit
from ..models.api_models import LossGifResponse

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/loss-gifs", tags=["loss-gifs"])
limiter = get_limiter()


def parse_score(raw: str | None) -> int:
    """Parse the score query parameter.

    Raises:
        HTTPException: 400 if the parameter is missing, not an integer or negative
    """
    if raw is None:
        raise HTTPException(status_code=400, detail="Score parameter required")

    try:
        score = int(raw.strip())
    except ValueError:
        score = -1

    if score < 0:
        raise HTTPException(status_code=400, detail="Valid score parameter required")

    return score


@router.get(
    "/current",
    response_model=LossGifResponse,
    summary="Loss GIF for a Score",
    description=(
        "Return the loss GIF with the lowest streak threshold that is still "
        "above the final score"
    ),
    responses={
        400: {"description": "Missing or invalid score"},
        404: {"description": "No loss GIF found for score"},
    },
)
@limiter.limit(public_rate_limit)
async def current_loss_gif(request: Request) -> LossGifResponse:
    # Read raw so a non-numeric score gets our message rather than a 422
    score = parse_score(request.query_params.get("score"))

    db_ops: DatabaseOperations = request.app.state.db_ops
    loss_gif = db_ops.get_loss_gif_for_score(score)
    if loss_gif is None:
        raise HTTPException(status_code=404, detail="No loss GIF found for score")

    return LossGifResponse(**loss_gif.to_dict())
