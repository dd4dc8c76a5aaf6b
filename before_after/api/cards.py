"""Public game endpoints: drawing cards and checking guesses."""

import logging

from fastapi import APIRouter, HTTPException, Request

from ..database.operations import DatabaseOperations
from ..middleware.rate_limiter import get_limiter, public_rate_limit
from ..models.api_models import CardResponse, GuessRequest, GuessResponse

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/cards", tags=["cards"])
limiter = get_limiter()

VALID_GUESSES = ("before", "after")


def is_correct_guess(previous_year: int, current_year: int, guess: str) -> bool:
    """Decide whether a guess about two release years is right.

    Equal years count as "before": only a strictly later year is "after".
    """
    is_after = current_year > previous_year
    return (guess == "after" and is_after) or (guess == "before" and not is_after)


@router.get(
    "/next",
    response_model=CardResponse,
    summary="Draw a Card",
    description="Return one card picked at random",
    responses={404: {"description": "No cards found in database"}},
)
@limiter.limit(public_rate_limit)
async def next_card(request: Request) -> CardResponse:
    db_ops: DatabaseOperations = request.app.state.db_ops

    card = db_ops.get_random_card()
    if card is None:
        raise HTTPException(status_code=404, detail="No cards found in database")

    return CardResponse(**card.to_dict())


@router.get(
    "/all",
    response_model=list[CardResponse],
    summary="List All Cards",
    description="Return every card, used by clients that shuffle locally",
)
@limiter.limit(public_rate_limit)
async def all_cards(request: Request) -> list[CardResponse]:
    db_ops: DatabaseOperations = request.app.state.db_ops

    cards = db_ops.get_all_cards()
    if not cards:
        raise HTTPException(status_code=404, detail="No cards found in database")

    return [CardResponse(**card.to_dict()) for card in cards]


@router.post(
    "/guess",
    response_model=GuessResponse,
    summary="Check a Guess",
    description=(
        "Check whether the current card came before or after the previous one. "
        "A correct guess is answered with the next card to play."
    ),
    responses={
        200: {
            "description": "Guess evaluated",
            "content": {
                "application/json": {
                    "example": {"correct": False, "nextCard": None},
                }
            },
        },
        400: {"description": "Missing or invalid fields"},
    },
)
@limiter.limit(public_rate_limit)
async def guess(request: Request, body: GuessRequest) -> GuessResponse:
    """Evaluate a guess.

    All three fields are required; a year of 0 is a valid year.
    """
    if body.previousYear is None or body.currentYear is None or not body.guess:
        raise HTTPException(status_code=400, detail="Missing required fields")

    if body.guess not in VALID_GUESSES:
        raise HTTPException(
            status_code=400, detail="Guess must be 'before' or 'after'"
        )

    correct = is_correct_guess(body.previousYear, body.currentYear, body.guess)
    logger.debug(
        f"Guess {body.guess!r}: previous={body.previousYear}, "
        f"current={body.currentYear}, correct={correct}"
    )

    if not correct:
        return GuessResponse(correct=False, nextCard=None)

    db_ops: DatabaseOperations = request.app.state.db_ops
    card = db_ops.get_random_card()
    return GuessResponse(
        correct=True,
        nextCard=CardResponse(**card.to_dict()) if card is not None else None,
    )
