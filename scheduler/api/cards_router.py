"""API routes for card initialization and reviews."""

from datetime import date

from fastapi import APIRouter, Depends, HTTPException

from scheduler.api.dependencies import get_card_store, get_coordinator, get_today
from scheduler.api.schemas import CardCreateRequest, CardResponse, ReviewRequest
from scheduler.config import settings
from scheduler.errors import CardExists, CardNotFound, LockUnavailable, PersistenceError, ValidationError
from scheduler.srs.coordinator import ReviewCoordinator
from scheduler.srs.quality import ReviewAction
from scheduler.srs.sm2 import initial_state
from scheduler.srs.store import CardStore

router = APIRouter(prefix="/api/cards", tags=["cards"])

TRY_AGAIN = "Could not save your review. Please try again."


@router.post("", response_model=CardResponse, status_code=201)
async def create_card(
    request: CardCreateRequest,
    store: CardStore = Depends(get_card_store),
    today: date = Depends(get_today),
) -> CardResponse:
    """Initialize a card with the default schedule, due today."""
    try:
        state = await store.add(
            initial_state(request.card_id, today, kind=request.kind, easiness_factor=settings.default_easiness_factor)
        )
    except CardExists as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc
    except PersistenceError as exc:
        raise HTTPException(status_code=503, detail=TRY_AGAIN) from exc
    return CardResponse.from_state(state)


@router.get("/{card_id}", response_model=CardResponse)
async def get_card(
    card_id: str,
    store: CardStore = Depends(get_card_store),
) -> CardResponse:
    """Get a card's current schedule."""
    try:
        state = await store.get(card_id)
    except CardNotFound as exc:
        raise HTTPException(status_code=404, detail="Card not found") from exc
    except PersistenceError as exc:
        raise HTTPException(status_code=503, detail=TRY_AGAIN) from exc
    return CardResponse.from_state(state)


@router.post("/{card_id}/review", response_model=CardResponse)
async def review_card(
    card_id: str,
    request: ReviewRequest,
    coordinator: ReviewCoordinator = Depends(get_coordinator),
    today: date = Depends(get_today),
) -> CardResponse:
    """Apply a swipe or quiz answer. Repeating it the same day returns the card unchanged."""
    action = ReviewAction(direction=request.direction, correct=request.correct)
    try:
        state = await coordinator.review_card(card_id, action, today=today)
    except ValidationError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc
    except CardNotFound as exc:
        raise HTTPException(status_code=404, detail="Card not found") from exc
    except LockUnavailable as exc:
        raise HTTPException(status_code=503, detail=TRY_AGAIN, headers={"Retry-After": "1"}) from exc
    except PersistenceError as exc:
        raise HTTPException(status_code=503, detail=TRY_AGAIN) from exc
    return CardResponse.from_state(state)
