"""API routes for due-status statistics and the review queue."""

from dataclasses import asdict
from datetime import date

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from scheduler.api.dependencies import get_today
from scheduler.api.schemas import CardResponse, DueCardsResponse, ReviewStatsResponse
from scheduler.database import get_session
from scheduler.srs.queue import QueueConfig, build_queue, review_stats

router = APIRouter(prefix="/api/stats", tags=["stats"])


@router.get("", response_model=ReviewStatsResponse)
async def get_review_stats(
    db: AsyncSession = Depends(get_session),
    today: date = Depends(get_today),
) -> ReviewStatsResponse:
    """Get due, overdue and maturity counts across all cards."""
    stats = await review_stats(db, today)
    return ReviewStatsResponse(**asdict(stats))


@router.get("/due", response_model=DueCardsResponse)
async def get_due_cards(
    limit: int = Query(default=50, ge=1, le=500),
    db: AsyncSession = Depends(get_session),
    today: date = Depends(get_today),
) -> DueCardsResponse:
    """Get today's review queue: due reviews with new cards mixed in."""
    queue = await build_queue(db, today, QueueConfig(max_cards=limit))
    return DueCardsResponse(
        today=today,
        total=queue.total,
        due_cards=len(queue.due_cards),
        new_cards=len(queue.new_cards),
        cards=[CardResponse.from_state(c) for c in queue.interleaved()],
    )
