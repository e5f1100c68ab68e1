"""CLI interface for the review scheduler.

Usage:
    python -m srs_cli add CARD_ID [--kind quiz]          Initialize a card, due today
    python -m srs_cli review CARD_ID --swipe right       Apply a flashcard swipe
    python -m srs_cli review CARD_ID --correct           Apply a quiz answer
    python -m srs_cli show CARD_ID                       Show a card's schedule
    python -m srs_cli due                                List cards due today
    python -m srs_cli stats                              Show due statistics
    python -m srs_cli cleanup-locks                      Remove expired card locks
"""

import argparse
import asyncio
import logging

from scheduler.config import local_today, settings
from scheduler.database import async_session, engine, init_db
from scheduler.errors import CardExists, CardNotFound, LockUnavailable, PersistenceError, ValidationError
from scheduler.srs.coordinator import ReviewCoordinator
from scheduler.srs.locks import CardLocker, SqlLockBackend
from scheduler.srs.quality import ReviewAction, SwipeDirection
from scheduler.srs.queue import QueueConfig, build_queue, review_stats
from scheduler.srs.sm2 import CardState, difficulty_level, format_interval, initial_state
from scheduler.srs.store import SqlCardStore


async def ensure_db() -> None:
    """Create tables if they don't exist."""
    await init_db(engine)


def render_card(state: CardState) -> str:
    lines = [
        f"  {state.card_id} ({state.kind})",
        f"  {'Next due:':<20} {state.next_due_date}",
        f"  {'Interval:':<20} {format_interval(state.interval)}",
        f"  {'Repetitions:':<20} {state.repetitions}",
        f"  {'Easiness:':<20} {state.easiness_factor:.2f} ({difficulty_level(state.easiness_factor)})",
        f"  {'Streak:':<20} {state.streak}",
        f"  {'Lapses:':<20} {state.lapses}",
    ]
    if state.last_reviewed_date is not None:
        lines.append(f"  {'Last reviewed:':<20} {state.last_reviewed_date} (quality {state.quality_rating})")
    return "\n".join(lines)


async def cmd_add(args: argparse.Namespace) -> int:
    """Initialize a card with the default schedule."""
    await ensure_db()
    store = SqlCardStore(async_session)
    initial = initial_state(
        args.card_id, local_today(), kind=args.kind, easiness_factor=settings.default_easiness_factor
    )
    try:
        state = await store.add(initial)
    except CardExists:
        print(f"  '{args.card_id}' already exists.")
        return 1
    print("  Added (card ready for review):")
    print(render_card(state))
    return 0


def _action_from_args(args: argparse.Namespace) -> ReviewAction:
    if args.swipe is not None:
        return ReviewAction.swipe(args.swipe)
    return ReviewAction.quiz(args.correct)


async def cmd_review(args: argparse.Namespace) -> int:
    """Apply one review to a card."""
    await ensure_db()
    coordinator = ReviewCoordinator(SqlCardStore(async_session), CardLocker(SqlLockBackend(async_session)))
    try:
        state = await coordinator.review_card(args.card_id, _action_from_args(args))
    except CardNotFound:
        print(f"  No card '{args.card_id}'.")
        return 1
    except (LockUnavailable, PersistenceError):
        print("  Could not save your review. Please try again.")
        return 2
    except ValidationError as exc:
        print(f"  {exc}")
        return 1
    print(render_card(state))
    print(f"\n  Next review in {format_interval(state.interval)}\n")
    return 0


async def cmd_show(args: argparse.Namespace) -> int:
    """Show one card's schedule."""
    await ensure_db()
    try:
        state = await SqlCardStore(async_session).get(args.card_id)
    except CardNotFound:
        print(f"  No card '{args.card_id}'.")
        return 1
    print(render_card(state))
    return 0


async def cmd_due(args: argparse.Namespace) -> int:
    """List today's review queue."""
    await ensure_db()
    today = local_today()
    async with async_session() as db:
        queue = await build_queue(db, today, QueueConfig(max_cards=args.limit))

    if queue.total == 0:
        print("\n  No cards due for review. You're all caught up!")
        return 0

    print(f"\n  {len(queue.due_cards)} due + {len(queue.new_cards)} new = {queue.total} cards\n")
    for card in queue.interleaved():
        label = " (NEW)" if card.last_reviewed_date is None else ""
        print(f"  {card.card_id:<30} due {card.next_due_date}{label}")
    return 0


async def cmd_stats(args: argparse.Namespace) -> int:
    """Show due statistics."""
    await ensure_db()
    async with async_session() as db:
        stats = await review_stats(db, local_today())

    print("\n  Review Statistics")
    print(f"  {'Total cards:':<20} {stats.total_cards}")
    print(f"  {'Due today:':<20} {stats.due_today}")
    print(f"  {'Overdue:':<20} {stats.overdue}")
    print(f"  {'New (unseen):':<20} {stats.new_cards}")
    print(f"  {'Mature (5+ reps):':<20} {stats.mature_cards}")
    print(f"  {'Next due:':<20} {stats.next_due_date or '-'}")
    for level, count in stats.difficulty.items():
        print(f"  {level.capitalize() + ':':<20} {count}")
    print()
    return 0


async def cmd_cleanup_locks(args: argparse.Namespace) -> int:
    """Delete expired lock rows left behind by crashed processes."""
    await ensure_db()
    removed = await SqlLockBackend(async_session).cleanup_expired()
    print(f"  Removed {removed} expired locks")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="srs_cli",
        description="SM-2 review scheduler",
    )
    parser.add_argument("-v", "--verbose", action="store_true")
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # add
    add_parser = subparsers.add_parser("add", help="Initialize a card")
    add_parser.add_argument("card_id", help="Card identifier")
    add_parser.add_argument("--kind", choices=["flashcard", "quiz"], default="flashcard")

    # review
    review_parser = subparsers.add_parser("review", help="Review a card")
    review_parser.add_argument("card_id", help="Card identifier")
    answer = review_parser.add_mutually_exclusive_group(required=True)
    answer.add_argument("--swipe", choices=[d.value for d in SwipeDirection], help="Flashcard swipe")
    answer.add_argument("--correct", dest="correct", action="store_true", default=None, help="Quiz: correct")
    answer.add_argument("--incorrect", dest="correct", action="store_false", default=None, help="Quiz: incorrect")

    # show
    show_parser = subparsers.add_parser("show", help="Show a card's schedule")
    show_parser.add_argument("card_id", help="Card identifier")

    # due
    due_parser = subparsers.add_parser("due", help="List cards due for review")
    due_parser.add_argument("--limit", type=int, default=50, help="Max cards to list")

    # stats
    subparsers.add_parser("stats", help="Show due statistics")

    # cleanup-locks
    subparsers.add_parser("cleanup-locks", help="Remove expired card locks")

    return parser


def main(argv: list[str] | None = None) -> int:
    """Entry point for the review scheduler CLI."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.verbose:
        logging.basicConfig(level=logging.DEBUG)
    else:
        logging.basicConfig(level=logging.WARNING)

    if not args.command:
        parser.print_help()
        return 0

    cmd_map = {
        "add": cmd_add,
        "review": cmd_review,
        "show": cmd_show,
        "due": cmd_due,
        "stats": cmd_stats,
        "cleanup-locks": cmd_cleanup_locks,
    }

    async def run() -> int:
        try:
            return await cmd_map[args.command](args)
        finally:
            await engine.dispose()

    return asyncio.run(run())


if __name__ == "__main__":
    raise SystemExit(main())
