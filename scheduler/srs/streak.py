from typing import NamedTuple

from scheduler.srs.quality import is_passing


class StreakUpdate(NamedTuple):
    streak: int
    lapses: int


def update_streak_and_lapses(quality: float, streak: int, lapses: int) -> StreakUpdate:
    """Advance the streak on a pass; on a fail reset it and record a lapse.

    Lapses only ever grow; downstream analytics rely on that.
    """
    if is_passing(quality):
        return StreakUpdate(streak=streak + 1, lapses=lapses)
    return StreakUpdate(streak=0, lapses=lapses + 1)
