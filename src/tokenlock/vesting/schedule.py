"""
Unlock schedule resolution.

Pure functions over a plan, the release time and "now". Step percents are
incremental: the vested percent at a moment is the sum of the percents of
every step whose absolute time has been reached. This module is the only
place that computes it.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, NamedTuple, Optional

from tokenlock.core import config

from .plans import LockPlan


@dataclass(frozen=True)
class VestingStatus:
    percent_vested: int
    next_unlock_time: Optional[int] = None
    next_unlock_percent: int = 0

    @property
    def fully_vested(self) -> bool:
        return self.percent_vested >= config.PERCENT_DENOMINATOR


class TimelineEntry(NamedTuple):
    unlock_time: int
    percent: int
    cumulative_percent: int


NOT_STARTED = VestingStatus(percent_vested=0)


def resolve_vested(plan: LockPlan, now: int, release_time: Optional[int]) -> VestingStatus:
    """
    Vested percent of ``plan`` at ``now`` and the next pending step.

    A step whose absolute time equals ``now`` counts as elapsed. With no
    release time, or an undefined plan, nothing is vested and nothing is
    pending.
    """
    if release_time is None or not plan.steps:
        return NOT_STARTED

    vested = 0
    for step in plan.steps:
        unlock_time = release_time + step.offset
        if unlock_time > now:
            return VestingStatus(
                percent_vested=vested,
                next_unlock_time=unlock_time,
                next_unlock_percent=step.percent,
            )
        vested += step.percent
    return VestingStatus(percent_vested=vested)


def vested_amount(locked: int, percent_vested: int) -> int:
    """Share of ``locked`` unlocked at ``percent_vested``, truncated."""
    return locked * percent_vested // config.PERCENT_DENOMINATOR


def unlock_timeline(plan: LockPlan, release_time: int) -> List[TimelineEntry]:
    """Absolute unlock times of every step with running totals."""
    timeline = []
    cumulative = 0
    for step in plan.steps:
        cumulative += step.percent
        timeline.append(TimelineEntry(release_time + step.offset, step.percent, cumulative))
    return timeline
