from __future__ import annotations
from datetime import date, time
from typing import Sequence, TypeVar
from pydantic import BaseModel, Field

from .models import BalanceSnapshot, PositionSnapshot

T = TypeVar("T", BalanceSnapshot, PositionSnapshot)


def _seconds(t: time) -> float:
    return t.hour * 3600 + t.minute * 60 + t.second + t.microsecond / 1_000_000


def closest(candidates: Sequence[T], target: time) -> T:
    """Nearest candidate to `target` in a sequence sorted ascending by time.

    The distance is unimodal over a sorted sequence, so the scan stops at the
    first strict increase. Ties move forward to the later candidate.
    """
    want = _seconds(target)
    best = candidates[0]
    best_dist = abs(want - _seconds(best.time_retrieved))
    for cand in candidates[1:]:
        dist = abs(want - _seconds(cand.time_retrieved))
        if dist > best_dist:
            break
        best, best_dist = cand, dist
    return best


def _sorted_insert(seq: list[T], item: T) -> None:
    seq.append(item)
    # stable: equal times keep insertion order
    seq.sort(key=lambda s: s.time_retrieved)


class BalanceDay(BaseModel):
    day: date
    start_of_day: BalanceSnapshot
    intraday: list[BalanceSnapshot] = Field(default_factory=list)

    def insert(self, snapshot: BalanceSnapshot) -> bool:
        """Add an intraday snapshot. Returns False when the exact snapshot is already stored."""
        if snapshot in self.intraday:
            return False
        _sorted_insert(self.intraday, snapshot)
        return True

    def most_recent(self) -> BalanceSnapshot:
        return self.intraday[-1] if self.intraday else self.start_of_day

    def first(self) -> BalanceSnapshot:
        return self.intraday[0] if self.intraday else self.start_of_day

    def closest_to(self, target: time) -> BalanceSnapshot:
        # Anchor goes first; re-sorting is a no-op unless an intraday snapshot predates it.
        candidates = sorted([self.start_of_day, *self.intraday], key=lambda s: s.time_retrieved)
        return closest(candidates, target)


class PositionDay(BaseModel):
    day: date
    symbol: str
    snapshots: list[PositionSnapshot] = Field(default_factory=list)

    def insert(self, snapshot: PositionSnapshot) -> bool:
        if snapshot in self.snapshots:
            return False
        _sorted_insert(self.snapshots, snapshot)
        return True

    def most_recent(self) -> PositionSnapshot:
        return self.snapshots[-1]

    def first(self) -> PositionSnapshot:
        return self.snapshots[0]

    def closest_to(self, target: time) -> PositionSnapshot:
        return closest(self.snapshots, target)
