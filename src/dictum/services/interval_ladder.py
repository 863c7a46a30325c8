"""Interval ladders shared by word mastery and bidirectional reviews."""
import math
from abc import ABC, abstractmethod
from datetime import timedelta
from typing import Dict


class IntervalLadder(ABC):
    """Maps a rung and a pass/fail signal to the delay until the next review."""

    @abstractmethod
    def interval(self, rung: int, is_correct: bool) -> timedelta:
        """Delay before the next review of an item sitting on `rung`."""
        raise NotImplementedError("Subclasses must implement this method")


class TableLadder(IntervalLadder):
    """Fixed table of delays per rung, with one delay for every failure."""

    def __init__(self, steps: Dict[int, int], beyond: int, on_failure: int):
        if not steps:
            raise ValueError("Ladder needs at least one step")
        self.steps = {rung: timedelta(seconds=seconds) for rung, seconds in steps.items()}
        self.beyond = timedelta(seconds=beyond)
        self.on_failure = timedelta(seconds=on_failure)
        self.top = max(steps)

    def interval(self, rung: int, is_correct: bool) -> timedelta:
        if rung < 1:
            raise ValueError(f"Rungs are 1-based, got {rung}")
        if not is_correct:
            return self.on_failure
        if rung > self.top:
            return self.beyond
        return self.steps[rung]


class MultiplierLadder(IntervalLadder):
    """Whole-day delays growing with the rung up to a capped multiplier."""

    def __init__(
        self,
        correct_days: int = 2,
        incorrect_days: int = 1,
        growth: float = 1.5,
        max_multiplier: float = 7,
    ):
        self.correct_days = correct_days
        self.incorrect_days = incorrect_days
        self.growth = growth
        self.max_multiplier = max_multiplier

    def first_interval(self, is_correct: bool) -> timedelta:
        return timedelta(days=self.correct_days if is_correct else self.incorrect_days)

    def interval(self, rung: int, is_correct: bool) -> timedelta:
        base = self.correct_days if is_correct else self.incorrect_days
        multiplier = min(rung * self.growth, self.max_multiplier)
        return timedelta(days=math.ceil(base * multiplier))
