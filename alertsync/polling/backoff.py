"""Exponential backoff with jitter."""

import math
import random
from typing import Callable

Jitter = Callable[[float, float], float]


class Backoff:
    """
    Exponential backoff with jitter, capped at a maximum.

    Each call to next_delay() returns the delay for the current failure and
    doubles the base for the next one. reset() returns to the initial interval.
    The attempt number counts doublings, so it stops rising once the cap is hit.
    """

    def __init__(
        self,
        initial: float = 1.0,
        maximum: float = 30.0,
        jitter_ratio: float = 0.3,
        rng: Jitter = random.uniform,
    ):
        self.initial = initial
        self.maximum = maximum
        self.jitter_ratio = jitter_ratio
        self._rng = rng
        self.current = initial

    def reset(self) -> None:
        self.current = self.initial

    def next_delay(self) -> tuple[int, float]:
        """Return (attempt, delay) for this failure and grow the interval."""
        attempt = int(math.log2(self.current / self.initial)) + 1
        jitter = self._rng(0, self.jitter_ratio) * self.current
        delay = min(self.current + jitter, self.maximum)
        self.current = min(self.current * 2, self.maximum)
        return attempt, delay
