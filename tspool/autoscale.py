"""Auto-scaling policy for the task pool.

The :class:`AutoScaler` holds the scaling state (queue history, last scale
time, idle start time) and decides, from a snapshot of the pool, whether the
pool should grow, shrink or stay as it is. It never touches workers itself.
"""

from __future__ import annotations

import enum
import math
import time
from dataclasses import dataclass
from typing import Callable

Clock = Callable[[], float]


@dataclass
class AutoScaleConfig:
    """Tuning knobs for auto-scaling. Durations are in seconds."""

    scale_up_threshold: float = 2.0
    scale_up_cooldown: float = 10.0
    scale_up_step: int = 1

    scale_down_threshold: float = 0.5
    scale_down_cooldown: float = 30.0
    scale_down_step: int = 1
    idle_timeout: float = 60.0

    monitor_interval: float = 5.0
    history_size: int = 12
    smoothing_factor: float = 0.3

    enable_autoscale: bool = True


class ScaleAction(enum.Enum):
    """What the scaler recommends after looking at the pool."""

    NONE = "none"
    UP = "up"
    DOWN = "down"


def _density(queue_len: int, workers: int) -> float:
    """Queue length per worker, with float division semantics for zero workers."""
    if workers:
        return queue_len / workers
    if queue_len:
        return math.copysign(math.inf, queue_len)
    return math.nan


class AutoScaler:
    """Scaling decisions and the state they depend on."""

    def __init__(self, config: AutoScaleConfig | None = None, clock: Clock | None = None) -> None:
        self._config = config if config is not None else AutoScaleConfig()
        self._clock: Clock = clock if clock is not None else time.monotonic
        now = self._clock()
        self._last_scale_time = now
        self._idle_start_time = now
        self._history: list[int] = [0] * max(self._config.history_size, 0)

    @property
    def config(self) -> AutoScaleConfig:
        """The live configuration object."""
        return self._config

    @config.setter
    def config(self, value: AutoScaleConfig) -> None:
        self._config = value

    def record(self, queue_len: int) -> None:
        """Append a queue length sample, dropping the oldest when over size."""
        self._history.append(queue_len)
        if len(self._history) > self._config.history_size:
            del self._history[0]

    @property
    def history(self) -> list[int]:
        """A copy of the recorded queue lengths, oldest first."""
        return list(self._history)

    def smoothed_queue_length(self) -> float:
        """Exponential moving average of the recorded queue lengths."""
        if not self._history:
            return 0.0
        first, *rest = self._history
        factor = self._config.smoothing_factor
        smoothed = float(first)
        for value in rest:
            smoothed = factor * value + (1 - factor) * smoothed
        return smoothed

    def should_scale_up(
        self, queue_density: float, current_workers: int, max_workers: int, now: float
    ) -> bool:
        """True when the pool is below its maximum, busy enough and out of cooldown."""
        if current_workers >= max_workers:
            return False
        if queue_density < self._config.scale_up_threshold:
            return False
        if now - self._last_scale_time < self._config.scale_up_cooldown:
            return False
        return True

    def should_scale_down(
        self,
        queue_density: float,
        current_workers: int,
        min_workers: int,
        now: float,
        queue_len: int,
    ) -> bool:
        """True when the pool is above its minimum and has been idle long enough."""
        if current_workers <= min_workers:
            return False
        if queue_density > self._config.scale_down_threshold:
            return False
        if now - self._last_scale_time < self._config.scale_down_cooldown:
            return False
        if queue_len > 0:
            self._idle_start_time = now
            return False
        if now - self._idle_start_time < self._config.idle_timeout:
            return False
        return True

    def decide(
        self, queue_len: int, current_workers: int, min_workers: int, max_workers: int
    ) -> ScaleAction:
        """Record a sample and return the recommended scaling action."""
        self.record(queue_len)
        if queue_len > 0:
            self._idle_start_time = self._clock()
        density = _density(queue_len, current_workers)
        now = self._clock()
        if self.should_scale_up(density, current_workers, max_workers, now):
            return ScaleAction.UP
        if self.should_scale_down(density, current_workers, min_workers, now, queue_len):
            return ScaleAction.DOWN
        return ScaleAction.NONE

    def scale_up_count(self, current_workers: int, max_workers: int) -> int:
        """Workers to add in one scale-up step, never passing the maximum."""
        step = self._config.scale_up_step
        if current_workers + step > max_workers:
            step = max_workers - current_workers
        return max(step, 0)

    def scale_down_count(self, current_workers: int, min_workers: int) -> int:
        """Workers to remove in one scale-down step, never going under the minimum."""
        step = self._config.scale_down_step
        if current_workers - step < min_workers:
            step = current_workers - min_workers
        return max(step, 0)

    def mark_scaled(self) -> None:
        """Note that a scaling operation just happened."""
        self._last_scale_time = self._clock()

    @property
    def last_scale_time(self) -> float:
        """Clock reading of the last scaling operation (or of creation)."""
        return self._last_scale_time

    @property
    def idle_start_time(self) -> float:
        """Clock reading at which the queue was last seen non-empty."""
        return self._idle_start_time