"""A bounded worker pool with manual and automatic scaling."""

from __future__ import annotations

import contextlib
import dataclasses
import logging
import threading
from collections import deque
from typing import Any, Callable, NamedTuple

from tspool.autoscale import AutoScaleConfig, AutoScaler, ScaleAction

_DEFAULT_MIN_WORKERS = 1
_DEFAULT_MAX_WORKERS = 10
_DEFAULT_QUEUE_SIZE = 100


class PoolError(RuntimeError):
    """Base class for errors raised by the task pool."""


class PoolShutdownError(PoolError):
    """The pool is shutting down and accepts no more work."""


class PoolClosedError(PoolError):
    """The pool has been closed."""


class QueueFullError(PoolError):
    """The task queue has no room for another task."""


class WorkerCountError(PoolError, ValueError):
    """A worker count request cannot be honoured."""


class _Task(NamedTuple):
    fn: Callable[[], Any]
    timeout: float
    priority: int


def _positive_or(value: float | None, default: float) -> float:
    return value if value is not None and value > 0 else default


class TaskPool:
    """A pool of worker threads draining a bounded task queue."""

    def __init__(
        self,
        *,
        min_workers: int | None = None,
        max_workers: int | None = None,
        queue_size: int | None = None,
        autoscale_config: AutoScaleConfig | None = None,
        logger: logging.Logger | None = None,
        autoscale_enabled: bool | None = None,
        scale_up_threshold: float | None = None,
        scale_down_threshold: float | None = None,
        scale_up_step: int | None = None,
        scale_down_step: int | None = None,
        scale_up_cooldown: float | None = None,
        scale_down_cooldown: float | None = None,
        idle_timeout: float | None = None,
        monitor_interval: float | None = None,
    ) -> None:
        self._min_workers = int(_positive_or(min_workers, _DEFAULT_MIN_WORKERS))
        self._max_workers = int(_positive_or(max_workers, _DEFAULT_MAX_WORKERS))
        self._queue_size = int(_positive_or(queue_size, _DEFAULT_QUEUE_SIZE))
        self._logger = logger if logger is not None else logging.getLogger(__name__)

        config = autoscale_config if autoscale_config is not None else AutoScaleConfig()
        if autoscale_enabled is not None:
            config.enable_autoscale = autoscale_enabled
        config.scale_up_threshold = _positive_or(scale_up_threshold, config.scale_up_threshold)
        config.scale_down_threshold = _positive_or(
            scale_down_threshold, config.scale_down_threshold
        )
        config.scale_up_step = int(_positive_or(scale_up_step, config.scale_up_step))
        config.scale_down_step = int(_positive_or(scale_down_step, config.scale_down_step))
        config.scale_up_cooldown = _positive_or(scale_up_cooldown, config.scale_up_cooldown)
        config.scale_down_cooldown = _positive_or(
            scale_down_cooldown, config.scale_down_cooldown
        )
        config.idle_timeout = _positive_or(idle_timeout, config.idle_timeout)
        config.monitor_interval = _positive_or(monitor_interval, config.monitor_interval)

        if self._min_workers > self._max_workers:
            self._min_workers = self._max_workers

        self._cond = threading.Condition(threading.RLock())
        self._tasks: deque[_Task] = deque()
        self._outstanding = 0
        self._worker_count = 0
        self._removals = 0
        self._control_capacity = self._max_workers

        self._shutdown = False
        self._closed = False
        self._cancelled = False
        self._stop = threading.Event()

        self._scaling = threading.Lock()
        self._scaler = AutoScaler(config)
        self._autoscale_thread: threading.Thread | None = None

    # -- configuration -----------------------------------------------------

    @property
    def min_workers(self) -> int:
        """Lower bound on the number of workers."""
        return self._min_workers

    @property
    def max_workers(self) -> int:
        """Upper bound on the number of workers."""
        return self._max_workers

    @property
    def queue_size(self) -> int:
        """Capacity of the task queue."""
        return self._queue_size

    @property
    def logger(self) -> logging.Logger:
        """The logger the pool reports to."""
        return self._logger

    # -- lifecycle ---------------------------------------------------------

    def start(self) -> None:
        """Start the initial workers and, if enabled, the auto-scaling monitor."""
        with self._cond:
            if self._closed:
                return
            initial = self._min_workers or 1
            for _ in range(initial):
                self._start_worker()
            if self._scaler.config.enable_autoscale:
                self._start_autoscale_monitor()
            self._logger.info(
                "Worker pool started, initial workers: %d, minimum workers: %d, "
                "maximum workers: %d",
                initial,
                self._min_workers,
                self._max_workers,
            )

    def shutdown(self) -> None:
        """Wait for every submitted task, then stop all workers."""
        with self._cond:
            if self._closed:
                return
            self._shutdown = True
        self._logger.info(
            "Starting to shut down worker pool, waiting for all tasks to complete..."
        )
        with self._cond:
            self._cond.wait_for(lambda: self._outstanding == 0)
            self._cancelled = True
            self._stop.set()
            self._cond.notify_all()
            self._cond.wait_for(lambda: self._worker_count == 0)
            self._closed = True
        self._logger.info("Worker pool has been safely shut down")

    def __enter__(self) -> TaskPool:
        self.start()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.shutdown()

    def is_shutdown(self) -> bool:
        """True once shutdown has begun."""
        return self._shutdown

    def is_closed(self) -> bool:
        """True once shutdown has finished."""
        return self._closed

    # -- tasks -------------------------------------------------------------

    def submit(self, fn: Callable[[], Any], timeout: float = 0.0, priority: int = 0) -> None:
        """Queue ``fn`` for execution; a positive ``timeout`` bounds the wait for it."""
        if self._shutdown:
            raise PoolShutdownError("worker pool is shutting down, cannot submit new tasks")
        if self._closed:
            raise PoolClosedError("worker pool is closed, cannot submit new tasks")
        with self._cond:
            if self._cancelled:
                raise PoolClosedError("worker pool is closed")
            if len(self._tasks) >= self._queue_size:
                raise QueueFullError("task queue is full")
            self._tasks.append(_Task(fn, timeout, priority))
            self._outstanding += 1
            self._cond.notify_all()
        self._legacy_autoscale()

    def _legacy_autoscale(self) -> None:
        if self._scaler.config.enable_autoscale:
            return
        with self._cond:
            queue_len = len(self._tasks)
            workers = self._worker_count
        if queue_len > workers * 2 and workers < self._max_workers:
            with contextlib.suppress(PoolError):
                self.add_workers(1)

    def _execute(self, task: _Task) -> None:
        try:
            if task.timeout > 0:
                runner = threading.Thread(
                    target=self._run, args=(task.fn,), daemon=True, name="tspool-task"
                )
                runner.start()
                runner.join(task.timeout)
                if runner.is_alive():
                    self._logger.warning("Task execution timeout: %ss", task.timeout)
            else:
                self._run(task.fn)
        finally:
            with self._cond:
                self._outstanding -= 1
                self._cond.notify_all()

    def _run(self, fn: Callable[[], Any]) -> None:
        try:
            fn()
        except Exception:
            self._logger.exception("Task raised an exception")

    # -- workers -----------------------------------------------------------

    def _start_worker(self) -> None:
        with self._cond:
            self._worker_count += 1
        threading.Thread(target=self._worker_loop, daemon=True, name="tspool-worker").start()

    def _worker_loop(self) -> None:
        try:
            while True:
                with self._cond:
                    self._cond.wait_for(
                        lambda: self._cancelled or self._removals > 0 or bool(self._tasks)
                    )
                    if self._cancelled:
                        return
                    if self._removals > 0:
                        self._removals -= 1
                        return
                    task = self._tasks.popleft()
                self._execute(task)
        finally:
            with self._cond:
                self._worker_count -= 1
                self._cond.notify_all()

    def _signal_removals(self, n: int) -> None:
        available = max(self._control_capacity - self._removals, 0)
        self._removals += min(n, available)
        self._cond.notify_all()

    def add_workers(self, n: int) -> None:
        """Start up to ``n`` more workers, never passing the maximum."""
        if n <= 0:
            raise WorkerCountError("worker count must be greater than 0")
        if self._shutdown:
            raise PoolShutdownError("worker pool is shutting down, cannot add workers")
        with self._cond:
            current = self._worker_count
            if current + n > self._max_workers:
                n = self._max_workers - current
            if n <= 0:
                raise WorkerCountError("maximum worker count reached")
            for _ in range(n):
                self._start_worker()
            self._logger.info(
                "Added %d workers, current worker count: %d", n, self._worker_count
            )

    def remove_workers(self, n: int) -> None:
        """Ask up to ``n`` workers to exit, always keeping at least one."""
        if n <= 0:
            raise WorkerCountError("worker count must be greater than 0")
        with self._cond:
            current = self._worker_count
            if current <= 1:
                raise WorkerCountError("at least one worker must be kept")
            if n >= current:
                n = current - 1
            self._signal_removals(n)
            self._logger.info(
                "Requested to remove %d workers, current worker count: %d",
                n,
                self._worker_count,
            )

    def set_min_workers(self, minimum: int) -> None:
        """Change the minimum, starting workers to reach it if needed."""
        with self._cond:
            if minimum <= 0:
                raise WorkerCountError("minimum worker count must be greater than 0")
            if minimum > self._max_workers:
                raise WorkerCountError(
                    "minimum worker count cannot be greater than maximum worker count"
                )
            self._min_workers = minimum
            needed = minimum - self._worker_count
            if needed > 0:
                for _ in range(needed):
                    self._start_worker()
                self._logger.info("Added workers to minimum count: %d", minimum)

    def set_max_workers(self, maximum: int) -> None:
        """Change the maximum, asking surplus workers to exit if needed."""
        with self._cond:
            if maximum <= 0:
                raise WorkerCountError("maximum worker count must be greater than 0")
            if maximum < self._min_workers:
                raise WorkerCountError(
                    "maximum worker count cannot be less than minimum worker count"
                )
            self._max_workers = maximum
            excess = self._worker_count - maximum
            if excess > 0:
                with contextlib.suppress(PoolError):
                    self.remove_workers(excess)
                self._logger.info("Reduced workers to maximum count: %d", maximum)

    # -- status ------------------------------------------------------------

    def status(self) -> tuple[int, int, int]:
        """Return (worker count, queue length, maximum workers)."""
        with self._cond:
            return self._worker_count, len(self._tasks), self._max_workers

    def detailed_status(self) -> dict[str, Any]:
        """Return a snapshot of the pool and its scaling state."""
        with self._cond:
            workers = self._worker_count
            queue_len = len(self._tasks)
            density = queue_len / workers if workers > 0 else 0.0
            return {
                "worker_count": workers,
                "min_workers": self._min_workers,
                "max_workers": self._max_workers,
                "queue_length": queue_len,
                "queue_capacity": self._queue_size,
                "queue_density": density,
                "smoothed_queue_len": self._scaler.smoothed_queue_length(),
                "autoscale_enabled": self._scaler.config.enable_autoscale,
                "last_scale_time": self._scaler.last_scale_time,
                "idle_start_time": self._scaler.idle_start_time,
                "scaling_in_progress": self._scaling.locked(),
                "queue_history": self._scaler.history,
            }

    def monitor(self, interval: float) -> None:
        """Log the pool status every ``interval`` seconds until shutdown."""
        if interval <= 0:
            raise ValueError("monitor interval must be positive")

        def loop() -> None:
            while not self._stop.wait(interval):
                workers, queue_len, max_workers = self.status()
                if not self._closed:
                    self._logger.info(
                        "Worker pool status - Current workers: %d, Queue length: %d, "
                        "Max workers: %d",
                        workers,
                        queue_len,
                        max_workers,
                    )

        threading.Thread(target=loop, daemon=True, name="tspool-monitor").start()

    # -- auto-scaling ------------------------------------------------------

    @property
    def autoscale_config(self) -> AutoScaleConfig:
        """A copy of the current auto-scaling configuration."""
        with self._cond:
            return dataclasses.replace(self._scaler.config)

    def update_autoscale_config(self, config: AutoScaleConfig | None) -> None:
        """Replace the auto-scaling configuration; ``None`` is ignored."""
        with self._cond:
            if config is not None:
                self._scaler.config = config
                self._logger.info("Auto-scaling configuration updated")

    def enable_autoscale(self) -> None:
        """Turn auto-scaling on, starting the monitor if the pool is open."""
        with self._cond:
            config = self._scaler.config
            if config.enable_autoscale:
                return
            if not self._closed:
                self._start_autoscale_monitor()
            config.enable_autoscale = True
            self._logger.info("Auto-scaling enabled")

    def disable_autoscale(self) -> None:
        """Turn auto-scaling off."""
        with self._cond:
            config = self._scaler.config
            if config.enable_autoscale:
                config.enable_autoscale = False
                self._logger.info("Auto-scaling disabled")

    def _start_autoscale_monitor(self) -> None:
        if self._autoscale_thread is not None and self._autoscale_thread.is_alive():
            return
        interval = self._scaler.config.monitor_interval
        if interval <= 0:
            raise ValueError("monitor interval must be positive")
        self._autoscale_thread = threading.Thread(
            target=self._autoscale_loop, args=(interval,), daemon=True, name="tspool-autoscale"
        )
        self._autoscale_thread.start()

    def _autoscale_loop(self, interval: float) -> None:
        while not self._stop.wait(interval):
            if self._scaler.config.enable_autoscale:
                self._perform_autoscale()

    def _perform_autoscale(self) -> None:
        if not self._scaling.acquire(blocking=False):
            return
        try:
            with self._cond:
                if self._closed:
                    return
                workers = self._worker_count
                action = self._scaler.decide(
                    len(self._tasks), workers, self._min_workers, self._max_workers
                )
                if action is ScaleAction.UP:
                    self._scale_up(workers)
                elif action is ScaleAction.DOWN:
                    self._scale_down(workers)
        finally:
            self._scaling.release()

    def _scale_up(self, workers: int) -> None:
        n = self._scaler.scale_up_count(workers, self._max_workers)
        if n <= 0:
            return
        for _ in range(n):
            self._start_worker()
        self._scaler.mark_scaled()
        self._logger.debug(
            "Auto scale-up: added %d workers, current worker count: %d",
            n,
            self._worker_count,
        )

    def _scale_down(self, workers: int) -> None:
        n = self._scaler.scale_down_count(workers, self._min_workers)
        if n <= 0:
            return
        self._signal_removals(n)
        self._scaler.mark_scaled()
        self._logger.debug(
            "Auto scale-down: removed %d workers, current worker count: %d",
            n,
            self._worker_count,
        )