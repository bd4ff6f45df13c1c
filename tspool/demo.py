"""Runnable walkthrough of the task pool: submission, timeouts, scaling, shutdown."""

from __future__ import annotations

import argparse
import logging
import random
import threading
import time
from dataclasses import dataclass
from typing import Any, Callable, Iterable, Mapping, Sequence

from tspool.autoscale import AutoScaleConfig
from tspool.pool import PoolError, TaskPool


@dataclass
class CustomTask:
    """A task carrying its own identity and payload."""

    id: int
    name: str
    priority: int = 0
    data: Any = None

    def execute(self) -> None:
        """Announce the task and simulate a short piece of work."""
        print(
            f"Executing custom task: ID={self.id}, Name={self.name}, "
            f"Priority={self.priority}"
        )
        time.sleep(0.1)


def submit_batch(
    pool: TaskPool, tasks: Sequence[Callable[[], Any]], batch_size: int
) -> None:
    """Submit ``tasks`` in batches of ``batch_size`` with a short pause between batches.

    The first failed submission is raised again, naming the index it failed at.
    """
    if batch_size <= 0:
        raise ValueError("batch size must be greater than 0")
    for start in range(0, len(tasks), batch_size):
        for index, task in enumerate(tasks[start : start + batch_size], start):
            try:
                pool.submit(task)
            except PoolError as err:
                raise type(err)(
                    f"batch task submission failed at index {index}: {err}"
                ) from err
        time.sleep(0.01)


def format_status(status: Mapping[str, Any]) -> str:
    """Render a detailed status snapshot as a one-line summary."""
    return (
        f"📊 Pool Status - Workers: {status['worker_count']}/"
        f"{status['min_workers']}/{status['max_workers']}, "
        f"Queue: {status['queue_length']}/{status['queue_capacity']}, "
        f"Density: {status['queue_density']:.2f}, "
        f"Smoothed Queue: {status['smoothed_queue_len']:.1f}"
    )


def _submit_tracked(
    pool: TaskPool,
    jobs: Iterable[tuple[int, Callable[[], None]]],
    label: str,
    pause: Callable[[int], float] | None = None,
) -> tuple[list[threading.Event], list[int]]:
    """Submit jobs, returning one completion event per job and a completion log."""
    events: list[threading.Event] = []
    completed: list[int] = []
    lock = threading.Lock()

    for task_id, body in jobs:
        done = threading.Event()
        events.append(done)

        def run(task_id: int = task_id, body: Callable[[], None] = body,
                done: threading.Event = done) -> None:
            try:
                body()
                with lock:
                    completed.append(task_id)
            finally:
                done.set()

        try:
            pool.submit(run)
        except PoolError as err:
            print(f"{label} {task_id} submission failed: {err}")
            done.set()
        if pause is not None:
            time.sleep(pause(task_id))
    return events, completed


def _wait_all(events: Iterable[threading.Event]) -> None:
    for event in events:
        event.wait()


def basic_task_demo(pool: TaskPool) -> int:
    """Submit ten simple tasks, wait for them and return how many ran."""

    def make(task_id: int) -> Callable[[], None]:
        def body() -> None:
            print(f"Executing task {task_id} (thread ID: {threading.get_ident()})")
            time.sleep(random.randrange(1000) / 1000)

        return body

    events, completed = _submit_tracked(
        pool, ((i, make(i)) for i in range(10)), "Task"
    )
    _wait_all(events)
    print("All basic tasks completed")
    return len(completed)


def manual_worker_demo(pool: TaskPool) -> tuple[tuple[int, int, int], tuple[int, int, int]]:
    """Add two workers, run a few tasks, remove one; return status before and after."""
    before = pool.status()
    workers, queue_len, max_workers = before
    print(
        f"Current status: workers={workers}, queue length={queue_len}, "
        f"max workers={max_workers}"
    )

    print("Manually adding 2 workers...")
    try:
        pool.add_workers(2)
    except PoolError as err:
        print(f"Failed to add workers: {err}")

    time.sleep(0.5)

    for task_id in range(5):
        def body(task_id: int = task_id) -> None:
            print(f"Manual adjustment test task {task_id}")
            time.sleep(0.2)

        try:
            pool.submit(body)
        except PoolError as err:
            print(f"Task {task_id} submission failed: {err}")

    time.sleep(1.0)

    print("Manually removing 1 worker...")
    try:
        pool.remove_workers(1)
    except PoolError as err:
        print(f"Failed to remove workers: {err}")

    time.sleep(0.5)

    after = pool.status()
    workers, queue_len, max_workers = after
    print(
        f"Status after adjustment: workers={workers}, queue length={queue_len}, "
        f"max workers={max_workers}"
    )
    return before, after


def timeout_task_demo(pool: TaskPool) -> bool:
    """Submit a normal task and one that overruns its timeout.

    Returns whether the normal task finished within the demo's wait.
    """
    normal_done = threading.Event()

    def normal() -> None:
        print("Normal task started execution")
        time.sleep(0.5)
        print("Normal task execution completed")
        normal_done.set()

    def slow() -> None:
        print("Timed-out task started execution")
        time.sleep(2.0)
        print("Timed-out task execution completed")

    print("Submitting normal task (no timeout)...")
    try:
        pool.submit(normal)
    except PoolError as err:
        print(f"Normal task submission failed: {err}")

    print("Submitting timed-out task (1 second timeout, actual execution 2 seconds)...")
    try:
        pool.submit(slow, timeout=1.0)
    except PoolError as err:
        print(f"Timed-out task submission failed: {err}")

    time.sleep(2.5)
    return normal_done.is_set()


def burst_load_demo(pool: TaskPool) -> int:
    """Submit a burst of 25 tasks in quick succession; return how many ran."""
    print("Simulating burst high load...")

    def make(task_id: int) -> Callable[[], None]:
        def body() -> None:
            print(f"Burst load task {task_id} executing")
            time.sleep((random.randrange(1500) + 800) / 1000)

        return body

    events, completed = _submit_tracked(
        pool, ((i, make(i)) for i in range(25)), "Burst task", pause=lambda _: 0.05
    )

    print("Waiting for burst load handling and auto-scaling...")
    time.sleep(6.0)
    _wait_all(events)
    print("Burst load handling completed")
    return len(completed)


def auto_scale_demo(pool: TaskPool) -> int:
    """Submit fifteen long tasks to push the pool into scaling; return how many ran."""
    print("Submitting medium number of tasks to trigger auto-scaling...")

    def make(task_id: int) -> Callable[[], None]:
        def body() -> None:
            print(f"Auto-scaling test task {task_id} executing")
            time.sleep((random.randrange(2000) + 1000) / 1000)

        return body

    # The first ten go in quickly to raise the queue density.
    events, completed = _submit_tracked(
        pool,
        ((i, make(i)) for i in range(15)),
        "Task",
        pause=lambda task_id: 0.1 if task_id < 10 else 0.5,
    )

    print("Waiting for auto-scaling to trigger...")
    time.sleep(8.0)
    _wait_all(events)
    print("Auto-scaling demo tasks completed")
    return len(completed)


def idle_scale_down_demo(pool: TaskPool) -> tuple[int, int, int]:
    """Submit a few tasks, then stay idle so the pool can shrink; return the final status."""
    print("Stopping new task submissions, observing auto-scaling...")

    for task_id in range(3):
        def body(task_id: int = task_id) -> None:
            print(f"Idle scale-down test task {task_id} executing")
            time.sleep(0.5)

        try:
            pool.submit(body)
        except PoolError as err:
            print(f"Task {task_id} submission failed: {err}")

    print("Waiting for idle time to reach threshold and trigger auto-scaling...")
    time.sleep(15.0)
    print("Idle scale-down demo completed")
    return pool.status()


def _status_monitor(pool: TaskPool, interval: float = 3.0) -> None:
    while True:
        time.sleep(interval)
        if pool.is_closed():
            return
        print(format_status(pool.detailed_status()))


def _options_demo() -> None:
    print("\n--- Demo 0: Keyword Options ---")

    options_pool = TaskPool(
        min_workers=2, max_workers=6, queue_size=30, autoscale_enabled=True
    )
    options_pool2 = TaskPool(
        min_workers=1, max_workers=4, logger=logging.getLogger("tspool.demo")
    )
    advanced_pool = TaskPool(
        min_workers=2,
        max_workers=8,
        queue_size=50,
        scale_up_threshold=1.5,
        scale_down_threshold=0.3,
        scale_up_step=2,
        scale_down_step=1,
        scale_up_cooldown=2.0,
        scale_down_cooldown=5.0,
        idle_timeout=3.0,
        monitor_interval=1.0,
        autoscale_enabled=True,
    )

    config = advanced_pool.autoscale_config
    print(
        f"Advanced pool config - ScaleUpThreshold: {config.scale_up_threshold:.1f}, "
        f"ScaleDownThreshold: {config.scale_down_threshold:.1f}, "
        f"ScaleUpStep: {config.scale_up_step}"
    )

    for pool in (options_pool, options_pool2, advanced_pool):
        pool.start()

    for task_id in range(3):
        try:
            options_pool.submit(
                lambda task_id=task_id: print(f"Options pool task {task_id} executing")
            )
        except PoolError as err:
            print(f"Failed to submit task: {err}")

    time.sleep(0.2)

    workers, queue_len, max_workers = options_pool.status()
    print(
        f"Options pool status: Workers={workers}, Queue={queue_len}, "
        f"MaxWorkers={max_workers}"
    )

    for pool in (options_pool, options_pool2, advanced_pool):
        pool.shutdown()

    print("Options demo completed\n")


def main(argv: Sequence[str] | None = None) -> int:
    """Run every demo in turn against a single auto-scaling pool."""
    parser = argparse.ArgumentParser(
        prog="tspool-demo",
        description="Walk through the task pool's features.",
    )
    parser.parse_args(argv)
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")

    print("=== Worker Pool (TSPool) Demo ===")
    _options_demo()

    config = AutoScaleConfig(
        scale_up_threshold=1.5,
        scale_up_cooldown=3.0,
        scale_up_step=2,
        scale_down_threshold=0.3,
        scale_down_cooldown=8.0,
        scale_down_step=1,
        idle_timeout=10.0,
        monitor_interval=2.0,
        history_size=10,
        smoothing_factor=0.3,
        enable_autoscale=True,
    )
    pool = TaskPool(
        min_workers=2,
        max_workers=10,
        queue_size=50,
        autoscale_config=config,
        logger=logging.getLogger("tspool"),
    )
    pool.start()

    threading.Thread(
        target=_status_monitor, args=(pool,), daemon=True, name="tspool-demo-status"
    ).start()

    print("\n--- Demo 1: Basic Task Submission ---")
    basic_task_demo(pool)

    print("\n--- Demo 2: Intelligent Auto-Scaling Test ---")
    auto_scale_demo(pool)

    print("\n--- Demo 3: Task Timeout Functionality ---")
    timeout_task_demo(pool)

    print("\n--- Demo 4: Burst Load Handling ---")
    burst_load_demo(pool)

    print("\n--- Demo 5: Load Reduction and Scale-Down ---")
    idle_scale_down_demo(pool)

    time.sleep(5.0)

    print("\n--- Demo 6: Intelligent Auto-Scaling ---")
    auto_scale_demo(pool)

    time.sleep(5.0)

    print("\n--- Demo 7: Safe Worker Pool Shutdown ---")
    pool.shutdown()

    print("\n--- Demo 7: Task Submission After Shutdown ---")
    try:
        pool.submit(lambda: print("This task will not be executed"))
    except PoolError as err:
        print(f"Expected error: {err}")

    print("\n=== Demo Complete ===")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())