import threading

import pytest

from tspool.demo import (
    CustomTask,
    basic_task_demo,
    format_status,
    manual_worker_demo,
    submit_batch,
)
from tspool.pool import QueueFullError, TaskPool


def test_custom_task_execute_prints_identity(capsys):
    task = CustomTask(id=7, name="job", priority=3, data={"k": 1})
    task.execute()
    out = capsys.readouterr().out
    assert "Executing custom task: ID=7, Name=job, Priority=3" in out


def test_custom_task_defaults():
    task = CustomTask(id=1, name="x")
    assert task.priority == 0
    assert task.data is None


def test_format_status_renders_all_fields():
    status = {
        "worker_count": 2,
        "min_workers": 1,
        "max_workers": 5,
        "queue_length": 4,
        "queue_capacity": 20,
        "queue_density": 2.0,
        "smoothed_queue_len": 1.25,
    }
    text = format_status(status)
    assert "Workers: 2/1/5" in text
    assert "Queue: 4/20" in text
    assert "Density: 2.00" in text
    assert "Smoothed Queue: 1.2" in text


def test_format_status_accepts_pool_snapshot():
    with TaskPool(min_workers=1, max_workers=5, queue_size=20, autoscale_enabled=False) as pool:
        text = format_status(pool.detailed_status())
    assert "Queue: 0/20" in text
    assert "/1/5," in text


def test_submit_batch_runs_every_task():
    results = []
    lock = threading.Lock()

    def make(i):
        def body():
            with lock:
                results.append(i)

        return body

    tasks = [make(i) for i in range(7)]
    with TaskPool(min_workers=2, max_workers=2, queue_size=50, autoscale_enabled=False) as pool:
        submit_batch(pool, tasks, 3)
    assert sorted(results) == list(range(7))
    assert pool.is_closed() is True
    assert pool.status() == (0, 0, 2)


def test_submit_batch_rejects_non_positive_batch_size():
    with TaskPool(min_workers=1, max_workers=1, autoscale_enabled=False) as pool:
        with pytest.raises(ValueError):
            submit_batch(pool, [lambda: None], 0)


def test_submit_batch_reports_failing_index():
    gate = threading.Event()
    pool = TaskPool(min_workers=1, max_workers=1, queue_size=2, autoscale_enabled=False)
    pool.start()
    try:
        with pytest.raises(QueueFullError, match="at index") as excinfo:
            submit_batch(pool, [gate.wait] * 5, 5)
        assert isinstance(excinfo.value.__cause__, QueueFullError)
    finally:
        gate.set()
        pool.shutdown()
    assert pool.is_closed()


def test_basic_task_demo_runs_all_tasks():
    with TaskPool(min_workers=10, max_workers=10, queue_size=50, autoscale_enabled=False) as pool:
        completed = basic_task_demo(pool)
    assert completed == 10


def test_manual_worker_demo_adds_two_and_removes_one():
    with TaskPool(min_workers=1, max_workers=10, queue_size=50, autoscale_enabled=False) as pool:
        before, after = manual_worker_demo(pool)
    assert before[0] == 1
    assert after[0] == before[0] + 1
    assert after[2] == before[2] == 10
    assert after[1] == 0