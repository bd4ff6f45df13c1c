# tspool

`tspool` is a task pool that runs on threads. Callables you submit run on a
set of worker threads. Work that is waiting sits in a bounded queue, and the
pool can add or remove workers by itself as that queue fills up and drains.

The package uses only the standard library.

## Modules

- `tspool.pool` contains `TaskPool` and its exceptions.
- `tspool.autoscale` contains `AutoScaleConfig`, `ScaleAction` and
  `AutoScaler`, which is the scaling policy the pool uses.
- `tspool.demo` contains a runnable walkthrough and the `tspool-demo` command.

## Installation

```
pip install .
```

## Usage

```python
from tspool.pool import TaskPool

with TaskPool(min_workers=2, max_workers=8, queue_size=50) as task_pool:
    task_pool.submit(lambda: print("hello from a worker"))

    # Wait at most half a second for this task.
    task_pool.submit(lambda: print("quick job"), timeout=0.5)

    workers, queue_length, max_workers = task_pool.status()
    print(workers, queue_length, max_workers)
```

Entering the `with` block calls `start()`. Leaving it calls `shutdown()`.
`shutdown()` waits until every submitted task has finished, then stops the
workers. After shutdown begins, `submit` raises `PoolShutdownError`.

You can also call `start()` and `shutdown()` yourself:

```python
from tspool.pool import QueueFullError, TaskPool

task_pool = TaskPool(min_workers=1, max_workers=4, queue_size=10)
task_pool.start()
try:
    task_pool.submit(work)
except QueueFullError:
    ...  # back off and try again later
finally:
    task_pool.shutdown()
```

Behaviour of `submit(fn, timeout=0.0, priority=0)`:

- It never blocks. If the queue is full it raises `QueueFullError`.
- Tasks run in the order they were submitted. The `priority` value is stored
  with the task, but it does not change the order.
- A positive `timeout` runs the task on a helper thread. The worker waits
  that many seconds. If the task has not finished by then, the worker logs a
  warning and moves on, and the task keeps running in the background.
- If a task raises an exception, the exception is logged and the worker keeps
  going.

If you leave an option out, or give it a value that is not positive, the
default is used. The defaults are `min_workers=1`, `max_workers=10` and
`queue_size=100`. If `min_workers` is greater than `max_workers`, it is
lowered to `max_workers`.

### Managing workers

- `add_workers(n)` starts up to `n` new workers without going past
  `max_workers`.
- `remove_workers(n)` asks up to `n` workers to exit. It always keeps at
  least one. A worker exits only when it is idle.
- `set_min_workers(minimum)` changes the minimum and starts workers until the
  pool reaches it.
- `set_max_workers(maximum)` changes the maximum and asks any surplus workers
  to exit.
- `status()` returns `(worker_count, queue_length, max_workers)`.
- `detailed_status()` returns a dictionary with these keys:
  - `worker_count`, `min_workers`, `max_workers`
  - `queue_length`, `queue_capacity`, `queue_density`
  - `smoothed_queue_len`, `queue_history`
  - `autoscale_enabled`, `scaling_in_progress`
  - `last_scale_time`, `idle_start_time`
- `monitor(interval)` logs the status every `interval` seconds until the pool
  shuts down.
- `is_shutdown()` reports whether shutdown has begun.
- `is_closed()` reports whether shutdown has finished.

### Auto-scaling

Auto-scaling is on by default. A background thread wakes every
`monitor_interval` seconds and measures queue density, which is the queue
length divided by the number of workers.

- **Scaling up.** The pool adds `scale_up_step` workers when three things are
  true: density is at least `scale_up_threshold`, the pool is below
  `max_workers`, and `scale_up_cooldown` seconds have passed since the last
  scaling.
- **Scaling down.** The pool removes `scale_down_step` workers when four
  things are true: density is at most `scale_down_threshold`, the pool is
  above `min_workers`, the queue has been empty for `idle_timeout` seconds,
  and the `scale_down_cooldown` has passed.

You can set each of these values as a keyword argument:

```python
task_pool = TaskPool(
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
)
```

You can also pass a whole `tspool.autoscale.AutoScaleConfig` as
`autoscale_config`. That object also holds `history_size` and
`smoothing_factor`, which control the smoothed queue length reported by
`detailed_status()`.

While the pool is running:

- The `autoscale_config` property returns a copy of the current configuration.
- `update_autoscale_config(config)` replaces the configuration.
- `enable_autoscale()` and `disable_autoscale()` turn auto-scaling on and off.

When auto-scaling is off, `submit` applies a simpler rule: it adds one worker
when the queue is longer than twice the number of workers, as long as the
pool is below its maximum.

`AutoScaler` does not touch threads, so you can use it on its own. It takes
an optional clock function. `decide(queue_len, current_workers, min_workers,
max_workers)` returns a `ScaleAction`: `UP`, `DOWN` or `NONE`.

### Errors

Every error the pool raises is a subclass of `PoolError`:

- `PoolShutdownError`: the pool is shutting down.
- `PoolClosedError`: the pool is closed.
- `QueueFullError`: the task queue has no free slot.
- `WorkerCountError`: a worker count is out of range. It is also a
  `ValueError`.

## What it does not do

- Tasks run on threads, not processes.
- `submit` returns nothing, so return values are not collected. To get a
  result back, have the task store it or send it on itself.
- A task that passes its timeout is not cancelled. The worker only stops
  waiting for it.

## Demo

```
tspool-demo
```

This command runs a walkthrough that prints to the terminal. It covers:

- keyword options
- basic submission
- timeouts
- burst load
- scaling up under load and scaling down when idle
- shutdown

The walkthrough takes about a minute and a half.

## Running the tests

```
pip install ".[test]"
pytest
```