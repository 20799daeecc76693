"""
=============================================================================
THREAD POOL
=============================================================================

Every accepted connection becomes one task. Most tasks are short (read a
request, write a response, close), but a task serving a streamed resource
holds its worker until the client disconnects or the stream is closed.

=============================================================================
WHY THE POOL MUST GROW
=============================================================================

With a fixed pool of N workers, N open streams would starve every other
client: new connections would queue forever behind workers parked in
wait_for_disconnect().

    Workers: [stream A] [stream B]        Queue: [GET /x] [GET /y]
                 ▲          ▲                        │
                 └──── parked indefinitely ──────────┘ never served

So the pool tracks how many tasks are waiting and how many workers are
free, and spawns a worker whenever a new task would otherwise have to
wait, up to max_workers.

    submit():  pending += 1
               idle < pending  →  add a worker
    worker:    got a task      →  pending -= 1, idle -= 1
               task done       →  idle += 1

Both counters are updated under the pool lock, so "idle >= pending"
means every waiting task has a free worker on its way to it.

=============================================================================
"""

import threading
import queue
import time
import logging
from typing import Callable, Optional, Any
from dataclasses import dataclass, field
from enum import Enum


logger = logging.getLogger(__name__)


class WorkerState(Enum):
    """Worker thread states."""
    IDLE = "idle"
    BUSY = "busy"
    STOPPED = "stopped"


@dataclass
class Task:
    """
    A deferred call: run ``func(*args, **kwargs)`` on some worker.

    Attributes:
        func: The function to execute.
        args: Positional arguments.
        kwargs: Keyword arguments.
        submitted_at: When the task was queued, for the debug log.
    """
    func: Callable[..., Any]
    args: tuple = ()
    kwargs: dict = field(default_factory=dict)
    submitted_at: float = field(default_factory=time.time)


class Worker(threading.Thread):
    """
    Worker thread that runs tasks from the shared queue.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                        Worker Loop                                   │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   1. Wait for a task (wake up every idle_timeout to check stop)     │
    │   2. None is the poison pill → exit                                 │
    │   3. Tell the pool a task started, run it, tell the pool it ended   │
    │   4. Exceptions are logged; the worker keeps going                   │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

    Daemon thread: a test process never hangs on a worker still parked
    on a stream.
    """

    def __init__(self, pool: "ThreadPool", worker_id: int, idle_timeout: float = 1.0):
        super().__init__(name=f"httptestserver-worker-{worker_id}", daemon=True)
        self.pool = pool
        self.worker_id = worker_id
        self.idle_timeout = idle_timeout
        self.state = WorkerState.IDLE

        self._shutdown = threading.Event()


    def run(self):
        logger.debug(f"Worker {self.worker_id} started")

        while not self._shutdown.is_set():
            try:
                task = self.pool._task_queue.get(timeout=self.idle_timeout)
            except queue.Empty:
                continue

            if task is None:
                self.pool._task_queue.task_done()
                break

            self.pool._task_started()
            self.state = WorkerState.BUSY
            try:
                self._execute_task(task)
            finally:
                self.state = WorkerState.IDLE
                self.pool._task_finished()
                self.pool._task_queue.task_done()

        self.state = WorkerState.STOPPED
        logger.debug(f"Worker {self.worker_id} stopped")

    def _execute_task(self, task: Task):
        start_time = time.time()
        waited = start_time - task.submitted_at
        try:
            task.func(*task.args, **task.kwargs)
            logger.debug(
                f"Worker {self.worker_id} completed task in "
                f"{time.time() - start_time:.3f}s (queued {waited:.3f}s)"
            )
        except Exception as e:
            logger.exception(
                f"Worker {self.worker_id} task failed after "
                f"{time.time() - start_time:.3f}s: {e}"
            )

    def shutdown(self):
        """Signal the worker to stop after its current task."""
        self._shutdown.set()


class ThreadPool:
    """
    Growing thread pool for connection tasks.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                      ThreadPool Usage                                │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   pool = ThreadPool(min_workers=2, max_workers=64)                  │
    │   pool.start()                                                       │
    │   pool.submit(handler.handle, args=(conn,))                         │
    │   pool.shutdown(wait=True, timeout=5.0)                             │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘
    """

    def __init__(
        self,
        min_workers: int = 2,
        max_workers: int = 64,
        queue_size: int = 128,
        idle_timeout: float = 1.0
    ):
        """
        Args:
            min_workers: Workers created by start().
            max_workers: Upper bound the pool grows to.
            queue_size: Maximum number of queued tasks; 0 means unbounded.
            idle_timeout: How often idle workers check for shutdown.
        """
        if min_workers < 1:
            raise ValueError("min_workers must be at least 1")
        if max_workers < min_workers:
            raise ValueError("max_workers must be >= min_workers")

        self.min_workers = min_workers
        self.max_workers = max_workers
        self.max_queue_size = queue_size
        self.idle_timeout = idle_timeout

        # None is the poison pill
        self._task_queue: queue.Queue[Optional[Task]] = queue.Queue(maxsize=queue_size)

        self._workers: list[Worker] = []
        self._lock = threading.Lock()
        self._started = False
        self._shutdown = False
        self._next_worker_id = 0

        # Guarded by _lock
        self._pending = 0
        self._idle = 0

    def start(self):
        """Create the initial min_workers workers."""
        if self._started:
            return

        logger.info(f"Starting thread pool with {self.min_workers} workers")

        with self._lock:
            for _ in range(self.min_workers):
                self._add_worker()

        self._started = True

    def _add_worker(self) -> Worker:
        """Spawn one worker. Caller holds _lock."""
        worker = Worker(self, self._next_worker_id, idle_timeout=self.idle_timeout)
        self._next_worker_id += 1
        self._workers.append(worker)
        self._idle += 1
        worker.start()
        return worker

    def submit(
        self,
        func: Callable[..., Any],
        args: tuple = (),
        kwargs: Optional[dict] = None,
        block: bool = True,
        queue_timeout: Optional[float] = None
    ) -> bool:
        """
        Queue a task.

        Args:
            func: The function to execute.
            args: Positional arguments.
            kwargs: Keyword arguments.
            block: Whether to wait for room when the queue is full.
            queue_timeout: How long to wait for room.

        Returns:
            True if the task was queued, False if the queue was full.

        Raises:
            RuntimeError: If the pool is not started or is shutting down.
        """
        if not self._started:
            raise RuntimeError("Thread pool not started")
        if self._shutdown:
            raise RuntimeError("Thread pool is shutting down")

        task = Task(func=func, args=args, kwargs=kwargs or {})

        with self._lock:
            self._pending += 1
            self._maybe_scale_up()

        try:
            self._task_queue.put(task, block=block, timeout=queue_timeout)
            return True
        except queue.Full:
            with self._lock:
                self._pending -= 1
            return False

    def _maybe_scale_up(self):
        """Add a worker if a waiting task has no free worker. Caller holds _lock."""
        if self._idle < self._pending and len(self._workers) < self.max_workers:
            logger.debug(
                f"Scaling up: {len(self._workers)} -> {len(self._workers) + 1} workers"
            )
            self._add_worker()
        elif self._idle < self._pending:
            logger.warning(
                f"All {self.max_workers} workers busy, {self._pending} task(s) waiting"
            )

    def _task_started(self):
        with self._lock:
            self._pending -= 1
            self._idle -= 1

    def _task_finished(self):
        with self._lock:
            self._idle += 1

    def shutdown(self, wait: bool = True, timeout: Optional[float] = None):
        """
        Stop the pool.

        ┌─────────────────────────────────────────────────────────────────┐
        │                    shutdown() Flow                               │
        ├─────────────────────────────────────────────────────────────────┤
        │                                                                  │
        │   1. Reject new tasks                                            │
        │   2. Send one poison pill per worker (queued behind real tasks) │
        │      or, if the queue is full, set the worker's stop event      │
        │   3. If wait: join workers until the shared deadline            │
        │                                                                  │
        └─────────────────────────────────────────────────────────────────┘

        Workers still busy when the deadline passes are left running;
        they are daemon threads and exit with the process.

        Args:
            wait: Whether to wait for workers to finish.
            timeout: Total seconds to wait; None waits forever.
        """
        if not self._started or self._shutdown:
            return

        logger.info("Shutting down thread pool...")
        self._shutdown = True

        with self._lock:
            workers = list(self._workers)

        for worker in workers:
            try:
                self._task_queue.put(None, timeout=0.1)
            except queue.Full:
                worker.shutdown()

        if wait:
            deadline = None if timeout is None else time.time() + timeout
            for worker in workers:
                remaining = None if deadline is None else max(deadline - time.time(), 0)
                worker.join(timeout=remaining)
                if worker.is_alive():
                    logger.warning(
                        f"Worker {worker.worker_id} still {worker.state.value} at shutdown"
                    )

        self._started = False
        logger.info("Thread pool shutdown complete")

