"""
=============================================================================
THREAD POOL
=============================================================================

Bounded pool of worker threads fed by a bounded queue of connections.

=============================================================================
WHY NOT ONE THREAD PER CONNECTION?
=============================================================================

"Spawn a thread for every accept()" is the simplest concurrency model, and
it works until a burst of clients (or a pile of idle ones, since reads
have no timeout by default) spawns thousands of threads.

The pool keeps the same contract (one worker owns one connection from
first byte to close) but caps the damage:

    ┌─────────────────────────────────────────────────────────────────────┐
    │                                                                      │
    │   accept loop ──► submit() ──► [ queue (queue_size) ] ──► workers   │
    │                       │                                  (min..max) │
    │                       │                                              │
    │                       └── queue full? block (backpressure)          │
    │                                                                      │
    │   All workers busy and work waiting? spawn one more, up to max.     │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

When the queue is full the accept loop stops accepting and new clients
wait in the kernel's listen backlog instead of in our memory.

=============================================================================
WORKER SHUTDOWN: THE POISON PILL
=============================================================================

shutdown() puts one None per worker on the queue. A worker that pulls
None exits its loop. Because the queue is FIFO, every real task queued
before the pills is still processed.

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
    """Worker thread states, for monitoring."""
    IDLE = "idle"        # Waiting for a task
    BUSY = "busy"        # Executing a task
    STOPPED = "stopped"  # Thread exited


@dataclass
class Task:
    """
    A deferred function call: "call func(*args, **kwargs) later".

    submitted_at is kept so the worker can log how long the task queued.
    """
    func: Callable[..., Any]
    args: tuple = ()
    kwargs: dict = field(default_factory=dict)
    submitted_at: float = field(default_factory=time.time)


class Worker(threading.Thread):
    """
    Worker thread that processes tasks from the queue.

        loop:
            task = queue.get()
            None?  → exit
            run task, log (never propagate) any exception
            queue.task_done()
    """

    def __init__(
        self,
        task_queue: queue.Queue,
        worker_id: int,
        idle_timeout: float = 60.0,
        on_busy: Optional[Callable[[], None]] = None
    ):
        super().__init__(name=f"Worker-{worker_id}", daemon=True)

        self.task_queue = task_queue
        self.worker_id = worker_id
        self.idle_timeout = idle_timeout
        self.on_busy = on_busy

        self.state = WorkerState.IDLE
        self._shutdown = threading.Event()

        self.tasks_completed = 0
        self.tasks_failed = 0

    def run(self):
        logger.debug(f"Worker {self.worker_id} started")

        while not self._shutdown.is_set():
            try:
                task = self.task_queue.get(timeout=self.idle_timeout)
            except queue.Empty:
                continue

            try:
                if task is None:
                    break
                self._execute_task(task)
            finally:
                self.task_queue.task_done()

        self.state = WorkerState.STOPPED
        logger.debug(f"Worker {self.worker_id} stopped")

    def _execute_task(self, task: Task):
        """
        Execute a single task.

        A failing task must not take the worker down with it: the
        exception is logged with its traceback and the worker moves on.
        """
        self.state = WorkerState.BUSY
        if self.on_busy:
            self.on_busy()

        start_time = time.time()
        waited = start_time - task.submitted_at

        try:
            task.func(*task.args, **task.kwargs)
            elapsed = time.time() - start_time
            logger.debug(
                f"Worker {self.worker_id} completed task in {elapsed:.3f}s "
                f"(queued {waited:.3f}s)"
            )
            self.tasks_completed += 1
        except Exception as e:
            elapsed = time.time() - start_time
            logger.exception(f"Worker {self.worker_id} task failed after {elapsed:.3f}s: {e}")
            self.tasks_failed += 1
        finally:
            self.state = WorkerState.IDLE

    def shutdown(self):
        """Signal the worker to stop after its current task."""
        self._shutdown.set()


class ThreadPool:
    """
    Thread pool for concurrent connection handling.

        pool = ThreadPool(min_workers=4, max_workers=32, queue_size=128)
        pool.start()
        pool.submit(process_connection, args=(conn,))
        pool.shutdown(wait=True, timeout=5.0)
    """

    def __init__(
        self,
        min_workers: int = 4,
        max_workers: int = 32,
        queue_size: int = 128,
        idle_timeout: float = 60.0
    ):
        """
        Args:
            min_workers: Workers created at start().
            max_workers: Hard cap on workers.
            queue_size: Tasks allowed to wait for a worker.
            idle_timeout: Seconds an idle worker waits before re-checking
                          its shutdown flag.
        """
        self.min_workers = min_workers
        self.max_workers = max_workers
        self.max_queue_size = queue_size
        self.idle_timeout = idle_timeout

        self._task_queue: queue.Queue = queue.Queue(maxsize=queue_size)
        self._workers: list = []
        self._lock = threading.Lock()

        self._started = False
        self._shutdown = False
        self._next_worker_id = 0

    def start(self):
        """Start the pool with min_workers threads."""
        if self._started:
            return

        logger.info(f"Starting thread pool with {self.min_workers} workers (max {self.max_workers})")

        self._shutdown = False
        with self._lock:
            for _ in range(self.min_workers):
                self._add_worker()

        self._started = True

    def _add_worker(self) -> Worker:
        """Create and start one worker. Caller holds self._lock."""
        worker = Worker(
            task_queue=self._task_queue,
            worker_id=self._next_worker_id,
            idle_timeout=self.idle_timeout,
            on_busy=self._maybe_scale_up,
        )
        self._next_worker_id += 1
        self._workers.append(worker)
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
        Submit a task for execution.

        Args:
            func: The function to execute.
            args: Positional arguments.
            kwargs: Keyword arguments.
            block: Wait for queue space when the queue is full.
            queue_timeout: How long to wait for space (None = forever).

        Returns:
            True if queued, False if the queue stayed full.

        Raises:
            RuntimeError: If the pool is not started or is shutting down.
        """
        if not self._started:
            raise RuntimeError("Thread pool not started")
        if self._shutdown:
            raise RuntimeError("Thread pool is shutting down")

        task = Task(func=func, args=args, kwargs=kwargs or {})

        try:
            self._task_queue.put(task, block=block, timeout=queue_timeout)
        except queue.Full:
            return False

        self._maybe_scale_up()
        return True

    def _maybe_scale_up(self):
        """
        Add a worker if queued work outnumbers idle workers.

        Runs after every submit and whenever a worker turns BUSY. A worker
        that has dequeued a task but not yet flagged itself BUSY is
        miscounted as idle; its own BUSY transition re-runs the check.

        Workers are never scaled down; the pool settles at the peak
        concurrency it has seen, bounded by max_workers.
        """
        if self._shutdown:
            return

        with self._lock:
            idle = sum(1 for w in self._workers if w.state == WorkerState.IDLE)
            if self._task_queue.qsize() > idle and len(self._workers) < self.max_workers:
                logger.debug(f"Scaling up: {len(self._workers)} -> {len(self._workers) + 1} workers")
                self._add_worker()

    def shutdown(self, wait: bool = True, timeout: Optional[float] = None):
        """
        Shutdown the thread pool.

        Args:
            wait: Wait for queued tasks to drain before stopping workers.
            timeout: Upper bound on that wait, in seconds.
        """
        if not self._started:
            return

        logger.info("Shutting down thread pool...")
        self._shutdown = True

        if wait:
            deadline = time.time() + timeout if timeout else None
            while not self._task_queue.empty():
                if deadline and time.time() > deadline:
                    logger.warning("Shutdown timeout, forcing stop")
                    break
                time.sleep(0.05)

        for _ in self._workers:
            try:
                self._task_queue.put(None, block=False)
            except queue.Full:
                pass  # Workers also watch their shutdown flag

        for worker in self._workers:
            worker.shutdown()

        # One 2s budget for all joins; a worker blocked in a task is left behind
        join_deadline = time.time() + 2.0
        for worker in self._workers:
            worker.join(timeout=max(0.0, join_deadline - time.time()))
            if worker.is_alive():
                logger.warning(f"Worker {worker.worker_id} still busy, abandoning it")

        with self._lock:
            self._workers.clear()
        self._started = False
        logger.info("Thread pool shutdown complete")

    @property
    def worker_count(self) -> int:
        return len(self._workers)

    @property
    def busy_workers(self) -> int:
        return sum(1 for w in self._workers if w.state == WorkerState.BUSY)

    @property
    def pending(self) -> int:
        """Tasks waiting for a worker."""
        return self._task_queue.qsize()

    @property
    def stats(self) -> dict:
        """Worker and task counts, for monitoring."""
        return {
            "workers": {
                "total": len(self._workers),
                "busy": self.busy_workers,
                "max": self.max_workers,
            },
            "tasks": {
                "pending": self.pending,
                "completed": sum(w.tasks_completed for w in self._workers),
                "failed": sum(w.tasks_failed for w in self._workers),
            },
        }
