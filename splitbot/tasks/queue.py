"""Single-flight task scheduler with cooperative cancellation.

Webhook deliveries are neither ordered nor deduplicated. Every unit of
reconciliation work is therefore funnelled through one TaskScheduler, which
runs at most one task at a time, coalesces queued tasks that do the same
logical work (same name and pull request number) and cancels a running task
when a newer one of the same identity arrives.

Cancellation is cooperative: tasks call ``token.abort_if_cancelled()`` at
checkpoints before external calls; in-flight calls always complete.
"""

import logging
import threading
from collections import deque
from dataclasses import dataclass
from typing import Callable, Deque, Tuple

LOG = logging.getLogger("splitbot.tasks.queue")


class TaskCancelled(Exception):
    """Raised at a checkpoint of a task whose token was cancelled."""

    pass


class CancellationToken:
    """Cancellation flag owned by the scheduler and handed to one running task."""

    def __init__(self) -> None:
        self._event = threading.Event()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self) -> None:
        self._event.set()

    def abort_if_cancelled(self) -> None:
        if self._event.is_set():
            raise TaskCancelled()

    def sleep(self, seconds: float) -> None:
        """Wait up to ``seconds``; raise TaskCancelled if cancelled meanwhile."""
        self._event.wait(seconds)
        self.abort_if_cancelled()


@dataclass(frozen=True)
class Task:
    """Unit of work; (name, number) is its identity for coalescing."""

    name: str
    number: int
    run: Callable[[CancellationToken], None]

    @property
    def identity(self) -> Tuple[str, int]:
        return (self.name, self.number)


def task_message(task: Task, reason: str, message: str) -> str:
    return f"{message.ljust(14)}| [PR-{task.number}] {task.name} | {reason}"


class TaskScheduler:
    """Runs queued tasks one by one on a worker thread.

    Tasks enqueued before ``start()`` wait (and coalesce) in the queue.
    """

    def __init__(self, name: str = "splitbot-scheduler") -> None:
        self._name = name
        self._cond = threading.Condition()
        self._queue: Deque[Tuple[str, Task]] = deque()
        self._current: Tuple[Task, CancellationToken] | None = None
        self._thread: threading.Thread | None = None
        self._stopping = False

    @property
    def running(self) -> Task | None:
        with self._cond:
            return self._current[0] if self._current else None

    def pending(self) -> list[Tuple[str, Task]]:
        """Snapshot of queued (reason, task) pairs, head first."""
        with self._cond:
            return list(self._queue)

    def enqueue(self, task: Task, reason: str) -> None:
        """Queue ``task``; supersede queued or running work of the same identity."""
        with self._cond:
            before = len(self._queue)
            self._queue = deque(item for item in self._queue if item[1].identity != task.identity)
            if len(self._queue) < before:
                LOG.info(task_message(task, "already in queue -> requeue", "Queue task"))
            if self._current and self._current[0].identity == task.identity:
                LOG.info(task_message(task, "cancel current task -> requeue", "Queue task"))
                self._current[1].cancel()
            self._queue.append((reason, task))
            LOG.info(task_message(task, reason, "Queue task"))
            self._cond.notify_all()

    def start(self) -> None:
        with self._cond:
            if self._thread and self._thread.is_alive():
                return
            self._stopping = False
            self._thread = threading.Thread(target=self._worker, name=self._name, daemon=True)
            self._thread.start()

    def stop(self, timeout: float | None = None) -> None:
        """Cancel the running task, drop queued ones and join the worker."""
        with self._cond:
            self._stopping = True
            self._queue.clear()
            if self._current:
                self._current[1].cancel()
            self._cond.notify_all()
            thread = self._thread
        if thread:
            thread.join(timeout)

    def wait_idle(self, timeout: float | None = None) -> bool:
        """Block until nothing is queued or running. Returns False on timeout."""
        with self._cond:
            return self._cond.wait_for(lambda: not self._queue and self._current is None, timeout)

    def _worker(self) -> None:
        while True:
            with self._cond:
                self._cond.wait_for(lambda: self._stopping or bool(self._queue))
                if self._stopping:
                    return
                reason, task = self._queue.popleft()
                token = CancellationToken()
                self._current = (task, token)
            try:
                self._run(reason, task, token)
            finally:
                with self._cond:
                    self._current = None
                    self._cond.notify_all()

    def _run(self, reason: str, task: Task, token: CancellationToken) -> None:
        LOG.info(task_message(task, reason, "Start task"))
        try:
            token.abort_if_cancelled()
            task.run(token)
        except TaskCancelled:
            LOG.info(task_message(task, reason, "Canceled task"))
        except Exception:
            LOG.exception(task_message(task, reason, "Failed task"))
        LOG.info(task_message(task, reason, "End task"))
