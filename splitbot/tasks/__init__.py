"""Reconciliation tasks and the scheduler that runs them."""

from splitbot.tasks.queue import CancellationToken, Task, TaskCancelled, TaskScheduler

__all__ = ["CancellationToken", "Task", "TaskCancelled", "TaskScheduler"]
