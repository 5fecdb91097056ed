"""Tests for the single-flight task scheduler."""

import logging
import threading
from typing import Callable, Iterator, List

import pytest

from splitbot.tasks.queue import CancellationToken, Task, TaskCancelled, TaskScheduler, task_message


@pytest.fixture
def scheduler() -> Iterator[TaskScheduler]:
    s = TaskScheduler(name="test-scheduler")
    yield s
    s.stop(timeout=5)


def recording(calls: List[str], label: str) -> Callable[[CancellationToken], None]:
    def run(token: CancellationToken) -> None:
        calls.append(label)

    return run


class TestCancellationToken:
    def test_abort_if_cancelled_raises_after_cancel(self) -> None:
        token = CancellationToken()
        token.abort_if_cancelled()
        token.cancel()
        assert token.cancelled
        with pytest.raises(TaskCancelled):
            token.abort_if_cancelled()

    def test_sleep_returns_when_not_cancelled(self) -> None:
        token = CancellationToken()
        token.sleep(0)
        assert not token.cancelled

    def test_sleep_raises_when_cancelled(self) -> None:
        token = CancellationToken()
        token.cancel()
        with pytest.raises(TaskCancelled):
            token.sleep(5)


class TestTaskScheduler:
    def test_runs_single_task(self, scheduler: TaskScheduler) -> None:
        calls: List[str] = []
        scheduler.start()
        scheduler.enqueue(Task("sync", 1, recording(calls, "T1")), "test")
        assert scheduler.wait_idle(timeout=5)
        assert calls == ["T1"]
        assert scheduler.running is None

    def test_same_identity_coalesces_to_most_recent(self, scheduler: TaskScheduler) -> None:
        """Two (name, 5) tasks queued before the worker picks them: one run, latest closure."""
        calls: List[str] = []
        scheduler.enqueue(Task("sync", 5, recording(calls, "first")), "a")
        scheduler.enqueue(Task("sync", 5, recording(calls, "second")), "b")
        assert [t.number for _, t in scheduler.pending()] == [5]
        scheduler.start()
        assert scheduler.wait_idle(timeout=5)
        assert calls == ["second"]

    def test_requeue_moves_task_to_tail(self, scheduler: TaskScheduler) -> None:
        """T1(10), T2(5), T3(5) => T1 then T3."""
        calls: List[str] = []
        scheduler.enqueue(Task("sync", 10, recording(calls, "T1")), "a")
        scheduler.enqueue(Task("sync", 5, recording(calls, "T2")), "b")
        scheduler.enqueue(Task("sync", 5, recording(calls, "T3")), "c")
        scheduler.start()
        assert scheduler.wait_idle(timeout=5)
        assert calls == ["T1", "T3"]

    def test_different_names_do_not_coalesce(self, scheduler: TaskScheduler) -> None:
        calls: List[str] = []
        scheduler.enqueue(Task("sync", 5, recording(calls, "managed")), "a")
        scheduler.enqueue(Task("review", 5, recording(calls, "review")), "b")
        scheduler.start()
        assert scheduler.wait_idle(timeout=5)
        assert calls == ["managed", "review"]

    def test_running_task_cancelled_by_same_identity(self, scheduler: TaskScheduler) -> None:
        """T1(10) past its first checkpoint, then T2(10) => [T1-partial, T2]."""
        calls: List[str] = []
        started = threading.Event()
        release = threading.Event()

        def long_running(token: CancellationToken) -> None:
            calls.append("T1-start")
            started.set()
            release.wait(5)
            token.abort_if_cancelled()
            calls.append("T1-end")

        scheduler.start()
        scheduler.enqueue(Task("sync", 10, long_running), "first")
        assert started.wait(5)
        scheduler.enqueue(Task("sync", 10, recording(calls, "T2")), "second")
        release.set()
        assert scheduler.wait_idle(timeout=5)
        assert calls == ["T1-start", "T2"]

    def test_other_identity_does_not_cancel_running(self, scheduler: TaskScheduler) -> None:
        calls: List[str] = []
        started = threading.Event()
        release = threading.Event()

        def long_running(token: CancellationToken) -> None:
            started.set()
            release.wait(5)
            token.abort_if_cancelled()
            calls.append("T1-end")

        scheduler.start()
        scheduler.enqueue(Task("sync", 10, long_running), "first")
        assert started.wait(5)
        scheduler.enqueue(Task("sync", 11, recording(calls, "T2")), "second")
        release.set()
        assert scheduler.wait_idle(timeout=5)
        assert calls == ["T1-end", "T2"]

    def test_failure_does_not_block_queue(self, scheduler: TaskScheduler, caplog: pytest.LogCaptureFixture) -> None:
        calls: List[str] = []

        def boom(token: CancellationToken) -> None:
            raise RuntimeError("boom")

        scheduler.enqueue(Task("sync", 1, boom), "a")
        scheduler.enqueue(Task("sync", 2, recording(calls, "after")), "b")
        with caplog.at_level(logging.INFO, logger="splitbot.tasks.queue"):
            scheduler.start()
            assert scheduler.wait_idle(timeout=5)
        assert calls == ["after"]
        assert any("Failed task" in r.message and r.exc_info for r in caplog.records)

    def test_logs_requeue(self, scheduler: TaskScheduler, caplog: pytest.LogCaptureFixture) -> None:
        with caplog.at_level(logging.INFO, logger="splitbot.tasks.queue"):
            scheduler.enqueue(Task("sync", 5, recording([], "a")), "first")
            scheduler.enqueue(Task("sync", 5, recording([], "b")), "second")
        messages = [r.getMessage() for r in caplog.records]
        assert any("already in queue -> requeue" in m for m in messages)

    def test_stop_drops_queued_tasks(self) -> None:
        calls: List[str] = []
        s = TaskScheduler()
        s.enqueue(Task("sync", 1, recording(calls, "never")), "a")
        s.stop(timeout=1)
        assert s.pending() == []
        assert calls == []


def test_task_message_format() -> None:
    task = Task("synchronize_managed", 7, recording([], "x"))
    assert task_message(task, "scheduled", "Start task") == "Start task    | [PR-7] synchronize_managed | scheduled"
