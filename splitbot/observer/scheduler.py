"""Poller: every interval, enqueue a synchronization for each open managed PR.

Webhook deliveries can be lost; the periodic pass makes every managed pull
request converge eventually.
"""

import logging
import threading

from splitbot.errors import InvariantViolation
from splitbot.matcher import Managed
from splitbot.tasks.context import TaskContext
from splitbot.tasks.synchronize_managed import synchronize_managed

LOG = logging.getLogger("splitbot.observer.scheduler")


def run_scheduled(ctx: TaskContext, stop: threading.Event | None = None) -> int:
    """One poll: enqueue managed synchronizations. Returns how many were enqueued."""
    enqueued = 0
    for pr in ctx.adapter.list_prs(ctx.repo, state="open"):
        if stop is not None and stop.is_set():
            break
        try:
            role = ctx.matcher.classify(pr)
        except InvariantViolation as e:
            LOG.error("%s", e)
            continue
        if isinstance(role, Managed):
            ctx.scheduler.enqueue(synchronize_managed(ctx, pr.number), f"scheduled update of {pr}")
            enqueued += 1
    return enqueued


class Poller:
    """Daemon thread calling run_scheduled every ``interval_seconds``."""

    def __init__(self, ctx: TaskContext) -> None:
        self._ctx = ctx
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None

    def start(self) -> threading.Thread:
        cfg = self._ctx.config.scheduler
        LOG.info("Poller: delay=%ss interval=%ss", cfg.delay_seconds, cfg.interval_seconds)
        self._thread = threading.Thread(target=self._loop, name="splitbot-poller", daemon=True)
        self._thread.start()
        return self._thread

    def stop(self, timeout: float | None = None) -> None:
        self._stop.set()
        if self._thread:
            self._thread.join(timeout)

    def join(self) -> None:
        if self._thread:
            self._thread.join()

    def _loop(self) -> None:
        cfg = self._ctx.config.scheduler
        if self._stop.wait(cfg.delay_seconds):
            return
        while not self._stop.is_set():
            try:
                count = run_scheduled(self._ctx, self._stop)
                LOG.info("Poller: enqueued %s managed pull requests", count)
            except Exception as e:
                LOG.exception("Poller tick error: %s", e)
            self._stop.wait(cfg.interval_seconds)
