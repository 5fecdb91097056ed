"""Clone the configured repository into a throw-away working copy."""

import logging
from contextlib import contextmanager
from typing import Iterator

from splitbot.adapters.base import GitPlatformAdapter
from splitbot.config import AppConfig
from splitbot.services.git.working_copy import WorkingCopy


@contextmanager
def cloned(
    adapter: GitPlatformAdapter,
    config: AppConfig,
    branch: str,
    depth: int,
    log: logging.Logger | None = None,
) -> Iterator[WorkingCopy]:
    """Yield a fresh clone of ``branch`` (with bot identity); removed on exit."""
    url = adapter.get_clone_url(config.bot.repository)
    wc = WorkingCopy.clone(
        url,
        branch,
        depth=depth,
        bot_name=config.bot.name,
        bot_email=config.bot.email,
        log=log,
        timeout=config.reconcile.git_timeout_seconds,
    )
    try:
        yield wc
    finally:
        wc.close()
