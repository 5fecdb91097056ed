"""Shared builders for tests."""

from typing import Iterable
from unittest.mock import MagicMock

from splitbot.adapters.base import GitPlatformAdapter
from splitbot.config import AppConfig, BotConfig, ReconcileConfig
from splitbot.matcher import RoleMatcher
from splitbot.models import BranchRef, PullRequest
from splitbot.tasks.context import TaskContext

MANAGE = "Splitbot: Managed Review"
TEAM = "Splitbot: Review Requested"


def make_pr(
    number: int,
    labels: Iterable[str] = (),
    state: str = "open",
    head: str = "feature",
    base: str = "main",
    head_sha: str = "h" * 40,
    base_sha: str = "b" * 40,
    title: str = "Big change",
    merged: bool = False,
) -> PullRequest:
    return PullRequest(
        number=number,
        title=title,
        body="Description",
        author="jane",
        state=state,
        base=BranchRef(ref=base, sha=base_sha),
        head=BranchRef(ref=head, sha=head_sha),
        labels=frozenset(labels),
        merged=merged,
    )


def make_config(**reconcile: object) -> AppConfig:
    return AppConfig(
        bot=BotConfig(repository="owner/repo", name="splitbot[bot]"),
        reconcile=ReconcileConfig(parent_retry_delay_seconds=0, **reconcile),
    )


def make_adapter() -> MagicMock:
    adapter = MagicMock(spec=GitPlatformAdapter)
    # no .github/splitbot.yml: default labels
    adapter.get_file_content.return_value = None
    return adapter


def make_context(adapter: MagicMock | None = None, config: AppConfig | None = None) -> TaskContext:
    adapter = adapter or make_adapter()
    config = config or make_config()
    return TaskContext(
        adapter=adapter,
        config=config,
        matcher=RoleMatcher(adapter, config),
        scheduler=MagicMock(),
    )
