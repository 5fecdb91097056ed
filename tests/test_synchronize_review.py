"""Tests for review drift correction and the closed-review task."""

from typing import Iterator
from unittest.mock import MagicMock, call, patch

import pytest
from helpers import MANAGE, TEAM, make_adapter, make_context, make_pr

from splitbot.errors import NoParentFound
from splitbot.models import Commit
from splitbot.services.git import GitRunnerError
from splitbot.tasks.context import TaskContext
from splitbot.tasks.queue import CancellationToken
from splitbot.tasks.synchronize_managed import TASK_NAME as MANAGED_TASK
from splitbot.tasks.synchronize_review import (
    CLOSED_TASK_NAME,
    correct_drift,
    manual_commits,
    review_closed,
    synchronize_review,
)

BOT = "splitbot[bot]"
REVIEW = make_pr(20, [TEAM], head="feature-team-a")
MANAGED = make_pr(1, [MANAGE], head="feature")


@pytest.fixture
def adapter() -> MagicMock:
    adapter = make_adapter()
    adapter.list_prs.return_value = [MANAGED]
    adapter.list_cross_references.return_value = [20]
    return adapter


@pytest.fixture
def ctx(adapter: MagicMock) -> TaskContext:
    return make_context(adapter)


@pytest.fixture
def git() -> Iterator[MagicMock]:
    wc = MagicMock()
    with patch("splitbot.tasks.synchronize_review.cloned") as cloned, patch(
        "splitbot.tasks.synchronize_review.move_commit"
    ) as move, patch("splitbot.tasks.synchronize_review.remove_commits") as remove:
        cloned.return_value.__enter__.return_value = wc
        wc.cloned = cloned
        wc.move = move
        wc.remove = remove
        yield wc


def test_manual_commits_filters_bot_author() -> None:
    commits = [
        Commit(sha="a", author=BOT),
        Commit(sha="b", author="jane"),
        Commit(sha="c", author=BOT),
        Commit(sha="d", author="joe"),
    ]
    assert [c.sha for c in manual_commits(commits, BOT)] == ["b", "d"]


class TestCorrectDrift:
    def test_no_manual_commits_is_noop(self, ctx: TaskContext, adapter: MagicMock, git: MagicMock) -> None:
        adapter.list_pr_commits.return_value = [Commit(sha="a", author=BOT)]
        assert correct_drift(ctx, REVIEW, CancellationToken()) == 0
        git.cloned.assert_not_called()
        adapter.list_prs.assert_not_called()

    def test_manual_commit_moved_and_removed(self, ctx: TaskContext, adapter: MagicMock, git: MagicMock) -> None:
        adapter.list_pr_commits.return_value = [
            Commit(sha="a" * 40, author=BOT),
            Commit(sha="m" * 40, author="jane"),
        ]
        git.move.return_value = "n" * 40

        removed = correct_drift(ctx, REVIEW, CancellationToken())

        assert removed == 1
        assert git.cloned.call_args[0][2] == "feature-team-a"
        assert git.cloned.call_args[1]["depth"] == 3
        git.move.assert_called_once_with(git, "m" * 40, "feature")
        git.remove.assert_called_once_with(git, "feature-team-a", 1)
        body = adapter.create_comment.call_args[0][2]
        assert "n" * 40 in body
        assert "#1" in body

    def test_conflict_comments_and_still_resets(self, ctx: TaskContext, adapter: MagicMock, git: MagicMock) -> None:
        adapter.list_pr_commits.return_value = [
            Commit(sha="x" * 40, author="jane"),
            Commit(sha="y" * 40, author="joe"),
        ]
        git.move.side_effect = [GitRunnerError("conflict"), "z" * 40]

        removed = correct_drift(ctx, REVIEW, CancellationToken())

        assert removed == 2
        assert git.move.call_args_list == [
            call(git, "x" * 40, "feature"),
            call(git, "y" * 40, "feature"),
        ]
        bodies = [c.args[2] for c in adapter.create_comment.call_args_list]
        assert "MERGE-CONFLICT" in bodies[0]
        assert "z" * 40 in bodies[1]
        git.remove.assert_called_once_with(git, "feature-team-a", 2)

    def test_no_parent_after_retry_propagates(self, ctx: TaskContext, adapter: MagicMock, git: MagicMock) -> None:
        adapter.list_pr_commits.return_value = [Commit(sha="m" * 40, author="jane")]
        adapter.list_cross_references.return_value = []
        with pytest.raises(NoParentFound):
            correct_drift(ctx, REVIEW, CancellationToken())
        git.cloned.assert_not_called()
        git.remove.assert_not_called()


def test_synchronize_review_task(ctx: TaskContext, adapter: MagicMock) -> None:
    adapter.get_pr.return_value = REVIEW
    adapter.list_pr_commits.return_value = []
    task = synchronize_review(ctx, 20)
    task.run(CancellationToken())
    adapter.get_pr.assert_called_once_with("owner/repo", 20)
    adapter.list_pr_commits.assert_called_once_with("owner/repo", 20)


def test_review_closed_enqueues_parent_sync(ctx: TaskContext, adapter: MagicMock) -> None:
    adapter.get_pr.return_value = make_pr(20, [TEAM], head="feature-team-a", state="closed", merged=True)
    task = review_closed(ctx, 20)
    assert task.identity == (CLOSED_TASK_NAME, 20)

    task.run(CancellationToken())

    ctx.scheduler.enqueue.assert_called_once()
    enqueued, reason = ctx.scheduler.enqueue.call_args[0]
    assert enqueued.identity == (MANAGED_TASK, 1)
    assert reason == "close PR-20"
