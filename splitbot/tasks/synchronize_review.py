"""Review pull request drift correction.

Team branches are owned by the bot. Commits pushed there by anyone else are
moved onto the managed branch (where they belong) and then removed from the
team branch, so the next managed synchronization recreates it cleanly.
"""

import logging
from typing import List

from splitbot.models import Commit, PullRequest
from splitbot.services.git import GitRunnerError, cloned, move_commit, remove_commits
from splitbot.tasks.context import TaskContext
from splitbot.tasks.queue import CancellationToken, Task
from splitbot.tasks.synchronize_managed import synchronize_managed

LOG = logging.getLogger("splitbot.tasks.synchronize_review")

TASK_NAME = "synchronize_review"
CLOSED_TASK_NAME = "review_closed"


def manual_commits(commits: List[Commit], bot_name: str) -> List[Commit]:
    """Commits not authored by the bot identity, oldest first."""
    return [c for c in commits if c.author != bot_name]


def moved_comment(sha: str, new_sha: str, managed_number: int) -> str:
    return (
        "Invalid commit on review pull request! The branch was reset.\n\n"
        f"Commit {sha} was cherry-picked onto #{managed_number} as {new_sha} instead."
    )


def conflict_comment(sha: str, managed_number: int) -> str:
    return (
        "Invalid commit on review pull request! The branch was reset.\n\n"
        f"MERGE-CONFLICT: please cherry-pick commit {sha} onto #{managed_number} yourself."
    )


def correct_drift(ctx: TaskContext, review: PullRequest, token: CancellationToken) -> int:
    """Relocate manual commits of ``review`` onto its managed branch.

    Returns the number of commits removed from the review branch.
    """
    token.abort_if_cancelled()
    commits = ctx.adapter.list_pr_commits(ctx.repo, review.number)
    manual = manual_commits(commits, ctx.config.bot.name)
    if not manual:
        LOG.info("[%s] no manual commits found", review)
        return 0

    token.abort_if_cancelled()
    managed = ctx.matcher.parent_with_retry(review, token)
    LOG.info(
        "[%s] manual commits %s; move to managed %s",
        review,
        [f"{c.sha[:7]} | {c.author}" for c in manual],
        managed,
    )

    token.abort_if_cancelled()
    with cloned(ctx.adapter, ctx.config, review.head.ref, depth=len(commits) + 1, log=LOG) as wc:
        for commit in manual:
            token.abort_if_cancelled()
            try:
                new_sha = move_commit(wc, commit.sha, managed.pr.head.ref)
            except GitRunnerError as e:
                LOG.warning("[%s] cherry-pick of %s onto %s failed: %s", review, commit.sha[:7], managed, e)
                body = conflict_comment(commit.sha, managed.number)
            else:
                LOG.info("[%s] moved %s onto %s as %s", review, commit.sha[:7], managed, new_sha[:7])
                body = moved_comment(commit.sha, new_sha, managed.number)
            token.abort_if_cancelled()
            ctx.adapter.create_comment(ctx.repo, review.number, body)

        token.abort_if_cancelled()
        remove_commits(wc, review.head.ref, len(manual))
        LOG.info("[%s] removed %s manual commits from %s", review, len(manual), review.head.ref)
    return len(manual)


def synchronize_review(ctx: TaskContext, number: int) -> Task:
    """Task running drift correction for review pull request ``number``."""

    def run(token: CancellationToken) -> None:
        token.abort_if_cancelled()
        review = ctx.adapter.get_pr(ctx.repo, number)
        correct_drift(ctx, review, token)

    return Task(name=TASK_NAME, number=number, run=run)


def review_closed(ctx: TaskContext, number: int) -> Task:
    """Task resynchronizing the managed parent of a closed review."""

    def run(token: CancellationToken) -> None:
        token.abort_if_cancelled()
        review = ctx.adapter.get_pr(ctx.repo, number)
        managed = ctx.matcher.parent_with_retry(review, token)
        ctx.scheduler.enqueue(synchronize_managed(ctx, managed.number), f"close {review}")

    return Task(name=CLOSED_TASK_NAME, number=number, run=run)
