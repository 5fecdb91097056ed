"""Managed pull request synchronization.

One pass over a managed pull request:

1. If the manage label is gone, close its review pull requests, delete
   their branches and unblock it.
2. Bring the managed branch up to date with its base. When the base moved,
   the platform merges it in and the resulting push triggers the next pass.
3. Close the managed pull request once it has no changes left (every team
   review was merged).
4. Otherwise recreate one branch per owning team by replaying the managed
   commits restricted to that team's files, force-push it and open a review
   pull request for it when none is open.

Every external call is preceded by a cancellation checkpoint.
"""

import logging
from enum import Enum
from typing import Dict, List, Sequence

from splitbot.adapters.base import GitPlatformError, NotFoundError
from splitbot.models import PullRequest
from splitbot.services.git import cloned, recreate_team_branch, team_branch_name
from splitbot.services.ownership import files_by_team, team_patterns
from splitbot.tasks.context import TaskContext
from splitbot.tasks.queue import CancellationToken, Task

LOG = logging.getLogger("splitbot.tasks.synchronize_managed")

TASK_NAME = "synchronize_managed"

STATUS_BLOCKED = "blocking while in review"
STATUS_UNMANAGED = "pull request not managed"


class UpdateResult(Enum):
    """Outcome of comparing the managed pull request with its base branch."""

    NOT_FOUND = "not_found"
    UP_TO_DATE = "up_to_date"
    UPDATED = "updated"


def block(ctx: TaskContext, pr: PullRequest) -> None:
    """Pending status on the managed head while its reviews are open."""
    ctx.adapter.create_commit_status(
        ctx.repo, pr.head.sha, "pending", STATUS_BLOCKED, ctx.config.reconcile.status_context
    )


def unblock(ctx: TaskContext, pr: PullRequest) -> None:
    ctx.adapter.create_commit_status(
        ctx.repo, pr.head.sha, "success", STATUS_UNMANAGED, ctx.config.reconcile.status_context
    )


def _delete_branch(ctx: TaskContext, pr: PullRequest, branch: str) -> None:
    """Best-effort branch deletion; the branch may already be gone."""
    try:
        ctx.adapter.delete_branch(ctx.repo, branch)
    except GitPlatformError as e:
        LOG.warning("[%s] could not delete branch %s: %s", pr, branch, e)


def handle_label_removed(ctx: TaskContext, pr: PullRequest, token: CancellationToken) -> bool:
    """Tear down the reviews of a pull request that lost the manage label.

    Returns True when the pull request is no longer managed.
    """
    token.abort_if_cancelled()
    configuration = ctx.matcher.configuration_for(pr)
    if configuration.manage_review_label in pr.labels:
        return False

    LOG.info("[%s] manage label removed; closing review requests", pr)
    try:
        reviews = ctx.matcher.children(pr, token)
        for review in reviews:
            if review.pr.is_open:
                token.abort_if_cancelled()
                ctx.adapter.close_pr(ctx.repo, review.number)
                LOG.info("[%s] closed review %s", pr, review)
            token.abort_if_cancelled()
            _delete_branch(ctx, pr, review.pr.head.ref)
    finally:
        token.abort_if_cancelled()
        unblock(ctx, pr)
    return True


def update_from_base(ctx: TaskContext, pr: PullRequest, token: CancellationToken) -> UpdateResult:
    """Merge the base branch into the managed branch when the base moved."""
    token.abort_if_cancelled()
    try:
        base_sha = ctx.adapter.get_branch_sha(ctx.repo, pr.base.ref)
    except NotFoundError:
        LOG.error("[%s] base branch %s not found", pr, pr.base.ref)
        return UpdateResult.NOT_FOUND

    if base_sha == pr.base.sha:
        return UpdateResult.UP_TO_DATE

    LOG.debug("[%s] base %s moved %s -> %s; update branch", pr, pr.base.ref, pr.base.sha[:7], base_sha[:7])
    token.abort_if_cancelled()
    ctx.adapter.update_branch(ctx.repo, pr.number)
    return UpdateResult.UPDATED


def close_if_empty(ctx: TaskContext, pr: PullRequest, files: Sequence[str], token: CancellationToken) -> bool:
    """Close the managed pull request and delete its branch when it changes nothing."""
    if files:
        return False
    LOG.debug("[%s] is empty; closing", pr)
    token.abort_if_cancelled()
    ctx.adapter.close_pr(ctx.repo, pr.number)
    token.abort_if_cancelled()
    _delete_branch(ctx, pr, pr.head.ref)
    return True


def review_title(pr: PullRequest, team: str) -> str:
    return f"{pr.title} - {team}"


def review_body(pr: PullRequest, team: str) -> str:
    return (
        f"Changes for {team} from #{pr.number}.\n\n"
        f"Please review the changes and merge them when you are fine with them. "
        f"Request or push further changes on #{pr.number}.\n\n"
        f"---\n\n"
        f"**{pr.title}**\n\n"
        f"{pr.body or 'No description provided.'}\n\n"
        f"---\n\n"
        f"Do **not** push onto this pull request, add your change to #{pr.number} instead! "
        f"This branch is recreated whenever #{pr.number} changes and manual changes are lost."
    )


def update_reviews(
    ctx: TaskContext,
    pr: PullRequest,
    files: Sequence[str],
    token: CancellationToken,
) -> List[PullRequest]:
    """Recreate every team branch and open missing review pull requests.

    Returns the review pull requests created in this pass.
    """
    token.abort_if_cancelled()
    configuration = ctx.matcher.configuration_for(pr)

    reviews = ctx.matcher.children(pr, token)
    open_reviews: Dict[str, PullRequest] = {r.pr.head.ref: r.pr for r in reviews if r.pr.is_open}
    LOG.info("[%s] %s review requests found (%s open)", pr, len(reviews), len(open_reviews))

    token.abort_if_cancelled()
    patterns = team_patterns(ctx.adapter, ctx.repo, pr.head.ref, ctx.config.labels.ownership_path)
    if not patterns:
        LOG.info("[%s] no team patterns; nothing to split", pr)
        return []

    changed = {team: team_files for team, team_files in files_by_team(files, patterns).items() if team_files}
    LOG.info("[%s] changes per team: %s", pr, changed)
    if not changed:
        return []

    token.abort_if_cancelled()
    commits = ctx.adapter.list_pr_commits(ctx.repo, pr.number)

    created: List[PullRequest] = []
    token.abort_if_cancelled()
    with cloned(ctx.adapter, ctx.config, pr.head.ref, depth=len(commits) + 1, log=LOG) as wc:
        for team, team_files in changed.items():
            branch = team_branch_name(pr.head.ref, team)

            token.abort_if_cancelled()
            sha = recreate_team_branch(wc, pr.base.sha, commits, branch, team_files, token=token, log=LOG)
            token.abort_if_cancelled()
            wc.push(branch, force=True)
            LOG.debug("[%s] team %s branch %s at %s", pr, team, branch, sha[:7])

            existing = open_reviews.get(branch)
            if existing:
                LOG.info("[%s] updated review %s for %s", pr, existing, team)
                continue

            token.abort_if_cancelled()
            review = ctx.adapter.create_pr(
                ctx.repo,
                title=review_title(pr, team),
                body=review_body(pr, team),
                head=branch,
                base=pr.base.ref,
            )
            token.abort_if_cancelled()
            ctx.adapter.add_labels(ctx.repo, review.number, [configuration.team_review_label])
            LOG.info("[%s] created review %s | %s", pr, review, review.title)
            created.append(review)
    return created


def synchronize(ctx: TaskContext, pr: PullRequest, token: CancellationToken) -> None:
    """One synchronization pass over a freshly fetched managed pull request."""
    LOG.debug("[%s] synchronize managed pull request", pr)
    if handle_label_removed(ctx, pr, token):
        return
    if not pr.is_open:
        LOG.info("[%s] closed; nothing to synchronize", pr)
        return

    result = update_from_base(ctx, pr, token)
    if result is UpdateResult.NOT_FOUND:
        LOG.info("[%s] no base branch; skip this synchronization", pr)
        return
    if result is UpdateResult.UPDATED:
        LOG.info("[%s] merged %s; wait for next synchronization", pr, pr.base.ref)
        return

    token.abort_if_cancelled()
    files = ctx.adapter.list_pr_files(ctx.repo, pr.number)
    if close_if_empty(ctx, pr, files, token):
        LOG.info("[%s] closed; all changes are merged into %s", pr, pr.base.ref)
        return

    update_reviews(ctx, pr, files, token)
    LOG.debug("[%s] synchronized managed pull request", pr)


def synchronize_managed(ctx: TaskContext, number: int) -> Task:
    """Task running one synchronization pass for managed pull request ``number``."""

    def run(token: CancellationToken) -> None:
        token.abort_if_cancelled()
        pr = ctx.adapter.get_pr(ctx.repo, number)
        synchronize(ctx, pr, token)

    return Task(name=TASK_NAME, number=number, run=run)
