"""Handle GitHub webhook events for managed and review pull requests.

Handlers only classify and enqueue; all reconciliation runs on the task
scheduler's worker thread.
"""

import logging
from typing import Any, Dict

from splitbot.adapters.github import pr_from_api
from splitbot.errors import InvariantViolation
from splitbot.matcher import Managed, Review
from splitbot.models import PullRequest
from splitbot.tasks.context import TaskContext
from splitbot.tasks.synchronize_managed import block, synchronize_managed
from splitbot.tasks.synchronize_review import review_closed, synchronize_review

LOG = logging.getLogger("splitbot.observer.webhook.handlers")


def _pull_request_from_payload(payload: Dict[str, Any]) -> PullRequest | None:
    pull = payload.get("pull_request") or {}
    if pull.get("number") is None:
        return None
    try:
        return pr_from_api(pull)
    except (KeyError, TypeError, ValueError) as e:
        LOG.warning("Failed to parse pull_request payload: %s", e)
        return None


def _on_labeled(ctx: TaskContext, pr: PullRequest, payload: Dict[str, Any]) -> None:
    label = (payload.get("label") or {}).get("name")
    LOG.debug("[%s] was labeled %r", pr, label)
    role = ctx.matcher.classify(pr)
    if isinstance(role, Managed):
        block(ctx, pr)
        ctx.scheduler.enqueue(synchronize_managed(ctx, pr.number), f"label added to {pr}")


def _on_unlabeled(ctx: TaskContext, pr: PullRequest, payload: Dict[str, Any]) -> None:
    label = (payload.get("label") or {}).get("name")
    configuration = ctx.matcher.configuration_for(pr)
    if label != configuration.manage_review_label:
        LOG.debug("[%s] removed label %r is not the manage label", pr, label)
        return
    # the synchronization pass notices the missing label and tears down reviews
    ctx.scheduler.enqueue(synchronize_managed(ctx, pr.number), f"label removed from {pr}")


def _on_synchronize(ctx: TaskContext, pr: PullRequest) -> None:
    if pr.merged:
        return
    LOG.debug("[%s] was updated", pr)
    role = ctx.matcher.classify(pr)
    if isinstance(role, Managed):
        ctx.scheduler.enqueue(synchronize_managed(ctx, pr.number), f"updated {pr}")
    elif isinstance(role, Review):
        ctx.scheduler.enqueue(synchronize_review(ctx, pr.number), f"updated {pr}")


def _on_closed(ctx: TaskContext, pr: PullRequest) -> None:
    LOG.debug("[%s] was %s", pr, "merged" if pr.merged else "closed")
    role = ctx.matcher.classify(pr)
    if isinstance(role, Review):
        ctx.scheduler.enqueue(review_closed(ctx, pr.number), f"close {pr}")


def _on_opened(ctx: TaskContext, pr: PullRequest, action: str) -> None:
    role = ctx.matcher.classify(pr)
    if isinstance(role, Managed):
        ctx.scheduler.enqueue(synchronize_managed(ctx, pr.number), f"{action} {pr}")


def handle_github_event(ctx: TaskContext, event: str, payload: Dict[str, Any]) -> None:
    """Handle a GitHub webhook event.

    Supported events (``pull_request`` only):
    - labeled: managed => block with a pending status and synchronize.
    - unlabeled (manage label): synchronize, which closes the reviews.
    - synchronize: managed => synchronize; review => move manual commits.
    - closed: review => resynchronize its managed parent.
    - opened, reopened: managed => synchronize.
    """
    if event != "pull_request":
        LOG.debug("Ignoring event %s", event)
        return
    repo_full_name = (payload.get("repository") or {}).get("full_name") or ""
    if repo_full_name and repo_full_name != ctx.repo:
        LOG.debug("Skipping event: repository %s is not configured repo", repo_full_name)
        return
    pr = _pull_request_from_payload(payload)
    if pr is None:
        LOG.warning("pull_request payload missing pull_request.number")
        return

    action = payload.get("action")
    try:
        if action == "labeled":
            _on_labeled(ctx, pr, payload)
        elif action == "unlabeled":
            _on_unlabeled(ctx, pr, payload)
        elif action == "synchronize":
            _on_synchronize(ctx, pr)
        elif action == "closed":
            _on_closed(ctx, pr)
        elif action in ("opened", "reopened"):
            _on_opened(ctx, pr, action)
        else:
            LOG.debug("[%s] ignoring action %s", pr, action)
    except InvariantViolation as e:
        LOG.error("%s", e)
