"""Role matcher: decides what part a pull request plays.

A pull request is *managed* when it carries the manage label, a *review*
when it carries the team review label and *unmanaged* otherwise. The
managed/review relationship is never stored; it is recomputed from the
platform's cross-reference timeline every time it is needed.
"""

import logging
import time
from dataclasses import dataclass
from typing import List

from splitbot.adapters.base import GitPlatformAdapter, NotFoundError
from splitbot.config import AppConfig, RepoConfiguration, parse_repo_configuration
from splitbot.errors import InvariantViolation, NoParentFound
from splitbot.models import PullRequest
from splitbot.tasks.queue import CancellationToken

LOG = logging.getLogger("splitbot.matcher")


@dataclass(frozen=True)
class Managed:
    """A managed pull request; its reviews are looked up on demand."""

    pr: PullRequest
    matcher: "RoleMatcher"

    @property
    def number(self) -> int:
        return self.pr.number

    def children(self, token: CancellationToken | None = None) -> List["Review"]:
        return self.matcher.children(self.pr, token)

    def __str__(self) -> str:
        return str(self.pr)


@dataclass(frozen=True)
class Review:
    """A team review pull request; its managed parent is looked up on demand."""

    pr: PullRequest
    matcher: "RoleMatcher"

    @property
    def number(self) -> int:
        return self.pr.number

    def parent(self) -> Managed:
        return self.matcher.parent(self.pr)

    def __str__(self) -> str:
        return str(self.pr)


@dataclass(frozen=True)
class Unmanaged:
    pr: PullRequest

    @property
    def number(self) -> int:
        return self.pr.number

    def __str__(self) -> str:
        return str(self.pr)


Role = Managed | Review | Unmanaged


class RoleMatcher:
    """Classifies pull requests and resolves managed/review relationships."""

    def __init__(self, adapter: GitPlatformAdapter, config: AppConfig) -> None:
        self._adapter = adapter
        self._config = config

    @property
    def repo(self) -> str:
        return self._config.bot.repository

    def configuration_for(self, pr: PullRequest) -> RepoConfiguration:
        """Repository configuration from the head branch if open, base branch if closed.

        The head branch of a closed pull request may already be deleted.
        """
        ref = pr.head.ref if pr.is_open else pr.base.ref
        text = self._adapter.get_file_content(self.repo, self._config.labels.config_path, ref)
        return parse_repo_configuration(text, self._config.labels)

    def classify(self, pr: PullRequest) -> Role:
        """Managed, Review or Unmanaged. Both labels raise InvariantViolation."""
        configuration = self.configuration_for(pr)
        managed = configuration.manage_review_label in pr.labels
        review = configuration.team_review_label in pr.labels
        if managed and review:
            raise InvariantViolation(f"[{pr}] invalid state: managed and review at the same time")
        if managed:
            return Managed(pr, self)
        if review:
            return Review(pr, self)
        return Unmanaged(pr)

    def classify_number(self, number: int) -> Role:
        """Fetch the pull request fresh, then classify it."""
        return self.classify(self._adapter.get_pr(self.repo, number))

    def children(self, pr: PullRequest, token: CancellationToken | None = None) -> List[Review]:
        """Review pull requests referenced in ``pr``'s timeline, in timeline order."""
        if token:
            token.abort_if_cancelled()
        numbers = list(dict.fromkeys(self._adapter.list_cross_references(self.repo, pr.number)))
        reviews: List[Review] = []
        for number in numbers:
            if token:
                token.abort_if_cancelled()
            try:
                referenced = self._adapter.get_pr(self.repo, number)
            except NotFoundError:
                # plain issue, not a pull request
                continue
            try:
                role = self.classify(referenced)
            except InvariantViolation as e:
                LOG.error("[%s] skipping referenced PR-%s: %s", pr, number, e)
                continue
            if isinstance(role, Review):
                reviews.append(role)
        LOG.debug("[%s] %s review requests: %s", pr, len(reviews), [r.number for r in reviews])
        return reviews

    def parent(self, review: PullRequest) -> Managed:
        """First managed pull request on the same base that references ``review``.

        Raises NoParentFound when none does (yet).
        """
        configuration = self.configuration_for(review)
        candidates = self._adapter.list_prs(self.repo, state="all", base=review.base.ref)
        for candidate in candidates:
            if configuration.manage_review_label not in candidate.labels:
                continue
            if review.number in self._adapter.list_cross_references(self.repo, candidate.number):
                LOG.debug("[%s] managed parent is %s", review, candidate)
                return Managed(candidate, self)
        raise NoParentFound(review.number)

    def parent_with_retry(self, review: PullRequest, token: CancellationToken | None = None) -> Managed:
        """parent(), retried once after the configured delay on NoParentFound."""
        try:
            return self.parent(review)
        except NoParentFound:
            delay = self._config.reconcile.parent_retry_delay_seconds
            LOG.info("[%s] no managed parent yet; retrying in %ss", review, delay)
        if token:
            token.sleep(delay)
        else:
            time.sleep(delay)
        return self.parent(review)
