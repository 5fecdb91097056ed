"""Abstract base for Git platform adapters."""

from abc import ABC, abstractmethod
from typing import List

from splitbot.models import Comment, Commit, PullRequest


class GitPlatformError(Exception):
    """Raised when a Git platform API call fails."""

    pass


class NotFoundError(GitPlatformError):
    """Raised when the requested resource (PR, branch, file) does not exist."""

    pass


class GitPlatformAdapter(ABC):
    """Abstract interface for the code hosting platform.

    Every method talks to the remote; nothing is cached.
    """

    @abstractmethod
    def get_pr(self, repo: str, pr_number: int) -> PullRequest:
        """Fetch PR by number."""
        ...

    @abstractmethod
    def list_prs(self, repo: str, state: str = "open", base: str | None = None) -> List[PullRequest]:
        """List PRs (all pages), optionally filtered by base branch."""
        ...

    @abstractmethod
    def create_pr(self, repo: str, title: str, body: str, head: str, base: str) -> PullRequest:
        """Create a pull request."""
        ...

    @abstractmethod
    def update_pr(
        self,
        repo: str,
        pr_number: int,
        title: str | None = None,
        body: str | None = None,
        state: str | None = None,
    ) -> PullRequest:
        """Update title, body or state of a PR."""
        ...

    def close_pr(self, repo: str, pr_number: int) -> PullRequest:
        """Close a PR without merging."""
        return self.update_pr(repo, pr_number, state="closed")

    @abstractmethod
    def add_labels(self, repo: str, issue_number: int, labels: List[str]) -> None:
        """Add labels to an issue or PR."""
        ...

    @abstractmethod
    def get_branch_sha(self, repo: str, branch: str) -> str:
        """Return the tip sha of a branch. Raises NotFoundError if missing."""
        ...

    @abstractmethod
    def delete_branch(self, repo: str, branch: str) -> None:
        """Delete a branch ref."""
        ...

    @abstractmethod
    def create_commit_status(self, repo: str, sha: str, state: str, description: str, context: str) -> None:
        """Set a commit status (success, pending, error, failure)."""
        ...

    @abstractmethod
    def list_cross_references(self, repo: str, issue_number: int) -> List[int]:
        """Numbers of issues/PRs that cross-referenced this issue, in timeline order."""
        ...

    @abstractmethod
    def list_pr_files(self, repo: str, pr_number: int) -> List[str]:
        """Paths of files changed by a PR."""
        ...

    @abstractmethod
    def list_pr_commits(self, repo: str, pr_number: int) -> List[Commit]:
        """Commits of a PR, oldest first."""
        ...

    @abstractmethod
    def update_branch(self, repo: str, pr_number: int) -> None:
        """Merge the base branch into the PR head branch."""
        ...

    @abstractmethod
    def create_comment(self, repo: str, issue_number: int, body: str) -> Comment:
        """Post a comment on an issue or PR."""
        ...

    @abstractmethod
    def get_file_content(self, repo: str, path: str, ref: str) -> str | None:
        """Return decoded file content at ref, or None if the file does not exist."""
        ...

    @abstractmethod
    def get_clone_url(self, repo: str) -> str:
        """HTTPS clone URL that carries credentials for fetch and push."""
        ...
