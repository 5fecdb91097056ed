"""Data models for pull requests, commits and comments (Pydantic)."""

from splitbot.models.comment import Comment
from splitbot.models.commit import Commit
from splitbot.models.pr import BranchRef, PullRequest

__all__ = ["BranchRef", "Comment", "Commit", "PullRequest"]
