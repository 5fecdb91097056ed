"""Git platform adapters (base and implementations)."""

from splitbot.adapters.base import GitPlatformAdapter, GitPlatformError, NotFoundError
from splitbot.adapters.github import GitHubAdapter

__all__ = ["GitPlatformAdapter", "GitPlatformError", "GitHubAdapter", "NotFoundError"]
