"""Collaborators shared by every reconciliation task."""

from dataclasses import dataclass

from splitbot.adapters.base import GitPlatformAdapter
from splitbot.config import AppConfig
from splitbot.matcher import RoleMatcher
from splitbot.tasks.queue import TaskScheduler


@dataclass
class TaskContext:
    adapter: GitPlatformAdapter
    config: AppConfig
    matcher: RoleMatcher
    scheduler: TaskScheduler

    @property
    def repo(self) -> str:
        return self.config.bot.repository
