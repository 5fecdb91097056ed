"""Git operations: working copy, team branch replay, commit relocation."""

from splitbot.services.git._run import GitRunnerError
from splitbot.services.git.clone import cloned
from splitbot.services.git.replay import (
    MARKER_MESSAGE,
    move_commit,
    recreate_team_branch,
    remove_commits,
    replayable_commits,
    team_branch_name,
)
from splitbot.services.git.working_copy import WorkingCopy

__all__ = [
    "GitRunnerError",
    "MARKER_MESSAGE",
    "WorkingCopy",
    "cloned",
    "move_commit",
    "recreate_team_branch",
    "remove_commits",
    "replayable_commits",
    "team_branch_name",
]
