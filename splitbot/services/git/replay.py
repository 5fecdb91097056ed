"""Branch surgery built on WorkingCopy: team branch replay and commit relocation."""

import logging
from typing import Sequence

from splitbot.models import Commit
from splitbot.services.git._run import GitRunnerError
from splitbot.services.git.working_copy import WorkingCopy
from splitbot.tasks.queue import CancellationToken

# Parks changes of other teams between replay steps; never pushed
MARKER_MESSAGE = "splitbot: working tree marker"


def team_branch_name(head_ref: str, team: str) -> str:
    """Name of the derived branch holding ``team``'s share of ``head_ref``."""
    return f"{head_ref}-{team}"


def replayable_commits(commits: Sequence[Commit]) -> list[Commit]:
    """Commits to replay, oldest first: merge commits (base updates) are skipped."""
    return [c for c in commits if len(c.parents) <= 1]


def recreate_team_branch(
    wc: WorkingCopy,
    base_sha: str,
    commits: Sequence[Commit],
    branch: str,
    files: Sequence[str],
    token: CancellationToken | None = None,
    log: logging.Logger | None = None,
) -> str:
    """Rebuild ``branch`` from ``base_sha`` with one commit per original commit,
    restricted to ``files``.

    Each step cherry-picks the original commit on top of the marker commit,
    so the working tree carries every managed change up to that commit on
    top of ``base_sha``. Merge commits are skipped; their content is in
    ``base_sha`` once the managed branch is up to date with its base.
    The team's part is then committed with the original message and
    everything else goes back into a fresh marker. Commits that touch none
    of the team's files produce no commit. The marker is dropped at the
    end, leaving the branch checked out. Returns the new tip sha.
    """
    team_files = set(files)
    wc.clean()
    wc.checkout(base_sha, create=branch)
    wc.commit(MARKER_MESSAGE, allow_empty=True)

    for commit in replayable_commits(commits):
        if token:
            token.abort_if_cancelled()
        wc.cherry_pick(commit.sha)
        # HEAD~2 is the last team commit (or the base)
        wc.reset("HEAD~2", mode="soft")
        changed = [path for path in wc.staged_files() if path in team_files]
        wc.reset("HEAD", mode="mixed")
        if changed:
            wc.add(changed)
            wc.commit(commit.message or commit.sha)
        wc.add_all()
        wc.commit(MARKER_MESSAGE, allow_empty=True)
        if log:
            log.debug("Replayed %s onto %s (%s team files)", commit.sha[:7], branch, len(changed))

    wc.reset("HEAD~1", mode="hard")
    wc.clean()
    return wc.rev_parse("HEAD")


def move_commit(wc: WorkingCopy, sha: str, to_branch: str) -> str:
    """Cherry-pick ``sha`` onto the remote ``to_branch`` and push it.

    Returns the sha of the new commit. On conflict the cherry-pick is aborted
    and GitRunnerError propagates.
    """
    wc.clean()
    wc.fetch(to_branch, depth=1)
    wc.checkout(f"origin/{to_branch}", create=to_branch)
    try:
        wc.cherry_pick(sha)
    except GitRunnerError:
        wc.cherry_pick_abort()
        raise
    new_sha = wc.rev_parse("HEAD")
    wc.push(to_branch)
    return new_sha


def remove_commits(wc: WorkingCopy, branch: str, amount: int) -> str:
    """Drop the top ``amount`` commits of the remote ``branch`` and force-push."""
    wc.clean()
    wc.checkout(f"origin/{branch}", create=branch)
    wc.reset(f"HEAD~{amount}", mode="hard")
    wc.push(branch, force=True)
    return wc.rev_parse("HEAD")
