"""Ownership partitioning: which team owns which changed file.

The ownership file uses CODEOWNERS syntax: one path per line followed by
``@team`` tokens. Each path becomes an anchored "starts-with" pattern.
"""

import logging
import re
from functools import lru_cache
from typing import Dict, Iterable, List

from splitbot.adapters.base import GitPlatformAdapter, GitPlatformError

LOG = logging.getLogger("splitbot.services.ownership")

DEFAULT_OWNERSHIP_PATH = ".github/CODEOWNERS"


def path_pattern(path: str) -> str:
    """Anchored starts-with regex for an ownership path; bare ``*`` matches all."""
    path = path.lstrip("/")
    if path in ("", "*"):
        return "^.*$"
    escaped = ".*".join(re.escape(part) for part in path.split("*"))
    return f"^{escaped}.*$"


def parse_ownership(text: str) -> Dict[str, List[str]]:
    """Map each team to the patterns of the paths it owns, in file order."""
    patterns: Dict[str, List[str]] = {}
    for line in text.splitlines():
        line = line.split("#", 1)[0].strip()
        if not line:
            continue
        path, *owners = line.split()
        for owner in owners:
            if not owner.startswith("@") or len(owner) == 1:
                continue
            team_patterns = patterns.setdefault(owner[1:], [])
            pattern = path_pattern(path)
            if pattern not in team_patterns:
                team_patterns.append(pattern)
    return patterns


def team_patterns(
    adapter: GitPlatformAdapter,
    repo: str,
    branch: str,
    path: str = DEFAULT_OWNERSHIP_PATH,
) -> Dict[str, List[str]]:
    """Read the ownership file at ``branch``; missing or unreadable gives {}."""
    try:
        text = adapter.get_file_content(repo, path, branch)
    except GitPlatformError as e:
        LOG.warning("Failed to read %s at %s: %s", path, branch, e)
        return {}
    if text is None:
        LOG.info("No ownership file %s at %s", path, branch)
        return {}
    return parse_ownership(text)


@lru_cache(maxsize=1024)
def _compile(pattern: str) -> re.Pattern:
    return re.compile(pattern)


def files_by_team(changed_files: Iterable[str], patterns: Dict[str, List[str]]) -> Dict[str, List[str]]:
    """Group changed files under every team whose patterns match them.

    A file may belong to several teams; files matching no team are dropped.
    """
    result: Dict[str, List[str]] = {}
    for file in changed_files:
        for team, owned in patterns.items():
            if any(_compile(p).match(file) for p in owned):
                result.setdefault(team, []).append(file)
    return result
