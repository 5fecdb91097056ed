"""A private, throw-away clone of the repository.

One WorkingCopy is created per reconciliation pass and removed afterwards;
it is never shared between tasks.
"""

import logging
import shutil
import tempfile
from pathlib import Path
from typing import Iterable

from splitbot.services.git._run import DEFAULT_TIMEOUT, GitRunnerError, _run_git

RESET_MODES = ("soft", "mixed", "hard")


class WorkingCopy:
    """Thin wrapper around the git CLI bound to one clone directory."""

    def __init__(
        self,
        repo_dir: Path,
        log: logging.Logger | None = None,
        timeout: int = DEFAULT_TIMEOUT,
    ) -> None:
        self.repo_dir = Path(repo_dir)
        self._log = log
        self._timeout = timeout

    def git(self, *args: str) -> str:
        return _run_git(list(args), cwd=self.repo_dir, log=self._log, timeout=self._timeout)

    @classmethod
    def clone(
        cls,
        url: str,
        branch: str,
        depth: int,
        bot_name: str,
        bot_email: str,
        log: logging.Logger | None = None,
        timeout: int = DEFAULT_TIMEOUT,
    ) -> "WorkingCopy":
        """Shallow-clone ``branch`` into a fresh temporary directory and check it out.

        The directory is removed again if any step fails.
        """
        repo_dir = Path(tempfile.mkdtemp(prefix="splitbot-"))
        wc = cls(repo_dir, log=log, timeout=timeout)
        try:
            wc.git("init", "--quiet", ".")
            wc.git("remote", "add", "origin", url)
            wc.git("config", "user.name", bot_name)
            wc.git("config", "user.email", bot_email)
            wc.fetch(branch, depth=depth)
            wc.checkout(f"origin/{branch}", create=branch)
        except GitRunnerError:
            wc.close()
            raise
        if log:
            log.debug("Cloned %s (depth %s) into %s", branch, depth, repo_dir)
        return wc

    def fetch(self, ref: str, depth: int | None = None) -> None:
        """Fetch a branch into origin/<branch>, or a bare sha into the object store."""
        args = ["fetch", "--quiet"]
        if depth:
            args.append(f"--depth={depth}")
        if _looks_like_sha(ref):
            args += ["origin", ref]
        else:
            args += ["origin", f"+refs/heads/{ref}:refs/remotes/origin/{ref}"]
        self.git(*args)

    def checkout(self, ref: str, create: str | None = None) -> None:
        """Checkout ref; with ``create``, (re)point that local branch at ref first."""
        if create:
            self.git("checkout", "--quiet", "-B", create, ref)
        else:
            self.git("checkout", "--quiet", ref)

    def reset(self, ref: str = "HEAD", mode: str = "mixed") -> None:
        if mode not in RESET_MODES:
            raise ValueError(f"unknown reset mode: {mode!r}")
        self.git("reset", "--quiet", f"--{mode}", ref)

    def cherry_pick(self, sha: str) -> None:
        self.git("cherry-pick", "--allow-empty", "--keep-redundant-commits", sha)

    def cherry_pick_abort(self) -> None:
        """Abort an in-progress cherry-pick; a no-op when none is in progress."""
        try:
            self.git("cherry-pick", "--abort")
        except GitRunnerError:
            pass

    def add(self, files: Iterable[str]) -> None:
        paths = list(files)
        if paths:
            self.git("add", "--all", "--", *paths)

    def add_all(self) -> None:
        self.git("add", "--all")

    def commit(self, message: str, allow_empty: bool = False) -> None:
        args = ["commit", "--quiet", "--no-verify", "-m", message]
        if allow_empty:
            args.append("--allow-empty")
        self.git(*args)

    def staged_files(self) -> list[str]:
        """Paths whose staged content differs from HEAD."""
        out = self.git("diff", "--cached", "--name-only", "--no-renames")
        return [line for line in out.splitlines() if line]

    def rev_parse(self, ref: str = "HEAD") -> str:
        return self.git("rev-parse", ref).strip()

    def tree_sha(self, ref: str = "HEAD") -> str:
        return self.rev_parse(f"{ref}^{{tree}}")

    def push(self, branch: str, force: bool = False) -> None:
        args = ["push", "--quiet"]
        if force:
            args.append("--force")
        args += ["origin", f"{branch}:refs/heads/{branch}"]
        self.git(*args)
        if self._log:
            self._log.info("Pushed branch %s to origin%s", branch, " (forced)" if force else "")

    def branch_exists(self, branch: str) -> bool:
        """Whether ``branch`` exists on the remote."""
        try:
            self.git("ls-remote", "--exit-code", "--heads", "origin", branch)
        except GitRunnerError:
            return False
        return True

    def clean(self) -> None:
        """Drop local modifications and untracked files."""
        self.git("reset", "--quiet", "--hard")
        self.git("clean", "-ffdxq")

    def close(self) -> None:
        shutil.rmtree(self.repo_dir, ignore_errors=True)

    def __enter__(self) -> "WorkingCopy":
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()


def _looks_like_sha(ref: str) -> bool:
    return len(ref) == 40 and all(c in "0123456789abcdef" for c in ref)
