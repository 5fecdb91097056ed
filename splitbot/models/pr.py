"""Pull request snapshot model."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict


class BranchRef(BaseModel):
    """Branch name and the commit it pointed to when the snapshot was taken."""

    model_config = ConfigDict(frozen=True)

    ref: str
    sha: str


class PullRequest(BaseModel):
    """Immutable pull request snapshot.

    Fetched fresh at the start of every operation; remote state may change
    between steps, so instances are never kept across tasks.
    """

    model_config = ConfigDict(frozen=True)

    number: int
    title: str
    body: str = ""
    author: str = ""
    state: str
    base: BranchRef
    head: BranchRef
    labels: frozenset[str] = frozenset()
    merged: bool = False
    closed_at: datetime | None = None
    merged_at: datetime | None = None
    html_url: str | None = None

    @property
    def is_open(self) -> bool:
        return self.state == "open"

    def __str__(self) -> str:
        return f"PR-{self.number}"
