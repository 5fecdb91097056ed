"""Commit as listed on a pull request."""

from pydantic import BaseModel, ConfigDict


class Commit(BaseModel):
    """Commit on a pull request; author is the git author name."""

    model_config = ConfigDict(frozen=True)

    sha: str
    author: str
    message: str = ""
    parents: tuple[str, ...] = ()
