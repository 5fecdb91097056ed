"""GitHub API adapter."""

import base64
import logging
from datetime import datetime
from typing import Any, Dict, List
from urllib.parse import quote, urlsplit, urlunsplit

import requests

from splitbot.adapters.base import GitPlatformAdapter, GitPlatformError, NotFoundError
from splitbot.models import BranchRef, Comment, Commit, PullRequest

LOG = logging.getLogger("splitbot.adapters.github")

PER_PAGE = 100


def _parse_iso(s: str | None) -> datetime | None:
    if not s:
        return None
    return datetime.fromisoformat(s.replace("Z", "+00:00"))


def _comment_from_api(data: Dict[str, Any]) -> Comment:
    user = data.get("user") or {}
    return Comment(
        id=data["id"],
        body=data.get("body") or "",
        author=user.get("login", ""),
        created_at=_parse_iso(data["created_at"]),
        updated_at=_parse_iso(data.get("updated_at")),
    )


def pr_from_api(data: Dict[str, Any]) -> PullRequest:
    head = data.get("head") or {}
    base = data.get("base") or {}
    user = data.get("user") or {}
    labels = [lb["name"] for lb in (data.get("labels") or []) if isinstance(lb, dict) and "name" in lb]
    return PullRequest(
        number=data["number"],
        title=data.get("title") or "",
        body=data.get("body") or "",
        author=user.get("login", ""),
        state="open" if data.get("state") == "open" else "closed",
        base=BranchRef(ref=base.get("ref", ""), sha=base.get("sha", "")),
        head=BranchRef(ref=head.get("ref", ""), sha=head.get("sha", "")),
        labels=frozenset(labels),
        merged=bool(data.get("merged") or data.get("merged_at")),
        closed_at=_parse_iso(data.get("closed_at")),
        merged_at=_parse_iso(data.get("merged_at")),
        html_url=data.get("html_url"),
    )


def _commit_from_api(data: Dict[str, Any]) -> Commit:
    commit = data.get("commit") or {}
    author = commit.get("author") or {}
    return Commit(
        sha=data["sha"],
        author=author.get("name", ""),
        message=commit.get("message") or "",
        parents=tuple(p["sha"] for p in (data.get("parents") or []) if "sha" in p),
    )


def _cross_reference_number(event: Dict[str, Any]) -> int | None:
    """Issue number of a cross-referenced timeline event, or None for other events."""
    if event.get("event") != "cross-referenced":
        return None
    source = event.get("source") or {}
    if source.get("type") != "issue":
        return None
    number = (source.get("issue") or {}).get("number")
    return int(number) if number is not None else None


def _ref(branch: str) -> str:
    return quote(branch, safe="/")


class GitHubAdapter(GitPlatformAdapter):
    """GitHub API implementation."""

    def __init__(self, token: str, api_url: str = "https://api.github.com") -> None:
        self._api_url = api_url.rstrip("/")
        self._token = token
        self._session = requests.Session()
        self._session.headers["Authorization"] = f"token {token}"
        self._session.headers["Accept"] = "application/vnd.github+json"
        self._session.headers["X-GitHub-Api-Version"] = "2022-11-28"

    def _request(
        self,
        method: str,
        path: str,
        params: Dict[str, Any] | None = None,
        json: Dict[str, Any] | None = None,
    ) -> requests.Response:
        url = path if path.startswith("http") else f"{self._api_url}/{path.lstrip('/')}"
        resp = self._session.request(method, url, params=params, json=json, timeout=30)
        if resp.status_code >= 400:
            msg = resp.text or resp.reason or str(resp.status_code)
            try:
                msg = resp.json().get("message", msg)
            except ValueError:
                pass
            if resp.status_code == 404:
                raise NotFoundError(f"404: {msg} ({method} {path})")
            raise GitPlatformError(f"{resp.status_code}: {msg}")
        return resp

    def _paginate(self, path: str, params: Dict[str, Any] | None = None) -> List[Dict[str, Any]]:
        """GET every page of a list endpoint by following the Link: next header."""
        items: List[Dict[str, Any]] = []
        page_params: Dict[str, Any] | None = {"per_page": PER_PAGE, **(params or {})}
        url = path
        while url:
            resp = self._request("GET", url, params=page_params)
            items.extend(resp.json() or [])
            url = (resp.links.get("next") or {}).get("url")
            # next link already carries the query string
            page_params = None
        return items

    def get_pr(self, repo: str, pr_number: int) -> PullRequest:
        resp = self._request("GET", f"/repos/{repo}/pulls/{pr_number}")
        return pr_from_api(resp.json())

    def list_prs(self, repo: str, state: str = "open", base: str | None = None) -> List[PullRequest]:
        params: Dict[str, Any] = {"state": state}
        if base:
            params["base"] = base
        return [pr_from_api(d) for d in self._paginate(f"/repos/{repo}/pulls", params)]

    def create_pr(self, repo: str, title: str, body: str, head: str, base: str) -> PullRequest:
        resp = self._request(
            "POST",
            f"/repos/{repo}/pulls",
            json={"title": title, "body": body, "head": head, "base": base},
        )
        return pr_from_api(resp.json())

    def update_pr(
        self,
        repo: str,
        pr_number: int,
        title: str | None = None,
        body: str | None = None,
        state: str | None = None,
    ) -> PullRequest:
        payload = {k: v for k, v in (("title", title), ("body", body), ("state", state)) if v is not None}
        resp = self._request("PATCH", f"/repos/{repo}/pulls/{pr_number}", json=payload)
        return pr_from_api(resp.json())

    def add_labels(self, repo: str, issue_number: int, labels: List[str]) -> None:
        self._request("POST", f"/repos/{repo}/issues/{issue_number}/labels", json={"labels": labels})

    def get_branch_sha(self, repo: str, branch: str) -> str:
        data = self._request("GET", f"/repos/{repo}/git/ref/heads/{_ref(branch)}").json()
        return data["object"]["sha"]

    def delete_branch(self, repo: str, branch: str) -> None:
        self._request("DELETE", f"/repos/{repo}/git/refs/heads/{_ref(branch)}")

    def create_commit_status(self, repo: str, sha: str, state: str, description: str, context: str) -> None:
        self._request(
            "POST",
            f"/repos/{repo}/statuses/{sha}",
            json={"state": state, "description": description, "context": context},
        )

    def list_cross_references(self, repo: str, issue_number: int) -> List[int]:
        events = self._paginate(f"/repos/{repo}/issues/{issue_number}/timeline")
        numbers = [n for n in (_cross_reference_number(e) for e in events) if n is not None]
        LOG.debug("issues referenced in PR-%s: %s", issue_number, numbers)
        return numbers

    def list_pr_files(self, repo: str, pr_number: int) -> List[str]:
        return [f["filename"] for f in self._paginate(f"/repos/{repo}/pulls/{pr_number}/files")]

    def list_pr_commits(self, repo: str, pr_number: int) -> List[Commit]:
        return [_commit_from_api(c) for c in self._paginate(f"/repos/{repo}/pulls/{pr_number}/commits")]

    def update_branch(self, repo: str, pr_number: int) -> None:
        self._request("PUT", f"/repos/{repo}/pulls/{pr_number}/update-branch", json={})

    def create_comment(self, repo: str, issue_number: int, body: str) -> Comment:
        resp = self._request("POST", f"/repos/{repo}/issues/{issue_number}/comments", json={"body": body})
        return _comment_from_api(resp.json())

    def get_file_content(self, repo: str, path: str, ref: str) -> str | None:
        try:
            data = self._request("GET", f"/repos/{repo}/contents/{path}", params={"ref": ref}).json()
        except NotFoundError:
            return None
        if not isinstance(data, dict) or "content" not in data:
            return None
        return base64.b64decode(data["content"]).decode("utf-8")

    def get_clone_url(self, repo: str) -> str:
        data = self._request("GET", f"/repos/{repo}").json()
        parts = urlsplit(data["clone_url"])
        netloc = f"x-access-token:{self._token}@{parts.hostname}"
        if parts.port:
            netloc = f"{netloc}:{parts.port}"
        return urlunsplit((parts.scheme, netloc, parts.path, parts.query, parts.fragment))
