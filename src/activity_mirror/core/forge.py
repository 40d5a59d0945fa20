"""Destination forge gateway (GitHub REST API).

``ForgeGateway`` is the capability the sync engine needs from the public
forge; ``GitHubForge`` implements it with a ``requests`` session.

HTTP failures are translated at this boundary:

- 404 → ``NotFoundError``
- any other 4xx/5xx or transport error → ``RemoteError``
- a response missing required fields → ``RemoteError``
"""

from __future__ import annotations

import base64
import binascii
import logging
from datetime import datetime
from typing import Any, Protocol

import requests
from pydantic import ValidationError

from .. import __version__
from ..errors import NotFoundError, RemoteError
from ..models import MirrorIssue, MirrorRepository

logger = logging.getLogger(__name__)

NOREPLY_SUFFIX = "@users.noreply.github.com"


class ForgeGateway(Protocol):
    """Remote operations the sync engine performs on the destination forge."""

    def get_repository(self, owner: str, name: str) -> MirrorRepository:
        """Look up a repository by exact name.

        Raises:
            NotFoundError: If it does not exist.
            RemoteError: For any other failure.
        """
        ...  # pragma: no cover

    def get_readme(self, repo: MirrorRepository) -> str | None:
        """Return the decoded README, or ``None`` if the repo has none."""
        ...  # pragma: no cover

    def create_repository(
        self, name: str, description: str | None, private: bool
    ) -> MirrorRepository:
        ...  # pragma: no cover

    def latest_issue(self, repo: MirrorRepository) -> MirrorIssue | None:
        """Return the most recently created issue that is not a pull request."""
        ...  # pragma: no cover

    def issues_since(
        self, repo: MirrorRepository, since: datetime | None
    ) -> list[MirrorIssue]:
        ...  # pragma: no cover

    def create_issue(
        self, repo: MirrorRepository, title: str, body: str
    ) -> MirrorIssue:
        ...  # pragma: no cover


class GitHubForge:
    """GitHub REST client scoped to the mirror owner's account.

    Args:
        token: Personal access token.
        api_url: REST API base URL (GitHub Enterprise uses its own).
        session: Optional pre-built session (tests inject fakes here).
        per_page: Page size for paginated listings.
    """

    def __init__(
        self,
        token: str,
        api_url: str = "https://api.github.com",
        session: requests.Session | None = None,
        per_page: int = 50,
    ) -> None:
        self.api_url = api_url.rstrip("/")
        self.per_page = per_page
        self.session = session or self._create_session(token)

    @staticmethod
    def _create_session(token: str) -> requests.Session:
        session = requests.Session()
        session.headers.update(
            {
                "Authorization": f"token {token}",
                "Accept": "application/vnd.github+json",
                "X-GitHub-Api-Version": "2022-11-28",
                "User-Agent": f"activity-mirror/{__version__}",
            }
        )
        return session

    # ------------------------------------------------------------------
    # HTTP plumbing
    # ------------------------------------------------------------------

    def _request(
        self,
        method: str,
        path: str,
        params: dict[str, Any] | None = None,
        json: dict[str, Any] | None = None,
    ) -> Any:
        """Perform a request and return the decoded JSON body.

        Raises:
            NotFoundError: On HTTP 404.
            RemoteError: On any other error status or transport failure.
        """
        url = f"{self.api_url}{path}"
        try:
            response = self.session.request(
                method, url, params=params, json=json, timeout=(10, 60)
            )
        except requests.RequestException as exc:
            raise RemoteError(f"HTTP error: {exc}", url=url) from exc

        if response.status_code == 404:
            raise NotFoundError(f"Not found: {url}", 404, url)
        if response.status_code >= 400:
            try:
                detail = response.json().get("message", response.text)
            except ValueError:
                detail = response.text
            raise RemoteError(
                f"GitHub API error {response.status_code}: {detail}",
                response.status_code,
                url,
            )
        if not response.content:
            return None
        return response.json()

    def _paginate_issues(
        self, repo: MirrorRepository, params: dict[str, Any]
    ):
        """Yield raw issue dicts page by page, newest first."""
        page = 1
        while True:
            items = self._request(
                "GET",
                f"/repos/{repo.full_name}/issues",
                params={
                    "state": "all",
                    "sort": "created",
                    "direction": "desc",
                    "per_page": self.per_page,
                    "page": page,
                    **params,
                },
            )
            if not items:
                return
            yield from items
            if len(items) < self.per_page:
                return
            page += 1

    # ------------------------------------------------------------------
    # Parsing
    # ------------------------------------------------------------------

    @staticmethod
    def _parse_repo(data: dict[str, Any]) -> MirrorRepository:
        try:
            return MirrorRepository(
                id=data["id"],
                owner=data["owner"]["login"],
                name=data["name"],
                full_name=data["full_name"],
                html_url=data["html_url"],
                clone_url=data["clone_url"],
                ssh_url=data["ssh_url"],
                private=data.get("private", True),
            )
        except (AttributeError, KeyError, TypeError, ValidationError) as exc:
            raise RemoteError(f"Malformed repository payload: {exc}") from exc

    @staticmethod
    def _parse_issue(data: dict[str, Any]) -> MirrorIssue:
        try:
            return MirrorIssue(
                number=data["number"],
                title=data["title"],
                created_at=data["created_at"],
            )
        except (AttributeError, KeyError, TypeError, ValidationError) as exc:
            raise RemoteError(f"Malformed issue payload: {exc}") from exc

    # ------------------------------------------------------------------
    # Repositories
    # ------------------------------------------------------------------

    def get_repository(self, owner: str, name: str) -> MirrorRepository:
        return self._parse_repo(self._request("GET", f"/repos/{owner}/{name}"))

    def get_readme(self, repo: MirrorRepository) -> str | None:
        try:
            data = self._request("GET", f"/repos/{repo.full_name}/readme")
        except NotFoundError:
            return None

        content = data.get("content") if data else None
        if content is None:
            return None
        if data.get("encoding", "base64") != "base64":
            return content
        try:
            return base64.b64decode(content).decode("utf-8", errors="replace")
        except (binascii.Error, ValueError):
            logger.warning("Undecodable README in %s", repo.full_name)
            return None

    def create_repository(
        self, name: str, description: str | None, private: bool
    ) -> MirrorRepository:
        body: dict[str, Any] = {"name": name, "private": private}
        if description is not None:
            body["description"] = description
        return self._parse_repo(self._request("POST", "/user/repos", json=body))

    # ------------------------------------------------------------------
    # Issues
    # ------------------------------------------------------------------

    def latest_issue(self, repo: MirrorRepository) -> MirrorIssue | None:
        # Pull requests share the issues collection; skip them.
        for item in self._paginate_issues(repo, {}):
            if "pull_request" not in item:
                return self._parse_issue(item)
        return None

    def issues_since(
        self, repo: MirrorRepository, since: datetime | None
    ) -> list[MirrorIssue]:
        params: dict[str, Any] = {}
        if since is not None:
            params["since"] = since.isoformat()
        logger.info("Getting issues from repo: %s", repo.name)
        return [
            self._parse_issue(item)
            for item in self._paginate_issues(repo, params)
            if "pull_request" not in item
        ]

    def create_issue(
        self, repo: MirrorRepository, title: str, body: str
    ) -> MirrorIssue:
        data = self._request(
            "POST",
            f"/repos/{repo.full_name}/issues",
            json={"title": title, "body": body},
        )
        return self._parse_issue(data)

    # ------------------------------------------------------------------
    # Account
    # ------------------------------------------------------------------

    def noreply_email(self) -> str | None:
        """Return the account's ``@users.noreply.github.com`` address."""
        emails = self._request("GET", "/user/emails") or []
        for entry in emails:
            address = entry.get("email", "")
            if address.endswith(NOREPLY_SUFFIX):
                return address
        return None
