"""Activity adapter for Gitea and Forgejo.

Walks the user's public activity feed
(``/api/v1/users/{user}/activities/feeds?only-performed-by=true``) page by
page until an empty page is returned, and turns each record into zero or
more ``Activity`` values grouped by source repository.

Commit pushes carry a digest of at most a handful of commits plus the true
push size (``Len``).  When the digest is short, the remainder is backfilled
from ``/repos/{full_name}/commits`` starting at the oldest digest commit.
Backfill is date based rather than an ancestry walk: it stops at the first
commit authored on a different UTC day than that boundary commit.
"""

from __future__ import annotations

import json
import logging
from datetime import date, datetime, timezone
from typing import Any

import requests
from pydantic import ValidationError

from ..config_schema import ServiceConfig
from ..errors import ParseError, RemoteError
from ..models import (
    COMMIT_OPERATIONS,
    ISSUE_OPERATIONS,
    Activity,
    ActivityIndex,
    CommitContent,
    IssueContent,
    OperationKind,
    Repository,
    add_activity,
)

logger = logging.getLogger(__name__)

FEED_PAGE_SIZE = 50


def parse_issue_content(raw: str) -> IssueContent:
    """Decode the compact ``"{id}|{title}"`` issue payload.

    Raises:
        ParseError: If the id is not a positive integer or the title is
            empty.
    """
    head, sep, title = raw.partition("|")
    if not sep:
        raise ParseError(f"Issue content without separator: {raw!r}")
    try:
        issue_id = int(head)
    except ValueError:
        raise ParseError(f"Invalid issue id: {head!r}") from None
    if issue_id <= 0:
        raise ParseError(f"Invalid issue id: {issue_id}")
    if not title.strip():
        raise ParseError(f"Issue {issue_id} has no title")
    return IssueContent(issue_id=issue_id, message=title)


class GiteaAdapter:
    """Fetch activity from one Gitea-compatible account.

    Args:
        service: The configured source service.
        session: Optional pre-built session (tests inject fakes here).
    """

    def __init__(
        self,
        service: ServiceConfig,
        session: requests.Session | None = None,
    ) -> None:
        self.service = service
        self.username = service.username
        self.api_url = f"{service.url}/api/v1"
        self.session = session or self._create_session(service.token)

    @staticmethod
    def _create_session(token: str) -> requests.Session:
        session = requests.Session()
        session.headers.update(
            {"Authorization": f"token {token}", "Accept": "application/json"}
        )
        return session

    def _get(self, path: str, params: dict[str, Any]) -> list[dict]:
        url = f"{self.api_url}{path}"
        try:
            response = self.session.get(url, params=params, timeout=(10, 60))
            response.raise_for_status()
        except requests.HTTPError as exc:
            raise RemoteError(
                f"{self.service.service_type.value} API error: {exc}",
                exc.response.status_code if exc.response is not None else None,
                url,
            ) from exc
        except requests.RequestException as exc:
            raise RemoteError(f"HTTP error: {exc}", url=url) from exc
        try:
            return response.json()
        except ValueError as exc:
            raise RemoteError(f"Invalid JSON from {url}", url=url) from exc

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def fetch(self) -> ActivityIndex:
        """Return every commit and issue activity, grouped by repository.

        Raises:
            RemoteError: If the feed itself cannot be read.
        """
        logger.info("Fetching activities from %s", self.service.url)
        index: ActivityIndex = {}
        page = 1
        while True:
            records = self._get(
                f"/users/{self.username}/activities/feeds",
                {
                    "only-performed-by": "true",
                    "page": page,
                    "limit": FEED_PAGE_SIZE,
                },
            )
            if not records:
                break
            for record in records:
                try:
                    self._ingest(index, record)
                except (
                    ParseError,
                    ValidationError,
                    KeyError,
                    TypeError,
                ) as exc:
                    logger.debug(
                        "Dropping feed record %s: %s", record.get("id"), exc
                    )
            page += 1

        total = sum(len(acts) for acts in index.values())
        logger.info(
            "Fetched %d activities across %d repositories from %s",
            total,
            len(index),
            self.service.url,
        )
        return index

    # ------------------------------------------------------------------
    # Record decoding
    # ------------------------------------------------------------------

    def _repository(self, data: dict[str, Any]) -> Repository:
        owner = data["owner"]
        owner_name = owner.get("username") or owner["login"]
        return Repository(
            owned_by_you=owner_name.lower() == self.username.lower(),
            owner=owner_name,
            name=data["name"],
            full_name=data["full_name"],
            description=data.get("description") or None,
            html_url=data["html_url"],
            clone_url=data["clone_url"],
            private=data.get("private", False),
            created_date=data["created_at"],
        )

    def _ingest(self, index: ActivityIndex, record: dict[str, Any]) -> None:
        try:
            op = OperationKind(record["op_type"])
        except ValueError:
            logger.debug("Ignoring unknown op_type %r", record["op_type"])
            return
        if op not in COMMIT_OPERATIONS and op not in ISSUE_OPERATIONS:
            return

        repo = self._repository(record["repo"])
        actor = record.get("act_user") or {}
        content = record.get("content") or ""

        if op in ISSUE_OPERATIONS:
            issue = parse_issue_content(content)
            add_activity(
                index,
                repo,
                Activity(
                    operation_kind=op,
                    occurred_at=record["created"],
                    content=issue,
                    acting_username=actor.get("login", ""),
                    acting_email=actor.get("email", ""),
                    source_link=f"{repo.html_url}/issues/{issue.issue_id}",
                ),
            )
            return

        self._ingest_push(index, repo, content, actor)

    def _ingest_push(
        self,
        index: ActivityIndex,
        repo: Repository,
        content: str,
        actor: dict[str, Any],
    ) -> None:
        try:
            payload = json.loads(content)
        except ValueError:
            raise ParseError(
                f"Push content is not JSON: {content[:80]!r}"
            ) from None
        if not isinstance(payload, dict):
            raise ParseError("Push content is not an object")

        try:
            total = int(payload.get("Len", 0))
        except (TypeError, ValueError):
            raise ParseError(
                f"Invalid push length: {payload.get('Len')!r}"
            ) from None

        digest = payload.get("Commits") or []
        for item in digest:
            add_activity(
                index, repo, self._digest_activity(repo, item, actor)
            )

        missing = total - len(digest)
        if missing > 0 and digest:
            boundary = self._digest_activity(repo, digest[-1], actor)
            try:
                self._backfill(index, repo, boundary, missing)
            except RemoteError as exc:
                logger.warning(
                    "Backfill of %s stopped early: %s", repo.full_name, exc
                )

    @staticmethod
    def _digest_activity(
        repo: Repository, item: dict[str, Any], actor: dict[str, Any]
    ) -> Activity:
        commit = CommitContent(
            sha1=item["Sha1"],
            message=item["Message"],
            author_email=item.get("AuthorEmail", ""),
            author_name=item.get("AuthorName", ""),
            timestamp=item["Timestamp"],
        )
        return Activity(
            operation_kind=OperationKind.COMMIT_REPO,
            occurred_at=commit.timestamp,
            content=commit,
            acting_username=actor.get("login", commit.author_name),
            acting_email=commit.author_email,
            source_link=f"{repo.html_url}/commit/{commit.sha1}",
        )

    # ------------------------------------------------------------------
    # Backfill
    # ------------------------------------------------------------------

    def _backfill(
        self,
        index: ActivityIndex,
        repo: Repository,
        boundary: Activity,
        missing: int,
    ) -> None:
        """Page commit history from *boundary* until *missing* are found."""
        boundary_day = _utc_day(boundary.occurred_at)
        logger.debug(
            "Backfilling %d commit(s) in %s from %s",
            missing,
            repo.full_name,
            boundary.content.sha1,
        )
        page = 1
        while missing > 0:
            commits = self._get(
                f"/repos/{repo.full_name}/commits",
                {
                    "sha": boundary.content.sha1,
                    "page": page,
                    "limit": missing * 2,
                },
            )
            if not commits:
                return
            for item in commits:
                try:
                    activity = self._history_activity(item)
                except (ValidationError, KeyError, TypeError) as exc:
                    logger.debug("Dropping commit %s: %s", item.get("sha"), exc)
                    continue
                if _utc_day(activity.occurred_at) != boundary_day:
                    return
                if activity.acting_username.lower() != self.username.lower():
                    continue
                if add_activity(index, repo, activity):
                    missing -= 1
                    if missing == 0:
                        return
            page += 1

    @staticmethod
    def _history_activity(item: dict[str, Any]) -> Activity:
        details = item["commit"]
        author = item.get("author")
        if author:
            email = author.get("email", "")
            name = author.get("username") or author.get("login", "")
        else:
            email = details["author"]["email"]
            name = details["author"]["name"]

        commit = CommitContent(
            sha1=item["sha"],
            message=details["message"],
            author_email=email,
            author_name=name,
            timestamp=item["created"],
        )
        return Activity(
            operation_kind=OperationKind.COMMIT_REPO,
            occurred_at=commit.timestamp,
            content=commit,
            acting_username=name,
            acting_email=email,
            source_link=item.get("html_url", ""),
        )


def _utc_day(moment: datetime) -> date:
    return moment.astimezone(timezone.utc).date()
