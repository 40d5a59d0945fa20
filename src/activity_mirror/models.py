"""Pydantic models for the activity sync engine.

Defines the core data contracts used across all sync modules:

- ``OperationKind``: Source forge action types.
- ``CommitContent`` / ``IssueContent``: The closed content variant.
- ``Activity``: One unit of mirrored work, deduplicated by fingerprint.
- ``Repository``: Source-side repository descriptor (grouping key).
- ``MirrorRepository``: Destination-side repository returned by the forge.
- ``SyncAction``, ``RepositoryResult``, ``SyncReport``: Run outcome.

All models are frozen (immutable) so they can live in sets and dict keys.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Annotated, Iterable, Literal, Mapping, Union

from pydantic import AwareDatetime, BaseModel, Field


class OperationKind(str, Enum):
    """Action types reported by Gitea-compatible activity feeds."""

    CREATE_REPO = "create_repo"
    RENAME_REPO = "rename_repo"
    STAR_REPO = "star_repo"
    WATCH_REPO = "watch_repo"
    COMMIT_REPO = "commit_repo"
    CREATE_ISSUE = "create_issue"
    CREATE_PULL_REQUEST = "create_pull_request"
    TRANSFER_REPO = "transfer_repo"
    PUSH_TAG = "push_tag"
    COMMENT_ISSUE = "comment_issue"
    MERGE_PULL_REQUEST = "merge_pull_request"
    CLOSE_ISSUE = "close_issue"
    REOPEN_ISSUE = "reopen_issue"
    CLOSE_PULL_REQUEST = "close_pull_request"
    REOPEN_PULL_REQUEST = "reopen_pull_request"
    DELETE_TAG = "delete_tag"
    DELETE_BRANCH = "delete_branch"
    MIRROR_SYNC_PUSH = "mirror_sync_push"
    MIRROR_SYNC_CREATE = "mirror_sync_create"
    MIRROR_SYNC_DELETE = "mirror_sync_delete"
    APPROVE_PULL_REQUEST = "approve_pull_request"
    REJECT_PULL_REQUEST = "reject_pull_request"
    COMMENT_PULL = "comment_pull"
    PUBLISH_RELEASE = "publish_release"
    PULL_REVIEW_DISMISSED = "pull_review_dismissed"
    PULL_REQUEST_READY_FOR_REVIEW = "pull_request_ready_for_review"
    AUTO_MERGE_PULL_REQUEST = "auto_merge_pull_request"


COMMIT_OPERATIONS = frozenset(
    {OperationKind.COMMIT_REPO, OperationKind.MIRROR_SYNC_PUSH}
)
# Close, reopen and comment records carry no title (comments carry the
# comment text instead), so only issue creation is mirrored.
ISSUE_OPERATIONS = frozenset({OperationKind.CREATE_ISSUE})


# ---------------------------------------------------------------------------
# Activity content
# ---------------------------------------------------------------------------


class CommitContent(BaseModel):
    """A single commit.

    Attributes:
        sha1: Commit hash.
        message: Full commit message.
        author_email: Author email as reported by the source.
        author_name: Author name as reported by the source.
        timestamp: Commit timestamp with offset.
    """

    kind: Literal["commit"] = "commit"
    sha1: str
    message: str
    author_email: str
    author_name: str
    timestamp: AwareDatetime

    model_config = {"frozen": True}

    def fingerprint(self) -> tuple:
        return ("commit", self.message, self.sha1, self.timestamp)


class IssueContent(BaseModel):
    """An issue reference decoded from the source feed.

    Attributes:
        issue_id: Source issue number (always positive).
        message: Issue title.
    """

    kind: Literal["issue"] = "issue"
    issue_id: int = Field(gt=0)
    message: str

    model_config = {"frozen": True}

    def fingerprint(self) -> tuple:
        return ("issue", self.issue_id, self.message)


ActivityContent = Annotated[
    Union[CommitContent, IssueContent], Field(discriminator="kind")
]


class Activity(BaseModel):
    """One unit of source activity.

    Equality and hashing use only ``operation_kind`` and the content
    fingerprint.  ``acting_username``, ``acting_email`` and ``source_link``
    are reported inconsistently by source forges (noreply-email variants
    and the like) for the same event, so they do not take part.

    Attributes:
        operation_kind: Source action type.
        occurred_at: When the activity happened (with offset).
        content: Commit or issue payload.
        acting_username: Username that performed the action.
        acting_email: Email that performed the action.
        source_link: URL back to the activity on the source forge.
    """

    operation_kind: OperationKind
    occurred_at: AwareDatetime
    content: ActivityContent
    acting_username: str = ""
    acting_email: str = ""
    source_link: str = ""

    model_config = {"frozen": True}

    def fingerprint(self) -> tuple:
        """Return the deduplication identity of this activity."""
        return (self.operation_kind, self.content.fingerprint())

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Activity):
            return NotImplemented
        return self.fingerprint() == other.fingerprint()

    def __hash__(self) -> int:
        return hash(self.fingerprint())


# ---------------------------------------------------------------------------
# Repositories
# ---------------------------------------------------------------------------


class Repository(BaseModel):
    """Source-side repository descriptor.

    Used as a grouping key; two descriptors differing in any field
    (including ``description``) are distinct groups.
    """

    owned_by_you: bool
    owner: str
    name: str
    full_name: str
    description: str | None = None
    html_url: str
    clone_url: str
    private: bool
    created_date: datetime

    model_config = {"frozen": True}


class MirrorRepository(BaseModel):
    """Destination-side repository as reported by the forge."""

    id: int
    owner: str
    name: str
    full_name: str
    html_url: str
    clone_url: str
    ssh_url: str
    private: bool = True

    model_config = {"frozen": True}


class MirrorIssue(BaseModel):
    """Destination-side issue (pull requests are filtered out upstream)."""

    number: int
    title: str
    created_at: AwareDatetime

    model_config = {"frozen": True}


ActivityIndex = dict[Repository, set[Activity]]


# ---------------------------------------------------------------------------
# Ordering and index helpers
# ---------------------------------------------------------------------------


def sort_activities(activities: Iterable[Activity]) -> list[Activity]:
    """Return *activities* sorted ascending by ``occurred_at``."""
    return sorted(activities, key=lambda a: a.occurred_at)


def earliest_activity(activities: Iterable[Activity]) -> Activity:
    """Return the chronologically first activity.

    Raises:
        ValueError: If *activities* is empty.
    """
    return min(activities, key=lambda a: a.occurred_at)


def add_activity(
    index: ActivityIndex, repo: Repository, activity: Activity
) -> bool:
    """Add *activity* under *repo*, keeping the first-seen duplicate.

    Returns:
        ``True`` if the activity was new for that repository.
    """
    bucket = index.setdefault(repo, set())
    if activity in bucket:
        return False
    bucket.add(activity)
    return True


def merge_indexes(
    indexes: Iterable[Mapping[Repository, set[Activity]]],
) -> ActivityIndex:
    """Union several adapter results into one index."""
    merged: ActivityIndex = {}
    for index in indexes:
        for repo, activities in index.items():
            for activity in activities:
                add_activity(merged, repo, activity)
    return merged


# ---------------------------------------------------------------------------
# Run outcome
# ---------------------------------------------------------------------------


class SyncAction(str, Enum):
    """What happened to one source repository during a run."""

    CREATED = "created"
    SYNCED = "synced"
    UP_TO_DATE = "up_to_date"
    NOT_A_MIRROR = "not_a_mirror"
    FAILED = "failed"
    WOULD_CREATE = "would_create"
    WOULD_SYNC = "would_sync"


class RepositoryResult(BaseModel):
    """Outcome of syncing one source repository.

    Attributes:
        source: Source ``full_name``.
        target: Mirror name on the destination forge (may be redacted).
        action: What the engine did.
        commits: Commits replayed (or pending, in a dry run).
        issues: Issues created (or pending, in a dry run).
        pushed: Commits pushed to the mirror.
        url: Mirror web URL when known.
        error: Error message if the repository failed.
    """

    source: str
    target: str
    action: SyncAction
    commits: int = 0
    issues: int = 0
    pushed: int = 0
    url: str | None = None
    error: str | None = None

    model_config = {"frozen": True}

    @property
    def success(self) -> bool:
        return self.action != SyncAction.FAILED


class SyncReport(BaseModel):
    """Aggregate report for a full mirror run.

    Attributes:
        dry_run: Whether this was a dry-run (no changes applied).
        results: Per-repository results.
        started_at: ISO 8601 timestamp when the run started.
        completed_at: ISO 8601 timestamp when the run completed.
    """

    dry_run: bool = False
    results: list[RepositoryResult] = []
    started_at: str
    completed_at: str | None = None

    model_config = {"frozen": True}

    def _with(self, *actions: SyncAction) -> list[RepositoryResult]:
        return [r for r in self.results if r.action in actions]

    @property
    def created(self) -> list[RepositoryResult]:
        """Results where the mirror was (or would be) created."""
        return self._with(SyncAction.CREATED, SyncAction.WOULD_CREATE)

    @property
    def synced(self) -> list[RepositoryResult]:
        """Results where new activity was (or would be) replayed."""
        return self._with(SyncAction.SYNCED, SyncAction.WOULD_SYNC)

    @property
    def up_to_date(self) -> list[RepositoryResult]:
        return self._with(SyncAction.UP_TO_DATE)

    @property
    def not_mirrors(self) -> list[RepositoryResult]:
        return self._with(SyncAction.NOT_A_MIRROR)

    @property
    def errors(self) -> list[RepositoryResult]:
        return self._with(SyncAction.FAILED)

    @property
    def total_pushed(self) -> int:
        return sum(r.pushed for r in self.results)
