"""Core sync engine that replays source activity onto mirror repositories.

The ``SyncEngine`` ties together the forge gateway, the git gateway and the
redaction policy.  For every source repository it:

1. Computes the target mirror name (``name`` or ``owner-name``, redacted).
2. Looks the mirror up, retrying once with the digest form of the name.
3. Refuses to touch a repository whose README lacks the mirror marker.
4. Creates the mirror when missing, with an initial marker-only commit
   dated at the earliest activity.
5. Derives the watermark from the mirror's own state (last commit, last
   non-PR issue) and drops every activity at or before it.
6. Replays the rest in ascending order as commits and issues.
7. Pushes when the working copy is ahead of the remote.

Nothing is persisted between runs; the watermark is recomputed every time.

Error handling is per repository: a ``MirrorError`` marks that repository
as failed and the run moves on.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from pathlib import Path

from ..config_schema import PushMethod
from ..core.async_utils import run_sync
from ..core.forge import ForgeGateway
from ..core.git import GitGateway, is_mirror_readme, path_for, readme_content
from ..errors import MirrorError, NotFoundError
from ..models import (
    Activity,
    ActivityIndex,
    CommitContent,
    IssueContent,
    MirrorIssue,
    MirrorRepository,
    Repository,
    RepositoryResult,
    SyncAction,
    SyncReport,
    earliest_activity,
    sort_activities,
)
from ..redaction import RedactionPolicy, digest

logger = logging.getLogger(__name__)


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _headline(message: str) -> str:
    """First non-blank line of a commit message, for progress output."""
    lines = [line for line in message.splitlines() if line.strip()]
    if not lines:
        return "<Empty commit message>"
    return lines[0] + (" ..." if len(message.splitlines()) > 1 else "")


def plain_target_name(repo: Repository) -> str:
    """Mirror name before redaction: ``name`` or ``owner-name``."""
    if repo.owned_by_you:
        return repo.name
    return f"{repo.owner}-{repo.name}"


def compute_watermark(
    last_commit: CommitContent | None, last_issue: MirrorIssue | None
) -> datetime | None:
    """Return the newest of the mirror's last commit and last issue."""
    moments = []
    if last_commit is not None:
        moments.append(last_commit.timestamp)
    if last_issue is not None:
        moments.append(last_issue.created_at)
    return max(moments) if moments else None


def pending_activities(
    activities: set[Activity], watermark: datetime | None
) -> list[Activity]:
    """Sort *activities* ascending and keep those strictly after *watermark*."""
    ordered = sort_activities(activities)
    if watermark is None:
        return ordered
    return [a for a in ordered if a.occurred_at > watermark]


class SyncEngine:
    """Mirror every repository of an activity index onto the destination forge.

    Args:
        forge: Destination forge gateway.
        git: Local working copy gateway.
        policy: Redaction policy for this run.
        username: Destination account that owns the mirrors.
        workdir: Root directory for local working copies.
        push_method: Whether to clone over SSH or HTTPS.
    """

    def __init__(
        self,
        forge: ForgeGateway,
        git: GitGateway,
        policy: RedactionPolicy,
        username: str,
        workdir: Path,
        push_method: PushMethod = PushMethod.SSH,
    ) -> None:
        self.forge = forge
        self.git = git
        self.policy = policy
        self.username = username
        self.workdir = workdir
        self.push_method = push_method

    # ------------------------------------------------------------------
    # Main entry point
    # ------------------------------------------------------------------

    async def run(
        self, index: ActivityIndex, dry_run: bool = False
    ) -> SyncReport:
        """Mirror every repository in *index*.

        Args:
            index: Activities grouped by source repository.
            dry_run: If ``True``, read mirror state but change nothing.

        Returns:
            A ``SyncReport`` with one result per non-empty source repository.
        """
        started_at = _now()
        results: list[RepositoryResult] = []

        for source, activities in index.items():
            if not activities:
                logger.debug("No activity for %s, skipping", source.full_name)
                continue

            target = self.target_name(source)
            try:
                result = await self._sync_repository(
                    source, target, activities, dry_run
                )
            except MirrorError as exc:
                logger.error("Error syncing %s: %s", source.full_name, exc)
                result = RepositoryResult(
                    source=source.full_name,
                    target=target,
                    action=SyncAction.FAILED,
                    error=str(exc),
                )
            results.append(result)

        return SyncReport(
            dry_run=dry_run,
            results=results,
            started_at=started_at,
            completed_at=_now(),
        )

    def target_name(self, source: Repository) -> str:
        return self.policy.repo_name(plain_target_name(source))

    # ------------------------------------------------------------------
    # Repository resolution
    # ------------------------------------------------------------------

    async def _lookup(self, source: Repository) -> MirrorRepository | None:
        """Find the mirror by its target name, then by the digest form.

        Raises:
            RemoteError: For any lookup failure other than "not found".
        """
        plain = plain_target_name(source)
        candidates = [self.policy.repo_name(plain)]
        if digest(plain) not in candidates:
            candidates.append(digest(plain))

        for name in candidates:
            logger.info("Checking %s/%s", self.username, name)
            try:
                return await run_sync(
                    self.forge.get_repository, self.username, name
                )
            except NotFoundError:
                continue
        return None

    async def _is_mirror(self, mirror: MirrorRepository) -> bool:
        readme = await run_sync(self.forge.get_readme, mirror)
        return is_mirror_readme(readme)

    def _remote_url(self, mirror: MirrorRepository) -> str:
        if self.push_method == PushMethod.SSH:
            return mirror.ssh_url
        return mirror.clone_url

    async def _working_copy(self, mirror: MirrorRepository) -> Path:
        path = path_for(self.workdir, mirror.full_name)
        return await run_sync(self.git.prepare, path, self._remote_url(mirror))

    async def _create(
        self, source: Repository, target: str, first: Activity
    ) -> tuple[MirrorRepository, Path]:
        logger.info("Creating repo: %s", source.full_name)
        mirror = await run_sync(
            self.forge.create_repository,
            target,
            self.policy.repo_description(source.description),
            self.policy.private_mirrors,
        )
        path = await self._working_copy(mirror)
        await run_sync(self.git.create_initial, path, first.occurred_at)
        logger.info("Created repo: %s", mirror.html_url)
        return mirror, path

    # ------------------------------------------------------------------
    # Per-repository sync
    # ------------------------------------------------------------------

    async def _sync_repository(
        self,
        source: Repository,
        target: str,
        activities: set[Activity],
        dry_run: bool,
    ) -> RepositoryResult:
        mirror = await self._lookup(source)

        if mirror is not None and not await self._is_mirror(mirror):
            logger.warning(
                "%s exists but is not a mirror, leaving it alone",
                mirror.full_name,
            )
            return RepositoryResult(
                source=source.full_name,
                target=mirror.name,
                action=SyncAction.NOT_A_MIRROR,
                url=mirror.html_url,
            )

        if mirror is None:
            if dry_run:
                return self._preview(
                    source,
                    target,
                    SyncAction.WOULD_CREATE,
                    sort_activities(activities),
                    None,
                )
            mirror, path = await self._create(
                source, target, earliest_activity(activities)
            )
            # The marker commit is not mirrored activity, so replay everything.
            watermark = None
            created = True
        else:
            path = await self._working_copy(mirror)
            watermark = await self._watermark(mirror, path)
            created = False

        pending = pending_activities(activities, watermark)
        if dry_run:
            action = SyncAction.WOULD_SYNC if pending else SyncAction.UP_TO_DATE
            return self._preview(source, mirror.name, action, pending, mirror)

        commits, issues = await self._replay(mirror, path, pending, watermark)
        pushed = await self._push(mirror, path)

        if created:
            action = SyncAction.CREATED
        elif commits or issues or pushed:
            action = SyncAction.SYNCED
        else:
            action = SyncAction.UP_TO_DATE
        return RepositoryResult(
            source=source.full_name,
            target=mirror.name,
            action=action,
            commits=commits,
            issues=issues,
            pushed=pushed,
            url=mirror.html_url,
        )

    @staticmethod
    def _preview(
        source: Repository,
        target: str,
        action: SyncAction,
        pending: list[Activity],
        mirror: MirrorRepository | None,
    ) -> RepositoryResult:
        commits = sum(
            1 for a in pending if isinstance(a.content, CommitContent)
        )
        return RepositoryResult(
            source=source.full_name,
            target=target,
            action=action,
            commits=commits,
            issues=len(pending) - commits,
            url=mirror.html_url if mirror else None,
        )

    async def _watermark(
        self, mirror: MirrorRepository, path: Path
    ) -> datetime | None:
        last_commit = await run_sync(self.git.last_commit, path)
        last_issue = await run_sync(self.forge.latest_issue, mirror)
        watermark = compute_watermark(last_commit, last_issue)
        logger.debug("Watermark for %s: %s", mirror.full_name, watermark)
        return watermark

    # ------------------------------------------------------------------
    # Replay
    # ------------------------------------------------------------------

    async def _replay(
        self,
        mirror: MirrorRepository,
        path: Path,
        pending: list[Activity],
        watermark: datetime | None,
    ) -> tuple[int, int]:
        """Write *pending* activities to the mirror in order.

        Returns:
            ``(commits, issues)`` actually created.

        Raises:
            MirrorError: On the first git or forge failure; earlier work
                stays in place.
        """
        if pending:
            logger.info("Syncing: %s", mirror.full_name)

        existing: list[MirrorIssue] | None = None
        commits = issues = 0

        for activity in pending:
            content = activity.content
            if isinstance(content, CommitContent):
                if await self._replay_commit(mirror, path, activity, content):
                    commits += 1
                continue

            if existing is None:
                existing = await run_sync(
                    self.forge.issues_since, mirror, watermark
                )
            if await self._replay_issue(mirror, activity, content, existing):
                issues += 1

        return commits, issues

    async def _replay_commit(
        self,
        mirror: MirrorRepository,
        path: Path,
        activity: Activity,
        commit: CommitContent,
    ) -> bool:
        subject = self.policy.commit_subject(commit, activity.source_link)
        body = self.policy.commit_body(commit, activity.source_link)
        committed = await run_sync(
            self.git.commit_readme,
            path,
            readme_content(body),
            subject,
            activity.occurred_at,
        )
        if committed:
            logger.info(
                "%s - %s: %s",
                activity.occurred_at.isoformat(),
                mirror.full_name,
                _headline(commit.message),
            )
        return committed

    async def _replay_issue(
        self,
        mirror: MirrorRepository,
        activity: Activity,
        issue: IssueContent,
        existing: list[MirrorIssue],
    ) -> bool:
        title = self.policy.issue_title(issue)
        if any(known.title == title for known in existing):
            logger.debug("Issue already mirrored: %s", title)
            return False

        body = self.policy.issue_body(
            issue, activity.occurred_at, activity.source_link
        )
        created = await run_sync(self.forge.create_issue, mirror, title, body)
        existing.append(created)
        logger.info(
            "%s - %s: [%d] %s",
            activity.occurred_at.isoformat(),
            mirror.full_name,
            issue.issue_id,
            issue.message or "<Empty issue title>",
        )
        return True

    async def _push(self, mirror: MirrorRepository, path: Path) -> int:
        unpushed = await run_sync(self.git.unpushed_count, path)
        if unpushed > 0:
            await run_sync(self.git.push, path)
            logger.info(
                "Pushed %d new commits to %s", unpushed, mirror.html_url
            )
        return unpushed
