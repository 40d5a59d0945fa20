"""Activity synchronization engine.

Public API for replaying source forge activity onto mirror repositories
on the destination forge.

Architecture
------------
The engine keeps **no state of its own**.  Each run derives a per-mirror
watermark from what the mirror already contains (its newest commit and
newest non-PR issue) and replays only activity strictly newer than that.
A mirror is recognised by the marker line at the end of its README;
repositories without it are never written to.

Modules:

- ``engine``   -- ``SyncEngine``: resolves, creates and replays mirrors.
- ``reporter`` -- Human-readable and JSON report formatting.

Data contracts (``SyncAction``, ``RepositoryResult``, ``SyncReport``) live
in ``activity_mirror.models``.

Usage example
-------------
::

    from activity_mirror.core import GitGateway, GitHubForge
    from activity_mirror.redaction import RedactionPolicy, RedactLevel
    from activity_mirror.sync import SyncEngine, format_sync_report

    engine = SyncEngine(
        forge=GitHubForge(token),
        git=GitGateway("alice", "alice@users.noreply.github.com"),
        policy=RedactionPolicy(RedactLevel.PRIVATE_REPOS),
        username="alice",
        workdir=Path("/tmp/activity-mirror"),
    )

    # Dry-run first to preview changes
    preview = await engine.run(index, dry_run=True)
    print(format_sync_report(preview))

    report = await engine.run(index)
    print(format_sync_report(report))
"""

from ..models import RepositoryResult, SyncAction, SyncReport
from .engine import SyncEngine
from .reporter import (
    format_dry_run_preview,
    format_sync_report,
    report_to_json,
)

__all__ = [
    "RepositoryResult",
    "SyncAction",
    "SyncEngine",
    "SyncReport",
    "format_dry_run_preview",
    "format_sync_report",
    "report_to_json",
]
