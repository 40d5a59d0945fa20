"""Mirror report formatting.

- ``format_sync_report`` -- post-run summary.
- ``format_dry_run_preview`` -- what a real run would do, grouped by action.
- ``report_to_json`` -- structured dict for ``--json`` output.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Iterable

from ..models import SyncAction

if TYPE_CHECKING:
    from ..models import RepositoryResult, SyncReport

# Dry-run groups, in display order. Up-to-date results are only counted.
PREVIEW_ORDER = (
    SyncAction.WOULD_CREATE,
    SyncAction.WOULD_SYNC,
    SyncAction.NOT_A_MIRROR,
    SyncAction.FAILED,
)


def _counts(r: RepositoryResult) -> str:
    return f"{r.commits} commits, {r.issues} issues"


def _mapping(r: RepositoryResult) -> str:
    return f"{r.source} -> {r.target}"


def _section(title: str, rows: Iterable[str]) -> list[str]:
    """A titled block of indented rows followed by a blank line."""
    rows = list(rows)
    if not rows:
        return []
    return [title, *(f"  {row}" for row in rows), ""]


# ------------------------------------------------------------------
# Human-readable report
# ------------------------------------------------------------------


def format_sync_report(report: SyncReport) -> str:
    """Format a completed mirror run as text.

    Empty sections are left out and up-to-date repositories are only
    counted.  Dry-run reports are rendered by ``format_dry_run_preview``.
    """
    if report.dry_run:
        return format_dry_run_preview(report)

    lines = ["Mirror report", f"Started: {report.started_at}"]
    if report.completed_at:
        lines.append(f"Completed: {report.completed_at}")
    lines += [
        "",
        f"Checked {len(report.results)} repositories: "
        f"{len(report.created)} created, {len(report.synced)} synced, "
        f"{len(report.up_to_date)} up to date, "
        f"{len(report.not_mirrors)} not mirrors, {len(report.errors)} errors",
        f"Pushed {report.total_pushed} commits",
        "",
    ]

    lines += _section(
        "Created:", (f"{_mapping(r)} ({_counts(r)})" for r in report.created)
    )
    lines += _section(
        "Synced:",
        (
            f"{_mapping(r)} ({_counts(r)}, {r.pushed} pushed)"
            for r in report.synced
        ),
    )
    lines += _section(
        "Not mirrors (left untouched):", map(_mapping, report.not_mirrors)
    )
    lines += _section(
        "Errors:", (f"{r.source}: {r.error}" for r in report.errors)
    )
    if report.up_to_date:
        lines += [f"Up to date: {len(report.up_to_date)} repositories", ""]

    return "\n".join(lines).rstrip()


# ------------------------------------------------------------------
# Dry-run preview
# ------------------------------------------------------------------


def format_dry_run_preview(report: SyncReport) -> str:
    """Format a dry run as ``[ACTION]`` groups of pending work.

    Each row reads ``source -> target (N commits, M issues)``; failures
    show the error instead.
    """
    lines = ["DRY RUN -- No changes will be made", ""]

    for action in PREVIEW_ORDER:
        matching = [r for r in report.results if r.action == action]
        if action == SyncAction.FAILED:
            rows = (f"{r.source}: {r.error}" for r in matching)
        else:
            rows = (f"{_mapping(r)} ({_counts(r)})" for r in matching)
        label = action.value.upper().replace("_", " ")
        lines += _section(f"[{label}]", rows)

    up_to_date = len(report.up_to_date)
    if up_to_date:
        lines += [f"Up to date: {up_to_date} repositories", ""]

    if not (report.created or report.synced):
        lines += ["No changes needed.", ""]

    return "\n".join(lines).rstrip()


# ------------------------------------------------------------------
# JSON output
# ------------------------------------------------------------------


def _result_to_json(r: RepositoryResult) -> dict:
    entry: dict = {
        "source": r.source,
        "target": r.target,
        "action": r.action.value,
        "success": r.success,
        "commits": r.commits,
        "issues": r.issues,
        "pushed": r.pushed,
    }
    if r.url:
        entry["url"] = r.url
    if r.error:
        entry["error"] = r.error
    return entry


def report_to_json(report: SyncReport) -> dict:
    """Convert *report* to a JSON-serialisable dict.

    Returns:
        Run timestamps, per-action counts and one entry per repository.
    """
    return {
        "dry_run": report.dry_run,
        "started_at": report.started_at,
        "completed_at": report.completed_at,
        "counts": {
            "total": len(report.results),
            "created": len(report.created),
            "synced": len(report.synced),
            "up_to_date": len(report.up_to_date),
            "not_mirrors": len(report.not_mirrors),
            "errors": len(report.errors),
            "pushed": report.total_pushed,
        },
        "results": [_result_to_json(r) for r in report.results],
    }
