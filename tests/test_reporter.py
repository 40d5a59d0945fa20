"""Tests for sync reporter formatting functions.

Covers:
- format_sync_report with various result combinations
- format_dry_run_preview grouping
- report_to_json structure and completeness
"""

from __future__ import annotations

import json

from activity_mirror.models import RepositoryResult, SyncAction, SyncReport
from activity_mirror.sync.reporter import (
    format_dry_run_preview,
    format_sync_report,
    report_to_json,
)

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _make_report(
    results: list[RepositoryResult] | None = None,
    dry_run: bool = False,
) -> SyncReport:
    """Build a SyncReport with sensible defaults."""
    return SyncReport(
        dry_run=dry_run,
        results=results or [],
        started_at="2024-01-01T10:00:00+00:00",
        completed_at="2024-01-01T10:01:00+00:00",
    )


def _result(
    action: SyncAction,
    source: str = "acme/lib",
    target: str = "acme-lib",
    **fields,
) -> RepositoryResult:
    return RepositoryResult(
        source=source, target=target, action=action, **fields
    )


# ---------------------------------------------------------------------------
# format_sync_report
# ---------------------------------------------------------------------------


class TestFormatSyncReport:
    def test_header_and_counts(self):
        report = _make_report(
            [
                _result(SyncAction.CREATED, commits=3, pushed=3),
                _result(
                    SyncAction.SYNCED,
                    source="alice/dots",
                    target="dots",
                    commits=1,
                    issues=2,
                    pushed=1,
                ),
                _result(SyncAction.UP_TO_DATE, source="acme/app"),
            ]
        )
        text = format_sync_report(report)

        assert text.startswith("Mirror report")
        assert "Started: 2024-01-01T10:00:00+00:00" in text
        assert (
            "Checked 3 repositories: 1 created, 1 synced, 1 up to date, "
            "0 not mirrors, 0 errors"
        ) in text
        assert "Pushed 4 commits" in text
        assert "  acme/lib -> acme-lib (3 commits, 0 issues)" in text
        assert "  alice/dots -> dots (1 commits, 2 issues, 1 pushed)" in text
        assert "Up to date: 1 repositories" in text

    def test_empty_sections_omitted(self):
        text = format_sync_report(_make_report())
        assert "Created:" not in text
        assert "Errors:" not in text
        assert "Checked 0 repositories" in text

    def test_errors_and_not_mirrors(self):
        report = _make_report(
            [
                _result(SyncAction.FAILED, error="rate limited"),
                _result(SyncAction.NOT_A_MIRROR, source="acme/site"),
            ]
        )
        text = format_sync_report(report)
        assert "Errors:\n  acme/lib: rate limited" in text
        assert "Not mirrors (left untouched):\n  acme/site -> acme-lib" in text

    def test_dry_run_delegates_to_preview(self):
        report = _make_report(dry_run=True)
        assert "DRY RUN" in format_sync_report(report)


# ---------------------------------------------------------------------------
# format_dry_run_preview
# ---------------------------------------------------------------------------


class TestFormatDryRunPreview:
    def test_groups_by_action(self):
        report = _make_report(
            [
                _result(SyncAction.WOULD_SYNC, commits=2),
                _result(
                    SyncAction.WOULD_CREATE,
                    source="alice/dots",
                    target="dots",
                    issues=1,
                ),
                _result(SyncAction.UP_TO_DATE, source="acme/app"),
            ],
            dry_run=True,
        )
        text = format_dry_run_preview(report)

        assert text.index("[WOULD CREATE]") < text.index("[WOULD SYNC]")
        assert "  alice/dots -> dots (0 commits, 1 issues)" in text
        assert "  acme/lib -> acme-lib (2 commits, 0 issues)" in text
        assert "Up to date: 1 repositories" in text
        assert "No changes needed." not in text

    def test_nothing_to_do(self):
        report = _make_report(
            [_result(SyncAction.UP_TO_DATE)], dry_run=True
        )
        assert format_dry_run_preview(report).endswith("No changes needed.")

    def test_failures_listed(self):
        report = _make_report(
            [_result(SyncAction.FAILED, error="boom")], dry_run=True
        )
        assert "[FAILED]\n  acme/lib: boom" in format_dry_run_preview(report)


# ---------------------------------------------------------------------------
# report_to_json
# ---------------------------------------------------------------------------


class TestReportToJson:
    def test_structure(self):
        report = _make_report(
            [
                _result(
                    SyncAction.CREATED,
                    commits=1,
                    pushed=1,
                    url="https://github.com/alice/acme-lib",
                ),
                _result(SyncAction.FAILED, source="acme/app", error="boom"),
            ]
        )
        data = report_to_json(report)

        assert data["dry_run"] is False
        assert data["counts"] == {
            "total": 2,
            "created": 1,
            "synced": 0,
            "up_to_date": 0,
            "not_mirrors": 0,
            "errors": 1,
            "pushed": 1,
        }
        created, failed = data["results"]
        assert created == {
            "source": "acme/lib",
            "target": "acme-lib",
            "action": "created",
            "success": True,
            "commits": 1,
            "issues": 0,
            "pushed": 1,
            "url": "https://github.com/alice/acme-lib",
        }
        assert failed["success"] is False
        assert failed["error"] == "boom"
        assert "url" not in failed

    def test_serialisable(self):
        report = _make_report([_result(SyncAction.WOULD_CREATE)], dry_run=True)
        parsed = json.loads(json.dumps(report_to_json(report)))
        assert parsed["results"][0]["action"] == "would_create"
        assert parsed["counts"]["created"] == 1
