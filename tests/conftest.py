"""Shared pytest fixtures for activity-mirror tests."""

import shutil
from datetime import datetime, timezone

import pytest

from activity_mirror.config_schema import ServiceConfig, ServiceType
from activity_mirror.models import (
    Activity,
    CommitContent,
    IssueContent,
    OperationKind,
    Repository,
)

GIT_AVAILABLE = shutil.which("git") is not None


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "git: mark test as requiring a git executable"
    )


def pytest_collection_modifyitems(config, items):
    """Skip tests that drive a real git binary when none is installed."""
    if GIT_AVAILABLE:
        return
    skip_git = pytest.mark.skip(reason="git executable not found")
    for item in items:
        if "git" in item.keywords:
            item.add_marker(skip_git)


def utc(*args) -> datetime:
    """Shorthand for an aware UTC datetime."""
    return datetime(*args, tzinfo=timezone.utc)


@pytest.fixture
def gitea_service():
    """A Gitea source service config."""
    return ServiceConfig(
        service_type=ServiceType.GITEA,
        username="alice",
        url="https://git.example.org",
        token="gitea-token",
    )


@pytest.fixture
def make_repo():
    """Factory fixture for source repositories."""

    def _make(owner="acme", name="lib", owned_by_you=False, **overrides):
        fields = {
            "owned_by_you": owned_by_you,
            "owner": owner,
            "name": name,
            "full_name": f"{owner}/{name}",
            "description": None,
            "html_url": f"https://git.example.org/{owner}/{name}",
            "clone_url": f"https://git.example.org/{owner}/{name}.git",
            "private": True,
            "created_date": utc(2023, 6, 1),
        }
        fields.update(overrides)
        return Repository(**fields)

    return _make


@pytest.fixture
def make_commit():
    """Factory fixture for commit activities."""

    def _make(
        when,
        message="fix bug",
        sha1="a" * 40,
        email="alice@example.org",
        username="alice",
        link="https://git.example.org/acme/lib/commit/aaaa",
    ):
        return Activity(
            operation_kind=OperationKind.COMMIT_REPO,
            occurred_at=when,
            content=CommitContent(
                sha1=sha1,
                message=message,
                author_email=email,
                author_name=username,
                timestamp=when,
            ),
            acting_username=username,
            acting_email=email,
            source_link=link,
        )

    return _make


@pytest.fixture
def make_issue():
    """Factory fixture for issue activities."""

    def _make(
        when,
        issue_id=1,
        message="Crash on start",
        kind=OperationKind.CREATE_ISSUE,
        link="https://git.example.org/acme/lib/issues/1",
    ):
        return Activity(
            operation_kind=kind,
            occurred_at=when,
            content=IssueContent(issue_id=issue_id, message=message),
            acting_username="alice",
            acting_email="alice@example.org",
            source_link=link,
        )

    return _make
