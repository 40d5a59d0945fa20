"""Redaction policy applied to everything written to a mirror.

The configured ``RedactLevel`` controls how much source content is
disclosed:

- ``OFF`` / ``PRIVATE_REPOS``: content passes through and a traceability
  suffix links back to the source activity.
- ``PRIVATE_REPOS_NO_CROSS_LINKING``: content passes through without the
  source link.
- ``ENCRYPTED``: reserved.  Selecting it raises
  ``RedactionNotImplementedError``.
- ``HASHED``: the canonical text is replaced by its SHA-1 hex digest.

Issue titles are capped at ``MAX_ISSUE_TITLE`` characters *after*
redaction.
"""

from __future__ import annotations

import hashlib
from datetime import datetime
from enum import Enum, IntEnum

from .errors import ConfigurationError, RedactionNotImplementedError
from .models import CommitContent, IssueContent

MAX_ISSUE_TITLE = 255
ELLIPSIS = "..."


class RedactLevel(IntEnum):
    """Ordered redaction capability, lowest disclosure last."""

    OFF = 0
    PRIVATE_REPOS = 1
    PRIVATE_REPOS_NO_CROSS_LINKING = 2
    ENCRYPTED = 3
    HASHED = 4

    @property
    def config_name(self) -> str:
        return self.name.lower()

    @classmethod
    def parse(cls, value: object) -> RedactLevel:
        """Parse a level from its config name or its integer code.

        Raises:
            ConfigurationError: If *value* names no level.
        """
        if isinstance(value, cls):
            return value
        if isinstance(value, bool):
            raise ConfigurationError(f"Invalid redact level: {value!r}")
        if isinstance(value, int):
            try:
                return cls(value)
            except ValueError:
                raise ConfigurationError(
                    f"Invalid redact level {value}. Must be 0-4"
                ) from None
        if isinstance(value, str):
            key = value.strip().upper().replace("-", "_")
            if key.isdigit():
                return cls.parse(int(key))
            try:
                return cls[key]
            except KeyError:
                names = ", ".join(level.config_name for level in cls)
                raise ConfigurationError(
                    f"Invalid redact level '{value}'. Must be one of: {names}"
                ) from None
        raise ConfigurationError(f"Invalid redact level: {value!r}")


class ContentClass(str, Enum):
    """The kinds of text the policy knows how to redact."""

    REPO_NAME = "repo_name"
    REPO_DESCRIPTION = "repo_description"
    COMMIT_SUBJECT = "commit_subject"
    COMMIT_BODY = "commit_body"
    ISSUE_TITLE = "issue_title"
    ISSUE_BODY = "issue_body"


def digest(text: str) -> str:
    """Return the 40-character SHA-1 hex digest of *text*."""
    return hashlib.sha1(text.encode("utf-8")).hexdigest()


def truncate_title(title: str, limit: int = MAX_ISSUE_TITLE) -> str:
    """Cap *title* at *limit* characters, ending in ``...`` when cut."""
    if len(title) <= limit:
        return title
    return title[: limit - len(ELLIPSIS)] + ELLIPSIS


class RedactionPolicy:
    """Turn source content into publishable text for one redaction level.

    Args:
        level: The active redaction level.

    Raises:
        RedactionNotImplementedError: If *level* is ``ENCRYPTED``.
    """

    def __init__(self, level: RedactLevel) -> None:
        self._check(level)
        self.level = level

    @staticmethod
    def _check(level: RedactLevel) -> None:
        if level == RedactLevel.ENCRYPTED:
            raise RedactionNotImplementedError(level.config_name)

    @property
    def cross_linking(self) -> bool:
        """Whether generated text may link back to the source."""
        return self.level <= RedactLevel.PRIVATE_REPOS

    @property
    def hashed(self) -> bool:
        return self.level >= RedactLevel.HASHED

    @property
    def private_mirrors(self) -> bool:
        """Whether created mirrors should be private on the forge."""
        return self.level != RedactLevel.OFF

    # ------------------------------------------------------------------
    # Generic entry point
    # ------------------------------------------------------------------

    def redact(
        self,
        content_class: ContentClass,
        text: str,
        source_link: str | None = None,
    ) -> str:
        """Redact a canonical *text* of the given class.

        Under ``HASHED`` the whole text becomes its digest.  Otherwise the
        text is kept and, when cross-linking is allowed, a suffix pointing
        at *source_link* is added for the classes that carry one.
        """
        self._check(self.level)

        if self.hashed:
            result = digest(text)
        elif self.cross_linking and source_link:
            result = text + self._link_suffix(content_class, source_link)
        else:
            result = text

        if content_class == ContentClass.ISSUE_TITLE:
            result = truncate_title(result)
        return result

    @staticmethod
    def _link_suffix(content_class: ContentClass, source_link: str) -> str:
        if content_class == ContentClass.COMMIT_SUBJECT:
            return f"\n\nMirrored from: {source_link}"
        if content_class in (
            ContentClass.COMMIT_BODY,
            ContentClass.ISSUE_BODY,
        ):
            return f"\n\n*{source_link}*"
        return ""

    # ------------------------------------------------------------------
    # Repository metadata
    # ------------------------------------------------------------------

    def repo_name(self, name: str) -> str:
        return self.redact(ContentClass.REPO_NAME, name)

    def repo_description(self, description: str | None) -> str | None:
        if description is None:
            return None
        return self.redact(ContentClass.REPO_DESCRIPTION, description)

    # ------------------------------------------------------------------
    # Commits
    # ------------------------------------------------------------------

    def commit_subject(self, commit: CommitContent, source_link: str) -> str:
        """Commit message recorded on the mirror."""
        return self.redact(
            ContentClass.COMMIT_SUBJECT, commit.message, source_link
        )

    def commit_body(self, commit: CommitContent, source_link: str) -> str:
        """README body written for the mirrored commit."""
        canonical = (
            f"{commit.sha1} {commit.timestamp.isoformat()}: {commit.message}"
        )
        return self.redact(ContentClass.COMMIT_BODY, canonical, source_link)

    # ------------------------------------------------------------------
    # Issues
    # ------------------------------------------------------------------

    def issue_title(self, issue: IssueContent) -> str:
        """Issue title, truncated to ``MAX_ISSUE_TITLE`` after redaction."""
        if self.hashed:
            canonical = f"{issue.issue_id}: {issue.message}"
        else:
            canonical = f"[{issue.issue_id}] {issue.message}"
        return self.redact(ContentClass.ISSUE_TITLE, canonical)

    def issue_body(
        self,
        issue: IssueContent,
        occurred_at: datetime,
        source_link: str,
    ) -> str:
        canonical = (
            f"## Issue ID: {issue.issue_id}\n\n{issue.message}\n\n"
            f"{occurred_at.isoformat()}"
        )
        return self.redact(ContentClass.ISSUE_BODY, canonical, source_link)
