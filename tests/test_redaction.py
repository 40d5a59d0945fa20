"""Tests for activity_mirror.redaction -- levels, digests and templates."""

from datetime import datetime, timezone

import pytest

from activity_mirror.errors import (
    ConfigurationError,
    RedactionNotImplementedError,
)
from activity_mirror.models import CommitContent, IssueContent
from activity_mirror.redaction import (
    MAX_ISSUE_TITLE,
    ContentClass,
    RedactionPolicy,
    RedactLevel,
    digest,
    truncate_title,
)

WHEN = datetime(2024, 1, 1, tzinfo=timezone.utc)
LINK = "https://git.example.org/acme/lib/commit/abc"


def _commit(message="fix bug"):
    return CommitContent(
        sha1="abc123",
        message=message,
        author_email="alice@example.org",
        author_name="alice",
        timestamp=WHEN,
    )


def _is_hex_digest(text: str) -> bool:
    return len(text) == 40 and all(c in "0123456789abcdef" for c in text)


# -------------------------------------------------------------------------
# RedactLevel parsing
# -------------------------------------------------------------------------


class TestRedactLevelParse:
    def test_levels_are_ordered(self):
        assert (
            RedactLevel.OFF
            < RedactLevel.PRIVATE_REPOS
            < RedactLevel.PRIVATE_REPOS_NO_CROSS_LINKING
            < RedactLevel.ENCRYPTED
            < RedactLevel.HASHED
        )

    @pytest.mark.parametrize(
        "value, expected",
        [
            ("off", RedactLevel.OFF),
            ("Private_Repos", RedactLevel.PRIVATE_REPOS),
            (
                "private-repos-no-cross-linking",
                RedactLevel.PRIVATE_REPOS_NO_CROSS_LINKING,
            ),
            ("hashed", RedactLevel.HASHED),
            (4, RedactLevel.HASHED),
            ("0", RedactLevel.OFF),
            (RedactLevel.PRIVATE_REPOS, RedactLevel.PRIVATE_REPOS),
        ],
    )
    def test_accepts_names_and_codes(self, value, expected):
        assert RedactLevel.parse(value) is expected

    @pytest.mark.parametrize("value", ["secret", 7, -1, True, None, 1.5])
    def test_rejects_unknown(self, value):
        with pytest.raises(ConfigurationError):
            RedactLevel.parse(value)

    def test_config_name(self):
        assert (
            RedactLevel.PRIVATE_REPOS_NO_CROSS_LINKING.config_name
            == "private_repos_no_cross_linking"
        )


# -------------------------------------------------------------------------
# Digest and truncation
# -------------------------------------------------------------------------


class TestDigest:
    def test_known_sha1(self):
        assert digest("abc") == "a9993e364706816aba3e25717850c26c9cd0d89d"

    def test_deterministic(self):
        assert digest("fix bug") == digest("fix bug")

    def test_different_inputs_differ(self):
        assert digest("fix bug") != digest("fix bugs")


class TestTruncateTitle:
    def test_256_chars_truncated(self):
        result = truncate_title("x" * 256)
        assert len(result) == MAX_ISSUE_TITLE
        assert result.endswith("...")
        assert result[:252] == "x" * 252

    def test_255_chars_unchanged(self):
        title = "y" * 255
        assert truncate_title(title) == title

    def test_short_unchanged(self):
        assert truncate_title("short") == "short"


# -------------------------------------------------------------------------
# Policy
# -------------------------------------------------------------------------


class TestPolicyFlags:
    def test_encrypted_rejected_at_construction(self):
        with pytest.raises(RedactionNotImplementedError):
            RedactionPolicy(RedactLevel.ENCRYPTED)

    def test_encrypted_error_is_configuration_and_not_implemented(self):
        with pytest.raises(ConfigurationError):
            RedactionPolicy(RedactLevel.ENCRYPTED)
        with pytest.raises(NotImplementedError):
            RedactionPolicy(RedactLevel.ENCRYPTED)

    def test_encrypted_rejected_on_redact(self):
        policy = RedactionPolicy(RedactLevel.OFF)
        policy.level = RedactLevel.ENCRYPTED
        with pytest.raises(RedactionNotImplementedError):
            policy.redact(ContentClass.REPO_NAME, "lib")

    def test_private_mirrors_unless_off(self):
        assert not RedactionPolicy(RedactLevel.OFF).private_mirrors
        assert RedactionPolicy(RedactLevel.PRIVATE_REPOS).private_mirrors
        assert RedactionPolicy(RedactLevel.HASHED).private_mirrors

    def test_cross_linking(self):
        assert RedactionPolicy(RedactLevel.OFF).cross_linking
        assert RedactionPolicy(RedactLevel.PRIVATE_REPOS).cross_linking
        assert not RedactionPolicy(
            RedactLevel.PRIVATE_REPOS_NO_CROSS_LINKING
        ).cross_linking


class TestCommitTemplates:
    def test_off_keeps_message_and_links(self):
        policy = RedactionPolicy(RedactLevel.OFF)
        subject = policy.commit_subject(_commit(), LINK)
        assert subject == f"fix bug\n\nMirrored from: {LINK}"

    def test_body_links_in_italics(self):
        policy = RedactionPolicy(RedactLevel.PRIVATE_REPOS)
        body = policy.commit_body(_commit(), LINK)
        assert body == (
            f"abc123 {WHEN.isoformat()}: fix bug\n\n*{LINK}*"
        )

    def test_no_cross_linking_omits_link(self):
        policy = RedactionPolicy(RedactLevel.PRIVATE_REPOS_NO_CROSS_LINKING)
        assert policy.commit_subject(_commit(), LINK) == "fix bug"
        body = policy.commit_body(_commit(), LINK)
        assert LINK not in body
        assert body == f"abc123 {WHEN.isoformat()}: fix bug"

    def test_hashed_subject_is_digest_of_message(self):
        policy = RedactionPolicy(RedactLevel.HASHED)
        subject = policy.commit_subject(_commit(), LINK)
        assert _is_hex_digest(subject)
        assert subject == digest("fix bug")
        assert "fix bug" not in subject

    def test_hashed_body_is_digest_of_canonical_text(self):
        policy = RedactionPolicy(RedactLevel.HASHED)
        body = policy.commit_body(_commit(), LINK)
        assert body == digest(f"abc123 {WHEN.isoformat()}: fix bug")

    def test_empty_link_adds_no_suffix(self):
        policy = RedactionPolicy(RedactLevel.OFF)
        assert policy.commit_subject(_commit(), "") == "fix bug"


class TestIssueTemplates:
    def test_plain_title(self):
        policy = RedactionPolicy(RedactLevel.OFF)
        issue = IssueContent(issue_id=7, message="Crash")
        assert policy.issue_title(issue) == "[7] Crash"

    def test_hashed_title_uses_colon_form(self):
        policy = RedactionPolicy(RedactLevel.HASHED)
        issue = IssueContent(issue_id=7, message="Crash")
        assert policy.issue_title(issue) == digest("7: Crash")

    def test_long_title_truncated_after_redaction(self):
        policy = RedactionPolicy(RedactLevel.OFF)
        issue = IssueContent(issue_id=1, message="z" * 300)
        title = policy.issue_title(issue)
        assert len(title) == MAX_ISSUE_TITLE
        assert title.startswith("[1] zzz")
        assert title.endswith("...")

    def test_hashed_long_title_is_not_truncated(self):
        policy = RedactionPolicy(RedactLevel.HASHED)
        issue = IssueContent(issue_id=1, message="z" * 300)
        assert _is_hex_digest(policy.issue_title(issue))

    def test_body_with_link(self):
        policy = RedactionPolicy(RedactLevel.PRIVATE_REPOS)
        issue = IssueContent(issue_id=3, message="Crash")
        body = policy.issue_body(issue, WHEN, LINK)
        assert body == (
            f"## Issue ID: 3\n\nCrash\n\n{WHEN.isoformat()}\n\n*{LINK}*"
        )

    def test_body_without_link(self):
        policy = RedactionPolicy(RedactLevel.PRIVATE_REPOS_NO_CROSS_LINKING)
        issue = IssueContent(issue_id=3, message="Crash")
        body = policy.issue_body(issue, WHEN, LINK)
        assert body == f"## Issue ID: 3\n\nCrash\n\n{WHEN.isoformat()}"


class TestRepoMetadata:
    def test_name_passes_through_below_hashed(self):
        policy = RedactionPolicy(RedactLevel.PRIVATE_REPOS_NO_CROSS_LINKING)
        assert policy.repo_name("acme-lib") == "acme-lib"

    def test_hashed_name(self):
        policy = RedactionPolicy(RedactLevel.HASHED)
        assert policy.repo_name("acme-lib") == digest("acme-lib")

    def test_description_absent_stays_absent(self):
        policy = RedactionPolicy(RedactLevel.HASHED)
        assert policy.repo_description(None) is None

    def test_hashed_description(self):
        policy = RedactionPolicy(RedactLevel.HASHED)
        assert policy.repo_description("A lib") == digest("A lib")

    def test_description_has_no_link_suffix(self):
        policy = RedactionPolicy(RedactLevel.OFF)
        assert (
            policy.redact(ContentClass.REPO_DESCRIPTION, "A lib", LINK)
            == "A lib"
        )
