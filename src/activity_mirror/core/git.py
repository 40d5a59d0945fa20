"""Local working-copy operations for mirror repositories.

Wraps the ``git`` executable with ``subprocess``.  Every method takes the
working copy path explicitly; ``path_for()`` derives that path from the
mirror's full name so the same directory is reused across runs.

All methods block.  The sync engine calls them through ``run_sync()``.
"""

from __future__ import annotations

import logging
import os
import subprocess
from datetime import datetime, timezone
from pathlib import Path

from ..errors import GitCommandError, ParseError
from ..models import CommitContent

logger = logging.getLogger(__name__)

MARK_STRING = (
    "<sub>This repo was mirrored using "
    "[github-activity-mirror](https://codeberg.org/Aadniz/github-activity-mirror)"
    ", preserving the privacy while at the same time display your actual "
    "activity</sub>"
)
BRANCH = "main"
README = "README.md"
INITIAL_MESSAGE = "Initial commit"

_LOG_FORMAT = "--pretty=format:%H|%ae|%an|%aI|%s"


def path_for(root: Path, full_name: str) -> Path:
    """Return the working copy directory for the mirror *full_name*."""
    return root / full_name.replace("/", "_")


def format_git_date(moment: datetime) -> str:
    """Format *moment* in UTC as ``YYYY-MM-DDTHH:MM:SSZ``."""
    return moment.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def readme_content(body: str | None = None) -> str:
    """README text for a mirror: optional *body* followed by the marker."""
    if body is None:
        return MARK_STRING
    return f"{body}\n\n{MARK_STRING}"


def is_mirror_readme(content: str | None) -> bool:
    """Return ``True`` if *content* ends with the mirror marker."""
    if content is None:
        return False
    return content.rstrip().endswith(MARK_STRING)


class GitGateway:
    """Run git commands against mirror working copies.

    Args:
        username: Author/committer name for mirrored commits.
        email: Author/committer email for mirrored commits.
        executable: The git binary to invoke.
    """

    def __init__(
        self, username: str, email: str, executable: str = "git"
    ) -> None:
        self.username = username
        self.email = email
        self.executable = executable

    # ------------------------------------------------------------------
    # Process plumbing
    # ------------------------------------------------------------------

    def _run(
        self,
        cwd: Path,
        args: list[str],
        env: dict[str, str] | None = None,
        check: bool = True,
    ) -> subprocess.CompletedProcess:
        """Run ``git *args`` in *cwd* and capture its output.

        Raises:
            GitCommandError: If *check* is set and git exits non-zero.
        """
        full_env = {**os.environ, "GIT_TERMINAL_PROMPT": "0"}
        if env:
            full_env.update(env)

        logger.debug("%s$ git %s", cwd, " ".join(args))
        result = subprocess.run(
            [self.executable, *args],
            cwd=str(cwd),
            env=full_env,
            capture_output=True,
            text=True,
        )
        if check and result.returncode != 0:
            raise GitCommandError(
                args, cwd, result.returncode, result.stdout, result.stderr
            )
        return result

    def _has_head(self, path: Path) -> bool:
        result = self._run(
            path, ["rev-parse", "--verify", "--quiet", "HEAD"], check=False
        )
        return result.returncode == 0

    # ------------------------------------------------------------------
    # Working copy lifecycle
    # ------------------------------------------------------------------

    def prepare(self, path: Path, clone_url: str) -> Path:
        """Clone *clone_url* into *path*, or refresh an existing clone.

        An existing working copy is fetched and fast-forwarded to the
        remote branch when that branch exists.  A fresh clone of an empty
        repository is pointed at ``BRANCH``.
        """
        if (path / ".git").exists():
            fetch = self._run(path, ["fetch", "origin"], check=False)
            if fetch.returncode != 0:
                logger.warning(
                    "git fetch failed in %s: %s", path, fetch.stderr.strip()
                )

            heads = self._run(
                path, ["ls-remote", "--heads", "origin", BRANCH], check=False
            )
            if heads.returncode == 0 and heads.stdout.strip():
                self._run(path, ["pull", "--ff-only", "origin", BRANCH])
            return path

        path.parent.mkdir(parents=True, exist_ok=True)
        logger.info("Cloning %s into %s", clone_url, path)
        self._run(path.parent, ["clone", clone_url, str(path)])

        if not self._has_head(path):
            self._run(path, ["symbolic-ref", "HEAD", f"refs/heads/{BRANCH}"])
        return path

    # ------------------------------------------------------------------
    # Reading history
    # ------------------------------------------------------------------

    def last_commit(self, path: Path) -> CommitContent | None:
        """Return metadata of the newest commit, or ``None`` if there is none.

        Raises:
            ParseError: If ``git log`` output cannot be decoded.
        """
        if not self._has_head(path):
            return None

        output = self._run(path, ["log", "-1", _LOG_FORMAT]).stdout.strip()
        if not output:
            return None

        parts = output.split("|", 4)
        if len(parts) != 5:
            raise ParseError(f"Unexpected git log output: {output!r}")
        sha1, author_email, author_name, raw_date, message = parts
        try:
            timestamp = datetime.fromisoformat(raw_date)
        except ValueError:
            raise ParseError(
                f"Invalid timestamp format in git log: {raw_date!r}"
            ) from None

        return CommitContent(
            sha1=sha1,
            message=message,
            author_email=author_email,
            author_name=author_name,
            timestamp=timestamp,
        )

    def unpushed_count(self, path: Path) -> int:
        """Count local commits not yet on ``origin/BRANCH``."""
        remote_ref = f"refs/remotes/origin/{BRANCH}"
        has_remote = self._run(
            path, ["rev-parse", "--verify", "--quiet", remote_ref], check=False
        )
        if has_remote.returncode != 0:
            if not self._has_head(path):
                return 0
            output = self._run(path, ["rev-list", "--count", "HEAD"]).stdout
            return int(output.strip() or 0)

        output = self._run(path, ["cherry", "-v", f"origin/{BRANCH}"]).stdout
        return sum(1 for line in output.splitlines() if line.strip())

    # ------------------------------------------------------------------
    # Writing history
    # ------------------------------------------------------------------

    def commit(self, path: Path, message: str, date: datetime) -> bool:
        """Commit the staged changes with author and committer *date*.

        Returns:
            ``False`` if git reported nothing to commit (a likely duplicate),
            ``True`` otherwise.

        Raises:
            GitCommandError: For any other failure.
        """
        date_str = format_git_date(date)
        args = [
            "-c",
            f"user.name={self.username}",
            "-c",
            f"user.email={self.email}",
            "-c",
            "commit.gpgsign=false",
            "commit",
            "-m",
            message,
            "--date",
            date_str,
        ]
        result = self._run(
            path, args, env={"GIT_COMMITTER_DATE": date_str}, check=False
        )
        if result.returncode == 0:
            return True

        if "nothing to commit" in result.stdout:
            logger.warning("Possible duplicate commit: %s", message)
            return False

        raise GitCommandError(
            args, path, result.returncode, result.stdout, result.stderr
        )

    def commit_readme(
        self, path: Path, content: str, message: str, date: datetime
    ) -> bool:
        """Replace the README with *content*, stage it and commit at *date*."""
        (path / README).write_text(content, encoding="utf-8")
        self._run(path, ["add", README])
        return self.commit(path, message, date)

    def create_initial(self, path: Path, date: datetime) -> None:
        """Write the marker-only README as the first commit and push it."""
        self.commit_readme(path, readme_content(), INITIAL_MESSAGE, date)
        self.push(path)

    def push(self, path: Path) -> None:
        self._run(path, ["push", "--set-upstream", "origin", BRANCH])
