"""Error taxonomy for activity-mirror.

Every failure the tool expects to handle is one of four kinds:

- ``CONFIGURATION`` -- bad or missing settings.  Fatal at startup.
- ``REMOTE`` -- a forge API call failed.  The current repository is skipped.
- ``VERSION_CONTROL`` -- a ``git`` command exited non-zero.  Fatal to the
  current repository.
- ``PARSE`` -- a source record could not be decoded.  The record is dropped.

Callers branch on the exception class (or ``exc.kind``) rather than on the
message text.
"""

from __future__ import annotations

from enum import Enum
from pathlib import Path


class ErrorKind(str, Enum):
    """Closed set of failure categories."""

    CONFIGURATION = "configuration"
    REMOTE = "remote"
    VERSION_CONTROL = "version_control"
    PARSE = "parse"


class MirrorError(Exception):
    """Base class for all expected activity-mirror failures."""

    kind: ErrorKind


class ConfigurationError(MirrorError):
    """Configuration is missing, invalid, or selects an unsupported feature."""

    kind = ErrorKind.CONFIGURATION


class RedactionNotImplementedError(ConfigurationError, NotImplementedError):
    """The selected redaction level exists but is not implemented."""

    def __init__(self, level: str) -> None:
        super().__init__(f"Redaction level '{level}' is not implemented")
        self.level = level


class RemoteError(MirrorError):
    """A forge API request failed.

    Attributes:
        status_code: HTTP status, or ``None`` for transport failures.
        url: The URL that was requested.
    """

    kind = ErrorKind.REMOTE

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        url: str | None = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.url = url


class NotFoundError(RemoteError):
    """The requested remote object does not exist (HTTP 404)."""


class GitCommandError(MirrorError):
    """A ``git`` subprocess exited with a non-zero status.

    Attributes:
        command: The git arguments (without the leading ``git``).
        cwd: Working directory the command ran in.
        returncode: Process exit status.
        stdout: Captured standard output.
        stderr: Captured standard error.
    """

    kind = ErrorKind.VERSION_CONTROL

    def __init__(
        self,
        args: list[str],
        cwd: Path,
        returncode: int,
        stdout: str = "",
        stderr: str = "",
    ) -> None:
        self.command = list(args)
        self.cwd = cwd
        self.returncode = returncode
        self.stdout = stdout
        self.stderr = stderr
        super().__init__(
            f"Git command '{cwd}$ git {' '.join(self.command)}' failed "
            f"with exit code {returncode}\n"
            f"stdout: {stdout}\n"
            f"stderr: {stderr}"
        )


class ParseError(MirrorError):
    """A source record could not be decoded into an activity."""

    kind = ErrorKind.PARSE
