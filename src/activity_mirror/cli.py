"""Command-line entry point for activity-mirror.

One invocation performs one batch reconciliation:

1. Load ``.env``, the YAML config and CLI overrides; validate them.
2. Fetch activity from every configured source service.
3. Merge the per-service indexes and hand them to ``SyncEngine``.
4. Print the report (text or JSON) to stdout.

Exit codes: 0 on success, 1 on configuration errors, on a forge failure
before syncing starts, or when any repository failed; 130 when
interrupted.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path

from dotenv import load_dotenv

from . import __version__
from .config import load_config
from .config_schema import UnifiedConfig
from .core.async_utils import run_sync
from .core.forge import GitHubForge
from .core.git import GitGateway
from .errors import ConfigurationError, MirrorError
from .logger import setup_logging
from .models import ActivityIndex, merge_indexes
from .redaction import RedactionPolicy
from .sources import create_adapter
from .sync import SyncEngine, format_sync_report, report_to_json

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="activity-mirror",
        description="Mirror private forge activity onto GitHub without "
        "disclosing its content",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Run with discovered config (.activity_mirror/config.yml or ~/.config)
  activity-mirror

  # Preview what would be mirrored
  activity-mirror --dry-run

  # Explicit config file, hashed redaction, machine-readable output
  activity-mirror --config mirror.yml --redact-level hashed --json

Secrets are best kept in the environment (MIRROR_GITHUB_TOKEN) or a .env
file rather than on the command line.
        """,
    )
    parser.add_argument(
        "--config",
        type=Path,
        help="Config file path (replaces discovery and ACTIVITY_MIRROR_CONFIG)",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Read mirror state and report pending work without writing",
    )
    parser.add_argument(
        "--json",
        action="store_true",
        help="Print the report as JSON",
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug logging",
    )
    parser.add_argument(
        "--log-file",
        help="Also write log records to this file",
    )
    parser.add_argument(
        "--workdir",
        type=Path,
        help="Root directory for local mirror working copies",
    )
    parser.add_argument(
        "--username",
        help="Override GitHub username (takes precedence over "
        "MIRROR_GITHUB_USERNAME and config files)",
    )
    parser.add_argument(
        "--email",
        help="Override the commit email used for mirrored commits",
    )
    parser.add_argument(
        "--redact-level",
        help="Override redaction level (off, private_repos, "
        "private_repos_no_cross_linking, hashed, or 0-4)",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"activity-mirror version {__version__}",
    )
    return parser


async def _resolve_email(config: UnifiedConfig, forge: GitHubForge) -> str:
    if config.github.email:
        return config.github.email
    email = await run_sync(forge.noreply_email)
    if not email:
        raise ConfigurationError(
            "Unable to find a GitHub noreply email. Set MIRROR_GITHUB_EMAIL "
            "or 'github.email' in the config file."
        )
    logger.info("Using commit email %s", email)
    return email


async def fetch_activity(config: UnifiedConfig) -> tuple[ActivityIndex, int]:
    """Fetch and merge activity from every configured service.

    Returns:
        The merged index and the number of services that could not be read.

    Raises:
        ConfigurationError: If a service has no adapter.
    """
    adapters = [create_adapter(service) for service in config.services]
    indexes = []
    failures = 0
    for service, adapter in zip(config.services, adapters):
        try:
            indexes.append(await run_sync(adapter.fetch))
        except MirrorError as exc:
            logger.error(
                "Failed to fetch activity from %s: %s", service.url, exc
            )
            failures += 1
    return merge_indexes(indexes), failures


async def main(args: argparse.Namespace) -> int:
    """Run one mirror pass and return the process exit code.

    Raises:
        ConfigurationError: Before any network activity for bad settings,
            or afterwards if no commit email can be determined.
        RemoteError: If the noreply email lookup fails.
    """
    config = load_config(
        config_path=args.config,
        username=args.username,
        email=args.email,
        redact_level=args.redact_level,
        workdir=args.workdir,
    )
    setup_logging(
        debug=args.debug,
        log_file=args.log_file or config.logging.file,
        level=config.logging.level,
    )
    github = config.github
    policy = RedactionPolicy(github.redact_level)
    logger.info(
        "Redaction level: %s, push method: %s",
        github.redact_level.config_name,
        github.push_method.value,
    )

    forge = GitHubForge(github.token, api_url=github.api_url)
    email = await _resolve_email(config, forge)

    index, fetch_failures = await fetch_activity(config)

    engine = SyncEngine(
        forge=forge,
        git=GitGateway(github.username, email),
        policy=policy,
        username=github.username,
        workdir=github.resolved_workdir,
        push_method=github.push_method,
    )
    report = await engine.run(index, dry_run=args.dry_run)

    if args.json:
        print(json.dumps(report_to_json(report), indent=2))
    else:
        print(format_sync_report(report))

    if report.errors or fetch_failures:
        return 1
    return 0


def run(argv: list[str] | None = None) -> None:
    """Entry point that handles errors gracefully and parses CLI arguments."""
    args = build_parser().parse_args(argv)
    load_dotenv()

    try:
        code = asyncio.run(main(args))
    except ConfigurationError as exc:
        print(f"Configuration error: {exc}", file=sys.stderr)
        sys.exit(1)
    except MirrorError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        sys.exit(1)
    except KeyboardInterrupt:
        print("\nInterrupted.", file=sys.stderr)
        sys.exit(130)
    sys.exit(code)


if __name__ == "__main__":
    run()
