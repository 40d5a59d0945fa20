"""Gateways to the destination forge and the local git working copies."""

from .async_utils import run_sync
from .forge import ForgeGateway, GitHubForge
from .git import MARK_STRING, GitGateway, path_for

__all__ = [
    "MARK_STRING",
    "ForgeGateway",
    "GitGateway",
    "GitHubForge",
    "path_for",
    "run_sync",
]
