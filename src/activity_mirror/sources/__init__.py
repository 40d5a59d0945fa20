"""Source forge adapters.

- ``base``  -- ``SourceAdapter`` protocol, ``ADAPTERS`` registry,
  ``create_adapter()``.
- ``gitea`` -- ``GiteaAdapter`` for Gitea and Forgejo.
"""

from .base import ADAPTERS, SourceAdapter, create_adapter
from .gitea import GiteaAdapter, parse_issue_content

__all__ = [
    "ADAPTERS",
    "GiteaAdapter",
    "SourceAdapter",
    "create_adapter",
    "parse_issue_content",
]
