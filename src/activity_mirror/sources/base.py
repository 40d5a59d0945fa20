"""Source adapter contract and the adapter registry.

An adapter pulls activity from one configured source account and returns
it grouped by repository, deduplicated by activity fingerprint.
"""

from __future__ import annotations

from typing import Callable, Protocol

from ..config_schema import ServiceConfig, ServiceType
from ..errors import ConfigurationError
from ..models import ActivityIndex
from .gitea import GiteaAdapter


class SourceAdapter(Protocol):
    """Protocol that all source adapters must satisfy."""

    def fetch(self) -> ActivityIndex:
        """Return ``{Repository: {Activity, ...}}`` for the account.

        Raises:
            RemoteError: If the source cannot be read at all.
        """
        ...  # pragma: no cover


# Forgejo is a Gitea fork and serves the same API.
ADAPTERS: dict[ServiceType, Callable[[ServiceConfig], SourceAdapter]] = {
    ServiceType.GITEA: GiteaAdapter,
    ServiceType.FORGEJO: GiteaAdapter,
}


def create_adapter(service: ServiceConfig) -> SourceAdapter:
    """Create the adapter for *service*.

    Raises:
        ConfigurationError: If no adapter handles ``service.service_type``.
    """
    factory = ADAPTERS.get(ServiceType(service.service_type))
    if factory is None:
        raise ConfigurationError(
            f"Unknown service type: '{service.service_type}'. "
            f"Valid types: {sorted(t.value for t in ADAPTERS)}"
        )
    return factory(service)
