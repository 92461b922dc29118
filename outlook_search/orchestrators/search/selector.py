"""Per-request backend selection from cached local availability and remote auth state."""

from dataclasses import dataclass
from typing import Literal

from outlook_search.core.cancellation import CancellationToken
from outlook_search.core.logger import logger
from outlook_search.orchestrators.search.availability import BackendAvailabilityProbe
from outlook_search.services.graph_service import GraphOutlookService
from outlook_search.services.outlook_interop import LocalMailClient

DataSource = Literal["local", "remote"]


@dataclass(frozen=True)
class BackendSelection:
    """Zero, one or both usable backends for one request."""

    local: LocalMailClient | None = None
    remote: GraphOutlookService | None = None

    @property
    def has_local(self) -> bool:
        return self.local is not None

    @property
    def has_remote(self) -> bool:
        return self.remote is not None

    @property
    def any(self) -> bool:
        return self.has_local or self.has_remote

    @property
    def data_source(self) -> DataSource | None:
        """Backend that serves read queries. Local wins when both are usable."""
        if self.has_local:
            return "local"
        if self.has_remote:
            return "remote"
        return None

    def can_mutate(self, entry_id: str | None) -> bool:
        """Open / reply / forward need the local client and a local entry id."""
        return self.has_local and bool(entry_id)


class BackendSelector:
    def __init__(self, probe: BackendAvailabilityProbe, remote: GraphOutlookService | None):
        self._probe = probe
        self._remote = remote

    @property
    def remote(self) -> GraphOutlookService | None:
        return self._remote

    @property
    def local(self) -> LocalMailClient | None:
        return self._probe.client

    @property
    def remote_authenticated(self) -> bool:
        return self._remote is not None and self._remote.is_authenticated

    @property
    def remote_auth_failed(self) -> bool:
        return self._remote is not None and self._remote.auth_failed

    async def resolve(self, cancellation: CancellationToken) -> BackendSelection:
        """Probe local (cached) and, when the remote token lapsed, try one silent refresh."""
        availability = self._probe.probe()
        local = self._probe.client if availability.usable else None

        remote_ok = self.remote_authenticated
        if (
            not remote_ok
            and self._remote is not None
            and self._remote.is_initialized
            and not self._remote.auth_failed
            and not cancellation.is_cancelled
        ):
            try:
                remote_ok = await self._remote.try_silent_auth(cancellation)
            except Exception as e:
                logger.warning(f"Silent refresh failed: {e}")
                remote_ok = False

        return BackendSelection(local=local, remote=self._remote if remote_ok else None)
