"""Local backend availability: probed once per process, then cached."""

import sys
import threading
from collections.abc import Callable
from dataclasses import dataclass

from outlook_search.core.logger import logger
from outlook_search.services.outlook_interop import (
    OUTLOOK_PROG_ID,
    LocalMailClient,
    OutlookInteropService,
)


@dataclass(frozen=True)
class BackendAvailability:
    local_available: bool
    local_connected: bool

    @property
    def usable(self) -> bool:
        return self.local_available and self.local_connected


UNAVAILABLE = BackendAvailability(local_available=False, local_connected=False)


def outlook_registered() -> bool:
    """True when the Outlook automation ProgID is registered on this machine."""
    if sys.platform != "win32":
        return False
    import winreg

    try:
        with winreg.OpenKey(winreg.HKEY_CLASSES_ROOT, OUTLOOK_PROG_ID):
            return True
    except OSError:
        return False


class BackendAvailabilityProbe:
    """Attach to (or spawn) Outlook at most once; the answer holds for the process lifetime."""

    def __init__(
        self,
        host_check: Callable[[], bool] = outlook_registered,
        client_factory: Callable[[], LocalMailClient] = OutlookInteropService,
    ):
        self._host_check = host_check
        self._client_factory = client_factory
        self._lock = threading.Lock()
        self._result: BackendAvailability | None = None
        self._client: LocalMailClient | None = None

    @property
    def client(self) -> LocalMailClient | None:
        """The connected local client, once probed and usable."""
        if self._result is None or not self._result.usable:
            return None
        return self._client

    def probe(self) -> BackendAvailability:
        if self._result is not None:
            return self._result
        with self._lock:
            if self._result is None:
                self._result = self._probe_once()
        return self._result

    def _probe_once(self) -> BackendAvailability:
        try:
            if not self._host_check():
                logger.backend_probe(False, False, "Outlook desktop is not installed")
                return UNAVAILABLE
            client = self._client_factory()
            connected = bool(client.try_connect())
        except Exception as e:
            logger.backend_probe(False, False, str(e))
            return UNAVAILABLE
        self._client = client
        logger.backend_probe(True, connected)
        return BackendAvailability(local_available=True, local_connected=connected)

    def close(self) -> None:
        if self._client is not None:
            self._client.close()
