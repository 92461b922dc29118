"""Cooperative cancellation shared by the orchestrator and its backends."""

import threading


class CancellationToken:
    """Read side of a cancellation flag. Safe to poll from worker threads."""

    def __init__(self, event: threading.Event | None = None):
        self._event = event or threading.Event()

    @property
    def is_cancelled(self) -> bool:
        return self._event.is_set()

    @classmethod
    def none(cls) -> "CancellationToken":
        """A token that is never cancelled."""
        return cls()


class CancellationSource:
    """Owns a flag and hands out tokens observing it."""

    def __init__(self):
        self._event = threading.Event()
        self.token = CancellationToken(self._event)

    def cancel(self) -> None:
        self._event.set()

    @property
    def is_cancelled(self) -> bool:
        return self._event.is_set()
