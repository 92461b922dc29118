from __future__ import annotations

from collections.abc import Callable

import pytest
from fakes import NOW, FakeLocal, FakeRemote, make_probe

from outlook_search.core.settings import SearchSettings
from outlook_search.orchestrators.search.orchestrator import OutlookSearchOrchestrator


@pytest.fixture
def launched() -> list[str]:
    """URIs handed to the desktop launcher."""
    return []


@pytest.fixture
def make_orchestrator(launched) -> Callable[..., OutlookSearchOrchestrator]:
    def _make(
        remote: FakeRemote | None = None,
        local: FakeLocal | None = None,
        settings: SearchSettings | None = None,
        launcher_result: bool = True,
    ) -> OutlookSearchOrchestrator:
        snapshot = settings or SearchSettings()

        def launcher(uri: str) -> bool:
            launched.append(uri)
            return launcher_result

        return OutlookSearchOrchestrator(
            remote=remote if remote is not None else FakeRemote(),
            probe=make_probe(local),
            settings_provider=lambda: snapshot,
            launcher=launcher,
            clock=lambda: NOW,
        )

    return _make
