from collections.abc import AsyncIterator

import pytest_asyncio

from outlook_search.orchestrators.search.orchestrator import OutlookSearchOrchestrator


@pytest_asyncio.fixture
async def orchestrator() -> AsyncIterator[OutlookSearchOrchestrator]:
    """Real orchestrator for e2e/integration suites only."""
    instance = OutlookSearchOrchestrator()
    await instance.load()
    try:
        yield instance
    finally:
        await instance.close()
