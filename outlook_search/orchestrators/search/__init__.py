"""Outlook search: backend arbitration, result builders and the streaming orchestrator."""

from outlook_search.orchestrators.search.availability import (
    BackendAvailability,
    BackendAvailabilityProbe,
)
from outlook_search.orchestrators.search.operations import OperationRegistry
from outlook_search.orchestrators.search.orchestrator import OutlookSearchOrchestrator
from outlook_search.orchestrators.search.selector import BackendSelection, BackendSelector

__all__ = [
    "BackendAvailability",
    "BackendAvailabilityProbe",
    "BackendSelection",
    "BackendSelector",
    "OperationRegistry",
    "OutlookSearchOrchestrator",
]
