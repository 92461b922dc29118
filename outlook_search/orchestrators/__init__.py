"""Orchestrators: request pipelines over the mail and calendar backends."""

from outlook_search.orchestrators.search import (
    BackendAvailability,
    OutlookSearchOrchestrator,
)

__all__ = [
    "BackendAvailability",
    "OutlookSearchOrchestrator",
]
