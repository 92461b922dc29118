"""Search contract v1: requests, backend records, result items and application metadata."""

from outlook_search.contracts.search_v1 import (
    CalendarItem,
    EmailItem,
    HandleResult,
    InformationElement,
    OperationRef,
    ResultCategory,
    ResultItem,
    ResultKind,
    SearchApplicationInfo,
    SearchKind,
    SearchRequest,
    SearchTagInfo,
)

__all__ = [
    "CalendarItem",
    "EmailItem",
    "HandleResult",
    "InformationElement",
    "OperationRef",
    "ResultCategory",
    "ResultItem",
    "ResultKind",
    "SearchApplicationInfo",
    "SearchKind",
    "SearchRequest",
    "SearchTagInfo",
]
