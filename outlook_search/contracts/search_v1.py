"""Search contract v1.

Defines the canonical types exchanged between the orchestrator, its backends
and the front ends:
  - Requests (SearchRequest, SearchKind)
  - Backend-neutral data records (EmailItem, CalendarItem)
  - Result items (ResultItem, OperationRef, InformationElement, HandleResult)
  - Application metadata (SearchTagInfo, SearchApplicationInfo)

Result items carry no executable closures: each operation is a reference to
an operation id registered in the OperationRegistry plus the argument it
needs.
"""

from __future__ import annotations

from datetime import datetime
from enum import IntEnum, StrEnum

from pydantic import BaseModel, ConfigDict, Field, field_validator

from outlook_search.core.settings import SearchSettings

# ---------------------------------------------------------------------------
# Requests
# ---------------------------------------------------------------------------


class SearchKind(StrEnum):
    ALL = "all"
    PROCESS = "process"


class SearchRequest(BaseModel):
    """One query from the text box. Immutable per call."""

    model_config = ConfigDict(frozen=True)

    text: str = Field(default="", description="Raw text as typed")
    tag: str = Field(default="", description="Searched tag, e.g. 'outlook'")
    kind: SearchKind = Field(default=SearchKind.ALL)

    @property
    def searched_text(self) -> str:
        return (self.text or "").strip()


# ---------------------------------------------------------------------------
# Backend records
# ---------------------------------------------------------------------------


class Importance(IntEnum):
    LOW = 0
    NORMAL = 1
    HIGH = 2


class EmailItem(BaseModel):
    """An email as returned by either backend."""

    entry_id: str = ""
    subject: str = "(No Subject)"
    sender_name: str = ""
    sender_email: str = ""
    received_time: datetime | None = None
    body_preview: str = ""
    has_attachments: bool = False
    is_read: bool = True
    to_recipients: str = ""
    cc_recipients: str = ""
    importance: int = Field(default=int(Importance.NORMAL), ge=0, le=2)
    folder_name: str = "Inbox"
    web_link: str = ""


class CalendarItem(BaseModel):
    """A calendar event as returned by either backend."""

    entry_id: str = ""
    subject: str = ""
    start_time: datetime
    end_time: datetime
    location: str = ""
    organizer: str = ""
    required_attendees: str = ""
    optional_attendees: str = ""
    body_preview: str = ""
    is_all_day_event: bool = False
    web_link: str = ""


# ---------------------------------------------------------------------------
# Results
# ---------------------------------------------------------------------------


class ResultKind(StrEnum):
    ACTION = "action"
    SIGN_IN = "sign_in"
    SIGN_OUT = "sign_out"
    EMAIL = "email"
    EVENT = "event"


class ResultCategory(StrEnum):
    ACTION = "Action"
    EMAIL = "Email"
    EVENT = "Event"


_CATEGORY_BY_KIND: dict[ResultKind, ResultCategory] = {
    ResultKind.ACTION: ResultCategory.ACTION,
    ResultKind.SIGN_IN: ResultCategory.ACTION,
    ResultKind.SIGN_OUT: ResultCategory.ACTION,
    ResultKind.EMAIL: ResultCategory.EMAIL,
    ResultKind.EVENT: ResultCategory.EVENT,
}


class OperationRef(BaseModel):
    """A named, registered operation attached to a result."""

    model_config = ConfigDict(frozen=True)

    operation_id: str = Field(description="Key in the OperationRegistry")
    name: str = Field(description="Display name, e.g. 'Reply'")
    description: str = ""
    icon_glyph: str = ""
    key_gesture: str | None = Field(default=None, description="e.g. 'Enter', 'Ctrl+R'")
    target: str = Field(default="", description="Argument for the operation: entry id, link or URI")
    hide_main_window: bool = True


class InformationElement(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    value: str


class ResultItem(BaseModel):
    """One streamed search result."""

    kind: ResultKind
    display_name: str
    additional_information: str = ""
    score: float
    tags: list[str] = Field(default_factory=list)
    operations: list[OperationRef] = Field(default_factory=list)
    information_elements: list[InformationElement] = Field(default_factory=list)
    icon_glyph: str = ""
    group_name: str = ""
    object_id: str = ""
    pin_id: str = ""
    action_id: str | None = None
    should_cache: bool = False

    @field_validator("tags")
    @classmethod
    def _distinct_tags(cls, v: list[str]) -> list[str]:
        return list(dict.fromkeys(v))

    @property
    def category(self) -> ResultCategory:
        return _CATEGORY_BY_KIND[self.kind]

    def operation(self, operation_id: str) -> OperationRef | None:
        for op in self.operations:
            if op.operation_id == operation_id:
                return op
        return None


class HandleResult(BaseModel):
    """Outcome of invoking an operation on a result."""

    success: bool
    search_again: bool = False
    hide_main_window: bool = False
    copied_text: str | None = Field(default=None, description="Text the front end should place on the clipboard")
    message: str = ""

    @classmethod
    def ok(cls, **kwargs) -> HandleResult:
        return cls(success=True, **kwargs)

    @classmethod
    def fail(cls, message: str = "") -> HandleResult:
        return cls(success=False, message=message)


# ---------------------------------------------------------------------------
# Application metadata
# ---------------------------------------------------------------------------


class SearchTagInfo(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    description: str
    icon_glyph: str = ""


class SearchApplicationInfo(BaseModel):
    name: str
    description: str
    tags: list[SearchTagInfo]
    search_tag_only: bool = True
    minimum_search_length: int = 0
    process_search_enabled: bool = False
    icon_glyph: str = ""
    settings: SearchSettings = Field(default_factory=SearchSettings)
