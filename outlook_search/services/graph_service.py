"""
Microsoft Graph mailbox client: searches emails and calendar events over REST.

Works with New Outlook and any Microsoft 365 / outlook.com account. Auth state
lives in AuthStateMachine; this module only turns an access token into
EmailItem / CalendarItem records.
"""

import re
from collections.abc import Callable
from datetime import UTC, datetime, timedelta
from typing import TypeVar

import httpx
from pydantic import BaseModel, ConfigDict, Field, ValidationError
from pydantic.alias_generators import to_camel

from outlook_search.contracts.search_v1 import CalendarItem, EmailItem, Importance
from outlook_search.core.cancellation import CancellationToken
from outlook_search.core.config import config
from outlook_search.core.logger import logger
from outlook_search.services.graph_auth import (
    AuthState,
    AuthStateMachine,
    MsalTokenProvider,
    TokenProvider,
)

GRAPH_BASE_URL = "https://graph.microsoft.com/v1.0"

_MESSAGE_FIELDS = (
    "id,subject,from,toRecipients,ccRecipients,receivedDateTime,bodyPreview,"
    "hasAttachments,isRead,importance,parentFolderId,webLink"
)
_EVENT_FIELDS = "id,subject,start,end,location,organizer,attendees,bodyPreview,isAllDay,webLink"
_MIN_EVENT_PAGE = 50


# ---------------------------------------------------------------------------
# Graph DTOs
# ---------------------------------------------------------------------------


class _GraphModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")


class GraphEmailAddress(_GraphModel):
    name: str | None = None
    address: str | None = None


class GraphRecipient(_GraphModel):
    email_address: GraphEmailAddress | None = None


class GraphAttendee(_GraphModel):
    email_address: GraphEmailAddress | None = None
    type: str | None = None


class GraphDateTimeTimeZone(_GraphModel):
    date_time: str | None = None
    time_zone: str | None = None


class GraphLocation(_GraphModel):
    display_name: str | None = None


class GraphMessage(_GraphModel):
    id: str | None = None
    subject: str | None = None
    sender: GraphRecipient | None = Field(default=None, alias="from")
    to_recipients: list[GraphRecipient] | None = None
    cc_recipients: list[GraphRecipient] | None = None
    received_date_time: datetime | None = None
    body_preview: str | None = None
    has_attachments: bool = False
    is_read: bool = False
    importance: str | None = None
    web_link: str | None = None


class GraphEvent(_GraphModel):
    id: str | None = None
    subject: str | None = None
    start: GraphDateTimeTimeZone | None = None
    end: GraphDateTimeTimeZone | None = None
    location: GraphLocation | None = None
    organizer: GraphRecipient | None = None
    attendees: list[GraphAttendee] | None = None
    body_preview: str | None = None
    is_all_day: bool = False
    web_link: str | None = None


class GraphMessageListResponse(_GraphModel):
    value: list[GraphMessage] | None = None


class GraphEventListResponse(_GraphModel):
    value: list[GraphEvent] | None = None


_Response = TypeVar("_Response", bound=_GraphModel)


# ---------------------------------------------------------------------------
# Mapping helpers
# ---------------------------------------------------------------------------


def _display(address: GraphEmailAddress | None) -> str:
    if address is None:
        return ""
    if address.name and address.name.strip():
        return address.name
    return address.address or ""


def format_recipients(recipients: list[GraphRecipient] | None) -> str:
    if not recipients:
        return ""
    return "; ".join(_display(r.email_address) for r in recipients if r.email_address is not None)


def format_attendees(attendees: list[GraphAttendee] | None, attendee_type: str) -> str:
    if not attendees:
        return ""
    return "; ".join(
        _display(a.email_address)
        for a in attendees
        if a.email_address is not None and (a.type or "").lower() == attendee_type
    )


_FRACTION = re.compile(r"(\.\d{6})\d+")


def parse_graph_datetime(value: GraphDateTimeTimeZone | None) -> datetime | None:
    """Parse Graph's dateTimeTimeZone. Times are requested in UTC."""
    if value is None or not value.date_time:
        return None
    raw = _FRACTION.sub(r"\1", value.date_time.strip())
    try:
        parsed = datetime.fromisoformat(raw.replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is None and (value.time_zone or "UTC").upper() == "UTC":
        parsed = parsed.replace(tzinfo=UTC)
    return parsed


def _importance(value: str | None) -> int:
    match (value or "").lower():
        case "high":
            return int(Importance.HIGH)
        case "low":
            return int(Importance.LOW)
        case _:
            return int(Importance.NORMAL)


def email_from_graph(msg: GraphMessage) -> EmailItem:
    sender = msg.sender.email_address if msg.sender else None
    return EmailItem(
        entry_id=msg.id or "",
        subject=msg.subject or "(No Subject)",
        sender_name=(sender.name if sender else None) or "",
        sender_email=(sender.address if sender else None) or "",
        received_time=msg.received_date_time,
        body_preview=msg.body_preview or "",
        has_attachments=msg.has_attachments,
        is_read=msg.is_read,
        to_recipients=format_recipients(msg.to_recipients),
        cc_recipients=format_recipients(msg.cc_recipients),
        importance=_importance(msg.importance),
        folder_name="Inbox",
        web_link=msg.web_link or "",
    )


def event_from_graph(evt: GraphEvent) -> CalendarItem | None:
    start = parse_graph_datetime(evt.start)
    end = parse_graph_datetime(evt.end)
    if start is None or end is None:
        return None
    organizer = evt.organizer.email_address if evt.organizer else None
    return CalendarItem(
        entry_id=evt.id or "",
        subject=evt.subject or "",
        start_time=start,
        end_time=end,
        location=(evt.location.display_name if evt.location else None) or "",
        organizer=(organizer.name if organizer else None) or "",
        required_attendees=format_attendees(evt.attendees, "required"),
        optional_attendees=format_attendees(evt.attendees, "optional"),
        body_preview=evt.body_preview or "",
        is_all_day_event=evt.is_all_day,
        web_link=evt.web_link or "",
    )


def build_kql(query: str) -> str:
    """KQL over subject, sender, body and recipients, joined with OR."""
    escaped = query.replace("'", "''").replace('"', "")
    return f"subject:{escaped} OR from:{escaped} OR body:{escaped} OR to:{escaped}"


def _event_matches(evt: GraphEvent, query: str) -> bool:
    q = query.lower()
    location = evt.location.display_name if evt.location else None
    return any(q in (field or "").lower() for field in (evt.subject, evt.body_preview, location))


def _graph_timestamp(dt: datetime) -> str:
    return dt.astimezone(UTC).strftime("%Y-%m-%dT%H:%M:%SZ")


# ---------------------------------------------------------------------------
# Service
# ---------------------------------------------------------------------------


class GraphOutlookService:
    """Remote backend: Microsoft Graph `/me/messages` and `/me/calendarView`."""

    def __init__(
        self,
        auth: AuthStateMachine | None = None,
        http_client: httpx.AsyncClient | None = None,
        provider_factory: Callable[[str | None], TokenProvider] | None = None,
        clock: Callable[[], datetime] | None = None,
    ):
        self.auth = auth or AuthStateMachine()
        self._http = http_client or httpx.AsyncClient(timeout=config.graph_http_timeout)
        self._provider_factory = provider_factory or (lambda client_id: MsalTokenProvider(client_id=client_id))
        self._clock = clock or (lambda: datetime.now(UTC))

    def initialize(self, client_id: str | None = None) -> None:
        """Create the token provider (loads the persistent cache). Call once."""
        self.auth.initialize(self._provider_factory(client_id))

    @property
    def is_initialized(self) -> bool:
        return self.auth.is_initialized

    @property
    def is_authenticated(self) -> bool:
        return self.auth.is_authenticated

    @property
    def auth_failed(self) -> bool:
        return self.auth.auth_failed

    @property
    def state(self) -> AuthState:
        return self.auth.state

    async def try_silent_auth(self, cancellation: CancellationToken | None = None) -> bool:
        return await self.auth.try_silent_auth(cancellation)

    async def try_auth(self, cancellation: CancellationToken | None = None) -> bool:
        if not self.auth.is_initialized:
            self.initialize()
        return await self.auth.try_auth(cancellation)

    async def sign_out(self) -> None:
        await self.auth.sign_out()

    async def _get(
        self,
        path: str,
        params: dict[str, str | int],
        model: type[_Response],
    ) -> _Response | None:
        token = self.auth.access_token
        if token is None:
            return None
        response = await self._http.get(
            f"{GRAPH_BASE_URL}{path}",
            params=params,
            headers={
                "Authorization": f"Bearer {token}",
                "Prefer": 'outlook.body-content-type="text", outlook.timezone="UTC"',
            },
        )
        if response.status_code >= 400:
            logger.warning(f"Graph {path} returned HTTP {response.status_code}")
            return None
        return model.model_validate(response.json())

    async def search_emails(
        self,
        query: str,
        max_results: int,
        days_back: int,
        cancellation: CancellationToken | None = None,
    ) -> list[EmailItem]:
        results: list[EmailItem] = []
        if not self.is_authenticated or not query.strip():
            return results
        if cancellation is not None and cancellation.is_cancelled:
            return results

        params: dict[str, str | int] = {
            "$search": f'"{build_kql(query.strip())}"',
            "$top": max_results,
            "$select": _MESSAGE_FIELDS,
        }
        try:
            response = await self._get("/me/messages", params, GraphMessageListResponse)
        except (httpx.HTTPError, ValidationError, ValueError) as e:
            logger.warning(f"Graph email search failed: {e}")
            return results
        if response is None or not response.value:
            return results

        cutoff = self._clock() - timedelta(days=days_back)
        for msg in response.value:
            if cancellation is not None and cancellation.is_cancelled:
                break
            if len(results) >= max_results:
                break
            item = email_from_graph(msg)
            if item.received_time is not None and item.received_time.tzinfo is not None and item.received_time < cutoff:
                continue
            results.append(item)
        return results

    async def search_events(
        self,
        query: str,
        max_results: int,
        days_back: int,
        future_days: int,
        cancellation: CancellationToken | None = None,
    ) -> list[CalendarItem]:
        results: list[CalendarItem] = []
        if not self.is_authenticated:
            return results
        if cancellation is not None and cancellation.is_cancelled:
            return results

        now = self._clock()
        # calendarView does not support $filter=contains(), so text matching happens client-side.
        params: dict[str, str | int] = {
            "startDateTime": _graph_timestamp(now - timedelta(days=days_back)),
            "endDateTime": _graph_timestamp(now + timedelta(days=future_days)),
            "$top": max(max_results, _MIN_EVENT_PAGE),
            "$orderby": "start/dateTime",
            "$select": _EVENT_FIELDS,
        }
        try:
            response = await self._get("/me/calendarView", params, GraphEventListResponse)
        except (httpx.HTTPError, ValidationError, ValueError) as e:
            logger.warning(f"Graph event search failed: {e}")
            return results
        if response is None or not response.value:
            return results

        query = query.strip()
        for evt in response.value:
            if cancellation is not None and cancellation.is_cancelled:
                break
            if query and not _event_matches(evt, query):
                continue
            if len(results) >= max_results:
                break
            item = event_from_graph(evt)
            if item is not None:
                results.append(item)
        return results

    async def close(self) -> None:
        await self._http.aclose()
