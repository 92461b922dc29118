"""
Local Outlook desktop access through COM automation (pywin32, late-bound dispatch).

Every public method is synchronous and never raises: a COM failure is logged
and reported as False / an empty or partial list. pywin32 is imported lazily
so the module loads on every platform; without it the backend is simply
unavailable.
"""

import logging
import re
from collections.abc import Callable
from datetime import datetime, timedelta
from typing import Any, Protocol

from outlook_search.contracts.search_v1 import CalendarItem, EmailItem, Importance

log = logging.getLogger(__name__)

OUTLOOK_PROG_ID = "Outlook.Application"

# OlItemType
OL_MAIL_ITEM = 0
OL_APPOINTMENT_ITEM = 1

# OlDefaultFolders
OL_FOLDER_SENT_MAIL = 5
OL_FOLDER_INBOX = 6
OL_FOLDER_CALENDAR = 9

# OlMeetingStatus
OL_MEETING = 1

_EMAIL_FOLDERS = ((OL_FOLDER_INBOX, "Inbox"), (OL_FOLDER_SENT_MAIL, "Sent"))
_EMAIL_PREVIEW_LENGTH = 300
_EVENT_PREVIEW_LENGTH = 500
_WHITESPACE = re.compile(r"\s+")


class LocalMailClient(Protocol):
    """What the orchestrator needs from the local desktop client."""

    @property
    def is_connected(self) -> bool: ...

    def try_connect(self) -> bool: ...

    def search_emails(self, query: str, max_results: int, days_back: int) -> list[EmailItem]: ...

    def search_events(
        self, query: str, max_results: int, days_back: int, future_days: int
    ) -> list[CalendarItem]: ...

    def open_item(self, entry_id: str) -> bool: ...

    def reply(self, entry_id: str) -> bool: ...

    def reply_all(self, entry_id: str) -> bool: ...

    def forward(self, entry_id: str) -> bool: ...

    def compose_new_email(self) -> bool: ...

    def schedule_new_meeting(self) -> bool: ...

    def open_inbox(self) -> bool: ...

    def open_calendar(self) -> bool: ...

    def close(self) -> None: ...


def attach_outlook() -> Any:
    """Attach to the running Outlook instance, or start one."""
    import pythoncom
    import win32com.client

    pythoncom.CoInitialize()
    try:
        return win32com.client.GetActiveObject(OUTLOOK_PROG_ID)
    except pythoncom.com_error:
        return win32com.client.Dispatch(OUTLOOK_PROG_ID)


def truncate_body(body: str | None, max_length: int) -> str:
    if not body:
        return ""
    cleaned = _WHITESPACE.sub(" ", body).strip()
    return cleaned if len(cleaned) <= max_length else cleaned[:max_length] + "..."


def to_local_datetime(value: Any) -> datetime | None:
    """COM dates come back as pywintypes datetimes holding local wall-clock time."""
    if value is None:
        return None
    try:
        naive = datetime(value.year, value.month, value.day, value.hour, value.minute, value.second)
    except (AttributeError, TypeError, ValueError):
        return None
    return naive.astimezone()


def _attr(item: Any, name: str, default: Any = "") -> Any:
    try:
        value = getattr(item, name)
    except Exception:
        return default
    return default if value is None else value


def build_email_filter(query: str, cutoff: datetime) -> str:
    """DASL restriction over subject, sender name and sender address, newer than cutoff."""
    escaped = query.replace("'", "''")
    return (
        "@SQL=("
        f"\"urn:schemas:httpmail:subject\" LIKE '%{escaped}%'"
        f" OR \"urn:schemas:httpmail:fromname\" LIKE '%{escaped}%'"
        f" OR \"urn:schemas:httpmail:fromemail\" LIKE '%{escaped}%'"
        f") AND \"urn:schemas:httpmail:datereceived\" >= '{cutoff:%Y-%m-%dT%H:%M:%SZ}'"
    )


def build_event_restriction(start: datetime, end: datetime) -> str:
    return f"[Start] >= '{start:%m/%d/%Y %I:%M %p}' AND [Start] <= '{end:%m/%d/%Y %I:%M %p}'"


class OutlookInteropService:
    """Late-bound COM adapter over the Outlook MAPI namespace."""

    def __init__(
        self,
        app_factory: Callable[[], Any] = attach_outlook,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self._app_factory = app_factory
        self._clock = clock
        self._app: Any = None
        self._namespace: Any = None

    @property
    def is_connected(self) -> bool:
        return self._app is not None and self._namespace is not None

    def try_connect(self) -> bool:
        if self.is_connected:
            return True
        try:
            app = self._app_factory()
            namespace = app.GetNamespace("MAPI")
        except Exception as e:
            log.debug("Outlook COM connection failed: %s", e)
            self._app = None
            self._namespace = None
            return False
        self._app = app
        self._namespace = namespace
        return True

    # -- search -------------------------------------------------------------

    def search_emails(self, query: str, max_results: int, days_back: int) -> list[EmailItem]:
        results: list[EmailItem] = []
        if not self.is_connected or not query.strip():
            return results
        restriction = build_email_filter(query.strip(), self._clock() - timedelta(days=days_back))
        for folder_id, folder_name in _EMAIL_FOLDERS:
            if len(results) >= max_results:
                break
            try:
                self._search_folder(folder_id, folder_name, restriction, max_results, results)
            except Exception as e:
                log.warning("Skipping Outlook folder %s: %s", folder_name, e)
        return results

    def _search_folder(
        self,
        folder_id: int,
        folder_name: str,
        restriction: str,
        max_results: int,
        results: list[EmailItem],
    ) -> None:
        items = self._namespace.GetDefaultFolder(folder_id).Items
        items.Sort("[ReceivedTime]", True)
        for item in items.Restrict(restriction):
            if len(results) >= max_results:
                break
            try:
                results.append(self._email_from_com(item, folder_name))
            except Exception as e:
                log.debug("Skipping unreadable mail item: %s", e)

    def _email_from_com(self, item: Any, folder_name: str) -> EmailItem:
        try:
            has_attachments = item.Attachments.Count > 0
        except Exception:
            has_attachments = False
        importance = _attr(item, "Importance", int(Importance.NORMAL))
        if importance not in (0, 1, 2):
            importance = int(Importance.NORMAL)
        return EmailItem(
            entry_id=item.EntryID,
            subject=_attr(item, "Subject", "") or "(No Subject)",
            sender_name=_attr(item, "SenderName"),
            sender_email=_attr(item, "SenderEmailAddress"),
            received_time=to_local_datetime(_attr(item, "ReceivedTime", None)),
            body_preview=truncate_body(_attr(item, "Body"), _EMAIL_PREVIEW_LENGTH),
            has_attachments=has_attachments,
            is_read=not _attr(item, "UnRead", False),
            to_recipients=_attr(item, "To"),
            cc_recipients=_attr(item, "CC"),
            importance=int(importance),
            folder_name=folder_name,
        )

    def search_events(
        self, query: str, max_results: int, days_back: int, future_days: int
    ) -> list[CalendarItem]:
        results: list[CalendarItem] = []
        if not self.is_connected:
            return results
        now = self._clock()
        q = query.strip().lower()
        try:
            items = self._namespace.GetDefaultFolder(OL_FOLDER_CALENDAR).Items
            items.Sort("[Start]", True)
            items.IncludeRecurrences = True
            restricted = items.Restrict(
                build_event_restriction(now - timedelta(days=days_back), now + timedelta(days=future_days))
            )
            for item in restricted:
                if len(results) >= max_results:
                    break
                try:
                    event = self._event_from_com(item)
                except Exception as e:
                    log.debug("Skipping unreadable calendar item: %s", e)
                    continue
                if event is None:
                    continue
                if q and not any(
                    q in field.lower() for field in (event.subject, event.location, _attr(item, "Body"))
                ):
                    continue
                results.append(event)
        except Exception as e:
            log.warning("Outlook calendar search failed: %s", e)
        return results

    def _event_from_com(self, item: Any) -> CalendarItem | None:
        start = to_local_datetime(item.Start)
        end = to_local_datetime(item.End)
        if start is None or end is None:
            return None
        return CalendarItem(
            entry_id=item.EntryID,
            subject=_attr(item, "Subject"),
            start_time=start,
            end_time=end,
            location=_attr(item, "Location"),
            organizer=_attr(item, "Organizer"),
            required_attendees=_attr(item, "RequiredAttendees"),
            optional_attendees=_attr(item, "OptionalAttendees"),
            body_preview=truncate_body(_attr(item, "Body"), _EVENT_PREVIEW_LENGTH),
            is_all_day_event=bool(_attr(item, "AllDayEvent", False)),
        )

    # -- item verbs ---------------------------------------------------------

    def _display_item(self, entry_id: str, verb: str | None = None) -> bool:
        if not self.is_connected or not entry_id:
            return False
        try:
            item = self._namespace.GetItemFromID(entry_id)
            target = getattr(item, verb)() if verb else item
            target.Display()
        except Exception as e:
            log.warning("Outlook %s failed for %s: %s", verb or "open", entry_id[:16], e)
            return False
        return True

    def open_item(self, entry_id: str) -> bool:
        return self._display_item(entry_id)

    def reply(self, entry_id: str) -> bool:
        return self._display_item(entry_id, "Reply")

    def reply_all(self, entry_id: str) -> bool:
        return self._display_item(entry_id, "ReplyAll")

    def forward(self, entry_id: str) -> bool:
        return self._display_item(entry_id, "Forward")

    # -- quick actions ------------------------------------------------------

    def compose_new_email(self) -> bool:
        if not self.is_connected:
            return False
        try:
            self._app.CreateItem(OL_MAIL_ITEM).Display()
        except Exception as e:
            log.warning("Could not open a new email: %s", e)
            return False
        return True

    def schedule_new_meeting(self) -> bool:
        if not self.is_connected:
            return False
        try:
            appointment = self._app.CreateItem(OL_APPOINTMENT_ITEM)
            appointment.MeetingStatus = OL_MEETING
            appointment.Display()
        except Exception as e:
            log.warning("Could not open a new meeting: %s", e)
            return False
        return True

    def _display_folder(self, folder_id: int) -> bool:
        if not self.is_connected:
            return False
        try:
            self._namespace.GetDefaultFolder(folder_id).Display()
        except Exception as e:
            log.warning("Could not display Outlook folder %s: %s", folder_id, e)
            return False
        return True

    def open_inbox(self) -> bool:
        return self._display_folder(OL_FOLDER_INBOX)

    def open_calendar(self) -> bool:
        return self._display_folder(OL_FOLDER_CALENDAR)

    def close(self) -> None:
        """Drop our references; Outlook itself keeps running."""
        self._namespace = None
        self._app = None
