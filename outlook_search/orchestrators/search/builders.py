"""Result builders: pure functions from backend records (and an injected `now`) to ResultItems."""

from datetime import datetime, timedelta

from outlook_search.contracts.search_v1 import (
    CalendarItem,
    EmailItem,
    InformationElement,
    OperationRef,
    ResultItem,
    ResultKind,
)
from outlook_search.orchestrators.search.constants import (
    ACTION_TAGS,
    EMAIL_INFO_MAX_LENGTH,
    EMAIL_TAGS,
    EVENT_TAGS,
    QUICK_ACTIONS,
    SIGN_IN_ACTION_ID,
    SIGN_OUT_ACTION_ID,
    SIGN_OUT_KEYWORDS,
    Glyph,
    GroupName,
    OperationId,
    PinPrefix,
    QuickAction,
    ScoreTier,
    tier_score,
)

_IMPORTANCE_LABELS = {0: "Low", 1: "Normal", 2: "High"}


def _align(dt: datetime, now: datetime) -> datetime:
    """Express dt in now's frame so the two compare; naive values are local time."""
    if now.tzinfo is None:
        return dt if dt.tzinfo is None else dt.astimezone().replace(tzinfo=None)
    return dt.astimezone(now.tzinfo)


def _clock_time(dt: datetime) -> str:
    return f"{dt.hour % 12 or 12}:{dt:%M} {'AM' if dt.hour < 12 else 'PM'}"


def _short_date(dt: datetime) -> str:
    return f"{dt:%a}, {dt:%b} {dt.day}"


def _long_date(dt: datetime) -> str:
    return f"{dt:%A}, {dt:%B} {dt.day}, {dt.year} {_clock_time(dt)}"


# ---------------------------------------------------------------------------
# Formatting
# ---------------------------------------------------------------------------


def format_received_time(received: datetime | None, now: datetime) -> str:
    if received is None:
        return "Unknown"
    received = _align(received, now)
    minutes = (now - received).total_seconds() / 60
    if minutes < 1:
        return "Just now"
    if minutes < 60:
        return f"{int(minutes)}m ago"
    if minutes < 24 * 60:
        return f"{int(minutes // 60)}h ago"
    if minutes < 7 * 24 * 60:
        return f"{int(minutes // (24 * 60))}d ago"
    if received.year == now.year:
        return f"{received:%b} {received.day}"
    return f"{received:%b} {received.day}, {received.year}"


def event_status(event: CalendarItem, now: datetime) -> str:
    start = _align(event.start_time, now)
    end = _align(event.end_time, now)
    if start <= now <= end:
        return "● Happening now"
    if start > now:
        until = start - now
        minutes = until.total_seconds() / 60
        if minutes < 60:
            return f"In {int(minutes)} minutes"
        if minutes < 24 * 60:
            return f"In {int(minutes // 60)} hours"
        if until < timedelta(days=7):
            return f"In {until.days} days"
    return ""


def format_event_time(event: CalendarItem) -> str:
    start = event.start_time
    end = event.end_time
    if event.is_all_day_event:
        # All-day ends are exclusive: a one-day event ends at the next midnight.
        if start.date() == end.date() or end == start + timedelta(days=1):
            return f"{_short_date(start)} (All Day)"
        return f"{_short_date(start)} - {_short_date(end - timedelta(days=1))} (All Day)"
    if start.date() == end.date():
        return f"{_short_date(start)} {_clock_time(start)} - {_clock_time(end)}"
    return f"{_short_date(start)} {_clock_time(start)} - {_short_date(end)} {_clock_time(end)}"


def _truncate(text: str, max_length: int = EMAIL_INFO_MAX_LENGTH) -> str:
    return text if len(text) <= max_length else text[: max_length - 3] + "..."


# ---------------------------------------------------------------------------
# Operations
# ---------------------------------------------------------------------------


def _op(
    operation_id: OperationId,
    name: str,
    description: str,
    glyph: Glyph,
    target: str = "",
    key_gesture: str | None = None,
    hide_main_window: bool = True,
) -> OperationRef:
    return OperationRef(
        operation_id=operation_id.value,
        name=name,
        description=description,
        icon_glyph=glyph.value,
        key_gesture=key_gesture,
        target=target,
        hide_main_window=hide_main_window,
    )


def email_operations(email: EmailItem, local_connected: bool) -> list[OperationRef]:
    ops: list[OperationRef] = []
    if local_connected and email.entry_id:
        eid = email.entry_id
        ops += [
            _op(OperationId.OPEN_IN_OUTLOOK, "Open in Outlook", "Opens this email in Outlook", Glyph.OPEN, eid, "Enter"),
            _op(OperationId.REPLY, "Reply", "Reply to this email", Glyph.REPLY, eid, "Ctrl+R"),
            _op(OperationId.REPLY_ALL, "Reply All", "Reply to all recipients", Glyph.REPLY_ALL, eid, "Ctrl+Shift+R"),
            _op(OperationId.FORWARD, "Forward", "Forward this email", Glyph.FORWARD, eid, "Ctrl+F"),
        ]
    elif email.web_link:
        ops.append(_op(OperationId.OPEN_LINK, "Open Email", "Opens this email", Glyph.OPEN, email.web_link, "Enter"))
    ops.append(
        _op(OperationId.COPY, "Copy Subject", "Copy the subject", Glyph.COPY, email.subject, hide_main_window=False)
    )
    return ops


def event_operations(event: CalendarItem, local_connected: bool) -> list[OperationRef]:
    ops: list[OperationRef] = []
    if local_connected and event.entry_id:
        ops.append(
            _op(
                OperationId.OPEN_IN_OUTLOOK,
                "Open in Outlook",
                "Opens this event in Outlook",
                Glyph.OPEN,
                event.entry_id,
                "Enter",
            )
        )
    elif event.web_link:
        ops.append(_op(OperationId.OPEN_LINK, "Open Event", "Opens this event", Glyph.OPEN, event.web_link, "Enter"))
    ops.append(_op(OperationId.COPY, "Copy Title", "Copy the title", Glyph.COPY, event.subject, hide_main_window=False))
    return ops


# ---------------------------------------------------------------------------
# Result items
# ---------------------------------------------------------------------------


def _action_result(
    name: str,
    description: str,
    glyph: Glyph,
    action_id: str,
    operation: OperationRef,
    score: float,
    kind: ResultKind = ResultKind.ACTION,
) -> ResultItem:
    return ResultItem(
        kind=kind,
        display_name=name,
        additional_information=description,
        score=score,
        tags=ACTION_TAGS,
        operations=[operation],
        information_elements=[InformationElement(name="Action", value=description)],
        icon_glyph=glyph.value,
        group_name=GroupName.QUICK_ACTIONS.value,
        object_id=f"{PinPrefix.ACTION}{action_id}",
        pin_id=f"{PinPrefix.ACTION}{action_id}",
        action_id=action_id,
    )


def quick_action_matches(action: QuickAction, text: str) -> bool:
    if not text:
        return True
    needle = text.lower()
    return needle in action.name.lower() or needle in action.action_id.lower()


def build_quick_actions(text: str) -> list[ResultItem]:
    """Matching quick actions in fixed order, scored from 10.0 down."""
    matching = [a for a in QUICK_ACTIONS if quick_action_matches(a, text)]
    return [
        _action_result(
            a.name,
            a.description,
            a.glyph,
            a.action_id,
            _op(OperationId.QUICK_ACTION, a.name, a.description, a.glyph, a.action_id, "Enter"),
            tier_score(ScoreTier.QUICK_ACTION, i),
        )
        for i, a in enumerate(matching)
    ]


def sign_out_matches(text: str) -> bool:
    needle = text.lower()
    return not needle or any(needle in keyword for keyword in SIGN_OUT_KEYWORDS)


def build_sign_out() -> ResultItem:
    description = "Sign out and clear cached credentials"
    return _action_result(
        "Sign out of Outlook",
        description,
        Glyph.SIGN_OUT,
        SIGN_OUT_ACTION_ID,
        _op(OperationId.SIGN_OUT, "Sign Out", "Sign out of your Microsoft account", Glyph.SIGN_OUT, key_gesture="Enter"),
        ScoreTier.SIGN_OUT,
        kind=ResultKind.SIGN_OUT,
    )


def build_sign_in() -> ResultItem:
    description = "Sign in with your Microsoft account to search emails and events"
    return _action_result(
        "Sign in to search Outlook",
        description,
        Glyph.SIGN_IN,
        SIGN_IN_ACTION_ID,
        _op(
            OperationId.SIGN_IN,
            "Sign In",
            "Sign in with your Microsoft account",
            Glyph.SIGN_IN,
            key_gesture="Enter",
            hide_main_window=False,
        ),
        ScoreTier.SIGN_IN,
        kind=ResultKind.SIGN_IN,
    )


def build_email_result(email: EmailItem, score: float, local_connected: bool, now: datetime) -> ResultItem:
    recency = format_received_time(email.received_time, now)
    attachment = " 📎" if email.has_attachments else ""
    preview = " ".join(email.body_preview.split())
    preview = f" — {preview}" if preview else ""

    elements = [
        InformationElement(name="From", value=f"{email.sender_name} <{email.sender_email}>"),
        InformationElement(name="To", value=email.to_recipients),
        InformationElement(
            name="Date",
            value=_long_date(_align(email.received_time, now)) if email.received_time else "Unknown",
        ),
        InformationElement(name="Folder", value=email.folder_name),
    ]
    if email.cc_recipients.strip():
        elements.append(InformationElement(name="CC", value=email.cc_recipients))
    if email.has_attachments:
        elements.append(InformationElement(name="Attachments", value="Yes"))
    if email.importance != 1:
        elements.append(InformationElement(name="Importance", value=_IMPORTANCE_LABELS[email.importance]))
    if email.body_preview.strip():
        elements.append(InformationElement(name="Preview", value=email.body_preview))

    return ResultItem(
        kind=ResultKind.EMAIL,
        display_name=email.subject,
        additional_information=_truncate(f"{email.sender_name} · {recency}{attachment}{preview}"),
        score=score,
        tags=EMAIL_TAGS,
        operations=email_operations(email, local_connected),
        information_elements=elements,
        icon_glyph=(Glyph.MAIL_READ if email.is_read else Glyph.MAIL_UNREAD).value,
        group_name=GroupName.EMAILS.value,
        object_id=email.entry_id,
        pin_id=f"{PinPrefix.EMAIL}{email.entry_id}",
        should_cache=True,
    )


def build_event_result(event: CalendarItem, score: float, local_connected: bool, now: datetime) -> ResultItem:
    local_event = event.model_copy(
        update={"start_time": _align(event.start_time, now), "end_time": _align(event.end_time, now)}
    )
    time_range = format_event_time(local_event)
    location = f" · {event.location}" if event.location.strip() else ""

    elements: list[InformationElement] = []
    status = event_status(event, now)
    if status:
        elements.append(InformationElement(name="Status", value=status))
    elements.append(InformationElement(name="When", value=time_range))
    for name, value in (
        ("Location", event.location),
        ("Organizer", event.organizer),
        ("Attendees", event.required_attendees),
        ("Optional", event.optional_attendees),
        ("Details", event.body_preview),
    ):
        if value.strip():
            elements.append(InformationElement(name=name, value=value))

    return ResultItem(
        kind=ResultKind.EVENT,
        display_name=event.subject,
        additional_information=f"{time_range}{location}",
        score=score,
        tags=EVENT_TAGS,
        operations=event_operations(event, local_connected),
        information_elements=elements,
        icon_glyph=Glyph.CALENDAR.value,
        group_name=GroupName.EVENTS.value,
        object_id=event.entry_id,
        pin_id=f"{PinPrefix.EVENT}{event.entry_id}",
        should_cache=True,
    )


def build_email_results(
    emails: list[EmailItem], local_connected: bool, now: datetime, start: float = ScoreTier.EMAIL
) -> list[ResultItem]:
    return [build_email_result(e, tier_score(start, i), local_connected, now) for i, e in enumerate(emails)]


def build_event_results(
    events: list[CalendarItem], local_connected: bool, now: datetime, start: float = ScoreTier.EVENT
) -> list[ResultItem]:
    return [build_event_result(e, tier_score(start, i), local_connected, now) for i, e in enumerate(events)]
