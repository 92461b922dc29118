"""Shared typed constants for Outlook search: tags, score tiers, quick actions, operation ids."""

from dataclasses import dataclass
from enum import StrEnum

APP_NAME = "Outlook Search"
APP_DESCRIPTION = "Search Outlook emails and calendar events"


class SearchTag(StrEnum):
    """Tags the search is registered under. OUTLOOK is the primary tag."""

    OUTLOOK = "outlook"
    EMAIL = "email"
    CALENDAR = "calendar"


TAG_DESCRIPTIONS: dict[SearchTag, str] = {
    SearchTag.OUTLOOK: "search emails and events",
    SearchTag.EMAIL: "search emails only",
    SearchTag.CALENDAR: "search calendar events only",
}


class Glyph(StrEnum):
    """Segoe MDL2 icon glyphs."""

    MAIL = "\ue715"
    MAIL_UNREAD = "\ue8a8"
    MAIL_READ = "\ue8c3"
    CALENDAR = "\ue787"
    COMPOSE = "\ue70f"
    OPEN = "\ue8a7"
    REPLY = "\ue97a"
    REPLY_ALL = "\ue97b"
    FORWARD = "\ue989"
    COPY = "\ue8c8"
    SIGN_IN = "\ue77b"
    SIGN_OUT = "\uf3b1"


TAG_GLYPHS: dict[SearchTag, Glyph] = {
    SearchTag.OUTLOOK: Glyph.MAIL,
    SearchTag.EMAIL: Glyph.MAIL_UNREAD,
    SearchTag.CALENDAR: Glyph.CALENDAR,
}

# Result tags, primary first.
ACTION_TAGS: list[str] = [SearchTag.OUTLOOK.value, SearchTag.EMAIL.value, SearchTag.CALENDAR.value]
EMAIL_TAGS: list[str] = [SearchTag.EMAIL.value, SearchTag.OUTLOOK.value]
EVENT_TAGS: list[str] = [SearchTag.CALENDAR.value, SearchTag.OUTLOOK.value]


class ScoreTier:
    """Starting score per category; each later item in a category drops by STEP."""

    QUICK_ACTION = 10.0
    SIGN_IN = 10.0
    EMAIL = 8.0
    EVENT = 6.0
    UPCOMING_EVENT = 5.0
    SIGN_OUT = 0.1
    STEP = 0.1


def tier_score(start: float, index: int) -> float:
    return round(start - ScoreTier.STEP * index, 1)


class GroupName(StrEnum):
    QUICK_ACTIONS = "Quick Actions"
    EMAILS = "Emails"
    EVENTS = "Events"


class PinPrefix(StrEnum):
    EMAIL = "OutlookEmail_"
    EVENT = "OutlookEvent_"
    ACTION = "OutlookAction_"


class OperationId(StrEnum):
    """Keys in the OperationRegistry."""

    OPEN_IN_OUTLOOK = "open_in_outlook"
    REPLY = "reply"
    REPLY_ALL = "reply_all"
    FORWARD = "forward"
    OPEN_LINK = "open_link"
    COPY = "copy"
    QUICK_ACTION = "quick_action"
    SIGN_IN = "sign_in"
    SIGN_OUT = "sign_out"


@dataclass(frozen=True)
class QuickAction:
    """Static quick-action entry: local verb when Outlook desktop is connected, URI otherwise."""

    name: str
    description: str
    glyph: Glyph
    action_id: str
    uri: str


QUICK_ACTIONS: tuple[QuickAction, ...] = (
    QuickAction("Compose New Email", "Open a new email compose window", Glyph.COMPOSE, "compose", "mailto:"),
    QuickAction(
        "Schedule New Meeting",
        "Schedule a new meeting in Outlook",
        Glyph.CALENDAR,
        "meeting",
        "https://outlook.office.com/calendar/0/deeplink/compose",
    ),
    QuickAction("Open Inbox", "Open the Outlook inbox", Glyph.MAIL, "inbox", "ms-outlook:"),
    QuickAction(
        "Open Calendar",
        "Open the Outlook calendar",
        Glyph.CALENDAR,
        "calendar",
        "https://outlook.office.com/calendar/view/month",
    ),
)

QUICK_ACTIONS_BY_ID: dict[str, QuickAction] = {a.action_id: a for a in QUICK_ACTIONS}

SIGN_OUT_KEYWORDS = ("sign out", "logout")
SIGN_IN_ACTION_ID = "sign_in"
SIGN_OUT_ACTION_ID = "sign_out"

EMAIL_INFO_MAX_LENGTH = 120
