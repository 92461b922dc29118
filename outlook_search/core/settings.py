"""Search settings snapshot: limits, day ranges and feature toggles."""

from pydantic import BaseModel, ConfigDict, Field


class SearchSettings(BaseModel):
    """Read-only snapshot consumed by the orchestrator for one request."""

    model_config = ConfigDict(frozen=True)

    search_emails: bool = Field(default=True, description="Include email results when searching")
    max_email_results: int = Field(default=15, ge=1, le=50, description="Maximum number of email results per search")
    email_search_days_back: int = Field(default=90, ge=7, le=365, description="How many days back to search for emails")

    search_events: bool = Field(default=True, description="Include calendar event results when searching")
    max_event_results: int = Field(default=10, ge=1, le=30, description="Maximum number of event results per search")
    event_search_days_back: int = Field(default=30, ge=1, le=180, description="How many days back to search for past events")
    event_future_days: int = Field(default=90, ge=7, le=365, description="How many days ahead to search for upcoming events")
    show_upcoming_events_on_empty: bool = Field(
        default=True,
        description="With the outlook tag and empty search text, show upcoming events",
    )

    show_quick_actions: bool = Field(default=True, description="Show quick actions like 'Compose New Email'")

    graph_client_id: str = Field(
        default="",
        description="Custom Azure AD app client ID for Graph access; empty uses the built-in default",
    )
