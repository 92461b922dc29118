"""Configuration from environment variables (.env)."""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path

from dotenv import load_dotenv

from outlook_search.core.settings import SearchSettings

load_dotenv()

log = logging.getLogger(__name__)

_BOUNDED_SETTINGS = {
    "max_email_results": "OUTLOOK_SEARCH_MAX_EMAIL_RESULTS",
    "email_search_days_back": "OUTLOOK_SEARCH_EMAIL_DAYS_BACK",
    "max_event_results": "OUTLOOK_SEARCH_MAX_EVENT_RESULTS",
    "event_search_days_back": "OUTLOOK_SEARCH_EVENT_DAYS_BACK",
    "event_future_days": "OUTLOOK_SEARCH_EVENT_FUTURE_DAYS",
}


def _bounds(name: str) -> tuple[int | None, int | None]:
    low = high = None
    for constraint in SearchSettings.model_fields[name].metadata:
        low = getattr(constraint, "ge", low)
        high = getattr(constraint, "le", high)
    return low, high


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        log.warning(f"{name}={raw!r} is not an integer; using {default}")
        return default


@dataclass
class Config:
    project_root: Path
    data_dir: Path
    logs_dir: Path
    token_cache_path: Path
    graph_client_id: str
    graph_authority: str
    graph_http_timeout: float
    log_level: str
    search_emails: bool
    max_email_results: int
    email_search_days_back: int
    search_events: bool
    max_event_results: int
    event_search_days_back: int
    event_future_days: int
    show_upcoming_events_on_empty: bool
    show_quick_actions: bool
    _settings: SearchSettings | None = field(default=None, init=False, repr=False, compare=False)

    @classmethod
    def load(cls) -> "Config":
        project_root = Path(__file__).parent.parent.parent
        home_env = os.getenv("OUTLOOK_SEARCH_HOME", "").strip()
        home = Path(home_env).expanduser() if home_env else project_root
        data_dir = home / "data"
        return cls(
            project_root=project_root,
            data_dir=data_dir,
            logs_dir=home / "logs",
            token_cache_path=data_dir / "outlook_search_msal_cache.json",
            graph_client_id=os.getenv("GRAPH_CLIENT_ID", ""),
            graph_authority=os.getenv("GRAPH_AUTHORITY", "https://login.microsoftonline.com/common"),
            graph_http_timeout=float(os.getenv("GRAPH_HTTP_TIMEOUT", "30")),
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
            search_emails=_env_bool("OUTLOOK_SEARCH_EMAILS", True),
            max_email_results=_env_int("OUTLOOK_SEARCH_MAX_EMAIL_RESULTS", 15),
            email_search_days_back=_env_int("OUTLOOK_SEARCH_EMAIL_DAYS_BACK", 90),
            search_events=_env_bool("OUTLOOK_SEARCH_EVENTS", True),
            max_event_results=_env_int("OUTLOOK_SEARCH_MAX_EVENT_RESULTS", 10),
            event_search_days_back=_env_int("OUTLOOK_SEARCH_EVENT_DAYS_BACK", 30),
            event_future_days=_env_int("OUTLOOK_SEARCH_EVENT_FUTURE_DAYS", 90),
            show_upcoming_events_on_empty=_env_bool("OUTLOOK_SEARCH_UPCOMING_ON_EMPTY", True),
            show_quick_actions=_env_bool("OUTLOOK_SEARCH_QUICK_ACTIONS", True),
        )

    def _settings_problems(self) -> list[str]:
        problems = []
        for name, env_name in _BOUNDED_SETTINGS.items():
            value = getattr(self, name)
            low, high = _bounds(name)
            if (low is not None and value < low) or (high is not None and value > high):
                problems.append(f"{env_name}={value} is outside {low}..{high}")
        return problems

    def settings(self) -> SearchSettings:
        """Settings snapshot built once from the environment; out-of-range values are clamped."""
        if self._settings is not None:
            return self._settings
        bounded = {}
        for name in _BOUNDED_SETTINGS:
            low, high = _bounds(name)
            value = getattr(self, name)
            if low is not None:
                value = max(low, value)
            if high is not None:
                value = min(high, value)
            bounded[name] = value
        for problem in self._settings_problems():
            log.warning(f"{problem}; clamped")
        self._settings = SearchSettings(
            search_emails=self.search_emails,
            search_events=self.search_events,
            show_upcoming_events_on_empty=self.show_upcoming_events_on_empty,
            show_quick_actions=self.show_quick_actions,
            graph_client_id=self.graph_client_id,
            **bounded,
        )
        return self._settings

    def validate(self) -> list[str]:
        errors = []
        if self.graph_http_timeout <= 0:
            errors.append(f"GRAPH_HTTP_TIMEOUT must be positive, got {self.graph_http_timeout}")
        if self.log_level not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            errors.append(f"Unknown LOG_LEVEL: {self.log_level}")
        errors.extend(f"Invalid search setting: {problem}" for problem in self._settings_problems())
        return errors


config = Config.load()
