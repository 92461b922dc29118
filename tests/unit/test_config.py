from __future__ import annotations

from pathlib import Path

import pytest
from fakes import NOW, FakeRemote, collect, make_email, make_probe
from pydantic import ValidationError

from outlook_search.core.config import Config
from outlook_search.core.settings import SearchSettings
from outlook_search.orchestrators.search.orchestrator import OutlookSearchOrchestrator

_ENV = (
    "OUTLOOK_SEARCH_HOME",
    "GRAPH_CLIENT_ID",
    "GRAPH_HTTP_TIMEOUT",
    "LOG_LEVEL",
    "OUTLOOK_SEARCH_EMAILS",
    "OUTLOOK_SEARCH_MAX_EMAIL_RESULTS",
    "OUTLOOK_SEARCH_EMAIL_DAYS_BACK",
    "OUTLOOK_SEARCH_EVENTS",
    "OUTLOOK_SEARCH_MAX_EVENT_RESULTS",
    "OUTLOOK_SEARCH_EVENT_DAYS_BACK",
    "OUTLOOK_SEARCH_EVENT_FUTURE_DAYS",
    "OUTLOOK_SEARCH_UPCOMING_ON_EMPTY",
    "OUTLOOK_SEARCH_QUICK_ACTIONS",
)


@pytest.fixture
def clean_env(monkeypatch, tmp_path):
    for name in _ENV:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("OUTLOOK_SEARCH_HOME", str(tmp_path))
    return monkeypatch


class TestSearchSettings:
    def test_defaults(self):
        settings = SearchSettings()

        assert settings.search_emails and settings.search_events
        assert settings.max_email_results == 15
        assert settings.email_search_days_back == 90
        assert settings.max_event_results == 10
        assert settings.event_search_days_back == 30
        assert settings.event_future_days == 90
        assert settings.show_upcoming_events_on_empty and settings.show_quick_actions
        assert settings.graph_client_id == ""

    @pytest.mark.parametrize(
        ("field", "value"),
        [
            ("max_email_results", 0),
            ("max_email_results", 51),
            ("email_search_days_back", 6),
            ("max_event_results", 31),
            ("event_search_days_back", 181),
            ("event_future_days", 366),
        ],
    )
    def test_bounds(self, field, value):
        with pytest.raises(ValidationError):
            SearchSettings(**{field: value})

    def test_snapshot_is_frozen(self):
        settings = SearchSettings()

        with pytest.raises(ValidationError):
            settings.max_email_results = 3


class TestConfig:
    def test_defaults_under_home(self, clean_env, tmp_path):
        cfg = Config.load()

        assert cfg.data_dir == tmp_path / "data"
        assert cfg.logs_dir == tmp_path / "logs"
        assert cfg.token_cache_path == tmp_path / "data" / "outlook_search_msal_cache.json"
        assert cfg.graph_authority == "https://login.microsoftonline.com/common"
        assert cfg.validate() == []
        assert cfg.settings() == SearchSettings()

    def test_reads_environment(self, clean_env):
        clean_env.setenv("GRAPH_CLIENT_ID", "my-app")
        clean_env.setenv("OUTLOOK_SEARCH_EMAILS", "false")
        clean_env.setenv("OUTLOOK_SEARCH_MAX_EMAIL_RESULTS", "25")
        clean_env.setenv("OUTLOOK_SEARCH_QUICK_ACTIONS", "0")
        clean_env.setenv("LOG_LEVEL", "debug")

        cfg = Config.load()
        settings = cfg.settings()

        assert cfg.log_level == "DEBUG"
        assert settings.graph_client_id == "my-app"
        assert settings.search_emails is False
        assert settings.max_email_results == 25
        assert settings.show_quick_actions is False

    def test_blank_boolean_keeps_default(self, clean_env):
        clean_env.setenv("OUTLOOK_SEARCH_EVENTS", "  ")

        assert Config.load().search_events is True

    def test_validate_reports_problems(self, clean_env):
        clean_env.setenv("GRAPH_HTTP_TIMEOUT", "0")
        clean_env.setenv("LOG_LEVEL", "chatty")
        clean_env.setenv("OUTLOOK_SEARCH_MAX_EVENT_RESULTS", "99")

        errors = Config.load().validate()

        assert len(errors) == 3
        assert errors[0].startswith("GRAPH_HTTP_TIMEOUT")
        assert errors[1] == "Unknown LOG_LEVEL: CHATTY"
        assert errors[2] == "Invalid search setting: OUTLOOK_SEARCH_MAX_EVENT_RESULTS=99 is outside 1..30"

    def test_out_of_range_settings_are_clamped_once(self, clean_env):
        clean_env.setenv("OUTLOOK_SEARCH_MAX_EMAIL_RESULTS", "100")
        clean_env.setenv("OUTLOOK_SEARCH_EMAIL_DAYS_BACK", "1")
        cfg = Config.load()

        settings = cfg.settings()

        assert settings.max_email_results == 50
        assert settings.email_search_days_back == 7
        assert cfg.settings() is settings

    def test_non_integer_falls_back_to_default(self, clean_env):
        clean_env.setenv("OUTLOOK_SEARCH_MAX_EVENT_RESULTS", "lots")

        assert Config.load().settings().max_event_results == 10

    @pytest.mark.asyncio
    async def test_search_with_out_of_range_environment(self, clean_env):
        clean_env.setenv("OUTLOOK_SEARCH_MAX_EMAIL_RESULTS", "100")
        emails = [make_email(i) for i in range(60)]
        orchestrator = OutlookSearchOrchestrator(
            remote=FakeRemote(authenticated=True, emails=emails),
            probe=make_probe(None),
            settings_provider=Config.load().settings,
            launcher=lambda uri: True,
            clock=lambda: NOW,
        )

        items = await collect(orchestrator, "budget", "email")

        assert len(items) == 50
        assert orchestrator.get_application_info().settings.max_email_results == 50

    def test_project_root_is_repository(self, clean_env):
        assert (Config.load().project_root / "outlook_search").is_dir()
        assert isinstance(Config.load().project_root, Path)
