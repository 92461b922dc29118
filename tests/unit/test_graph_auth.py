from __future__ import annotations

from datetime import UTC, datetime, timedelta
from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest

from outlook_search.core.cancellation import CancellationSource
from outlook_search.services.graph_auth import (
    SCOPES,
    AccessToken,
    AuthCancelledError,
    AuthServiceError,
    AuthState,
    AuthStateMachine,
    InteractionRequiredError,
    MsalTokenProvider,
)

T0 = datetime(2025, 5, 2, 8, 0, tzinfo=UTC)


class Clock:
    def __init__(self, now: datetime = T0):
        self.now = now

    def __call__(self) -> datetime:
        return self.now


class ScriptedProvider:
    """TokenProvider whose silent / interactive outcomes are set per test."""

    def __init__(self, silent=None, interactive=None):
        self.silent = silent
        self.interactive = interactive
        self.silent_calls = 0
        self.interactive_calls = 0
        self.removed = 0

    @staticmethod
    def _play(outcome):
        if isinstance(outcome, Exception):
            raise outcome
        return outcome

    async def acquire_silent(self):
        self.silent_calls += 1
        return self._play(self.silent)

    async def acquire_interactive(self):
        self.interactive_calls += 1
        return self._play(self.interactive)

    async def remove_accounts(self):
        self.removed += 1


def _token(minutes: int = 60) -> AccessToken:
    return AccessToken(token="tok", expires_on=T0 + timedelta(minutes=minutes))


def _machine(provider=None, clock=None) -> AuthStateMachine:
    return AuthStateMachine(provider=provider, clock=clock or Clock())


class TestSilent:
    def test_starts_uninitialized(self):
        machine = _machine()

        assert machine.state == AuthState.UNINITIALIZED
        assert not machine.is_initialized
        assert not machine.is_authenticated
        assert machine.access_token is None

    @pytest.mark.asyncio
    async def test_silent_without_provider_is_false(self):
        assert await _machine().try_silent_auth() is False

    @pytest.mark.asyncio
    async def test_silent_success_authenticates(self):
        machine = _machine(ScriptedProvider(silent=_token()))

        assert await machine.try_silent_auth() is True
        assert machine.state == AuthState.AUTHENTICATED
        assert machine.access_token == "tok"
        assert machine.expiry == T0 + timedelta(minutes=60)

    @pytest.mark.asyncio
    async def test_no_cached_account_marks_silent_checked(self):
        machine = _machine(ScriptedProvider(silent=None))

        assert await machine.try_silent_auth() is False
        assert machine.state == AuthState.SILENT_CHECKED
        assert machine.auth_failed is False

    @pytest.mark.asyncio
    @pytest.mark.parametrize("error", [InteractionRequiredError("expired"), RuntimeError("network down")])
    async def test_silent_failure_never_sets_sticky_flag(self, error):
        provider = ScriptedProvider(silent=error)
        machine = _machine(provider)

        assert await machine.try_silent_auth() is False
        assert machine.state == AuthState.SILENT_CHECKED
        assert machine.auth_failed is False
        assert provider.interactive_calls == 0

    @pytest.mark.asyncio
    async def test_cancelled_silent_makes_no_call(self):
        provider = ScriptedProvider(silent=_token())
        source = CancellationSource()
        source.cancel()

        assert await _machine(provider).try_silent_auth(source.token) is False
        assert provider.silent_calls == 0


class TestInteractive:
    @pytest.mark.asyncio
    async def test_already_authenticated_short_circuits(self):
        provider = ScriptedProvider(silent=_token())
        machine = _machine(provider)
        await machine.try_silent_auth()

        assert await machine.try_auth() is True
        assert provider.silent_calls == 1
        assert provider.interactive_calls == 0

    @pytest.mark.asyncio
    async def test_silent_success_skips_prompt(self):
        provider = ScriptedProvider(silent=_token())

        assert await _machine(provider).try_auth() is True
        assert provider.interactive_calls == 0

    @pytest.mark.asyncio
    @pytest.mark.parametrize("silent", [None, InteractionRequiredError("consent_required")])
    async def test_prompts_when_silent_needs_interaction(self, silent):
        provider = ScriptedProvider(silent=silent, interactive=_token())
        machine = _machine(provider)

        assert await machine.try_auth() is True
        assert provider.interactive_calls == 1
        assert machine.state == AuthState.AUTHENTICATED

    @pytest.mark.asyncio
    async def test_generic_silent_error_does_not_prompt(self):
        provider = ScriptedProvider(silent=RuntimeError("boom"), interactive=_token())
        machine = _machine(provider)

        assert await machine.try_auth() is False
        assert provider.interactive_calls == 0
        assert machine.auth_failed is False

    @pytest.mark.asyncio
    @pytest.mark.parametrize("error", [AuthServiceError("access_denied"), RuntimeError("browser crashed")])
    async def test_rejection_sets_sticky_flag(self, error):
        machine = _machine(ScriptedProvider(silent=None, interactive=error))

        assert await machine.try_auth() is False
        assert machine.auth_failed is True
        assert machine.state == AuthState.AUTH_FAILED

    @pytest.mark.asyncio
    async def test_cancelled_prompt_is_not_a_failure(self):
        machine = _machine(ScriptedProvider(silent=None, interactive=AuthCancelledError("user closed window")))

        assert await machine.try_auth() is False
        assert machine.auth_failed is False
        assert not machine.is_authenticated

    @pytest.mark.asyncio
    async def test_cancelled_token_skips_prompt(self):
        provider = ScriptedProvider(silent=None, interactive=_token())
        source = CancellationSource()
        source.cancel()

        assert await _machine(provider).try_auth(source.token) is False
        assert provider.interactive_calls == 0

    @pytest.mark.asyncio
    async def test_interactive_success_clears_sticky_flag(self):
        provider = ScriptedProvider(silent=None, interactive=AuthServiceError("access_denied"))
        machine = _machine(provider)
        await machine.try_auth()
        assert machine.auth_failed is True

        provider.interactive = _token()
        assert await machine.try_auth() is True
        assert machine.auth_failed is False
        assert machine.state == AuthState.AUTHENTICATED

    @pytest.mark.asyncio
    async def test_silent_success_in_sign_in_clears_sticky_flag(self):
        clock = Clock()
        provider = ScriptedProvider(silent=None, interactive=AuthServiceError("access_denied"))
        machine = _machine(provider, clock)
        await machine.try_auth()
        assert machine.auth_failed is True

        provider.silent = _token(minutes=5)
        assert await machine.try_auth() is True
        assert machine.auth_failed is False

        clock.now = T0 + timedelta(minutes=10)
        assert machine.state != AuthState.AUTH_FAILED


class TestExpiryAndSignOut:
    @pytest.mark.asyncio
    async def test_expired_token_is_not_authenticated(self):
        clock = Clock()
        machine = _machine(ScriptedProvider(silent=_token(minutes=5)), clock)
        await machine.try_silent_auth()

        clock.now = T0 + timedelta(minutes=5)

        assert machine.is_authenticated is False
        assert machine.access_token is None
        assert machine.expiry is None
        assert machine.state == AuthState.UNINITIALIZED

    @pytest.mark.asyncio
    async def test_expired_token_refreshes_silently(self):
        clock = Clock()
        provider = ScriptedProvider(silent=_token(minutes=5))
        machine = _machine(provider, clock)
        await machine.try_silent_auth()
        clock.now = T0 + timedelta(minutes=10)
        provider.silent = AccessToken(token="tok2", expires_on=T0 + timedelta(minutes=70))

        assert await machine.try_silent_auth() is True
        assert machine.access_token == "tok2"

    @pytest.mark.asyncio
    async def test_sign_out_clears_everything(self):
        provider = ScriptedProvider(silent=None, interactive=AuthServiceError("access_denied"))
        machine = _machine(provider)
        await machine.try_auth()

        await machine.sign_out()

        assert provider.removed == 1
        assert machine.auth_failed is False
        assert machine.state == AuthState.UNINITIALIZED

    @pytest.mark.asyncio
    async def test_sign_out_after_success(self):
        machine = _machine(ScriptedProvider(silent=_token()))
        await machine.try_silent_auth()

        await machine.sign_out()

        assert machine.is_authenticated is False
        assert machine.access_token is None


class TestMsalTokenProvider:
    def _provider(self, tmp_path, app) -> MsalTokenProvider:
        return MsalTokenProvider(cache_path=tmp_path / "cache.json", app=app)

    @pytest.mark.asyncio
    async def test_no_accounts_returns_none(self, tmp_path):
        app = MagicMock()
        app.get_accounts.return_value = []

        assert await self._provider(tmp_path, app).acquire_silent() is None
        app.acquire_token_silent.assert_not_called()

    @pytest.mark.asyncio
    async def test_silent_token_for_first_account(self, tmp_path):
        app = MagicMock()
        account = SimpleNamespace(username="me@example.com")
        app.get_accounts.return_value = [account]
        app.acquire_token_silent.return_value = {"access_token": "abc", "expires_in": 3600}

        token = await self._provider(tmp_path, app).acquire_silent()

        assert token.token == "abc"
        assert token.expires_on > datetime.now(UTC) + timedelta(minutes=59)
        app.acquire_token_silent.assert_called_once_with(SCOPES, account=account)

    @pytest.mark.asyncio
    async def test_silent_without_refresh_token_needs_interaction(self, tmp_path):
        app = MagicMock()
        app.get_accounts.return_value = [object()]
        app.acquire_token_silent.return_value = None

        with pytest.raises(InteractionRequiredError):
            await self._provider(tmp_path, app).acquire_silent()

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        ("error", "expected"),
        [
            ("invalid_grant", InteractionRequiredError),
            ("authentication_canceled", AuthCancelledError),
            ("access_denied", AuthServiceError),
        ],
    )
    async def test_interactive_error_mapping(self, tmp_path, error, expected):
        app = MagicMock()
        app.acquire_token_interactive.return_value = {"error": error, "error_description": "AADSTS: nope\ntrace"}

        with pytest.raises(expected, match=error):
            await self._provider(tmp_path, app).acquire_interactive()

    @pytest.mark.asyncio
    async def test_remove_accounts(self, tmp_path):
        app = MagicMock()
        accounts = [object(), object()]
        app.get_accounts.return_value = accounts

        await self._provider(tmp_path, app).remove_accounts()

        assert app.remove_account.call_count == 2

    def test_unreadable_cache_is_ignored(self, tmp_path):
        (tmp_path / "cache.json").write_text("not json", encoding="utf-8")

        provider = self._provider(tmp_path, MagicMock())

        assert provider is not None
