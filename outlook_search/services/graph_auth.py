"""
Microsoft Graph credential lifecycle.

AuthStateMachine owns the remote backend's auth state: silent refresh,
interactive sign-in, sign-out and the sticky failure flag. Token acquisition
itself is delegated to a TokenProvider; MsalTokenProvider is the production
implementation backed by a file-persisted MSAL token cache.
"""

import asyncio
import threading
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from enum import StrEnum
from pathlib import Path
from typing import Any, Protocol

import msal

from outlook_search.core.cancellation import CancellationToken
from outlook_search.core.config import config
from outlook_search.core.logger import logger

# Well-known public client ID of the Microsoft Graph Command Line Tools app.
# Works with any org or personal Microsoft account.
DEFAULT_CLIENT_ID = "14d82eec-204b-4c2f-b7e8-296a70dab67e"

SCOPES = ["Mail.Read", "Calendars.Read"]

_INTERACTION_REQUIRED_ERRORS = frozenset(
    {"interaction_required", "login_required", "consent_required", "invalid_grant"}
)
_CANCELLED_ERRORS = frozenset({"authentication_canceled", "authentication_cancelled", "user_cancelled"})


class AuthState(StrEnum):
    UNINITIALIZED = "uninitialized"
    SILENT_CHECKED = "silent_checked"
    AUTHENTICATED = "authenticated"
    AUTH_FAILED = "auth_failed"


class AuthError(Exception):
    """Base exception for token acquisition errors."""


class InteractionRequiredError(AuthError):
    """Silent acquisition is impossible without user interaction."""


class AuthServiceError(AuthError):
    """The identity service rejected the request."""


class AuthCancelledError(AuthError):
    """The user or caller abandoned the interactive flow."""


@dataclass(frozen=True)
class AccessToken:
    token: str
    expires_on: datetime


class TokenProvider(Protocol):
    async def acquire_silent(self) -> AccessToken | None:
        """Token from cached state only. None when no account is cached."""
        ...

    async def acquire_interactive(self) -> AccessToken:
        """Token through an interactive prompt."""
        ...

    async def remove_accounts(self) -> None:
        ...


def _utcnow() -> datetime:
    return datetime.now(UTC)


class AuthStateMachine:
    """Credential state for the remote backend.

    `state` and `is_authenticated` are evaluated from the stored token and the
    clock on every read, so an expired token is never reported as valid.
    """

    def __init__(
        self,
        provider: TokenProvider | None = None,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self._provider = provider
        self._clock = clock
        self._token: AccessToken | None = None
        self._silent_checked = False
        self._auth_failed = False

    def initialize(self, provider: TokenProvider) -> None:
        self._provider = provider

    @property
    def is_initialized(self) -> bool:
        return self._provider is not None

    @property
    def is_authenticated(self) -> bool:
        return self._token is not None and self._clock() < self._token.expires_on

    @property
    def auth_failed(self) -> bool:
        return self._auth_failed

    @property
    def access_token(self) -> str | None:
        return self._token.token if self.is_authenticated else None

    @property
    def expiry(self) -> datetime | None:
        return self._token.expires_on if self.is_authenticated else None

    @property
    def state(self) -> AuthState:
        if self.is_authenticated:
            return AuthState.AUTHENTICATED
        if self._auth_failed:
            return AuthState.AUTH_FAILED
        if self._silent_checked:
            return AuthState.SILENT_CHECKED
        return AuthState.UNINITIALIZED

    def _set_token(self, token: AccessToken, reason: str) -> None:
        before = self.state
        self._token = token
        self._silent_checked = False
        logger.auth_transition(before, self.state, reason)

    def _mark_silent_checked(self, reason: str) -> None:
        before = self.state
        self._silent_checked = True
        logger.auth_transition(before, self.state, reason)

    async def try_silent_auth(self, cancellation: CancellationToken | None = None) -> bool:
        """Refresh from cached credentials only. Never prompts, never sets the sticky flag."""
        if self.is_authenticated:
            return True
        if self._provider is None:
            return False
        if cancellation is not None and cancellation.is_cancelled:
            return False
        try:
            token = await self._provider.acquire_silent()
        except Exception as e:
            self._mark_silent_checked(f"silent auth failed: {e}")
            return False
        if token is None:
            self._mark_silent_checked("no cached account")
            return False
        self._set_token(token, "silent auth")
        return True

    async def try_auth(self, cancellation: CancellationToken | None = None) -> bool:
        """Silent first, interactive only when silent needs user interaction."""
        if self.is_authenticated:
            return True
        if self._provider is None:
            return False
        try:
            token = await self._provider.acquire_silent()
        except InteractionRequiredError:
            token = None
        except Exception as e:
            self._mark_silent_checked(f"silent auth failed: {e}")
            return False
        if token is not None:
            self._auth_failed = False
            self._set_token(token, "silent auth")
            return True

        if cancellation is not None and cancellation.is_cancelled:
            return False

        before = self.state
        try:
            token = await self._provider.acquire_interactive()
        except AuthCancelledError as e:
            logger.info(f"Interactive sign-in cancelled: {e}")
            return False
        except AuthServiceError as e:
            self._auth_failed = True
            logger.auth_transition(before, self.state, f"rejected: {e}")
            return False
        except Exception as e:
            self._auth_failed = True
            logger.error("Interactive sign-in failed", exception=e)
            logger.auth_transition(before, self.state, f"error: {e}")
            return False
        self._auth_failed = False
        self._set_token(token, "interactive sign-in")
        return True

    async def sign_out(self) -> None:
        """Remove cached accounts and clear every piece of in-memory auth state."""
        before = self.state
        if self._provider is not None:
            try:
                await self._provider.remove_accounts()
            except Exception as e:
                logger.warning(f"Could not remove cached accounts: {e}")
        self._token = None
        self._silent_checked = False
        self._auth_failed = False
        logger.auth_transition(before, self.state, "sign out")


def _token_from_result(result: dict[str, Any]) -> AccessToken:
    expires_in = int(result.get("expires_in", 3599))
    return AccessToken(
        token=result["access_token"],
        expires_on=_utcnow() + timedelta(seconds=expires_in),
    )


def _error_from_result(result: dict[str, Any]) -> AuthError:
    error = str(result.get("error") or "unknown_error")
    description = str(result.get("error_description") or "").split("\n")[0]
    message = f"{error}: {description}" if description else error
    if error in _INTERACTION_REQUIRED_ERRORS:
        return InteractionRequiredError(message)
    if error in _CANCELLED_ERRORS:
        return AuthCancelledError(message)
    return AuthServiceError(message)


class MsalTokenProvider:
    """MSAL public-client token provider with a file-backed token cache."""

    def __init__(
        self,
        client_id: str | None = None,
        cache_path: Path | None = None,
        authority: str | None = None,
        app: Any | None = None,
    ):
        self._cache_path = cache_path or config.token_cache_path
        self._cache = msal.SerializableTokenCache()
        self._cache_lock = threading.Lock()
        self._load_cache()
        effective_client_id = (client_id or "").strip() or DEFAULT_CLIENT_ID
        self._app = app or msal.PublicClientApplication(
            effective_client_id,
            authority=authority or config.graph_authority,
            token_cache=self._cache,
        )

    def _load_cache(self) -> None:
        if not self._cache_path.exists():
            return
        try:
            self._cache.deserialize(self._cache_path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            logger.warning(f"Ignoring unreadable token cache {self._cache_path}: {e}")

    def _persist_cache(self) -> None:
        with self._cache_lock:
            if not self._cache.has_state_changed:
                return
            self._cache_path.parent.mkdir(parents=True, exist_ok=True)
            self._cache_path.write_text(self._cache.serialize(), encoding="utf-8")
            self._cache.has_state_changed = False

    def _acquire_silent_sync(self) -> AccessToken | None:
        accounts = self._app.get_accounts()
        if not accounts:
            return None
        result = self._app.acquire_token_silent(SCOPES, account=accounts[0])
        self._persist_cache()
        if not result:
            raise InteractionRequiredError("no usable refresh token for cached account")
        if "access_token" not in result:
            raise _error_from_result(result)
        return _token_from_result(result)

    def _acquire_interactive_sync(self) -> AccessToken:
        result = self._app.acquire_token_interactive(SCOPES, prompt="select_account")
        self._persist_cache()
        if "access_token" not in result:
            raise _error_from_result(result)
        return _token_from_result(result)

    def _remove_accounts_sync(self) -> None:
        for account in self._app.get_accounts():
            self._app.remove_account(account)
        self._persist_cache()

    async def acquire_silent(self) -> AccessToken | None:
        return await asyncio.to_thread(self._acquire_silent_sync)

    async def acquire_interactive(self) -> AccessToken:
        return await asyncio.to_thread(self._acquire_interactive_sync)

    async def remove_accounts(self) -> None:
        await asyncio.to_thread(self._remove_accounts_sync)
