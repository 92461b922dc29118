"""Outlook search orchestrator: backend arbitration and score-ordered result streaming.

Pipeline per request:
  1. Drop cancelled / process searches and unknown tags
  2. Quick actions and the sign-out prompt (primary tag only)
  3. Resolve backends (cached local probe, one silent remote refresh)
  4. No backend: sign-in prompt for non-empty text
  5. Empty text: upcoming events
  6. Otherwise emails, then events, from the selected backend
"""

import uuid
from collections.abc import AsyncIterator, Awaitable, Callable
from datetime import datetime
from typing import Any, TypeVar

from outlook_search.contracts.search_v1 import (
    HandleResult,
    ResultItem,
    SearchApplicationInfo,
    SearchKind,
    SearchRequest,
    SearchTagInfo,
)
from outlook_search.core.cancellation import CancellationToken
from outlook_search.core.config import config
from outlook_search.core.logger import logger
from outlook_search.core.settings import SearchSettings
from outlook_search.orchestrators.search.availability import BackendAvailabilityProbe
from outlook_search.orchestrators.search.builders import (
    build_email_results,
    build_event_results,
    build_quick_actions,
    build_sign_in,
    build_sign_out,
    sign_out_matches,
)
from outlook_search.orchestrators.search.constants import (
    APP_DESCRIPTION,
    APP_NAME,
    TAG_DESCRIPTIONS,
    TAG_GLYPHS,
    Glyph,
    ScoreTier,
    SearchTag,
)
from outlook_search.orchestrators.search.operations import (
    Launcher,
    OperationRegistry,
    build_operation_registry,
    launch_uri,
)
from outlook_search.orchestrators.search.selector import BackendSelection, BackendSelector
from outlook_search.services.graph_service import GraphOutlookService

_Item = TypeVar("_Item")


def classify_tag(tag: str | None) -> SearchTag | None:
    """Case-insensitive exact match against the registered tags."""
    try:
        return SearchTag((tag or "").lower())
    except ValueError:
        return None


def _local_now() -> datetime:
    return datetime.now().astimezone()


class OutlookSearchOrchestrator:
    def __init__(
        self,
        remote: GraphOutlookService | None = None,
        probe: BackendAvailabilityProbe | None = None,
        settings_provider: Callable[[], SearchSettings] | None = None,
        launcher: Launcher = launch_uri,
        clock: Callable[[], datetime] = _local_now,
    ):
        self._settings_provider = settings_provider or config.settings
        self._remote = remote if remote is not None else GraphOutlookService()
        self._probe = probe or BackendAvailabilityProbe()
        self._clock = clock
        self.selector = BackendSelector(self._probe, self._remote)
        self.operations: OperationRegistry = build_operation_registry(
            self.selector,
            launcher=launcher,
            client_id=lambda: self._settings_provider().graph_client_id,
        )

    @property
    def remote(self) -> GraphOutlookService:
        return self._remote

    @property
    def probe(self) -> BackendAvailabilityProbe:
        return self._probe

    def get_application_info(self) -> SearchApplicationInfo:
        return SearchApplicationInfo(
            name=APP_NAME,
            description=APP_DESCRIPTION,
            tags=[
                SearchTagInfo(name=tag.value, description=TAG_DESCRIPTIONS[tag], icon_glyph=TAG_GLYPHS[tag].value)
                for tag in SearchTag
            ],
            search_tag_only=True,
            minimum_search_length=0,
            process_search_enabled=False,
            icon_glyph=Glyph.MAIL.value,
            settings=self._settings_provider(),
        )

    async def load(self) -> None:
        """Load the token cache and try a silent sign-in. Never prompts, never raises."""
        for problem in config.validate():
            logger.warning(f"Configuration: {problem}")
        try:
            if not self._remote.is_initialized:
                self._remote.initialize(self._settings_provider().graph_client_id or None)
            await self._remote.try_silent_auth()
        except Exception as e:
            logger.warning(f"Remote backend not loaded: {e}")

    async def search(
        self,
        request: SearchRequest,
        cancellation: CancellationToken | None = None,
    ) -> AsyncIterator[ResultItem]:
        token = cancellation or CancellationToken.none()
        if token.is_cancelled or request.kind == SearchKind.PROCESS:
            return
        tag = classify_tag(request.tag)
        if tag is None:
            return

        settings = self._settings_provider()
        text = request.searched_text
        logger.search_start(uuid.uuid4().hex[:8], tag.value, text, request.kind.value)
        count = 0
        try:
            async for item in self._results(tag, text, settings, token):
                if token.is_cancelled:
                    return
                count += 1
                yield item
        finally:
            logger.search_done(count, cancelled=token.is_cancelled)

    async def _results(
        self,
        tag: SearchTag,
        text: str,
        settings: SearchSettings,
        token: CancellationToken,
    ) -> AsyncIterator[ResultItem]:
        want_emails = tag in (SearchTag.OUTLOOK, SearchTag.EMAIL) and settings.search_emails
        want_events = tag in (SearchTag.OUTLOOK, SearchTag.CALENDAR) and settings.search_events
        want_actions = tag == SearchTag.OUTLOOK and settings.show_quick_actions

        if want_actions:
            for item in build_quick_actions(text):
                yield item
            if self.selector.remote_authenticated and sign_out_matches(text):
                yield build_sign_out()

        if token.is_cancelled:
            return
        selection = await self.selector.resolve(token)
        if token.is_cancelled:
            return

        if not selection.any:
            if text and not self.selector.remote_auth_failed:
                yield build_sign_in()
            return

        local_connected = selection.has_local

        if not text:
            if want_events and settings.show_upcoming_events_on_empty:
                upcoming = await self._search_events(
                    selection, "", settings.max_event_results, 0, settings.event_future_days, token
                )
                for item in build_event_results(upcoming, local_connected, self._clock(), ScoreTier.UPCOMING_EVENT):
                    yield item
            return

        if want_emails:
            emails = await self._search_emails(
                selection, text, settings.max_email_results, settings.email_search_days_back, token
            )
            for item in build_email_results(emails, local_connected, self._clock()):
                yield item

        if want_events:
            events = await self._search_events(
                selection,
                text,
                settings.max_event_results,
                settings.event_search_days_back,
                settings.event_future_days,
                token,
            )
            for item in build_event_results(events, local_connected, self._clock()):
                yield item

    async def _search_emails(
        self,
        selection: BackendSelection,
        text: str,
        max_results: int,
        days_back: int,
        token: CancellationToken,
    ) -> list[Any]:
        args = {"query": text, "max_results": max_results, "days_back": days_back}
        return await self._call_backend(
            selection,
            "search_emails",
            args,
            local=lambda client: client.search_emails(**args),
            remote=lambda client: client.search_emails(**args, cancellation=token),
            token=token,
        )

    async def _search_events(
        self,
        selection: BackendSelection,
        text: str,
        max_results: int,
        days_back: int,
        future_days: int,
        token: CancellationToken,
    ) -> list[Any]:
        args = {"query": text, "max_results": max_results, "days_back": days_back, "future_days": future_days}
        return await self._call_backend(
            selection,
            "search_events",
            args,
            local=lambda client: client.search_events(**args),
            remote=lambda client: client.search_events(**args, cancellation=token),
            token=token,
        )

    async def _call_backend(
        self,
        selection: BackendSelection,
        operation: str,
        args: dict[str, Any],
        *,
        local: Callable[[Any], list[_Item]],
        remote: Callable[[Any], Awaitable[list[_Item]]],
        token: CancellationToken,
    ) -> list[_Item]:
        """Query the selected backend. Failures count as zero results; late results are dropped."""
        source = selection.data_source
        if source is None or token.is_cancelled:
            return []
        logger.backend_call(source, operation, args)
        try:
            if selection.local is not None:
                items = local(selection.local)
            else:
                items = await remote(selection.remote)
        except Exception as e:
            logger.backend_result(source, operation, 0, False, error_reason=str(e))
            logger.warning(f"{source}.{operation} failed: {e}")
            return []
        logger.backend_result(source, operation, len(items), True)
        if token.is_cancelled:
            return []
        return list(items)

    async def handle_result(self, result: ResultItem, operation_id: str | None = None) -> HandleResult:
        """Run one of the result's operations; the first one when no id is given."""
        if operation_id is None:
            ref = result.operations[0] if result.operations else None
        else:
            ref = result.operation(operation_id)
        if ref is None:
            return HandleResult.fail(f"Operation not available on this result: {operation_id}")
        operation = self.operations.get(ref.operation_id)
        if operation is None:
            return HandleResult.fail(f"Unknown operation: {ref.operation_id}")
        try:
            outcome = await operation.execute(ref.target)
        except Exception as e:
            logger.error(f"Operation {ref.operation_id} failed", exception=e)
            outcome = HandleResult.fail(str(e))
        logger.operation(ref.operation_id, outcome.success, target=ref.target[:64] or None)
        return outcome

    def status(self) -> dict[str, str]:
        availability = self._probe.probe()
        return {
            "local_available": str(availability.local_available),
            "local_connected": str(availability.local_connected),
            "remote_state": self._remote.state.value,
            "remote_auth_failed": str(self._remote.auth_failed),
        }

    async def close(self) -> None:
        await self._remote.close()
        self._probe.close()
