"""Operation base class and OperationRegistry.

Result items reference operations by id; the registry maps ids to the code
that runs them against the current backends.
"""

import webbrowser
from abc import ABC, abstractmethod
from collections.abc import Callable

from outlook_search.contracts.search_v1 import HandleResult
from outlook_search.orchestrators.search.constants import QUICK_ACTIONS_BY_ID, OperationId
from outlook_search.orchestrators.search.selector import BackendSelector
from outlook_search.services.outlook_interop import LocalMailClient

Launcher = Callable[[str], bool]


def launch_uri(uri: str) -> bool:
    """Open a link or protocol URI with the desktop shell."""
    try:
        return webbrowser.open(uri)
    except webbrowser.Error:
        return False


class Operation(ABC):
    @property
    @abstractmethod
    def operation_id(self) -> str:
        pass

    @abstractmethod
    async def execute(self, target: str) -> HandleResult:
        pass


class OperationRegistry:
    def __init__(self):
        self._operations: dict[str, Operation] = {}

    def register(self, operation: Operation) -> None:
        if not isinstance(operation, Operation):
            raise TypeError(f"Expected Operation instance, got {type(operation)}")
        self._operations[operation.operation_id] = operation

    def get(self, operation_id: str) -> Operation | None:
        return self._operations.get(operation_id)

    def list_operations(self) -> list[Operation]:
        return list(self._operations.values())


def _done(ok: bool) -> HandleResult:
    return HandleResult(success=ok, hide_main_window=ok)


class _LocalItemOperation(Operation):
    """Open / reply / forward through the local client; needs a live connection."""

    def __init__(self, operation_id: OperationId, selector: BackendSelector, verb: Callable[[LocalMailClient, str], bool]):
        self._id = operation_id
        self._selector = selector
        self._verb = verb

    @property
    def operation_id(self) -> str:
        return self._id.value

    async def execute(self, target: str) -> HandleResult:
        local = self._selector.local
        if local is None or not target:
            return HandleResult.fail("Outlook desktop is not connected")
        return _done(self._verb(local, target))


class OpenLinkOperation(Operation):
    def __init__(self, launcher: Launcher):
        self._launcher = launcher

    @property
    def operation_id(self) -> str:
        return OperationId.OPEN_LINK.value

    async def execute(self, target: str) -> HandleResult:
        if not target:
            return HandleResult.fail("No link to open")
        return _done(self._launcher(target))


class CopyOperation(Operation):
    @property
    def operation_id(self) -> str:
        return OperationId.COPY.value

    async def execute(self, target: str) -> HandleResult:
        return HandleResult.ok(copied_text=target)


class QuickActionOperation(Operation):
    """Local verb when Outlook desktop is connected, otherwise the action's URI."""

    def __init__(self, selector: BackendSelector, launcher: Launcher):
        self._selector = selector
        self._launcher = launcher

    @property
    def operation_id(self) -> str:
        return OperationId.QUICK_ACTION.value

    async def execute(self, target: str) -> HandleResult:
        action = QUICK_ACTIONS_BY_ID.get(target)
        if action is None:
            return HandleResult.fail(f"Unknown quick action: {target}")
        local = self._selector.local
        if local is not None:
            verbs: dict[str, Callable[[], bool]] = {
                "compose": local.compose_new_email,
                "meeting": local.schedule_new_meeting,
                "inbox": local.open_inbox,
                "calendar": local.open_calendar,
            }
            if verbs[action.action_id]():
                return _done(True)
        return _done(self._launcher(action.uri))


class SignInOperation(Operation):
    def __init__(self, selector: BackendSelector, client_id: Callable[[], str]):
        self._selector = selector
        self._client_id = client_id

    @property
    def operation_id(self) -> str:
        return OperationId.SIGN_IN.value

    async def execute(self, target: str) -> HandleResult:
        remote = self._selector.remote
        if remote is None:
            return HandleResult.fail("Microsoft Graph is not configured")
        if not remote.is_initialized:
            remote.initialize(self._client_id())
        ok = await remote.try_auth()
        return HandleResult(success=ok, search_again=ok, message="" if ok else "Sign-in did not complete")


class SignOutOperation(Operation):
    def __init__(self, selector: BackendSelector):
        self._selector = selector

    @property
    def operation_id(self) -> str:
        return OperationId.SIGN_OUT.value

    async def execute(self, target: str) -> HandleResult:
        if self._selector.remote is not None:
            await self._selector.remote.sign_out()
        return HandleResult(success=True, search_again=True)


def build_operation_registry(
    selector: BackendSelector,
    launcher: Launcher = launch_uri,
    client_id: Callable[[], str] = lambda: "",
) -> OperationRegistry:
    registry = OperationRegistry()
    for op_id, verb in (
        (OperationId.OPEN_IN_OUTLOOK, lambda c, eid: c.open_item(eid)),
        (OperationId.REPLY, lambda c, eid: c.reply(eid)),
        (OperationId.REPLY_ALL, lambda c, eid: c.reply_all(eid)),
        (OperationId.FORWARD, lambda c, eid: c.forward(eid)),
    ):
        registry.register(_LocalItemOperation(op_id, selector, verb))
    registry.register(OpenLinkOperation(launcher))
    registry.register(CopyOperation())
    registry.register(QuickActionOperation(selector, launcher))
    registry.register(SignInOperation(selector, client_id))
    registry.register(SignOutOperation(selector))
    return registry
