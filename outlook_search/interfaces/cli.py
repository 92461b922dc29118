"""CLI interface: search loop, colors, /help /tag /open /signin /signout /quit."""

import asyncio

from outlook_search.contracts.search_v1 import ResultItem, SearchRequest
from outlook_search.core.cancellation import CancellationSource
from outlook_search.core.logger import logger
from outlook_search.interfaces.oneshot import format_result
from outlook_search.orchestrators.search.constants import SearchTag
from outlook_search.orchestrators.search.orchestrator import OutlookSearchOrchestrator, classify_tag


class Colors:
    RESET = "\033[0m"
    BOLD = "\033[1m"
    DIM = "\033[2m"

    RED = "\033[31m"
    GREEN = "\033[32m"
    YELLOW = "\033[33m"
    BLUE = "\033[34m"
    CYAN = "\033[36m"


def colorize(text: str, *colors: str) -> str:
    color_codes = "".join(colors)
    return f"{color_codes}{text}{Colors.RESET}"


def print_banner():
    print(colorize("\n  Outlook Search — emails and events from Outlook desktop or Microsoft 365\n", Colors.BLUE, Colors.BOLD))


def print_help(tag: str):
    help_text = f"""
    ╭──────────────────────────────────────────────╮
    │  Commands                                    │
    ├──────────────────────────────────────────────┤
    │  /help          - Show this help             │
    │  /tag NAME      - outlook | email | calendar │
    │  /open N [OP]   - Run operation on result N  │
    │  /signin        - Sign in to Microsoft 365   │
    │  /signout       - Sign out, clear the cache  │
    │  /status        - Backend and auth status    │
    │  /quit          - Exit                       │
    ╰──────────────────────────────────────────────╯
    Anything else is searched under the current tag ({tag}).
    An empty line lists quick actions and upcoming events.
    """
    print(colorize(help_text, Colors.CYAN))


def _operation_for(item: ResultItem, choice: str | None) -> str | None:
    """Map a user choice (index or name) to an operation id on the item."""
    if not choice:
        return None
    if choice.isdigit():
        idx = int(choice) - 1
        return item.operations[idx].operation_id if 0 <= idx < len(item.operations) else ""
    lowered = choice.lower()
    for op in item.operations:
        if lowered in (op.operation_id, op.name.lower()):
            return op.operation_id
    return ""


async def _open(orchestrator: OutlookSearchOrchestrator, results: list[ResultItem], args: list[str]) -> bool:
    """Returns True when the last search should be repeated."""
    if not args or not args[0].isdigit() or not 1 <= int(args[0]) <= len(results):
        print(colorize("  Usage: /open N [operation]", Colors.RED))
        return False
    item = results[int(args[0]) - 1]
    op_id = _operation_for(item, " ".join(args[1:]) or None)
    if op_id == "":
        names = ", ".join(f"{i}={op.name}" for i, op in enumerate(item.operations, 1))
        print(colorize(f"  Unknown operation. Available: {names}", Colors.RED))
        return False
    outcome = await orchestrator.handle_result(item, op_id)
    if outcome.copied_text is not None:
        print(colorize(f"  Copied: {outcome.copied_text}", Colors.GREEN))
    elif outcome.success:
        print(colorize("  Done.", Colors.GREEN))
    else:
        print(colorize(f"  Failed. {outcome.message}".rstrip(), Colors.RED))
    return outcome.search_again


async def _search(orchestrator: OutlookSearchOrchestrator, tag: str, text: str) -> list[ResultItem]:
    source = CancellationSource()
    results: list[ResultItem] = []
    try:
        async for item in orchestrator.search(SearchRequest(text=text, tag=tag), source.token):
            results.append(item)
            print(format_result(len(results), item))
    except asyncio.CancelledError:
        # Ctrl+C under asyncio.run cancels the running task instead of raising KeyboardInterrupt
        source.cancel()
        task = asyncio.current_task()
        if task is not None:
            task.uncancel()
        print(colorize("\n  [Interrupted]", Colors.YELLOW))
    if not results:
        print(colorize("  No results.", Colors.DIM))
    return results


async def run_cli(initial_tag: str = SearchTag.OUTLOOK.value):
    tag = initial_tag
    last_text = ""
    results: list[ResultItem] = []

    print_banner()
    print(colorize("  Type /help for commands\n", Colors.DIM))
    orchestrator = OutlookSearchOrchestrator()
    await orchestrator.load()
    try:
        while True:
            try:
                user_input = input(colorize(f"\n{tag} ❯ ", Colors.GREEN, Colors.BOLD))
            except EOFError:
                break
            command, *args = user_input.strip().split() or [""]
            lowered = command.lower()

            if lowered == "/help":
                print_help(tag)
                continue

            if lowered == "/tag":
                if args and classify_tag(args[0]) is not None:
                    tag = args[0].lower()
                    print(colorize(f"  Tag set to {tag}", Colors.YELLOW))
                else:
                    print(colorize("  Usage: /tag outlook|email|calendar", Colors.RED))
                continue

            if lowered == "/status":
                for key, value in orchestrator.status().items():
                    print(colorize(f"  {key:<20} {value}", Colors.DIM))
                continue

            if lowered == "/signin":
                ok = await orchestrator.remote.try_auth()
                print(colorize("  Signed in." if ok else "  Sign-in failed.", Colors.GREEN if ok else Colors.RED))
                continue

            if lowered == "/signout":
                await orchestrator.remote.sign_out()
                print(colorize("  Signed out.", Colors.YELLOW))
                continue

            if lowered in ("/quit", "/exit", "/q"):
                break

            try:
                if lowered == "/open":
                    if await _open(orchestrator, results, args):
                        results = await _search(orchestrator, tag, last_text)
                    continue
                last_text = user_input.strip()
                results = await _search(orchestrator, tag, last_text)
            except Exception as e:
                logger.error(f"Error during search: {e}", exc_info=True)
                print(colorize(f"\n  Error: {e}", Colors.RED))
                continue
    except KeyboardInterrupt:
        pass
    finally:
        await orchestrator.close()
        print(colorize("\n  Bye.\n", Colors.DIM))


def main():
    try:
        asyncio.run(run_cli())
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    main()
