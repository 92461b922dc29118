"""One-shot interface: run a single search or account command, print, exit."""

from __future__ import annotations

import asyncio

from outlook_search.contracts.search_v1 import ResultItem, SearchRequest
from outlook_search.orchestrators.search.orchestrator import OutlookSearchOrchestrator, classify_tag


def format_result(index: int, item: ResultItem) -> str:
    ops = ", ".join(op.name for op in item.operations)
    line = f"{index:>2}. [{item.group_name}] {item.display_name}  ({item.score:.1f})"
    if item.additional_information:
        line += f"\n    {item.additional_information}"
    if ops:
        line += f"\n    ↳ {ops}"
    return line


async def collect(orchestrator: OutlookSearchOrchestrator, tag: str, text: str) -> list[ResultItem]:
    return [item async for item in orchestrator.search(SearchRequest(text=text, tag=tag))]


async def run_oneshot(tag: str, text: str) -> int:
    if classify_tag(tag) is None:
        print(f"Error: unknown tag {tag!r} (use outlook, email or calendar)")
        return 2

    orchestrator = OutlookSearchOrchestrator()
    try:
        await orchestrator.load()
        results = await collect(orchestrator, tag, text)
        if not results:
            print("No results.")
        for i, item in enumerate(results, 1):
            print(format_result(i, item))
        return 0
    finally:
        await orchestrator.close()


async def run_sign_in() -> int:
    orchestrator = OutlookSearchOrchestrator()
    try:
        await orchestrator.load()
        if orchestrator.remote.is_authenticated:
            print("Already signed in.")
            return 0
        ok = await orchestrator.remote.try_auth()
        print("Signed in." if ok else "Sign-in failed.")
        return 0 if ok else 1
    finally:
        await orchestrator.close()


async def run_sign_out() -> int:
    orchestrator = OutlookSearchOrchestrator()
    try:
        await orchestrator.load()
        await orchestrator.remote.sign_out()
        print("Signed out; cached credentials removed.")
        return 0
    finally:
        await orchestrator.close()


async def run_status() -> int:
    orchestrator = OutlookSearchOrchestrator()
    try:
        await orchestrator.load()
        for key, value in orchestrator.status().items():
            print(f"{key:<20} {value}")
        return 0
    finally:
        await orchestrator.close()


def main(tag: str, text: str) -> int:
    return asyncio.run(run_oneshot(tag=tag, text=text))
