"""Structured logging: console plus a JSON-lines event file."""

import contextvars
import json
import logging
import os
import sys
import threading
import time
from dataclasses import asdict, dataclass
from datetime import datetime
from typing import Any

from outlook_search.core.config import config


def _format_duration(seconds: float) -> str:
    if seconds < 0:
        return "0s"
    if seconds >= 60:
        m = int(seconds // 60)
        s = seconds % 60
        return f"{m}m {s:.0f}s" if s >= 1 else f"{m}m"
    if seconds >= 0.05:
        return f"{seconds:.1f}s"
    if seconds > 0:
        return "<0.1s"
    return "0s"


def _short_reason(reason: str | None, max_len: int = 80) -> str:
    if not reason or not reason.strip():
        return ""
    s = reason.strip().replace("\n", " ")
    return s[:max_len] + "..." if len(s) > max_len else s


_search_id: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "search_id", default=None
)
_search_tag: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "search_tag", default=None
)
_search_start: contextvars.ContextVar[float | None] = contextvars.ContextVar(
    "search_start", default=None
)
_backend_call_start: contextvars.ContextVar[float | None] = contextvars.ContextVar(
    "backend_call_start", default=None
)
# set() tokens of the enclosing searches, innermost last
_search_scopes: contextvars.ContextVar[tuple[tuple[contextvars.Token, ...], ...]] = contextvars.ContextVar(
    "search_scopes", default=()
)


def _restore(var: contextvars.ContextVar, token: contextvars.Token) -> None:
    try:
        var.reset(token)
    except ValueError:
        # token from another context, e.g. a generator closed at loop shutdown
        var.set(None if token.old_value is contextvars.Token.MISSING else token.old_value)


def _use_color() -> bool:
    if os.environ.get("NO_COLOR"):
        return False
    try:
        return sys.stdout.isatty()
    except Exception:
        return False


def _c(role: str) -> str:
    if not _use_color():
        return ""
    codes = {
        "dim": "\033[38;5;239m",
        "backend": "\033[38;5;81m",
        "ok": "\033[38;5;78m",
        "fail": "\033[38;5;203m",
        "duration": "\033[38;5;221m",
        "auth": "\033[38;5;177m",
    }
    return codes.get(role, "")


def _reset() -> str:
    if not _use_color():
        return ""
    return "\033[0m"


@dataclass
class LogEvent:
    event_type: str
    timestamp: str
    data: dict[str, Any]

    def to_dict(self) -> dict:
        return asdict(self)

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), default=str)


class SearchLogger:
    def __init__(self):
        config.logs_dir.mkdir(parents=True, exist_ok=True)
        self.log_file = config.logs_dir / "search.log"
        self._file_lock = threading.Lock()
        self._log_file_handle = open(self.log_file, "a", encoding="utf-8")
        self._setup_console_logger()

    def _setup_console_logger(self):
        self.console = logging.getLogger("outlook_search")
        self.console.setLevel(logging.DEBUG)
        if not self.console.handlers:
            handler = logging.StreamHandler()
            handler.setLevel(getattr(logging, config.log_level, logging.INFO))
            handler.setFormatter(
                logging.Formatter("%(asctime)s │ %(message)s", datefmt="%H:%M:%S")
            )
            self.console.addHandler(handler)

    def log_event(self, event: LogEvent) -> None:
        with self._file_lock:
            self._log_file_handle.write(event.to_json() + "\n")
            self._log_file_handle.flush()

    def _timestamp(self) -> str:
        return datetime.now().isoformat()

    def _event(self, event_type: str, data: dict[str, Any]) -> None:
        sid = _search_id.get()
        if sid is not None:
            data = {"search_id": sid, **data}
        self.log_event(LogEvent(event_type=event_type, timestamp=self._timestamp(), data=data))

    def _prefix(self) -> str:
        sid = _search_id.get()
        if sid is None:
            return ""
        return f"{_c('dim')}[{sid} {_search_tag.get() or '?'}]{_reset()} "

    def search_start(self, search_id: str, tag: str, text: str, kind: str) -> None:
        tokens = (_search_id.set(search_id), _search_tag.set(tag), _search_start.set(time.monotonic()))
        _search_scopes.set((*_search_scopes.get(), tokens))
        self._event("SEARCH_START", {"tag": tag, "text": text[:200], "kind": kind})
        self.console.debug(f"{self._prefix()}Search {text[:60]!r}")

    def search_done(self, result_count: int, cancelled: bool = False) -> None:
        start = _search_start.get()
        elapsed = (time.monotonic() - start) if start is not None else 0.0
        self._event(
            "SEARCH_DONE",
            {
                "results": result_count,
                "cancelled": cancelled,
                "duration_seconds": round(elapsed, 3),
            },
        )
        dur = f"{_c('duration')}{_format_duration(elapsed)}{_reset()}"
        status = " (cancelled)" if cancelled else ""
        self.console.debug(f"{self._prefix()}Done  {result_count} results in {dur}{status}")
        scopes = _search_scopes.get()
        if not scopes:
            return
        _search_scopes.set(scopes[:-1])
        for var, token in zip((_search_id, _search_tag, _search_start), scopes[-1], strict=True):
            _restore(var, token)

    def backend_probe(self, available: bool, connected: bool, reason: str | None = None) -> None:
        self._event(
            "BACKEND_PROBE",
            {"local_available": available, "local_connected": connected, "reason": reason},
        )
        if available:
            self.console.info(f"Outlook desktop {_c('ok')}available{_reset()} (connected={connected})")
        else:
            suffix = f": {_short_reason(reason)}" if reason else ""
            self.console.info(f"Outlook desktop not available{suffix}")

    def auth_transition(self, old: str, new: str, reason: str = "") -> None:
        if old == new:
            return
        self._event("AUTH_TRANSITION", {"from": old, "to": new, "reason": reason})
        self.console.info(f"{_c('auth')}Auth{_reset()} {old} → {new}{f'  ({reason})' if reason else ''}")

    def backend_call(self, backend: str, operation: str, args: dict[str, Any]) -> None:
        _backend_call_start.set(time.monotonic())
        self._event("BACKEND_CALL", {"backend": backend, "operation": operation, "args": args})
        self.console.debug(
            f"{self._prefix()}▶ {_c('backend')}{backend}.{operation}{_reset()}"
            f"({', '.join(f'{k}={v!r}' for k, v in args.items())})"
        )

    def backend_result(
        self,
        backend: str,
        operation: str,
        count: int,
        success: bool,
        *,
        error_reason: str | None = None,
    ) -> None:
        start = _backend_call_start.get()
        _backend_call_start.set(None)
        elapsed = (time.monotonic() - start) if start is not None else 0.0
        data: dict[str, Any] = {
            "backend": backend,
            "operation": operation,
            "count": count,
            "success": success,
            "duration_seconds": round(elapsed, 3),
        }
        if not success and error_reason:
            data["error_reason"] = error_reason[:500]
        self._event("BACKEND_RESULT", data)
        dur = f"{_c('duration')}{_format_duration(elapsed)}{_reset()}"
        if success:
            status = f"{_c('ok')}[ok]{_reset()}"
        else:
            status = f"{_c('fail')}[failed: {_short_reason(error_reason)}]{_reset()}"
        self.console.debug(
            f"{self._prefix()}✓ {_c('backend')}{backend}.{operation}{_reset()}  {count} items in {dur}  {status}"
        )

    def operation(self, operation_id: str, success: bool, target: str | None = None) -> None:
        self._event("OPERATION", {"operation": operation_id, "success": success, "target": target})
        status = f"{_c('ok')}[ok]{_reset()}" if success else f"{_c('fail')}[failed]{_reset()}"
        self.console.info(f"Operation {operation_id}  {status}")

    def error(self, message: str, *args, exception: Exception | None = None, **kwargs):
        self._event(
            "ERROR",
            {"message": message, "exception": str(exception) if exception else None},
        )
        allowed = {"exc_info", "stack_info", "stacklevel", "extra"}
        log_kwargs = {k: v for k, v in kwargs.items() if k in allowed}
        if exception and "exc_info" not in log_kwargs:
            log_kwargs["exc_info"] = exception
        self.console.error(f"❌ Error: {message}", *args, **log_kwargs)

    def info(self, message: str, *args, **kwargs):
        allowed = {"exc_info", "stack_info", "stacklevel", "extra"}
        log_kwargs = {k: v for k, v in kwargs.items() if k in allowed}
        self.console.info(message, *args, **log_kwargs)

    def warning(self, message: str, *args, **kwargs):
        self._event("WARNING", {"message": message[:500]})
        allowed = {"exc_info", "stack_info", "stacklevel", "extra"}
        log_kwargs = {k: v for k, v in kwargs.items() if k in allowed}
        self.console.warning(f"⚠️ {self._prefix()}{message}", *args, **log_kwargs)

    def exception(self, message: str, *args, **kwargs):
        self._event("ERROR", {"message": message[:500]})
        self.console.exception(f"❌ {message}", *args, **kwargs)

    def debug(self, message: str, *args, **kwargs):
        self._event("DEBUG", {"message": message})
        allowed = {"exc_info", "stack_info", "stacklevel", "extra"}
        log_kwargs = {k: v for k, v in kwargs.items() if k in allowed}
        self.console.debug(message, *args, **log_kwargs)


logger = SearchLogger()
