"""Structured events emitted by the registry, the pipeline and the CLI.

Events are pydantic models serialized one per line by
:class:`~gridfn.logging.sink.EventSink`.  Emitting is fire-and-forget: the
``emit*`` helpers never raise, and without a configured log directory they
do nothing.
"""

from __future__ import annotations

import re
import sys
import time
import traceback
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field


class EventLevel(str, Enum):
    info = "info"
    warning = "warning"
    error = "error"


class EventType(str, Enum):
    registry_loaded = "registry_loaded"
    function_replaced = "function_replaced"
    implementation_error = "implementation_error"
    cli_call = "cli_call"


# Error codes
IMPLEMENTATION_ERROR = "implementation_error"
DUPLICATE_FUNCTION = "duplicate_function"

# Context keys every event of a type must carry
REQUIRED_CONTEXT: dict[EventType, frozenset[str]] = {
    EventType.registry_loaded: frozenset({"function_count"}),
    EventType.function_replaced: frozenset({"function_name"}),
    EventType.implementation_error: frozenset({"function_name"}),
    EventType.cli_call: frozenset({"function_name"}),
}


def _utc_now() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.%fZ")


class GridfnEvent(BaseModel):
    """One structured log record."""

    schema_version: int = 1
    ts: str = Field(default_factory=_utc_now)
    level: EventLevel
    event_type: EventType
    context: dict[str, Any] = Field(default_factory=dict)
    message: str = ""
    error_code: str | None = None


def make_function_event(
    event_type: EventType,
    level: EventLevel,
    message: str,
    *,
    function_name: str,
    category: str | None = None,
    error_code: str | None = None,
    extra: dict[str, Any] | None = None,
) -> GridfnEvent:
    """Build an event attributed to one registered function."""
    context: dict[str, Any] = {"function_name": function_name}
    if category is not None:
        context["category"] = category
    context.update(extra or {})
    return GridfnEvent(
        level=level,
        event_type=event_type,
        message=message,
        context=context,
        error_code=error_code,
    )


# ---------------------------------------------------------------------------
# Redaction
# ---------------------------------------------------------------------------

_SECRET_KEY_RE = re.compile(
    r"password|passwd|secret|token|api_?key|authorization|cookie|session|bearer|dsn",
    re.IGNORECASE,
)
REDACTED = "[REDACTED]"
TRUNCATION_MARK = "...[truncated]"

# Per-key length caps; other string values get DEFAULT_VALUE_LIMIT
DEFAULT_VALUE_LIMIT = 256
VALUE_LIMITS = {"traceback": 8192}


def redact_context(context: dict[str, Any]) -> dict[str, Any]:
    """Copy *context*, hiding secret-looking keys and capping long strings."""
    return {key: _scrub(key, value) for key, value in context.items()}


def _scrub(key: str, value: Any) -> Any:
    if _SECRET_KEY_RE.search(key):
        return REDACTED
    if isinstance(value, dict):
        return redact_context(value)
    if isinstance(value, (list, tuple)):
        return [_scrub(key, item) for item in value]
    limit = VALUE_LIMITS.get(key, DEFAULT_VALUE_LIMIT)
    if isinstance(value, str) and len(value) > limit:
        return value[:limit] + TRUNCATION_MARK
    return value


def check_attribution(event: GridfnEvent) -> GridfnEvent:
    """Downgrade *event* to a warning when required context keys are missing."""
    missing = REQUIRED_CONTEXT.get(event.event_type, frozenset()) - set(event.context)
    if not missing:
        return event
    context = {**event.context, "_missing_attribution": sorted(missing)}
    return event.model_copy(update={"level": EventLevel.warning, "context": context})


# ---------------------------------------------------------------------------
# Process-wide sink
# ---------------------------------------------------------------------------

_sink: Any = None  # EventSink | None


def set_log_dir(log_dir: str | Path | None, *, fsync: bool = False, tail_bytes: int | None = None) -> None:
    """Send events to *log_dir*; ``None`` discards them."""
    global _sink
    if log_dir is None:
        _sink = None
        return
    from gridfn.logging.sink import EventSink

    _sink = EventSink(Path(log_dir), fsync=fsync, tail_bytes=tail_bytes)


def get_sink() -> Any:
    return _sink


_STDERR_INTERVAL_SECS = 60.0
_last_stderr_ts = 0.0


def _stderr_warning(msg: str) -> None:
    """At most one logging-failure notice per minute on stderr."""
    global _last_stderr_ts
    now = time.monotonic()
    if now - _last_stderr_ts >= _STDERR_INTERVAL_SECS:
        _last_stderr_ts = now
        try:
            print(f"[gridfn] {msg}", file=sys.stderr)
        except (OSError, ValueError):
            pass


def emit(event: GridfnEvent, *, function_name: str | None = None) -> None:
    """Redact, check and write *event*.  Never raises.

    With *function_name*, the event is also appended to that function's log.
    """
    sink = _sink
    if sink is None:
        return
    try:
        event = check_attribution(
            event.model_copy(update={"context": redact_context(event.context)})
        )
        sink.write(event, function_name=function_name)
    except Exception:
        _stderr_warning(f"logging failed: {traceback.format_exc()}")


def _emit_at(
    level: EventLevel,
    event_type: EventType,
    message: str,
    context: dict[str, Any] | None,
    error_code: str | None,
    function_name: str | None,
) -> None:
    emit(
        GridfnEvent(
            level=level,
            event_type=event_type,
            message=message,
            context=context or {},
            error_code=error_code,
        ),
        function_name=function_name,
    )


def emit_info(
    event_type: EventType,
    message: str,
    context: dict[str, Any] | None = None,
    *,
    function_name: str | None = None,
) -> None:
    _emit_at(EventLevel.info, event_type, message, context, None, function_name)


def emit_warning(
    event_type: EventType,
    message: str,
    context: dict[str, Any] | None = None,
    *,
    error_code: str | None = None,
    function_name: str | None = None,
) -> None:
    _emit_at(EventLevel.warning, event_type, message, context, error_code, function_name)


def emit_error(
    event_type: EventType,
    message: str,
    context: dict[str, Any] | None = None,
    *,
    error_code: str | None = None,
    function_name: str | None = None,
) -> None:
    _emit_at(EventLevel.error, event_type, message, context, error_code, function_name)
