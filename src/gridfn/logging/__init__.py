"""Structured event logging for gridfn.

Provides a unified event schema, filesystem NDJSON sink, and safe
emit helpers that never raise uncaught exceptions.
"""

from gridfn.logging.events import (
    DUPLICATE_FUNCTION,
    IMPLEMENTATION_ERROR,
    EventLevel,
    EventType,
    GridfnEvent,
    emit,
    emit_error,
    emit_info,
    emit_warning,
    get_sink,
    make_function_event,
    redact_context,
    set_log_dir,
)
from gridfn.logging.sink import EventSink

__all__ = [
    "DUPLICATE_FUNCTION",
    "IMPLEMENTATION_ERROR",
    "EventLevel",
    "EventSink",
    "EventType",
    "GridfnEvent",
    "emit",
    "emit_error",
    "emit_info",
    "emit_warning",
    "get_sink",
    "make_function_event",
    "redact_context",
    "set_log_dir",
]
