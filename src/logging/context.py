# src/logging/context.py — v2
"""Contextual logging support — attach operation, object path and job id to log records."""

from __future__ import annotations

import contextvars
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any

# Context variables for structured logging. asyncio tasks copy the
# current context on creation, so per-object values set inside a
# fan-out worker never leak into sibling workers.
_operation: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "operation", default=None
)
_object_path: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "object_path", default=None
)
_job_id: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "job_id", default=None
)


@dataclass
class LogContext:
    """Immutable snapshot of current logging context."""

    operation: str | None = None
    object_path: str | None = None
    job_id: str | None = None

    def as_dict(self) -> dict[str, Any]:
        """Return non-None fields as dict for JSON log injection."""
        return {k: v for k, v in self.__dict__.items() if v is not None}


def get_context() -> LogContext:
    """Snapshot current context variables."""
    return LogContext(
        operation=_operation.get(),
        object_path=_object_path.get(),
        job_id=_job_id.get(),
    )


def set_operation_context(operation: str) -> None:
    """Set the top-level operation (scan, index, classify, status, train-watch)."""
    _operation.set(operation)


def set_object_context(object_path: str | None) -> None:
    """Set the object currently being scanned or indexed."""
    _object_path.set(object_path)


def set_job_context(job_id: str | None) -> None:
    """Set the training job the current work refers to."""
    _job_id.set(job_id)


@contextmanager
def log_context(
    operation: str | None = None,
    object_path: str | None = None,
    job_id: str | None = None,
) -> Iterator[None]:
    """Set the given fields for the duration of a block, then restore them."""
    tokens = []
    for var, value in ((_operation, operation), (_object_path, object_path), (_job_id, job_id)):
        if value is not None:
            tokens.append((var, var.set(value)))
    try:
        yield
    finally:
        for var, token in reversed(tokens):
            var.reset(token)


def clear_context() -> None:
    """Reset all context variables."""
    _operation.set(None)
    _object_path.set(None)
    _job_id.set(None)
