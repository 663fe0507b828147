"""Structured logging for the fixture engine.

Usage:
    from dbfixtures.core.logging import get_logger, configure_logging

    # Configure once, typically from a conftest or plugin hook
    configure_logging(log_level="DEBUG", log_format="console")

    logger = get_logger(__name__)
    logger.info("table_parsed", table="USERS", rows=2)

    # Everything logged inside the scope carries the test and phase
    with log_context(test="UserRepositoryTest.findAll", phase="preparation"):
        logger.info("operation_started", operation="CLEAN_INSERT")
"""

from __future__ import annotations

import logging
import sys
from collections.abc import MutableMapping
from contextvars import ContextVar
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any, cast

import structlog
from structlog.typing import FilteringBoundLogger

_run_context: ContextVar[dict[str, Any] | None] = ContextVar("run_context", default=None)


@dataclass
class PhaseMetrics:
    """Counters collected while one preparation or expectation phase runs."""

    phase_name: str
    start_time: datetime = field(default_factory=lambda: datetime.now(UTC))
    end_time: datetime | None = None

    tables_processed: int = 0
    rows_processed: int = 0
    db_queries: int = 0
    db_writes: int = 0

    @property
    def duration_seconds(self) -> float:
        """Get duration in seconds."""
        if self.end_time:
            return (self.end_time - self.start_time).total_seconds()
        return (datetime.now(UTC) - self.start_time).total_seconds()

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for logging."""
        return {
            "phase_name": self.phase_name,
            "duration_seconds": self.duration_seconds,
            "tables_processed": self.tables_processed,
            "rows_processed": self.rows_processed,
            "db_queries": self.db_queries,
            "db_writes": self.db_writes,
        }


_current_phase_metrics: ContextVar[PhaseMetrics | None] = ContextVar(
    "current_phase_metrics", default=None
)


def start_phase_metrics(phase_name: str) -> PhaseMetrics:
    """Start collecting metrics for a phase."""
    metrics = PhaseMetrics(phase_name=phase_name)
    _current_phase_metrics.set(metrics)
    return metrics


def end_phase_metrics() -> PhaseMetrics | None:
    """End current phase metrics."""
    phase_metrics = _current_phase_metrics.get()
    if phase_metrics:
        phase_metrics.end_time = datetime.now(UTC)
        _current_phase_metrics.set(None)
    return phase_metrics


def _add_run_context(
    logger: Any, method_name: str, event_dict: MutableMapping[str, Any]
) -> MutableMapping[str, Any]:
    """Processor to add run context to log events."""
    context = _run_context.get()
    if context:
        event_dict.update(context)
    return event_dict


def configure_logging(
    log_level: str = "INFO",
    log_format: str = "console",
    show_timestamps: bool = True,
    color: bool = True,
) -> None:
    """Configure structured logging.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
        log_format: Output format ("console" for local runs, "json" for CI log collection)
        show_timestamps: Whether to show timestamps
        color: Whether to use colors in console mode
    """
    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        _add_run_context,
        structlog.processors.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]

    if show_timestamps:
        shared_processors.insert(0, structlog.processors.TimeStamper(fmt="iso", utc=True))

    if log_format == "json":
        processors = shared_processors + [
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ]
    else:
        processors = shared_processors + [
            structlog.dev.ConsoleRenderer(
                colors=color,
                exception_formatter=structlog.dev.plain_traceback,
            ),
        ]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(getattr(logging, log_level.upper())),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=True,
    )

    # SQLAlchemy logs through stdlib logging
    logging.basicConfig(
        format="%(message)s",
        level=getattr(logging, log_level.upper()),
        handlers=[logging.StreamHandler(sys.stderr)],
        force=True,
    )


def get_logger(name: str | None = None) -> FilteringBoundLogger:
    """Get a structured logger.

    Args:
        name: Logger name (typically __name__)

    Returns:
        Bound structlog logger
    """
    return cast(FilteringBoundLogger, structlog.get_logger(name))


class LogContext:
    """Context manager for adding context to logs within a scope."""

    def __init__(self, **context: Any):
        self.context = context
        self.token: Any = None

    def __enter__(self) -> LogContext:
        current = _run_context.get() or {}
        new_context = {**current, **self.context}
        self.token = _run_context.set(new_context)
        return self

    def __exit__(self, *args: Any) -> None:
        if self.token:
            _run_context.reset(self.token)


def log_context(**context: Any) -> LogContext:
    """Create a context manager for scoped logging context.

    Usage:
        with log_context(test="OrderTest.place", phase="expectation"):
            logger.info("comparing")  # Will include test and phase
    """
    return LogContext(**context)


def record_tables_processed(count: int) -> None:
    """Record tables processed in current phase metrics."""
    metrics = _current_phase_metrics.get()
    if metrics:
        metrics.tables_processed += count


def record_rows_processed(count: int) -> None:
    """Record rows processed in current phase metrics."""
    metrics = _current_phase_metrics.get()
    if metrics:
        metrics.rows_processed += count


def increment_db_query() -> None:
    """Increment database query counter in current phase metrics."""
    metrics = _current_phase_metrics.get()
    if metrics:
        metrics.db_queries += 1


def increment_db_write() -> None:
    """Increment database write counter in current phase metrics."""
    metrics = _current_phase_metrics.get()
    if metrics:
        metrics.db_writes += 1
