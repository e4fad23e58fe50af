"""
Error Reporting Utilities for the UET configuration store.

Failures are always propagated to the caller; these helpers only make sure
that each failure is logged once with enough context to act on it:
1. Error categorisation and severity levels
2. Detailed log messages with operation name and context
3. A thread-safe aggregator with deduplication for later inspection

USAGE:
    from uet.utils.error_handling import handle_error, ErrorCategory

    try:
        store.save()
    except UETError as e:
        handle_error(e, "save_config", ErrorCategory.FILESYSTEM, path=path)
        raise
"""

import logging
import threading
import time
import traceback
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from ..exceptions import (
    ConfigParseError,
    CryptoError,
    NotFoundError,
    ValidationError,
)

logger = logging.getLogger(__name__)


class ErrorCategory(Enum):
    """Categories of errors for proper handling and reporting."""
    # Envelope and key material failures
    CRYPTO = "crypto"

    # Reading or writing the document or key file
    FILESYSTEM = "filesystem"

    # Malformed document contents
    PARSE = "parse"

    # Invariant violations and unknown identifiers
    VALIDATION = "validation"

    # Unknown/uncategorized
    UNKNOWN = "unknown"


class ErrorSeverity(Enum):
    """Severity levels for errors."""
    # Operator mistake, the store is unchanged
    WARNING = "warning"

    # Operation failed but the store is consistent
    ERROR = "error"

    # Secrets could not be protected or recovered
    CRITICAL = "critical"


@dataclass
class ErrorContext:
    """Detailed context information for an error."""
    error: Exception
    category: ErrorCategory
    severity: ErrorSeverity
    operation: str
    timestamp: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())
    thread_name: str = field(default_factory=lambda: threading.current_thread().name)
    stack_trace: str = ""
    additional_context: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        if not self.stack_trace and self.error.__traceback__ is not None:
            self.stack_trace = "".join(traceback.format_exception(
                type(self.error), self.error, self.error.__traceback__
            ))

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for logging/serialization."""
        return {
            'error_type': type(self.error).__name__,
            'error_message': str(self.error),
            'category': self.category.value,
            'severity': self.severity.value,
            'operation': self.operation,
            'timestamp': self.timestamp,
            'thread_name': self.thread_name,
            'additional_context': self.additional_context,
        }

    def format_log_message(self) -> str:
        """Format a detailed log message."""
        lines = [
            f"ERROR [{self.severity.value.upper()}] in {self.operation}",
            f"  Category: {self.category.value}",
            f"  Type: {type(self.error).__name__}",
            f"  Message: {self.error}",
            f"  Thread: {self.thread_name}",
        ]

        if self.additional_context:
            lines.append("  Context:")
            for key, value in self.additional_context.items():
                lines.append(f"    {key}: {value}")

        return '\n'.join(lines)


class ErrorAggregator:
    """
    Aggregates and tracks errors for reporting.

    Thread-safe error collection with deduplication of repeated failures of
    the same operation within a time window.
    """

    def __init__(self, max_errors: int = 200, dedup_window_seconds: int = 60):
        self._errors: List[ErrorContext] = []
        self._lock = threading.Lock()
        self._max_errors = max_errors
        self._dedup_window = dedup_window_seconds
        self._error_counts: Dict[str, int] = {}
        self._last_error_times: Dict[str, float] = {}

    def add_error(self, context: ErrorContext) -> bool:
        """
        Add an error to the aggregator.

        Returns True if error was added, False if deduplicated.
        """
        error_key = f"{context.category.value}:{type(context.error).__name__}:{context.operation}"
        current_time = time.time()

        with self._lock:
            last_time = self._last_error_times.get(error_key)
            if last_time is not None and current_time - last_time < self._dedup_window:
                self._error_counts[error_key] = self._error_counts.get(error_key, 0) + 1
                return False

            self._errors.append(context)
            self._last_error_times[error_key] = current_time
            self._error_counts[error_key] = 1

            if len(self._errors) > self._max_errors:
                self._errors = self._errors[-self._max_errors:]

            return True

    def get_error_summary(self) -> Dict[str, Any]:
        """Get a summary of aggregated errors."""
        with self._lock:
            by_category: Dict[str, int] = {}
            by_severity: Dict[str, int] = {}

            for ctx in self._errors:
                cat = ctx.category.value
                sev = ctx.severity.value
                by_category[cat] = by_category.get(cat, 0) + 1
                by_severity[sev] = by_severity.get(sev, 0) + 1

            return {
                'total_errors': len(self._errors),
                'by_category': by_category,
                'by_severity': by_severity,
                'deduplicated_counts': dict(self._error_counts),
            }

    def get_recent_errors(self, count: int = 10) -> List[Dict[str, Any]]:
        """Get the most recent errors."""
        with self._lock:
            return [e.to_dict() for e in self._errors[-count:]]

    def clear(self):
        """Clear all aggregated errors."""
        with self._lock:
            self._errors.clear()
            self._error_counts.clear()
            self._last_error_times.clear()


# Global error aggregator
_global_aggregator = ErrorAggregator()


def get_error_aggregator() -> ErrorAggregator:
    """Get the global error aggregator instance."""
    return _global_aggregator


def categorize(error: Exception) -> ErrorCategory:
    """Map an exception onto an ErrorCategory."""
    if isinstance(error, CryptoError):
        return ErrorCategory.CRYPTO
    if isinstance(error, ConfigParseError):
        return ErrorCategory.PARSE
    if isinstance(error, (ValidationError, NotFoundError)):
        return ErrorCategory.VALIDATION
    if isinstance(error, OSError) or isinstance(error.__cause__, OSError):
        return ErrorCategory.FILESYSTEM
    return ErrorCategory.UNKNOWN


def determine_severity(error: Exception, category: ErrorCategory) -> ErrorSeverity:
    """Determine the severity level for an error based on its category."""
    if category == ErrorCategory.CRYPTO:
        return ErrorSeverity.CRITICAL
    if category == ErrorCategory.VALIDATION:
        return ErrorSeverity.WARNING
    if isinstance(error, FileNotFoundError) or isinstance(error.__cause__, FileNotFoundError):
        return ErrorSeverity.WARNING
    return ErrorSeverity.ERROR


def handle_error(
    error: Exception,
    operation: str,
    category: Optional[ErrorCategory] = None,
    severity: Optional[ErrorSeverity] = None,
    **context,
) -> ErrorContext:
    """
    Log and record an error. Never raises; callers re-raise themselves.

    Args:
        error: The exception that occurred
        operation: Name of the operation that failed
        category: Category of the error (derived from the exception if omitted)
        severity: Severity level (auto-determined if not provided)
        **context: Additional context information

    Returns:
        ErrorContext with full error details
    """
    if category is None:
        category = categorize(error)
    if severity is None:
        severity = determine_severity(error, category)

    error_context = ErrorContext(
        error=error,
        category=category,
        severity=severity,
        operation=operation,
        additional_context=context,
    )

    was_added = _global_aggregator.add_error(error_context)

    log_level = {
        ErrorSeverity.WARNING: logging.WARNING,
        ErrorSeverity.ERROR: logging.ERROR,
        ErrorSeverity.CRITICAL: logging.CRITICAL,
    }[severity]

    if was_added:
        logger.log(log_level, error_context.format_log_message())
    else:
        logger.log(log_level, f"[DEDUPLICATED] {operation}: {type(error).__name__}: {error}")

    return error_context


__all__ = [
    'ErrorCategory',
    'ErrorSeverity',
    'ErrorContext',
    'ErrorAggregator',
    'get_error_aggregator',
    'categorize',
    'determine_severity',
    'handle_error',
]
