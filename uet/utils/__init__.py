"""
Utility modules for the UET configuration store.

Provides error categorisation, logging and aggregation helpers.
"""

from .error_handling import (
    ErrorCategory,
    ErrorSeverity,
    ErrorContext,
    ErrorAggregator,
    get_error_aggregator,
    categorize,
    determine_severity,
    handle_error,
)

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
