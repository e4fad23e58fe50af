"""
Logging Configuration for the UET configuration store.

Provides centralized logging configuration with verbose mode toggle,
per-feature logging, and structured log formatting.

Usage:
    from uet.logging_config import setup_logging, get_logger

    # Setup at process startup
    setup_logging(verbose=True)

    # Get feature-specific logger
    logger = get_logger('uet.config.store')
    logger.info("Loaded configuration")

Log output goes to stderr so that command output on stdout stays clean.
Secrets are never passed to loggers by this package.
"""

import os
import sys
import json
import logging
import threading
from datetime import datetime
from enum import Enum, auto
from pathlib import Path
from typing import Optional, Dict, Any, Set
from dataclasses import dataclass, field


# =============================================================================
# FEATURES
# =============================================================================

class FeatureArea(Enum):
    """Feature areas for targeted logging."""
    CORE = auto()       # Package-level operations
    CONFIG = auto()     # Document model and parsing
    CRYPTO = auto()     # Envelopes and key material
    STORE = auto()      # Load/save and mutations
    CLI = auto()        # uetctl


_FEATURE_MAP = {
    'store': FeatureArea.STORE,
    'crypto': FeatureArea.CRYPTO,
    'key_material': FeatureArea.CRYPTO,
    'envelope': FeatureArea.CRYPTO,
    'cli': FeatureArea.CLI,
    'uetctl': FeatureArea.CLI,
    'config': FeatureArea.CONFIG,
}


def feature_for(logger_name: str) -> FeatureArea:
    """Map a logger name such as 'uet.config.store' onto its feature area."""
    name_lower = logger_name.lower()
    for key, feature in _FEATURE_MAP.items():
        if key in name_lower:
            return feature
    return FeatureArea.CORE


# =============================================================================
# THREAD-SAFE CONFIGURATION STATE
# =============================================================================

@dataclass
class LoggingState:
    """Thread-safe logging configuration state."""
    verbose: bool = False
    log_file: Optional[str] = None
    console_enabled: bool = True
    json_format: bool = False
    enabled_features: Set[FeatureArea] = field(default_factory=lambda: set(FeatureArea))
    initialized: bool = False
    _lock: threading.RLock = field(default_factory=threading.RLock)


_state = LoggingState()


# =============================================================================
# CUSTOM FORMATTER
# =============================================================================

class UETFormatter(logging.Formatter):
    """Formatter with color support and optional JSON output."""

    COLORS = {
        'DEBUG': '\033[36m',      # Cyan
        'INFO': '\033[32m',       # Green
        'WARNING': '\033[33;1m',  # Bold yellow
        'ERROR': '\033[31m',      # Red
        'CRITICAL': '\033[31;1m', # Bold red
        'RESET': '\033[0m',
    }

    def __init__(self, use_colors: bool = True, json_format: bool = False):
        self.use_colors = use_colors and sys.stderr.isatty()
        self.json_format = json_format
        super().__init__()

    def format(self, record: logging.LogRecord) -> str:
        if self.json_format:
            return self._format_json(record)
        return self._format_text(record)

    def _format_text(self, record: logging.LogRecord) -> str:
        timestamp = datetime.fromtimestamp(record.created).strftime('%Y-%m-%d %H:%M:%S.%f')[:-3]
        level_name = record.levelname

        if self.use_colors:
            color = self.COLORS.get(level_name, '')
            reset = self.COLORS['RESET']
            level_str = f"{color}{level_name:8}{reset}"
        else:
            level_str = f"{level_name:8}"

        feature_str = f"[{feature_for(record.name).name}]"
        text = f"{timestamp} {level_str} {feature_str:9} {record.getMessage()}"

        if record.exc_info:
            text = f"{text}\n{self.formatException(record.exc_info)}"
        return text

    def _format_json(self, record: logging.LogRecord) -> str:
        data = {
            'timestamp': datetime.fromtimestamp(record.created).isoformat(),
            'level': record.levelname,
            'logger': record.name,
            'message': record.getMessage(),
            'feature': feature_for(record.name).name,
        }

        if record.exc_info:
            data['exception'] = self.formatException(record.exc_info)

        return json.dumps(data)


class FeatureFilter(logging.Filter):
    """Drop below-WARNING records from disabled feature areas."""

    def filter(self, record: logging.LogRecord) -> bool:
        if record.levelno >= logging.WARNING:
            return True
        return feature_for(record.name) in _state.enabled_features


# =============================================================================
# SETUP AND CONFIGURATION
# =============================================================================

def setup_logging(
    verbose: bool = False,
    log_file: Optional[str] = None,
    console: bool = True,
    json_format: bool = False,
    features: Optional[Set[FeatureArea]] = None,
) -> None:
    """
    Initialize the logging system.

    Args:
        verbose: Enable DEBUG output (INFO otherwise)
        log_file: Optional file path for log output
        console: Enable stderr output
        json_format: Use JSON format for logs
        features: Set of features to log below WARNING (all by default)
    """
    with _state._lock:
        _state.verbose = verbose
        _state.log_file = log_file
        _state.console_enabled = console
        _state.json_format = json_format
        _state.enabled_features = set(features) if features is not None else set(FeatureArea)

        base_level = logging.DEBUG if verbose else logging.INFO

        root = logging.getLogger()
        root.setLevel(base_level)

        for handler in root.handlers[:]:
            root.removeHandler(handler)

        if console:
            console_handler = logging.StreamHandler(sys.stderr)
            console_handler.setLevel(base_level)
            console_handler.setFormatter(UETFormatter(
                use_colors=True,
                json_format=json_format
            ))
            console_handler.addFilter(FeatureFilter())
            root.addHandler(console_handler)

        if log_file:
            log_path = Path(log_file)
            log_path.parent.mkdir(parents=True, exist_ok=True)

            file_handler = logging.FileHandler(log_file)
            file_handler.setLevel(base_level)
            file_handler.setFormatter(UETFormatter(
                use_colors=False,
                json_format=json_format
            ))
            file_handler.addFilter(FeatureFilter())
            root.addHandler(file_handler)

        _state.initialized = True


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger inside the ``uet`` namespace.

    Args:
        name: Logger name (e.g., 'uet.config.store' or just 'cli')
    """
    if name != 'uet' and not name.startswith('uet.'):
        name = f"uet.{name}"
    return logging.getLogger(name)


def set_verbose(enabled: bool) -> None:
    """Toggle verbose mode at runtime."""
    with _state._lock:
        _state.verbose = enabled
        level = logging.DEBUG if enabled else logging.INFO

        root = logging.getLogger()
        root.setLevel(level)

        for handler in root.handlers:
            handler.setLevel(level)


def is_verbose() -> bool:
    """Check if verbose mode is enabled."""
    return _state.verbose


def get_logging_state() -> Dict[str, Any]:
    """Get current logging configuration state."""
    with _state._lock:
        return {
            'verbose': _state.verbose,
            'log_file': _state.log_file,
            'console_enabled': _state.console_enabled,
            'json_format': _state.json_format,
            'enabled_features': sorted(f.name for f in _state.enabled_features),
            'initialized': _state.initialized,
        }


# =============================================================================
# ENVIRONMENT VARIABLE CONFIGURATION
# =============================================================================

def _env_flag(name: str) -> bool:
    return os.environ.get(name, '').lower() in ('1', 'true', 'yes')


def configure_from_environment(verbose: bool = False) -> None:
    """
    Configure logging from UET_VERBOSE, UET_LOG_FILE and UET_LOG_JSON.

    ``verbose`` forces DEBUG output regardless of UET_VERBOSE.
    """
    setup_logging(
        verbose=verbose or _env_flag('UET_VERBOSE'),
        log_file=os.environ.get('UET_LOG_FILE') or None,
        json_format=_env_flag('UET_LOG_JSON'),
    )


# =============================================================================
# EXPORTS
# =============================================================================

__all__ = [
    'FeatureArea',
    'feature_for',
    'setup_logging',
    'configure_from_environment',
    'get_logger',
    'set_verbose',
    'is_verbose',
    'get_logging_state',
    'UETFormatter',
    'FeatureFilter',
]
