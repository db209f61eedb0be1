"""
Error handling framework for the HSTS probe.
Classifies contract violations raised before probing starts, logs them with a
severity and keeps per-type counters.
"""

import threading
from typing import Dict, Any, Optional
from enum import Enum
from dataclasses import dataclass, field
from datetime import datetime, timezone

from .exceptions import (
    HSTSProbeException, ValidationError, EmptyBatchError, InputError
)
from .config import ConfigValidationError
from .logging_config import get_logger


class ErrorSeverity(Enum):
    """Error severity levels."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


@dataclass
class ErrorContext:
    """Context information for error handling."""
    component: str
    operation: str
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    additional_data: Dict[str, Any] = field(default_factory=dict)


class ErrorHandler:
    """Central error handler for the HSTS probe."""

    def __init__(self):
        self._logger = None
        self.error_counts: Dict[str, int] = {}
        self._lock = threading.Lock()

    @property
    def logger(self):
        # resolved on first use so a handler can exist before logging is configured
        if self._logger is None:
            self._logger = get_logger("hstsprobe.error_handler")
        return self._logger

    def handle_error(self, error: Exception, context: Optional[ErrorContext] = None) -> Dict[str, Any]:
        """Handle and log an error; return a summary suitable for reporting."""
        severity = self._determine_severity(error)

        self._log_error(error, severity, context)
        self._update_error_stats(error, severity)

        summary = {
            'status': 'error',
            'error_type': type(error).__name__,
            'error_code': getattr(error, 'error_code', None),
            'severity': severity.value,
            'message': getattr(error, 'message', None) or str(error) or type(error).__name__,
        }
        if isinstance(error, ValidationError):
            summary['field'] = error.field
        return summary

    def _determine_severity(self, error: Exception) -> ErrorSeverity:
        """Determine error severity based on exception type."""
        if isinstance(error, ConfigValidationError):
            return ErrorSeverity.HIGH
        elif isinstance(error, (ValidationError, InputError)):
            return ErrorSeverity.MEDIUM
        elif isinstance(error, EmptyBatchError):
            return ErrorSeverity.LOW
        elif isinstance(error, HSTSProbeException):
            return ErrorSeverity.MEDIUM
        elif isinstance(error, (ValueError, TypeError, OSError)):
            return ErrorSeverity.MEDIUM
        else:
            return ErrorSeverity.CRITICAL

    def _log_error(self, error: Exception, severity: ErrorSeverity,
                   context: Optional[ErrorContext]) -> None:
        """Log error with appropriate level and context."""
        log_level_map = {
            ErrorSeverity.LOW: self.logger.info,
            ErrorSeverity.MEDIUM: self.logger.warning,
            ErrorSeverity.HIGH: self.logger.error,
            ErrorSeverity.CRITICAL: self.logger.critical
        }

        extra_data = {
            'error_type': type(error).__name__,
            'severity': severity.value,
        }

        if context:
            extra_data.update({
                'component': context.component,
                'operation': context.operation,
                'error_timestamp': context.timestamp.isoformat()
            })
            extra_data.update(context.additional_data)

        log_func = log_level_map[severity]
        log_func("%s", error, extra=extra_data, exc_info=severity == ErrorSeverity.CRITICAL)

    def _update_error_stats(self, error: Exception, severity: ErrorSeverity) -> None:
        """Update error statistics for monitoring."""
        with self._lock:
            error_key = f"{type(error).__name__}:{severity.value}"
            self.error_counts[error_key] = self.error_counts.get(error_key, 0) + 1

    def get_error_stats(self) -> Dict[str, int]:
        """Get current error statistics."""
        with self._lock:
            return self.error_counts.copy()

    def reset_error_stats(self) -> None:
        """Reset error statistics."""
        with self._lock:
            self.error_counts.clear()


# Global error handler instance
_error_handler: Optional[ErrorHandler] = None


def get_error_handler() -> ErrorHandler:
    """Get the global error handler instance."""
    global _error_handler
    if _error_handler is None:
        _error_handler = ErrorHandler()
    return _error_handler


def handle_error(error: Exception, context: Optional[ErrorContext] = None) -> Dict[str, Any]:
    """Handle an error using the global error handler."""
    return get_error_handler().handle_error(error, context)
