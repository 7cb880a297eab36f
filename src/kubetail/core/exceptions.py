"""
Custom exceptions for kube-tail.

Every error carries a machine-readable code, optional details for
structured logging, and the process exit status the CLI should use.
"""

from typing import Any, Dict, Optional, TYPE_CHECKING

if TYPE_CHECKING:
    from ..models.log_record import LogRecord


class KubeTailException(Exception):
    """Base exception for kube-tail."""

    def __init__(
        self,
        message: str,
        error_code: str = "internal_error",
        exit_code: int = 1,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.error_code = error_code
        self.exit_code = exit_code
        self.details = details or {}


class ConfigurationError(KubeTailException):
    """Raised when startup configuration is missing or invalid."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(
            message=message,
            error_code="configuration_error",
            exit_code=2,
            details=details,
        )


class DecodeError(KubeTailException):
    """
    Raised when a payload cannot be fully decoded.

    Carries the best-effort record so callers can keep going.
    """

    def __init__(
        self,
        message: str,
        record: "LogRecord",
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(
            message=message,
            error_code="decode_error",
            exit_code=1,
            details=details,
        )
        self.record = record


class TransportError(KubeTailException):
    """Raised when the messaging backend fails."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(
            message=message,
            error_code="transport_error",
            exit_code=1,
            details=details,
        )


class RenderError(KubeTailException):
    """Raised when a summary line cannot be written to the output sink."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(
            message=message,
            error_code="render_error",
            exit_code=1,
            details=details,
        )


class TeardownError(KubeTailException):
    """Raised when the subscription cannot be deleted on exit."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(
            message=message,
            error_code="teardown_error",
            exit_code=1,
            details=details,
        )
