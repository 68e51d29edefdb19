"""
Error handling framework for ws-loadkit.

This module provides:
- Hierarchical exception classes
- Error context preservation
- Structured error responses
"""

from typing import Optional, Dict, Any, List
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from contextlib import contextmanager

from .logging import get_logger


logger = get_logger("ws-loadkit.errors")


class ErrorSeverity(Enum):
    """Error severity levels."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class ErrorCategory(Enum):
    """Error categories for classification."""
    PARSING = "parsing"
    ENCODING = "encoding"
    CRYPTO = "crypto"
    CONFIGURATION = "configuration"
    VALIDATION = "validation"
    INTERNAL = "internal"
    UNKNOWN = "unknown"


@dataclass
class ErrorContext:
    """Context information for an error."""
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    component: Optional[str] = None
    operation: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)


class LoadKitError(Exception):
    """Base exception for all ws-loadkit errors."""

    code: str = "LOADKIT_ERROR"
    default_message: str = "An error occurred in ws-loadkit"
    severity: ErrorSeverity = ErrorSeverity.ERROR
    category: ErrorCategory = ErrorCategory.UNKNOWN

    def __init__(
        self,
        message: Optional[str] = None,
        context: Optional[ErrorContext] = None,
        cause: Optional[Exception] = None,
    ):
        self.message = message or self.default_message
        self.context = context or ErrorContext()
        self.cause = cause
        super().__init__(self.message)

    def get_suggestions(self) -> List[str]:
        """Get error resolution suggestions."""
        return []

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "error": {
                "code": self.code,
                "message": self.message,
                "severity": self.severity.value,
                "category": self.category.value,
                "suggestions": self.get_suggestions(),
                "context": {
                    "timestamp": self.context.timestamp.isoformat(),
                    "component": self.context.component,
                    "operation": self.context.operation,
                    "metadata": self.context.metadata
                }
            }
        }


# Splitter Errors

class MalformedFragment(LoadKitError):
    """A brace-balanced fragment that is not valid JSON.

    Never raised by the splitter itself: instances are collected on the
    split result so callers can count and inspect dropped fragments.
    """
    code = "MALFORMED_FRAGMENT"
    default_message = "Malformed JSON fragment"
    category = ErrorCategory.PARSING
    severity = ErrorSeverity.WARNING

    PREVIEW_LENGTH = 200

    def __init__(
        self,
        fragment: str,
        start: int,
        end: int,
        reason: str,
        **kwargs
    ):
        self.fragment = fragment
        self.start = start
        self.end = end
        self.reason = reason
        message = f"Malformed JSON fragment at [{start}:{end}]: {reason}"
        super().__init__(message, **kwargs)
        self.context.metadata.update({
            "start": start,
            "end": end,
            "preview": self.preview,
        })

    @property
    def preview(self) -> str:
        """Fragment text truncated for logs."""
        if len(self.fragment) <= self.PREVIEW_LENGTH:
            return self.fragment
        return self.fragment[:self.PREVIEW_LENGTH] + "..."


# Signer Errors

class EncodingError(LoadKitError):
    """Claims could not be serialized to JSON."""
    code = "ENCODING_ERROR"
    default_message = "Failed to encode token claims"
    category = ErrorCategory.ENCODING

    def get_suggestions(self) -> List[str]:
        return [
            "Ensure claims is a mapping with string keys",
            "Convert datetimes and other objects to JSON-compatible values",
        ]


class CryptoError(LoadKitError):
    """Signing primitive misuse or unavailability."""
    code = "CRYPTO_ERROR"
    default_message = "Token signing failed"
    category = ErrorCategory.CRYPTO
    severity = ErrorSeverity.CRITICAL

    def get_suggestions(self) -> List[str]:
        return [
            "Set a non-empty signing secret (JWT_SECRET)",
        ]


# Configuration Errors

class ConfigurationError(LoadKitError):
    """Configuration errors."""
    code = "CONFIG_ERROR"
    default_message = "Configuration error"
    category = ErrorCategory.CONFIGURATION

    def get_suggestions(self) -> List[str]:
        return [
            "Check your configuration file syntax",
            "Ensure all required configuration values are set",
        ]


@contextmanager
def error_context(
    component: str,
    operation: str,
    reraise: bool = True,
    **metadata
):
    """
    Context manager attaching component/operation context to errors.

    LoadKitError instances get their context filled in; any other exception
    is wrapped in a LoadKitError chained to the raised exception.

    Args:
        component: Component name
        operation: Operation name
        reraise: Whether to reraise exceptions
        **metadata: Additional context metadata
    """
    context = ErrorContext(
        component=component,
        operation=operation,
        metadata=metadata
    )

    try:
        yield context
    except LoadKitError as e:
        e.context.component = e.context.component or component
        e.context.operation = e.context.operation or operation
        e.context.metadata.update(metadata)
        logger.error("loadkit_error_in_context", error=e.to_dict())
        if reraise:
            raise
    except Exception as e:
        wrapped = LoadKitError(message=str(e), context=context, cause=e)
        logger.error(
            "unexpected_error_in_context",
            error=wrapped.to_dict(),
            exc_info=True
        )
        if reraise:
            raise wrapped from e


__all__ = [
    'LoadKitError',
    'ErrorContext',
    'ErrorSeverity',
    'ErrorCategory',
    'MalformedFragment',
    'EncodingError',
    'CryptoError',
    'ConfigurationError',
    'error_context',
]
