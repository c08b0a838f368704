"""Custom exceptions for notevault.

Provides a structured exception hierarchy with error codes and
machine-readable error information for better error handling.
"""
from enum import Enum
from typing import Any, Dict, Optional


class ErrorCode(Enum):
    """Error codes for machine-readable error identification."""

    # Lookup errors (1xxx)
    RECORD_NOT_FOUND = 1001
    ENTRY_NOT_FOUND = 1002

    # Content errors (2xxx)
    CONTENT_UNREADABLE = 2001

    # Storage errors (4xxx)
    STORAGE_READ_FAILED = 4001
    STORAGE_WRITE_FAILED = 4002
    SCAN_FAILED = 4003
    RECORD_CORRUPTED = 4004

    # Configuration errors (6xxx)
    CONFIG_INVALID = 6001

    # Validation errors (7xxx)
    VALIDATION_FAILED = 7001
    PATH_TRAVERSAL_DETECTED = 7005


def _path_hint(path: str) -> str:
    # Don't expose full paths in error details
    return path.replace("\\", "/").rstrip("/").split("/")[-1] or path


class NotevaultError(Exception):
    """Base exception for all notevault errors.

    Attributes:
        message: Human-readable error message
        code: Machine-readable error code
        details: Additional context about the error
    """

    def __init__(
        self,
        message: str,
        code: ErrorCode = ErrorCode.VALIDATION_FAILED,
        details: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.code = code
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to a dictionary for serialization."""
        return {
            "error": self.__class__.__name__,
            "code": self.code.value,
            "code_name": self.code.name,
            "message": self.message,
            "details": self.details,
        }

    def __str__(self) -> str:
        if self.details:
            detail_str = ", ".join(f"{k}={v}" for k, v in self.details.items())
            return f"[{self.code.name}] {self.message} ({detail_str})"
        return f"[{self.code.name}] {self.message}"


class RecordNotFoundError(NotevaultError):
    """Raised when a library index or notebook TOC file does not exist.

    Callers usually treat this as "create a new record".
    """

    def __init__(self, path: str, message: Optional[str] = None):
        super().__init__(
            message or f"No record file at '{_path_hint(path)}'",
            code=ErrorCode.RECORD_NOT_FOUND,
            details={"path_hint": _path_hint(path)},
        )
        self.path = path


class EntryNotFoundError(NotevaultError):
    """Raised when a mutator targets a notebook or page id absent from a record."""

    def __init__(self, entry_id: str, kind: str = "entry", message: Optional[str] = None):
        super().__init__(
            message or f"{kind.capitalize()} '{entry_id}' not found in index",
            code=ErrorCode.ENTRY_NOT_FOUND,
            details={"entry_id": entry_id, "kind": kind},
        )
        self.entry_id = entry_id
        self.kind = kind


class StorageError(NotevaultError):
    """Raised for scan and persistence failures."""

    def __init__(
        self,
        message: str,
        operation: Optional[str] = None,
        path: Optional[str] = None,
        code: ErrorCode = ErrorCode.STORAGE_READ_FAILED,
        original_error: Optional[Exception] = None,
    ):
        details: Dict[str, Any] = {}
        if operation:
            details["operation"] = operation
        if path:
            details["path_hint"] = _path_hint(path)
        if original_error:
            details["original_error"] = str(original_error)[:200]

        super().__init__(message, code=code, details=details)
        self.operation = operation
        self.path = path
        self.original_error = original_error


class UnreadableContentError(NotevaultError):
    """Raised when a page's bytes cannot be read or decoded.

    Never escapes a reconciliation: the content provider logs it and the
    page is indexed as if it were empty.
    """

    def __init__(self, page_id: str, original_error: Optional[Exception] = None):
        details: Dict[str, Any] = {"page_id": page_id}
        if original_error:
            details["original_error"] = str(original_error)[:200]
        super().__init__(
            f"Content of page '{page_id}' is unreadable",
            code=ErrorCode.CONTENT_UNREADABLE,
            details=details,
        )
        self.page_id = page_id
        self.original_error = original_error


class ConfigurationError(NotevaultError):
    """Raised for configuration-related errors."""

    def __init__(
        self,
        message: str,
        config_key: Optional[str] = None,
        code: ErrorCode = ErrorCode.CONFIG_INVALID,
    ):
        details = {}
        if config_key:
            details["config_key"] = config_key

        super().__init__(message, code=code, details=details)
        self.config_key = config_key


class ValidationError(NotevaultError):
    """Raised for general validation errors."""

    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        value: Optional[Any] = None,
        code: ErrorCode = ErrorCode.VALIDATION_FAILED,
    ):
        details = {}
        if field:
            details["field"] = field
        if value is not None:
            details["value"] = str(value)[:100]

        super().__init__(message, code=code, details=details)
        self.field = field
        self.value = value
