"""
Database Health - Exceptions.

============================================================
CUSTOM EXCEPTIONS
============================================================

All exceptions for the database health module:
- DatabaseHealthError: Base exception
- ConfigurationError: Invalid or incomplete configuration
- UnsupportedAdapterError: No adapter for the database engine
- DatabaseNotBoundError: No engine bound for a model
- CacheError: Cache read/write failed
- QueryError: Session count query returned garbage

Every error records the Operation that failed and the
load_pct the engine substitutes for it (None = fatal).

============================================================
FAILURE SAFETY
============================================================

- Cache faults are recovered as 0.0 (fail-open)
- Query faults are recovered as 1.0 (fail-closed)
- Configuration, adapter and binding errors are fatal

============================================================
"""

from enum import Enum
from typing import Any, ClassVar, Dict, List, Optional


class Operation(str, Enum):
    """Step of a health check an error was raised from."""
    CONFIGURE = "configure"
    RESOLVE_BINDING = "resolve_binding"
    RESOLVE_ADAPTER = "resolve_adapter"
    CACHE_READ = "cache_read"
    CACHE_WRITE = "cache_write"
    COUNT_SESSIONS = "count_sessions"


class DatabaseHealthError(Exception):
    """
    Base exception for database health errors.

    Subclasses set fail_safe_value when the health engine
    recovers from them instead of raising.
    """

    fail_safe_value: ClassVar[Optional[float]] = None

    def __init__(
        self,
        message: str,
        operation: Operation,
        database_name: Optional[str] = None,
        **context: Any,
    ) -> None:
        """
        Initialize exception.

        Args:
            message: Error message
            operation: Step that failed
            database_name: Name of the affected database, when known
            **context: Values describing the failure (key, adapter, ...)
        """
        self.message = message
        self.operation = operation
        self.database_name = database_name
        self.context = {k: v for k, v in context.items() if v is not None}
        super().__init__(f"[{database_name}] {message}" if database_name else message)

    @property
    def fatal(self) -> bool:
        return self.fail_safe_value is None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for logging and HTTP error bodies."""
        return {
            "error": self.__class__.__name__,
            "operation": self.operation.value,
            "database": self.database_name,
            "message": self.message,
            "fatal": self.fatal,
            "fail_safe_value": self.fail_safe_value,
            "context": self.context,
        }


class ConfigurationError(DatabaseHealthError):
    """
    Raised when configuration is invalid.

    Should be caught at startup and fixed before serving traffic.
    """

    def __init__(
        self,
        message: str,
        config_key: Optional[str] = None,
        actual_value: Any = None,
    ) -> None:
        super().__init__(
            message,
            Operation.CONFIGURE,
            config_key=config_key,
            actual=None if actual_value is None else str(actual_value),
        )
        self.config_key = config_key


class UnsupportedAdapterError(DatabaseHealthError):
    """
    Raised when a connection reports an engine with no adapter.

    Signals misconfiguration, not transient load. Never retried.
    """

    def __init__(
        self,
        adapter_name: str,
        supported: Optional[List[str]] = None,
    ) -> None:
        message = f"Unsupported database adapter: {adapter_name}"
        if supported:
            message += f". Supported: {', '.join(supported)}"

        super().__init__(
            message,
            Operation.RESOLVE_ADAPTER,
            adapter=adapter_name,
            supported=supported or None,
        )
        self.adapter_name = adapter_name
        self.supported = supported or []


class DatabaseNotBoundError(DatabaseHealthError):
    """Raised when no engine is bound for a model and no default exists."""

    def __init__(self, model_name: str) -> None:
        super().__init__(
            f"No database bound for {model_name}",
            Operation.RESOLVE_BINDING,
            model=model_name,
        )


class CacheError(DatabaseHealthError):
    """Raised when the cache cannot be read or written."""

    fail_safe_value = 0.0

    def __init__(
        self,
        operation: str,
        key: str,
        original_exception: Optional[Exception] = None,
    ) -> None:
        """
        Initialize exception.

        Args:
            operation: "read" or "write"
            key: Cache key involved
            original_exception: The underlying exception
        """
        message = f"Cache {operation} failed for '{key}'"
        if original_exception:
            message += f": {original_exception}"

        super().__init__(
            message,
            Operation.CACHE_WRITE if operation == "write" else Operation.CACHE_READ,
            key=key,
            cause=type(original_exception).__name__ if original_exception else None,
        )
        self.original_exception = original_exception


class QueryError(DatabaseHealthError):
    """Raised when the session count query returns an unusable result."""

    fail_safe_value = 1.0

    def __init__(
        self,
        database_name: Optional[str],
        reason: str,
    ) -> None:
        super().__init__(
            f"Session count query failed: {reason}",
            Operation.COUNT_SESSIONS,
            database_name,
            reason=reason,
        )
