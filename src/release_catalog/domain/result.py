"""Result pattern implementation for error handling.

This module implements the Result pattern, providing a type-safe way to handle
operations that can succeed or fail without relying on exceptions at service
boundaries. It also defines the catalog error taxonomy: every failure that
crosses a service boundary is classified into one of the ``ErrorKind`` values.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Generic, Optional, TypeVar, cast, overload

T = TypeVar('T')  # Success type
E = TypeVar('E', bound=Exception)  # Error type


class Result(ABC, Generic[T, E]):
    """Abstract base class for Result pattern.

    A Result represents either a successful operation with a value,
    or a failed operation with an error.
    """

    @abstractmethod
    def is_success(self) -> bool:
        """Check if the result is a success."""
        ...

    @abstractmethod
    def is_failure(self) -> bool:
        """Check if the result is a failure."""
        ...

    @abstractmethod
    def value(self) -> T:
        """Get the success value.

        Raises:
            ValueError: If the result is a failure.
        """
        ...

    @abstractmethod
    def error(self) -> E:
        """Get the error.

        Raises:
            ValueError: If the result is a success.
        """
        ...

    @abstractmethod
    def map(self, fn: Callable[[T], Any]) -> Result[Any, E]:
        """Map the success value through a function."""
        ...

    def or_else(self, default: T) -> T:
        """Get the success value or return a default."""
        return self.value() if self.is_success() else default

    def or_else_raise(self) -> T:
        """Get the success value or raise the error."""
        if self.is_failure():
            raise self.error()
        return self.value()

    @overload
    def match(self, *, success: Callable[[T], Any]) -> Any: ...

    @overload
    def match(self, *, failure: Callable[[E], Any]) -> Any: ...

    @overload
    def match(self, *, success: Callable[[T], Any], failure: Callable[[E], Any]) -> Any: ...

    def match(self, *, success: Callable[[T], Any] | None = None,
              failure: Callable[[E], Any] | None = None) -> Any:
        """Pattern match on the result."""
        if self.is_success() and success:
            return success(self.value())
        elif self.is_failure() and failure:
            return failure(self.error())
        return None


@dataclass(frozen=True, slots=True)
class Success(Result[T, E]):
    """Represents a successful operation with a value."""
    _value: T

    def __repr__(self) -> str:
        return f"Success({self._value!r})"

    def is_success(self) -> bool:
        return True

    def is_failure(self) -> bool:
        return False

    def value(self) -> T:
        return self._value

    def error(self) -> E:
        raise ValueError("Cannot get error from Success result")

    def map(self, fn: Callable[[T], Any]) -> Result[Any, E]:
        try:
            return Success(fn(self._value))
        except Exception as e:
            return Failure(cast(E, e))


@dataclass(frozen=True, slots=True)
class Failure(Result[T, E]):
    """Represents a failed operation with an error."""
    _error: E

    def __repr__(self) -> str:
        return f"Failure({self._error!r})"

    def is_success(self) -> bool:
        return False

    def is_failure(self) -> bool:
        return True

    def value(self) -> T:
        raise ValueError(f"Cannot get value from Failure result: {self._error}")

    def error(self) -> E:
        return self._error

    def map(self, fn: Callable[[T], Any]) -> Result[Any, E]:
        return self


# Helper functions for creating Results
def success(value: T) -> Result[T, Any]:
    """Create a Success result."""
    return Success(value)


def failure(error: E) -> Result[Any, E]:
    """Create a Failure result."""
    return Failure(error)


# Domain-specific errors for the release catalog
class DomainError(Exception):
    """Base class for domain-specific errors."""
    pass


class ValidationError(DomainError):
    """Raised when input validation fails before any write is attempted."""

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message)
        self.field = field


class ErrorKind(Enum):
    """Failure kinds surfaced to callers of catalog services."""
    NOT_FOUND = "not_found"
    CONFLICT = "conflict"
    UNAVAILABLE = "unavailable"
    UNKNOWN = "unknown"


class CatalogError(DomainError):
    """Base class for classified catalog failures.

    ``str(error)`` is the diagnostic message meant for logs. ``user_message``
    is what may be shown to an end user, and ``field`` names the input the
    failure relates to, when there is one.
    """

    kind: ErrorKind = ErrorKind.UNKNOWN
    default_user_message: str = "Something went wrong. Please try again."

    def __init__(
        self,
        message: str = "",
        *,
        field: Optional[str] = None,
        user_message: Optional[str] = None,
    ):
        super().__init__(message or self.default_user_message)
        self.field = field
        self.user_message = user_message or self.default_user_message

    @property
    def retryable(self) -> bool:
        """Whether the operation's effect is unknown and safe to retry."""
        return self.kind is ErrorKind.UNAVAILABLE


class NotFoundError(CatalogError):
    """The target record did not exist at the time of the mutation."""
    kind = ErrorKind.NOT_FOUND
    default_user_message = "Not found"


class ConflictError(CatalogError):
    """A uniqueness constraint was violated."""
    kind = ErrorKind.CONFLICT
    default_user_message = "This value is already in use."


class UnavailableError(CatalogError):
    """The backing store could not be reached."""
    kind = ErrorKind.UNAVAILABLE
    default_user_message = "The catalog is temporarily unavailable. Please try again."


class UnknownError(CatalogError):
    """Any other failure. The message is kept for logs only."""
    kind = ErrorKind.UNKNOWN


def classify_error(exc: BaseException, action: str) -> CatalogError:
    """Map an arbitrary exception onto the catalog error taxonomy.

    Already classified errors pass through untouched. Anything else becomes
    an ``UnknownError`` whose user message only names the failed action.
    """
    if isinstance(exc, CatalogError):
        return exc
    error = UnknownError(
        f"Failed to {action}: {exc}",
        user_message=f"Failed to {action}",
    )
    error.__cause__ = exc
    return error
