from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Generic, Optional, TypeVar

T = TypeVar("T")


class CatalogError(Exception):
    """Base class for failures reported by the data access layer."""

    def __init__(self, message: str, *, code: Optional[str] = None, details: Optional[str] = None) -> None:
        super().__init__(message)
        self.message = message
        self.code = code
        self.details = details

    def log_fields(self) -> dict:
        return {"error_type": type(self).__name__, "error": self.message, "error_code": self.code}


class RemoteError(CatalogError):
    """The backend answered, but reported a failure (bad filter, HTTP error, type mismatch)."""


class NotFound(CatalogError):
    """A single-row fetch matched no rows. Valid absence, not a backend failure."""


class AuthFailure(CatalogError):
    """Credentials or access token were rejected."""


@dataclass
class QueryResult(Generic[T]):
    """(data, error) pair returned by every fetch; check ``ok`` before trusting ``data``."""

    data: Optional[T] = None
    error: Optional[CatalogError] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def not_found(self) -> bool:
        return isinstance(self.error, NotFound)

    def unwrap(self) -> T:
        if self.error is not None:
            raise self.error
        return self.data  # type: ignore[return-value]

    @classmethod
    def success(cls, data: Any) -> "QueryResult[Any]":
        return cls(data=data)

    @classmethod
    def failure(cls, error: CatalogError) -> "QueryResult[Any]":
        return cls(error=error)
