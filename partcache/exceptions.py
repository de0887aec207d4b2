"""Custom exception classes for the part cache."""

from typing import List, Optional


class PartCacheException(Exception):
    """
    Base exception class for all part cache errors.
    """
    pass


class ValidationError(PartCacheException):
    """
    Raised when an upload part record is malformed.

    Nothing has been written when this is raised; the caller must fix the
    input before retrying.
    """

    def __init__(self, message: str, errors: Optional[List[str]] = None):
        super().__init__(message)
        self.errors = errors or []


class StorageUnavailableError(PartCacheException):
    """
    Raised when the backing database is unreachable, locked past its
    timeout, or already closed.
    """
    pass
