"""Typed failures raised by the document store.

Every class carries the HTTP status the route layer answers with, so the
app needs a single exception handler for the whole taxonomy.
"""

from typing import Optional


class StoreError(Exception):
    """Base class for all document store failures."""

    status_code = 500
    code = 'internal_failure'

    def __init__(self, message: str, details: Optional[str] = None) -> None:
        self.message = message
        self.details = details
        super().__init__(message)

    def to_dict(self) -> dict:
        payload = {'error': self.message, 'code': self.code}
        if self.details:
            payload['details'] = self.details
        return payload


class InvalidPath(StoreError):
    """Malformed input, or a path that would escape the storage root."""

    status_code = 400
    code = 'invalid_path'


class NotFound(StoreError):
    status_code = 404
    code = 'not_found'


class NotADirectory(StoreError):
    status_code = 400
    code = 'not_a_directory'


class NotAFile(StoreError):
    status_code = 400
    code = 'not_a_file'


class Conflict(StoreError):
    """Target already exists.

    ``reason`` tells the caller which case was hit: an existing directory,
    an existing file, or a name clash on move/rename.
    """

    status_code = 409
    code = 'conflict'

    DIRECTORY_EXISTS = 'directory_exists'
    FILE_EXISTS = 'file_exists'
    NAME_CONFLICT = 'name_conflict'

    def __init__(self, message: str, reason: str, details: Optional[str] = None) -> None:
        self.reason = reason
        super().__init__(message, details)

    def to_dict(self) -> dict:
        payload = super().to_dict()
        payload['reason'] = self.reason
        return payload


class NotEmpty(StoreError):
    status_code = 409
    code = 'not_empty'


class Forbidden(StoreError):
    status_code = 403
    code = 'forbidden'


class InternalFailure(StoreError):
    """Unexpected filesystem error; ``details`` keeps the OS message."""
