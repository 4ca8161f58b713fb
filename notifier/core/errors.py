# notifier/core/errors.py
"""
Typed errors for the notification pipeline.

Each error maps to an HTTP status code. The transport layer catches
``NotifierError`` subtypes and turns them into JSON responses; the
pipeline itself only ever lets ``DirectoryError`` escape.
"""
from __future__ import annotations


class NotifierError(Exception):
    """Base class for all notifier errors."""

    status_code: int = 500

    def __init__(self, detail: str = "Internal error"):
        self.detail = detail
        super().__init__(detail)


class InputError(NotifierError):
    """Malformed or missing trigger fields (400). Raised before the pipeline runs."""

    status_code = 400


class DirectoryError(NotifierError):
    """The recipient directory could not be read (500). Fatal for the request."""

    status_code = 500

    def __init__(self, detail: str, *, operation: str = "read", status: int = 0):
        self.operation = operation
        self.status = status
        super().__init__(detail)
