"""Error taxonomy for the extraction client.

Every pipeline failure reaches the caller as one of these. The only error
outside the hierarchy is ``RegistryDesyncError``: it signals that local and
backend document ordering disagree, which callers are not expected to recover
from.
"""

from __future__ import annotations


class DocsToFieldsError(Exception):
    """Base error for recoverable extraction failures."""


class ReadError(DocsToFieldsError):
    """Raised when a document's bytes cannot be read."""


class DecodeError(DocsToFieldsError):
    """Raised when an encoded file payload is not valid base64."""


class EmptyTextError(DocsToFieldsError):
    """Raised when text extraction returns only whitespace."""


class BackendError(DocsToFieldsError):
    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class ExtractionBackendError(BackendError):
    """Raised when the text-extraction backend responds with a non-success status."""


class CompletionBackendError(BackendError):
    """Raised when the completion backend responds with a non-success status."""


class ParseError(DocsToFieldsError):
    """Raised when the completion text is not valid JSON."""


class NoFieldsError(DocsToFieldsError):
    """Raised when extraction is requested without any declared field."""


class RegistryMismatchError(DocsToFieldsError):
    """Raised when the backend returns a different number of files than were sent."""


class RegistryDesyncError(IndexError):
    pass
