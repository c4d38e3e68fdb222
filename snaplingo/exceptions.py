"""
Error kinds raised by the recognition and translation pipeline.
"""

from typing import Optional


class SnapLingoError(Exception):
    """Base class for pipeline errors. Carries a message and an optional code."""

    default_code: Optional[int] = None

    def __init__(self, message: str, code: Optional[int] = None) -> None:
        super().__init__(message)
        self.message = message
        self.code = code if code is not None else self.default_code

    def __str__(self) -> str:
        return self.message


class CredentialMissing(SnapLingoError):
    """No API key configured for a remote service."""
    default_code = 401


class InvalidRequest(SnapLingoError):
    """Malformed URL, request body or input image."""
    default_code = 400


class TransportError(SnapLingoError):
    """Network failure or timeout before a response arrived."""


class RemoteAPIError(SnapLingoError):
    """Non-200 status or an error field inside the response payload."""
    default_code = 500


class EmptyResult(SnapLingoError):
    """The request succeeded but decoded to a blank payload."""
    default_code = 502


class RecognitionFailed(SnapLingoError):
    """Every cascade stage was exhausted without producing any text."""
    default_code = 422


class TranslationCancelled(SnapLingoError):
    """A pending translation was superseded or cancelled by the caller."""
    default_code = 499
