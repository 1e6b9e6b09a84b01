# src/core/errors.py - v1
"""Error taxonomy and exception hierarchy.

Validation and resolution errors abort the whole logical request. Their
messages are user-safe: they may be shown to the caller verbatim and never
include resolved addresses or raw resolver output.
"""

from __future__ import annotations

from enum import Enum


class ErrorKind(str, Enum):
    """Stable error taxonomy exposed on GenerationResult.error_kind."""

    INVALID_URL = "InvalidURL"
    CREDENTIALS_NOT_ALLOWED = "CredentialsNotAllowed"
    HOST_NOT_ALLOWED = "HostNotAllowed"
    PRIVATE_ADDRESS_NOT_ALLOWED = "PrivateAddressNotAllowed"
    HOST_UNRESOLVABLE = "HostUnresolvable"
    REDIRECT_NOT_ALLOWED = "RedirectNotAllowed"
    TOO_LARGE = "TooLarge"
    UNSUPPORTED_CONTENT_TYPE = "UnsupportedContentType"
    UNSUPPORTED_SOURCE = "UnsupportedSource"
    FETCH_FAILED = "FetchFailed"
    INVALID_REQUEST = "InvalidRequest"
    NO_CREDENTIAL = "NoCredential"
    INVALID_CREDENTIAL = "InvalidCredential"
    RATE_LIMITED = "RateLimited"
    SAFETY_BLOCKED = "SafetyBlocked"
    PROVIDER_ERROR = "ProviderError"
    UNEXPECTED_ERROR = "UnexpectedError"


class ComposerError(Exception):
    """Base class for every error raised inside imagecomposer."""

    kind: ErrorKind = ErrorKind.UNEXPECTED_ERROR
    default_message = "An unexpected error occurred."

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)


# --- URL validation ---


class InvalidURLError(ComposerError):
    kind = ErrorKind.INVALID_URL
    default_message = "Invalid image URL."


class CredentialsNotAllowedError(ComposerError):
    kind = ErrorKind.CREDENTIALS_NOT_ALLOWED
    default_message = "Image URLs must not contain credentials."


class HostNotAllowedError(ComposerError):
    kind = ErrorKind.HOST_NOT_ALLOWED
    default_message = "Image host is not allowed."


class PrivateAddressNotAllowedError(ComposerError):
    kind = ErrorKind.PRIVATE_ADDRESS_NOT_ALLOWED
    default_message = "Image host resolves to a private address."


class HostUnresolvableError(ComposerError):
    kind = ErrorKind.HOST_UNRESOLVABLE
    default_message = "Unable to resolve image host."


# --- Image resolution ---


class RedirectNotAllowedError(ComposerError):
    kind = ErrorKind.REDIRECT_NOT_ALLOWED
    default_message = "Redirects are not allowed when fetching images."


class TooLargeError(ComposerError):
    kind = ErrorKind.TOO_LARGE
    default_message = "Image too large."


class UnsupportedContentTypeError(ComposerError):
    kind = ErrorKind.UNSUPPORTED_CONTENT_TYPE
    default_message = "URL did not return an image."


class UnsupportedSourceError(ComposerError):
    kind = ErrorKind.UNSUPPORTED_SOURCE
    default_message = "Unsupported image source."


class FetchFailedError(ComposerError):
    kind = ErrorKind.FETCH_FAILED
    default_message = "Failed to fetch image."


# --- Request / credentials ---


class InvalidRequestError(ComposerError):
    kind = ErrorKind.INVALID_REQUEST
    default_message = "Invalid generation request."


class NoCredentialError(ComposerError):
    kind = ErrorKind.NO_CREDENTIAL
    default_message = (
        "No API key configured. Please add your Google AI API key "
        "in your profile settings."
    )


# --- Provider ---


class ProviderCallError(ComposerError):
    """Structured error returned by the generation provider's transport."""

    kind = ErrorKind.PROVIDER_ERROR
    default_message = "The image provider returned an error."

    def __init__(self, status_code: int | None, message: str | None = None):
        self.status_code = status_code
        super().__init__(message)
