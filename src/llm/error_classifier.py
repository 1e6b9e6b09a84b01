# src/llm/error_classifier.py - v1
"""Error Classifier: map any exception to the stable ErrorKind taxonomy.

Provider errors are classified by transport status code, never by message
text, with one exception: a 400 is only a safety block when the provider's
message mentions safety.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass

from imagecomposer.core.errors import ComposerError, ErrorKind, ProviderCallError

INVALID_CREDENTIAL_MESSAGE = "Invalid API key. Please check your API key in profile settings."
RATE_LIMITED_MESSAGE = "API rate limit exceeded. Please try again later."
SAFETY_BLOCKED_MESSAGE = "Content was blocked by safety filters. Please modify your prompt."
TIMEOUT_MESSAGE = "The image provider did not respond in time. Please try again."
UNEXPECTED_MESSAGE = "An unexpected error occurred during image generation."


@dataclass(frozen=True)
class ClassifiedError:
    """User-facing classification of an exception."""

    kind: ErrorKind
    message: str


def classify_error(error: BaseException, unexpected_message: str = UNEXPECTED_MESSAGE) -> ClassifiedError:
    """Classify an exception raised while serving a request."""
    if isinstance(error, ProviderCallError):
        return _classify_provider(error)
    if isinstance(error, ComposerError):
        return ClassifiedError(error.kind, error.message)
    if isinstance(error, asyncio.TimeoutError):
        return ClassifiedError(ErrorKind.PROVIDER_ERROR, TIMEOUT_MESSAGE)
    return ClassifiedError(ErrorKind.UNEXPECTED_ERROR, unexpected_message)


def _classify_provider(error: ProviderCallError) -> ClassifiedError:
    status = error.status_code
    if status in (401, 403):
        return ClassifiedError(ErrorKind.INVALID_CREDENTIAL, INVALID_CREDENTIAL_MESSAGE)
    if status == 429:
        return ClassifiedError(ErrorKind.RATE_LIMITED, RATE_LIMITED_MESSAGE)
    if status == 400 and "safety" in error.message.lower():
        return ClassifiedError(ErrorKind.SAFETY_BLOCKED, SAFETY_BLOCKED_MESSAGE)
    return ClassifiedError(ErrorKind.PROVIDER_ERROR, error.message)
