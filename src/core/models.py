# src/core/models.py - v2
"""Shared Pydantic domain models used across modules.

No module redefines these types; all imports come from core.models.
Every model here is request-scoped: constructed per caller request,
returned, then discarded.
"""

from __future__ import annotations

from enum import Enum
from typing import Literal

from pydantic import BaseModel, Field

from imagecomposer.core.errors import ErrorKind

Resolution = Literal["1K", "2K", "4K"]
AspectRatio = Literal["1:1", "16:9", "9:16", "4:3", "3:4", "21:9"]


# === REFERENCES & HISTORY ===


class ReferenceRole(str, Enum):
    """What a reference image stands for in the generated output."""

    HUMAN = "human"
    OBJECT = "object"
    LOGO = "logo"
    PRODUCT = "product"
    REFERENCE = "reference"  # design template to preserve (swap mode)


class ReferenceImage(BaseModel):
    """Caller-supplied reference image, resolved through the image part resolver."""

    image_url: str
    role: ReferenceRole
    name: str | None = None


class HistoryEntry(BaseModel):
    """One prior conversation turn. Ordering in a list is significant."""

    role: Literal["user", "assistant"]
    content: str
    image_urls: list[str] = Field(default_factory=list)


# === IMAGE PAYLOADS ===


class ImagePart(BaseModel):
    """Normalized binary image: never larger than the configured limit, mime is image/*."""

    mime_type: str
    data: bytes


# === REQUEST / RESULT ===


class GenerationRequestOptions(BaseModel):
    """Per-request generation options."""

    resolution: Resolution = "1K"
    aspect_ratio: AspectRatio = "1:1"
    image_count: int = Field(default=1, ge=1)
    reference_images: list[ReferenceImage] = Field(default_factory=list)
    history: list[HistoryEntry] = Field(default_factory=list)


class RefineOptions(BaseModel):
    """Options for single-turn refinement (always one output image)."""

    resolution: Resolution = "1K"
    aspect_ratio: AspectRatio = "1:1"


class ModalityTokens(BaseModel):
    """Token counts for a single modality (TEXT, IMAGE, ...)."""

    prompt_tokens: int = 0
    candidates_tokens: int = 0


class GenerationUsage(BaseModel):
    """Token accounting, summed across every call of one logical request."""

    prompt_token_count: int = 0
    candidates_token_count: int = 0
    total_token_count: int = 0
    modality_breakdown: dict[str, ModalityTokens] | None = None


class GenerationResult(BaseModel):
    """Structured outcome returned to callers. Never raised, always returned."""

    success: bool
    images: list[ImagePart] = Field(default_factory=list)
    text: str | None = None
    error: str | None = None
    error_kind: ErrorKind | None = None
    usage: GenerationUsage | None = None

    @classmethod
    def failure(
        cls,
        error: str,
        kind: ErrorKind,
        text: str | None = None,
        usage: GenerationUsage | None = None,
    ) -> GenerationResult:
        return cls(success=False, error=error, error_kind=kind, text=text, usage=usage)
