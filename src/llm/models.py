# src/llm/models.py - v2
"""Provider-neutral content types: ContentPart, ContentTurn, ImageGenerationConfig,
NormalizedResponse.

Adapters translate these into their SDK's request structures.
"""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field, model_validator

from imagecomposer.core.models import GenerationUsage, ImagePart


class ContentPart(BaseModel):
    """One part of a turn: either text or an inline image."""

    text: str | None = None
    image: ImagePart | None = None

    @model_validator(mode="after")
    def exactly_one(self) -> ContentPart:
        if (self.text is None) == (self.image is None):
            raise ValueError("ContentPart needs exactly one of text or image")
        return self

    @classmethod
    def from_text(cls, text: str) -> ContentPart:
        return cls(text=text)

    @classmethod
    def from_image(cls, image: ImagePart) -> ContentPart:
        return cls(image=image)


class ContentTurn(BaseModel):
    """A single conversation turn in the provider's role vocabulary."""

    role: Literal["user", "model"]
    parts: list[ContentPart]


class ImageGenerationConfig(BaseModel):
    """Per-call generation settings."""

    aspect_ratio: str = "1:1"
    image_size: str = "1K"
    response_modalities: list[str] = Field(default_factory=lambda: ["TEXT", "IMAGE"])
    # 0 disables thinking, so multi-turn refinement never needs thought signatures.
    thinking_budget: int = 0


class NormalizedResponse(BaseModel):
    """Images, text and usage extracted from one raw provider response."""

    images: list[ImagePart] = Field(default_factory=list)
    text: str = ""
    usage: GenerationUsage | None = None
