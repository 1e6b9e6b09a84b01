# src/llm/normalizer.py - v1
"""Response Normalizer: extract images, text and usage from a raw response.

Only the first candidate is read. Inline-binary parts become ImageParts
(image/png when the provider omits the mime type) and text parts are
concatenated in order. Attribute access is duck-typed so SDK objects and
plain test doubles are handled alike.
"""

from __future__ import annotations

import base64
from typing import Any

from imagecomposer.core.models import GenerationUsage, ImagePart, ModalityTokens
from imagecomposer.llm.models import NormalizedResponse

DEFAULT_IMAGE_MIME = "image/png"


def normalize_response(raw: Any) -> NormalizedResponse:
    """Normalize one raw provider response."""
    images: list[ImagePart] = []
    text_chunks: list[str] = []

    for part in _first_candidate_parts(raw):
        if getattr(part, "thought", False):
            continue
        inline = getattr(part, "inline_data", None)
        if inline is not None:
            data = getattr(inline, "data", None) or b""
            if isinstance(data, str):
                data = base64.b64decode(data)
            images.append(
                ImagePart(
                    mime_type=getattr(inline, "mime_type", None) or DEFAULT_IMAGE_MIME,
                    data=data,
                )
            )
            continue
        text = getattr(part, "text", None)
        if text:
            text_chunks.append(text)

    return NormalizedResponse(
        images=images,
        text="".join(text_chunks),
        usage=extract_usage(raw),
    )


def extract_usage(raw: Any) -> GenerationUsage | None:
    """Read usage_metadata token counts, with the per-modality breakdown when present."""
    meta = getattr(raw, "usage_metadata", None)
    if meta is None:
        return None

    breakdown: dict[str, ModalityTokens] = {}
    for attr, field in (
        ("prompt_tokens_details", "prompt_tokens"),
        ("candidates_tokens_details", "candidates_tokens"),
    ):
        for detail in getattr(meta, attr, None) or []:
            modality = getattr(detail, "modality", None)
            modality = str(getattr(modality, "value", modality) or "UNKNOWN")
            entry = breakdown.setdefault(modality, ModalityTokens())
            setattr(entry, field, getattr(entry, field) + (getattr(detail, "token_count", 0) or 0))

    return GenerationUsage(
        prompt_token_count=getattr(meta, "prompt_token_count", 0) or 0,
        candidates_token_count=getattr(meta, "candidates_token_count", 0) or 0,
        total_token_count=getattr(meta, "total_token_count", 0) or 0,
        modality_breakdown=breakdown or None,
    )


def _first_candidate_parts(raw: Any) -> list[Any]:
    candidates = getattr(raw, "candidates", None) or []
    if not candidates:
        return []
    content = getattr(candidates[0], "content", None)
    return list(getattr(content, "parts", None) or [])
