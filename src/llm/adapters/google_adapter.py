# src/llm/adapters/google_adapter.py - v2
"""Google Gemini image adapter implementing BaseImageClient.

Uses the google-genai SDK async client. Thinking is disabled on every call
(thinking_budget=0) so multi-turn conversations never require thought
signatures on earlier turns.
"""

from __future__ import annotations

from typing import Any

from imagecomposer.core.errors import ProviderCallError
from imagecomposer.llm.base_client import BaseImageClient
from imagecomposer.llm.models import ContentTurn, ImageGenerationConfig


class GoogleImageAdapter(BaseImageClient):
    """Google Gemini image-generation adapter."""

    def __init__(
        self, model: str = "gemini-3-pro-image-preview", api_key: str = "", **kwargs: Any,
    ):
        from google import genai

        self._model = model
        self._client = genai.Client(api_key=api_key, **kwargs)

    async def generate_content(
        self,
        contents: list[ContentTurn],
        config: ImageGenerationConfig,
    ) -> Any:
        from google.genai import errors, types

        sdk_contents = [
            types.Content(
                role=turn.role,
                parts=[
                    types.Part.from_bytes(data=p.image.data, mime_type=p.image.mime_type)
                    if p.image is not None
                    else types.Part.from_text(text=p.text or "")
                    for p in turn.parts
                ],
            )
            for turn in contents
        ]
        sdk_config = types.GenerateContentConfig(
            response_modalities=config.response_modalities,
            image_config=types.ImageConfig(
                aspect_ratio=config.aspect_ratio,
                image_size=config.image_size,
            ),
            thinking_config=types.ThinkingConfig(thinking_budget=config.thinking_budget),
        )

        try:
            return await self._client.aio.models.generate_content(
                model=self._model, contents=sdk_contents, config=sdk_config,
            )
        except errors.APIError as exc:
            raise ProviderCallError(exc.code, exc.message or str(exc)) from exc

    @property
    def provider_name(self) -> str:
        return "google"

    @property
    def model(self) -> str:
        return self._model
