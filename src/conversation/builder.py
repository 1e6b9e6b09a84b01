# src/conversation/builder.py - v1
"""Conversation Builder: map prior turns plus the new message to provider turns.

Turn order mirrors history order exactly, and within a turn images come
before text. Images are resolved sequentially so their order is preserved;
any resolution failure aborts the whole build.
"""

from __future__ import annotations

import logging

from imagecomposer.core.models import HistoryEntry, ReferenceImage
from imagecomposer.llm.models import ContentPart, ContentTurn
from imagecomposer.resolver.image_part_resolver import ImagePartResolver

logger = logging.getLogger(__name__)

_ROLE_MAP = {"user": "user", "assistant": "model"}


class ConversationBuilder:
    """Builds multi-turn provider contents, resolving every referenced image."""

    def __init__(self, resolver: ImagePartResolver):
        self._resolver = resolver

    async def build(
        self,
        prompt: str,
        references: list[ReferenceImage],
        history: list[HistoryEntry],
    ) -> list[ContentTurn]:
        """Build contents for one generation call.

        Args:
            prompt: The already composed prompt for the new user turn.
            references: Reference images for the new turn, in caller order.
            history: Prior turns, oldest first.

        Returns:
            Provider turns: one per history entry, then the new user turn.
        """
        contents: list[ContentTurn] = []

        for entry in history:
            parts = await self._image_parts(entry.image_urls)
            parts.append(ContentPart.from_text(entry.content))
            contents.append(ContentTurn(role=_ROLE_MAP[entry.role], parts=parts))

        parts = await self._image_parts([ref.image_url for ref in references])
        parts.append(ContentPart.from_text(prompt))
        contents.append(ContentTurn(role="user", parts=parts))

        logger.debug(
            "Built conversation: %d history turns, %d reference images",
            len(history), len(references),
        )
        return contents

    async def _image_parts(self, sources: list[str]) -> list[ContentPart]:
        parts: list[ContentPart] = []
        for source in sources:
            parts.append(ContentPart.from_image(await self._resolver.resolve(source)))
        return parts
