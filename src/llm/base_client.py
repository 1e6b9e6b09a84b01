# src/llm/base_client.py - v2
"""Abstract image-generation client interface."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

from imagecomposer.llm.models import ContentTurn, ImageGenerationConfig


class BaseImageClient(ABC):
    """Unified interface for multimodal image-generation providers.

    Implementations must translate their SDK's transport errors into
    ProviderCallError (carrying the HTTP status code) so that error
    classification does not depend on any SDK.
    """

    @abstractmethod
    async def generate_content(
        self,
        contents: list[ContentTurn],
        config: ImageGenerationConfig,
    ) -> Any:
        """Issue one generation call and return the raw provider response."""

    @property
    @abstractmethod
    def provider_name(self) -> str:
        """Provider identifier (google, ...)."""

    @property
    @abstractmethod
    def model(self) -> str:
        """Model identifier used for calls."""
