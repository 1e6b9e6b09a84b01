# src/api/facade.py - v3
"""Public API facade: the two operations exposed to request handlers.

Usage:
    from imagecomposer.api.facade import generate_with_credential, refine
    result = await generate_with_credential(user_id, prompt, options, credentials=store)

Both functions always return a GenerationResult; they never raise for
validation, resolution or provider failures.

When neither an orchestrator nor settings are given, one default
orchestrator is built from the environment on first use and reused for
every later call.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from imagecomposer.config.settings import Settings
from imagecomposer.core.models import (
    GenerationRequestOptions,
    GenerationResult,
    RefineOptions,
)
from imagecomposer.credentials.store import BaseCredentialStore, EnvCredentialStore
from imagecomposer.generation.orchestrator import ClientFactory, GenerationOrchestrator

if TYPE_CHECKING:
    import httpx

logger = logging.getLogger(__name__)

_default_orchestrator: GenerationOrchestrator | None = None


def build_orchestrator(
    settings: Settings | None = None,
    credentials: BaseCredentialStore | None = None,
    client_factory: ClientFactory | None = None,
    http_client: httpx.AsyncClient | None = None,
) -> GenerationOrchestrator:
    """Build an orchestrator from settings.

    Args:
        settings: Global settings. Loaded from .env if None.
        credentials: Credential store. Defaults to GOOGLE_API_KEY for every user.
        client_factory: Override for the provider client factory (tests).
        http_client: Shared httpx client for reference fetches.
    """
    settings = settings or Settings()
    if credentials is None:
        credentials = EnvCredentialStore(settings.google_api_key)
    return GenerationOrchestrator.from_settings(
        settings, credentials, client_factory=client_factory, http_client=http_client,
    )


async def generate_with_credential(
    user_id: str,
    prompt: str,
    options: GenerationRequestOptions | None = None,
    settings: Settings | None = None,
    credentials: BaseCredentialStore | None = None,
    orchestrator: GenerationOrchestrator | None = None,
) -> GenerationResult:
    """Generate images for prompt with the user's own provider credential."""
    orchestrator = orchestrator or _orchestrator_for(settings, credentials)
    return await orchestrator.generate(user_id, prompt, options)


async def refine(
    user_id: str,
    existing_image_source: str,
    instruction: str,
    options: RefineOptions | None = None,
    settings: Settings | None = None,
    credentials: BaseCredentialStore | None = None,
    orchestrator: GenerationOrchestrator | None = None,
) -> GenerationResult:
    """Refine an existing image with an instruction (single call, one output)."""
    orchestrator = orchestrator or _orchestrator_for(settings, credentials)
    return await orchestrator.refine(user_id, existing_image_source, instruction, options)


def get_default_orchestrator() -> GenerationOrchestrator:
    """Return the process-wide orchestrator, building it on first use."""
    global _default_orchestrator
    if _default_orchestrator is None:
        _default_orchestrator = build_orchestrator()
        logger.info("Default orchestrator built from settings")
    return _default_orchestrator


def reset_default_orchestrator() -> None:
    """Drop the cached default orchestrator (settings reload, tests)."""
    global _default_orchestrator
    _default_orchestrator = None


def _orchestrator_for(
    settings: Settings | None, credentials: BaseCredentialStore | None,
) -> GenerationOrchestrator:
    if settings is None and credentials is None:
        return get_default_orchestrator()
    return build_orchestrator(settings, credentials)
