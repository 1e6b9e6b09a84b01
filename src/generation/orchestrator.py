# src/generation/orchestrator.py - v2
"""Generation Orchestrator: one logical request -> one GenerationResult.

Flow for generate():
  1. validate input limits, resolve the caller's credential (no credential:
     fail before any network call)
  2. compose the prompt and build the conversation (all images resolved)
  3. primary call; zero images is a failure that still reports usage
  4. if more images were requested and the primary returned exactly one,
     issue image_count - 1 identical calls in parallel. Their failures are
     logged and dropped; only the primary can fail the request
  5. sum usage over the primary and the successful fan-out calls

There is no retry loop: callers own retry policy. Fan-out calls run inside
the caller's task, so cancelling the caller cancels them too.
"""

from __future__ import annotations

import asyncio
import functools
import logging
from typing import TYPE_CHECKING, Callable

from imagecomposer.core.errors import (
    ComposerError,
    ErrorKind,
    InvalidRequestError,
    NoCredentialError,
)
from imagecomposer.core.models import (
    GenerationRequestOptions,
    GenerationResult,
    RefineOptions,
)
from imagecomposer.conversation.builder import ConversationBuilder
from imagecomposer.llm.error_classifier import classify_error
from imagecomposer.llm.models import (
    ContentPart,
    ContentTurn,
    ImageGenerationConfig,
    NormalizedResponse,
)
from imagecomposer.llm.normalizer import normalize_response
from imagecomposer.logging.context import request_context, set_call_context
from imagecomposer.prompting.composer import compose_prompt, compose_refinement_prompt
from imagecomposer.tracking.usage import aggregate_usage

if TYPE_CHECKING:
    import httpx

    from imagecomposer.config.settings import Settings
    from imagecomposer.credentials.store import BaseCredentialStore
    from imagecomposer.llm.base_client import BaseImageClient
    from imagecomposer.resolver.image_part_resolver import ImagePartResolver
    from imagecomposer.security.url_validator import HostResolver

logger = logging.getLogger(__name__)

ClientFactory = Callable[[str], "BaseImageClient"]

NO_IMAGES_MESSAGE = "No images were generated. Please try a different prompt."
NO_REFINED_IMAGE_MESSAGE = "No images were generated. Please try different instructions."
REFINE_UNEXPECTED_MESSAGE = "An unexpected error occurred during image refinement."


class GenerationOrchestrator:
    """Serves generate and refine requests against one provider."""

    def __init__(
        self,
        credentials: BaseCredentialStore,
        resolver: ImagePartResolver,
        client_factory: ClientFactory,
        provider_timeout_s: float = 180.0,
        max_images: int = 4,
        max_prompt_length: int = 10_000,
        max_instruction_length: int = 5_000,
    ):
        self._credentials = credentials
        self._resolver = resolver
        self._builder = ConversationBuilder(resolver)
        self._client_factory = client_factory
        self._provider_timeout_s = provider_timeout_s
        self._max_images = max_images
        self._max_prompt_length = max_prompt_length
        self._max_instruction_length = max_instruction_length

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        credentials: BaseCredentialStore,
        client_factory: ClientFactory | None = None,
        http_client: httpx.AsyncClient | None = None,
        host_resolver: HostResolver | None = None,
    ) -> GenerationOrchestrator:
        """Wire the default validator, resolver and provider client factory."""
        from imagecomposer.llm.client_factory import create_image_client
        from imagecomposer.resolver.image_part_resolver import ImagePartResolver
        from imagecomposer.security.url_validator import UrlPolicy, UrlSafetyValidator

        validator = UrlSafetyValidator(UrlPolicy.from_settings(settings), resolver=host_resolver)
        resolver = ImagePartResolver.from_settings(settings, validator, http_client=http_client)
        if client_factory is None:
            client_factory = functools.partial(
                create_image_client, settings.image_provider, settings=settings,
            )
        return cls(
            credentials,
            resolver,
            client_factory,
            provider_timeout_s=settings.provider_timeout_s,
            max_images=settings.max_images_per_generation,
            max_prompt_length=settings.max_prompt_length,
            max_instruction_length=settings.max_instruction_length,
        )

    # --- Public operations ---

    async def generate(
        self,
        user_id: str,
        prompt: str,
        options: GenerationRequestOptions | None = None,
    ) -> GenerationResult:
        """Generate options.image_count images for prompt. Never raises."""
        options = options or GenerationRequestOptions()
        with request_context(user_id) as request_id:
            logger.info(
                "Generation requested: request_id=%s, images=%d, references=%d, history=%d",
                request_id, options.image_count, len(options.reference_images), len(options.history),
            )
            try:
                return await self._generate(user_id, prompt, options)
            except Exception as exc:
                return self._failure(exc)

    async def refine(
        self,
        user_id: str,
        existing_image_source: str,
        instruction: str,
        options: RefineOptions | None = None,
    ) -> GenerationResult:
        """Refine one existing image with an instruction. Single call, never raises."""
        options = options or RefineOptions()
        with request_context(user_id) as request_id:
            set_call_context("refine")
            logger.info("Refinement requested: request_id=%s", request_id)
            try:
                return await self._refine(user_id, existing_image_source, instruction, options)
            except Exception as exc:
                return self._failure(exc, REFINE_UNEXPECTED_MESSAGE)

    # --- Flows ---

    async def _generate(
        self, user_id: str, prompt: str, options: GenerationRequestOptions,
    ) -> GenerationResult:
        self._check_text(prompt, self._max_prompt_length, "Prompt")
        if options.image_count > self._max_images:
            raise InvalidRequestError(
                f"Too many images requested. Maximum {self._max_images} per generation."
            )

        client = await self._client_for(user_id)

        composed = compose_prompt(prompt.strip(), options.reference_images)
        contents = await self._builder.build(
            composed, options.reference_images, options.history,
        )
        config = ImageGenerationConfig(
            aspect_ratio=options.aspect_ratio, image_size=options.resolution,
        )

        set_call_context("primary")
        primary = await self._call(client, contents, config)
        if not primary.images:
            logger.warning("Primary call returned no images")
            return GenerationResult.failure(
                primary.text or NO_IMAGES_MESSAGE,
                ErrorKind.PROVIDER_ERROR,
                text=primary.text or None,
                usage=primary.usage,
            )

        successes = [primary]
        if options.image_count > 1 and len(primary.images) == 1:
            successes += await self._fan_out(
                client, contents, config, options.image_count - 1,
            )

        images = [image for response in successes for image in response.images]
        texts = [response.text for response in successes if response.text]
        usage = aggregate_usage([response.usage for response in successes])

        logger.info(
            "Generation complete: images=%d/%d, calls=%d, total_tokens=%s",
            len(images), options.image_count, len(successes),
            usage.total_token_count if usage else "n/a",
        )
        return GenerationResult(
            success=True,
            images=images,
            text="\n".join(texts) or None,
            usage=usage,
        )

    async def _refine(
        self, user_id: str, source: str, instruction: str, options: RefineOptions,
    ) -> GenerationResult:
        self._check_text(instruction, self._max_instruction_length, "Instruction")
        client = await self._client_for(user_id)

        image = await self._resolver.resolve(source)
        contents = [
            ContentTurn(
                role="user",
                parts=[
                    ContentPart.from_image(image),
                    ContentPart.from_text(compose_refinement_prompt(instruction)),
                ],
            )
        ]
        config = ImageGenerationConfig(
            aspect_ratio=options.aspect_ratio, image_size=options.resolution,
        )

        response = await self._call(client, contents, config)
        if not response.images:
            return GenerationResult.failure(
                response.text or NO_REFINED_IMAGE_MESSAGE,
                ErrorKind.PROVIDER_ERROR,
                text=response.text or None,
                usage=response.usage,
            )
        return GenerationResult(
            success=True,
            images=response.images[:1],
            text=response.text or None,
            usage=response.usage,
        )

    # --- Steps ---

    async def _client_for(self, user_id: str) -> BaseImageClient:
        api_key = await self._credentials.get_credential(user_id)
        if not api_key:
            raise NoCredentialError()
        return self._client_factory(api_key)

    async def _call(
        self,
        client: BaseImageClient,
        contents: list[ContentTurn],
        config: ImageGenerationConfig,
    ) -> NormalizedResponse:
        raw = await asyncio.wait_for(
            client.generate_content(contents, config), timeout=self._provider_timeout_s,
        )
        return normalize_response(raw)

    async def _fan_out(
        self,
        client: BaseImageClient,
        contents: list[ContentTurn],
        config: ImageGenerationConfig,
        count: int,
    ) -> list[NormalizedResponse]:
        """Run count extra calls in parallel; return only those that produced images."""

        async def one(index: int) -> NormalizedResponse:
            set_call_context(f"fanout-{index}")
            return await self._call(client, contents, config)

        results = await asyncio.gather(
            *(one(i) for i in range(1, count + 1)), return_exceptions=True,
        )

        successes: list[NormalizedResponse] = []
        for index, result in enumerate(results, start=1):
            if isinstance(result, BaseException):
                classified = classify_error(result)
                logger.warning(
                    "Fan-out call %d/%d failed (%s): %s",
                    index, count, classified.kind.value, classified.message,
                )
                continue
            if not result.images:
                logger.warning("Fan-out call %d/%d returned no images", index, count)
                continue
            successes.append(result)
        return successes

    # --- Helpers ---

    @staticmethod
    def _check_text(value: str, max_length: int, label: str) -> None:
        if not value or not value.strip():
            raise InvalidRequestError(f"{label} is required.")
        if len(value) > max_length:
            raise InvalidRequestError(
                f"{label} too long. Maximum {max_length} characters allowed."
            )

    @staticmethod
    def _failure(exc: Exception, unexpected_message: str | None = None) -> GenerationResult:
        classified = (
            classify_error(exc, unexpected_message)
            if unexpected_message
            else classify_error(exc)
        )
        if isinstance(exc, ComposerError):
            logger.warning("Request failed (%s): %s", classified.kind.value, classified.message)
        else:
            logger.exception("Request failed with unexpected error")
        return GenerationResult.failure(classified.message, classified.kind)
