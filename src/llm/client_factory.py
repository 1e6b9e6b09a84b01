# src/llm/client_factory.py - v3
"""Factory: instantiate an image-generation client from a provider name.

Adapters are imported lazily so the SDK of an unused provider is never
loaded.
"""

from __future__ import annotations

import importlib
import logging

from imagecomposer.config.settings import Settings
from imagecomposer.llm.base_client import BaseImageClient

logger = logging.getLogger(__name__)

# Registry of provider name -> adapter class path (lazy import).
_PROVIDER_REGISTRY: dict[str, str] = {
    "google": "imagecomposer.llm.adapters.google_adapter.GoogleImageAdapter",
}


class UnsupportedProviderError(ValueError):
    """Raised when a provider is not registered."""


def create_image_client(
    provider: str,
    api_key: str,
    model: str | None = None,
    settings: Settings | None = None,
    **kwargs: object,
) -> BaseImageClient:
    """Instantiate the correct adapter from provider name.

    Args:
        provider: Provider identifier (google).
        api_key: The caller's decrypted provider credential.
        model: Model name. Defaults to settings.gemini_model_id.
        settings: Application settings (for the default model).
        **kwargs: Additional provider-specific arguments.

    Returns:
        Configured BaseImageClient instance.

    Raises:
        UnsupportedProviderError: If provider is not registered.
    """
    if provider not in _PROVIDER_REGISTRY:
        raise UnsupportedProviderError(
            f"Unsupported image provider: {provider!r}. "
            f"Available: {', '.join(sorted(_PROVIDER_REGISTRY))}"
        )

    adapter_cls = _import_class(_PROVIDER_REGISTRY[provider])

    init_kwargs = dict(kwargs)
    init_kwargs["api_key"] = api_key
    if model is None and settings is not None:
        model = settings.gemini_model_id
    if model is not None:
        init_kwargs["model"] = model

    logger.debug("Creating image client: provider=%s, model=%s", provider, model)
    return adapter_cls(**init_kwargs)


def register_provider(name: str, class_path: str) -> None:
    """Register a custom provider adapter.

    Args:
        name: Provider identifier.
        class_path: Fully qualified class path implementing BaseImageClient.
    """
    _PROVIDER_REGISTRY[name] = class_path
    logger.info("Registered image provider: %s -> %s", name, class_path)


def _import_class(class_path: str) -> type:
    """Dynamically import a class from its fully qualified path."""
    module_path, class_name = class_path.rsplit(".", 1)
    module = importlib.import_module(module_path)
    return getattr(module, class_name)
