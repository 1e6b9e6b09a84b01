# tests/conftest.py - v2
"""Shared test fixtures for unit and integration tests.

Provides URL policies, a scripted DNS resolver, raw provider response
builders and a scripted image client. No network I/O: every edge is faked.
"""

from __future__ import annotations

import base64
from types import SimpleNamespace
from typing import Any, Callable

import httpx
import pytest

from imagecomposer.core.models import ImagePart
from imagecomposer.llm.base_client import BaseImageClient
from imagecomposer.llm.models import ContentTurn, ImageGenerationConfig
from imagecomposer.resolver.image_part_resolver import ImagePartResolver
from imagecomposer.security.url_validator import UrlPolicy, UrlSafetyValidator

PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 24
APP_HOST = "app.example.com"
STORAGE_SUFFIX = "public.blob.vercel-storage.com"
PUBLIC_IP = "93.184.216.34"


# === FIXTURES: Sample data ===


@pytest.fixture
def png_bytes() -> bytes:
    return PNG_BYTES


@pytest.fixture
def png_data_uri() -> str:
    return "data:image/png;base64," + base64.b64encode(PNG_BYTES).decode("ascii")


@pytest.fixture
def image_part() -> ImagePart:
    return ImagePart(mime_type="image/png", data=PNG_BYTES)


# === FIXTURES: URL policy & DNS ===


class FakeDNS:
    """Scripted async resolver: host -> addresses, or an exception to raise."""

    def __init__(self, records: dict[str, Any] | None = None):
        self.records: dict[str, Any] = dict(records or {})
        self.calls: list[str] = []

    async def __call__(self, hostname: str) -> list[str]:
        self.calls.append(hostname)
        value = self.records.get(hostname)
        if value is None:
            raise OSError(f"no records for {hostname}")
        if isinstance(value, BaseException):
            raise value
        return list(value)


@pytest.fixture
def fake_dns() -> FakeDNS:
    return FakeDNS({
        APP_HOST: [PUBLIC_IP],
        f"cdn.{STORAGE_SUFFIX}": [PUBLIC_IP, "2606:2800:220:1::1"],
    })


@pytest.fixture
def prod_policy() -> UrlPolicy:
    return UrlPolicy(
        app_hostname=APP_HOST,
        production=True,
        trusted_suffixes=(f".{STORAGE_SUFFIX}",),
        dns_timeout_s=0.5,
    )


@pytest.fixture
def dev_policy() -> UrlPolicy:
    return UrlPolicy(
        app_hostname="localhost",
        production=False,
        trusted_suffixes=(f".{STORAGE_SUFFIX}",),
        dns_timeout_s=0.5,
    )


@pytest.fixture
def validator(prod_policy: UrlPolicy, fake_dns: FakeDNS) -> UrlSafetyValidator:
    return UrlSafetyValidator(prod_policy, resolver=fake_dns)


# === FIXTURES: HTTP ===


@pytest.fixture
def image_server(png_bytes: bytes) -> Callable[[], httpx.AsyncClient]:
    """Build an httpx client whose transport serves PNG_BYTES for every GET."""

    def factory(handler: Callable[[httpx.Request], httpx.Response] | None = None) -> httpx.AsyncClient:
        def default(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, headers={"content-type": "image/png"}, content=png_bytes)

        return httpx.AsyncClient(transport=httpx.MockTransport(handler or default))

    return factory


@pytest.fixture
def resolver(validator: UrlSafetyValidator, image_server) -> ImagePartResolver:
    return ImagePartResolver(
        validator,
        app_base_url=f"https://{APP_HOST}",
        max_bytes=1024,
        fetch_timeout_s=1.0,
        http_client=image_server(),
    )


# === FIXTURES: Provider responses ===


def make_raw_response(
    images: list[tuple[bytes, str | None]] | None = None,
    text: str | None = None,
    usage: tuple[int, int, int] | None = (10, 1290, 1300),
    modality_details: bool = False,
) -> SimpleNamespace:
    """Build an object shaped like a google-genai GenerateContentResponse."""
    parts = [
        SimpleNamespace(inline_data=SimpleNamespace(data=data, mime_type=mime), text=None)
        for data, mime in (images or [])
    ]
    if text is not None:
        parts.append(SimpleNamespace(inline_data=None, text=text))

    usage_metadata = None
    if usage is not None:
        prompt, candidates, total = usage
        usage_metadata = SimpleNamespace(
            prompt_token_count=prompt,
            candidates_token_count=candidates,
            total_token_count=total,
            prompt_tokens_details=(
                [SimpleNamespace(modality=SimpleNamespace(value="TEXT"), token_count=prompt)]
                if modality_details else None
            ),
            candidates_tokens_details=(
                [SimpleNamespace(modality=SimpleNamespace(value="IMAGE"), token_count=candidates)]
                if modality_details else None
            ),
        )

    return SimpleNamespace(
        candidates=[SimpleNamespace(content=SimpleNamespace(parts=parts))],
        usage_metadata=usage_metadata,
    )


@pytest.fixture
def raw_response() -> Callable[..., SimpleNamespace]:
    return make_raw_response


class ScriptedImageClient(BaseImageClient):
    """Returns (or raises) scripted outcomes in call order; records every call."""

    def __init__(self, outcomes: list[Any]):
        self.outcomes = list(outcomes)
        self.calls: list[tuple[list[ContentTurn], ImageGenerationConfig]] = []

    async def generate_content(self, contents, config):
        self.calls.append((contents, config))
        outcome = self.outcomes.pop(0) if self.outcomes else make_raw_response([(PNG_BYTES, "image/png")])
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome

    @property
    def provider_name(self) -> str:
        return "scripted"

    @property
    def model(self) -> str:
        return "scripted-model"


@pytest.fixture
def scripted_client() -> Callable[[list[Any]], ScriptedImageClient]:
    return ScriptedImageClient
