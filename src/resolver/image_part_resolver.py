# src/resolver/image_part_resolver.py - v1
"""Image Part Resolver: turns any supported image source into an ImagePart.

Accepted sources, checked in this order:
  - inline data URI      data:image/png;base64,<payload>   (no network I/O)
  - local upload path    /uploads/<file>                   (fetched from the app)
  - remote URL           http(s)://...                     (validated, then fetched)
  - anything else        raw base64 with the fallback mime type

Remote fetches never follow redirects, are bounded in time, and enforce the
size limit twice: on the declared Content-Length before the body is read and
on the bytes actually received.
"""

from __future__ import annotations

import asyncio
import base64
import binascii
import logging
import re
from typing import TYPE_CHECKING
from urllib.parse import unquote

import httpx

from imagecomposer.core.errors import (
    FetchFailedError,
    RedirectNotAllowedError,
    TooLargeError,
    UnsupportedContentTypeError,
    UnsupportedSourceError,
)
from imagecomposer.core.models import ImagePart

if TYPE_CHECKING:
    from imagecomposer.config.settings import Settings
    from imagecomposer.security.url_validator import UrlSafetyValidator

logger = logging.getLogger(__name__)

_DATA_URI = re.compile(r"^data:([^;,]+);base64,(.+)$", re.DOTALL)
DEFAULT_MIME_TYPE = "image/png"


class ImagePartResolver:
    """Resolves image sources into size-checked ImageParts."""

    def __init__(
        self,
        validator: UrlSafetyValidator,
        app_base_url: str,
        uploads_prefix: str = "/uploads/",
        max_bytes: int = 10 * 1024 * 1024,
        fetch_timeout_s: float = 10.0,
        http_client: httpx.AsyncClient | None = None,
    ):
        self._validator = validator
        self._app_base_url = app_base_url.rstrip("/")
        self._uploads_prefix = uploads_prefix
        self._max_bytes = max_bytes
        self._fetch_timeout_s = fetch_timeout_s
        self._http_client = http_client

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        validator: UrlSafetyValidator,
        http_client: httpx.AsyncClient | None = None,
    ) -> ImagePartResolver:
        return cls(
            validator,
            app_base_url=settings.app_base_url,
            uploads_prefix=settings.uploads_path_prefix,
            max_bytes=settings.max_reference_image_bytes,
            fetch_timeout_s=settings.fetch_timeout_s,
            http_client=http_client,
        )

    async def resolve(
        self, source: str, fallback_mime_type: str = DEFAULT_MIME_TYPE,
    ) -> ImagePart:
        """Resolve source into an ImagePart.

        Raises:
            UnsupportedSourceError, FetchFailedError, TooLargeError,
            RedirectNotAllowedError, UnsupportedContentTypeError, and any
            URL validation error for remote sources.
        """
        source = source.strip()
        if not source:
            raise UnsupportedSourceError("Empty image source.")

        if source.startswith("data:"):
            return self._from_data_uri(source)

        if source.startswith("/"):
            return await self._fetch(self._upload_url(source), fallback_mime_type)

        lowered = source.lower()
        if lowered.startswith(("http://", "https://")):
            return await self._fetch(source, fallback_mime_type)

        if "://" in source:
            raise UnsupportedSourceError()

        return ImagePart(
            mime_type=_require_image_mime(fallback_mime_type),
            data=self._check_size(_decode_base64(source)),
        )

    # --- Source kinds ---

    def _from_data_uri(self, source: str) -> ImagePart:
        match = _DATA_URI.match(source)
        if not match:
            raise UnsupportedSourceError("Malformed data URI.")
        mime_type = _require_image_mime(match.group(1))
        return ImagePart(
            mime_type=mime_type,
            data=self._check_size(_decode_base64(match.group(2))),
        )

    def _upload_url(self, path: str) -> str:
        if not path.startswith(self._uploads_prefix):
            raise UnsupportedSourceError("Only uploaded images may be referenced by path.")
        if ".." in path or ".." in unquote(path) or "\\" in path:
            raise UnsupportedSourceError("Invalid upload path.")
        return f"{self._app_base_url}{path}"

    async def _fetch(self, url: str, fallback_mime_type: str) -> ImagePart:
        safe = await self._validator.validate(url)
        try:
            return await asyncio.wait_for(
                self._download(safe.url, fallback_mime_type),
                timeout=self._fetch_timeout_s,
            )
        except asyncio.TimeoutError as exc:
            logger.warning("Image fetch from %s timed out", safe.hostname)
            raise FetchFailedError("Timed out fetching image.") from exc
        except httpx.HTTPError as exc:
            logger.warning("Image fetch from %s failed: %s", safe.hostname, type(exc).__name__)
            raise FetchFailedError() from exc

    async def _download(self, url: str, fallback_mime_type: str) -> ImagePart:
        if self._http_client is not None:
            return await self._stream(self._http_client, url, fallback_mime_type)
        async with httpx.AsyncClient(
            follow_redirects=False, timeout=self._fetch_timeout_s,
        ) as client:
            return await self._stream(client, url, fallback_mime_type)

    async def _stream(
        self, client: httpx.AsyncClient, url: str, fallback_mime_type: str,
    ) -> ImagePart:
        async with client.stream("GET", url, follow_redirects=False) as response:
            if response.is_redirect or 300 <= response.status_code < 400:
                raise RedirectNotAllowedError()
            if response.status_code != 200:
                raise FetchFailedError(f"Failed to fetch image (HTTP {response.status_code}).")

            content_type = response.headers.get("content-type")
            if content_type:
                mime_type = content_type.split(";", 1)[0].strip().lower()
            else:
                mime_type = fallback_mime_type
            mime_type = _require_image_mime(mime_type)

            declared = response.headers.get("content-length", "").strip()
            if declared.isdigit() and int(declared) > self._max_bytes:
                raise TooLargeError(self._too_large_message(int(declared)))

            chunks: list[bytes] = []
            received = 0
            async for chunk in response.aiter_bytes():
                received += len(chunk)
                if received > self._max_bytes:
                    raise TooLargeError(self._too_large_message(received))
                chunks.append(chunk)

        logger.debug("Fetched %d bytes (%s) from %s", received, mime_type, response.url.host)
        return ImagePart(mime_type=mime_type, data=b"".join(chunks))

    # --- Helpers ---

    def _check_size(self, data: bytes) -> bytes:
        if len(data) > self._max_bytes:
            raise TooLargeError(self._too_large_message(len(data)))
        return data

    def _too_large_message(self, size: int) -> str:
        limit_mb = self._max_bytes / (1024 * 1024)
        return f"Image too large: {size / (1024 * 1024):.1f}MB exceeds {limit_mb:g}MB limit"


def _require_image_mime(mime_type: str) -> str:
    if not mime_type.lower().startswith("image/"):
        raise UnsupportedContentTypeError()
    return mime_type.lower()


def _decode_base64(payload: str) -> bytes:
    try:
        return base64.b64decode("".join(payload.split()), validate=True)
    except (binascii.Error, ValueError) as exc:
        raise UnsupportedSourceError("Invalid base64 image data.") from exc
