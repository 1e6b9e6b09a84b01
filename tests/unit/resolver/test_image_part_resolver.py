# tests/unit/resolver/test_image_part_resolver.py - v1
"""Tests for resolver/image_part_resolver.py - data URIs, uploads, remote fetches."""

from __future__ import annotations

import base64

import httpx
import pytest

from imagecomposer.core.errors import (
    FetchFailedError,
    HostNotAllowedError,
    InvalidURLError,
    RedirectNotAllowedError,
    TooLargeError,
    UnsupportedContentTypeError,
    UnsupportedSourceError,
)
from imagecomposer.resolver.image_part_resolver import ImagePartResolver

CDN_URL = "https://cdn.public.blob.vercel-storage.com/ref.png"


class _TrackingStream(httpx.AsyncByteStream):
    """Body stream that records whether it was ever read."""

    def __init__(self, body: bytes):
        self.body = body
        self.read = False

    async def __aiter__(self):
        self.read = True
        yield self.body


def _resolver(validator, handler, max_bytes: int = 1024) -> ImagePartResolver:
    return ImagePartResolver(
        validator,
        app_base_url="https://app.example.com/",
        max_bytes=max_bytes,
        fetch_timeout_s=1.0,
        http_client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
    )


def _no_network(request: httpx.Request) -> httpx.Response:
    raise AssertionError(f"unexpected request to {request.url}")


class TestDataUri:
    @pytest.mark.asyncio
    async def test_round_trip_without_network(self, validator, fake_dns, png_bytes):
        payload = base64.b64encode(png_bytes).decode("ascii")
        r = _resolver(validator, _no_network)
        part = await r.resolve(f"data:image/png;base64,{payload}")
        assert part.mime_type == "image/png"
        assert part.data == png_bytes
        assert fake_dns.calls == []

    @pytest.mark.asyncio
    async def test_non_image_mime(self, validator):
        r = _resolver(validator, _no_network)
        with pytest.raises(UnsupportedContentTypeError):
            await r.resolve("data:text/html;base64,PGgxPmhpPC9oMT4=")

    @pytest.mark.asyncio
    async def test_malformed(self, validator):
        r = _resolver(validator, _no_network)
        with pytest.raises(UnsupportedSourceError):
            await r.resolve("data:image/png,notbase64")

    @pytest.mark.asyncio
    async def test_too_large(self, validator):
        r = _resolver(validator, _no_network, max_bytes=4)
        payload = base64.b64encode(b"12345").decode("ascii")
        with pytest.raises(TooLargeError):
            await r.resolve(f"data:image/png;base64,{payload}")


class TestLocalUploads:
    @pytest.mark.asyncio
    async def test_resolved_against_app_url(self, validator, png_bytes):
        seen: list[str] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(str(request.url))
            return httpx.Response(200, headers={"content-type": "image/webp"}, content=png_bytes)

        part = await _resolver(validator, handler).resolve("/uploads/avatars/a.webp")
        assert seen == ["https://app.example.com/uploads/avatars/a.webp"]
        assert part.mime_type == "image/webp"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("path", [
        "/uploads/../api/admin",
        "/uploads/%2e%2e/secrets.png",
        "/uploads/..\\x.png",
    ])
    async def test_traversal_rejected(self, validator, path):
        with pytest.raises(UnsupportedSourceError):
            await _resolver(validator, _no_network).resolve(path)

    @pytest.mark.asyncio
    async def test_outside_uploads_rejected(self, validator):
        with pytest.raises(UnsupportedSourceError):
            await _resolver(validator, _no_network).resolve("/api/generate")


class TestRemoteFetch:
    @pytest.mark.asyncio
    async def test_success(self, validator, png_bytes):
        def handler(request):
            return httpx.Response(
                200, headers={"content-type": "image/jpeg; charset=binary"}, content=png_bytes,
            )

        part = await _resolver(validator, handler).resolve(CDN_URL)
        assert part.mime_type == "image/jpeg"
        assert part.data == png_bytes

    @pytest.mark.asyncio
    @pytest.mark.parametrize("url", [
        "https://app.example.com/uploads/../api/keys",
        "https://app.example.com/uploads/%2e%2e/api/keys",
    ])
    async def test_app_routes_unreachable_through_dot_segments(self, validator, url):
        requested: list[bytes] = []

        def handler(request):
            requested.append(request.url.raw_path)
            return httpx.Response(200, headers={"content-type": "image/png"}, content=b"secret")

        with pytest.raises(InvalidURLError):
            await _resolver(validator, handler).resolve(url)
        assert requested == []

    @pytest.mark.asyncio
    async def test_request_path_matches_validated_path(self, validator, png_bytes):
        requested: list[bytes] = []

        def handler(request):
            requested.append(request.url.raw_path)
            return httpx.Response(200, headers={"content-type": "image/png"}, content=png_bytes)

        await _resolver(validator, handler).resolve(
            "https://app.example.com/uploads/gen/1.png?v=3#section",
        )
        assert requested == [b"/uploads/gen/1.png?v=3"]

    @pytest.mark.asyncio
    async def test_missing_content_type_uses_fallback(self, validator, png_bytes):
        def handler(request):
            return httpx.Response(200, stream=httpx.ByteStream(png_bytes))

        part = await _resolver(validator, handler).resolve(CDN_URL, "image/gif")
        assert part.mime_type == "image/gif"

    @pytest.mark.asyncio
    async def test_validator_runs_first(self, validator):
        with pytest.raises(HostNotAllowedError):
            await _resolver(validator, _no_network).resolve("https://evil.example.net/x.png")
        with pytest.raises(InvalidURLError):
            await _resolver(validator, _no_network).resolve("http://cdn.public.blob.vercel-storage.com/x.png")

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status", [301, 302, 303, 307, 308])
    async def test_redirect_never_followed(self, validator, status):
        calls: list[str] = []

        def handler(request):
            calls.append(str(request.url))
            return httpx.Response(status, headers={"location": "http://169.254.169.254/"})

        with pytest.raises(RedirectNotAllowedError):
            await _resolver(validator, handler).resolve(CDN_URL)
        assert calls == [CDN_URL]

    @pytest.mark.asyncio
    async def test_http_error_status(self, validator):
        with pytest.raises(FetchFailedError, match="404"):
            await _resolver(validator, lambda r: httpx.Response(404)).resolve(CDN_URL)

    @pytest.mark.asyncio
    async def test_non_image_content_type(self, validator):
        def handler(request):
            return httpx.Response(200, headers={"content-type": "text/html"}, content=b"<html>")

        with pytest.raises(UnsupportedContentTypeError):
            await _resolver(validator, handler).resolve(CDN_URL)

    @pytest.mark.asyncio
    async def test_declared_length_one_over_limit_rejected_before_body(self, validator):
        stream = _TrackingStream(b"x" * 8)

        def handler(request):
            return httpx.Response(
                200,
                headers={"content-type": "image/png", "content-length": "1025"},
                stream=stream,
            )

        with pytest.raises(TooLargeError):
            await _resolver(validator, handler, max_bytes=1024).resolve(CDN_URL)
        assert stream.read is False

    @pytest.mark.asyncio
    async def test_declared_length_at_limit_accepted(self, validator):
        def handler(request):
            return httpx.Response(200, headers={"content-type": "image/png"}, content=b"x" * 1024)

        part = await _resolver(validator, handler, max_bytes=1024).resolve(CDN_URL)
        assert len(part.data) == 1024

    @pytest.mark.asyncio
    async def test_actual_size_rechecked_when_header_missing(self, validator):
        def handler(request):
            return httpx.Response(
                200, headers={"content-type": "image/png"}, stream=httpx.ByteStream(b"x" * 2048),
            )

        with pytest.raises(TooLargeError):
            await _resolver(validator, handler, max_bytes=1024).resolve(CDN_URL)

    @pytest.mark.asyncio
    async def test_transport_error(self, validator):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        with pytest.raises(FetchFailedError):
            await _resolver(validator, handler).resolve(CDN_URL)


class TestFallbackBase64:
    @pytest.mark.asyncio
    async def test_raw_base64(self, validator, png_bytes):
        payload = base64.b64encode(png_bytes).decode("ascii")
        part = await _resolver(validator, _no_network).resolve(payload, "image/jpeg")
        assert part.mime_type == "image/jpeg"
        assert part.data == png_bytes

    @pytest.mark.asyncio
    async def test_other_scheme_rejected(self, validator):
        with pytest.raises(UnsupportedSourceError):
            await _resolver(validator, _no_network).resolve("file:///etc/passwd")

    @pytest.mark.asyncio
    async def test_garbage_rejected(self, validator):
        with pytest.raises(UnsupportedSourceError):
            await _resolver(validator, _no_network).resolve("not base64 at all!")

    @pytest.mark.asyncio
    async def test_empty_rejected(self, validator):
        with pytest.raises(UnsupportedSourceError):
            await _resolver(validator, _no_network).resolve("   ")
