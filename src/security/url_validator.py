# src/security/url_validator.py - v2
"""URL Safety Validator: decides whether a remote image URL may be fetched.

Rules are applied in order and fail closed on the first violation:
  1. URL must parse, no "." or ".." path segments    -> InvalidURL
     (raw or percent-decoded)
  2. no embedded user:pass@                          -> CredentialsNotAllowed
  3. https only (http for loopback outside prod)     -> InvalidURL
  4. host on the exact allowlist or a trusted suffix -> HostNotAllowed
  5. app's own host: path under the uploads prefix   -> HostNotAllowed
  6. literal IPs must not be private                 -> PrivateAddressNotAllowed
  7. names are resolved (all records, bounded time)  -> HostUnresolvable /
     and every address must be public                   PrivateAddressNotAllowed

Step 7 always runs for domain names, including allowlisted ones: a name can
be re-pointed at an internal address after it was approved (DNS rebinding).
"""

from __future__ import annotations

import asyncio
import logging
import socket
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Awaitable, Callable
from urllib.parse import unquote, urlsplit, urlunsplit

from imagecomposer.core.errors import (
    CredentialsNotAllowedError,
    HostNotAllowedError,
    HostUnresolvableError,
    InvalidURLError,
    PrivateAddressNotAllowedError,
)
from imagecomposer.security.address_policy import is_loopback, is_private, parse_ip

if TYPE_CHECKING:
    from imagecomposer.config.settings import Settings

logger = logging.getLogger(__name__)

LOOPBACK_HOSTS = frozenset({"localhost", "127.0.0.1", "::1"})

HostResolver = Callable[[str], Awaitable[list[str]]]


@dataclass(frozen=True)
class UrlPolicy:
    """Immutable fetch policy, built once at startup."""

    app_hostname: str
    production: bool = True
    uploads_prefix: str = "/uploads/"
    trusted_suffixes: tuple[str, ...] = ()
    dns_timeout_s: float = 2.0
    exact_hosts: frozenset[str] = field(default=frozenset())

    def __post_init__(self) -> None:
        hosts = set(self.exact_hosts)
        if self.app_hostname:
            hosts.add(self.app_hostname.lower())
        if not self.production:
            hosts |= LOOPBACK_HOSTS
        object.__setattr__(self, "exact_hosts", frozenset(hosts))
        object.__setattr__(
            self,
            "trusted_suffixes",
            tuple(s.lower().lstrip(".") for s in self.trusted_suffixes if s),
        )

    @classmethod
    def from_settings(cls, settings: Settings) -> UrlPolicy:
        return cls(
            app_hostname=settings.app_hostname,
            production=settings.is_production,
            uploads_prefix=settings.uploads_path_prefix,
            trusted_suffixes=tuple(settings.trusted_storage_suffixes_list),
            dns_timeout_s=settings.dns_timeout_s,
        )

    def host_allowed(self, hostname: str) -> bool:
        if hostname in self.exact_hosts:
            return True
        return any(
            hostname == suffix or hostname.endswith("." + suffix)
            for suffix in self.trusted_suffixes
        )


@dataclass(frozen=True)
class SafeURL:
    """A URL that passed every validation rule."""

    url: str
    scheme: str
    hostname: str
    path: str
    addresses: tuple[str, ...] = ()


async def resolve_host(hostname: str) -> list[str]:
    """Resolve every A/AAAA record for hostname via the event loop's resolver."""
    loop = asyncio.get_running_loop()
    infos = await loop.getaddrinfo(
        hostname, None, family=socket.AF_UNSPEC, type=socket.SOCK_STREAM,
    )
    return sorted({info[4][0] for info in infos})


class UrlSafetyValidator:
    """Validates remote image URLs against an immutable UrlPolicy."""

    def __init__(self, policy: UrlPolicy, resolver: HostResolver | None = None):
        self._policy = policy
        self._resolver = resolver or resolve_host

    @property
    def policy(self) -> UrlPolicy:
        return self._policy

    async def validate(self, url: str) -> SafeURL:
        """Validate url or raise the first rule violation.

        Raises:
            InvalidURLError, CredentialsNotAllowedError, HostNotAllowedError,
            PrivateAddressNotAllowedError, HostUnresolvableError.
        """
        policy = self._policy

        try:
            parts = urlsplit(url.strip())
            hostname = (parts.hostname or "").lower()
            _ = parts.port  # ValueError on a malformed port
        except ValueError as exc:
            raise InvalidURLError() from exc
        if not parts.scheme or not hostname:
            raise InvalidURLError()
        if _has_dot_segments(parts.path):
            raise InvalidURLError("Image URLs must not contain relative path segments.")

        if parts.username is not None or parts.password is not None or "@" in parts.netloc:
            raise CredentialsNotAllowedError()

        scheme = parts.scheme.lower()
        dev_loopback = not policy.production and hostname in LOOPBACK_HOSTS
        if scheme != "https" and not (scheme == "http" and dev_loopback):
            raise InvalidURLError("Image URLs must use https.")

        if not policy.host_allowed(hostname):
            logger.info("Rejected image host %s (not allowlisted)", hostname)
            raise HostNotAllowedError()

        path = parts.path or "/"
        # Fetch exactly what was checked: no fragment, path as validated.
        checked = urlunsplit((scheme, parts.netloc, path, parts.query, ""))
        if hostname == policy.app_hostname and not path.startswith(policy.uploads_prefix):
            raise HostNotAllowedError("Only uploaded images may be fetched from this host.")

        literal = parse_ip(hostname)
        if literal is not None:
            if is_private(literal) and not (not policy.production and is_loopback(literal)):
                raise PrivateAddressNotAllowedError()
            return SafeURL(checked, scheme, hostname, path, (str(literal),))

        if dev_loopback:
            return SafeURL(checked, scheme, hostname, path)

        addresses = await self._resolve(hostname)
        for address in addresses:
            ip = parse_ip(address)
            if ip is None or is_private(ip):
                logger.warning("Host %s resolves to a private address", hostname)
                logger.debug("Resolved addresses for %s: %s", hostname, addresses)
                raise PrivateAddressNotAllowedError()

        return SafeURL(checked, scheme, hostname, path, tuple(addresses))

    async def _resolve(self, hostname: str) -> list[str]:
        try:
            addresses = await asyncio.wait_for(
                self._resolver(hostname), timeout=self._policy.dns_timeout_s,
            )
        except asyncio.TimeoutError as exc:
            logger.debug("DNS timeout for %s", hostname)
            raise HostUnresolvableError() from exc
        except OSError as exc:
            logger.debug("DNS failure for %s: %s", hostname, exc)
            raise HostUnresolvableError() from exc
        if not addresses:
            raise HostUnresolvableError()
        return list(addresses)


def _has_dot_segments(path: str) -> bool:
    """True if path has a "." or ".." segment, raw or percent-decoded.

    HTTP clients collapse dot segments before sending, and many servers
    decode before routing, so either form could escape a checked prefix.
    """
    for candidate in (path, unquote(path)):
        segments = candidate.replace("\\", "/").split("/")
        if any(segment in (".", "..") for segment in segments):
            return True
    return False
