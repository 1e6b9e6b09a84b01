# src/credentials/store.py - v1
"""Credential stores: look up a user's provider API key.

Storage and decryption live outside this package; EncryptedCredentialStore
only wires a row lookup to a black-box decrypt function.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Awaitable, Callable, Mapping

logger = logging.getLogger(__name__)

RowFetcher = Callable[[str], Awaitable["tuple[str, str] | None"]]
Decryptor = Callable[[str, str], str]


class BaseCredentialStore(ABC):
    """Read-only access to per-user provider credentials."""

    @abstractmethod
    async def get_credential(self, user_id: str) -> str | None:
        """Return the decrypted credential, or None when the user has none."""


class StaticCredentialStore(BaseCredentialStore):
    """In-memory mapping of user id to credential."""

    def __init__(self, credentials: Mapping[str, str]):
        self._credentials = dict(credentials)

    async def get_credential(self, user_id: str) -> str | None:
        return self._credentials.get(user_id) or None


class EnvCredentialStore(BaseCredentialStore):
    """Returns one configured key (GOOGLE_API_KEY) for every user. CLI use."""

    def __init__(self, api_key: str):
        self._api_key = api_key

    async def get_credential(self, user_id: str) -> str | None:
        return self._api_key or None


class EncryptedCredentialStore(BaseCredentialStore):
    """Fetches (ciphertext, iv) for a user and decrypts it.

    Lookup or decryption failures are logged and reported as "no credential",
    so callers see a configuration error rather than an internal one.
    """

    def __init__(self, fetch_row: RowFetcher, decrypt: Decryptor):
        self._fetch_row = fetch_row
        self._decrypt = decrypt

    async def get_credential(self, user_id: str) -> str | None:
        try:
            row = await self._fetch_row(user_id)
            if row is None:
                return None
            ciphertext, iv = row
            return self._decrypt(ciphertext, iv) or None
        except Exception:
            logger.exception("Error fetching API key for user %s", user_id)
            return None
