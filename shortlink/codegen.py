"""Short code generation with long URL deduplication."""

__all__ = ["ALPHABET", "CodeGenerator", "GeneratedCode", "content_hash"]

import hashlib
from typing import NamedTuple

from nanoid import generate

from shortlink.store import LinkStore

ALPHABET = "abcdefghijklmnopqrstuvwxyzABCDEFGHIJKLMNOPQRSTUVWXYZ0123456789"


class GeneratedCode(NamedTuple):
    code: str
    is_new: bool
    url_hash: str


def content_hash(long_url: str) -> str:
    """Return the lowercase hex MD5 digest identifying ``long_url`` in the dedup index."""
    return hashlib.md5(long_url.encode("utf-8")).hexdigest()


class CodeGenerator:
    """Issue short codes, reusing the existing code of an already shortened URL.

    Generation never writes: persisting a new code (and claiming its dedup
    entry) is left to the caller.
    """

    def __init__(self, store: LinkStore, alphabet: str = ALPHABET) -> None:
        self._store = store
        self._alphabet = alphabet

    def random_code(self, length: int) -> str:
        assert isinstance(length, int) and length > 0, f"length must be a positive integer, got {length!r}"
        return generate(self._alphabet, length)

    async def generate(self, long_url: str, length: int) -> GeneratedCode:
        url_hash = content_hash(long_url)
        existing = await self._store.get_dedup(url_hash)
        if existing is not None:
            return GeneratedCode(existing, False, url_hash)
        # Collisions with codes of other URLs are not checked.
        return GeneratedCode(self.random_code(length), True, url_hash)
