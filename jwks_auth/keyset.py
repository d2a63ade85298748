"""
JWKS key set: fetch public keys from an issuer's JWKS endpoint and look them up by kid.
Keys are held until explicitly refreshed; refresh swaps the whole key tuple in one
assignment so concurrent verifications see either the old or the new set, never a mix.
"""
import json
import logging
from dataclasses import dataclass
from typing import Any

import httpx
from jwt import PyJWK, PyJWTError
from jwt.algorithms import get_default_algorithms

from jwks_auth.errors import (
    BodyReadError,
    EncodingError,
    KeySetParseError,
    TransportError,
)

logger = logging.getLogger(__name__)

# Algorithms a key may declare and still be used for verification ("none" never is)
USABLE_ALGORITHMS = frozenset(name for name in get_default_algorithms() if name != "none")


@dataclass(frozen=True)
class VerificationKey:
    """One public key from a JWKS. `algorithm` is the key's own declared alg, or None."""

    kid: str
    key_type: str
    algorithm: str | None
    key: Any


def _parse_jwk(entry: Any, index: int) -> VerificationKey:
    """Build a VerificationKey from one JWK object. Raises KeySetParseError on bad entries."""
    if not isinstance(entry, dict):
        raise KeySetParseError(f"JWKS entry {index} is not an object")
    kid = entry.get("kid")
    if not isinstance(kid, str):
        raise KeySetParseError(f"JWKS entry {index} has no kid")
    kty = entry.get("kty")
    if not isinstance(kty, str):
        raise KeySetParseError(f"JWKS entry {index} (kid={kid}) has no kty")

    alg = entry.get("alg")
    if not (isinstance(alg, str) and alg in USABLE_ALGORITHMS):
        if alg is not None:
            logger.warning("Key %s declares unusable algorithm %r", kid, alg)
        alg = None
        # Still load the material (PyJWK infers a default alg from kty/crv) so bad keys fail here
        entry = {k: v for k, v in entry.items() if k != "alg"}

    try:
        material = PyJWK(entry).key
    except (PyJWTError, KeyError, TypeError, ValueError) as e:
        raise KeySetParseError(f"JWKS entry {index} (kid={kid}) is not a valid key: {e}") from e

    # A JWKS should only carry public halves; verify with the public key if a private one slipped in
    if hasattr(material, "public_key"):
        material = material.public_key()
    return VerificationKey(kid=kid, key_type=kty, algorithm=alg, key=material)


def parse_jwks(document: Any, *, unique_kids: bool = False) -> tuple[VerificationKey, ...]:
    """
    Parse a decoded JWKS document ({"keys": [...]}) into an ordered tuple of keys.
    Duplicate kids are kept in order (lookup returns the first) unless unique_kids is set.
    """
    if not isinstance(document, dict) or not isinstance(document.get("keys"), list):
        raise KeySetParseError("JWKS must be a JSON object with a 'keys' array")
    keys: list[VerificationKey] = []
    seen: set[str] = set()
    for index, entry in enumerate(document["keys"]):
        key = _parse_jwk(entry, index)
        if key.kid in seen:
            if unique_kids:
                raise KeySetParseError(f"Duplicate key id {key.kid}")
            logger.warning("JWKS contains duplicate kid %s; first key wins", key.kid)
        seen.add(key.kid)
        keys.append(key)
    return tuple(keys)


async def _download(url: str, client: httpx.AsyncClient | None, timeout: float | None) -> bytes:
    owns_client = client is None
    if owns_client:
        client = httpx.AsyncClient()
    request_kwargs = {} if timeout is None else {"timeout": timeout}
    try:
        try:
            request = client.build_request("GET", url, **request_kwargs)
            response = await client.send(request, stream=True)
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            raise TransportError(f"Failed to get JWKS from {url}: {e}") from e
        try:
            if response.is_error:
                raise TransportError(f"JWKS endpoint {url} returned HTTP {response.status_code}")
            try:
                return await response.aread()
            except httpx.HTTPError as e:
                raise BodyReadError(f"Failed to read JWKS response body: {e}") from e
        finally:
            await response.aclose()
    finally:
        if owns_client:
            await client.aclose()


async def load_keys(
    url: str,
    *,
    client: httpx.AsyncClient | None = None,
    timeout: float | None = None,
    unique_kids: bool = False,
) -> tuple[VerificationKey, ...]:
    """GET the JWKS at url and parse it. No retries; the caller owns retry policy."""
    body = await _download(url, client, timeout)
    try:
        text = body.decode("utf-8")
    except UnicodeDecodeError as e:
        raise EncodingError(f"Failed to decode JWKS response body: {e}") from e
    try:
        document = json.loads(text)
    except ValueError as e:
        raise KeySetParseError(f"Failed to deserialize JWKS: {e}") from e
    return parse_jwks(document, unique_kids=unique_kids)


class KeySet:
    """Keys fetched from one JWKS URL. Shared by reference; refresh() updates it in place."""

    def __init__(self, url: str, keys: tuple[VerificationKey, ...] = (), *, unique_kids: bool = False):
        self.url = url
        self.unique_kids = unique_kids
        self._keys = tuple(keys)

    @classmethod
    async def fetch(
        cls,
        url: str,
        *,
        client: httpx.AsyncClient | None = None,
        timeout: float | None = None,
        unique_kids: bool = False,
    ) -> "KeySet":
        keys = await load_keys(url, client=client, timeout=timeout, unique_kids=unique_kids)
        logger.info("Loaded %d key(s) from %s", len(keys), url)
        return cls(url, keys, unique_kids=unique_kids)

    @classmethod
    def from_jwks(cls, url: str, document: Any, *, unique_kids: bool = False) -> "KeySet":
        """Build a KeySet from an already-decoded JWKS document."""
        return cls(url, parse_jwks(document, unique_kids=unique_kids), unique_kids=unique_kids)

    def snapshot(self) -> tuple[VerificationKey, ...]:
        return self._keys

    @property
    def kids(self) -> list[str]:
        return [k.kid for k in self._keys]

    def __len__(self) -> int:
        return len(self._keys)

    def lookup(self, kid: str) -> VerificationKey | None:
        """First key whose kid equals `kid` exactly, or None."""
        return find_key(self._keys, kid)

    async def refresh(self, *, client: httpx.AsyncClient | None = None, timeout: float | None = None) -> None:
        """
        Re-fetch self.url and replace the held keys. On failure the current keys are kept
        and the error propagates.
        """
        keys = await load_keys(self.url, client=client, timeout=timeout, unique_kids=self.unique_kids)
        self._keys = keys
        logger.info("Refreshed key set from %s: %d key(s)", self.url, len(keys))


def find_key(keys: tuple[VerificationKey, ...], kid: str) -> VerificationKey | None:
    for key in keys:
        if key.kid == kid:
            return key
    return None
