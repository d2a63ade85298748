"""
Validator: one JWKS source plus one claim policy. Build it once and share it across all
request handlers; verify() is read-only and needs no locking.
"""
import logging
from collections.abc import Mapping
from types import MappingProxyType

import httpx

from jwks_auth.claims import check_claims
from jwks_auth.errors import JWKSAuthError
from jwks_auth.keyset import KeySet
from jwks_auth.tokens import DecodedToken, decode_and_verify

logger = logging.getLogger(__name__)


class Validator:
    def __init__(
        self,
        keyset: KeySet,
        constraints: Mapping[str, str] | None = None,
        *,
        leeway: float = 0,
    ):
        self.keyset = keyset
        self._constraints = MappingProxyType(dict(constraints or {}))
        self.leeway = leeway

    @classmethod
    async def from_url(
        cls,
        url: str,
        constraints: Mapping[str, str] | None = None,
        *,
        leeway: float = 0,
        client: httpx.AsyncClient | None = None,
        timeout: float | None = None,
        unique_kids: bool = False,
    ) -> "Validator":
        """Fetch the JWKS at url and build a validator around it."""
        keyset = await KeySet.fetch(url, client=client, timeout=timeout, unique_kids=unique_kids)
        return cls(keyset, constraints, leeway=leeway)

    @property
    def constraints(self) -> Mapping[str, str]:
        return self._constraints

    def verify(self, token: str) -> DecodedToken:
        """
        Verify signature, time claims and claim constraints. Returns the decoded token;
        raises a JWKSAuthError subclass describing the first failure.
        """
        try:
            decoded = decode_and_verify(token, self.keyset, leeway=self.leeway)
            check_claims(decoded, self._constraints)
        except JWKSAuthError as e:
            logger.debug("Token rejected: %s", e)
            raise
        return decoded

    async def refresh_keys(self, *, client: httpx.AsyncClient | None = None, timeout: float | None = None) -> None:
        """Re-fetch the JWKS; verifications in flight keep using the keys they started with."""
        await self.keyset.refresh(client=client, timeout=timeout)
