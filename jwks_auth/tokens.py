"""
Token verification against a KeySet. Pure function of (token, keys): no I/O, safe to call
from any number of threads or tasks at once.

The verification algorithm comes from the matched key's declared "alg", never from the
token header, so a token cannot ask to be checked under a different algorithm than the
key owner published.
"""
import binascii
import json
import logging
from dataclasses import dataclass, field
from typing import Any

import jwt
from jwt.utils import base64url_decode

from jwks_auth.errors import (
    MalformedToken,
    MissingKeyId,
    SignatureInvalid,
    TokenExpired,
    TokenNotYetValid,
    UnknownKeyId,
    UnsupportedAlgorithm,
)
from jwks_auth.keyset import KeySet

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DecodedToken:
    header: dict[str, Any]
    claims: dict[str, Any] = field(default_factory=dict)

    @property
    def kid(self) -> str | None:
        return self.header.get("kid")

    @property
    def algorithm(self) -> str | None:
        return self.header.get("alg")


def _decode_segment(segment: str, name: str) -> dict[str, Any]:
    try:
        value = json.loads(base64url_decode(segment))
    except (binascii.Error, RecursionError, TypeError, ValueError) as e:
        raise MalformedToken(f"Token {name} is not valid base64url-encoded JSON") from e
    if not isinstance(value, dict):
        raise MalformedToken(f"Token {name} must be a JSON object")
    return value


def decode_and_verify(token: str, keyset: KeySet, *, leeway: float = 0) -> DecodedToken:
    """
    Verify structure, signature and time claims (exp, nbf, iat) of a compact JWT.
    Returns the header and claims; raises a TokenError subclass on any failure.
    Audience and issuer are not checked here; express them as claim constraints.
    """
    if not isinstance(token, str) or token.count(".") != 2:
        raise MalformedToken("Token must have three dot-separated segments")
    header_segment, payload_segment, signature_segment = token.split(".")
    header = _decode_segment(header_segment, "header")
    _decode_segment(payload_segment, "payload")

    kid = header.get("kid")
    if not isinstance(kid, str):
        raise MissingKeyId()

    key = keyset.lookup(kid)
    if key is None:
        raise UnknownKeyId(kid)
    if key.algorithm is None:
        raise UnsupportedAlgorithm(f"Key {kid} declares no usable algorithm")

    try:
        base64url_decode(signature_segment)
    except (binascii.Error, TypeError, ValueError) as e:
        raise SignatureInvalid("Token signature is not valid base64url") from e

    try:
        claims = jwt.decode(
            token,
            key.key,
            algorithms=[key.algorithm],
            leeway=leeway,
            options={"verify_aud": False, "verify_sub": False, "verify_jti": False},
        )
    except jwt.InvalidAlgorithmError as e:
        raise SignatureInvalid(f"Token is not signed with {key.algorithm}, the algorithm of key {kid}") from e
    except jwt.InvalidSignatureError as e:
        raise SignatureInvalid("Signature verification failed") from e
    except jwt.ExpiredSignatureError as e:
        raise TokenExpired("Token has expired") from e
    except jwt.ImmatureSignatureError as e:
        raise TokenNotYetValid(f"Token is not yet valid: {e}") from e
    except jwt.InvalidTokenError as e:
        # header, payload and signature decoded above, so what is left is a malformed claim (e.g. exp not a number)
        raise MalformedToken(f"Token error: {e}") from e
    except jwt.PyJWTError as e:
        raise SignatureInvalid(f"Key {kid} cannot verify this token: {e}") from e

    return DecodedToken(header=header, claims=claims)
