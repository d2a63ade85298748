"""
Tests for decode_and_verify: structure, key selection, algorithm trust, signature and time claims.
"""
import json
import time

import jwt
import pytest

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
from jwks_auth.tests.signing import EC_KID, JWKS_URL, RSA_KID, flip_signature_bit, make_token, rsa_jwk
from jwks_auth.tokens import decode_and_verify


def _segment(obj) -> str:
    return jwt.utils.base64url_encode(json.dumps(obj).encode("utf-8")).decode("ascii")


def test_valid_token_returns_exact_claims(keyset, rsa_key):
    now = int(time.time())
    claims = {
        "sub": "job_937",
        "iss": "git.example.com",
        "ref_type": "tag",
        "project_id": 97,
        "groups": ["dev", "ops"],
        "iat": now,
        "exp": now + 600,
    }
    token = jwt.encode(claims, rsa_key, algorithm="RS256", headers={"kid": RSA_KID})
    decoded = decode_and_verify(token, keyset)
    assert decoded.claims == claims
    assert decoded.kid == RSA_KID
    assert decoded.algorithm == "RS256"


def test_ec_signed_token_verifies(keyset, ec_key):
    token = make_token(ec_key, {"iss": "X"}, kid=EC_KID, algorithm="ES256")
    assert decode_and_verify(token, keyset).claims["iss"] == "X"


def test_token_with_audience_is_not_rejected_for_audience(keyset, rsa_key):
    token = make_token(rsa_key, {"aud": "some-api"})
    assert decode_and_verify(token, keyset).claims["aud"] == "some-api"


def test_non_string_sub_and_jti_are_returned_unchanged(keyset, rsa_key):
    token = make_token(rsa_key, {"sub": 12345, "jti": 678})
    claims = decode_and_verify(token, keyset).claims
    assert claims["sub"] == 12345
    assert claims["jti"] == 678


@pytest.mark.parametrize(
    "token",
    [
        "",
        "not-a-jwt",
        "a.b",
        "a.b.c.d",
        "!!!.e30.sig",
        "e30.!!!.sig",
    ],
)
def test_structurally_invalid_token_is_malformed(keyset, token):
    with pytest.raises(MalformedToken):
        decode_and_verify(token, keyset)


def _deeply_nested_segment(depth: int = 5000) -> str:
    return jwt.utils.base64url_encode(("[" * depth + "]" * depth).encode("ascii")).decode("ascii")


@pytest.mark.parametrize("position", [0, 1])
def test_deeply_nested_segment_is_malformed(keyset, position):
    segments = [_segment({"alg": "RS256", "kid": RSA_KID}), "e30", "c2ln"]
    segments[position] = _deeply_nested_segment()
    with pytest.raises(MalformedToken):
        decode_and_verify(".".join(segments), keyset)


def test_payload_that_is_not_an_object_is_malformed(keyset):
    token = ".".join([_segment({"alg": "RS256", "kid": RSA_KID}), _segment([1, 2, 3]), "c2ln"])
    with pytest.raises(MalformedToken):
        decode_and_verify(token, keyset)


def test_header_without_kid_is_rejected(keyset, rsa_key):
    token = make_token(rsa_key, kid=None)
    with pytest.raises(MissingKeyId):
        decode_and_verify(token, keyset)


def test_unknown_kid_is_reported_before_signature(keyset, other_rsa_key):
    token = flip_signature_bit(make_token(other_rsa_key, kid="rotated-away"))
    with pytest.raises(UnknownKeyId) as exc_info:
        decode_and_verify(token, keyset)
    assert exc_info.value.kid == "rotated-away"


@pytest.mark.parametrize(
    "kid, expected",
    [(RSA_KID, SignatureInvalid), ("rotated-away", UnknownKeyId)],
)
def test_undecodable_signature_segment_is_checked_after_key_lookup(keyset, kid, expected):
    # a single base64url character can never decode
    token = ".".join([_segment({"alg": "RS256", "kid": kid}), _segment({"sub": "x"}), "a"])
    with pytest.raises(expected):
        decode_and_verify(token, keyset)


def test_flipped_signature_bit_is_signature_invalid(keyset, rsa_key):
    token = flip_signature_bit(make_token(rsa_key, {"iss": "X"}))
    with pytest.raises(SignatureInvalid):
        decode_and_verify(token, keyset)


def test_token_signed_by_other_key_under_known_kid_is_signature_invalid(keyset, other_rsa_key):
    token = make_token(other_rsa_key, kid=RSA_KID)
    with pytest.raises(SignatureInvalid):
        decode_and_verify(token, keyset)


def test_swapped_payload_is_signature_invalid(keyset, rsa_key):
    header, _, signature = make_token(rsa_key, {"role": "user"}).split(".")
    _, payload, _ = make_token(rsa_key, {"role": "admin"}).split(".")
    with pytest.raises(SignatureInvalid):
        decode_and_verify(".".join([header, payload, signature]), keyset)


def test_header_alg_cannot_override_key_alg(keyset):
    # RS256 key; attacker asks for HS256 with a secret of their choosing
    token = jwt.encode(
        {"sub": "attacker"},
        "attacker-chosen-secret-long-enough-for-hs256",
        algorithm="HS256",
        headers={"kid": RSA_KID},
    )
    with pytest.raises(SignatureInvalid):
        decode_and_verify(token, keyset)


def test_key_without_algorithm_is_unsupported(rsa_key):
    ks = KeySet.from_jwks(JWKS_URL, {"keys": [rsa_jwk(rsa_key, "no-alg", alg=None)]})
    token = make_token(rsa_key, kid="no-alg")
    with pytest.raises(UnsupportedAlgorithm):
        decode_and_verify(token, ks)


def test_expired_token_is_rejected(keyset, rsa_key):
    token = make_token(rsa_key, {"iss": "X"}, exp_in=-3600)
    with pytest.raises(TokenExpired):
        decode_and_verify(token, keyset)


def test_recently_expired_token_accepted_within_leeway(keyset, rsa_key):
    token = make_token(rsa_key, exp_in=-5)
    with pytest.raises(TokenExpired):
        decode_and_verify(token, keyset)
    assert decode_and_verify(token, keyset, leeway=60).claims["sub"] == "job_937"


def test_token_without_exp_is_accepted(keyset, rsa_key):
    token = make_token(rsa_key, exp_in=None)
    assert "exp" not in decode_and_verify(token, keyset).claims


def test_nbf_in_future_is_not_yet_valid(keyset, rsa_key):
    token = make_token(rsa_key, {"nbf": int(time.time()) + 3600})
    with pytest.raises(TokenNotYetValid):
        decode_and_verify(token, keyset)


def test_iat_in_future_is_not_yet_valid(keyset, rsa_key):
    token = make_token(rsa_key, {"iat": int(time.time()) + 3600})
    with pytest.raises(TokenNotYetValid):
        decode_and_verify(token, keyset)


def test_non_numeric_exp_is_malformed(keyset, rsa_key):
    token = make_token(rsa_key, {"exp": "tomorrow"})
    with pytest.raises(MalformedToken):
        decode_and_verify(token, keyset)
