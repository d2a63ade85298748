"""
Shared fixtures: throwaway signing keys and the key set that publishes them.
Keys are session-scoped; RSA generation is the slow part of the suite.
"""
import pytest
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.hazmat.primitives.asymmetric.rsa import generate_private_key

from jwks_auth.keyset import KeySet
from jwks_auth.tests.signing import EC_KID, JWKS_URL, RSA_KID, ec_jwk, rsa_jwk


@pytest.fixture(scope="session")
def rsa_key():
    return generate_private_key(65537, 2048)


@pytest.fixture(scope="session")
def other_rsa_key():
    return generate_private_key(65537, 2048)


@pytest.fixture(scope="session")
def ec_key():
    return ec.generate_private_key(ec.SECP256R1())


@pytest.fixture
def jwks(rsa_key, ec_key) -> dict:
    return {"keys": [rsa_jwk(rsa_key, RSA_KID), ec_jwk(ec_key, EC_KID)]}


@pytest.fixture
def keyset(jwks) -> KeySet:
    return KeySet.from_jwks(JWKS_URL, jwks)
