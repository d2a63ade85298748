"""
Error taxonomy for JWKS fetching, token verification and claim checks.
Every failure is surfaced to the caller; nothing here is retried.
"""


class JWKSAuthError(Exception):
    """Base class for every validator error."""


class ConfigurationError(JWKSAuthError):
    """Invalid validator configuration (e.g. claim constraints not a JSON object of strings)."""


# --- Key set (fetch / parse) ---


class KeySetError(JWKSAuthError):
    """Failure while obtaining a JWKS."""


class TransportError(KeySetError):
    """Request could not be sent, connection failed, or endpoint answered with an error status."""


class BodyReadError(KeySetError):
    """Response body could not be read."""


class EncodingError(KeySetError):
    """Response body is not valid UTF-8."""


class KeySetParseError(KeySetError):
    """Body is not JSON or does not have the JWKS shape."""


# --- Token ---


class TokenError(JWKSAuthError):
    """Token failed structural, cryptographic or time validation."""


class MalformedToken(TokenError):
    pass


class MissingKeyId(TokenError):
    def __init__(self, message: str = "kid attribute must be specified in the jwt header"):
        super().__init__(message)


class UnknownKeyId(TokenError):
    def __init__(self, kid: str):
        self.kid = kid
        super().__init__(f"Unknown key id {kid}")


class UnsupportedAlgorithm(TokenError):
    pass


class SignatureInvalid(TokenError):
    pass


class TokenExpired(TokenError):
    pass


class TokenNotYetValid(TokenError):
    pass


# --- Claims ---


class ClaimError(JWKSAuthError):
    """Token is valid but does not satisfy the claim policy."""


class ClaimMissing(ClaimError):
    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Claim {name} is not in the token")


class ClaimMismatch(ClaimError):
    def __init__(self, name: str, expected: str, actual: str):
        self.name = name
        self.expected = expected
        self.actual = actual
        super().__init__(f"Expected claim {name} == {expected} but found {actual}")
