"""
Claim equality constraints: every configured claim must be present in the token and its
value, rendered as a string, must equal the expected literal.
"""
import json
from collections.abc import Mapping
from typing import Any

from jwks_auth.errors import ClaimMismatch, ClaimMissing, ConfigurationError
from jwks_auth.tokens import DecodedToken


def render_claim_value(value: Any) -> str:
    """
    Canonical string form of a claim value. Strings are used as-is; numbers, booleans,
    null, arrays and objects are rendered as compact JSON (true, 42, null, ["a","b"]).
    """
    if isinstance(value, str):
        return value
    return json.dumps(value, separators=(",", ":"), sort_keys=True)


def check_claims(decoded: DecodedToken, constraints: Mapping[str, str]) -> None:
    """
    Raise ClaimMissing / ClaimMismatch for the first failing constraint, taken in name order
    so the reported failure is reproducible. No constraints always passes.
    """
    for name in sorted(constraints):
        expected = constraints[name]
        if name not in decoded.claims:
            raise ClaimMissing(name)
        actual = render_claim_value(decoded.claims[name])
        if actual != expected:
            raise ClaimMismatch(name, expected, actual)


def parse_claim_constraints(text: str) -> dict[str, str]:
    """Parse a JSON object of string values, e.g. '{"iss": "git.example.com", "ref_type": "tag"}'."""
    try:
        data = json.loads(text)
    except ValueError as e:
        raise ConfigurationError(f"Claim constraints are not valid JSON: {e}") from e
    if not isinstance(data, dict):
        raise ConfigurationError("Claim constraints must be a JSON object")
    for name, value in data.items():
        if not isinstance(value, str):
            raise ConfigurationError(f"Expected value for claim {name} must be a string")
    return data
