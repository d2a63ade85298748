"""
Validator service configuration. All values come from the environment.
The JWKS URL and required claims are public policy, not secrets; the shared
token (admin refresh endpoint) is the only secret and has no default.
"""
import os

# JWKS endpoint of the token issuer
JWKS_URL = os.environ.get("JWKS_URL", "http://127.0.0.1:9000/.well-known/jwks.json")

# Claims every token must carry, as a JSON object of strings, e.g. {"iss": "git.example.com", "ref_type": "tag"}
REQUIRED_CLAIMS = os.environ.get("JWKS_REQUIRED_CLAIMS", "{}")

# Allowed clock skew (seconds) for exp / nbf / iat
LEEWAY_SECONDS = int(os.environ.get("JWKS_LEEWAY_SECONDS", "60"))

# Timeout for a single JWKS fetch (seconds)
FETCH_TIMEOUT_SECONDS = float(os.environ.get("JWKS_FETCH_TIMEOUT_SECONDS", "10"))

# Reject a JWKS that publishes the same kid twice (default: first key wins)
REQUIRE_UNIQUE_KIDS = os.environ.get("JWKS_REQUIRE_UNIQUE_KIDS", "").strip().lower() in ("1", "true", "yes")

# Shared token for the manual refresh endpoint (sent in the "token" header). Unset disables the endpoint.
SHARED_TOKEN = os.environ.get("JWKS_SHARED_TOKEN", "").strip() or None

SERVICE_HOST = os.environ.get("JWKS_SERVICE_HOST", "127.0.0.1")
SERVICE_PORT = int(os.environ.get("JWKS_SERVICE_PORT", "7000"))
