"""
Protected API guarded by JWKS token validation.
The JWKS is fetched once at startup into a single shared Validator; operators can
re-fetch it with POST /admin/jwks/refresh (shared "token" header required).
"""
import logging
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, HTTPException, status

from jwks_auth import config
from jwks_auth.auth import get_claims, get_validator, require_shared_token
from jwks_auth.claims import parse_claim_constraints
from jwks_auth.errors import KeySetError
from jwks_auth.validator import Validator

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Fetch the JWKS and build the shared validator. Startup fails if the JWKS cannot be loaded."""
    app.state.validator = await Validator.from_url(
        config.JWKS_URL,
        parse_claim_constraints(config.REQUIRED_CLAIMS),
        leeway=config.LEEWAY_SECONDS,
        timeout=config.FETCH_TIMEOUT_SECONDS,
        unique_kids=config.REQUIRE_UNIQUE_KIDS,
    )
    app.state.shared_token = config.SHARED_TOKEN
    yield


app = FastAPI(title="JWKS Auth", version="0.1.0", lifespan=lifespan)


@app.get("/health")
def health():
    """Health check endpoint. Reports how many keys are loaded (0 before startup)."""
    validator = getattr(app.state, "validator", None)
    keys = len(validator.keyset) if validator is not None else 0
    return {"status": "ok", "service": "jwks_auth", "keys": keys}


@app.get("/me")
def me(claims: dict = Depends(get_claims)):
    """Requires a valid token matching the configured claims. Returns caller identity from token."""
    sub = claims.get("sub", "unknown")
    return {"message": "Authenticated", "sub": sub, "claims": claims}


@app.post("/admin/jwks/refresh", dependencies=[Depends(require_shared_token)])
async def refresh_jwks(validator: Validator = Depends(get_validator)):
    """Re-fetch the JWKS now. On failure the previous keys stay in use."""
    try:
        await validator.refresh_keys(timeout=config.FETCH_TIMEOUT_SECONDS)
    except KeySetError as e:
        logger.warning("JWKS refresh failed: %s", e)
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail={"error": "jwks_unavailable", "error_description": str(e)},
        )
    return {"status": "refreshed", "kids": validator.keyset.kids}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "jwks_auth.main:app",
        host=config.SERVICE_HOST,
        port=config.SERVICE_PORT,
    )
