"""
FastAPI adapter for the validator: bearer extraction, 401 on any rejection.
Also the shared-token guard used by operator endpoints (e.g. manual JWKS refresh).
"""
import logging
import secrets
from typing import Annotated

from fastapi import Depends, Header, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from jwks_auth.errors import JWKSAuthError
from jwks_auth.tokens import DecodedToken
from jwks_auth.validator import Validator

logger = logging.getLogger(__name__)

security = HTTPBearer(auto_error=False)


def _unauthorized(reason: str, error: str = "invalid_token") -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail={"error": error, "error_description": f"Not authorized - {reason}"},
        headers={"WWW-Authenticate": "Bearer"},
    )


def get_bearer_token(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(security)],
) -> str:
    """Extract Bearer token from Authorization header. Raises 401 if missing or not Bearer."""
    if credentials is None or credentials.scheme.lower() != "bearer" or not credentials.credentials:
        raise _unauthorized("Missing bearer token", error="invalid_request")
    return credentials.credentials


def get_validator(request: Request) -> Validator:
    """Dependency: the shared Validator built at startup."""
    validator = getattr(request.app.state, "validator", None)
    if validator is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail={"error": "temporarily_unavailable", "error_description": "Token validator not initialized"},
        )
    return validator


def authorize_bearer(validator: Validator, token: str) -> DecodedToken:
    """
    Verify token with validator. Returns the decoded token, or raises 401 carrying the
    rejection reason.
    """
    try:
        return validator.verify(token)
    except JWKSAuthError as e:
        raise _unauthorized(str(e)) from e


def get_claims(
    validator: Annotated[Validator, Depends(get_validator)],
    token: Annotated[str, Depends(get_bearer_token)],
) -> dict:
    """Dependency: valid Bearer token -> decoded claims."""
    return authorize_bearer(validator, token).claims


def require_shared_token(
    request: Request,
    token: Annotated[str | None, Header(alias="token")] = None,
) -> None:
    """
    Dependency: the "token" request header must equal the configured shared token.
    Endpoints using this are disabled (503) when no shared token is configured.
    """
    expected = getattr(request.app.state, "shared_token", None)
    if not expected:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail={"error": "temporarily_unavailable", "error_description": "Shared token not configured"},
        )
    if token is None or not secrets.compare_digest(token.encode("utf-8"), expected.encode("utf-8")):
        logger.warning("Rejected request with missing or wrong shared token")
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="not authorized")
