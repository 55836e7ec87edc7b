"""FastAPI dependencies for bearer secret authentication."""

from fastapi import HTTPException

from menu_sync_service.auth.api_key_validator import APIKeyValidator

BEARER_PREFIX = "bearer "


def get_bearer_token_from_header(
    authorization: str | None = None,
    validator: APIKeyValidator | None = None,
) -> str:
    """Extract and validate the secret from an ``Authorization: Bearer`` header.

    Args:
        authorization: Raw Authorization header value
        validator: APIKeyValidator instance (None skips validation)

    Returns:
        str: The validated secret

    Raises:
        HTTPException: 401 if the header is missing, not a bearer token, or invalid
    """
    if not authorization:
        raise HTTPException(
            status_code=401,
            detail="Missing bearer token",
            headers={"WWW-Authenticate": "Bearer"},
        )

    if not authorization.lower().startswith(BEARER_PREFIX):
        raise HTTPException(
            status_code=401,
            detail="Authorization header must use the Bearer scheme",
            headers={"WWW-Authenticate": "Bearer"},
        )

    token = authorization[len(BEARER_PREFIX) :].strip()
    if not token:
        raise HTTPException(
            status_code=401,
            detail="Missing bearer token",
            headers={"WWW-Authenticate": "Bearer"},
        )

    if validator and not validator.validate(token):
        raise HTTPException(
            status_code=401,
            detail="Invalid bearer token",
            headers={"WWW-Authenticate": "Bearer"},
        )

    return token
