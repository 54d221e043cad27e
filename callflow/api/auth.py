"""Webhook authentication.

The telephony layer sends a shared key in X-API-Key with every webhook.
Development instances without a configured key accept unauthenticated
requests; health and metrics routes never depend on this check.
"""

import secrets

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import APIKeyHeader

from callflow.config.settings import get_settings
from callflow.observability.logging import get_logger

logger = get_logger(__name__)

api_key_header = APIKeyHeader(name="X-API-Key", auto_error=False)


def _constant_time_compare(a: str, b: str) -> bool:
    return secrets.compare_digest(a.encode(), b.encode())


def _reject(request: Request, reason: str, detail: str) -> HTTPException:
    logger.warning(
        "webhook_auth_failed",
        reason=reason,
        path=request.url.path,
        client_ip=request.client.host if request.client else "unknown",
    )
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "ApiKey"},
    )


async def verify_api_key(
    request: Request,
    api_key: str | None = Depends(api_key_header),
) -> None:
    """Reject webhook requests that do not carry the configured key.

    Raises:
        HTTPException: 401 if the key is missing or wrong
    """
    settings = get_settings()
    if not settings.auth_enabled:
        return

    expected = settings.api_key
    if not expected:
        if settings.environment == "development":
            logger.debug("webhook_auth_skipped", path=request.url.path)
            return
        raise _reject(request, "no_key_configured", "Authentication is not configured")

    if not api_key:
        raise _reject(request, "missing_api_key", "Missing API key")
    if not _constant_time_compare(api_key, expected):
        raise _reject(request, "invalid_api_key", "Invalid API key")
