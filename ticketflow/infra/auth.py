"""Webhook authentication for events posted by the transport gateway."""

import hmac
from typing import Optional
from fastapi import HTTPException, Security, status
from fastapi.security import APIKeyHeader

from ticketflow.infra.config import config

# Token header set by the gateway on every webhook call
gateway_token_header = APIKeyHeader(name="X-Gateway-Token", auto_error=False)


async def verify_gateway_token(
    token: Optional[str] = Security(gateway_token_header),
) -> None:
    """
    Verify the shared webhook token.

    When WEBHOOK_TOKEN is not configured, verification is skipped outside
    production so local gateways can post without a secret.

    Raises:
        HTTPException: If the token is missing or does not match
    """
    expected = config.WEBHOOK_TOKEN
    if not expected:
        if config.APP_ENV == "production":
            raise HTTPException(
                status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
                detail="Webhook token not configured",
            )
        return

    if not token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Gateway token required. Provide X-Gateway-Token header.",
        )

    # Constant-time comparison
    if not hmac.compare_digest(token.encode("utf-8"), expected.encode("utf-8")):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid gateway token",
        )
