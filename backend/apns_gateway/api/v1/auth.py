"""
HTTP Basic authentication for the API

Every /api/v1 route depends on require_basic_auth. Credentials come from
API_AUTH_USER / API_AUTH_PASS and are compared in constant time.
"""
import logging
import secrets

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPBasic, HTTPBasicCredentials

from apns_gateway.core.config import settings

logger = logging.getLogger(__name__)

security = HTTPBasic(realm="apns-gateway")


def require_basic_auth(
    request: Request,
    credentials: HTTPBasicCredentials = Depends(security),
) -> str:
    """
    Dependency that validates HTTP Basic credentials

    Returns:
        Authenticated username

    Raises:
        HTTPException: 401 if credentials do not match
    """
    user_ok = secrets.compare_digest(
        credentials.username.encode("utf-8"),
        settings.API_AUTH_USER.encode("utf-8"),
    )
    pass_ok = secrets.compare_digest(
        credentials.password.encode("utf-8"),
        settings.API_AUTH_PASS.encode("utf-8"),
    )

    if not (user_ok and pass_ok):
        logger.warning(
            "Authentication failed",
            extra={
                "event_type": "auth_failed",
                "path": request.url.path,
                "client_ip": request.client.host if request.client else "unknown",
            }
        )
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid credentials",
            headers={"WWW-Authenticate": "Basic"},
        )

    return credentials.username
