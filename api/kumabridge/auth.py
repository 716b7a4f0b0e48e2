import logging
import secrets

from fastapi import HTTPException, Request

logger = logging.getLogger(__name__)


def _get_client_ip(request: Request) -> str:
    cf_ip = request.headers.get("CF-Connecting-IP")
    if cf_ip:
        return cf_ip
    xff = request.headers.get("X-Forwarded-For")
    if xff:
        return xff.split(",")[0].strip()
    return request.client.host if request.client else "unknown"


def expected_authorization(token: str) -> str:
    return f"Bearer {token}"


async def require_webhook_token(request: Request) -> None:
    """Reject the request unless it carries ``Authorization: Bearer <token>``."""
    settings = request.app.state.settings
    provided = request.headers.get("Authorization", "")
    expected = expected_authorization(settings.webhook_auth_token)

    # Constant-time comparison
    if not secrets.compare_digest(provided.encode("utf-8"), expected.encode("utf-8")):
        logger.warning("Failed webhook auth attempt from %s", _get_client_ip(request))
        raise HTTPException(
            status_code=401,
            detail="Unauthorized",
            headers={"WWW-Authenticate": "Bearer"},
        )
