"""Authentication for worker task endpoints.

Production callers present a Google-signed OIDC token; in local dev
(TASKS_OIDC_AUDIENCE == LOCAL_DEV_AUDIENCE) the X-Internal-Task-Secret
header is accepted instead.
"""

from __future__ import annotations

import hmac
import os

from fastapi import HTTPException, Request
from google.auth.transport import requests as google_requests
from google.oauth2 import id_token

from staybook.observability.logging import get_logger
from staybook.observability.redaction import safe_log_context
from staybook.tasks.http_backend import LOCAL_DEV_AUDIENCE

logger = get_logger(__name__)


def extract_bearer_token(request: Request) -> str | None:
    auth_header = request.headers.get("Authorization", "")
    if not auth_header.startswith("Bearer "):
        return None
    return auth_header[7:]


def verify_task_oidc(token: str) -> bool:
    """Verify a Google-signed ID token for TASKS_OIDC_AUDIENCE.

    Fails closed when the audience is not configured. When
    TASKS_OIDC_SERVICE_ACCOUNT is set the token's email must match it.
    """
    audience = os.environ.get("TASKS_OIDC_AUDIENCE")
    if not token or not audience:
        logger.error(
            "task OIDC verification not possible",
            extra={"extra_fields": safe_log_context(has_token=bool(token), has_audience=bool(audience))},
        )
        return False

    try:
        claims = id_token.verify_oauth2_token(token, google_requests.Request(), audience=audience)
    except ValueError as e:
        logger.warning(
            "OIDC token verification failed",
            extra={"extra_fields": safe_log_context(error=str(e))},
        )
        return False

    expected_email = os.environ.get("TASKS_OIDC_SERVICE_ACCOUNT")
    if expected_email and claims.get("email", "") != expected_email:
        logger.warning("OIDC service account mismatch")
        return False
    return True


def verify_task_auth(request: Request) -> bool:
    if os.environ.get("TASKS_OIDC_AUDIENCE", "") == LOCAL_DEV_AUDIENCE:
        secret = os.environ.get("INTERNAL_TASK_SECRET", "")
        presented = request.headers.get("X-Internal-Task-Secret", "")
        if secret and hmac.compare_digest(presented, secret):
            return True

    token = extract_bearer_token(request)
    if not token:
        logger.warning("task auth failed: missing Bearer token")
        return False
    return verify_task_oidc(token)


def require_task_auth(request: Request) -> None:
    """FastAPI dependency: 401 unless the caller is the task queue."""
    if not verify_task_auth(request):
        raise HTTPException(status_code=401, detail="Unauthorized")
