"""HTTP backend for tasks - POSTs tasks to the worker service."""

import os

import requests
from google.auth.transport.requests import Request as GoogleRequest
from google.oauth2.id_token import fetch_id_token

from staybook.observability.correlation import CORRELATION_ID_HEADER
from staybook.observability.logging import get_logger

logger = get_logger(__name__)

# Must match api.task_auth.LOCAL_DEV_AUDIENCE
LOCAL_DEV_AUDIENCE = "staybook-tasks-local"


def _worker_base_url() -> str:
    return os.environ.get("WORKER_BASE_URL", "http://worker:8000")


def _fetch_oidc_token(audience: str) -> str | None:
    """ID token for the worker, from the metadata server or ADC."""
    try:
        return fetch_id_token(GoogleRequest(), audience)
    except Exception as e:
        logger.error(
            "failed to fetch OIDC ID token",
            extra={"extra_fields": {"audience": audience, "error": str(e)}},
        )
        return None


def _auth_headers() -> dict[str, str] | None:
    if os.environ.get("TASKS_OIDC_AUDIENCE", "") == LOCAL_DEV_AUDIENCE:
        secret = os.environ.get("INTERNAL_TASK_SECRET", "")
        return {"X-Internal-Task-Secret": secret} if secret else {}

    token = _fetch_oidc_token(_worker_base_url())
    if not token:
        return None
    return {"Authorization": f"Bearer {token}"}


def enqueue_http(
    task_id: str,
    url_path: str,
    payload: dict,
    correlation_id: str | None = None,
) -> bool:
    """POST a task to ``WORKER_BASE_URL + url_path``.

    Returns:
        True on a 2xx response, False otherwise.
    """
    auth = _auth_headers()
    if auth is None:
        logger.error(
            "task enqueue aborted: OIDC token unavailable",
            extra={"extra_fields": {"task_id": task_id, "url_path": url_path}},
        )
        return False

    url = f"{_worker_base_url()}{url_path}"
    headers = {
        "Content-Type": "application/json",
        CORRELATION_ID_HEADER: correlation_id or "",
        "X-Task-Id": task_id,
        **auth,
    }
    timeout = int(os.environ.get("TASKS_HTTP_TIMEOUT", "30"))

    try:
        response = requests.post(url, json=payload, headers=headers, timeout=timeout)
        response.raise_for_status()
    except requests.RequestException as e:
        logger.error(
            "task enqueue failed",
            extra={"extra_fields": {"task_id": task_id, "url_path": url_path, "error": str(e)}},
        )
        return False

    logger.info(
        "task enqueued",
        extra={"extra_fields": {"task_id": task_id, "url_path": url_path}},
    )
    return True
