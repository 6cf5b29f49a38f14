"""Tasks client with idempotent enqueue.

Backends, selected by the TASKS_BACKEND env var:
- inline (default): records tasks without sending them (dev/tests)
- http: POSTs tasks to the worker service
"""

import os


class TasksClient:
    """Enqueue tasks at most once per task_id.

    The set of seen task ids is per client instance, which is enough to
    stop a single request from enqueueing the same task twice.
    """

    def __init__(self, backend: str | None = None) -> None:
        self._seen_ids: set[str] = set()
        self._recorded: list[dict] = []
        self._backend = backend or os.environ.get("TASKS_BACKEND", "inline")

    @property
    def backend(self) -> str:
        return self._backend

    def enqueue_http(
        self,
        task_id: str,
        url_path: str,
        payload: dict,
        correlation_id: str | None = None,
    ) -> bool:
        """Send a task to a worker endpoint.

        Args:
            task_id: Idempotency key.
            url_path: Worker path, e.g. "/tasks/notifications/send".
            payload: JSON body. Must not contain PII.
            correlation_id: Propagated as X-Correlation-ID.

        Returns:
            True if enqueued, False if task_id was already seen or the
            worker refused the task.

        Raises:
            ValueError: Unknown backend.
        """
        if task_id in self._seen_ids:
            return False

        if self._backend == "inline":
            self._seen_ids.add(task_id)
            self._recorded.append(
                {
                    "task_id": task_id,
                    "url_path": url_path,
                    "payload": payload,
                    "correlation_id": correlation_id,
                }
            )
            return True

        if self._backend == "http":
            from staybook.tasks.http_backend import enqueue_http

            sent = enqueue_http(task_id, url_path, payload, correlation_id)
            if sent:
                self._seen_ids.add(task_id)
            return sent

        raise ValueError(f"Unknown TASKS_BACKEND: {self._backend}")

    def was_enqueued(self, task_id: str) -> bool:
        return task_id in self._seen_ids

    def get_recorded_tasks(self) -> list[dict]:
        """Tasks captured by the inline backend."""
        return list(self._recorded)

    def clear(self) -> None:
        self._seen_ids.clear()
        self._recorded.clear()
