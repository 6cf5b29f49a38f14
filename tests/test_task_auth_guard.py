"""Tests that worker task endpoints require authentication."""

from __future__ import annotations

import os
from unittest.mock import patch

import pytest
from fastapi.testclient import TestClient

from staybook.api.factory import create_app
from staybook.api.task_auth import verify_task_oidc
from staybook.tasks.http_backend import LOCAL_DEV_AUDIENCE

SEND = "/tasks/notifications/send"
TASK = {"template_key": "payment_success", "user_id": "u-1", "variables": {"booking_id": "b-1"}}


@pytest.fixture
def worker_client():
    return TestClient(create_app(role="worker"))


class TestNotificationTaskAuth:
    def test_no_auth_returns_401(self, worker_client):
        assert worker_client.post(SEND, json=TASK).status_code == 401

    def test_with_valid_auth_succeeds(self, worker_client):
        with patch("staybook.api.task_auth.verify_task_oidc", return_value=True):
            response = worker_client.post(SEND, json=TASK, headers={"Authorization": "Bearer tok"})
        assert response.status_code == 200
        assert response.json() == {"ok": True}

    def test_unknown_template_rejected(self, worker_client):
        with patch("staybook.api.task_auth.verify_task_auth", return_value=True):
            response = worker_client.post(SEND, json={**TASK, "template_key": "spam"})
        assert response.status_code == 400

    def test_local_secret_accepted(self, worker_client):
        env = {"TASKS_OIDC_AUDIENCE": LOCAL_DEV_AUDIENCE, "INTERNAL_TASK_SECRET": "s3cret"}
        with patch.dict(os.environ, env):
            ok = worker_client.post(SEND, json=TASK, headers={"X-Internal-Task-Secret": "s3cret"})
            bad = worker_client.post(SEND, json=TASK, headers={"X-Internal-Task-Secret": "wrong"})
        assert ok.status_code == 200
        assert bad.status_code == 401

    def test_secret_ignored_outside_local_dev(self, worker_client):
        env = {"TASKS_OIDC_AUDIENCE": "https://worker", "INTERNAL_TASK_SECRET": "s3cret"}
        with patch.dict(os.environ, env):
            response = worker_client.post(SEND, json=TASK, headers={"X-Internal-Task-Secret": "s3cret"})
        assert response.status_code == 401

    def test_not_mounted_on_public(self):
        client = TestClient(create_app(role="public"))
        assert client.post(SEND, json=TASK).status_code == 404


class TestVerifyTaskOidc:
    def test_fails_closed_without_audience(self):
        with patch.dict(os.environ, {}, clear=True):
            assert verify_task_oidc("tok") is False

    def test_invalid_token(self):
        with patch.dict(os.environ, {"TASKS_OIDC_AUDIENCE": "https://worker"}, clear=True), \
             patch("staybook.api.task_auth.id_token.verify_oauth2_token", side_effect=ValueError("bad")):
            assert verify_task_oidc("tok") is False

    def test_service_account_must_match(self):
        env = {"TASKS_OIDC_AUDIENCE": "https://worker", "TASKS_OIDC_SERVICE_ACCOUNT": "tasks@proj.iam"}
        with patch.dict(os.environ, env, clear=True), \
             patch("staybook.api.task_auth.id_token.verify_oauth2_token", return_value={"email": "other@proj.iam"}):
            assert verify_task_oidc("tok") is False
        with patch.dict(os.environ, env, clear=True), \
             patch("staybook.api.task_auth.id_token.verify_oauth2_token", return_value={"email": "tasks@proj.iam"}):
            assert verify_task_oidc("tok") is True
