"""
Tests for API routes.

Verifies that routes exist, enforce the cron secret or API key, and return
correct status codes. The store is a fresh JSON file per test; the job and
the categorization engine are mocked.
"""

import pytest
from unittest.mock import MagicMock, patch
from fastapi.testclient import TestClient

from email_genie.agent.schemas import CategorizationDecision, DecisionSource, utcnow
from email_genie.main import app
from email_genie.storage import json_store
from email_genie.storage.json_store import JsonFileStore
from email_genie.storage.models import Account, JobRunSummary, JobState
from factories import make_rule

API_HEADERS = {"x-api-key": "test-api-key"}
USER = "default-user"


@pytest.fixture
def store(tmp_path):
    fresh = JsonFileStore(str(tmp_path / "store.json"))
    fresh.save_account(Account(id="acc-1", user_id=USER, email="me@gmail.com", refresh_token="rt"))
    previous = json_store._store
    json_store._store = fresh
    yield fresh
    json_store._store = previous


@pytest.fixture
def client(store):
    return TestClient(app)


def success_summary() -> JobRunSummary:
    return JobRunSummary(
        started_at=utcnow(),
        finished_at=utcnow(),
        status=JobState.SUCCESS,
        processed_count=3,
        message="Processed 3 emails with 0 errors",
    )


class TestHealth:
    def test_health(self, client):
        resp = client.get("/health")
        assert resp.status_code == 200
        assert resp.json() == {"status": "ok"}

    def test_ready(self, client):
        resp = client.get("/ready")
        assert resp.json()["status"] == "ready"

    def test_request_id_header(self, client):
        resp = client.get("/health")
        assert len(resp.headers["X-Request-ID"]) == 8


class TestApiKey:
    @pytest.mark.parametrize("method,path", [
        ("get", "/api/rules"),
        ("post", "/api/rules"),
        ("put", "/api/rules/x"),
        ("delete", "/api/rules/x"),
        ("get", "/api/logs?account_id=acc-1"),
        ("post", "/api/categorize/test"),
        ("get", "/api/jobs/status"),
        ("get", "/api/accounts"),
    ])
    def test_requires_api_key(self, client, method, path):
        resp = getattr(client, method)(path)
        assert resp.status_code == 401

    def test_wrong_key_rejected(self, client):
        resp = client.get("/api/rules", headers={"x-api-key": "nope"})
        assert resp.status_code == 401


class TestProcessEmails:
    @pytest.mark.parametrize("auth", [
        {"headers": {"Authorization": "Bearer test-cron-secret"}},
        {"headers": {"x-cron-secret": "test-cron-secret"}},
        {"params": {"secret": "test-cron-secret"}},
    ])
    def test_accepts_each_secret_form(self, client, auth):
        job = MagicMock()
        job.run.return_value = success_summary()

        with patch("email_genie.api.routes_jobs.create_default_job", return_value=job):
            resp = client.post("/api/jobs/process-emails", **auth)

        assert resp.status_code == 200
        assert resp.json()["processed_count"] == 3
        assert resp.json()["status"] == "success"

    def test_get_also_runs(self, client):
        job = MagicMock()
        job.run.return_value = success_summary()

        with patch("email_genie.api.routes_jobs.create_default_job", return_value=job):
            resp = client.get("/api/jobs/process-emails", headers={"x-cron-secret": "test-cron-secret"})

        assert resp.status_code == 200

    def test_rejects_bad_secret(self, client):
        with patch("email_genie.api.routes_jobs.create_default_job") as factory:
            resp = client.post("/api/jobs/process-emails", headers={"Authorization": "Bearer wrong"})

        assert resp.status_code == 401
        factory.assert_not_called()

    def test_job_failure_returns_500(self, client):
        job = MagicMock()
        job.run.side_effect = RuntimeError("boom")

        with patch("email_genie.api.routes_jobs.create_default_job", return_value=job):
            resp = client.post("/api/jobs/process-emails", headers={"x-cron-secret": "test-cron-secret"})

        assert resp.status_code == 500
        assert "boom" not in resp.text

    def test_status(self, client, store):
        assert client.get("/api/jobs/status", headers=API_HEADERS).json() == {"status": "never_run"}

        store.set_status(USER, success_summary())
        resp = client.get("/api/jobs/status", headers=API_HEADERS)

        assert resp.json()["status"] == "success"


class TestRulesCrud:
    def test_create_list_update_delete(self, client):
        created = client.post("/api/rules", headers=API_HEADERS, json={
            "name": "Invoices",
            "account_ids": ["acc-1"],
            "priority": 10,
            "conditions": {"subject_contains": ["invoice"]},
            "actions": {"apply_labels": ["Finance"]},
        })
        assert created.status_code == 201
        rule_id = created.json()["id"]
        assert created.json()["user_id"] == USER

        listed = client.get("/api/rules", headers=API_HEADERS, params={"account_id": "acc-1"})
        assert [r["id"] for r in listed.json()["rules"]] == [rule_id]

        updated = client.put(f"/api/rules/{rule_id}", headers=API_HEADERS, json={"enabled": False})
        assert updated.status_code == 200
        assert updated.json()["enabled"] is False
        assert updated.json()["name"] == "Invoices"

        deleted = client.delete(f"/api/rules/{rule_id}", headers=API_HEADERS)
        assert deleted.json() == {"deleted": True}
        assert client.get("/api/rules", headers=API_HEADERS).json()["rules"] == []

    def test_create_validates(self, client):
        resp = client.post("/api/rules", headers=API_HEADERS, json={"name": "", "account_ids": []})
        assert resp.status_code == 422

    def test_update_missing_rule(self, client):
        resp = client.put("/api/rules/missing", headers=API_HEADERS, json={"name": "x"})
        assert resp.status_code == 404

    def test_delete_missing_rule(self, client):
        assert client.delete("/api/rules/missing", headers=API_HEADERS).status_code == 404


class TestCategorizeTest:
    def test_runs_engine_without_mailbox(self, client, store):
        store.create_rule(make_rule(user_id=USER, account_ids=["acc-1"]))
        engine = MagicMock()
        engine.categorize.return_value = CategorizationDecision(
            should_skip_inbox=True,
            reasoning="Matched rule: Test Rule",
            matched_rule_id="rule-1",
            source=DecisionSource.CONSTRAINED,
        )

        with patch("email_genie.api.routes_categorize._get_engine", return_value=engine):
            resp = client.post("/api/categorize/test", headers=API_HEADERS, json={
                "account_id": "acc-1",
                "email": {"sender": "a@b.com", "subject": "invoice", "body": "x"},
            })

        assert resp.status_code == 200
        assert resp.json()["should_skip_inbox"] is True
        email, rules = engine.categorize.call_args.args
        assert email.subject == "invoice"
        assert [r.id for r in rules] == ["rule-1"]
        assert store.list_logs(USER, "acc-1") == []

    def test_unknown_account(self, client):
        resp = client.post("/api/categorize/test", headers=API_HEADERS, json={
            "account_id": "nope",
            "email": {"sender": "a@b.com"},
        })
        assert resp.status_code == 404


class TestLogsAndAccounts:
    def test_logs_empty(self, client):
        resp = client.get("/api/logs", headers=API_HEADERS, params={"account_id": "acc-1"})
        assert resp.json() == {"logs": [], "count": 0}

    def test_logs_require_account_id(self, client):
        assert client.get("/api/logs", headers=API_HEADERS).status_code == 422

    def test_accounts_hide_tokens(self, client):
        resp = client.get("/api/accounts", headers=API_HEADERS)

        account = resp.json()["accounts"][0]
        assert account["email"] == "me@gmail.com"
        assert "refresh_token" not in account
        assert "access_token" not in account

    def test_unknown_account(self, client):
        assert client.get("/api/accounts/nope", headers=API_HEADERS).status_code == 404
