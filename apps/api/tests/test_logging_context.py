from __future__ import annotations

import json
import logging
from collections.abc import Generator

import pytest
from fastapi import Request
from fastapi.testclient import TestClient
from sqlalchemy.orm import Session

from app.core.auth import AuthUser, get_current_user
from app.core.database import get_db
from app.logging import JsonLogFormatter
from app.main import app

from org_seed import make_session_factory, seed_org


@pytest.fixture()
def db_session() -> Generator[Session, None, None]:
    session = make_session_factory()()
    seed_org(session)
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def client(db_session: Session) -> Generator[TestClient, None, None]:
    def override_get_db() -> Generator[Session, None, None]:
        yield db_session

    def override_get_current_user(request: Request) -> AuthUser:
        return AuthUser(sub="user-a")

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_current_user] = override_get_current_user
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


def test_logs_include_correlation_id_for_http(client: TestClient, caplog: pytest.LogCaptureFixture) -> None:
    caplog.set_level(logging.INFO)

    response = client.get("/api/security/record-scope/contacts", headers={"X-Correlation-Id": "abc-123"})
    assert response.status_code == 200

    records = [record for record in caplog.records if record.name == "app.request" and record.getMessage() == "http.request"]
    assert records
    assert any(
        getattr(record, "correlation_id", None) == "abc-123"
        and getattr(record, "method", None) == "GET"
        and getattr(record, "path", None) == "/api/security/record-scope/{module}"
        and getattr(record, "status_code", None) == 200
        and isinstance(getattr(record, "duration_ms", None), float)
        for record in records
    )


def test_resolution_log_carries_scope_fields(client: TestClient, caplog: pytest.LogCaptureFixture) -> None:
    caplog.set_level(logging.DEBUG, logger="app.security.record_scope")

    response = client.get("/api/security/record-scope/leads", headers={"X-Correlation-Id": "scope-corr-1"})
    assert response.status_code == 200

    resolved = [record for record in caplog.records if record.getMessage() == "record_scope.resolved"]
    assert resolved
    assert any(
        getattr(record, "correlation_id", None) == "scope-corr-1"
        and getattr(record, "user_id", None) == "user-a"
        and getattr(record, "crm_module", None) == "leads"
        and getattr(record, "access_level", None) == "reporting_line"
        and getattr(record, "principal_count", None) == 3
        for record in resolved
    )


def test_fallback_warning_is_logged_per_request(client: TestClient, caplog: pytest.LogCaptureFixture) -> None:
    caplog.set_level(logging.WARNING, logger="app.security.record_scope")

    response = client.get("/api/security/record-scope/deals", headers={"X-Correlation-Id": "fallback-1"})
    assert response.status_code == 200
    assert response.json()["access_level"] == "own"

    fallbacks = [record for record in caplog.records if record.getMessage() == "record_scope.level_fallback"]
    assert fallbacks
    assert getattr(fallbacks[0], "configured_level", None) == "everyone"
    assert getattr(fallbacks[0], "correlation_id", None) == "fallback-1"


def test_json_formatter_nests_known_fields_and_truncates_errors() -> None:
    record = logging.makeLogRecord(
        {
            "name": "app.security.record_scope",
            "levelname": "ERROR",
            "levelno": logging.ERROR,
            "msg": "record_scope.resolution_failed",
            "correlation_id": "fmt-1",
            "user_id": "user-a",
            "crm_module": "contacts",
            "error": "x" * 900,
            "unrelated": "dropped",
        }
    )

    payload = json.loads(JsonLogFormatter().format(record))

    assert payload["msg"] == "record_scope.resolution_failed"
    assert payload["level"] == "ERROR"
    assert payload["correlation_id"] == "fmt-1"
    assert payload["fields"]["user_id"] == "user-a"
    assert payload["fields"]["crm_module"] == "contacts"
    assert len(payload["fields"]["error"]) == 500
    assert "unrelated" not in payload["fields"]
