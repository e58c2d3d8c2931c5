from __future__ import annotations

import os
from collections.abc import Generator

import pytest
from fastapi import Request
from fastapi.testclient import TestClient
from opentelemetry.sdk.trace.export.in_memory_span_exporter import InMemorySpanExporter
from sqlalchemy.orm import Session

os.environ.setdefault("OTEL_ENABLED", "true")

from app.core.auth import AuthUser, get_current_user
from app.core.database import get_db
from app.main import app
from app.otel import setup_inmemory_otel

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
def span_exporter() -> InMemorySpanExporter:
    exporter = setup_inmemory_otel("api")
    exporter.clear()
    return exporter


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


def test_request_span_contains_correlation_id(client: TestClient, span_exporter: InMemorySpanExporter) -> None:
    response = client.get("/api/security/record-scope/contacts", headers={"X-Correlation-Id": "otel-corr-1"})
    assert response.status_code == 200

    spans = span_exporter.get_finished_spans()
    assert spans
    assert any(span.attributes.get("correlation_id") == "otel-corr-1" for span in spans)


def test_closure_span_records_level_and_set_size(client: TestClient, span_exporter: InMemorySpanExporter) -> None:
    response = client.get("/api/security/record-scope/accounts")
    assert response.status_code == 200

    closure_spans = [span for span in span_exporter.get_finished_spans() if span.name == "record_scope.closure"]
    assert closure_spans
    assert any(
        span.attributes.get("user_id") == "user-a"
        and span.attributes.get("access_level") == "department"
        and span.attributes.get("principal_count") == 3
        for span in closure_spans
    )


def test_all_level_opens_no_closure_span(client: TestClient, span_exporter: InMemorySpanExporter) -> None:
    response = client.get("/api/security/record-scope/opportunities")
    assert response.status_code == 200

    assert not [span for span in span_exporter.get_finished_spans() if span.name == "record_scope.closure"]
