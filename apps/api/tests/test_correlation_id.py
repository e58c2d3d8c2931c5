from __future__ import annotations

from collections.abc import Generator

import pytest
from fastapi import Request
from fastapi.testclient import TestClient
from sqlalchemy.orm import Session

from app.core.auth import AuthUser, get_current_user
from app.core.database import get_db
from app.main import app
from app.platform.security.api import get_auth_context
from app.platform.security.context import AuthContext

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
        return AuthUser(sub="user-a", tenant_id="tenant-1")

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_current_user] = override_get_current_user
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


def test_generated_correlation_id_returned_in_header(client: TestClient) -> None:
    response = client.get("/api/security/record-scope/contacts")

    assert response.status_code == 200
    assert response.headers.get("x-correlation-id")


def test_correlation_id_respected_when_provided(client: TestClient) -> None:
    response = client.get("/api/security/record-scope/contacts", headers={"X-Correlation-Id": "abc-123"})

    assert response.status_code == 200
    assert response.headers.get("x-correlation-id") == "abc-123"


def test_correlation_id_returned_on_error_responses(client: TestClient) -> None:
    app.dependency_overrides[get_current_user] = lambda: AuthUser(sub="ghost")

    response = client.get("/api/security/record-scope/contacts", headers={"X-Correlation-Id": "corr-403"})

    assert response.status_code == 403
    assert response.headers.get("x-correlation-id") == "corr-403"


def test_auth_context_carries_request_correlation_id(client: TestClient) -> None:
    seen: list[AuthContext] = []

    def capture_context(request: Request) -> AuthContext:
        ctx = get_auth_context(request, AuthUser(sub="user-a", tenant_id="tenant-1"))
        seen.append(ctx)
        return ctx

    app.dependency_overrides[get_auth_context] = capture_context
    response = client.get("/api/security/record-scope/contacts", headers={"X-Correlation-Id": "corr-ctx-1"})

    assert response.status_code == 200
    assert seen
    assert seen[0].correlation_id == "corr-ctx-1"
    assert seen[0].tenant_id == "tenant-1"
