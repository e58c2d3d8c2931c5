from __future__ import annotations

from collections.abc import Generator

import pytest
from fastapi.testclient import TestClient
from jose import jwt
from prometheus_client import REGISTRY
from sqlalchemy.orm import Session

from app.core.config import get_settings
from app.core.database import Base, get_db
from app.core.modules import RECORD_SCOPED_MODULES
from app.main import app

from org_seed import make_session_factory, seed_org


def _token(sub: str | None, **claims: object) -> str:
    settings = get_settings()
    payload: dict[str, object] = dict(claims)
    if sub is not None:
        payload["sub"] = sub
    return jwt.encode(payload, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def _auth(sub: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {_token(sub)}"}


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

    get_settings.cache_clear()
    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()
    get_settings.cache_clear()


def test_missing_token_is_unauthorized(client: TestClient) -> None:
    response = client.get("/api/security/record-scope/contacts")

    assert response.status_code == 401
    assert response.headers.get("www-authenticate") == "Bearer"


def test_invalid_token_is_unauthorized(client: TestClient) -> None:
    response = client.get("/api/security/record-scope/contacts", headers={"Authorization": "Bearer not-a-jwt"})

    assert response.status_code == 401


def test_token_without_subject_is_unauthorized(client: TestClient) -> None:
    response = client.get(
        "/api/security/record-scope/contacts",
        headers={"Authorization": f"Bearer {_token(None, roles=['sales'])}"},
    )

    assert response.status_code == 401


def test_team_scope_lists_visible_owners(client: TestClient) -> None:
    response = client.get("/api/security/record-scope/contacts", headers=_auth("user-a"))

    assert response.status_code == 200
    assert response.json() == {
        "module": "contacts",
        "access_level": "team",
        "has_full_access": False,
        "visible_owner_ids": ["user-a", "user-b", "user-t"],
    }


def test_all_scope_has_no_owner_list(client: TestClient) -> None:
    response = client.get("/api/security/record-scope/opportunities", headers=_auth("user-a"))

    assert response.status_code == 200
    body = response.json()
    assert body["access_level"] == "all"
    assert body["has_full_access"] is True
    assert body["visible_owner_ids"] is None


def test_unconfigured_module_is_own_only(client: TestClient) -> None:
    response = client.get("/api/security/record-scope/tasks", headers=_auth("user-b"))

    assert response.status_code == 200
    assert response.json()["access_level"] == "own"
    assert response.json()["visible_owner_ids"] == ["user-b"]


def test_unknown_module_is_not_found(client: TestClient) -> None:
    response = client.get("/api/security/record-scope/invoices-2026", headers=_auth("user-a"))

    assert response.status_code == 404
    assert response.json()["detail"] == "unknown module"
    assert REGISTRY.get_sample_value(
        "record_scope_resolutions_total", {"module": "invoices-2026", "level": "own"}
    ) is None


def test_unknown_principal_is_forbidden(client: TestClient) -> None:
    response = client.get("/api/security/record-scope/contacts", headers=_auth("ghost"))

    assert response.status_code == 403
    assert response.json()["detail"] == "unknown principal"


def test_unreadable_org_graph_is_service_unavailable(client: TestClient, db_session: Session) -> None:
    Base.metadata.drop_all(bind=db_session.get_bind())

    response = client.get("/api/security/record-scope/contacts", headers=_auth("user-a"))

    assert response.status_code == 503
    assert response.json()["detail"] == "record scope unavailable"


def test_list_covers_every_record_scoped_module(client: TestClient) -> None:
    response = client.get("/api/security/record-scope", headers=_auth("user-a"))

    assert response.status_code == 200
    body = response.json()
    assert [item["module"] for item in body] == list(RECORD_SCOPED_MODULES)
    levels = {item["module"]: item["access_level"] for item in body}
    assert levels["contacts"] == "team"
    assert levels["accounts"] == "department"
    assert levels["leads"] == "reporting_line"
    assert levels["opportunities"] == "all"
    assert levels["deals"] == "own"


def test_wildcard_role_sees_everything(client: TestClient) -> None:
    response = client.get("/api/security/record-scope", headers=_auth("user-admin"))

    assert response.status_code == 200
    assert all(item["has_full_access"] and item["visible_owner_ids"] is None for item in response.json())


def test_me_echoes_token_claims(client: TestClient) -> None:
    token = _token("user-a", roles=["sales"], tenant_id="tenant-1")

    response = client.get("/me", headers={"Authorization": f"Bearer {token}"})

    assert response.status_code == 200
    assert response.json() == {"sub": "user-a", "roles": ["sales"], "tenant_id": "tenant-1"}
