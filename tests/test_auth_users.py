from __future__ import annotations

from collections.abc import Generator
from pathlib import Path

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import event
from sqlmodel import Session, SQLModel, create_engine, select

from cmms import main as app_main
from cmms.domain.models import AuditLog
from cmms.infra import db


@pytest.fixture()
def auth_client(
    monkeypatch: pytest.MonkeyPatch,
    tmp_path: Path,
) -> Generator[TestClient, None, None]:
    db_path = tmp_path / "auth_test.db"
    test_engine = create_engine(
        f"sqlite:///{db_path}",
        connect_args={"check_same_thread": False},
    )

    @event.listens_for(test_engine, "connect")
    def _enable_foreign_keys(dbapi_connection: object, _connection_record: object) -> None:
        cursor = dbapi_connection.cursor()  # type: ignore[attr-defined]
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    SQLModel.metadata.create_all(test_engine)
    monkeypatch.setattr(db, "engine", test_engine)
    client = TestClient(app_main.app)
    yield client
    client.close()


def _auth_header(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


def _bootstrap_admin(client: TestClient, username: str = "admin", password: str = "admin-pass") -> dict:
    response = client.post(
        "/api/auth/bootstrap-admin",
        json={
            "username": username,
            "password": password,
            "full_name": "Site Admin",
            "email": "admin@example.com",
        },
    )
    assert response.status_code == 201
    return response.json()


def _login(client: TestClient, username: str, password: str) -> str:
    response = client.post("/api/auth/login", json={"username": username, "password": password})
    assert response.status_code == 200
    return response.json()["access_token"]


def test_bootstrap_login_and_me(auth_client: TestClient) -> None:
    admin = _bootstrap_admin(auth_client)
    assert admin["role"] == "admin"
    assert "password_hash" not in admin

    second = auth_client.post(
        "/api/auth/bootstrap-admin",
        json={"username": "other", "password": "x", "full_name": "Other", "email": "o@example.com"},
    )
    assert second.status_code == 409

    login_resp = auth_client.post("/api/auth/login", json={"username": "admin", "password": "admin-pass"})
    assert login_resp.status_code == 200
    body = login_resp.json()
    assert body["token_type"] == "bearer"
    assert body["user"]["username"] == "admin"
    assert body["permissions"] == ["*"]

    me_resp = auth_client.get("/api/auth/me", headers=_auth_header(body["access_token"]))
    assert me_resp.status_code == 200
    assert me_resp.json()["id"] == admin["id"]


def test_login_rejects_bad_credentials_and_tokens(auth_client: TestClient) -> None:
    _bootstrap_admin(auth_client)

    wrong = auth_client.post("/api/auth/login", json={"username": "admin", "password": "nope"})
    assert wrong.status_code == 401
    unknown = auth_client.post("/api/auth/login", json={"username": "ghost", "password": "nope"})
    assert unknown.status_code == 401

    assert auth_client.get("/api/auth/me").status_code == 401
    assert auth_client.get("/api/auth/me", headers=_auth_header("not-a-token")).status_code == 401


def test_user_management_and_role_permissions(auth_client: TestClient) -> None:
    _bootstrap_admin(auth_client)
    admin_token = _login(auth_client, "admin", "admin-pass")

    create_resp = auth_client.post(
        "/api/users",
        json={
            "username": "tech1",
            "password": "tech-pass",
            "full_name": "Tina Tech",
            "email": "tech1@example.com",
            "role": "technician",
        },
        headers=_auth_header(admin_token),
    )
    assert create_resp.status_code == 201
    tech_id = create_resp.json()["id"]

    duplicate = auth_client.post(
        "/api/users",
        json={"username": "tech1", "password": "x", "full_name": "Dup", "email": "d@example.com"},
        headers=_auth_header(admin_token),
    )
    assert duplicate.status_code == 409

    list_resp = auth_client.get("/api/users?role=technician", headers=_auth_header(admin_token))
    assert list_resp.status_code == 200
    assert [item["id"] for item in list_resp.json()] == [tech_id]

    tech_token = _login(auth_client, "tech1", "tech-pass")
    forbidden = auth_client.post(
        "/api/users",
        json={"username": "x", "password": "x", "full_name": "X", "email": "x@example.com"},
        headers=_auth_header(tech_token),
    )
    assert forbidden.status_code == 403

    update_resp = auth_client.patch(
        f"/api/users/{tech_id}",
        json={"is_active": False},
        headers=_auth_header(admin_token),
    )
    assert update_resp.status_code == 200
    assert update_resp.json()["is_active"] is False

    disabled = auth_client.post("/api/auth/login", json={"username": "tech1", "password": "tech-pass"})
    assert disabled.status_code == 401

    missing = auth_client.get("/api/users/999", headers=_auth_header(admin_token))
    assert missing.status_code == 404


def test_write_requests_are_audited(auth_client: TestClient) -> None:
    _bootstrap_admin(auth_client)
    admin_token = _login(auth_client, "admin", "admin-pass")
    auth_client.post(
        "/api/users",
        json={"username": "req1", "password": "p", "full_name": "Rita", "email": "r@example.com"},
        headers=_auth_header(admin_token),
    )

    with Session(db.engine) as session:
        rows = list(session.exec(select(AuditLog).order_by(AuditLog.id)).all())

    actions = [row.action for row in rows]
    assert "auth.bootstrap_admin" in actions
    assert "auth.login" in actions
    create_log = next(row for row in rows if row.action == "user.create")
    assert create_log.status_code == 201
    assert create_log.actor_id is not None
    assert create_log.detail["what"]["username"] == "req1"
    assert create_log.detail["result"]["outcome"] == "success"
