from __future__ import annotations

from collections.abc import Generator
from pathlib import Path

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import event
from sqlmodel import SQLModel, create_engine

from cmms import main as app_main
from cmms.infra import db


@pytest.fixture()
def notification_client(
    monkeypatch: pytest.MonkeyPatch,
    tmp_path: Path,
) -> Generator[TestClient, None, None]:
    db_path = tmp_path / "notification_test.db"
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


def _admin_token(client: TestClient) -> str:
    client.post(
        "/api/auth/bootstrap-admin",
        json={"username": "admin", "password": "pass", "full_name": "Admin", "email": "a@example.com"},
    )
    response = client.post("/api/auth/login", json={"username": "admin", "password": "pass"})
    assert response.status_code == 200
    return response.json()["access_token"]


def _user_login(client: TestClient, admin_token: str, username: str, role: str) -> tuple[int, str]:
    response = client.post(
        "/api/users",
        json={
            "username": username,
            "password": "pw",
            "full_name": username.title(),
            "email": f"{username}@example.com",
            "role": role,
        },
        headers=_auth_header(admin_token),
    )
    assert response.status_code == 201
    login = client.post("/api/auth/login", json={"username": username, "password": "pw"})
    return response.json()["id"], login.json()["access_token"]


def test_notifications_are_scoped_to_their_owner(notification_client: TestClient) -> None:
    admin_token = _admin_token(notification_client)
    admin_headers = _auth_header(admin_token)
    tech_id, tech_token = _user_login(notification_client, admin_token, "tina", "technician")
    other_id, other_token = _user_login(notification_client, admin_token, "tom", "technician")
    tech_headers = _auth_header(tech_token)
    other_headers = _auth_header(other_token)

    for title in ("Shift change", "Safety briefing"):
        created = notification_client.post(
            "/api/notifications",
            json={"user_id": tech_id, "title": title, "message": f"{title} at 14:00"},
            headers=admin_headers,
        )
        assert created.status_code == 201
        assert created.json()["status"] == "unread"

    mine = notification_client.get("/api/notifications", headers=tech_headers).json()
    assert [item["title"] for item in mine] == ["Safety briefing", "Shift change"]
    assert notification_client.get("/api/notifications", headers=other_headers).json() == []
    assert notification_client.get("/api/notifications/count", headers=tech_headers).json() == {"count": 2}

    notification_id = mine[0]["id"]
    hidden = notification_client.get(f"/api/notifications/{notification_id}", headers=other_headers)
    assert hidden.status_code == 404
    assert notification_client.post(
        f"/api/notifications/{notification_id}/read",
        headers=other_headers,
    ).status_code == 404
    assert notification_client.get(f"/api/notifications/{notification_id}", headers=admin_headers).status_code == 200

    for_someone_else = notification_client.post(
        "/api/notifications",
        json={"user_id": other_id, "title": "Hi", "message": "from tina"},
        headers=tech_headers,
    )
    assert for_someone_else.status_code == 403
    for_self = notification_client.post(
        "/api/notifications",
        json={"user_id": tech_id, "title": "Reminder", "message": "order gloves"},
        headers=tech_headers,
    )
    assert for_self.status_code == 201


def test_read_dismiss_and_delete(notification_client: TestClient) -> None:
    admin_token = _admin_token(notification_client)
    admin_headers = _auth_header(admin_token)
    tech_id, tech_token = _user_login(notification_client, admin_token, "tina", "technician")
    headers = _auth_header(tech_token)

    ids = [
        notification_client.post(
            "/api/notifications",
            json={"user_id": tech_id, "title": f"Note {index}", "message": "..."},
            headers=admin_headers,
        ).json()["id"]
        for index in range(3)
    ]

    read = notification_client.post(f"/api/notifications/{ids[0]}/read", headers=headers)
    assert read.status_code == 200
    assert read.json()["status"] == "read"
    assert read.json()["read_at"] is not None

    dismissed = notification_client.post(f"/api/notifications/{ids[1]}/dismiss", headers=headers)
    assert dismissed.json()["status"] == "dismissed"
    assert dismissed.json()["dismissed_at"] is not None
    assert notification_client.get("/api/notifications/count", headers=headers).json() == {"count": 1}

    unread = notification_client.get("/api/notifications?status=unread", headers=headers).json()
    assert [item["id"] for item in unread] == [ids[2]]

    read_all = notification_client.post("/api/notifications/read-all", headers=headers)
    assert read_all.json() == {"count": 1}
    assert notification_client.get("/api/notifications/count", headers=headers).json() == {"count": 0}

    deleted = notification_client.delete(f"/api/notifications/{ids[0]}", headers=headers)
    assert deleted.status_code == 204
    assert notification_client.get(f"/api/notifications/{ids[0]}", headers=headers).status_code == 404
    remaining = notification_client.get("/api/notifications", headers=headers).json()
    assert sorted(item["id"] for item in remaining) == sorted(ids[1:])


def test_notification_for_missing_user_is_not_found(notification_client: TestClient) -> None:
    headers = _auth_header(_admin_token(notification_client))
    response = notification_client.post(
        "/api/notifications",
        json={"user_id": 404, "title": "Ghost", "message": "nobody"},
        headers=headers,
    )
    assert response.status_code == 404
    assert notification_client.get("/api/notifications", headers=headers).json() == []
