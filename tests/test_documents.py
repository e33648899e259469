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
def document_client(
    monkeypatch: pytest.MonkeyPatch,
    tmp_path: Path,
) -> Generator[TestClient, None, None]:
    db_path = tmp_path / "document_test.db"
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
    monkeypatch.setenv("DOCUMENT_STORAGE_ROOT", str(tmp_path / "uploads"))
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


def test_upload_list_download_and_delete(document_client: TestClient, tmp_path: Path) -> None:
    headers = _auth_header(_admin_token(document_client))
    asset_id = document_client.post(
        "/api/assets",
        json={"asset_number": "GEN-1", "description": "Generator"},
        headers=headers,
    ).json()["id"]

    uploaded = document_client.post(
        f"/api/documents/asset/{asset_id}/upload",
        content=b"%PDF-1.4 manual",
        headers={**headers, "X-File-Name": "manual.pdf", "Content-Type": "application/pdf"},
    )
    assert uploaded.status_code == 201
    document = uploaded.json()
    assert document["filename"] == "manual.pdf"
    assert document["filesize"] == len(b"%PDF-1.4 manual")
    assert document["content_type"] == "application/pdf"
    assert document["entity_type"] == "asset"
    assert "object_key" not in document
    assert list((tmp_path / "uploads").rglob("*manual.pdf"))

    listed = document_client.get(f"/api/documents/asset/{asset_id}", headers=headers)
    assert listed.status_code == 200
    assert [item["id"] for item in listed.json()] == [document["id"]]

    download = document_client.get(f"/api/documents/{document['id']}/download", headers=headers)
    assert download.status_code == 200
    assert download.content == b"%PDF-1.4 manual"
    assert download.headers["content-type"].startswith("application/pdf")

    deleted = document_client.delete(f"/api/documents/{document['id']}", headers=headers)
    assert deleted.status_code == 204
    assert document_client.get(f"/api/documents/asset/{asset_id}", headers=headers).json() == []
    assert document_client.get(f"/api/documents/{document['id']}/download", headers=headers).status_code == 404
    assert not list((tmp_path / "uploads").rglob("*manual.pdf"))


def test_upload_rejects_bad_targets_and_empty_bodies(document_client: TestClient) -> None:
    headers = _auth_header(_admin_token(document_client))
    work_order_id = document_client.post(
        "/api/work-orders",
        json={"title": "Rewire panel"},
        headers=headers,
    ).json()["id"]

    empty = document_client.post(
        f"/api/documents/work_order/{work_order_id}/upload",
        content=b"",
        headers={**headers, "X-File-Name": "empty.txt"},
    )
    assert empty.status_code == 422

    unknown_type = document_client.post(
        "/api/documents/spaceship/1/upload",
        content=b"data",
        headers={**headers, "X-File-Name": "x.txt"},
    )
    assert unknown_type.status_code == 422
    assert "work_order" in unknown_type.json()["detail"]["allowed"]

    missing_entity = document_client.post(
        "/api/documents/work_order/999/upload",
        content=b"data",
        headers={**headers, "X-File-Name": "x.txt"},
    )
    assert missing_entity.status_code == 404

    photo = document_client.post(
        f"/api/documents/work_order/{work_order_id}/upload",
        content=b"\x89PNG",
        headers={**headers, "X-File-Name": "../../etc/photo.png", "Content-Type": "image/png"},
    )
    assert photo.status_code == 201
    assert photo.json()["filename"] == "photo.png"


def test_requester_can_read_but_not_upload(document_client: TestClient) -> None:
    admin_headers = _auth_header(_admin_token(document_client))
    document_client.post(
        "/api/users",
        json={
            "username": "rita",
            "password": "pw",
            "full_name": "Rita",
            "email": "rita@example.com",
            "role": "requester",
        },
        headers=admin_headers,
    )
    token = document_client.post("/api/auth/login", json={"username": "rita", "password": "pw"}).json()[
        "access_token"
    ]
    asset_id = document_client.post(
        "/api/assets",
        json={"asset_number": "GEN-2", "description": "Backup generator"},
        headers=admin_headers,
    ).json()["id"]

    assert document_client.get(f"/api/documents/asset/{asset_id}", headers=_auth_header(token)).status_code == 200
    denied = document_client.post(
        f"/api/documents/asset/{asset_id}/upload",
        content=b"data",
        headers={**_auth_header(token), "X-File-Name": "x.txt"},
    )
    assert denied.status_code == 403
