from __future__ import annotations

from collections.abc import Generator
from pathlib import Path

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import event
from sqlmodel import Session, SQLModel, create_engine, select

from cmms import main as app_main
from cmms.domain.models import EventRecord
from cmms.infra import db


@pytest.fixture()
def work_order_client(
    monkeypatch: pytest.MonkeyPatch,
    tmp_path: Path,
) -> Generator[TestClient, None, None]:
    db_path = tmp_path / "work_order_test.db"
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


def _create_user(client: TestClient, admin_token: str, username: str, role: str) -> int:
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
    return response.json()["id"]


def _events(event_type: str) -> list[EventRecord]:
    with Session(db.engine) as session:
        statement = select(EventRecord).where(EventRecord.event_type == event_type).order_by(EventRecord.ts)
        return list(session.exec(statement).all())


def test_work_order_numbers_are_sequential(work_order_client: TestClient) -> None:
    headers = _auth_header(_admin_token(work_order_client))

    numbers = []
    for title in ("Fix leak", "Grease bearings", "Inspect belt"):
        response = work_order_client.post("/api/work-orders", json={"title": title}, headers=headers)
        assert response.status_code == 201
        numbers.append(response.json()["work_order_number"])
    assert numbers == ["WO-001", "WO-002", "WO-003"]

    first = work_order_client.get("/api/work-orders/by-number/WO-001", headers=headers)
    assert first.status_code == 200
    assert first.json()["title"] == "Fix leak"
    assert first.json()["status"] == "requested"
    assert first.json()["priority"] == "medium"
    assert first.json()["requested_by_id"] is not None

    explicit = work_order_client.post(
        "/api/work-orders",
        json={"title": "Manual", "work_order_number": "WO-002"},
        headers=headers,
    )
    assert explicit.status_code == 409
    assert work_order_client.get("/api/work-orders/by-number/WO-404", headers=headers).status_code == 404
    assert len(_events("work_order.created")) == 3


def test_status_transitions_stamp_dates_and_reject_jumps(work_order_client: TestClient) -> None:
    headers = _auth_header(_admin_token(work_order_client))
    work_order_id = work_order_client.post(
        "/api/work-orders",
        json={"title": "Replace filter"},
        headers=headers,
    ).json()["id"]

    jump = work_order_client.patch(
        f"/api/work-orders/{work_order_id}",
        json={"status": "completed"},
        headers=headers,
    )
    assert jump.status_code == 422

    for target in ("approved", "in_progress"):
        response = work_order_client.patch(
            f"/api/work-orders/{work_order_id}",
            json={"status": target},
            headers=headers,
        )
        assert response.status_code == 200
    started = work_order_client.get(f"/api/work-orders/{work_order_id}", headers=headers).json()
    assert started["status"] == "in_progress"
    assert started["date_started"] is not None
    assert started["date_completed"] is None

    done = work_order_client.patch(
        f"/api/work-orders/{work_order_id}",
        json={"status": "completed", "actual_hours": 1.5, "completion_notes": "done"},
        headers=headers,
    )
    assert done.status_code == 200
    assert done.json()["date_completed"] is not None
    assert done.json()["actual_hours"] == 1.5

    reopen = work_order_client.patch(
        f"/api/work-orders/{work_order_id}",
        json={"status": "in_progress"},
        headers=headers,
    )
    assert reopen.status_code == 422

    completed = work_order_client.get("/api/work-orders?status=completed", headers=headers)
    assert [item["id"] for item in completed.json()] == [work_order_id]
    assert work_order_client.get("/api/work-orders?status=requested", headers=headers).json() == []

    updates = _events("work_order.updated")
    assert [item.payload["to_status"] for item in updates] == ["approved", "in_progress", "completed"]


def test_labor_and_parts_with_stock_checks(work_order_client: TestClient) -> None:
    admin_token = _admin_token(work_order_client)
    headers = _auth_header(admin_token)
    tech_id = _create_user(work_order_client, admin_token, "tina", "technician")

    item_id = work_order_client.post(
        "/api/inventory-items",
        json={
            "part_number": "BRG-1",
            "name": "Bearing",
            "unit_cost": 4.0,
            "quantity_in_stock": 5,
            "reorder_point": 2,
        },
        headers=headers,
    ).json()["id"]
    work_order_id = work_order_client.post(
        "/api/work-orders",
        json={"title": "Replace bearings"},
        headers=headers,
    ).json()["id"]

    labor = work_order_client.post(
        f"/api/work-orders/{work_order_id}/labor",
        json={"user_id": tech_id, "hours": 2.5, "labor_cost": 100.0, "date_performed": "2025-03-01T09:00:00"},
        headers=headers,
    )
    assert labor.status_code == 201
    assert labor.json()["work_order_id"] == work_order_id
    bad_labor = work_order_client.post(
        f"/api/work-orders/{work_order_id}/labor",
        json={"user_id": 999, "hours": 1, "date_performed": "2025-03-01T09:00:00"},
        headers=headers,
    )
    assert bad_labor.status_code == 404

    issued = work_order_client.post(
        f"/api/work-orders/{work_order_id}/parts",
        json={"inventory_item_id": item_id, "quantity": 2},
        headers=headers,
    )
    assert issued.status_code == 201
    assert issued.json()["unit_cost"] == 4.0
    assert issued.json()["total_cost"] == 8.0
    item = work_order_client.get(f"/api/inventory-items/{item_id}", headers=headers).json()
    assert item["quantity_in_stock"] == 3
    assert _events("inventory_item.low_stock") == []

    too_many = work_order_client.post(
        f"/api/work-orders/{work_order_id}/parts",
        json={"inventory_item_id": item_id, "quantity": 10},
        headers=headers,
    )
    assert too_many.status_code == 422
    assert too_many.json()["detail"] == {
        "reason": "insufficient quantity in stock",
        "available": 3,
        "requested": 10,
    }

    work_order_client.post(
        f"/api/work-orders/{work_order_id}/parts",
        json={"inventory_item_id": item_id, "quantity": 1},
        headers=headers,
    )
    low_stock = _events("inventory_item.low_stock")
    assert len(low_stock) == 1
    assert low_stock[0].payload["quantity_in_stock"] == 2

    parts = work_order_client.get(f"/api/work-orders/{work_order_id}/parts", headers=headers)
    assert [part["quantity"] for part in parts.json()] == [2, 1]

    details = work_order_client.get(f"/api/work-orders/{work_order_id}/details", headers=headers)
    assert details.status_code == 200
    body = details.json()
    assert body["requested_by"]["username"] == "admin"
    assert body["assigned_to"] is None
    assert [entry["hours"] for entry in body["labor_entries"]] == [2.5]
    assert [part["inventory_item"]["part_number"] for part in body["parts"]] == ["BRG-1", "BRG-1"]

    all_details = work_order_client.get("/api/work-orders/details", headers=headers)
    assert [item["id"] for item in all_details.json()] == [work_order_id]


def test_assignment_notifies_technician(work_order_client: TestClient) -> None:
    admin_token = _admin_token(work_order_client)
    headers = _auth_header(admin_token)
    tech_id = _create_user(work_order_client, admin_token, "tina", "technician")

    created = work_order_client.post(
        "/api/work-orders",
        json={"title": "Check motor", "assigned_to_id": tech_id},
        headers=headers,
    )
    assert created.status_code == 201
    work_order_id = created.json()["id"]

    unassigned = work_order_client.post("/api/work-orders", json={"title": "Later"}, headers=headers).json()
    work_order_client.patch(
        f"/api/work-orders/{unassigned['id']}",
        json={"assigned_to_id": tech_id},
        headers=headers,
    )

    login = work_order_client.post("/api/auth/login", json={"username": "tina", "password": "pw"})
    tech_headers = _auth_header(login.json()["access_token"])
    notifications = work_order_client.get("/api/notifications", headers=tech_headers)
    assert notifications.status_code == 200
    related = sorted(item["related_item_id"] for item in notifications.json())
    assert related == [work_order_id, unassigned["id"]]
    assert all(item["title"] == "Work order assigned" for item in notifications.json())

    mine = work_order_client.get(f"/api/work-orders?assigned_to_id={tech_id}", headers=tech_headers)
    assert len(mine.json()) == 2


def test_unknown_references_are_rejected(work_order_client: TestClient) -> None:
    headers = _auth_header(_admin_token(work_order_client))

    assert work_order_client.post(
        "/api/work-orders",
        json={"title": "Ghost asset", "asset_id": 42},
        headers=headers,
    ).status_code == 404
    assert work_order_client.get("/api/work-orders/42", headers=headers).status_code == 404
    assert work_order_client.patch(
        "/api/work-orders/42",
        json={"title": "nothing"},
        headers=headers,
    ).status_code == 404
    assert work_order_client.get("/api/work-orders", headers=headers).json() == []
