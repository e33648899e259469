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
def asset_client(
    monkeypatch: pytest.MonkeyPatch,
    tmp_path: Path,
) -> Generator[TestClient, None, None]:
    db_path = tmp_path / "asset_test.db"
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
    response = client.post(
        "/api/auth/bootstrap-admin",
        json={"username": "admin", "password": "pass", "full_name": "Admin", "email": "a@example.com"},
    )
    assert response.status_code == 201
    response = client.post("/api/auth/login", json={"username": "admin", "password": "pass"})
    assert response.status_code == 200
    return response.json()["access_token"]


def _user_token(client: TestClient, admin_token: str, username: str, role: str) -> str:
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
    response = client.post("/api/auth/login", json={"username": username, "password": "pw"})
    return response.json()["access_token"]


def test_asset_crud_hierarchy_and_details(asset_client: TestClient) -> None:
    token = _admin_token(asset_client)
    headers = _auth_header(token)

    type_resp = asset_client.post("/api/asset-types", json={"name": "Pump"}, headers=headers)
    assert type_resp.status_code == 201
    type_id = type_resp.json()["id"]
    assert asset_client.post("/api/asset-types", json={"name": "Pump"}, headers=headers).status_code == 409

    plant_resp = asset_client.post(
        "/api/assets",
        json={"asset_number": "PLANT-1", "description": "Main plant"},
        headers=headers,
    )
    assert plant_resp.status_code == 201
    plant_id = plant_resp.json()["id"]
    assert plant_resp.json()["status"] == "operational"

    pump_resp = asset_client.post(
        "/api/assets",
        json={
            "asset_number": "PUMP-7",
            "description": "Feed pump",
            "type_id": type_id,
            "parent_id": plant_id,
            "criticality_rating": 8,
            "barcode": "BC-PUMP-7",
        },
        headers=headers,
    )
    assert pump_resp.status_code == 201
    pump_id = pump_resp.json()["id"]

    duplicate = asset_client.post(
        "/api/assets",
        json={"asset_number": "PUMP-7", "description": "again"},
        headers=headers,
    )
    assert duplicate.status_code == 409

    missing_type = asset_client.post(
        "/api/assets",
        json={"asset_number": "X-1", "description": "x", "type_id": 999},
        headers=headers,
    )
    assert missing_type.status_code == 404

    cycle = asset_client.patch(f"/api/assets/{plant_id}", json={"parent_id": pump_id}, headers=headers)
    assert cycle.status_code == 422
    self_parent = asset_client.patch(f"/api/assets/{pump_id}", json={"parent_id": pump_id}, headers=headers)
    assert self_parent.status_code == 422

    by_number = asset_client.get("/api/assets/by-number/PUMP-7", headers=headers)
    assert by_number.status_code == 200
    assert by_number.json()["id"] == pump_id
    assert asset_client.get("/api/assets/by-number/NOPE", headers=headers).status_code == 404

    wo_resp = asset_client.post(
        "/api/work-orders",
        json={"title": "Replace seal", "asset_id": pump_id},
        headers=headers,
    )
    assert wo_resp.status_code == 201

    details = asset_client.get(f"/api/assets/{pump_id}/details", headers=headers)
    assert details.status_code == 200
    body = details.json()
    assert body["type"]["name"] == "Pump"
    assert body["parent"]["asset_number"] == "PLANT-1"
    assert [item["title"] for item in body["work_orders"]] == ["Replace seal"]

    all_details = asset_client.get("/api/assets/details", headers=headers)
    assert all_details.status_code == 200
    assert [item["asset_number"] for item in all_details.json()] == ["PLANT-1", "PUMP-7"]

    update = asset_client.patch(
        f"/api/assets/{pump_id}",
        json={"status": "maintenance_required", "location": "Bay 3"},
        headers=headers,
    )
    assert update.status_code == 200
    assert update.json()["status"] == "maintenance_required"
    assert update.json()["location"] == "Bay 3"


def test_inventory_items_low_stock_and_details(asset_client: TestClient) -> None:
    headers = _auth_header(_admin_token(asset_client))

    category = asset_client.post("/api/inventory-categories", json={"name": "Seals"}, headers=headers)
    assert category.status_code == 201
    category_id = category.json()["id"]

    item_resp = asset_client.post(
        "/api/inventory-items",
        json={
            "part_number": "SEAL-01",
            "name": "Mechanical seal",
            "category_id": category_id,
            "unit_cost": 12.5,
            "quantity_in_stock": 3,
            "reorder_point": 5,
        },
        headers=headers,
    )
    assert item_resp.status_code == 201
    item_id = item_resp.json()["id"]

    asset_client.post(
        "/api/inventory-items",
        json={"part_number": "BOLT-01", "name": "Bolt", "quantity_in_stock": 100, "reorder_point": 10},
        headers=headers,
    )
    duplicate = asset_client.post(
        "/api/inventory-items",
        json={"part_number": "SEAL-01", "name": "dup"},
        headers=headers,
    )
    assert duplicate.status_code == 409
    negative = asset_client.post(
        "/api/inventory-items",
        json={"part_number": "NEG-01", "name": "neg", "quantity_in_stock": -1},
        headers=headers,
    )
    assert negative.status_code == 422

    low_stock = asset_client.get("/api/inventory-items?low_stock=true", headers=headers)
    assert low_stock.status_code == 200
    assert [item["part_number"] for item in low_stock.json()] == ["SEAL-01"]

    by_part = asset_client.get("/api/inventory-items/by-part-number/BOLT-01", headers=headers)
    assert by_part.status_code == 200
    assert by_part.json()["name"] == "Bolt"

    details = asset_client.get(f"/api/inventory-items/{item_id}/details", headers=headers)
    assert details.status_code == 200
    assert details.json()["category"]["name"] == "Seals"

    all_details = asset_client.get("/api/inventory-items/details", headers=headers)
    assert len(all_details.json()) == 2

    update = asset_client.patch(f"/api/inventory-items/{item_id}", json={"quantity_in_stock": 20}, headers=headers)
    assert update.status_code == 200
    assert update.json()["quantity_in_stock"] == 20
    assert asset_client.get("/api/inventory-items/999", headers=headers).status_code == 404


def test_null_in_partial_update_keeps_required_fields(asset_client: TestClient) -> None:
    headers = _auth_header(_admin_token(asset_client))
    asset_id = asset_client.post(
        "/api/assets",
        json={"asset_number": "CMP-1", "description": "Air compressor", "location": "Bay 1"},
        headers=headers,
    ).json()["id"]
    item_id = asset_client.post(
        "/api/inventory-items",
        json={"part_number": "FLT-01", "name": "Air filter", "location": "Shelf A", "quantity_in_stock": 4},
        headers=headers,
    ).json()["id"]

    asset = asset_client.patch(
        f"/api/assets/{asset_id}",
        json={"description": None, "asset_number": None, "status": None, "location": None},
        headers=headers,
    )
    assert asset.status_code == 200
    assert asset.json()["asset_number"] == "CMP-1"
    assert asset.json()["description"] == "Air compressor"
    assert asset.json()["status"] == "operational"
    assert asset.json()["location"] is None

    item = asset_client.patch(
        f"/api/inventory-items/{item_id}",
        json={"name": None, "part_number": None, "quantity_in_stock": None, "is_active": None, "location": None},
        headers=headers,
    )
    assert item.status_code == 200
    assert item.json()["part_number"] == "FLT-01"
    assert item.json()["name"] == "Air filter"
    assert item.json()["quantity_in_stock"] == 4
    assert item.json()["is_active"] is True
    assert item.json()["location"] is None


def test_scan_prefers_assets_then_inventory(asset_client: TestClient) -> None:
    admin_token = _admin_token(asset_client)
    headers = _auth_header(admin_token)

    asset_client.post(
        "/api/assets",
        json={"asset_number": "CMP-1", "description": "Compressor", "barcode": "SHARED-1"},
        headers=headers,
    )
    asset_client.post(
        "/api/inventory-items",
        json={"part_number": "FLT-1", "name": "Filter", "barcode": "SHARED-1"},
        headers=headers,
    )
    asset_client.post(
        "/api/inventory-items",
        json={"part_number": "FLT-2", "name": "Filter 2", "barcode": "INV-2"},
        headers=headers,
    )

    requester_headers = _auth_header(_user_token(asset_client, admin_token, "rita", "requester"))

    shared = asset_client.post("/api/scan", json={"barcode": "SHARED-1"}, headers=requester_headers)
    assert shared.status_code == 200
    assert shared.json()["type"] == "asset"
    assert shared.json()["item"]["asset_number"] == "CMP-1"

    inventory = asset_client.post("/api/scan", json={"barcode": "INV-2"}, headers=requester_headers)
    assert inventory.status_code == 200
    assert inventory.json()["type"] == "inventory_item"
    assert inventory.json()["item"]["part_number"] == "FLT-2"

    unknown = asset_client.post("/api/scan", json={"barcode": "NOPE"}, headers=requester_headers)
    assert unknown.status_code == 404
    assert asset_client.post("/api/scan", json={"barcode": ""}, headers=requester_headers).status_code == 422


def test_requester_cannot_write_assets(asset_client: TestClient) -> None:
    admin_token = _admin_token(asset_client)
    requester_headers = _auth_header(_user_token(asset_client, admin_token, "rita", "requester"))

    assert asset_client.get("/api/assets", headers=requester_headers).status_code == 200
    response = asset_client.post(
        "/api/assets",
        json={"asset_number": "A-1", "description": "nope"},
        headers=requester_headers,
    )
    assert response.status_code == 403
