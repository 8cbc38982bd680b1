"""
Integration tests for the ledger HTTP API.

Tests movement CRUD, error rendering, transfers by location name and
maintenance endpoints.
"""

import pytest

from inventory_backend.app.services.audit import get_audit_trail, AuditAction

# Client and DB setup live in conftest.py


async def _record(client, headers, timestamp, qty_in=0, qty_out=0, product_id=1, location_code="WH-A"):
    return await client.post("/v1/ledger/movements", headers=headers, json={
        "product_id": product_id,
        "location_code": location_code,
        "timestamp": timestamp,
        "qty_in": qty_in,
        "qty_out": qty_out,
    })


@pytest.fixture
async def locations(client, auth_headers):
    for code, name in (("WH-A", "Gudang Jakarta"), ("WH-B", "Gudang Bandung")):
        response = await client.post("/v1/locations", headers=auth_headers, json={"code": code, "name": name})
        assert response.status_code == 201


@pytest.mark.asyncio
async def test_requires_authentication(client):
    response = await client.get("/v1/ledger/balance", params={"product_id": 1, "location_code": "WH-A"})
    assert response.status_code in (401, 403)

    response = await client.get(
        "/v1/ledger/balance",
        params={"product_id": 1, "location_code": "WH-A"},
        headers={"Authorization": "Bearer not-a-token"},
    )
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_record_and_read_movement(client, auth_headers):
    response = await _record(client, auth_headers, "2024-01-15T00:00:00", qty_in=10)
    assert response.status_code == 201
    data = response.json()
    assert data["running_balance"] == 10
    assert data["source_type"] == "manual"
    assert data["locked"] is False
    assert data["created_by"] == 7

    response = await client.get(f"/v1/ledger/entries/{data['id']}", headers=auth_headers)
    assert response.status_code == 200
    assert response.json()["qty_in"] == 10

    response = await client.get(
        "/v1/ledger/balance", headers=auth_headers,
        params={"product_id": 1, "location_code": "WH-A"},
    )
    assert response.json()["balance"] == 10


@pytest.mark.asyncio
async def test_locked_period_returns_conflict(client, auth_headers):
    response = await client.post("/v1/ledger/checkpoints", headers=auth_headers, json={
        "product_id": 1,
        "location_code": "WH-A",
        "as_of": "2024-01-10T00:00:00",
        "balance": 100,
        "lock_source_ref": "SO-1",
    })
    assert response.status_code == 201
    assert response.json()["locked"] is True

    response = await _record(client, auth_headers, "2024-01-05T00:00:00", qty_in=1)
    assert response.status_code == 409
    body = response.json()
    assert body["error_code"] == "ERR_LEDGER_LOCKED"
    assert body["details"]["lock_boundary"] == "2024-01-10T00:00:00"
    assert body["details"]["lock_source_ref"] == "SO-1"


@pytest.mark.asyncio
async def test_zero_movement_is_rejected(client, auth_headers):
    response = await _record(client, auth_headers, "2024-01-15T00:00:00")
    assert response.status_code == 422
    assert response.json()["error_code"] == "ERR_LEDGER_VALIDATION"

    response = await _record(client, auth_headers, "2024-01-15T00:00:00", qty_in=-4)
    assert response.status_code == 422
    assert response.json()["error_code"] == "ERR_VALIDATION"


@pytest.mark.asyncio
async def test_edit_delete_and_history(client, auth_headers):
    first = (await _record(client, auth_headers, "2024-01-01T00:00:00", qty_in=10)).json()
    second = (await _record(client, auth_headers, "2024-01-02T00:00:00", qty_out=4)).json()

    response = await client.patch(
        f"/v1/ledger/movements/{first['id']}", headers=auth_headers,
        json={"qty_in": 20, "qty_out": 0},
    )
    assert response.status_code == 200
    assert response.json()["running_balance"] == 20

    response = await client.get(
        "/v1/ledger/entries", headers=auth_headers,
        params={"product_id": 1, "location_code": "WH-A"},
    )
    history = response.json()
    assert history["total"] == 2
    assert [e["id"] for e in history["entries"]] == [second["id"], first["id"]]
    assert history["entries"][0]["running_balance"] == 16

    response = await client.delete(f"/v1/ledger/movements/{second['id']}", headers=auth_headers)
    assert response.status_code == 204

    response = await client.get(f"/v1/ledger/entries/{second['id']}", headers=auth_headers)
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_bulk_delete_reports_skipped(client, auth_headers):
    entry = (await _record(client, auth_headers, "2024-01-01T00:00:00", qty_in=10)).json()

    response = await client.post(
        "/v1/ledger/movements/bulk-delete", headers=auth_headers,
        json={"entry_ids": [entry["id"], 999]},
    )
    assert response.status_code == 200
    assert response.json() == {"deleted": [entry["id"]], "skipped": {"999": "ERR_NOT_FOUND_001"}}


@pytest.mark.asyncio
async def test_purchase_receipt_lifecycle(client, auth_headers):
    response = await client.post("/v1/ledger/purchase-receipts", headers=auth_headers, json={
        "receipt_ref": "PO-9",
        "product_id": 1,
        "location_code": "WH-A",
        "timestamp": "2024-01-03T00:00:00",
        "qty": 12,
    })
    assert response.status_code == 201
    receipt = response.json()
    assert receipt["source_type"] == "purchase_receipt"

    response = await client.patch(
        f"/v1/ledger/movements/{receipt['id']}", headers=auth_headers,
        json={"qty_in": 1, "qty_out": 0},
    )
    assert response.status_code == 409
    assert response.json()["error_code"] == "ERR_LEDGER_PROTECTED"

    response = await client.delete("/v1/ledger/purchase-receipts/PO-9", headers=auth_headers)
    assert response.status_code == 200
    assert response.json() == {"source_reference": "PO-9", "entries_removed": 1}


@pytest.mark.asyncio
async def test_stock_count_batch(client, auth_headers):
    await _record(client, auth_headers, "2024-01-01T00:00:00", qty_in=10)

    response = await client.post("/v1/ledger/stock-counts", headers=auth_headers, json={
        "batch_ref": "SO-2024-01",
        "location_code": "WH-A",
        "timestamp": "2024-01-31T00:00:00",
        "lines": [{"product_id": 1, "physical_qty": 9}, {"product_id": 2, "physical_qty": 3}],
    })
    assert response.status_code == 201
    entries = response.json()
    assert len(entries) == 2
    assert all(e["locked"] for e in entries)
    assert {e["product_id"]: e["running_balance"] for e in entries} == {1: 9, 2: 3}


@pytest.mark.asyncio
async def test_transfer_by_location_name(client, auth_headers, locations):
    await _record(client, auth_headers, "2024-01-01T00:00:00", qty_in=50)

    response = await client.post("/v1/transfers", headers=auth_headers, json={
        "transfer_ref": "TRF-1",
        "product_id": 1,
        "source_location": "Gudang Jakarta",
        "dest_location": "WH-B",
        "qty": 15,
        "timestamp": "2024-01-05T00:00:00",
    })
    assert response.status_code == 201
    data = response.json()
    assert data["outbound"]["location_code"] == "WH-A"
    assert data["outbound"]["running_balance"] == 35
    assert data["inbound"]["location_code"] == "WH-B"
    assert data["inbound"]["running_balance"] == 15

    response = await client.post("/v1/transfers/TRF-1/reverse", headers=auth_headers)
    assert response.status_code == 200
    assert response.json()["entries_removed"] == 2


@pytest.mark.asyncio
async def test_transfer_to_unknown_location(client, auth_headers, locations):
    response = await client.post("/v1/transfers", headers=auth_headers, json={
        "transfer_ref": "TRF-1",
        "product_id": 1,
        "source_location": "WH-A",
        "dest_location": "Gudang Surabaya",
        "qty": 1,
    })
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_duplicate_location_rejected(client, auth_headers, locations):
    response = await client.post("/v1/locations", headers=auth_headers, json={"code": "WH-C", "name": "Gudang Jakarta"})
    assert response.status_code == 400

    response = await client.get("/v1/locations", headers=auth_headers)
    assert response.json()["total"] == 2


@pytest.mark.asyncio
async def test_rebuild_endpoint(client, auth_headers):
    await _record(client, auth_headers, "2024-01-01T00:00:00", qty_in=10)
    await _record(client, auth_headers, "2024-01-01T00:00:00", qty_in=3, location_code="WH-B")

    response = await client.post("/v1/admin/ledger/rebuild", headers=auth_headers, params={"concurrency": 1})
    assert response.status_code == 200
    assert response.json() == {"partitions": 2, "entries_rewritten": 0}


@pytest.mark.asyncio
async def test_health_check(client):
    response = await client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "healthy"
    assert "X-Correlation-ID" in response.headers


@pytest.mark.asyncio
async def test_audit_rows_carry_request_correlation_id(client, auth_headers, db_session):
    headers = {**auth_headers, "X-Correlation-ID": "req-123"}
    response = await _record(client, headers, "2024-01-01T00:00:00", qty_in=1)
    assert response.headers["X-Correlation-ID"] == "req-123"

    trail = await get_audit_trail(db_session, action=AuditAction.LEDGER_MOVEMENT_RECORDED)
    assert [log.correlation_id for log in trail] == ["req-123"]
