"""Integration tests for the Warehouse API endpoints via TestClient."""

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from protean.integrations.fastapi import register_exception_handlers
from warehouse.api import item_router, location_router, product_router, stock_router, task_router


@pytest.fixture()
def client():
    app = FastAPI()
    for router in (product_router, location_router, stock_router, task_router, item_router):
        app.include_router(router)
    register_exception_handlers(app)
    return TestClient(app)


@pytest.fixture()
def stocked(client):
    assert client.post("/products", json={"sku": "SKU-001", "rate1": 144, "rate2": 12}).status_code == 201
    for code, capacity in (("A-1-01", 1000), ("B-1-01", None)):
        assert client.post("/locations", json={"code": code, "capacity": capacity}).status_code == 201
    client.post(
        "/stock",
        json={"sku": "SKU-001", "location_code": "A/1/01", "qty3": 100, "lot": "L1", "manufactured_on": "2025-01-01"},
    )
    client.post("/stock", json={"sku": "SKU-001", "location_code": "B/1/01", "qty2": 25})
    return client


def _create_task(client, *quantities, **overrides):
    payload = {
        "source_ref": "PO-001",
        "items": [{"sku": "SKU-001", "qty3": q} for q in quantities or (40,)],
    }
    payload.update(overrides)
    response = client.post("/tasks", json=payload)
    assert response.status_code == 201
    task_id = response.json()["task_id"]
    items = client.get(f"/tasks/{task_id}").json()["items"]
    return task_id, [item["item_id"] for item in items]


def _advance(client, task_id, item_id, status, **extra):
    return client.put(f"/tasks/{task_id}/items/{item_id}/status", json={"status": status, **extra})


class TestProductEndpoints:
    def test_register_product(self, client):
        response = client.post("/products", json={"sku": "SKU-001", "rate1": 144, "rate2": 12})
        assert response.status_code == 201
        assert response.json()["sku"] == "SKU-001"

    def test_duplicate_product(self, client):
        client.post("/products", json={"sku": "SKU-001"})
        response = client.post("/products", json={"sku": "SKU-001"})
        assert response.status_code == 400

    def test_inverted_rates(self, client):
        response = client.post("/products", json={"sku": "SKU-001", "rate1": 6, "rate2": 12})
        assert response.status_code == 400

    def test_convert_to_base(self, stocked):
        response = stocked.post("/products/SKU-001/convert-to-base", json={"qty1": 2, "qty2": 3, "qty3": 5})
        assert response.status_code == 200
        assert response.json()["base_quantity"] == 329

    def test_convert_from_base(self, stocked):
        response = stocked.post("/products/SKU-001/convert-from-base", json={"base_quantity": 329})
        data = response.json()
        assert (data["qty1"], data["qty2"], data["qty3"]) == (2, 3, 5)
        assert data["display"] == "2 Carton 3 Box 5 Piece"

    def test_convert_for_unknown_product(self, client):
        response = client.post("/products/NOPE/convert-to-base", json={"qty3": 1})
        assert response.status_code == 404

    def test_update_rates(self, stocked):
        response = stocked.put("/products/SKU-001/rates", json={"rate1": 24, "rate2": 6})
        assert response.status_code == 200
        response = stocked.post("/products/SKU-001/convert-to-base", json={"qty1": 1})
        assert response.json()["base_quantity"] == 24


class TestLocationEndpoints:
    def test_register_location(self, client):
        response = client.post("/locations", json={"code": "c 2 7"})
        assert response.status_code == 201
        assert response.json()["code"] == "C/2/07"

    def test_malformed_code(self, client):
        response = client.post("/locations", json={"code": "A/5/01"})
        assert response.status_code == 400

    def test_change_capacity_of_unknown_location(self, client):
        response = client.put("/locations/A-1-01/capacity", json={"capacity": 10})
        assert response.status_code == 404


class TestStockEndpoints:
    def test_record_at_unknown_location(self, stocked):
        response = stocked.post("/stock", json={"sku": "SKU-001", "location_code": "Z/4/99", "qty3": 1})
        assert response.status_code == 404

    def test_snapshot(self, stocked):
        response = stocked.get("/stock/snapshot")
        assert response.status_code == 200
        rows = response.json()
        assert [(r["location"], r["base_total"]) for r in rows] == [("A/1/01", 100), ("B/1/01", 300)]
        assert rows[0]["utilization"] == 10.0

    def test_snapshot_by_location(self, stocked):
        rows = stocked.get("/stock/snapshot", params={"location": "B-1-1"}).json()
        assert [r["location"] for r in rows] == ["B/1/01"]

    def test_adjust(self, stocked):
        record_id = stocked.post(
            "/stock", json={"sku": "SKU-001", "location_code": "A/1/01", "qty3": 5}
        ).json()["record_id"]
        response = stocked.put(f"/stock/{record_id}", json={"qty1": 0, "qty2": 0, "qty3": 0})
        assert response.status_code == 200
        rows = stocked.get("/stock/snapshot", params={"location": "A/1/01"}).json()
        assert rows[0]["base_total"] == 100

    def test_candidates(self, stocked):
        candidates = stocked.get("/stock/candidates", params={"sku": "SKU-001", "quantity": 150}).json()
        assert [(c["location"], c["insufficient"]) for c in candidates] == [("A/1/01", True), ("B/1/01", False)]
        assert candidates[0]["shortage"] == 50

    def test_picking_plan(self, stocked):
        plan = stocked.get("/stock/picking-plan", params={"sku": "SKU-001", "quantity": 150}).json()
        assert plan["status"] == "sufficient"
        assert [(a["location"], a["quantity"]) for a in plan["allocations"]] == [("A/1/01", 100), ("B/1/01", 50)]
        assert plan["route"] == ["A/1/01", "B/1/01"]

    def test_commitments(self, stocked):
        task_id, (item_id,) = _create_task(stocked)
        _advance(stocked, task_id, item_id, "assigned")

        response = stocked.get("/stock/commitments", params={"reference": task_id})

        assert response.status_code == 200
        (commitment,) = response.json()
        assert commitment["reference"] == f"{task_id}:{item_id}"
        assert (commitment["location"], commitment["lot"], commitment["quantity"]) == ("A/1/01", "L1", 40)
        assert (commitment["qty1"], commitment["qty2"], commitment["qty3"]) == (0, 3, 4)
        assert commitment["status"] == "active"
        assert stocked.get("/stock/commitments", params={"location": "B-1-01"}).json() == []

    def test_released_commitments_need_status(self, stocked):
        task_id, (item_id,) = _create_task(stocked)
        _advance(stocked, task_id, item_id, "assigned")
        stocked.put(f"/items/{item_id}/cancel", json={})

        assert stocked.get("/stock/commitments").json() == []
        released = stocked.get("/stock/commitments", params={"status": "all"}).json()
        assert [c["status"] for c in released] == ["released"]

    def test_commitments_with_unknown_status(self, stocked):
        assert stocked.get("/stock/commitments", params={"status": "held"}).status_code == 400

    def test_commitment_totals(self, stocked):
        task_id, item_ids = _create_task(stocked, 40, 20)
        for item_id in item_ids:
            _advance(stocked, task_id, item_id, "assigned")

        totals = stocked.get("/stock/commitments/totals").json()

        assert [(t["location"], t["commitments"], t["quantity"]) for t in totals] == [("A/1/01", 2, 60)]


class TestTaskEndpoints:
    def test_create_and_get(self, stocked):
        task_id, item_ids = _create_task(stocked, 40, 20, priority="high")
        data = stocked.get(f"/tasks/{task_id}").json()
        assert data["status"] == "pending"
        assert data["priority"] == "high"
        assert [i["requested_quantity"] for i in data["items"]] == [40, 20]
        assert len(item_ids) == 2

    def test_create_with_unknown_priority(self, stocked):
        response = stocked.post(
            "/tasks", json={"source_ref": "PO-001", "priority": "asap", "items": [{"sku": "SKU-001", "qty3": 1}]}
        )
        assert response.status_code == 400

    def test_get_unknown_task(self, client):
        assert client.get("/tasks/missing").status_code == 404

    def test_assign_and_pick(self, stocked):
        task_id, (item_id,) = _create_task(stocked)

        response = _advance(stocked, task_id, item_id, "assigned")
        assert response.status_code == 200
        assert response.json()["location"] == "A/1/01"
        assert response.json()["task_status"] == "in_progress"

        response = _advance(stocked, task_id, item_id, "picking")
        assert response.json()["status"] == "picking"

        rows = stocked.get("/stock/snapshot", params={"location": "A/1/01"}).json()
        assert rows[0]["committed"] == 40
        assert rows[0]["available"] == 60

    def test_assign_beyond_stock(self, stocked):
        task_id, (item_id,) = _create_task(stocked, 1000)
        response = _advance(stocked, task_id, item_id, "assigned")
        assert response.status_code == 400

    def test_invalid_transition(self, stocked):
        task_id, (item_id,) = _create_task(stocked)
        response = _advance(stocked, task_id, item_id, "completed")
        assert response.status_code == 400

    def test_unknown_status(self, stocked):
        task_id, (item_id,) = _create_task(stocked)
        response = _advance(stocked, task_id, item_id, "finished")
        assert response.status_code == 400

    def test_cancel_item(self, stocked):
        task_id, (item_id,) = _create_task(stocked)
        _advance(stocked, task_id, item_id, "assigned")

        response = stocked.put(f"/items/{item_id}/cancel", json={"reason": "not needed"})

        assert response.status_code == 200
        assert response.json()["task_status"] == "cancelled"
        rows = stocked.get("/stock/snapshot", params={"location": "A/1/01"}).json()
        assert rows[0]["committed"] == 0

    def test_ship(self, stocked):
        task_id, (item_id,) = _create_task(stocked)
        for status in ("assigned", "picking", "completed"):
            assert _advance(stocked, task_id, item_id, status).status_code == 200

        response = stocked.put(f"/tasks/{task_id}/ship")

        assert response.status_code == 200
        assert stocked.get(f"/tasks/{task_id}").json()["status"] == "shipped"
        rows = stocked.get("/stock/snapshot", params={"location": "A/1/01"}).json()
        assert rows[0]["base_total"] == 60

    def test_ship_open_task(self, stocked):
        task_id, _ = _create_task(stocked)
        assert stocked.put(f"/tasks/{task_id}/ship").status_code == 400

    def test_list_and_statistics(self, stocked):
        _create_task(stocked, source_ref="PO-1", priority="low")
        _create_task(stocked, source_ref="PO-2", priority="urgent")

        tasks = stocked.get("/tasks").json()
        assert [t["source_ref"] for t in tasks] == ["PO-2", "PO-1"]

        stats = stocked.get("/tasks/statistics").json()
        assert stats["total"] == 2
        assert stats["pending"] == 2
        assert stats["urgent"] == 1

    def test_list_with_unknown_status(self, stocked):
        assert stocked.get("/tasks", params={"status": "lost"}).status_code == 400
