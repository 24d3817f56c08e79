"""
HTTP route tests.

Verifies:
- Missing or unknown identity returns 401; sales reps are denied manager
  operations (403)
- Inventory figures are scoped to the caller for sales reps
- Batch actions return 409 for invalid transitions
- Report saves answer 201 then 200 for the same key
- Clearing shift sales requires explicit confirmation
"""

from datetime import timedelta

import pytest

from bakery.enums import BatchStatus
from bakery.models import Batch, SalesEvent, ShiftReport
from bakery.services import batch_service
from bakery.time_utils import utcnow


# =============================================================================
# IDENTITY & ROLES
# =============================================================================


class TestIdentity:

    @pytest.mark.parametrize(
        "method,path",
        [
            ("GET", "/api/inventory"),
            ("POST", "/api/inventory/sales"),
            ("POST", "/api/inventory/sales/clear"),
            ("GET", "/api/batches"),
            ("POST", "/api/reports/shift"),
            ("GET", "/api/shift"),
            ("GET", "/api/products"),
        ],
    )
    def test_requires_identity(self, client, db_session, method, path):
        resp = getattr(client, method.lower())(path)
        assert resp.status_code == 401, f"{method} {path} returned {resp.status_code}"

    def test_unknown_user(self, client, db_session):
        resp = client.get("/api/inventory", headers={"X-User-Id": "9999"})
        assert resp.status_code == 401

    def test_malformed_identity(self, client, db_session):
        resp = client.get("/api/inventory", headers={"X-User-Id": "abc"})
        assert resp.status_code == 401

    def test_inactive_user(self, client, db_session, sales_rep, rep_headers):
        sales_rep.is_active = False
        db_session.commit()
        resp = client.get("/api/inventory", headers=rep_headers)
        assert resp.status_code == 401


class TestSalesRepDenied:

    def test_cannot_create_batch(self, client, rep_headers, white_bread):
        resp = client.post("/api/batches", json={"product_id": white_bread.id}, headers=rep_headers)
        assert resp.status_code == 403
        assert "manager" in resp.get_json()["required_roles"]

    def test_cannot_record_production(self, client, rep_headers, white_bread):
        resp = client.post(
            "/api/inventory/production", json={"product_id": white_bread.id, "quantity": 5}, headers=rep_headers
        )
        assert resp.status_code == 403

    def test_cannot_create_product(self, client, rep_headers):
        resp = client.post("/api/products", json={"name": "Rye"}, headers=rep_headers)
        assert resp.status_code == 403


# =============================================================================
# HEALTH, SHIFT, PRODUCTS
# =============================================================================


class TestSystem:

    def test_health(self, client, db_session):
        resp = client.get("/api/health")
        assert resp.status_code == 200
        body = resp.get_json()
        assert body["status"] == "healthy"
        assert body["checks"]["batch_ticker"]["details"]["enabled"] is False


class TestShiftRoutes:

    def test_get_and_toggle(self, client, rep_headers):
        resp = client.get("/api/shift", headers=rep_headers)
        assert resp.get_json()["selected_shift"] == "morning"

        resp = client.put("/api/shift", json={"shift": "night"}, headers=rep_headers)
        assert resp.status_code == 200
        assert resp.get_json()["selected_shift"] == "night"

        resp = client.get("/api/shift", headers=rep_headers)
        assert resp.get_json()["selected_shift"] == "night"
        assert resp.get_json()["window"]["start"].endswith("Z")

    def test_invalid_shift(self, client, rep_headers):
        resp = client.put("/api/shift", json={"shift": "evening"}, headers=rep_headers)
        assert resp.status_code == 400


class TestProductRoutes:

    def test_create_list_update(self, client, manager_headers, rep_headers):
        resp = client.post("/api/products", json={"name": "Rye", "price_cents": 650}, headers=manager_headers)
        assert resp.status_code == 201
        product_id = resp.get_json()["product"]["id"]

        resp = client.post("/api/products", json={"name": "Rye"}, headers=manager_headers)
        assert resp.status_code == 409

        resp = client.patch(f"/api/products/{product_id}", json={"price_cents": 700}, headers=manager_headers)
        assert resp.status_code == 200
        assert resp.get_json()["product"]["price_cents"] == 700

        resp = client.get("/api/products", headers=rep_headers)
        assert [p["name"] for p in resp.get_json()["products"]] == ["Rye"]

    def test_read_only_field_rejected(self, client, manager_headers, white_bread):
        resp = client.patch(f"/api/products/{white_bread.id}", json={"id": 5}, headers=manager_headers)
        assert resp.status_code == 400

    def test_missing_product(self, client, manager_headers):
        resp = client.patch("/api/products/9999", json={"price_cents": 1}, headers=manager_headers)
        assert resp.status_code == 404


# =============================================================================
# INVENTORY
# =============================================================================


class TestInventoryRoutes:

    def _sell(self, client, headers, product_id, quantity, **extra):
        return client.post(
            "/api/inventory/sales",
            json={"product_id": product_id, "quantity": quantity, **extra},
            headers=headers,
        )

    def test_figures_for_rep_are_scoped_to_own_sales(
        self, client, manager_headers, rep_headers, other_rep_headers, white_bread
    ):
        resp = client.post(
            "/api/inventory/production",
            json={"product_id": white_bread.id, "quantity": 50},
            headers=manager_headers,
        )
        assert resp.status_code == 201
        assert self._sell(client, rep_headers, white_bread.id, 30).status_code == 201
        assert self._sell(client, other_rep_headers, white_bread.id, 5).status_code == 201

        body = client.get("/api/inventory", headers=rep_headers).get_json()
        (line,) = body["products"]
        assert line["produced_units"] == 50
        assert line["sold_units"] == 30
        assert line["current_stock_units"] == 20
        assert line["remaining_from_production"] == 10000
        assert line["status"] == "normal"
        assert body["window"]["shift"] == "morning"
        assert body["poll_interval_seconds"] == 30

        # A rep cannot widen the scope
        body = client.get("/api/inventory?owner_id=", headers=rep_headers).get_json()
        assert body["products"][0]["sold_units"] == 30

        body = client.get("/api/inventory", headers=manager_headers).get_json()
        assert body["products"][0]["sold_units"] == 35

    def test_production_list_is_shift_wide(self, client, manager_headers, rep_headers, white_bread):
        resp = client.post(
            "/api/inventory/production",
            json={"product_id": white_bread.id, "quantity": 40, "shift": "morning", "note": "first rack"},
            headers=manager_headers,
        )
        assert resp.status_code == 201

        body = client.get("/api/inventory/production?shift=morning", headers=rep_headers).get_json()
        assert body["count"] == 1
        assert body["production"][0]["quantity"] == 40
        assert body["production"][0]["note"] == "first rack"

        body = client.get("/api/inventory/production?shift=night", headers=rep_headers).get_json()
        assert body["count"] == 0

        resp = client.get("/api/inventory/production?shift=noon", headers=rep_headers)
        assert resp.status_code == 400

    def test_shift_query_param(self, client, manager_headers, white_bread):
        client.post(
            "/api/inventory/production",
            json={"product_id": white_bread.id, "quantity": 8, "shift": "night"},
            headers=manager_headers,
        )
        night = client.get("/api/inventory?shift=night", headers=manager_headers).get_json()
        morning = client.get("/api/inventory?shift=morning", headers=manager_headers).get_json()
        assert night["products"][0]["produced_units"] == 8
        assert morning["products"][0]["produced_units"] == 0

    def test_invalid_input_is_400(self, client, rep_headers, white_bread):
        assert self._sell(client, rep_headers, white_bread.id, -1).status_code == 400
        assert self._sell(client, rep_headers, white_bread.id, 1, shift="noon").status_code == 400
        assert client.get("/api/inventory?day=14-03-2026", headers=rep_headers).status_code == 400

    def test_unknown_product_sale_is_404(self, client, rep_headers, db_session):
        assert self._sell(client, rep_headers, 9999, 1).status_code == 404

    def test_remaining_stock(self, client, rep_headers, white_bread):
        resp = client.put(
            "/api/inventory/remaining",
            json={"lines": [{"product_id": white_bread.id, "quantity": 3}]},
            headers=rep_headers,
        )
        assert resp.status_code == 200
        assert resp.get_json()["results"][0]["action"] == "inserted"

        resp = client.get("/api/inventory/remaining", headers=rep_headers)
        assert resp.get_json()["count"] == 1

        resp = client.put("/api/inventory/remaining", json={"lines": "3"}, headers=rep_headers)
        assert resp.status_code == 400

    def test_clear_requires_confirmation(self, client, db_session, rep_headers, white_bread):
        self._sell(client, rep_headers, white_bread.id, 2)

        resp = client.post("/api/inventory/sales/clear", json={}, headers=rep_headers)
        assert resp.status_code == 400
        assert db_session.query(SalesEvent).count() == 1

        resp = client.post("/api/inventory/sales/clear", json={"confirm": True}, headers=rep_headers)
        assert resp.status_code == 200
        assert resp.get_json()["deleted_count"] == 1
        assert db_session.query(SalesEvent).count() == 0

    def test_list_sales(self, client, rep_headers, white_bread):
        self._sell(client, rep_headers, white_bread.id, 2, discount_cents=100)
        body = client.get("/api/inventory/sales", headers=rep_headers).get_json()
        assert body["count"] == 1
        assert body["sales"][0]["discount_cents"] == 100


# =============================================================================
# BATCHES
# =============================================================================


class TestBatchRoutes:

    def _create(self, client, headers, product_id, **extra):
        resp = client.post(
            "/api/batches",
            json={"product_id": product_id, "target_quantity": 100, **extra},
            headers=headers,
        )
        assert resp.status_code == 201, resp.get_json()
        return resp.get_json()["batch"]

    def test_create_issues_numbers(self, client, manager_headers, white_bread):
        first = self._create(client, manager_headers, white_bread.id)
        second = self._create(client, manager_headers, white_bread.id)
        assert (first["batch_number"], second["batch_number"]) == ("001", "002")
        assert first["status"] == "planning"
        assert first["product_name"] == "White Bread"

    def test_duplicate_manual_number_is_409(self, client, manager_headers, white_bread):
        self._create(client, manager_headers, white_bread.id, batch_number="010")
        resp = client.post(
            "/api/batches",
            json={"product_id": white_bread.id, "batch_number": "010"},
            headers=manager_headers,
        )
        assert resp.status_code == 409

    def test_lifecycle_and_invalid_transition(self, client, db_session, manager_headers, white_bread):
        batch = self._create(client, manager_headers, white_bread.id)

        resp = client.post(f"/api/batches/{batch['id']}/start", headers=manager_headers)
        assert resp.status_code == 200
        assert resp.get_json()["batch"]["status"] == "active"

        resp = client.post(f"/api/batches/{batch['id']}/complete", json={"actual_quantity": 90}, headers=manager_headers)
        assert resp.status_code == 409
        body = resp.get_json()
        assert body["current"] == "active"
        assert body["requested"] == "complete"

        db_session.expire_all()
        assert BatchStatus(db_session.get(Batch, batch["id"]).status) == BatchStatus.ACTIVE

        resp = client.post(f"/api/batches/{batch['id']}/pause", headers=manager_headers)
        assert resp.get_json()["batch"]["status"] == "paused"

        resp = client.get(f"/api/batches/{batch['id']}", headers=manager_headers)
        assert resp.get_json()["batch"]["allowed_actions"] == ["start"]

    def test_complete_from_planning_is_409_without_quantity(self, client, manager_headers, white_bread):
        batch = self._create(client, manager_headers, white_bread.id)
        resp = client.post(f"/api/batches/{batch['id']}/complete", headers=manager_headers)
        assert resp.status_code == 409
        body = resp.get_json()
        assert (body["current"], body["requested"]) == ("planning", "complete")

    def test_reads_report_progress_at_request_time(self, client, manager_headers, white_bread):
        batch = self._create(client, manager_headers, white_bread.id, estimated_duration_minutes=100)
        batch_service.transition_batch(batch["id"], "start", now=utcnow() - timedelta(minutes=50))

        one = client.get(f"/api/batches/{batch['id']}", headers=manager_headers).get_json()["batch"]
        assert one["status"] == "active"
        assert 49 <= one["progress"] <= 52

        listed = client.get("/api/batches", headers=manager_headers).get_json()["batches"]
        assert 49 <= listed[0]["progress"] <= 52

    def test_unknown_action_is_400(self, client, manager_headers, white_bread):
        batch = self._create(client, manager_headers, white_bread.id)
        resp = client.post(f"/api/batches/{batch['id']}/bake", headers=manager_headers)
        assert resp.status_code == 400

    def test_missing_batch_is_404(self, client, manager_headers, db_session):
        assert client.get("/api/batches/9999", headers=manager_headers).status_code == 404
        assert client.post("/api/batches/9999/start", headers=manager_headers).status_code == 404

    def test_log_production_requires_completed_batch(self, client, manager_headers, white_bread):
        batch = self._create(client, manager_headers, white_bread.id)
        resp = client.post(f"/api/batches/{batch['id']}/log-production", headers=manager_headers)
        assert resp.status_code == 409

    def test_tick_list_and_stats(self, client, manager_headers, white_bread):
        batch = self._create(client, manager_headers, white_bread.id)
        client.post(f"/api/batches/{batch['id']}/start", headers=manager_headers)

        resp = client.post("/api/batches/tick", headers=manager_headers)
        assert resp.status_code == 200
        assert resp.get_json() == {"transitioned": [], "has_active_batches": True}

        resp = client.get("/api/batches?status=active", headers=manager_headers)
        assert resp.get_json()["count"] == 1

        resp = client.get("/api/batches?status=baking", headers=manager_headers)
        assert resp.status_code == 400

        stats = client.get("/api/batches/stats", headers=manager_headers).get_json()
        assert stats["total_batches"] == 1
        assert stats["active_batches"] == 1
        assert stats["today_batches"] == 1


# =============================================================================
# REPORTS
# =============================================================================


class TestReportRoutes:

    def test_save_twice_creates_then_updates(self, client, db_session, rep_headers, white_bread):
        client.post("/api/inventory/sales", json={"product_id": white_bread.id, "quantity": 4}, headers=rep_headers)

        resp = client.post("/api/reports/shift", json={"feedback": "first"}, headers=rep_headers)
        assert resp.status_code == 201
        assert resp.get_json()["outcome"] == "created"
        assert resp.get_json()["report"]["total_revenue_cents"] == 2000

        resp = client.post("/api/reports/shift", json={"feedback": "second"}, headers=rep_headers)
        assert resp.status_code == 200
        assert resp.get_json()["outcome"] == "updated"

        reports = db_session.query(ShiftReport).all()
        assert len(reports) == 1
        assert reports[0].feedback == "second"

    def test_reps_only_see_their_own_reports(
        self, client, rep_headers, other_rep_headers, manager_headers, white_bread
    ):
        mine = client.post("/api/reports/shift", json={}, headers=rep_headers).get_json()["report"]
        client.post("/api/reports/shift", json={}, headers=other_rep_headers)

        assert client.get("/api/reports/shift", headers=rep_headers).get_json()["count"] == 1
        assert client.get("/api/reports/shift", headers=manager_headers).get_json()["count"] == 2
        assert client.get(f"/api/reports/shift/{mine['id']}", headers=other_rep_headers).status_code == 404
        assert client.get(f"/api/reports/shift/{mine['id']}", headers=manager_headers).status_code == 200

    def test_feedback_must_be_text(self, client, rep_headers):
        resp = client.post("/api/reports/shift", json={"feedback": 5}, headers=rep_headers)
        assert resp.status_code == 400
