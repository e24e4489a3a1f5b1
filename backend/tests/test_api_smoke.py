"""
Smoke tests for the API endpoints.

These verify that the endpoints respond correctly with basic happy-path
and error-path scenarios using an in-memory test database.
"""
import json
from unittest.mock import patch

from backend.core.worker import drain_jobs

from tests.conftest import create_anomaly, create_document, create_job, create_product


# ============================================================================
# GET /api/health
# ============================================================================

class TestHealth:
    def test_health(self, client):
        resp = client.get("/api/health")
        assert resp.status_code == 200
        assert resp.json()["status"] == "ok"


# ============================================================================
# /api/documents
# ============================================================================

class TestDocuments:
    def test_create_manual_document(self, client, patch_db):
        resp = client.post("/api/documents", json={
            "type": "invoice",
            "supplier_name": "Metro",
            "document_date": "2026-03-05",
            "invoice_number": "R-1",
            "items": [{"name": "Tomaten", "quantity": 5, "unit": "kg", "unit_price": 2.0, "total_price": 10}],
            "total_amount": 10.7,
        })
        assert resp.status_code == 200
        doc = resp.json()["document"]
        assert doc["status"] == "pending"
        assert doc["items"][0]["name"] == "Tomaten"

    def test_create_rejects_unknown_type(self, client, patch_db):
        resp = client.post("/api/documents", json={
            "type": "receipt", "supplier_name": "Metro", "document_date": "2026-03-05",
        })
        assert resp.status_code == 422

    def test_create_from_raw_extraction(self, client, patch_db):
        raw = "```json\n" + json.dumps({
            "type": "delivery_note",
            "supplierName": "Frischdienst",
            "documentDate": "2026-03-01",
            "items": [{"name": "Salat", "quantity": 4, "unit": "Stück", "unitPrice": 0.9}],
        }) + "\n```"

        resp = client.post("/api/documents/extracted", json={"raw_response": raw, "file_name": "ls.pdf"})

        assert resp.status_code == 200
        doc = resp.json()["document"]
        assert doc["status"] == "analyzed"
        assert doc["type"] == "delivery_note"
        assert doc["items"][0]["unit"] == "Stk"

    def test_create_from_bad_extraction(self, client, patch_db):
        resp = client.post("/api/documents/extracted", json={"raw_response": "kein JSON"})
        assert resp.status_code == 422

    def test_create_from_malformed_items(self, client, patch_db):
        resp = client.post("/api/documents/extracted", json={"data": {"items": ["Tomaten 5kg"]}})
        assert resp.status_code == 422

    def test_extraction_requires_payload(self, client, patch_db):
        resp = client.post("/api/documents/extracted", json={})
        assert resp.status_code == 400

    def test_list_with_filters(self, client, patch_db):
        create_document(patch_db, doc_type="invoice", status="approved")
        create_document(patch_db, doc_type="delivery_note", status="analyzed",
                        items=[{"name": "Milch", "quantity": 1}])

        resp = client.get("/api/documents", params={"type": "delivery_note", "with_items": True})
        assert resp.status_code == 200
        data = resp.json()
        assert data["count"] == 1
        assert data["documents"][0]["items"][0]["name"] == "Milch"

    def test_list_invalid_status(self, client, patch_db):
        assert client.get("/api/documents", params={"status": "lost"}).status_code == 400

    def test_get_not_found(self, client, patch_db):
        assert client.get("/api/documents/missing").status_code == 404

    def test_update_replaces_items(self, client, patch_db):
        doc = create_document(patch_db, items=[{"name": "A"}, {"name": "B"}])

        resp = client.put(f"/api/documents/{doc}", json={
            "invoice_number": "R-9",
            "items": [{"name": "C", "quantity": 2}],
        })

        assert resp.status_code == 200
        updated = resp.json()["document"]
        assert updated["invoice_number"] == "R-9"
        assert [i["name"] for i in updated["items"]] == ["C"]

    def test_approve_delivery_note(self, client, patch_db):
        pid = create_product(patch_db, name="Milch", current_stock=2, min_stock=5)
        doc = create_document(patch_db, doc_type="delivery_note",
                              items=[{"name": "Milch", "quantity": 10, "unit_price": 1.0}])

        resp = client.put(f"/api/documents/{doc}/status", json={"status": "approved"})

        assert resp.status_code == 200
        assert resp.json()["document"]["status"] == "approved"
        product = client.get(f"/api/products/{pid}").json()
        assert product["current_stock"] == 12

    def test_status_unknown_document(self, client, patch_db):
        resp = client.put("/api/documents/missing/status", json={"status": "approved"})
        assert resp.status_code == 404

    def test_status_invalid_value(self, client, patch_db):
        doc = create_document(patch_db)
        resp = client.put(f"/api/documents/{doc}/status", json={"status": "archived"})
        assert resp.status_code == 422

    def test_delete_requires_api_key_when_configured(self, client, patch_db):
        doc = create_document(patch_db)

        with patch("backend.api.security.settings") as settings:
            settings.API_KEY = "secret"
            assert client.delete(f"/api/documents/{doc}").status_code == 401
            resp = client.delete(f"/api/documents/{doc}", headers={"X-API-Key": "secret"})

        assert resp.status_code == 200
        assert client.get(f"/api/documents/{doc}").status_code == 404


# ============================================================================
# /api/anomalies
# ============================================================================

class TestAnomalies:
    def test_create_and_suppress_duplicate(self, client, patch_db):
        body = {"type": "low_stock", "severity": "medium", "title": "Niedrig", "product_id": "p1"}

        first = client.post("/api/anomalies", json=body).json()
        second = client.post("/api/anomalies", json=body).json()

        assert first["created"] is True
        assert second["created"] is False
        assert client.get("/api/anomalies/open").json()["count"] == 1

    def test_resolve(self, client, patch_db):
        aid = create_anomaly(patch_db)

        resp = client.post(f"/api/anomalies/{aid}/resolve", json={"resolved_by": "chef"})

        assert resp.status_code == 200
        anomaly = resp.json()["anomaly"]
        assert anomaly["resolved"] is True
        assert anomaly["resolved_by"] == "chef"
        assert client.get("/api/anomalies", params={"resolved": False}).json()["count"] == 0

    def test_resolve_not_found(self, client, patch_db):
        assert client.post("/api/anomalies/missing/resolve", json={}).status_code == 404

    def test_filter_by_severity(self, client, patch_db):
        create_anomaly(patch_db, severity="high", product_id="p1")
        create_anomaly(patch_db, severity="low", product_id="p2")

        data = client.get("/api/anomalies", params={"severity": "high"}).json()
        assert data["count"] == 1

    def test_delete(self, client, patch_db):
        aid = create_anomaly(patch_db)
        assert client.delete(f"/api/anomalies/{aid}").status_code == 200
        assert client.get(f"/api/anomalies/{aid}").status_code == 404


# ============================================================================
# /api/products
# ============================================================================

class TestProducts:
    def test_list_and_low_stock(self, client, patch_db):
        create_product(patch_db, name="Tomaten", current_stock=10, min_stock=3)
        create_product(patch_db, name="Milch", category="milchprodukte", current_stock=1, min_stock=3)

        assert client.get("/api/products").json()["count"] == 2
        assert client.get("/api/products", params={"category": "milchprodukte"}).json()["count"] == 1
        low = client.get("/api/products/low-stock").json()
        assert [p["name"] for p in low["products"]] == ["Milch"]

    def test_adjust_stock_flags_and_resolves(self, client, patch_db):
        pid = create_product(patch_db, current_stock=4, min_stock=3)

        down = client.post(f"/api/products/{pid}/adjust", json={"delta": -4}).json()
        assert down["product"]["current_stock"] == 0
        assert down["anomaly_created"]

        up = client.post(f"/api/products/{pid}/adjust", json={"delta": 5, "reason": "Inventur"}).json()
        assert up["product"]["current_stock"] == 5
        assert len(up["anomalies_resolved"]) == 1

        detail = client.get(f"/api/products/{pid}").json()
        assert [a["reason"] for a in detail["adjustments"]] == ["Inventur", "Manueller Abgang"]

    def test_adjust_not_found(self, client, patch_db):
        assert client.post("/api/products/missing/adjust", json={"delta": 1}).status_code == 404

    def test_update_min_stock(self, client, patch_db):
        pid = create_product(patch_db)
        resp = client.put(f"/api/products/{pid}", json={"min_stock": 8})
        assert resp.json()["product"]["min_stock"] == 8

    def test_delete(self, client, patch_db):
        pid = create_product(patch_db)
        assert client.delete(f"/api/products/{pid}").status_code == 200
        assert client.delete(f"/api/products/{pid}").status_code == 404

    def test_price_history_after_invoice(self, client, patch_db):
        doc = create_document(patch_db, items=[{"name": "Lachs", "quantity": 1, "unit": "kg", "unit_price": 21.0}])
        client.put(f"/api/documents/{doc}/status", json={"status": "approved"})
        drain_jobs()

        data = client.get("/api/products/price-history", params={"product_name": "Lachs"}).json()
        assert data["count"] == 1
        assert data["records"][0]["unit_price"] == 21.0


# ============================================================================
# /api/suppliers, /api/spending
# ============================================================================

class TestSuppliersAndSpending:
    def test_supplier_crud(self, client, patch_db):
        created = client.post("/api/suppliers", json={"name": "Metro", "email": "info@metro.de"})
        assert created.status_code == 200
        sid = created.json()["supplier"]["id"]

        assert client.post("/api/suppliers", json={"name": "Metro"}).status_code == 409
        assert client.get(f"/api/suppliers/{sid}").json()["email"] == "info@metro.de"
        assert client.get("/api/suppliers").json()["count"] == 1

    def test_spending_after_invoice_approval(self, client, patch_db):
        doc = create_document(patch_db, total_amount=120.5, document_date="2026-02-14")
        client.put(f"/api/documents/{doc}/status", json={"status": "approved"})

        record = client.get("/api/spending/2026/1").json()
        assert record["amount"] == 120.5
        assert record["month"] == "Feb"
        assert client.get("/api/spending").json()["total"] == 120.5

    def test_spending_month_range(self, client, patch_db):
        assert client.get("/api/spending/2026/12").status_code == 422
        assert client.get("/api/spending/2026/0").status_code == 404

    def test_spending_correction(self, client, patch_db):
        resp = client.put("/api/spending/2026/4", json={"amount": 80})
        assert resp.status_code == 200
        assert resp.json()["record"]["month"] == "Mai"
        assert client.get("/api/spending/2026/4").json()["amount"] == 80


# ============================================================================
# /api/jobs, /api/worker
# ============================================================================

class TestJobsAndWorker:
    def test_list_and_detail(self, client, patch_db):
        jid = create_job(patch_db, job_type="price_check")

        data = client.get("/api/jobs", params={"status": "queued"}).json()
        assert data["count"] == 1
        assert client.get(f"/api/jobs/{jid}").json()["job_type"] == "price_check"
        assert client.get("/api/jobs/missing").status_code == 404

    def test_retry_failed(self, client, patch_db):
        create_job(patch_db, status="failed", attempts=1)
        resp = client.post("/api/jobs/retry-failed")
        assert resp.json()["requeued_count"] == 1

    def test_worker_status(self, client):
        resp = client.get("/api/worker/status")
        assert resp.status_code == 200
        assert "running" in resp.json()

    def test_run_sweep(self, client, patch_db):
        create_product(patch_db, current_stock=0, min_stock=2)

        resp = client.post("/api/worker/sweeps/low_stock")

        assert resp.status_code == 200
        assert resp.json()["count"] == 1
        assert client.post("/api/worker/sweeps/unknown").status_code == 404
