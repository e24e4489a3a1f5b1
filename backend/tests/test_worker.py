"""
Tests for the background worker: job dispatch, failure handling,
stuck job recovery and the scheduled sweeps.
"""
import json
import sqlite3
from datetime import datetime, timedelta
from unittest.mock import patch

from backend.core import detection, worker
from backend.core.approval import update_document_status, create_manual_document
from backend.core.database import (
    AnomalyType, DocumentStatus, DocumentType, JobStatus, JobType,
    get_job, list_anomalies, list_jobs, list_price_history,
)
from tests.conftest import create_document, create_job, create_product, create_supplier


class TestJobDispatch:
    def test_no_job(self, patch_db):
        assert worker.run_job_worker() is None

    def test_unknown_job_type_fails(self, patch_db):
        jid = create_job(patch_db, job_type="mystery")

        worker.run_job_worker()

        job = get_job(jid)
        assert job["status"] == JobStatus.FAILED.value
        assert "Unknown job type" in job["error_message"]
        assert job["attempts"] == 1

    def test_exception_marks_failed(self, patch_db):
        jid = create_job(patch_db, job_type="stock_check")

        with patch("backend.core.worker.check_received_products", side_effect=RuntimeError("boom")):
            worker.run_job_worker()

        job = get_job(jid)
        assert job["status"] == JobStatus.FAILED.value
        assert job["error_message"] == "boom"

    def test_stock_check_job(self, patch_db):
        pid = create_product(patch_db, current_stock=0, min_stock=2)
        payload = json.dumps({"products": [{"product_id": pid, "was_low_stock": False}]})
        jid = create_job(patch_db, job_type="stock_check", payload=payload)

        worker.run_job_worker()

        job = get_job(jid)
        assert job["status"] == JobStatus.COMPLETED.value
        assert list_anomalies(product_id=pid)[0]["severity"] == "high"

    def test_price_check_job_requires_supplier(self, patch_db):
        jid = create_job(patch_db, job_type="price_check", document_id="d1")
        worker.run_job_worker()
        assert get_job(jid)["status"] == JobStatus.FAILED.value


class TestApprovalToAnomalies:
    """End to end: approval writes jobs, draining them produces anomalies."""

    def test_price_increase_across_invoices(self, patch_db):
        sid = create_supplier(patch_db, name="Metro")
        first = create_document(patch_db, supplier_id=sid, supplier_name="Metro",
                                items=[{"name": "Lachs", "quantity": 2, "unit": "kg", "unit_price": 20.0}])
        second = create_document(patch_db, supplier_id=sid, supplier_name="Metro",
                                 items=[{"name": "Lachs", "quantity": 2, "unit": "kg", "unit_price": 25.0}])

        update_document_status(first, DocumentStatus.APPROVED)
        worker.drain_jobs()
        update_document_status(second, DocumentStatus.APPROVED)
        worker.drain_jobs()

        anomalies = list_anomalies(anomaly_type=AnomalyType.PRICE_INCREASE)
        assert len(anomalies) == 1
        assert anomalies[0]["document_id"] == second
        assert anomalies[0]["severity"] == "medium"

    def test_failed_price_check_retries_cleanly(self, patch_db):
        sid = create_supplier(patch_db, name="Metro")
        items = [{"name": "Butter", "quantity": 1, "unit": "kg", "unit_price": 8.0}]
        first = create_document(patch_db, supplier_id=sid, supplier_name="Metro",
                                items=items + [{"name": "Lachs", "quantity": 1, "unit": "kg", "unit_price": 20.0}])
        second = create_document(patch_db, supplier_id=sid, supplier_name="Metro",
                                 items=items + [{"name": "Lachs", "quantity": 1, "unit": "kg", "unit_price": 30.0}])
        update_document_status(first, DocumentStatus.APPROVED)
        worker.drain_jobs()

        real_record_price = detection.record_price
        calls = []

        def flaky_record_price(**kwargs):
            calls.append(kwargs["product_name"])
            if len(calls) == 2:
                raise sqlite3.OperationalError("database is locked")
            return real_record_price(**kwargs)

        update_document_status(second, DocumentStatus.APPROVED)
        with patch("backend.core.detection.record_price", side_effect=flaky_record_price):
            worker.drain_jobs()

        job = list_jobs(job_type=JobType.PRICE_CHECK, document_id=second)[0]
        assert job["status"] == JobStatus.FAILED.value
        assert len(list_price_history(product_name="Butter")) == 1

        worker.retry_failed()
        worker.drain_jobs()

        assert len(list_price_history(product_name="Butter")) == 2
        assert len(list_price_history(product_name="Lachs")) == 2
        increases = list_anomalies(anomaly_type=AnomalyType.PRICE_INCREASE)
        assert [a["document_id"] for a in increases] == [second]

    def test_low_stock_resolved_by_delivery(self, patch_db):
        pid = create_product(patch_db, name="Milch", current_stock=1, min_stock=5)
        worker.run_sweep("low_stock")
        assert len(list_anomalies(resolved=False, product_id=pid)) == 1

        doc = create_document(patch_db, doc_type="delivery_note",
                              items=[{"name": "Milch", "quantity": 10, "unit_price": 1.0}])
        update_document_status(doc, DocumentStatus.APPROVED)
        worker.drain_jobs()

        assert list_anomalies(resolved=False, product_id=pid) == []
        assert list_anomalies(resolved=True, product_id=pid)[0]["resolved_at"]

    def test_new_supplier_and_duplicate_on_intake(self, patch_db):
        create_manual_document(DocumentType.INVOICE, "Neu GmbH", "2026-03-01", items=[],
                               invoice_number="R-1")
        create_manual_document(DocumentType.INVOICE, "Neu GmbH", "2026-03-02", items=[],
                               invoice_number="R-1")

        worker.drain_jobs()

        assert len(list_anomalies(anomaly_type=AnomalyType.NEW_SUPPLIER)) == 1
        assert len(list_anomalies(anomaly_type=AnomalyType.DUPLICATE_INVOICE)) == 1
        assert all(job["status"] == "completed" for job in list_jobs())


class TestRecovery:
    def test_stuck_job_requeued(self, patch_db):
        stale = (datetime.utcnow() - timedelta(minutes=30)).isoformat()
        jid = create_job(patch_db, status="running", attempts=1, started_at=stale)

        assert worker.recover_stuck_jobs() == 1
        assert get_job(jid)["status"] == JobStatus.QUEUED.value

    def test_stuck_job_out_of_attempts_fails(self, patch_db):
        stale = (datetime.utcnow() - timedelta(minutes=30)).isoformat()
        jid = create_job(patch_db, status="running", attempts=3, max_attempts=3, started_at=stale)

        worker.recover_stuck_jobs()
        assert get_job(jid)["status"] == JobStatus.FAILED.value

    def test_recent_running_job_left_alone(self, patch_db):
        jid = create_job(patch_db, status="running", attempts=1,
                         started_at=datetime.utcnow().isoformat())
        assert worker.recover_stuck_jobs() == 0
        assert get_job(jid)["status"] == JobStatus.RUNNING.value

    def test_retry_failed(self, patch_db):
        jid = create_job(patch_db, status="failed", attempts=1)
        assert worker.retry_failed() == 1
        assert get_job(jid)["status"] == JobStatus.QUEUED.value


class TestScheduler:
    def test_status_when_stopped(self):
        assert worker.get_scheduler_status() == {"running": False, "jobs": []}

    def test_start_registers_jobs(self):
        try:
            worker.start_scheduler()
            ids = {job["id"] for job in worker.get_scheduler_status()["jobs"]}
        finally:
            worker.stop_scheduler()

        assert {"job_worker", "failed_job_retry", "stuck_job_recovery",
                "low_stock_sweep", "missing_delivery_sweep"} <= ids
