"""
Background job worker using APScheduler.
Drains the detector job outbox and runs the scheduled sweeps.
"""
import logging
from datetime import datetime, timedelta
from typing import Callable, Dict, Optional

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger
from apscheduler.triggers.cron import CronTrigger

from .config import settings
from .database import (
    get_db, get_next_job, update_job_status, retry_failed_jobs,
    get_document, compact_price_history,
    JobStatus, JobType,
)
from .detection import (
    detect_price_changes, check_received_products,
    detect_duplicate_invoice, detect_new_supplier,
    detect_all_low_stock, detect_missing_delivery_notes,
)

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

# Jobs left in 'running' longer than this are assumed orphaned by a restart
STUCK_JOB_MINUTES = 10

# Global scheduler instance
scheduler: Optional[BackgroundScheduler] = None


def process_price_check_job(job: dict) -> dict:
    """Compare an approved invoice's prices against the price history."""
    payload = job.get("payload") or {}
    document_id = job.get("document_id")
    if not document_id:
        return {"error": "No document_id in job"}

    supplier_id = payload.get("supplier_id")
    if not supplier_id:
        return {"error": "No supplier_id in job payload"}

    created = detect_price_changes(
        document_id=document_id,
        supplier_id=supplier_id,
        items=payload.get("items", []),
        document_date=payload.get("document_date"),
    )
    return {"success": True, "anomalies_created": len(created), "anomaly_ids": created}


def process_stock_check_job(job: dict) -> dict:
    """Re-check stock for products received on a delivery note."""
    payload = job.get("payload") or {}
    outcome = check_received_products(payload.get("products", []))
    return {
        "success": True,
        "anomalies_resolved": len(outcome["resolved"]),
        "anomalies_created": len(outcome["created"]),
    }


def process_duplicate_check_job(job: dict) -> dict:
    """Look for another invoice from the supplier with the same number."""
    payload = job.get("payload") or {}
    document_id = job.get("document_id")
    if not document_id or not get_document(document_id):
        return {"error": f"Document {document_id} not found"}

    anomaly_id = detect_duplicate_invoice(
        document_id=document_id,
        invoice_number=payload.get("invoice_number", ""),
        supplier_id=payload.get("supplier_id"),
        supplier_name=payload.get("supplier_name", ""),
    )
    return {"success": True, "anomaly_id": anomaly_id}


def process_supplier_check_job(job: dict) -> dict:
    """Announce a supplier on its first document."""
    payload = job.get("payload") or {}
    supplier_id = payload.get("supplier_id")
    if not supplier_id:
        return {"error": "No supplier_id in job payload"}

    anomaly_id = detect_new_supplier(
        supplier_id=supplier_id,
        supplier_name=payload.get("supplier_name", ""),
        document_id=job.get("document_id"),
    )
    return {"success": True, "anomaly_id": anomaly_id}


JOB_HANDLERS: Dict[str, Callable[[dict], dict]] = {
    JobType.PRICE_CHECK.value: process_price_check_job,
    JobType.STOCK_CHECK.value: process_stock_check_job,
    JobType.DUPLICATE_CHECK.value: process_duplicate_check_job,
    JobType.SUPPLIER_CHECK.value: process_supplier_check_job,
}


def process_job(job: dict) -> dict:
    """Process a single job based on its type."""
    handler = JOB_HANDLERS.get(job.get("job_type"))
    if handler is None:
        return {"error": f"Unknown job type: {job.get('job_type')}"}
    return handler(job)


def run_job_worker() -> Optional[dict]:
    """
    Check for pending jobs and process one.
    Called periodically by the scheduler.
    """
    job = get_next_job()
    if not job:
        return None

    job_id = job["id"]
    logger.info(f"Processing job {job_id} ({job['job_type']})")

    # Mark as running
    update_job_status(job_id, JobStatus.RUNNING)
    result = None

    try:
        # A failing detector rolls back all of its writes
        with get_db():
            result = process_job(job)

        if result.get("error"):
            update_job_status(job_id, JobStatus.FAILED, error_message=result["error"])
            logger.error(f"Job {job_id} failed: {result['error']}")
        else:
            update_job_status(job_id, JobStatus.COMPLETED, result=result)
            logger.info(f"Job {job_id} completed successfully")

    except Exception as e:
        update_job_status(job_id, JobStatus.FAILED, error_message=str(e))
        logger.exception(f"Job {job_id} failed with exception")

    return result


def drain_jobs(limit: int = 100) -> int:
    """Process queued jobs until the queue is empty (or limit is hit)."""
    processed = 0
    while processed < limit and get_next_job():
        run_job_worker()
        processed += 1
    return processed


def retry_failed():
    """Re-queue failed jobs that still have attempts left."""
    requeued = retry_failed_jobs()
    if requeued:
        logger.info(f"Re-queued {requeued} failed jobs")
    return requeued


def recover_stuck_jobs():
    """
    Recover jobs stuck in 'running' state for more than 10 minutes.
    This handles cases where the server restarted while a job was processing.
    """
    cutoff = (datetime.utcnow() - timedelta(minutes=STUCK_JOB_MINUTES)).isoformat()
    recovered = 0

    try:
        with get_db() as conn:
            stuck_jobs = conn.execute("""
                SELECT id, job_type, attempts, max_attempts
                FROM jobs
                WHERE status = ? AND started_at < ?
            """, (JobStatus.RUNNING.value, cutoff)).fetchall()

            for job in stuck_jobs:
                # Reset to queued if under max attempts, otherwise fail
                if job["attempts"] < job["max_attempts"]:
                    conn.execute("""
                        UPDATE jobs
                        SET status = ?, started_at = NULL,
                            error_message = 'Auto-recovered from stuck state'
                        WHERE id = ?
                    """, (JobStatus.QUEUED.value, job["id"]))
                    logger.warning(f"Recovered stuck job {job['id']} ({job['job_type']}) - re-queued")
                else:
                    conn.execute("""
                        UPDATE jobs
                        SET status = ?, completed_at = ?,
                            error_message = 'Max attempts exceeded after stuck recovery'
                        WHERE id = ?
                    """, (JobStatus.FAILED.value, datetime.utcnow().isoformat(), job["id"]))
                    logger.warning(f"Failed stuck job {job['id']} ({job['job_type']}) - max attempts exceeded")
                recovered += 1

        if recovered:
            logger.info(f"Recovered {recovered} stuck jobs")

    except Exception as e:
        logger.error(f"Error recovering stuck jobs: {e}")

    return recovered


# ============================================================================
# Scheduled sweeps
# ============================================================================

def low_stock_sweep() -> int:
    """Daily: flag every product below its minimum stock."""
    return len(detect_all_low_stock())


def missing_delivery_sweep() -> int:
    """Daily: flag approved invoices without a matching delivery note."""
    return len(detect_missing_delivery_notes())


def price_history_compaction() -> int:
    """Weekly: drop superseded price records past the retention window."""
    removed = compact_price_history(settings.PRICE_HISTORY_RETENTION_DAYS)
    logger.info(f"Price history compaction removed {removed} records")
    return removed


SWEEPS: Dict[str, Callable[[], int]] = {
    "low_stock": low_stock_sweep,
    "missing_delivery_notes": missing_delivery_sweep,
    "price_history": price_history_compaction,
}


def run_sweep(name: str) -> int:
    """
    Run a named sweep immediately.

    Raises:
        KeyError: unknown sweep name
    """
    sweep = SWEEPS[name]
    logger.info(f"Manual sweep triggered: {name}")
    return sweep()


def start_scheduler():
    """Start the background scheduler."""
    global scheduler

    if scheduler is not None:
        logger.warning("Scheduler already running")
        return

    scheduler = BackgroundScheduler()

    # Job worker
    scheduler.add_job(
        run_job_worker,
        IntervalTrigger(seconds=settings.WORKER_POLL_SECONDS),
        id="job_worker",
        name="Process pending detector jobs",
        max_instances=1,
        replace_existing=True
    )

    # Failed job retry - every 5 minutes
    scheduler.add_job(
        retry_failed,
        IntervalTrigger(minutes=5),
        id="failed_job_retry",
        name="Retry failed jobs",
        replace_existing=True
    )

    # Stuck job recovery - every 5 minutes
    scheduler.add_job(
        recover_stuck_jobs,
        IntervalTrigger(minutes=5),
        id="stuck_job_recovery",
        name="Recover stuck jobs",
        replace_existing=True
    )

    scheduler.add_job(
        low_stock_sweep,
        CronTrigger(hour=settings.LOW_STOCK_SWEEP_HOUR, minute=0),
        id="low_stock_sweep",
        name="Daily low stock check",
        max_instances=1,
        replace_existing=True
    )

    scheduler.add_job(
        missing_delivery_sweep,
        CronTrigger(hour=settings.MISSING_DELIVERY_SWEEP_HOUR, minute=0),
        id="missing_delivery_sweep",
        name="Daily missing delivery note check",
        max_instances=1,
        replace_existing=True
    )

    # Price history compaction - Sunday at 3 AM
    if settings.PRICE_HISTORY_RETENTION_DAYS > 0:
        scheduler.add_job(
            price_history_compaction,
            CronTrigger(day_of_week='sun', hour=3, minute=0),
            id="price_history_compaction",
            name="Weekly price history compaction",
            max_instances=1,
            replace_existing=True
        )

    scheduler.start()
    logger.info("Background scheduler started")


def stop_scheduler():
    """Stop the background scheduler."""
    global scheduler

    if scheduler is not None:
        scheduler.shutdown(wait=False)
        scheduler = None
        logger.info("Background scheduler stopped")


def get_scheduler_status() -> dict:
    """Get scheduler status."""
    if scheduler is None:
        return {"running": False, "jobs": []}

    jobs = []
    for job in scheduler.get_jobs():
        jobs.append({
            "id": job.id,
            "name": job.name,
            "next_run": str(job.next_run_time) if job.next_run_time else None
        })

    return {"running": scheduler.running, "jobs": jobs}


def init_worker():
    """Initialize the worker (call from FastAPI startup)."""
    start_scheduler()
    return None
