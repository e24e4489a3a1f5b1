"""
Job queue database operations.

Jobs are the detector task outbox: they are written in the same
transaction as the change that triggers them and drained by the worker.
"""
from datetime import datetime
from typing import Optional, List, Dict, Any

from .base import get_db, JobStatus, JobType
from .utils import new_id, parse_json_field, to_json
from ..config import settings


def create_job(
    job_type: JobType,
    document_id: Optional[str] = None,
    payload: Optional[Dict[str, Any]] = None,
    priority: int = 0,
    max_attempts: Optional[int] = None
) -> Dict[str, Any]:
    """Create a new queued job."""
    job_id = new_id()
    now = datetime.utcnow().isoformat()

    with get_db() as conn:
        conn.execute("""
            INSERT INTO jobs (id, job_type, document_id, payload, status, priority, max_attempts, created_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?)
        """, (
            job_id, JobType(job_type).value, document_id, to_json(payload or {}),
            JobStatus.QUEUED.value, priority,
            max_attempts or settings.JOB_MAX_ATTEMPTS, now
        ))

    return get_job(job_id)


def get_job(job_id: str) -> Optional[Dict[str, Any]]:
    """Get a job by ID."""
    with get_db() as conn:
        row = conn.execute("SELECT * FROM jobs WHERE id = ?", (job_id,)).fetchone()
        if row:
            return _to_dict(row)
    return None


def get_next_job() -> Optional[Dict[str, Any]]:
    """Get the next queued job (highest priority, oldest first)."""
    with get_db() as conn:
        row = conn.execute("""
            SELECT * FROM jobs
            WHERE status = ?
            ORDER BY priority DESC, created_at ASC, rowid ASC
            LIMIT 1
        """, (JobStatus.QUEUED.value,)).fetchone()
        if row:
            return _to_dict(row)
    return None


def list_jobs(
    status: Optional[JobStatus] = None,
    job_type: Optional[JobType] = None,
    document_id: Optional[str] = None,
    limit: int = 100
) -> List[Dict[str, Any]]:
    """List jobs with optional filters."""
    query = "SELECT * FROM jobs WHERE 1=1"
    params = []

    if status:
        query += " AND status = ?"
        params.append(JobStatus(status).value)

    if job_type:
        query += " AND job_type = ?"
        params.append(JobType(job_type).value)

    if document_id:
        query += " AND document_id = ?"
        params.append(document_id)

    query += " ORDER BY created_at DESC, rowid DESC LIMIT ?"
    params.append(limit)

    with get_db() as conn:
        rows = conn.execute(query, params).fetchall()
        return [_to_dict(row) for row in rows]


def update_job_status(
    job_id: str,
    status: JobStatus,
    error_message: Optional[str] = None,
    result: Optional[Dict] = None
) -> Optional[Dict[str, Any]]:
    """Update job status."""
    updates = {"status": status.value}
    now = datetime.utcnow().isoformat()

    if status == JobStatus.RUNNING:
        updates["started_at"] = now
        with get_db() as conn:
            conn.execute("UPDATE jobs SET attempts = attempts + 1 WHERE id = ?", (job_id,))

    if status in (JobStatus.COMPLETED, JobStatus.FAILED):
        updates["completed_at"] = now

    if error_message:
        updates["error_message"] = error_message

    if result:
        updates["result"] = to_json(result)

    set_clause = ", ".join(f"{k} = ?" for k in updates.keys())
    values = list(updates.values()) + [job_id]

    with get_db() as conn:
        conn.execute(f"UPDATE jobs SET {set_clause} WHERE id = ?", values)

    return get_job(job_id)


def retry_failed_jobs() -> int:
    """Re-queue failed jobs that haven't exceeded their max attempts."""
    with get_db() as conn:
        result = conn.execute("""
            UPDATE jobs
            SET status = ?
            WHERE status = ? AND attempts < max_attempts
        """, (JobStatus.QUEUED.value, JobStatus.FAILED.value))
        return result.rowcount


def cancel_job(job_id: str) -> Optional[Dict[str, Any]]:
    """Cancel a queued job."""
    job = get_job(job_id)
    if not job:
        return None

    if job["status"] != JobStatus.QUEUED.value:
        return job  # Already running/completed/failed/cancelled

    now = datetime.utcnow().isoformat()
    with get_db() as conn:
        conn.execute("""
            UPDATE jobs
            SET status = ?, completed_at = ?, error_message = ?
            WHERE id = ?
        """, (JobStatus.CANCELLED.value, now, "Cancelled by user", job_id))

    return get_job(job_id)


def _to_dict(row) -> Dict[str, Any]:
    job = dict(row)
    job["payload"] = parse_json_field(job.get("payload"), {})
    return job
