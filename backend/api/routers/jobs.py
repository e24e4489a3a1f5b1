"""
Detector job and worker API router.
"""
from fastapi import APIRouter, HTTPException, Query
from typing import Optional

from backend.core.database import (
    JobStatus, JobType,
    get_job, list_jobs, retry_failed_jobs, cancel_job
)
from backend.core.worker import get_scheduler_status, run_sweep, SWEEPS

router = APIRouter(prefix="/api/jobs", tags=["Jobs"])


@router.get("")
def get_jobs(
    status: Optional[str] = Query(None),
    job_type: Optional[str] = Query(None),
    document_id: Optional[str] = Query(None),
    limit: int = Query(100, le=500)
):
    """List jobs with optional filters."""
    try:
        job_status = JobStatus(status) if status else None
        jtype = JobType(job_type) if job_type else None
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    jobs = list_jobs(status=job_status, job_type=jtype, document_id=document_id, limit=limit)
    return {"jobs": jobs, "count": len(jobs)}


@router.post("/retry-failed")
def retry_all_failed_jobs():
    """Re-queue all failed jobs that haven't exceeded max attempts."""
    count = retry_failed_jobs()
    return {"success": True, "requeued_count": count}


@router.get("/{job_id}")
def get_job_detail(job_id: str):
    """Get job details by ID."""
    job = get_job(job_id)
    if not job:
        raise HTTPException(status_code=404, detail="Job not found")
    return job


@router.post("/{job_id}/cancel")
def cancel_job_endpoint(job_id: str):
    """Cancel a queued job."""
    result = cancel_job(job_id)
    if not result:
        raise HTTPException(status_code=404, detail="Job not found")
    return {"success": True, "job": result}


# Worker status endpoint

worker_router = APIRouter(prefix="/api/worker", tags=["Worker"])


@worker_router.get("/status")
def worker_status():
    """Get background worker status."""
    return get_scheduler_status()


@worker_router.post("/sweeps/{name}")
def run_sweep_endpoint(name: str):
    """Run a scheduled sweep now (low_stock, missing_delivery_notes, price_history)."""
    if name not in SWEEPS:
        raise HTTPException(status_code=404, detail=f"Unknown sweep: {name}")
    count = run_sweep(name)
    return {"success": True, "sweep": name, "count": count}
