"""
Anomalies API router.
"""
from fastapi import APIRouter, Depends, HTTPException, Query
from typing import Optional

from backend.core.database import (
    AnomalyType, Severity,
    create_anomaly, get_anomaly, list_anomalies, list_open_anomalies,
    resolve_anomaly, delete_anomaly
)
from backend.api.models import CreateAnomalyRequest, ResolveAnomalyRequest
from backend.api.security import require_api_key

router = APIRouter(prefix="/api/anomalies", tags=["Anomalies"])


@router.get("")
def get_anomalies(
    resolved: Optional[bool] = Query(None),
    severity: Optional[str] = Query(None),
    type: Optional[str] = Query(None),
    product_id: Optional[str] = Query(None),
    document_id: Optional[str] = Query(None),
    limit: int = Query(500, le=1000)
):
    """List anomalies, newest first."""
    try:
        anomalies = list_anomalies(
            resolved=resolved,
            severity=Severity(severity) if severity else None,
            anomaly_type=AnomalyType(type) if type else None,
            product_id=product_id,
            document_id=document_id,
            limit=limit,
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return {"anomalies": anomalies, "count": len(anomalies)}


@router.get("/open")
def get_open_anomalies():
    """All unresolved anomalies."""
    anomalies = list_open_anomalies()
    return {"anomalies": anomalies, "count": len(anomalies)}


@router.get("/{anomaly_id}")
def get_anomaly_detail(anomaly_id: str):
    anomaly = get_anomaly(anomaly_id)
    if not anomaly:
        raise HTTPException(status_code=404, detail="Anomaly not found")
    return anomaly


@router.post("")
def create_anomaly_endpoint(request: CreateAnomalyRequest):
    """
    Record an anomaly by hand.

    An unresolved anomaly of the same type for the same document or
    product suppresses the new one (created is then false).
    """
    anomaly = create_anomaly(
        anomaly_type=AnomalyType(request.type),
        severity=Severity(request.severity),
        title=request.title,
        description=request.description,
        document_id=request.document_id,
        product_id=request.product_id,
        supplier_id=request.supplier_id,
    )
    return {"success": True, "created": anomaly is not None, "anomaly": anomaly}


@router.post("/{anomaly_id}/resolve")
def resolve_anomaly_endpoint(anomaly_id: str, request: Optional[ResolveAnomalyRequest] = None):
    """Mark an anomaly resolved."""
    anomaly = resolve_anomaly(anomaly_id, resolved_by=request.resolved_by if request else None)
    if not anomaly:
        raise HTTPException(status_code=404, detail="Anomaly not found")
    return {"success": True, "anomaly": anomaly}


@router.delete("/{anomaly_id}", dependencies=[Depends(require_api_key)])
def delete_anomaly_endpoint(anomaly_id: str):
    if not delete_anomaly(anomaly_id):
        raise HTTPException(status_code=404, detail="Anomaly not found")
    return {"success": True, "message": f"Deleted anomaly {anomaly_id}"}
