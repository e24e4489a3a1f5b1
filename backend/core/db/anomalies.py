"""
Anomaly database operations.

Invariant: at most one unresolved anomaly per (type, document) and per
(type, product). create_anomaly checks first and the partial unique
indexes in the schema drop any insert that races past the check.
Resolved anomalies stay for history and never block a new detection.
"""
from typing import Optional, List, Dict, Any

from .base import get_db, AnomalyType, Severity
from .utils import new_id, now


def anomaly_exists(
    anomaly_type: AnomalyType,
    document_id: Optional[str] = None,
    product_id: Optional[str] = None
) -> bool:
    """True if an unresolved anomaly of this type references the document (or else the product)."""
    if document_id:
        column, subject = "document_id", document_id
    elif product_id:
        column, subject = "product_id", product_id
    else:
        return False

    with get_db() as conn:
        row = conn.execute(
            f"SELECT 1 FROM anomalies WHERE type = ? AND {column} = ? AND resolved = 0 LIMIT 1",
            (AnomalyType(anomaly_type).value, subject)
        ).fetchone()
        return row is not None


def supplier_has_anomaly(anomaly_type: AnomalyType, supplier_id: str) -> bool:
    """True if any anomaly of this type (resolved or not) references the supplier."""
    with get_db() as conn:
        row = conn.execute(
            "SELECT 1 FROM anomalies WHERE type = ? AND supplier_id = ? LIMIT 1",
            (AnomalyType(anomaly_type).value, supplier_id)
        ).fetchone()
        return row is not None


def create_anomaly(
    anomaly_type: AnomalyType,
    severity: Severity,
    title: str,
    description: str,
    document_id: Optional[str] = None,
    product_id: Optional[str] = None,
    supplier_id: Optional[str] = None
) -> Optional[Dict[str, Any]]:
    """
    Insert an unresolved anomaly unless an unresolved twin already exists.

    Returns:
        The new anomaly, or None when it was suppressed as a duplicate
    """
    anomaly_id = new_id()

    with get_db() as conn:
        if anomaly_exists(anomaly_type, document_id, product_id):
            return None

        result = conn.execute("""
            INSERT OR IGNORE INTO anomalies
            (id, type, severity, title, description, document_id, product_id, supplier_id, detected_at, resolved)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, 0)
        """, (
            anomaly_id, AnomalyType(anomaly_type).value, Severity(severity).value,
            title, description, document_id, product_id, supplier_id, now()
        ))
        if result.rowcount == 0:
            return None

    return get_anomaly(anomaly_id)


def get_anomaly(anomaly_id: str) -> Optional[Dict[str, Any]]:
    """Get an anomaly by ID."""
    with get_db() as conn:
        row = conn.execute("SELECT * FROM anomalies WHERE id = ?", (anomaly_id,)).fetchone()
        if row:
            return _to_dict(row)
    return None


def list_anomalies(
    resolved: Optional[bool] = None,
    severity: Optional[Severity] = None,
    anomaly_type: Optional[AnomalyType] = None,
    product_id: Optional[str] = None,
    document_id: Optional[str] = None,
    limit: int = 500
) -> List[Dict[str, Any]]:
    """List anomalies, newest first, with optional filters."""
    query = "SELECT * FROM anomalies WHERE 1=1"
    params = []

    if resolved is not None:
        query += " AND resolved = ?"
        params.append(1 if resolved else 0)

    if severity:
        query += " AND severity = ?"
        params.append(Severity(severity).value)

    if anomaly_type:
        query += " AND type = ?"
        params.append(AnomalyType(anomaly_type).value)

    if product_id:
        query += " AND product_id = ?"
        params.append(product_id)

    if document_id:
        query += " AND document_id = ?"
        params.append(document_id)

    query += " ORDER BY detected_at DESC, rowid DESC LIMIT ?"
    params.append(limit)

    with get_db() as conn:
        rows = conn.execute(query, params).fetchall()
        return [_to_dict(row) for row in rows]


def list_open_anomalies() -> List[Dict[str, Any]]:
    """All unresolved anomalies."""
    return list_anomalies(resolved=False)


def resolve_anomaly(anomaly_id: str, resolved_by: Optional[str] = None) -> Optional[Dict[str, Any]]:
    """Mark an anomaly resolved. Resolution is one-way."""
    with get_db() as conn:
        result = conn.execute("""
            UPDATE anomalies SET resolved = 1, resolved_at = ?, resolved_by = ?
            WHERE id = ? AND resolved = 0
        """, (now(), resolved_by, anomaly_id))
        if result.rowcount == 0 and get_anomaly(anomaly_id) is None:
            return None

    return get_anomaly(anomaly_id)


def resolve_open_anomalies(anomaly_type: AnomalyType, product_id: str) -> List[str]:
    """Resolve every unresolved anomaly of a type for a product. Returns resolved IDs."""
    with get_db() as conn:
        rows = conn.execute(
            "SELECT id FROM anomalies WHERE type = ? AND product_id = ? AND resolved = 0",
            (AnomalyType(anomaly_type).value, product_id)
        ).fetchall()
        ids = [row["id"] for row in rows]

        timestamp = now()
        for anomaly_id in ids:
            conn.execute(
                "UPDATE anomalies SET resolved = 1, resolved_at = ? WHERE id = ?",
                (timestamp, anomaly_id)
            )

    return ids


def delete_anomaly(anomaly_id: str) -> bool:
    """Delete an anomaly."""
    with get_db() as conn:
        result = conn.execute("DELETE FROM anomalies WHERE id = ?", (anomaly_id,))
        return result.rowcount > 0


def _to_dict(row) -> Dict[str, Any]:
    anomaly = dict(row)
    anomaly["resolved"] = bool(anomaly["resolved"])
    return anomaly
