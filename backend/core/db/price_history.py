"""
Price history - append-only log of observed unit prices per product and supplier.

The most recent record for a (product name, supplier) pair is the
last known price used by price change detection.
"""
from datetime import datetime, timedelta
from typing import Optional, List, Dict, Any

from .base import get_db
from .utils import new_id, now, to_iso_date


def record_price(
    product_name: str,
    supplier_id: str,
    unit_price: float,
    unit: Optional[str],
    document_id: Optional[str],
    document_date: Optional[str]
) -> Dict[str, Any]:
    """Append a price observation."""
    record_id = new_id()

    with get_db() as conn:
        conn.execute("""
            INSERT INTO price_history
            (id, product_name, supplier_id, unit_price, unit, document_id, document_date, recorded_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?)
        """, (record_id, product_name, supplier_id, unit_price, unit,
              document_id, to_iso_date(document_date), now()))
        row = conn.execute("SELECT * FROM price_history WHERE id = ?", (record_id,)).fetchone()
        return dict(row)


def get_last_price(product_name: str, supplier_id: str) -> Optional[Dict[str, Any]]:
    """Most recent price record for a product from a supplier."""
    with get_db() as conn:
        row = conn.execute("""
            SELECT * FROM price_history
            WHERE product_name = ? AND supplier_id = ?
            ORDER BY recorded_at DESC, rowid DESC
            LIMIT 1
        """, (product_name, supplier_id)).fetchone()
        if row:
            return dict(row)
    return None


def list_price_history(
    product_name: Optional[str] = None,
    supplier_id: Optional[str] = None,
    limit: int = 500
) -> List[Dict[str, Any]]:
    """List price records, newest first."""
    query = "SELECT * FROM price_history WHERE 1=1"
    params = []

    if product_name:
        query += " AND product_name = ?"
        params.append(product_name)

    if supplier_id:
        query += " AND supplier_id = ?"
        params.append(supplier_id)

    query += " ORDER BY recorded_at DESC, rowid DESC LIMIT ?"
    params.append(limit)

    with get_db() as conn:
        rows = conn.execute(query, params).fetchall()
        return [dict(row) for row in rows]


def compact_price_history(retention_days: int) -> int:
    """
    Delete price records older than the retention horizon.

    The latest record of every (product, supplier) pair is always kept,
    however old, so the last known price survives compaction.

    Returns:
        Number of records deleted
    """
    cutoff = (datetime.utcnow() - timedelta(days=retention_days)).isoformat()

    with get_db() as conn:
        result = conn.execute("""
            DELETE FROM price_history
            WHERE recorded_at < ?
            AND rowid NOT IN (
                SELECT (
                    SELECT latest.rowid FROM price_history latest
                    WHERE latest.product_name = pair.product_name
                    AND latest.supplier_id = pair.supplier_id
                    ORDER BY latest.recorded_at DESC, latest.rowid DESC
                    LIMIT 1
                )
                FROM price_history pair
                GROUP BY pair.product_name, pair.supplier_id
            )
        """, (cutoff,))
        return result.rowcount
