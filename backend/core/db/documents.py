"""
Document and document item database operations.

A document is an uploaded invoice or delivery note. Its items have no
lifecycle of their own: they are replaced wholesale on edit and deleted
with the document.
"""
from typing import Optional, List, Dict, Any

from .base import (
    get_db, DocumentType, DocumentStatus, ALLOWED_DOCUMENT_COLUMNS
)
from .utils import new_id, now, to_iso_date, build_update


def _insert_items(conn, document_id: str, items: List[Dict[str, Any]]) -> None:
    for position, item in enumerate(items):
        conn.execute("""
            INSERT INTO document_items
            (id, document_id, position, name, quantity, unit, unit_price, total_price)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?)
        """, (
            new_id(), document_id, position,
            item["name"],
            float(item.get("quantity") or 0),
            item.get("unit") or "Stk",
            float(item.get("unit_price") or 0),
            float(item.get("total_price") or 0),
        ))


def create_document(
    doc_type: DocumentType,
    supplier_name: str,
    document_date: str,
    items: List[Dict[str, Any]],
    supplier_id: Optional[str] = None,
    supplier_address: Optional[str] = None,
    invoice_number: Optional[str] = None,
    file_name: Optional[str] = None,
    file_id: Optional[str] = None,
    due_date: Optional[str] = None,
    net_amount: float = 0,
    tax_amount: float = 0,
    tax_rate: Optional[float] = None,
    total_amount: float = 0,
    status: DocumentStatus = DocumentStatus.PENDING,
    uploaded_by: Optional[str] = None
) -> Dict[str, Any]:
    """Insert a document header and its items."""
    document_id = new_id()
    timestamp = now()

    with get_db() as conn:
        conn.execute("""
            INSERT INTO documents
            (id, type, file_name, file_id, invoice_number, supplier_name, supplier_address,
             supplier_id, document_date, due_date, net_amount, tax_amount, tax_rate,
             total_amount, status, uploaded_by, upload_date, updated_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
        """, (
            document_id, DocumentType(doc_type).value, file_name, file_id, invoice_number,
            supplier_name, supplier_address, supplier_id,
            to_iso_date(document_date), to_iso_date(due_date),
            net_amount, tax_amount, tax_rate, total_amount,
            DocumentStatus(status).value, uploaded_by, timestamp, timestamp
        ))
        _insert_items(conn, document_id, items)

    return get_document_with_items(document_id)


def get_document(document_id: str) -> Optional[Dict[str, Any]]:
    """Get a document header by ID."""
    with get_db() as conn:
        row = conn.execute("SELECT * FROM documents WHERE id = ?", (document_id,)).fetchone()
        if row:
            return dict(row)
    return None


def list_document_items(document_id: str) -> List[Dict[str, Any]]:
    """List a document's items in their original order."""
    with get_db() as conn:
        rows = conn.execute(
            "SELECT * FROM document_items WHERE document_id = ? ORDER BY position ASC",
            (document_id,)
        ).fetchall()
        return [dict(row) for row in rows]


def get_document_with_items(document_id: str) -> Optional[Dict[str, Any]]:
    """Get a document with its items attached under 'items'."""
    document = get_document(document_id)
    if not document:
        return None
    document["items"] = list_document_items(document_id)
    return document


def list_documents(
    status: Optional[DocumentStatus] = None,
    doc_type: Optional[DocumentType] = None,
    limit: int = 500
) -> List[Dict[str, Any]]:
    """List documents, newest upload first, with optional filters."""
    query = "SELECT * FROM documents WHERE 1=1"
    params = []

    if status:
        query += " AND status = ?"
        params.append(DocumentStatus(status).value)

    if doc_type:
        query += " AND type = ?"
        params.append(DocumentType(doc_type).value)

    query += " ORDER BY upload_date DESC LIMIT ?"
    params.append(limit)

    with get_db() as conn:
        rows = conn.execute(query, params).fetchall()
        return [dict(row) for row in rows]


def list_documents_with_items(
    status: Optional[DocumentStatus] = None,
    doc_type: Optional[DocumentType] = None,
    limit: int = 500
) -> List[Dict[str, Any]]:
    """List documents with their items attached."""
    documents = list_documents(status=status, doc_type=doc_type, limit=limit)
    for document in documents:
        document["items"] = list_document_items(document["id"])
    return documents


def update_document(
    document_id: str,
    items: Optional[List[Dict[str, Any]]] = None,
    **updates
) -> Optional[Dict[str, Any]]:
    """
    Update header fields and optionally replace all items.

    Status changes do not go through here; use the approval orchestrator.
    """
    updates = {k: v for k, v in updates.items() if v is not None}
    updates.pop("status", None)
    for key in ("document_date", "due_date"):
        if key in updates:
            updates[key] = to_iso_date(updates[key])

    with get_db() as conn:
        if updates:
            updates["updated_at"] = now()
            set_clause, values = build_update(updates, ALLOWED_DOCUMENT_COLUMNS)
            conn.execute(f"UPDATE documents SET {set_clause} WHERE id = ?", values + [document_id])

        if items is not None:
            conn.execute("DELETE FROM document_items WHERE document_id = ?", (document_id,))
            _insert_items(conn, document_id, items)

    return get_document_with_items(document_id)


def set_document_status(document_id: str, status: DocumentStatus) -> None:
    """Persist a new status on a document."""
    with get_db() as conn:
        conn.execute(
            "UPDATE documents SET status = ?, updated_at = ? WHERE id = ?",
            (DocumentStatus(status).value, now(), document_id)
        )


def mark_document_approved(document_id: str) -> bool:
    """
    Flip a document to approved.

    Returns False when the document is missing or already approved, so the
    approval side effects run at most once per document.
    """
    with get_db() as conn:
        result = conn.execute(
            "UPDATE documents SET status = ?, updated_at = ? WHERE id = ? AND status != ?",
            (DocumentStatus.APPROVED.value, now(), document_id, DocumentStatus.APPROVED.value)
        )
        return result.rowcount > 0


def set_document_supplier(document_id: str, supplier_id: str) -> None:
    """Write a resolved supplier reference back onto a document."""
    with get_db() as conn:
        conn.execute(
            "UPDATE documents SET supplier_id = ?, updated_at = ? WHERE id = ?",
            (supplier_id, now(), document_id)
        )


def delete_document(document_id: str) -> bool:
    """Delete a document and its items."""
    with get_db() as conn:
        conn.execute("DELETE FROM document_items WHERE document_id = ?", (document_id,))
        result = conn.execute("DELETE FROM documents WHERE id = ?", (document_id,))
        return result.rowcount > 0


# ---------------------------------------------------------------------------
# Lookups used by the anomaly detectors
# ---------------------------------------------------------------------------

def find_duplicate_invoices(
    document_id: str,
    invoice_number: str,
    supplier_id: str
) -> List[Dict[str, Any]]:
    """
    Invoices from the same supplier with the same number that were stored
    before the given document.
    """
    with get_db() as conn:
        rows = conn.execute("""
            SELECT * FROM documents
            WHERE supplier_id = ? AND type = ? AND invoice_number = ?
            AND rowid < (SELECT rowid FROM documents WHERE id = ?)
        """, (supplier_id, DocumentType.INVOICE.value, invoice_number, document_id)).fetchall()
        return [dict(row) for row in rows]


def count_supplier_documents(supplier_id: str, up_to_document_id: Optional[str] = None) -> int:
    """
    Count documents linked to a supplier.

    With up_to_document_id, only documents stored up to and including that
    one are counted.
    """
    query = "SELECT COUNT(*) AS n FROM documents WHERE supplier_id = ?"
    params = [supplier_id]
    if up_to_document_id:
        query += " AND rowid <= (SELECT rowid FROM documents WHERE id = ?)"
        params.append(up_to_document_id)

    with get_db() as conn:
        return conn.execute(query, params).fetchone()["n"]


def list_approved_invoices_until(cutoff: str) -> List[Dict[str, Any]]:
    """Approved invoices dated on or before cutoff (YYYY-MM-DD)."""
    with get_db() as conn:
        rows = conn.execute("""
            SELECT * FROM documents
            WHERE type = ? AND status = ? AND document_date <= ?
            ORDER BY document_date ASC
        """, (DocumentType.INVOICE.value, DocumentStatus.APPROVED.value, cutoff)).fetchall()
        return [dict(row) for row in rows]


def find_delivery_notes_between(
    supplier_id: Optional[str],
    start: str,
    end: str
) -> List[Dict[str, Any]]:
    """Delivery notes from a supplier dated within [start, end] inclusive."""
    with get_db() as conn:
        rows = conn.execute("""
            SELECT * FROM documents
            WHERE supplier_id IS ? AND type = ? AND document_date >= ? AND document_date <= ?
        """, (supplier_id, DocumentType.DELIVERY_NOTE.value, start, end)).fetchall()
        return [dict(row) for row in rows]
