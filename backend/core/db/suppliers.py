"""
Supplier database operations.
"""
from typing import Optional, List, Dict, Any, Tuple

from .base import get_db, ALLOWED_SUPPLIER_COLUMNS
from .utils import new_id, now, build_update


def create_supplier(
    name: str,
    contact_person: str = "",
    email: str = "",
    phone: str = "",
    address: str = "",
    category: str = "Sonstiges",
    rating: int = 3
) -> Dict[str, Any]:
    """Create a new supplier."""
    supplier_id = new_id()

    with get_db() as conn:
        conn.execute("""
            INSERT INTO suppliers (id, name, contact_person, email, phone, address, category, rating, created_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
        """, (supplier_id, name, contact_person, email, phone, address or "", category, rating, now()))

    return get_supplier(supplier_id)


def get_supplier(supplier_id: str) -> Optional[Dict[str, Any]]:
    """Get a supplier by ID."""
    with get_db() as conn:
        row = conn.execute("SELECT * FROM suppliers WHERE id = ?", (supplier_id,)).fetchone()
        if row:
            return dict(row)
    return None


def get_supplier_by_name(name: str) -> Optional[Dict[str, Any]]:
    """Get a supplier by exact (case-sensitive) name."""
    with get_db() as conn:
        row = conn.execute(
            "SELECT * FROM suppliers WHERE name = ? ORDER BY created_at ASC LIMIT 1",
            (name,)
        ).fetchone()
        if row:
            return dict(row)
    return None


def resolve_supplier(name: str, address: Optional[str] = None) -> Tuple[Dict[str, Any], bool]:
    """
    Find a supplier by exact name or create one with empty contact fields.

    Returns:
        Tuple of (supplier, created)
    """
    with get_db():
        existing = get_supplier_by_name(name)
        if existing:
            return existing, False
        return create_supplier(name=name, address=address or ""), True


def list_suppliers() -> List[Dict[str, Any]]:
    """List all suppliers alphabetically."""
    with get_db() as conn:
        rows = conn.execute("SELECT * FROM suppliers ORDER BY name ASC").fetchall()
        return [dict(row) for row in rows]


def update_supplier(supplier_id: str, **updates) -> Optional[Dict[str, Any]]:
    """Update supplier fields."""
    updates = {k: v for k, v in updates.items() if v is not None}
    if not updates:
        return get_supplier(supplier_id)

    set_clause, values = build_update(updates, ALLOWED_SUPPLIER_COLUMNS)

    with get_db() as conn:
        conn.execute(f"UPDATE suppliers SET {set_clause} WHERE id = ?", values + [supplier_id])

    return get_supplier(supplier_id)


def delete_supplier(supplier_id: str) -> bool:
    """Delete a supplier."""
    with get_db() as conn:
        result = conn.execute("DELETE FROM suppliers WHERE id = ?", (supplier_id,))
        return result.rowcount > 0
