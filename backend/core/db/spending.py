"""
Monthly spending rollup of approved invoice totals.
"""
from typing import Optional, List, Dict, Any

from .base import get_db
from .utils import new_id, now

MONTH_LABELS = ["Jan", "Feb", "Mär", "Apr", "Mai", "Jun", "Jul", "Aug", "Sep", "Okt", "Nov", "Dez"]


def get_spending(year: int, month_index: int) -> Optional[Dict[str, Any]]:
    """Get the spending record for a calendar month (month_index is 0-based)."""
    with get_db() as conn:
        row = conn.execute(
            "SELECT * FROM spending_records WHERE year = ? AND month_index = ?",
            (year, month_index)
        ).fetchone()
        if row:
            return dict(row)
    return None


def list_spending() -> List[Dict[str, Any]]:
    """All spending records in calendar order."""
    with get_db() as conn:
        rows = conn.execute(
            "SELECT * FROM spending_records ORDER BY year ASC, month_index ASC"
        ).fetchall()
        return [dict(row) for row in rows]


def add_spending(year: int, month_index: int, amount: float) -> Dict[str, Any]:
    """Accumulate an amount onto a month, creating the row on first use."""
    with get_db() as conn:
        conn.execute("""
            INSERT INTO spending_records (id, month, year, month_index, amount, updated_at)
            VALUES (?, ?, ?, ?, ?, ?)
            ON CONFLICT(year, month_index) DO UPDATE SET
                amount = spending_records.amount + excluded.amount,
                updated_at = excluded.updated_at
        """, (new_id(), MONTH_LABELS[month_index], year, month_index, amount, now()))

    return get_spending(year, month_index)


def set_spending(year: int, month_index: int, amount: float) -> Dict[str, Any]:
    """Overwrite a month's amount (manual correction)."""
    with get_db() as conn:
        conn.execute("""
            INSERT INTO spending_records (id, month, year, month_index, amount, updated_at)
            VALUES (?, ?, ?, ?, ?, ?)
            ON CONFLICT(year, month_index) DO UPDATE SET
                amount = excluded.amount,
                updated_at = excluded.updated_at
        """, (new_id(), MONTH_LABELS[month_index], year, month_index, amount, now()))

    return get_spending(year, month_index)
