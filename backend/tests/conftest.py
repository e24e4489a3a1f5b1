"""
Test configuration and fixtures for the kitchen backend test suite.

Provides:
- In-memory SQLite test database (isolated per test)
- FastAPI TestClient fixture
- Factory functions for creating test data
"""
import sqlite3
import uuid
from contextlib import contextmanager
from datetime import datetime
from typing import List, Optional
from unittest.mock import patch

import pytest
from fastapi.testclient import TestClient

from backend.core.db.base import SCHEMA


# ---------------------------------------------------------------------------
# Database fixtures
# ---------------------------------------------------------------------------

def _create_test_db() -> sqlite3.Connection:
    """Create an in-memory SQLite database with the full schema."""
    conn = sqlite3.connect(":memory:", check_same_thread=False)
    conn.row_factory = sqlite3.Row
    conn.executescript(SCHEMA)
    return conn


class _TestDB:
    """Replacement for get_db() that reuses the shared test connection.

    Nested blocks join the outermost one, which alone commits or rolls back.
    """

    def __init__(self, conn: sqlite3.Connection):
        self.conn = conn
        self.depth = 0

    @contextmanager
    def __call__(self):
        self.depth += 1
        try:
            yield self.conn
            if self.depth == 1:
                self.conn.commit()
        except Exception:
            if self.depth == 1:
                self.conn.rollback()
            raise
        finally:
            self.depth -= 1


GET_DB_TARGETS = [
    "backend.core.db.base.get_db",
    "backend.core.db.suppliers.get_db",
    "backend.core.db.documents.get_db",
    "backend.core.db.products.get_db",
    "backend.core.db.spending.get_db",
    "backend.core.db.price_history.get_db",
    "backend.core.db.anomalies.get_db",
    "backend.core.db.jobs.get_db",
    "backend.core.approval.get_db",
    "backend.core.worker.get_db",
]


@pytest.fixture()
def test_db():
    """Provide a fresh in-memory SQLite database for each test."""
    conn = _create_test_db()
    yield conn
    conn.close()


@pytest.fixture()
def patch_db(test_db):
    """
    Patch the get_db context manager across all modules so that
    every database call uses the in-memory test database.
    """
    cm = _TestDB(test_db)
    patches = [patch(target, cm) for target in GET_DB_TARGETS]
    for p in patches:
        p.start()
    try:
        yield test_db
    finally:
        for p in reversed(patches):
            p.stop()


@pytest.fixture()
def client(patch_db):
    """
    Provide a FastAPI TestClient with the database patched.

    Skips the lifespan side effects (schema init on disk, APScheduler).
    """
    from backend.api.main import app

    with patch("backend.api.main.init_db"), \
         patch("backend.api.main.init_worker"), \
         patch("backend.api.main.stop_scheduler"):
        with TestClient(app) as c:
            yield c


# ---------------------------------------------------------------------------
# Factory functions
# ---------------------------------------------------------------------------

def create_supplier(
    db: sqlite3.Connection,
    *,
    name: str = "Metro Großhandel",
    supplier_id: Optional[str] = None,
) -> str:
    """Insert a supplier and return its ID."""
    sid = supplier_id or str(uuid.uuid4())
    db.execute(
        "INSERT INTO suppliers (id, name, created_at) VALUES (?, ?, ?)",
        (sid, name, datetime.utcnow().isoformat()),
    )
    db.commit()
    return sid


def create_document(
    db: sqlite3.Connection,
    *,
    doc_type: str = "invoice",
    supplier_name: str = "Metro Großhandel",
    supplier_id: Optional[str] = None,
    document_date: str = "2026-03-10",
    invoice_number: Optional[str] = None,
    status: str = "analyzed",
    total_amount: float = 0,
    items: Optional[List[dict]] = None,
) -> str:
    """Insert a document with items and return its ID."""
    did = str(uuid.uuid4())
    now = datetime.utcnow().isoformat()

    db.execute(
        """INSERT INTO documents
           (id, type, invoice_number, supplier_name, supplier_id, document_date,
            total_amount, status, upload_date, updated_at)
           VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
        (did, doc_type, invoice_number, supplier_name, supplier_id, document_date,
         total_amount, status, now, now),
    )
    for position, item in enumerate(items or []):
        db.execute(
            """INSERT INTO document_items
               (id, document_id, position, name, quantity, unit, unit_price, total_price)
               VALUES (?, ?, ?, ?, ?, ?, ?, ?)""",
            (str(uuid.uuid4()), did, position, item["name"], item.get("quantity", 0),
             item.get("unit", "Stk"), item.get("unit_price", 0), item.get("total_price", 0)),
        )
    db.commit()
    return did


def create_product(
    db: sqlite3.Connection,
    *,
    name: str = "Tomaten",
    category: str = "gemuese",
    unit: str = "kg",
    current_stock: float = 10,
    min_stock: float = 3,
    avg_price: float = 2.0,
    supplier_id: Optional[str] = None,
) -> str:
    """Insert a product and return its ID."""
    pid = str(uuid.uuid4())
    now = datetime.utcnow().isoformat()

    db.execute(
        """INSERT INTO products
           (id, name, category, unit, current_stock, min_stock, avg_price,
            supplier_id, created_at, updated_at)
           VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
        (pid, name, category, unit, current_stock, min_stock, avg_price,
         supplier_id, now, now),
    )
    db.commit()
    return pid


def create_price(
    db: sqlite3.Connection,
    *,
    product_name: str,
    supplier_id: str,
    unit_price: float,
    unit: str = "kg",
    recorded_at: Optional[str] = None,
) -> str:
    """Insert a price history record and return its ID."""
    hid = str(uuid.uuid4())
    db.execute(
        """INSERT INTO price_history (id, product_name, supplier_id, unit_price, unit, recorded_at)
           VALUES (?, ?, ?, ?, ?, ?)""",
        (hid, product_name, supplier_id, unit_price, unit,
         recorded_at or datetime.utcnow().isoformat()),
    )
    db.commit()
    return hid


def create_anomaly(
    db: sqlite3.Connection,
    *,
    anomaly_type: str = "low_stock",
    severity: str = "medium",
    product_id: Optional[str] = None,
    document_id: Optional[str] = None,
    supplier_id: Optional[str] = None,
    resolved: bool = False,
) -> str:
    """Insert an anomaly and return its ID."""
    aid = str(uuid.uuid4())
    db.execute(
        """INSERT INTO anomalies
           (id, type, severity, title, description, document_id, product_id,
            supplier_id, detected_at, resolved)
           VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
        (aid, anomaly_type, severity, "Test", "", document_id, product_id,
         supplier_id, datetime.utcnow().isoformat(), 1 if resolved else 0),
    )
    db.commit()
    return aid


def create_job(
    db: sqlite3.Connection,
    *,
    job_type: str = "stock_check",
    document_id: Optional[str] = None,
    payload: str = "{}",
    status: str = "queued",
    attempts: int = 0,
    max_attempts: int = 3,
    started_at: Optional[str] = None,
) -> str:
    """Insert a job record and return its ID."""
    jid = str(uuid.uuid4())
    db.execute(
        """INSERT INTO jobs
           (id, job_type, document_id, payload, status, attempts, max_attempts, created_at, started_at)
           VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)""",
        (jid, job_type, document_id, payload, status, attempts, max_attempts,
         datetime.utcnow().isoformat(), started_at),
    )
    db.commit()
    return jid
