"""
Database base module - connection management, initialization, and enums.
"""
import sqlite3
import threading
from pathlib import Path
from contextlib import contextmanager
from enum import Enum

from ..config import settings

# Database location
DB_PATH = Path(settings.DB_PATH)


class DocumentType(str, Enum):
    INVOICE = "invoice"
    DELIVERY_NOTE = "delivery_note"


class DocumentStatus(str, Enum):
    PENDING = "pending"
    ANALYZED = "analyzed"
    APPROVED = "approved"
    REJECTED = "rejected"


class AnomalyType(str, Enum):
    PRICE_INCREASE = "price_increase"
    PRICE_DECREASE = "price_decrease"
    UNUSUAL_QUANTITY = "unusual_quantity"
    MISSING_DELIVERY = "missing_delivery"
    MISSING_DELIVERY_NOTE = "missing_delivery_note"
    DUPLICATE_INVOICE = "duplicate_invoice"
    NEW_SUPPLIER = "new_supplier"
    LOW_STOCK = "low_stock"


class Severity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class ProductCategory(str, Enum):
    FLEISCH = "fleisch"
    FISCH = "fisch"
    GEMUESE = "gemuese"
    OBST = "obst"
    MILCHPRODUKTE = "milchprodukte"
    GETRAENKE = "getraenke"
    GEWUERZE = "gewuerze"
    BACKWAREN = "backwaren"
    SONSTIGES = "sonstiges"


class JobStatus(str, Enum):
    QUEUED = "queued"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


class JobType(str, Enum):
    PRICE_CHECK = "price_check"
    STOCK_CHECK = "stock_check"
    DUPLICATE_CHECK = "duplicate_check"
    SUPPLIER_CHECK = "supplier_check"


# Whitelist of allowed columns for update operations (SQL injection prevention)
ALLOWED_DOCUMENT_COLUMNS = {
    'type', 'invoice_number', 'supplier_name', 'supplier_address', 'supplier_id',
    'document_date', 'due_date', 'net_amount', 'tax_amount', 'tax_rate',
    'total_amount', 'file_name', 'file_id', 'status'
}

ALLOWED_PRODUCT_COLUMNS = {
    'name', 'category', 'unit', 'current_stock', 'min_stock', 'avg_price',
    'supplier_id', 'last_order_date'
}

ALLOWED_SUPPLIER_COLUMNS = {
    'name', 'contact_person', 'email', 'phone', 'address', 'category', 'rating'
}


SCHEMA = """
    -- Suppliers: resolved by exact name when documents are created
    CREATE TABLE IF NOT EXISTS suppliers (
        id TEXT PRIMARY KEY,
        name TEXT NOT NULL,
        contact_person TEXT DEFAULT '',
        email TEXT DEFAULT '',
        phone TEXT DEFAULT '',
        address TEXT DEFAULT '',
        category TEXT DEFAULT 'Sonstiges',
        rating INTEGER DEFAULT 3,
        created_at TEXT DEFAULT CURRENT_TIMESTAMP
    );

    -- Documents: uploaded invoices and delivery notes
    CREATE TABLE IF NOT EXISTS documents (
        id TEXT PRIMARY KEY,
        type TEXT NOT NULL,            -- invoice / delivery_note
        file_name TEXT,
        file_id TEXT,                  -- opaque reference into file storage
        invoice_number TEXT,
        supplier_name TEXT NOT NULL,
        supplier_address TEXT,
        supplier_id TEXT,
        document_date TEXT NOT NULL,   -- YYYY-MM-DD
        due_date TEXT,
        net_amount REAL DEFAULT 0,
        tax_amount REAL DEFAULT 0,
        tax_rate REAL,
        total_amount REAL DEFAULT 0,
        status TEXT DEFAULT 'pending',
        uploaded_by TEXT,
        upload_date TEXT DEFAULT CURRENT_TIMESTAMP,
        updated_at TEXT DEFAULT CURRENT_TIMESTAMP,
        FOREIGN KEY (supplier_id) REFERENCES suppliers(id)
    );

    -- Line items, owned by their document
    CREATE TABLE IF NOT EXISTS document_items (
        id TEXT PRIMARY KEY,
        document_id TEXT NOT NULL,
        position INTEGER DEFAULT 0,
        name TEXT NOT NULL,
        quantity REAL DEFAULT 0,
        unit TEXT DEFAULT 'Stk',
        unit_price REAL DEFAULT 0,
        total_price REAL DEFAULT 0,
        FOREIGN KEY (document_id) REFERENCES documents(id)
    );

    -- Products: inventory aggregate
    CREATE TABLE IF NOT EXISTS products (
        id TEXT PRIMARY KEY,
        name TEXT NOT NULL,
        category TEXT DEFAULT 'sonstiges',
        unit TEXT DEFAULT 'Stk',
        current_stock REAL DEFAULT 0,
        min_stock REAL DEFAULT 0,
        avg_price REAL DEFAULT 0,
        supplier_id TEXT,
        last_order_date TEXT,
        created_at TEXT DEFAULT CURRENT_TIMESTAMP,
        updated_at TEXT DEFAULT CURRENT_TIMESTAMP,
        FOREIGN KEY (supplier_id) REFERENCES suppliers(id)
    );

    -- Manual stock adjustments (audit trail)
    CREATE TABLE IF NOT EXISTS stock_adjustments (
        id TEXT PRIMARY KEY,
        product_id TEXT NOT NULL,
        previous_stock REAL,
        new_stock REAL,
        delta REAL,
        reason TEXT,
        created_at TEXT DEFAULT CURRENT_TIMESTAMP,
        FOREIGN KEY (product_id) REFERENCES products(id)
    );

    -- Anomalies: detected irregularities with resolve lifecycle
    CREATE TABLE IF NOT EXISTS anomalies (
        id TEXT PRIMARY KEY,
        type TEXT NOT NULL,
        severity TEXT NOT NULL,
        title TEXT NOT NULL,
        description TEXT,
        document_id TEXT,
        product_id TEXT,
        supplier_id TEXT,
        detected_at TEXT DEFAULT CURRENT_TIMESTAMP,
        resolved INTEGER DEFAULT 0,
        resolved_at TEXT,
        resolved_by TEXT
    );

    -- Price history: append-only observed unit prices per product/supplier
    CREATE TABLE IF NOT EXISTS price_history (
        id TEXT PRIMARY KEY,
        product_name TEXT NOT NULL,
        supplier_id TEXT NOT NULL,
        unit_price REAL NOT NULL,
        unit TEXT,
        document_id TEXT,
        document_date TEXT,
        recorded_at TEXT DEFAULT CURRENT_TIMESTAMP
    );

    -- Spending: monthly rollup of approved invoice totals
    CREATE TABLE IF NOT EXISTS spending_records (
        id TEXT PRIMARY KEY,
        month TEXT,                    -- display label (Jan, Feb, Mär, ...)
        year INTEGER NOT NULL,
        month_index INTEGER NOT NULL,  -- 0-based
        amount REAL DEFAULT 0,
        updated_at TEXT DEFAULT CURRENT_TIMESTAMP,
        UNIQUE(year, month_index)
    );

    -- Jobs table: detector task outbox drained by the worker
    CREATE TABLE IF NOT EXISTS jobs (
        id TEXT PRIMARY KEY,
        job_type TEXT NOT NULL,
        document_id TEXT,
        payload TEXT,  -- JSON blob
        status TEXT DEFAULT 'queued',
        priority INTEGER DEFAULT 0,
        attempts INTEGER DEFAULT 0,
        max_attempts INTEGER DEFAULT 3,
        error_message TEXT,
        result TEXT,  -- JSON blob
        created_at TEXT DEFAULT CURRENT_TIMESTAMP,
        started_at TEXT,
        completed_at TEXT
    );

    -- Create indexes
    CREATE INDEX IF NOT EXISTS idx_suppliers_name ON suppliers(name);
    CREATE INDEX IF NOT EXISTS idx_documents_status ON documents(status);
    CREATE INDEX IF NOT EXISTS idx_documents_type ON documents(type);
    CREATE INDEX IF NOT EXISTS idx_documents_supplier ON documents(supplier_id);
    CREATE INDEX IF NOT EXISTS idx_document_items_document ON document_items(document_id);
    CREATE INDEX IF NOT EXISTS idx_products_category ON products(category);
    CREATE INDEX IF NOT EXISTS idx_products_supplier ON products(supplier_id);
    CREATE INDEX IF NOT EXISTS idx_stock_adjustments_product ON stock_adjustments(product_id);
    CREATE INDEX IF NOT EXISTS idx_anomalies_resolved ON anomalies(resolved);
    CREATE INDEX IF NOT EXISTS idx_anomalies_severity ON anomalies(severity);
    CREATE INDEX IF NOT EXISTS idx_anomalies_type ON anomalies(type);
    CREATE INDEX IF NOT EXISTS idx_anomalies_type_document ON anomalies(type, document_id);
    CREATE INDEX IF NOT EXISTS idx_anomalies_type_product ON anomalies(type, product_id);
    CREATE INDEX IF NOT EXISTS idx_price_history_product_supplier
        ON price_history(product_name, supplier_id, recorded_at);
    CREATE INDEX IF NOT EXISTS idx_jobs_status ON jobs(status);
    CREATE INDEX IF NOT EXISTS idx_jobs_document ON jobs(document_id);

    -- At most one unresolved anomaly per (type, subject)
    CREATE UNIQUE INDEX IF NOT EXISTS uq_anomalies_open_document
        ON anomalies(type, document_id)
        WHERE resolved = 0 AND document_id IS NOT NULL;
    CREATE UNIQUE INDEX IF NOT EXISTS uq_anomalies_open_product
        ON anomalies(type, product_id)
        WHERE resolved = 0 AND product_id IS NOT NULL;
"""


_local = threading.local()


@contextmanager
def get_db():
    """
    Context manager for database connections.

    Re-entrant per thread: a nested get_db() joins the outermost
    connection, which commits or rolls back the whole unit of work.
    """
    conn = getattr(_local, "conn", None)
    if conn is not None:
        yield conn
        return

    conn = sqlite3.connect(str(DB_PATH))
    conn.row_factory = sqlite3.Row
    _local.conn = conn
    try:
        yield conn
        conn.commit()
    except Exception:
        conn.rollback()
        raise
    finally:
        _local.conn = None
        conn.close()


def init_db():
    """Initialize database tables."""
    DB_PATH.parent.mkdir(parents=True, exist_ok=True)

    with get_db() as conn:
        # Enable WAL mode for better concurrency (allows concurrent reads during writes)
        conn.execute("PRAGMA journal_mode=WAL")
        # Set busy timeout to 5 seconds to handle lock contention
        conn.execute("PRAGMA busy_timeout=5000")

        conn.executescript(SCHEMA)
