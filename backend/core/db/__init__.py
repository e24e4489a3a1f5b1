"""
Database package for the kitchen backend.

All functions are re-exported here so callers can import from one place:

    from backend.core.database import get_document, create_anomaly
    from backend.core.db import get_document, create_anomaly
"""

# Base - enums, connection, initialization
from .base import (
    DB_PATH,
    SCHEMA,
    DocumentType,
    DocumentStatus,
    AnomalyType,
    Severity,
    ProductCategory,
    JobStatus,
    JobType,
    ALLOWED_DOCUMENT_COLUMNS,
    ALLOWED_PRODUCT_COLUMNS,
    ALLOWED_SUPPLIER_COLUMNS,
    get_db,
    init_db,
)

# Suppliers
from .suppliers import (
    create_supplier,
    get_supplier,
    get_supplier_by_name,
    resolve_supplier,
    list_suppliers,
    update_supplier,
    delete_supplier,
)

# Documents
from .documents import (
    create_document,
    get_document,
    get_document_with_items,
    list_document_items,
    list_documents,
    list_documents_with_items,
    update_document,
    set_document_status,
    mark_document_approved,
    set_document_supplier,
    delete_document,
    find_duplicate_invoices,
    count_supplier_documents,
    list_approved_invoices_until,
    find_delivery_notes_between,
)

# Products
from .products import (
    DEFAULT_MIN_STOCK_RATIO,
    default_min_stock,
    create_product,
    get_product,
    find_product_by_name,
    list_products,
    list_low_stock_products,
    is_low_stock,
    update_product,
    receive_stock,
    adjust_stock,
    list_stock_adjustments,
    delete_product,
)

# Spending
from .spending import (
    MONTH_LABELS,
    get_spending,
    list_spending,
    add_spending,
    set_spending,
)

# Price history
from .price_history import (
    record_price,
    get_last_price,
    list_price_history,
    compact_price_history,
)

# Anomalies
from .anomalies import (
    anomaly_exists,
    supplier_has_anomaly,
    create_anomaly,
    get_anomaly,
    list_anomalies,
    list_open_anomalies,
    resolve_anomaly,
    resolve_open_anomalies,
    delete_anomaly,
)

# Jobs
from .jobs import (
    create_job,
    get_job,
    get_next_job,
    list_jobs,
    update_job_status,
    retry_failed_jobs,
    cancel_job,
)

# Utilities
from .utils import (
    new_id,
    now,
    to_iso_date,
    parse_iso_date,
    parse_json_field,
    to_json,
    build_update,
)

__all__ = [
    # Base
    "DB_PATH",
    "SCHEMA",
    "DocumentType",
    "DocumentStatus",
    "AnomalyType",
    "Severity",
    "ProductCategory",
    "JobStatus",
    "JobType",
    "ALLOWED_DOCUMENT_COLUMNS",
    "ALLOWED_PRODUCT_COLUMNS",
    "ALLOWED_SUPPLIER_COLUMNS",
    "get_db",
    "init_db",
    # Suppliers
    "create_supplier",
    "get_supplier",
    "get_supplier_by_name",
    "resolve_supplier",
    "list_suppliers",
    "update_supplier",
    "delete_supplier",
    # Documents
    "create_document",
    "get_document",
    "get_document_with_items",
    "list_document_items",
    "list_documents",
    "list_documents_with_items",
    "update_document",
    "set_document_status",
    "mark_document_approved",
    "set_document_supplier",
    "delete_document",
    "find_duplicate_invoices",
    "count_supplier_documents",
    "list_approved_invoices_until",
    "find_delivery_notes_between",
    # Products
    "DEFAULT_MIN_STOCK_RATIO",
    "default_min_stock",
    "create_product",
    "get_product",
    "find_product_by_name",
    "list_products",
    "list_low_stock_products",
    "is_low_stock",
    "update_product",
    "receive_stock",
    "adjust_stock",
    "list_stock_adjustments",
    "delete_product",
    # Spending
    "MONTH_LABELS",
    "get_spending",
    "list_spending",
    "add_spending",
    "set_spending",
    # Price history
    "record_price",
    "get_last_price",
    "list_price_history",
    "compact_price_history",
    # Anomalies
    "anomaly_exists",
    "supplier_has_anomaly",
    "create_anomaly",
    "get_anomaly",
    "list_anomalies",
    "list_open_anomalies",
    "resolve_anomaly",
    "resolve_open_anomalies",
    "delete_anomaly",
    # Jobs
    "create_job",
    "get_job",
    "get_next_job",
    "list_jobs",
    "update_job_status",
    "retry_failed_jobs",
    "cancel_job",
    # Utils
    "new_id",
    "now",
    "to_iso_date",
    "parse_iso_date",
    "parse_json_field",
    "to_json",
    "build_update",
]
