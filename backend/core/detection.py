"""
Anomaly Detection Engine

Independent detectors that read current store state and write anomalies.
Every detector is safe to re-run: the anomaly store suppresses a new
anomaly while an unresolved one of the same type exists for the same
document or product.

Detectors:
- Price change: unit price moved >= 10% against the last recorded price
  for the same product and supplier (10% low, 20% medium, 30% high)
- Low stock: current stock below minimum (high when stock is zero)
- Duplicate invoice: same supplier, same invoice number
- New supplier: first document from a supplier, once per supplier
- Missing delivery note: approved invoice at least 14 days old with no
  delivery note from the supplier between 30 days before and 7 days after
"""
import logging
from datetime import date, timedelta
from typing import Any, Dict, Iterable, List, Optional

from .db import (
    AnomalyType, Severity,
    anomaly_exists, create_anomaly, supplier_has_anomaly, resolve_open_anomalies,
    get_product, list_products, is_low_stock, get_supplier,
    get_last_price, record_price,
    find_duplicate_invoices, count_supplier_documents,
    list_approved_invoices_until, find_delivery_notes_between,
    parse_iso_date,
)

logger = logging.getLogger(__name__)

# Price change thresholds (fraction of the previous price)
PRICE_CHANGE_THRESHOLDS = {
    Severity.LOW: 0.10,
    Severity.MEDIUM: 0.20,
    Severity.HIGH: 0.30,
}

# Missing delivery note sweep
INVOICE_MIN_AGE_DAYS = 14
DELIVERY_WINDOW_BEFORE_DAYS = 30
DELIVERY_WINDOW_AFTER_DAYS = 7


def _fmt_qty(value: float) -> str:
    return f"{value:g}"


def _fmt_date_de(value: str) -> str:
    d = parse_iso_date(value)
    return f"{d.day}.{d.month}.{d.year}"


def get_price_change_severity(percent_change: float) -> Severity:
    """Severity for a relative price change (sign is ignored)."""
    abs_change = abs(percent_change)
    if abs_change >= PRICE_CHANGE_THRESHOLDS[Severity.HIGH]:
        return Severity.HIGH
    if abs_change >= PRICE_CHANGE_THRESHOLDS[Severity.MEDIUM]:
        return Severity.MEDIUM
    return Severity.LOW


def price_change(old_price: float, new_price: float) -> float:
    """Relative change from old to new, rounded to absorb float noise (3.00 → 3.30 is 0.1)."""
    return round((new_price - old_price) / old_price, 6)


# ============================================================================
# Price changes
# ============================================================================

def detect_price_changes(
    document_id: str,
    supplier_id: str,
    items: Iterable[Dict[str, Any]],
    document_date: Optional[str] = None
) -> List[str]:
    """
    Compare each priced item against the last known price from the supplier.

    Every priced item is appended to the price history afterwards, whether
    or not it raised an anomaly. The first price seen for a product and
    supplier has nothing to compare against.

    Args:
        document_id: Invoice being approved
        supplier_id: Resolved supplier of the invoice
        items: Dicts with name, unit_price, unit
        document_date: Invoice date (YYYY-MM-DD)

    Returns:
        IDs of anomalies created
    """
    created = []

    for item in items:
        new_price = float(item.get("unit_price") or 0)
        if new_price <= 0:
            continue

        name = item["name"]
        unit = item.get("unit") or ""
        last = get_last_price(name, supplier_id)

        if last and last["unit_price"] > 0:
            old_price = last["unit_price"]
            change = price_change(old_price, new_price)

            if abs(change) >= PRICE_CHANGE_THRESHOLDS[Severity.LOW]:
                increase = change > 0
                anomaly_type = AnomalyType.PRICE_INCREASE if increase else AnomalyType.PRICE_DECREASE
                percent = round(abs(change) * 100)

                anomaly = create_anomaly(
                    anomaly_type=anomaly_type,
                    severity=get_price_change_severity(change),
                    title=f"Preis{'erhöhung' if increase else 'senkung'}: {name}",
                    description=(
                        f'Der Preis für "{name}" hat sich um {percent}% '
                        f'{"erhöht" if increase else "verringert"} '
                        f"({old_price:.2f}€ → {new_price:.2f}€/{unit})."
                    ),
                    document_id=document_id,
                    supplier_id=supplier_id,
                )
                if anomaly:
                    created.append(anomaly["id"])
                    logger.info(f"Price anomaly for '{name}' on document {document_id}: {change:+.1%}")

        record_price(
            product_name=name,
            supplier_id=supplier_id,
            unit_price=new_price,
            unit=unit,
            document_id=document_id,
            document_date=document_date,
        )

    return created


# ============================================================================
# Low stock
# ============================================================================

def _create_low_stock_anomaly(product: Dict[str, Any]) -> Optional[str]:
    severity = Severity.HIGH if product["current_stock"] == 0 else Severity.MEDIUM
    unit = product["unit"]

    anomaly = create_anomaly(
        anomaly_type=AnomalyType.LOW_STOCK,
        severity=severity,
        title=f"Niedriger Bestand: {product['name']}",
        description=(
            f"Aktueller Bestand ({_fmt_qty(product['current_stock'])} {unit}) liegt unter "
            f"dem Mindestbestand ({_fmt_qty(product['min_stock'])} {unit})."
        ),
        product_id=product["id"],
        supplier_id=product.get("supplier_id"),
    )
    if anomaly:
        logger.info(f"Low stock anomaly for product {product['id']} ({product['name']})")
        return anomaly["id"]
    return None


def detect_low_stock(product_id: str) -> Optional[str]:
    """Flag a single product whose stock is below its minimum."""
    product = get_product(product_id)
    if not product or not is_low_stock(product):
        return None
    return _create_low_stock_anomaly(product)


def detect_all_low_stock() -> List[str]:
    """Daily sweep: flag every product below its minimum stock."""
    created = []
    for product in list_products():
        if not is_low_stock(product):
            continue
        anomaly_id = _create_low_stock_anomaly(product)
        if anomaly_id:
            created.append(anomaly_id)

    logger.info(f"Low stock sweep: {len(created)} new anomalies")
    return created


def auto_resolve_low_stock(product_id: str) -> List[str]:
    """Resolve open low stock anomalies once stock is back at or above minimum."""
    product = get_product(product_id)
    if not product or is_low_stock(product):
        return []

    resolved = resolve_open_anomalies(AnomalyType.LOW_STOCK, product_id)
    if resolved:
        logger.info(f"Auto-resolved {len(resolved)} low stock anomalies for product {product_id}")
    return resolved


def check_received_products(entries: Iterable[Dict[str, Any]]) -> Dict[str, List[str]]:
    """
    Follow-up for products touched by a delivery note.

    Each entry has product_id and was_low_stock. Previously low products
    get their open anomalies auto-resolved if stock has recovered; every
    product is then re-checked, which also covers brand new products
    that start below their minimum.
    """
    resolved, created = [], []
    for entry in entries:
        product_id = entry["product_id"]
        if entry.get("was_low_stock"):
            resolved.extend(auto_resolve_low_stock(product_id))
        anomaly_id = detect_low_stock(product_id)
        if anomaly_id:
            created.append(anomaly_id)
    return {"resolved": resolved, "created": created}


# ============================================================================
# Duplicate invoices / new suppliers
# ============================================================================

def detect_duplicate_invoice(
    document_id: str,
    invoice_number: str,
    supplier_id: str,
    supplier_name: str
) -> Optional[str]:
    """Flag an invoice whose number already exists for the same supplier."""
    if not invoice_number:
        return None

    duplicates = find_duplicate_invoices(document_id, invoice_number, supplier_id)
    if not duplicates:
        return None

    # One open duplicate anomaly per invoice number and supplier
    if any(anomaly_exists(AnomalyType.DUPLICATE_INVOICE, document_id=d["id"]) for d in duplicates):
        return None

    anomaly = create_anomaly(
        anomaly_type=AnomalyType.DUPLICATE_INVOICE,
        severity=Severity.HIGH,
        title=f"Doppelte Rechnungsnummer: {invoice_number}",
        description=f'Die Rechnungsnummer "{invoice_number}" von {supplier_name} existiert bereits im System.',
        document_id=document_id,
        supplier_id=supplier_id,
    )
    if anomaly:
        logger.info(f"Duplicate invoice {invoice_number} on document {document_id}")
        return anomaly["id"]
    return None


def detect_new_supplier(
    supplier_id: str,
    supplier_name: str,
    document_id: Optional[str] = None
) -> Optional[str]:
    """
    Flag a supplier's first document.

    Documents are counted up to and including the given one (all of them
    without a document), so the threshold is "at most one". The check is
    supplier-scoped over resolved anomalies too: a supplier is announced
    once in its lifetime.
    """
    if count_supplier_documents(supplier_id, up_to_document_id=document_id) > 1:
        return None
    if supplier_has_anomaly(AnomalyType.NEW_SUPPLIER, supplier_id):
        return None

    anomaly = create_anomaly(
        anomaly_type=AnomalyType.NEW_SUPPLIER,
        severity=Severity.LOW,
        title=f"Neuer Lieferant: {supplier_name}",
        description=f'Der Lieferant "{supplier_name}" wurde neu im System angelegt.',
        document_id=document_id,
        supplier_id=supplier_id,
    )
    if anomaly:
        logger.info(f"New supplier anomaly for {supplier_name}")
        return anomaly["id"]
    return None


# ============================================================================
# Missing delivery notes
# ============================================================================

def detect_missing_delivery_notes(today: Optional[date] = None) -> List[str]:
    """
    Daily sweep: approved invoices at least 14 days old without a delivery
    note from the same supplier dated 30 days before to 7 days after.
    """
    today = today or date.today()
    cutoff = (today - timedelta(days=INVOICE_MIN_AGE_DAYS)).isoformat()
    created = []

    for invoice in list_approved_invoices_until(cutoff):
        invoice_date = parse_iso_date(invoice["document_date"])
        window_start = (invoice_date - timedelta(days=DELIVERY_WINDOW_BEFORE_DAYS)).isoformat()
        window_end = (invoice_date + timedelta(days=DELIVERY_WINDOW_AFTER_DAYS)).isoformat()

        if find_delivery_notes_between(invoice["supplier_id"], window_start, window_end):
            continue

        supplier = get_supplier(invoice["supplier_id"]) if invoice["supplier_id"] else None
        supplier_name = supplier["name"] if supplier else invoice["supplier_name"]

        anomaly = create_anomaly(
            anomaly_type=AnomalyType.MISSING_DELIVERY_NOTE,
            severity=Severity.MEDIUM,
            title=f"Fehlender Lieferschein: {invoice['invoice_number'] or 'Ohne Nr.'}",
            description=(
                f"Zur Rechnung vom {_fmt_date_de(invoice['document_date'])} von {supplier_name} "
                f"wurde kein passender Lieferschein gefunden."
            ),
            document_id=invoice["id"],
            supplier_id=invoice["supplier_id"],
        )
        if anomaly:
            created.append(anomaly["id"])

    logger.info(f"Missing delivery note sweep: {len(created)} new anomalies")
    return created
