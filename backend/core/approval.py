"""
Document Approval Orchestrator

Drives a document through its status lifecycle and applies the side
effects of approval exactly once:

- Delivery note: add received quantities to inventory, creating unknown
  products with a guessed category and a default minimum stock
- Invoice: add the total to the monthly spending bucket

The status flip, the inventory/spending effects and the follow-up
detector jobs are written in a single transaction. Detectors run later
in the worker, so a failing detector never undoes an approval.
"""
import logging
from typing import Any, Callable, Dict, List, Optional

from .categorize import guess_category
from .db import (
    get_db, DocumentType, DocumentStatus, JobType,
    create_document, get_document, get_document_with_items, list_document_items,
    set_document_status, mark_document_approved, set_document_supplier,
    resolve_supplier,
    find_product_by_name, create_product, receive_stock, is_low_stock, default_min_stock,
    add_spending, create_job, parse_iso_date,
)
from .errors import DocumentNotFoundError
from .extraction import ExtractedInvoiceData

logger = logging.getLogger(__name__)


# ============================================================================
# Approval effects
# ============================================================================

def apply_delivery_note(document: Dict[str, Any], items: List[Dict[str, Any]], supplier_id: str) -> None:
    """Book received items into inventory and queue the stock follow-up."""
    received: Dict[str, bool] = {}

    for item in items:
        quantity = float(item.get("quantity") or 0)
        unit_price = float(item.get("unit_price") or 0)
        product = find_product_by_name(item["name"])

        if product:
            received.setdefault(product["id"], is_low_stock(product))
            receive_stock(product["id"], quantity, unit_price, document["document_date"])
        else:
            product = create_product(
                name=item["name"],
                category=guess_category(item["name"]),
                unit=item.get("unit") or "Stk",
                current_stock=quantity,
                min_stock=default_min_stock(quantity),
                avg_price=unit_price,
                supplier_id=supplier_id,
                last_order_date=document["document_date"],
            )
            received.setdefault(product["id"], False)
            logger.info(f"Created product '{product['name']}' ({product['category']}) from delivery note")

    create_job(
        JobType.STOCK_CHECK,
        document_id=document["id"],
        payload={
            "products": [
                {"product_id": product_id, "was_low_stock": was_low}
                for product_id, was_low in received.items()
            ]
        },
    )


def apply_invoice(document: Dict[str, Any], items: List[Dict[str, Any]], supplier_id: str) -> None:
    """Add the invoice total to its month and queue the price check."""
    document_date = parse_iso_date(document["document_date"])
    add_spending(document_date.year, document_date.month - 1, document["total_amount"] or 0)

    create_job(
        JobType.PRICE_CHECK,
        document_id=document["id"],
        payload={
            "supplier_id": supplier_id,
            "document_date": document["document_date"],
            "items": [
                {"name": item["name"], "unit_price": item["unit_price"], "unit": item["unit"]}
                for item in items
            ],
        },
    )


APPROVAL_EFFECTS: Dict[DocumentType, Callable[[Dict[str, Any], List[Dict[str, Any]], str], None]] = {
    DocumentType.DELIVERY_NOTE: apply_delivery_note,
    DocumentType.INVOICE: apply_invoice,
}


def _ensure_supplier(document: Dict[str, Any]) -> str:
    if document.get("supplier_id"):
        return document["supplier_id"]
    supplier, created = resolve_supplier(document["supplier_name"], document.get("supplier_address"))
    set_document_supplier(document["id"], supplier["id"])
    if created:
        logger.info(f"Created supplier '{supplier['name']}' on approval of {document['id']}")
    return supplier["id"]


# ============================================================================
# Status changes
# ============================================================================

def update_document_status(document_id: str, status: DocumentStatus) -> Dict[str, Any]:
    """
    Change a document's status.

    Moving to approved from any other status applies the type specific
    effects once. Re-approving is a no-op beyond the status write; leaving
    approved does not reverse anything.

    Raises:
        DocumentNotFoundError: unknown document_id (nothing is written)
    """
    status = DocumentStatus(status)

    with get_db():
        document = get_document(document_id)
        if not document:
            raise DocumentNotFoundError(document_id)

        if status != DocumentStatus.APPROVED:
            set_document_status(document_id, status)
        elif mark_document_approved(document_id):
            supplier_id = _ensure_supplier(document)
            items = list_document_items(document_id)
            APPROVAL_EFFECTS[DocumentType(document["type"])](document, items, supplier_id)
            logger.info(f"Approved {document['type']} {document_id} ({len(items)} items)")

    return get_document_with_items(document_id)


# ============================================================================
# Intake
# ============================================================================

def _register_document(status: DocumentStatus, supplier_name: str, supplier_address: Optional[str],
                       doc_type: DocumentType, **fields) -> Dict[str, Any]:
    doc_type = DocumentType(doc_type)
    if doc_type == DocumentType.DELIVERY_NOTE:
        fields.update(net_amount=0, tax_amount=0, total_amount=0)

    with get_db():
        supplier, created = resolve_supplier(supplier_name, supplier_address)
        document = create_document(
            doc_type=doc_type,
            supplier_name=supplier_name,
            supplier_address=supplier_address,
            supplier_id=supplier["id"],
            status=status,
            **fields,
        )

        if doc_type == DocumentType.INVOICE and document["invoice_number"]:
            create_job(
                JobType.DUPLICATE_CHECK,
                document_id=document["id"],
                payload={
                    "invoice_number": document["invoice_number"],
                    "supplier_id": supplier["id"],
                    "supplier_name": supplier["name"],
                },
            )
        create_job(
            JobType.SUPPLIER_CHECK,
            document_id=document["id"],
            payload={"supplier_id": supplier["id"], "supplier_name": supplier["name"]},
        )

    logger.info(
        f"Registered {doc_type.value} {document['id']} from '{supplier_name}'"
        f"{' (new supplier)' if created else ''}"
    )
    return document


def create_document_from_extraction(
    data: ExtractedInvoiceData,
    file_name: Optional[str] = None,
    file_id: Optional[str] = None,
    uploaded_by: Optional[str] = None
) -> Dict[str, Any]:
    """Store an extracted upload as an analyzed document awaiting review."""
    return _register_document(
        DocumentStatus.ANALYZED,
        supplier_name=data.supplier_name,
        supplier_address=data.supplier_address,
        doc_type=DocumentType(data.type),
        document_date=data.document_date,
        due_date=data.due_date,
        invoice_number=data.invoice_number or None,
        items=[item.model_dump() for item in data.items],
        net_amount=data.net_amount,
        tax_amount=data.tax_amount,
        tax_rate=data.tax_rate,
        total_amount=data.total_amount,
        file_name=file_name,
        file_id=file_id,
        uploaded_by=uploaded_by,
    )


def create_manual_document(
    doc_type: DocumentType,
    supplier_name: str,
    document_date: str,
    items: List[Dict[str, Any]],
    **fields
) -> Dict[str, Any]:
    """Store a hand-entered document as pending."""
    supplier_address = fields.pop("supplier_address", None)
    return _register_document(
        DocumentStatus.PENDING,
        supplier_name=supplier_name,
        supplier_address=supplier_address,
        doc_type=doc_type,
        document_date=document_date,
        items=items,
        **fields,
    )
