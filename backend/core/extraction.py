"""
Extracted document payloads.

The AI extraction service reads an uploaded invoice or delivery note and
answers with JSON. This module validates and normalizes that answer into
ExtractedInvoiceData; it never calls the model itself. Failures come back
as ExtractionResult(success=False, error=...) and touch no state.
"""
import json
import logging
from datetime import date
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError
from pydantic.alias_generators import to_camel

logger = logging.getLogger(__name__)

DEFAULT_TAX_RATE = 19.0

UNIT_ALIASES = {
    "stück": "Stk", "stk": "Stk", "st": "Stk", "stck": "Stk", "piece": "Stk", "pcs": "Stk",
    "kilogramm": "kg", "kilo": "kg", "kg": "kg",
    "gramm": "g", "gr": "g", "g": "g",
    "liter": "L", "l": "L", "lt": "L",
    "milliliter": "ml", "ml": "ml",
    "packung": "Pkg", "pkg": "Pkg", "pack": "Pkg", "paket": "Pkg",
    "kiste": "Kasten", "kisten": "Kasten", "kasten": "Kasten", "kästen": "Kasten",
    "kst": "Kasten", "ka": "Kasten", "kas": "Kasten",
    "fass": "Fass", "fa": "Fass", "fässer": "Fass",
    "bund": "Bund", "bd": "Bund",
    "flasche": "Fl", "fl": "Fl", "flaschen": "Fl",
    "dose": "Dose", "dosen": "Dose",
}


def normalize_unit(unit: str) -> str:
    """Map German/English unit spellings to the canonical short form."""
    return UNIT_ALIASES.get(str(unit).lower().strip(), unit)


class _Payload(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ExtractedItem(_Payload):
    name: str
    quantity: float = 0
    unit: str = "Stk"
    unit_price: float = 0
    total_price: float = 0


class ExtractedDeposit(_Payload):
    name: str
    quantity: float = 0
    unit_price: float = 0
    total_price: float = 0


class ExtractedFee(_Payload):
    name: str
    amount: float = 0


class ExtractedInvoiceData(_Payload):
    type: Literal["invoice", "delivery_note"] = "invoice"
    invoice_number: str = ""
    supplier_name: str = ""
    supplier_address: str = ""
    document_date: date
    due_date: Optional[date] = None
    items: List[ExtractedItem] = Field(default_factory=list)
    deposit_items: List[ExtractedDeposit] = Field(default_factory=list)
    fees: List[ExtractedFee] = Field(default_factory=list)
    items_total: float = 0
    deposit_total: float = 0
    fees_total: float = 0
    net_amount: float = 0
    tax_rate: float = DEFAULT_TAX_RATE
    tax_amount: float = 0
    total_amount: float = 0


class ExtractionResult(BaseModel):
    success: bool
    data: Optional[ExtractedInvoiceData] = None
    error: Optional[str] = None


def _number(value: Any) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return 0.0


def _entries(raw: Dict[str, Any], key: str) -> List[Dict[str, Any]]:
    entries = raw.get(key) or []
    if not isinstance(entries, list) or not all(isinstance(e, dict) for e in entries):
        raise ValueError(f"{key} muss eine Liste von Objekten sein")
    return entries


def normalize_extracted_data(raw: Dict[str, Any]) -> ExtractedInvoiceData:
    """
    Coerce a loosely typed extraction answer into ExtractedInvoiceData.

    Unknown document types become invoices, missing dates become today,
    a missing tax rate becomes 19%, non-numeric amounts become 0.
    Raises ValueError when a line item list is not a list of objects.
    """
    items = [
        {
            "name": str(item.get("name") or ""),
            "quantity": _number(item.get("quantity")),
            "unit": normalize_unit(str(item.get("unit") or "Stk")),
            "unitPrice": _number(item.get("unitPrice")),
            "totalPrice": _number(item.get("totalPrice")),
        }
        for item in _entries(raw, "items")
    ]
    deposits = [
        {
            "name": str(item.get("name") or ""),
            "quantity": _number(item.get("quantity")),
            "unitPrice": _number(item.get("unitPrice")),
            "totalPrice": _number(item.get("totalPrice")),
        }
        for item in _entries(raw, "depositItems")
    ]
    fees = [
        {"name": str(fee.get("name") or ""), "amount": _number(fee.get("amount"))}
        for fee in _entries(raw, "fees")
    ]

    return ExtractedInvoiceData.model_validate({
        "type": "delivery_note" if raw.get("type") == "delivery_note" else "invoice",
        "invoiceNumber": str(raw.get("invoiceNumber") or ""),
        "supplierName": str(raw.get("supplierName") or ""),
        "supplierAddress": str(raw.get("supplierAddress") or ""),
        "documentDate": str(raw.get("documentDate") or date.today().isoformat())[:10],
        "dueDate": str(raw["dueDate"])[:10] if raw.get("dueDate") else None,
        "items": items,
        "depositItems": deposits,
        "fees": fees,
        "itemsTotal": _number(raw.get("itemsTotal")),
        "depositTotal": _number(raw.get("depositTotal")),
        "feesTotal": _number(raw.get("feesTotal")),
        "netAmount": _number(raw.get("netAmount")),
        "taxRate": _number(raw.get("taxRate")) or DEFAULT_TAX_RATE,
        "taxAmount": _number(raw.get("taxAmount")),
        "totalAmount": _number(raw.get("totalAmount")),
    })


def strip_code_fences(text: str) -> str:
    """Remove a Markdown code fence wrapped around a JSON answer."""
    text = text.strip()
    if text.startswith("```json"):
        text = text[7:]
    elif text.startswith("```"):
        text = text[3:]
    if text.endswith("```"):
        text = text[:-3]
    return text.strip()


def parse_extraction_response(text: Optional[str]) -> ExtractionResult:
    """Parse the model's raw text answer into an ExtractionResult."""
    if not text:
        return ExtractionResult(success=False, error="Keine Textantwort vom AI-Modell erhalten.")

    try:
        raw = json.loads(strip_code_fences(text))
    except json.JSONDecodeError:
        return ExtractionResult(
            success=False,
            error="AI-Antwort konnte nicht als JSON geparst werden: " + text[:200],
        )

    if not isinstance(raw, dict):
        return ExtractionResult(success=False, error="AI-Antwort ist kein JSON-Objekt.")

    try:
        data = normalize_extracted_data(raw)
    except (ValidationError, ValueError) as e:
        logger.warning(f"Extraction payload rejected: {e}")
        return ExtractionResult(success=False, error=f"Ungültige Extraktionsdaten: {e}")

    return ExtractionResult(success=True, data=data)
