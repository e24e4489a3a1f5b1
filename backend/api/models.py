"""
Pydantic request/response models for the API.
"""
from datetime import date
from pydantic import BaseModel, Field
from typing import Any, Dict, List, Literal, Optional


# ============== Documents ==============

class DocumentItemRequest(BaseModel):
    name: str = Field(..., min_length=1)
    quantity: float = 0
    unit: str = "Stk"
    unit_price: float = 0
    total_price: float = 0


class CreateDocumentRequest(BaseModel):
    type: Literal["invoice", "delivery_note"]
    supplier_name: str = Field(..., min_length=1)
    supplier_address: Optional[str] = None
    document_date: date
    due_date: Optional[date] = None
    invoice_number: Optional[str] = None
    items: List[DocumentItemRequest] = []
    net_amount: float = 0
    tax_amount: float = 0
    tax_rate: Optional[float] = None
    total_amount: float = 0
    uploaded_by: Optional[str] = None


class ExtractedDocumentRequest(BaseModel):
    """Either the model's raw text answer or an already parsed JSON object."""
    raw_response: Optional[str] = None
    data: Optional[Dict[str, Any]] = None
    file_name: Optional[str] = None
    file_id: Optional[str] = None
    uploaded_by: Optional[str] = None


class UpdateDocumentRequest(BaseModel):
    supplier_name: Optional[str] = None
    supplier_address: Optional[str] = None
    document_date: Optional[date] = None
    due_date: Optional[date] = None
    invoice_number: Optional[str] = None
    items: Optional[List[DocumentItemRequest]] = None
    net_amount: Optional[float] = None
    tax_amount: Optional[float] = None
    tax_rate: Optional[float] = None
    total_amount: Optional[float] = None


class StatusUpdateRequest(BaseModel):
    status: Literal["pending", "analyzed", "approved", "rejected"]


# ============== Anomalies ==============

class CreateAnomalyRequest(BaseModel):
    type: Literal[
        "price_increase", "price_decrease", "unusual_quantity", "missing_delivery",
        "missing_delivery_note", "duplicate_invoice", "new_supplier", "low_stock",
    ]
    severity: Literal["low", "medium", "high"]
    title: str
    description: str = ""
    document_id: Optional[str] = None
    product_id: Optional[str] = None
    supplier_id: Optional[str] = None


class ResolveAnomalyRequest(BaseModel):
    resolved_by: Optional[str] = None


# ============== Products ==============

class StockAdjustRequest(BaseModel):
    delta: float
    reason: Optional[str] = None


class UpdateProductRequest(BaseModel):
    category: Optional[str] = None
    unit: Optional[str] = None
    min_stock: Optional[float] = Field(None, ge=0)
    supplier_id: Optional[str] = None


# ============== Suppliers ==============

class SupplierRequest(BaseModel):
    name: str = Field(..., min_length=1)
    contact_person: str = ""
    email: str = ""
    phone: str = ""
    address: str = ""
    category: str = "Sonstiges"
    rating: int = Field(3, ge=1, le=5)


# ============== Spending ==============

class SpendingCorrectionRequest(BaseModel):
    amount: float = Field(..., ge=0)
