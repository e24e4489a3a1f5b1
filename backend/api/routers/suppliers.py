"""
Suppliers API router.
"""
from fastapi import APIRouter, Depends, HTTPException

from backend.core.database import (
    create_supplier, get_supplier, get_supplier_by_name, list_suppliers, update_supplier,
    delete_supplier
)
from backend.api.models import SupplierRequest
from backend.api.security import require_api_key

router = APIRouter(prefix="/api/suppliers", tags=["Suppliers"])


@router.get("")
def get_suppliers():
    suppliers = list_suppliers()
    return {"suppliers": suppliers, "count": len(suppliers)}


@router.get("/{supplier_id}")
def get_supplier_detail(supplier_id: str):
    supplier = get_supplier(supplier_id)
    if not supplier:
        raise HTTPException(status_code=404, detail="Supplier not found")
    return supplier


@router.post("")
def create_supplier_endpoint(request: SupplierRequest):
    """Create a supplier. Names are unique (exact match)."""
    if get_supplier_by_name(request.name):
        raise HTTPException(status_code=409, detail="Supplier already exists")
    supplier = create_supplier(**request.model_dump())
    return {"success": True, "supplier": supplier}


@router.put("/{supplier_id}")
def update_supplier_endpoint(supplier_id: str, request: SupplierRequest):
    """Update supplier contact details."""
    if not get_supplier(supplier_id):
        raise HTTPException(status_code=404, detail="Supplier not found")
    supplier = update_supplier(supplier_id, **request.model_dump())
    return {"success": True, "supplier": supplier}


@router.delete("/{supplier_id}", dependencies=[Depends(require_api_key)])
def delete_supplier_endpoint(supplier_id: str):
    if not delete_supplier(supplier_id):
        raise HTTPException(status_code=404, detail="Supplier not found")
    return {"success": True, "message": f"Deleted supplier {supplier_id}"}
