"""
Products (inventory) API router.
"""
from fastapi import APIRouter, Depends, HTTPException, Query
from typing import Optional

from backend.core.database import (
    ProductCategory,
    get_product, list_products, list_low_stock_products, update_product,
    adjust_stock, list_stock_adjustments, delete_product, list_price_history
)
from backend.core.detection import auto_resolve_low_stock, detect_low_stock
from backend.core.errors import ProductNotFoundError
from backend.api.models import StockAdjustRequest, UpdateProductRequest
from backend.api.security import require_api_key

router = APIRouter(prefix="/api/products", tags=["Products"])


@router.get("")
def get_products(category: Optional[str] = Query(None)):
    """List products, optionally by category."""
    try:
        products = list_products(category=ProductCategory(category) if category else None)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return {"products": products, "count": len(products)}


@router.get("/low-stock")
def get_low_stock_products():
    """Products currently below their minimum stock."""
    products = list_low_stock_products()
    return {"products": products, "count": len(products)}


@router.get("/price-history")
def get_price_history(
    product_name: Optional[str] = Query(None),
    supplier_id: Optional[str] = Query(None),
    limit: int = Query(500, le=1000)
):
    """Observed unit prices per product and supplier, newest first."""
    records = list_price_history(product_name=product_name, supplier_id=supplier_id, limit=limit)
    return {"records": records, "count": len(records)}


@router.get("/{product_id}")
def get_product_detail(product_id: str):
    product = get_product(product_id)
    if not product:
        raise HTTPException(status_code=404, detail="Product not found")
    product["adjustments"] = list_stock_adjustments(product_id)
    return product


@router.put("/{product_id}")
def update_product_endpoint(product_id: str, request: UpdateProductRequest):
    """Edit category, unit, minimum stock or supplier."""
    if not get_product(product_id):
        raise HTTPException(status_code=404, detail="Product not found")

    fields = request.model_dump(exclude_none=True)
    if "category" in fields:
        try:
            fields["category"] = ProductCategory(fields["category"])
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e))

    product = update_product(product_id, **fields)
    return {"success": True, "product": product}


@router.post("/{product_id}/adjust")
def adjust_product_stock(product_id: str, request: StockAdjustRequest):
    """
    Apply a manual stock correction.

    Low stock anomalies follow the new level right away: a recovered
    product gets its open anomalies resolved, a depleted one is flagged.
    """
    try:
        product = adjust_stock(product_id, request.delta, request.reason)
    except ProductNotFoundError:
        raise HTTPException(status_code=404, detail="Product not found")

    resolved = auto_resolve_low_stock(product_id)
    created = detect_low_stock(product_id)
    return {
        "success": True,
        "product": product,
        "anomalies_resolved": resolved,
        "anomaly_created": created,
    }


@router.delete("/{product_id}", dependencies=[Depends(require_api_key)])
def delete_product_endpoint(product_id: str):
    """Delete a product and its adjustment log."""
    if not delete_product(product_id):
        raise HTTPException(status_code=404, detail="Product not found")
    return {"success": True, "message": f"Deleted product {product_id}"}
