"""
Spending API router.

Monthly totals of approved invoices; month_index is 0-based (0 = January).
"""
from fastapi import APIRouter, Depends, HTTPException, Path

from backend.core.database import get_spending, list_spending, set_spending
from backend.api.models import SpendingCorrectionRequest
from backend.api.security import require_api_key

router = APIRouter(prefix="/api/spending", tags=["Spending"])


@router.get("")
def get_spending_records():
    records = list_spending()
    return {
        "records": records,
        "count": len(records),
        "total": round(sum(r["amount"] for r in records), 2),
    }


@router.get("/{year}/{month_index}")
def get_month_spending(year: int, month_index: int = Path(..., ge=0, le=11)):
    record = get_spending(year, month_index)
    if not record:
        raise HTTPException(status_code=404, detail="No spending recorded for this month")
    return record


@router.put("/{year}/{month_index}", dependencies=[Depends(require_api_key)])
def correct_month_spending(
    request: SpendingCorrectionRequest,
    year: int,
    month_index: int = Path(..., ge=0, le=11)
):
    """Overwrite a month's total (manual correction)."""
    record = set_spending(year, month_index, request.amount)
    return {"success": True, "record": record}
