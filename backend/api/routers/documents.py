"""
Documents API router.

Invoices and delivery notes: intake, review edits and the status change
that triggers approval.
"""
from fastapi import APIRouter, Depends, HTTPException, Query
from typing import Optional

from backend.core.approval import (
    update_document_status, create_document_from_extraction, create_manual_document
)
from backend.core.database import (
    DocumentStatus, DocumentType,
    get_document_with_items, list_documents, list_documents_with_items,
    update_document, delete_document
)
from backend.core.errors import NotFoundError
from backend.core.extraction import normalize_extracted_data, parse_extraction_response
from backend.api.models import (
    CreateDocumentRequest, ExtractedDocumentRequest, UpdateDocumentRequest, StatusUpdateRequest
)
from backend.api.security import require_api_key

router = APIRouter(prefix="/api/documents", tags=["Documents"])


@router.get("")
def get_documents(
    status: Optional[str] = Query(None),
    type: Optional[str] = Query(None),
    with_items: bool = Query(False),
    limit: int = Query(500, le=1000)
):
    """List documents, newest upload first."""
    try:
        doc_status = DocumentStatus(status) if status else None
        doc_type = DocumentType(type) if type else None
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    lister = list_documents_with_items if with_items else list_documents
    documents = lister(status=doc_status, doc_type=doc_type, limit=limit)
    return {"documents": documents, "count": len(documents)}


@router.get("/{document_id}")
def get_document_detail(document_id: str):
    """Get a document with its items."""
    document = get_document_with_items(document_id)
    if not document:
        raise HTTPException(status_code=404, detail="Document not found")
    return document


@router.post("")
def create_document_endpoint(request: CreateDocumentRequest):
    """Enter a document by hand. It starts out pending."""
    document = create_manual_document(
        doc_type=DocumentType(request.type),
        supplier_name=request.supplier_name,
        supplier_address=request.supplier_address,
        document_date=request.document_date,
        due_date=request.due_date,
        invoice_number=request.invoice_number or None,
        items=[item.model_dump() for item in request.items],
        net_amount=request.net_amount,
        tax_amount=request.tax_amount,
        tax_rate=request.tax_rate,
        total_amount=request.total_amount,
        uploaded_by=request.uploaded_by,
    )
    return {"success": True, "document": document}


@router.post("/extracted")
def create_extracted_document(request: ExtractedDocumentRequest):
    """Store the result of AI extraction as an analyzed document."""
    if request.raw_response is not None:
        result = parse_extraction_response(request.raw_response)
        if not result.success:
            raise HTTPException(status_code=422, detail=result.error)
        data = result.data
    elif request.data is not None:
        try:
            data = normalize_extracted_data(request.data)
        except ValueError as e:
            raise HTTPException(status_code=422, detail=str(e))
    else:
        raise HTTPException(status_code=400, detail="Either raw_response or data is required")

    document = create_document_from_extraction(
        data,
        file_name=request.file_name,
        file_id=request.file_id,
        uploaded_by=request.uploaded_by,
    )
    return {"success": True, "document": document}


@router.put("/{document_id}")
def update_document_endpoint(document_id: str, request: UpdateDocumentRequest):
    """Edit header fields; a given items list replaces all items."""
    if not get_document_with_items(document_id):
        raise HTTPException(status_code=404, detail="Document not found")

    fields = request.model_dump(exclude={"items"}, exclude_none=True)
    items = [item.model_dump() for item in request.items] if request.items is not None else None
    document = update_document(document_id, items=items, **fields)
    return {"success": True, "document": document}


@router.put("/{document_id}/status")
def update_status_endpoint(document_id: str, request: StatusUpdateRequest):
    """Change document status. Approving applies stock or spending effects once."""
    try:
        document = update_document_status(document_id, DocumentStatus(request.status))
    except NotFoundError:
        raise HTTPException(status_code=404, detail="Document not found")
    return {"success": True, "document": document}


@router.delete("/{document_id}", dependencies=[Depends(require_api_key)])
def delete_document_endpoint(document_id: str):
    """Delete a document and its items."""
    if not delete_document(document_id):
        raise HTTPException(status_code=404, detail="Document not found")
    return {"success": True, "message": f"Deleted document {document_id}"}
