import uuid

from fastapi import APIRouter, Depends, File, Form, HTTPException, Request, UploadFile
from fastapi.responses import JSONResponse

from server.dependencies.auth import verify_api_key
from server.models.requests import DocumentRequest
from server.models.responses import DeleteResponse
from shared.clients.ClientErrors import ConfigurationError
from shared.models.document import Document, IngestionResult, IngestionStatus

router = APIRouter(prefix="/documents", tags=["documents"])


@router.post("", response_model=IngestionResult)
async def ingest_document(
    request: Request,
    body: DocumentRequest,
    _: None = Depends(verify_api_key),
):
    """Chunk, embed and index a text or markdown document for one tenant.

    Re-posting a document with the same id replaces its previous chunks.

    Returns:
        IngestionResult: 201 when indexed, 502 when a provider step failed.
    """
    document = Document(
        id=body.id or str(uuid.uuid4()),
        tenant_id=body.tenant_id,
        title=body.title,
        content=body.content,
        source=body.source,
        category=body.category,
    )
    return await _run_ingestion(request, document)


@router.post("/upload", response_model=IngestionResult)
async def upload_document(
    request: Request,
    file: UploadFile = File(...),
    tenant_id: str = Form(...),
    category: str = Form("geral"),
    title: str | None = Form(None),
    _: None = Depends(verify_api_key),
):
    """Parse a binary upload (e.g. a PDF) to markdown, then ingest it."""
    raw_file = await file.read()
    if not raw_file:
        raise HTTPException(status_code=400, detail="Uploaded file is empty")
    filename = file.filename or "documento"
    document = Document(
        id=str(uuid.uuid4()),
        tenant_id=tenant_id,
        title=title or filename.rsplit(".", 1)[0],
        source=filename,
        category=category,
    )
    return await _run_ingestion(request, document, raw_file, file.content_type or "application/pdf")


@router.get("/{tenant_id}/{doc_id}", response_model=Document)
async def get_document(
    request: Request,
    tenant_id: str,
    doc_id: str,
    _: None = Depends(verify_api_key),
) -> Document:
    """Return the stored record of a document, including its ingestion status."""
    document = await request.app.state.ingestion_service.get_document(tenant_id, doc_id)
    if document is None:
        raise HTTPException(status_code=404, detail="Document not found")
    return document


@router.delete("/{tenant_id}/{doc_id}", response_model=DeleteResponse)
async def delete_document(
    request: Request,
    tenant_id: str,
    doc_id: str,
    _: None = Depends(verify_api_key),
) -> DeleteResponse:
    """Delete a document and every vector chunk derived from it."""
    existed = await request.app.state.ingestion_service.delete_document(tenant_id, doc_id)
    return DeleteResponse(status="deleted", tenant_id=tenant_id, document_id=doc_id, record_existed=existed)


async def _run_ingestion(request: Request, document: Document, raw_file: bytes | None = None, content_type: str = "application/pdf") -> JSONResponse:
    ingestion_service = request.app.state.ingestion_service
    try:
        result = await ingestion_service.ingest(document, raw_file=raw_file, content_type=content_type)
    except ConfigurationError as e:
        raise HTTPException(status_code=500, detail=f"Ingestion is misconfigured: {e}")
    status_code = 201 if result.status == IngestionStatus.DONE else 502
    return JSONResponse(status_code=status_code, content=result.model_dump(mode="json"))
