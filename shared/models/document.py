"""Pydantic models for condominium documents and their ingestion.

Hierarchy:
  Document         a tenant-owned source document plus its ingestion outcome.
  Chunk            a bounded passage derived from a document (never stored alone).
  IngestionResult  what a single ingestion run reports back to the caller.
"""

from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, Field


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class IngestionStatus(str, Enum):
    """Per-document ingestion state. ``error`` is reachable from every step."""

    RECEIVED = "received"
    PARSED = "parsed"
    CHUNKED = "chunked"
    EMBEDDING = "embedding"
    INDEXED = "indexed"
    DONE = "done"
    ERROR = "error"


class Document(BaseModel):
    """A document owned by a single tenant (condominium).

    The tenant_id is mandatory: every vector derived from the document is
    tagged with it and every search is filtered by it.
    """

    id: str
    tenant_id: str = Field(min_length=1)
    title: str
    content: str = ""
    source: str | None = None
    category: str = "geral"
    created_at: str = Field(default_factory=utc_now_iso)

    # ingestion outcome, owned by the ingestion pipeline
    status: IngestionStatus = IngestionStatus.RECEIVED
    chunk_count: int = 0
    failed_chunks: int = 0
    error: str | None = None


class Chunk(BaseModel):
    """A passage of a document, the unit of embedding and retrieval.

    Offsets refer to the source text and are best-effort: chunks re-seeded
    with overlap start at their first new section.
    """

    content: str
    chunk_number: int
    start_index: int
    end_index: int


class IngestionResult(BaseModel):
    document_id: str
    tenant_id: str
    status: IngestionStatus
    chunk_count: int = 0
    failed_chunks: int = 0
    failed_batches: int = 0
    topics: list[str] = []
    error: str | None = None


class ReindexReport(BaseModel):
    """Outcome of a full drop-and-recreate reindex."""

    points_found: int = 0
    points_reembedded: int = 0
    errors: int = 0
    failed_batches: int = 0
    vector_size: int | None = None
