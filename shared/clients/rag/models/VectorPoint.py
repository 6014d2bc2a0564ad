"""Vector index records: the payload stored with each chunk, points and search hits."""

import uuid

from pydantic import BaseModel, ConfigDict, Field


class VectorPayload(BaseModel):
    """Metadata stored alongside each vector chunk.

    tenant_id is mandatory and is the only multi-tenancy boundary of the
    index: it is written on every upsert and filtered on every search.
    Unknown keys are kept (``extra="allow"``) so payloads written by newer
    versions survive a reindex unchanged.

    Attributes:
        tenant_id:     Mandatory. Condominium the document belongs to.
        doc_id:        Parent document id; used for delete-by-document.
        title:         Human-readable document title (also the source label).
        content:       Chunk text, including the "Document: ..." prefix.
        chunk_number:  Zero-based position of the chunk within the document.
        total_chunks:  Number of chunks the document produced.
        created_at:    ISO-8601 timestamp of the ingestion run.
        source:        Original filename or URL, if known.
        category:      Free-form document category (e.g. "regimento", "ata").
    """

    model_config = ConfigDict(extra="allow")

    # never empty
    tenant_id: str = Field(min_length=1)

    # Core identity
    doc_id: str
    title: str
    content: str

    # Position
    chunk_number: int = 0
    total_chunks: int = 1

    # Temporal metadata
    created_at: str | None = None

    # Optional metadata
    source: str | None = None
    category: str | None = None


class VectorPoint(BaseModel):
    """A single point ready for upsert."""

    id: str | int
    vector: list[float]
    payload: VectorPayload

    def to_wire(self) -> dict:
        return {"id": self.id, "vector": self.vector, "payload": self.payload.model_dump(exclude_none=True)}


class SearchHit(BaseModel):
    """A point returned by a similarity search, ranked by score."""

    id: str | int
    score: float
    payload: VectorPayload


def make_point_id(tenant_id: str, doc_id: str, chunk_number: int) -> str:
    """Build a deterministic UUID5 point id for a chunk.

    The same tenant/document/chunk triple always maps to the same id, so
    re-ingesting a document overwrites its points instead of duplicating them.
    """
    return str(uuid.uuid5(uuid.NAMESPACE_OID, f"{tenant_id}:{doc_id}:{chunk_number}"))
