"""Pydantic models for grounded answers."""

from datetime import datetime

from pydantic import BaseModel


class SourceItem(BaseModel):
    """A retrieved chunk that was handed to the generator as context."""

    title: str
    score: float
    excerpt: str
    doc_id: str | None = None
    chunk_number: int | None = None


class AnswerResponse(BaseModel):
    """Answer returned to the end user.

    ``found`` is False when retrieval returned nothing above the relevance
    threshold; the answer then holds the fixed "not found" text.
    """

    answer: str
    sources: list[SourceItem] = []
    found: bool = True


class RequestLogEntry(BaseModel):
    """One question asked by a user, kept for the hourly request limit."""

    user_id: str
    tenant_id: str
    query: str
    created_at: datetime
