from pydantic import BaseModel


class ScrollResult(BaseModel):
    """Structured output of a single scroll page or a fully-collected scroll.

    Attributes:
        result:           List of raw point dicts ({"id", "payload", "vector"?}).
        status:           Backend status string (e.g. "ok").
        time:             Time taken by the backend to execute the request.
        next_page_offset: Cursor for the next page, or None when all pages
                          have been consumed.
    """

    result: list[dict]
    status: str = "ok"
    time: float = 0
    next_page_offset: str | int | None = None


class UpsertBatchResult(BaseModel):
    """Outcome of one upsert batch. Batches succeed or fail independently."""

    batch_index: int
    size: int
    success: bool
    attempts: int = 1
    error: str | None = None
