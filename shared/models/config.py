from pydantic import BaseModel, Field, model_validator

from shared.helper.HelperConfig import HelperConfig


class EnvConfig(BaseModel):
    """
    A single environment setting required by a client.

    Attributes:
        env_key (str): Raw key name; the client prefixes it with its type and engine
                       (e.g. "BASE_URL" becomes "RAG_QDRANT_BASE_URL").
        val_type (str): "string", "number", "bool" or "list".
        default (str | int | float | bool | list | None): Fallback value. None marks the key as mandatory.
    """

    env_key: str
    val_type: str = "string"
    default: str | int | float | bool | list | None = None


class ChunkingSettings(BaseModel):
    """Parameters of the structural chunker."""

    chunk_size: int = 1000
    overlap: int = 200

    @model_validator(mode="after")
    def _check_window(self) -> "ChunkingSettings":
        if self.overlap < 0 or self.chunk_size <= self.overlap:
            raise ValueError("chunk_size must be greater than overlap, and overlap must not be negative.")
        return self

    @classmethod
    def from_config(cls, config: HelperConfig) -> "ChunkingSettings":
        return cls(
            chunk_size=int(config.get_number_val("CHUNK_SIZE", default=1000)),
            overlap=int(config.get_number_val("CHUNK_OVERLAP", default=200)),
        )


class IngestionSettings(BaseModel):
    """Knobs of the ingestion pipeline.

    Attributes:
        upsert_batch_size (int): Max points per upsert request.
        upsert_max_retries (int): Retries per failed batch (transient errors only).
        retry_backoff (float): Base backoff delay in seconds, doubled per retry.
        failure_policy (str): "fail_fast" aborts a document on the first chunk
                              that cannot be embedded; "best_effort" skips it.
        min_content_chars (int): Documents shorter than this are not migrated.
        embed_pause (float): Pause in seconds after every `embed_pause_every` chunks,
                             keeping sequential embedding under provider rate limits.
    """

    upsert_batch_size: int = Field(default=100, ge=1)
    upsert_max_retries: int = Field(default=3, ge=0)
    retry_backoff: float = 0.5
    failure_policy: str = "fail_fast"
    min_content_chars: int = 50
    embed_pause: float = Field(default=0.2, ge=0)
    embed_pause_every: int = Field(default=5, ge=1)

    @classmethod
    def from_config(cls, config: HelperConfig) -> "IngestionSettings":
        return cls(
            upsert_batch_size=int(config.get_number_val("INGEST_UPSERT_BATCH_SIZE", default=100)),
            upsert_max_retries=int(config.get_number_val("INGEST_UPSERT_MAX_RETRIES", default=3)),
            retry_backoff=float(config.get_number_val("INGEST_RETRY_BACKOFF", default=0.5)),
            failure_policy=config.get_choice_val("INGEST_FAILURE_POLICY", ["fail_fast", "best_effort"], default="fail_fast"),
            embed_pause=float(config.get_number_val("INGEST_EMBED_PAUSE", default=0.2)),
            embed_pause_every=int(config.get_number_val("INGEST_EMBED_PAUSE_EVERY", default=5)),
        )


class AnswerSettings(BaseModel):
    """Retrieval and answer generation parameters.

    ``max_requests_per_hour`` caps the questions one user may ask
    in a sliding hour; 0 disables the limit.
    """

    top_k: int = 5
    score_threshold: float = 0.7
    max_query_chars: int = 500
    excerpt_chars: int = 150
    max_requests_per_hour: int = Field(default=50, ge=0)

    @classmethod
    def from_config(cls, config: HelperConfig) -> "AnswerSettings":
        return cls(
            top_k=int(config.get_number_val("ANSWER_TOP_K", default=5)),
            score_threshold=float(config.get_number_val("ANSWER_SCORE_THRESHOLD", default=0.7)),
            max_query_chars=int(config.get_number_val("ANSWER_MAX_QUERY_CHARS", default=500)),
            max_requests_per_hour=int(config.get_number_val("ANSWER_MAX_REQUESTS_PER_HOUR", default=50)),
        )
