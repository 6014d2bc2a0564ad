"""Ingestion service.

Turns a condominium document into tenant-tagged vector points:
parse (binary uploads only) → chunk → embed each chunk in order → upsert in
batches. Every state change is written back to the document store so a
failed or partial ingestion is always visible on the document record.

Also hosts the maintenance operations (setup, clear, reindex, migrate).
Clear and reindex drop the whole collection and must not run while other
ingestions or queries are in flight.
"""

import asyncio

from services.chunking.Chunker import chunk, extract_topics
from shared.clients.ClientErrors import ClientError, ConfigurationError, DimensionMismatchError
from shared.clients.embed.EmbedModelHandle import EmbedModelHandle
from shared.clients.parse.ParseClientInterface import ParseClientInterface
from shared.clients.rag.RAGClientInterface import RAGClientInterface
from shared.clients.rag.models.VectorPoint import VectorPayload, VectorPoint, make_point_id
from shared.clients.store.DocumentStoreInterface import DocumentStoreInterface
from shared.helper.HelperConfig import HelperConfig
from shared.models.config import ChunkingSettings, IngestionSettings
from shared.models.document import Chunk, Document, IngestionResult, IngestionStatus, ReindexReport


class IngestionService:
    """Orchestrates the ingestion pipeline from document to vector index."""

    def __init__(
        self,
        helper_config: HelperConfig,
        rag_client: RAGClientInterface,
        embed_handle: EmbedModelHandle,
        document_store: DocumentStoreInterface,
        parse_client: ParseClientInterface | None = None,
        chunking: ChunkingSettings | None = None,
        settings: IngestionSettings | None = None,
    ) -> None:
        self.logging = helper_config.get_logger()
        self._rag = rag_client
        self._embed = embed_handle
        self._store = document_store
        self._parser = parse_client
        self._chunking = chunking or ChunkingSettings.from_config(helper_config)
        self._settings = settings or IngestionSettings.from_config(helper_config)
        self._collection_lock = asyncio.Lock()
        self._collection_ready = False
        self._sleep = asyncio.sleep

    ##########################################
    ############### COLLECTION ###############
    ##########################################

    async def ensure_collection(self) -> int:
        """Create the collection if needed and check it matches the embedding model.

        Safe to call concurrently and repeatedly; the backend treats an
        existing collection as success.

        Returns:
            int: The vector dimension of the collection.

        Raises:
            DimensionMismatchError: If an existing collection was created for
                another dimension than the configured embedding model.
        """
        await self._embed.get()
        vector_size = self._embed.vector_size
        if self._collection_ready:
            return vector_size
        async with self._collection_lock:
            if self._collection_ready:
                return vector_size
            created = await self._rag.do_create_collection(vector_size, distance=self._embed.distance)
            if not created:
                declared = await self._rag.do_fetch_vector_size()
                if declared != vector_size:
                    raise DimensionMismatchError(declared, vector_size, f"collection '{self._rag.get_collection_name()}' vs embedding model")
            self._collection_ready = True
        return vector_size

    ##########################################
    ############### INGESTION ################
    ##########################################

    async def ingest(self, document: Document, raw_file: bytes | None = None, content_type: str = "application/pdf") -> IngestionResult:
        """Run the full pipeline for one document.

        Args:
            document (Document): The document; its tenant_id tags every point.
            raw_file (bytes | None): Binary upload to parse into ``document.content``.
            content_type (str): MIME type of ``raw_file``.

        Returns:
            IngestionResult: Final status, indexed chunk count and failure counts.
                Status is ``error`` for any handled failure; the reason is in ``error``.

        Raises:
            ConfigurationError: Fatal configuration problems (e.g. dimension mismatch),
                after the document has been marked ``error``.
        """
        result = IngestionResult(document_id=document.id, tenant_id=document.tenant_id, status=IngestionStatus.RECEIVED)
        self.logging.info(
            "Ingesting document id=%s ('%s') for tenant '%s' (policy=%s).",
            document.id, document.title, document.tenant_id, self._settings.failure_policy,
        )
        try:
            await self._set_status(document, IngestionStatus.RECEIVED)

            # 1. normalised text
            if raw_file is not None:
                document.content = await self._parse(document, raw_file, content_type)
            if not document.content.strip():
                raise ValueError("Document has no text content.")
            await self._set_status(document, IngestionStatus.PARSED)

            # 2. chunks
            chunks = chunk(document.content, document.title, self._chunking.chunk_size, self._chunking.overlap)
            result.topics = extract_topics(document.content)
            self.logging.info("Document id=%s produced %d chunks.", document.id, len(chunks))
            await self._set_status(document, IngestionStatus.CHUNKED)

            # 3. embeddings, strictly in chunk order
            await self._set_status(document, IngestionStatus.EMBEDDING)
            points, failed_chunks = await self._embed_chunks(document, chunks)
            result.failed_chunks = failed_chunks
            document.failed_chunks = failed_chunks

            # 4. collection
            await self.ensure_collection()

            # 5. batched upsert; ids are deterministic, so a previous version is overwritten in place
            batch_results = await self._rag.do_upsert_points_batched(
                points,
                batch_size=self._settings.upsert_batch_size,
                max_retries=self._settings.upsert_max_retries,
                backoff=self._settings.retry_backoff,
            )
            indexed = sum(b.size for b in batch_results if b.success)
            result.failed_batches = sum(1 for b in batch_results if not b.success)
            result.chunk_count = indexed
            document.chunk_count = indexed
            if result.failed_batches:
                raise ClientError(f"{result.failed_batches} of {len(batch_results)} upsert batches failed; {indexed} points indexed.")
            # only once the new version is complete: drop chunks it no longer has
            await self._rag.do_delete_document_points(document.tenant_id, document.id, keep_ids=[str(p.id) for p in points])
            await self._set_status(document, IngestionStatus.INDEXED)

            # 6. outcome
            result.status = IngestionStatus.DONE
            await self._set_status(document, IngestionStatus.DONE)
            self.logging.info(
                "Ingested document id=%s ('%s'): %d chunks indexed, %d failed.",
                document.id, document.title, indexed, failed_chunks,
            )
            return result
        except Exception as exc:
            result.status = IngestionStatus.ERROR
            result.error = str(exc)
            await self._mark_error(document, exc)
            if isinstance(exc, ConfigurationError) or not isinstance(exc, (ClientError, ValueError)):
                raise
            return result

    async def _parse(self, document: Document, raw_file: bytes, content_type: str) -> str:
        if self._parser is None:
            raise ConfigurationError("Binary upload received but no parse engine is configured (PARSE_ENGINE).")
        return await self._parser.do_parse(document.source or document.title, raw_file, content_type)

    async def _embed_chunks(self, document: Document, chunks: list[Chunk]) -> tuple[list[VectorPoint], int]:
        """Embed chunks sequentially and build their points.

        Returns:
            tuple[list[VectorPoint], int]: The points and the number of chunks that failed.

        Raises:
            ClientError: Under ``fail_fast`` on the first failure, and under
                ``best_effort`` when every chunk failed.
        """
        points: list[VectorPoint] = []
        failed = 0
        for position, item in enumerate(chunks):
            try:
                vector = await self._embed.embed_text(item.content)
            except ClientError as exc:
                if self._settings.failure_policy == "fail_fast":
                    self.logging.error("Embedding chunk %d of document id=%s failed, aborting (fail_fast): %s", item.chunk_number, document.id, exc)
                    raise
                failed += 1
                self.logging.warning("Embedding chunk %d of document id=%s failed, skipping (best_effort): %s", item.chunk_number, document.id, exc)
                continue
            points.append(VectorPoint(
                id=make_point_id(document.tenant_id, document.id, item.chunk_number),
                vector=vector,
                payload=VectorPayload(
                    tenant_id=document.tenant_id,
                    doc_id=document.id,
                    title=document.title,
                    content=item.content,
                    chunk_number=item.chunk_number,
                    total_chunks=len(chunks),
                    created_at=document.created_at,
                    source=document.source,
                    category=document.category,
                ),
            ))
            if self._settings.embed_pause > 0 and (position + 1) % self._settings.embed_pause_every == 0:
                await self._sleep(self._settings.embed_pause)
        if chunks and not points:
            raise ClientError(f"All {len(chunks)} chunks of document id={document.id} failed to embed.")
        return points, failed

    async def _set_status(self, document: Document, status: IngestionStatus) -> None:
        document.status = status
        if status != IngestionStatus.ERROR:
            document.error = None
        self.logging.debug("Document id=%s -> %s", document.id, status.value)
        await self._store.do_save(document)

    async def _mark_error(self, document: Document, exc: Exception) -> None:
        self.logging.error("Ingestion of document id=%s ('%s') failed: %s", document.id, document.title, exc)
        document.error = str(exc)
        try:
            await self._set_status(document, IngestionStatus.ERROR)
        except ClientError as store_exc:
            self.logging.error("Could not record error status for document id=%s: %s", document.id, store_exc)

    ##########################################
    ############ RECORDS / DELETION ##########
    ##########################################

    async def get_document(self, tenant_id: str, doc_id: str) -> Document | None:
        return await self._store.do_get(tenant_id, doc_id)

    async def delete_document(self, tenant_id: str, doc_id: str) -> bool:
        """Delete a document record and every chunk derived from it.

        Returns:
            bool: False if the store held no such record (its points are removed anyway).
        """
        await self._rag.do_delete_document_points(tenant_id, doc_id)
        existed = await self._store.do_delete(tenant_id, doc_id)
        self.logging.info("Deleted document id=%s of tenant '%s' (record existed: %s).", doc_id, tenant_id, existed)
        return existed

    ##########################################
    ############## MAINTENANCE ###############
    ##########################################

    async def setup(self) -> int:
        """Create the collection for the configured embedding model."""
        return await self.ensure_collection()

    async def clear(self) -> int:
        """Drop and recreate the collection. Exclusive maintenance operation."""
        await self._embed.get()
        self.logging.warning("Clearing collection '%s': all tenants' vectors will be removed.", self._rag.get_collection_name())
        await self._rag.do_drop_collection()
        self._collection_ready = False
        return await self.ensure_collection()

    async def reindex(self, allow_partial: bool = False) -> ReindexReport:
        """Re-embed every stored point and rebuild the collection from scratch.

        Points are exported and re-embedded first; the collection is only
        dropped once every point has a new vector (unless ``allow_partial``).
        Exclusive maintenance operation.

        Raises:
            ClientError: If some points could not be re-embedded and
                ``allow_partial`` is False. The collection is left untouched.
        """
        await self._embed.get()
        report = ReindexReport(vector_size=self._embed.vector_size)
        self.logging.warning("Reindexing collection '%s' (exclusive maintenance).", self._rag.get_collection_name())

        exported = await self._rag.do_scroll_all(filters=None, with_payload=True, with_vector=False)
        report.points_found = len(exported.result)

        points: list[VectorPoint] = []
        for position, raw in enumerate(exported.result):
            try:
                payload = VectorPayload.model_validate(raw.get("payload") or {})
                vector = await self._embed.embed_text(payload.content)
            except (ClientError, ValueError) as exc:
                report.errors += 1
                self.logging.error("Reindex: point %s could not be re-embedded: %s", raw.get("id"), exc)
                continue
            points.append(VectorPoint(id=raw["id"], vector=vector, payload=payload))
            self.logging.debug("Reindex: %d/%d re-embedded.", position + 1, report.points_found)
        report.points_reembedded = len(points)

        if report.errors and not allow_partial:
            raise ClientError(f"Reindex aborted before dropping the collection: {report.errors} points failed to re-embed.")

        await self._rag.do_drop_collection()
        self._collection_ready = False
        await self.ensure_collection()
        batch_results = await self._rag.do_upsert_points_batched(
            points,
            batch_size=self._settings.upsert_batch_size,
            max_retries=self._settings.upsert_max_retries,
            backoff=self._settings.retry_backoff,
        )
        report.failed_batches = sum(1 for b in batch_results if not b.success)
        self.logging.info(
            "Reindex complete: %d/%d points re-embedded, %d errors, %d failed batches.",
            report.points_reembedded, report.points_found, report.errors, report.failed_batches,
        )
        return report

    async def migrate(self, tenant_id: str | None = None) -> list[IngestionResult]:
        """Ingest every stored document (of one tenant, or all) with enough content."""
        results: list[IngestionResult] = []
        documents = await self._store.do_list(tenant_id)
        self.logging.info("Migrating %d stored documents into the vector index...", len(documents))
        for document in documents:
            if len(document.content.strip()) < self._settings.min_content_chars:
                self.logging.info("Skipping document id=%s ('%s'): content too short.", document.id, document.title)
                continue
            results.append(await self.ingest(document))
        done = sum(1 for r in results if r.status == IngestionStatus.DONE)
        self.logging.info("Migration complete: %d ingested, %d failed, %d skipped.", done, len(results) - done, len(documents) - len(results))
        return results
