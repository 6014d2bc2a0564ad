from abc import abstractmethod
from typing import Any
import json
import math

import httpx
from shared.clients.ClientErrors import ClientError, DimensionMismatchError
from shared.clients.ClientInterface import ClientInterface
from shared.clients.rag.models.Scroll import ScrollResult, UpsertBatchResult
from shared.clients.rag.models.VectorPoint import SearchHit, VectorPoint
from shared.helper.HelperAsync import retry_with_backoff
from shared.helper.HelperConfig import HelperConfig

TENANT_KEY = "tenant_id"


class RAGClientInterface(ClientInterface):
    def __init__(self, helper_config: HelperConfig):
        super().__init__(helper_config=helper_config)
        self._vector_size: int | None = None

    ##########################################
    ############### CHECKER ##################
    ##########################################

    def check_vector_dimensions(self, vectors: list[list[float]], context: str = "") -> None:
        """Ensure every vector matches the collection's declared dimension.

        Only enforced once the dimension is known (after create or a fetch).

        Raises:
            DimensionMismatchError: On the first vector with a different length.
        """
        if self._vector_size is None:
            return
        for vector in vectors:
            if len(vector) != self._vector_size:
                raise DimensionMismatchError(self._vector_size, len(vector), context)

    ##########################################
    ################ GETTER ##################
    ##########################################

    ################ GENERAL ##################
    def _get_client_type(self) -> str:
        """
        Returns the type of the client. E.g. "rag"
        """
        return "rag"

    @abstractmethod
    def get_collection_name(self) -> str:
        """Returns the name of the collection the client reads and writes."""
        pass

    def get_known_vector_size(self) -> int | None:
        return self._vector_size

    ################ ENDPOINTS ##################
    @abstractmethod
    def _get_endpoint_collection(self) -> str:
        """Returns the endpoint path of the collection itself (create, drop, info)."""
        pass

    @abstractmethod
    def _get_endpoint_check_collection_existence(self) -> str:
        """Returns the endpoint path for collection existence checks."""
        pass

    @abstractmethod
    def _get_endpoint_points(self) -> str:
        """Returns the endpoint path for points upsert requests."""
        pass

    @abstractmethod
    def _get_endpoint_search(self) -> str:
        """Returns the endpoint path for similarity search requests."""
        pass

    @abstractmethod
    def _get_endpoint_delete_points(self) -> str:
        """Returns the endpoint path for deleting points by filter."""
        pass

    @abstractmethod
    def _get_endpoint_scroll(self) -> str:
        """Returns the endpoint path for scroll requests."""
        pass

    @abstractmethod
    def _get_endpoint_count(self) -> str:
        """Returns the endpoint path for counting points matching a filter."""
        pass

    ################ PAYLOAD BUILDER ##################
    @abstractmethod
    def get_match_condition(self, key: str, value: Any) -> dict:
        """Builds a single payload equality condition (e.g. tenant_id == "condo-1").

        Args:
            key (str): Payload key.
            value (Any): Value the key must equal.

        Returns:
            dict: Backend-specific condition.
        """
        pass

    @abstractmethod
    def get_create_collection_payload(self, vector_size: int, distance: str) -> dict:
        """Builds the request body for a collection create request."""
        pass

    @abstractmethod
    def get_search_payload(self, vector: list[float], conditions: list[dict], limit: int, score_threshold: float | None) -> dict:
        """Builds the request body for a similarity search.

        Args:
            vector (list[float]): The query vector.
            conditions (list[dict]): Equality conditions, combined with AND.
            limit (int): Maximum number of hits.
            score_threshold (float | None): Minimum similarity, or None for no cut-off.
        """
        pass

    @abstractmethod
    def get_scroll_payload(self, conditions: list[dict], with_payload: bool | list | dict, with_vector: bool | list, limit: int | None = None, offset: str | int | None = None) -> dict:
        """
        Returns the payload for scroll requests.

        Args:
            conditions (list[dict]): Equality conditions; empty scrolls the whole collection.
            with_payload (bool | list | dict): Whether to include the payload, or which fields.
            with_vector (bool | list): Whether to include the vector.
            limit (int | None): The maximum number of results to return.
            offset (str | int | None): Cursor returned by the previous scroll page.
        """
        pass

    @abstractmethod
    def get_count_payload(self, conditions: list[dict]) -> dict:
        """Builds the request body for a point count."""
        pass

    @abstractmethod
    def get_delete_payload(self, conditions: list[dict], keep_ids: list[str] | None = None) -> dict:
        """Builds the request body for a filter-based delete.

        Args:
            conditions (list[dict]): Equality conditions, combined with AND.
            keep_ids (list[str] | None): Point ids excluded from the delete even if they match.
        """
        pass

    ################ RESPONSE PARSER ##################
    @abstractmethod
    def extract_search_hits(self, raw_response: dict) -> list[dict]:
        """Extracts raw hits ({"id", "score", "payload"}) from a search response."""
        pass

    @abstractmethod
    def extract_scroll_content(self, raw_response: dict) -> dict:
        """
        Extracts the relevant content from a raw scroll response.

        Returns:
            dict: A dict with keys "result", "status", "time".
        """
        pass

    @abstractmethod
    def extract_next_page_offset(self, raw_response: dict) -> str | int | None:
        """Extracts the cursor for the next scroll page, None on the last page."""
        pass

    @abstractmethod
    def extract_vector_size(self, collection_info: dict) -> int:
        """Extracts the declared vector dimension from a collection info response."""
        pass

    @abstractmethod
    def is_already_exists_response(self, response: httpx.Response) -> bool:
        """Tells whether a failed create response means the collection already exists."""
        pass

    ##########################################
    ############### REQUESTS #################
    ##########################################

    ################ COLLECTION ##################
    async def do_existence_check(self) -> bool:
        """Check if the collection exists in the rag backend.

        Returns:
            bool: True if the collection exists, False otherwise.
        """
        resp = await self.do_request(method="GET", endpoint=self._get_endpoint_check_collection_existence(), raise_on_error=True)
        return bool(resp.json().get("result", {}).get("exists"))

    async def do_create_collection(self, vector_size: int = 384, distance: str = "Cosine") -> bool:
        """Create the collection. Idempotent: an existing collection is not an error.

        Args:
            vector_size (int): The dimension of the vectors in the collection.
            distance (str): The distance metric for the vectors.

        Returns:
            bool: True if the collection was created, False if it already existed.

        Raises:
            ClientResponseError: On any other non-2xx response.
        """
        resp = await self.do_request(
            method="PUT",
            json=self.get_create_collection_payload(vector_size, distance),
            endpoint=self._get_endpoint_collection())
        if resp.is_success:
            self._vector_size = vector_size
            self.logging.info("Created collection '%s' (size=%d, distance=%s).", self.get_collection_name(), vector_size, distance)
            return True
        if self.is_already_exists_response(resp):
            self.logging.info("Collection '%s' already exists.", self.get_collection_name())
            return False
        self.raise_for_response(resp)
        return False

    async def do_drop_collection(self) -> None:
        """Drop the whole collection. Destructive, used by full reindex and clear only.

        Raises:
            ClientResponseError: If the backend refuses the drop.
        """
        self.logging.warning("Dropping collection '%s'.", self.get_collection_name())
        await self.do_request(method="DELETE", endpoint=self._get_endpoint_collection(), raise_on_error=True, accepted_statuses=(404,))
        self._vector_size = None

    async def do_fetch_collection_info(self) -> dict:
        """Fetch the raw collection description from the backend."""
        resp = await self.do_request(method="GET", endpoint=self._get_endpoint_collection(), raise_on_error=True)
        return resp.json()

    async def do_fetch_vector_size(self) -> int:
        """Fetch and remember the vector dimension declared by the collection."""
        self._vector_size = self.extract_vector_size(await self.do_fetch_collection_info())
        return self._vector_size

    ################ POINTS ##################
    async def do_upsert_points(self, points: list[VectorPoint]) -> httpx.Response:
        """Upsert points into the collection.
        Inserts new points or replaces existing ones if a point with the same ID already exists.

        Args:
            points (list[VectorPoint]): The points to upsert.

        Returns:
            httpx.Response: The response from the upsert request.

        Raises:
            DimensionMismatchError: If any vector does not match the collection size.
            ClientResponseError: If the backend rejects the batch.
        """
        self.check_vector_dimensions([p.vector for p in points], context="upsert")
        return await self.do_request(
            method="PUT",
            content=json.dumps({"points": [p.to_wire() for p in points]}),
            endpoint=self._get_endpoint_points(),
            params={"wait": "true"},
            additional_headers={"Content-Type": "application/json"},
            raise_on_error=True)

    async def do_upsert_points_batched(
        self,
        points: list[VectorPoint],
        batch_size: int = 100,
        max_retries: int = 0,
        backoff: float = 0.5,
    ) -> list[UpsertBatchResult]:
        """Upsert points in batches, each batch committed independently.

        A failed batch is retried (transient errors only) and then reported;
        it neither stops the remaining batches nor rolls back earlier ones.

        Args:
            points (list[VectorPoint]): All points to upsert.
            batch_size (int): Max points per request.
            max_retries (int): Retries per batch for retryable errors.
            backoff (float): Base backoff delay in seconds.

        Returns:
            list[UpsertBatchResult]: One entry per batch, in order.

        Raises:
            DimensionMismatchError: Before any request, if a vector has the wrong size.
        """
        if batch_size < 1:
            raise ValueError("batch_size must be at least 1.")
        self.check_vector_dimensions([p.vector for p in points], context="batched upsert")

        results: list[UpsertBatchResult] = []
        total_batches = math.ceil(len(points) / batch_size)
        for batch_index, batch_start in enumerate(range(0, len(points), batch_size)):
            batch = points[batch_start: batch_start + batch_size]

            async def _upsert(batch: list[VectorPoint] = batch) -> httpx.Response:
                return await self.do_upsert_points(batch)

            try:
                _, attempts = await retry_with_backoff(
                    _upsert,
                    max_retries=max_retries,
                    backoff=backoff,
                    description=f"Upsert batch {batch_index + 1}/{total_batches}",
                    logger=self.logging,
                )
                results.append(UpsertBatchResult(batch_index=batch_index, size=len(batch), success=True, attempts=attempts))
            except ClientError as exc:
                self.logging.error("Upsert batch %d/%d (%d points) failed: %s", batch_index + 1, total_batches, len(batch), exc)
                results.append(UpsertBatchResult(
                    batch_index=batch_index, size=len(batch), success=False,
                    attempts=max_retries + 1 if exc.retryable else 1, error=str(exc)))
        return results

    async def do_search(
        self,
        vector: list[float],
        tenant_id: str,
        limit: int = 5,
        score_threshold: float | None = None,
        extra_filters: dict[str, Any] | None = None,
    ) -> list[SearchHit]:
        """Similarity search, always restricted to a single tenant.

        The tenant condition is injected unconditionally and cannot be
        overridden through ``extra_filters``.

        Args:
            vector (list[float]): The query embedding.
            tenant_id (str): The requesting tenant. Mandatory.
            limit (int): Maximum number of hits (top-K).
            score_threshold (float | None): Hits below this similarity are dropped.
            extra_filters (dict[str, Any] | None): Additional equality constraints.

        Returns:
            list[SearchHit]: Hits ranked by similarity, descending. Empty when nothing matches.

        Raises:
            ValueError: If tenant_id is empty.
            DimensionMismatchError: If the query vector has the wrong dimension.
            ClientResponseError: If the search fails.
        """
        if not tenant_id:
            raise ValueError("tenant_id is mandatory for every search.")
        self.check_vector_dimensions([vector], context="search")
        conditions = self.build_conditions(tenant_id, extra_filters)
        resp = await self.do_request(
            method="POST",
            json=self.get_search_payload(vector, conditions, limit, score_threshold),
            endpoint=self._get_endpoint_search(),
            raise_on_error=True,
        )
        hits = [SearchHit.model_validate(hit) for hit in self.extract_search_hits(resp.json())]
        # results must never contain another tenant's chunk, whatever the backend returned
        leaked = [hit for hit in hits if hit.payload.tenant_id != tenant_id]
        if leaked:
            self.logging.error("Search for tenant '%s' returned %d foreign points; dropping them.", tenant_id, len(leaked))
        return sorted((hit for hit in hits if hit.payload.tenant_id == tenant_id), key=lambda h: h.score, reverse=True)

    async def do_delete_points_by_filter(self, filters: dict[str, Any], keep_ids: list[str] | None = None) -> None:
        """Deletes all points whose payload matches every key/value in ``filters``.

        Args:
            filters (dict[str, Any]): Equality constraints. Must include tenant_id
                                      so a delete can never cross tenants.
            keep_ids (list[str] | None): Matching points that must survive the delete.

        Raises:
            ValueError: If tenant_id is missing from the filter.
            ClientResponseError: If the delete fails.
        """
        if not filters.get(TENANT_KEY):
            raise ValueError("Delete filters must include tenant_id.")
        conditions = [self.get_match_condition(key, value) for key, value in filters.items()]
        await self.do_request(
            method="POST",
            content=json.dumps(self.get_delete_payload(conditions, keep_ids)),
            endpoint=self._get_endpoint_delete_points(),
            params={"wait": "true"},
            additional_headers={"Content-Type": "application/json"},
            raise_on_error=True,
        )

    async def do_delete_document_points(self, tenant_id: str, doc_id: str, keep_ids: list[str] | None = None) -> None:
        """Remove every chunk of a document, except the points listed in ``keep_ids``."""
        await self.do_delete_points_by_filter({TENANT_KEY: tenant_id, "doc_id": doc_id}, keep_ids=keep_ids)

    ################ SCROLL ##################
    async def do_scroll(self, filters: dict[str, Any] | None, with_payload: bool | list | dict, with_vector: bool | list, limit: int | None = None, offset: str | int | None = None) -> ScrollResult:
        """Scroll a single page from the collection.

        Args:
            filters (dict[str, Any] | None): Equality constraints, None for the whole collection.
            with_payload (bool | list | dict): Whether to include the payload, or which fields.
            with_vector (bool | list): Whether to include the vector.
            limit (int | None): Page size.
            offset (str | int | None): Cursor from the previous page's next_page_offset.

        Returns:
            ScrollResult: One page, with next_page_offset when more pages exist.
        """
        conditions = [self.get_match_condition(key, value) for key, value in (filters or {}).items()]
        resp = await self.do_request(
            method="POST",
            content=json.dumps(self.get_scroll_payload(conditions, with_payload, with_vector, limit, offset)),
            endpoint=self._get_endpoint_scroll(),
            additional_headers={"Content-Type": "application/json"},
            raise_on_error=True,
        )
        raw_response = resp.json()
        scroll_content = self.extract_scroll_content(raw_response=raw_response)
        return ScrollResult(
            result=scroll_content.get("result", []),
            status=scroll_content.get("status", "ok"),
            time=scroll_content.get("time", 0),
            next_page_offset=self.extract_next_page_offset(raw_response),
        )

    async def do_count(self, filters: dict[str, Any] | None = None) -> int:
        """Count the points matching the given filters (exact)."""
        conditions = [self.get_match_condition(key, value) for key, value in (filters or {}).items()]
        resp = await self.do_request(
            method="POST",
            content=json.dumps(self.get_count_payload(conditions)),
            endpoint=self._get_endpoint_count(),
            additional_headers={"Content-Type": "application/json"},
            raise_on_error=True,
        )
        return resp.json().get("result", {}).get("count", 0)

    async def do_scroll_all(self, filters: dict[str, Any] | None, with_payload: bool | list | dict, with_vector: bool | list, page_size: int = 1000) -> ScrollResult:
        """Scroll through ALL points matching the filter, paginating automatically.

        Used for bulk export during reindexing.

        Returns:
            ScrollResult: All matching points; next_page_offset is always None.
        """
        all_points: list[dict] = []
        offset: str | int | None = None
        page = 1
        total_points = await self.do_count(filters)
        total_pages = math.ceil(total_points / page_size) if total_points > 0 else 1
        while True:
            page_result = await self.do_scroll(
                filters=filters,
                with_payload=with_payload,
                with_vector=with_vector,
                limit=page_size,
                offset=offset,
            )
            all_points.extend(page_result.result)
            self.logging.info(
                "Fetched points page %d of %d from %s, total points so far: %d of %d",
                page, total_pages, self.get_engine_name(), len(all_points), total_points,
            )
            offset = page_result.next_page_offset
            if offset is None:
                break
            page += 1
        return ScrollResult(result=all_points)

    ##########################################
    ################ HELPERS #################
    ##########################################

    def build_conditions(self, tenant_id: str, extra_filters: dict[str, Any] | None = None) -> list[dict]:
        """Tenant condition first, then extra constraints (a tenant_id key there is ignored)."""
        conditions = [self.get_match_condition(TENANT_KEY, tenant_id)]
        for key, value in (extra_filters or {}).items():
            if key == TENANT_KEY:
                continue
            conditions.append(self.get_match_condition(key, value))
        return conditions
