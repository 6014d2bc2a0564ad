from abc import abstractmethod
import math
import time
from typing import Callable

from cachetools import TTLCache

from shared.clients.ClientErrors import EmbeddingError
from shared.clients.ClientInterface import ClientInterface
from shared.helper.HelperConfig import HelperConfig


class EmbedClientInterface(ClientInterface):
    def __init__(self, helper_config: HelperConfig):
        super().__init__(helper_config=helper_config)

        # model and embedding config
        self.embed_distance = helper_config.get_string_val(f"{self.get_client_type().upper()}_DISTANCE", default="Cosine")
        self.embed_model = helper_config.get_string_val(f"{self.get_client_type().upper()}_MODEL", default=self._get_default_model())
        self.embed_model_max_chars = int(helper_config.get_number_val(f"{self.get_client_type().upper()}_MODEL_MAX_CHARS", default=512))

        # in-process cache: normalised key -> vector; bounded, expired entries swept on insert
        self.cache_ttl = float(helper_config.get_number_val(f"{self.get_client_type().upper()}_CACHE_TTL", default=3600))
        self.cache_max_entries = int(helper_config.get_number_val(f"{self.get_client_type().upper()}_CACHE_MAX_ENTRIES", default=1000))
        self._cache = self._make_cache(time.monotonic)

    ##########################################
    ################ GETTER ##################
    ##########################################

    ################ GENERAL ##################
    def _get_client_type(self) -> str:
        """
        Returns the type of the client. E.g. "embed"
        """
        return "embed"

    @abstractmethod
    def _get_default_model(self) -> str:
        """
        Returns the model used when EMBED_MODEL is not set.
        """
        pass

    ################ ENDPOINTS ##################
    @abstractmethod
    def get_endpoint_embedding(self) -> str:
        """
        Returns the endpoint path for embedding requests.

        Returns:
            str: The endpoint path for embedding requests (e.g. "/api/embed")
        """
        pass

    ################ PAYLOAD BUILDER ##################
    @abstractmethod
    def get_embed_payload(self, text: str) -> dict:
        """Build the backend-specific request body for embedding one text.

        Args:
            text (str): The (already truncated) text to embed.

        Returns:
            dict: JSON-serialisable request body.
        """
        pass

    ##########################################
    ################# OTHER ##################
    ##########################################

    @abstractmethod
    def extract_embedding_from_response(self, response_data) -> list[float]:
        """Extract a single, not yet normalised, embedding vector from a raw response.

        Args:
            response_data: The parsed JSON response body.

        Returns:
            list[float]: The raw embedding vector.

        Raises:
            ValueError: If the response format is invalid or the embedding is empty.
        """
        pass

    def truncate(self, text: str) -> str:
        """Cut the text to the model's maximum input length. Longer inputs are never rejected."""
        return text[: self.embed_model_max_chars]

    @staticmethod
    def normalize(vector: list[float]) -> list[float]:
        """Scale a vector to unit Euclidean length.

        Raises:
            EmbeddingError: If the norm is zero or not finite, instead of producing NaNs.
        """
        norm = math.sqrt(math.fsum(v * v for v in vector))
        if norm == 0.0 or not math.isfinite(norm):
            raise EmbeddingError(f"Cannot normalise embedding with norm {norm!r}.")
        return [v / norm for v in vector]

    def _get_cache_key(self, text: str) -> str:
        return text.strip().lower()

    def _make_cache(self, timer: Callable[[], float]) -> TTLCache | None:
        if self.cache_ttl <= 0 or self.cache_max_entries <= 0:
            return None
        return TTLCache(maxsize=self.cache_max_entries, ttl=self.cache_ttl, timer=timer)

    def _get_cached(self, key: str) -> list[float] | None:
        if self._cache is None:
            return None
        return self._cache.get(key)

    def cache_size(self) -> int:
        if self._cache is None:
            return 0
        self._cache.expire()
        return len(self._cache)

    def clear_cache(self) -> None:
        if self._cache is not None:
            self._cache.clear()

    ##########################################
    ############### REQUESTS #################
    ##########################################

    async def do_fetch_embedding_vector_size(self) -> tuple[int, str]:
        """
        Determine the output dimension and distance metric of the configured model.

        The default implementation embeds a short sample text; backends that
        expose model metadata override it.

        Returns:
            tuple[int, str]: The vector dimension and the distance metric.
        """
        vector = await self.do_embed_text("dimension check")
        return len(vector), self.embed_distance

    async def do_embed_text(self, text: str) -> list[float]:
        """Embed a single text and return its L2-normalised vector.

        Args:
            text (str): The text to embed; silently truncated to the model limit.

        Returns:
            list[float]: Unit-length embedding vector.

        Raises:
            RateLimitError: If the backend answered with HTTP 429.
            ClientResponseError: On any other non-2xx response.
            ClientTransportError: On network failures.
            EmbeddingError: If the response is malformed or the vector degenerate.
        """
        truncated = self.truncate(text)
        key = self._get_cache_key(truncated)
        cached = self._get_cached(key)
        if cached is not None:
            self.logging.debug("Embedding served from cache (%d chars).", len(truncated))
            return cached

        response = await self.do_request(
            method="POST",
            endpoint=self.get_endpoint_embedding(),
            json=self.get_embed_payload(truncated),
            raise_on_error=True,
        )
        try:
            raw_vector = self.extract_embedding_from_response(response.json())
        except ValueError as e:
            self.logging.error("Malformed embedding response from %s: %s", self.get_engine_name(), e)
            raise EmbeddingError(f"Malformed embedding response from {self.get_engine_name()}: {e}") from e

        vector = self.normalize(raw_vector)
        if self._cache is not None:
            self._cache[key] = vector
        return vector

    async def do_embed(self, texts: list[str] | str) -> list[list[float]]:
        """Embed one or more texts sequentially, preserving input order.

        Args:
            texts (list[str] | str): One or more texts to embed.

        Returns:
            list[list[float]]: Unit-length vectors in the same order as the inputs.
        """
        texts = [texts] if isinstance(texts, str) else texts
        return [await self.do_embed_text(text) for text in texts]
