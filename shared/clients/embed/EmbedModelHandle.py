"""Lazily loaded, process-wide handle on the embedding model."""

import asyncio

import httpx
from shared.clients.embed.EmbedClientInterface import EmbedClientInterface
from shared.helper.HelperConfig import HelperConfig


class EmbedModelHandle:
    """Boots the embedding client on first use, exactly once.

    Concurrent first callers wait on the same lock, so the client is booted
    and its vector size measured a single time. A failed load leaves the
    handle unloaded and the next caller tries again. After a successful
    load the handle never changes.

    Services receive the handle through their constructor; nothing reaches
    it as module-level state.
    """

    def __init__(self, helper_config: HelperConfig, client: EmbedClientInterface, transport: httpx.AsyncBaseTransport | None = None) -> None:
        self.logging = helper_config.get_logger()
        self._client = client
        self._transport = transport
        self._lock = asyncio.Lock()
        self._loaded = False
        self._vector_size: int | None = None
        self._distance: str | None = None
        self.load_count = 0

    @property
    def is_loaded(self) -> bool:
        return self._loaded

    @property
    def vector_size(self) -> int:
        if self._vector_size is None:
            raise RuntimeError("Embedding model not loaded yet. Await get() first.")
        return self._vector_size

    @property
    def distance(self) -> str:
        if self._distance is None:
            raise RuntimeError("Embedding model not loaded yet. Await get() first.")
        return self._distance

    async def get(self) -> EmbedClientInterface:
        """Return the booted client, loading it on the first call."""
        if self._loaded:
            return self._client
        async with self._lock:
            if not self._loaded:
                await self._load()
        return self._client

    async def _load(self) -> None:
        self.logging.info("Loading embedding model '%s' via %s...", self._client.embed_model, self._client.get_engine_name())
        self.load_count += 1
        if not self._client.is_booted():
            await self._client.boot(transport=self._transport)
        try:
            self._vector_size, self._distance = await self._client.do_fetch_embedding_vector_size()
        except Exception:
            await self._client.close()
            raise
        self._loaded = True
        self.logging.info("Embedding model ready: dimension=%d distance=%s.", self._vector_size, self._distance)

    async def embed_text(self, text: str) -> list[float]:
        client = await self.get()
        return await client.do_embed_text(text)

    async def embed(self, texts: list[str] | str) -> list[list[float]]:
        client = await self.get()
        return await client.do_embed(texts)

    async def close(self) -> None:
        await self._client.close()
        self._loaded = False
