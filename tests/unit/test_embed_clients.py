"""Unit tests for the embedding clients and the lazily loaded model handle."""

import asyncio
import json
import math

import httpx
import pytest

from shared.clients.ClientErrors import ClientResponseError, ClientTransportError, EmbeddingError, RateLimitError
from shared.clients.embed.EmbedClientInterface import EmbedClientInterface
from shared.clients.embed.EmbedModelHandle import EmbedModelHandle
from shared.clients.embed.huggingface.EmbedClientHuggingface import EmbedClientHuggingface
from shared.clients.embed.ollama.EmbedClientOllama import EmbedClientOllama
from tests.fakes import FakeEmbedBackend, keyword_vector, unit_norm


async def _booted_hf(helper_config, handler) -> EmbedClientHuggingface:
    client = EmbedClientHuggingface(helper_config=helper_config)
    await client.boot(transport=httpx.MockTransport(handler))
    return client


# ── normalisation ───────────────────────────────────────────────────────


@pytest.mark.parametrize("text", ["piscina", "Qual o horário da piscina?", "lixo lixo garagem", "sem palavras conhecidas"])
async def test_embeddings_have_unit_norm(helper_config, embed_backend: FakeEmbedBackend, text: str) -> None:
    client = await _booted_hf(helper_config, embed_backend.handle)
    try:
        vector = await client.do_embed_text(text)
    finally:
        await client.close()
    assert math.isclose(unit_norm(vector), 1.0, abs_tol=1e-4)
    assert len(vector) == len(keyword_vector(text))


def test_normalize_rejects_zero_vector() -> None:
    with pytest.raises(EmbeddingError):
        EmbedClientInterface.normalize([0.0, 0.0, 0.0])


def test_normalize_rejects_non_finite_vector() -> None:
    with pytest.raises(EmbeddingError):
        EmbedClientInterface.normalize([float("nan"), 1.0])


async def test_zero_embedding_from_backend_is_an_error(helper_config) -> None:
    client = await _booted_hf(helper_config, lambda request: httpx.Response(200, json=[0.0, 0.0, 0.0]))
    try:
        with pytest.raises(EmbeddingError):
            await client.do_embed_text("qualquer coisa")
    finally:
        await client.close()


# ── request shaping ─────────────────────────────────────────────────────


async def test_long_input_is_truncated_not_rejected(helper_config, monkeypatch) -> None:
    monkeypatch.setenv("EMBED_MODEL_MAX_CHARS", "20")
    seen: list[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(json.loads(request.content)["inputs"])
        return httpx.Response(200, json=[1.0, 2.0])

    client = await _booted_hf(helper_config, handler)
    try:
        await client.do_embed_text("a" * 100)
    finally:
        await client.close()
    assert seen == ["a" * 20]


async def test_huggingface_sends_bearer_token_and_model_path(helper_config) -> None:
    captured: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        captured.append(request)
        return httpx.Response(200, json=[0.5, 0.5])

    client = await _booted_hf(helper_config, handler)
    try:
        await client.do_embed_text("texto")
    finally:
        await client.close()
    assert captured[0].headers["Authorization"] == "Bearer hf-test"
    assert captured[0].url.path == "/models/sentence-transformers/all-MiniLM-L6-v2/pipeline/feature-extraction"


@pytest.mark.parametrize(
    "response, expected",
    [
        ([3.0, 4.0], [0.6, 0.8]),
        ([[2.0, 4.0], [4.0, 4.0]], [0.6, 0.8]),
        ([[[2.0, 4.0], [4.0, 4.0]]], [0.6, 0.8]),
    ],
)
async def test_huggingface_response_shapes(helper_config, response, expected) -> None:
    client = await _booted_hf(helper_config, lambda request: httpx.Response(200, json=response))
    try:
        vector = await client.do_embed_text("texto")
    finally:
        await client.close()
    assert vector == pytest.approx(expected)


async def test_huggingface_error_object_is_an_embedding_error(helper_config) -> None:
    client = await _booted_hf(helper_config, lambda request: httpx.Response(200, json={"error": "Model is loading"}))
    try:
        with pytest.raises(EmbeddingError):
            await client.do_embed_text("texto")
    finally:
        await client.close()


async def test_ollama_embed_and_model_size(helper_config, monkeypatch) -> None:
    monkeypatch.setenv("EMBED_OLLAMA_BASE_URL", "http://ollama.test")

    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path == "/api/show":
            return httpx.Response(200, json={"model_info": {"bert.embedding_length": 384}})
        body = json.loads(request.content)
        assert body == {"model": "all-minilm", "input": ["olá"]}
        return httpx.Response(200, json={"embeddings": [[0.0, 2.0]]})

    client = EmbedClientOllama(helper_config=helper_config)
    await client.boot(transport=httpx.MockTransport(handler))
    try:
        assert await client.do_embed_text("olá") == [0.0, 1.0]
        assert await client.do_fetch_embedding_vector_size() == (384, "Cosine")
    finally:
        await client.close()


# ── errors ──────────────────────────────────────────────────────────────


async def test_rate_limit_is_distinguished(helper_config) -> None:
    client = await _booted_hf(helper_config, lambda request: httpx.Response(429, json={"error": "too many requests"}))
    try:
        with pytest.raises(RateLimitError) as exc_info:
            await client.do_embed_text("texto")
    finally:
        await client.close()
    assert exc_info.value.retryable
    assert "too many requests" in exc_info.value.body


async def test_server_error_is_retryable_and_client_error_is_not(helper_config) -> None:
    statuses = iter([503, 400])
    client = await _booted_hf(helper_config, lambda request: httpx.Response(next(statuses), text="boom"))
    try:
        with pytest.raises(ClientResponseError) as server_error:
            await client.do_embed_text("um")
        with pytest.raises(ClientResponseError) as bad_request:
            await client.do_embed_text("dois")
    finally:
        await client.close()
    assert server_error.value.retryable
    assert not bad_request.value.retryable


async def test_network_failure_is_a_retryable_transport_error(helper_config) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    client = await _booted_hf(helper_config, handler)
    try:
        with pytest.raises(ClientTransportError) as exc_info:
            await client.do_embed_text("texto")
    finally:
        await client.close()
    assert exc_info.value.retryable


async def test_request_before_boot_fails(helper_config) -> None:
    client = EmbedClientHuggingface(helper_config=helper_config)
    with pytest.raises(ClientTransportError):
        await client.do_embed_text("texto")


# ── cache ───────────────────────────────────────────────────────────────


async def test_cache_serves_repeated_texts(helper_config, embed_backend: FakeEmbedBackend, monkeypatch) -> None:
    monkeypatch.setenv("EMBED_CACHE_TTL", "3600")
    client = await _booted_hf(helper_config, embed_backend.handle)
    try:
        first = await client.do_embed_text("Horário da piscina")
        second = await client.do_embed_text("  horário da PISCINA ")
        client.clear_cache()
        await client.do_embed_text("Horário da piscina")
    finally:
        await client.close()
    assert first == second
    assert len(embed_backend.calls) == 2


async def test_expired_cache_entries_are_evicted(helper_config, embed_backend: FakeEmbedBackend, monkeypatch) -> None:
    monkeypatch.setenv("EMBED_CACHE_TTL", "60")
    now = [0.0]
    client = await _booted_hf(helper_config, embed_backend.handle)
    client._cache = client._make_cache(lambda: now[0])
    try:
        for number in range(50):
            await client.do_embed_text(f"trecho único {number}")
        assert client.cache_size() == 50
        now[0] = 61.0
        await client.do_embed_text("trecho novo")
        assert client.cache_size() == 1
        await client.do_embed_text("trecho único 0")
    finally:
        await client.close()
    # the expired text had to be embedded again
    assert embed_backend.calls.count("trecho único 0") == 2


async def test_cache_is_bounded(helper_config, embed_backend: FakeEmbedBackend, monkeypatch) -> None:
    monkeypatch.setenv("EMBED_CACHE_TTL", "3600")
    monkeypatch.setenv("EMBED_CACHE_MAX_ENTRIES", "3")
    client = await _booted_hf(helper_config, embed_backend.handle)
    try:
        for text in ["piscina", "lixo", "garagem", "animais", "barulho"]:
            await client.do_embed_text(text)
        assert client.cache_size() == 3
    finally:
        await client.close()


async def test_cache_disabled_with_zero_ttl(helper_config, embed_backend: FakeEmbedBackend) -> None:
    client = await _booted_hf(helper_config, embed_backend.handle)
    try:
        await client.do_embed_text("piscina")
        await client.do_embed_text("piscina")
    finally:
        await client.close()
    assert client.cache_size() == 0
    assert len(embed_backend.calls) == 2


async def test_embed_many_preserves_order(helper_config, embed_backend: FakeEmbedBackend) -> None:
    client = await _booted_hf(helper_config, embed_backend.handle)
    try:
        vectors = await client.do_embed(["piscina", "lixo", "garagem"])
    finally:
        await client.close()
    assert embed_backend.calls == ["piscina", "lixo", "garagem"]
    assert [v.index(max(v)) for v in vectors] == [0, 2, 5]


# ── model handle ────────────────────────────────────────────────────────


async def test_handle_loads_once_under_concurrency(embed_handle: EmbedModelHandle, embed_backend: FakeEmbedBackend) -> None:
    clients = await asyncio.gather(*(embed_handle.get() for _ in range(10)))
    assert len({id(c) for c in clients}) == 1
    assert embed_handle.load_count == 1
    assert embed_backend.calls == ["dimension check"]
    assert embed_handle.vector_size == len(keyword_vector(""))
    assert embed_handle.distance == "Cosine"


async def test_handle_retries_after_a_failed_load(helper_config) -> None:
    statuses = iter([503, 200])
    client = EmbedClientHuggingface(helper_config=helper_config)
    handle = EmbedModelHandle(
        helper_config=helper_config,
        client=client,
        transport=httpx.MockTransport(lambda request: httpx.Response(next(statuses), json=[1.0, 1.0])),
    )
    with pytest.raises(ClientResponseError):
        await handle.get()
    assert not handle.is_loaded
    with pytest.raises(RuntimeError):
        _ = handle.vector_size

    await handle.get()
    assert handle.is_loaded
    assert handle.load_count == 2
    assert handle.vector_size == 2
    await handle.close()
