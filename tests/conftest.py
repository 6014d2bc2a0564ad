"""Shared pytest configuration and fixtures."""

import logging

import pytest

from shared.clients.embed.EmbedModelHandle import EmbedModelHandle
from shared.clients.embed.huggingface.EmbedClientHuggingface import EmbedClientHuggingface
from shared.clients.llm.openai.LLMClientOpenai import LLMClientOpenai
from shared.clients.rag.qdrant.RAGClientQdrant import RAGClientQdrant
from shared.clients.store.memory.DocumentStoreMemory import DocumentStoreMemory
from shared.helper.HelperConfig import HelperConfig
from tests.fakes import COLLECTION, QDRANT_URL, FakeChat, FakeEmbedBackend, FakeQdrant


def pytest_configure(config: pytest.Config) -> None:
    """Register custom markers."""
    config.addinivalue_line("markers", "integration: marks tests requiring external services")


# ── Fixtures ───────────────────────────────────────────────────────────


@pytest.fixture
def env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Minimal environment for every client engine used in the tests."""
    values = {
        "RAG_QDRANT_BASE_URL": QDRANT_URL,
        "RAG_QDRANT_COLLECTION": COLLECTION,
        "EMBED_HUGGINGFACE_API_KEY": "hf-test",
        "EMBED_HUGGINGFACE_BASE_URL": "http://hf.test",
        "EMBED_CACHE_TTL": "0",
        "LLM_OPENAI_API_KEY": "llm-test",
        "LLM_OPENAI_BASE_URL": "http://llm.test",
        "APP_API_KEY": "secret",
    }
    for key, value in values.items():
        monkeypatch.setenv(key, value)


@pytest.fixture
def helper_config(env) -> HelperConfig:
    return HelperConfig(logger=logging.getLogger("test"))


@pytest.fixture
def fake_qdrant() -> FakeQdrant:
    return FakeQdrant()


@pytest.fixture
async def rag_client(helper_config: HelperConfig, fake_qdrant: FakeQdrant):
    client = RAGClientQdrant(helper_config=helper_config)
    await client.boot(transport=fake_qdrant.transport())
    yield client
    await client.close()


@pytest.fixture
def embed_backend() -> FakeEmbedBackend:
    return FakeEmbedBackend()


@pytest.fixture
async def embed_handle(helper_config: HelperConfig, embed_backend: FakeEmbedBackend):
    client = EmbedClientHuggingface(helper_config=helper_config)
    handle = EmbedModelHandle(helper_config=helper_config, client=client, transport=embed_backend.transport())
    yield handle
    await handle.close()


@pytest.fixture
def fake_chat() -> FakeChat:
    return FakeChat()


@pytest.fixture
async def llm_client(helper_config: HelperConfig, fake_chat: FakeChat):
    client = LLMClientOpenai(helper_config=helper_config)
    await client.boot(transport=fake_chat.transport())
    yield client
    await client.close()


@pytest.fixture
def document_store(helper_config: HelperConfig) -> DocumentStoreMemory:
    return DocumentStoreMemory(helper_config=helper_config)
