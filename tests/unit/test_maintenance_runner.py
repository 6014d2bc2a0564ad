"""Tests of the maintenance command line against the in-memory backends."""

import httpx
import pytest

from services.maintenance import maintenance_runner
from shared.clients.ClientInterface import ClientInterface
from tests.fakes import FakeEmbedBackend, FakeQdrant

_boot = ClientInterface.boot


@pytest.fixture
def backends(monkeypatch, tmp_path, fake_qdrant: FakeQdrant, embed_backend: FakeEmbedBackend):
    """Route every client the runner boots to the fakes, by host."""
    monkeypatch.setenv("ROOT_DIR", str(tmp_path))
    monkeypatch.setenv("INGEST_EMBED_PAUSE", "0")
    monkeypatch.setenv("INGEST_RETRY_BACKOFF", "0")
    handlers = {"qdrant.test": fake_qdrant.handle, "hf.test": embed_backend.handle}

    def route(request: httpx.Request) -> httpx.Response:
        return handlers[request.url.host](request)

    async def boot(self, transport=None):
        await _boot(self, transport=httpx.MockTransport(route))

    monkeypatch.setattr(ClientInterface, "boot", boot)
    return fake_qdrant


def test_parser_knows_every_command() -> None:
    parser = maintenance_runner.build_parser()
    assert parser.parse_args(["reindex", "--allow-partial"]).allow_partial is True
    assert parser.parse_args(["migrate", "--tenant", "condo-1"]).tenant == "condo-1"
    with pytest.raises(SystemExit):
        parser.parse_args(["drop-everything"])


async def test_setup_creates_the_collection(env, backends: FakeQdrant) -> None:
    assert await maintenance_runner.main(["setup"]) == 0
    assert backends.vector_size is not None


async def test_clear_removes_points(env, backends: FakeQdrant) -> None:
    backends.create(9)
    backends.points["p"] = {"id": "p", "vector": [0.0] * 9, "payload": {"tenant_id": "condo-1", "doc_id": "x"}}
    assert await maintenance_runner.main(["clear"]) == 0
    assert backends.points == {}
    assert backends.vector_size == 9


async def test_reindex_of_empty_collection_succeeds(env, backends: FakeQdrant) -> None:
    backends.create(9)
    assert await maintenance_runner.main(["reindex"]) == 0


async def test_migrate_with_empty_store_succeeds(env, backends: FakeQdrant) -> None:
    assert await maintenance_runner.main(["migrate", "--tenant", "condo-1"]) == 0


async def test_unreachable_index_exits_with_1(env, backends: FakeQdrant, monkeypatch) -> None:
    def down(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    async def boot(self, transport=None):
        await _boot(self, transport=httpx.MockTransport(down))

    monkeypatch.setattr(ClientInterface, "boot", boot)
    assert await maintenance_runner.main(["setup"]) == 1


async def test_dimension_mismatch_exits_with_1(env, backends: FakeQdrant) -> None:
    backends.create(384)
    assert await maintenance_runner.main(["setup"]) == 1
