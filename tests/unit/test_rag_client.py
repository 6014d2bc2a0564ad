"""Unit tests for the Qdrant vector index client against the in-memory fake."""

import httpx
import pytest

from shared.clients.ClientErrors import ClientResponseError, ConfigurationError, DimensionMismatchError
from shared.clients.rag.RAGClientManager import RAGClientManager
from shared.clients.rag.models.VectorPoint import VectorPayload, VectorPoint, make_point_id
from shared.clients.rag.qdrant.RAGClientQdrant import RAGClientQdrant
from tests.fakes import FakeQdrant, keyword_vector

SIZE = len(keyword_vector(""))


def _point(tenant_id: str, doc_id: str, chunk_number: int, text: str) -> VectorPoint:
    vector = keyword_vector(text)
    norm = sum(v * v for v in vector) ** 0.5
    return VectorPoint(
        id=make_point_id(tenant_id, doc_id, chunk_number),
        vector=[v / norm for v in vector],
        payload=VectorPayload(tenant_id=tenant_id, doc_id=doc_id, title=f"Doc {doc_id}", content=text, chunk_number=chunk_number),
    )


def _unit(text: str) -> list[float]:
    return _point("t", "d", 0, text).vector


# ── collection lifecycle ────────────────────────────────────────────────


async def test_create_collection_is_idempotent(rag_client: RAGClientQdrant, fake_qdrant: FakeQdrant) -> None:
    assert await rag_client.do_create_collection(SIZE) is True
    assert await rag_client.do_create_collection(SIZE) is False
    assert fake_qdrant.vector_size == SIZE
    assert await rag_client.do_existence_check()


async def test_create_collection_accepts_legacy_already_exists_answer(helper_config) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(400, json={"status": {"error": "Wrong input: Collection `x` already exists!"}})

    client = RAGClientQdrant(helper_config=helper_config)
    await client.boot(transport=httpx.MockTransport(handler))
    try:
        assert await client.do_create_collection(SIZE) is False
    finally:
        await client.close()


async def test_create_collection_surfaces_other_errors(helper_config) -> None:
    client = RAGClientQdrant(helper_config=helper_config)
    await client.boot(transport=httpx.MockTransport(lambda request: httpx.Response(500, text="disk full")))
    try:
        with pytest.raises(ClientResponseError) as exc_info:
            await client.do_create_collection(SIZE)
    finally:
        await client.close()
    assert exc_info.value.status_code == 500
    assert exc_info.value.body == "disk full"


async def test_drop_then_create_gives_an_empty_searchable_collection(rag_client: RAGClientQdrant) -> None:
    await rag_client.do_create_collection(384)
    await rag_client.do_drop_collection()
    await rag_client.do_create_collection(384)
    hits = await rag_client.do_search([1.0] + [0.0] * 383, tenant_id="condo-1", limit=5)
    assert hits == []


async def test_drop_of_missing_collection_is_not_an_error(rag_client: RAGClientQdrant, fake_qdrant: FakeQdrant) -> None:
    await rag_client.do_drop_collection()
    assert ("DELETE", "/collections/test_collection") in fake_qdrant.requests


async def test_fetch_vector_size(rag_client: RAGClientQdrant) -> None:
    await rag_client.do_create_collection(SIZE)
    rag_client._vector_size = None
    assert await rag_client.do_fetch_vector_size() == SIZE
    assert rag_client.get_known_vector_size() == SIZE


# ── upsert ──────────────────────────────────────────────────────────────


async def test_large_upsert_is_split_into_batches(rag_client: RAGClientQdrant, fake_qdrant: FakeQdrant) -> None:
    await rag_client.do_create_collection(SIZE)
    points = [_point("condo-1", "doc", i, f"piscina {i}") for i in range(250)]
    results = await rag_client.do_upsert_points_batched(points, batch_size=100)
    assert fake_qdrant.upsert_batches == [100, 100, 50]
    assert [r.size for r in results] == [100, 100, 50]
    assert all(r.success for r in results)
    assert len(fake_qdrant.points) == 250


async def test_failed_batch_does_not_roll_back_or_stop_others(rag_client: RAGClientQdrant, fake_qdrant: FakeQdrant) -> None:
    await rag_client.do_create_collection(SIZE)
    fake_qdrant.upsert_failures = {1: 400}
    points = [_point("condo-1", "doc", i, "lixo") for i in range(250)]
    results = await rag_client.do_upsert_points_batched(points, batch_size=100, max_retries=3, backoff=0)
    assert [r.success for r in results] == [True, False, True]
    assert results[1].attempts == 1
    assert "400" in results[1].error
    assert len(fake_qdrant.points) == 150


async def test_transient_batch_failure_is_retried(rag_client: RAGClientQdrant, fake_qdrant: FakeQdrant) -> None:
    await rag_client.do_create_collection(SIZE)
    fake_qdrant.upsert_failures = {0: 503, 1: 503}
    points = [_point("condo-1", "doc", i, "lixo") for i in range(10)]
    results = await rag_client.do_upsert_points_batched(points, batch_size=100, max_retries=3, backoff=0)
    assert results[0].success
    assert results[0].attempts == 3
    assert len(fake_qdrant.points) == 10


async def test_upsert_with_wrong_dimension_fails_before_any_request(rag_client: RAGClientQdrant, fake_qdrant: FakeQdrant) -> None:
    await rag_client.do_create_collection(SIZE)
    bad = VectorPoint(id="x", vector=[1.0, 0.0], payload=VectorPayload(tenant_id="condo-1", doc_id="d", title="t", content="c"))
    with pytest.raises(DimensionMismatchError) as exc_info:
        await rag_client.do_upsert_points_batched([bad])
    assert isinstance(exc_info.value, ConfigurationError)
    assert fake_qdrant.upsert_calls == 0


async def test_reupsert_with_same_ids_replaces_points(rag_client: RAGClientQdrant, fake_qdrant: FakeQdrant) -> None:
    await rag_client.do_create_collection(SIZE)
    await rag_client.do_upsert_points([_point("condo-1", "doc", 0, "piscina antiga")])
    await rag_client.do_upsert_points([_point("condo-1", "doc", 0, "piscina nova")])
    assert len(fake_qdrant.points) == 1
    assert next(iter(fake_qdrant.points.values()))["payload"]["content"] == "piscina nova"


def test_point_ids_are_deterministic_per_tenant_document_and_chunk() -> None:
    assert make_point_id("condo-1", "doc", 0) == make_point_id("condo-1", "doc", 0)
    assert make_point_id("condo-1", "doc", 0) != make_point_id("condo-2", "doc", 0)
    assert make_point_id("condo-1", "doc", 0) != make_point_id("condo-1", "doc", 1)


# ── search ──────────────────────────────────────────────────────────────


async def _mixed_index(rag_client: RAGClientQdrant) -> None:
    await rag_client.do_create_collection(SIZE)
    points = [
        _point("condo-1", "regimento", 0, "A piscina abre às 8h. Horário da piscina: 8h às 22h."),
        _point("condo-1", "regimento", 1, "O lixo é recolhido às terças."),
        _point("condo-2", "regimento", 0, "Piscina fechada para reforma. Horário da piscina suspenso."),
        _point("condo-2", "ata", 0, "Assembleia aprovou a reforma da garagem."),
    ]
    await rag_client.do_upsert_points(points)


@pytest.mark.parametrize("tenant_id", ["condo-1", "condo-2", "condo-3"])
async def test_search_never_crosses_tenants(rag_client: RAGClientQdrant, tenant_id: str) -> None:
    await _mixed_index(rag_client)
    for query in ["horário da piscina", "lixo", "assembleia garagem"]:
        hits = await rag_client.do_search(_unit(query), tenant_id=tenant_id, limit=10)
        assert all(hit.payload.tenant_id == tenant_id for hit in hits)


async def test_search_drops_foreign_points_from_a_misbehaving_backend(rag_client: RAGClientQdrant, fake_qdrant: FakeQdrant) -> None:
    await _mixed_index(rag_client)
    fake_qdrant.ignore_filters = True
    hits = await rag_client.do_search(_unit("horário da piscina"), tenant_id="condo-1", limit=10)
    assert hits
    assert {hit.payload.tenant_id for hit in hits} == {"condo-1"}


async def test_search_ranks_by_similarity_and_applies_threshold(rag_client: RAGClientQdrant) -> None:
    await _mixed_index(rag_client)
    hits = await rag_client.do_search(_unit("horário da piscina"), tenant_id="condo-1", limit=5)
    assert [hit.payload.chunk_number for hit in hits] == [0, 1]
    assert hits[0].score > hits[1].score

    hits = await rag_client.do_search(_unit("horário da piscina"), tenant_id="condo-1", limit=5, score_threshold=0.7)
    assert [hit.payload.content for hit in hits] == ["A piscina abre às 8h. Horário da piscina: 8h às 22h."]


async def test_search_tenant_filter_cannot_be_overridden(rag_client: RAGClientQdrant) -> None:
    await _mixed_index(rag_client)
    hits = await rag_client.do_search(_unit("garagem"), tenant_id="condo-1", extra_filters={"tenant_id": "condo-2"})
    assert all(hit.payload.tenant_id == "condo-1" for hit in hits)


async def test_search_requires_a_tenant(rag_client: RAGClientQdrant) -> None:
    with pytest.raises(ValueError):
        await rag_client.do_search([1.0] * SIZE, tenant_id="")


async def test_search_on_missing_collection_is_a_typed_error(rag_client: RAGClientQdrant) -> None:
    with pytest.raises(ClientResponseError) as exc_info:
        await rag_client.do_search(_unit("piscina"), tenant_id="condo-1")
    assert exc_info.value.status_code == 404
    assert "doesn't exist" in exc_info.value.body


# ── delete / scroll / count ─────────────────────────────────────────────


async def test_delete_document_points_only_touches_that_tenant(rag_client: RAGClientQdrant, fake_qdrant: FakeQdrant) -> None:
    await _mixed_index(rag_client)
    await rag_client.do_delete_document_points("condo-1", "regimento")
    remaining = sorted((p["payload"]["tenant_id"], p["payload"]["doc_id"]) for p in fake_qdrant.points.values())
    assert remaining == [("condo-2", "ata"), ("condo-2", "regimento")]


async def test_delete_document_points_spares_kept_ids(rag_client: RAGClientQdrant, fake_qdrant: FakeQdrant) -> None:
    await _mixed_index(rag_client)
    kept = [pid for pid, p in fake_qdrant.points.items() if p["payload"]["tenant_id"] == "condo-1" and p["payload"]["doc_id"] == "regimento"][:1]
    await rag_client.do_delete_document_points("condo-1", "regimento", keep_ids=kept)
    remaining = [pid for pid, p in fake_qdrant.points.items() if p["payload"]["tenant_id"] == "condo-1" and p["payload"]["doc_id"] == "regimento"]
    assert remaining == kept


async def test_delete_payload_excludes_kept_ids(rag_client: RAGClientQdrant) -> None:
    conditions = [rag_client.get_match_condition("tenant_id", "condo-1")]
    assert rag_client.get_delete_payload(conditions, keep_ids=["a", "b"]) == {
        "filter": {"must": conditions, "must_not": [{"has_id": ["a", "b"]}]},
    }
    assert rag_client.get_delete_payload(conditions) == {"filter": {"must": conditions}}


async def test_delete_by_filter_requires_tenant(rag_client: RAGClientQdrant) -> None:
    with pytest.raises(ValueError):
        await rag_client.do_delete_points_by_filter({"doc_id": "regimento"})


async def test_scroll_all_pages_through_every_point(rag_client: RAGClientQdrant) -> None:
    await rag_client.do_create_collection(SIZE)
    await rag_client.do_upsert_points([_point("condo-1", "doc", i, "piscina") for i in range(25)])
    result = await rag_client.do_scroll_all(filters=None, with_payload=True, with_vector=False, page_size=10)
    assert len(result.result) == 25
    assert len({p["id"] for p in result.result}) == 25
    assert await rag_client.do_count({"tenant_id": "condo-1"}) == 25
    assert await rag_client.do_count({"tenant_id": "condo-2"}) == 0


# ── configuration ───────────────────────────────────────────────────────


def test_manager_builds_configured_engine(helper_config) -> None:
    client = RAGClientManager(helper_config=helper_config).get_client()
    assert isinstance(client, RAGClientQdrant)
    assert client.get_collection_name() == "test_collection"


def test_manager_rejects_unknown_engine(helper_config, monkeypatch) -> None:
    monkeypatch.setenv("RAG_ENGINE", "chroma")
    with pytest.raises(ValueError):
        RAGClientManager(helper_config=helper_config)


def test_missing_base_url_is_a_configuration_error(helper_config, monkeypatch) -> None:
    monkeypatch.delenv("RAG_QDRANT_BASE_URL")
    with pytest.raises(ConfigurationError):
        RAGClientQdrant(helper_config=helper_config)


async def test_api_key_header_is_sent(helper_config, monkeypatch) -> None:
    monkeypatch.setenv("RAG_QDRANT_API_KEY", "qdrant-key")
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"result": {"exists": False}})

    client = RAGClientQdrant(helper_config=helper_config)
    await client.boot(transport=httpx.MockTransport(handler))
    try:
        assert await client.do_existence_check() is False
    finally:
        await client.close()
    assert seen[0].headers["api-key"] == "qdrant-key"
