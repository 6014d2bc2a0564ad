"""Unit tests for the structural chunker."""

import pytest

from services.chunking.Chunker import chunk, extract_topics, is_boundary, split_sections, title_prefix


def _section(heading: str, sentence: str, length: int) -> str:
    body = ""
    while len(body) < length:
        body += sentence + " "
    return f"{heading}\n{body.strip()}\n"


REGRAS = (
    _section("## Uso da piscina", "A piscina pode ser usada por moradores e convidados cadastrados.", 560)
    + "\n"
    + _section("## Coleta de lixo", "O lixo deve ser separado e levado ao abrigo até as vinte horas.", 560)
)


# ── is_boundary ─────────────────────────────────────────────────────────


@pytest.mark.parametrize("line", ["# Título", "## Seção", "### Subseção", "**Artigo 1º**", "** Artigo 2"])
def test_is_boundary_accepts_headings_and_articles(line: str) -> None:
    assert is_boundary(line)


@pytest.mark.parametrize("line", ["#### Nível quatro", "#sem espaço", "Artigo 3", " ## recuado", "texto comum"])
def test_is_boundary_rejects_other_lines(line: str) -> None:
    assert not is_boundary(line)


# ── split_sections ──────────────────────────────────────────────────────


def test_split_sections_cuts_before_each_boundary_and_keeps_offsets() -> None:
    text = "Preâmbulo\n## Um\ntexto um\n**Artigo 2**\ntexto dois\n"
    sections = split_sections(text)
    assert [s.text for s in sections] == ["Preâmbulo\n", "## Um\ntexto um\n", "**Artigo 2**\ntexto dois\n"]
    assert "".join(s.text for s in sections) == text
    for section in sections:
        assert text[section.start: section.start + len(section.text)] == section.text


def test_split_sections_never_cuts_at_offset_zero() -> None:
    sections = split_sections("# Título\ncorpo")
    assert len(sections) == 1
    assert sections[0].start == 0


# ── chunk ───────────────────────────────────────────────────────────────


def test_two_headed_sections_give_two_prefixed_chunks() -> None:
    """Two ~600 char sections with size 1000 roll over exactly once."""
    chunks = chunk(REGRAS, "Regras", chunk_size=1000, overlap=200)
    assert len(chunks) == 2
    assert [c.chunk_number for c in chunks] == [0, 1]
    assert all(c.content.startswith("Document: Regras") for c in chunks)
    assert "## Uso da piscina" in chunks[0].content
    assert "## Coleta de lixo" in chunks[1].content


def test_rollover_reseeds_with_tail_words_of_previous_chunk() -> None:
    chunks = chunk(REGRAS, "Regras", chunk_size=1000, overlap=200)
    last_word = chunks[0].content.split()[-1]
    reseeded = chunks[1].content[len(title_prefix("Regras")):]
    assert reseeded.index(last_word) < reseeded.index("## Coleta de lixo")


def test_zero_overlap_reseeds_without_tail() -> None:
    chunks = chunk(REGRAS, "Regras", chunk_size=1000, overlap=0)
    assert chunks[1].content.startswith("Document: Regras\n\n## Coleta de lixo")


def test_chunking_is_deterministic() -> None:
    assert chunk(REGRAS, "Regras") == chunk(REGRAS, "Regras")


def test_every_non_trivial_section_is_covered() -> None:
    text = (
        "# Regimento Interno\n"
        + _section("## Animais", "Animais devem circular no colo ou com guia nas áreas comuns.", 300)
        + "## Curta\n"
        + _section("**Artigo 5**", "É proibido barulho excessivo entre vinte e duas e oito horas.", 900)
        + _section("### Garagem", "Cada unidade tem direito a uma vaga de garagem demarcada.", 450)
        + _section("## Mudança", "Mudanças devem ser agendadas com a administração.", 200)
    )
    chunks = chunk(text, "Regimento", chunk_size=1000, overlap=200)
    joined = "\n".join(c.content for c in chunks)
    for section in split_sections(text):
        body = section.text.strip()
        if len(body) >= 50:
            assert body in joined
    assert "## Curta" not in joined


def test_section_longer_than_chunk_size_is_kept_whole() -> None:
    long_section = _section("## Assembleia", "A assembleia ordinária ocorre uma vez por ano.", 2500)
    chunks = chunk(long_section, "Atas", chunk_size=1000, overlap=200)
    assert len(chunks) == 1
    assert long_section.strip() in chunks[0].content


def test_offsets_point_into_the_source() -> None:
    chunks = chunk(REGRAS, "Regras", chunk_size=1000, overlap=200)
    assert chunks[0].start_index == 0
    assert REGRAS[chunks[1].start_index:].startswith("## Coleta de lixo")
    assert chunks[-1].end_index == len(REGRAS.rstrip())


# ── fallback ────────────────────────────────────────────────────────────


def test_short_unstructured_text_falls_back_to_a_single_window() -> None:
    chunks = chunk("Texto curto sem marcadores.", "Aviso")
    assert len(chunks) == 1
    assert chunks[0].content == "Document: Aviso\n\nTexto curto sem marcadores."


def test_fallback_windows_advance_by_size_minus_overlap() -> None:
    text = "x" * 49
    chunks = chunk(text, "T", chunk_size=30, overlap=10)
    prefixed = title_prefix("T") + text
    assert [c.content for c in chunks] == [prefixed[0:30], prefixed[20:50], prefixed[40:62]]
    assert [c.chunk_number for c in chunks] == [0, 1, 2]
    assert chunks[-1].end_index == len(text)


def test_blank_text_gives_no_chunks() -> None:
    assert chunk("  \n\n ", "Vazio") == []


@pytest.mark.parametrize("size, overlap", [(100, 100), (100, 150), (100, -1)])
def test_invalid_window_is_rejected(size: int, overlap: int) -> None:
    with pytest.raises(ValueError):
        chunk("texto", "T", chunk_size=size, overlap=overlap)


# ── topics ──────────────────────────────────────────────────────────────


def test_extract_topics_returns_long_heading_lines() -> None:
    text = "# A\n# Regimento Interno do Condomínio\ntexto\n**Das áreas comuns e seu uso**\nArtigo 1º - Das disposições gerais\n## Quarto tópico bem longo aqui"
    assert extract_topics(text) == [
        "# Regimento Interno do Condomínio",
        "**Das áreas comuns e seu uso**",
        "Artigo 1º - Das disposições gerais",
    ]
