import pytest

from lawbot.models import LegalSection
from lawbot.rag.chunker import (
    chunk_section,
    chunk_text,
    chunk_upload,
    chunk_words,
    sanitize_file_name,
    section_full_text,
)

SAMPLE = (
    "Whoever, intending to take dishonestly any moveable property out of the "
    "possession of any person without that person's consent, moves that property "
    "in order to such taking, is said to commit theft.\n\n  Explanation 1.  A thing "
    "so long as it is attached to the earth, not being moveable property, is not "
    "the subject of theft;   but it becomes capable of being the subject of theft "
    "as soon as it is severed from the earth."
)


def _non_ws(text):
    return "".join(text.split())


@pytest.mark.parametrize("max_chars", [1, 7, 50, 120, 1500])
def test_chunk_text_preserves_content_within_budget(max_chars):
    chunks = chunk_text(SAMPLE, max_chars)

    assert _non_ws("".join(chunks)) == _non_ws(SAMPLE)
    assert all(0 < len(c) <= max_chars for c in chunks)
    assert all(c == c.strip() for c in chunks)


def test_chunk_text_drops_blank_windows():
    assert chunk_text("abc" + " " * 10 + "def", max_chars=3) == ["abc", "def"]
    assert chunk_text("   \n  ", max_chars=2) == []


@pytest.mark.parametrize("max_chars", [10, 40, 80, 800])
def test_chunk_words_never_splits_a_word(max_chars):
    chunks = chunk_words(SAMPLE, max_chars)
    source_words = set(SAMPLE.split())

    assert _non_ws("".join(chunks)) == _non_ws(SAMPLE)
    for chunk in chunks:
        assert chunk
        for word in chunk.split():
            assert word in source_words
        if len(chunk) > max_chars:
            # Only an over-long single token may exceed the budget
            assert len(chunk.split(" ")) == 1


def test_chunk_words_long_word_forms_its_own_chunk():
    chunks = chunk_words("short " + "x" * 30 + " tail", max_chars=10)

    assert chunks == ["short", "x" * 30, "tail"]


def test_chunk_size_must_be_positive():
    with pytest.raises(ValueError):
        chunk_text("abc", 0)
    with pytest.raises(ValueError):
        chunk_words("abc", -1)


def _section(**overrides):
    values = dict(
        id="ipc_378",
        act="IPC",
        section="378",
        title="Theft",
        description="Definition of theft.",
        text="Whoever, intending to take dishonestly any moveable property...",
    )
    values.update(overrides)
    return LegalSection(**values)


def test_short_section_is_a_single_chunk_without_suffix():
    section = _section()
    chunks = chunk_section(section, max_chars=800, indexed_at="2024-01-01T00:00:00+00:00")

    assert len(chunks) == 1
    chunk = chunks[0]
    assert chunk.id == "ipc_378"
    assert chunk.text.startswith("IPC - Section 378: Theft\n\nDefinition of theft.")
    assert chunk.metadata == {
        "act": "IPC",
        "section": "378",
        "title": "Theft",
        "source": "legal_dataset",
        "indexed_at": "2024-01-01T00:00:00+00:00",
        "chunk_index": 0,
        "total_chunks": 1,
    }


def test_long_section_gets_ordinal_ids():
    section = _section(text=SAMPLE * 3)
    chunks = chunk_section(section, max_chars=200)

    assert len(chunks) > 1
    assert [c.id for c in chunks] == [f"ipc_378_chunk_{i}" for i in range(len(chunks))]
    assert {c.metadata["total_chunks"] for c in chunks} == {len(chunks)}
    assert _non_ws("".join(c.text for c in chunks)) == _non_ws(section_full_text(section))


def test_section_text_falls_back_to_description():
    section = LegalSection(id="bsa_1", act="BSA", section="1", description="Short title.")

    assert section.text == "Short title."


def test_chunk_upload_ids_and_metadata():
    chunks = chunk_upload("my notes.txt", "a" * 25, max_chars=10, now=1700000000.5)

    assert [c.id for c in chunks] == [
        "1700000000500_my_notes.txt_chunk_1",
        "1700000000500_my_notes.txt_chunk_2",
        "1700000000500_my_notes.txt_chunk_3",
    ]
    assert [c.metadata["chunk_index"] for c in chunks] == [1, 2, 3]
    assert chunks[0].metadata["source"] == "upload"
    assert chunks[0].metadata["file_name"] == "my notes.txt"
    assert chunks[0].metadata["total_chunks"] == 3
    assert chunks[0].metadata["uploaded_at"].startswith("2023-11-14T22:13:20")


def test_sanitize_file_name_collapses_whitespace_runs():
    assert sanitize_file_name("Bare  Act\tcopy.pdf") == "Bare_Act_copy.pdf"
