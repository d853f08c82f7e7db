import pytest

from lawbot.errors import InvalidInput, UpstreamUnavailable
from lawbot.models import RetrievedDoc
from lawbot.rag.pipeline import (
    EMPTY_COMPLETION_ANSWER,
    INDEX_NOT_CONFIGURED_ANSWER,
    NO_MATCHES_ANSWER,
    SYSTEM_PROMPT,
    QueryPipeline,
    build_context,
)
from lawbot.rag.retriever import Retriever


@pytest.fixture
def query_pipeline(settings, fake_embedder, fake_index, fake_generator):
    return QueryPipeline(settings, Retriever(fake_embedder, fake_index), fake_generator)


def test_no_matches_returns_could_not_find_answer(query_pipeline, fake_generator):
    result = query_pipeline.answer("what is theft")

    assert result.sources == []
    assert "could not find any matching sections" in result.answer
    assert result.answer == NO_MATCHES_ANSWER
    assert fake_generator.calls == []


def test_context_cites_act_section_and_title(query_pipeline, fake_index, fake_generator, theft):
    fake_index.matches = [theft()]

    query_pipeline.answer("  what is theft  ")

    [call] = fake_generator.calls
    assert call["system_prompt"] == SYSTEM_PROMPT
    assert call["user_prompt"].startswith("User question: what is theft\n\nCONTEXT FROM LEGAL SECTIONS:\n")
    assert "IPC - Section 378: Theft\n\nWhoever, intending to take dishonestly" in call["user_prompt"]
    assert call["temperature"] == 0.2
    assert call["max_tokens"] == 1200


def test_answer_returns_completion_and_sources(query_pipeline, fake_index, theft):
    long_text = "Whoever commits theft " * 40
    fake_index.matches = [theft(text=long_text), theft(id="bns_303", act="BNS", section="303")]

    result = query_pipeline.answer("what is theft")

    assert result.answer.startswith("### Explanation")
    assert [s.id for s in result.sources] == ["ipc_378", "bns_303"]
    assert result.sources[0].snippet == long_text[:280]
    assert result.sources[1].act == "BNS"


@pytest.mark.parametrize("question", ["", "   ", "\n\t"])
def test_empty_question_makes_no_external_calls(
    question, query_pipeline, fake_embedder, fake_index, fake_generator
):
    with pytest.raises(InvalidInput):
        query_pipeline.answer(question)

    assert fake_embedder.calls == []
    assert fake_index.queries == []
    assert fake_generator.calls == []


def test_completion_failure_is_a_hard_error(query_pipeline, fake_index, fake_generator, theft):
    fake_index.matches = [theft()]
    original = ConnectionError("watsonx unreachable")
    fake_generator.error = original

    with pytest.raises(UpstreamUnavailable) as excinfo:
        query_pipeline.answer("what is theft")

    assert excinfo.value.__cause__ is original


def test_empty_completion_uses_fallback_answer(query_pipeline, fake_index, fake_generator, theft):
    fake_index.matches = [theft()]
    fake_generator.text = "   "

    result = query_pipeline.answer("what is theft")

    assert result.answer == EMPTY_COMPLETION_ANSWER
    assert len(result.sources) == 1


def test_unconfigured_index_answers_without_retrieval(make_settings, fake_embedder, fake_index, fake_generator):
    qp = QueryPipeline(
        make_settings(vector_backend="pinecone"), Retriever(fake_embedder, fake_index), fake_generator
    )

    result = qp.answer("what is theft")

    assert result.answer == INDEX_NOT_CONFIGURED_ANSWER
    assert fake_embedder.calls == []


def test_retrieval_outage_degrades_to_no_matches(query_pipeline, fake_index, fake_generator):
    fake_index.query_error = UpstreamUnavailable("milvus", "down")

    result = query_pipeline.answer("what is theft")

    assert result.answer == NO_MATCHES_ANSWER
    assert fake_generator.calls == []


def test_build_context_headers_and_separators():
    docs = [
        RetrievedDoc(id="1", act="IPC", section="378", title="Theft", text="A", source="legal_dataset"),
        RetrievedDoc(id="2", act="Unknown act", text="B", source="upload"),
        RetrievedDoc(id="3", act="Statute", title="Indian Contract Act", text="C", source="legal_dataset"),
    ]

    assert build_context(docs) == (
        "IPC - Section 378: Theft\n\nA"
        "\n\n---\n\n"
        "Unknown act\n\nB"
        "\n\n---\n\n"
        "Statute - Indian Contract Act\n\nC"
    )
