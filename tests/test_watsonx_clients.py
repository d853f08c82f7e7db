import pytest
from ibm_watsonx_ai.wml_client_error import WMLClientError

from lawbot.errors import UpstreamUnavailable
from lawbot.rag import embeddings, generator


class FakeModelInference:
    def __init__(self, model_id, project_id, credentials):
        self.model_id = model_id
        self.prompts = []
        self.response = {
            "results": [
                {
                    "generated_text": "Answer: ### Explanation\nTheft is defined in Section 378.\n\n\n\nUser question: more?",
                    "input_token_count": 120,
                    "generated_token_count": 30,
                }
            ]
        }
        self.error = None

    def generate(self, prompt, params):
        self.prompts.append((prompt, params))
        if self.error is not None:
            raise self.error
        return self.response


class FakeWXEmbeddings:
    def __init__(self, model_id, project_id, credentials, params=None):
        self.params = params
        self.result = None
        self.error = None

    def embed_documents(self, texts):
        if self.error is not None:
            raise self.error
        if self.result is not None:
            return self.result
        return [[float(i), 0.5] for i, _ in enumerate(texts)]


@pytest.fixture
def patched_sdk(monkeypatch):
    monkeypatch.setattr(generator, "Credentials", lambda **kw: kw)
    monkeypatch.setattr(generator, "ModelInference", FakeModelInference)
    monkeypatch.setattr(embeddings, "Credentials", lambda **kw: kw)
    monkeypatch.setattr(embeddings, "WXEmbeddings", FakeWXEmbeddings)


def test_complete_builds_prompt_and_cleans_output(settings, patched_sdk):
    client = generator.GeneratorClient(settings)

    completion = client.complete("SYSTEM", "User question: q", temperature=0.2, max_tokens=1200)

    assert completion.text == "### Explanation\nTheft is defined in Section 378."
    assert completion.usage == {"input_tokens": 120, "generated_tokens": 30, "total_tokens": 150}
    prompt, params = client.client.prompts[0]
    assert prompt.startswith("SYSTEM\n\nUser question: q")
    assert params["temperature"] == 0.2
    assert params["max_new_tokens"] == 1200


def test_complete_wraps_sdk_errors(settings, patched_sdk):
    client = generator.GeneratorClient(settings)
    client.client.error = WMLClientError("401 Unauthorized")

    with pytest.raises(UpstreamUnavailable) as excinfo:
        client.complete("SYSTEM", "q")

    assert excinfo.value.service == "generation"
    assert isinstance(excinfo.value.__cause__, WMLClientError)


def test_embed_texts_keeps_positional_order(settings, patched_sdk):
    client = embeddings.EmbeddingClient(settings)

    assert client.embed_texts(["a", "b", "c"]) == [[0.0, 0.5], [1.0, 0.5], [2.0, 0.5]]
    assert client.embed_texts([]) == []
    assert client.embed_query("a") == [0.0, 0.5]


def test_embed_texts_accepts_results_payload(settings, patched_sdk):
    client = embeddings.EmbeddingClient(settings)
    client.client.result = {"results": [{"embedding": [0.1, 0.2]}, {"embedding": [0.3, 0.4]}]}

    assert client.embed_texts(["a", "b"]) == [[0.1, 0.2], [0.3, 0.4]]


def test_embed_texts_count_mismatch_fails_whole_batch(settings, patched_sdk):
    client = embeddings.EmbeddingClient(settings)
    client.client.result = [[0.1, 0.2]]

    with pytest.raises(UpstreamUnavailable, match="1 vectors for 2 texts"):
        client.embed_texts(["a", "b"])


def test_embed_texts_wraps_sdk_errors(settings, patched_sdk):
    client = embeddings.EmbeddingClient(settings)
    client.client.error = WMLClientError("quota exceeded")

    with pytest.raises(UpstreamUnavailable) as excinfo:
        client.embed_texts(["a"])

    assert excinfo.value.service == "embeddings"


def test_clean_output_strips_echoed_prompt():
    assert generator.clean_output("  Answer:\nLine one\n\n\n\nLine two  ") == "Line one\n\nLine two"


def test_client_construction_errors_are_wrapped(settings, monkeypatch):
    def unauthorized(**kwargs):
        raise WMLClientError("401 Unauthorized")

    monkeypatch.setattr(embeddings, "Credentials", lambda **kw: kw)
    monkeypatch.setattr(embeddings, "WXEmbeddings", unauthorized)
    monkeypatch.setattr(generator, "Credentials", lambda **kw: kw)
    monkeypatch.setattr(generator, "ModelInference", unauthorized)

    with pytest.raises(UpstreamUnavailable) as embed_error:
        embeddings.EmbeddingClient(settings)
    with pytest.raises(UpstreamUnavailable) as gen_error:
        generator.GeneratorClient(settings)

    assert embed_error.value.service == "embeddings"
    assert gen_error.value.service == "generation"
