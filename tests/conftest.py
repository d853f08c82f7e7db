import pytest

from lawbot.config import Settings
from lawbot.errors import UpstreamUnavailable
from lawbot.models import Completion, IndexStats, QueryMatch

BASE_SETTINGS = dict(
    ibm_cloud_api_key="test-key",
    watsonx_region="us-south",
    watsonx_project_id="test-project",
    watsonx_embed_model="ibm/slate-125m-english-rtrvr-v2",
    watsonx_gen_model="ibm/granite-3-8b-instruct",
    vector_backend="milvus",
    milvus_host="localhost",
    milvus_port=19530,
    milvus_db=None,
    milvus_tls=False,
    milvus_token=None,
    milvus_collection="legal_sections",
    faiss_index_path="data/index.faiss",
    faiss_meta_path="data/meta.json",
    dataset_dir="dataset",
    max_json_files=None,
    chunk_size=800,
    upload_chunk_size=1500,
    batch_size=50,
    batch_delay=0.0,
    top_k=8,
    temperature=0.2,
    max_new_tokens=1200,
    embedding_dim=4,
    request_timeout=5,
    app_env="development",
    log_level=None,
)


class FakeEmbedder:
    """Deterministic embedder; fail_calls holds 1-based call numbers that raise."""

    def __init__(self):
        self.calls = []
        self.fail_calls = set()
        self.error = None

    def embed_texts(self, texts):
        self.calls.append(list(texts))
        if self.error is not None:
            raise self.error
        if len(self.calls) in self.fail_calls:
            raise UpstreamUnavailable("embeddings", f"simulated outage on call {len(self.calls)}")
        return [[float(len(t)), 1.0, 0.0, 0.0] for t in texts]

    def embed_query(self, text):
        return self.embed_texts([text])[0]


class FakeIndex:
    def __init__(self):
        self.records = {}
        self.matches = []
        self.upserts = []
        self.queries = []
        self.stats_calls = 0
        self.deleted = 0
        self.fail_stats = False
        self.query_error = None

    def upsert(self, records):
        self.upserts.append(list(records))
        for r in records:
            self.records[r.id] = r
        return len(records)

    def query(self, vector, top_k=8, include_metadata=True):
        self.queries.append((vector, top_k, include_metadata))
        if self.query_error is not None:
            raise self.query_error
        return self.matches[:top_k]

    def describe_stats(self):
        self.stats_calls += 1
        if self.fail_stats:
            raise UpstreamUnavailable("milvus", "connection refused")
        return IndexStats(total_record_count=len(self.records), dimension=4)

    def delete_all(self):
        self.deleted += 1
        self.records.clear()


class FakeGenerator:
    def __init__(self):
        self.calls = []
        self.text = "### Explanation\nTheft is defined in **Section 378**."
        self.error = None

    def complete(self, system_prompt, user_prompt, temperature=0.2, max_tokens=1200):
        self.calls.append(
            {
                "system_prompt": system_prompt,
                "user_prompt": user_prompt,
                "temperature": temperature,
                "max_tokens": max_tokens,
            }
        )
        if self.error is not None:
            raise self.error
        return Completion(text=self.text, usage={"total_tokens": 42})


def theft_match(**overrides):
    metadata = {
        "act": "IPC",
        "section": "378",
        "title": "Theft",
        "text": "Whoever, intending to take dishonestly any moveable property out of the possession of any person...",
        "source": "legal_dataset",
    }
    metadata.update(overrides)
    return QueryMatch(id="ipc_378", score=0.91, metadata=metadata)


@pytest.fixture
def make_settings(tmp_path):
    def _make(**overrides):
        values = {**BASE_SETTINGS, "dataset_dir": str(tmp_path / "dataset")}
        values.update(overrides)
        return Settings(**values)

    return _make


@pytest.fixture
def settings(make_settings):
    return make_settings()


@pytest.fixture
def fake_embedder():
    return FakeEmbedder()


@pytest.fixture
def fake_index():
    return FakeIndex()


@pytest.fixture
def fake_generator():
    return FakeGenerator()


@pytest.fixture
def theft():
    return theft_match


@pytest.fixture
def dataset_dir(tmp_path):
    """A small corpus: two IPC rows, one BNS row and two JSON statutes."""
    root = tmp_path / "dataset"
    root.mkdir()
    (root / "ipc_sections.csv").write_text(
        "section,title,description\n"
        "378,Theft,Whoever intending to take dishonestly any moveable property commits theft.\n"
        "379,Punishment for theft,Imprisonment of up to three years or fine or both.\n",
        encoding="utf-8",
    )
    (root / "bns_sections.csv").write_text(
        "Section,Title,Description,Text\n"
        "303,Theft,Theft under the Sanhita.,Whoever intending to take dishonestly...\n",
        encoding="utf-8",
    )
    (root / "a_motor_vehicles.json").write_text(
        '{"act": "MVA", "title": "Motor Vehicles Act", "text": "Driving licence is required."}',
        encoding="utf-8",
    )
    (root / "b_contract.json").write_text(
        '{"name": "Indian Contract Act", "content": "Every promise is an agreement."}',
        encoding="utf-8",
    )
    return root
