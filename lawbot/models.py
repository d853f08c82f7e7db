"""Data models for the legal RAG pipeline.

This module defines Pydantic models for corpus records, chunks, index
records, retrieval results, answers and ingestion reports.
"""

from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, model_validator

from lawbot.errors import PartialIngestionFailure

SNIPPET_CHARS = 280


class LegalSection(BaseModel):
    """A single statute record loaded from the corpus.

    Attributes:
        id: Stable record identifier.
        act: Act tag such as IPC, BNS, BSA, CrPC or Statute.
        section: Section label, may be empty.
        title: Section title, may be empty.
        description: Short description of the section.
        text: Full body; falls back to description when absent.
    """

    model_config = ConfigDict(frozen=True)

    id: str
    act: str
    section: str = ""
    title: str = ""
    description: str = ""
    text: str = ""

    @model_validator(mode="before")
    @classmethod
    def _text_falls_back_to_description(cls, data: Any) -> Any:
        if isinstance(data, dict) and not data.get("text"):
            data = {**data, "text": data.get("description") or ""}
        return data


class Chunk(BaseModel):
    """A bounded unit of indexable text derived from one source.

    Attributes:
        id: Deterministic chunk identifier.
        text: Chunk text content.
        metadata: Act, section, title, source tag, ordinal, count, timestamp.
    """

    id: str
    text: str
    metadata: dict[str, Any] = Field(default_factory=dict)


class VectorRecord(BaseModel):
    """The persisted unit in the vector index."""

    id: str
    values: list[float]
    metadata: dict[str, Any] = Field(default_factory=dict)


class QueryMatch(BaseModel):
    """One nearest-neighbour hit returned by the vector index."""

    id: str
    score: float
    metadata: dict[str, Any] = Field(default_factory=dict)


class IndexStats(BaseModel):
    total_record_count: int = 0
    dimension: int | None = None
    index_fullness: float = 0.0
    namespaces: dict[str, Any] = Field(default_factory=dict)


class RetrievedDoc(BaseModel):
    """A retrieved statute excerpt, transient per question.

    Attributes:
        id: Chunk or record identifier.
        act: Act tag, "Unknown act" when the index has none.
        section: Section label if known.
        title: Section title if known.
        text: Excerpt text used as generation context.
        source: Source tag recorded at ingestion.
        score: Similarity score from the index (higher is closer).
    """

    id: str
    act: str
    section: str | None = None
    title: str | None = None
    text: str
    source: str
    score: float | None = None


class SourceSnippet(BaseModel):
    id: str
    act: str
    section: str | None = None
    title: str | None = None
    snippet: str

    @classmethod
    def from_doc(cls, doc: RetrievedDoc) -> "SourceSnippet":
        return cls(
            id=doc.id,
            act=doc.act,
            section=doc.section,
            title=doc.title,
            snippet=doc.text[:SNIPPET_CHARS],
        )


class ChatResult(BaseModel):
    """Answer text plus the sources it was grounded on.

    Attributes:
        answer: Generated (or degraded-mode) answer text.
        sources: Snippets of the retrieved sections.
    """

    answer: str
    sources: list[SourceSnippet] = Field(default_factory=list)


class Completion(BaseModel):
    text: str
    usage: dict[str, int] = Field(default_factory=dict)


class HeadingBlock(BaseModel):
    type: Literal["heading"] = "heading"
    text: str


class ParagraphBlock(BaseModel):
    type: Literal["paragraph"] = "paragraph"
    text: str


class ListBlock(BaseModel):
    type: Literal["list"] = "list"
    items: list[str]


ParsedBlock = Annotated[
    Union[HeadingBlock, ParagraphBlock, ListBlock], Field(discriminator="type")
]


class IngestionReport(BaseModel):
    """Outcome of a bulk ingestion run.

    Attributes:
        total_documents: Source records loaded from the corpus.
        total_chunks: Chunks built from those records.
        total_indexed: Chunks embedded and upserted successfully.
        vector_count: Index record count fetched after the run.
        errors: One entry per failed batch.
        skipped_sources: Corpus sources that were missing or unreadable.
        dropped_files: JSON files left out by the configured file cap.
    """

    total_documents: int = 0
    total_chunks: int = 0
    total_indexed: int = 0
    vector_count: int = 0
    errors: list[str] = Field(default_factory=list)
    skipped_sources: list[str] = Field(default_factory=list)
    dropped_files: list[str] = Field(default_factory=list)

    @property
    def partial(self) -> bool:
        return bool(self.errors)

    def raise_for_errors(self) -> None:
        if self.errors:
            raise PartialIngestionFailure(self)

    def to_summary(self) -> dict[str, int]:
        return {
            "totalDocuments": self.total_documents,
            "totalChunks": self.total_chunks,
            "totalIndexed": self.total_indexed,
            "vectorCount": self.vector_count,
        }


class UploadReport(BaseModel):
    file_count: int = 0
    uploaded_chunks: int = 0
    errors: list[str] = Field(default_factory=list)


class IndexStatus(BaseModel):
    """Result of the one-time index readiness check."""

    indexed: bool = False
    index_configured: bool = False
    vector_count: int = 0


class HealthReport(BaseModel):
    status: Literal["healthy", "degraded"]
    timestamp: str
    response_time_ms: int
    checks: dict[str, dict[str, Any]] = Field(default_factory=dict)
    version: str
    environment: str
