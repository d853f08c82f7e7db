"""Application service facade.

LegalAssistant wires the embedding, index and generation clients into the
ingestion and query pipelines and is the single entry point used by the
Streamlit app and the CLI.
"""

from datetime import datetime, timezone
from enum import Enum
from importlib.metadata import PackageNotFoundError, version as package_version
import logging
import threading
import time
from typing import Any, Sequence, Tuple

from lawbot.config import Settings
from lawbot.errors import (
    ConfigurationError,
    IngestionInProgress,
    InvalidInput,
)
from lawbot.models import ChatResult, HealthReport, IndexStatus, IngestionReport, UploadReport
from lawbot.rag.pipeline import (
    INDEX_NOT_CONFIGURED_ANSWER,
    NO_MATCHES_ANSWER,
    IngestionPipeline,
    QueryPipeline,
    read_index_stats,
)
from lawbot.rag.retriever import Retriever

logger = logging.getLogger(__name__)

GENERIC_ERROR_MESSAGE = "Failed to process your question. Please try again."


def app_version() -> str:
    try:
        return package_version("lawbot")
    except PackageNotFoundError:
        return "1.0.0"


def build_index(settings: Settings):
    """Construct the vector index client selected by VECTOR_BACKEND."""
    if settings.vector_backend == "faiss":
        from lawbot.rag.faiss_store import FaissStore

        return FaissStore(settings)
    if settings.vector_backend == "milvus":
        from lawbot.rag.vectorstore import MilvusStore

        return MilvusStore(settings)
    raise ConfigurationError([f"Unsupported VECTOR_BACKEND {settings.vector_backend!r}"])


class IndexState(Enum):
    UNINITIALIZED = "uninitialized"
    INITIALIZING = "initializing"
    READY = "ready"
    FAILED = "failed"


class LegalAssistant:
    """Question answering and ingestion over the statute index.

    Clients can be injected; any that are omitted are built from settings
    on first use. The index readiness check runs once per instance: READY
    is final, FAILED is retried on the next request.
    """

    def __init__(
        self,
        settings: Settings,
        embedder=None,
        index=None,
        generator=None,
    ) -> None:
        self.settings = settings
        self._embedder = embedder
        self._index = index
        self._generator = generator
        self._clients_lock = threading.Lock()
        self._init_lock = threading.Lock()
        self._ingest_lock = threading.Lock()
        self._state = IndexState.UNINITIALIZED
        self._status = IndexStatus()

    @property
    def state(self) -> IndexState:
        return self._state

    @property
    def embedder(self):
        with self._clients_lock:
            if self._embedder is None:
                from lawbot.rag.embeddings import EmbeddingClient

                self._embedder = EmbeddingClient(self.settings)
            return self._embedder

    @property
    def index(self):
        with self._clients_lock:
            if self._index is None:
                self._index = build_index(self.settings)
            return self._index

    @property
    def generator(self):
        with self._clients_lock:
            if self._generator is None:
                from lawbot.rag.generator import GeneratorClient

                self._generator = GeneratorClient(self.settings)
            return self._generator

    def ensure_initialized(self) -> IndexStatus:
        """Run the one-time index readiness check.

        Concurrent callers wait for the first check instead of repeating it.

        Returns:
            IndexStatus describing the index.

        Raises:
            ConfigurationError: Required settings are missing.
        """
        with self._init_lock:
            if self._state is IndexState.READY:
                return self._status

            self._state = IndexState.INITIALIZING
            try:
                return self._initialize()
            except BaseException:
                self._state = IndexState.FAILED
                raise

    def _initialize(self) -> IndexStatus:
        logger.info("Initializing legal assistant")

        if not self.settings.index_configured:
            logger.warning("Vector index is not configured - vector search will not be available")
            self._status = IndexStatus(indexed=False, index_configured=False)
            self._state = IndexState.READY
            return self._status

        try:
            self.settings.validate()
        except ConfigurationError as e:
            logger.error(f"Environment validation failed: {e.missing}")
            raise

        try:
            stats = read_index_stats(self.index)
        except Exception as e:
            logger.error(f"Failed to read vector index stats: {e}")
            self._state = IndexState.FAILED
            self._status = IndexStatus(indexed=False, index_configured=True)
            return self._status

        self._status = IndexStatus(
            indexed=True,
            index_configured=True,
            vector_count=stats.total_record_count,
        )
        self._state = IndexState.READY
        logger.info(
            f"Connected to vector index ({self.settings.vector_backend}): "
            f"{stats.total_record_count} vectors, dimension={stats.dimension}"
        )
        return self._status

    def answer_legal_question(self, question: str) -> ChatResult:
        """Answer a question, raising InvalidInput before any external call."""
        if not question or not question.strip():
            raise InvalidInput("Question cannot be empty.")

        status = self.ensure_initialized()
        if not status.index_configured:
            return ChatResult(answer=INDEX_NOT_CONFIGURED_ANSWER, sources=[])

        try:
            retriever = Retriever(self.embedder, self.index, default_k=self.settings.top_k)
        except Exception as e:
            # Search clients could not be built; same outcome as a failed search.
            logger.error(f"Vector search unavailable: {e}")
            return ChatResult(answer=NO_MATCHES_ANSWER, sources=[])

        start = time.perf_counter()
        result = QueryPipeline(self.settings, retriever, self.generator).answer(question)
        logger.info(
            f"Question answered in {(time.perf_counter() - start) * 1000:.0f}ms "
            f"with {len(result.sources)} source(s)"
        )
        return result

    def _ingestion_pipeline(self) -> IngestionPipeline:
        return IngestionPipeline(self.settings, self.embedder, self.index)

    def _acquire_ingest_lock(self) -> None:
        if not self._ingest_lock.acquire(blocking=False):
            raise IngestionInProgress("An ingestion run is already in progress")

    def run_ingestion(self, clear_existing: bool = False) -> IngestionReport:
        """Index the statute corpus; only one run may mutate the index at a time.

        Raises:
            IngestionInProgress: Another run holds the ingestion lock.
            ConfigurationError: Required settings are missing.
            UpstreamUnavailable: The index cannot be reached.
            InvalidInput: The corpus is empty.
        """
        self._acquire_ingest_lock()
        try:
            self.settings.validate()
            return self._ingestion_pipeline().run(clear_existing=clear_existing)
        finally:
            self._ingest_lock.release()

    def upload_files(self, files: Sequence[Tuple[str, bytes]]) -> UploadReport:
        self._acquire_ingest_lock()
        try:
            self.settings.validate()
            return self._ingestion_pipeline().ingest_uploads(files)
        finally:
            self._ingest_lock.release()

    def index_status(self) -> dict[str, Any]:
        """Describe the vector index; reports problems instead of raising."""
        errors = self.settings.missing()
        if errors:
            logger.warning(f"Environment validation failed for index status check: {errors}")
            return {"configured": False, "vector_count": 0, "errors": errors}

        try:
            stats = read_index_stats(self.index)
        except Exception as e:
            logger.error(f"Failed to get vector index stats: {e}")
            return {
                "configured": False,
                "vector_count": 0,
                "error": "Failed to connect to vector index",
            }

        return {
            "configured": True,
            "backend": self.settings.vector_backend,
            "vector_count": stats.total_record_count,
            "dimension": stats.dimension,
            "index_fullness": stats.index_fullness,
            "namespaces": stats.namespaces,
        }

    def health(self) -> HealthReport:
        start = time.perf_counter()
        errors = self.settings.missing()

        index_ok = False
        vector_count = None
        if not errors:
            try:
                vector_count = read_index_stats(self.index).total_record_count
                index_ok = True
            except Exception as e:
                logger.warning(f"Vector index health check failed: {e}")

        watsonx_ok = not any(("IBM_CLOUD" in e or "WATSONX" in e) for e in errors)
        report = HealthReport(
            status="healthy" if not errors and index_ok else "degraded",
            timestamp=datetime.now(timezone.utc).isoformat(),
            response_time_ms=int((time.perf_counter() - start) * 1000),
            checks={
                "environment": {"status": "ok" if not errors else "error", "errors": errors or None},
                "vector_index": {
                    "status": "ok" if index_ok else "error",
                    "backend": self.settings.vector_backend,
                    "vector_count": vector_count,
                },
                "watsonx": {"status": "ok" if watsonx_ok else "error"},
            },
            version=app_version(),
            environment=self.settings.app_env,
        )
        logger.info(f"Health check completed: {report.status} in {report.response_time_ms}ms")
        return report


def error_payload(exc: Exception, settings: Settings) -> dict[str, str]:
    """Caller-facing error body; details are only exposed outside production."""
    if isinstance(exc, InvalidInput):
        payload = {"error": str(exc)}
    else:
        payload = {"error": GENERIC_ERROR_MESSAGE}
    if not settings.is_production:
        payload["details"] = str(exc)
    return payload
