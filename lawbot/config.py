"""Application configuration settings.

This module defines the Settings dataclass that loads configuration
from environment variables, plus the logging setup shared by the
Streamlit app and the CLI.
"""

from dataclasses import dataclass
import logging
import os

from lawbot.errors import ConfigurationError

LOG_FORMAT = "%(asctime)s [%(levelname)s] [%(name)s] %(message)s"

VECTOR_BACKENDS = ("milvus", "faiss")


@dataclass
class Settings:
    """Application settings loaded from environment variables.

    Attributes:
        ibm_cloud_api_key: IBM Cloud API key for authentication.
        watsonx_region: Watsonx.ai service region.
        watsonx_project_id: Watsonx.ai project ID.
        watsonx_embed_model: Embedding model ID.
        watsonx_gen_model: Generation model ID.
        vector_backend: Vector index backend, "milvus" or "faiss".
        milvus_host: Milvus database host.
        milvus_port: Milvus database port.
        milvus_db: Milvus database name (optional).
        milvus_tls: Whether to use TLS for Milvus.
        milvus_token: Milvus auth token (optional).
        milvus_collection: Milvus collection holding the legal sections.
        faiss_index_path: Path to FAISS index file.
        faiss_meta_path: Path to FAISS metadata file.
        dataset_dir: Directory containing the CSV and JSON corpus.
        max_json_files: Optional cap on JSON statute files per run.
        chunk_size: Character budget for statute record chunks.
        upload_chunk_size: Character budget for uploaded file chunks.
        batch_size: Chunks per embed/upsert batch.
        batch_delay: Seconds to wait between ingestion batches.
        top_k: Number of top results to retrieve.
        temperature: Generation temperature.
        max_new_tokens: Generation output budget.
        embedding_dim: Embedding dimension.
        request_timeout: Timeout in seconds for vector index calls.
        app_env: Deployment environment name.
        log_level: Explicit log level (optional).
    """

    ibm_cloud_api_key: str
    watsonx_region: str
    watsonx_project_id: str
    watsonx_embed_model: str
    watsonx_gen_model: str

    vector_backend: str
    milvus_host: str
    milvus_port: int
    milvus_db: str | None
    milvus_tls: bool
    milvus_token: str | None
    milvus_collection: str

    faiss_index_path: str
    faiss_meta_path: str

    dataset_dir: str
    max_json_files: int | None

    chunk_size: int
    upload_chunk_size: int
    batch_size: int
    batch_delay: float
    top_k: int
    temperature: float
    max_new_tokens: int
    embedding_dim: int
    request_timeout: float

    app_env: str
    log_level: str | None

    @staticmethod
    def _get_bool(value: str | None, default: bool = False) -> bool:
        """Convert string value to boolean.

        Args:
            value: String value to convert.
            default: Default value if value is None.

        Returns:
            Boolean value.
        """
        if value is None:
            return default
        return value.lower() in {"1", "true", "t", "yes", "y"}

    @staticmethod
    def _get_optional_int(value: str | None) -> int | None:
        if value is None or not value.strip():
            return None
        return int(value)

    @classmethod
    def from_env(cls) -> "Settings":
        """Create Settings instance from environment variables.

        Returns:
            Settings instance with values loaded from environment.
        """
        return cls(
            ibm_cloud_api_key=os.getenv("IBM_CLOUD_API_KEY", ""),
            watsonx_region=os.getenv("WATSONX_REGION", "us-south"),
            watsonx_project_id=os.getenv("WATSONX_PROJECT_ID", ""),
            watsonx_embed_model=os.getenv(
                "WATSONX_EMBED_MODEL",
                "ibm/slate-125m-english-rtrvr-v2",
            ),
            watsonx_gen_model=os.getenv(
                "WATSONX_GEN_MODEL", "ibm/granite-3-8b-instruct"
            ),
            vector_backend=os.getenv("VECTOR_BACKEND", "milvus").lower(),
            milvus_host=os.getenv("MILVUS_HOST", ""),
            milvus_port=int(os.getenv("MILVUS_PORT", "19530")),
            milvus_db=os.getenv("MILVUS_DB"),
            milvus_tls=cls._get_bool(os.getenv("MILVUS_TLS"), False),
            milvus_token=os.getenv("MILVUS_TOKEN"),
            milvus_collection=os.getenv("MILVUS_COLLECTION", "legal_sections"),
            faiss_index_path=os.getenv("FAISS_INDEX_PATH", "data/index.faiss"),
            faiss_meta_path=os.getenv("FAISS_META_PATH", "data/meta.json"),
            dataset_dir=os.getenv("DATASET_DIR", "dataset"),
            max_json_files=cls._get_optional_int(os.getenv("MAX_JSON_FILES")),
            chunk_size=int(os.getenv("CHUNK_SIZE", "800")),
            upload_chunk_size=int(os.getenv("UPLOAD_CHUNK_SIZE", "1500")),
            batch_size=int(os.getenv("BATCH_SIZE", "50")),
            batch_delay=float(os.getenv("BATCH_DELAY", "0.1")),
            top_k=int(os.getenv("TOP_K", "8")),
            temperature=float(os.getenv("TEMPERATURE", "0.2")),
            max_new_tokens=int(os.getenv("MAX_NEW_TOKENS", "1200")),
            embedding_dim=int(os.getenv("EMBEDDING_DIM", "768")),
            request_timeout=float(os.getenv("REQUEST_TIMEOUT", "30")),
            app_env=os.getenv("APP_ENV", "development").lower(),
            log_level=os.getenv("LOG_LEVEL"),
        )

    @property
    def is_production(self) -> bool:
        return self.app_env == "production"

    @property
    def index_configured(self) -> bool:
        """Whether the selected vector backend has what it needs to connect."""
        if self.vector_backend == "faiss":
            return bool(self.faiss_index_path and self.faiss_meta_path)
        if self.vector_backend == "milvus":
            return bool(self.milvus_host and self.milvus_collection)
        return False

    def missing(self) -> list[str]:
        """List every required setting that is absent or invalid.

        Returns:
            Human-readable problems, empty when the configuration is usable.
        """
        errors: list[str] = []
        if not self.ibm_cloud_api_key:
            errors.append("IBM_CLOUD_API_KEY is not configured")
        if not self.watsonx_project_id:
            errors.append("WATSONX_PROJECT_ID is not configured")
        if self.vector_backend not in VECTOR_BACKENDS:
            errors.append(
                f"VECTOR_BACKEND must be one of {', '.join(VECTOR_BACKENDS)} "
                f"(got {self.vector_backend!r})"
            )
        elif self.vector_backend == "milvus":
            if not self.milvus_host:
                errors.append("MILVUS_HOST is not configured")
            if not self.milvus_collection:
                errors.append("MILVUS_COLLECTION is not configured")
        if self.chunk_size <= 0 or self.upload_chunk_size <= 0:
            errors.append("CHUNK_SIZE and UPLOAD_CHUNK_SIZE must be positive")
        if self.batch_size <= 0:
            errors.append("BATCH_SIZE must be positive")
        if self.top_k <= 0:
            errors.append("TOP_K must be positive")
        return errors

    def validate(self) -> None:
        """Raise ConfigurationError when any required setting is missing."""
        errors = self.missing()
        if errors:
            raise ConfigurationError(errors)


def configure_logging(settings: Settings, level: str | None = None) -> None:
    """Configure root logging for the app and CLI.

    Args:
        settings: Application settings.
        level: Explicit level name overriding LOG_LEVEL.
    """
    name = (level or settings.log_level or "").upper()
    if not name:
        name = "INFO" if settings.is_production else "DEBUG"
    logging.basicConfig(level=getattr(logging, name, logging.INFO), format=LOG_FORMAT)
    # pymilvus and the watsonx SDK are chatty at DEBUG.
    for noisy in ("ibm_watsonx_ai", "pymilvus", "urllib3"):
        logging.getLogger(noisy).setLevel(max(logging.INFO, logging.getLogger().level))
