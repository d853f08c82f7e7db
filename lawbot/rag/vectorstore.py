import json
import logging
from typing import List

from pymilvus import connections, FieldSchema, CollectionSchema, DataType, Collection, utility
from pymilvus.exceptions import MilvusException

from lawbot.config import Settings
from lawbot.errors import UpstreamUnavailable
from lawbot.models import IndexStats, QueryMatch, VectorRecord

logger = logging.getLogger(__name__)

TEXT_MAX_LENGTH = 8192
METADATA_MAX_LENGTH = 65535
# VARCHAR limits are enforced in UTF-8 bytes.
SCALAR_FIELDS = {"act": 64, "section": 256, "title": 1024, "source": 64}
OUTPUT_FIELDS = ["id", "text", *SCALAR_FIELDS, "metadata_json"]


def _clamp_utf8(value: str, max_bytes: int) -> str:
    encoded = value.encode("utf-8")
    if len(encoded) <= max_bytes:
        return value
    return encoded[:max_bytes].decode("utf-8", errors="ignore")


class MilvusStore:
    """Vector index client backed by a Milvus collection.

    Exposes the four operations the pipeline relies on: upsert, query,
    describe_stats and delete_all. Every Milvus failure is raised as
    UpstreamUnavailable.
    """

    def __init__(self, settings: Settings, alias: str = "default"):
        self.settings = settings
        self.collection_name = settings.milvus_collection
        self.alias = alias
        self.timeout = settings.request_timeout
        try:
            self._connect()
            self._ensure_collection()
        except MilvusException as e:
            raise UpstreamUnavailable("milvus", f"Failed to open collection: {e}") from e

    def _connect(self) -> None:
        if connections.has_connection(self.alias):
            return
        logger.info(
            f"Connecting to Milvus at {self.settings.milvus_host}:{self.settings.milvus_port} "
            f"(collection={self.collection_name})"
        )
        kwargs = {}
        if self.settings.milvus_db:
            kwargs["db_name"] = self.settings.milvus_db
        if self.settings.milvus_token:
            kwargs["token"] = self.settings.milvus_token
        connections.connect(
            alias=self.alias,
            host=self.settings.milvus_host,
            port=str(self.settings.milvus_port),
            secure=self.settings.milvus_tls,
            timeout=self.timeout,
            **kwargs,
        )

    def _ensure_collection(self) -> None:
        fields = [
            FieldSchema(name="id", dtype=DataType.VARCHAR, is_primary=True, auto_id=False, max_length=512),
            FieldSchema(name="embedding", dtype=DataType.FLOAT_VECTOR, dim=self.settings.embedding_dim),
            FieldSchema(name="text", dtype=DataType.VARCHAR, max_length=TEXT_MAX_LENGTH),
            *(
                FieldSchema(name=name, dtype=DataType.VARCHAR, max_length=max_bytes)
                for name, max_bytes in SCALAR_FIELDS.items()
            ),
            FieldSchema(name="metadata_json", dtype=DataType.VARCHAR, max_length=METADATA_MAX_LENGTH),
        ]
        schema = CollectionSchema(fields=fields, description="Indian legal sections")

        if not utility.has_collection(self.collection_name, using=self.alias):
            self.collection = Collection(self.collection_name, schema=schema, using=self.alias)
            self.collection.create_index(
                field_name="embedding",
                index_params={
                    "index_type": "HNSW",
                    "metric_type": "COSINE",
                    "params": {"M": 16, "efConstruction": 200},
                },
            )
        else:
            self.collection = Collection(self.collection_name, using=self.alias)

        self.collection.load()

    @staticmethod
    def _row(record: VectorRecord) -> dict:
        meta = record.metadata
        metadata_json = json.dumps(meta, ensure_ascii=False)
        if len(metadata_json.encode("utf-8")) > METADATA_MAX_LENGTH:
            # Column values are merged back in on query.
            slim = {k: v for k, v in meta.items() if k not in ("text", *SCALAR_FIELDS)}
            metadata_json = json.dumps(slim, ensure_ascii=False)
        row = {
            "id": record.id,
            "embedding": record.values,
            "text": _clamp_utf8(str(meta.get("text") or ""), TEXT_MAX_LENGTH),
            "metadata_json": metadata_json,
        }
        for name, max_bytes in SCALAR_FIELDS.items():
            row[name] = _clamp_utf8(str(meta.get(name) or ""), max_bytes)
        return row

    def upsert(self, records: List[VectorRecord]) -> int:
        if not records:
            return 0
        try:
            self.collection.upsert([self._row(r) for r in records], timeout=self.timeout)
            self.collection.flush(timeout=self.timeout)
        except MilvusException as e:
            raise UpstreamUnavailable("milvus", f"Upsert failed: {e}") from e
        return len(records)

    def query(
        self, vector: List[float], top_k: int = 8, include_metadata: bool = True
    ) -> List[QueryMatch]:
        """Return the top_k nearest records, most similar first."""
        try:
            results = self.collection.search(
                data=[vector],
                anns_field="embedding",
                param={"metric_type": "COSINE", "params": {"ef": max(64, top_k)}},
                limit=top_k,
                output_fields=OUTPUT_FIELDS if include_metadata else ["id"],
                timeout=self.timeout,
            )
        except MilvusException as e:
            raise UpstreamUnavailable("milvus", f"Search failed: {e}") from e

        matches: List[QueryMatch] = []
        for hit in results[0] if results else []:
            metadata: dict = {}
            if include_metadata:
                raw = hit.entity.get("metadata_json")
                if raw:
                    metadata.update(json.loads(raw))
                for name in ("text", *SCALAR_FIELDS):
                    value = hit.entity.get(name)
                    if value and not metadata.get(name):
                        metadata[name] = value
            matches.append(QueryMatch(id=str(hit.id), score=float(hit.distance), metadata=metadata))
        return matches

    def describe_stats(self) -> IndexStats:
        try:
            rows = self.collection.query(
                expr="", output_fields=["count(*)"], timeout=self.timeout
            )
        except MilvusException as e:
            raise UpstreamUnavailable("milvus", f"Stats query failed: {e}") from e
        count = int(rows[0]["count(*)"]) if rows else 0
        return IndexStats(
            total_record_count=count,
            dimension=self.settings.embedding_dim,
            index_fullness=0.0,
            namespaces={self.collection_name: {"record_count": count}},
        )

    def delete_all(self) -> None:
        """Drop every record by dropping and recreating the collection."""
        logger.warning(f"Deleting all vectors from collection {self.collection_name}")
        try:
            utility.drop_collection(self.collection_name, using=self.alias)
            self._ensure_collection()
        except MilvusException as e:
            logger.error(f"Failed to delete vectors from collection: {e}")
            raise UpstreamUnavailable("milvus", f"Delete all failed: {e}") from e
        logger.info("Successfully deleted all vectors from collection")
