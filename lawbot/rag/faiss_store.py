import os
import json
import logging
from typing import List, Dict, Any

import faiss
import numpy as np

from lawbot.config import Settings
from lawbot.errors import UpstreamUnavailable
from lawbot.models import IndexStats, QueryMatch, VectorRecord

logger = logging.getLogger(__name__)


class FaissStore:
    """File-backed vector index for offline development.

    Implements the same upsert/query/describe_stats/delete_all contract as
    MilvusStore. Records are keyed by their string id; re-upserting an id
    replaces the stored vector.
    """

    def __init__(self, settings: Settings):
        self.settings = settings
        self.dim = settings.embedding_dim
        self.index_path = settings.faiss_index_path
        self.meta_path = settings.faiss_meta_path
        for path in (self.index_path, self.meta_path):
            parent = os.path.dirname(path)
            if parent:
                os.makedirs(parent, exist_ok=True)
        self.index = None
        self.records: Dict[int, Dict[str, Any]] = {}
        self.row_ids: Dict[str, int] = {}
        self.next_row = 0
        self._load()

    @staticmethod
    def _normalize(vecs: np.ndarray) -> np.ndarray:
        norms = np.linalg.norm(vecs, axis=1, keepdims=True) + 1e-12
        return vecs / norms

    def _create_index(self, dim: int) -> None:
        # Inner product search on normalized vectors = cosine similarity
        self.dim = dim
        self.index = faiss.IndexIDMap2(faiss.IndexFlatIP(dim))

    def _load(self) -> None:
        if os.path.exists(self.index_path) and os.path.exists(self.meta_path):
            try:
                self.index = faiss.read_index(self.index_path)
                with open(self.meta_path, "r", encoding="utf-8") as f:
                    saved = json.load(f)
                self.records = {int(k): v for k, v in saved.get("records", {}).items()}
                self.next_row = int(saved.get("next_row", 0))
                self.row_ids = {rec["id"]: row for row, rec in self.records.items()}
            except (OSError, RuntimeError, ValueError, KeyError, TypeError, AttributeError) as e:
                raise UpstreamUnavailable(
                    "faiss", f"Failed to load index from {self.index_path} / {self.meta_path}: {e}"
                ) from e
            self.dim = self.index.d
        else:
            # Defer index creation until first upsert so we can infer dim
            self.index = None

    def _save(self) -> None:
        faiss.write_index(self.index, self.index_path)
        with open(self.meta_path, "w", encoding="utf-8") as f:
            json.dump(
                {
                    "next_row": self.next_row,
                    "records": {str(k): v for k, v in self.records.items()},
                },
                f,
            )

    def upsert(self, records: List[VectorRecord]) -> int:
        if not records:
            return 0
        embeddings = np.array([r.values for r in records], dtype=np.float32)
        embeddings = self._normalize(embeddings)
        vec_dim = embeddings.shape[1]
        if self.index is None or (self.index.d != vec_dim and self.index.ntotal == 0):
            self._create_index(vec_dim)
        elif self.index.d != vec_dim:
            raise RuntimeError(
                f"FAISS index dimension mismatch: index.d={self.index.d} vs embeddings.d={vec_dim}. "
                f"Either set EMBEDDING_DIM={self.index.d} and use the same embedding model, or delete the existing "
                f"FAISS files ({self.index_path}, {self.meta_path}) to rebuild with the new dimension."
            )

        stale = [self.row_ids.pop(r.id) for r in records if r.id in self.row_ids]
        if stale:
            self.index.remove_ids(np.array(stale, dtype=np.int64))
            for row in stale:
                self.records.pop(row, None)

        rows = np.arange(self.next_row, self.next_row + len(records), dtype=np.int64)
        self.next_row += len(records)
        self.index.add_with_ids(embeddings, rows)
        for row, r in zip(rows.tolist(), records):
            self.records[row] = {"id": r.id, "metadata": r.metadata}
            self.row_ids[r.id] = row
        self._save()
        return len(records)

    def query(
        self, vector: List[float], top_k: int = 8, include_metadata: bool = True
    ) -> List[QueryMatch]:
        if self.index is None or self.index.ntotal == 0:
            return []
        q = self._normalize(np.array([vector], dtype=np.float32))
        scores, rows = self.index.search(q, min(top_k, self.index.ntotal))
        matches: List[QueryMatch] = []
        for score, row in zip(scores[0].tolist(), rows[0].tolist()):
            record = self.records.get(row)
            if row < 0 or record is None:
                continue
            matches.append(
                QueryMatch(
                    id=record["id"],
                    score=float(score),
                    metadata=dict(record["metadata"]) if include_metadata else {},
                )
            )
        return matches

    def describe_stats(self) -> IndexStats:
        count = self.index.ntotal if self.index is not None else 0
        return IndexStats(
            total_record_count=count,
            dimension=self.dim,
            index_fullness=0.0,
            namespaces={"": {"record_count": count}},
        )

    def delete_all(self) -> None:
        logger.warning(f"Deleting all vectors from {self.index_path}")
        self.index = None
        self.records = {}
        self.row_ids = {}
        self.next_row = 0
        for path in (self.index_path, self.meta_path):
            if os.path.exists(path):
                os.remove(path)
