import logging
import time
from typing import List, Optional

from lawbot.models import QueryMatch, RetrievedDoc

logger = logging.getLogger(__name__)

UNKNOWN_ACT = "Unknown act"
DEFAULT_SOURCE = "vector_index"


def _match_text(metadata: dict) -> str:
    for key in ("text", "content", "body"):
        value = metadata.get(key)
        if value:
            return str(value)
    return ""


def _optional_str(value) -> Optional[str]:
    if value is None or value == "":
        return None
    return str(value)


def doc_from_match(match: QueryMatch) -> RetrievedDoc:
    meta = match.metadata or {}
    return RetrievedDoc(
        id=str(meta.get("id") or match.id),
        act=str(meta.get("act") or UNKNOWN_ACT),
        section=_optional_str(meta.get("section")),
        title=_optional_str(meta.get("title")),
        text=_match_text(meta),
        source=str(meta.get("source") or DEFAULT_SOURCE),
        score=match.score,
    )


class Retriever:
    """Embeds a question and returns the nearest statute excerpts.

    Retrieval never raises: an embedding or index failure is logged and
    reported as no results so the caller can answer in degraded mode.
    """

    def __init__(self, embedder, index, default_k: int = 8) -> None:
        self.embed = embedder
        self.index = index
        self.default_k = default_k

    def retrieve(self, question: str, k: int | None = None) -> List[RetrievedDoc]:
        k = k if k is not None else self.default_k
        start = time.perf_counter()
        try:
            vector = self.embed.embed_query(question)
            matches = self.index.query(vector, top_k=k, include_metadata=True)
        except Exception as e:
            logger.error(f"Error retrieving relevant docs: {e}")
            return []

        docs = [doc_from_match(m) for m in matches]
        docs = [d for d in docs if d.text]
        logger.info(
            f"Retrieved {len(docs)}/{len(matches)} docs with text in "
            f"{(time.perf_counter() - start) * 1000:.0f}ms (k={k})"
        )
        return docs[:k]
