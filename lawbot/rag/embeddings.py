import logging
import time

from ibm_watsonx_ai import Credentials
from ibm_watsonx_ai.foundation_models import Embeddings as WXEmbeddings
from ibm_watsonx_ai.metanames import EmbedTextParamsMetaNames as EmbedParams
from ibm_watsonx_ai.wml_client_error import WMLClientError

from lawbot.config import Settings
from lawbot.errors import UpstreamUnavailable

logger = logging.getLogger(__name__)

# slate/granite retrieval models accept 512 tokens; longer inputs are truncated
# server-side instead of failing the whole batch.
TRUNCATE_INPUT_TOKENS = 512


def _vectors_from_result(data) -> list[list[float]]:
    # Supported shapes
    # 1) {"results": [{"embedding"|"vector"|"values": [...]}, ...]}
    if isinstance(data, dict) and isinstance(data.get("results"), list):
        out = []
        for item in data["results"]:
            if isinstance(item, dict):
                for key in ("embedding", "vector", "values"):
                    if key in item:
                        out.append(item[key])
                        break
        if out:
            return out
    # 2) {"embeddings": [[...], ...]}
    if isinstance(data, dict) and "embeddings" in data:
        return data["embeddings"]  # type: ignore[return-value]
    # 3) direct list of vectors
    if isinstance(data, list) and (not data or isinstance(data[0], list)):
        return data  # type: ignore[return-value]
    raise UpstreamUnavailable(
        "embeddings",
        f"Unexpected embeddings response format from watsonx.ai: {type(data)} "
        f"keys={list(data.keys()) if isinstance(data, dict) else 'n/a'}",
    )


class EmbeddingClient:
    def __init__(self, settings: Settings):
        self.settings = settings
        credentials = Credentials(
            api_key=settings.ibm_cloud_api_key,
            url=f"https://{settings.watsonx_region}.ml.cloud.ibm.com",
        )
        try:
            self.client = WXEmbeddings(
                model_id=settings.watsonx_embed_model,
                project_id=settings.watsonx_project_id,
                credentials=credentials,
                params={EmbedParams.TRUNCATE_INPUT_TOKENS: TRUNCATE_INPUT_TOKENS},
            )
        except WMLClientError as e:
            raise UpstreamUnavailable("embeddings", f"Failed to create embeddings client: {e}") from e

    def embed_texts(self, texts: list[str]) -> list[list[float]]:
        """Embed a batch; vector i corresponds to texts[i].

        The whole call fails if the service errors; there are no partial
        results.
        """
        if not texts:
            logger.debug("No texts provided for embedding, returning empty list")
            return []
        start = time.perf_counter()
        try:
            result = self.client.embed_documents(texts)
        except WMLClientError as e:
            logger.error(f"Failed to generate embeddings: {e}")
            raise UpstreamUnavailable("embeddings", str(e)) from e
        data = result.get_result() if hasattr(result, "get_result") else result
        vectors = _vectors_from_result(data)
        if len(vectors) != len(texts):
            raise UpstreamUnavailable(
                "embeddings",
                f"Embedding provider returned {len(vectors)} vectors for {len(texts)} texts",
            )
        logger.info(
            f"Generated {len(vectors)} embeddings in "
            f"{(time.perf_counter() - start) * 1000:.0f}ms "
            f"(model={self.settings.watsonx_embed_model})"
        )
        return vectors

    def embed_query(self, text: str) -> list[float]:
        vectors = self.embed_texts([text])
        return vectors[0] if vectors else []
