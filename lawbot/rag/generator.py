import logging
import re
import time

from ibm_watsonx_ai import Credentials
from ibm_watsonx_ai.foundation_models import ModelInference
from ibm_watsonx_ai.metanames import GenTextParamsMetaNames as GenParams
from ibm_watsonx_ai.wml_client_error import WMLClientError

from lawbot.config import Settings
from lawbot.errors import UpstreamUnavailable
from lawbot.models import Completion

logger = logging.getLogger(__name__)


def build_prompt(system_prompt: str, user_prompt: str) -> str:
    return f"{system_prompt}\n\n{user_prompt}\n\nAnswer:\n"


def clean_output(text: str) -> str:
    """Remove prompt artifacts the model sometimes echoes back."""
    cleaned = re.sub(r"^\s*Answer:\s*", "", text, flags=re.IGNORECASE)
    # Drop anything after an echoed follow-up question
    cleaned = re.split(r"\n\s*User question:", cleaned, maxsplit=1)[0]
    cleaned = re.sub(r"\n{3,}", "\n\n", cleaned)
    return cleaned.strip()


class GeneratorClient:
    def __init__(self, settings: Settings):
        self.settings = settings
        credentials = Credentials(
            api_key=settings.ibm_cloud_api_key,
            url=f"https://{settings.watsonx_region}.ml.cloud.ibm.com",
        )
        try:
            self.client = ModelInference(
                model_id=settings.watsonx_gen_model,
                project_id=settings.watsonx_project_id,
                credentials=credentials,
            )
        except WMLClientError as e:
            raise UpstreamUnavailable("generation", f"Failed to create model client: {e}") from e

    def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        temperature: float = 0.2,
        max_tokens: int = 1200,
    ) -> Completion:
        """Generate a completion for a system policy plus user message.

        Raises:
            UpstreamUnavailable: The generation service failed.
        """
        params = {
            GenParams.DECODING_METHOD: "sample" if temperature > 0 else "greedy",
            GenParams.TEMPERATURE: float(temperature),
            GenParams.MAX_NEW_TOKENS: int(max_tokens),
            GenParams.RETURN_OPTIONS: {"input_tokens": False, "generated_tokens": False},
        }
        prompt = build_prompt(system_prompt, user_prompt)
        start = time.perf_counter()
        try:
            response = self.client.generate(prompt=prompt, params=params)
        except WMLClientError as e:
            logger.error(f"Failed to generate answer with watsonx.ai: {e}")
            raise UpstreamUnavailable("generation", str(e)) from e

        data = response.get_result() if hasattr(response, "get_result") else response
        raw_answer = ""
        usage: dict[str, int] = {}
        if isinstance(data, str):
            raw_answer = data
        elif isinstance(data, dict):
            if data.get("results"):
                first = data["results"][0]
                raw_answer = first.get("generated_text", "")
                usage = {
                    "input_tokens": int(first.get("input_token_count") or 0),
                    "generated_tokens": int(first.get("generated_token_count") or 0),
                }
                usage["total_tokens"] = usage["input_tokens"] + usage["generated_tokens"]
            elif "generated_text" in data:
                raw_answer = data["generated_text"]

        logger.info(
            f"Generation finished in {(time.perf_counter() - start) * 1000:.0f}ms "
            f"(model={self.settings.watsonx_gen_model}, tokens={usage.get('total_tokens', 0)})"
        )
        return Completion(text=clean_output(raw_answer), usage=usage)
