# -----------------------------------------------------------
# Adaptive Entity-Routing RAG
# Hugging Face Inference API embedding client.
#
# (C) 2025-2026 Juan-Francisco Reyes, Cottbus, Germany
# Released under MIT License
# email pacoreyes@protonmail.com
# -----------------------------------------------------------

import asyncio

import structlog
from curl_cffi import requests

logger = structlog.get_logger()

QUERY_PREFIX = "Represent this sentence for searching relevant passages: "


class HFEmbeddingClient:
    """Query embeddings through the Hugging Face Inference router.

    Args:
        model_name: HuggingFace model identifier.
        api_token: Hugging Face API token.
        timeout: Request timeout in seconds.
    """

    def __init__(self, model_name: str, api_token: str, timeout: float = 30) -> None:
        """Initialize with model name and token."""
        self._model_name = model_name
        self._api_token = api_token
        self._timeout = timeout
        self._api_url = (
            f"https://router.huggingface.co/hf-inference/models/"
            f"{self._model_name}/pipeline/feature-extraction"
        )

    @property
    def model_name(self) -> str:
        return self._model_name

    def _post(self, payload: dict) -> object:
        response = requests.post(
            self._api_url,
            headers={
                "Authorization": f"Bearer {self._api_token}",
                "Content-Type": "application/json",
            },
            json=payload,
            timeout=self._timeout,
        )
        if response.status_code != 200:
            logger.error("hf_inference_api_error", status=response.status_code, text=response.text[:300])
            response.raise_for_status()
        return response.json()

    async def embed(self, text: str, prefix: str = QUERY_PREFIX) -> list[float]:
        """Embed a single query string.

        Args:
            text: Text to embed.
            prefix: Task prefix for retrieval models (e.g., Snowflake).

        Returns:
            list[float]: The raw embedding vector.

        Raises:
            ValueError: If the router returns an unexpected payload.
        """
        result = await asyncio.to_thread(self._post, {"inputs": [f"{prefix}{text}"]})

        # A list input yields a list of vectors; some models return a flat vector.
        if isinstance(result, list) and result:
            if isinstance(result[0], list):
                return [float(v) for v in result[0]]
            if isinstance(result[0], (int, float)):
                return [float(v) for v in result]

        raise ValueError(f"Unexpected response format from HF API: {str(result)[:200]}")
