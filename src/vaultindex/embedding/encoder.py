"""Remote embedding client for the Gemini embedding API."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, List, Sequence

import httpx
import numpy as np

DEFAULT_MODEL = "gemini-embedding-001"
DEFAULT_BASE_URL = "https://generativelanguage.googleapis.com/v1beta"
EMBEDDING_DIMENSION = 768
DEFAULT_TIMEOUT = 30.0

logger = logging.getLogger(__name__)


class EmbeddingError(Exception):
    """Error producing embeddings from the remote API.

    When the API answered with a structured error object, ``code`` and
    ``status`` carry its fields.
    """

    def __init__(self, message: str, *, code: int | None = None, status: str | None = None):
        super().__init__(message)
        self.code = code
        self.status = status


@dataclass(slots=True)
class EmbeddingConfig:
    api_key: str = ""
    model_name: str = DEFAULT_MODEL
    dimension: int = EMBEDDING_DIMENSION
    timeout: float = DEFAULT_TIMEOUT
    base_url: str = DEFAULT_BASE_URL


class EmbeddingModel:
    """Thin HTTP wrapper around the Gemini ``embedContent`` endpoints.

    The API key travels as the ``key`` query parameter, not as a header.
    Every request pins ``outputDimensionality`` so vectors always have
    ``config.dimension`` components regardless of input length.
    """

    def __init__(self, config: EmbeddingConfig | None = None) -> None:
        self.config = config or EmbeddingConfig()
        self.dimension = self.config.dimension
        self._client = httpx.Client(
            base_url=self.config.base_url.rstrip("/"),
            headers={"Content-Type": "application/json"},
            timeout=self.config.timeout,
        )

    def __enter__(self) -> "EmbeddingModel":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def close(self) -> None:
        self._client.close()

    def is_available(self) -> bool:
        """True when an API key is configured."""
        return bool(self.config.api_key)

    def embed(self, text: str) -> np.ndarray:
        """Embed a single text."""
        self._require_key()
        data = self._post("embedContent", self._request_body(text))
        values = (data.get("embedding") or {}).get("values") or []
        return self._to_vector(values)

    def embed_query(self, text: str) -> np.ndarray:
        """Convenience alias used by the search layer."""
        return self.embed(text)

    def embed_batch(self, texts: Sequence[str]) -> List[np.ndarray]:
        """Embed several texts in one ``batchEmbedContents`` call.

        Callers chunk their input; the remote API caps the number of
        requests per batch at 100.
        """
        self._require_key()
        texts = list(texts)
        if not texts:
            return []

        payload = {"requests": [self._request_body(text) for text in texts]}
        data = self._post("batchEmbedContents", payload)
        embeddings = data.get("embeddings") or []
        if len(embeddings) != len(texts):
            raise EmbeddingError(
                f"Batch returned {len(embeddings)} embeddings for {len(texts)} texts"
            )
        return [self._to_vector(item.get("values") or []) for item in embeddings]

    def _require_key(self) -> None:
        if not self.is_available():
            raise EmbeddingError("Gemini API key not configured")

    def _request_body(self, text: str) -> dict[str, Any]:
        return {
            "model": f"models/{self.config.model_name}",
            "content": {"parts": [{"text": text}]},
            "outputDimensionality": self.dimension,
        }

    def _post(self, method: str, payload: dict[str, Any]) -> dict[str, Any]:
        url = f"/models/{self.config.model_name}:{method}"
        try:
            resp = self._client.post(url, params={"key": self.config.api_key}, json=payload)
        except httpx.HTTPError as exc:
            logger.debug("Embedding request to %s failed: %s", method, exc)
            raise EmbeddingError(f"Embedding request failed: {exc}") from exc

        try:
            data = resp.json()
        except ValueError as exc:
            raise EmbeddingError(
                f"Failed to parse embedding response (HTTP {resp.status_code})"
            ) from exc

        error = data.get("error") if isinstance(data, dict) else None
        if error:
            logger.debug(
                "Embedding API returned error %s (%s): %s",
                error.get("code"),
                error.get("status"),
                error.get("message"),
            )
            raise EmbeddingError(
                f"API error {error.get('code')}: {error.get('message')}",
                code=error.get("code"),
                status=error.get("status"),
            )
        if resp.status_code >= 400:
            raise EmbeddingError(f"Embedding request failed with HTTP {resp.status_code}")
        if not isinstance(data, dict):
            raise EmbeddingError("Unexpected embedding response shape")
        return data

    def _to_vector(self, values: Sequence[float]) -> np.ndarray:
        if not values:
            raise EmbeddingError("Empty embedding returned")
        if len(values) != self.dimension:
            raise EmbeddingError(
                f"Embedding has {len(values)} dimensions, expected {self.dimension}"
            )
        return np.asarray(values, dtype="float32")
