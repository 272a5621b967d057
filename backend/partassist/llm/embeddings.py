"""
Embedding generation for similarity search.

The live request path only embeds search queries; part descriptions are
embedded by the offline batch in storage/embed_parts.py.
"""
from typing import List

import ollama
import requests

from partassist.core.config import Settings, settings as default_settings
from partassist.core.errors import ProviderError
from partassist.utils.logger import get_logger

logger = get_logger(__name__)


class EmbeddingClient:
    """Generate embeddings with OpenAI (HTTP) or Ollama."""

    def __init__(self, config: Settings = default_settings):
        self.backend = config.EMBEDDING_BACKEND.strip().lower()
        if self.backend not in ("openai", "ollama"):
            raise ValueError(f"Unknown embedding backend '{config.EMBEDDING_BACKEND}'")
        self.config = config
        if self.backend == "ollama":
            self.model = config.OLLAMA_EMBEDDING_MODEL
            self._ollama = ollama.Client(host=config.OLLAMA_BASE_URL, timeout=config.EMBEDDING_TIMEOUT)
        else:
            self.model = config.EMBEDDING_MODEL
        logger.info(f"Initialized EmbeddingClient with backend '{self.backend}', model '{self.model}'")

    def embed(self, text: str) -> List[float]:
        """
        Generate the embedding for a single text.

        Raises:
            ProviderError: on any backend failure
        """
        if self.backend == "ollama":
            return self._embed_ollama(text)
        return self._embed_openai(text)

    def _embed_openai(self, text: str) -> List[float]:
        try:
            response = requests.post(
                self.config.OPENAI_EMBEDDINGS_URL,
                json={"model": self.model, "input": text},
                headers={"Authorization": f"Bearer {self.config.OPENAI_API_KEY}"},
                timeout=self.config.EMBEDDING_TIMEOUT,
            )
            response.raise_for_status()
            return [float(v) for v in response.json()["data"][0]["embedding"]]
        except requests.RequestException as e:
            raise ProviderError("openai-embeddings", f"request failed: {e}") from e
        except (ValueError, KeyError, IndexError, TypeError) as e:
            raise ProviderError("openai-embeddings", f"malformed response: {e}") from e

    def _embed_ollama(self, text: str) -> List[float]:
        try:
            response = self._ollama.embeddings(model=self.model, prompt=text)
            return [float(v) for v in response["embedding"]]
        except (ollama.ResponseError, KeyError, TypeError) as e:
            raise ProviderError("ollama-embeddings", str(e)) from e
        except Exception as e:
            raise ProviderError("ollama-embeddings", f"transport error: {e}") from e
