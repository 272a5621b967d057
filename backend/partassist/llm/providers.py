"""
Text-completion providers.

Every provider receives the same message shape (system instruction, the most
recent history turns, the new user turn) and reports any failure as a
ProviderError.
"""
from abc import ABC, abstractmethod
from typing import Dict, List, Optional, Sequence

import ollama
import requests

from partassist.core.config import Settings, settings as default_settings
from partassist.core.errors import ProviderError
from partassist.core.models import CompletionConfig, ConversationTurn, OutputFormat
from partassist.utils.logger import get_logger

logger = get_logger(__name__)

DEFAULT_SYSTEM_PROMPT = (
    "You are a helpful PartSelect agent focused on refrigerator and dishwasher parts."
)


def build_messages(
    prompt: str,
    history: Optional[Sequence[ConversationTurn]],
    config: CompletionConfig,
    history_window: int = 5,
) -> List[Dict[str, str]]:
    """System instruction, then the last ``history_window`` turns, then the user turn."""
    recent = list(history or [])[-history_window:] if history_window > 0 else []
    return [
        {"role": "system", "content": config.system_prompt or DEFAULT_SYSTEM_PROMPT},
        *(turn.as_message() for turn in recent),
        {"role": "user", "content": prompt},
    ]


class CompletionProvider(ABC):
    """One interchangeable text-completion backend."""

    name: str = "provider"
    timeout: float = 10.0

    @abstractmethod
    def complete(self, messages: List[Dict[str, str]], config: CompletionConfig) -> str:
        """Return generated text; raise ProviderError on any failure."""


class OpenAICompatibleProvider(CompletionProvider):
    """Chat-completions over HTTP (OpenAI and DeepSeek share the wire format)."""

    def __init__(self, name: str, api_url: str, api_key: str, model: str, timeout: float = 10.0):
        self.name = name
        self.api_url = api_url
        self.api_key = api_key
        self.model = model
        self.timeout = timeout

    def complete(self, messages: List[Dict[str, str]], config: CompletionConfig) -> str:
        payload = {
            "model": self.model,
            "messages": messages,
            "temperature": config.temperature,
            "max_tokens": config.max_tokens,
        }
        if config.output_format is OutputFormat.STRUCTURED_JSON:
            payload["response_format"] = {"type": "json_object"}

        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }

        try:
            response = requests.post(self.api_url, json=payload, headers=headers, timeout=self.timeout)
            response.raise_for_status()
            body = response.json()
            content = body["choices"][0]["message"]["content"]
        except requests.Timeout as e:
            logger.warning(f"⚠️ {self.name} timed out after {self.timeout}s")
            raise ProviderError(self.name, f"timeout: {e}") from e
        except requests.RequestException as e:
            logger.warning(f"⚠️ {self.name} API error: {e}")
            raise ProviderError(self.name, f"request failed: {e}") from e
        except (ValueError, KeyError, IndexError, TypeError) as e:
            logger.warning(f"⚠️ {self.name} returned a malformed body: {e}")
            raise ProviderError(self.name, f"malformed response: {e}") from e

        if not isinstance(content, str):
            raise ProviderError(self.name, "response content is not text")
        return content


class OllamaProvider(CompletionProvider):
    """Local models served by Ollama."""

    def __init__(self, model: str, base_url: str, timeout: float = 12.0, name: str = "ollama"):
        self.name = name
        self.model = model
        self.timeout = timeout
        self._client = ollama.Client(host=base_url, timeout=timeout)

    def complete(self, messages: List[Dict[str, str]], config: CompletionConfig) -> str:
        kwargs = {
            "model": self.model,
            "messages": messages,
            "options": {"temperature": config.temperature, "num_predict": config.max_tokens},
        }
        if config.output_format is OutputFormat.STRUCTURED_JSON:
            kwargs["format"] = "json"

        try:
            response = self._client.chat(**kwargs)
            content = response["message"]["content"]
        except (ollama.ResponseError, KeyError, TypeError) as e:
            logger.warning(f"⚠️ {self.name} error: {e}")
            raise ProviderError(self.name, str(e)) from e
        except Exception as e:
            # httpx transport errors surface here (connection refused, timeouts)
            logger.warning(f"⚠️ {self.name} transport error: {e}")
            raise ProviderError(self.name, f"transport error: {e}") from e

        if not isinstance(content, str):
            raise ProviderError(self.name, "response content is not text")
        return content


def build_provider(name: str, config: Settings = default_settings) -> CompletionProvider:
    """Create a provider by its configured name."""
    key = name.strip().lower()
    if key == "deepseek":
        return OpenAICompatibleProvider(
            name="deepseek",
            api_url=config.DEEPSEEK_API_URL,
            api_key=config.DEEPSEEK_API_KEY,
            model=config.DEEPSEEK_MODEL,
            timeout=config.DEEPSEEK_TIMEOUT,
        )
    if key == "openai":
        return OpenAICompatibleProvider(
            name="openai",
            api_url=config.OPENAI_API_URL,
            api_key=config.OPENAI_API_KEY,
            model=config.OPENAI_MODEL,
            timeout=config.OPENAI_TIMEOUT,
        )
    if key == "ollama":
        return OllamaProvider(
            model=config.OLLAMA_MODEL,
            base_url=config.OLLAMA_BASE_URL,
            timeout=config.OLLAMA_TIMEOUT,
        )
    raise ValueError(f"Unknown completion provider '{name}'")
