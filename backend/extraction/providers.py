"""
Provider adapters - External structured-extraction services.

Every provider exposes one call, complete(instruction, text) -> str, and
raises ProviderError on network errors, non-200 status or empty content.
Responses are free-form text expected to contain JSON; sanitization and
parsing are pure functions kept apart from the network code.

Providers (tried in Config.PROVIDER_ORDER):
- groq: OpenAI-compatible chat completions (needs GROQ_API_KEY)
- openrouter: OpenAI-compatible chat completions (needs OPENROUTER_API_KEY)
- ollama: local generate API
"""
import json
import logging
import re
from abc import ABC, abstractmethod
from typing import Any, Callable, List, Optional

import requests

from .config import Config
from .errors import ProviderError, ProviderChainExhausted


SYSTEM_PROMPT = (
    "You are a financial data extraction assistant specialized in bank statements "
    "and transaction categorization. Always respond with valid JSON."
)


# ─────────────────────────────────────────────────────────────
# Response Sanitization
# ─────────────────────────────────────────────────────────────

_FENCE_OPEN = re.compile(r'^```[a-zA-Z]*\s*')
_FENCE_CLOSE = re.compile(r'\s*```$')


def strip_code_fences(text: str) -> str:
    cleaned = (text or "").strip()
    if cleaned.startswith("```"):
        cleaned = _FENCE_OPEN.sub('', cleaned)
        cleaned = _FENCE_CLOSE.sub('', cleaned)
    return cleaned.strip()


def sanitize_json_text(text: str, opener: str = "[", closer: str = "]") -> str:
    """Strip markdown fences and slice to the outermost opener...closer span."""
    cleaned = strip_code_fences(text)
    start = cleaned.find(opener)
    end = cleaned.rfind(closer)
    if start == -1 or end < start:
        raise ValueError(f"no JSON {opener}...{closer} span in response")
    return cleaned[start:end + 1]


def parse_json_array(text: str) -> List[Any]:
    data = json.loads(sanitize_json_text(text, "[", "]"))
    if not isinstance(data, list):
        raise ValueError("expected a JSON array")
    return data


def parse_json_object(text: str) -> dict:
    data = json.loads(sanitize_json_text(text, "{", "}"))
    if not isinstance(data, dict):
        raise ValueError("expected a JSON object")
    return data


# ─────────────────────────────────────────────────────────────
# Providers
# ─────────────────────────────────────────────────────────────

class BaseProvider(ABC):
    name = "base"

    def __init__(self, timeout: Optional[float] = None):
        self.timeout = timeout or Config.PROVIDER_TIMEOUT

    @abstractmethod
    def is_configured(self) -> bool:
        pass

    @abstractmethod
    def complete(self, instruction: str, text: str) -> str:
        pass

    def _post(self, url: str, payload: dict, headers: Optional[dict] = None) -> dict:
        try:
            response = requests.post(url, json=payload, headers=headers, timeout=self.timeout)
        except requests.exceptions.Timeout:
            raise ProviderError(self.name, "request timed out")
        except requests.exceptions.RequestException as e:
            raise ProviderError(self.name, f"request failed: {e}")

        if response.status_code != 200:
            raise ProviderError(self.name, f"HTTP {response.status_code}")

        try:
            return response.json()
        except ValueError:
            raise ProviderError(self.name, "response body is not JSON")


class OpenAICompatibleProvider(BaseProvider):
    """Chat-completions endpoint shared by Groq, OpenRouter and similar services"""

    def __init__(self, name: str, base_url: str, model: str, api_key: Optional[str],
                 timeout: Optional[float] = None):
        super().__init__(timeout)
        self.name = name
        self.base_url = base_url.rstrip('/')
        self.model = model
        self.api_key = api_key

    def is_configured(self) -> bool:
        return bool(self.api_key)

    def complete(self, instruction: str, text: str) -> str:
        payload = {
            "model": self.model,
            "messages": [
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": f"{instruction}\n\n{text}"},
            ],
            "temperature": 0.1,
            "max_tokens": 4000,
        }
        headers = {"Authorization": f"Bearer {self.api_key}"}
        data = self._post(f"{self.base_url}/chat/completions", payload, headers)

        try:
            content = data["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError):
            raise ProviderError(self.name, "unexpected response structure")
        if not isinstance(content, str) or not content.strip():
            raise ProviderError(self.name, "empty response")
        return content


class GroqProvider(OpenAICompatibleProvider):
    def __init__(self, timeout: Optional[float] = None):
        super().__init__("groq", Config.GROQ_BASE_URL, Config.GROQ_MODEL, Config.GROQ_API_KEY, timeout)


class OpenRouterProvider(OpenAICompatibleProvider):
    def __init__(self, timeout: Optional[float] = None):
        super().__init__("openrouter", Config.OPENROUTER_BASE_URL, Config.OPENROUTER_MODEL,
                         Config.OPENROUTER_API_KEY, timeout)


class OllamaProvider(BaseProvider):
    name = "ollama"

    def __init__(self, base_url: Optional[str] = None, model: Optional[str] = None,
                 timeout: Optional[float] = None):
        super().__init__(timeout)
        self.base_url = (base_url or Config.OLLAMA_BASE_URL or "").rstrip('/')
        self.model = model or Config.OLLAMA_MODEL

    def is_configured(self) -> bool:
        return bool(self.base_url)

    def complete(self, instruction: str, text: str) -> str:
        payload = {
            "model": self.model,
            "prompt": f"{SYSTEM_PROMPT}\n\n{instruction}\n\n{text}",
            "stream": False,
            "options": {"temperature": 0.1, "num_predict": 4000},
        }
        data = self._post(f"{self.base_url}/api/generate", payload)

        content = data.get("response") if isinstance(data, dict) else None
        if not isinstance(content, str) or not content.strip():
            raise ProviderError(self.name, "empty response")
        return content


PROVIDER_REGISTRY = {
    "groq": GroqProvider,
    "openrouter": OpenRouterProvider,
    "ollama": OllamaProvider,
}


# ─────────────────────────────────────────────────────────────
# Chain
# ─────────────────────────────────────────────────────────────

class ProviderChain:
    """
    Sequential, priority-ordered provider fallback.

    The first provider whose response survives `parse` wins; a provider
    error or a parse failure moves on to the next provider.
    """

    def __init__(self, providers: List[BaseProvider]):
        self.providers = list(providers)

    @classmethod
    def from_config(cls) -> "ProviderChain":
        providers = []
        for name in Config.PROVIDER_ORDER:
            factory = PROVIDER_REGISTRY.get(name)
            if factory is None:
                logging.warning(f"Unknown provider in PROVIDER_ORDER: {name}")
                continue
            provider = factory()
            if provider.is_configured():
                providers.append(provider)
            else:
                logging.info(f"Provider {name} not configured, skipping")
        return cls(providers)

    def request(self, instruction: str, text: str, parse: Callable[[str], Any]) -> Any:
        failures = []
        for provider in self.providers:
            try:
                raw = provider.complete(instruction, text)
            except ProviderError as e:
                logging.warning(f"Provider failed: {e}")
                failures.append(e)
                continue

            try:
                result = parse(raw)
            except (ValueError, KeyError, TypeError) as e:
                logging.warning(f"Provider {provider.name} returned unparsable content: {e}")
                failures.append(ProviderError(provider.name, f"unparsable response: {e}"))
                continue

            logging.info(f"Provider {provider.name} succeeded")
            return result

        raise ProviderChainExhausted(failures)
