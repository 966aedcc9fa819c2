# Vigil: Static Security Analyzer for Python
# Copyright (C) 2026 Vigil Project Contributors
#
# This program is free software: you can redistribute it and/or modify
# it under the terms of the GNU Affero General Public License as published
# by the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.
#
# This program is distributed in the hope that it will be useful,
# but WITHOUT ANY WARRANTY; without even the implied warranty of
# MERCHANTABILITY or FITNESS FOR A PARTICULAR PURPOSE. See the
# GNU Affero General Public License for more details.
#
# You should have received a copy of the GNU Affero General Public License
# along with this program. If not, see <https://www.gnu.org/licenses/>.

"""LLM-backed fix text generators.

Every generator answers one prompt with one block of text. Transport
problems and malformed replies surface as FixGenerationError so callers
can fall back to the static remediation advice. Without an injected
client each request goes through ``httpx.post``, which opens and closes
its own connection.
"""

from __future__ import annotations

import logging
import os
from abc import ABC, abstractmethod
from typing import Any, Optional

import httpx

from vigil.config import AISettings

logger = logging.getLogger(__name__)

OLLAMA_DEFAULT_HOST = "http://localhost:11434"
OLLAMA_DEFAULT_MODEL = "llama3.1"
OPENAI_DEFAULT_URL = "https://api.openai.com/v1"
OPENAI_DEFAULT_MODEL = "gpt-4o-mini"
LOCAL_OPENAI_DEFAULT_URL = "http://localhost:1234/v1"

FIX_PROMPT = (
    "Provide a brief explanation and a solution to fix this security issue "
    "in Python: {what!r}.\n"
    "Answer in markdown format and keep the response limited to 200 words."
)


class FixGenerationError(RuntimeError):
    """The provider could not produce an answer."""


class FixGenerator(ABC):
    """Base class for fix text providers."""

    client: Optional[httpx.Client] = None
    timeout: float = 120.0

    def _post_json(self, url: str, payload: dict, headers: Optional[dict] = None) -> Any:
        """POST ``payload`` and return the decoded JSON reply.

        Raises httpx.HTTPError or ValueError; callers wrap both.
        """
        if self.client is not None:
            response = self.client.post(url, json=payload, headers=headers, timeout=self.timeout)
        else:
            response = httpx.post(url, json=payload, headers=headers, timeout=self.timeout)
        response.raise_for_status()
        return response.json()

    @abstractmethod
    def generate(self, prompt: str) -> str:
        """Send prompt and return the model's answer."""
        ...


class OllamaGenerator(FixGenerator):
    """Ollama local provider."""

    def __init__(
        self,
        host: str = OLLAMA_DEFAULT_HOST,
        model: str = OLLAMA_DEFAULT_MODEL,
        timeout: float = 120.0,
        client: Optional[httpx.Client] = None,
    ) -> None:
        self.host = host.rstrip("/")
        self.model = model
        self.timeout = timeout
        self.client = client

    def generate(self, prompt: str) -> str:
        payload = {"model": self.model, "prompt": prompt, "stream": False}
        try:
            data = self._post_json(f"{self.host}/api/generate", payload)
        except (httpx.HTTPError, ValueError) as e:
            raise FixGenerationError(f"Ollama request failed: {e}") from e
        text = data.get("response") if isinstance(data, dict) else None
        if not isinstance(text, str):
            raise FixGenerationError(f"unexpected Ollama reply: {type(data).__name__}")
        if not text.strip():
            raise FixGenerationError("Ollama returned an empty response")
        return text.strip()


class OpenAICompatibleGenerator(FixGenerator):
    """OpenAI API, or a local OpenAI-compatible server (LM Studio, vLLM, llama.cpp)."""

    def __init__(
        self,
        base_url: str = OPENAI_DEFAULT_URL,
        model: str = OPENAI_DEFAULT_MODEL,
        api_key: Optional[str] = None,
        timeout: float = 120.0,
        client: Optional[httpx.Client] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.model = model
        self.api_key = api_key
        self.timeout = timeout
        self.client = client

    def generate(self, prompt: str) -> str:
        headers = {"Authorization": f"Bearer {self.api_key}"} if self.api_key else {}
        payload = {
            "model": self.model,
            "messages": [{"role": "user", "content": prompt}],
            "max_tokens": 512,
        }
        try:
            data = self._post_json(f"{self.base_url}/chat/completions", payload, headers)
            text = data["choices"][0]["message"]["content"]
        except (httpx.HTTPError, ValueError, KeyError, IndexError, TypeError) as e:
            raise FixGenerationError(f"chat completion request failed: {e}") from e
        if not isinstance(text, str):
            raise FixGenerationError(f"unexpected chat completion content: {type(text).__name__}")
        if not text.strip():
            raise FixGenerationError("chat completion returned an empty response")
        return text.strip()


def create_generator(settings: Optional[AISettings]) -> Optional[FixGenerator]:
    """Build the configured generator, or None when none can be built."""
    if settings is None:
        return None

    if settings.provider == "ollama":
        return OllamaGenerator(
            host=(settings.host or OLLAMA_DEFAULT_HOST).strip(),
            model=(settings.model or OLLAMA_DEFAULT_MODEL).strip(),
            timeout=settings.timeout,
        )

    if settings.provider == "local":
        model = (settings.model or "").strip()
        if not model:
            logger.error("Model name required for local OpenAI-compatible server")
            return None
        return OpenAICompatibleGenerator(
            base_url=(settings.host or LOCAL_OPENAI_DEFAULT_URL).strip(),
            model=model,
            timeout=settings.timeout,
        )

    env_name = settings.api_key_env or "OPENAI_API_KEY"
    key = os.environ.get(env_name, "").strip()
    if not key:
        logger.error("Missing %s", env_name)
        return None
    return OpenAICompatibleGenerator(
        base_url=(settings.host or OPENAI_DEFAULT_URL).strip(),
        model=(settings.model or OPENAI_DEFAULT_MODEL).strip(),
        api_key=key,
        timeout=settings.timeout,
    )
