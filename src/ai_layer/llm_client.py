"""
LLM client wrapper. Supports OpenAI-compatible endpoints (vLLM, OpenAI),
Ollama, and a local mock that needs no server.
"""

import asyncio
import logging
import random
import re
from abc import ABC, abstractmethod
from typing import Dict, List, Optional

import httpx

from config import get_settings
from config.settings import BackendSettings, LLMSettings
from src.ai_layer.prompt_builder import EVALUATION_STYLES
from src.ai_layer.response_parser import format_response
from src.simulation_layer.models import SimulationResult, SimulationSection

logger = logging.getLogger(__name__)


class LLMError(RuntimeError):
    """Raised when a backend fails to return a completion."""


class LLMClient(ABC):
    """Abstract LLM client interface."""

    @abstractmethod
    async def generate(
        self, prompt: str, system_prompt: Optional[str] = None
    ) -> str:
        ...


def _build_messages(prompt: str, system_prompt: Optional[str] = None) -> List[Dict[str, str]]:
    messages = []
    if system_prompt:
        messages.append({"role": "system", "content": system_prompt})
    messages.append({"role": "user", "content": prompt})
    return messages


class _HTTPClient(LLMClient):
    """Shared request/retry handling for HTTP backends."""

    def __init__(
        self,
        model: str,
        base_url: str,
        api_key: str = "EMPTY",
        temperature: float = 0.7,
        max_tokens: int = 1024,
        timeout: float = 60.0,
        max_retries: int = 2,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.model = model
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.timeout = timeout
        self.max_retries = max(0, max_retries)
        self._transport = transport

    @abstractmethod
    def _url(self) -> str:
        ...

    @abstractmethod
    def _body(self, prompt: str, system_prompt: Optional[str]) -> dict:
        ...

    @abstractmethod
    def _extract(self, data: dict) -> Optional[str]:
        ...

    def _headers(self) -> Dict[str, str]:
        return {"Content-Type": "application/json"}

    async def _post(self, body: dict) -> dict:
        async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
            response = await client.post(self._url(), headers=self._headers(), json=body)
            response.raise_for_status()
            return response.json()

    async def generate(
        self, prompt: str, system_prompt: Optional[str] = None
    ) -> str:
        body = self._body(prompt, system_prompt)
        for attempt in range(self.max_retries + 1):
            try:
                logger.info("Sending request to %s with model: %s", self.base_url, self.model)
                data = await self._post(body)
                break
            except httpx.HTTPError as e:
                if attempt == self.max_retries:
                    raise LLMError(f"Request to {self.base_url} failed: {e}") from e
                delay = min(0.5 * (2 ** attempt), 8.0) + random.uniform(0, 0.1)
                logger.warning(
                    "Attempt %d/%d failed: %s. Retrying in %.2fs...",
                    attempt + 1, self.max_retries + 1, e, delay,
                )
                await asyncio.sleep(delay)

        try:
            content = self._extract(data)
        except (KeyError, IndexError, TypeError) as e:
            raise LLMError(f"Unexpected response shape from {self.base_url}: {e}") from e
        if not content or not content.strip():
            raise LLMError("Received empty response from model.")
        return content


class OpenAICompatibleClient(_HTTPClient):
    """OpenAI chat completions API (also served by vLLM for the fine-tuned models)."""

    def _url(self) -> str:
        return f"{self.base_url}/chat/completions"

    def _headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }

    def _body(self, prompt: str, system_prompt: Optional[str]) -> dict:
        return {
            "model": self.model,
            "messages": _build_messages(prompt, system_prompt),
            "temperature": self.temperature,
            "max_tokens": self.max_tokens,
        }

    def _extract(self, data: dict) -> Optional[str]:
        return data["choices"][0]["message"]["content"]


class OllamaClient(_HTTPClient):
    """Ollama REST API client (/api/chat, non-streaming)."""

    def _url(self) -> str:
        return f"{self.base_url}/api/chat"

    def _body(self, prompt: str, system_prompt: Optional[str]) -> dict:
        return {
            "model": self.model,
            "messages": _build_messages(prompt, system_prompt),
            "stream": False,
            "options": {
                "temperature": self.temperature,
                "num_predict": self.max_tokens,
            },
        }

    def _extract(self, data: dict) -> Optional[str]:
        return data.get("message", {}).get("content", "")


EXPOSURE_LINE = re.compile(r"^([A-Z]{1,2})\.\s+(.*)$")
WORD = re.compile(r"[a-z]{3,}")
RATING = re.compile(r"Rating:\s*([\d.]+)")
STOPWORDS = {"the", "and", "for", "with", "from", "rating", "author", "published", "pages"}


class MockLLMClient(LLMClient):
    """
    Local stand-in for a model server.

    Waits ``delay`` seconds, then picks the exposure candidate sharing the
    most words with the profile and the well-rated history items of the prompt.
    """

    def __init__(self, name: str = "mock", delay: float = 1.5, fail: bool = False):
        self.name = name
        self.delay = delay
        self.fail = fail

    @staticmethod
    def _section(prompt: str, header: str, next_headers: List[str]) -> str:
        start = prompt.find(header)
        if start == -1:
            return ""
        start += len(header)
        end = len(prompt)
        for nxt in next_headers:
            pos = prompt.find(nxt, start)
            if pos != -1:
                end = min(end, pos)
        return prompt[start:end]

    @staticmethod
    def _liked(history_line: str) -> bool:
        """Unrated items count as liked; rated ones need at least 3."""
        match = RATING.search(history_line)
        if not match:
            return True
        try:
            return float(match.group(1)) >= 3
        except ValueError:
            return True

    @staticmethod
    def _words(text: str) -> set:
        return {w for w in WORD.findall(text.lower()) if w not in STOPWORDS}

    def choose(self, prompt: str) -> Optional[tuple]:
        """(label, title, overlap words) of the best candidate, or None."""
        profile = self._section(prompt, "User Profile:", ["Interaction History:", "Exposure List:"])
        history = self._section(prompt, "Interaction History:", ["Exposure List:"])
        exposure = self._section(prompt, "Exposure List:", [])
        liked = [line for line in history.splitlines() if self._liked(line)]
        interests = self._words(profile + " " + " ".join(liked))

        best = None
        for line in exposure.splitlines():
            match = EXPOSURE_LINE.match(line.strip())
            if not match:
                continue
            label, text = match.groups()
            overlap = self._words(text) & interests
            # ties keep the earlier candidate
            if best is None or len(overlap) > len(best[2]):
                best = (label, text, overlap)
        return best

    async def generate(
        self, prompt: str, system_prompt: Optional[str] = None
    ) -> str:
        await asyncio.sleep(self.delay)
        if self.fail:
            raise LLMError(f"Mock backend '{self.name}' is configured to fail.")

        best = self.choose(prompt)
        if best is None:
            raise LLMError("No exposure list found in prompt.")
        label, text, overlap = best
        title = text.split(" (")[0]
        matched = ", ".join(sorted(overlap)) if overlap else "nothing in particular"

        result = SimulationResult(
            stimulus=SimulationSection(
                text="I have some free time and feel like finding something that fits my taste.",
                factors="Curiosity, Emotional State",
            ),
            knowledge=SimulationSection(
                text=f"Looking through the list, {title} stands out because it touches on {matched}.",
                factors="Personal Relevance (Thematic), User Preferences/History",
            ),
            evaluation=SimulationSection(
                text=f"{title} is closest to what I usually enjoy, so it feels like a safe pick.",
                style=EVALUATION_STYLES.split(", ")[1 if overlap else 3],
            ),
            behavior=label,
        )
        return format_response(result)


def create_llm_client(
    backend: BackendSettings, llm: Optional[LLMSettings] = None
) -> LLMClient:
    """Factory: create an LLM client for one backend's settings."""
    llm = llm or get_settings().llm
    kind = backend.kind.lower()

    if kind == "mock":
        return MockLLMClient(name=backend.name, delay=backend.mock_delay)

    kwargs = dict(
        model=backend.model_name,
        base_url=backend.base_url or llm.base_url,
        api_key=backend.api_key or llm.api_key,
        temperature=llm.temperature,
        max_tokens=llm.max_tokens,
        timeout=llm.timeout,
        max_retries=llm.max_retries,
    )
    if kind == "openai":
        return OpenAICompatibleClient(**kwargs)
    elif kind == "ollama":
        return OllamaClient(**kwargs)
    raise ValueError(f"Unknown backend kind: {kind}. Use 'openai', 'ollama', or 'mock'")
