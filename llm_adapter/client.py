"""Async chat-completion client for OpenAI-compatible endpoints."""

import asyncio
import logging
from typing import Any, Dict, Mapping, Optional, Sequence

import aiohttp

from agent_engine.errors import UpstreamError

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://openrouter.ai/api/v1"
DEFAULT_MODEL = "gpt-4-turbo-preview"
DEFAULT_TIMEOUT_SECONDS = 30.0

_FORBIDDEN_CONTEXT_KEYS = ("seed", "passphrase", "private", "secret", "mnemonic")


class LLMAdapterError(UpstreamError):
    """Raised when chat-completion requests fail."""


class ChatCompletionClient:
    def __init__(
        self,
        api_key: str,
        base_url: str = DEFAULT_BASE_URL,
        model: str = DEFAULT_MODEL,
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
        session: Optional[aiohttp.ClientSession] = None,
    ) -> None:
        if not api_key:
            raise LLMAdapterError("API key is required.")
        self.model = model
        self._url = f"{base_url.rstrip('/')}/chat/completions"
        self._headers = {
            "Authorization": f"Bearer {api_key}",
            "Content-Type": "application/json",
        }
        self._timeout = timeout_seconds
        self._session = session
        self._owns_session = session is None

    async def complete(
        self,
        messages: Sequence[Mapping[str, str]],
        temperature: float,
        max_tokens: int,
    ) -> Optional[str]:
        """Return ``choices[0].message.content``, or ``None`` when it is empty."""

        payload = {
            "model": self.model,
            "messages": [dict(message) for message in messages],
            "temperature": temperature,
            "max_tokens": max_tokens,
        }
        session = await self._get_session()
        try:
            async with session.post(self._url, json=payload, headers=self._headers) as response:
                if response.status != 200:
                    detail = (await response.text())[:200]
                    logger.error("LLM provider error: %s - %s", response.status, detail)
                    raise LLMAdapterError(f"LLM provider returned HTTP {response.status}.")
                data = await response.json(content_type=None)
        except (aiohttp.ClientError, asyncio.TimeoutError) as exc:
            raise LLMAdapterError("LLM provider request failed.") from exc
        except ValueError as exc:
            raise LLMAdapterError("LLM provider returned invalid JSON.") from exc

        try:
            content = data["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError) as exc:
            raise LLMAdapterError("LLM provider returned an unexpected response.") from exc
        if not isinstance(content, str) or not content.strip():
            return None
        return content.strip()

    async def close(self) -> None:
        if self._owns_session and self._session is not None and not self._session.closed:
            await self._session.close()

    async def __aenter__(self) -> "ChatCompletionClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    async def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or (self._owns_session and self._session.closed):
            self._session = aiohttp.ClientSession(timeout=aiohttp.ClientTimeout(total=self._timeout))
            self._owns_session = True
        return self._session


def sanitize_context(context: Mapping[str, Any]) -> Dict[str, Any]:
    """Drop any key that looks like key material before it reaches a prompt."""

    def scrub(value: Any) -> Any:
        if isinstance(value, Mapping):
            cleaned: Dict[str, Any] = {}
            for key, item in value.items():
                lowered = str(key).lower()
                if any(token in lowered for token in _FORBIDDEN_CONTEXT_KEYS):
                    continue
                cleaned[key] = scrub(item)
            return cleaned
        if isinstance(value, (list, tuple)):
            return [scrub(item) for item in value]
        return value

    return scrub(context)


def strip_code_fence(content: str) -> str:
    text = content.strip()
    if text.startswith("```"):
        text = text.split("\n", 1)[1] if "\n" in text else ""
        text = text.rsplit("```", 1)[0]
    return text.strip()
