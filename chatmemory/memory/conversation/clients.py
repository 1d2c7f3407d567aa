"""OpenAI-compatible client used to generate conversation replies."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Any, Mapping, MutableMapping

from openai import AsyncOpenAI

logger = logging.getLogger(__name__)


PROVIDER_DEFAULTS: Mapping[str, Mapping[str, str | None]] = {
    "gemini": {
        "base_url": "https://generativelanguage.googleapis.com/v1beta/openai/",
        "model": "gemini-2.5-flash",
        "api_key_env": "GEMINI_API_KEY",
    },
    "openai": {
        "base_url": None,
        "model": "gpt-4o-mini",
        "api_key_env": "OPENAI_API_KEY",
    },
    "vllm": {
        "base_url": "http://localhost:1109/v1",
        "model": "Qwen3-8B",
        "api_key_env": "VLLM_API_KEY",
    },
}


@dataclass(frozen=True)
class ModelResponse:
    """Reply returned by :meth:`LLMClient.generate`."""

    content: str
    raw: Any = None

    def text(self) -> str:
        return self.content


class LLMClient:
    """Thin wrapper over :class:`openai.AsyncOpenAI` with provider defaults."""

    def __init__(
        self,
        *,
        provider: str = "gemini",
        model: str | None = None,
        base_url: str | None = None,
        api_key: str | None = None,
        api_key_env: str | None = None,
        default_extra_body: Mapping[str, Any] | None = None,
    ) -> None:
        provider_key = provider.lower()
        if provider_key not in PROVIDER_DEFAULTS:
            raise ValueError(f"Unsupported provider '{provider}'")
        defaults = PROVIDER_DEFAULTS[provider_key]

        if api_key is None:
            env_name = api_key_env or defaults["api_key_env"]
            api_key = os.environ.get(env_name) or ""

        self.provider = provider_key
        self.model = model or defaults["model"]
        self.base_url = base_url or defaults["base_url"]
        self.api_key = api_key
        self.default_extra_body = dict(default_extra_body or {})
        # vLLM servers accept any token, the SDK only insists on a non-empty one.
        self._client = AsyncOpenAI(base_url=self.base_url, api_key=api_key or "unset")

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key) or self.provider == "vllm"

    async def generate(self, prompt: str) -> ModelResponse:
        payload: MutableMapping[str, Any] = {
            "model": self.model,
            "messages": [{"role": "user", "content": prompt}],
        }
        if self.default_extra_body:
            payload["extra_body"] = dict(self.default_extra_body)

        logger.debug("Dispatching generate request: %s", payload)
        response = await self._client.chat.completions.create(**payload)
        logger.debug("Generate raw response: %s", response)
        choice = response.choices[0].message
        return ModelResponse(content=getattr(choice, "content", "") or "", raw=response)

    async def close(self) -> None:
        await self._client.close()


__all__ = ["LLMClient", "ModelResponse", "PROVIDER_DEFAULTS"]
