"""
Async OpenAI completion client with a pooled HTTP connection.

The client is constructed explicitly from config and passed to the
pipeline by reference; there is no module-level instance.
"""

from __future__ import annotations

import logging
import re
from typing import Any, Dict, Optional

import httpx
from openai import APIError, AsyncOpenAI

from ..utils import get_temperature_for_model, is_configured

logger = logging.getLogger(__name__)

_FENCE_RE = re.compile(r"```(?:json)?[ \t]*\n?", re.IGNORECASE)


class CompletionServiceError(RuntimeError):
    """Transient completion-service failure. The caller may retry on a later sweep."""


def strip_code_fences(text: Optional[str]) -> str:
    """Remove Markdown code fences (```json ... ```) and surrounding whitespace."""
    if not text:
        return ""
    return _FENCE_RE.sub("", text).strip()


class CompletionClient:
    """
    Sends one prompt to the chat completions API and returns the stripped text.

    Parameters are fixed per instance: model, max output tokens and a low
    temperature. Retries are disabled; a failed call surfaces immediately
    as ``CompletionServiceError``.
    """

    def __init__(
        self,
        config: Dict[str, Any],
        client: Optional[AsyncOpenAI] = None,
    ) -> None:
        openai_cfg = config.get("openai", {})
        self.model = openai_cfg.get("model", "gpt-4")
        self.max_tokens = int(openai_cfg.get("max_tokens", 1000))
        self.temperature = get_temperature_for_model(config, default_temperature=0.1)
        self._http_client: Optional[httpx.AsyncClient] = None

        if client is not None:
            self._client = client
            return

        api_key = openai_cfg.get("api_key")
        if not is_configured(api_key):
            raise ValueError("OpenAI API key not found in config")

        timeout_seconds = float(openai_cfg.get("timeout_seconds", 60.0))
        self._http_client = httpx.AsyncClient(
            limits=httpx.Limits(
                max_keepalive_connections=10,
                max_connections=20,
                keepalive_expiry=30.0,
            ),
            timeout=httpx.Timeout(timeout=timeout_seconds, connect=10.0),
        )
        self._client = AsyncOpenAI(
            api_key=api_key,
            http_client=self._http_client,
            max_retries=0,
        )
        logger.info(
            "[COMPLETION CLIENT] Created client (model=%s, max_tokens=%s, temperature=%s)",
            self.model,
            self.max_tokens,
            self.temperature,
        )

    async def complete(self, prompt: str) -> str:
        """
        Run one completion and return its fence-stripped text.

        Raises:
            CompletionServiceError: network/HTTP failure or an empty response.
        """
        try:
            response = await self._client.chat.completions.create(
                model=self.model,
                messages=[{"role": "user", "content": prompt}],
                max_tokens=self.max_tokens,
                temperature=self.temperature,
            )
        except (APIError, httpx.HTTPError) as exc:
            raise CompletionServiceError(f"Completion request failed: {exc}") from exc

        choices = getattr(response, "choices", None) or []
        content = choices[0].message.content if choices else None
        text = strip_code_fences(content)
        if not text:
            raise CompletionServiceError("Completion service returned an empty response")
        return text

    async def close(self) -> None:
        if self._http_client is not None:
            await self._http_client.aclose()
            self._http_client = None
            logger.info("[COMPLETION CLIENT] Closed HTTP connection pool")
