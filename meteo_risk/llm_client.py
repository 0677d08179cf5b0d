"""Thin client for an OpenAI-compatible chat completions API (OpenRouter)."""

from __future__ import annotations

from typing import Any

import requests

from .config import Settings, settings as default_settings
from .errors import LLMUnavailableError
from utils.logging_utils import get_tagged_logger, mask_secret

logger = get_tagged_logger(__name__, tag="llm_client")


class OpenRouterClient:
    """Minimal client for the OpenRouter chat completions endpoint.

    One attempt per call. Any failure (transport, status, body shape) is
    raised as LLMUnavailableError so callers decide whether to fall back.
    """

    def __init__(self, settings: Settings | None = None):
        cfg = settings or default_settings
        self.url = f"{cfg.openrouter_base_url}/chat/completions"
        self.model = cfg.openrouter_model
        self.api_key = cfg.openrouter_api_key
        self.timeout = cfg.llm_timeout_seconds
        self.headers = {
            "Content-Type": "application/json",
            "X-Title": cfg.openrouter_app_title,
            "HTTP-Referer": cfg.openrouter_http_referer,
        }

    @property
    def has_credentials(self) -> bool:
        return bool(self.api_key)

    def chat(self, messages: list[dict], *, response_format: dict[str, Any] | None = None) -> str:
        """Send a chat request at temperature 0 and return the assistant content."""
        if not self.api_key:
            raise LLMUnavailableError("No API key configured for the language model")

        payload: dict[str, Any] = {
            "model": self.model,
            "messages": messages,
            "temperature": 0,
        }
        if response_format is not None:
            payload["response_format"] = response_format

        headers = {**self.headers, "Authorization": f"Bearer {self.api_key}"}
        logger.debug(
            "LLM POST payload: %s (key=%s)", payload, mask_secret(self.api_key)
        )
        try:
            r = requests.post(self.url, json=payload, headers=headers, timeout=self.timeout)
        except requests.exceptions.RequestException as exc:
            logger.warning("LLM POST failed: %s", exc)
            raise LLMUnavailableError(f"LLM POST failed: {exc}") from exc

        logger.info(
            "LLM POST took %.2fs, status %s",
            r.elapsed.total_seconds(),
            r.status_code,
        )
        if not 200 <= r.status_code < 300:
            error_text = (r.text or "")[:500]
            raise LLMUnavailableError(
                f"LLM POST failed with status {r.status_code} (model={self.model})",
                status_code=r.status_code,
                body=error_text,
            )

        try:
            data = r.json()
        except ValueError as exc:
            raise LLMUnavailableError(f"LLM returned non-JSON response: {r.text[:200]}") from exc

        choices = data.get("choices") if isinstance(data, dict) else None
        first = choices[0] if isinstance(choices, list) and choices else None
        message = first.get("message") if isinstance(first, dict) else None
        content = message.get("content") if isinstance(message, dict) else None
        if not isinstance(content, str):
            raise LLMUnavailableError("Model did not return content")
        return content
