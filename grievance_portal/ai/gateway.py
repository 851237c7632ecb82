"""
Grievance Portal
LLM Gateway — provider-agnostic chat router used by the grievance classifier.

    - Gemini provider (google-genai), registered when GEMINI_API_KEY is set
    - Model name → provider routing
    - Retry with capped exponential backoff; the last error is re-raised

Usage:
    from grievance_portal.ai.gateway import LLMGateway
    gw = LLMGateway(gemini_api_key="...")
    result = gw.chat([{"role": "user", "content": "Classify ..."}], json_mode=True)
"""

import logging
import os
import time
from abc import ABC, abstractmethod

logger = logging.getLogger(__name__)


# ── Provider Abstract Base ────────────────────────────────────────────────────

class LLMProvider(ABC):
    """Abstract interface for LLM providers."""

    @abstractmethod
    def chat(self, messages: list, model: str, **kwargs) -> dict:
        """
        Send a chat completion request.

        Args:
            messages: List of {"role": "...", "content": "..."} dicts.
            model: Model identifier string.
            **kwargs: temperature, max_tokens, json_mode.

        Returns:
            dict with keys: content, prompt_tokens, completion_tokens, model
        """
        ...


# ── Google Gemini Provider ────────────────────────────────────────────────────

class GeminiProvider(LLMProvider):
    """
    Google Gemini API provider.

    Environment:
        GEMINI_API_KEY — obtain at https://aistudio.google.com/apikey
    """

    def __init__(self, api_key: str | None = None):
        self.api_key = api_key or os.getenv("GEMINI_API_KEY", "")
        self._client = None

    def _get_client(self):
        if self._client is None:
            from google import genai
            self._client = genai.Client(api_key=self.api_key)
        return self._client

    def chat(self, messages: list, model: str = "gemini-2.5-flash", **kwargs) -> dict:
        client = self._get_client()
        from google.genai import types

        # Gemini takes the system prompt separately and uses "model" for assistant turns
        system_parts = []
        contents = []
        for m in messages:
            if m["role"] == "system":
                system_parts.append(m["content"])
            else:
                role = "model" if m["role"] == "assistant" else "user"
                contents.append(
                    types.Content(role=role, parts=[types.Part(text=m["content"])])
                )

        config = types.GenerateContentConfig(
            temperature=kwargs.get("temperature", 0.3),
            max_output_tokens=kwargs.get("max_tokens", 1024),
        )
        if kwargs.get("json_mode"):
            config.response_mime_type = "application/json"
        if system_parts:
            config.system_instruction = "\n\n".join(system_parts)

        response = client.models.generate_content(
            model=model,
            contents=contents,
            config=config,
        )

        usage = response.usage_metadata
        return {
            "content": response.text or "",
            "prompt_tokens": getattr(usage, "prompt_token_count", 0) or 0,
            "completion_tokens": getattr(usage, "candidates_token_count", 0) or 0,
            "model": model,
        }


# ── Gateway ───────────────────────────────────────────────────────────────────

class LLMGateway:
    """Routes chat calls to the provider serving the requested model."""

    PROVIDER_MAP = {
        "gemini-2.5-flash": "gemini",
        "gemini-2.5-pro": "gemini",
        "gemini-2.0-flash": "gemini",
    }

    DEFAULT_CHAT_MODEL = "gemini-2.5-flash"

    def __init__(self, *, gemini_api_key: str | None = None, default_model: str | None = None,
                 providers: dict[str, LLMProvider] | None = None):
        self.default_model = default_model or self.DEFAULT_CHAT_MODEL
        self._providers: dict[str, LLMProvider] = dict(providers or {})
        if gemini_api_key and "gemini" not in self._providers:
            self._providers["gemini"] = GeminiProvider(api_key=gemini_api_key)

    def is_available(self, model: str | None = None) -> bool:
        provider_name = self.PROVIDER_MAP.get(model or self.default_model)
        return provider_name in self._providers

    def _get_provider(self, model: str) -> tuple[LLMProvider, str]:
        provider_name = self.PROVIDER_MAP.get(model)
        if provider_name not in self._providers:
            raise RuntimeError(f"No provider configured for model '{model}'")
        return self._providers[provider_name], provider_name

    def chat(self, messages: list, model: str | None = None, *, max_retries: int = 3,
             retry_backoff: float = 1.0, **kwargs) -> dict:
        """
        Send a chat request with retries.

        Returns:
            dict: {content, prompt_tokens, completion_tokens, model, provider, latency_ms}

        Raises:
            RuntimeError: no provider serves the model.
            Exception: the last provider error once retries are exhausted.
        """
        model = model or self.default_model
        provider, provider_name = self._get_provider(model)

        max_retries = max(max_retries, 1)
        last_error: Exception | None = None
        for attempt in range(1, max_retries + 1):
            start = time.perf_counter()
            try:
                result = provider.chat(messages, model, **kwargs)
                result["provider"] = provider_name
                result["latency_ms"] = int((time.perf_counter() - start) * 1000)
                logger.debug("LLM call ok: model=%s tokens=%d+%d latency=%dms",
                             model, result["prompt_tokens"], result["completion_tokens"],
                             result["latency_ms"])
                return result
            except Exception as e:
                last_error = e
                logger.warning("LLM call attempt %d/%d failed: %s", attempt, max_retries, e)
                if attempt < max_retries:
                    time.sleep(min(retry_backoff * 2 ** (attempt - 1), 4 * retry_backoff))

        raise last_error
