"""LLM provider configuration and wire formats.

Two wire formats are supported: Google Gemini ``:generateContent`` and the
OpenAI-compatible ``/chat/completions`` endpoint exposed by NVIDIA NIM,
Ollama and vLLM.  Only the base URL, model name, auth and payload shape
differ; everything else in the provider is shared.
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass

from textfix.config import settings
from textfix.core.errors import ProviderResponseMalformedError

logger = logging.getLogger(__name__)


class LLMProvider(str, enum.Enum):
    gemini = "gemini"
    nvidia_nim = "nvidia_nim"
    ollama = "ollama"
    vllm = "vllm"


@dataclass
class LLMProviderConfig:
    provider: LLMProvider
    base_url: str
    model: str
    api_key: str = ""

    @property
    def needs_api_key(self) -> bool:
        return self.provider != LLMProvider.ollama

    @property
    def is_gemini(self) -> bool:
        return self.provider == LLMProvider.gemini


PROVIDER_DEFAULTS: dict[LLMProvider, LLMProviderConfig] = {
    LLMProvider.gemini: LLMProviderConfig(
        provider=LLMProvider.gemini,
        base_url="https://generativelanguage.googleapis.com/v1beta",
        model="gemini-1.5-pro",
    ),
    LLMProvider.nvidia_nim: LLMProviderConfig(
        provider=LLMProvider.nvidia_nim,
        base_url="https://integrate.api.nvidia.com/v1",
        model="nvidia/nemotron-3-nano-30b-a3b",
    ),
    LLMProvider.ollama: LLMProviderConfig(
        provider=LLMProvider.ollama,
        base_url="http://localhost:11434/v1",
        model="llama3.2",
    ),
    LLMProvider.vllm: LLMProviderConfig(
        provider=LLMProvider.vllm,
        base_url="http://localhost:8080/v1",
        model="meta-llama/Llama-3.1-8B-Instruct",
    ),
}


def get_system_default_config() -> LLMProviderConfig:
    """Build the provider config from settings, filling gaps from defaults."""
    try:
        provider = LLMProvider(settings.llm_provider)
    except ValueError:
        provider = LLMProvider.gemini

    defaults = PROVIDER_DEFAULTS[provider]
    if provider == LLMProvider.gemini:
        return LLMProviderConfig(
            provider=provider,
            base_url=settings.gemini_base_url or defaults.base_url,
            model=settings.gemini_model or defaults.model,
            api_key=settings.gemini_api_key,
        )
    return LLMProviderConfig(
        provider=provider,
        base_url=settings.openai_compat_base_url or defaults.base_url,
        model=settings.openai_compat_model or defaults.model,
        api_key=settings.openai_compat_api_key,
    )


# ---------------------------------------------------------------------------
# Request building
# ---------------------------------------------------------------------------


def build_request(
    cfg: LLMProviderConfig, system_msg: str, user_msg: str,
) -> tuple[str, dict[str, str], dict]:
    """Return ``(url, headers, payload)`` for one completion call."""
    headers: dict[str, str] = {"Content-Type": "application/json"}

    if cfg.is_gemini:
        url = f"{cfg.base_url.rstrip('/')}/models/{cfg.model}:generateContent"
        if cfg.api_key:
            headers["x-goog-api-key"] = cfg.api_key
        payload: dict = {
            "systemInstruction": {"parts": [{"text": system_msg}]},
            "contents": [{"role": "user", "parts": [{"text": user_msg}]}],
            "generationConfig": {
                "temperature": settings.llm_temperature,
                "topP": settings.llm_top_p,
                "topK": settings.llm_top_k,
                "maxOutputTokens": settings.llm_max_tokens,
                "responseMimeType": "application/json",
            },
        }
        return url, headers, payload

    url = f"{cfg.base_url.rstrip('/')}/chat/completions"
    if cfg.api_key:
        headers["Authorization"] = f"Bearer {cfg.api_key}"
    payload = {
        "model": cfg.model,
        "messages": [
            {"role": "system", "content": system_msg},
            {"role": "user", "content": user_msg},
        ],
        "max_tokens": settings.llm_max_tokens,
        "temperature": settings.llm_temperature,
        "top_p": settings.llm_top_p,
    }
    return url, headers, payload


# ---------------------------------------------------------------------------
# Response parsing
# ---------------------------------------------------------------------------


def extract_content(cfg: LLMProviderConfig, response: dict) -> str:
    """Pull the model's text reply out of a provider response.

    Raises ProviderResponseMalformedError when the reply has no text.
    """
    try:
        if cfg.is_gemini:
            candidate = response["candidates"][0]
            finish_reason = candidate.get("finishReason", "unknown")
            parts = candidate.get("content", {}).get("parts", [])
            content = "".join(p.get("text", "") for p in parts) or None
        else:
            choice = response["choices"][0]
            finish_reason = choice.get("finish_reason", "unknown")
            content = choice["message"]["content"]
    except (KeyError, IndexError, TypeError, AttributeError) as e:
        logger.error("Failed to extract content from response: %s | keys=%s",
                     e, list(response) if isinstance(response, dict) else type(response))
        raise ProviderResponseMalformedError(
            f"Unexpected response shape from {cfg.provider.value}"
        ) from e

    if not content:
        if finish_reason in ("length", "MAX_TOKENS"):
            logger.warning(
                "LLM exhausted max_tokens before producing content; "
                "increase LLM_MAX_TOKENS (current: %d)",
                settings.llm_max_tokens,
            )
        raise ProviderResponseMalformedError(
            f"Empty reply from {cfg.provider.value} (finish_reason={finish_reason})"
        )

    logger.debug(
        "LLM raw response (%d chars, finish_reason=%s): %s",
        len(content), finish_reason, content[:500],
    )
    return content
