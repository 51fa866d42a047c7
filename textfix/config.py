"""Application configuration."""

from pydantic import model_validator
from pydantic_settings import BaseSettings

_PROVIDERS = {"gemini", "nvidia_nim", "ollama", "vllm"}


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Development mode: when False, errors are not echoed back to clients
    dev_mode: bool = True

    # CORS
    cors_origins: list[str] = [
        "http://localhost:3000",
        "http://localhost:5173",
        "http://localhost:8080",
    ]

    # LLM provider: "gemini" or any OpenAI-compatible backend
    llm_provider: str = "gemini"

    # Google Gemini (generateContent)
    gemini_api_key: str = ""
    gemini_base_url: str = "https://generativelanguage.googleapis.com/v1beta"
    gemini_model: str = "gemini-1.5-pro"

    # OpenAI-compatible /chat/completions (NVIDIA NIM, Ollama, vLLM)
    openai_compat_base_url: str = ""
    openai_compat_model: str = ""
    openai_compat_api_key: str = ""

    # LLM generation
    llm_temperature: float = 0.2
    llm_top_p: float = 0.8
    llm_top_k: int = 40
    llm_max_tokens: int = 1024
    llm_timeout_seconds: float = 60.0
    llm_retry_attempts: int = 3
    llm_retry_backoff_seconds: float = 1.0

    # Chunking (~3 000 chars keeps the reply within llm_max_tokens)
    chunk_threshold_chars: int = 3000
    chunk_max_chars: int = 3000
    max_concurrent_chunks: int = 3

    # Request limits
    max_text_chars: int = 50_000
    rate_limit_check: int = 10  # per client per minute

    # Fall back to the built-in typo table when the provider fails
    fallback_enabled: bool = True

    # Circuit Breaker (for the LLM API)
    circuit_breaker_failure_threshold: int = 3
    circuit_breaker_cooldown_seconds: int = 60

    # Logging
    log_level: str = "info"

    @model_validator(mode="after")
    def _validate_limits(self) -> "Settings":
        if self.llm_provider not in _PROVIDERS:
            raise ValueError(
                f"LLM_PROVIDER must be one of {sorted(_PROVIDERS)}, got {self.llm_provider!r}"
            )
        if self.chunk_max_chars <= 0:
            raise ValueError("CHUNK_MAX_CHARS must be positive")
        if self.max_concurrent_chunks <= 0:
            raise ValueError("MAX_CONCURRENT_CHUNKS must be positive")
        return self

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


settings = Settings()
