"""Correction provider: text snapshot in, CorrectionResult out.

Long documents are split into paragraph-aligned chunks, each chunk is sent
to the LLM, and the results are merged with document-level offsets.  The
model's indices are not trusted: every correction is realigned against the
text it claims to correct and validated before it is surfaced.
"""

import logging
import re

import httpx
from pydantic import ValidationError
from tenacity import AsyncRetrying, retry_if_exception, stop_after_attempt, wait_exponential

from textfix.config import settings
from textfix.core.chunking import correct_chunked, split_into_chunks
from textfix.core.circuit_breaker import CircuitBreaker
from textfix.core.errors import (
    ProviderError,
    ProviderRateLimitedError,
    ProviderResponseMalformedError,
    ProviderUnavailableError,
)
from textfix.core.fallback import fallback_corrections
from textfix.core.prompt_builder import build_system_prompt, build_user_message
from textfix.core.spans import sanitize_corrections
from textfix.models.correction import Correction, CorrectionResult, ProviderErrorInfo
from textfix.services.llm_client import (
    LLMProviderConfig,
    build_request,
    extract_content,
    get_system_default_config,
)
from textfix.utils.json_parser import parse_json_object_from_llm_response

logger = logging.getLogger(__name__)

# Module-level circuit breaker, shared across all provider calls
_provider_circuit_breaker = CircuitBreaker(
    "llm_provider",
    failure_threshold=settings.circuit_breaker_failure_threshold,
    cooldown_seconds=settings.circuit_breaker_cooldown_seconds,
)


def get_circuit_breaker() -> CircuitBreaker:
    """Return the provider circuit breaker (used by health endpoint)."""
    return _provider_circuit_breaker


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


async def get_corrections(text: str, *, raise_on_error: bool = False) -> CorrectionResult:
    """Ask the LLM for corrections to *text*.

    Provider failures never escape unless *raise_on_error* is set: the
    result then comes from the fallback typo table (or proposes nothing
    when the fallback is disabled) and carries the error for reporting.
    """
    if not text.strip():
        return CorrectionResult.unchanged(text)

    cfg = get_system_default_config()
    logger.info(
        "Correction request: provider=%s model=%s text_len=%d",
        cfg.provider.value, cfg.model, len(text),
    )

    try:
        if cfg.needs_api_key and not cfg.api_key:
            raise ProviderUnavailableError(
                f"API key is not configured for {cfg.provider.value}. "
                "Set it via environment variables."
            )
        system_msg = build_system_prompt()

        async def _provide_chunk(chunk_text: str) -> CorrectionResult:
            return await _correct_chunk(chunk_text, cfg, system_msg)

        result = await correct_chunked(
            text,
            _provide_chunk,
            max_chars=_chunk_limit(text),
            max_concurrency=settings.max_concurrent_chunks,
        )
    except Exception as exc:
        error = _classify_error(exc)
        if error is None:
            raise
        logger.warning("Correction provider failed (%s): %s", error.code, error)
        if raise_on_error:
            if error is exc:
                raise
            raise error from exc
        return _degraded_result(text, error)

    logger.info("Provider returned %d correction(s)", len(result.corrections))
    return result


def _chunk_limit(text: str) -> int:
    if len(text) > settings.chunk_threshold_chars:
        return settings.chunk_max_chars
    return max(len(text), 1)


def planned_chunk_count(text: str) -> int:
    """Number of provider calls a check of *text* would make."""
    if not text.strip():
        return 0
    return len(split_into_chunks(text, _chunk_limit(text)))


def _degraded_result(text: str, error: ProviderError) -> CorrectionResult:
    info = ProviderErrorInfo(code=error.code, message=str(error), retryable=error.retryable)
    if settings.fallback_enabled:
        result = fallback_corrections(text)
    else:
        result = CorrectionResult.unchanged(text)
    return result.model_copy(update={"error": info})


# ---------------------------------------------------------------------------
# Per-chunk call
# ---------------------------------------------------------------------------


async def _correct_chunk(
    chunk_text: str, cfg: LLMProviderConfig, system_msg: str,
) -> CorrectionResult:
    response = await _provider_circuit_breaker.call(
        _request_completion(cfg, system_msg, build_user_message(chunk_text))
    )
    content = extract_content(cfg, response)
    return parse_correction_payload(chunk_text, content)


def _is_retryable(exc: BaseException) -> bool:
    if isinstance(exc, (ProviderRateLimitedError, httpx.TimeoutException, httpx.ConnectError)):
        return True
    return isinstance(exc, httpx.HTTPStatusError) and exc.response.status_code >= 500


async def _request_completion(
    cfg: LLMProviderConfig, system_msg: str, user_msg: str,
) -> dict:
    """POST one completion, retrying transient failures with backoff.

    Transport and HTTP failures come out as ProviderErrors.
    """
    retrying = AsyncRetrying(
        stop=stop_after_attempt(settings.llm_retry_attempts),
        wait=wait_exponential(multiplier=settings.llm_retry_backoff_seconds, max=15),
        retry=retry_if_exception(_is_retryable),
        reraise=True,
    )
    try:
        async for attempt in retrying:
            with attempt:
                response = await _post_completion(cfg, system_msg, user_msg)
    except Exception as exc:
        error = _classify_error(exc)
        if error is None or error is exc:
            raise
        raise error from exc
    return response


async def _post_completion(
    cfg: LLMProviderConfig, system_msg: str, user_msg: str,
) -> dict:
    url, headers, payload = build_request(cfg, system_msg, user_msg)
    logger.info("POST %s  model=%s  prompt_len=%d", url, cfg.model, len(user_msg))

    timeout = httpx.Timeout(settings.llm_timeout_seconds, connect=10.0)
    async with httpx.AsyncClient(timeout=timeout) as client:
        response = await client.post(url, headers=headers, json=payload)
        logger.info("LLM response status: %d", response.status_code)
        if response.status_code == 429:
            raise ProviderRateLimitedError(
                f"{cfg.provider.value} rate limit exceeded",
                retry_after=_retry_after(response),
            )
        if response.status_code != 200:
            logger.error("LLM error body: %s", response.text[:500])
        response.raise_for_status()

    try:
        return response.json()
    except ValueError as exc:
        raise ProviderResponseMalformedError("Provider response body is not JSON") from exc


def _retry_after(response: httpx.Response) -> float | None:
    try:
        return float(response.headers.get("retry-after"))
    except (TypeError, ValueError):
        return None


def _classify_error(exc: BaseException) -> ProviderError | None:
    """Map transport and HTTP failures onto the provider error taxonomy."""
    if isinstance(exc, ProviderError):
        return exc
    if isinstance(exc, httpx.HTTPStatusError):
        status = exc.response.status_code
        if status == 429:
            return ProviderRateLimitedError(f"Provider rate limit exceeded (HTTP {status})")
        return ProviderUnavailableError(f"Provider returned HTTP {status}")
    if isinstance(exc, httpx.TimeoutException):
        return ProviderUnavailableError("Provider timed out")
    if isinstance(exc, httpx.TransportError):
        return ProviderUnavailableError(f"Provider unreachable: {exc}")
    return None


# ---------------------------------------------------------------------------
# Reply parsing
# ---------------------------------------------------------------------------

# Any of these means the model gave a position for the entry
_POSITION_KEYS = ("startIndex", "start_index", "start", "endIndex", "end_index", "end")


def parse_correction_payload(text: str, content: str) -> CorrectionResult:
    """Turn the model's reply for *text* into a validated CorrectionResult.

    Raises ProviderResponseMalformedError when no JSON object can be found
    or it has the wrong shape.  Individual bad entries are dropped.
    """
    data = parse_json_object_from_llm_response(content)
    if data is None:
        raise ProviderResponseMalformedError("No JSON object in provider reply")

    corrected = data.get("correctedText", data.get("corrected_text"))
    if not isinstance(corrected, str) or not corrected:
        corrected = text

    raw = data.get("corrections") or []
    if not isinstance(raw, list):
        raise ProviderResponseMalformedError("'corrections' is not a list")

    corrections: list[Correction] = []
    cursor = 0
    for item in raw:
        search_from = None
        if isinstance(item, dict) and not _has_position(item):
            # Located by searching for ``original`` after the previous entry
            item = {**item, "startIndex": -1, "endIndex": -1}
            search_from = cursor
        try:
            c = Correction.model_validate(item)
        except ValidationError:
            logger.debug("Skipping unparseable correction: %s", str(item)[:200])
            continue
        aligned = realign_correction(text, c, search_from=search_from)
        if aligned is None:
            logger.debug("Dropping correction %r not found in text", c.original)
            continue
        corrections.append(aligned)
        cursor = aligned.end_index

    valid = sanitize_corrections(text, corrections)
    if len(valid) != len(raw):
        logger.info("Kept %d of %d corrections from provider", len(valid), len(raw))
    return CorrectionResult(
        original_text=text,
        corrected_text=corrected,
        corrections=valid,
        source="provider",
    )


def _has_position(item: dict) -> bool:
    return any(name in item for name in _POSITION_KEYS)


def realign_correction(
    text: str, c: Correction, search_from: int | None = None,
) -> Correction | None:
    """Point *c* at where its ``original`` actually occurs in *text*.

    Models often miscount offsets.  When ``text[start:end]`` is not the
    claimed original, the nearest occurrence to the claimed start is used
    (case-insensitively as a last resort).  With *search_from*, the first
    occurrence at or after that index is preferred instead.  Returns None
    if the original is empty or cannot be found.
    """
    if not c.original:
        return None
    if 0 <= c.start_index < c.end_index <= len(text):
        if text[c.start_index:c.end_index] == c.original:
            return c

    anchor = c.start_index if search_from is None else search_from
    pattern = re.escape(c.original)
    for flags in (0, re.IGNORECASE):
        matches = list(re.finditer(pattern, text, flags))
        if not matches:
            continue
        following = [m for m in matches if search_from is not None and m.start() >= search_from]
        if following:
            found = following[0]
        else:
            found = min(matches, key=lambda m: abs(m.start() - anchor))
        start, end = found.span()
        return c.model_copy(
            update={"start_index": start, "end_index": end, "original": text[start:end]}
        )
    return None
