"""Correction endpoints: check, render, apply, apply-all."""

import time
import uuid

from fastapi import APIRouter, HTTPException, Request, status

from textfix.config import settings
from textfix.core.spans import apply_all, apply_correction, render
from textfix.middleware.rate_limiter import CHECK_LIMIT, DEFAULT_LIMIT, limiter
from textfix.models.correction import ApplyAllRequest, ApplyRequest, CheckRequest, RenderRequest
from textfix.models.envelope import success_response
from textfix.services.correction_provider import get_corrections, planned_chunk_count

router = APIRouter()


def _request_id(request: Request) -> str:
    return getattr(request.state, "request_id", None) or str(uuid.uuid4())


def _ensure_length(text: str) -> None:
    if len(text) > settings.max_text_chars:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail={
                "code": "TEXT_TOO_LONG",
                "message": f"Text exceeds {settings.max_text_chars} characters",
            },
        )


@router.post("/check")
@limiter.limit(CHECK_LIMIT)
async def check_text_endpoint(request: Request, body: CheckRequest) -> dict:
    """Ask the provider for corrections; degrades to the fallback on failure."""
    start = time.perf_counter()
    _ensure_length(body.text)
    result = await get_corrections(body.text)
    return success_response(
        result.model_dump(by_alias=True),
        request_id=_request_id(request),
        processing_time_ms=round((time.perf_counter() - start) * 1000, 2),
        chunks=planned_chunk_count(body.text),
        source=result.source,
        degraded=result.error is not None,
        corrections=len(result.corrections),
    )


@router.post("/render")
@limiter.limit(DEFAULT_LIMIT)
async def render_endpoint(request: Request, body: RenderRequest) -> dict:
    """Split text into plain and highlighted segments."""
    _ensure_length(body.text)
    segments = render(body.text, body.corrections)
    return success_response(
        {"segments": [s.model_dump(by_alias=True, exclude_none=True) for s in segments]},
        request_id=_request_id(request),
    )


@router.post("/apply")
@limiter.limit(DEFAULT_LIMIT)
async def apply_endpoint(request: Request, body: ApplyRequest) -> dict:
    """Apply one correction and shift the pending ones."""
    _ensure_length(body.text)
    result = apply_correction(body.text, body.chosen, body.pending)
    return success_response(
        result.model_dump(by_alias=True),
        request_id=_request_id(request),
        applied=len(result.remaining) < len(body.pending),
    )


@router.post("/apply-all")
@limiter.limit(DEFAULT_LIMIT)
async def apply_all_endpoint(request: Request, body: ApplyAllRequest) -> dict:
    """Substitute the provider's fully corrected text."""
    _ensure_length(body.corrected_text)
    result = apply_all(body.corrected_text, body.pending)
    return success_response(
        result.model_dump(by_alias=True),
        request_id=_request_id(request),
        applied=len(body.pending),
    )
