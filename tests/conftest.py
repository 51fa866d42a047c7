"""Shared test fixtures for textfix tests."""

from unittest.mock import patch

import pytest

from textfix.config import settings
from textfix.models.correction import Correction
from textfix.services.correction_provider import get_circuit_breaker


@pytest.fixture(autouse=True)
def _fast_retries():
    """No backoff sleeps between provider retries."""
    with patch.object(settings, "llm_retry_backoff_seconds", 0.0):
        yield


@pytest.fixture(autouse=True)
def _reset_circuit_breaker():
    """Each test starts with a CLOSED provider circuit."""
    get_circuit_breaker().reset()
    yield
    get_circuit_breaker().reset()


@pytest.fixture
def apple_text() -> str:
    return "I has a apple."


@pytest.fixture
def apple_corrections() -> list[Correction]:
    return [
        Correction(original="has", suggestion="have", startIndex=2, endIndex=5),
        Correction(original="a apple", suggestion="an apple", startIndex=6, endIndex=13),
    ]
