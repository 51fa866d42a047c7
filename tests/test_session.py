"""Tests for the editing session: stale results, sharing and applying."""

import asyncio

import pytest

from textfix.core.errors import ProviderUnavailableError
from textfix.core.session import EditingSession
from textfix.models.correction import CorrectionResult


def _apple_provider(apple_corrections):
    calls: list[str] = []

    async def provider(text: str) -> CorrectionResult:
        calls.append(text)
        return CorrectionResult(
            original_text=text,
            corrected_text="I have an apple.",
            corrections=apple_corrections,
        )

    provider.calls = calls
    return provider


@pytest.fixture
def session(apple_text, apple_corrections):
    return EditingSession(_apple_provider(apple_corrections), text=apple_text)


class TestAnalyze:

    async def test_populates_corrections(self, session):
        assert await session.analyze() is True
        assert [c.key for c in session.corrections] == [(2, 5), (6, 13)]
        assert session.corrected_text == "I have an apple."
        assert session.last_error is None

    async def test_segments_after_analyze(self, session, apple_text):
        await session.analyze()
        segments = session.segments()
        assert "".join(s.content for s in segments) == apple_text
        assert [s.content for s in segments if s.kind == "highlighted"] == ["has", "a apple"]

    async def test_result_for_stale_text_is_discarded(self, apple_text, apple_corrections):
        release = asyncio.Event()

        async def slow_provider(text: str) -> CorrectionResult:
            await release.wait()
            return CorrectionResult(
                original_text=text,
                corrected_text="I have an apple.",
                corrections=apple_corrections,
            )

        session = EditingSession(slow_provider, text=apple_text)
        task = asyncio.create_task(session.analyze())
        await asyncio.sleep(0)

        session.edit("Something else entirely.")
        release.set()

        assert await task is False
        assert session.corrections == []
        assert session.corrected_text is None
        assert session.text == "Something else entirely."

    async def test_concurrent_calls_share_one_request(self, apple_text, apple_corrections):
        provider = _apple_provider(apple_corrections)
        session = EditingSession(provider, text=apple_text)

        results = await asyncio.gather(session.analyze(), session.analyze())

        assert results == [True, True]
        assert provider.calls == [apple_text]

    async def test_cancelling_one_caller_keeps_shared_request(self, apple_text, apple_corrections):
        release = asyncio.Event()
        calls: list[str] = []

        async def slow_provider(text: str) -> CorrectionResult:
            calls.append(text)
            await release.wait()
            return CorrectionResult(
                original_text=text,
                corrected_text="I have an apple.",
                corrections=apple_corrections,
            )

        session = EditingSession(slow_provider, text=apple_text)
        first = asyncio.create_task(session.analyze())
        second = asyncio.create_task(session.analyze())
        await asyncio.sleep(0)

        first.cancel()
        await asyncio.sleep(0)
        release.set()

        assert await second is True
        assert first.cancelled()
        assert calls == [apple_text]
        assert [c.key for c in session.corrections] == [(2, 5), (6, 13)]

    async def test_new_revision_gets_new_request(self, apple_text, apple_corrections):
        provider = _apple_provider(apple_corrections)
        session = EditingSession(provider, text=apple_text)

        await session.analyze()
        session.edit(apple_text + " More.")
        await session.analyze()

        assert provider.calls == [apple_text, apple_text + " More."]

    async def test_provider_error_keeps_buffer(self, apple_text):
        async def failing(text: str) -> CorrectionResult:
            raise ProviderUnavailableError("down")

        session = EditingSession(failing, text=apple_text)
        assert await session.analyze() is False
        assert session.text == apple_text
        assert session.corrections == []
        assert session.last_error.code == "PROVIDER_UNAVAILABLE"
        assert session.last_error.retryable is True

    async def test_invalid_provider_spans_are_dropped(self, apple_text, apple_corrections):
        bogus = apple_corrections[0].model_copy(update={"start_index": 10, "end_index": 40})

        async def provider(text: str) -> CorrectionResult:
            return CorrectionResult(
                original_text=text,
                corrected_text=text,
                corrections=[bogus, apple_corrections[1]],
            )

        session = EditingSession(provider, text=apple_text)
        await session.analyze()
        assert [c.key for c in session.corrections] == [(6, 13)]


class TestEdit:

    async def test_edit_after_spans_keeps_them(self, session):
        await session.analyze()
        session.edit("I has a apple!")
        assert [c.key for c in session.corrections] == [(2, 5), (6, 13)]
        assert session.corrected_text is None

    async def test_edit_inside_spans_drops_them(self, session):
        await session.analyze()
        session.edit("We has a apple.")
        assert session.corrections == []

    def test_identical_edit_is_not_a_revision(self, session, apple_text):
        session.edit(apple_text)
        assert session.revision == 0


class TestApply:

    async def test_apply_one(self, session):
        await session.analyze()
        revision = session.revision

        assert session.apply(session.corrections[0]) is True
        assert session.text == "I have a apple."
        assert [c.key for c in session.corrections] == [(7, 14)]
        assert session.revision == revision + 1

    async def test_apply_unknown_correction_is_noop(self, session, apple_text, apple_corrections):
        await session.analyze()
        stranger = apple_corrections[0].model_copy(update={"start_index": 0, "end_index": 1})

        assert session.apply(stranger) is False
        assert session.text == apple_text
        assert len(session.corrections) == 2

    def test_apply_stale_correction_is_noop(self, apple_corrections):
        session = EditingSession(_apple_provider(apple_corrections), text="I has")
        session.corrections = list(apple_corrections)

        assert session.apply(apple_corrections[1]) is False
        assert session.text == "I has"
        assert session.revision == 0
        assert [c.key for c in session.corrections] == [(2, 5)]

    async def test_correction_at(self, session):
        await session.analyze()
        assert session.correction_at(6, 13).suggestion == "an apple"
        assert session.correction_at(6, 12) is None

    async def test_apply_all(self, session):
        await session.analyze()
        assert session.apply_all() is True
        assert session.text == "I have an apple."
        assert session.corrections == []

    async def test_apply_all_twice_is_noop(self, session):
        await session.analyze()
        session.apply_all()
        revision = session.revision

        assert session.apply_all() is False
        assert session.text == "I have an apple."
        assert session.revision == revision

    def test_apply_all_before_analyze(self, session, apple_text):
        assert session.apply_all() is False
        assert session.text == apple_text
