"""
Tests for namedmem.judge — advisory judgment ordering and cutoffs.
"""

import pytest
import pytest_asyncio

from namedmem.config import JudgeConfig
from namedmem.judge import JudgmentEvaluator

from conftest import record

CONTENT = "User prefers tabs over spaces in Go"


@pytest.fixture
def judge():
    return JudgmentEvaluator()


@pytest_asyncio.fixture
async def handle(registry, session):
    await registry.activate(session, "work")
    return session.active.handle


class TestLengthWindow:
    @pytest.mark.asyncio
    async def test_19_chars_too_short(self, judge, session, handle):
        verdict = await judge.evaluate(session, "a" * 19)
        assert verdict.kind == "too_short"
        assert handle.searches == []
        assert "Too short (19 chars, minimum 20)" in verdict.render()

    @pytest.mark.asyncio
    async def test_20_chars_passes_length(self, judge, session, handle):
        verdict = await judge.evaluate(session, "a" * 20)
        assert verdict.kind == "worthy"

    @pytest.mark.asyncio
    async def test_801_chars_too_long(self, judge, session, handle):
        verdict = await judge.evaluate(session, "b" * 801)
        assert verdict.kind == "too_long"
        text = verdict.render()
        assert "Too long (801 chars, maximum 800)" in text
        assert "Content: " + "b" * 100 + "..." in text

    @pytest.mark.asyncio
    async def test_length_checked_before_store(self, judge, session):
        verdict = await judge.evaluate(session, "short")
        assert verdict.kind == "too_short"


class TestUnjudgeable:
    @pytest.mark.asyncio
    async def test_no_active_store(self, judge, session):
        verdict = await judge.evaluate(session, CONTENT)
        assert verdict.kind == "unjudgeable"
        assert not verdict.worth_saving
        text = verdict.render()
        assert text.startswith("⚠️ Cannot auto-judge")
        assert "Call store_use first" in text
        assert CONTENT in text
        assert "Manual guidance" in text


class TestDuplicate:
    @pytest.mark.asyncio
    async def test_high_similarity_is_duplicate(self, judge, session, handle):
        handle.results = [record("User prefers tabs over spaces", 0.95)]
        verdict = await judge.evaluate(session, CONTENT)
        assert verdict.kind == "duplicate"
        assert verdict.similarity == pytest.approx(0.95)
        assert handle.predicate_calls == []
        text = verdict.render()
        assert "❌ DUPLICATE - NOT SAVED" in text
        assert "similarity: 0.950" in text
        assert "Existing: User prefers tabs over spaces" in text

    @pytest.mark.asyncio
    async def test_exact_cutoff_is_not_duplicate(self, judge, session, handle):
        handle.results = [record("near", 0.92)]
        verdict = await judge.evaluate(session, CONTENT)
        assert verdict.kind == "worthy"
        assert handle.predicate_calls == [CONTENT]

    @pytest.mark.asyncio
    async def test_moderate_similarity_goes_to_predicate(self, judge, session, handle):
        handle.results = [record("related", 0.5)]
        handle.accept = False
        verdict = await judge.evaluate(session, CONTENT)
        assert verdict.kind == "not_important"
        assert "NOT IMPORTANT ENOUGH" in verdict.render()

    @pytest.mark.asyncio
    async def test_only_top_hit_considered(self, judge, session, handle):
        handle.results = [record("a", 0.4), record("b", 0.99)]
        verdict = await judge.evaluate(session, CONTENT)
        assert verdict.kind == "worthy"

    @pytest.mark.asyncio
    async def test_probe_uses_escaped_content(self, judge, session, handle):
        await judge.evaluate(session, "It's the user's rule to squash")
        assert handle.searches == [('"It\'\'s the user\'\'s rule to squash"', 3)]

    @pytest.mark.asyncio
    async def test_custom_cutoff(self, session, handle):
        judge = JudgmentEvaluator(JudgeConfig(duplicate_cutoff=0.4))
        handle.results = [record("related", 0.5)]
        verdict = await judge.evaluate(session, CONTENT)
        assert verdict.kind == "duplicate"


class TestPredicate:
    @pytest.mark.asyncio
    async def test_worthy(self, judge, session, handle):
        verdict = await judge.evaluate(session, CONTENT)
        assert verdict.worth_saving
        assert verdict.render().startswith("✅ WORTH SAVING")

    @pytest.mark.asyncio
    async def test_never_writes(self, judge, session, handle):
        await judge.evaluate(session, CONTENT)
        assert handle.added == []

    @pytest.mark.asyncio
    async def test_search_error_propagates(self, judge, session, handle):
        handle.results = RuntimeError("boom")
        with pytest.raises(RuntimeError):
            await judge.evaluate(session, CONTENT)
