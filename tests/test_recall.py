"""
Tests for namedmem.recall — recency-decayed re-ranking and context injection.

Decay reference values (72h time constant, 0.55 floor):
    age   0h -> boost 1.0
    age 200h -> exp(-200/72) ~ 0.0622 -> floored to 0.55
"""

import math
from datetime import datetime, timezone

import pytest
import pytest_asyncio

from namedmem.config import RecallConfig
from namedmem.recall import RecallRanker, recency_boost

from conftest import record

NOW = datetime(2026, 3, 10, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def ranker():
    return RecallRanker()


@pytest_asyncio.fixture
async def handle(registry, session):
    await registry.activate(session, "work")
    return session.active.handle


# ── Decay ────────────────────────────────────────────────────────────


class TestRecencyBoost:
    def test_fresh_memory_full_weight(self):
        assert recency_boost(0.0) == 1.0

    def test_one_time_constant(self):
        assert recency_boost(36.0) == pytest.approx(math.exp(-0.5))

    def test_old_memory_floored(self):
        assert math.exp(-200 / 72) == pytest.approx(0.0622, abs=1e-4)
        assert recency_boost(200.0) == 0.55

    def test_custom_floor_and_constant(self):
        assert recency_boost(10.0, decay_hours=10.0, floor=0.1) == pytest.approx(math.exp(-1))


# ── Ranking ──────────────────────────────────────────────────────────


class TestRank:
    def test_decay_does_not_invert_large_gap(self, ranker):
        fresh = record("fresh", 1.0, hours_ago=0, now=NOW)
        old = record("old", 0.9, hours_ago=200, now=NOW)
        ranked = ranker.rank([fresh, old], now=NOW)
        assert [c.record.content for c in ranked] == ["fresh", "old"]
        assert ranked[0].final_score == pytest.approx(1.0)
        assert ranked[1].final_score == pytest.approx(0.9 * 0.55)

    def test_decay_inverts_small_gap(self, ranker):
        old = record("old but relevant", 1.0, hours_ago=200, now=NOW)
        fresh = record("fresh", 0.9, hours_ago=0, now=NOW)
        ranked = ranker.rank([old, fresh], now=NOW)
        assert [c.record.content for c in ranked] == ["fresh", "old but relevant"]
        assert ranked[0].final_score == pytest.approx(0.9)
        assert ranked[1].final_score == pytest.approx(0.55)

    def test_ties_keep_retrieval_order(self, ranker):
        recs = [
            record("first", 0.8, hours_ago=300, now=NOW),
            record("second", 0.8, hours_ago=500, now=NOW),
            record("third", 0.8, hours_ago=1000, now=NOW),
        ]
        ranked = ranker.rank(recs, now=NOW)
        assert [c.record.content for c in ranked] == ["first", "second", "third"]
        assert [c.position for c in ranked] == [0, 1, 2]
        assert len({c.final_score for c in ranked}) == 1

    def test_missing_score_counts_as_zero(self, ranker):
        ranked = ranker.rank([record("none", None, now=NOW), record("some", 0.1, now=NOW)],
                             now=NOW)
        assert [c.record.content for c in ranked] == ["some", "none"]
        assert ranked[1].final_score == 0.0

    def test_truncates_to_max_memories(self, ranker):
        recs = [record(f"m{i}", 1.0 - i / 100, now=NOW) for i in range(17)]
        ranked = ranker.rank(recs, now=NOW)
        assert len(ranked) == 7
        assert ranked[0].record.content == "m0"

    def test_custom_max_memories(self):
        ranker = RecallRanker(RecallConfig(max_memories=2))
        recs = [record(f"m{i}", 0.5, now=NOW) for i in range(5)]
        assert len(ranker.rank(recs, now=NOW)) == 2

    def test_accepts_epoch_millis(self, ranker):
        rec = record("x", 1.0, now=NOW)
        rec = type(rec)(content="x", score=1.0, created_at=int(NOW.timestamp() * 1000))
        assert ranker.rank([rec], now=NOW)[0].boost == 1.0

    def test_empty(self, ranker):
        assert ranker.rank([], now=NOW) == []


# ── Hint derivation ──────────────────────────────────────────────────


class TestDeriveHint:
    def test_prompt_preferred(self, ranker):
        hint = ranker.derive_hint({"prompt": "refactor parser",
                                   "messages": [{"content": "other"}]})
        assert hint == "refactor parser"

    def test_last_message_content(self, ranker):
        hint = ranker.derive_hint({"messages": [{"content": "a"}, {"content": "b"}]})
        assert hint == "b"

    def test_default_hint(self, ranker):
        assert ranker.derive_hint({}) == "current coding task"
        assert ranker.derive_hint(None) == "current coding task"
        assert ranker.derive_hint({"messages": []}) == "current coding task"

    def test_structured_content_serialized(self, ranker):
        hint = ranker.derive_hint({"messages": [{"content": [{"text": "hi"}]}]})
        assert hint == '[{"text": "hi"}]'

    def test_long_hint_truncated(self, ranker):
        assert len(ranker.derive_hint({"prompt": "q" * 1000})) == 553


# ── Rendering ────────────────────────────────────────────────────────


class TestRender:
    def test_block_format(self, ranker):
        ranked = ranker.rank([
            record("Prefers 2-space indentation", 0.9, hours_ago=0, now=NOW),
            record("Uses pytest", 0.5, hours_ago=0, now=NOW),
        ], now=NOW)
        block = ranker.render("work", ranked)
        assert block.startswith('<named-memory name="work">\n')
        assert block.endswith("</named-memory>")
        assert "These are your permanent memories for 'work'." in block
        assert "Memory #1 (2026-03-10):\nPrefers 2-space indentation" in block
        assert "Memory #2 (2026-03-10):\nUses pytest" in block
        assert "Prefers 2-space indentation\n\nMemory #2" in block


# ── Compaction hook ──────────────────────────────────────────────────


class TestOnCompacting:
    @pytest.mark.asyncio
    async def test_appends_block(self, ranker, session, handle):
        handle.results = [record("Prefers tabs", 0.9)]
        output = {"context": ["earlier context"]}
        await ranker.on_compacting(session, {"prompt": "indentation"}, output)
        assert len(output["context"]) == 2
        assert output["context"][0] == "earlier context"
        assert "Prefers tabs" in output["context"][1]

    @pytest.mark.asyncio
    async def test_creates_context_list(self, ranker, session, handle):
        handle.results = [record("Prefers tabs", 0.9)]
        output = {}
        await ranker.on_compacting(session, {}, output)
        assert len(output["context"]) == 1

    @pytest.mark.asyncio
    async def test_search_request(self, ranker, session, handle):
        await ranker.on_compacting(session, {"prompt": "O'Brien notes"}, {})
        assert handle.searches == [('"O\'\'Brien notes"', 17)]

    @pytest.mark.asyncio
    async def test_zero_candidates_leave_output_untouched(self, ranker, session, handle):
        handle.results = []
        output = {}
        await ranker.on_compacting(session, {"prompt": "anything"}, output)
        assert output == {}
        prior = ["keep me"]
        output = {"context": prior}
        await ranker.on_compacting(session, {"prompt": "anything"}, output)
        assert output["context"] is prior
        assert prior == ["keep me"]

    @pytest.mark.asyncio
    async def test_never_more_than_max_memories(self, session, handle):
        ranker = RecallRanker(RecallConfig(max_memories=3))
        handle.results = [record(f"memory {i}", 0.9) for i in range(13)]
        output = {}
        await ranker.on_compacting(session, {}, output)
        block = output["context"][0]
        assert "Memory #3" in block
        assert "Memory #4" not in block
        assert handle.searches[0][1] == 13

    @pytest.mark.asyncio
    async def test_search_failure_is_swallowed(self, ranker, session, handle, caplog):
        handle.results = RuntimeError("fts index corrupt")
        output = {"context": []}
        await ranker.on_compacting(session, {}, output)
        assert output == {"context": []}
        assert "Inject failed" in caplog.text

    @pytest.mark.asyncio
    async def test_malformed_timestamp_is_swallowed(self, ranker, session, handle):
        bad = type(record("x", 1.0))(content="x", score=1.0, created_at="not a date")
        handle.results = [bad]
        output = {}
        await ranker.on_compacting(session, {}, output)
        assert output == {}

    @pytest.mark.asyncio
    async def test_no_active_store_is_noop(self, ranker, session):
        output = {}
        await ranker.on_compacting(session, {"prompt": "x"}, output)
        assert output == {}
