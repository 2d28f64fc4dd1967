"""
Named Memory MCP Tools — five tools over the active named store.

Thin async wrappers around StoreRegistry, the active MemoryHandle and
JudgmentEvaluator. Every tool returns text and never raises: failures come
back as prefixed messages and a missing store as guidance text.

Tools:
    store_use           — activate or switch the named store
    store_search        — hybrid search in the active store
    store_add           — add a memory to the active store
    store_stats         — record count of the active store
    judge_worth_saving  — advisory duplicate/importance check
"""

from __future__ import annotations

import logging
from typing import Optional

from namedmem.config import NamedMemoryConfig
from namedmem.judge import JudgmentEvaluator
from namedmem.mcp.formatting import (
    NO_ACTIVE_STORE,
    format_added,
    format_error,
    format_search_results,
    format_stats,
)
from namedmem.naming import escape_query
from namedmem.registry import SessionContext, StoreRegistry

logger = logging.getLogger(__name__)

MANUAL_TYPE = "manual"
MANUAL_SOURCE = "manual_tool"


def register_named_memory_tools(
    mcp,
    session: SessionContext,
    registry: StoreRegistry,
    config: Optional[NamedMemoryConfig] = None,
    *,
    judge: Optional[JudgmentEvaluator] = None,
) -> None:
    """
    Register the named-memory tools on a FastMCP server instance.

    Args:
        mcp: FastMCP server instance (or anything with a ``tool()`` decorator).
        session: Session whose active store the tools operate on.
        registry: Registry used by store_use.
        config: Search defaults and judgment cutoffs.
        judge: Evaluator for judge_worth_saving. Built from config if None.
    """
    config = config or registry.config
    if judge is None:
        judge = JudgmentEvaluator(config.judge)

    @mcp.tool()
    async def store_use(name: str) -> str:
        """Activate (or switch to) a named memory store (e.g. 'richard', 'work').

        REQUIRED before any other memory tool works. Names are lowercased and
        punctuation becomes hyphens.
        """
        result = await registry.activate(session, name)
        return result.render()

    @mcp.tool()
    async def store_search(query: str, limit: Optional[int] = None) -> str:
        """Search the active named memory.

        Use specific keywords and distinctive terms rather than vague
        descriptions (e.g. 'postgres uuid indexing' not 'database stuff').
        """
        active = session.active
        if active is None:
            return NO_ACTIVE_STORE
        try:
            records = await active.handle.search_hybrid(
                escape_query(query), limit or config.search.default_limit,
            )
        except Exception as exc:
            logger.error("store_search failed in '%s': %s", active.name, exc)
            return format_error("Search failed", exc)
        return format_search_results(records, query, active.name)

    @mcp.tool()
    async def store_add(content: str, type: str = MANUAL_TYPE) -> str:
        """Add a memory to the active named memory, verbatim."""
        active = session.active
        if active is None:
            return NO_ACTIVE_STORE
        try:
            record_id = await active.handle.add(content, {
                "type": type or MANUAL_TYPE,
                "source": MANUAL_SOURCE,
                "name": active.name,
            })
        except Exception as exc:
            logger.error("store_add failed in '%s': %s", active.name, exc)
            return format_error("Add failed", exc)
        return format_added(active.name, record_id, content)

    @mcp.tool()
    async def store_stats() -> str:
        """Show how many memories the active named memory holds."""
        active = session.active
        if active is None:
            return NO_ACTIVE_STORE
        try:
            stats = await active.handle.get_stats()
        except Exception as exc:
            logger.error("store_stats failed in '%s': %s", active.name, exc)
            return format_error("Stats failed", exc)
        return format_stats(active.name, active.db_path, stats)

    @mcp.tool()
    async def judge_worth_saving(content: str) -> str:
        """Evaluate whether content is worth saving as a permanent memory.

        Checks length, duplicates in the active memory, and importance.
        Advisory only: nothing is saved.
        """
        try:
            verdict = await judge.evaluate(session, content)
        except Exception as exc:
            logger.error("judge_worth_saving failed: %s", exc)
            return format_error("Judgment failed", exc)
        return verdict.render()
