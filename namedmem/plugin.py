"""
Host plugin — wires the named-memory layer to an agent runtime.

The host delivers two events and may call five tools:

    message.updated       → IngestGate.on_message (fire-and-forget)
    session.compacting    → RecallRanker.on_compacting (appends context)
    tools                 → store_use, store_search, store_add,
                            store_stats, judge_worth_saving

destroy() drains pending ingests and closes the active store.
"""

from __future__ import annotations

import logging
from typing import Any, Awaitable, Callable, Dict, Mapping, MutableMapping, Optional

from namedmem.config import NamedMemoryConfig
from namedmem.ingest import IngestGate
from namedmem.judge import JudgmentEvaluator
from namedmem.mcp.tools import register_named_memory_tools
from namedmem.recall import RecallRanker
from namedmem.registry import Opener, SessionContext, StoreRegistry

logger = logging.getLogger(__name__)

MESSAGE_EVENT = "message.updated"
COMPACTING_EVENT = "session.compacting"


class _ToolTable:
    """Collects tools from register_named_memory_tools without an MCP server."""

    def __init__(self) -> None:
        self.tools: Dict[str, Callable[..., Awaitable[str]]] = {}

    def tool(self):
        def decorator(fn):
            self.tools[fn.__name__] = fn
            return fn
        return decorator


class NamedMemoryPlugin:
    """One session's worth of named memory, exposed as host hooks and tools."""

    def __init__(
        self,
        config: Optional[NamedMemoryConfig] = None,
        *,
        path_service: Any = None,
        opener: Optional[Opener] = None,
        session: Optional[SessionContext] = None,
    ) -> None:
        self.config = config or NamedMemoryConfig()
        self.session = session or SessionContext()
        self.registry = StoreRegistry(
            self.config, path_service=path_service, opener=opener,
        )
        self.ingest = IngestGate(self.config.ingest)
        self.ranker = RecallRanker(self.config.recall)
        self.judge = JudgmentEvaluator(self.config.judge)
        table = _ToolTable()
        register_named_memory_tools(
            table, self.session, self.registry, self.config, judge=self.judge,
        )
        self.tools = table.tools

    async def on_message_updated(self, event: Mapping[str, Any]) -> None:
        """Handle ``message.updated``; returns before ingest completes."""
        message = event.get("message", event) if event else None
        if isinstance(message, Mapping):
            self.ingest.on_message(self.session, message)

    async def on_session_compacting(
        self,
        compaction_input: Optional[Mapping[str, Any]],
        output: MutableMapping[str, Any],
    ) -> None:
        await self.ranker.on_compacting(self.session, compaction_input, output)

    def hooks(self) -> Dict[str, Callable[..., Awaitable[None]]]:
        """Event name → handler, for hosts that dispatch by name."""
        return {
            MESSAGE_EVENT: self.on_message_updated,
            COMPACTING_EVENT: self.on_session_compacting,
        }

    async def call_tool(self, tool_name: str, /, **kwargs: Any) -> str:
        tool = self.tools.get(tool_name)
        if tool is None:
            return f"Unknown tool: {tool_name}"
        return await tool(**kwargs)

    async def destroy(self) -> None:
        await self.ingest.drain()
        await self.registry.teardown(self.session)
