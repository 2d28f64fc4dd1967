"""
namedmem MCP Server — named long-term memory stores for LLM agents.

Standalone MCP server exposing the named-memory tools via the Model Context
Protocol. One process serves one session: the store activated with
store_use stays active until another one is activated.

Usage:
    python -m namedmem.mcp.server --base-dir ~/.config/namedmem/named-memory
    python -m namedmem.mcp.server --config namedmem.json --store work
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import os
import sys

logger = logging.getLogger(__name__)

_MCP_INSTRUCTIONS = (
    "Named long-term memory stores (5 tools).\n"
    "\n"
    "FIRST:   Call store_use(name) to activate a store (e.g. 'work').\n"
    "SEARCH:  Use store_search with specific keywords.\n"
    "STORE:   Use judge_worth_saving, then store_add for durable facts.\n"
    "STATS:   Use store_stats to see how much a store holds.\n"
    "\n"
    "Rules:\n"
    "- Save preferences, facts, lessons learned and project rules\n"
    "- Skip ephemeral events, casual chat and status updates\n"
    "- Stores are isolated: nothing leaks between names\n"
)


def _env_int(name: str, default: int) -> int:
    """Read an integer from environment, with fallback."""
    val = os.environ.get(name)
    if val is not None:
        try:
            return int(val)
        except ValueError:
            pass
    return default


def build_parser() -> argparse.ArgumentParser:
    """Build CLI argument parser for the named-memory MCP server."""
    p = argparse.ArgumentParser(
        prog="namedmem-mcp",
        description="namedmem MCP Server — named long-term memory stores",
    )
    p.add_argument(
        "--config",
        default=os.environ.get("NAMEDMEM_CONFIG"),
        help="JSON config file (default: $NAMEDMEM_CONFIG or compiled defaults)",
    )
    p.add_argument(
        "--base-dir",
        default=os.environ.get("NAMEDMEM_BASE_DIR"),
        help="Directory holding the store files (default: ~/.config/namedmem/named-memory)",
    )
    p.add_argument(
        "--max-memories",
        type=int,
        default=_env_int("NAMEDMEM_MAX_MEMORIES", 0) or None,
        help="Override recall.max_memories (default: 7 or $NAMEDMEM_MAX_MEMORIES)",
    )
    p.add_argument(
        "--store",
        default=None,
        help="Store to activate at startup",
    )
    p.add_argument(
        "--strict-config",
        action="store_true",
        help="Fail on out-of-range config values instead of using them",
    )
    p.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable verbose logging",
    )
    return p


def create_server(args=None):
    """
    Create and configure the FastMCP server with named-memory tools.

    Args:
        args: Parsed argparse.Namespace, or None to parse from sys.argv.

    Returns:
        (mcp_server, registry, session) tuple.
    """
    from mcp.server.fastmcp import FastMCP

    from namedmem.config import load_config
    from namedmem.mcp.tools import register_named_memory_tools
    from namedmem.registry import SessionContext, StoreRegistry

    if args is None:
        args = build_parser().parse_args()

    config = load_config(args.config, strict=args.strict_config)
    if args.base_dir:
        config.store.base_dir = args.base_dir
    if args.max_memories:
        config.recall.max_memories = args.max_memories

    session = SessionContext()
    registry = StoreRegistry(config)

    mcp = FastMCP(
        name="namedmem Memory",
        instructions=_MCP_INSTRUCTIONS,
    )
    register_named_memory_tools(mcp, session, registry, config)

    logger.info(
        "namedmem MCP server ready: base_dir=%s, max_memories=%d",
        config.store.base_dir or "(default)", config.recall.max_memories,
    )
    return mcp, registry, session


def main():
    """CLI entry point — parse args, create server, run."""
    parser = build_parser()
    args = parser.parse_args()

    level = logging.DEBUG if args.verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(name)s %(levelname)s %(message)s",
        stream=sys.stderr,
    )

    mcp, registry, session = create_server(args)
    if args.store:
        result = asyncio.run(registry.activate(session, args.store))
        logger.info(result.render())
    try:
        mcp.run()
    finally:
        asyncio.run(registry.teardown(session))


if __name__ == "__main__":
    main()
