"""
Ingest Gate — automatic persistence of user messages.

Each inbound user message is normalized, passed through the active store's
ingest predicate and, when accepted, added with auto-ingest metadata. The
host-facing entry point schedules that work as a background task and returns
at once; failures are logged and never reach the message flow.
"""

from __future__ import annotations

import asyncio
import json
import logging
import time
from typing import Any, Mapping, Optional, Set

from namedmem.config import IngestConfig
from namedmem.registry import SessionContext

logger = logging.getLogger(__name__)

INGEST_TYPE = "user_insight"
INGEST_SOURCE = "auto_user_message"

_BASE36 = "0123456789abcdefghijklmnopqrstuvwxyz"


def to_base36(value: int) -> str:
    """Lowercase base-36 rendering of a non-negative integer."""
    if value < 0:
        raise ValueError("value must be non-negative")
    digits = []
    while True:
        value, rem = divmod(value, 36)
        digits.append(_BASE36[rem])
        if value == 0:
            return "".join(reversed(digits))


def normalize_content(content: Any, max_chars: int = 600, truncate_to: int = 550) -> str:
    """Text form of message content, capped for storage.

    Non-string content is serialized as JSON. Text longer than ``max_chars``
    is cut to ``truncate_to`` characters and marked with ``...``.
    """
    text = content if isinstance(content, str) else json.dumps(content, default=str)
    if len(text) > max_chars:
        return text[:truncate_to] + "..."
    return text


class IngestGate:
    """Decides which user messages become memories."""

    def __init__(self, config: Optional[IngestConfig] = None) -> None:
        self._config = config or IngestConfig()
        self._tasks: Set[asyncio.Task] = set()

    @property
    def pending(self) -> int:
        return len(self._tasks)

    async def ingest(
        self,
        session: SessionContext,
        message: Mapping[str, Any],
        timestamp: Optional[float] = None,
    ) -> Optional[str]:
        """Persist ``message`` if it qualifies. Returns the new record id."""
        active = session.active
        if active is None or not message:
            return None
        if message.get("role") != "user" or not message.get("content"):
            return None

        insight = normalize_content(
            message["content"], self._config.max_chars, self._config.truncate_to,
        )
        if not await active.should_create(insight):
            logger.debug("ingest skipped for '%s' (%d chars)", active.name, len(insight))
            return None

        stamp = time.time() if timestamp is None else timestamp
        record_id = await active.handle.add(insight, {
            "type": INGEST_TYPE,
            "source": INGEST_SOURCE,
            "name": active.name,
            "session_id": to_base36(int(stamp * 1000)),
        })
        logger.info("auto-ingested %s into '%s'", record_id, active.name)
        return record_id

    def on_message(
        self, session: SessionContext, message: Mapping[str, Any],
    ) -> Optional[asyncio.Task]:
        """Host hook: schedule ingest without waiting for it."""
        if not message or message.get("role") != "user":
            return None
        task = asyncio.get_running_loop().create_task(
            self.ingest(session, message, timestamp=time.time())
        )
        self._tasks.add(task)
        task.add_done_callback(self._finished)
        return task

    def _finished(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error("Auto-ingest failed: %s", exc, exc_info=exc)

    async def drain(self) -> None:
        """Wait for every in-flight ingest task."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
