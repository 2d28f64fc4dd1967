"""
Judgment Evaluator — advisory "is this worth remembering?" check.

Checks run in a fixed order: length window, active store, duplicate probe,
then the store's ingest predicate. Nothing is ever written.
"""

from __future__ import annotations

import logging
from typing import Optional

from namedmem.config import JudgeConfig
from namedmem.naming import escape_query
from namedmem.registry import SessionContext
from namedmem.types import Verdict

logger = logging.getLogger(__name__)


class JudgmentEvaluator:
    """Classifies content as worthy, duplicate or rejected."""

    def __init__(self, config: Optional[JudgeConfig] = None) -> None:
        self._config = config or JudgeConfig()

    async def evaluate(self, session: SessionContext, content: str) -> Verdict:
        cfg = self._config
        bounds = dict(min_length=cfg.min_length, max_length=cfg.max_length)

        if len(content) < cfg.min_length:
            return Verdict("too_short", content, **bounds)
        if len(content) > cfg.max_length:
            return Verdict("too_long", content, **bounds)

        active = session.active
        if active is None:
            return Verdict("unjudgeable", content, **bounds)

        similar = await active.handle.search_hybrid(escape_query(content), cfg.probe_limit)
        if similar and (similar[0].score or 0.0) > cfg.duplicate_cutoff:
            logger.debug("duplicate of %s (%.3f) in '%s'",
                         similar[0].id, similar[0].score, active.name)
            return Verdict("duplicate", content, match=similar[0], **bounds)

        if await active.should_create(content):
            return Verdict("worthy", content, **bounds)
        return Verdict("not_important", content, **bounds)
