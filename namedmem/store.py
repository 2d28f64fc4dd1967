"""
Memory Store — SQLite reference backend

One SQLite file per named store. Implements the MemoryHandle contract
(namedmem.types) with an asyncio facade over a blocking sqlite3 connection.

Tables:
    memories      - Memory records (append-only, never updated)
    memories_fts  - FTS5 external-content index over memories.content
    schema_meta   - Schema metadata

Hybrid search merges two signals per record:
    lexical   - FTS5 phrase match (1.0) or OR-of-terms BM25 relative to the best hit
    semantic  - namedmem.similarity blend of the query and the record text

Thread safety: sqlite3 check_same_thread=False with explicit serialization.
Blocking work runs in asyncio.to_thread so event handlers never stall the loop.
"""

from __future__ import annotations

import asyncio
import json
import logging
import re
import sqlite3
import threading
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from namedmem.naming import escape_query, unescape_query
from namedmem.policy import IngestPolicy
from namedmem.similarity import similarity, tokenize
from namedmem.types import IngestPredicate, MemoryRecord, _generate_id, _now_iso

logger = logging.getLogger(__name__)

SCHEMA_VERSION = 1

# ---------------------------------------------------------------------------
# Schema DDL
# ---------------------------------------------------------------------------

_SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS memories (
    id            TEXT PRIMARY KEY,
    content       TEXT NOT NULL,
    type          TEXT NOT NULL DEFAULT '',
    metadata_json TEXT NOT NULL DEFAULT '{}',   -- JSON object
    created_at    TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS schema_meta (
    key   TEXT PRIMARY KEY,
    value TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_memories_type ON memories(type);
CREATE INDEX IF NOT EXISTS idx_memories_created ON memories(created_at);
"""

# Only alphanumeric, space, underscore, dot and hyphen: the tokenizer string
# is interpolated into DDL.
_FTS_TOKENIZER_PATTERN = re.compile(r"^[a-zA-Z0-9_ .\-]+$")

DEFAULT_FTS_TOKENIZER = "porter unicode61 remove_diacritics 2"


def _validate_fts_tokenizer(tokenizer: str) -> str:
    """Validate and return a safe FTS5 tokenizer string."""
    tokenizer = tokenizer.strip()
    if not tokenizer:
        raise ValueError("FTS5 tokenizer string cannot be empty")
    if not _FTS_TOKENIZER_PATTERN.match(tokenizer):
        raise ValueError(
            f"Unsafe FTS5 tokenizer string: {tokenizer!r} — "
            "only [a-zA-Z0-9_ .-] characters allowed"
        )
    return tokenizer


def _fts5_schema_sql(tokenizer: str) -> str:
    """FTS5 table and sync triggers. Records are immutable: no update trigger."""
    safe = _validate_fts_tokenizer(tokenizer)
    return f"""
CREATE VIRTUAL TABLE IF NOT EXISTS memories_fts USING fts5(
    content,
    content='memories',
    content_rowid='rowid',
    tokenize='{safe}'
);

CREATE TRIGGER IF NOT EXISTS memories_fts_ai
AFTER INSERT ON memories BEGIN
    INSERT INTO memories_fts(rowid, content) VALUES (new.rowid, new.content);
END;

CREATE TRIGGER IF NOT EXISTS memories_fts_bd
BEFORE DELETE ON memories BEGIN
    INSERT INTO memories_fts(memories_fts, rowid, content)
    VALUES ('delete', old.rowid, old.content);
END;
"""


class StoreClosedError(RuntimeError):
    """Raised when a closed store is used."""


# ---------------------------------------------------------------------------
# SQLiteMemoryStore
# ---------------------------------------------------------------------------

class SQLiteMemoryStore:
    """
    SQLite-backed named memory store.

    All public operations are coroutines; the blocking sqlite3 calls run in
    a worker thread under one lock, so interleaved calls on one handle are
    safe.
    """

    # Candidate pool pulled from FTS5 before merging with the semantic scan
    LEXICAL_POOL = 50
    # Most recent rows considered by the semantic scan
    SCAN_LIMIT = 5000

    def __init__(
        self,
        db_path: str = ":memory:",
        cache_dir: Optional[str] = None,
        *,
        wal_mode: bool = True,
        fts_tokenizer: Optional[str] = None,
        policy: Optional[IngestPolicy] = None,
        lexical_weight: float = 0.5,
        semantic_floor: float = 0.2,
    ):
        """Open (creating if needed) the store at ``db_path``.

        Args:
            db_path: SQLite database path (or ":memory:").
            cache_dir: Shared cache directory. This backend keeps nothing
                there but records it in stats.
            wal_mode: Enable WAL journal mode for disk databases.
            fts_tokenizer: FTS5 tokenizer string.
            policy: Importance/novelty scorer behind should_create().
            lexical_weight: Share of the lexical signal in hybrid scores.
            semantic_floor: Minimum semantic score for a record with no
                lexical hit to be returned.
        """
        if not 0.0 <= lexical_weight <= 1.0:
            raise ValueError(f"lexical_weight must be in [0, 1], got {lexical_weight}")
        self._db_path = db_path
        self._cache_dir = cache_dir
        self._lock = threading.Lock()
        self._closed = False
        self._fts5_available = False
        self._fts_tokenizer = fts_tokenizer or DEFAULT_FTS_TOKENIZER
        self._policy = policy or IngestPolicy()
        self._lexical_weight = lexical_weight
        self._semantic_floor = semantic_floor
        if db_path != ":memory:":
            Path(db_path).parent.mkdir(parents=True, exist_ok=True)
        self._conn = sqlite3.connect(db_path, check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        if wal_mode and db_path != ":memory:":
            self._conn.execute("PRAGMA journal_mode=WAL")
        self._conn.executescript(_SCHEMA_SQL)
        self._conn.execute(
            "INSERT OR IGNORE INTO schema_meta (key, value) VALUES ('schema_version', ?)",
            (str(SCHEMA_VERSION),),
        )
        self._conn.execute(
            "INSERT OR IGNORE INTO schema_meta (key, value) VALUES ('created_at', datetime('now'))",
        )
        self._conn.commit()
        self._init_fts5()
        logger.info(
            "MemoryStore opened: %s (fts5=%s)",
            db_path, "yes" if self._fts5_available else "no",
        )

    def _init_fts5(self) -> None:
        """Create the FTS5 index; fall back to LIKE search if unavailable."""
        try:
            self._conn.executescript(_fts5_schema_sql(self._fts_tokenizer))
            self._conn.commit()
            self._fts5_available = True
        except sqlite3.OperationalError as exc:
            # Typical message: "no such module: fts5"
            self._fts5_available = False
            logger.info("FTS5 not available, falling back to LIKE search: %s", exc)

    @property
    def db_path(self) -> str:
        return self._db_path

    @property
    def closed(self) -> bool:
        return self._closed

    def _ensure_open(self) -> None:
        if self._closed:
            raise StoreClosedError(f"Memory store is closed: {self._db_path}")

    # -- MemoryHandle contract -------------------------------------------

    async def should_create(
        self, importance_threshold: float, novelty_threshold: float,
    ) -> IngestPredicate:
        """Return a predicate bound to this store and the given thresholds."""
        self._ensure_open()

        async def predicate(text: str) -> bool:
            neighbours = await self.search_hybrid(escape_query(text), 5)
            return self._policy.accepts(
                text,
                [r.content for r in neighbours],
                importance_threshold,
                novelty_threshold,
            )

        return predicate

    async def add(self, text: str, metadata: Dict[str, Any]) -> str:
        return await asyncio.to_thread(self._add_sync, text, metadata)

    async def search_hybrid(self, query: str, limit: int) -> List[MemoryRecord]:
        return await asyncio.to_thread(self._search_sync, query, limit)

    async def get_stats(self) -> Dict[str, Any]:
        return await asyncio.to_thread(self._stats_sync)

    async def close(self) -> None:
        await asyncio.to_thread(self._close_sync)

    # -- Blocking implementations -----------------------------------------

    def _add_sync(self, text: str, metadata: Dict[str, Any]) -> str:
        with self._lock:
            self._ensure_open()
            record_id = _generate_id("NM")
            self._conn.execute(
                "INSERT INTO memories (id, content, type, metadata_json, created_at) "
                "VALUES (?, ?, ?, ?, ?)",
                (
                    record_id,
                    text,
                    str(metadata.get("type", "")),
                    json.dumps(metadata, default=str),
                    _now_iso(),
                ),
            )
            self._conn.commit()
        logger.debug("added %s to %s (%d chars)", record_id, self._db_path, len(text))
        return record_id

    def _search_sync(self, query: str, limit: int) -> List[MemoryRecord]:
        if limit <= 0:
            return []
        text = unescape_query(query)
        terms = tokenize(text, drop_stop_words=True)
        if not terms:
            return []
        with self._lock:
            self._ensure_open()
            lexical = self._lexical_scores(query, terms)
            rows = self._conn.execute(
                "SELECT rowid, * FROM memories ORDER BY created_at DESC LIMIT ?",
                (self.SCAN_LIMIT,),
            ).fetchall()
            missing = set(lexical) - {row["rowid"] for row in rows}
            if missing:
                marks = ",".join("?" * len(missing))
                rows += self._conn.execute(
                    f"SELECT rowid, * FROM memories WHERE rowid IN ({marks})",
                    list(missing),
                ).fetchall()

        scored: List[Tuple[float, sqlite3.Row]] = []
        w = self._lexical_weight
        for row in rows:
            lex = lexical.get(row["rowid"], 0.0)
            sem = similarity(text, row["content"])
            if lex <= 0.0 and sem < self._semantic_floor:
                continue
            scored.append((w * lex + (1.0 - w) * sem, row))

        # Rows arrive newest first; the stable sort keeps that order on ties.
        scored.sort(key=lambda pair: pair[0], reverse=True)
        return [self._row_to_record(row, score) for score, row in scored[:limit]]

    def _lexical_scores(self, query: str, terms: List[str]) -> Dict[int, float]:
        """rowid -> lexical score in (0, 1]. Caller holds the lock."""
        if not self._fts5_available:
            return self._like_scores(terms)

        scores: Dict[int, float] = {}
        escaped = ['"' + t.replace('"', '""') + '"' for t in terms]
        try:
            rows = self._conn.execute(
                "SELECT rowid, rank FROM memories_fts WHERE memories_fts MATCH ? "
                "ORDER BY rank LIMIT ?",
                (" OR ".join(escaped), self.LEXICAL_POOL),
            ).fetchall()
        except sqlite3.OperationalError as exc:
            logger.warning("FTS5 term search failed, falling back to LIKE: %s", exc)
            return self._like_scores(terms)
        if rows:
            best = rows[0]["rank"]
            for row in rows:
                # bm25 ranks are negative; closer to the best is closer to 1.0
                scores[row["rowid"]] = (row["rank"] / best) if best else 1.0

        # Whole-phrase hits outrank any partial term match
        try:
            phrase_rows = self._conn.execute(
                "SELECT rowid FROM memories_fts WHERE memories_fts MATCH ? LIMIT ?",
                (query, self.LEXICAL_POOL),
            ).fetchall()
        except sqlite3.OperationalError as exc:
            logger.debug("phrase query rejected by FTS5 (%s): %r", exc, query)
            phrase_rows = []
        for row in phrase_rows:
            scores[row["rowid"]] = 1.0
        return scores

    def _like_scores(self, terms: List[str]) -> Dict[int, float]:
        """Term coverage via LIKE, for SQLite builds without FTS5."""
        counts: Dict[int, int] = {}
        for term in terms:
            for row in self._conn.execute(
                "SELECT rowid FROM memories WHERE content LIKE ?", (f"%{term}%",),
            ).fetchall():
                counts[row["rowid"]] = counts.get(row["rowid"], 0) + 1
        return {rid: n / len(terms) for rid, n in counts.items()}

    def _stats_sync(self) -> Dict[str, Any]:
        with self._lock:
            self._ensure_open()
            total = self._conn.execute(
                "SELECT COUNT(*) AS cnt FROM memories"
            ).fetchone()["cnt"]
            by_type = {
                row["type"] or "untyped": row["cnt"]
                for row in self._conn.execute(
                    "SELECT type, COUNT(*) AS cnt FROM memories GROUP BY type"
                ).fetchall()
            }
        return {
            "total": total,
            "by_type": by_type,
            "db_path": self._db_path,
            "cache_dir": self._cache_dir,
            "fts5_available": self._fts5_available,
        }

    def _close_sync(self) -> None:
        with self._lock:
            if self._closed:
                return
            self._conn.close()
            self._closed = True
        logger.info("MemoryStore closed: %s", self._db_path)

    @staticmethod
    def _row_to_record(row: sqlite3.Row, score: float) -> MemoryRecord:
        try:
            metadata = json.loads(row["metadata_json"])
        except (TypeError, json.JSONDecodeError):
            metadata = {}
        return MemoryRecord(
            id=row["id"],
            content=row["content"],
            created_at=row["created_at"],
            metadata=metadata,
            score=score,
        )


async def open_store(
    db_path: str, cache_dir: Optional[str] = None, **kwargs: Any,
) -> SQLiteMemoryStore:
    """Open a SQLite memory store without blocking the event loop."""
    return await asyncio.to_thread(SQLiteMemoryStore, db_path, cache_dir, **kwargs)
