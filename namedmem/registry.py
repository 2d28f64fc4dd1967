"""
Store Registry — named store lifecycle and addressing.

A SessionContext holds the single active store (handle, identity, ingest
predicate). The registry resolves names to files, opens and switches stores,
and releases the handle at teardown.

Switching publishes a new immutable ActiveStore in one assignment, so a
reader that snapshots ``session.active`` never sees a handle paired with
another store's identity or predicate.
"""

from __future__ import annotations

import inspect
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Awaitable, Callable, List, Literal, Optional, Tuple

from namedmem.config import NamedMemoryConfig
from namedmem.naming import sanitize_name, store_filename
from namedmem.types import IngestPredicate, MemoryHandle

logger = logging.getLogger(__name__)

APP_NAME = "namedmem"

Opener = Callable[..., Awaitable[MemoryHandle]]
ActivationStatus = Literal["switched", "already_active", "failed"]


def default_config_root() -> Path:
    """Per-user config root used when the host path service is unavailable."""
    base = os.environ.get("XDG_CONFIG_HOME")
    return (Path(base) if base else Path.home() / ".config") / APP_NAME


# ---------------------------------------------------------------------------
# Session state
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ActiveStore:
    """The open store of a session. Replaced as a whole, never mutated."""

    name: str
    db_path: Path
    handle: MemoryHandle
    should_create: IngestPredicate


class SessionContext:
    """Per-session holder of the active store."""

    def __init__(self) -> None:
        self.active: Optional[ActiveStore] = None

    @property
    def name(self) -> Optional[str]:
        active = self.active
        return active.name if active else None


@dataclass(frozen=True)
class ActivationResult:
    """Outcome of StoreRegistry.activate()."""

    status: ActivationStatus
    name: str
    db_path: Optional[Path] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.status != "failed"

    def render(self) -> str:
        if self.status == "already_active":
            return f"✅ Already using named memory '{self.name}' ({self.db_path})."
        if self.status == "switched":
            return (
                f"✅ Switched to named memory '{self.name}'.\n"
                f"All future memory tools now use: {self.db_path}"
            )
        return f"Failed to activate memory: {self.error}"


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------

class StoreRegistry:
    """Opens, switches and closes named stores for a SessionContext."""

    def __init__(
        self,
        config: Optional[NamedMemoryConfig] = None,
        *,
        path_service: Any = None,
        opener: Optional[Opener] = None,
    ) -> None:
        """
        Args:
            config: Thresholds and store layout. Defaults to compiled defaults.
            path_service: Host service with ``get()`` returning
                ``{"data": {"config": <dir>}}`` (sync or async). Optional.
            opener: ``async opener(db_path, cache_dir)`` returning a
                MemoryHandle. Defaults to the SQLite backend.
        """
        self._config = config or NamedMemoryConfig()
        self._path_service = path_service
        if opener is None:
            from namedmem.store import open_store

            tokenizer = self._config.store.fts_tokenizer

            async def opener(db_path, cache_dir=None):
                return await open_store(db_path, cache_dir, fts_tokenizer=tokenizer)

        self._opener = opener
        self._base_dir: Optional[Path] = None

    @property
    def config(self) -> NamedMemoryConfig:
        return self._config

    # -- Path resolution ----------------------------------------------------

    def _fallback_chain(self) -> List[Tuple[str, Callable[[], Awaitable[Optional[Path]]], int]]:
        """(label, resolver, log level on failure), evaluated top-down."""
        store_cfg = self._config.store

        async def from_config() -> Optional[Path]:
            if not store_cfg.base_dir:
                return None
            return Path(store_cfg.base_dir).expanduser()

        async def from_host() -> Optional[Path]:
            if self._path_service is None:
                return None
            result = self._path_service.get()
            if inspect.isawaitable(result):
                result = await result
            data = (result or {}).get("data") if isinstance(result, dict) else None
            if not data or not data.get("config"):
                raise RuntimeError("Failed to get config path from host")
            return Path(data["config"]) / store_cfg.dir_name

        async def from_home() -> Optional[Path]:
            return default_config_root() / store_cfg.dir_name

        return [
            ("config", from_config, logging.WARNING),
            ("host", from_host, logging.WARNING),
            ("home", from_home, logging.ERROR),
        ]

    async def resolve_base_dir(self) -> Path:
        """Directory holding every store file. Cached after first success."""
        if self._base_dir is not None:
            return self._base_dir
        for label, resolver, level in self._fallback_chain():
            try:
                path = await resolver()
            except Exception as exc:
                logger.log(level, "Could not resolve store directory from %s (%s), "
                           "using fallback", label, exc)
                continue
            if path is not None:
                logger.debug("store directory resolved from %s: %s", label, path)
                self._base_dir = path
                return path
        raise RuntimeError("No store directory could be resolved")

    async def store_path(self, raw_name: str) -> Tuple[str, Path]:
        """Canonical name and file path for ``raw_name``."""
        base = await self.resolve_base_dir()
        name = sanitize_name(raw_name)
        return name, base / store_filename(name, self._config.store.file_prefix)

    # -- Lifecycle ----------------------------------------------------------

    async def activate(self, session: SessionContext, raw_name: str) -> ActivationResult:
        """Make ``raw_name`` the active store of ``session``.

        Never raises: failures leave the previous store active and are
        reported in the result.
        """
        name = sanitize_name(raw_name)
        try:
            name, db_path = await self.store_path(raw_name)
            cache_dir = db_path.parent / self._config.store.cache_dir_name
            db_path.parent.mkdir(parents=True, exist_ok=True)
            cache_dir.mkdir(parents=True, exist_ok=True)

            current = session.active
            if current is not None and current.name == name:
                return ActivationResult("already_active", name, current.db_path)

            handle = await self._opener(str(db_path), str(cache_dir))
            try:
                predicate = await handle.should_create(
                    self._config.ingest.importance_threshold,
                    self._config.ingest.novelty_threshold,
                )
            except Exception:
                await _close_quietly(handle, name)
                raise
        except Exception as exc:
            logger.error("Activate failed for '%s': %s", name, exc, exc_info=True)
            return ActivationResult("failed", name, error=str(exc) or type(exc).__name__)

        previous = session.active
        session.active = ActiveStore(
            name=name, db_path=db_path, handle=handle, should_create=predicate,
        )
        logger.info("Active named memory: %s (%s)", name, db_path)
        if previous is not None:
            await _close_quietly(previous.handle, previous.name)
        return ActivationResult("switched", name, db_path)

    def current(self, session: SessionContext) -> Optional[str]:
        return session.name

    async def teardown(self, session: SessionContext) -> None:
        """Close the active store, if any. Safe to call repeatedly."""
        active = session.active
        if active is None:
            return
        session.active = None
        await _close_quietly(active.handle, active.name)
        logger.info("Closed named memory: %s", active.name)


async def _close_quietly(handle: MemoryHandle, name: str) -> None:
    try:
        await handle.close()
    except Exception as exc:
        logger.warning("Failed to close store '%s': %s", name, exc)
