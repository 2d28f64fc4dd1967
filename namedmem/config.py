"""
Named Memory Configuration

Configuration dataclasses for namedmem: store location, ingest thresholds,
recall ranking, judgment cutoffs and search defaults.  Includes load_config()
for reading a JSON config file with silent fallback to compiled defaults.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------


class ValidationError(ValueError):
    """Raised when config values are out of valid range."""

    pass


def _check_range(
    errors: List[str], name: str, value, lo, hi, typ=None,
) -> None:
    """Append an error message if value is out of [lo, hi] or wrong type."""
    if typ is not None and not isinstance(value, typ):
        errors.append(f"{name}: expected {typ.__name__}, got {type(value).__name__}")
        return
    if value < lo or value > hi:
        errors.append(f"{name}: {value} not in [{lo}, {hi}]")


@dataclass
class StoreConfig:
    """Where named stores live on disk."""
    base_dir: Optional[str] = None
    dir_name: str = "named-memory"
    file_prefix: str = "named-memory-"
    cache_dir_name: str = "model_cache"
    fts_tokenizer: str = "porter unicode61 remove_diacritics 2"

    def validate(self) -> List[str]:
        """Return list of validation error messages (empty = valid)."""
        errors: List[str] = []
        if not self.dir_name.strip():
            errors.append("store.dir_name: must not be empty")
        return errors


@dataclass
class IngestConfig:
    """Auto-ingest gate thresholds and content caps."""
    importance_threshold: float = 0.009
    novelty_threshold: float = 0.87
    max_chars: int = 600
    truncate_to: int = 550

    def validate(self) -> List[str]:
        """Return list of validation error messages (empty = valid)."""
        errors: List[str] = []
        _check_range(errors, "ingest.importance_threshold",
                     self.importance_threshold, 0.0, 1.0, float)
        _check_range(errors, "ingest.novelty_threshold",
                     self.novelty_threshold, 0.0, 1.0, float)
        _check_range(errors, "ingest.max_chars",
                     self.max_chars, 1, 100000, int)
        _check_range(errors, "ingest.truncate_to",
                     self.truncate_to, 1, self.max_chars, int)
        return errors


@dataclass
class RecallConfig:
    """Compaction-time recall: candidate pool, recency decay, output size."""
    max_memories: int = 7
    overfetch: int = 10
    decay_hours: float = 72.0
    decay_floor: float = 0.55
    default_hint: str = "current coding task"

    def validate(self) -> List[str]:
        """Return list of validation error messages (empty = valid)."""
        errors: List[str] = []
        _check_range(errors, "recall.max_memories",
                     self.max_memories, 1, 100, int)
        _check_range(errors, "recall.overfetch",
                     self.overfetch, 0, 1000, int)
        _check_range(errors, "recall.decay_hours",
                     self.decay_hours, 0.01, 87600.0, float)
        _check_range(errors, "recall.decay_floor",
                     self.decay_floor, 0.0, 1.0, float)
        return errors


@dataclass
class JudgeConfig:
    """Advisory judgment: length window and duplicate cutoff."""
    min_length: int = 20
    max_length: int = 800
    duplicate_cutoff: float = 0.92
    probe_limit: int = 3

    def validate(self) -> List[str]:
        """Return list of validation error messages (empty = valid)."""
        errors: List[str] = []
        _check_range(errors, "judge.min_length",
                     self.min_length, 0, 100000, int)
        _check_range(errors, "judge.max_length",
                     self.max_length, self.min_length, 100000, int)
        _check_range(errors, "judge.duplicate_cutoff",
                     self.duplicate_cutoff, 0.0, 1.0, float)
        _check_range(errors, "judge.probe_limit",
                     self.probe_limit, 1, 100, int)
        return errors


@dataclass
class SearchConfig:
    """Interactive search tool defaults."""
    default_limit: int = 6

    def validate(self) -> List[str]:
        """Return list of validation error messages (empty = valid)."""
        errors: List[str] = []
        _check_range(errors, "search.default_limit",
                     self.default_limit, 1, 100, int)
        return errors


@dataclass
class NamedMemoryConfig:
    """Top-level namedmem configuration."""
    store: StoreConfig = field(default_factory=StoreConfig)
    ingest: IngestConfig = field(default_factory=IngestConfig)
    recall: RecallConfig = field(default_factory=RecallConfig)
    judge: JudgeConfig = field(default_factory=JudgeConfig)
    search: SearchConfig = field(default_factory=SearchConfig)

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> NamedMemoryConfig:
        """Build config from a nested dict (e.g. JSON)."""
        kwargs: Dict[str, Any] = {}
        if "store" in d:
            kwargs["store"] = StoreConfig(**d["store"])
        if "ingest" in d:
            kwargs["ingest"] = IngestConfig(**d["ingest"])
        if "recall" in d:
            kwargs["recall"] = RecallConfig(**d["recall"])
        if "judge" in d:
            kwargs["judge"] = JudgeConfig(**d["judge"])
        if "search" in d:
            kwargs["search"] = SearchConfig(**d["search"])
        return cls(**kwargs)

    def validate(self) -> List[str]:
        """Validate all config sections. Returns list of error messages."""
        errors: List[str] = []
        errors.extend(self.store.validate())
        errors.extend(self.ingest.validate())
        errors.extend(self.recall.validate())
        errors.extend(self.judge.validate())
        errors.extend(self.search.validate())
        return errors


def load_config(
    path: Optional[str] = None, *, strict: bool = False,
) -> NamedMemoryConfig:
    """Load config from a JSON file. Returns defaults if file missing/invalid.

    Args:
        path: Path to config.json. If None, returns compiled defaults.
        strict: If True, raise ValidationError on invalid config values.

    Returns:
        NamedMemoryConfig with values from file or defaults.

    Raises:
        ValidationError: If strict=True and config values are out of range.
    """
    if path is None:
        cfg = NamedMemoryConfig()
    else:
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = json.load(f)
            cfg = NamedMemoryConfig.from_dict(data)
        except (FileNotFoundError, json.JSONDecodeError, TypeError, KeyError):
            cfg = NamedMemoryConfig()

    if strict:
        errors = cfg.validate()
        if errors:
            raise ValidationError(
                f"Config validation failed: {'; '.join(errors)}"
            )

    return cfg
