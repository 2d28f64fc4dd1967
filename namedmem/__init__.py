"""
namedmem — named long-term memory stores for conversational agents.

Keeps one isolated store per name, gates which user messages are worth
persisting, and injects recency-weighted memories at session compaction.
"""

__version__ = "0.1.0"

from namedmem.types import MemoryRecord, RankedCandidate, Verdict, MemoryHandle
from namedmem.naming import sanitize_name, escape_query
from namedmem.config import NamedMemoryConfig, load_config
from namedmem.registry import SessionContext, StoreRegistry, ActivationResult
from namedmem.ingest import IngestGate
from namedmem.recall import RecallRanker
from namedmem.judge import JudgmentEvaluator
from namedmem.plugin import NamedMemoryPlugin

__all__ = [
    "__version__",
    "MemoryRecord",
    "RankedCandidate",
    "Verdict",
    "MemoryHandle",
    "sanitize_name",
    "escape_query",
    "NamedMemoryConfig",
    "load_config",
    "SessionContext",
    "StoreRegistry",
    "ActivationResult",
    "IngestGate",
    "RecallRanker",
    "JudgmentEvaluator",
    "NamedMemoryPlugin",
]
