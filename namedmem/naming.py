"""
Store naming and query escaping.

Two pure helpers sit at the edges of the layer:
  1. sanitize_name() — turn a user-supplied store name into a canonical token.
  2. escape_query() — make free text safe to hand to an FTS5-style search
     substrate as a single phrase term.

Both are total functions: every string input yields a valid output.
"""

from __future__ import annotations

import re

DEFAULT_STORE_NAME = "default"
STORE_FILE_PREFIX = "named-memory-"
STORE_FILE_SUFFIX = ".db"

_NON_ALNUM_RE = re.compile(r"[^a-z0-9]+")


# ── Store names ─────────────────────────────────────────────────────────

def sanitize_name(raw: str) -> str:
    """Canonicalize a store name.

    Lowercase, trim, collapse every run of non-alphanumeric characters into a
    single hyphen and strip hyphens at both ends. Falls back to ``"default"``
    when nothing survives.

    Examples:
        >>> sanitize_name("Richard's Work!!")
        'richard-s-work'
        >>> sanitize_name("   ")
        'default'
    """
    token = _NON_ALNUM_RE.sub("-", raw.lower().strip()).strip("-")
    return token or DEFAULT_STORE_NAME


def store_filename(token: str, prefix: str = STORE_FILE_PREFIX) -> str:
    """File name of the store backing a canonical token."""
    return f"{prefix}{token}{STORE_FILE_SUFFIX}"


# ── Query escaping ──────────────────────────────────────────────────────

def escape_query(query: str) -> str:
    """Escape free text as one quoted phrase.

    Single quotes are doubled, then the whole text is wrapped in double
    quotes so that operators such as ``-``, ``*`` or ``OR`` are read as
    literal content.

    Examples:
        >>> escape_query("O'Brien")
        '"O\\'\\'Brien"'
    """
    return '"' + query.replace("'", "''") + '"'


def unescape_query(query: str) -> str:
    """Recover the literal text from an escape_query() result.

    Input that does not look escaped is returned unchanged.
    """
    if len(query) >= 2 and query.startswith('"') and query.endswith('"'):
        return query[1:-1].replace("''", "'")
    return query
