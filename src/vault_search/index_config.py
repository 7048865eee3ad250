"""
Configuration helpers for local index storage and indexing defaults.
"""

from __future__ import annotations

import os
from pathlib import Path


DEFAULT_DB_PATH = "~/.vault_search/index.duckdb"
ENV_DB_PATH = "VAULT_SEARCH_DB_PATH"

ENV_CHUNK_SIZE = "VAULT_SEARCH_CHUNK_SIZE"
ENV_CHUNK_OVERLAP = "VAULT_SEARCH_CHUNK_OVERLAP"
ENV_CACHE_EXPIRATION = "VAULT_SEARCH_CACHE_EXPIRATION"
ENV_MAX_WORKERS = "VAULT_SEARCH_MAX_WORKERS"

DEFAULT_CHUNK_SIZE = 512
DEFAULT_CHUNK_OVERLAP = 128
DEFAULT_CACHE_EXPIRATION = 24 * 60 * 60.0
DEFAULT_MAX_WORKERS = 4


def resolve_db_path(override_path: str | None = None) -> str:
    """
    Resolve the DuckDB path from CLI override, env var, or default.

    Precedence:
    1) explicit override_path
    2) VAULT_SEARCH_DB_PATH
    3) default path
    """
    raw_path = override_path or os.getenv(ENV_DB_PATH) or DEFAULT_DB_PATH
    resolved = Path(raw_path).expanduser().resolve()
    resolved.parent.mkdir(parents=True, exist_ok=True)
    return str(resolved)


def chunk_size() -> int:
    return int(os.getenv(ENV_CHUNK_SIZE, str(DEFAULT_CHUNK_SIZE)))


def chunk_overlap() -> int:
    return int(os.getenv(ENV_CHUNK_OVERLAP, str(DEFAULT_CHUNK_OVERLAP)))


def cache_expiration() -> float:
    """Freshness window for stored embeddings, in seconds."""
    return float(os.getenv(ENV_CACHE_EXPIRATION, str(DEFAULT_CACHE_EXPIRATION)))


def max_workers() -> int:
    return int(os.getenv(ENV_MAX_WORKERS, str(DEFAULT_MAX_WORKERS)))
