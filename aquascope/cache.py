"""Gzipped JSON disk cache for computed Aquascope results."""

from __future__ import annotations

import gzip
import hashlib
import json
import sys
from dataclasses import dataclass, field
from os import PathLike
from pathlib import Path
from typing import Any

CACHE_PATH = ".aquascope-cache"


def _digest(key: Any) -> str:
    """Stable digest of a key: its ``cache_key()`` if it has one, else its JSON."""
    cache_key = getattr(key, "cache_key", None)
    raw = cache_key() if callable(cache_key) else json.dumps(
        key, sort_keys=True, separators=(",", ":")
    )
    return hashlib.sha256(raw.encode("utf-8")).hexdigest()


@dataclass
class Cache:
    """Maps key digests to JSON-serialisable values, persisted at ``path``."""

    path: Path
    entries: dict[str, Any] = field(default_factory=dict)
    dirty: bool = False

    def get(self, key: Any) -> Any | None:
        return self.entries.get(_digest(key))

    def set(self, key: Any, value: Any) -> None:
        self.entries[_digest(key)] = value
        self.dirty = True

    def save(self) -> None:
        """Write the cache to disk if anything changed since loading."""
        if not self.dirty:
            return
        data = json.dumps(self.entries, separators=(",", ":")).encode("utf-8")
        with open(self.path, "wb") as raw, gzip.GzipFile(
            fileobj=raw, mode="wb", compresslevel=9, mtime=0
        ) as encoder:
            encoder.write(data)
        self.dirty = False


def load_cache(path: str | PathLike[str] = CACHE_PATH) -> Cache:
    """Open the cache at ``path``, creating an empty file if there is none.

    An unreadable cache is reported on stderr and treated as empty.
    """
    path = Path(path)
    path.touch(exist_ok=True)
    entries: dict[str, Any] = {}
    if path.stat().st_size > 0:
        try:
            with gzip.open(path, "rt", encoding="utf-8") as decoder:
                loaded = json.load(decoder)
            if not isinstance(loaded, dict):
                raise ValueError("cache contents are not a JSON object")
            entries = loaded
        except (OSError, EOFError, ValueError) as exc:
            print(f"Warning: failed to read Aquascope cache with error {exc}", file=sys.stderr)
    return Cache(path=path, entries=entries)