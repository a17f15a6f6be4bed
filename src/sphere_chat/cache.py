"""
Analysis cache: memoizes (kind, text, target_language) -> result.

Caching is a performance optimization only: a failed read or write behaves
like a miss and is never raised to the caller. Entries never expire.
The file cache keeps puts in memory and writes them out on flush(), which the
client runs off the event loop when it closes.
"""

import json
import logging
from pathlib import Path
from typing import Any, Optional, Protocol

logger = logging.getLogger(__name__)

CacheKey = tuple[str, str, Optional[str]]


def cache_key(kind: str, text: str, target_language: Optional[str] = None) -> CacheKey:
    return (kind, text, target_language)


def _encode_key(key: CacheKey) -> str:
    return json.dumps(list(key), ensure_ascii=False)


class AnalysisCache(Protocol):
    def get(self, key: CacheKey) -> Optional[Any]: ...

    def put(self, key: CacheKey, value: Any) -> None: ...

    def flush(self) -> None: ...


class InMemoryAnalysisCache:
    """Process-local dict. Concurrent puts of one key: last write wins."""

    def __init__(self) -> None:
        self._entries: dict[CacheKey, Any] = {}

    def get(self, key: CacheKey) -> Optional[Any]:
        return self._entries.get(key)

    def put(self, key: CacheKey, value: Any) -> None:
        self._entries[key] = value

    def flush(self) -> None:
        pass

    def __len__(self) -> int:
        return len(self._entries)


class FileAnalysisCache(InMemoryAnalysisCache):
    """In-memory cache mirrored to a JSON file, best effort.

    The file is read once on construction and rewritten by flush() when there
    are unsaved puts. Values must be JSON-serializable.
    """

    def __init__(self, path: Path) -> None:
        super().__init__()
        self._path = Path(path)
        self._dirty = False
        self._load()

    def _load(self) -> None:
        try:
            raw = json.loads(self._path.read_text())
        except FileNotFoundError:
            return
        except (OSError, ValueError) as e:
            logger.debug("Ignoring unreadable analysis cache %s: %s", self._path, e)
            return
        if not isinstance(raw, dict):
            return
        for encoded, value in raw.items():
            try:
                kind, text, target = json.loads(encoded)
            except (ValueError, TypeError):
                continue
            self._entries[(kind, text, target)] = value

    def put(self, key: CacheKey, value: Any) -> None:
        super().put(key, value)
        self._dirty = True

    def flush(self) -> None:
        if not self._dirty:
            return
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            payload = {_encode_key(k): v for k, v in self._entries.items()}
            self._path.write_text(json.dumps(payload, ensure_ascii=False))
            self._dirty = False
        except (OSError, TypeError, ValueError) as e:
            logger.debug("Analysis cache not persisted to %s: %s", self._path, e)
