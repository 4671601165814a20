"""MetadataStore: favorites and recently viewed documents.

Kept in memory and written to metadata.json by a background thread every
flush interval (only when something changed) and once more on stop().

metadata.json layout:

    {
      "favorites":  [{"id": ..., "title": ..., "hasChildren": ..., "path": ...}, ...],
      "lastViewed": [ ...same shape, most recent first, at most five... ]
    }
"""

from __future__ import annotations

import json
import logging
import threading
from pathlib import Path
from typing import Any

from docwiki.models import ShortDocument

logger = logging.getLogger("docwiki.metadata")

MAX_LAST_VIEWED = 5


class MetadataStore:
    def __init__(self, path: Path | str, flush_minutes: float = 60) -> None:
        self.path = Path(path)
        self._lock = threading.Lock()
        self._favorites: list[ShortDocument] = []
        self._last_viewed: list[ShortDocument] = []
        self._changed = False
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None
        self._load()
        if flush_minutes > 0:
            self._thread = threading.Thread(
                target=self._run, args=(flush_minutes * 60,), name="metadata-flush", daemon=True,
            )
            self._thread.start()

    def _load(self) -> None:
        if not self.path.exists():
            return
        with self.path.open(encoding="utf-8") as f:
            raw: dict[str, Any] = json.load(f)
        self._favorites = [ShortDocument.from_dict(d) for d in raw.get("favorites", [])]
        self._last_viewed = [ShortDocument.from_dict(d) for d in raw.get("lastViewed", [])]
        del self._last_viewed[MAX_LAST_VIEWED:]

    def _run(self, interval: float) -> None:
        while not self._stop.wait(interval):
            try:
                self.flush()
            except OSError:
                logger.exception("failed to write %s", self.path)

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def save(self) -> None:
        """Atomically write metadata.json."""
        with self._lock:
            data = {
                "favorites": [d.to_dict() for d in self._favorites],
                "lastViewed": [d.to_dict() for d in self._last_viewed],
            }
            self.path.parent.mkdir(parents=True, exist_ok=True)
            tmp = self.path.with_suffix(".json.tmp")
            with tmp.open("w", encoding="utf-8") as f:
                json.dump(data, f, indent=2, ensure_ascii=False)
            tmp.replace(self.path)
            self._changed = False

    def flush(self) -> bool:
        """Save only if something changed since the last save. Returns True if written."""
        with self._lock:
            if not self._changed:
                return False
        self.save()
        logger.info("metadata flushed to %s", self.path)
        return True

    def stop(self) -> None:
        """Stop the flush thread and write pending changes. Safe to call twice."""
        if self._stop.is_set():
            return
        self._stop.set()
        if self._thread is not None:
            self._thread.join()
        self.flush()

    # ------------------------------------------------------------------
    # Favorites
    # ------------------------------------------------------------------

    def favorites(self) -> list[ShortDocument]:
        with self._lock:
            return list(self._favorites)

    def is_favorite(self, path: str) -> bool:
        with self._lock:
            return any(d.path == path for d in self._favorites)

    def add_favorite(self, doc: ShortDocument) -> None:
        with self._lock:
            if any(d.path == doc.path for d in self._favorites):
                return
            self._favorites.append(doc)
            self._changed = True

    def remove_favorite(self, path: str) -> bool:
        with self._lock:
            before = len(self._favorites)
            self._favorites = [d for d in self._favorites if d.path != path]
            removed = len(self._favorites) != before
            self._changed = self._changed or removed
            return removed

    # ------------------------------------------------------------------
    # Last viewed
    # ------------------------------------------------------------------

    def last_viewed(self) -> list[ShortDocument]:
        with self._lock:
            return list(self._last_viewed)

    def record_view(self, doc: ShortDocument) -> None:
        """Move doc to the front of the recently viewed list."""
        with self._lock:
            self._last_viewed = [d for d in self._last_viewed if d.path != doc.path]
            self._last_viewed.insert(0, doc)
            del self._last_viewed[MAX_LAST_VIEWED:]
            self._changed = True

    # ------------------------------------------------------------------
    # Tree changes
    # ------------------------------------------------------------------

    def forget(self, path: str) -> None:
        """Drop path from favorites and recently viewed (document deleted)."""
        with self._lock:
            favorites = [d for d in self._favorites if d.path != path]
            viewed = [d for d in self._last_viewed if d.path != path]
            if len(favorites) != len(self._favorites) or len(viewed) != len(self._last_viewed):
                self._favorites, self._last_viewed = favorites, viewed
                self._changed = True

    def relocate(self, old_path: str, new_path: str, title: str | None = None) -> None:
        """Rewrite references to old_path and its descendants after a move or rename."""
        prefix = old_path + "/"

        def _moved(doc: ShortDocument) -> ShortDocument:
            if doc.path == old_path:
                return ShortDocument(
                    id=new_path.rsplit("/", 1)[-1],
                    title=title if title is not None else doc.title,
                    has_children=doc.has_children,
                    path=new_path,
                )
            if doc.path.startswith(prefix):
                return ShortDocument(
                    id=doc.id, title=doc.title, has_children=doc.has_children,
                    path=new_path + "/" + doc.path[len(prefix):],
                )
            return doc

        with self._lock:
            favorites = [_moved(d) for d in self._favorites]
            viewed = [_moved(d) for d in self._last_viewed]
            if favorites != self._favorites or viewed != self._last_viewed:
                self._favorites, self._last_viewed = favorites, viewed
                self._changed = True
