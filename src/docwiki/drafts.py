"""DraftStore: unsaved editor state, one JSON file per draft under drafts_dir."""

from __future__ import annotations

import json
import logging
import re
import threading
from pathlib import Path

from docwiki.errors import NotFoundError
from docwiki.models import Draft

logger = logging.getLogger("docwiki.drafts")

_DRAFT_ID_RE = re.compile(r"[A-Za-z0-9_.\-]+")


def _check_id(draft_id: str) -> None:
    if not draft_id or draft_id in (".", "..") or not _DRAFT_ID_RE.fullmatch(draft_id):
        msg = f"invalid draft id: {draft_id!r}"
        raise ValueError(msg)


class DraftStore:
    def __init__(self, drafts_dir: Path | str) -> None:
        self.drafts_dir = Path(drafts_dir)
        self.drafts_dir.mkdir(parents=True, exist_ok=True)
        self._lock = threading.Lock()

    def _path(self, draft_id: str) -> Path:
        _check_id(draft_id)
        return self.drafts_dir / f"{draft_id}.json"

    def get(self, draft_id: str) -> Draft:
        path = self._path(draft_id)
        if not path.exists():
            raise NotFoundError(f"draft not found: {draft_id}")
        with path.open(encoding="utf-8") as f:
            return Draft.from_dict(json.load(f))

    def list_drafts(self) -> list[Draft]:
        """All readable drafts, newest first. Corrupt files are skipped."""
        drafts: list[Draft] = []
        for path in self.drafts_dir.glob("*.json"):
            try:
                with path.open(encoding="utf-8") as f:
                    drafts.append(Draft.from_dict(json.load(f)))
            except (json.JSONDecodeError, OSError, ValueError, AttributeError):
                logger.warning("skipping unreadable draft %s", path.name)
        drafts.sort(key=lambda d: d.created_at, reverse=True)
        return drafts

    def save(self, draft: Draft) -> Draft:
        """Write draft atomically, replacing any draft with the same id."""
        path = self._path(draft.id)
        tmp = path.with_suffix(".json.tmp")
        with self._lock:
            with tmp.open("w", encoding="utf-8") as f:
                json.dump(draft.to_dict(), f, indent=2, ensure_ascii=False)
            tmp.replace(path)
        return draft

    def delete(self, draft_id: str) -> None:
        path = self._path(draft_id)
        with self._lock:
            if not path.exists():
                raise NotFoundError(f"draft not found: {draft_id}")
            path.unlink()
