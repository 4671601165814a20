"""Data models for documents, history entries and drafts.

JSON field names follow the wire format of the HTTP API (camelCase), the
Python attributes are snake_case.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


def _parse_iso(value: str | None) -> datetime | None:
    if not value:
        return None
    parsed = datetime.fromisoformat(value)
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=UTC)


@dataclass
class ShortDocument:
    """Listing entry: enough to render a tree row without reading content."""

    id: str
    title: str
    has_children: bool = False
    path: str = ""

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> ShortDocument:
        return cls(
            id=d.get("id", ""),
            title=d.get("title", ""),
            has_children=bool(d.get("hasChildren", False)),
            path=d.get("path", ""),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "hasChildren": self.has_children,
            "path": self.path,
        }


@dataclass
class Document:
    """A node of the document tree with its content loaded."""

    id: str
    title: str
    content: str = ""
    path: str = ""
    children: list[ShortDocument] = field(default_factory=list)
    modified: datetime | None = None
    uncommitted: bool = False            # working tree differs from HEAD (git stores only)
    favorite: bool = False               # filled in by the HTTP layer

    def to_short(self) -> ShortDocument:
        return ShortDocument(
            id=self.id, title=self.title, has_children=bool(self.children), path=self.path
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "content": self.content,
            "path": self.path,
            "children": [c.to_dict() for c in self.children],
            "modified": _iso(self.modified),
            "uncommitted": self.uncommitted,
            "favorite": self.favorite,
        }


@dataclass
class HistoryEntry:
    """One commit in the reconstructed lineage of a document."""

    commit_hash: str
    date: datetime
    message: str
    added: int = 0
    deleted: int = 0
    file_path: str = ""                  # document location at that commit

    def to_dict(self) -> dict[str, Any]:
        return {
            "commitHash": self.commit_hash,
            "date": self.date.isoformat(),
            "message": self.message,
            "added": self.added,
            "deleted": self.deleted,
            "filePath": self.file_path,
        }


@dataclass
class Draft:
    """Unsaved editor state, keyed by a client-chosen id."""

    id: str
    title: str = ""
    content: str = ""
    path: str = ""                       # parent path the draft will be created under
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> Draft:
        return cls(
            id=str(d.get("id", "")),
            title=d.get("title", ""),
            content=d.get("content", ""),
            path=d.get("path", ""),
            created_at=_parse_iso(d.get("createdAt")) or datetime.now(UTC),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "content": self.content,
            "path": self.path,
            "createdAt": _iso(self.created_at),
        }
