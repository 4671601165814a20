"""TreeStore: the document tree as plain directories on disk.

Layout (relative to docs_dir):

    <id>/                     # a node; its id is the directory name
        <Title>.md            # exactly one content file, named after the title
        <child-id>/
            <Child Title>.md

A path is the "/"-joined chain of ids from the root, e.g. "guides/setup".
The empty path is the root, which holds top-level documents but is not a
document itself.

Ids are derived from titles (see slugify_title) and de-duplicated among
siblings with a "(n)" suffix. Every mutating operation runs under one
store-wide lock and ends with a _commit() hook, which is a no-op here and
a git commit in GitStore.
"""

from __future__ import annotations

import logging
import re
import shutil
import threading
from collections.abc import Iterator
from datetime import UTC, datetime
from pathlib import Path
from typing import Protocol, runtime_checkable

from unidecode import unidecode

from docwiki.errors import (
    ConflictError,
    HasChildrenError,
    InvalidTitleError,
    NotFoundError,
    ParentMissingError,
    TargetExistsError,
)
from docwiki.models import Document, HistoryEntry, ShortDocument

logger = logging.getLogger("docwiki.store")

CONTENT_SUFFIX = ".md"
ROOT_KEY = "root"

_WHITESPACE_RE = re.compile(r"\s")
_NON_ID_RE = re.compile(r"[^a-zA-Z0-9_]+")


@runtime_checkable
class Storage(Protocol):
    """Operations every document store provides."""

    def create_document(self, parent_path: str, title: str, content: str) -> Document: ...
    def update_document(self, path: str, title: str, content: str, commit: bool = True) -> Document: ...
    def delete_document(self, path: str) -> None: ...
    def move_document(self, source_path: str, target_path: str) -> str: ...
    def get_document(self, path: str) -> Document: ...
    def get_child_documents(self, path: str) -> list[ShortDocument]: ...
    def get_root_documents(self) -> list[ShortDocument]: ...
    def get_related_documents(self, path: str) -> dict[str, list[ShortDocument]]: ...


@runtime_checkable
class HistoryCapable(Protocol):
    """Optional capability: stores that keep version history."""

    def get_document_history(self, path: str) -> list[HistoryEntry]: ...
    def get_historical_document(self, path: str, commit_id: str) -> Document: ...
    def restore_historical_document(
        self, current_path: str, original_path: str, commit_id: str
    ) -> Document: ...


def slugify_title(title: str) -> str:
    """Transliterate to ASCII, whitespace to "_", drop the rest, lowercase.

    "Hello World!" -> "hello_world", "Привет мир" -> "privet_mir".
    """
    text = _WHITESPACE_RE.sub("_", unidecode(title))
    return _NON_ID_RE.sub("", text).lower()


def check_title(title: str) -> None:
    """Reject titles that cannot be used verbatim as a file name."""
    if not title or not title.strip() or title in (".", ".."):
        raise InvalidTitleError(title)
    if "/" in title or "\\" in title or "\x00" in title:
        raise InvalidTitleError(title)


def split_path(path: str) -> list[str]:
    """Split a document path into ids, rejecting anything that escapes the tree."""
    parts = [p for p in path.strip("/").split("/") if p] if path else []
    for part in parts:
        if part in (".", "..") or "\\" in part or "\x00" in part:
            raise NotFoundError(f"invalid document path: {path}")
    return parts


def join_path(parent: str, doc_id: str) -> str:
    parent = parent.strip("/")
    return f"{parent}/{doc_id}" if parent else doc_id


def parent_path(path: str) -> str:
    parts = split_path(path)
    return "/".join(parts[:-1])


class TreeStore:
    """Filesystem document tree without version history."""

    def __init__(self, docs_dir: Path | str) -> None:
        self.docs_dir = Path(docs_dir)
        self.docs_dir.mkdir(parents=True, exist_ok=True)
        self._lock = threading.RLock()

    # ------------------------------------------------------------------
    # Hooks for subclasses
    # ------------------------------------------------------------------

    def _commit(self, message: str) -> None:
        """Record a finished mutation. Plain trees keep no history."""

    def _is_uncommitted(self, path: str, content_file: Path) -> bool:
        return False

    # ------------------------------------------------------------------
    # Path helpers
    # ------------------------------------------------------------------

    def _dir(self, path: str) -> Path:
        return self.docs_dir.joinpath(*split_path(path))

    def _node_dir(self, path: str) -> Path:
        """Directory of an existing document, or NotFoundError."""
        if not split_path(path):
            raise NotFoundError("the root is not a document")
        node_dir = self._dir(path)
        if not node_dir.is_dir():
            raise NotFoundError(f"document not found: {path}")
        return node_dir

    @staticmethod
    def _content_file(node_dir: Path) -> Path | None:
        for entry in sorted(node_dir.iterdir()):
            if entry.is_file() and entry.name.endswith(CONTENT_SUFFIX):
                return entry
        return None

    @staticmethod
    def _title_of(content_file: Path | None) -> str:
        if content_file is None:
            return ""
        return content_file.name[: -len(CONTENT_SUFFIX)]

    @staticmethod
    def _subdirs(directory: Path) -> list[Path]:
        return sorted(
            (p for p in directory.iterdir() if p.is_dir() and not p.name.startswith(".")),
            key=lambda p: p.name,
        )

    def _generate_id(self, parent_dir: Path, title: str, current: str | None = None) -> str:
        """First free id among parent_dir's children: slug, slug(1), slug(2), ...

        current is the node's own id when renaming, so it never collides with itself.
        The id "root" names the top level in related listings and is never handed out.
        """
        base = slugify_title(title)
        candidate = base
        counter = 1
        while candidate != current and (
            not candidate or candidate == ROOT_KEY or (parent_dir / candidate).exists()
        ):
            candidate = f"{base}({counter})"
            counter += 1
        return candidate

    @staticmethod
    def _write_content(path: Path, content: str) -> None:
        path.write_bytes(content.encode("utf-8"))

    @staticmethod
    def _read_content(path: Path) -> str:
        return path.read_bytes().decode("utf-8", errors="replace")

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def _list(self, directory: Path, base_path: str) -> list[ShortDocument]:
        docs: list[ShortDocument] = []
        for child in self._subdirs(directory):
            docs.append(ShortDocument(
                id=child.name,
                title=self._title_of(self._content_file(child)),
                has_children=bool(self._subdirs(child)),
                path=join_path(base_path, child.name),
            ))
        return docs

    def get_root_documents(self) -> list[ShortDocument]:
        return self._list(self.docs_dir, "")

    def get_child_documents(self, path: str) -> list[ShortDocument]:
        directory = self._dir(path)
        if not directory.is_dir():
            raise NotFoundError(f"document not found: {path}")
        return self._list(directory, "/".join(split_path(path)))

    def get_document(self, path: str) -> Document:
        path = "/".join(split_path(path))
        node_dir = self._node_dir(path)
        content_file = self._content_file(node_dir)
        if content_file is None:
            raise NotFoundError(f"document has no content file: {path}")
        stat = content_file.stat()
        return Document(
            id=node_dir.name,
            title=self._title_of(content_file),
            content=self._read_content(content_file),
            path=path,
            children=self._list(node_dir, path),
            modified=datetime.fromtimestamp(stat.st_mtime, UTC),
            uncommitted=self._is_uncommitted(path, content_file),
        )

    def get_related_documents(self, path: str) -> dict[str, list[ShortDocument]]:
        """Children of every node on the way from the root to path.

        The result is keyed by the parent's path, "root" for the top level,
        and also carries path's own children under path.
        """
        parts = split_path(path)
        related: dict[str, list[ShortDocument]] = {ROOT_KEY: self.get_root_documents()}
        for i in range(1, len(parts) + 1):
            current = "/".join(parts[:i])
            related[current] = self.get_child_documents(current)
        return related

    def iter_documents(self, path: str = "") -> Iterator[Document]:
        """Depth-first walk yielding every document at or below path."""
        if split_path(path):
            yield self.get_document(path)
            children = self.get_child_documents(path)
        else:
            children = self.get_root_documents()
        for child in children:
            yield from self.iter_documents(child.path)

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def create_document(self, parent_path: str, title: str, content: str) -> Document:
        check_title(title)
        parent_path = "/".join(split_path(parent_path))
        with self._lock:
            parent_dir = self._dir(parent_path)
            if not parent_dir.is_dir():
                raise ParentMissingError(parent_path)
            doc_id = self._generate_id(parent_dir, title)
            node_dir = parent_dir / doc_id
            node_dir.mkdir()
            path = join_path(parent_path, doc_id)
            try:
                self._write_content(node_dir / f"{title}{CONTENT_SUFFIX}", content)
                self._commit(f"Create document: {path}")
            except Exception:
                shutil.rmtree(node_dir, ignore_errors=True)
                raise
            logger.info("created %s", path)
            return self.get_document(path)

    def update_document(self, path: str, title: str, content: str, commit: bool = True) -> Document:
        """Write new content; a changed title renames the content file and the node.

        Returns the document at its (possibly new) path.
        """
        check_title(title)
        with self._lock:
            node_dir = self._node_dir(path)
            path = "/".join(split_path(path))
            current = self._content_file(node_dir)
            new_file = node_dir / f"{title}{CONTENT_SUFFIX}"
            if current is not None and current.name != new_file.name:
                current.rename(new_file)
                new_id = self._generate_id(node_dir.parent, title, current=node_dir.name)
                if new_id != node_dir.name:
                    new_dir = node_dir.parent / new_id
                    node_dir.rename(new_dir)
                    node_dir = new_dir
                    path = join_path(parent_path(path), new_id)
                    new_file = node_dir / new_file.name
            self._write_content(new_file, content)
            if commit:
                self._commit(f"Update document: {path}")
            logger.info("updated %s", path)
            return self.get_document(path)

    def delete_document(self, path: str) -> None:
        with self._lock:
            node_dir = self._node_dir(path)
            if self._subdirs(node_dir):
                raise HasChildrenError(path)
            shutil.rmtree(node_dir)
            self._commit(f"Delete document: {path}")
            logger.info("deleted %s", path)

    def move_document(self, source_path: str, target_path: str) -> str:
        """Move a node (and its subtree) under target_path. Returns the new path.

        The id is kept; target_path "" moves to the top level.
        """
        source_path = "/".join(split_path(source_path))
        target_path = "/".join(split_path(target_path))
        with self._lock:
            target_dir = self._dir(target_path)
            if not target_dir.is_dir():
                raise ParentMissingError(target_path)
            source_dir = self._node_dir(source_path)
            destination = target_dir / source_dir.name
            if destination.exists():
                raise TargetExistsError(join_path(target_path, source_dir.name))
            if target_dir == source_dir or source_dir in target_dir.parents:
                raise ConflictError(f"cannot move {source_path} into itself")
            source_dir.rename(destination)
            new_path = join_path(target_path, source_dir.name)
            self._commit(f"Move document from {source_path} to {target_path or '/'}")
            logger.info("moved %s -> %s", source_path, new_path)
            return new_path
