"""In-memory inverted index over stemmed words.

    index:     stem -> {document path -> occurrence count}
    documents: document path -> the Document as it was indexed

Text is split on whitespace, lowercased, stripped of surrounding punctuation
and stemmed with every configured snowball language, so "running" and
"бегущий" both land in the same index. A document scores the sum of its
counts over the query's stems; ties go to the lexicographically smaller
path.

Searches share the index (read lock); indexing and deletion are exclusive
(write lock) and never interleave with each other.
"""

from __future__ import annotations

import contextlib
import logging
import math
import threading
from collections.abc import Iterable, Iterator
from dataclasses import dataclass, field
from typing import Any

import snowballstemmer

from docwiki.errors import NotFoundError
from docwiki.models import Document, ShortDocument
from docwiki.store import Storage

logger = logging.getLogger("docwiki.search")

DEFAULT_LANGUAGES = ("english", "russian")
DEFAULT_PAGE_SIZE = 10
_TRIM_CHARS = ".,!?\"'()[]{}"


class ReadWriteLock:
    """Many readers or one writer. Waiting writers block new readers."""

    def __init__(self) -> None:
        self._cond = threading.Condition()
        self._readers = 0
        self._writer = False
        self._writers_waiting = 0

    @contextlib.contextmanager
    def read(self) -> Iterator[None]:
        with self._cond:
            while self._writer or self._writers_waiting:
                self._cond.wait()
            self._readers += 1
        try:
            yield
        finally:
            with self._cond:
                self._readers -= 1
                if not self._readers:
                    self._cond.notify_all()

    @contextlib.contextmanager
    def write(self) -> Iterator[None]:
        with self._cond:
            self._writers_waiting += 1
            try:
                while self._writer or self._readers:
                    self._cond.wait()
            finally:
                self._writers_waiting -= 1
            self._writer = True
        try:
            yield
        finally:
            with self._cond:
                self._writer = False
                self._cond.notify_all()


@dataclass
class SearchPage:
    results: list[Document] = field(default_factory=list)
    total: int = 0
    page: int = 1
    page_size: int = DEFAULT_PAGE_SIZE

    @property
    def total_pages(self) -> int:
        return math.ceil(self.total / self.page_size) if self.page_size else 0

    def to_dict(self) -> dict[str, object]:
        return {
            "results": [d.to_dict() for d in self.results],
            "total": self.total,
            "currentPage": self.page,
            "totalPages": self.total_pages,
            "pageSize": self.page_size,
        }


def tokenize(text: str) -> Iterator[str]:
    for word in text.split():
        word = word.lower().strip(_TRIM_CHARS)
        if word:
            yield word


class SearchIndex:
    """Stemmed inverted index, safe for concurrent readers and writers."""

    def __init__(self, languages: Iterable[str] = DEFAULT_LANGUAGES) -> None:
        self.languages: list[str] = []
        for lang in languages:
            if lang.lower() in snowballstemmer.algorithms():
                self.languages.append(lang.lower())
            else:
                logger.warning("no stemmer for language %r, skipping", lang)
        self._index: dict[str, dict[str, int]] = {}
        self._documents: dict[str, Document] = {}
        self._lock = ReadWriteLock()
        # Stemmer objects keep per-call state, so each thread gets its own.
        self._local = threading.local()

    @property
    def size(self) -> int:
        with self._lock.read():
            return len(self._documents)

    def _stemmers(self) -> list[Any]:
        stemmers = getattr(self._local, "stemmers", None)
        if stemmers is None:
            stemmers = [snowballstemmer.stemmer(lang) for lang in self.languages]
            self._local.stemmers = stemmers
        return stemmers

    def stems(self, text: str) -> list[str]:
        """One stem per (word, language); a word can contribute several."""
        stemmers = self._stemmers()
        result: list[str] = []
        for word in tokenize(text):
            for stemmer in stemmers:
                stem = stemmer.stemWord(word)
                if stem:
                    result.append(stem)
        return result

    @staticmethod
    def _text(doc: Document) -> str:
        return f"{doc.title} {doc.content}"

    # ------------------------------------------------------------------
    # Unlocked primitives; callers hold the write lock
    # ------------------------------------------------------------------

    def _add(self, doc: Document, stems: list[str]) -> None:
        self._documents[doc.path] = doc
        for stem in stems:
            bucket = self._index.setdefault(stem, {})
            bucket[doc.path] = bucket.get(doc.path, 0) + 1

    def _remove(self, path: str) -> bool:
        doc = self._documents.pop(path, None)
        if doc is None:
            return False
        for stem in set(self.stems(self._text(doc))):
            bucket = self._index.get(stem)
            if bucket is None:
                continue
            bucket.pop(path, None)
            if not bucket:
                del self._index[stem]
        return True

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def index_document(self, doc: Document) -> None:
        """Add doc, replacing whatever was indexed under the same path."""
        stems = self.stems(self._text(doc))
        with self._lock.write():
            self._remove(doc.path)
            self._add(doc, stems)

    def delete_document(self, path: str) -> bool:
        """Drop every entry for path. Returns False if it was not indexed."""
        with self._lock.write():
            return self._remove(path)

    def reindex_document(self, old_path: str, doc: Document) -> None:
        """Replace the entry for old_path with doc in one step (doc may live at a new path)."""
        stems = self.stems(self._text(doc))
        with self._lock.write():
            self._remove(old_path)
            self._remove(doc.path)
            self._add(doc, stems)

    def search(self, query: str, page: int = 1, page_size: int = DEFAULT_PAGE_SIZE) -> SearchPage:
        page = max(page, 1)
        if page_size < 1:
            page_size = DEFAULT_PAGE_SIZE
        stems = self.stems(query)
        with self._lock.read():
            scores: dict[str, int] = {}
            for stem in stems:
                for path, count in self._index.get(stem, {}).items():
                    scores[path] = scores.get(path, 0) + count
            ranked = sorted(scores.items(), key=lambda item: (-item[1], item[0]))
            start = (page - 1) * page_size
            results = [self._documents[path] for path, _ in ranked[start:start + page_size]]
        return SearchPage(results=results, total=len(ranked), page=page, page_size=page_size)

    def load_from_storage(self, store: Storage) -> int:
        """Index every document reachable from the root. Returns how many were indexed."""
        count = 0

        def _walk(children: list[ShortDocument]) -> None:
            nonlocal count
            for child in children:
                try:
                    self.index_document(store.get_document(child.path))
                    count += 1
                except NotFoundError:
                    logger.warning("skipping %s: no content file", child.path)
                if child.has_children:
                    _walk(store.get_child_documents(child.path))

        _walk(store.get_root_documents())
        logger.info("indexed %d documents", count)
        return count
