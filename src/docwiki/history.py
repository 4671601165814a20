"""Reconstruct the lineage of one document across renames and moves.

git tracks content by path, but a document's path changes whenever its title
or parent changes. document_history() follows the content file backwards:

    1. list commits touching file_path, newest first (starting at `start`)
    2. skip the root commit; diff every other commit against its first parent
    3. a commit is relevant if it modifies a file, or adds/deletes a blob not
       seen before (the blob is then marked visited)
    4. if the tracked file was *added* in that commit, the document arrived
       from somewhere else: pick the origin among the deleted .md files of the
       same commit (same node id and title first, then identical blob, else
       the shallowest path) and recurse on it, starting from that commit

Both the visited blobs and the processed commits are shared by the whole
recursion, so no commit is reported twice and renames cannot loop.
"""

from __future__ import annotations

import logging
import posixpath

from docwiki.git import GitRepo, TreeChange
from docwiki.models import HistoryEntry
from docwiki.store import CONTENT_SUFFIX

logger = logging.getLogger("docwiki.history")

DOCS_PREFIX = "docs/"


def document_location(file_path: str) -> str:
    """Document path of a content file: "docs/a/b/Title.md" -> "a/b"."""
    rel = file_path[len(DOCS_PREFIX):] if file_path.startswith(DOCS_PREFIX) else file_path
    return posixpath.dirname(rel)


def content_file_path(doc_path: str, title: str) -> str:
    return f"{DOCS_PREFIX}{doc_path}/{title}{CONTENT_SUFFIX}"


def _is_content_file(path: str) -> bool:
    return path.startswith(DOCS_PREFIX) and path.endswith(CONTENT_SUFFIX)


def _tail(path: str) -> str:
    """Node id and content file name: "docs/a/b/Title.md" -> "b/Title.md"."""
    return "/".join(path.rsplit("/", 2)[-2:])


def _pick_origin(candidates: list[TreeChange], tracked: TreeChange) -> TreeChange:
    for change in candidates:
        if _tail(change.path) == _tail(tracked.path):
            return change
    for change in candidates:
        if change.old_blob == tracked.new_blob:
            return change
    return min(candidates, key=lambda c: (c.path.count("/"), c.path))


def _scan(changes: list[TreeChange], visited: set[str]) -> tuple[bool, list[TreeChange]]:
    """(relevant, origin candidates) for one commit's changes; marks blobs visited.

    Every deleted content file is a candidate, visited or not: a moved subtree
    often carries several files with the same blob.
    """
    relevant = False
    origins: list[TreeChange] = []
    # Deletions first, so an origin is claimed before its re-addition.
    for change in sorted(changes, key=lambda c: not c.is_deletion):
        if change.is_deletion:
            if _is_content_file(change.path):
                origins.append(change)
            if change.old_blob in visited:
                continue
            visited.add(change.old_blob)  # type: ignore[arg-type]
            relevant = True
        elif change.is_addition:
            if change.new_blob in visited:
                continue
            visited.add(change.new_blob)  # type: ignore[arg-type]
            relevant = True
        else:
            relevant = True
    return relevant, origins


def document_history(
    repo: GitRepo,
    file_path: str,
    visited: set[str],
    start: str | None = None,
    processed: set[str] | None = None,
) -> list[HistoryEntry]:
    """History entries for the content file at file_path, newest first.

    visited holds blob hashes already attributed, processed the commit hashes
    already emitted; pass fresh sets for a new walk.
    """
    if processed is None:
        processed = set()
    entries: list[HistoryEntry] = []
    for commit_hash in repo.log_paths(file_path, start=start):
        info = repo.commit_info(commit_hash)
        if not info.parents:
            continue
        parent = info.parents[0]
        changes = repo.diff_tree(parent, commit_hash)
        relevant, origins = _scan(changes, visited)
        if not relevant or info.hash in processed:
            continue
        processed.add(info.hash)

        added, deleted = repo.numstat(parent, commit_hash)
        entries.append(HistoryEntry(
            commit_hash=info.hash,
            date=info.date,
            message=info.message,
            added=added,
            deleted=deleted,
            file_path=document_location(file_path),
        ))

        tracked = next((c for c in changes if c.path == file_path and c.is_addition), None)
        if tracked is not None and origins:
            origin = _pick_origin(origins, tracked)
            logger.debug("%s arrived from %s in %s", file_path, origin.path, commit_hash[:10])
            entries.extend(
                document_history(repo, origin.path, visited, start=commit_hash, processed=processed)
            )
    return entries
