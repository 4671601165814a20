"""GitStore: TreeStore whose data directory is a git repository.

Every mutating TreeStore operation ends in a commit of the whole working
tree (`git add -A`), so the repository history is the document history.
Updates saved with commit=False (draft saves) stay in the working tree and
show up as uncommitted until the next commit.
"""

from __future__ import annotations

import logging
from pathlib import Path

from docwiki.errors import NotFoundError
from docwiki.git import GitRepo
from docwiki.history import DOCS_PREFIX, content_file_path, document_history
from docwiki.models import Document, HistoryEntry
from docwiki.store import CONTENT_SUFFIX, TreeStore, join_path, parent_path, split_path

logger = logging.getLogger("docwiki.gitstore")


class GitStore(TreeStore):
    """Document tree under data_dir/docs, versioned by a git repository at data_dir."""

    def __init__(self, data_dir: Path | str) -> None:
        self.data_dir = Path(data_dir)
        self.repo = GitRepo(self.data_dir)
        self.repo.ensure()
        super().__init__(self.data_dir / "docs")

    # ------------------------------------------------------------------
    # Commits
    # ------------------------------------------------------------------

    def commit_changes(self, message: str) -> str | None:
        """Commit everything pending. Returns the commit hash, None if nothing changed."""
        with self._lock:
            return self.repo.commit_all(message)

    def _commit(self, message: str) -> None:
        self.commit_changes(message)

    def _is_uncommitted(self, path: str, content_file: Path) -> bool:
        rel_dir = f"{DOCS_PREFIX}{path}/"
        return any(changed.startswith(rel_dir) for _code, changed in self.repo.status())

    # ------------------------------------------------------------------
    # History
    # ------------------------------------------------------------------

    def get_document_history(self, path: str) -> list[HistoryEntry]:
        path = "/".join(split_path(path))
        node_dir = self._node_dir(path)
        content_file = self._content_file(node_dir)
        if content_file is None:
            raise NotFoundError(f"document has no content file: {path}")
        file_path = content_file_path(path, self._title_of(content_file))
        return document_history(self.repo, file_path, set())

    def _historical_content(self, path: str, commit: str) -> tuple[str, str]:
        """(title, content) of the document at path as of commit."""
        directory = f"{DOCS_PREFIX}{path}"
        for entry in self.repo.ls_tree(commit, directory):
            if entry.type == "blob" and entry.name.endswith(CONTENT_SUFFIX):
                return entry.name[: -len(CONTENT_SUFFIX)], self.repo.read_blob(entry.sha)
        raise NotFoundError(f"no content file for {path} at {commit[:10]}")

    def get_historical_document(self, path: str, commit_id: str) -> Document:
        parts = split_path(path)
        if not parts:
            raise NotFoundError("the root is not a document")
        path = "/".join(parts)
        commit = self.repo.resolve_commit(commit_id)
        title, content = self._historical_content(path, commit)
        return Document(id=parts[-1], title=title, content=content, path=path)

    def restore_historical_document(
        self, current_path: str, original_path: str, commit_id: str
    ) -> Document:
        """Write the content (and title) original_path had at commit_id into current_path.

        A missing current node is recreated. Returns the live document, whose
        path changes if the restored title produces a different id.
        """
        original_path = "/".join(split_path(original_path))
        current_path = "/".join(split_path(current_path))
        if not current_path:
            raise NotFoundError("the root is not a document")
        with self._lock:
            commit = self.repo.resolve_commit(commit_id)
            title, content = self._historical_content(original_path, commit)

            node_dir = self._dir(current_path)
            if node_dir.is_dir():
                current_file = self._content_file(node_dir)
            else:
                node_dir.mkdir(parents=True)
                current_file = None

            new_file = node_dir / f"{title}{CONTENT_SUFFIX}"
            if current_file is not None and current_file.name != new_file.name:
                current_file.unlink()
            self._write_content(new_file, content)

            if current_file is not None and current_file.name != new_file.name:
                new_id = self._generate_id(node_dir.parent, title, current=node_dir.name)
                if new_id != node_dir.name:
                    node_dir.rename(node_dir.parent / new_id)
                    current_path = join_path(parent_path(current_path), new_id)

            self._commit(
                f"Restore document {current_path} to state from commit {commit_id} "
                f"(original path: {original_path})"
            )
            logger.info("restored %s from %s", current_path, commit[:10])
            return self.get_document(current_path)
