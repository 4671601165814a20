"""Error taxonomy shared by the stores, the search index and the HTTP layer.

    WikiError
    ├── NotFoundError          document, draft, commit or tree entry absent   → 404
    ├── ConflictError          request is valid but cannot be applied          → 400
    │   ├── HasChildrenError   delete of a node that still has children
    │   ├── TargetExistsError  move/rename onto an occupied location
    │   ├── ParentMissingError create under a parent that does not exist
    │   └── InvalidTitleError  title cannot become a content file name
    └── VersionControlError    git failed or returned something unusable  → 500
"""

from __future__ import annotations


class WikiError(Exception):
    """Base class for every error raised by docwiki."""


class NotFoundError(WikiError):
    pass


class ConflictError(WikiError):
    pass


class HasChildrenError(ConflictError):
    def __init__(self, path: str) -> None:
        super().__init__(f"cannot delete document with children: {path}")
        self.path = path


class TargetExistsError(ConflictError):
    def __init__(self, path: str) -> None:
        super().__init__(f"target already exists: {path}")
        self.path = path


class ParentMissingError(ConflictError):
    def __init__(self, path: str) -> None:
        super().__init__(f"parent document does not exist: {path}")
        self.path = path


class InvalidTitleError(ConflictError):
    def __init__(self, title: str) -> None:
        super().__init__(f"invalid document title: {title!r}")
        self.title = title


class VersionControlError(WikiError):
    """A git command failed. Carries the command line and its stderr."""

    def __init__(self, message: str, args: list[str] | None = None, stderr: str = "") -> None:
        detail = f"{message}: {stderr.strip()}" if stderr.strip() else message
        super().__init__(detail)
        self.command = args or []
        self.stderr = stderr
