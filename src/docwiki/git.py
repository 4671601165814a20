"""Thin wrapper around the git CLI for a single repository.

Every call runs `git -C <root>` with a fixed identity and settings that keep
output machine-readable:

    core.quotePath=false      non-ASCII paths are printed verbatim
    core.autocrlf=false       blobs round-trip byte for byte
    commit.gpgsign=false      commits never prompt
    GIT_LITERAL_PATHSPECS=1   titles containing * ? [ are not globs
    GIT_OPTIONAL_LOCKS=0      `status` never competes with a running commit

Any non-zero exit becomes VersionControlError unless the caller passes
check=False and inspects the result itself.
"""

from __future__ import annotations

import logging
import os
import re
import subprocess
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path

from docwiki.errors import NotFoundError, VersionControlError

logger = logging.getLogger("docwiki.git")

AUTHOR_NAME = "Document System"
AUTHOR_EMAIL = "docs@system"

_ZERO_SHA = "0" * 40
_COMMIT_ID_RE = re.compile(r"[0-9a-fA-F]{4,64}")
_TIMEOUT = 60


@dataclass
class CommitInfo:
    hash: str
    parents: list[str]
    date: datetime
    message: str


@dataclass
class TreeChange:
    """One file-level change between two trees (from `git diff-tree --raw`)."""

    path: str
    old_blob: str | None         # None when the file did not exist before
    new_blob: str | None         # None when the file no longer exists

    @property
    def is_addition(self) -> bool:
        return self.old_blob is None and self.new_blob is not None

    @property
    def is_deletion(self) -> bool:
        return self.old_blob is not None and self.new_blob is None


@dataclass
class TreeEntry:
    name: str
    type: str                    # blob | tree | commit
    sha: str


def _blob(sha: str) -> str | None:
    return None if sha.strip("0") == "" else sha


class GitRepo:
    """A git working tree rooted at root."""

    def __init__(self, root: Path | str) -> None:
        self.root = Path(root)
        self._env = {
            **os.environ,
            "GIT_AUTHOR_NAME": AUTHOR_NAME,
            "GIT_AUTHOR_EMAIL": AUTHOR_EMAIL,
            "GIT_COMMITTER_NAME": AUTHOR_NAME,
            "GIT_COMMITTER_EMAIL": AUTHOR_EMAIL,
            "GIT_LITERAL_PATHSPECS": "1",
            "GIT_OPTIONAL_LOCKS": "0",
            "GIT_TERMINAL_PROMPT": "0",
        }

    def _cmd(self, args: tuple[str, ...]) -> list[str]:
        return [
            "git", "-C", str(self.root),
            "-c", "core.quotePath=false",
            "-c", "core.autocrlf=false",
            "-c", "commit.gpgsign=false",
            *args,
        ]

    def run_bytes(self, *args: str, check: bool = True) -> subprocess.CompletedProcess[bytes]:
        cmd = self._cmd(args)
        try:
            result = subprocess.run(
                cmd, capture_output=True, env=self._env, check=False, timeout=_TIMEOUT,
            )
        except FileNotFoundError as exc:
            raise VersionControlError("git executable not found", cmd) from exc
        except subprocess.TimeoutExpired as exc:
            raise VersionControlError(f"git {args[0]} timed out", cmd) from exc
        if check and result.returncode != 0:
            stderr = result.stderr.decode("utf-8", errors="replace")
            logger.debug("git %s failed (%d): %s", " ".join(args), result.returncode, stderr)
            raise VersionControlError(f"git {args[0]} failed", cmd, stderr)
        return result

    def run(self, *args: str, check: bool = True) -> str:
        """Run a git command and return its stdout as text."""
        result = self.run_bytes(*args, check=check)
        return result.stdout.decode("utf-8", errors="replace")

    # ------------------------------------------------------------------
    # Repository
    # ------------------------------------------------------------------

    def ensure(self) -> bool:
        """Initialise the repository if root has none. Returns True if created."""
        self.root.mkdir(parents=True, exist_ok=True)
        if (self.root / ".git").exists():
            return False
        self.run("init", "-q")
        logger.info("initialised git repository at %s", self.root)
        return True

    def head(self) -> str | None:
        """Hash of HEAD, or None before the first commit."""
        result = self.run_bytes("rev-parse", "--verify", "-q", "HEAD", check=False)
        if result.returncode != 0:
            return None
        return result.stdout.decode().strip() or None

    def status(self) -> list[tuple[str, str]]:
        """(XY, path) for every changed or untracked file, paths relative to root."""
        out = self.run("status", "--porcelain=v1", "-z", "--untracked-files=all")
        records: list[tuple[str, str]] = []
        tokens = out.split("\0")
        i = 0
        while i < len(tokens):
            token = tokens[i]
            i += 1
            if len(token) < 4:
                continue
            code, path = token[:2], token[3:]
            records.append((code, path))
            # Renames and copies carry the original path as an extra token.
            if code[0] in "RC" or code[1] in "RC":
                i += 1
        return records

    def commit_all(self, message: str) -> str | None:
        """Stage everything and commit. Returns the new hash, or None if clean."""
        self.run("add", "-A")
        if not self.status():
            return None
        self.run("commit", "-q", "--no-verify", "-m", message)
        commit = self.head()
        logger.info("committed %s: %s", (commit or "")[:10], message)
        return commit

    # ------------------------------------------------------------------
    # History
    # ------------------------------------------------------------------

    def resolve_commit(self, commit_id: str) -> str:
        """Full hash for commit_id. Malformed ids are VersionControlError, unknown ones NotFoundError."""
        if not _COMMIT_ID_RE.fullmatch(commit_id):
            raise VersionControlError(f"invalid commit id: {commit_id!r}")
        result = self.run_bytes("rev-parse", "--verify", "-q", f"{commit_id}^{{commit}}", check=False)
        if result.returncode != 0:
            raise NotFoundError(f"commit not found: {commit_id}")
        return result.stdout.decode().strip()

    def log_paths(self, path: str, start: str | None = None) -> list[str]:
        """Hashes of commits touching path, newest first, walking back from start (or HEAD)."""
        rev = start or self.head()
        if rev is None:
            return []
        out = self.run("log", "--date-order", "--format=%H", rev, "--", path)
        return [line for line in out.splitlines() if line]

    def commit_info(self, rev: str) -> CommitInfo:
        out = self.run("show", "-s", "--format=%H%x00%P%x00%aI%x00%B", rev)
        fields = out.split("\0", 3)
        if len(fields) != 4:
            raise VersionControlError(f"unexpected commit format for {rev}")
        commit_hash, parents, date, message = fields
        return CommitInfo(
            hash=commit_hash.strip(),
            parents=parents.split(),
            date=datetime.fromisoformat(date.strip()),
            message=message.strip(),
        )

    def diff_tree(self, old: str, new: str) -> list[TreeChange]:
        """File-level changes from commit old to commit new, renames split into delete+add."""
        out = self.run("diff-tree", "-r", "-z", "--no-renames", old, new)
        changes: list[TreeChange] = []
        tokens = out.split("\0")
        i = 0
        while i < len(tokens):
            meta = tokens[i]
            i += 1
            if not meta.startswith(":") or i >= len(tokens):
                continue
            path = tokens[i]
            i += 1
            fields = meta[1:].split()
            if len(fields) < 5:
                raise VersionControlError(f"unexpected diff-tree record: {meta!r}")
            changes.append(TreeChange(path=path, old_blob=_blob(fields[2]), new_blob=_blob(fields[3])))
        return changes

    def numstat(self, old: str, new: str) -> tuple[int, int]:
        """Total (added, deleted) text lines between two commits. Binary files count zero."""
        out = self.run("diff-tree", "-r", "--numstat", "--no-renames", old, new)
        added = deleted = 0
        for line in out.splitlines():
            fields = line.split("\t", 2)
            if len(fields) < 3:
                continue
            if fields[0].isdigit():
                added += int(fields[0])
            if fields[1].isdigit():
                deleted += int(fields[1])
        return added, deleted

    def ls_tree(self, commit: str, directory: str) -> list[TreeEntry]:
        """Direct children of directory at commit. Missing directory is NotFoundError."""
        result = self.run_bytes("ls-tree", "-z", f"{commit}:{directory}", check=False)
        if result.returncode != 0:
            raise NotFoundError(f"{directory} not found at {commit[:10]}")
        entries: list[TreeEntry] = []
        for record in result.stdout.decode("utf-8", errors="replace").split("\0"):
            if not record:
                continue
            meta, _, name = record.partition("\t")
            fields = meta.split()
            if len(fields) != 3:
                raise VersionControlError(f"unexpected ls-tree record: {record!r}")
            entries.append(TreeEntry(name=name, type=fields[1], sha=fields[2]))
        return entries

    def read_blob(self, sha: str) -> str:
        return self.run_bytes("cat-file", "blob", sha).stdout.decode("utf-8", errors="replace")
