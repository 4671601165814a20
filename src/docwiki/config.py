"""WikiConfig: project-local config for a docwiki instance.

Default layout (all relative to the project root):

    wiki.toml             # project config
    data/                 # git repository (created on first start)
        .git/
        .gitignore        # auto-written: ignores drafts/ and metadata.json
        docs/             # the document tree, one directory per document
            <id>/
                <Title>.md
                <child-id>/
                    <Child Title>.md
        drafts/           # one JSON file per draft (not versioned)
        metadata.json     # favorites + recently viewed (not versioned)

wiki.toml example:

    [wiki]
    name = "team-notes"
    # data_dir = "data"        # default

    [search]
    languages = ["english", "russian"]
    page_size = 10

    [server]
    host = "127.0.0.1"
    port = 8080

    [metadata]
    flush_minutes = 60         # 0 disables the background flush
"""

from __future__ import annotations

import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

_CONFIG_FILENAME = "wiki.toml"
_DEFAULT_DATA_DIR = "data"
_GITIGNORE_CONTENT = "drafts/\nmetadata.json\n"
_DEFAULT_LANGUAGES = ["english", "russian"]


@dataclass
class SearchConfig:
    languages: list[str] = field(default_factory=lambda: list(_DEFAULT_LANGUAGES))
    page_size: int = 10


@dataclass
class ServerConfig:
    host: str = "127.0.0.1"
    port: int = 8080


@dataclass
class MetadataConfig:
    flush_minutes: int = 60


@dataclass
class WikiConfig:
    """Resolved configuration for a wiki project."""

    root: Path                      # directory that contains wiki.toml
    name: str = ""
    data_dir: Path = field(default_factory=Path)
    search: SearchConfig = field(default_factory=SearchConfig)
    server: ServerConfig = field(default_factory=ServerConfig)
    metadata: MetadataConfig = field(default_factory=MetadataConfig)

    @property
    def docs_dir(self) -> Path:
        return self.data_dir / "docs"

    @property
    def drafts_dir(self) -> Path:
        return self.data_dir / "drafts"

    @property
    def metadata_path(self) -> Path:
        return self.data_dir / "metadata.json"

    def ensure_dirs(self) -> None:
        """Create docs/ and drafts/ under data_dir if they don't exist."""
        self.docs_dir.mkdir(parents=True, exist_ok=True)
        self.drafts_dir.mkdir(parents=True, exist_ok=True)
        self._write_gitignore()

    def _write_gitignore(self) -> None:
        """Write data/.gitignore to keep drafts and metadata out of history."""
        gitignore = self.data_dir / ".gitignore"
        if not gitignore.exists():
            gitignore.write_text(_GITIGNORE_CONTENT)


def load_config(root: Path | str | None = None) -> WikiConfig:
    """Load wiki.toml from root (or search upward from cwd if root is None)."""
    root_path = _find_root(Path(root) if root else Path.cwd())
    config_path = root_path / _CONFIG_FILENAME

    raw: dict[str, Any] = {}
    if config_path.exists():
        with config_path.open("rb") as f:
            raw = tomllib.load(f)

    wiki_section = raw.get("wiki", {})
    srch_section = raw.get("search", {})
    srv_section = raw.get("server", {})
    meta_section = raw.get("metadata", {})

    languages = srch_section.get("languages", list(_DEFAULT_LANGUAGES))
    if isinstance(languages, str):
        languages = [languages]

    return WikiConfig(
        root=root_path,
        name=wiki_section.get("name", root_path.name),
        data_dir=root_path / wiki_section.get("data_dir", _DEFAULT_DATA_DIR),
        search=SearchConfig(
            languages=[str(lang) for lang in languages],
            page_size=int(srch_section.get("page_size", 10)),
        ),
        server=ServerConfig(
            host=str(srv_section.get("host", "127.0.0.1")),
            port=int(srv_section.get("port", 8080)),
        ),
        metadata=MetadataConfig(
            flush_minutes=int(meta_section.get("flush_minutes", 60)),
        ),
    )


def _find_root(start: Path) -> Path:
    """Walk upward from start looking for wiki.toml."""
    for directory in (start, *start.parents):
        if (directory / _CONFIG_FILENAME).exists():
            return directory
    return start


def init_config(root: Path, name: str | None = None) -> Path:
    """Write a default wiki.toml at root. Raises if already exists."""
    config_path = root / _CONFIG_FILENAME
    if config_path.exists():
        msg = f"wiki.toml already exists at {config_path}"
        raise FileExistsError(msg)

    project_name = name or root.name
    content = f"""\
[wiki]
name = "{project_name}"
# data_dir = "data"   # default: git repository holding docs/, drafts/, metadata.json

# [search]
# languages = ["english", "russian"]   # snowball stemmers applied to every word
# page_size = 10

# [server]
# host = "127.0.0.1"
# port = 8080

# [metadata]
# flush_minutes = 60   # how often favorites/recent views are written (0 = only on shutdown)
"""
    config_path.write_text(content)
    return config_path
