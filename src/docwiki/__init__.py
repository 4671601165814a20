"""Hierarchical Markdown wiki: directories on disk, history in git, search in memory.

Layout (under the configured data dir):
    .git/                     # every mutation is one commit
    docs/
        <id>/
            <Title>.md        # the document; the file name is its title
            <child-id>/
                <Title>.md
    drafts/<id>.json          # unsaved editor state (not versioned)
    metadata.json             # favorites + last viewed (not versioned)

Ids are ASCII slugs of the title ("Hello World!" -> hello_world), made unique
among siblings with "(1)", "(2)", ... suffixes. A document's path is the chain
of ids from the top level, e.g. "guides/setup".

Search is an inverted index of snowball stems (english + russian by default),
rebuilt from the tree at startup and kept in sync by the HTTP layer.
"""

from docwiki.config import WikiConfig, init_config, load_config
from docwiki.gitstore import GitStore
from docwiki.models import Document, Draft, HistoryEntry, ShortDocument
from docwiki.search import SearchIndex, SearchPage
from docwiki.store import HistoryCapable, Storage, TreeStore

__all__ = [
    "Document",
    "Draft",
    "GitStore",
    "HistoryCapable",
    "HistoryEntry",
    "SearchIndex",
    "SearchPage",
    "ShortDocument",
    "Storage",
    "TreeStore",
    "WikiConfig",
    "init_config",
    "load_config",
]
