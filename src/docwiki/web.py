"""JSON HTTP API for the wiki.

Routes (all JSON):
    GET    /api/documents                      → top-level documents
    GET    /api/documents/<path>               → children of <path>
    GET    /api/document/<path>                → document (records a view)
    POST   /api/document[?draft=<id>]          → create {parentPath, title, content}
    PUT    /api/document/<path>                → update {title, content, commit_changes}
    DELETE /api/document/<path>                → delete (leaf only)
    POST   /api/document/<path>/move           → move {targetPath}
    GET    /api/related/<path>                 → children of every ancestor
    GET    /api/search?q=&page=&pageSize=      → ranked, paginated results
    GET    /api/history/tree/<path>            → {history: [...]}
    GET    /api/history/doc/<path>/<commit>    → document as of commit
    POST   /api/history/restore/<path>         → restore {commitHash, originalPath}
    GET    /api/drafts, /api/draft/<id>        → drafts
    POST   /api/draft                          → upsert draft
    DELETE /api/draft/<id>                     → delete draft
    GET    /api/views/last                     → recently viewed
    GET    /api/favorites                      → favorites
    POST   /api/favorite, DELETE /api/favorite → {path} add/remove
    GET    /api/health                         → {status, documents}

Errors are {"error": message}: 404 not found, 400 conflict or bad input,
501 history on a store without it, 500 git or filesystem failure.
"""

from __future__ import annotations

import dataclasses
import json
import logging
import socketserver
import urllib.parse
from http.server import BaseHTTPRequestHandler, HTTPServer
from typing import TYPE_CHECKING, Any

from docwiki.drafts import DraftStore
from docwiki.errors import (
    ConflictError,
    NotFoundError,
    ParentMissingError,
    VersionControlError,
)
from docwiki.gitstore import GitStore
from docwiki.metadata import MetadataStore
from docwiki.models import Document, Draft
from docwiki.search import SearchIndex
from docwiki.store import HistoryCapable, TreeStore

if TYPE_CHECKING:
    from docwiki.config import WikiConfig

logger = logging.getLogger("docwiki.web")


# ─── Application state ────────────────────────────────────────────────────────

class WikiApp:
    """Store, index, drafts and metadata wired together; shared by all request threads."""

    def __init__(
        self,
        store: TreeStore,
        index: SearchIndex,
        drafts: DraftStore,
        meta: MetadataStore,
        page_size: int = 10,
    ) -> None:
        self.store = store
        self.index = index
        self.drafts = drafts
        self.meta = meta
        self.page_size = page_size

    @classmethod
    def from_config(cls, cfg: WikiConfig) -> WikiApp:
        cfg.ensure_dirs()
        store = GitStore(cfg.data_dir)
        index = SearchIndex(cfg.search.languages)
        index.load_from_storage(store)
        return cls(
            store=store,
            index=index,
            drafts=DraftStore(cfg.drafts_dir),
            meta=MetadataStore(cfg.metadata_path, cfg.metadata.flush_minutes),
            page_size=cfg.search.page_size,
        )

    def close(self) -> None:
        self.meta.stop()

    def with_favorite(self, doc: Document) -> Document:
        """Copy of doc with its favorite flag set; the indexed instance stays untouched."""
        return dataclasses.replace(doc, favorite=self.meta.is_favorite(doc.path))

    def relocated(self, old_path: str, doc: Document) -> None:
        """Bring index and metadata in line after doc (and its subtree) changed path or title."""
        if doc.path == old_path:
            self.index.index_document(doc)
        else:
            for moved in self.store.iter_documents(doc.path):
                self.index.reindex_document(old_path + moved.path[len(doc.path):], moved)
        self.meta.relocate(old_path, doc.path, doc.title)


# ─── HTTP handler ─────────────────────────────────────────────────────────────

class _Handler(BaseHTTPRequestHandler):
    app: WikiApp  # injected via make_handler()

    def log_message(self, format: str, *args: object) -> None:  # noqa: A002
        pass  # suppress per-request logging

    def _send_json(self, data: Any, status: int = 200) -> None:
        body = json.dumps(data, ensure_ascii=False).encode()
        self.send_response(status)
        self.send_header("Content-Type", "application/json; charset=utf-8")
        self.send_header("Content-Length", str(len(body)))
        self.end_headers()
        self.wfile.write(body)

    def _send_error(self, status: int, message: str) -> None:
        self._send_json({"error": message}, status)

    def _no_content(self) -> None:
        self.send_response(204)
        self.send_header("Content-Length", "0")
        self.end_headers()

    def _read_json(self) -> dict[str, Any] | None:
        length = int(self.headers.get("Content-Length", 0))
        if length == 0:
            return {}
        try:
            data = json.loads(self.rfile.read(length))
        except (json.JSONDecodeError, ValueError):
            return None
        return data if isinstance(data, dict) else None

    def _route(self, method: str) -> None:
        parsed = urllib.parse.urlparse(self.path)
        path = urllib.parse.unquote(parsed.path)
        qs = urllib.parse.parse_qs(parsed.query)
        try:
            handled = getattr(self, f"_{method.lower()}")(path, qs)
            if not handled:
                self._send_error(404, "not found")
        except NotFoundError as exc:
            self._send_error(404, str(exc))
        except ConflictError as exc:
            self._send_error(400, str(exc))
        except ValueError as exc:
            self._send_error(400, str(exc))
        except (VersionControlError, OSError) as exc:
            logger.exception("%s %s failed", method, path)
            self._send_error(500, str(exc))

    def do_GET(self) -> None:
        self._route("GET")

    def do_POST(self) -> None:
        self._route("POST")

    def do_PUT(self) -> None:
        self._route("PUT")

    def do_DELETE(self) -> None:
        self._route("DELETE")

    def _body(self) -> dict[str, Any]:
        body = self._read_json()
        if body is None:
            msg = "invalid JSON body"
            raise ValueError(msg)
        return body

    def _history_store(self) -> HistoryCapable | None:
        store = self.app.store
        if isinstance(store, HistoryCapable):
            return store
        self._send_error(501, "document history is not supported by this store")
        return None

    # ------------------------------------------------------------------
    # GET
    # ------------------------------------------------------------------

    def _get(self, path: str, qs: dict[str, list[str]]) -> bool:
        app = self.app
        if path == "/api/health":
            self._send_json({"status": "ok", "documents": app.index.size})
        elif path in ("/api/documents", "/api/documents/"):
            self._send_json([d.to_dict() for d in app.store.get_root_documents()])
        elif path.startswith("/api/documents/"):
            children = app.store.get_child_documents(path[len("/api/documents/"):])
            self._send_json([d.to_dict() for d in children])
        elif path.startswith("/api/document/"):
            doc = app.with_favorite(app.store.get_document(path[len("/api/document/"):]))
            app.meta.record_view(doc.to_short())
            self._send_json(doc.to_dict())
        elif path.startswith("/api/related/"):
            related = app.store.get_related_documents(path[len("/api/related/"):])
            self._send_json({k: [d.to_dict() for d in v] for k, v in related.items()})
        elif path == "/api/search":
            self._search(qs)
        elif path.startswith("/api/history/tree/"):
            store = self._history_store()
            if store is not None:
                history = store.get_document_history(path[len("/api/history/tree/"):])
                self._send_json({"history": [h.to_dict() for h in history]})
        elif path.startswith("/api/history/doc/"):
            store = self._history_store()
            if store is not None:
                doc_path, _, commit = path[len("/api/history/doc/"):].rpartition("/")
                if not doc_path or not commit:
                    raise NotFoundError("expected /api/history/doc/<path>/<commit>")
                self._send_json(store.get_historical_document(doc_path, commit).to_dict())
        elif path == "/api/drafts":
            self._send_json([d.to_dict() for d in app.drafts.list_drafts()])
        elif path.startswith("/api/draft/"):
            self._send_json(app.drafts.get(path[len("/api/draft/"):]).to_dict())
        elif path == "/api/views/last":
            self._send_json([d.to_dict() for d in app.meta.last_viewed()])
        elif path == "/api/favorites":
            self._send_json([d.to_dict() for d in app.meta.favorites()])
        else:
            return False
        return True

    def _search(self, qs: dict[str, list[str]]) -> None:
        query = qs.get("q", [""])[0]
        if not query.strip():
            self._send_error(400, "query parameter q is required")
            return
        page = int(qs.get("page", ["1"])[0] or 1)
        page_size = int(qs.get("pageSize", [str(self.app.page_size)])[0] or self.app.page_size)
        self._send_json(self.app.index.search(query, page, page_size).to_dict())

    # ------------------------------------------------------------------
    # POST
    # ------------------------------------------------------------------

    def _post(self, path: str, qs: dict[str, list[str]]) -> bool:
        if path == "/api/document":
            self._create(self._body(), qs.get("draft", [""])[0])
        elif path.startswith("/api/document/") and path.endswith("/move"):
            self._move(path[len("/api/document/"):-len("/move")], self._body())
        elif path.startswith("/api/history/restore/"):
            self._restore(path[len("/api/history/restore/"):], self._body())
        elif path == "/api/draft":
            self.app.drafts.save(Draft.from_dict(self._body()))
            self._no_content()
        elif path == "/api/favorite":
            doc = self.app.store.get_document(self._required(self._body(), "path"))
            self.app.meta.add_favorite(doc.to_short())
            self._no_content()
        else:
            return False
        return True

    @staticmethod
    def _required(body: dict[str, Any], key: str) -> str:
        value = body.get(key)
        if not isinstance(value, str) or not value:
            msg = f"{key} is required"
            raise ValueError(msg)
        return value

    def _create(self, body: dict[str, Any], draft_id: str) -> None:
        app = self.app
        parent = str(body.get("parentPath", ""))
        title = str(body.get("title", ""))
        content = str(body.get("content", ""))
        status = 200
        try:
            doc = app.store.create_document(parent, title, content)
        except ParentMissingError:
            logger.warning("parent %s is gone, creating %r at the top level", parent, title)
            doc = app.store.create_document("", title, content)
            status = 202
        app.index.index_document(doc)
        if draft_id:
            try:
                app.drafts.delete(draft_id)
            except NotFoundError:
                logger.warning("draft %s already gone after creating %s", draft_id, doc.path)
        self._send_json(app.with_favorite(doc).to_dict(), status)

    def _move(self, source: str, body: dict[str, Any]) -> None:
        app = self.app
        new_path = app.store.move_document(source, str(body.get("targetPath", "")))
        doc = app.store.get_document(new_path)
        app.relocated(source.strip("/"), doc)
        self._send_json(app.with_favorite(doc).to_dict())

    def _restore(self, current: str, body: dict[str, Any]) -> None:
        store = self._history_store()
        if store is None:
            return
        commit = self._required(body, "commitHash")
        original = str(body.get("originalPath") or current)
        doc = store.restore_historical_document(current, original, commit)
        self.app.relocated(current.strip("/"), doc)
        self._send_json(self.app.with_favorite(doc).to_dict())

    # ------------------------------------------------------------------
    # PUT / DELETE
    # ------------------------------------------------------------------

    def _put(self, path: str, qs: dict[str, list[str]]) -> bool:
        if not path.startswith("/api/document/"):
            return False
        app = self.app
        doc_path = path[len("/api/document/"):].strip("/")
        body = self._body()
        doc = app.store.update_document(
            doc_path,
            self._required(body, "title"),
            str(body.get("content", "")),
            commit=bool(body.get("commit_changes", True)),
        )
        app.relocated(doc_path, doc)
        self._send_json(app.with_favorite(doc).to_dict())
        return True

    def _delete(self, path: str, qs: dict[str, list[str]]) -> bool:
        app = self.app
        if path.startswith("/api/document/"):
            doc_path = path[len("/api/document/"):].strip("/")
            app.store.delete_document(doc_path)
            app.index.delete_document(doc_path)
            app.meta.forget(doc_path)
        elif path.startswith("/api/draft/"):
            app.drafts.delete(path[len("/api/draft/"):])
        elif path == "/api/favorite":
            app.meta.remove_favorite(self._required(self._body(), "path"))
        else:
            return False
        self._no_content()
        return True


class _ThreadingHTTPServer(socketserver.ThreadingMixIn, HTTPServer):
    daemon_threads = True


def make_handler(app: WikiApp) -> type[_Handler]:
    class _Bound(_Handler):
        pass
    _Bound.app = app
    return _Bound


def make_server(app: WikiApp, host: str, port: int) -> _ThreadingHTTPServer:
    return _ThreadingHTTPServer((host, port), make_handler(app))


def serve(cfg: WikiConfig, host: str, port: int) -> None:
    """Start the API server (blocking until Ctrl+C)."""
    app = WikiApp.from_config(cfg)
    server = make_server(app, host, port)
    logger.info("serving %s with %d documents indexed", cfg.data_dir, app.index.size)
    print(f"docwiki  →  http://{host}:{port}/api  (Ctrl+C to stop)")
    try:
        server.serve_forever()
    except KeyboardInterrupt:
        pass
    finally:
        server.server_close()
        app.close()

