from __future__ import annotations

import json
import shutil
import tempfile
import threading
import unittest
import urllib.error
import urllib.parse
import urllib.request
from pathlib import Path
from typing import Any

from docwiki.drafts import DraftStore
from docwiki.gitstore import GitStore
from docwiki.metadata import MetadataStore
from docwiki.search import SearchIndex
from docwiki.store import TreeStore
from docwiki.web import WikiApp, make_server


class _ServerMixin:
    app: WikiApp

    def start_server(self, store: TreeStore) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        data = Path(self._tmp.name)
        index = SearchIndex()
        index.load_from_storage(store)
        self.app = WikiApp(
            store=store,
            index=index,
            drafts=DraftStore(data / "drafts"),
            meta=MetadataStore(data / "metadata.json", flush_minutes=0),
        )
        self.server = make_server(self.app, "127.0.0.1", 0)
        self.base = f"http://127.0.0.1:{self.server.server_address[1]}"
        self._thread = threading.Thread(target=self.server.serve_forever, daemon=True)
        self._thread.start()

    def stop_server(self) -> None:
        self.server.shutdown()
        self.server.server_close()
        self._thread.join()
        self.app.close()
        self._tmp.cleanup()

    def call(self, method: str, path: str, body: Any = None) -> tuple[int, Any]:
        data = json.dumps(body).encode() if body is not None else None
        request = urllib.request.Request(
            self.base + urllib.parse.quote(path, safe="/?=&"), data=data, method=method,
        )
        if data is not None:
            request.add_header("Content-Type", "application/json")
        try:
            with urllib.request.urlopen(request, timeout=10) as response:
                raw = response.read()
                return response.status, json.loads(raw) if raw else None
        except urllib.error.HTTPError as exc:
            raw = exc.read()
            return exc.code, json.loads(raw) if raw else None


@unittest.skipIf(shutil.which("git") is None, "git is required for the API tests")
class GitApiTests(_ServerMixin, unittest.TestCase):
    def setUp(self) -> None:
        self._data = tempfile.TemporaryDirectory()
        self.start_server(GitStore(Path(self._data.name) / "data"))

    def tearDown(self) -> None:
        self.stop_server()
        self._data.cleanup()

    def test_health(self) -> None:
        status, body = self.call("GET", "/api/health")
        self.assertEqual(status, 200)
        self.assertEqual(body, {"status": "ok", "documents": 0})

    def test_create_read_and_search(self) -> None:
        status, doc = self.call("POST", "/api/document", {"parentPath": "", "title": "Hello World!", "content": "greetings"})
        self.assertEqual(status, 200)
        self.assertEqual(doc["path"], "hello_world")
        status, again = self.call("POST", "/api/document", {"title": "Hello World!", "content": ""})
        self.assertEqual(again["path"], "hello_world(1)")

        status, roots = self.call("GET", "/api/documents")
        self.assertEqual([d["id"] for d in roots], ["hello_world", "hello_world(1)"])

        status, found = self.call("GET", "/api/search?q=world")
        self.assertEqual(status, 200)
        self.assertEqual([d["path"] for d in found["results"]], ["hello_world", "hello_world(1)"])
        self.assertEqual((found["total"], found["currentPage"], found["totalPages"]), (2, 1, 1))

        status, loaded = self.call("GET", "/api/document/hello_world")
        self.assertEqual((status, loaded["content"], loaded["favorite"]), (200, "greetings", False))
        status, viewed = self.call("GET", "/api/views/last")
        self.assertEqual([d["path"] for d in viewed], ["hello_world"])

    def test_create_under_missing_parent_falls_back_to_top_level(self) -> None:
        status, doc = self.call("POST", "/api/document", {"parentPath": "gone", "title": "Orphan"})
        self.assertEqual(status, 202)
        self.assertEqual(doc["path"], "orphan")

    def test_create_consumes_draft(self) -> None:
        status, _ = self.call("POST", "/api/draft", {"id": "d1", "title": "Draft", "content": "wip"})
        self.assertEqual(status, 204)
        status, drafts = self.call("GET", "/api/drafts")
        self.assertEqual([d["id"] for d in drafts], ["d1"])
        self.call("POST", "/api/document?draft=d1", {"title": "Draft", "content": "wip"})
        status, body = self.call("GET", "/api/draft/d1")
        self.assertEqual(status, 404)
        self.assertIn("error", body)

    def test_update_rename_keeps_index_and_favorites_in_sync(self) -> None:
        self.call("POST", "/api/document", {"title": "Parent", "content": "alpha"})
        self.call("POST", "/api/document", {"parentPath": "parent", "title": "Child", "content": "bravo"})
        self.assertEqual(self.call("POST", "/api/favorite", {"path": "parent/child"})[0], 204)

        status, doc = self.call("PUT", "/api/document/parent", {"title": "Renamed", "content": "alpha two"})
        self.assertEqual((status, doc["path"]), (200, "renamed"))

        _, found = self.call("GET", "/api/search?q=bravo")
        self.assertEqual([d["path"] for d in found["results"]], ["renamed/child"])
        _, favorites = self.call("GET", "/api/favorites")
        self.assertEqual([d["path"] for d in favorites], ["renamed/child"])

    def test_favorite_flag_does_not_leak_into_search_results(self) -> None:
        self.call("POST", "/api/document", {"title": "Notes", "content": "delta"})
        self.call("POST", "/api/favorite", {"path": "notes"})
        _, doc = self.call("PUT", "/api/document/notes", {"title": "Notes", "content": "delta two"})
        self.assertTrue(doc["favorite"])
        self.assertEqual(self.call("DELETE", "/api/favorite", {"path": "notes"})[0], 204)

        _, found = self.call("GET", "/api/search?q=delta")
        self.assertEqual([d["favorite"] for d in found["results"]], [False])
        _, loaded = self.call("GET", "/api/document/notes")
        self.assertFalse(loaded["favorite"])

    def test_uncommitted_save(self) -> None:
        self.call("POST", "/api/document", {"title": "Notes", "content": "one"})
        _, doc = self.call("PUT", "/api/document/notes", {"title": "Notes", "content": "two", "commit_changes": False})
        self.assertTrue(doc["uncommitted"])
        _, doc = self.call("PUT", "/api/document/notes", {"title": "Notes", "content": "three"})
        self.assertFalse(doc["uncommitted"])

    def test_move_and_delete(self) -> None:
        self.call("POST", "/api/document", {"title": "Source", "content": "charlie"})
        self.call("POST", "/api/document", {"title": "Target"})
        status, doc = self.call("POST", "/api/document/source/move", {"targetPath": "target"})
        self.assertEqual((status, doc["path"]), (200, "target/source"))
        _, found = self.call("GET", "/api/search?q=charlie")
        self.assertEqual([d["path"] for d in found["results"]], ["target/source"])

        status, body = self.call("DELETE", "/api/document/target")
        self.assertEqual(status, 400)
        self.assertIn("children", body["error"])
        self.assertEqual(self.call("DELETE", "/api/document/target/source")[0], 204)
        _, found = self.call("GET", "/api/search?q=charlie")
        self.assertEqual(found["total"], 0)

    def test_related(self) -> None:
        self.call("POST", "/api/document", {"title": "A"})
        self.call("POST", "/api/document", {"parentPath": "a", "title": "B"})
        status, related = self.call("GET", "/api/related/a/b")
        self.assertEqual(status, 200)
        self.assertEqual(sorted(related), ["a", "a/b", "root"])

    def test_history_and_restore(self) -> None:
        self.call("POST", "/api/document", {"title": "Doc", "content": "v1"})
        self.call("PUT", "/api/document/doc", {"title": "Doc", "content": "v2"})
        self.call("PUT", "/api/document/doc", {"title": "Doc", "content": "v3"})
        status, body = self.call("GET", "/api/history/tree/doc")
        self.assertEqual(status, 200)
        history = body["history"]
        self.assertEqual(len(history), 2)
        older = history[-1]["commitHash"]
        self.assertEqual(set(history[0]), {"commitHash", "date", "message", "added", "deleted", "filePath"})

        status, old = self.call("GET", f"/api/history/doc/doc/{older}")
        self.assertEqual((status, old["content"]), (200, "v2"))

        status, restored = self.call("POST", "/api/history/restore/doc", {"commitHash": older})
        self.assertEqual((status, restored["content"]), (200, "v2"))
        _, found = self.call("GET", "/api/search?q=v2")
        self.assertEqual([d["path"] for d in found["results"]], ["doc"])

    def test_error_statuses(self) -> None:
        self.assertEqual(self.call("GET", "/api/document/ghost")[0], 404)
        self.assertEqual(self.call("GET", "/api/search")[0], 400)
        self.assertEqual(self.call("POST", "/api/document", {"title": "a/b"})[0], 400)
        self.assertEqual(self.call("PUT", "/api/document/ghost", {"title": "X"})[0], 404)
        self.assertEqual(self.call("GET", "/api/unknown")[0], 404)
        self.call("POST", "/api/document", {"title": "Doc"})
        self.assertEqual(self.call("GET", "/api/history/doc/doc/not-a-hash")[0], 500)
        self.assertEqual(self.call("POST", "/api/history/restore/doc", {})[0], 400)

    def test_invalid_json_is_rejected(self) -> None:
        request = urllib.request.Request(self.base + "/api/document", data=b"{oops", method="POST")
        with self.assertRaises(urllib.error.HTTPError) as ctx:
            urllib.request.urlopen(request, timeout=10)
        self.assertEqual(ctx.exception.code, 400)


class PlainStoreApiTests(_ServerMixin, unittest.TestCase):
    def setUp(self) -> None:
        self._data = tempfile.TemporaryDirectory()
        self.start_server(TreeStore(Path(self._data.name) / "docs"))

    def tearDown(self) -> None:
        self.stop_server()
        self._data.cleanup()

    def test_history_is_not_implemented_without_git(self) -> None:
        self.call("POST", "/api/document", {"title": "Doc"})
        status, body = self.call("GET", "/api/history/tree/doc")
        self.assertEqual(status, 501)
        self.assertIn("error", body)
        self.assertEqual(self.call("POST", "/api/history/restore/doc", {"commitHash": "abcd"})[0], 501)


if __name__ == "__main__":
    unittest.main()
