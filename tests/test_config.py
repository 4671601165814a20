from __future__ import annotations

import tempfile
import unittest
from pathlib import Path

from docwiki.config import init_config, load_config


class ConfigTests(unittest.TestCase):
    def test_defaults_without_config_file(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            root = Path(tmp)
            cfg = load_config(root)
            self.assertEqual(cfg.name, root.name)
            self.assertEqual(cfg.data_dir, root / "data")
            self.assertEqual(cfg.docs_dir, root / "data" / "docs")
            self.assertEqual(cfg.search.languages, ["english", "russian"])
            self.assertEqual((cfg.server.host, cfg.server.port), ("127.0.0.1", 8080))
            self.assertEqual(cfg.metadata.flush_minutes, 60)

    def test_values_are_read_from_wiki_toml(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            root = Path(tmp)
            (root / "wiki.toml").write_text(
                '[wiki]\nname = "team"\ndata_dir = "store"\n'
                '[search]\nlanguages = "english"\npage_size = 25\n'
                "[server]\nport = 9000\n"
                "[metadata]\nflush_minutes = 0\n"
            )
            cfg = load_config(root)
            self.assertEqual(cfg.name, "team")
            self.assertEqual(cfg.data_dir, root / "store")
            self.assertEqual(cfg.search.languages, ["english"])
            self.assertEqual(cfg.search.page_size, 25)
            self.assertEqual(cfg.server.port, 9000)
            self.assertEqual(cfg.metadata.flush_minutes, 0)

    def test_root_is_found_from_a_subdirectory(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            root = Path(tmp)
            init_config(root, name="found")
            nested = root / "a" / "b"
            nested.mkdir(parents=True)
            cfg = load_config(nested)
            self.assertEqual(cfg.root, root)
            self.assertEqual(cfg.name, "found")

    def test_init_refuses_to_overwrite(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            init_config(Path(tmp))
            with self.assertRaises(FileExistsError):
                init_config(Path(tmp))

    def test_ensure_dirs_writes_gitignore(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            cfg = load_config(Path(tmp))
            cfg.ensure_dirs()
            self.assertTrue(cfg.docs_dir.is_dir())
            self.assertTrue(cfg.drafts_dir.is_dir())
            ignored = (cfg.data_dir / ".gitignore").read_text().split()
            self.assertEqual(ignored, ["drafts/", "metadata.json"])


if __name__ == "__main__":
    unittest.main()
