from __future__ import annotations

import shutil
import subprocess
import unittest
from pathlib import Path

from click.testing import CliRunner

from docwiki.cli import cli


@unittest.skipIf(shutil.which("git") is None, "git is required for CLI tests")
class CliTests(unittest.TestCase):
    def setUp(self) -> None:
        self.runner = CliRunner()

    def _invoke(self, *args: str, input: str | None = None) -> str:
        result = self.runner.invoke(cli, list(args), input=input, catch_exceptions=False)
        self.assertEqual(result.exit_code, 0, result.output)
        return result.output

    def test_init_create_show_tree(self) -> None:
        with self.runner.isolated_filesystem():
            out = self._invoke("init", "notes")
            self.assertIn("Created", out)
            self.assertTrue(Path("wiki.toml").exists())
            self.assertTrue(Path("data/.git").is_dir())
            self.assertIn("drafts/", Path("data/.gitignore").read_text())

            self.assertIn("Created guides", self._invoke("create", "Guides", "--content", "Start here"))
            self.assertIn(
                "Created guides/setup",
                self._invoke("create", "Setup", "--parent", "guides", "--file", "-", input="install it\n"),
            )

            shown = self._invoke("show", "guides/setup")
            self.assertIn("# Setup  [guides/setup]", shown)
            self.assertIn("install it", shown)

            tree = self._invoke("tree")
            self.assertIn("Guides", tree)
            self.assertIn("guides/setup", tree)

    def test_init_twice_is_harmless(self) -> None:
        with self.runner.isolated_filesystem():
            self._invoke("init")
            self.assertIn("already exists", self._invoke("init"))

    def test_search(self) -> None:
        with self.runner.isolated_filesystem():
            self._invoke("init")
            self._invoke("create", "Deployment", "--content", "deploying services")
            self._invoke("create", "Other", "--content", "nothing")
            out = self._invoke("search", "deploy")
            self.assertIn("deployment", out)
            self.assertNotIn("other", out)
            self.assertIn("No results", self._invoke("search", "zzzz"))

    def test_history_and_restore(self) -> None:
        with self.runner.isolated_filesystem():
            self._invoke("init")
            self._invoke("create", "Doc", "--content", "v1")
            self._invoke("create", "Other")
            first = subprocess.run(
                ["git", "-C", "data", "rev-parse", "HEAD"], capture_output=True, text=True, check=True,
            ).stdout.strip()
            Path("data/docs/doc/Doc.md").write_text("v2")
            subprocess.run(["git", "-C", "data", "add", "-A"], check=True)
            subprocess.run(
                ["git", "-C", "data", "-c", "user.name=t", "-c", "user.email=t@t", "commit", "-q", "-m", "edit"],
                check=True,
            )

            out = self._invoke("history", "doc")
            self.assertIn("edit", out)
            self.assertEqual(self._invoke("restore", "doc", first).strip(), f"Restored doc (Doc) from {first[:10]}")
            self.assertEqual(Path("data/docs/doc/Doc.md").read_text(), "v1")

    def test_missing_document_is_a_clean_error(self) -> None:
        with self.runner.isolated_filesystem():
            self._invoke("init")
            result = self.runner.invoke(cli, ["show", "ghost"])
            self.assertEqual(result.exit_code, 1)
            self.assertIn("document not found", result.output)


if __name__ == "__main__":
    unittest.main()
