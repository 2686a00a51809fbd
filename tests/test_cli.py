"""
Tests for the mountfs CLI.
"""

import json
import tempfile
from pathlib import Path

import pytest
from click.testing import CliRunner

from mountfs.cli.main import cli


@pytest.fixture
def vault():
    """A vault directory with one note."""
    with tempfile.TemporaryDirectory() as tmpdir:
        root = Path(tmpdir) / "vault"
        root.mkdir()
        (root / "todo.md").write_text("- [ ] one\n")
        yield root


class TestCli:
    """Test CLI commands."""

    def test_read_json(self, vault):
        """Test reading a file with JSON output."""
        result = CliRunner().invoke(cli, ["--root", str(vault), "--json", "read", "vault/todo.md"])
        assert result.exit_code == 0
        payload = json.loads(result.output)
        assert payload["path"] == "vault/todo.md"
        assert payload["text"] == "1|- [ ] one\n2|"

    def test_write_dry_run(self, vault):
        """Test a dry-run edit leaves the file untouched."""
        result = CliRunner().invoke(
            cli,
            ["--root", str(vault), "write", "vault/todo.md", "--lines", "1", "--content", "- [x] one", "--dry-run"],
        )
        assert result.exit_code == 0
        assert (vault / "todo.md").read_text() == "- [ ] one\n"

    def test_error_exit_code(self, vault):
        """Test that failures exit non-zero with the error code."""
        result = CliRunner().invoke(cli, ["--root", str(vault), "read", "vault/missing.md"])
        assert result.exit_code == 1
        assert "NOT_FOUND" in result.output

    def test_tools(self, vault):
        """Test printing tool schemas."""
        result = CliRunner().invoke(cli, ["--root", str(vault), "tools"])
        assert result.exit_code == 0
        names = [s["function"]["name"] for s in json.loads(result.output)]
        assert names == ["fs_read", "fs_search", "fs_write", "fs_manage"]
