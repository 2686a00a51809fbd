"""
Tests for filename and content search across mounts.
"""

import asyncio
import tempfile
from pathlib import Path

import pytest

from mountfs.filesystem import (
    FileIndexCache,
    FileSystemAccessConfig,
    Mount,
    MountedSearchTools,
    NotFoundError,
    OperationCancelledError,
    PathError,
    PathResolver,
    SearchOptions,
    UnsafeRegexError,
)


@pytest.fixture
def temp_dir():
    """Create a temporary directory for testing."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def config(temp_dir):
    """Two mounts with Markdown and code files."""
    vault = temp_dir / "vault"
    code = temp_dir / "code"
    (vault / "projects").mkdir(parents=True)
    (code / "src").mkdir(parents=True)
    (vault / "todo.md").write_text("# Todo\n- [ ] write tests\n- [x] ship it\nTODO later\n")
    (vault / "projects" / "alpha.md").write_text("Alpha notes\n- [ ] review alpha\n")
    (code / "src" / "main.py").write_text("def main():\n    # TODO: wire up\n    return 0\n")
    (code / "src" / "data.bin").write_bytes(b"\x00TODO\x00")
    return FileSystemAccessConfig(
        mounts=[
            Mount(name="vault", absolute_path=str(vault)),
            Mount(name="code", absolute_path=str(code)),
        ],
        search_concurrency=2,
    )


@pytest.fixture
def search(config):
    """Create a MountedSearchTools instance."""
    return MountedSearchTools(config, PathResolver(config.mounts), FileIndexCache())


class TestContentSearch:
    """Test content search."""

    @pytest.mark.asyncio
    async def test_search_all_mounts(self, search):
        """Test a literal, case-insensitive search from the root."""
        report = await search.search(".", "todo", target="content")
        found = [(m.path, m.line) for m in report.content]
        assert found == [
            ("code/src/main.py", 2),
            ("vault/todo.md", 1),
            ("vault/todo.md", 4),
        ]
        assert report.files_scanned == 4
        assert not report.truncated

    @pytest.mark.asyncio
    async def test_match_text_and_column(self, search):
        """Test that the stripped line and column are reported."""
        report = await search.search("code", "TODO", target="content", case_insensitive=False)
        [match] = report.content
        assert match.text == "# TODO: wire up"
        assert match.column == 7

    @pytest.mark.asyncio
    async def test_preset(self, search):
        """Test a preset instead of a query."""
        report = await search.search("vault", "", target="content", preset="tasks_open")
        assert [(m.path, m.line) for m in report.content] == [
            ("vault/projects/alpha.md", 2),
            ("vault/todo.md", 2),
        ]

    @pytest.mark.asyncio
    async def test_regex_and_unsafe_regex(self, search):
        """Test regex mode and its safety screen."""
        report = await search.search("vault", r"^- \[x\]", target="content", pattern_mode="regex")
        assert len(report.content) == 0  # no MULTILINE: '^' anchors the file start only
        report = await search.search("vault", r"\[x\] \w+", target="content", pattern_mode="regex")
        assert [m.line for m in report.content] == [3]
        with pytest.raises(UnsafeRegexError):
            await search.search("vault", "(a+)+b", target="content", pattern_mode="regex")

    @pytest.mark.asyncio
    async def test_filters(self, search):
        """Test type and glob filters."""
        options = SearchOptions(types=["py"])
        report = await search.search(".", "todo", target="content", options=options)
        assert {m.path for m in report.content} == {"code/src/main.py"}

        options = SearchOptions(glob="projects/*.md")
        report = await search.search("vault", "review", target="content", options=options)
        assert [m.path for m in report.content] == ["vault/projects/alpha.md"]

    @pytest.mark.asyncio
    async def test_max_results_truncates(self, search):
        """Test the result cap."""
        report = await search.search(".", "todo", target="content", options=SearchOptions(max_results=1))
        assert len(report.content) == 1
        assert report.truncated

    @pytest.mark.asyncio
    async def test_clusters(self, search):
        """Test clustered output."""
        report = await search.search("vault", "- [", target="content", cluster=True)
        todo = [c for c in report.clusters if c.path == "vault/todo.md"]
        assert len(todo) == 1
        assert (todo[0].cluster.start_line, todo[0].cluster.end_line) == (2, 3)

    @pytest.mark.asyncio
    async def test_cancel(self, search):
        """Test cancellation between batches."""
        event = asyncio.Event()
        event.set()
        with pytest.raises(OperationCancelledError):
            await search.search(".", "todo", target="content", cancel_event=event)


class TestFilenameSearch:
    """Test filename search."""

    @pytest.mark.asyncio
    async def test_filename(self, search):
        """Test fuzzy filename search with virtual paths."""
        report = await search.search(".", "alpha", target="filename")
        assert [m.path for m in report.files] == ["vault/projects/alpha.md"]
        assert report.content == []

    @pytest.mark.asyncio
    async def test_all_targets(self, search):
        """Test that 'all' searches names and contents."""
        report = await search.search("vault", "alpha", target="all")
        assert [m.path for m in report.files] == ["vault/projects/alpha.md"]
        assert [m.line for m in report.content] == [1, 2]
        assert report.total_count == 3


class TestSearchErrors:
    """Test search failures."""

    @pytest.mark.asyncio
    async def test_missing_directory(self, search):
        """Test searching a path that does not exist."""
        with pytest.raises(NotFoundError):
            await search.search("vault/nope", "x")

    @pytest.mark.asyncio
    async def test_outside_mounts(self, search):
        """Test searching outside every mount."""
        with pytest.raises(PathError):
            await search.search("elsewhere", "x")

    @pytest.mark.asyncio
    async def test_unknown_target(self, search):
        """Test an invalid target."""
        with pytest.raises(ValueError):
            await search.search(".", "x", target="everything")
