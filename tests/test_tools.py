"""
Tests for the LLM tool surface.
"""

import tempfile
from pathlib import Path

import pytest
from pydantic import TypeAdapter

from mountfs.filesystem import FileSystemAccessConfig, LLMFileSystemTools, Mount
from mountfs.filesystem.results import ToolFailure, ToolResult, ToolSuccess


@pytest.fixture
def temp_dir():
    """Create a temporary directory for testing."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def config(temp_dir):
    """A single vault mount."""
    vault = temp_dir / "vault"
    (vault / "notes").mkdir(parents=True)
    (vault / "archive").mkdir()
    (vault / "todo.md").write_text("# Todo\n- [ ] first\n- [ ] second\n")
    (vault / "notes" / "idea.md").write_text("idea\n")
    (vault / "archive" / "idea.md").write_text("old idea\n")
    return FileSystemAccessConfig(
        mounts=[Mount(name="vault", absolute_path=str(vault))],
        max_search_results=10,
    )


@pytest.fixture
def llm_tools(config):
    """Create a LLMFileSystemTools instance."""
    return LLMFileSystemTools(config)


class TestToolSchemas:
    """Test schema generation."""

    def test_get_tool_schemas(self, llm_tools):
        """Test that all four tools are described."""
        schemas = llm_tools.get_tool_schemas()
        names = [s["function"]["name"] for s in schemas]
        assert names == ["fs_read", "fs_search", "fs_write", "fs_manage"]
        for schema in schemas:
            assert schema["type"] == "function"
            assert "path" in schema["function"]["parameters"]["properties"]
        assert "vault" in schemas[0]["function"]["description"]

    def test_write_schema_hidden_when_disabled(self, config):
        """Test that fs_write is omitted when writes are off."""
        tools = LLMFileSystemTools(config.model_copy(update={"allow_write": False}))
        names = [s["function"]["name"] for s in tools.get_tool_schemas()]
        assert "fs_write" not in names
        assert "fs_manage" in names

    def test_get_summary(self, llm_tools):
        """Test the configuration summary."""
        summary = llm_tools.get_summary()
        assert list(summary["mounts"]) == ["vault"]
        assert summary["allow_delete"] is False
        assert summary["max_search_results"] == 10
        assert "fs_read" in summary["tools"]


class TestExecuteTool:
    """Test tool execution and result shapes."""

    @pytest.mark.asyncio
    async def test_read_then_update(self, config, llm_tools):
        """Test the read, edit with checksum, read again cycle."""
        read = await llm_tools.execute_tool("fs_read", {"path": "vault/todo.md"})
        assert read["status"] == "ok"
        assert read["tool"] == "fs_read"
        assert read["result"]["type"] == "file"
        first_checksum = read["result"]["checksum"]

        write = await llm_tools.execute_tool(
            "fs_write",
            {
                "path": "vault/todo.md",
                "operation": "update",
                "lines": "2",
                "content": "- [x] first",
                "checksum": first_checksum,
            },
        )
        assert write["status"] == "ok"
        assert write["result"]["removed"] == 1

        stale = await llm_tools.execute_tool(
            "fs_write",
            {"path": "vault/todo.md", "operation": "update", "lines": "3", "content": "x", "checksum": first_checksum},
        )
        assert stale["status"] == "error"
        assert stale["error"]["code"] == "CHECKSUM_MISMATCH"
        assert stale["error"]["details"]["actual"] == write["result"]["checksum"]
        assert stale["error"]["hint"]

    @pytest.mark.asyncio
    async def test_create(self, config, llm_tools):
        """Test fs_write create."""
        result = await llm_tools.execute_tool(
            "fs_write", {"path": "vault/new.md", "operation": "create", "content": "new"}
        )
        assert result["status"] == "ok"
        assert result["result"]["operation"] == "create"
        assert Path(config.mounts[0].absolute_path, "new.md").read_text() == "new\n"

    @pytest.mark.asyncio
    async def test_listing(self, llm_tools):
        """Test fs_read on the root."""
        result = await llm_tools.execute_tool("fs_read", {"path": "."})
        assert result["result"]["type"] == "directory"
        assert "vault/todo.md" in [e["path"] for e in result["result"]["entries"]]

    @pytest.mark.asyncio
    async def test_search(self, llm_tools):
        """Test fs_search with a preset."""
        result = await llm_tools.execute_tool("fs_search", {"path": ".", "preset": "tasks_open"})
        assert result["status"] == "ok"
        assert [m["line"] for m in result["result"]["content"]] == [2, 3]
        assert result["result"]["total_count"] == 2

    @pytest.mark.asyncio
    async def test_search_requires_query(self, llm_tools):
        """Test that fs_search needs a query or preset."""
        result = await llm_tools.execute_tool("fs_search", {"path": "."})
        assert result["status"] == "error"
        assert result["error"]["code"] == "INVALID_ARGUMENTS"

    @pytest.mark.asyncio
    async def test_unsafe_regex_is_a_result(self, llm_tools):
        """Test that an unsafe regex comes back as a failure result."""
        result = await llm_tools.execute_tool(
            "fs_search", {"path": ".", "query": "(a+)+b", "pattern_mode": "regex", "target": "content"}
        )
        assert result["error"]["code"] == "UNSAFE_REGEX"

    @pytest.mark.asyncio
    async def test_ambiguous_candidates(self, llm_tools):
        """Test that auto-resolve candidates are returned."""
        result = await llm_tools.execute_tool("fs_read", {"path": "vault/idea.md"})
        assert result["error"]["code"] == "AMBIGUOUS"
        assert sorted(result["error"]["details"]["candidates"]) == [
            "vault/archive/idea.md",
            "vault/notes/idea.md",
        ]

    @pytest.mark.asyncio
    async def test_filename_search_and_auto_resolve_share_index(self, config, llm_tools):
        """Test that name lookups from both tools reuse one cached index."""
        root = config.mounts[0].absolute_path
        found = await llm_tools.execute_tool("fs_search", {"path": ".", "query": "idea", "target": "filename"})
        assert found["status"] == "ok"
        index = llm_tools.cache.get(root)
        assert index is not None
        await llm_tools.execute_tool("fs_read", {"path": "vault/idea.md"})
        await llm_tools.execute_tool("fs_search", {"path": ".", "query": "todo", "target": "filename"})
        assert llm_tools.cache.get(root) is index
        assert len(llm_tools.cache) == 1

    @pytest.mark.asyncio
    async def test_path_errors(self, llm_tools):
        """Test traversal and absolute paths."""
        traversal = await llm_tools.execute_tool("fs_read", {"path": "vault/../../etc/passwd"})
        assert traversal["error"]["code"] == "TRAVERSAL"
        absolute = await llm_tools.execute_tool("fs_read", {"path": "/etc/passwd"})
        assert absolute["error"]["code"] == "OUT_OF_SCOPE"

    @pytest.mark.asyncio
    async def test_manage(self, llm_tools):
        """Test fs_manage stat and the delete guard."""
        stat = await llm_tools.execute_tool("fs_manage", {"operation": "stat", "path": "vault/todo.md"})
        assert stat["result"]["details"]["is_directory"] is False
        delete = await llm_tools.execute_tool("fs_manage", {"operation": "delete", "path": "vault/todo.md"})
        assert delete["error"]["code"] == "ACCESS_DENIED"

    @pytest.mark.asyncio
    async def test_bad_arguments(self, llm_tools):
        """Test unexpected argument names and values."""
        extra = await llm_tools.execute_tool("fs_read", {"path": ".", "bogus": 1})
        assert extra["error"]["code"] == "INVALID_ARGUMENTS"
        mode = await llm_tools.execute_tool("fs_read", {"path": ".", "mode": "raw"})
        assert mode["error"]["code"] == "INVALID_ARGUMENTS"

    @pytest.mark.asyncio
    async def test_unknown_tool(self, llm_tools):
        """Test that unknown tool names raise."""
        with pytest.raises(ValueError):
            await llm_tools.execute_tool("read_file", {"path": "."})

    @pytest.mark.asyncio
    async def test_results_validate_as_union(self, llm_tools):
        """Test that results parse back into the discriminated union."""
        adapter = TypeAdapter(ToolResult)
        ok = adapter.validate_python(await llm_tools.execute_tool("fs_read", {"path": "vault/todo.md"}))
        failed = adapter.validate_python(await llm_tools.execute_tool("fs_read", {"path": "vault/missing.md"}))
        assert isinstance(ok, ToolSuccess)
        assert isinstance(failed, ToolFailure)
        assert failed.error.code == "NOT_FOUND"
