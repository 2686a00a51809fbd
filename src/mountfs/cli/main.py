"""
CLI for mountfs.

Runs the agent filesystem tools by hand against configured mounts, which
is useful for checking a mount setup before handing it to an agent.
"""

import asyncio
import json
import logging
import sys
from typing import Any, Optional

import click
from dotenv import load_dotenv
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.syntax import Syntax
from rich.table import Table

from mountfs import __version__
from mountfs.filesystem.tools import LLMFileSystemTools
from mountfs.settings.config import MountFSConfig

# Load environment variables
load_dotenv()

console = Console()
logger = logging.getLogger(__name__)


def setup_logging(verbose: bool = False, level: str = "INFO") -> None:
    """Setup rich logging."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else getattr(logging, level, logging.INFO),
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, rich_tracebacks=True)],
    )


def load_config(config_path: Optional[str], roots: tuple[str, ...]) -> MountFSConfig:
    """Config file first, then ``--root`` options, then the environment."""
    if config_path:
        config = MountFSConfig.from_file(config_path)
    elif roots:
        config = MountFSConfig()
    else:
        config = MountFSConfig.from_env()
    if roots:
        config = config.with_roots(list(roots))
    return config


def _tools(ctx: click.Context) -> LLMFileSystemTools:
    return ctx.obj["tools"]


def _run(ctx: click.Context, tool_name: str, arguments: dict[str, Any]) -> dict[str, Any]:
    """Execute a tool and exit non-zero on a failure result."""
    arguments = {k: v for k, v in arguments.items() if v is not None}
    logger.debug(f"{tool_name} {arguments}")
    result = asyncio.run(_tools(ctx).execute_tool(tool_name, arguments))
    if result["status"] == "error":
        error = result["error"]
        console.print(f"[bold red]{error['code']}:[/bold red] {error['message']}")
        if error.get("hint"):
            console.print(f"[yellow]Hint:[/yellow] {error['hint']}")
        for candidate in error.get("details", {}).get("candidates", []):
            console.print(f"  • {candidate}")
        sys.exit(1)
    if ctx.obj["json"]:
        console.print_json(json.dumps(result["result"]))
        sys.exit(0)
    return result["result"]


@click.group()
@click.version_option(version=__version__)
@click.option("--config", "-c", "config_path", type=click.Path(exists=True, dir_okay=False), help="YAML or JSON config file")
@click.option("--root", "-r", "roots", multiple=True, help="Host directory to mount (repeatable)")
@click.option("--json", "as_json", is_flag=True, help="Print raw tool results as JSON")
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
@click.pass_context
def cli(ctx: click.Context, config_path: Optional[str], roots: tuple[str, ...], as_json: bool, verbose: bool):
    """MountFS - sandboxed filesystem tools for LLM agents."""
    try:
        config = load_config(config_path, roots)
        access = config.to_access_config()
    except (ValueError, FileNotFoundError) as e:
        console.print(f"[bold red]Configuration error:[/bold red] {e}")
        sys.exit(1)

    setup_logging(verbose, config.log_level)
    ctx.obj = {"config": config, "tools": LLMFileSystemTools(access), "json": as_json}


@cli.command()
@click.pass_context
def mounts(ctx: click.Context):
    """List configured mounts and access limits."""
    summary = _tools(ctx).get_summary()
    table = Table(title="Mounts")
    table.add_column("Name", style="cyan")
    table.add_column("Host directory", style="green")
    for name, path in summary["mounts"].items():
        table.add_row(name, path)
    console.print(table)
    console.print(
        f"write: [green]{summary['allow_write']}[/green]  "
        f"delete: [green]{summary['allow_delete']}[/green]  "
        f"max file size: [green]{summary['max_file_size_mb']:.1f} MB[/green]"
    )


@cli.command()
@click.argument("path", default=".")
@click.option("--mode", "-m", type=click.Choice(["auto", "tree", "list", "content"]), default="auto")
@click.option("--lines", "-l", default=None, help="Line range 'N' or 'N-M'")
@click.option("--depth", "-d", type=int, default=None)
@click.option("--limit", type=int, default=None)
@click.option("--offset", type=int, default=None)
@click.option("--details", is_flag=True, help="Show size and modification time")
@click.option("--glob", "-g", default=None)
@click.pass_context
def read(ctx: click.Context, path: str, mode: str, lines: Optional[str], depth: Optional[int],
         limit: Optional[int], offset: Optional[int], details: bool, glob: Optional[str]):
    """
    Read a file or list a directory.

    Examples:

        mountfs -r ~/notes read .

        mountfs -r ~/notes read notes/todo.md --lines 1-20
    """
    result = _run(ctx, "fs_read", {
        "path": path, "mode": mode, "lines": lines, "depth": depth,
        "limit": limit, "offset": offset, "details": details, "glob": glob,
    })

    if result["type"] == "file":
        title = result["path"]
        if result.get("resolved_from"):
            title += f" (resolved from {result['resolved_from']})"
        console.print(Panel(result["text"] or "[dim](empty)[/dim]", title=title, subtitle=f"checksum {result['checksum']}"))
    else:
        table = Table(title=result["path"])
        table.add_column("Path", style="cyan")
        table.add_column("Kind")
        if details:
            table.add_column("Size", justify="right")
            table.add_column("Modified")
        for entry in result["entries"]:
            row = [entry["path"], entry["kind"]]
            if details:
                row += [str(entry.get("size") or ""), entry.get("modified") or ""]
            table.add_row(*row)
        console.print(table)
        if result.get("summary"):
            console.print(f"[dim]{result['summary']}[/dim]")
    if result.get("hint"):
        console.print(f"[yellow]{result['hint']}[/yellow]")


@cli.command()
@click.argument("query", default="")
@click.option("--path", "-p", default=".", help="Directory to search")
@click.option("--target", "-t", type=click.Choice(["all", "filename", "content"]), default="all")
@click.option("--mode", "pattern_mode", type=click.Choice(["literal", "regex", "fuzzy"]), default="literal")
@click.option("--preset", default=None, help="Named pattern, e.g. tasks_open")
@click.option("--case-sensitive", is_flag=True)
@click.option("--glob", "-g", default=None)
@click.option("--max-results", "-n", type=int, default=None)
@click.pass_context
def search(ctx: click.Context, query: str, path: str, target: str, pattern_mode: str, preset: Optional[str],
           case_sensitive: bool, glob: Optional[str], max_results: Optional[int]):
    """Search file names and contents."""
    result = _run(ctx, "fs_search", {
        "path": path, "query": query, "target": target, "pattern_mode": pattern_mode,
        "preset": preset, "case_insensitive": not case_sensitive, "glob": glob,
        "max_results": max_results,
    })

    if result["files"]:
        console.print("[bold]Files:[/bold]")
        for match in result["files"]:
            console.print(f"  • [cyan]{match['path']}[/cyan]")
    if result["content"]:
        table = Table(title="Content matches")
        table.add_column("Path", style="cyan")
        table.add_column("Line", justify="right", style="green")
        table.add_column("Text")
        for match in result["content"]:
            table.add_row(match["path"], str(match["line"]), match["text"])
        console.print(table)
    suffix = " (truncated)" if result["truncated"] else ""
    console.print(f"[dim]{result['total_count']} result(s), {result['files_scanned']} file(s) scanned{suffix}[/dim]")


@cli.command()
@click.argument("path")
@click.option("--create", "operation", flag_value="create", help="Create a new file")
@click.option("--update", "operation", flag_value="update", default=True, help="Edit an existing file")
@click.option("--action", "-a", type=click.Choice(["replace", "insert_before", "insert_after", "delete_lines"]), default="replace")
@click.option("--lines", "-l", default=None)
@click.option("--pattern", "-p", default=None)
@click.option("--content", default=None, help="New text (read from stdin when omitted)")
@click.option("--checksum", default=None)
@click.option("--dry-run", is_flag=True)
@click.pass_context
def write(ctx: click.Context, path: str, operation: str, action: str, lines: Optional[str], pattern: Optional[str],
          content: Optional[str], checksum: Optional[str], dry_run: bool):
    """Create or edit a file and show the diff."""
    if content is None and action != "delete_lines":
        content = click.get_text_stream("stdin").read()
    result = _run(ctx, "fs_write", {
        "path": path, "operation": operation, "action": action, "lines": lines,
        "pattern": pattern, "content": content, "checksum": checksum, "dry_run": dry_run,
    })
    console.print(Syntax(result["diff"], "diff", theme="monokai"))
    console.print(f"[green]+{result['added']}[/green] [red]-{result['removed']}[/red]  {result['hint']}")


@cli.command()
@click.argument("operation", type=click.Choice(["delete", "rename", "move", "copy", "mkdir", "stat"]))
@click.argument("path")
@click.argument("target", required=False)
@click.option("--recursive", "-R", is_flag=True)
@click.option("--force", "-f", is_flag=True)
@click.pass_context
def manage(ctx: click.Context, operation: str, path: str, target: Optional[str], recursive: bool, force: bool):
    """Delete, rename, move, copy, mkdir or stat."""
    result = _run(ctx, "fs_manage", {
        "operation": operation, "path": path, "target": target,
        "recursive": recursive, "force": force,
    })
    if result["details"]:
        for key, value in result["details"].items():
            console.print(f"  {key}: [green]{value}[/green]")
    if result["hint"]:
        console.print(f"[green]{result['hint']}[/green]")


@cli.command()
@click.pass_context
def tools(ctx: click.Context):
    """Print the tool schemas handed to the LLM."""
    console.print_json(json.dumps(_tools(ctx).get_tool_schemas()))


def main():
    cli()


if __name__ == "__main__":
    main()
