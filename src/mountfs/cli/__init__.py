"""
CLI module for mountfs.

Provides a command-line interface for inspecting mounts and running the
agent filesystem tools by hand.
"""

from mountfs.cli.main import cli

__all__ = ["cli"]
