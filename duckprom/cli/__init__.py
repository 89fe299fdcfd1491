"""CLI module for duckprom."""

from duckprom.cli import config, query, server
from duckprom.cli.main import app, main_cli

__all__ = [
    "app",
    "main_cli",
    "config",
    "query",
    "server",
]
