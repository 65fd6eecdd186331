"""CLI commands for unified-search."""

from unified_search.cli.commands import db, search

__all__ = ["db", "search"]
