"""Main CLI entry point for unified-search."""  # pragma: no cover

from unified_search.cli.app import app  # pragma: no cover

# Register commands
from unified_search.cli.commands import db, search  # noqa: F401  # pragma: no cover

if __name__ == "__main__":  # pragma: no cover
    app()
