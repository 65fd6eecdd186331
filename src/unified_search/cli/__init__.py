"""CLI tools for unified-search."""
