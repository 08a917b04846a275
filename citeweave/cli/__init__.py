"""Command-line interface for citeweave."""
