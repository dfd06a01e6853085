"""Command-line interface for promptevo."""
