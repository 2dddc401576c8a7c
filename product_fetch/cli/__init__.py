"""Command-line interface."""

from product_fetch.cli.main import cli


__all__ = ["cli"]
