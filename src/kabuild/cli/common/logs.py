"""Logging setup for the CLI."""

from __future__ import annotations

import logging

from rich.logging import RichHandler

from kabuild.cli.common.output import console


def configure_logging(verbose: bool = False) -> None:
    """Route stdlib logging through Rich; DEBUG when verbose, else WARNING."""
    level = logging.DEBUG if verbose else logging.WARNING
    handler = RichHandler(console=console, show_time=True, show_path=False)
    logging.basicConfig(level=level, handlers=[handler], format="%(message)s", force=True)
    # the kubernetes client logs every request body at DEBUG
    logging.getLogger("kubernetes").setLevel(max(level, logging.INFO))
