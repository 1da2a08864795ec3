"""Exit handling utilities for the CLI."""

from typing import NoReturn

import typer

from kabuild.cli.common.output import out


def ok_exit(msg: str | None = None) -> NoReturn:
    """Exit successfully with an optional informational message."""
    if msg:
        out.info(msg)
    raise typer.Exit(0)


def die(msg: str, code: int = 1) -> NoReturn:
    """Exit with an error message and optional exit code."""
    out.error(msg)
    raise typer.Exit(code)


def exit_from_exc(exc: Exception, *, message: str, code: int = 1) -> NoReturn:
    """
    Print an error message and exit with a given code, chaining `exc`.

    Standardizes error exits at the command boundary.
    """
    out.error(message)
    raise typer.Exit(code) from exc
