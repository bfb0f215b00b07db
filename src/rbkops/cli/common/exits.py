"""Exit handling utilities for the CLI."""

from contextlib import contextmanager
from typing import Iterator, NoReturn

import requests
import typer

from rbkops.cli.common.output import out
from rbkops.core.errors import OperationCancelled, RbkError


def ok_exit(msg: str | None = None) -> NoReturn:
    """Exit successfully with an optional informational message."""
    if msg:
        out.info(msg)
    raise typer.Exit(0)


def die(msg: str, code: int = 1) -> NoReturn:
    """Exit with an error message and optional exit code."""
    out.error(msg)
    raise typer.Exit(code)


def warn_exit(msg: str, code: int = 0) -> NoReturn:
    """Exit with a warning message and optional exit code."""
    out.warn(msg)
    raise typer.Exit(code)


def exit_from_exc(exc: Exception, *, message: str | None = None, code: int = 1) -> NoReturn:
    """
    Print an error message for an exception and exit with a given code.

    Defaults to the exception's own message.
    """
    out.error(message or str(exc))
    raise typer.Exit(code) from exc


@contextmanager
def handled_errors() -> Iterator[None]:
    """
    Translate core errors into CLI exits.

    A declined confirmation is a clean exit; every other rbkops or transport
    error prints its message and exits with code 1.
    """
    try:
        yield
    except OperationCancelled:
        ok_exit("Cancelled")
    except RbkError as exc:
        exit_from_exc(exc)
    except requests.RequestException as exc:
        exit_from_exc(exc, message=f"Transport error: {exc}")
