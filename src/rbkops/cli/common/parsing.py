"""Argument parsing helpers shared by CLI commands."""

from __future__ import annotations

import json
import re
from datetime import datetime
from typing import Any, Iterable

import typer

from rbkops.cli.common.output import out


def parse_at_or_exit(value: str | None) -> datetime | None:
    """Parse an --at timestamp; naive values are taken as local time."""
    if not value:
        return None
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        return datetime.fromisoformat(text)
    except ValueError as exc:
        out.error(f"Invalid --at timestamp '{value}' (expected ISO 8601)")
        raise typer.Exit(2) from exc


def compile_regex_or_exit(pattern: str | None, *, option_name: str) -> re.Pattern | None:
    """Compile a regex pattern and convert invalid syntax into CLI input errors."""
    if not pattern:
        return None
    try:
        return re.compile(pattern)
    except re.error as exc:
        out.error(f"Invalid regex for {option_name}: {exc}")
        raise typer.Exit(2) from exc


def parse_query_or_exit(items: Iterable[str]) -> dict[str, str]:
    """Turn repeated key=value options into a query mapping."""
    query: dict[str, str] = {}
    for item in items:
        if "=" not in item:
            out.error(f"Invalid query parameter '{item}' (expected key=value)")
            raise typer.Exit(2)
        key, value = item.split("=", 1)
        query[key] = value
    return query


def parse_body_or_exit(body: str | None) -> Any:
    """Parse a JSON request body given on the command line."""
    if body is None:
        return None
    try:
        return json.loads(body)
    except json.JSONDecodeError as exc:
        out.error(f"Invalid JSON body: {exc}")
        raise typer.Exit(2) from exc
