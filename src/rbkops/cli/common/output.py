"""Output formatting utilities for the CLI."""

from __future__ import annotations

from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Iterable, Mapping

import questionary
from rich.console import Console
from rich.table import Table
from rich.theme import Theme

from rbkops.cli.common.tui_style import QUESTIONARY_STYLE_CONFIRM

_THEME = Theme(
    {
        "ok": "bold green",
        "warn": "yellow",
        "err": "bold red",
        "title": "bold cyan",
        "meta": "dim",
    }
)

console = Console(theme=_THEME)


def _fmt_date(value: Any) -> str:
    if value is None:
        return ""
    if hasattr(value, "strftime"):
        return value.strftime("%Y-%m-%d %H:%M:%S %Z").strip()
    return str(value)


@dataclass(frozen=True)
class Out:
    """Output formatter for CLI messages and tables."""

    def _q_try(self, fn, *args, **kwargs):
        """Call questionary prompts and drop unsupported kwargs on older versions."""
        try:
            return fn(*args, **kwargs)
        except TypeError:
            for k in ("pointer", "auto_enter"):
                kwargs.pop(k, None)
            return fn(*args, **kwargs)

    def _q(self, message: str) -> str:
        """Prefix Questionary prompts to be RBK-OPS consistent."""
        return f"[RBK-OPS] {message}"

    def info(self, msg: str) -> None:
        """Print an info message."""
        console.print(f"[title]›[/] {msg}")

    @contextmanager
    def status(self, msg: str):
        """Show a transient status spinner while work is in progress."""
        with console.status(msg, spinner="dots"):
            yield

    def success(self, msg: str) -> None:
        """Print a success message."""
        console.print(f"[ok]✓[/] {msg}")

    def warn(self, msg: str) -> None:
        """Print a warning message."""
        console.print(f"[warn]⚠[/] {msg}")

    def error(self, msg: str) -> None:
        """Print an error message."""
        console.print(f"[err]✗[/] {msg}")

    def header(self, title: str) -> None:
        """Print a header message."""
        console.print(f"[title]{title}[/]")

    def kv(self, items: Mapping[str, Any]) -> None:
        """Print key-value pairs."""
        for k, v in items.items():
            console.print(f"[meta]{k}[/]: {v}")

    def confirm(self, message: str, *, default: bool = False) -> bool:
        """
        Ask the user for confirmation using a standardized Questionary prompt.

        Args:
            message: Confirmation question shown to the user.
            default: Default answer if the user just presses enter.

        Returns:
            True if the user confirms, False otherwise.
        """
        # Instruction on its own line; Questionary renders `instruction=...` inline.
        console.print("[meta]Use y/n then Enter[/]")

        prompt = self._q_try(
            questionary.confirm,
            self._q(message),
            default=default,
            style=QUESTIONARY_STYLE_CONFIRM,
            qmark="✦",
            auto_enter=False,
        )
        return bool(prompt.ask())

    def vms_table(self, vms: Iterable[Any], title: str = "Virtual machines") -> None:
        """
        Expects objects with .id .name .sla_domain_name .power_status
        (like rbkops.core.models.VirtualMachine)
        """
        t = Table(title=title, show_lines=False)
        t.add_column("Name", style="ok")
        t.add_column("ID", style="meta", no_wrap=True)
        t.add_column("SLA domain")
        t.add_column("Power", style="meta")

        for vm in vms:
            t.add_row(vm.name, vm.id, vm.sla_domain_name or "", vm.power_status or "")

        console.print(t)

    def snapshots_table(self, snapshots: Iterable[Any], title: str = "Snapshots") -> None:
        t = Table(title=title, show_lines=False)
        t.add_column("Date", style="ok", no_wrap=True)
        t.add_column("Snapshot ID", style="meta")
        t.add_column("SLA domain")

        for s in snapshots:
            t.add_row(_fmt_date(s.date), s.id, s.sla_domain_name or "")

        console.print(t)

    def mounts_table(self, mounts: Iterable[Any], title: str = "Live mounts") -> None:
        t = Table(title=title, show_lines=False)
        t.add_column("Mount ID", style="ok", no_wrap=True)
        t.add_column("Source VM ID", style="meta")
        t.add_column("Mounted VM ID", style="meta")
        t.add_column("Snapshot date")
        t.add_column("Ready")

        for m in mounts:
            ready = "[ok]yes[/]" if m.is_ready else "[warn]no[/]"
            t.add_row(
                m.id,
                m.vm_id or "",
                m.mounted_vm_id or "",
                _fmt_date(m.snapshot_date),
                ready,
            )

        console.print(t)

    def named_table(
        self,
        rows: Iterable[Any],
        columns: Mapping[str, str],
        title: str,
    ) -> None:
        """
        Render objects as a table.

        Args:
            rows: Objects to render.
            columns: Mapping of column header -> attribute name. The first
                column is highlighted.
        """
        t = Table(title=title, show_lines=False)
        for index, header in enumerate(columns):
            t.add_column(header, style="ok" if index == 0 else None)

        for row in rows:
            t.add_row(*(str(getattr(row, attr, "") or "") for attr in columns.values()))

        console.print(t)

    def job_result(self, result: Any) -> None:
        """Expects a rbkops.core.jobs.JobResult."""
        style = "ok" if result.ok else "err"
        self.kv(
            {
                "Job": result.handle.id,
                "Status": f"[{style}]{result.status.value}[/{style}]",
                "Result": result.result_id or "-",
            }
        )

    def disks_list(self, paths: Iterable[str], title: str = "Disks") -> None:
        t = Table(title=title, show_lines=False)
        t.add_column("#", style="meta", no_wrap=True)
        t.add_column("Path", style="ok")

        for index, path in enumerate(paths):
            t.add_row(str(index), path)

        console.print(t)


out = Out()
