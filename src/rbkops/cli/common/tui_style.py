"""prompt_toolkit style for rbkops confirmation prompts.

Every question rbkops asks guards a change on the appliance or on a VM
(mounts, unmounts, disk moves, SLA changes), so the prompt is rendered in
the same warning palette everywhere.
"""

from __future__ import annotations

from prompt_toolkit.styles import Style

_WARN = "bold ansiyellow"
_MUTED = "ansibrightblack"

QUESTIONARY_STYLE_CONFIRM = Style.from_dict(
    {
        "qmark": _WARN,
        "question": "bold",
        "answer": _WARN,
        "instruction": _MUTED,
        "error": "bold ansired",
    }
)
