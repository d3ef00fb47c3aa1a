from __future__ import annotations

from typing import Dict, List

from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from .models import ExecutionInterval

COLORS = ["red", "green", "yellow", "blue", "magenta", "cyan", "bright_red", "bright_green"]


def process_color(pid: int) -> str:
    """Stable colour per process id, the same across charts."""
    return COLORS[(pid - 1) % len(COLORS)]


def build_rich_gantt(timeline: List[ExecutionInterval]) -> tuple[Panel, str]:
    """
    Build a Rich Panel containing a colored Gantt chart and a string with time marks.
    Idle gaps are left blank.
    """
    if not timeline:
        panel = Panel("No execution", title="Gantt Chart")
        return panel, ""

    bars = Text()
    labels = Text()
    time_marks = "0"
    last_time = 0

    for iv in timeline:
        idle_gap = iv.start_time - last_time
        if idle_gap > 0:
            bars.append(" " * idle_gap)
            labels.append(" " * idle_gap)
            last_time = iv.start_time
            time_marks += f"{last_time:>3}"

        width = iv.duration
        bars.append(" " * width, style=f"on {process_color(iv.pid)}")
        labels.append(iv.label[:width].ljust(width), style="bold")

        last_time = iv.end_time
        time_marks += f"{last_time:>3}"

    table = Table.grid(padding=(0, 0))
    table.add_row(bars)
    table.add_row(labels)

    panel = Panel.fit(table, title="Gantt Chart")
    return panel, time_marks


def legend(timeline: List[ExecutionInterval]) -> Text:
    seen: Dict[int, str] = {}
    for iv in timeline:
        seen.setdefault(iv.pid, iv.label)
    text = Text()
    for pid, label in sorted(seen.items()):
        text.append("  ", style=f"on {process_color(pid)}")
        text.append(f" {label}  ")
    return text
