"""Overall counts of active, total and peak connections."""

from __future__ import annotations

import curses
from typing import Any

from .filters import ConnectionFilter
from .monitor import ConnectionMonitor
from .screen import Rect, draw_box, put_text


def _color(color: int) -> int:
    try:
        return curses.color_pair(color + 1)
    except curses.error:
        return 0


class SummaryWidget:
    """Shows how many matching connections are open, were seen and peaked."""

    def __init__(self, monitor: ConnectionMonitor) -> None:
        self.monitor = monitor
        self.filter = ConnectionFilter()

    def set_filter(self, filter: ConnectionFilter) -> None:
        self.filter = filter

    def _counts(self) -> list[tuple[str, int]]:
        active = len(self.monitor.get_filtered_active_connections(self.filter))
        closed = len(self.monitor.get_filtered_historical_connections(self.filter))
        history = self.monitor.get_connection_history_filtered(self.filter, None, None)
        peak = max((count for _, count in history), default=0)
        return [("Active", active), ("Total", active + closed), ("Max", peak)]

    def lines(self) -> list[str]:
        """The summary as text lines, e.g. ``"Active: 3"``."""
        return [f"{label}: {value}" for label, value in self._counts()]

    def render(self, window: Any, area: Rect) -> None:
        """Draw the summary box into the area."""
        inner = draw_box(window, area, "Overall connections", _color(curses.COLOR_BLUE))
        value_attr = curses.A_BOLD | _color(curses.COLOR_GREEN)
        for row, (label, value) in enumerate(self._counts()):
            y = inner.y + row
            if y >= inner.bottom():
                break
            prefix = f"{label}: "
            put_text(window, y, inner.x, prefix, inner.width)
            put_text(
                window, y, inner.x + len(prefix), str(value), inner.width - len(prefix), value_attr
            )