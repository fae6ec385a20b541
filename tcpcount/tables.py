"""Scrollable tables of connection counts by host, by process and by both.

Colours are drawn with curses colour pair ``n + 1`` for curses colour ``n``;
the program that owns the screen is expected to set those pairs up.
"""

from __future__ import annotations

import curses
from enum import Enum
from typing import Any, Callable

from .filters import ConnectionFilter
from .monitor import ConnectionMonitor, HostMetrics, ProcessHostMetrics, ProcessMetrics
from .screen import Rect, draw_box, put_text

Cell = tuple[str, int]


class SortBy(Enum):
    """Which counter the tables are ordered by, largest first."""

    TOTAL = "Total"
    ACTIVE = "Active"
    MAX = "Max"


_SORT_FIELD = {
    SortBy.TOTAL: "total_connections",
    SortBy.ACTIVE: "current_connections",
    SortBy.MAX: "max_concurrent",
}


def _color(color: int) -> int:
    try:
        return curses.color_pair(color + 1)
    except curses.error:
        return 0


def _pid_cell(pid: int, alive: bool) -> Cell:
    return str(pid), _color(curses.COLOR_GREEN if alive else curses.COLOR_RED)


class _TableBase:
    """State and drawing shared by the connection tables."""

    title = ""
    columns: tuple[tuple[str, int], ...] = ()

    def __init__(self, monitor: ConnectionMonitor) -> None:
        self.monitor = monitor
        self.filter = ConnectionFilter()
        self.sort_by = SortBy.TOTAL
        self.scroll_offset = 0

    def _apply_filter(self, filter: ConnectionFilter) -> None:
        self.filter = filter
        self.scroll_offset = 0

    def _apply_sort(self, sort_by: SortBy) -> None:
        self.sort_by = sort_by
        self.scroll_offset = 0

    def _move_up(self, amount: int) -> None:
        self.scroll_offset = max(self.scroll_offset - amount, 0)

    def _move_down(self, amount: int, total_rows: int, visible_rows: int) -> None:
        max_scroll = max(total_rows - visible_rows, 0)
        self.scroll_offset = min(self.scroll_offset + amount, max_scroll)

    def _move_to_bottom(self, total_rows: int, visible_rows: int) -> None:
        self.scroll_offset = max(total_rows - visible_rows, 0)

    @staticmethod
    def _rows_for(height: int) -> int:
        return max(height - 3, 0)

    def _sort(self, metrics: list, tiebreak: Callable[[Any], tuple]) -> list:
        field = _SORT_FIELD[self.sort_by]
        return sorted(metrics, key=lambda m: (-getattr(m, field), *tiebreak(m)))

    def _draw_row(self, window: Any, y: int, inner: Rect, cells: list[Cell]) -> None:
        x = inner.x
        for (text, attr), (_, percent) in zip(cells, self.columns):
            width = inner.width * percent // 100
            put_text(window, y, x, text, width - 1 if width > 1 else width, attr)
            x += width

    def _draw(
        self,
        window: Any,
        area: Rect,
        metrics: list,
        cells: Callable[[Any], list[Cell]],
    ) -> None:
        start = self.scroll_offset
        shown = metrics[start : start + self._rows_for(area.height)]

        inner = draw_box(window, area, self.title, _color(curses.COLOR_BLUE))
        if inner.width <= 0 or inner.height <= 0:
            return

        header_attr = curses.A_BOLD | _color(curses.COLOR_WHITE)
        self._draw_row(window, inner.y, inner, [(title, header_attr) for title, _ in self.columns])
        for row, item in enumerate(shown):
            y = inner.y + 2 + row
            if y >= inner.bottom():
                break
            self._draw_row(window, y, inner, cells(item))


class HostTableWidget(_TableBase):
    """Connections grouped by remote host and port."""

    title = "Connections by Host"
    columns = (("Remote Host", 60), ("Port", 10), ("Active", 10), ("Total", 10), ("Max", 10))

    def set_filter(self, filter: ConnectionFilter) -> None:
        """Show only matching connections and scroll back to the top."""
        self._apply_filter(filter)

    def set_sort_by(self, sort_by: SortBy) -> None:
        """Change the ordering and scroll back to the top."""
        self._apply_sort(sort_by)

    def scroll_up(self, amount: int) -> None:
        self._move_up(amount)

    def scroll_down(self, amount: int, total_rows: int, visible_rows: int) -> None:
        self._move_down(amount, total_rows, visible_rows)

    def scroll_to_top(self) -> None:
        self.scroll_offset = 0

    def scroll_to_bottom(self, total_rows: int, visible_rows: int) -> None:
        self._move_to_bottom(total_rows, visible_rows)

    def visible_rows(self, height: int) -> int:
        """Rows of data that fit in a table of the given height."""
        return self._rows_for(height)

    def sorted_metrics(self) -> list[HostMetrics]:
        """The filtered metrics, largest chosen counter first, then by host."""
        return self._sort(self.monitor.get_host_metrics(self.filter), lambda m: (m.host,))

    def render(self, window: Any, area: Rect) -> None:
        """Draw the visible part of the table into the area."""
        self._draw(window, area, self.sorted_metrics(), _host_cells)


def _host_cells(metrics: HostMetrics) -> list[Cell]:
    return [
        (metrics.host, 0),
        (str(metrics.port), 0),
        (str(metrics.current_connections), 0),
        (str(metrics.total_connections), 0),
        (str(metrics.max_concurrent), 0),
    ]


class ProcessHostTableWidget(_TableBase):
    """Connections grouped by process and remote endpoint."""

    title = "Connections by Process-Host"
    columns = (
        ("PID", 5),
        ("Process", 55),
        ("Remote Host", 20),
        ("Port", 5),
        ("Active", 5),
        ("Total", 5),
        ("Max", 5),
    )

    def set_filter(self, filter: ConnectionFilter) -> None:
        """Show only matching connections and scroll back to the top."""
        self._apply_filter(filter)

    def set_sort_by(self, sort_by: SortBy) -> None:
        """Change the ordering and scroll back to the top."""
        self._apply_sort(sort_by)

    def scroll_up(self, amount: int) -> None:
        self._move_up(amount)

    def scroll_down(self, amount: int, total_rows: int, visible_rows: int) -> None:
        self._move_down(amount, total_rows, visible_rows)

    def scroll_to_top(self) -> None:
        self.scroll_offset = 0

    def scroll_to_bottom(self, total_rows: int, visible_rows: int) -> None:
        self._move_to_bottom(total_rows, visible_rows)

    def visible_rows(self, height: int) -> int:
        """Rows of data that fit in a table of the given height."""
        return self._rows_for(height)

    def sorted_metrics(self) -> list[ProcessHostMetrics]:
        """The filtered metrics, largest chosen counter first, then by pid and host."""
        return self._sort(
            self.monitor.get_process_host_metrics(self.filter), lambda m: (m.pid, m.host)
        )

    def render(self, window: Any, area: Rect) -> None:
        """Draw the visible part of the table into the area."""
        self._draw(window, area, self.sorted_metrics(), _process_host_cells)


def _process_host_cells(metrics: ProcessHostMetrics) -> list[Cell]:
    return [
        _pid_cell(metrics.pid, metrics.is_alive),
        (metrics.process_name, 0),
        (metrics.host, 0),
        (str(metrics.port), 0),
        (str(metrics.current_connections), 0),
        (str(metrics.total_connections), 0),
        (str(metrics.max_concurrent), 0),
    ]


class ProcessTableWidget(_TableBase):
    """Connections grouped by owning process."""

    title = "Connections by Process"
    columns = (("PID", 10), ("Process Name", 60), ("Active", 10), ("Total", 10), ("Max", 10))

    def set_filter(self, filter: ConnectionFilter) -> None:
        """Show only matching connections and scroll back to the top."""
        self._apply_filter(filter)

    def set_sort_by(self, sort_by: SortBy) -> None:
        """Change the ordering and scroll back to the top."""
        self._apply_sort(sort_by)

    def scroll_up(self, amount: int) -> None:
        self._move_up(amount)

    def scroll_down(self, amount: int, total_rows: int, visible_rows: int) -> None:
        self._move_down(amount, total_rows, visible_rows)

    def scroll_to_top(self) -> None:
        self.scroll_offset = 0

    def scroll_to_bottom(self, total_rows: int, visible_rows: int) -> None:
        self._move_to_bottom(total_rows, visible_rows)

    def visible_rows(self, height: int) -> int:
        """Rows of data that fit in a table of the given height."""
        return self._rows_for(height)

    def sorted_metrics(self) -> list[ProcessMetrics]:
        """The filtered metrics, largest chosen counter first, then by pid."""
        return self._sort(self.monitor.get_process_metrics(self.filter), lambda m: (m.pid,))

    def render(self, window: Any, area: Rect) -> None:
        """Draw the visible part of the table into the area."""
        self._draw(window, area, self.sorted_metrics(), _process_cells)


def _process_cells(metrics: ProcessMetrics) -> list[Cell]:
    return [
        _pid_cell(metrics.pid, metrics.is_alive),
        (metrics.name, 0),
        (str(metrics.current_connections), 0),
        (str(metrics.total_connections), 0),
        (str(metrics.max_concurrent), 0),
    ]