"""Pop-up form for editing the connection filter."""

from __future__ import annotations

import curses
import re
from enum import Enum
from typing import Any

from .filters import ConnectionFilter
from .screen import Rect, draw_box, put_text

_UNSIGNED = re.compile(r"\+?[0-9]+")
_INSTRUCTIONS = (
    "Tab: Next field  |  Shift+Tab: Previous field  |  Enter: Apply  |  Esc: Cancel"
)
_POPUP_WIDTH = 60
_POPUP_HEIGHT = 12

_ESCAPE = {"\x1b", 27}
_ENTER = {"\n", "\r", 10, 13, curses.KEY_ENTER}
_TAB = {"\t", 9}
_BACKTAB = {curses.KEY_BTAB}
_BACKSPACE = {"\x7f", "\b", 127, 8, curses.KEY_BACKSPACE}


def _color(color: int) -> int:
    try:
        return curses.color_pair(color + 1)
    except curses.error:
        return 0


def _parse_unsigned(text: str, bits: int) -> int | None:
    if not _UNSIGNED.fullmatch(text):
        return None
    value = int(text)
    return value if value < 1 << bits else None


class FilterField(Enum):
    """The editable fields of the form, in tab order."""

    PID = "PID"
    PROCESS_NAME = "Process Name"
    REMOTE_HOST = "Remote Host"
    REMOTE_PORT = "Remote Port"

    def next(self) -> FilterField:
        members = list(FilterField)
        return members[(members.index(self) + 1) % len(members)]

    def prev(self) -> FilterField:
        members = list(FilterField)
        return members[(members.index(self) - 1) % len(members)]


class FilterWidget:
    """Edits the four filter fields and produces a ConnectionFilter on Enter."""

    def __init__(self) -> None:
        self.current_field = FilterField.PID
        self.inputs: dict[FilterField, str] = {field: "" for field in FilterField}
        self.active = False
        self.error: str | None = None

    def show(self, current_filter: ConnectionFilter) -> None:
        """Open the form with the fields filled from the given filter."""
        self.active = True
        self.error = None
        values = {
            FilterField.PID: current_filter.pid,
            FilterField.PROCESS_NAME: current_filter.process_name,
            FilterField.REMOTE_HOST: current_filter.remote_host,
            FilterField.REMOTE_PORT: current_filter.remote_port,
        }
        self.inputs = {
            field: "" if value is None else str(value) for field, value in values.items()
        }
        self.current_field = FilterField.PID

    def hide(self) -> None:
        self.active = False

    def handle_key(self, key: str | int) -> ConnectionFilter | None:
        """Process a key; returns the new filter when it is applied."""
        if not self.active:
            return None
        if key in _ESCAPE:
            self.hide()
            return None
        if key in _ENTER:
            try:
                flt = self.build_filter()
            except ValueError as exc:
                self.error = str(exc)
                return None
            self.hide()
            return flt
        if key in _TAB:
            self.current_field = self.current_field.next()
            return None
        if key in _BACKTAB:
            self.current_field = self.current_field.prev()
            return None
        if key in _BACKSPACE:
            self.inputs[self.current_field] = self.inputs[self.current_field][:-1]
            return None
        if isinstance(key, str) and len(key) == 1 and key.isprintable():
            self.inputs[self.current_field] += key
        return None

    def build_filter(self) -> ConnectionFilter:
        """The filter the fields describe; raises ValueError on a bad PID or port."""
        flt = ConnectionFilter()
        pid_text = self.inputs[FilterField.PID]
        if pid_text:
            pid = _parse_unsigned(pid_text, 32)
            if pid is None:
                raise ValueError(f"Invalid PID: {pid_text}")
            flt.pid = pid
        name = self.inputs[FilterField.PROCESS_NAME]
        if name:
            flt.process_name = name
        host = self.inputs[FilterField.REMOTE_HOST]
        if host:
            flt.remote_host = host
        port_text = self.inputs[FilterField.REMOTE_PORT]
        if port_text:
            port = _parse_unsigned(port_text, 16)
            if port is None:
                raise ValueError(f"Invalid port: {port_text}")
            flt.remote_port = port
        return flt

    def current_input(self) -> str:
        """The text of the field being edited."""
        return self.inputs[self.current_field]

    def render(self, window: Any, area: Rect) -> None:
        """Draw the form centred in the area when it is open."""
        if not self.active:
            return
        width = min(area.width, _POPUP_WIDTH)
        popup = Rect(
            area.x + max(area.width - width, 0) // 2,
            area.y + max(area.height - _POPUP_HEIGHT, 0) // 2,
            width,
            _POPUP_HEIGHT,
        )
        for y in range(popup.y, popup.bottom()):
            put_text(window, y, popup.x, " " * popup.width, popup.width)

        yellow = _color(curses.COLOR_YELLOW)
        inner = draw_box(window, popup, "Filter Connections", yellow)
        content = Rect(
            inner.x + 1, inner.y + 1, max(inner.width - 2, 0), max(inner.height - 2, 0)
        )
        if content.width <= 0:
            return

        for row, field in enumerate(FilterField):
            if content.y + row < content.bottom():
                self._render_field(window, content, content.y + row, field)

        y = content.y + 5
        if y < content.bottom():
            offset = max(content.width - len(_INSTRUCTIONS), 0) // 2
            put_text(window, y, content.x + offset, _INSTRUCTIONS, content.width - offset)

        y = content.y + 6
        if self.error is not None and y < content.bottom():
            put_text(window, y, content.x, self.error, content.width, _color(curses.COLOR_RED))

    def _render_field(self, window: Any, content: Rect, y: int, field: FilterField) -> None:
        editing = field is self.current_field
        label = f"{field.value}: "
        value = self.inputs[field] + ("_" if editing else "")
        value_attr = _color(curses.COLOR_YELLOW) if editing else 0
        put_text(window, y, content.x, label, content.width, _color(curses.COLOR_WHITE))
        put_text(
            window, y, content.x + len(label), value, content.width - len(label), value_attr
        )