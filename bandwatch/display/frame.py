"""A character-cell screen model and the terminal backends that show it."""

from __future__ import annotations

import abc
import shutil
import sys
from dataclasses import dataclass, field
from typing import Callable, List, Optional, TextIO

from wcwidth import wcwidth

_ANSI_COLORS = {
    "black": 30,
    "red": 31,
    "green": 32,
    "yellow": 33,
    "blue": 34,
    "magenta": 35,
    "cyan": 36,
    "white": 37,
}


@dataclass(frozen=True)
class Rect:
    """A rectangular area of the screen, in cells."""

    x: int
    y: int
    width: int
    height: int

    @property
    def right(self) -> int:
        return self.x + self.width

    @property
    def bottom(self) -> int:
        return self.y + self.height


@dataclass(frozen=True)
class Style:
    """Foreground colour name and boldness of a cell."""

    fg: Optional[str] = None
    bold: bool = False


def _sgr(style: Style) -> str:
    codes = ["0"]
    if style.bold:
        codes.append("1")
    if style.fg in _ANSI_COLORS:
        codes.append(str(_ANSI_COLORS[style.fg]))
    return f"\x1b[{';'.join(codes)}m"


@dataclass
class _Cell:
    symbol: str = " "
    style: Style = field(default_factory=Style)


class Buffer:
    """A grid of styled cells covering an area of the screen."""

    def __init__(self, area: Rect) -> None:
        self.area = area
        self._cells: List[List[_Cell]] = [
            [_Cell() for _ in range(area.width)] for _ in range(area.height)
        ]

    def set_string(self, x: int, y: int, text: str, style: Optional[Style] = None) -> int:
        """Write text from (x, y), clipped to the buffer; return the column after it."""
        style = style or Style()
        area = self.area
        if not area.y <= y < area.bottom:
            return x
        row = self._cells[y - area.y]
        for ch in text:
            width = wcwidth(ch)
            if width < 0:
                continue
            if width == 0:
                if area.x < x <= area.right:
                    row[x - area.x - 1].symbol += ch
                continue
            if x + width > area.right:
                break
            if x >= area.x:
                row[x - area.x] = _Cell(ch, style)
                for extra in range(1, width):
                    row[x - area.x + extra] = _Cell("", style)
            x += width
        return x

    def lines(self) -> List[str]:
        """The text of every row, without styling."""
        return ["".join(cell.symbol for cell in row) for row in self._cells]


class Frame:
    """The surface handed to components while a screen is drawn."""

    def __init__(self, buffer: Buffer) -> None:
        self.buffer = buffer

    def size(self) -> Rect:
        return self.buffer.area


class Backend(abc.ABC):
    """Where finished screens go."""

    @abc.abstractmethod
    def clear(self) -> None: ...

    @abc.abstractmethod
    def hide_cursor(self) -> None: ...

    @abc.abstractmethod
    def show_cursor(self) -> None: ...

    @abc.abstractmethod
    def draw(self, buffer: Buffer) -> None: ...

    @abc.abstractmethod
    def size(self) -> Rect: ...

    @abc.abstractmethod
    def flush(self) -> None: ...


class RawTerminalBackend(Backend):
    """A backend that shows nothing, used when output is plain text lines."""

    def clear(self) -> None:
        pass

    def hide_cursor(self) -> None:
        pass

    def show_cursor(self) -> None:
        pass

    def draw(self, buffer: Buffer) -> None:
        pass

    def size(self) -> Rect:
        return Rect(0, 0, 0, 0)

    def flush(self) -> None:
        pass


class AnsiTerminalBackend(Backend):
    """Draws screens on a terminal with ANSI escape sequences."""

    def __init__(self, stream: Optional[TextIO] = None) -> None:
        self._stream = stream if stream is not None else sys.stdout

    def clear(self) -> None:
        self._stream.write("\x1b[2J\x1b[H")

    def hide_cursor(self) -> None:
        self._stream.write("\x1b[?25l")

    def show_cursor(self) -> None:
        self._stream.write("\x1b[?25h")

    def draw(self, buffer: Buffer) -> None:
        area = buffer.area
        parts = []
        for offset, row in enumerate(buffer._cells):
            parts.append(f"\x1b[{area.y + offset + 1};{area.x + 1}H")
            current = None
            for cell in row:
                if cell.style != current:
                    parts.append(_sgr(cell.style))
                    current = cell.style
                parts.append(cell.symbol)
        parts.append("\x1b[0m")
        self._stream.write("".join(parts))

    def size(self) -> Rect:
        columns, lines = shutil.get_terminal_size()
        return Rect(0, 0, columns, lines)

    def flush(self) -> None:
        self._stream.flush()


class Terminal:
    """Builds a fresh screen for each draw and hands it to a backend."""

    def __init__(self, backend: Backend) -> None:
        self.backend = backend
        self._area = backend.size()

    def draw(self, render: Callable[[Frame], None]) -> None:
        """Let render fill a frame the size of the terminal, then show it."""
        area = self.backend.size()
        if area != self._area:
            self._area = area
            self.clear()
        buffer = Buffer(area)
        render(Frame(buffer))
        self.backend.draw(buffer)
        self.backend.hide_cursor()
        self.backend.flush()

    def clear(self) -> None:
        self.backend.clear()

    def hide_cursor(self) -> None:
        self.backend.hide_cursor()

    def show_cursor(self) -> None:
        self.backend.show_cursor()