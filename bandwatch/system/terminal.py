"""Keyboard and resize events read from the terminal."""

from __future__ import annotations

import os
import re
import select
import shutil
import sys
import time
from collections import deque
from dataclasses import dataclass, replace
from typing import Deque, Optional, Union

_NAMED = {
    b"\t": "Tab",
    b"\r": "Enter",
    b"\n": "Enter",
    b"\x1b": "Esc",
    b"\x7f": "Backspace",
    b"\x08": "Backspace",
}
_ESCAPED = {
    b"A": "Up",
    b"B": "Down",
    b"C": "Right",
    b"D": "Left",
    b"H": "Home",
    b"F": "End",
    b"Z": "BackTab",
}

_KEY_RE = re.compile(
    rb"\x1b[\[O][\x20-\x3f]*[\x40-\x7e]?"
    rb"|\x1b?(?:[\x00-\x7f]|[\xc0-\xdf][\x80-\xbf]|[\xe0-\xef][\x80-\xbf]{2}"
    rb"|[\xf0-\xf7][\x80-\xbf]{3}|[\x80-\xff])"
)


@dataclass(frozen=True)
class KeyEvent:
    """A key press: a character or a key name such as "Tab", with modifiers."""

    code: str
    ctrl: bool = False
    alt: bool = False


@dataclass(frozen=True)
class ResizeEvent:
    """The terminal changed size."""

    width: int
    height: int


Event = Union[KeyEvent, ResizeEvent]


def parse_key(data: bytes) -> Optional[KeyEvent]:
    """Decode the bytes of one key press; None when they are not understood."""
    if not data:
        return None
    if data in _NAMED:
        return KeyEvent(_NAMED[data])
    if data[:2] in (b"\x1b[", b"\x1bO"):
        name = _ESCAPED.get(data[2:])
        return KeyEvent(name) if name else None
    if data[:1] == b"\x1b":
        inner = parse_key(data[1:])
        return replace(inner, alt=True) if inner else None
    if len(data) == 1 and data[0] < 0x20:
        if data[0] == 0:
            return KeyEvent(" ", ctrl=True)
        if data[0] <= 26:
            return KeyEvent(chr(data[0] + 0x60), ctrl=True)
        return None
    try:
        text = data.decode("utf-8")
    except UnicodeDecodeError:
        return None
    return KeyEvent(text) if len(text) == 1 else None


class TerminalEvents:
    """Iterates over key presses and resizes; ends when input is closed."""

    def __init__(self, fd: Optional[int] = None, poll_interval: float = 0.25) -> None:
        self._console = fd is None and sys.platform == "win32"
        self._fd = fd if fd is not None or self._console else sys.stdin.fileno()
        self._poll_interval = poll_interval
        self._size = shutil.get_terminal_size()
        self._queue: Deque[KeyEvent] = deque()
        self._done = False

    def __iter__(self) -> "TerminalEvents":
        return self

    def __next__(self) -> Event:
        while not self._queue:
            if self._done:
                raise StopIteration
            size = shutil.get_terminal_size()
            if size != self._size:
                self._size = size
                return ResizeEvent(size.columns, size.lines)
            data = self._read()
            if data is None:
                continue
            if not data:
                self._done = True
                raise StopIteration
            keys = (parse_key(chunk) for chunk in _KEY_RE.findall(data))
            self._queue.extend(key for key in keys if key is not None)
        return self._queue.popleft()

    def _read(self) -> Optional[bytes]:
        """Bytes typed, None when nothing arrived in time, b"" at end of input."""
        if self._console:
            return self._read_console()
        try:
            ready, _, _ = select.select([self._fd], [], [], self._poll_interval)
            if not ready:
                return None
            return os.read(self._fd, 64)
        except (OSError, ValueError):
            return b""

    def _read_console(self) -> Optional[bytes]:
        import msvcrt

        deadline = time.monotonic() + self._poll_interval
        while not msvcrt.kbhit():
            if time.monotonic() >= deadline:
                return None
            time.sleep(0.01)
        ch = msvcrt.getwch()
        if ch in ("\x00", "\xe0"):
            msvcrt.getwch()
            return None
        return ch.encode("utf-8")