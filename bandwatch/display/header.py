"""The top line: total bandwidth and, in cumulative mode, elapsed time."""

from __future__ import annotations

import time
from dataclasses import dataclass

from wcwidth import wcwidth

from bandwatch.display.bandwidth import format_bandwidth
from bandwatch.display.frame import Buffer, Frame, Rect, Style
from bandwatch.display.ui_state import UIState

SECONDS_IN_DAY = 86400


def elapsed_time(last_start_time: float, cumulative_time: float, paused: bool) -> float:
    """Seconds measured so far; last_start_time is a time.monotonic() reading."""
    if paused:
        return cumulative_time
    return cumulative_time + (time.monotonic() - last_start_time)


def _clip(text: str, width: int) -> str:
    used = 0
    kept = []
    for ch in text:
        used += max(wcwidth(ch), 0)
        if used > width:
            break
        kept.append(ch)
    return "".join(kept)


def _write(buffer: Buffer, rect: Rect, text: str, style: Style, right: bool = False) -> None:
    if rect.width <= 0 or rect.height <= 0:
        return
    text = _clip(text, rect.width)
    width = sum(max(wcwidth(ch), 0) for ch in text)
    x = rect.x + (rect.width - width if right else 0)
    buffer.set_string(x, rect.y, text, style)


@dataclass
class HeaderDetails:
    """The header line of the screen."""

    state: UIState
    elapsed_time: float
    paused: bool

    def render(self, frame: Frame, rect: Rect) -> None:
        bandwidth = self.bandwidth_string()
        elapsed = self.elapsed_time_string() if self.state.cumulative_mode else None
        style = Style(fg="yellow" if self.paused else "green", bold=True)
        if elapsed is not None and len(bandwidth) + len(elapsed) + 1 <= rect.width:
            _write(frame.buffer, rect, elapsed, style, right=True)
        _write(frame.buffer, rect, bandwidth, style)

    def bandwidth_string(self) -> str:
        as_rate = not self.state.cumulative_mode
        up = format_bandwidth(self.state.total_bytes_uploaded, as_rate)
        down = format_bandwidth(self.state.total_bytes_downloaded, as_rate)
        paused = " [PAUSED]" if self.paused else ""
        return f" Total Up / Down: {up} / {down}{paused}"

    def _days_string(self, seconds: int) -> str:
        days = seconds // SECONDS_IN_DAY
        if days == 0:
            return ""
        if days == 1:
            return "1 day, "
        return f"{days} days, "

    def elapsed_time_string(self) -> str:
        seconds = int(self.elapsed_time)
        return (
            f"{self._days_string(seconds)}"
            f"{(seconds % SECONDS_IN_DAY) // 3600:02}:"
            f"{(seconds % 3600) // 60:02}:"
            f"{seconds % 60:02} "
        )