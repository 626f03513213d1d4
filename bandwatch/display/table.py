"""Bordered tables of processes, remote addresses and connections."""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Dict, Iterable, List, Mapping, Sequence, Tuple

from wcwidth import wcwidth

from bandwatch.display.bandwidth import format_bandwidth
from bandwatch.display.frame import Buffer, Frame, Rect, Style
from bandwatch.display.ui_state import UIState
from bandwatch.network.connection import (
    IpAddress,
    display_connection_string,
    display_ip_or_host,
)


def display_upload_and_download(bandwidth, total: bool) -> str:
    """Upload and download figures of an entry, as rates unless total."""
    up = format_bandwidth(bandwidth.total_bytes_uploaded, not total)
    down = format_bandwidth(bandwidth.total_bytes_downloaded, not total)
    return f"{up} / {down}"


class ColumnCount(enum.IntEnum):
    """How many columns a table shows."""

    TWO = 2
    THREE = 3


@dataclass(frozen=True)
class ColumnData:
    """Column count and widths used from some terminal width on."""

    column_count: ColumnCount
    column_widths: Tuple[int, ...]


def _truncate_to_width(chars: Iterable[str], width: int) -> List[str]:
    used = 0
    kept = []
    for ch in chars:
        used += max(wcwidth(ch), 0)
        if used > width:
            break
        kept.append(ch)
    return kept


def truncate_middle(row: str, max_length: int) -> str:
    """Shorten text to fit max_length by cutting out its middle."""
    if max_length < 6:
        return "".join(_truncate_to_width(row, max_length))
    # The length is measured in UTF-8 bytes.
    if len(row.encode("utf-8")) > max_length:
        split_point = max_length // 2 - 3
        first = "".join(_truncate_to_width(row, split_point))
        second = "".join(reversed(_truncate_to_width(reversed(row), split_point)))
        marker = "[...]" if max_length % 2 == 0 else "[..]"
        return f"{first}{marker}{second}"
    return row


_CONNECTIONS_BREAKPOINTS = {
    0: ColumnData(ColumnCount.TWO, (20, 23)),
    70: ColumnData(ColumnCount.THREE, (30, 12, 23)),
    100: ColumnData(ColumnCount.THREE, (60, 12, 23)),
    140: ColumnData(ColumnCount.THREE, (100, 12, 23)),
}
_PROCESSES_BREAKPOINTS = {
    0: ColumnData(ColumnCount.TWO, (12, 23)),
    50: ColumnData(ColumnCount.THREE, (12, 12, 23)),
    100: ColumnData(ColumnCount.THREE, (40, 12, 23)),
    140: ColumnData(ColumnCount.THREE, (40, 12, 23)),
}
_REMOTE_ADDRESSES_BREAKPOINTS = {
    0: ColumnData(ColumnCount.TWO, (15, 20)),
    70: ColumnData(ColumnCount.THREE, (30, 12, 23)),
    100: ColumnData(ColumnCount.THREE, (60, 12, 23)),
    140: ColumnData(ColumnCount.THREE, (100, 12, 23)),
}


def _draw_block(buffer: Buffer, rect: Rect, title: str) -> None:
    if rect.width < 2 or rect.height < 2:
        return
    inner_width = rect.width - 2
    buffer.set_string(rect.x, rect.y, "┌" + "─" * inner_width + "┐")
    for y in range(rect.y + 1, rect.bottom - 1):
        buffer.set_string(rect.x, y, "│")
        buffer.set_string(rect.right - 1, y, "│")
    buffer.set_string(rect.x, rect.bottom - 1, "└" + "─" * inner_width + "┘")
    buffer.set_string(rect.x + 1, rect.y, "".join(_truncate_to_width(title, inner_width)))


@dataclass
class Table:
    """A titled table whose columns adapt to the available width."""

    title: str
    column_names: Tuple[str, str, str]
    rows: List[List[str]]
    breakpoints: Dict[int, ColumnData]

    @classmethod
    def connections(cls, state: UIState, ip_to_host: Mapping[IpAddress, str]) -> "Table":
        rows = [
            [
                display_connection_string(connection, ip_to_host, data.interface_name),
                data.process_name,
                display_upload_and_download(data, state.cumulative_mode),
            ]
            for connection, data in state.connections
        ]
        return cls(
            "Utilization by connection",
            ("Connection", "Process", "Up / Down"),
            rows,
            dict(_CONNECTIONS_BREAKPOINTS),
        )

    @classmethod
    def processes(cls, state: UIState) -> "Table":
        rows = [
            [
                name,
                str(data.connection_count),
                display_upload_and_download(data, state.cumulative_mode),
            ]
            for name, data in state.processes
        ]
        return cls(
            "Utilization by process name",
            ("Process", "Connections", "Up / Down"),
            rows,
            dict(_PROCESSES_BREAKPOINTS),
        )

    @classmethod
    def remote_addresses(
        cls, state: UIState, ip_to_host: Mapping[IpAddress, str]
    ) -> "Table":
        rows = [
            [
                display_ip_or_host(address, ip_to_host),
                str(data.connection_count),
                display_upload_and_download(data, state.cumulative_mode),
            ]
            for address, data in state.remote_addresses
        ]
        return cls(
            "Utilization by remote address",
            ("Remote Address", "Connections", "Up / Down"),
            rows,
            dict(_REMOTE_ADDRESSES_BREAKPOINTS),
        )

    def _columns(self, width: int) -> Tuple[Tuple[int, ...], ColumnCount, int]:
        spacing = 0
        widths: Tuple[int, ...] = ()
        count = ColumnCount.THREE
        for breakpoint in sorted(self.breakpoints):
            if breakpoint < width:
                data = self.breakpoints[breakpoint]
                widths = data.column_widths
                count = data.column_count
                total = sum(widths)
                if width < total - count:
                    spacing = 0
                else:
                    spacing = max(width - total, 0) // count
        return widths, count, spacing

    def render(self, frame: Frame, rect: Rect) -> None:
        widths, count, spacing = self._columns(rect.width)
        # With two columns the middle one is the one left out.
        picked = (0, 2) if count is ColumnCount.TWO else (0, 1, 2)
        names = [self.column_names[i] for i in picked]
        rows = [
            [truncate_middle(row[i], width) for i, width in zip(picked, widths)]
            for row in self.rows
        ]
        buffer = frame.buffer
        _draw_block(buffer, rect, self.title)
        inner = Rect(rect.x + 1, rect.y + 1, max(rect.width - 2, 0), max(rect.height - 2, 0))
        lines = [(names, Style(fg="yellow"))] + [(row, Style()) for row in rows]
        for offset, (cells, style) in enumerate(lines[: inner.height]):
            self._draw_row(buffer, inner, inner.y + offset, cells, widths, spacing, style)

    @staticmethod
    def _draw_row(
        buffer: Buffer,
        inner: Rect,
        y: int,
        cells: Sequence[str],
        widths: Sequence[int],
        spacing: int,
        style: Style,
    ) -> None:
        x = inner.x
        for text, width in zip(cells, widths):
            available = min(width, inner.right - x)
            if available <= 0:
                break
            buffer.set_string(x, y, "".join(_truncate_to_width(text, available)), style)
            x += width + spacing