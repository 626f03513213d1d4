"""The full-screen view and the plain-text output of the monitor."""

from __future__ import annotations

import time
from typing import Callable, Dict, Iterator, List, Mapping

from bandwatch.display.frame import Backend, Frame, Terminal
from bandwatch.display.header import HeaderDetails
from bandwatch.display.help_text import HelpText
from bandwatch.display.layout import Layout
from bandwatch.display.table import Table
from bandwatch.display.ui_state import UIState
from bandwatch.network.connection import (
    IpAddress,
    LocalSocket,
    display_connection_string,
    display_ip_or_host,
)
from bandwatch.network.utilization import Utilization


class Ui:
    """Keeps the displayed state and renders it to a terminal or as text lines.

    ``opts`` needs the boolean attributes ``processes``, ``connections``,
    ``addresses`` and ``total_utilization``.
    """

    def __init__(self, terminal_backend: Backend, opts) -> None:
        self.terminal = Terminal(terminal_backend)
        self.terminal.clear()
        self.terminal.hide_cursor()
        self.state = UIState(cumulative_mode=opts.total_utilization)
        self.ip_to_host: Dict[IpAddress, str] = {}
        self.opts = opts

    def _process_lines(self, timestamp: int) -> Iterator[str]:
        for process, data in self.state.processes:
            yield (
                f'process: <{timestamp}> "{process}" up/down Bps: '
                f"{data.total_bytes_uploaded}/{data.total_bytes_downloaded} "
                f"connections: {data.connection_count}"
            )

    def _connection_lines(self, timestamp: int) -> Iterator[str]:
        for connection, data in self.state.connections:
            description = display_connection_string(
                connection, self.ip_to_host, data.interface_name
            )
            yield (
                f"connection: <{timestamp}> {description} up/down Bps: "
                f"{data.total_bytes_uploaded}/{data.total_bytes_downloaded} "
                f'process: "{data.process_name}"'
            )

    def _address_lines(self, timestamp: int) -> Iterator[str]:
        for address, data in self.state.remote_addresses:
            yield (
                f"remote_address: <{timestamp}> "
                f"{display_ip_or_host(address, self.ip_to_host)} up/down Bps: "
                f"{data.total_bytes_uploaded}/{data.total_bytes_downloaded} "
                f"connections: {data.connection_count}"
            )

    def output_text(self, write_to_stdout: Callable[[str], None]) -> None:
        """Write the current state as plain lines, one call per line."""
        timestamp = int(time.time())
        opts = self.opts
        sections: List[Callable[[int], Iterator[str]]] = []
        if opts.processes:
            sections.append(self._process_lines)
        if opts.connections:
            sections.append(self._connection_lines)
        if opts.addresses:
            sections.append(self._address_lines)
        if not sections:
            sections = [self._process_lines, self._connection_lines, self._address_lines]

        write_to_stdout("Refreshing:")
        no_traffic = True
        for section in sections:
            for line in section(timestamp):
                write_to_stdout(line)
                no_traffic = False
        if no_traffic:
            write_to_stdout("<NO TRAFFIC>")
        write_to_stdout("")

    def _tables(self) -> List[Table]:
        opts = self.opts
        tables: List[Table] = []
        if opts.processes:
            tables.append(Table.processes(self.state))
        if opts.addresses:
            tables.append(Table.remote_addresses(self.state, self.ip_to_host))
        if opts.connections:
            tables.append(Table.connections(self.state, self.ip_to_host))
        if not tables:
            tables = [
                Table.processes(self.state),
                Table.remote_addresses(self.state, self.ip_to_host),
                Table.connections(self.state, self.ip_to_host),
            ]
        return tables

    def draw(self, paused: bool, show_dns: bool, elapsed_time: float, ui_offset: int) -> None:
        """Draw the whole screen once."""
        children = self._tables()

        def render(frame: Frame) -> None:
            layout = Layout(
                header=HeaderDetails(self.state, elapsed_time, paused),
                children=children,
                footer=HelpText(paused, show_dns),
            )
            layout.render(frame, frame.size(), ui_offset)

        self.terminal.draw(render)

    def table_count(self) -> int:
        """How many tables are on display."""
        return len(self._tables())

    def update_state(
        self,
        connections_to_procs: Mapping[LocalSocket, str],
        utilization: Utilization,
        ip_to_host: Mapping[IpAddress, str],
    ) -> None:
        """Take in a new measurement and newly resolved host names."""
        self.state.update(connections_to_procs, utilization)
        self.ip_to_host.update(ip_to_host)

    def end(self) -> None:
        """Give the cursor back."""
        self.terminal.show_cursor()