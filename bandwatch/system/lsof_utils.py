"""Parsing the socket listing printed by lsof."""

from __future__ import annotations

import re
import subprocess
from dataclasses import dataclass
from typing import Iterable, List, Optional

from bandwatch.network.connection import LocalSocket, Protocol

_CONNECTION_RE = re.compile(r"\[?([^\s\]]*)\]?:(\d+)->\[?([^\s\]]*)\]?:(\d+)")
_LISTEN_RE = re.compile(r"\[?([^\s\[\]]*)\]?:(.*)")

LSOF_ARGS = ("-n", "-P", "-i4", "-i6", "+c", "0")


def _null_address(ip_type: str) -> str:
    return "0.0.0.0" if "4" in ip_type else "::0"


@dataclass(frozen=True)
class RawConnection:
    """One socket line of lsof output, still as text."""

    remote_ip: str
    local_ip: str
    local_port: str
    remote_port: str
    protocol: str
    process_name: str

    @classmethod
    def parse(cls, raw_line: str) -> Optional["RawConnection"]:
        """Parse a line; None when it does not describe a TCP or UDP socket."""
        columns = raw_line.split()
        if len(columns) < 9:
            return None
        process_name = columns[0].replace("\\x20", " ")
        ip_type = columns[4]
        protocol = columns[7].upper()
        if protocol not in ("TCP", "UDP"):
            return None
        endpoints = columns[8]

        match = _CONNECTION_RE.search(endpoints)
        if match:
            local_ip, local_port, remote_ip, remote_port = match.groups()
            return cls(remote_ip, local_ip, local_port, remote_port, protocol, process_name)

        match = _LISTEN_RE.search(endpoints)
        if match:
            host, port = match.groups()
            local_ip = _null_address(ip_type) if host == "*" else host
            local_port = "0" if port == "*" else port
            return cls(
                _null_address(ip_type), local_ip, local_port, "0", protocol, process_name
            )
        return None

    def to_local_socket(self) -> LocalSocket:
        """The local socket; raises ValueError on malformed fields."""
        return LocalSocket(
            self.local_ip, int(self.local_port), Protocol.from_str(self.protocol)
        )


def parse_connections(content: str) -> List[RawConnection]:
    """Parse every socket line, last line first."""
    parsed = (RawConnection.parse(line) for line in content.splitlines())
    return [conn for conn in parsed if conn is not None][::-1]


def run_lsof(args: Iterable[str]) -> str:
    """Run lsof with the given arguments and return its standard output."""
    result = subprocess.run(["lsof", *args], capture_output=True, check=False)
    return result.stdout.decode("utf-8", errors="replace")


def get_connections() -> List[RawConnection]:
    """List the open internet sockets of all processes."""
    return parse_connections(run_lsof(LSOF_ARGS))