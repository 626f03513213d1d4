"""Open sockets per process, read from the proc filesystem."""

from __future__ import annotations

import os
import re
import struct
from ipaddress import ip_address
from pathlib import Path
from typing import Dict, List, Tuple, Union

from bandwatch.network.connection import IpAddress, LocalSocket, Protocol

_SOCKET_LINK_RE = re.compile(r"socket:\[(\d+)\]")
_WORD_RE = re.compile(r"[0-9A-Fa-f]{8}")

PathLike = Union[str, os.PathLike]


def _decode_address(text: str) -> Tuple[IpAddress, int]:
    host_hex, port_hex = text.split(":")
    if len(host_hex) not in (8, 32):
        raise ValueError(f"bad address: {text!r}")
    # The kernel prints each 32-bit word of the address in host byte order.
    raw = b"".join(struct.pack("=I", int(word, 16)) for word in _WORD_RE.findall(host_hex))
    return ip_address(raw), int(port_hex, 16)


def parse_proc_net(content: str) -> List[Tuple[IpAddress, int, int]]:
    """Parse a /proc/net/{tcp,udp}[6] table into (local ip, local port, inode)."""
    entries = []
    for line in content.splitlines()[1:]:
        fields = line.split()
        if len(fields) < 10:
            continue
        try:
            ip, port = _decode_address(fields[1])
            inode = int(fields[9])
        except ValueError:
            continue
        entries.append((ip, port, inode))
    return entries


def _command_name(stat_text: str) -> str:
    return stat_text[stat_text.index("(") + 1 : stat_text.rindex(")")]


def socket_inodes_by_process(proc_root: PathLike = "/proc") -> Dict[int, str]:
    """Map each socket inode to the command name of a process holding it."""
    inodes: Dict[int, str] = {}
    try:
        process_dirs = [p for p in Path(proc_root).iterdir() if p.name.isdigit()]
    except OSError:
        return inodes
    for process_dir in process_dirs:
        try:
            fds = list((process_dir / "fd").iterdir())
            name = _command_name((process_dir / "stat").read_text(errors="replace"))
        except (OSError, ValueError):
            continue
        for fd in fds:
            try:
                target = os.readlink(fd)
            except OSError:
                continue
            match = _SOCKET_LINK_RE.fullmatch(target)
            if match:
                inodes[int(match.group(1))] = name
    return inodes


def get_open_sockets(proc_root: PathLike = "/proc") -> Dict[LocalSocket, str]:
    """Map each local socket to the name of the process holding it."""
    inodes = socket_inodes_by_process(proc_root)
    net = Path(proc_root) / "net"
    sockets: Dict[LocalSocket, str] = {}
    for protocol, (table, table6) in (
        (Protocol.TCP, ("tcp", "tcp6")),
        (Protocol.UDP, ("udp", "udp6")),
    ):
        try:
            entries = parse_proc_net((net / table).read_text())
        except OSError:
            continue
        try:
            entries += parse_proc_net((net / table6).read_text())
        except OSError:
            pass
        for ip, port, inode in entries:
            name = inodes.get(inode)
            if name is not None:
                sockets[LocalSocket(ip, port, protocol)] = name
    return sockets