"""Open sockets per process, using the system connection table."""

from __future__ import annotations

import socket
from typing import Dict

import psutil

from bandwatch.network.connection import LocalSocket, Protocol

_PROTOCOLS = {socket.SOCK_STREAM: Protocol.TCP, socket.SOCK_DGRAM: Protocol.UDP}


def get_open_sockets() -> Dict[LocalSocket, str]:
    """Map each local socket to the name of the process holding it."""
    try:
        connections = psutil.net_connections(kind="inet")
    except (psutil.Error, OSError):
        return {}
    names = {
        proc.pid: proc.info.get("name") or ""
        for proc in psutil.process_iter(["name"])
    }
    sockets: Dict[LocalSocket, str] = {}
    for conn in connections:
        protocol = _PROTOCOLS.get(conn.type)
        if protocol is None or not conn.laddr:
            continue
        local = LocalSocket(conn.laddr.ip.split("%")[0], conn.laddr.port, protocol)
        sockets[local] = names.get(conn.pid, "")
    return sockets