"""Open sockets per process, as reported by lsof."""

from __future__ import annotations

from typing import Dict

from bandwatch.network.connection import LocalSocket
from bandwatch.system.lsof_utils import get_connections


def get_open_sockets() -> Dict[LocalSocket, str]:
    """Map each local socket to the name of the process holding it."""
    return {conn.to_local_socket(): conn.process_name for conn in get_connections()}