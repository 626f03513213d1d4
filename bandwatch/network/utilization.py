"""Per-connection byte counters gathered between two screen refreshes."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Dict

from bandwatch.network.connection import Connection
from bandwatch.network.sniffer import Direction, Segment


@dataclass
class ConnectionInfo:
    """Bytes moved over one connection."""

    interface_name: str
    total_bytes_downloaded: int = 0
    total_bytes_uploaded: int = 0


@dataclass
class Utilization:
    """Byte counters for every connection seen."""

    connections: Dict[Connection, ConnectionInfo] = field(default_factory=dict)

    def clone_and_reset(self) -> "Utilization":
        """Return a snapshot of the counters and start over from empty."""
        snapshot = Utilization(
            {conn: replace(info) for conn, info in self.connections.items()}
        )
        self.connections.clear()
        return snapshot

    def update(self, segment: Segment) -> None:
        """Add one captured segment to the counters."""
        info = self.connections.setdefault(
            segment.connection, ConnectionInfo(segment.interface_name)
        )
        if segment.direction is Direction.DOWNLOAD:
            info.total_bytes_downloaded += segment.data_length
        else:
            info.total_bytes_uploaded += segment.data_length