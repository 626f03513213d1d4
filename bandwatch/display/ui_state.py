"""Aggregated bandwidth figures shown by the interface."""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass, field, replace
from typing import Deque, Dict, Hashable, List, Mapping, Optional, Protocol, Tuple, TypeVar

from bandwatch.network.connection import Connection, IpAddress, LocalSocket
from bandwatch.network.utilization import Utilization

RECALL_LENGTH = 5
MAX_BANDWIDTH_ITEMS = 1000
UNKNOWN_PROCESS = "<UNKNOWN>"

_UNSPECIFIED_ADDRESSES = ("0.0.0.0", "::")


class _Bandwidth(Protocol):
    total_bytes_downloaded: int
    total_bytes_uploaded: int

    def combine_bandwidth(self, other) -> None: ...


K = TypeVar("K", bound=Hashable)
V = TypeVar("V", bound=_Bandwidth)


@dataclass
class NetworkData:
    """Traffic of a process or a remote address."""

    total_bytes_downloaded: int = 0
    total_bytes_uploaded: int = 0
    connection_count: int = 0

    def combine_bandwidth(self, other: "NetworkData") -> None:
        """Add the other's traffic and take over its connection count."""
        self.total_bytes_downloaded += other.total_bytes_downloaded
        self.total_bytes_uploaded += other.total_bytes_uploaded
        self.connection_count = other.connection_count

    def divide_by(self, amount: int) -> None:
        """Divide the traffic figures, rounding down."""
        self.total_bytes_downloaded //= amount
        self.total_bytes_uploaded //= amount


@dataclass
class ConnectionData:
    """Traffic of a single connection."""

    total_bytes_downloaded: int = 0
    total_bytes_uploaded: int = 0
    process_name: str = ""
    interface_name: str = ""

    def combine_bandwidth(self, other: "ConnectionData") -> None:
        """Add the other's traffic."""
        self.total_bytes_downloaded += other.total_bytes_downloaded
        self.total_bytes_uploaded += other.total_bytes_uploaded

    def divide_by(self, amount: int) -> None:
        """Divide the traffic figures, rounding down."""
        self.total_bytes_downloaded //= amount
        self.total_bytes_uploaded //= amount


@dataclass
class UtilizationData:
    """One refresh worth of measurements."""

    connections_to_procs: Mapping[LocalSocket, str]
    network_utilization: Utilization


def _process_name(
    connections_to_procs: Mapping[LocalSocket, str], local_socket: LocalSocket
) -> Optional[str]:
    candidates = [local_socket] + [
        LocalSocket(address, local_socket.port, local_socket.protocol)
        for address in _UNSPECIFIED_ADDRESSES
    ]
    return next(
        (connections_to_procs[c] for c in candidates if c in connections_to_procs), None
    )


@dataclass
class UIState:
    """The tables and totals currently on display."""

    processes: List[Tuple[str, NetworkData]] = field(default_factory=list)
    remote_addresses: List[Tuple[IpAddress, NetworkData]] = field(default_factory=list)
    connections: List[Tuple[Connection, ConnectionData]] = field(default_factory=list)
    total_bytes_downloaded: int = 0
    total_bytes_uploaded: int = 0
    cumulative_mode: bool = False
    utilization_data: Deque[UtilizationData] = field(
        default_factory=lambda: deque(maxlen=RECALL_LENGTH)
    )
    processes_map: Dict[str, NetworkData] = field(default_factory=dict)
    remote_addresses_map: Dict[IpAddress, NetworkData] = field(default_factory=dict)
    connections_map: Dict[Connection, ConnectionData] = field(default_factory=dict)

    def update(
        self,
        connections_to_procs: Mapping[LocalSocket, str],
        network_utilization: Utilization,
    ) -> None:
        """Record a new measurement and recompute the averaged figures."""
        self.utilization_data.append(
            UtilizationData(connections_to_procs, network_utilization)
        )
        processes: Dict[str, NetworkData] = {}
        remote_addresses: Dict[IpAddress, NetworkData] = {}
        connections: Dict[Connection, ConnectionData] = {}
        total_downloaded = 0
        total_uploaded = 0
        seen = set()

        for snapshot in reversed(self.utilization_data):
            for connection, info in snapshot.network_utilization.connections.items():
                first_time = connection not in seen
                seen.add(connection)
                connection_data = connections.setdefault(connection, ConnectionData())
                address_data = remote_addresses.setdefault(
                    connection.remote_socket.ip, NetworkData()
                )
                connection_data.total_bytes_downloaded += info.total_bytes_downloaded
                connection_data.total_bytes_uploaded += info.total_bytes_uploaded
                connection_data.interface_name = info.interface_name
                address_data.total_bytes_downloaded += info.total_bytes_downloaded
                address_data.total_bytes_uploaded += info.total_bytes_uploaded
                if first_time:
                    address_data.connection_count += 1
                total_downloaded += info.total_bytes_downloaded
                total_uploaded += info.total_bytes_uploaded

                name = _process_name(snapshot.connections_to_procs, connection.local_socket)
                connection_data.process_name = UNKNOWN_PROCESS if name is None else name
                process_data = processes.setdefault(
                    connection_data.process_name, NetworkData()
                )
                process_data.total_bytes_downloaded += info.total_bytes_downloaded
                process_data.total_bytes_uploaded += info.total_bytes_uploaded
                if first_time:
                    process_data.connection_count += 1

        divisor = len(self.utilization_data) or 1
        for table in (processes, remote_addresses, connections):
            for data in table.values():
                data.divide_by(divisor)

        if self.cumulative_mode:
            merge_bandwidth(self.processes_map, processes)
            merge_bandwidth(self.remote_addresses_map, remote_addresses)
            merge_bandwidth(self.connections_map, connections)
            self.total_bytes_downloaded += total_downloaded // divisor
            self.total_bytes_uploaded += total_uploaded // divisor
        else:
            self.processes_map = processes
            self.remote_addresses_map = remote_addresses
            self.connections_map = connections
            self.total_bytes_downloaded = total_downloaded // divisor
            self.total_bytes_uploaded = total_uploaded // divisor

        self.processes = sort_and_prune(self.processes_map)
        self.remote_addresses = sort_and_prune(self.remote_addresses_map)
        self.connections = sort_and_prune(self.connections_map)


def merge_bandwidth(self_map: Dict[K, V], other_map: Mapping[K, V]) -> None:
    """Fold the figures of other_map into self_map."""
    for key, other in other_map.items():
        if key in self_map:
            self_map[key].combine_bandwidth(other)
        else:
            self_map[key] = other


def sort_and_prune(mapping: Dict[K, V]) -> List[Tuple[K, V]]:
    """Return copies of the entries, busiest first; drop all but the busiest from mapping."""
    ranked = sorted(
        ((key, replace(value)) for key, value in mapping.items()),
        key=lambda item: item[1].total_bytes_downloaded + item[1].total_bytes_uploaded,
        reverse=True,
    )
    for key, _ in ranked[MAX_BANDWIDTH_ITEMS:]:
        del mapping[key]
    return ranked