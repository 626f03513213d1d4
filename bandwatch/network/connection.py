"""Sockets, connections and their textual forms."""

from __future__ import annotations

import enum
from dataclasses import dataclass
from ipaddress import IPv4Address, IPv6Address, ip_address
from typing import Mapping, Tuple, Union

IpAddress = Union[IPv4Address, IPv6Address]


class Protocol(enum.Enum):
    """Transport protocol of a connection."""

    TCP = "tcp"
    UDP = "udp"

    @classmethod
    def from_str(cls, string: str) -> "Protocol":
        """Parse the upper-case protocol names used by system tools."""
        names = {"TCP": cls.TCP, "UDP": cls.UDP}
        try:
            return names[string]
        except KeyError:
            raise ValueError(f"unknown protocol: {string!r}") from None

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class Socket:
    """A remote endpoint."""

    ip: IpAddress
    port: int

    def __post_init__(self) -> None:
        object.__setattr__(self, "ip", ip_address(self.ip))


@dataclass(frozen=True)
class LocalSocket:
    """A local endpoint together with its protocol."""

    ip: IpAddress
    port: int
    protocol: Protocol

    def __post_init__(self) -> None:
        object.__setattr__(self, "ip", ip_address(self.ip))


@dataclass(frozen=True)
class Connection:
    """A connection between a local socket and a remote one."""

    remote_socket: Socket
    local_socket: LocalSocket

    @classmethod
    def create(
        cls,
        remote_socket: Union[Socket, Tuple[object, int]],
        local_ip: object,
        local_port: int,
        protocol: Protocol,
    ) -> "Connection":
        """Build a connection from a remote (ip, port) and local details."""
        if not isinstance(remote_socket, Socket):
            remote_ip, remote_port = remote_socket
            remote_socket = Socket(remote_ip, remote_port)
        return cls(
            remote_socket=remote_socket,
            local_socket=LocalSocket(local_ip, local_port, protocol),
        )


def display_ip_or_host(ip: IpAddress, ip_to_host: Mapping[IpAddress, str]) -> str:
    """Return the resolved host name of an address, or the address itself."""
    host = ip_to_host.get(ip)
    return host if host is not None else str(ip)


def display_connection_string(
    connection: Connection,
    ip_to_host: Mapping[IpAddress, str],
    interface_name: str,
) -> str:
    """Describe a connection on one line."""
    remote = connection.remote_socket
    local = connection.local_socket
    return (
        f"<{interface_name}>:{local.port} => "
        f"{display_ip_or_host(remote.ip, ip_to_host)}:{remote.port} "
        f"({local.protocol})"
    )