"""Network interfaces and raw packet capture."""

from __future__ import annotations

import socket
from dataclasses import dataclass, field
from ipaddress import IPv4Interface, IPv6Interface, ip_address, ip_interface
from typing import List, Optional, Union

import psutil

IFF_UP = 0x1
IFF_BROADCAST = 0x2
IFF_LOOPBACK = 0x8
IFF_POINTOPOINT = 0x10
IFF_RUNNING = 0x40
IFF_MULTICAST = 0x1000

_FLAG_NAMES = {
    "up": IFF_UP,
    "broadcast": IFF_BROADCAST,
    "loopback": IFF_LOOPBACK,
    "pointopoint": IFF_POINTOPOINT,
    "running": IFF_RUNNING,
    "multicast": IFF_MULTICAST,
}

ETH_P_ALL = 0x0003
READ_TIMEOUT = 1.0
READ_BUFFER_SIZE = 65536

IpInterface = Union[IPv4Interface, IPv6Interface]


class GetInterfaceError(Exception):
    """Opening a capture channel on an interface failed."""


class InterfacePermissionError(GetInterfaceError):
    """Not allowed to capture on the interface."""

    def __init__(self, interface_name: str) -> None:
        super().__init__(f"Permission error: {interface_name}")
        self.interface_name = interface_name


class InterfaceOtherError(GetInterfaceError):
    """Any other failure to capture on the interface."""

    def __init__(self, message: str) -> None:
        super().__init__(f"Other error: {message}")
        self.message = message


@dataclass
class NetworkInterface:
    """A network interface and its addresses."""

    name: str
    description: str = ""
    index: int = 0
    mac: Optional[str] = None
    ips: List[IpInterface] = field(default_factory=list)
    flags: int = 0

    def is_up(self) -> bool:
        return bool(self.flags & IFF_UP)

    def is_loopback(self) -> bool:
        return bool(self.flags & IFF_LOOPBACK)

    def is_point_to_point(self) -> bool:
        return bool(self.flags & IFF_POINTOPOINT)


class PacketReceiver:
    """Reads raw frames from a capture socket."""

    def __init__(self, sock) -> None:
        self._socket = sock

    def receive(self) -> bytes:
        """Return the next frame; raises TimeoutError when none arrived in time."""
        return self._socket.recv(READ_BUFFER_SIZE)

    def close(self) -> None:
        self._socket.close()

    def __enter__(self) -> "PacketReceiver":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()


def _prefix_length(netmask: Optional[str], version: int) -> int:
    full = 32 if version == 4 else 128
    if not netmask:
        return full
    try:
        return bin(int(ip_address(netmask.split("%")[0]))).count("1")
    except ValueError:
        return full


def _to_ip_interface(entry) -> Optional[IpInterface]:
    if entry.family not in (socket.AF_INET, socket.AF_INET6):
        return None
    address = entry.address.split("%")[0]
    try:
        ip = ip_address(address)
        return ip_interface(f"{address}/{_prefix_length(entry.netmask, ip.version)}")
    except ValueError:
        return None


def _flags(stats) -> int:
    if stats is None:
        return 0
    flags = 0
    for name in (getattr(stats, "flags", "") or "").split(","):
        flags |= _FLAG_NAMES.get(name.strip(), 0)
    if stats.isup:
        flags |= IFF_UP
    return flags


def _index(name: str) -> int:
    try:
        return socket.if_nametoindex(name)
    except (OSError, AttributeError):
        return 0


def list_interfaces() -> List[NetworkInterface]:
    """Return every network interface of this machine."""
    addresses = psutil.net_if_addrs()
    stats = psutil.net_if_stats()
    interfaces = []
    for name in dict.fromkeys([*addresses, *stats]):
        entries = addresses.get(name, [])
        ips = [ip for ip in map(_to_ip_interface, entries) if ip is not None]
        mac = next((e.address for e in entries if e.family == psutil.AF_LINK), None)
        interfaces.append(
            NetworkInterface(
                name=name,
                index=_index(name),
                mac=mac,
                ips=ips,
                flags=_flags(stats.get(name)),
            )
        )
    return interfaces


def get_interface(interface_name: str) -> Optional[NetworkInterface]:
    """Return the interface with this name, or None."""
    return next((i for i in list_interfaces() if i.name == interface_name), None)


def get_datalink_channel(interface: NetworkInterface) -> PacketReceiver:
    """Open a raw capture channel on an interface."""
    family = getattr(socket, "AF_PACKET", None)
    if family is None:
        raise InterfaceOtherError(f"{interface.name}: Unsupported interface type")
    try:
        sock = socket.socket(family, socket.SOCK_RAW, socket.htons(ETH_P_ALL))
    except PermissionError:
        raise InterfacePermissionError(interface.name) from None
    except OSError as err:
        raise InterfaceOtherError(f"{interface.name}: {err}") from err
    try:
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_RCVBUF, READ_BUFFER_SIZE)
        sock.bind((interface.name, 0))
        sock.settimeout(READ_TIMEOUT)
    except PermissionError:
        sock.close()
        raise InterfacePermissionError(interface.name) from None
    except OSError as err:
        sock.close()
        raise InterfaceOtherError(f"{interface.name}: {err}") from err
    return PacketReceiver(sock)