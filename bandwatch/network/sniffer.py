"""Turning captured frames into connection segments."""

from __future__ import annotations

import contextlib
import enum
import struct
import sys
import time
from dataclasses import dataclass
from ipaddress import IPv4Address, IPv6Address
from typing import Callable, Iterable, Optional

from bandwatch.network.connection import Connection, IpAddress, Protocol
from bandwatch.system.capture import (
    GetInterfaceError,
    NetworkInterface,
    get_datalink_channel,
)

PACKET_WAIT_TIMEOUT = 0.01
CHANNEL_RESET_DELAY = 1.0

_ETHERNET_HEADER_LEN = 14
_IPV4_MIN_LEN = 20
_IPV6_HEADER_LEN = 40
_TCP_MIN_LEN = 20
_UDP_HEADER_LEN = 8
_ETHERTYPE_IPV4 = 0x0800
_ETHERTYPE_IPV6 = 0x86DD
_IPPROTO_TCP = 6
_IPPROTO_UDP = 17
_DNS_PORT = 53


class Direction(enum.Enum):
    """Whether traffic leaves or reaches this machine."""

    DOWNLOAD = "download"
    UPLOAD = "upload"

    @classmethod
    def from_source(cls, interface_ips: Iterable[object], source: IpAddress) -> "Direction":
        """Upload when the source is one of the interface's own addresses."""
        if any(getattr(net, "ip", net) == source for net in interface_ips):
            return cls.UPLOAD
        return cls.DOWNLOAD


@dataclass
class Segment:
    """One captured transport segment."""

    interface_name: str
    connection: Connection
    direction: Direction
    data_length: int


def _transport(next_header: int, payload: bytes):
    if next_header == _IPPROTO_TCP and len(payload) >= _TCP_MIN_LEN:
        protocol = Protocol.TCP
    elif next_header == _IPPROTO_UDP and len(payload) >= _UDP_HEADER_LEN:
        protocol = Protocol.UDP
    else:
        return None
    source_port, destination_port = struct.unpack("!HH", payload[:4])
    return protocol, source_port, destination_port, len(payload)


def _segment(interface: NetworkInterface, transport, source: IpAddress,
             destination: IpAddress) -> Segment:
    protocol, source_port, destination_port, data_length = transport
    direction = Direction.from_source(interface.ips, source)
    if direction is Direction.DOWNLOAD:
        connection = Connection.create(
            (source, source_port), destination, destination_port, protocol
        )
    else:
        connection = Connection.create(
            (destination, destination_port), source, source_port, protocol
        )
    return Segment(interface.name, connection, direction, data_length)


def _handle_v4(packet: bytes, interface: NetworkInterface, show_dns: bool) -> Optional[Segment]:
    if len(packet) < _IPV4_MIN_LEN:
        return None
    header_length = (packet[0] & 0x0F) * 4
    total_length = int.from_bytes(packet[2:4], "big")
    start = min(max(header_length, _IPV4_MIN_LEN), len(packet))
    end = min(start + max(total_length - header_length, 0), len(packet))
    transport = _transport(packet[9], packet[start:end])
    if transport is None:
        return None
    segment = _segment(
        interface, transport, IPv4Address(packet[12:16]), IPv4Address(packet[16:20])
    )
    if not show_dns and segment.connection.remote_socket.port == _DNS_PORT:
        return None
    return segment


def _handle_v6(packet: bytes, interface: NetworkInterface) -> Optional[Segment]:
    if len(packet) < _IPV6_HEADER_LEN:
        return None
    payload_length = int.from_bytes(packet[4:6], "big")
    end = min(_IPV6_HEADER_LEN + payload_length, len(packet))
    transport = _transport(packet[6], packet[_IPV6_HEADER_LEN:end])
    if transport is None:
        return None
    return _segment(
        interface, transport, IPv6Address(packet[8:24]), IPv6Address(packet[24:40])
    )


def parse_frame(data: bytes, interface: NetworkInterface, show_dns: bool,
                payload_offset: int = 0) -> Optional[Segment]:
    """Parse a raw IP packet or Ethernet frame; None when it is not TCP/UDP over IP."""
    data = bytes(data)
    packet = data[payload_offset:]
    if len(packet) < _IPV4_MIN_LEN:
        return None
    version = packet[0] >> 4
    if version == 4:
        return _handle_v4(packet, interface, show_dns)
    if version == 6:
        return _handle_v6(packet, interface)
    if len(data) < _ETHERNET_HEADER_LEN:
        return None
    ethertype = int.from_bytes(data[12:14], "big")
    payload = data[_ETHERNET_HEADER_LEN:]
    if ethertype == _ETHERTYPE_IPV4:
        return _handle_v4(payload, interface, show_dns)
    if ethertype == _ETHERTYPE_IPV6:
        return _handle_v6(payload, interface)
    return None


class Sniffer:
    """Reads frames from one interface and yields segments."""

    def __init__(
        self,
        network_interface: NetworkInterface,
        network_frames,
        dns_shown: bool,
        open_channel: Callable[[NetworkInterface], object] = get_datalink_channel,
    ) -> None:
        self.network_interface = network_interface
        self.network_frames = network_frames
        self.dns_shown = dns_shown
        self._open_channel = open_channel

    def next(self) -> Optional[Segment]:
        """Read one frame; None when nothing usable arrived."""
        try:
            data = self.network_frames.receive()
        except TimeoutError:
            time.sleep(PACKET_WAIT_TIMEOUT)
            return None
        except OSError:
            time.sleep(CHANNEL_RESET_DELAY)
            with contextlib.suppress(OSError):
                self.reset_channel()
            return None
        iface = self.network_interface
        # BPF loopback and tunnel devices prepend a zeroed Ethernet header on macOS.
        offset = (
            _ETHERNET_HEADER_LEN
            if (iface.is_loopback() or iface.is_point_to_point()) and sys.platform == "darwin"
            else 0
        )
        return parse_frame(data, iface, self.dns_shown, offset)

    def reset_channel(self) -> None:
        """Reopen the capture channel; raises OSError if the interface is gone."""
        try:
            frames = self._open_channel(self.network_interface)
        except GetInterfaceError as err:
            raise OSError("Interface not available") from err
        old, self.network_frames = self.network_frames, frames
        with contextlib.suppress(OSError):
            old.close()