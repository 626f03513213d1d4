"""Gathering everything the monitor needs from the operating system."""

from __future__ import annotations

import sys
from dataclasses import dataclass
from ipaddress import IPv4Address
from typing import Callable, Dict, Iterable, List, Optional, Tuple, Union

from bandwatch.network.connection import LocalSocket
from bandwatch.network.dns.client import Client
from bandwatch.network.dns.resolver import Resolver
from bandwatch.system import linux, lsof, windows
from bandwatch.system.capture import (
    GetInterfaceError,
    InterfacePermissionError,
    NetworkInterface,
    PacketReceiver,
    get_datalink_channel,
    get_interface,
    list_interfaces,
)
from bandwatch.system.terminal import TerminalEvents

OpenSocketsFn = Callable[[], Dict[LocalSocket, str]]


@dataclass
class OsInputOutput:
    """The interfaces, capture channels and I/O hooks the monitor runs on."""

    network_interfaces: List[NetworkInterface]
    network_frames: List[PacketReceiver]
    get_open_sockets: OpenSocketsFn
    terminal_events: Iterable[object]
    dns_client: Optional[Client]
    write_to_stdout: Callable[[str], None]


def eperm_message() -> str:
    """Advice shown when capturing is not permitted."""
    if sys.platform.startswith("linux"):
        return (
            "\n    Insufficient permissions to listen on network interface(s). "
            "You can work around\n    this issue like this:\n\n"
            "    * Try running `bandwatch` with `sudo`\n\n"
            "    * Build a `setcap(8)` wrapper for `bandwatch` with the following rules:\n"
            "        `cap_sys_ptrace,cap_dac_read_search,cap_net_raw,cap_net_admin+ep`\n    "
        )
    if sys.platform == "win32":
        return (
            "Insufficient permissions to listen on network interface(s). "
            "Try running with administrator rights."
        )
    return (
        "Insufficient permissions to listen on network interface(s). "
        "Try running with sudo."
    )


def collect_errors(results: Iterable[Tuple[NetworkInterface, object]]) -> str:
    """Summarise the failures among (interface, channel-or-error) pairs."""
    permission: Optional[str] = None
    other: Optional[str] = None
    for _, outcome in results:
        if isinstance(outcome, InterfacePermissionError):
            name = outcome.interface_name
            permission = name if permission is None else f"{permission}, {name}"
        elif isinstance(outcome, GetInterfaceError):
            other = str(outcome) if other is None else f"{other} \n {outcome}"
    if permission is not None:
        if other is not None:
            return f"\n\n{permission}: {eperm_message()} \nAdditional Errors: \n {other}"
        return f"\n\n{permission}: {eperm_message()}"
    if other is None:
        raise ValueError("asked to collect errors but found no errors")
    return f"\n\n {other}"


def platform_open_sockets() -> OpenSocketsFn:
    """The function that lists open sockets on this operating system."""
    if sys.platform.startswith("linux"):
        return linux.get_open_sockets
    if sys.platform == "win32":
        return windows.get_open_sockets
    return lsof.get_open_sockets


def _write_to_stdout(output: str) -> None:
    print(output, flush=True)


def get_input(
    interface_name: Optional[str],
    resolve: bool,
    dns_server: Optional[Union[IPv4Address, str]],
) -> OsInputOutput:
    """Open capture channels and set up the DNS client; raises RuntimeError on failure."""
    if interface_name is not None:
        interface = get_interface(interface_name)
        if interface is None:
            raise RuntimeError(f"Cannot find interface {interface_name}")
        interfaces = [interface]
    else:
        interfaces = list_interfaces()

    windows_host = sys.platform == "win32"
    candidates = [i for i in interfaces if (windows_host or i.is_up()) and i.ips]
    results: List[Tuple[NetworkInterface, object]] = []
    for interface in candidates:
        try:
            results.append((interface, get_datalink_channel(interface)))
        except GetInterfaceError as err:
            results.append((interface, err))

    available = [(i, r) for i, r in results if not isinstance(r, GetInterfaceError)]
    if not available:
        if any(isinstance(r, GetInterfaceError) for _, r in results):
            raise RuntimeError(collect_errors(results))
        raise RuntimeError("Failed to find any network interface to listen on.")

    dns_client = None
    if resolve:
        try:
            resolver = Resolver(dns_server)
        except Exception as err:
            raise RuntimeError(
                "Could not initialize the DNS resolver. Are you offline?"
                f"\n\nReason: {err!r}"
            ) from err
        dns_client = Client(resolver)

    return OsInputOutput(
        network_interfaces=[i for i, _ in available],
        network_frames=[r for _, r in available],
        get_open_sockets=platform_open_sockets(),
        terminal_events=TerminalEvents(),
        dns_client=dns_client,
        write_to_stdout=_write_to_stdout,
    )