"""Command line entry point and the threads that keep the monitor running."""

from __future__ import annotations

import argparse
import sys
import threading
import time
from contextlib import contextmanager
from dataclasses import dataclass, field
from ipaddress import AddressValueError, IPv4Address
from typing import Callable, Iterator, List, Optional, TextIO

try:
    import termios
    import tty
except ImportError:  # not available on Windows
    termios = None
    tty = None

from bandwatch.display.frame import AnsiTerminalBackend, Backend, RawTerminalBackend
from bandwatch.display.header import elapsed_time
from bandwatch.display.ui import Ui
from bandwatch.network.sniffer import Sniffer
from bandwatch.network.utilization import Utilization
from bandwatch.system.shared import OsInputOutput, get_input
from bandwatch.system.terminal import KeyEvent, ResizeEvent

DISPLAY_DELTA = 1.0

PIPE_MESSAGE = (
    "Failed to get stdout: if you are trying to pipe 'bandwatch' "
    "you should use the --raw flag"
)

_ENTER_ALTERNATE_SCREEN = "\x1b[?1049h"
_LEAVE_ALTERNATE_SCREEN = "\x1b[?1049l"


@dataclass(frozen=True)
class RenderOpts:
    """Which tables to show, and whether to show totals instead of rates."""

    processes: bool = False
    connections: bool = False
    addresses: bool = False
    total_utilization: bool = False


@dataclass(frozen=True)
class Opt:
    """Options given on the command line."""

    interface: Optional[str] = None
    raw: bool = False
    no_resolve: bool = False
    render_opts: RenderOpts = field(default_factory=RenderOpts)
    show_dns: bool = False
    dns_server: Optional[IPv4Address] = None


def _ipv4(text: str) -> IPv4Address:
    try:
        return IPv4Address(text)
    except AddressValueError as err:
        raise argparse.ArgumentTypeError(f"invalid IPv4 address: {text!r}") from err


def parse_args(argv: Optional[List[str]] = None) -> Opt:
    """Parse command line arguments into options."""
    parser = argparse.ArgumentParser(
        prog="bandwatch",
        description="Show current network utilization by process, connection and remote address.",
    )
    parser.add_argument("-i", "--interface", help="The network interface to listen on, eg. eth0")
    parser.add_argument("-r", "--raw", action="store_true", help="Machine friendlier output")
    parser.add_argument(
        "-n",
        "--no-resolve",
        action="store_true",
        help="Do not attempt to resolve IPs to their hostnames",
    )
    parser.add_argument(
        "-p", "--processes", action="store_true", help="Show processes table only"
    )
    parser.add_argument(
        "-c", "--connections", action="store_true", help="Show connections table only"
    )
    parser.add_argument(
        "-a", "--addresses", action="store_true", help="Show remote addresses table only"
    )
    parser.add_argument(
        "-t",
        "--total-utilization",
        action="store_true",
        help="Show total (cumulative) usages",
    )
    parser.add_argument("-s", "--show-dns", action="store_true", help="Show DNS queries")
    parser.add_argument(
        "-d",
        "--dns-server",
        type=_ipv4,
        help="A dns server ip to use instead of the system default",
    )
    args = parser.parse_args(argv)
    return Opt(
        interface=args.interface,
        raw=args.raw,
        no_resolve=args.no_resolve,
        render_opts=RenderOpts(
            processes=args.processes,
            connections=args.connections,
            addresses=args.addresses,
            total_utilization=args.total_utilization,
        ),
        show_dns=args.show_dns,
        dns_server=args.dns_server,
    )


class _Controls:
    """State shared by the threads; changed only while the UI lock is held."""

    def __init__(self) -> None:
        self.stop = threading.Event()
        self.wake = threading.Event()
        self.paused = False
        self.last_start_time = time.monotonic()
        self.cumulative_time = 0.0
        self.ui_offset = 0

    def elapsed(self) -> float:
        return elapsed_time(self.last_start_time, self.cumulative_time, self.paused)

    def toggle_pause(self) -> None:
        if self.paused:
            self.last_start_time = time.monotonic()
        else:
            self.cumulative_time += time.monotonic() - self.last_start_time
        self.paused = not self.paused


def _is_plain_key(event: object, code: str) -> bool:
    return (
        isinstance(event, KeyEvent)
        and event.code == code
        and not event.ctrl
        and not event.alt
    )


def _is_quit(event: object) -> bool:
    if isinstance(event, KeyEvent) and event.code == "c" and event.ctrl and not event.alt:
        return True
    return _is_plain_key(event, "q")


def start(terminal_backend: Backend, os_input: OsInputOutput, opts: Opt) -> None:
    """Run the monitor until the user quits."""
    controls = _Controls()
    ui_lock = threading.Lock()
    utilization_lock = threading.Lock()
    network_utilization = Utilization()
    ui = Ui(terminal_backend, opts.render_opts)
    raw_mode = opts.raw
    dns_shown = opts.show_dns
    dns_client = os_input.dns_client
    write_to_stdout = os_input.write_to_stdout
    get_open_sockets = os_input.get_open_sockets

    def display_loop() -> None:
        while not controls.stop.is_set():
            render_start = time.monotonic()
            with utilization_lock:
                utilization = network_utilization.clone_and_reset()
            sockets_to_procs = get_open_sockets()
            ip_to_host = {}
            if dns_client is not None:
                ip_to_host = dns_client.cache()
                dns_client.resolve(
                    [
                        conn.remote_socket.ip
                        for conn in utilization.connections
                        if conn.remote_socket.ip not in ip_to_host
                    ]
                )
            with ui_lock:
                if not controls.paused:
                    ui.update_state(sockets_to_procs, utilization, ip_to_host)
                if raw_mode:
                    ui.output_text(write_to_stdout)
                else:
                    ui.draw(controls.paused, dns_shown, controls.elapsed(), controls.ui_offset)
            remaining = DISPLAY_DELTA - (time.monotonic() - render_start)
            if remaining > 0:
                controls.wake.wait(remaining)
            controls.wake.clear()
        if not raw_mode:
            with ui_lock:
                ui.end()
        if dns_client is not None:
            dns_client.close()

    def handle_terminal_events() -> None:
        for event in os_input.terminal_events:
            with ui_lock:
                if isinstance(event, ResizeEvent):
                    if not raw_mode:
                        ui.draw(
                            controls.paused, dns_shown, controls.elapsed(), controls.ui_offset
                        )
                elif _is_quit(event):
                    controls.stop.set()
                    controls.wake.set()
                    break
                elif _is_plain_key(event, " "):
                    controls.toggle_pause()
                    controls.wake.set()
                elif _is_plain_key(event, "Tab"):
                    controls.ui_offset += 1
                    ui.draw(controls.paused, dns_shown, controls.elapsed(), controls.ui_offset)

    def sniff(interface, frames) -> None:
        sniffer = Sniffer(interface, frames, dns_shown)
        while not controls.stop.is_set():
            segment = sniffer.next()
            if segment is not None:
                with utilization_lock:
                    network_utilization.update(segment)

    display = threading.Thread(target=display_loop, name="display_handler", daemon=True)
    display.start()
    threads = [
        threading.Thread(
            target=handle_terminal_events, name="terminal_events_handler", daemon=True
        ),
        display,
    ]
    threads[0].start()
    for interface, frames in zip(os_input.network_interfaces, os_input.network_frames):
        sniffer_thread = threading.Thread(
            target=sniff,
            args=(interface, frames),
            name=f"sniffing_handler_{interface.name}",
            daemon=True,
        )
        sniffer_thread.start()
        threads.append(sniffer_thread)

    for thread in threads:
        thread.join()


def _enable_raw_mode() -> Callable[[], None]:
    if termios is None:
        return lambda: None
    fd = sys.stdin.fileno()
    try:
        saved = termios.tcgetattr(fd)
        tty.setraw(fd)
    except termios.error as err:
        raise RuntimeError(PIPE_MESSAGE) from err
    return lambda: termios.tcsetattr(fd, termios.TCSADRAIN, saved)


@contextmanager
def _interactive_terminal() -> Iterator[TextIO]:
    stream = sys.stdout
    if not (stream.isatty() and sys.stdin.isatty()):
        raise RuntimeError(PIPE_MESSAGE)
    restore = _enable_raw_mode()
    stream.write(_ENTER_ALTERNATE_SCREEN)
    stream.flush()
    try:
        yield stream
    finally:
        restore()
        stream.write(_LEAVE_ALTERNATE_SCREEN)
        stream.flush()


def main(argv: Optional[List[str]] = None) -> int:
    """Run the command; return the exit status."""
    opts = parse_args(argv)
    try:
        os_input = get_input(opts.interface, not opts.no_resolve, opts.dns_server)
        if opts.raw:
            start(RawTerminalBackend(), os_input, opts)
        else:
            with _interactive_terminal() as stream:
                start(AnsiTerminalBackend(stream), os_input, opts)
    except RuntimeError as err:
        print(f"Error: {err}", file=sys.stderr)
        return 2
    except KeyboardInterrupt:
        return 130
    return 0


if __name__ == "__main__":
    sys.exit(main())