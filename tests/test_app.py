import re
import struct
import time
from collections import deque
from dataclasses import dataclass, field, replace
from ipaddress import IPv4Address, ip_address, ip_interface
from typing import List

import pytest

from bandwatch.app import Opt, RenderOpts, main, parse_args, start
from bandwatch.display.frame import Backend, RawTerminalBackend, Rect
from bandwatch.network.connection import LocalSocket, Protocol
from bandwatch.network.dns.client import Client
from bandwatch.network.dns.resolver import Lookup
from bandwatch.system.shared import OsInputOutput
from bandwatch.system.terminal import KeyEvent, ResizeEvent

FILLER = bytes(12) + b"\x08\x06" + bytes(46)
QUIT = KeyEvent("c", ctrl=True)


def ipv4_tcp(src, dst, sport, dport, payload):
    tcp = struct.pack("!HHIIBBHHH", sport, dport, 0, 0, 5 << 4, 0x02, 65535, 0, 0)
    total = 20 + len(tcp) + len(payload)
    ip = struct.pack(
        "!BBHHHBBH4s4s",
        0x45,
        0,
        total,
        0,
        0,
        64,
        6,
        0,
        IPv4Address(src).packed,
        IPv4Address(dst).packed,
    )
    return ip + tcp + payload


def tcp_packet(src, dst, sport, dport, payload):
    return bytes(12) + b"\x08\x00" + ipv4_tcp(src, dst, sport, dport, payload)


@dataclass
class FakeInterface:
    name: str = "interface_name"
    description: str = "Fake interface"
    index: int = 42
    mac: object = None
    ips: list = field(default_factory=lambda: [ip_interface("10.0.0.2/32")])
    flags: int = 0

    def is_up(self):
        return True

    def is_loopback(self):
        return False

    def is_point_to_point(self):
        return False


class FakeFrames:
    def __init__(self, packets):
        self._packets = deque(packets)
        self._first = True

    def receive(self):
        if self._first:
            self._first = False
            time.sleep(0.5)
        if self._packets:
            item = self._packets.popleft()
            if item is not None:
                return item
        time.sleep(1)
        return FILLER

    def close(self):
        pass


class RecordingBackend(Backend):
    def __init__(self, width=190, height=50):
        self.width = width
        self.height = height
        self.events: List[str] = []
        self.screens: List[str] = []

    def clear(self):
        self.events.append("clear")

    def hide_cursor(self):
        self.events.append("hide_cursor")

    def show_cursor(self):
        self.events.append("show_cursor")

    def draw(self, buffer):
        self.events.append("draw")
        self.screens.append("\n".join(buffer.lines()))

    def size(self):
        return Rect(0, 0, self.width, self.height)

    def flush(self):
        self.events.append("flush")


class FakeResolver(Lookup):
    def __init__(self, hosts):
        self.hosts = hosts

    def lookup(self, ip):
        return self.hosts.get(ip)


def fake_open_sockets():
    local = ip_address("10.0.0.2")
    return {
        LocalSocket(local, 443, Protocol.TCP): "1",
        LocalSocket(local, 4434, Protocol.TCP): "4",
        LocalSocket(local, 4435, Protocol.TCP): "5",
        LocalSocket(local, 4432, Protocol.TCP): "2",
    }


def scripted(script):
    for item in script:
        if item is None:
            time.sleep(0.9)
        else:
            yield item


def sleep_and_quit(count):
    return scripted([None] * count + [QUIT])


def make_os_input(packets, events, dns_client=None, output=None):
    return OsInputOutput(
        network_interfaces=[FakeInterface()],
        network_frames=[FakeFrames(packets)],
        get_open_sockets=fake_open_sockets,
        terminal_events=events,
        dns_client=dns_client,
        write_to_stdout=output.append if output is not None else (lambda _line: None),
    )


def raw_blocks(output):
    blocks = []
    for line in output:
        line = re.sub(r"<\d+>", "<TIMESTAMP_REMOVED>", line)
        if line == "Refreshing:":
            blocks.append([])
        elif line:
            blocks[-1].append(line)
    return blocks


def run_raw(packets, sleeps, opts=None, dns_client=None):
    output = []
    os_input = make_os_input(packets, sleep_and_quit(sleeps), dns_client, output)
    start(RawTerminalBackend(), os_input, opts or Opt(interface="interface_name", raw=True))
    return output, raw_blocks(output)


def test_parse_args_defaults():
    assert parse_args([]) == Opt()


def test_parse_args_all_flags():
    opts = parse_args(
        ["-i", "eth0", "-r", "-n", "-p", "-c", "-a", "-t", "-s", "-d", "8.8.8.8"]
    )
    assert opts == Opt(
        interface="eth0",
        raw=True,
        no_resolve=True,
        render_opts=RenderOpts(True, True, True, True),
        show_dns=True,
        dns_server=IPv4Address("8.8.8.8"),
    )


def test_parse_args_rejects_bad_dns_server():
    with pytest.raises(SystemExit):
        parse_args(["--dns-server", "not-an-ip"])


def test_main_reports_missing_interface(capsys):
    assert main(["--raw", "-n", "-i", "no-such-interface-0"]) == 2
    assert "Cannot find interface no-such-interface-0" in capsys.readouterr().err


def test_raw_one_packet_of_traffic():
    output, blocks = run_raw(
        [tcp_packet("10.0.0.2", "1.1.1.1", 443, 12345, b"I am a fake tcp packet")], 2
    )
    assert output[-1] == ""
    assert blocks == [
        ["<NO TRAFFIC>"],
        [
            'process: <TIMESTAMP_REMOVED> "1" up/down Bps: 21/0 connections: 1',
            "connection: <TIMESTAMP_REMOVED> <interface_name>:443 => 1.1.1.1:12345 (tcp) "
            'up/down Bps: 21/0 process: "1"',
            "remote_address: <TIMESTAMP_REMOVED> 1.1.1.1 up/down Bps: 21/0 connections: 1",
        ],
    ]


def test_raw_one_ip_packet_without_ethernet_header():
    _, blocks = run_raw(
        [ipv4_tcp("10.0.0.2", "1.1.1.1", 443, 12345, b"I am a fake tcp packet")], 2
    )
    assert blocks[-1][0] == 'process: <TIMESTAMP_REMOVED> "1" up/down Bps: 21/0 connections: 1'


def test_raw_bi_directional_traffic():
    _, blocks = run_raw(
        [
            tcp_packet("10.0.0.2", "1.1.1.1", 443, 12345, b"I am a fake tcp upload packet"),
            tcp_packet("1.1.1.1", "10.0.0.2", 12345, 443, b"I am a fake tcp download packet"),
        ],
        2,
    )
    assert blocks[-1] == [
        'process: <TIMESTAMP_REMOVED> "1" up/down Bps: 24/25 connections: 1',
        "connection: <TIMESTAMP_REMOVED> <interface_name>:443 => 1.1.1.1:12345 (tcp) "
        'up/down Bps: 24/25 process: "1"',
        "remote_address: <TIMESTAMP_REMOVED> 1.1.1.1 up/down Bps: 24/25 connections: 1",
    ]


def test_raw_multiple_connections_from_remote_address():
    _, blocks = run_raw(
        [
            tcp_packet("1.1.1.1", "10.0.0.2", 12345, 443, b"I have come from 1.1.1.1"),
            tcp_packet("1.1.1.1", "10.0.0.2", 12346, 443, b"Me too, but on a different port"),
        ],
        2,
    )
    last = blocks[-1]
    assert last[0] == 'process: <TIMESTAMP_REMOVED> "1" up/down Bps: 0/47 connections: 2'
    assert last[-1] == (
        "remote_address: <TIMESTAMP_REMOVED> 1.1.1.1 up/down Bps: 0/47 connections: 2"
    )
    assert len(last) == 4


@pytest.mark.parametrize("show_dns", [False, True])
def test_raw_dns_queries_hidden_unless_shown(show_dns):
    opts = Opt(interface="interface_name", raw=True, show_dns=show_dns)
    _, blocks = run_raw(
        [tcp_packet("10.0.0.2", "1.1.1.1", 54321, 53, b"I am a fake DNS query packet")],
        2,
        opts,
    )
    if show_dns:
        assert blocks[-1][1] == (
            "connection: <TIMESTAMP_REMOVED> <interface_name>:54321 => 1.1.1.1:53 (tcp) "
            'up/down Bps: 24/0 process: "<UNKNOWN>"'
        )
    else:
        assert blocks[-1] == ["<NO TRAFFIC>"]


def test_raw_traffic_with_host_names():
    hosts = {
        ip_address("1.1.1.1"): "one.one.one.one",
        ip_address("3.3.3.3"): "three.three.three.three",
        ip_address("10.0.0.2"): "i-like-cheese.com",
    }
    packets = [
        tcp_packet("10.0.0.2", "3.3.3.3", 4435, 1337, b"omw to 3.3.3.3"),
        tcp_packet("3.3.3.3", "10.0.0.2", 1337, 4435, b"I was just there!"),
        tcp_packet("1.1.1.1", "10.0.0.2", 12345, 443, b"Is it nice there?"),
        tcp_packet("10.0.0.2", "1.1.1.1", 443, 12345, b"Well, I heard"),
        None,
        tcp_packet("10.0.0.2", "3.3.3.3", 4435, 1337, b"Wait for me!"),
        tcp_packet("1.1.1.1", "10.0.0.2", 12345, 443, b"1.1.1.1 forever!"),
    ]
    _, blocks = run_raw(packets, 3, dns_client=Client(FakeResolver(hosts)))
    assert len(blocks) == 3
    assert any(
        line.startswith("remote_address: <TIMESTAMP_REMOVED> 1.1.1.1 up/down")
        for line in blocks[1]
    )
    assert any(
        line.startswith("remote_address: <TIMESTAMP_REMOVED> three.three.three.three up/down")
        for line in blocks[2]
    )
    assert any("=> one.one.one.one:12345 (tcp)" in line for line in blocks[2])


def test_ui_basic_startup():
    backend = RecordingBackend()
    start(backend, make_os_input([None], sleep_and_quit(1)), Opt(interface="interface_name"))
    assert backend.events == [
        "clear",
        "hide_cursor",
        "draw",
        "hide_cursor",
        "flush",
        "show_cursor",
    ]
    assert len(backend.screens) == 1
    lines = backend.screens[0].split("\n")
    assert lines[0].startswith(" Total Up / Down: 0Bps / 0Bps")
    assert lines[-1].startswith(
        " Press <SPACE> to pause. Use <TAB> to rearrange tables. (DNS queries hidden)."
    )
    assert "Utilization by process name" in backend.screens[0]


def test_ui_redraws_on_resize():
    backend = RecordingBackend()
    events = scripted([None, None, ResizeEvent(100, 100), QUIT])
    packets = [tcp_packet("10.0.0.2", "1.1.1.1", 443, 12345, b"I am a fake tcp packet")]
    start(backend, make_os_input(packets, events), Opt(interface="interface_name"))
    assert backend.events == ["clear", "hide_cursor"] + [
        "draw",
        "hide_cursor",
        "flush",
    ] * 3 + ["show_cursor"]
    assert "1.1.1.1" in backend.screens[2]


def test_ui_quits_on_q():
    backend = RecordingBackend()
    start(backend, make_os_input([], scripted([KeyEvent("q")])), Opt())
    assert backend.events[:2] == ["clear", "hide_cursor"]
    assert backend.events[-1] == "show_cursor"


def test_ui_total_mode_shows_cumulative_bytes_and_elapsed_time():
    backend = RecordingBackend()
    opts = replace(Opt(interface="interface_name"), render_opts=RenderOpts(total_utilization=True))
    packets = [tcp_packet("10.0.0.2", "1.1.1.1", 443, 12345, b"I am a fake tcp packet")]
    start(backend, make_os_input(packets, sleep_and_quit(2)), opts)
    assert len(backend.screens) == 2
    header = backend.screens[1].split("\n")[0]
    assert header.startswith(" Total Up / Down: 21B / 0B")
    assert re.search(r"\d\d:\d\d:\d\d $", header)